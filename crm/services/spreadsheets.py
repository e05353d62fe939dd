"""Reading ``.csv`` and ``.xlsx`` uploads for the bulk imports."""
import csv
import io
import zipfile
from datetime import datetime
from typing import Optional

import openpyxl
from django.conf import settings
from openpyxl.utils.exceptions import InvalidFileException

SPREADSHEET_TYPES = ('.csv', '.xlsx')


def _cell(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        # spreadsheets store phone numbers as floats
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value).strip()


def read_spreadsheet(upload) -> list[dict]:
    """Rows of a ``.csv`` or ``.xlsx`` upload as header -> text dicts.

    The first row holds the headers.  Blank spreadsheet rows are dropped.
    """
    size_mb = (getattr(upload, 'size', 0) or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValueError(f'File size too large. Maximum allowed size is {settings.UPLOAD_MAX_MB}MB.')
    name = (getattr(upload, 'name', '') or '').lower()
    if not name.endswith(SPREADSHEET_TYPES):
        raise ValueError('Unsupported file format. Upload CSV or Excel (.xlsx).')

    raw = upload.read()
    if name.endswith('.csv'):
        text = raw.decode('utf-8-sig') if isinstance(raw, bytes) else raw
        return [
            {(k or '').strip(): _cell(v) for k, v in row.items()}
            for row in csv.DictReader(io.StringIO(text))
        ]

    try:
        workbook = openpyxl.load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise ValueError('Could not read the Excel file') from e
    try:
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = [_cell(h) for h in next(rows, ())]
        out = []
        for values in rows:
            if not any(v not in (None, '') for v in values):
                continue
            out.append({h: _cell(v) for h, v in zip(header, values) if h})
        return out
    finally:
        workbook.close()


def map_columns(headers, mapping: Optional[dict], fields: dict, required) -> dict:
    """Map file headers onto record fields.

    ``fields`` maps lower-cased names to field names.  With an explicit
    ``mapping`` (file column -> field) only the mapped columns are read;
    otherwise headers are matched by name.
    """
    if mapping:
        out = {col: fields.get(str(field).lower()) for col, field in mapping.items()}
        out = {col: f for col, f in out.items() if f}
        missing = [f for f in required if f not in out.values()]
        if missing:
            raise ValueError(f'Please map the following required fields: {", ".join(missing)}')
        return out
    return {h: fields[h.lower()] for h in headers if h.lower() in fields}


def mapped_row(raw: dict, columns: dict) -> dict:
    return {columns[col]: value for col, value in raw.items() if col in columns and value}
