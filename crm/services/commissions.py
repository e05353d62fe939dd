"""Commission reporting per referrer or staff member."""
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.db.models import Count, Sum
from django.db.models.functions import TruncDay, TruncMonth
from django.utils import timezone

from crm.models import Clinic, Commission

SOURCES = ('referral', 'staff')
PERIODS = {'daily': TruncDay, 'monthly': TruncMonth}


def _money(value) -> float:
    return float(value or Decimal('0'))


def serialize_commission(c: Commission) -> dict:
    patient = c.patient
    appt = c.appointment
    return {
        '_id': c.id,
        'id': c.id,
        'source': c.source,
        'referralId': c.referral_id,
        'staffId': c.staff_id,
        'patientName': patient.full_name if patient else '',
        'patientMobile': patient.mobile_number if patient else '',
        'invoiceNumber': c.invoice_number,
        'paidAmount': _money(c.amount_paid),
        'commissionPercent': _money(c.commission_percent),
        'commissionAmount': _money(c.commission_amount),
        'doctorName': appt.doctor.display_name if appt else '',
        'invoicedDate': c.invoiced_date.isoformat() if c.invoiced_date else None,
        'createdAt': c.created_at.isoformat(),
    }


def by_person(clinic: Clinic, source: str, *, referral_id=None, staff_id=None) -> dict:
    if source not in SOURCES:
        raise ValueError('Invalid source')
    qs = Commission.objects.filter(clinic=clinic, source=source)
    if source == 'referral':
        if not referral_id:
            raise ValueError('referralId is required for referral source')
        qs = qs.filter(referral_id=referral_id)
    else:
        if not staff_id:
            raise ValueError('staffId is required for staff source')
        qs = qs.filter(staff_id=staff_id)
    qs = qs.select_related('patient', 'appointment__doctor').order_by('-created_at', '-id')
    totals = qs.aggregate(paid=Sum('amount_paid'), commission=Sum('commission_amount'), count=Count('id'))
    return {
        'items': [serialize_commission(c) for c in qs],
        'totals': {
            'count': totals['count'] or 0,
            'paidAmount': _money(totals['paid']),
            'commissionAmount': _money(totals['commission']),
        },
    }


def trends(clinic: Clinic, *, source: Optional[str] = None, period: str = 'monthly',
           months: Optional[int] = None, limit: int = 30) -> list[dict]:
    """Commission totals bucketed by day or month, oldest first."""
    trunc = PERIODS.get(period)
    if trunc is None:
        raise ValueError('Invalid period')
    qs = Commission.objects.filter(clinic=clinic)
    if source:
        if source not in SOURCES:
            raise ValueError('Invalid source')
        qs = qs.filter(source=source)
    if months:
        qs = qs.filter(created_at__gte=timezone.now() - timedelta(days=31 * months))
    rows = (
        qs.annotate(bucket=trunc('created_at'))
        .values('bucket')
        .annotate(paid=Sum('amount_paid'), commission=Sum('commission_amount'), count=Count('id'))
        .order_by('-bucket')[:limit]
    )
    fmt = '%Y-%m-%d' if period == 'daily' else '%Y-%m'
    return [
        {
            'period': row['bucket'].strftime(fmt),
            'count': row['count'],
            'paidAmount': _money(row['paid']),
            'commissionAmount': _money(row['commission']),
        }
        for row in reversed(list(rows))
    ]
