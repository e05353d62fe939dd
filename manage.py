#!/usr/bin/env python
"""
Command line entry point for the clinic CRM backend.  It points Django at
``clinicrm.settings`` and hands over to the management utility.
"""
import os
import sys


def main() -> None:
    """Run administrative tasks for the clinic CRM project."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'clinicrm.settings')
    try:
        from django.core.management import execute_from_command_line  # type: ignore
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
