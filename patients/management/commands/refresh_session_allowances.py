# patients/management/commands/refresh_session_allowances.py
"""
Management command to apply the annual January 1 reset to DYES allowances

Usage:
    # Refresh as of today (clinic timezone)
    python manage.py refresh_session_allowances

    # Refresh as of a specific date
    python manage.py refresh_session_allowances --date 2026-01-01
"""

from django.core.management.base import BaseCommand, CommandError

from core.utils import get_clinic_today, parse_calendar_date
from patients.allowance import refresh_session_allowances


class Command(BaseCommand):
    help = 'Reset free session usage for DYES patients whose annual reset date has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Reference date (YYYY-MM-DD format), defaults to today'
        )

    def handle(self, *args, **options):
        if options.get('date'):
            try:
                today = parse_calendar_date(options['date'])
            except ValueError:
                raise CommandError('Invalid date format. Use YYYY-MM-DD')
        else:
            today = get_clinic_today()

        summary = refresh_session_allowances(today)

        self.stdout.write(f'DYES patients checked: {summary["dyes_patients"]}')
        self.stdout.write(f'Allowances initialized: {summary["initialized"]}')
        self.stdout.write(f'Resets applied: {summary["resets_applied"]}')
        self.stdout.write(self.style.SUCCESS(
            f'✓ Session allowances refreshed as of {today}: {summary["records_updated"]} record(s) updated'
        ))
