# billing/management/commands/sync_billing.py
"""
Management command to bill completed appointments that have no billing record

Usage:
    # Preview
    python manage.py sync_billing --dry-run

    # Bill with a specific billing date
    python manage.py sync_billing --billing-date 2026-03-31
"""

from django.core.management.base import BaseCommand, CommandError

from billing.utils import sync_unbilled_appointments
from core.utils import parse_calendar_date


class Command(BaseCommand):
    help = 'Create billing records for completed appointments that are not billed yet'

    def add_arguments(self, parser):
        parser.add_argument(
            '--billing-date',
            type=str,
            help='Billing date for new records (YYYY-MM-DD format), defaults to today'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be billed without creating records'
        )

    def handle(self, *args, **options):
        billing_date = None
        if options.get('billing_date'):
            try:
                billing_date = parse_calendar_date(options['billing_date'])
            except ValueError:
                raise CommandError('Invalid date format. Use YYYY-MM-DD')

        dry_run = options.get('dry_run')
        summary = sync_unbilled_appointments(billing_date=billing_date, dry_run=dry_run)

        if summary['checked'] == 0:
            self.stdout.write(self.style.SUCCESS('✓ No unbilled completed appointments'))
            return

        for result in summary['results']:
            appointment = result['appointment']
            if result['should_bill']:
                line = f'  • {appointment.date} {appointment.time_display} {appointment.patient} - {result["amount"]}'
            else:
                line = f'  • {appointment.date} {appointment.time_display} {appointment.patient} - not billed ({result["reason"]})'
            self.stdout.write(line)

        self.stdout.write('')
        if dry_run:
            self.stdout.write(self.style.SUCCESS(
                f'DRY RUN MODE - {summary["billed"]} of {summary["checked"]} appointment(s) would be billed, '
                f'total {summary["total_amount"]}'
            ))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'✓ Billed {summary["billed"]} of {summary["checked"]} appointment(s), total {summary["total_amount"]}'
            ))
