# billing/management/commands/reset_billing_cycle.py
"""
Management command to close the active billing cycle and open the next one

Usage:
    # Reset as of today, with a confirmation prompt
    python manage.py reset_billing_cycle

    # Reset without prompting (cron)
    python manage.py reset_billing_cycle --confirm

    # Use a specific reference date when no cycle is active
    python manage.py reset_billing_cycle --date 2026-03-31 --confirm
"""

from django.core.management.base import BaseCommand, CommandError

from billing.cycles import get_next_cycle_window
from billing.models import BillingCycle
from core.utils import get_clinic_today, parse_calendar_date


class Command(BaseCommand):
    help = 'Close the active billing cycle and activate the following month'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Reference date (YYYY-MM-DD format), defaults to today'
        )
        parser.add_argument(
            '--confirm',
            action='store_true',
            help='Skip confirmation prompt'
        )

    def handle(self, *args, **options):
        if options.get('date'):
            try:
                today = parse_calendar_date(options['date'])
            except ValueError:
                raise CommandError('Invalid date format. Use YYYY-MM-DD')
        else:
            today = get_clinic_today()

        active = BillingCycle.get_active()
        next_window = get_next_cycle_window(active.end_date if active else today)

        if active:
            self.stdout.write(f'Active cycle: {active.cycle_id} ({active.start_date} to {active.end_date})')
        else:
            self.stdout.write(self.style.WARNING('No active billing cycle'))
        self.stdout.write(f'Next cycle:   {next_window["cycle_id"]} '
                          f'({next_window["start_date"]} to {next_window["end_date"]})')

        if not options.get('confirm'):
            response = input('Type "RESET" to close the active cycle: ')
            if response != 'RESET':
                self.stdout.write(self.style.SUCCESS('Operation cancelled'))
                return

        result = BillingCycle.reset(today)

        if result['closed']:
            self.stdout.write(self.style.SUCCESS(f'✓ Closed billing cycle {result["closed"].cycle_id}'))
        self.stdout.write(self.style.SUCCESS(f'✓ Activated billing cycle {result["activated"].cycle_id}'))
