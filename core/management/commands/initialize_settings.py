"""
Management command to seed the engine settings

Usage:
    python manage.py initialize_settings

    # Also list settings that already exist
    python manage.py initialize_settings -v 2
"""

from django.core.management.base import BaseCommand

from core.models import SystemSetting


class Command(BaseCommand):
    help = 'Initialize default engine settings (session rate, conflict tolerance, DYES limits)'

    def handle(self, *args, **options):
        results = SystemSetting.initialize_engine_settings()
        created_count = sum(1 for _, created in results if created)
        existing_count = len(results) - created_count

        for setting, created in results:
            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created setting: {setting.key} = {setting.value}'))
            elif options.get('verbosity', 1) >= 2:
                self.stdout.write(self.style.WARNING(f'⚠ Already exists: {setting.key} = {setting.value}'))

        if created_count:
            self.stdout.write(self.style.SUCCESS(
                f'\n✓ Settings initialization complete: {created_count} created, {existing_count} already existed'
            ))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'✓ All settings already initialized ({existing_count} settings)'
            ))
