# core/tests.py
"""
Unit tests for settings storage, clock helpers, signals and the health check
"""
from datetime import datetime, time
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import SimpleTestCase, TestCase

from .models import SystemSetting
from .signals import log_session_balance_pending
from .utils import format_wall_clock, minutes_since_midnight, parse_calendar_date, parse_wall_clock, to_money


class SystemSettingTest(TestCase):
    """Test SystemSetting typed getters"""

    def test_missing_setting_returns_default(self):
        self.assertEqual(SystemSetting.get_int_setting('conflict_tolerance_minutes', 30), 30)
        self.assertEqual(SystemSetting.get_setting('unknown_key', 'fallback'), 'fallback')

    def test_int_setting(self):
        SystemSetting.set_setting('conflict_tolerance_minutes', 15)
        self.assertEqual(SystemSetting.get_int_setting('conflict_tolerance_minutes', 30), 15)

    def test_invalid_int_falls_back(self):
        SystemSetting.set_setting('conflict_tolerance_minutes', 'soon')
        self.assertEqual(SystemSetting.get_int_setting('conflict_tolerance_minutes', 30), 30)

    def test_decimal_setting(self):
        SystemSetting.set_setting('standard_session_rate', '1500.50')
        self.assertEqual(
            SystemSetting.get_decimal_setting('standard_session_rate', Decimal('1200.00')),
            Decimal('1500.50')
        )

    def test_invalid_decimal_falls_back(self):
        SystemSetting.set_setting('standard_session_rate', 'free')
        self.assertEqual(
            SystemSetting.get_decimal_setting('standard_session_rate', Decimal('1200.00')),
            Decimal('1200.00')
        )

    def test_inactive_setting_is_ignored(self):
        setting = SystemSetting.set_setting('dyes_billing_threshold', 10)
        setting.is_active = False
        setting.save()
        self.assertEqual(SystemSetting.get_int_setting('dyes_billing_threshold', 500), 500)

    def test_set_setting_keeps_description(self):
        SystemSetting.set_setting('dyes_annual_session_cap', 500, 'Free sessions per year')
        setting = SystemSetting.set_setting('dyes_annual_session_cap', 400)
        self.assertEqual(setting.value, '400')
        self.assertEqual(setting.description, 'Free sessions per year')

    def test_bool_setting(self):
        SystemSetting.set_setting('feature_flag', 'Yes')
        self.assertTrue(SystemSetting.get_bool_setting('feature_flag'))
        self.assertFalse(SystemSetting.get_bool_setting('missing_flag'))


class InitializeSettingsCommandTest(TestCase):
    """Test the initialize_settings management command"""

    def test_seeds_engine_settings_once(self):
        out = StringIO()
        call_command('initialize_settings', stdout=out)

        self.assertEqual(SystemSetting.objects.count(), 4)
        self.assertEqual(SystemSetting.get_setting('standard_session_rate'), '1200.00')
        self.assertEqual(SystemSetting.get_int_setting('conflict_tolerance_minutes'), 30)
        self.assertIn('4 created', out.getvalue())

        out = StringIO()
        call_command('initialize_settings', stdout=out)
        self.assertEqual(SystemSetting.objects.count(), 4)
        self.assertIn('already initialized', out.getvalue())

    def test_existing_values_are_kept(self):
        SystemSetting.set_setting('dyes_billing_threshold', 100)
        call_command('initialize_settings', stdout=StringIO())
        self.assertEqual(SystemSetting.get_int_setting('dyes_billing_threshold'), 100)


class WallClockTest(SimpleTestCase):
    """Test HH:MM parsing helpers"""

    def test_parse_strings(self):
        self.assertEqual(parse_wall_clock('09:30'), time(9, 30))
        self.assertEqual(parse_wall_clock('9:05'), time(9, 5))
        self.assertEqual(parse_wall_clock(' 23:59 '), time(23, 59))

    def test_seconds_are_dropped(self):
        self.assertEqual(parse_wall_clock('10:15:45'), time(10, 15))
        self.assertEqual(parse_wall_clock(time(10, 15, 45)), time(10, 15))
        self.assertEqual(parse_wall_clock(datetime(2026, 3, 1, 8, 45, 12)), time(8, 45))

    def test_invalid_values(self):
        for value in ['24:00', '12:60', 'noon', '', None, 930]:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_wall_clock(value)

    def test_format_and_minutes(self):
        self.assertEqual(format_wall_clock(time(7, 0)), '07:00')
        self.assertEqual(format_wall_clock('7:30'), '07:30')
        self.assertEqual(minutes_since_midnight('01:30'), 90)
        self.assertEqual(minutes_since_midnight(time(0, 0)), 0)

    def test_parse_calendar_date(self):
        self.assertEqual(parse_calendar_date('2026-03-31').isoformat(), '2026-03-31')
        self.assertEqual(parse_calendar_date('2026-03-31T10:00:00').isoformat(), '2026-03-31')
        self.assertEqual(parse_calendar_date(datetime(2026, 3, 31, 22, 0)).isoformat(), '2026-03-31')
        with self.assertRaises(ValueError):
            parse_calendar_date('31/03/2026')


class MoneyTest(SimpleTestCase):
    """Test currency rounding"""

    def test_rounds_half_up_to_two_places(self):
        self.assertEqual(to_money('960'), Decimal('960.00'))
        self.assertEqual(to_money(Decimal('800.005')), Decimal('800.01'))
        self.assertEqual(to_money(1200), Decimal('1200.00'))
        self.assertEqual(to_money(0.1), Decimal('0.10'))

    def test_rejects_non_numeric(self):
        for value in ['abc', None, 'NaN']:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    to_money(value)


class SessionBalanceSignalTest(SimpleTestCase):
    """Test the pending balance log receiver"""

    def test_logs_pending_balance(self):
        appointment = mock.Mock(pk=12)
        patient = mock.Mock(pk=3)
        allowance = mock.Mock(pending_paid_sessions=1, pending_charge_amount=Decimal('1200.00'))

        with self.assertLogs('core.signals', level='INFO') as logs:
            log_session_balance_pending(
                sender=None,
                appointment=appointment,
                patient=patient,
                allowance=allowance,
                remaining_free_sessions=0
            )

        self.assertIn('patient 3', logs.output[0])
        self.assertIn('1200.00', logs.output[0])


class HealthCheckTest(TestCase):
    """Test the health endpoint"""

    def test_health_check(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')

    def test_post_not_allowed(self):
        response = self.client.post('/health/')
        self.assertEqual(response.status_code, 405)
