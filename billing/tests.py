# billing/tests.py
"""
Unit tests for billing rules, billing cycles and completion side effects
"""
from datetime import date, datetime, time
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from appointments.models import Appointment, BillingRecord
from core.models import SystemSetting
from core.utils import get_clinic_today
from patients.models import Patient, PatientClassification, PaymentTerms
from users.models import User
from .cycles import (
    get_cycle_window,
    get_next_cycle_window,
    get_previous_cycle_window,
    is_date_in_cycle,
    reset_cycle,
    summarize_cycle,
)
from .models import BillingCycle
from .rules import evaluate_billing
from .utils import (
    BillingConfig,
    get_unbilled_appointments,
    process_completed_appointment,
    sync_unbilled_appointments,
)

RATE = Decimal('1200.00')


class BillingRulesTest(SimpleTestCase):
    """Test evaluate_billing"""

    def test_classification_table(self):
        cases = [
            ('VIP', 'without-concession', 0, True, Decimal('1200.00')),
            ('Paid', 'with-concession', 0, True, Decimal('960.00')),
            ('Paid', 'without-concession', 0, True, Decimal('1200.00')),
            ('GETHHMA', 'with-concession', 3, True, Decimal('1200.00')),
            ('Dyes', 'with-concession', 0, False, Decimal('0.00')),
            ('Dyes', 'without-concession', 499, False, Decimal('0.00')),
            ('Dyes', 'without-concession', 500, True, Decimal('1200.00')),
            ('unclassified', 'without-concession', 0, True, Decimal('1200.00')),
            ('walk-in', 'with-concession', 0, True, Decimal('1200.00')),
        ]
        for classification, terms, prior, should_bill, amount in cases:
            with self.subTest(classification=classification, terms=terms, prior=prior):
                decision = evaluate_billing(classification, terms, prior, RATE)
                self.assertEqual(decision['should_bill'], should_bill)
                self.assertEqual(decision['amount'], amount)
                self.assertTrue(decision['reason'])

    def test_terms_only_matter_for_paid(self):
        decision = evaluate_billing(PatientClassification.VIP, PaymentTerms.WITH_CONCESSION, 0, RATE)
        self.assertEqual(decision['amount'], RATE)

    def test_concession_rounds_half_up(self):
        decision = evaluate_billing('Paid', 'with-concession', 0, Decimal('1000.01'))
        self.assertEqual(decision['amount'], Decimal('800.01'))

    def test_custom_dyes_threshold(self):
        self.assertTrue(evaluate_billing('Dyes', '', 0, RATE, dyes_threshold=0)['should_bill'])
        self.assertFalse(evaluate_billing('Dyes', '', 9, RATE, dyes_threshold=10)['should_bill'])
        self.assertTrue(evaluate_billing('Dyes', '', 10, RATE, dyes_threshold=10)['should_bill'])

    def test_rate_as_string(self):
        self.assertEqual(evaluate_billing('VIP', '', 0, '1500')['amount'], Decimal('1500.00'))

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            evaluate_billing('VIP', '', -1, RATE)
        with self.assertRaises(ValueError):
            evaluate_billing('VIP', '', 0, Decimal('-5'))
        with self.assertRaises(ValueError):
            evaluate_billing('Dyes', '', 0, RATE, dyes_threshold=-1)


class CycleWindowTest(SimpleTestCase):
    """Test calendar month windows"""

    def test_window_for_date(self):
        window = get_cycle_window(date(2026, 3, 15))
        self.assertEqual(window['cycle_id'], '2026-03')
        self.assertEqual(window['start_date'], date(2026, 3, 1))
        self.assertEqual(window['end_date'], date(2026, 3, 31))

    def test_leap_february(self):
        self.assertEqual(get_cycle_window(date(2024, 2, 10))['end_date'], date(2024, 2, 29))
        self.assertEqual(get_cycle_window(date(2026, 2, 10))['end_date'], date(2026, 2, 28))

    def test_year_boundaries(self):
        self.assertEqual(get_next_cycle_window(date(2026, 12, 31))['cycle_id'], '2027-01')
        self.assertEqual(get_previous_cycle_window(date(2026, 1, 1))['cycle_id'], '2025-12')
        self.assertEqual(get_next_cycle_window(date(2026, 1, 31))['end_date'], date(2026, 2, 28))

    def test_date_in_cycle(self):
        start, end = date(2026, 3, 1), date(2026, 3, 31)
        self.assertTrue(is_date_in_cycle(date(2026, 3, 1), start, end))
        self.assertTrue(is_date_in_cycle('2026-03-31', start, end))
        self.assertTrue(is_date_in_cycle(datetime(2026, 3, 31, 23, 59), start, end))
        self.assertFalse(is_date_in_cycle(date(2026, 4, 1), start, end))
        self.assertFalse(is_date_in_cycle(date(2026, 2, 28), start, end))
        self.assertFalse(is_date_in_cycle(None, start, end))
        self.assertFalse(is_date_in_cycle('last week', start, end))


class ResetCycleTest(SimpleTestCase):
    """Test reset_cycle on unsaved cycles"""

    def setUp(self):
        self.now = timezone.now()
        self.march = BillingCycle.from_window(get_cycle_window(date(2026, 3, 1)), status=BillingCycle.STATUS_ACTIVE)

    def test_active_cycle_is_closed(self):
        result = reset_cycle(self.march, None, date(2026, 3, 31), now=self.now)

        self.assertIs(result['closed'], self.march)
        self.assertEqual(self.march.status, BillingCycle.STATUS_CLOSED)
        self.assertEqual(self.march.closed_at, self.now)

        april = result['activated']
        self.assertEqual(april.cycle_id, '2026-04')
        self.assertEqual(april.start_date, date(2026, 4, 1))
        self.assertEqual(april.end_date, date(2026, 4, 30))
        self.assertEqual(april.status, BillingCycle.STATUS_ACTIVE)

    def test_reset_uses_active_cycle_not_today(self):
        result = reset_cycle(self.march, None, date(2026, 5, 20), now=self.now)
        self.assertEqual(result['activated'].cycle_id, '2026-04')

    def test_no_active_cycle(self):
        result = reset_cycle(None, None, date(2026, 3, 15), now=self.now)
        self.assertIsNone(result['closed'])
        self.assertEqual(result['activated'].cycle_id, '2026-04')

    def test_already_closed_cycle(self):
        self.march.status = BillingCycle.STATUS_CLOSED
        result = reset_cycle(self.march, None, date(2026, 3, 31), now=self.now)
        self.assertIsNone(result['closed'])
        self.assertEqual(result['activated'].cycle_id, '2026-04')

    def test_existing_next_cycle_is_activated(self):
        april = BillingCycle.from_window(get_cycle_window(date(2026, 4, 1)))
        result = reset_cycle(self.march, april, date(2026, 3, 31), now=self.now)
        self.assertIs(result['activated'], april)
        self.assertEqual(april.status, BillingCycle.STATUS_ACTIVE)

    def test_mismatched_next_cycle(self):
        june = BillingCycle.from_window(get_cycle_window(date(2026, 6, 1)))
        with self.assertRaises(ValueError):
            reset_cycle(self.march, june, date(2026, 3, 31), now=self.now)


class CycleSummaryTest(SimpleTestCase):
    """Test summarize_cycle on unsaved appointments"""

    def make_appointment(self, status, visit_date, staff=None, amount=None, billing_date=None):
        appointment = Appointment(status=status, date=visit_date, time=time(10, 0), staff=staff)
        if amount is not None:
            appointment.billing_record = BillingRecord(amount=Decimal(amount), billing_date=billing_date)
        return appointment

    def test_march_summary(self):
        asha = User(username='arao', first_name='Asha', last_name='Rao')
        vikram = User(username='vikram', first_name='Vikram', last_name='Shah')
        appointments = [
            self.make_appointment('completed', date(2026, 3, 5), asha, '1200.00', date(2026, 3, 5)),
            # Billed after the window closed
            self.make_appointment('completed', date(2026, 3, 28), vikram, '960.00', date(2026, 4, 1)),
            self.make_appointment('completed', date(2026, 3, 10), asha),
            # February visit billed in March
            self.make_appointment('completed', date(2026, 2, 27), None, '500.00', date(2026, 3, 1)),
            self.make_appointment('pending', date(2026, 3, 12), asha),
            self.make_appointment('completed', date(2026, 3, 31), asha, '800.00', date(2026, 3, 31)),
        ]

        summary = summarize_cycle(get_cycle_window(date(2026, 3, 1)), appointments)

        self.assertEqual(summary['pending_count'], 1)
        # Bills dated in March; the April-billed visit is not counted
        self.assertEqual(summary['completed_count'], 3)
        self.assertEqual(summary['collected_amount'], Decimal('2500.00'))
        self.assertEqual(summary['by_clinician'], [
            {'doctor': 'Asha Rao', 'amount': Decimal('2000.00')},
            {'doctor': 'Unassigned', 'amount': Decimal('500.00')},
        ])

    def test_equal_totals_keep_first_seen_order(self):
        zoe = User(username='zoe')
        anil = User(username='anil')
        appointments = [
            self.make_appointment('completed', date(2026, 3, 2), zoe, '1200.00', date(2026, 3, 2)),
            self.make_appointment('completed', date(2026, 3, 3), anil, '1200.00', date(2026, 3, 3)),
        ]
        summary = summarize_cycle(get_cycle_window(date(2026, 3, 1)), appointments)
        self.assertEqual([row['doctor'] for row in summary['by_clinician']], ['zoe', 'anil'])

    def test_unbilled_visit_is_pending_not_completed(self):
        appointments = [self.make_appointment('completed', date(2026, 3, 10), User(username='arao'))]

        summary = summarize_cycle(get_cycle_window(date(2026, 3, 1)), appointments)

        self.assertEqual(summary['pending_count'], 1)
        self.assertEqual(summary['completed_count'], 0)
        self.assertEqual(summary['collected_amount'], Decimal('0.00'))

    def test_completed_count_matches_bills_in_window(self):
        asha = User(username='arao')
        appointments = [
            self.make_appointment('completed', date(2026, 2, 20), asha, '1200.00', date(2026, 3, 2)),
            self.make_appointment('completed', date(2026, 3, 4), asha, '1200.00', date(2026, 3, 4)),
            self.make_appointment('completed', date(2026, 3, 30), asha, '1200.00', date(2026, 4, 1)),
        ]

        summary = summarize_cycle(get_cycle_window(date(2026, 3, 1)), appointments)

        self.assertEqual(summary['completed_count'], 2)
        self.assertEqual(summary['collected_amount'], Decimal('2400.00'))
        self.assertEqual(summary['pending_count'], 0)

    def test_empty_cycle(self):
        cycle = BillingCycle.from_window(get_cycle_window(date(2026, 3, 1)))
        summary = summarize_cycle(cycle, [])
        self.assertEqual(summary['pending_count'], 0)
        self.assertEqual(summary['collected_amount'], Decimal('0.00'))
        self.assertEqual(summary['by_clinician'], [])


class BillingCycleModelTest(TestCase):
    """Test stored billing cycles"""

    def test_get_or_create_current(self):
        cycle, created = BillingCycle.get_or_create_current(date(2026, 3, 15))
        self.assertTrue(created)
        self.assertEqual(cycle.cycle_id, '2026-03')
        self.assertTrue(cycle.is_active)
        self.assertEqual(cycle.month_name, 'March 2026')

        again, created = BillingCycle.get_or_create_current(date(2026, 3, 20))
        self.assertFalse(created)
        self.assertEqual(again.pk, cycle.pk)

        april, _ = BillingCycle.get_or_create_current(date(2026, 4, 2))
        self.assertEqual(april.status, BillingCycle.STATUS_PENDING)

    def test_reset_keeps_one_active_cycle(self):
        BillingCycle.get_or_create_current(date(2026, 3, 15))

        result = BillingCycle.reset(date(2026, 3, 31))

        self.assertEqual(result['closed'].cycle_id, '2026-03')
        self.assertEqual(result['activated'].cycle_id, '2026-04')
        self.assertEqual(BillingCycle.objects.get(cycle_id='2026-03').status, BillingCycle.STATUS_CLOSED)
        self.assertIsNotNone(BillingCycle.objects.get(cycle_id='2026-03').closed_at)
        self.assertEqual(BillingCycle.objects.filter(status=BillingCycle.STATUS_ACTIVE).count(), 1)
        self.assertEqual(BillingCycle.get_active().cycle_id, '2026-04')

    def test_reset_activates_stored_pending_cycle(self):
        BillingCycle.get_or_create_current(date(2026, 3, 15))
        BillingCycle.get_or_create_current(date(2026, 4, 15))

        BillingCycle.reset(date(2026, 3, 31))

        self.assertEqual(BillingCycle.objects.count(), 2)
        self.assertEqual(BillingCycle.objects.get(cycle_id='2026-04').status, BillingCycle.STATUS_ACTIVE)

    def test_reset_without_active_cycle(self):
        result = BillingCycle.reset(date(2026, 3, 15))
        self.assertIsNone(result['closed'])
        self.assertEqual(result['activated'].cycle_id, '2026-04')
        self.assertEqual(BillingCycle.objects.count(), 1)


class BillingTestMixin:
    """Shared clinician and patients"""

    def setUp(self):
        self.clinician = User.objects.create_user(
            username='arao', password='testpass123', first_name='Asha', last_name='Rao', role=User.CLINICAL
        )
        self.paid = Patient.objects.create(
            first_name='Ravi',
            classification=PatientClassification.PAID,
            payment_terms=PaymentTerms.WITHOUT_CONCESSION
        )

    def completed(self, visit_date, patient=None, staff=None, amount=None, at=time(10, 0)):
        return Appointment.objects.create(
            patient=patient or self.paid,
            staff=staff or self.clinician,
            date=visit_date,
            time=at,
            status='completed',
            amount=amount
        )


class CompletionTest(BillingTestMixin, TestCase):
    """Test process_completed_appointment"""

    def test_running_twice_bills_once(self):
        appointment = self.completed(date(2026, 3, 5))

        first = process_completed_appointment(appointment, billing_date=date(2026, 3, 5), today=date(2026, 3, 5))
        second = process_completed_appointment(appointment, billing_date=date(2026, 3, 6), today=date(2026, 3, 6))

        self.assertEqual(first['billing_record'].amount, Decimal('1200.00'))
        self.assertEqual(first['billing_decision']['should_bill'], True)
        self.assertEqual(second['billing_record'].pk, first['billing_record'].pk)
        self.assertIsNone(second['billing_decision'])
        self.assertEqual(BillingRecord.objects.count(), 1)
        self.assertEqual(BillingRecord.objects.get().billing_date, date(2026, 3, 5))

    def test_non_dyes_has_no_session_usage(self):
        appointment = self.completed(date(2026, 3, 5))
        result = process_completed_appointment(appointment, today=date(2026, 3, 5))
        self.assertIsNone(result['session_usage'])
        self.assertEqual(result['billing_record'].billing_date, date(2026, 3, 5))

    def test_dyes_billed_after_threshold(self):
        SystemSetting.set_setting('dyes_billing_threshold', 1)
        dyes = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        first = self.completed(date(2026, 3, 5), patient=dyes)
        BillingRecord.objects.create(appointment=first, amount=Decimal('0.00'), billing_date=date(2026, 3, 5))

        second = self.completed(date(2026, 3, 6), patient=dyes)
        result = process_completed_appointment(second, today=date(2026, 3, 6))

        self.assertEqual(result['billing_record'].amount, Decimal('1200.00'))
        self.assertTrue(result['session_usage']['was_free'])

    def test_completion_signal(self):
        appointment = self.completed(date(2026, 3, 5))
        received = []

        def capture(sender, **kwargs):
            received.append(kwargs)

        from core.signals import appointment_completed
        appointment_completed.connect(capture, dispatch_uid='test_capture_completed')
        self.addCleanup(appointment_completed.disconnect, dispatch_uid='test_capture_completed')

        result = process_completed_appointment(appointment, today=date(2026, 3, 5))

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0]['billing_record'], result['billing_record'])

    def test_standard_rate_setting(self):
        SystemSetting.set_setting('standard_session_rate', '1500')
        self.assertEqual(BillingConfig.get_standard_session_rate(), Decimal('1500.00'))
        appointment = self.completed(date(2026, 3, 5))
        result = process_completed_appointment(appointment, today=date(2026, 3, 5))
        self.assertEqual(result['billing_record'].amount, Decimal('1500.00'))

    def test_zero_amount_uses_standard_rate(self):
        appointment = self.completed(date(2026, 3, 5), amount=Decimal('0.00'))
        result = process_completed_appointment(appointment, today=date(2026, 3, 5))
        self.assertEqual(result['billing_record'].amount, Decimal('1200.00'))


class SyncBillingTest(BillingTestMixin, TestCase):
    """Test billing of completed appointments without records"""

    def setUp(self):
        super().setUp()
        self.completed(date(2026, 3, 5))
        self.completed(date(2026, 3, 6), amount=Decimal('1000.00'))
        Appointment.objects.create(patient=self.paid, staff=self.clinician, date=date(2026, 3, 7), time=time(9, 0))

    def test_dry_run_creates_nothing(self):
        summary = sync_unbilled_appointments(billing_date=date(2026, 3, 31), dry_run=True)

        self.assertEqual(summary['checked'], 2)
        self.assertEqual(summary['billed'], 2)
        self.assertEqual(summary['total_amount'], Decimal('2200.00'))
        self.assertEqual(BillingRecord.objects.count(), 0)

    def test_sync_bills_each_appointment(self):
        summary = sync_unbilled_appointments(billing_date=date(2026, 3, 31))

        self.assertEqual(summary['billed'], 2)
        self.assertEqual(BillingRecord.objects.count(), 2)
        self.assertFalse(BillingRecord.objects.exclude(billing_date=date(2026, 3, 31)).exists())
        self.assertFalse(get_unbilled_appointments().exists())

        again = sync_unbilled_appointments(billing_date=date(2026, 3, 31))
        self.assertEqual(again['checked'], 0)

    def test_dyes_below_threshold_skipped(self):
        dyes = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        self.completed(date(2026, 3, 8), patient=dyes)

        summary = sync_unbilled_appointments(billing_date=date(2026, 3, 31))

        self.assertEqual(summary['checked'], 3)
        self.assertEqual(summary['skipped'], 1)
        self.assertEqual(BillingRecord.objects.filter(appointment__patient=dyes).count(), 0)

    def test_command_dry_run(self):
        out = StringIO()
        call_command('sync_billing', '--dry-run', '--billing-date', '2026-03-31', stdout=out)
        self.assertIn('DRY RUN MODE', out.getvalue())
        self.assertEqual(BillingRecord.objects.count(), 0)

    def test_command(self):
        out = StringIO()
        call_command('sync_billing', '--billing-date', '2026-03-31', stdout=out)
        self.assertIn('Billed 2 of 2', out.getvalue())

        out = StringIO()
        call_command('sync_billing', stdout=out)
        self.assertIn('No unbilled completed appointments', out.getvalue())

    def test_command_invalid_date(self):
        with self.assertRaises(CommandError):
            call_command('sync_billing', '--billing-date', 'March', stdout=StringIO())


class ResetBillingCycleCommandTest(TestCase):
    """Test the reset_billing_cycle management command"""

    def setUp(self):
        BillingCycle.get_or_create_current(date(2026, 3, 15))

    def test_confirmed_reset(self):
        out = StringIO()
        call_command('reset_billing_cycle', '--date', '2026-03-31', '--confirm', stdout=out)

        output = out.getvalue()
        self.assertIn('Closed billing cycle 2026-03', output)
        self.assertIn('Activated billing cycle 2026-04', output)
        self.assertEqual(BillingCycle.get_active().cycle_id, '2026-04')

    @mock.patch('builtins.input', return_value='no')
    def test_cancelled_without_confirmation(self, mock_input):
        out = StringIO()
        call_command('reset_billing_cycle', '--date', '2026-03-31', stdout=out)

        self.assertIn('Operation cancelled', out.getvalue())
        self.assertEqual(BillingCycle.get_active().cycle_id, '2026-03')

    @mock.patch('builtins.input', return_value='RESET')
    def test_typed_confirmation(self, mock_input):
        call_command('reset_billing_cycle', '--date', '2026-03-31', stdout=StringIO())
        self.assertEqual(BillingCycle.get_active().cycle_id, '2026-04')


class BillingApiTest(BillingTestMixin, TestCase):
    """Test the billing JSON endpoints"""

    def setUp(self):
        super().setUp()
        self.client.force_login(self.clinician)

    def test_summary_for_stored_cycle(self):
        BillingCycle.get_or_create_current(date(2026, 3, 15))
        billed = self.completed(date(2026, 3, 5))
        BillingRecord.objects.create(appointment=billed, amount=Decimal('1200.00'), billing_date=date(2026, 3, 5))
        self.completed(date(2026, 3, 10))
        self.completed(date(2026, 4, 2))

        response = self.client.get(reverse('billing:cycle_summary_api'), {'cycle_id': '2026-03'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['cycle']['cycle_id'], '2026-03')
        self.assertEqual(data['cycle']['status'], 'active')
        self.assertEqual(data['pending_count'], 1)
        self.assertEqual(data['completed_count'], 1)
        self.assertEqual(data['collected_amount'], '1200.00')
        self.assertEqual(data['by_clinician'], [{'doctor': 'Asha Rao', 'amount': '1200.00'}])

    def test_summary_unknown_cycle(self):
        response = self.client.get(reverse('billing:cycle_summary_api'), {'cycle_id': '2020-01'})
        self.assertEqual(response.status_code, 404)

    def test_summary_defaults_to_current_month(self):
        response = self.client.get(reverse('billing:cycle_summary_api'))
        data = response.json()
        self.assertEqual(data['cycle']['cycle_id'], get_cycle_window(get_clinic_today())['cycle_id'])
        self.assertIsNone(data['cycle']['status'])
        self.assertEqual(data['pending_count'], 0)

    def test_reset_requires_admin(self):
        response = self.client.post(reverse('billing:reset_cycle_api'))
        self.assertEqual(response.status_code, 403)
        self.assertFalse(BillingCycle.objects.exists())

    def test_reset_by_admin(self):
        admin_user = User.objects.create_user(username='admin', password='testpass123', role=User.ADMIN)
        self.client.force_login(admin_user)

        response = self.client.post(reverse('billing:reset_cycle_api'))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertIsNone(data['closed'])
        self.assertEqual(data['activated']['cycle_id'], get_next_cycle_window(get_clinic_today())['cycle_id'])
        self.assertEqual(data['activated']['status'], 'active')

    def test_reset_requires_post(self):
        response = self.client.get(reverse('billing:reset_cycle_api'))
        self.assertEqual(response.status_code, 405)
