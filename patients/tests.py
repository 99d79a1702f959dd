# patients/tests.py
"""
Unit tests for patient classification and the DYES session allowance ledger
"""
from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase

from core.models import SystemSetting
from .allowance import (
    build_initial_allowance,
    record_session_usage,
    refresh_allowance_if_needed,
    refresh_session_allowances,
)
from .models import Patient, PatientClassification, PaymentTerms, SessionAllowance


class ClassificationParsingTest(SimpleTestCase):
    """Test raw string parsing for classification and payment terms"""

    def test_classification_is_case_insensitive(self):
        self.assertEqual(PatientClassification.from_raw('DYES'), PatientClassification.DYES)
        self.assertEqual(PatientClassification.from_raw('dyes'), PatientClassification.DYES)
        self.assertEqual(PatientClassification.from_raw(' vip '), PatientClassification.VIP)
        self.assertEqual(PatientClassification.from_raw('PAID'), PatientClassification.PAID)
        self.assertEqual(PatientClassification.from_raw('gethhma'), PatientClassification.GETHHMA)

    def test_unknown_classification(self):
        for value in ['walk-in', '', None]:
            with self.subTest(value=value):
                self.assertEqual(PatientClassification.from_raw(value), PatientClassification.UNCLASSIFIED)

    def test_payment_terms(self):
        self.assertEqual(PaymentTerms.from_raw('with'), PaymentTerms.WITH_CONCESSION)
        self.assertEqual(PaymentTerms.from_raw('With Concession'), PaymentTerms.WITH_CONCESSION)
        self.assertEqual(PaymentTerms.from_raw('without'), PaymentTerms.WITHOUT_CONCESSION)
        self.assertEqual(PaymentTerms.from_raw('monthly'), PaymentTerms.WITHOUT_CONCESSION)
        self.assertEqual(PaymentTerms.from_raw(None), PaymentTerms.WITHOUT_CONCESSION)


class SessionLedgerTest(SimpleTestCase):
    """Test record_session_usage on unsaved allowances"""

    def test_free_sessions_then_pending_charge(self):
        allowance = SessionAllowance(free_sessions_total=4, free_sessions_used=0)

        for appointment_id in range(1, 5):
            result = record_session_usage(allowance, 'Dyes', Decimal('1000.00'), appointment_id=appointment_id)
            self.assertTrue(result['was_free'])
            self.assertTrue(result['recorded'])

        self.assertEqual(allowance.free_sessions_used, 4)
        self.assertEqual(allowance.remaining_free_sessions, 0)

        result = record_session_usage(allowance, 'Dyes', Decimal('1000.00'), appointment_id=5)

        self.assertFalse(result['was_free'])
        self.assertEqual(result['remaining_free_sessions'], 0)
        self.assertEqual(allowance.free_sessions_used, 4)
        self.assertEqual(allowance.pending_paid_sessions, 1)
        self.assertEqual(allowance.pending_charge_amount, Decimal('1000.00'))

    def test_default_cost_is_standard_rate(self):
        allowance = SessionAllowance(free_sessions_total=0)
        record_session_usage(allowance, PatientClassification.DYES)
        self.assertEqual(allowance.pending_charge_amount, Decimal('1200.00'))

    def test_pending_charges_accumulate(self):
        allowance = SessionAllowance(free_sessions_total=0)
        record_session_usage(allowance, 'Dyes', '800', appointment_id=1)
        record_session_usage(allowance, 'Dyes', '450.50', appointment_id=2)
        self.assertEqual(allowance.pending_paid_sessions, 2)
        self.assertEqual(allowance.pending_charge_amount, Decimal('1250.50'))

    def test_non_dyes_is_untouched(self):
        allowance = SessionAllowance(free_sessions_total=0)
        result = record_session_usage(allowance, 'Paid', Decimal('1200.00'), appointment_id=1)

        self.assertTrue(result['was_free'])
        self.assertFalse(result['recorded'])
        self.assertIs(result['allowance'], allowance)
        self.assertEqual(allowance.pending_paid_sessions, 0)
        self.assertEqual(allowance.pending_charge_amount, Decimal('0.00'))
        self.assertIsNone(allowance.last_appointment_id)

    def test_non_dyes_without_allowance(self):
        result = record_session_usage(None, 'VIP')
        self.assertIsNone(result['allowance'])
        self.assertEqual(result['remaining_free_sessions'], 0)

    def test_missing_allowance_starts_fresh(self):
        result = record_session_usage(None, 'Dyes', appointment_id=7)
        allowance = result['allowance']

        self.assertTrue(result['was_free'])
        self.assertEqual(allowance.free_sessions_total, 500)
        self.assertEqual(allowance.free_sessions_used, 1)
        self.assertEqual(result['remaining_free_sessions'], 499)
        self.assertEqual(allowance.last_appointment_id, 7)

    def test_same_appointment_is_recorded_once(self):
        allowance = SessionAllowance(free_sessions_total=2)
        record_session_usage(allowance, 'Dyes', appointment_id=9)
        result = record_session_usage(allowance, 'Dyes', appointment_id=9)

        self.assertFalse(result['recorded'])
        self.assertEqual(allowance.free_sessions_used, 1)

    def test_negative_cost_rejected(self):
        allowance = SessionAllowance(free_sessions_total=0)
        with self.assertRaises(ValueError):
            record_session_usage(allowance, 'Dyes', Decimal('-1'))
        self.assertEqual(allowance.pending_paid_sessions, 0)

    def test_used_never_exceeds_total(self):
        allowance = SessionAllowance(free_sessions_total=1)
        for appointment_id in range(3):
            record_session_usage(allowance, 'Dyes', appointment_id=appointment_id)
        self.assertEqual(allowance.free_sessions_used, 1)
        self.assertEqual(allowance.pending_paid_sessions, 2)


class AllowanceResetTest(SimpleTestCase):
    """Test the annual January 1 reset"""

    def test_initial_allowance(self):
        allowance = build_initial_allowance('Dyes', date(2026, 3, 15))
        self.assertEqual(allowance.free_sessions_total, 500)
        self.assertEqual(allowance.last_reset_on, date(2026, 1, 1))
        self.assertEqual(allowance.next_reset_on, date(2027, 1, 1))

        self.assertEqual(build_initial_allowance('Paid', date(2026, 3, 15)).free_sessions_total, 0)
        self.assertEqual(build_initial_allowance('Dyes', date(2026, 3, 15), annual_cap=10).free_sessions_total, 10)

    def test_no_reset_before_due(self):
        allowance = SessionAllowance(free_sessions_total=500, free_sessions_used=12, next_reset_on=date(2027, 1, 1))
        self.assertEqual(refresh_allowance_if_needed(allowance, date(2026, 12, 31)), 0)
        self.assertEqual(allowance.free_sessions_used, 12)

    def test_reset_on_january_first(self):
        allowance = SessionAllowance(
            free_sessions_total=500,
            free_sessions_used=120,
            pending_paid_sessions=2,
            pending_charge_amount=Decimal('2400.00'),
            next_reset_on=date(2027, 1, 1)
        )
        self.assertEqual(refresh_allowance_if_needed(allowance, date(2027, 1, 1)), 1)
        self.assertEqual(allowance.free_sessions_used, 0)
        self.assertEqual(allowance.last_reset_on, date(2027, 1, 1))
        self.assertEqual(allowance.next_reset_on, date(2028, 1, 1))
        # Pending balances carry over
        self.assertEqual(allowance.pending_paid_sessions, 2)
        self.assertEqual(allowance.pending_charge_amount, Decimal('2400.00'))

    def test_multiple_missed_resets(self):
        allowance = SessionAllowance(free_sessions_total=500, free_sessions_used=80, next_reset_on=date(2025, 1, 1))
        self.assertEqual(refresh_allowance_if_needed(allowance, date(2026, 6, 1)), 2)
        self.assertEqual(allowance.last_reset_on, date(2026, 1, 1))
        self.assertEqual(allowance.next_reset_on, date(2027, 1, 1))

    def test_missing_schedule_is_filled_in(self):
        allowance = SessionAllowance(free_sessions_total=500, free_sessions_used=3)
        self.assertEqual(refresh_allowance_if_needed(allowance, date(2026, 6, 1)), 0)
        self.assertEqual(allowance.next_reset_on, date(2027, 1, 1))
        self.assertEqual(allowance.free_sessions_used, 3)


class PatientAllowanceTest(TestCase):
    """Test allowance creation when patients are saved"""

    def test_dyes_patient_gets_annual_pool(self):
        patient = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        allowance = SessionAllowance.objects.get(patient=patient)
        self.assertEqual(allowance.free_sessions_total, 500)
        self.assertEqual(allowance.free_sessions_used, 0)

    def test_other_patients_get_empty_allowance(self):
        patient = Patient.objects.create(first_name='Ravi', classification=PatientClassification.PAID)
        self.assertEqual(patient.session_allowance.free_sessions_total, 0)

    def test_configured_cap(self):
        SystemSetting.set_setting('dyes_annual_session_cap', 12)
        patient = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        self.assertEqual(patient.session_allowance.free_sessions_total, 12)

    def test_reclassified_patient_gets_pool(self):
        patient = Patient.objects.create(first_name='Ravi', classification=PatientClassification.PAID)
        patient.classification = PatientClassification.DYES
        patient.save()

        allowance = SessionAllowance.objects.get(patient=patient)
        self.assertEqual(allowance.free_sessions_total, 500)
        self.assertEqual(SessionAllowance.objects.filter(patient=patient).count(), 1)

    def test_clean_rejects_overuse(self):
        allowance = SessionAllowance(free_sessions_total=1, free_sessions_used=2)
        with self.assertRaises(ValidationError):
            allowance.clean()

    def test_full_name(self):
        patient = Patient(first_name='Meera', last_name='Iyer')
        self.assertEqual(patient.full_name, 'Meera Iyer')
        self.assertEqual(Patient(first_name='Meera').full_name, 'Meera')


class RefreshSessionAllowancesTest(TestCase):
    """Test the DYES allowance sweep and its management command"""

    def setUp(self):
        self.patient = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        allowance = self.patient.session_allowance
        allowance.free_sessions_used = 40
        allowance.next_reset_on = date(2026, 1, 1)
        allowance.save()

        Patient.objects.create(first_name='Ravi', classification=PatientClassification.VIP)

    def test_due_reset_is_applied(self):
        summary = refresh_session_allowances(date(2026, 1, 2))

        self.assertEqual(summary['dyes_patients'], 1)
        self.assertEqual(summary['resets_applied'], 1)
        self.assertEqual(summary['records_updated'], 1)
        self.assertEqual(summary['initialized'], 0)

        allowance = SessionAllowance.objects.get(patient=self.patient)
        self.assertEqual(allowance.free_sessions_used, 0)
        self.assertEqual(allowance.next_reset_on, date(2027, 1, 1))

    def test_nothing_due(self):
        summary = refresh_session_allowances(date(2025, 12, 31))
        self.assertEqual(summary['resets_applied'], 0)
        self.assertEqual(summary['records_updated'], 0)
        self.assertEqual(SessionAllowance.objects.get(patient=self.patient).free_sessions_used, 40)

    def test_missing_allowance_is_initialized(self):
        SessionAllowance.objects.filter(patient=self.patient).delete()

        summary = refresh_session_allowances(date(2026, 1, 2))

        self.assertEqual(summary['initialized'], 1)
        self.assertEqual(summary['records_updated'], 1)
        allowance = SessionAllowance.objects.get(patient=self.patient)
        self.assertEqual(allowance.free_sessions_total, 500)
        self.assertEqual(allowance.next_reset_on, date(2027, 1, 1))

    def test_command(self):
        out = StringIO()
        call_command('refresh_session_allowances', '--date', '2026-01-02', stdout=out)

        self.assertIn('Resets applied: 1', out.getvalue())
        self.assertEqual(SessionAllowance.objects.get(patient=self.patient).free_sessions_used, 0)
