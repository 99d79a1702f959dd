# appointments/tests.py
"""
Unit tests for slot generation, conflict detection, booking and status changes
"""
import copy
import json
from datetime import date, datetime, time
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from core.models import SystemSetting
from core.signals import session_balance_pending
from patients.models import Patient, PatientClassification, PaymentTerms, SessionAllowance
from users.models import User
from .models import Appointment, BillingRecord, DaySchedule
from .utils import (
    NO_SCHEDULE_MESSAGE,
    AppointmentConflictError,
    check_appointment_conflict,
    check_schedule_fit,
    create_appointment,
    generate_available_slots,
    get_available_clinicians,
    get_available_slots_for_staff,
    get_day_schedule_map,
    update_appointment_status,
)

TARGET_DATE = date(2030, 3, 11)
DAY_BEFORE = datetime(2030, 3, 10, 8, 0)


def make_schedule(ranges, enabled=True, schedule_date=TARGET_DATE):
    return DaySchedule(date=schedule_date, is_enabled=enabled, time_ranges=ranges)


class SlotGeneratorTest(SimpleTestCase):
    """Test generate_available_slots"""

    def test_thirty_minute_steps_end_exclusive(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '11:00'}])}
        slots = generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE)
        self.assertEqual(slots, ['09:00', '09:30', '10:00', '10:30'])

    def test_missing_date_has_no_slots(self):
        availability = {date(2030, 3, 12): make_schedule([{'start': '09:00', 'end': '17:00'}])}
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE), [])
        self.assertEqual(generate_available_slots({}, [], TARGET_DATE, DAY_BEFORE), [])
        self.assertEqual(generate_available_slots(None, [], TARGET_DATE, DAY_BEFORE), [])

    def test_iso_string_keys(self):
        availability = {'2030-03-11': make_schedule([{'start': '09:00', 'end': '10:00'}])}
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE), ['09:00', '09:30'])

    def test_disabled_or_empty_schedule(self):
        disabled = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '10:00'}], enabled=False)}
        empty = {TARGET_DATE: make_schedule([])}
        self.assertEqual(generate_available_slots(disabled, [], TARGET_DATE, DAY_BEFORE), [])
        self.assertEqual(generate_available_slots(empty, [], TARGET_DATE, DAY_BEFORE), [])

    def test_booked_times_are_excluded(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '11:00'}])}
        slots = generate_available_slots(availability, ['09:30', time(10, 0)], TARGET_DATE, DAY_BEFORE)
        self.assertEqual(slots, ['09:00', '10:30'])

    def test_past_slots_dropped_today(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '11:00'}])}
        now = datetime(2030, 3, 11, 9, 45)
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, now), ['10:00', '10:30'])

    def test_current_minute_slot_kept(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '11:00'}])}
        now = datetime(2030, 3, 11, 10, 0, 30)
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, now), ['10:00', '10:30'])

    def test_other_days_not_filtered_by_clock(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '10:00'}])}
        now = datetime(2030, 3, 10, 23, 0)
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, now), ['09:00', '09:30'])

    def test_overlapping_ranges_are_deduplicated(self):
        availability = {TARGET_DATE: make_schedule([
            {'start': '09:30', 'end': '10:30'},
            {'start': '09:00', 'end': '10:00'},
        ])}
        slots = generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE)
        self.assertEqual(slots, ['09:00', '09:30', '10:00'])

    def test_overnight_range_wraps(self):
        availability = {TARGET_DATE: make_schedule([{'start': '23:00', 'end': '01:00'}])}
        slots = generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE)
        self.assertEqual(slots, ['00:00', '00:30', '23:00', '23:30'])

    def test_overnight_range_today_drops_earlier_labels(self):
        availability = {TARGET_DATE: make_schedule([{'start': '22:00', 'end': '02:00'}])}
        now = datetime(2030, 3, 11, 23, 0)

        slots = generate_available_slots(availability, [], TARGET_DATE, now)

        self.assertEqual(slots, ['23:00', '23:30'])
        self.assertTrue(all(slot >= '23:00' for slot in slots))

    def test_zero_length_range(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '09:00'}])}
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE), [])

    def test_malformed_range_is_skipped(self):
        availability = {TARGET_DATE: make_schedule([
            {'start': 'nine', 'end': '10:00'},
            {'start': '09:00'},
            'garbage',
            {'start': '14:00', 'end': '15:00'},
        ])}
        with self.assertLogs('appointments.utils', level='WARNING') as logs:
            slots = generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE)

        self.assertEqual(slots, ['14:00', '14:30'])
        self.assertEqual(len(logs.output), 3)

    def test_custom_slot_length(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '10:00'}])}
        slots = generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE, slot_minutes=15)
        self.assertEqual(slots, ['09:00', '09:15', '09:30', '09:45'])

    def test_invalid_slot_length(self):
        availability = {TARGET_DATE: make_schedule([{'start': '09:00', 'end': '10:00'}])}
        with self.assertRaises(ValueError):
            generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE, slot_minutes=0)

    def test_inputs_are_not_mutated(self):
        ranges = [{'start': '09:00', 'end': '10:00'}]
        booked = ['09:00']
        availability = {TARGET_DATE: make_schedule(ranges)}
        ranges_before = copy.deepcopy(ranges)

        generate_available_slots(availability, booked, TARGET_DATE, DAY_BEFORE)

        self.assertEqual(availability[TARGET_DATE].time_ranges, ranges_before)
        self.assertEqual(booked, ['09:00'])

    def test_dict_schedule(self):
        availability = {TARGET_DATE: {'is_enabled': True, 'time_ranges': [{'start': '08:00', 'end': '09:00'}]}}
        self.assertEqual(generate_available_slots(availability, [], TARGET_DATE, DAY_BEFORE), ['08:00', '08:30'])


class ConflictDetectorTest(SimpleTestCase):
    """Test check_appointment_conflict"""

    def setUp(self):
        self.existing = Appointment(pk=1, staff_id=5, date=TARGET_DATE, time=time(10, 0), status='pending')

    def test_exactly_tolerance_apart_is_not_a_conflict(self):
        result = check_appointment_conflict([self.existing], 5, TARGET_DATE, '10:30', tolerance_minutes=30)
        self.assertFalse(result['has_conflict'])
        self.assertEqual(result['conflicts'], [])

    def test_one_minute_closer_is_a_conflict(self):
        result = check_appointment_conflict([self.existing], 5, TARGET_DATE, '10:29', tolerance_minutes=30)
        self.assertTrue(result['has_conflict'])
        self.assertEqual(result['conflicts'], [self.existing])

        result = check_appointment_conflict([self.existing], 5, TARGET_DATE, '09:31', tolerance_minutes=30)
        self.assertTrue(result['has_conflict'])

    def test_same_time_conflicts(self):
        result = check_appointment_conflict([self.existing], 5, TARGET_DATE, time(10, 0))
        self.assertTrue(result['has_conflict'])

    def test_cancelled_other_staff_and_other_date_ignored(self):
        appointments = [
            Appointment(pk=2, staff_id=5, date=TARGET_DATE, time=time(10, 0), status='cancelled'),
            Appointment(pk=3, staff_id=6, date=TARGET_DATE, time=time(10, 0), status='pending'),
            Appointment(pk=4, staff_id=5, date=date(2030, 3, 12), time=time(10, 0), status='pending'),
        ]
        result = check_appointment_conflict(appointments, 5, TARGET_DATE, '10:00')
        self.assertFalse(result['has_conflict'])

    def test_edited_appointment_is_excluded(self):
        result = check_appointment_conflict([self.existing], 5, TARGET_DATE, '10:15', exclude_appointment_id=1)
        self.assertFalse(result['has_conflict'])

    def test_completed_and_ongoing_still_block(self):
        appointments = [
            Appointment(pk=2, staff_id=5, date=TARGET_DATE, time=time(11, 0), status='completed'),
            Appointment(pk=3, staff_id=5, date=TARGET_DATE, time=time(12, 0), status='ongoing'),
        ]
        self.assertTrue(check_appointment_conflict(appointments, 5, TARGET_DATE, '11:10')['has_conflict'])
        self.assertTrue(check_appointment_conflict(appointments, 5, TARGET_DATE, '12:10')['has_conflict'])

    def test_zero_tolerance_never_conflicts(self):
        result = check_appointment_conflict([self.existing], 5, TARGET_DATE, '10:00', tolerance_minutes=0)
        self.assertFalse(result['has_conflict'])

    def test_negative_tolerance_rejected(self):
        with self.assertRaises(ValueError):
            check_appointment_conflict([self.existing], 5, TARGET_DATE, '10:00', tolerance_minutes=-1)


class ScheduleFitTest(SimpleTestCase):
    """Test check_schedule_fit"""

    def test_inside_range(self):
        schedule = make_schedule([{'start': '09:00', 'end': '12:00'}])
        fits, _ = check_schedule_fit(schedule, '11:30', 30)
        self.assertTrue(fits)

    def test_running_past_range_end(self):
        schedule = make_schedule([{'start': '09:00', 'end': '12:00'}])
        fits, reason = check_schedule_fit(schedule, '11:45', 30)
        self.assertFalse(fits)
        self.assertIn('11:45', reason)

    def test_second_range(self):
        schedule = make_schedule([{'start': '09:00', 'end': '12:00'}, {'start': '14:00', 'end': '17:00'}])
        self.assertTrue(check_schedule_fit(schedule, '14:00')[0])
        self.assertFalse(check_schedule_fit(schedule, '13:00')[0])

    def test_no_schedule_or_disabled(self):
        self.assertEqual(check_schedule_fit(None, '10:00'), (False, NO_SCHEDULE_MESSAGE))
        disabled = make_schedule([{'start': '09:00', 'end': '12:00'}], enabled=False)
        self.assertFalse(check_schedule_fit(disabled, '10:00')[0])

    def test_overnight_range(self):
        schedule = make_schedule([{'start': '22:00', 'end': '02:00'}])
        self.assertTrue(check_schedule_fit(schedule, '23:00')[0])
        self.assertTrue(check_schedule_fit(schedule, '01:00')[0])
        self.assertFalse(check_schedule_fit(schedule, '02:00')[0])


class DayScheduleModelTest(SimpleTestCase):
    """Test DaySchedule validation"""

    def test_clean_normalizes_times(self):
        schedule = make_schedule([{'start': '9:00', 'end': '17:30:00'}])
        schedule.clean()
        self.assertEqual(schedule.time_ranges, [{'start': '09:00', 'end': '17:30'}])

    def test_clean_rejects_bad_ranges(self):
        for ranges in ([{'start': '25:00', 'end': '10:00'}], [{'start': '09:00'}], ['09:00-10:00'], '09:00'):
            with self.subTest(ranges=ranges):
                with self.assertRaises(ValidationError):
                    make_schedule(ranges).clean()


class AppointmentTestMixin:
    """Shared staff, patients and schedules"""

    def setUp(self):
        self.clinician = User.objects.create_user(
            username='arao', password='testpass123', first_name='Asha', last_name='Rao', role=User.CLINICAL
        )
        self.patient = Patient.objects.create(
            first_name='Ravi',
            last_name='Kumar',
            classification=PatientClassification.PAID,
            payment_terms=PaymentTerms.WITH_CONCESSION
        )
        self.schedule = DaySchedule.objects.create(
            staff=self.clinician,
            date=TARGET_DATE,
            time_ranges=[{'start': '09:00', 'end': '11:00'}]
        )

    def book(self, at, status='pending', patient=None, amount=None):
        return Appointment.objects.create(
            patient=patient or self.patient,
            staff=self.clinician,
            date=TARGET_DATE,
            time=at,
            status=status,
            amount=amount
        )


class StoredAvailabilityTest(AppointmentTestMixin, TestCase):
    """Test slot lookups backed by the database"""

    def test_booked_non_cancelled_times_excluded(self):
        self.book(time(9, 30))
        self.book(time(10, 0), status='cancelled')

        slots = get_available_slots_for_staff(self.clinician, TARGET_DATE, now=DAY_BEFORE)

        self.assertEqual(slots, ['09:00', '10:00', '10:30'])

    def test_other_clinicians_bookings_ignored(self):
        other = User.objects.create_user(username='other', password='testpass123', role=User.CLINICAL)
        Appointment.objects.create(patient=self.patient, staff=other, date=TARGET_DATE, time=time(9, 0))

        slots = get_available_slots_for_staff(self.clinician, TARGET_DATE, now=DAY_BEFORE)
        self.assertIn('09:00', slots)

    def test_day_schedule_map(self):
        DaySchedule.objects.create(staff=self.clinician, date=date(2030, 3, 20), time_ranges=[])
        schedules = get_day_schedule_map(self.clinician, date(2030, 3, 1), date(2030, 3, 15))
        self.assertEqual(list(schedules), [TARGET_DATE])

    def test_available_clinicians(self):
        late = User.objects.create_user(username='late', password='testpass123', role=User.CLINICAL)
        DaySchedule.objects.create(staff=late, date=TARGET_DATE, time_ranges=[{'start': '14:00', 'end': '18:00'}])
        desk = User.objects.create_user(username='desk', password='testpass123', role=User.FRONTDESK)
        DaySchedule.objects.create(staff=desk, date=TARGET_DATE, time_ranges=[{'start': '09:00', 'end': '11:00'}])
        away = User.objects.create_user(username='away', password='testpass123', role=User.CLINICAL, is_active=False)
        DaySchedule.objects.create(staff=away, date=TARGET_DATE, time_ranges=[{'start': '09:00', 'end': '11:00'}])

        self.assertEqual(get_available_clinicians(TARGET_DATE, '10:00'), [self.clinician])
        self.assertEqual(get_available_clinicians(TARGET_DATE, '15:00'), [late])
        self.assertEqual(get_available_clinicians(date(2030, 3, 12), '10:00'), [])


class CreateAppointmentTest(AppointmentTestMixin, TestCase):
    """Test create_appointment"""

    def test_creates_pending_appointment(self):
        appointment = create_appointment(self.patient, self.clinician, TARGET_DATE, '09:00', notes='First visit')
        self.assertEqual(appointment.status, 'pending')
        self.assertEqual(appointment.time, time(9, 0))
        self.assertEqual(appointment.notes, 'First visit')

    def test_conflict_is_refused(self):
        existing = self.book(time(10, 0))

        with self.assertRaises(AppointmentConflictError) as ctx:
            create_appointment(self.patient, self.clinician, TARGET_DATE, '10:15')

        self.assertEqual(ctx.exception.conflicts, [existing])
        self.assertIsInstance(ctx.exception, ValidationError)
        self.assertEqual(Appointment.objects.count(), 1)

    def test_override_books_anyway(self):
        self.book(time(10, 0))
        with self.assertLogs('appointments.utils', level='WARNING'):
            create_appointment(self.patient, self.clinician, TARGET_DATE, '10:15', override_conflict=True)
        self.assertEqual(Appointment.objects.count(), 2)

    def test_configured_tolerance(self):
        SystemSetting.set_setting('conflict_tolerance_minutes', 10)
        self.book(time(10, 0))
        create_appointment(self.patient, self.clinician, TARGET_DATE, '10:15')
        self.assertEqual(Appointment.objects.count(), 2)

    def test_cancelled_appointment_frees_time(self):
        self.book(time(10, 0), status='cancelled')
        create_appointment(self.patient, self.clinician, TARGET_DATE, '10:00')
        self.assertEqual(Appointment.objects.filter(status='pending').count(), 1)


class UpdateAppointmentStatusTest(AppointmentTestMixin, TestCase):
    """Test status transitions and completion side effects"""

    def test_completion_bills_once(self):
        appointment = self.book(time(9, 0))

        result = update_appointment_status(appointment.pk, 'completed', billing_date=date(2030, 3, 11))

        self.assertEqual(result['previous_status'], 'pending')
        record = BillingRecord.objects.get(appointment=appointment)
        self.assertEqual(record.amount, Decimal('960.00'))
        self.assertEqual(record.billing_date, date(2030, 3, 11))
        self.assertEqual(result['completion']['billing_record'], record)

        # Same status again: no side effects
        result = update_appointment_status(appointment.pk, 'completed')
        self.assertIsNone(result['completion'])
        self.assertEqual(BillingRecord.objects.count(), 1)

    def test_recompletion_does_not_bill_twice(self):
        appointment = self.book(time(9, 0))
        update_appointment_status(appointment.pk, 'completed')
        update_appointment_status(appointment.pk, 'ongoing')
        update_appointment_status(appointment.pk, 'completed')
        self.assertEqual(BillingRecord.objects.filter(appointment=appointment).count(), 1)

    def test_interleaved_recompletion_counts_each_session_once(self):
        dyes_patient = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        first = self.book(time(9, 0), patient=dyes_patient)
        second = self.book(time(10, 0), patient=dyes_patient)

        update_appointment_status(first.pk, 'completed')
        update_appointment_status(second.pk, 'completed')
        update_appointment_status(first.pk, 'ongoing')
        result = update_appointment_status(first.pk, 'completed')

        allowance = SessionAllowance.objects.get(patient=dyes_patient)
        self.assertEqual(allowance.free_sessions_used, 2)
        self.assertEqual(allowance.pending_paid_sessions, 0)
        self.assertFalse(result['completion']['session_usage']['recorded'])
        first.refresh_from_db()
        self.assertIsNotNone(first.session_recorded_at)
        self.assertEqual(BillingRecord.objects.count(), 0)

    def test_interleaved_recompletion_keeps_pending_charge(self):
        dyes_patient = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        allowance = dyes_patient.session_allowance
        allowance.free_sessions_total = 1
        allowance.save()
        first = self.book(time(9, 0), patient=dyes_patient)
        second = self.book(time(10, 0), patient=dyes_patient)

        update_appointment_status(first.pk, 'completed')
        update_appointment_status(second.pk, 'completed')
        update_appointment_status(first.pk, 'cancelled')
        update_appointment_status(first.pk, 'completed')

        allowance = SessionAllowance.objects.get(patient=dyes_patient)
        self.assertEqual(allowance.free_sessions_used, 1)
        self.assertEqual(allowance.pending_paid_sessions, 1)
        self.assertEqual(allowance.pending_charge_amount, Decimal('1200.00'))

    def test_appointment_amount_is_the_rate(self):
        appointment = self.book(time(9, 0), amount=Decimal('1000.00'))
        update_appointment_status(appointment.pk, 'completed')
        self.assertEqual(appointment.billing_record.amount, Decimal('800.00'))

    def test_other_transitions_have_no_side_effects(self):
        appointment = self.book(time(9, 0))
        result = update_appointment_status(appointment.pk, 'ongoing')
        self.assertIsNone(result['completion'])
        update_appointment_status(appointment.pk, 'cancelled')
        self.assertEqual(BillingRecord.objects.count(), 0)

    def test_unknown_status(self):
        appointment = self.book(time(9, 0))
        with self.assertRaises(ValidationError):
            update_appointment_status(appointment.pk, 'confirmed')
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, 'pending')

    def test_unknown_appointment(self):
        with self.assertRaises(Appointment.DoesNotExist):
            update_appointment_status(9999, 'completed')

    def test_dyes_patient_uses_free_sessions_first(self):
        dyes_patient = Patient.objects.create(first_name='Meera', classification=PatientClassification.DYES)
        allowance = dyes_patient.session_allowance
        allowance.free_sessions_total = 1
        allowance.save()

        pending_events = []

        def capture(sender, **kwargs):
            pending_events.append(kwargs)

        session_balance_pending.connect(capture, dispatch_uid='test_capture_pending')
        self.addCleanup(session_balance_pending.disconnect, dispatch_uid='test_capture_pending')

        first = self.book(time(9, 0), patient=dyes_patient)
        result = update_appointment_status(first.pk, 'completed')

        self.assertTrue(result['completion']['session_usage']['was_free'])
        self.assertIsNone(result['completion']['billing_record'])
        self.assertEqual(pending_events, [])

        second = self.book(time(10, 0), patient=dyes_patient)
        result = update_appointment_status(second.pk, 'completed')

        allowance = SessionAllowance.objects.get(patient=dyes_patient)
        self.assertFalse(result['completion']['session_usage']['was_free'])
        self.assertEqual(allowance.free_sessions_used, 1)
        self.assertEqual(allowance.pending_paid_sessions, 1)
        self.assertEqual(allowance.pending_charge_amount, Decimal('1200.00'))
        self.assertEqual(allowance.last_appointment_id, second.pk)
        self.assertEqual(len(pending_events), 1)
        self.assertEqual(pending_events[0]['appointment'], second)
        # Below the DYES billing threshold
        self.assertEqual(BillingRecord.objects.count(), 0)


class AppointmentApiTest(AppointmentTestMixin, TestCase):
    """Test the booking JSON endpoints"""

    def setUp(self):
        super().setUp()
        self.client.force_login(self.clinician)

    def test_login_required(self):
        self.client.logout()
        response = self.client.get(reverse('appointments:available_slots_api'))
        self.assertEqual(response.status_code, 302)

    def test_slots(self):
        self.book(time(9, 30))
        response = self.client.get(
            reverse('appointments:available_slots_api'),
            {'staff_id': self.clinician.pk, 'date': '2030-03-11'}
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['has_schedule'])
        self.assertEqual(data['slots'], ['09:00', '10:00', '10:30'])

    def test_slots_without_schedule(self):
        response = self.client.get(
            reverse('appointments:available_slots_api'),
            {'staff_id': self.clinician.pk, 'date': '2030-03-12'}
        )

        data = response.json()
        self.assertFalse(data['has_schedule'])
        self.assertEqual(data['slots'], [])
        self.assertEqual(data['message'], NO_SCHEDULE_MESSAGE)

    def test_slots_bad_input(self):
        url = reverse('appointments:available_slots_api')
        self.assertEqual(self.client.get(url).status_code, 400)
        self.assertEqual(self.client.get(url, {'staff_id': self.clinician.pk, 'date': '11/03/2030'}).status_code, 400)
        self.assertEqual(self.client.get(url, {'staff_id': 9999, 'date': '2030-03-11'}).status_code, 404)

    def test_check_conflict(self):
        existing = self.book(time(10, 0))
        url = reverse('appointments:check_conflict_api')

        response = self.client.post(
            url,
            data=json.dumps({'staff_id': self.clinician.pk, 'date': '2030-03-11', 'time': '10:15'}),
            content_type='application/json'
        )
        data = response.json()
        self.assertTrue(data['has_conflict'])
        self.assertEqual(data['conflicts'][0]['id'], existing.pk)
        self.assertEqual(data['conflicts'][0]['time'], '10:00')
        self.assertTrue(data['within_schedule'])

        response = self.client.post(
            url,
            data=json.dumps({
                'staff_id': self.clinician.pk, 'date': '2030-03-11', 'time': '10:15',
                'appointment_id': existing.pk,
            }),
            content_type='application/json'
        )
        self.assertFalse(response.json()['has_conflict'])

    def test_check_conflict_form_data_and_tolerance(self):
        self.book(time(10, 0))
        response = self.client.post(reverse('appointments:check_conflict_api'), {
            'staff_id': self.clinician.pk, 'date': '2030-03-11', 'time': '10:15', 'tolerance_minutes': '15',
        })
        self.assertFalse(response.json()['has_conflict'])

    def test_check_conflict_outside_schedule(self):
        response = self.client.post(
            reverse('appointments:check_conflict_api'),
            data=json.dumps({'staff_id': self.clinician.pk, 'date': '2030-03-11', 'time': '16:00'}),
            content_type='application/json'
        )
        data = response.json()
        self.assertFalse(data['has_conflict'])
        self.assertFalse(data['within_schedule'])

    def test_check_conflict_bad_input(self):
        url = reverse('appointments:check_conflict_api')
        response = self.client.post(url, data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)
        response = self.client.post(url, {'staff_id': self.clinician.pk, 'date': '2030-03-11'})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(url, {
            'staff_id': self.clinician.pk, 'date': '2030-03-11', 'time': '10:00', 'tolerance_minutes': '-5',
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get(url).status_code, 405)

    def test_clinicians(self):
        response = self.client.get(
            reverse('appointments:available_clinicians_api'),
            {'date': '2030-03-11', 'time': '10:00'}
        )
        self.assertEqual(response.json()['clinicians'], [{'id': self.clinician.pk, 'name': 'Asha Rao'}])

    def test_update_status(self):
        appointment = self.book(time(9, 0))
        response = self.client.post(
            reverse('appointments:update_status', kwargs={'pk': appointment.pk}),
            data=json.dumps({'status': 'completed', 'billing_date': '2030-03-31'}),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'completed')
        self.assertEqual(data['previous_status'], 'pending')
        self.assertEqual(data['billing_record']['amount'], '960.00')
        self.assertEqual(data['billing_record']['billing_date'], '2030-03-31')

    def test_update_status_errors(self):
        appointment = self.book(time(9, 0))
        url = reverse('appointments:update_status', kwargs={'pk': appointment.pk})

        self.assertEqual(self.client.post(url, {'status': 'confirmed'}).status_code, 400)
        self.assertEqual(self.client.post(url, {}).status_code, 400)
        self.assertEqual(self.client.post(url, {'status': 'completed', 'billing_date': 'soon'}).status_code, 400)
        missing = reverse('appointments:update_status', kwargs={'pk': 9999})
        self.assertEqual(self.client.post(missing, {'status': 'completed'}).status_code, 404)
