# appointments/utils.py - Slot generation, conflict detection and appointment transitions
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from core.utils import (
    format_wall_clock,
    get_clinic_now,
    minutes_since_midnight,
    parse_calendar_date,
    parse_wall_clock,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
NO_SCHEDULE_MESSAGE = 'Clinician has not set a schedule for this date.'


class AppointmentConfig:
    """Helper class for appointment-related configuration"""

    @classmethod
    def get_conflict_tolerance_minutes(cls):
        """Minimum gap between two appointments of the same clinician"""
        from core.models import SystemSetting
        return SystemSetting.get_int_setting(
            'conflict_tolerance_minutes',
            getattr(settings, 'CONFLICT_TOLERANCE_MINUTES', 30)
        )

    @classmethod
    def get_slot_duration_minutes(cls):
        return getattr(settings, 'SLOT_DURATION_MINUTES', 30)


class AppointmentConflictError(ValidationError):
    """Booking refused because the clinician already has a nearby appointment"""

    def __init__(self, conflicts, message=None):
        self.conflicts = list(conflicts)
        if message is None:
            times = ', '.join(appt.time_display for appt in self.conflicts)
            message = f"Clinician already has an appointment close to this time ({times})."
        super().__init__(message, code='conflict')


def _read_schedule(schedule):
    """Return (is_enabled, ranges) for a DaySchedule or an equivalent dict"""
    if schedule is None:
        return False, []
    if isinstance(schedule, dict):
        enabled = schedule.get('is_enabled', schedule.get('enabled', False))
        ranges = schedule.get('time_ranges', schedule.get('slots', []))
    else:
        enabled = schedule.is_enabled
        ranges = schedule.time_ranges
    if not isinstance(ranges, list):
        return bool(enabled), []
    return bool(enabled), ranges


def _range_bounds(time_range):
    """
    Minute offsets (start, end) for a stored range.
    An end earlier than the start is moved to the next day.

    Raises:
        ValueError: If the range is malformed
    """
    if not isinstance(time_range, dict):
        raise ValueError(f"Range {time_range!r} is not a start/end pair")
    start = minutes_since_midnight(time_range.get('start'))
    end = minutes_since_midnight(time_range.get('end'))
    if end < start:
        end += MINUTES_PER_DAY
    return start, end


def _lookup_schedule(availability, target_date):
    if not availability:
        return None
    schedule = availability.get(target_date)
    if schedule is None:
        schedule = availability.get(target_date.isoformat())
    return schedule


def generate_available_slots(availability, booked_times, target_date, now, slot_minutes=30):
    """
    Bookable start times for one clinician on one date.

    Args:
        availability: dict mapping date (or "YYYY-MM-DD") to a DaySchedule
        booked_times: times already taken by non-cancelled appointments
        target_date: date to generate slots for
        now: current clinic-local datetime; past slots are dropped for today
        slot_minutes: slot length (default 30)

    Returns:
        list: Sorted, unique "HH:MM" strings

    Raises:
        ValueError: If slot_minutes is not positive
    """
    if slot_minutes <= 0:
        raise ValueError('Slot length must be a positive number of minutes')

    target_date = parse_calendar_date(target_date)
    enabled, ranges = _read_schedule(_lookup_schedule(availability, target_date))
    if not enabled or not ranges:
        return []

    booked = set()
    for booked_time in booked_times or []:
        try:
            booked.add(format_wall_clock(booked_time))
        except ValueError:
            logger.warning(f"Ignoring unreadable booked time {booked_time!r} on {target_date}")

    cutoff = None
    if now is not None and now.date() == target_date:
        cutoff = now.hour * 60 + now.minute

    slots = set()
    for time_range in ranges:
        try:
            start, end = _range_bounds(time_range)
        except ValueError as e:
            logger.warning(f"Skipping malformed schedule range on {target_date}: {e}")
            continue

        # At most one day of slots per range
        end = min(end, start + MINUTES_PER_DAY)
        minute = start
        while minute < end:
            wall_minute = minute % MINUTES_PER_DAY
            label = f"{wall_minute // 60:02d}:{wall_minute % 60:02d}"
            # Cutoff applies to the wall-clock label
            if label not in booked and (cutoff is None or wall_minute >= cutoff):
                slots.add(label)
            minute += slot_minutes

    return sorted(slots)


def check_appointment_conflict(appointments, staff, appointment_date, start_time,
                               tolerance_minutes=30, exclude_appointment_id=None):
    """
    Find appointments of the same clinician that are too close to a candidate time.

    Args:
        appointments: iterable of Appointment instances to check against
        staff: User instance or id
        appointment_date: date (or "YYYY-MM-DD") of the candidate
        start_time: time (or "HH:MM") of the candidate
        tolerance_minutes: minimum allowed gap (default 30)
        exclude_appointment_id: appointment being edited

    Returns:
        dict: {'has_conflict': bool, 'conflicts': [Appointment, ...]}

    Raises:
        ValueError: If tolerance_minutes is negative or the candidate is unreadable
    """
    if tolerance_minutes < 0:
        raise ValueError('Conflict tolerance cannot be negative')

    staff_id = getattr(staff, 'pk', staff)
    appointment_date = parse_calendar_date(appointment_date)
    candidate = minutes_since_midnight(start_time)

    conflicts = []
    for appointment in appointments:
        if appointment.status == 'cancelled':
            continue
        if exclude_appointment_id is not None and appointment.pk == exclude_appointment_id:
            continue
        if appointment.staff_id != staff_id or appointment.date != appointment_date:
            continue
        try:
            existing = minutes_since_midnight(appointment.time)
        except ValueError:
            logger.warning(f"Appointment {appointment.pk} has an unreadable time, skipped in conflict check")
            continue
        if abs(existing - candidate) < tolerance_minutes:
            conflicts.append(appointment)

    return {
        'has_conflict': bool(conflicts),
        'conflicts': conflicts,
    }


def check_schedule_fit(schedule, start_time, duration_minutes=30):
    """
    Check that an appointment lies entirely inside one of the day's working ranges.

    Returns:
        tuple: (fits: bool, reason: str)
    """
    enabled, ranges = _read_schedule(schedule)
    if schedule is None:
        return False, NO_SCHEDULE_MESSAGE
    if not enabled:
        return False, 'Clinician is not available on this date.'

    candidate = minutes_since_midnight(start_time)
    for time_range in ranges:
        try:
            start, end = _range_bounds(time_range)
        except ValueError:
            continue
        begins = candidate
        if begins < start and end > MINUTES_PER_DAY:
            # Early-morning start inside an overnight range
            begins += MINUTES_PER_DAY
        if start <= begins and begins + duration_minutes <= end:
            return True, 'Time is within working hours'

    return False, f"{format_wall_clock(start_time)} is not within working hours on this date."


def get_day_schedule_map(staff, start_date, end_date):
    """
    Availability snapshot for one clinician.

    Returns:
        dict: {date: DaySchedule} for every stored date in [start_date, end_date]
    """
    from .models import DaySchedule

    schedules = DaySchedule.objects.filter(
        staff=staff,
        date__gte=start_date,
        date__lte=end_date
    )
    return {schedule.date: schedule for schedule in schedules}


def get_booked_times(staff, target_date, exclude_appointment_id=None):
    """Times of the clinician's non-cancelled appointments on a date"""
    from .models import Appointment

    appointments = Appointment.objects.filter(
        staff=staff,
        date=target_date,
        status__in=Appointment.BLOCKING_STATUSES
    )
    if exclude_appointment_id:
        appointments = appointments.exclude(pk=exclude_appointment_id)
    return list(appointments.values_list('time', flat=True))


def get_available_slots_for_staff(staff, target_date, now=None):
    """
    Bookable slots for a stored clinician schedule.

    Returns:
        list: "HH:MM" strings
    """
    target_date = parse_calendar_date(target_date)
    availability = get_day_schedule_map(staff, target_date, target_date)
    return generate_available_slots(
        availability,
        get_booked_times(staff, target_date),
        target_date,
        now or get_clinic_now(),
        slot_minutes=AppointmentConfig.get_slot_duration_minutes(),
    )


def get_available_clinicians(target_date, start_time, duration_minutes=30):
    """
    Active clinical staff whose schedule covers the requested time.

    Returns:
        list: User instances
    """
    from users.models import User
    from .models import DaySchedule

    target_date = parse_calendar_date(target_date)
    schedules = DaySchedule.objects.filter(
        date=target_date,
        is_enabled=True,
        staff__in=User.active_clinicians()
    ).select_related('staff')

    clinicians = []
    for schedule in schedules:
        fits, _ = check_schedule_fit(schedule, start_time, duration_minutes)
        if fits:
            clinicians.append(schedule.staff)
    return clinicians


@transaction.atomic
def create_appointment(patient, staff, appointment_date, start_time, amount=None, notes='',
                       override_conflict=False):
    """
    Create appointment after checking the clinician's nearby bookings

    Args:
        patient: Patient instance
        staff: User instance
        appointment_date: date object
        start_time: time object or "HH:MM"
        amount: optional session cost override
        notes: str (optional)
        override_conflict: book even when the conflict check fails

    Returns:
        Appointment

    Raises:
        AppointmentConflictError: If another appointment is too close and
                                  override_conflict is False
    """
    from .models import Appointment

    appointment_date = parse_calendar_date(appointment_date)
    start_time = parse_wall_clock(start_time)

    # Lock the clinician's day while checking
    existing = list(
        Appointment.objects.select_for_update().filter(staff=staff, date=appointment_date)
    )
    result = check_appointment_conflict(
        existing,
        staff,
        appointment_date,
        start_time,
        tolerance_minutes=AppointmentConfig.get_conflict_tolerance_minutes()
    )

    if result['has_conflict']:
        if not override_conflict:
            raise AppointmentConflictError(result['conflicts'])
        logger.warning(
            f"Booking {appointment_date} {format_wall_clock(start_time)} for staff {staff.pk} "
            f"despite {len(result['conflicts'])} conflicting appointment(s)"
        )

    appointment = Appointment.objects.create(
        patient=patient,
        staff=staff,
        date=appointment_date,
        time=start_time,
        amount=amount,
        notes=notes,
        status='pending'
    )
    logger.info(f"Created appointment {appointment.pk} for patient {patient.pk}")
    return appointment


@transaction.atomic
def update_appointment_status(appointment_id, new_status, billing_date=None):
    """
    Change an appointment's status.

    Moving into 'completed' from any other status runs the completion side
    effects (session allowance and billing) once.

    Returns:
        dict: {'appointment', 'previous_status', 'completion'}; completion is
              None unless the appointment was just completed

    Raises:
        Appointment.DoesNotExist: If the appointment is unknown
        ValidationError: If the status is not a valid choice
    """
    from billing.utils import process_completed_appointment
    from .models import Appointment

    if new_status not in dict(Appointment.STATUS_CHOICES):
        raise ValidationError(f'Unknown status "{new_status}".')

    appointment = Appointment.objects.select_for_update().select_related('patient').get(pk=appointment_id)
    previous_status = appointment.status

    completion = None
    if previous_status != new_status:
        appointment.status = new_status
        appointment.save(update_fields=['status', 'updated_at'])
        logger.info(f"Appointment {appointment.pk}: {previous_status} -> {new_status}")

        if new_status == 'completed':
            completion = process_completed_appointment(appointment, billing_date=billing_date)

    return {
        'appointment': appointment,
        'previous_status': previous_status,
        'completion': completion,
    }
