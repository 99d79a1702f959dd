# appointments/views.py - JSON endpoints for booking and status changes
import json
import logging

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from core.utils import format_wall_clock, get_clinic_now, parse_calendar_date, parse_wall_clock
from users.models import User
from .models import Appointment, DaySchedule
from .utils import (
    NO_SCHEDULE_MESSAGE,
    AppointmentConfig,
    check_appointment_conflict,
    check_schedule_fit,
    get_available_clinicians,
    get_available_slots_for_staff,
    update_appointment_status,
)

logger = logging.getLogger(__name__)


def _get_payload(request):
    """Request body as a dict, from JSON or form data"""
    if request.content_type == 'application/json':
        try:
            payload = json.loads(request.body or b'{}')
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValueError('Request body is not valid JSON')
        if not isinstance(payload, dict):
            raise ValueError('Request body must be a JSON object')
        return payload
    return request.POST.dict()


def _serialize_conflict(appointment):
    return {
        'id': appointment.pk,
        'patient': str(appointment.patient) if appointment.patient_id else '',
        'date': appointment.date.isoformat(),
        'time': appointment.time_display,
        'status': appointment.status,
    }


@login_required
@require_http_methods(["GET"])
def available_slots_api(request):
    """
    BACKEND API: Bookable slots for one clinician on one date
    Query params: staff_id, date
    Returns: JSON with slots ("HH:MM") and whether a schedule exists
    """
    staff_id = request.GET.get('staff_id')
    date_str = request.GET.get('date')

    if not staff_id or not date_str:
        return JsonResponse({'error': 'staff_id and date are required'}, status=400)

    try:
        target_date = parse_calendar_date(date_str)
    except ValueError:
        return JsonResponse({'error': 'Invalid date format. Use YYYY-MM-DD'}, status=400)

    staff = get_object_or_404(User, pk=staff_id, is_active=True)

    schedule = DaySchedule.objects.filter(staff=staff, date=target_date).first()
    has_schedule = bool(schedule and schedule.is_enabled)
    slots = get_available_slots_for_staff(staff, target_date, now=get_clinic_now())

    if not has_schedule:
        message = NO_SCHEDULE_MESSAGE
    elif not slots:
        message = 'No slots left on this date.'
    else:
        message = ''

    return JsonResponse({
        'staff_id': staff.pk,
        'date': target_date.isoformat(),
        'has_schedule': has_schedule,
        'slots': slots,
        'message': message,
    })


@login_required
@require_POST
def check_conflict_api(request):
    """
    BACKEND API: Check a candidate booking against the clinician's appointments
    Body: staff_id, date, time, appointment_id (optional), tolerance_minutes (optional)
    Returns: JSON with has_conflict, conflicts and the schedule check
    """
    try:
        payload = _get_payload(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    staff_id = payload.get('staff_id')
    if not staff_id or not payload.get('date') or not payload.get('time'):
        return JsonResponse({'error': 'staff_id, date and time are required'}, status=400)

    try:
        appointment_date = parse_calendar_date(payload['date'])
        start_time = parse_wall_clock(payload['time'])
    except ValueError:
        return JsonResponse({'error': 'Invalid date or time. Use YYYY-MM-DD and HH:MM'}, status=400)

    try:
        exclude_id = int(payload['appointment_id']) if payload.get('appointment_id') else None
        if payload.get('tolerance_minutes') not in (None, ''):
            tolerance = int(payload['tolerance_minutes'])
        else:
            tolerance = AppointmentConfig.get_conflict_tolerance_minutes()
    except (TypeError, ValueError):
        return JsonResponse({'error': 'appointment_id and tolerance_minutes must be integers'}, status=400)

    if tolerance < 0:
        return JsonResponse({'error': 'tolerance_minutes cannot be negative'}, status=400)

    staff = get_object_or_404(User, pk=staff_id)

    appointments = Appointment.objects.filter(
        staff=staff,
        date=appointment_date
    ).select_related('patient')
    result = check_appointment_conflict(
        appointments,
        staff,
        appointment_date,
        start_time,
        tolerance_minutes=tolerance,
        exclude_appointment_id=exclude_id
    )

    schedule = DaySchedule.objects.filter(staff=staff, date=appointment_date).first()
    within_schedule, schedule_message = check_schedule_fit(
        schedule, start_time, AppointmentConfig.get_slot_duration_minutes()
    )

    if result['has_conflict']:
        message = (
            f"{staff.display_name} already has {len(result['conflicts'])} appointment(s) within "
            f"{tolerance} minutes of {format_wall_clock(start_time)}. Book anyway?"
        )
    else:
        message = 'No conflicts found'

    return JsonResponse({
        'has_conflict': result['has_conflict'],
        'conflicts': [_serialize_conflict(appt) for appt in result['conflicts']],
        'message': message,
        'within_schedule': within_schedule,
        'schedule_message': schedule_message,
    })


@login_required
@require_http_methods(["GET"])
def available_clinicians_api(request):
    """
    BACKEND API: Clinicians whose schedule covers a date and time
    Query params: date, time
    """
    date_str = request.GET.get('date')
    time_str = request.GET.get('time')

    if not date_str or not time_str:
        return JsonResponse({'error': 'date and time are required'}, status=400)

    try:
        target_date = parse_calendar_date(date_str)
        start_time = parse_wall_clock(time_str)
    except ValueError:
        return JsonResponse({'error': 'Invalid date or time. Use YYYY-MM-DD and HH:MM'}, status=400)

    clinicians = get_available_clinicians(
        target_date, start_time, AppointmentConfig.get_slot_duration_minutes()
    )

    return JsonResponse({
        'date': target_date.isoformat(),
        'time': format_wall_clock(start_time),
        'clinicians': [
            {'id': clinician.pk, 'name': clinician.display_name}
            for clinician in clinicians
        ],
    })


@login_required
@require_POST
def update_status_api(request, pk):
    """
    BACKEND API: Change an appointment's status
    Body: status, billing_date (optional, YYYY-MM-DD)
    Completing an appointment applies the session allowance and billing rules.
    """
    appointment = get_object_or_404(Appointment, pk=pk)

    try:
        payload = _get_payload(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    new_status = payload.get('status')
    if not new_status:
        return JsonResponse({'error': 'status is required'}, status=400)

    billing_date = None
    if payload.get('billing_date'):
        try:
            billing_date = parse_calendar_date(payload['billing_date'])
        except ValueError:
            return JsonResponse({'error': 'Invalid billing_date. Use YYYY-MM-DD'}, status=400)

    try:
        result = update_appointment_status(appointment.pk, new_status, billing_date=billing_date)
    except ValidationError as e:
        return JsonResponse({'error': ' '.join(e.messages)}, status=400)

    appointment = result['appointment']
    response = {
        'success': True,
        'id': appointment.pk,
        'status': appointment.status,
        'previous_status': result['previous_status'],
        'billing_record': None,
        'session_usage': None,
    }

    completion = result['completion']
    if completion:
        record = completion['billing_record']
        if record is not None:
            response['billing_record'] = {
                'id': record.pk,
                'amount': record.amount,
                'billing_date': record.billing_date.isoformat(),
            }
        usage = completion['session_usage']
        if usage is not None:
            allowance = usage['allowance']
            response['session_usage'] = {
                'was_free': usage['was_free'],
                'remaining_free_sessions': usage['remaining_free_sessions'],
                'pending_paid_sessions': allowance.pending_paid_sessions,
                'pending_charge_amount': allowance.pending_charge_amount,
            }

    return JsonResponse(response)
