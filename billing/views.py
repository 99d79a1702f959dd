# billing/views.py
import logging

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from core.utils import get_clinic_today
from .cycles import get_cycle_window, summarize_cycle
from .models import BillingCycle
from .utils import get_cycle_appointments

logger = logging.getLogger(__name__)


def _serialize_cycle(cycle):
    if cycle is None:
        return None
    return {
        'cycle_id': cycle.cycle_id,
        'year': cycle.year,
        'month': cycle.month,
        'start_date': cycle.start_date.isoformat(),
        'end_date': cycle.end_date.isoformat(),
        'status': cycle.status,
        'closed_at': cycle.closed_at.isoformat() if cycle.closed_at else None,
    }


@login_required
@require_http_methods(["GET"])
def cycle_summary_api(request):
    """
    BACKEND API: Pending and collected totals for a billing cycle
    Query params: cycle_id (YYYY-MM, optional; defaults to the current month)
    """
    cycle_id = request.GET.get('cycle_id')

    if cycle_id:
        try:
            cycle = BillingCycle.objects.get(cycle_id=cycle_id)
        except BillingCycle.DoesNotExist:
            return JsonResponse({'error': f'Billing cycle {cycle_id} not found'}, status=404)
        window = {'start_date': cycle.start_date, 'end_date': cycle.end_date}
        cycle_data = _serialize_cycle(cycle)
    else:
        window = get_cycle_window(get_clinic_today())
        cycle = BillingCycle.objects.filter(cycle_id=window['cycle_id']).first()
        cycle_data = _serialize_cycle(cycle) or {
            'cycle_id': window['cycle_id'],
            'year': window['year'],
            'month': window['month'],
            'start_date': window['start_date'].isoformat(),
            'end_date': window['end_date'].isoformat(),
            'status': None,
            'closed_at': None,
        }

    appointments = get_cycle_appointments(window['start_date'], window['end_date'])
    summary = summarize_cycle(window, appointments)

    return JsonResponse({
        'cycle': cycle_data,
        'pending_count': summary['pending_count'],
        'completed_count': summary['completed_count'],
        'collected_amount': summary['collected_amount'],
        'by_clinician': summary['by_clinician'],
    })


@login_required
@require_POST
def reset_cycle_api(request):
    """
    BACKEND API: Close the active billing cycle and open the next one
    Users: Admin only
    """
    if not request.user.is_clinic_admin:
        return JsonResponse({'error': 'Only administrators can reset the billing cycle'}, status=403)

    result = BillingCycle.reset(get_clinic_today())
    logger.info(f"Billing cycle reset by {request.user.username}")

    return JsonResponse({
        'success': True,
        'closed': _serialize_cycle(result['closed']),
        'activated': _serialize_cycle(result['activated']),
    })
