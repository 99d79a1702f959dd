# core/health_check.py
import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .utils import get_clinic_now

logger = logging.getLogger(__name__)


@require_http_methods(["GET", "HEAD"])
def health_check(request):
    """
    Uptime probe. 200 when the database answers, 500 otherwise.
    Also reports the clinic-local clock the booking engine works with.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except DatabaseError as e:
        logger.error(f"Health check failed, database unavailable: {e}")
        return JsonResponse({'status': 'error', 'database': 'unavailable'}, status=500)

    return JsonResponse({
        'status': 'ok',
        'database': 'ok',
        'clinic_time': get_clinic_now().strftime('%Y-%m-%d %H:%M'),
    })
