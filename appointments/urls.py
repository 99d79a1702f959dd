# appointments/urls.py
from django.urls import path
from . import views

app_name = 'appointments'

urlpatterns = [
    # Booking helpers (BACKEND - for staff/admin)
    path('api/slots/', views.available_slots_api, name='available_slots_api'),
    path('api/check-conflict/', views.check_conflict_api, name='check_conflict_api'),
    path('api/clinicians/', views.available_clinicians_api, name='available_clinicians_api'),

    # Status transitions
    path('<int:pk>/update-status/', views.update_status_api, name='update_status'),
]
