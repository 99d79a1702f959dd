# billing/urls.py
from django.urls import path
from . import views

app_name = 'billing'

urlpatterns = [
    path('api/cycle-summary/', views.cycle_summary_api, name='cycle_summary_api'),
    path('api/reset-cycle/', views.reset_cycle_api, name='reset_cycle_api'),
]
