# core/urls.py
from django.urls import path
from .health_check import health_check

app_name = 'core'

urlpatterns = [
    path('health/', health_check, name='health_check'),
]
