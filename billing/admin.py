# billing/admin.py
from django.contrib import admin
from .models import BillingCycle


@admin.register(BillingCycle)
class BillingCycleAdmin(admin.ModelAdmin):
    list_display = ['cycle_id', 'start_date', 'end_date', 'status', 'closed_at']
    list_filter = ['status', 'year']
    search_fields = ['cycle_id']
    readonly_fields = ['created_at', 'closed_at']
