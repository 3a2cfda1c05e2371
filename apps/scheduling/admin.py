from django.contrib import admin
from .models import BarberConstraints, SchedulingSlotTemplate


@admin.register(BarberConstraints)
class BarberConstraintsAdmin(admin.ModelAdmin):
    list_display = [
        'barber', 'min_interval_minutes', 'max_bookings_per_day',
        'advance_booking_days', 'same_day_booking_enabled',
    ]
    list_filter = ['same_day_booking_enabled']
    search_fields = ['barber__business_name']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(SchedulingSlotTemplate)
class SchedulingSlotTemplateAdmin(admin.ModelAdmin):
    list_display = [
        'barber', 'day_of_week', 'start_time', 'end_time', 'slot_duration_minutes',
        'buffer_before_minutes', 'buffer_after_minutes', 'max_bookings_per_slot', 'is_active',
    ]
    list_filter = ['day_of_week', 'is_active']
    search_fields = ['barber__business_name']
    readonly_fields = ['id', 'created_at', 'updated_at']
