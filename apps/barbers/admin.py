from django.contrib import admin
from .models import Barber, Availability


class AvailabilityInline(admin.TabularInline):
    model = Availability
    extra = 0


@admin.register(Barber)
class BarberAdmin(admin.ModelAdmin):
    list_display = [
        'business_name', 'user', 'stripe_account_status', 'stripe_account_ready',
        'is_developer', 'is_active',
    ]
    list_filter = ['stripe_account_status', 'stripe_account_ready', 'is_developer', 'is_active']
    search_fields = ['business_name', 'user__email', 'stripe_account_id']
    readonly_fields = ['id', 'created_at', 'updated_at']
    inlines = [AvailabilityInline]
