from django.contrib import admin, messages

from apps.core.exceptions import MarketplaceError

from .engine import cancel_booking, complete_booking
from .models import Booking, BookingStatusLog


class BookingStatusLogInline(admin.TabularInline):
    model = BookingStatusLog
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    can_delete = False


def _apply(modeladmin, request, queryset, action, verb):
    done = 0
    for booking in queryset:
        try:
            action(booking, changed_by='admin')
            done += 1
        except MarketplaceError as exc:
            modeladmin.message_user(request, f'#{booking.id_short}: {exc}', level=messages.WARNING)
    if done:
        modeladmin.message_user(request, f'{done} booking(s) {verb}.', level=messages.SUCCESS)


@admin.action(description='Cancel selected bookings')
def cancel_selected(modeladmin, request, queryset):
    _apply(modeladmin, request, queryset, cancel_booking, 'cancelled')


@admin.action(description='Mark selected bookings completed')
def complete_selected(modeladmin, request, queryset):
    _apply(modeladmin, request, queryset, complete_booking, 'completed')


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        'short_id', 'customer_name', 'barber', 'service',
        'start_time', 'status', 'payment_status', 'price',
    ]
    list_filter = ['status', 'payment_status', 'barber']
    search_fields = ['guest_name', 'guest_email', 'client__email', 'payment_intent_id', 'service__name']
    # Status changes go through the engine (admin actions), never direct edits
    readonly_fields = ['id', 'status', 'payment_status', 'payment_intent_id', 'created_at', 'updated_at']
    date_hierarchy = 'start_time'
    inlines = [BookingStatusLogInline]
    actions = [cancel_selected, complete_selected]
    fieldsets = (
        ('Booking', {'fields': ('id', 'barber', 'service', 'client')}),
        ('Guest', {'fields': ('guest_name', 'guest_email', 'guest_phone')}),
        ('Schedule', {'fields': ('start_time', 'end_time')}),
        ('Status', {'fields': ('status', 'payment_status', 'notes')}),
        ('Money', {'fields': ('price', 'platform_fee', 'barber_payout', 'payment_intent_id')}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    def short_id(self, obj):
        return obj.id_short
    short_id.short_description = 'ID'


@admin.register(BookingStatusLog)
class BookingStatusLogAdmin(admin.ModelAdmin):
    list_display = ['booking', 'from_status', 'to_status', 'changed_by', 'changed_at']
    readonly_fields = ['id', 'booking', 'from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    search_fields = ['booking__guest_name', 'booking__payment_intent_id']
