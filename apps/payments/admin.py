from django.contrib import admin
from .models import Payment, ProcessedWebhookEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        'payment_intent_id', 'kind', 'booking', 'amount', 'currency', 'status', 'created_at'
    ]
    list_filter = ['kind', 'status', 'currency']
    search_fields = ['payment_intent_id', 'booking__guest_name', 'barber_stripe_account_id']
    readonly_fields = ['id', 'created_at', 'updated_at']
    fieldsets = (
        ('Payment', {'fields': ('id', 'booking', 'kind', 'amount', 'currency', 'status')}),
        ('Split (cents)', {'fields': ('platform_fee', 'barber_payout', 'barber_stripe_account_id')}),
        ('Stripe', {'fields': ('payment_intent_id',)}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )


@admin.register(ProcessedWebhookEvent)
class ProcessedWebhookEventAdmin(admin.ModelAdmin):
    list_display = ['event_id', 'event_type', 'payment_intent_id', 'result', 'processed_at']
    list_filter = ['event_type']
    search_fields = ['event_id', 'payment_intent_id']
    readonly_fields = ['event_id', 'event_type', 'payment_intent_id', 'result', 'processed_at']
