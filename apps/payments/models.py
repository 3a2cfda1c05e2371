"""
Payments app models:
  - Payment               : ledger row per charge or refund (amounts in cents)
  - ProcessedWebhookEvent : one row per webhook event already applied

One charge row per payment intent and one cumulative refund row per payment
intent, enforced by uq_payment_intent_kind. Refund rows carry negative
amounts so the ledger sums to the net collected.
"""
from django.db import models
from apps.core.models import UUIDModel, TimestampedModel
from apps.bookings.models import Booking


class PaymentKind(models.TextChoices):
    CHARGE = 'charge', 'Charge'
    REFUND = 'refund', 'Refund'


class Payment(UUIDModel, TimestampedModel):
    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name='payments')
    payment_intent_id = models.CharField(max_length=255, db_index=True)
    kind = models.CharField(max_length=10, choices=PaymentKind.choices, default=PaymentKind.CHARGE)
    amount = models.IntegerField(help_text='Cents. Negative for refunds.')
    currency = models.CharField(max_length=3, default='usd')
    status = models.CharField(max_length=30)
    platform_fee = models.IntegerField(default=0, help_text='Cents')
    barber_payout = models.IntegerField(default=0, help_text='Cents')
    # Connected account the transfer went to; blank for platform-only charges
    barber_stripe_account_id = models.CharField(max_length=255, blank=True)

    class Meta:
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['payment_intent_id', 'kind'],
                name='uq_payment_intent_kind',
            ),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} {self.payment_intent_id} [{self.status}] — {self.amount / 100:.2f} {self.currency.upper()}"


class ProcessedWebhookEvent(models.Model):
    """
    Dedupe key for webhook deliveries. Written in the same transaction as the
    state change it records, so an event is either fully applied or not seen.
    """
    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100)
    payment_intent_id = models.CharField(max_length=255, blank=True, db_index=True)
    result = models.CharField(max_length=255, blank=True)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Processed Webhook Event'
        verbose_name_plural = 'Processed Webhook Events'
        ordering = ['-processed_at']

    def __str__(self):
        return f"{self.event_type} {self.event_id}"
