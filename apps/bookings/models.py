"""
Bookings app models:
  - Booking          : core booking record with state machine
  - BookingStatusLog : full audit trail of state transitions
"""
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from apps.core.models import BaseModel, UUIDModel
from apps.barbers.models import Barber
from apps.services.models import Service


# ── Booking State Machine ─────────────────────────────────────────────────────

class BookingStatus(models.TextChoices):
    PENDING            = 'pending',            'Pending'
    CONFIRMED          = 'confirmed',          'Confirmed'
    COMPLETED          = 'completed',          'Completed'
    CANCELLED          = 'cancelled',          'Cancelled'
    FAILED             = 'failed',             'Failed'
    EXPIRED            = 'expired',            'Expired'
    REFUNDED           = 'refunded',           'Refunded'
    PARTIALLY_REFUNDED = 'partially_refunded', 'Partially Refunded'


class PaymentStatus(models.TextChoices):
    PENDING            = 'pending',            'Pending'
    SUCCEEDED          = 'succeeded',          'Succeeded'
    FAILED             = 'failed',             'Failed'
    REFUNDED           = 'refunded',           'Refunded'
    PARTIALLY_REFUNDED = 'partially_refunded', 'Partially Refunded'


TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.REFUNDED,
    BookingStatus.EXPIRED,
})

# Statuses that hold the barber's time. Everything else has released it.
OCCUPYING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.COMPLETED,
    BookingStatus.PARTIALLY_REFUNDED,
)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED, BookingStatus.FAILED,
        BookingStatus.EXPIRED, BookingStatus.CANCELLED,
    },
    BookingStatus.FAILED: {
        BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.EXPIRED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.COMPLETED, BookingStatus.CANCELLED,
        BookingStatus.REFUNDED, BookingStatus.PARTIALLY_REFUNDED,
    },
    BookingStatus.PARTIALLY_REFUNDED: {
        BookingStatus.COMPLETED, BookingStatus.CANCELLED,
        BookingStatus.REFUNDED, BookingStatus.PARTIALLY_REFUNDED,
    },
}


def can_transition(from_status, to_status) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, ())


class BookingQuerySet(models.QuerySet):
    def occupying(self):
        return self.filter(status__in=OCCUPYING_STATUSES)


class Booking(BaseModel):
    """
    Core booking record. Created PENDING by the engine (or CONFIRMED by the
    webhook late-creation path). Status transitions go through
    apps.bookings.engine, never direct field writes.

    Identity: either a registered client or a guest (name + email + phone),
    never both.
    """
    barber = models.ForeignKey(Barber, on_delete=models.PROTECT, related_name='bookings')
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name='bookings')
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT,
        null=True, blank=True, related_name='bookings',
    )
    guest_name = models.CharField(max_length=120, blank=True)
    guest_email = models.EmailField(blank=True)
    guest_phone = models.CharField(max_length=30, blank=True)

    start_time = models.DateTimeField(db_index=True)
    end_time = models.DateTimeField()

    status = models.CharField(
        max_length=20, choices=BookingStatus.choices,
        default=BookingStatus.PENDING, db_index=True,
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_intent_id = models.CharField(max_length=255, unique=True)

    # Dollars. platform_fee + barber_payout == price whenever both are set.
    price = models.DecimalField(
        max_digits=10, decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    platform_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    barber_payout = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    notes = models.TextField(blank=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        verbose_name = 'Booking'
        verbose_name_plural = 'Bookings'
        ordering = ['-start_time']
        constraints = [
            # DB-level guard: no two occupying bookings for the same barber+start
            models.UniqueConstraint(
                fields=['barber', 'start_time'],
                condition=models.Q(status__in=[
                    'pending', 'confirmed', 'completed', 'partially_refunded',
                ]),
                name='uq_active_booking_start',
            ),
            # Exactly one identity path: registered client XOR guest
            models.CheckConstraint(
                condition=(
                    models.Q(client__isnull=False, guest_name='', guest_email='', guest_phone='')
                    | (
                        models.Q(client__isnull=True)
                        & ~models.Q(guest_name='')
                        & ~models.Q(guest_email='')
                        & ~models.Q(guest_phone='')
                    )
                ),
                name='ck_booking_identity_path',
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name='ck_booking_price_non_negative',
            ),
        ]

    def __str__(self):
        return f"#{self.id_short} | {self.customer_name} | {self.service.name} | {self.start_time:%Y-%m-%d %H:%M}"

    @property
    def id_short(self):
        """Returns the first 8 chars of UUID in uppercase."""
        return str(self.id)[:8].upper()

    @property
    def is_guest(self):
        return self.client_id is None

    @property
    def customer_name(self):
        if self.client_id:
            return self.client.get_full_name() or self.client.get_username()
        return self.guest_name

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def duration_minutes(self):
        return int((self.end_time - self.start_time).total_seconds() // 60)


# ── Booking Audit Log ─────────────────────────────────────────────────────────

class BookingStatusLog(UUIDModel):
    """Immutable audit trail of every status transition on a booking."""
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='status_logs')
    from_status = models.CharField(max_length=20, choices=BookingStatus.choices, blank=True)
    to_status = models.CharField(max_length=20, choices=BookingStatus.choices)
    changed_by = models.CharField(max_length=80, help_text='system / webhook / client / barber / admin')
    reason = models.TextField(blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Booking Status Log'
        verbose_name_plural = 'Booking Status Logs'
        ordering = ['changed_at']

    def __str__(self):
        return f"Booking {str(self.booking_id)[:8]}: {self.from_status or '—'} → {self.to_status}"
