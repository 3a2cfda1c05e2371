"""
In-app notification rows shown in the barber and client dashboards.
"""
from django.conf import settings
from django.db import models
from apps.core.models import UUIDModel


class NotificationType(models.TextChoices):
    BOOKING_CREATED        = 'booking_created',        'Booking Created'
    BOOKING_CONFIRMED      = 'booking_confirmed',      'Booking Confirmed'
    BOOKING_CANCELLED      = 'booking_cancelled',      'Booking Cancelled'
    BOOKING_STATUS_UPDATED = 'booking_status_updated', 'Booking Status Updated'
    PAYMENT_SUCCESS        = 'payment_success',        'Payment Success'
    PAYMENT_FAILED         = 'payment_failed',         'Payment Failed'


class Notification(UUIDModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications',
    )
    title = models.CharField(max_length=150)
    message = models.TextField()
    type = models.CharField(max_length=40, choices=NotificationType.choices)
    booking = models.ForeignKey(
        'bookings.Booking', on_delete=models.CASCADE,
        null=True, blank=True, related_name='notifications',
    )
    is_read = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Notification'
        verbose_name_plural = 'Notifications'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} → {self.user}"
