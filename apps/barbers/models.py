"""
Barber models: Barber profile and the general weekly Availability window.

Availability is the coarse open/close window per weekday. Finer-grained
rules (slot duration, buffers, capacity) live in apps.scheduling and take
precedence when a barber has configured them for that weekday.
"""
from django.conf import settings
from django.db import models
from apps.core.models import BaseModel, UUIDModel, DAY_OF_WEEK_CHOICES


class StripeAccountStatus(models.TextChoices):
    NONE         = 'none',         'Not Connected'
    PENDING      = 'pending',      'Pending'
    ACTIVE       = 'active',       'Active'
    DEAUTHORIZED = 'deauthorized', 'Deauthorized'


class Barber(BaseModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='barber',
    )
    business_name = models.CharField(max_length=150)
    bio = models.TextField(blank=True)
    location = models.CharField(max_length=255, blank=True)

    # Stripe Connect payout account
    stripe_account_id = models.CharField(max_length=100, blank=True, null=True, unique=True)
    stripe_account_status = models.CharField(
        max_length=20, choices=StripeAccountStatus.choices,
        default=StripeAccountStatus.NONE,
    )
    stripe_account_ready = models.BooleanField(default=False)

    is_developer = models.BooleanField(
        default=False,
        help_text='Developer accounts are exempt from platform fees.',
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = 'Barber'
        verbose_name_plural = 'Barbers'
        ordering = ['business_name']

    def __str__(self):
        return self.business_name


class Availability(UUIDModel):
    """General working hours for one weekday. One row per barber+weekday."""
    barber = models.ForeignKey(
        Barber,
        on_delete=models.CASCADE,
        related_name='availability',
    )
    day_of_week = models.IntegerField(choices=DAY_OF_WEEK_CHOICES)
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_available = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Availability'
        verbose_name_plural = 'Availability'
        unique_together = [('barber', 'day_of_week')]
        ordering = ['barber', 'day_of_week']

    def __str__(self):
        return (
            f"{self.barber.business_name} — {self.get_day_of_week_display()} "
            f"({self.start_time.strftime('%H:%M')}–{self.end_time.strftime('%H:%M')})"
        )
