"""
Scheduling models — per-barber booking configuration:
  - BarberConstraints       : global booking restrictions (one per barber)
  - SchedulingSlotTemplate  : recurring weekly slot rules (many per barber)

Ranges are enforced with field validators so the store (and the admin)
reject out-of-range writes before they reach the database.
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from apps.core.models import BaseModel, DAY_OF_WEEK_CHOICES
from apps.barbers.models import Barber


def _default(name):
    return settings.BOOKING_DEFAULTS[name]


class BarberConstraints(BaseModel):
    """
    Booking restrictions. Created with defaults at onboarding, never deleted;
    a reset writes the defaults back.
    """
    barber = models.OneToOneField(
        Barber, on_delete=models.CASCADE, related_name='booking_constraints',
    )
    min_interval_minutes = models.PositiveIntegerField(
        default=5,
        validators=[MinValueValidator(0), MaxValueValidator(60)],
        help_text='Minimum gap between booking start times',
    )
    max_bookings_per_day = models.PositiveIntegerField(
        default=10,
        validators=[MinValueValidator(1), MaxValueValidator(50)],
    )
    advance_booking_days = models.PositiveIntegerField(
        default=30,
        validators=[MinValueValidator(0), MaxValueValidator(365)],
        help_text='How far ahead clients may book. 0 = unlimited.',
    )
    same_day_booking_enabled = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Booking Restrictions'
        verbose_name_plural = 'Booking Restrictions'

    def __str__(self):
        return f"Restrictions for {self.barber.business_name}"

    @classmethod
    def defaults_for(cls, barber):
        """Unsaved instance carrying the configured defaults."""
        return cls(
            barber=barber,
            min_interval_minutes=_default('min_interval_minutes'),
            max_bookings_per_day=_default('max_bookings_per_day'),
            advance_booking_days=_default('advance_booking_days'),
            same_day_booking_enabled=_default('same_day_booking_enabled'),
        )


class SchedulingSlotTemplate(BaseModel):
    """
    Recurring weekly window with slot duration, buffers and capacity.
    Templates on the same day may overlap; each is evaluated on its own.
    """
    barber = models.ForeignKey(
        Barber, on_delete=models.CASCADE, related_name='slot_templates',
    )
    day_of_week = models.IntegerField(
        choices=DAY_OF_WEEK_CHOICES,
        validators=[MinValueValidator(0), MaxValueValidator(6)],
    )
    start_time = models.TimeField()
    end_time = models.TimeField()
    slot_duration_minutes = models.PositiveIntegerField(
        default=30,
        validators=[MinValueValidator(15), MaxValueValidator(120)],
    )
    buffer_before_minutes = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(60)],
    )
    buffer_after_minutes = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(60)],
    )
    max_bookings_per_slot = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(10)],
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = 'Scheduling Slot'
        verbose_name_plural = 'Scheduling Slots'
        ordering = ['barber', 'day_of_week', 'start_time']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(start_time__lt=models.F('end_time')),
                name='ck_slot_template_start_before_end',
            ),
        ]

    def __str__(self):
        return (
            f"{self.barber.business_name} — {self.get_day_of_week_display()} "
            f"{self.start_time.strftime('%H:%M')}–{self.end_time.strftime('%H:%M')}"
        )

    def clean(self):
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({'end_time': 'End time must be after start time.'})
