"""
Service model — one row per service a barber offers.

Price is in dollars (two decimal places). The booking snapshot copies the
price at booking time, so later edits never change existing bookings.
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from apps.core.models import BaseModel
from apps.barbers.models import Barber


class Service(BaseModel):
    barber = models.ForeignKey(
        Barber,
        on_delete=models.CASCADE,
        related_name='services',
    )
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    duration_minutes = models.PositiveIntegerField(
        validators=[MinValueValidator(5)],
        help_text='Appointment length in minutes',
    )
    price = models.DecimalField(
        max_digits=8, decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = 'Service'
        verbose_name_plural = 'Services'
        ordering = ['barber', 'name']

    def __str__(self):
        return f"{self.name} ({self.duration_minutes} min) — {self.barber.business_name}"

    @property
    def price_cents(self):
        return int((self.price * 100).quantize(Decimal('1')))
