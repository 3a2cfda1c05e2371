"""
Core base model mixins.
All production models should inherit from these.
"""
import uuid
from django.db import models


class UUIDModel(models.Model):
    """Primary key is a UUID, not an auto-incrementing integer."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class TimestampedModel(models.Model):
    """Automatically tracks creation and last-update timestamps."""
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class BaseModel(UUIDModel, TimestampedModel):
    """
    Convenience base combining UUID pk + timestamps.
    Marketplace rows are never physically deleted: barbers and services are
    deactivated with is_active, bookings end in a terminal status.
    """
    class Meta:
        abstract = True


# Weekday numbering follows the client apps: 0 = Sunday … 6 = Saturday.
DAY_OF_WEEK_CHOICES = [
    (0, 'Sunday'), (1, 'Monday'), (2, 'Tuesday'), (3, 'Wednesday'),
    (4, 'Thursday'), (5, 'Friday'), (6, 'Saturday'),
]
