"""
Constraint store — CRUD for booking restrictions, slot templates and the
general weekly availability. No business rules beyond range checks.

Public API:
  get_constraints(barber)
  update_constraints(barber, **fields)
  reset_constraints(barber)
  list_slot_templates(barber)
  get_active_slot_templates(barber, day_of_week)
  create_slot_template(barber, **fields)
  update_slot_template(template, **fields)
  delete_slot_template(template)
  get_availability(barber, day_of_week)
  set_availability(barber, day_of_week, start_time, end_time, is_available=True)

Every write raises apps.core.exceptions.ValidationError on out-of-range
input and leaves the stored row untouched.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from apps.barbers.models import Availability
from apps.core.exceptions import ValidationError

from .models import BarberConstraints, SchedulingSlotTemplate

logger = logging.getLogger(__name__)

CONSTRAINT_FIELDS = (
    'min_interval_minutes',
    'max_bookings_per_day',
    'advance_booking_days',
    'same_day_booking_enabled',
)

TEMPLATE_FIELDS = (
    'day_of_week',
    'start_time',
    'end_time',
    'slot_duration_minutes',
    'buffer_before_minutes',
    'buffer_after_minutes',
    'max_bookings_per_slot',
    'is_active',
)


def _reject_unknown(fields: dict, allowed: tuple) -> None:
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(unknown)}", field=unknown[0])


def _validated_save(instance) -> None:
    """full_clean() then save(); Django validation errors become ours."""
    try:
        instance.full_clean()
    except DjangoValidationError as exc:
        errors = getattr(exc, 'message_dict', {}) or {'__all__': exc.messages}
        field = next(iter(errors))
        message = '; '.join(f"{k}: {' '.join(v)}" for k, v in errors.items())
        raise ValidationError(message, field=None if field == '__all__' else field) from exc
    instance.save()


# ── Booking restrictions ──────────────────────────────────────────────────────

def get_constraints(barber) -> BarberConstraints:
    """Stored restrictions, or an unsaved row holding the defaults."""
    constraints = BarberConstraints.objects.filter(barber=barber).first()
    if constraints is None:
        return BarberConstraints.defaults_for(barber)
    return constraints


@transaction.atomic
def update_constraints(barber, **fields) -> BarberConstraints:
    _reject_unknown(fields, CONSTRAINT_FIELDS)
    constraints = (
        BarberConstraints.objects.select_for_update().filter(barber=barber).first()
        or BarberConstraints.defaults_for(barber)
    )
    for name, value in fields.items():
        setattr(constraints, name, value)
    _validated_save(constraints)
    logger.info('Booking restrictions updated for barber %s: %s', barber.pk, fields)
    return constraints


def reset_constraints(barber) -> BarberConstraints:
    """Soft reset — restrictions are never deleted, only set back to defaults."""
    defaults = BarberConstraints.defaults_for(barber)
    return update_constraints(barber, **{f: getattr(defaults, f) for f in CONSTRAINT_FIELDS})


# ── Slot templates ────────────────────────────────────────────────────────────

def list_slot_templates(barber):
    return SchedulingSlotTemplate.objects.filter(barber=barber).order_by('day_of_week', 'start_time')


def get_active_slot_templates(barber, day_of_week: int) -> list:
    return list(
        SchedulingSlotTemplate.objects
        .filter(barber=barber, day_of_week=day_of_week, is_active=True)
        .order_by('start_time')
    )


def create_slot_template(barber, **fields) -> SchedulingSlotTemplate:
    _reject_unknown(fields, TEMPLATE_FIELDS)
    template = SchedulingSlotTemplate(barber=barber, **fields)
    _validated_save(template)
    logger.info('Slot template %s created for barber %s', template.pk, barber.pk)
    return template


def update_slot_template(template: SchedulingSlotTemplate, **fields) -> SchedulingSlotTemplate:
    """Edits apply to future admissions only; confirmed bookings are untouched."""
    _reject_unknown(fields, TEMPLATE_FIELDS)
    # Edit a fresh copy so a rejected edit leaves the caller's instance as it was
    updated = SchedulingSlotTemplate.objects.get(pk=template.pk)
    for name, value in fields.items():
        setattr(updated, name, value)
    _validated_save(updated)
    return updated


def delete_slot_template(template: SchedulingSlotTemplate) -> None:
    logger.info('Slot template %s deleted for barber %s', template.pk, template.barber_id)
    template.delete()


# ── General weekly availability ───────────────────────────────────────────────

def get_availability(barber, day_of_week: int):
    """The open window for a weekday, or None if the barber is off that day."""
    return Availability.objects.filter(
        barber=barber, day_of_week=day_of_week, is_available=True,
    ).first()


def set_availability(barber, day_of_week: int, start_time, end_time,
                     is_available: bool = True) -> Availability:
    if not 0 <= day_of_week <= 6:
        raise ValidationError('Day of week must be between 0 and 6.', field='day_of_week')
    if start_time >= end_time:
        raise ValidationError('End time must be after start time.', field='end_time')
    availability, _ = Availability.objects.update_or_create(
        barber=barber,
        day_of_week=day_of_week,
        defaults={
            'start_time': start_time,
            'end_time': end_time,
            'is_available': is_available,
        },
    )
    return availability
