"""
Booking engine — lifecycle of a single booking, no HTTP/request awareness.

Public API:
  create_booking(data, changed_by='client')
  create_confirmed_booking(data, changed_by='webhook')
  update_booking(booking, patch, changed_by='system', reason='')
  transition(booking, to_status, changed_by, reason='', payment_status=None)
  confirm_booking(booking, changed_by='system')
  cancel_booking(booking, changed_by='system', reason='')
  complete_booking(booking, changed_by='system')
  get_booking(booking_id)

State machine (initial PENDING; COMPLETED, CANCELLED, REFUNDED and EXPIRED
are terminal):
  PENDING            → CONFIRMED | FAILED | EXPIRED | CANCELLED
  FAILED             → CONFIRMED | CANCELLED | EXPIRED
  CONFIRMED          → COMPLETED | CANCELLED | REFUNDED | PARTIALLY_REFUNDED
  PARTIALLY_REFUNDED → COMPLETED | CANCELLED | REFUNDED | PARTIALLY_REFUNDED
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.barbers.models import Barber
from apps.core.exceptions import (
    ConstraintViolation,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from apps.notifications.service import notify_booking_created, notify_status_changed
from apps.services.models import Service

from .admission import RejectReason, ensure_admissible
from .models import (
    Booking,
    BookingStatus,
    BookingStatusLog,
    PaymentStatus,
    can_transition,
)

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

UPDATABLE_FIELDS = ('start_time', 'service', 'notes', 'status')


@dataclass
class CreateBookingInput:
    """
    Everything needed to create a booking. Exactly one identity path:
    `client_id`, or the full guest triple (name, email, phone).
    `date` is an ISO-8601 string or a datetime; naive values are read in
    the project's local timezone.
    """
    barber_id: object
    service_id: object
    date: object
    price: object
    payment_intent_id: str
    client_id: object = None
    guest_name: str = ''
    guest_email: str = ''
    guest_phone: str = ''
    notes: str = ''
    platform_fee: object = None
    barber_payout: object = None


# ── Input helpers ─────────────────────────────────────────────────────────────

def _get_or_not_found(model, pk, label):
    if pk in (None, ''):
        raise ValidationError(f'{label} is required.', field=f'{label.lower()}_id')
    try:
        return model.objects.get(pk=pk)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f'{label} {pk} not found.')


def _parse_start(value) -> datetime:
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError(f'Invalid date: {value!r}', field='date')
        value = parsed
    if not isinstance(value, datetime):
        raise ValidationError('A date and time is required.', field='date')
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def _to_decimal(value, field):
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValueError(value)
        return amount.quantize(CENT)
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid amount: {value!r}', field=field)


def resolve_fee_split(price: Decimal, platform_fee=None, barber_payout=None) -> tuple:
    """
    (platform_fee, barber_payout) for a booking price. Both given: they must
    add up to the price. One given: the other is derived. Neither: both None.
    The price itself is never adjusted.
    """
    fee = _to_decimal(platform_fee, 'platform_fee')
    payout = _to_decimal(barber_payout, 'barber_payout')
    if fee is not None and fee < 0:
        raise ValidationError('Platform fee cannot be negative.', field='platform_fee')
    if payout is not None and payout < 0:
        raise ValidationError('Barber payout cannot be negative.', field='barber_payout')

    if fee is not None and payout is not None:
        if fee + payout != price:
            raise ValidationError(
                f'Platform fee ({fee}) and barber payout ({payout}) must add up to the price ({price}).',
                field='platform_fee',
            )
        return fee, payout
    if fee is not None:
        if fee > price:
            raise ValidationError('Platform fee cannot exceed the price.', field='platform_fee')
        return fee, price - fee
    if payout is not None:
        if payout > price:
            raise ValidationError('Barber payout cannot exceed the price.', field='barber_payout')
        return price - payout, payout
    return None, None


def _resolve_identity(data: CreateBookingInput) -> dict:
    """Registered client XOR full guest triple. A partial triple counts as neither."""
    guest = {
        'guest_name': (data.guest_name or '').strip(),
        'guest_email': (data.guest_email or '').strip(),
        'guest_phone': (data.guest_phone or '').strip(),
    }
    has_full_guest = all(guest.values())
    has_client = data.client_id not in (None, '')

    if has_client and any(guest.values()):
        raise ValidationError('A booking is either for a registered client or a guest, not both.',
                              field='client_id')
    if not has_client and not has_full_guest:
        raise ValidationError('Either a client or guest name, email and phone are required.',
                              field='client_id')

    if has_client:
        client = _get_or_not_found(get_user_model(), data.client_id, 'Client')
        return {'client': client, 'guest_name': '', 'guest_email': '', 'guest_phone': ''}
    return {'client': None, **guest}


def _prepare(data: CreateBookingInput) -> dict:
    """Validate a CreateBookingInput into Booking field values. Nothing is written."""
    barber = _get_or_not_found(Barber, data.barber_id, 'Barber')
    service = _get_or_not_found(Service, data.service_id, 'Service')
    if service.barber_id != barber.pk:
        raise ValidationError('Service is not offered by this barber.', field='service_id')

    price = _to_decimal(data.price, 'price')
    if price is None:
        raise ValidationError('Price is required.', field='price')
    if price < 0:
        raise ValidationError('Price cannot be negative.', field='price')

    payment_intent_id = (data.payment_intent_id or '').strip()
    if not payment_intent_id:
        raise ValidationError('Payment intent id is required.', field='payment_intent_id')
    if Booking.objects.filter(payment_intent_id=payment_intent_id).exists():
        raise ValidationError('This payment has already been used for a booking.',
                              field='payment_intent_id')

    platform_fee, barber_payout = resolve_fee_split(price, data.platform_fee, data.barber_payout)
    start = _parse_start(data.date)

    return {
        'barber': barber,
        'service': service,
        'start_time': start,
        'end_time': start + timedelta(minutes=service.duration_minutes),
        'price': price,
        'platform_fee': platform_fee,
        'barber_payout': barber_payout,
        'payment_intent_id': payment_intent_id,
        'notes': data.notes or '',
        **_resolve_identity(data),
    }


def _insert(fields: dict, changed_by: str, reason: str) -> Booking:
    try:
        with transaction.atomic():
            booking = Booking.objects.create(**fields)
            BookingStatusLog.objects.create(
                booking=booking,
                from_status='',
                to_status=booking.status,
                changed_by=changed_by,
                reason=reason,
            )
    except IntegrityError as exc:
        logger.warning('Booking insert lost a race for barber %s at %s: %s',
                       fields['barber'].pk, fields['start_time'], exc)
        raise ConstraintViolation(RejectReason.TIME_CONFLICT) from exc
    return booking


# ── Core: Booking Creation ────────────────────────────────────────────────────

def create_booking(data: CreateBookingInput, changed_by: str = 'client', now: datetime = None) -> Booking:
    """
    Validate, admit and insert a PENDING booking.

    Raises:
      ValidationError     — malformed input (identity, price, fee split, past date)
      NotFoundError       — unknown barber, service or client
      ConflictError       — admission rejected, `reason` says why
      ConstraintViolation — a concurrent booking took the slot at insert time
    """
    now = now or timezone.now()
    fields = _prepare(data)

    if not fields['service'].is_active:
        raise ValidationError('This service is no longer offered.', field='service_id')
    if not fields['barber'].is_active:
        raise ValidationError('This barber is not accepting bookings.', field='barber_id')
    if fields['start_time'] <= now:
        raise ValidationError('Booking time must be in the future.', field='date')

    ensure_admissible(fields['barber'], fields['service'], fields['start_time'], fields['end_time'], now=now)

    booking = _insert(
        {**fields, 'status': BookingStatus.PENDING, 'payment_status': PaymentStatus.PENDING},
        changed_by=changed_by,
        reason='Booking created',
    )
    logger.info('Booking %s created for barber %s at %s', booking.id_short, booking.barber_id, booking.start_time)

    notify_booking_created(booking)
    return booking


def create_confirmed_booking(data: CreateBookingInput, changed_by: str = 'webhook') -> Booking:
    """
    Insert a booking that has already been paid for, as CONFIRMED/SUCCEEDED.
    Used when a payment succeeds before the booking row exists. Admission is
    not re-run because the client has been charged; the unique-start
    constraint still applies.
    """
    fields = _prepare(data)
    booking = _insert(
        {**fields, 'status': BookingStatus.CONFIRMED, 'payment_status': PaymentStatus.SUCCEEDED},
        changed_by=changed_by,
        reason='Created from successful payment',
    )
    logger.info('Booking %s created from payment %s', booking.id_short, booking.payment_intent_id)

    notify_booking_created(booking)
    notify_status_changed(booking)
    return booking


# ── Core: Transitions ─────────────────────────────────────────────────────────

def _check_transition(booking: Booking, to_status) -> None:
    if booking.is_terminal:
        raise InvalidTransition(
            f'Booking {booking.id_short} is {booking.status} and can no longer change status.',
            field='status',
        )
    if not can_transition(booking.status, to_status):
        raise InvalidTransition(
            f'Cannot move booking {booking.id_short} from {booking.status} to {to_status}.',
            field='status',
        )


def _log_transition(booking, from_status, changed_by, reason):
    BookingStatusLog.objects.create(
        booking=booking,
        from_status=from_status,
        to_status=booking.status,
        changed_by=changed_by,
        reason=reason,
    )
    logger.info('Booking %s: %s → %s by %s', booking.id_short, from_status, booking.status, changed_by)


@transaction.atomic
def transition(booking: Booking, to_status, changed_by: str, reason: str = '',
               payment_status=None) -> Booking:
    """
    Move a booking to `to_status` (and optionally a new payment status),
    writing one audit row. The row is re-read under lock so two deliveries
    cannot both apply. Does not notify.
    """
    locked = Booking.objects.select_for_update().get(pk=booking.pk)
    _check_transition(locked, to_status)

    from_status = locked.status
    locked.status = to_status
    update_fields = ['status', 'updated_at']
    if payment_status is not None:
        locked.payment_status = payment_status
        update_fields.append('payment_status')
    try:
        with transaction.atomic():
            locked.save(update_fields=update_fields)
    except IntegrityError as exc:
        # Re-occupying a start time someone else has taken since
        raise ConstraintViolation(RejectReason.TIME_CONFLICT) from exc

    _log_transition(locked, from_status, changed_by, reason)
    return locked


def update_booking(booking: Booking, patch: dict, changed_by: str = 'system', reason: str = '') -> Booking:
    """
    Apply a partial update. Allowed keys: start_time, service, notes, status.

    A new start time or service is re-admitted against every other booking.
    A status change must be allowed by the state machine; terminal bookings
    refuse all status changes. Returns the updated booking.
    """
    unknown = sorted(set(patch) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}", field=unknown[0])

    with transaction.atomic():
        current = Booking.objects.select_for_update().get(pk=booking.pk)
        from_status = current.status

        if 'status' in patch and (current.is_terminal or patch['status'] != from_status):
            _check_transition(current, patch['status'])

        reschedule = 'start_time' in patch or 'service' in patch
        if reschedule:
            if current.is_terminal:
                raise InvalidTransition(
                    f'Booking {current.id_short} is {current.status} and cannot be rescheduled.',
                    field='start_time',
                )
            _reschedule(current, patch)

        if 'notes' in patch:
            current.notes = patch['notes'] or ''
        if 'status' in patch:
            current.status = patch['status']

        try:
            with transaction.atomic():
                current.save()
        except IntegrityError as exc:
            raise ConstraintViolation(RejectReason.TIME_CONFLICT) from exc

        status_changed = current.status != from_status
        if status_changed:
            _log_transition(current, from_status, changed_by, reason)

    if status_changed:
        notify_status_changed(current)
    return current


def _reschedule(booking: Booking, patch: dict) -> None:
    service = patch.get('service', booking.service)
    if not isinstance(service, Service):
        service = _get_or_not_found(Service, service, 'Service')
    if service.barber_id != booking.barber_id:
        raise ValidationError('Service is not offered by this barber.', field='service')
    if service.pk != booking.service_id and not service.is_active:
        raise ValidationError('This service is no longer offered.', field='service')

    start = _parse_start(patch['start_time']) if 'start_time' in patch else booking.start_time
    if start <= timezone.now():
        raise ValidationError('Booking time must be in the future.', field='start_time')
    end = start + timedelta(minutes=service.duration_minutes)

    ensure_admissible(booking.barber, service, start, end, exclude_booking=booking)

    booking.service = service
    booking.start_time = start
    booking.end_time = end


def confirm_booking(booking: Booking, changed_by: str = 'system') -> Booking:
    return update_booking(booking, {'status': BookingStatus.CONFIRMED}, changed_by=changed_by)


def cancel_booking(booking: Booking, changed_by: str = 'system', reason: str = '') -> Booking:
    return update_booking(booking, {'status': BookingStatus.CANCELLED}, changed_by=changed_by, reason=reason)


def complete_booking(booking: Booking, changed_by: str = 'system') -> Booking:
    return update_booking(booking, {'status': BookingStatus.COMPLETED}, changed_by=changed_by)


def get_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_related('barber', 'service', 'client').get(pk=booking_id)
    except (Booking.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f'Booking {booking_id} not found.')
