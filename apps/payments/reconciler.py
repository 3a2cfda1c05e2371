"""
Settlement reconciler — applies Stripe webhook events to bookings and
barber payout accounts. Pure business logic, no HTTP/request awareness.

Public API:
  handle_webhook_event(payload, signature) -> WebhookResult

Deliveries are at-least-once and unordered. Every handler checks the current
state before acting, and each event id is recorded in the same transaction as
its effects, so a replay is acknowledged without being applied twice.

Result codes:
  200  applied, ignored, duplicate, or the referenced entity does not exist
  400  missing/invalid signature, malformed body, missing required field
  500  no webhook secret configured, or processing failed (Stripe retries)
"""
import json
import logging
from decimal import Decimal

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured, ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from apps.barbers.models import Barber, StripeAccountStatus
from apps.bookings.engine import CreateBookingInput, create_confirmed_booking, transition
from apps.bookings.models import Booking, BookingStatus, PaymentStatus, can_transition
from apps.core.exceptions import ConstraintViolation, NotFoundError, ValidationError
from apps.notifications.service import notify_payment, notify_status_changed

from .events import (
    EVENT_TYPES,
    AccountCreated,
    AccountDeauthorized,
    AccountUpdated,
    ChargeRefunded,
    CheckoutCompleted,
    CheckoutExpired,
    PaymentFailed,
    PaymentSucceeded,
    UnhandledEvent,
    parse_event,
)
from .models import Payment, PaymentKind, ProcessedWebhookEvent

logger = logging.getLogger(__name__)


class WebhookResult:
    """Outcome of one delivery. Ack tells Stripe to stop; Reject asks for a retry or flags abuse."""

    status_code = 200

    def __init__(self, detail: str = 'ok', status_code: int = None):
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    @property
    def acknowledged(self) -> bool:
        return self.status_code < 400

    def __repr__(self):
        return f'<{type(self).__name__} {self.status_code}: {self.detail}>'


class Ack(WebhookResult):
    status_code = 200


class Reject(WebhookResult):
    status_code = 400


# ── Booking lookup ────────────────────────────────────────────────────────────

def _find_booking(payment_intent_id: str = '', booking_id: str = ''):
    qs = Booking.objects.select_related('barber', 'service', 'client')
    if booking_id:
        try:
            booking = qs.filter(pk=booking_id).first()
        except (ValueError, DjangoValidationError):
            booking = None
        if booking is not None:
            return booking
    if payment_intent_id:
        return qs.filter(payment_intent_id=payment_intent_id).first()
    return None


def _not_found(what: str, ref: str) -> NotFoundError:
    logger.warning('Webhook: %s not found for %s', what, ref)
    return NotFoundError(f'{what} not found')


# ── Ledger ────────────────────────────────────────────────────────────────────

def _record_charge(booking, payment_intent_id, amount, fee, currency, status, destination=''):
    payment, created = Payment.objects.get_or_create(
        payment_intent_id=payment_intent_id,
        kind=PaymentKind.CHARGE,
        defaults={
            'booking': booking,
            'amount': amount,
            'currency': currency,
            'status': status,
            'platform_fee': fee,
            'barber_payout': amount - fee,
            'barber_stripe_account_id': destination or booking.barber.stripe_account_id or '',
        },
    )
    if not created:
        logger.info('Charge for %s already recorded', payment_intent_id)
    return payment


def _record_refund(booking, event: ChargeRefunded, status):
    """One cumulative refund row per intent; Stripe reports the running total."""
    Payment.objects.update_or_create(
        payment_intent_id=event.payment_intent_id,
        kind=PaymentKind.REFUND,
        defaults={
            'booking': booking,
            'amount': -event.amount_refunded,
            'currency': event.currency,
            'status': status,
            'platform_fee': 0,
            'barber_payout': -event.amount_refunded,
            'barber_stripe_account_id': event.destination or booking.barber.stripe_account_id or '',
        },
    )


# ── Booking handlers ──────────────────────────────────────────────────────────

def _confirm(booking, reason: str) -> str:
    if booking.payment_status == PaymentStatus.SUCCEEDED:
        logger.info('Webhook: booking %s already paid — no-op', booking.id_short)
        return 'already confirmed'
    if booking.is_terminal:
        logger.warning('Webhook: payment succeeded for closed booking %s (%s)', booking.id_short, booking.status)
        return f'booking is {booking.status}'
    if not can_transition(booking.status, BookingStatus.CONFIRMED):
        booking.payment_status = PaymentStatus.SUCCEEDED
        booking.save(update_fields=['payment_status', 'updated_at'])
        return 'payment recorded'

    try:
        booking = transition(
            booking, BookingStatus.CONFIRMED, changed_by='webhook',
            reason=reason, payment_status=PaymentStatus.SUCCEEDED,
        )
    except ConstraintViolation:
        # Start time was taken while the booking sat in FAILED
        logger.error('Webhook: paid booking %s cannot be confirmed, start time taken', booking.id_short)
        booking.payment_status = PaymentStatus.SUCCEEDED
        booking.save(update_fields=['payment_status', 'updated_at'])
        return 'slot taken, refund required'

    notify_status_changed(booking)
    notify_payment(booking, succeeded=True)
    return 'booking confirmed'


def _create_from_metadata(payment_intent_id: str, metadata: dict, amount: int, fee=None):
    """
    Late creation: the payment succeeded before any booking row existed.
    The stored price is what was actually charged.
    """
    if not all(metadata.get(k) for k in ('barberId', 'serviceId', 'date')):
        raise ValidationError('Payment metadata is missing barberId, serviceId or date.', field='metadata')

    client_id = metadata.get('clientId', '')
    if client_id in ('', 'guest'):
        identity = {
            'guest_name': metadata.get('guestName', ''),
            'guest_email': metadata.get('guestEmail', ''),
            'guest_phone': metadata.get('guestPhone', ''),
        }
    else:
        identity = {'client_id': client_id}

    data = CreateBookingInput(
        barber_id=metadata['barberId'],
        service_id=metadata['serviceId'],
        date=metadata['date'],
        price=Decimal(amount) / 100,
        payment_intent_id=payment_intent_id,
        notes=metadata.get('notes', ''),
        platform_fee=None if fee is None else Decimal(fee) / 100,
        **identity,
    )
    return create_confirmed_booking(data, changed_by='webhook')


def _late_create(payment_intent_id, metadata, amount, fee=None):
    """Returns (booking, detail); booking is None when nothing could be created."""
    try:
        booking = _create_from_metadata(payment_intent_id, metadata, amount, fee)
    except ConstraintViolation:
        # Paid, but the start time was taken meanwhile. Needs a manual refund.
        logger.error('Webhook: paid booking for %s could not be created — slot taken', payment_intent_id)
        return None, 'slot taken, refund required'
    return booking, 'booking created'


def _on_checkout_completed(event: CheckoutCompleted) -> str:
    booking = _find_booking(event.payment_intent_id, event.booking_id)
    if booking is None:
        if not (event.payment_intent_id and event.metadata.get('barberId')):
            raise _not_found('booking', event.booking_id or event.payment_intent_id)
        booking, detail = _late_create(event.payment_intent_id, event.metadata, event.amount_total)
    else:
        detail = _confirm(booking, reason=f'Checkout session {event.session_id} completed')

    if booking is not None and event.payment_intent_id:
        fee = 0 if booking.platform_fee is None else int(booking.platform_fee * 100)
        _record_charge(booking, event.payment_intent_id, event.amount_total, fee, event.currency, 'succeeded')
    return detail


def _on_payment_succeeded(event: PaymentSucceeded) -> str:
    booking = _find_booking(event.payment_intent_id)
    if booking is None:
        if not event.metadata.get('barberId'):
            raise _not_found('booking', event.payment_intent_id)
        booking, detail = _late_create(
            event.payment_intent_id, event.metadata, event.amount, event.application_fee_amount,
        )
    else:
        detail = _confirm(booking, reason=f'Payment {event.payment_intent_id} succeeded')

    if booking is not None:
        _record_charge(
            booking, event.payment_intent_id, event.amount, event.application_fee_amount,
            event.currency, event.status, event.destination,
        )
    return detail


def _on_checkout_expired(event: CheckoutExpired) -> str:
    booking = _find_booking(event.payment_intent_id, event.booking_id)
    if booking is None:
        raise _not_found('booking', event.booking_id or event.payment_intent_id)
    if not can_transition(booking.status, BookingStatus.EXPIRED):
        logger.info('Webhook: checkout expired for booking %s in %s — ignored', booking.id_short, booking.status)
        return 'ignored'

    booking = transition(
        booking, BookingStatus.EXPIRED, changed_by='webhook',
        reason=f'Checkout session {event.session_id} expired', payment_status=PaymentStatus.FAILED,
    )
    notify_status_changed(booking)
    return 'booking expired'


def _on_payment_failed(event: PaymentFailed) -> str:
    booking = _find_booking(event.payment_intent_id)
    if booking is None:
        raise _not_found('booking', event.payment_intent_id)
    if booking.payment_status == PaymentStatus.SUCCEEDED or not can_transition(booking.status, BookingStatus.FAILED):
        logger.info('Webhook: payment failure for booking %s in %s — ignored', booking.id_short, booking.status)
        return 'ignored'

    booking = transition(
        booking, BookingStatus.FAILED, changed_by='webhook',
        reason=f'Payment {event.payment_intent_id} failed', payment_status=PaymentStatus.FAILED,
    )
    notify_payment(booking, succeeded=False)
    return 'payment failed'


def _on_charge_refunded(event: ChargeRefunded) -> str:
    booking = _find_booking(event.payment_intent_id)
    if booking is None:
        raise _not_found('booking', event.payment_intent_id)

    status = BookingStatus.REFUNDED if event.is_full else BookingStatus.PARTIALLY_REFUNDED
    payment_status = PaymentStatus.REFUNDED if event.is_full else PaymentStatus.PARTIALLY_REFUNDED

    if can_transition(booking.status, status):
        booking = transition(
            booking, status, changed_by='webhook',
            reason=f'Charge {event.charge_id} refunded {event.amount_refunded} of {event.amount}',
            payment_status=payment_status,
        )
        notify_status_changed(booking)
    else:
        # Closed (or never confirmed) bookings keep their status; only money moves
        booking.payment_status = payment_status
        booking.save(update_fields=['payment_status', 'updated_at'])

    _record_refund(booking, event, status=payment_status)
    return f'booking {payment_status}'


# ── Account handlers ──────────────────────────────────────────────────────────

def _on_account_created(event: AccountCreated) -> str:
    barber = None
    if event.barber_id:
        try:
            barber = Barber.objects.filter(pk=event.barber_id).first()
        except (ValueError, DjangoValidationError):
            barber = None
    if barber is None:
        barber = Barber.objects.filter(stripe_account_id=event.account_id).first()
    if barber is None:
        raise _not_found('barber', event.barber_id or event.account_id)

    barber.stripe_account_id = event.account_id
    barber.stripe_account_status = StripeAccountStatus.PENDING
    barber.stripe_account_ready = False
    barber.save(update_fields=['stripe_account_id', 'stripe_account_status', 'stripe_account_ready', 'updated_at'])
    logger.info('Barber %s linked to Stripe account %s', barber.pk, event.account_id)
    return 'account linked'


def _on_account_updated(event: AccountUpdated) -> str:
    barber = Barber.objects.filter(stripe_account_id=event.account_id).first()
    if barber is None:
        raise _not_found('barber', event.account_id)

    barber.stripe_account_status = (
        StripeAccountStatus.ACTIVE if event.charges_enabled else StripeAccountStatus.PENDING
    )
    barber.stripe_account_ready = event.charges_enabled and event.details_submitted
    barber.save(update_fields=['stripe_account_status', 'stripe_account_ready', 'updated_at'])
    logger.info('Stripe account %s is %s (ready=%s)', event.account_id,
                barber.stripe_account_status, barber.stripe_account_ready)
    return f'account {barber.stripe_account_status}'


def _on_account_deauthorized(event: AccountDeauthorized) -> str:
    barber = Barber.objects.filter(stripe_account_id=event.account_id).first()
    if barber is None:
        raise _not_found('barber', event.account_id)

    barber.stripe_account_status = StripeAccountStatus.DEAUTHORIZED
    barber.stripe_account_ready = False
    barber.save(update_fields=['stripe_account_status', 'stripe_account_ready', 'updated_at'])
    logger.warning('Stripe account %s deauthorized for barber %s', event.account_id, barber.pk)
    return 'account deauthorized'


def _on_unhandled(event: UnhandledEvent) -> str:
    logger.info('Webhook: unhandled event type %s', event.type)
    return 'ignored'


HANDLERS = {
    CheckoutCompleted:   _on_checkout_completed,
    CheckoutExpired:     _on_checkout_expired,
    PaymentSucceeded:    _on_payment_succeeded,
    PaymentFailed:       _on_payment_failed,
    ChargeRefunded:      _on_charge_refunded,
    AccountCreated:      _on_account_created,
    AccountUpdated:      _on_account_updated,
    AccountDeauthorized: _on_account_deauthorized,
    UnhandledEvent:      _on_unhandled,
}

_missing = set(EVENT_TYPES.values()) - set(HANDLERS)
if _missing:
    raise ImproperlyConfigured(
        f"No webhook handler for: {', '.join(sorted(c.__name__ for c in _missing))}"
    )


# ── Entry point ───────────────────────────────────────────────────────────────

def _verify(payload: bytes, signature: str):
    """Returns a Reject on failure, None when the delivery is authentic."""
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error('Webhook: STRIPE_WEBHOOK_SECRET is not configured')
        return Reject('Webhook secret not configured', status_code=500)
    if not signature:
        logger.warning('Webhook security: request without Stripe-Signature header rejected')
        return Reject('Missing signature')
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as exc:
        logger.warning('Webhook security: signature verification failed: %s', exc)
        return Reject('Invalid signature')
    except ValueError as exc:
        logger.warning('Webhook: malformed payload: %s', exc)
        return Reject('Malformed payload')
    return None


def _apply(event) -> str:
    with transaction.atomic():
        detail = HANDLERS[type(event)](event)
        ProcessedWebhookEvent.objects.create(
            event_id=event.id,
            event_type=event.type,
            payment_intent_id=event.payment_intent_ref,
            result=detail[:255],
        )
    return detail


def handle_webhook_event(payload, signature: str) -> WebhookResult:
    """
    Verify, parse, deduplicate and apply one delivery. Never raises.
    """
    rejected = _verify(payload, signature)
    if rejected is not None:
        return rejected

    try:
        body = json.loads(payload)
    except (TypeError, ValueError):
        return Reject('Malformed payload')

    try:
        event = parse_event(body)
    except ValidationError as exc:
        logger.warning('Webhook: rejected %s: %s', body.get('type') if isinstance(body, dict) else '?', exc)
        return Reject(str(exc))

    if ProcessedWebhookEvent.objects.filter(event_id=event.id).exists():
        logger.info('Webhook event %s already processed — skipping.', event.id)
        return Ack('duplicate')

    try:
        detail = _apply(event)
    except IntegrityError as exc:
        if ProcessedWebhookEvent.objects.filter(event_id=event.id).exists():
            # A concurrent delivery of the same event won
            return Ack('duplicate')
        logger.exception('Webhook %s (%s) failed: %s', event.id, event.type, exc)
        return Reject('Processing failed', status_code=500)
    except NotFoundError as exc:
        # Rolled back; the event id stays unrecorded
        logger.info('Webhook %s (%s) not recorded: %s', event.id, event.type, exc)
        return Ack(str(exc))
    except ValidationError as exc:
        logger.warning('Webhook %s (%s) rejected: %s', event.id, event.type, exc)
        return Reject(str(exc))
    except Exception as exc:
        # Rolled back; Stripe retries on 5xx
        logger.exception('Webhook %s (%s) failed: %s', event.id, event.type, exc)
        return Reject('Processing failed', status_code=500)

    logger.info('Webhook %s (%s): %s', event.id, event.type, detail)
    return Ack(detail)
