"""
Typed Stripe webhook events.

parse_event() turns a verified event body into one of the dataclasses below.
Event types the reconciler does not act on become UnhandledEvent so they can
be acknowledged without touching any state. A handled type with a missing
required field raises ValidationError.
"""
from dataclasses import dataclass, field

from apps.core.exceptions import ValidationError


def _text(obj: dict, key: str, required: bool = True, label: str = None) -> str:
    value = obj.get(key)
    if isinstance(value, dict):
        # Expanded objects (e.g. a payment_intent expanded on a session)
        value = value.get('id')
    if value in (None, ''):
        if required:
            raise ValidationError(f'Missing required field {label or key}.', field=label or key)
        return ''
    return str(value)


def _cents(obj: dict, key: str, required: bool = True) -> int:
    value = obj.get(key)
    if value is None:
        if required:
            raise ValidationError(f'Missing required field {key}.', field=key)
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{key} must be an integer amount in cents.', field=key)
    return value


def _metadata(obj: dict) -> dict:
    metadata = obj.get('metadata') or {}
    if not isinstance(metadata, dict):
        raise ValidationError('metadata must be an object.', field='metadata')
    return {k: '' if v is None else str(v) for k, v in metadata.items()}


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    type: str

    @property
    def payment_intent_ref(self) -> str:
        return getattr(self, 'payment_intent_id', '') or ''


# ── Bookings ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CheckoutCompleted(WebhookEvent):
    session_id: str
    payment_intent_id: str
    booking_id: str
    amount_total: int
    currency: str
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        metadata = _metadata(obj)
        payment_intent_id = _text(obj, 'payment_intent', required=False)
        booking_id = metadata.get('bookingId', '')
        if not payment_intent_id and not booking_id:
            raise ValidationError('Checkout session has neither a payment intent nor a booking id.',
                                  field='metadata.bookingId')
        return cls(
            id=event_id,
            type=event_type,
            session_id=_text(obj, 'id'),
            payment_intent_id=payment_intent_id,
            booking_id=booking_id,
            amount_total=_cents(obj, 'amount_total', required=False),
            currency=_text(obj, 'currency', required=False) or 'usd',
            metadata=metadata,
        )


@dataclass(frozen=True)
class CheckoutExpired(WebhookEvent):
    session_id: str
    payment_intent_id: str
    booking_id: str

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        metadata = _metadata(obj)
        payment_intent_id = _text(obj, 'payment_intent', required=False)
        booking_id = metadata.get('bookingId', '')
        if not payment_intent_id and not booking_id:
            raise ValidationError('Checkout session has neither a payment intent nor a booking id.',
                                  field='metadata.bookingId')
        return cls(
            id=event_id,
            type=event_type,
            session_id=_text(obj, 'id'),
            payment_intent_id=payment_intent_id,
            booking_id=booking_id,
        )


@dataclass(frozen=True)
class PaymentSucceeded(WebhookEvent):
    payment_intent_id: str
    amount: int
    application_fee_amount: int
    currency: str
    status: str
    destination: str
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        transfer_data = obj.get('transfer_data') or {}
        return cls(
            id=event_id,
            type=event_type,
            payment_intent_id=_text(obj, 'id'),
            amount=_cents(obj, 'amount'),
            application_fee_amount=_cents(obj, 'application_fee_amount', required=False),
            currency=_text(obj, 'currency', required=False) or 'usd',
            status=_text(obj, 'status', required=False) or 'succeeded',
            destination=_text(transfer_data, 'destination', required=False) if isinstance(transfer_data, dict) else '',
            metadata=_metadata(obj),
        )


@dataclass(frozen=True)
class PaymentFailed(WebhookEvent):
    payment_intent_id: str

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        return cls(id=event_id, type=event_type, payment_intent_id=_text(obj, 'id'))


@dataclass(frozen=True)
class ChargeRefunded(WebhookEvent):
    charge_id: str
    payment_intent_id: str
    amount: int
    amount_refunded: int
    currency: str
    destination: str

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        # `transfer` is a tr_ id; the connected account is the transfer destination
        transfer_data = obj.get('transfer_data')
        if isinstance(transfer_data, dict) and transfer_data.get('destination'):
            destination = _text(transfer_data, 'destination')
        else:
            destination = _text(obj, 'destination', required=False)
        return cls(
            id=event_id,
            type=event_type,
            charge_id=_text(obj, 'id'),
            payment_intent_id=_text(obj, 'payment_intent'),
            amount=_cents(obj, 'amount'),
            amount_refunded=_cents(obj, 'amount_refunded'),
            currency=_text(obj, 'currency', required=False) or 'usd',
            destination=str(destination),
        )

    @property
    def is_full(self) -> bool:
        return self.amount_refunded >= self.amount


# ── Connected accounts ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AccountCreated(WebhookEvent):
    account_id: str
    barber_id: str

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        return cls(
            id=event_id,
            type=event_type,
            account_id=_text(obj, 'id'),
            barber_id=_metadata(obj).get('barber_id', ''),
        )


@dataclass(frozen=True)
class AccountUpdated(WebhookEvent):
    account_id: str
    charges_enabled: bool
    details_submitted: bool

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        return cls(
            id=event_id,
            type=event_type,
            account_id=_text(obj, 'id'),
            charges_enabled=bool(obj.get('charges_enabled')),
            details_submitted=bool(obj.get('details_submitted')),
        )


@dataclass(frozen=True)
class AccountDeauthorized(WebhookEvent):
    account_id: str

    @classmethod
    def from_object(cls, event_id, event_type, obj, body):
        # Connect events name the connected account at the top level
        return cls(id=event_id, type=event_type, account_id=_text(body, 'account'))


@dataclass(frozen=True)
class UnhandledEvent(WebhookEvent):
    pass


EVENT_TYPES = {
    'checkout.session.completed':      CheckoutCompleted,
    'checkout.session.expired':        CheckoutExpired,
    'payment_intent.succeeded':        PaymentSucceeded,
    'payment_intent.payment_failed':   PaymentFailed,
    'charge.refunded':                 ChargeRefunded,
    'account.created':                 AccountCreated,
    'account.updated':                 AccountUpdated,
    'account.application.deauthorized': AccountDeauthorized,
}


def parse_event(body) -> WebhookEvent:
    """Build the typed event for a decoded Stripe event body."""
    if not isinstance(body, dict):
        raise ValidationError('Event body must be a JSON object.')
    event_id = _text(body, 'id')
    event_type = _text(body, 'type')

    event_class = EVENT_TYPES.get(event_type)
    if event_class is None:
        return UnhandledEvent(id=event_id, type=event_type)

    data = body.get('data')
    obj = data.get('object') if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        raise ValidationError('Event has no data.object.', field='data.object')
    return event_class.from_object(event_id, event_type, obj, body)
