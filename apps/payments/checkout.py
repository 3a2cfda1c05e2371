"""
Checkout — asks Stripe for a PaymentIntent that pays the barber's connected
account, with the platform's cut taken as an application fee.

Public API:
  compute_fee_split(price, developer=False, payment_type='full')
  create_payment_intent(barber, service, start_time, ..., payment_type='full')

Fee model: a flat processing fee (PLATFORM_PROCESSING_FEE_CENTS) is added to
every booking. The platform keeps PLATFORM_FEE_SHARE of it and the rest goes
to the barber. Developer accounts pay no fee. With payment_type='fee' the
client pays only the processing fee up front and settles the service in person.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

import stripe
from django.conf import settings

from apps.core.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_TYPES = ('full', 'fee')


@dataclass(frozen=True)
class FeeSplit:
    total_cents: int            # charged to the client
    platform_fee_cents: int     # processing fee added on top of the service
    barber_share_cents: int     # barber's part of the processing fee
    application_fee_cents: int  # platform's part, kept as the Stripe application fee
    transfer_cents: int         # what reaches the barber's connected account


def _to_cents(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_fee_split(price, developer: bool = False, payment_type: str = 'full') -> FeeSplit:
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f'Unknown payment type {payment_type!r}.', field='payment_type')
    service_cents = _to_cents(price)
    if service_cents < 0:
        raise ValidationError('Price cannot be negative.', field='price')

    if developer:
        fee = platform_share = barber_share = 0
    else:
        fee = settings.PLATFORM_PROCESSING_FEE_CENTS
        platform_share = int(
            (Decimal(fee) * Decimal(str(settings.PLATFORM_FEE_SHARE))).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
        )
        barber_share = fee - platform_share

    if payment_type == 'fee':
        total = fee
        transfer = barber_share
    else:
        total = service_cents + fee
        transfer = service_cents + barber_share

    return FeeSplit(
        total_cents=total,
        platform_fee_cents=fee,
        barber_share_cents=barber_share,
        application_fee_cents=platform_share,
        transfer_cents=transfer,
    )


def create_payment_intent(barber, service, start_time, *, client_id=None, guest_name='',
                          guest_email='', guest_phone='', notes='', payment_type='full'):
    """
    Create the PaymentIntent for a booking that does not exist yet. The
    metadata carries everything the webhook needs to create the booking
    once the payment succeeds. Returns the Stripe PaymentIntent.
    """
    if service.barber_id != barber.pk:
        raise ValidationError('Service is not offered by this barber.', field='service_id')
    if not barber.stripe_account_id or not barber.stripe_account_ready:
        raise ValidationError('This barber is not ready to accept payments yet.', field='barber_id')

    split = compute_fee_split(service.price, developer=barber.is_developer, payment_type=payment_type)
    metadata = {
        'barberId': str(barber.pk),
        'serviceId': str(service.pk),
        'date': start_time.isoformat(),
        'notes': notes or '',
        'guestName': guest_name or '',
        'guestEmail': guest_email or '',
        'guestPhone': guest_phone or '',
        'clientId': str(client_id) if client_id else 'guest',
        'paymentType': payment_type,
        'platformFee': str(split.platform_fee_cents),
        'isDeveloper': 'true' if barber.is_developer else 'false',
    }

    try:
        intent = stripe.PaymentIntent.create(
            api_key=settings.STRIPE_SECRET_KEY,
            amount=split.total_cents,
            currency=settings.STRIPE_CURRENCY,
            application_fee_amount=split.application_fee_cents,
            transfer_data={'destination': barber.stripe_account_id},
            automatic_payment_methods={'enabled': True},
            metadata=metadata,
        )
    except stripe.StripeError as exc:
        logger.exception('PaymentIntent creation failed for barber %s: %s', barber.pk, exc)
        raise UpstreamError('Could not connect to the payment processor. Please try again.') from exc

    logger.info('PaymentIntent %s created for barber %s (%s cents)', intent.id, barber.pk, split.total_cents)
    return intent
