import uuid
from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.barbers.models import Barber, StripeAccountStatus
from apps.bookings.models import Booking, BookingStatus
from apps.core.timeutils import at_local_time
from apps.payments.reconciler import handle_webhook_event
from apps.scheduling.store import create_slot_template
from apps.services.models import Service

from .helpers import sign_payload


@pytest.fixture
def client_user(django_user_model):
    return django_user_model.objects.create_user(
        username='marcus', email='marcus@example.com', password='pw',
        first_name='Marcus', last_name='Hill',
    )


@pytest.fixture
def barber_user(django_user_model):
    return django_user_model.objects.create_user(
        username='dre', email='dre@example.com', password='pw',
    )


@pytest.fixture
def barber(barber_user):
    return Barber.objects.create(
        user=barber_user,
        business_name='Fresh Fades',
        location='12 Main St',
        stripe_account_id='acct_fresh',
        stripe_account_status=StripeAccountStatus.ACTIVE,
        stripe_account_ready=True,
    )


@pytest.fixture
def service(barber):
    return Service.objects.create(
        barber=barber, name='Haircut', duration_minutes=30, price=Decimal('40.00'),
    )


@pytest.fixture
def monday():
    """A Monday between 2 and 8 days from today, inside the default advance window."""
    today = timezone.localdate()
    days_ahead = (0 - today.weekday()) % 7
    if days_ahead < 2:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


@pytest.fixture
def at():
    def _at(day, hhmm):
        return at_local_time(day, time.fromisoformat(hhmm))
    return _at


@pytest.fixture
def monday_template(barber):
    return create_slot_template(
        barber,
        day_of_week=1,
        start_time=time(9, 0),
        end_time=time(17, 0),
        slot_duration_minutes=30,
    )


@pytest.fixture
def make_booking(barber, service):
    """Insert a booking row directly, bypassing admission."""
    def _make(start, status=BookingStatus.CONFIRMED, client=None, **fields):
        identity = {'client': client} if client else {
            'guest_name': 'Jordan Lee',
            'guest_email': 'jordan@example.com',
            'guest_phone': '555-0100',
        }
        return Booking.objects.create(
            barber=fields.pop('barber', barber),
            service=fields.pop('service', service),
            start_time=start,
            end_time=start + timedelta(minutes=service.duration_minutes),
            status=status,
            payment_intent_id=fields.pop('payment_intent_id', f'pi_{uuid.uuid4().hex[:16]}'),
            price=fields.pop('price', service.price),
            **identity,
            **fields,
        )
    return _make


@pytest.fixture
def deliver():
    """Sign and hand an event body to the reconciler."""
    def _deliver(payload: bytes):
        return handle_webhook_event(payload, sign_payload(payload))
    return _deliver
