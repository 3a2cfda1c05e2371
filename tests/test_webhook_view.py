import pytest
from django.test import Client
from django.urls import reverse

from apps.bookings.models import BookingStatus

from .helpers import sign_payload, stripe_event

pytestmark = pytest.mark.django_db

URL = '/payments/webhook/'


def test_url_name():
    assert reverse('payments:webhook') == URL


def test_get_not_allowed(client):
    assert client.get(URL).status_code == 405


def test_signed_delivery(client, make_booking, monday, at):
    booking = make_booking(at(monday, '10:00'), status=BookingStatus.PENDING, payment_intent_id='pi_1')
    payload = stripe_event('payment_intent.succeeded', {
        'id': 'pi_1', 'object': 'payment_intent', 'amount': 4338, 'currency': 'usd',
    })

    response = client.post(URL, data=payload, content_type='application/json',
                           HTTP_STRIPE_SIGNATURE=sign_payload(payload))

    assert response.status_code == 200
    assert response.json() == {'received': True, 'detail': 'booking confirmed'}
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CONFIRMED


def test_bad_signature(client):
    payload = stripe_event('payment_intent.succeeded', {'id': 'pi_1', 'amount': 1})

    response = client.post(URL, data=payload, content_type='application/json',
                           HTTP_STRIPE_SIGNATURE='t=1,v1=deadbeef')

    assert response.status_code == 400
    assert response.json()['received'] is False


def test_csrf_exempt():
    payload = stripe_event('customer.created', {'id': 'cus_1'})

    response = Client(enforce_csrf_checks=True).post(
        URL, data=payload, content_type='application/json', HTTP_STRIPE_SIGNATURE=sign_payload(payload),
    )

    assert response.status_code == 200
