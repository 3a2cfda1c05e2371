from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
import stripe

from apps.core.exceptions import UpstreamError, ValidationError
from apps.payments.checkout import compute_fee_split, create_payment_intent

pytestmark = pytest.mark.django_db


class TestFeeSplit:
    def test_full_payment(self):
        split = compute_fee_split(Decimal('40.00'))

        assert split.total_cents == 4338
        assert split.platform_fee_cents == 338
        assert split.application_fee_cents == 203
        assert split.barber_share_cents == 135
        assert split.transfer_cents == 4135

    def test_fee_only(self):
        split = compute_fee_split('40.00', payment_type='fee')

        assert split.total_cents == 338
        assert split.transfer_cents == 135

    def test_developer_pays_no_fee(self):
        split = compute_fee_split('25.50', developer=True)

        assert (split.total_cents, split.application_fee_cents, split.transfer_cents) == (2550, 0, 2550)

    def test_platform_keeps_the_difference(self):
        split = compute_fee_split('19.99')
        assert split.total_cents - split.transfer_cents == split.application_fee_cents

    def test_fee_settings_are_read_at_call_time(self, settings):
        settings.PLATFORM_PROCESSING_FEE_CENTS = 100
        settings.PLATFORM_FEE_SHARE = 0.5

        split = compute_fee_split('10')

        assert (split.total_cents, split.application_fee_cents, split.barber_share_cents) == (1100, 50, 50)

    def test_unknown_payment_type(self):
        with pytest.raises(ValidationError):
            compute_fee_split('10', payment_type='deposit')

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            compute_fee_split('-1')


class TestCreatePaymentIntent:
    @pytest.fixture
    def create(self):
        with mock.patch.object(stripe.PaymentIntent, 'create', return_value=SimpleNamespace(id='pi_new')) as create:
            yield create

    def test_guest_intent(self, create, barber, service, monday, at):
        start = at(monday, '10:00')

        intent = create_payment_intent(
            barber, service, start,
            guest_name='Jordan Lee', guest_email='jordan@example.com', guest_phone='555-0100',
        )

        assert intent.id == 'pi_new'
        kwargs = create.call_args.kwargs
        assert kwargs['amount'] == 4338
        assert kwargs['application_fee_amount'] == 203
        assert kwargs['transfer_data'] == {'destination': 'acct_fresh'}
        assert kwargs['currency'] == 'usd'
        metadata = kwargs['metadata']
        assert metadata['barberId'] == str(barber.pk)
        assert metadata['serviceId'] == str(service.pk)
        assert metadata['date'] == start.isoformat()
        assert metadata['clientId'] == 'guest'
        assert metadata['guestEmail'] == 'jordan@example.com'
        assert metadata['isDeveloper'] == 'false'

    def test_client_intent(self, create, barber, service, client_user, monday, at):
        create_payment_intent(barber, service, at(monday, '10:00'), client_id=client_user.pk, payment_type='fee')

        kwargs = create.call_args.kwargs
        assert kwargs['amount'] == 338
        assert kwargs['metadata']['clientId'] == str(client_user.pk)
        assert kwargs['metadata']['paymentType'] == 'fee'

    def test_barber_without_payout_account(self, create, barber, service, monday, at):
        barber.stripe_account_ready = False
        barber.save()

        with pytest.raises(ValidationError) as exc:
            create_payment_intent(barber, service, at(monday, '10:00'), client_id=1)

        assert exc.value.field == 'barber_id'
        create.assert_not_called()

    def test_processor_error(self, barber, service, monday, at):
        with mock.patch.object(stripe.PaymentIntent, 'create', side_effect=stripe.StripeError('boom')):
            with pytest.raises(UpstreamError):
                create_payment_intent(barber, service, at(monday, '10:00'), client_id=1)
