from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.core import mail
from django.db import DatabaseError

from apps.bookings import engine
from apps.bookings.admission import RejectReason
from apps.bookings.engine import (
    CreateBookingInput,
    cancel_booking,
    complete_booking,
    confirm_booking,
    create_booking,
    create_confirmed_booking,
    get_booking,
    transition,
    update_booking,
)
from apps.bookings.models import Booking, BookingStatus, BookingStatusLog, PaymentStatus
from apps.core.exceptions import (
    ConflictError,
    ConstraintViolation,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from apps.notifications.models import Notification
from apps.scheduling import store
from apps.services.models import Service

pytestmark = pytest.mark.django_db


@pytest.fixture
def booking_input(barber, service, monday, at, monday_template):
    def _input(hhmm='10:00', **overrides):
        fields = {
            'barber_id': barber.pk,
            'service_id': service.pk,
            'date': at(monday, hhmm).isoformat(),
            'price': '40.00',
            'payment_intent_id': f'pi_{hhmm.replace(":", "")}',
            'guest_name': 'Jordan Lee',
            'guest_email': 'jordan@example.com',
            'guest_phone': '555-0100',
        }
        fields.update(overrides)
        return CreateBookingInput(**fields)
    return _input


def _titles(user):
    return sorted(Notification.objects.filter(user=user).values_list('title', flat=True))


class TestCreateBooking:
    def test_guest_booking(self, booking_input, barber, monday, at):
        booking = create_booking(booking_input())

        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.client is None
        assert booking.guest_name == 'Jordan Lee'
        assert booking.start_time == at(monday, '10:00')
        assert booking.end_time == at(monday, '10:30')
        assert booking.price == Decimal('40.00')

        log = BookingStatusLog.objects.get(booking=booking)
        assert (log.from_status, log.to_status, log.changed_by) == ('', 'pending', 'client')

    def test_client_booking(self, booking_input, client_user):
        booking = create_booking(booking_input(
            client_id=client_user.pk, guest_name='', guest_email='', guest_phone='',
        ))

        assert booking.client == client_user
        assert booking.guest_name == ''

    def test_naive_date_is_read_in_local_time(self, booking_input, monday, at):
        naive = at(monday, '10:00').replace(tzinfo=None)

        booking = create_booking(booking_input(date=naive.isoformat()))

        assert booking.start_time == at(monday, '10:00')

    @pytest.mark.parametrize('with_client,guest', [
        (True, {}),                                                     # client and guest
        (False, {'guest_name': '', 'guest_email': '', 'guest_phone': ''}),
        (False, {'guest_phone': ''}),                                   # partial guest triple
    ])
    def test_identity_must_be_exactly_one_path(self, booking_input, client_user, with_client, guest):
        client_id = client_user.pk if with_client else None

        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(client_id=client_id, **guest))

        assert exc.value.field == 'client_id'
        assert not Booking.objects.exists()

    def test_unknown_client(self, booking_input):
        with pytest.raises(NotFoundError):
            create_booking(booking_input(client_id=999999, guest_name='', guest_email='', guest_phone=''))

    @pytest.mark.parametrize('field,value', [
        ('barber_id', '8f1c1c2a-0000-4000-8000-000000000000'),
        ('service_id', 'not-a-uuid'),
    ])
    def test_unknown_barber_or_service(self, booking_input, field, value):
        with pytest.raises(NotFoundError):
            create_booking(booking_input(**{field: value}))

    def test_negative_price(self, booking_input):
        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(price='-1.00'))
        assert exc.value.field == 'price'

    @pytest.mark.parametrize('price', ['NaN', 'Infinity', '-inf', 'forty'])
    def test_price_must_be_a_finite_number(self, booking_input, price):
        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(price=price))
        assert exc.value.field == 'price'

    def test_fee_must_be_a_finite_number(self, booking_input):
        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(price='40', platform_fee='nan'))
        assert exc.value.field == 'platform_fee'

    @pytest.mark.parametrize('date', ['2030-13-01T10:00:00', '2030-02-30T10:00:00', 'next monday'])
    def test_invalid_date(self, booking_input, date):
        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(date=date))
        assert exc.value.field == 'date'
        assert not Booking.objects.exists()

    def test_start_in_the_past(self, booking_input, monday, at):
        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(), now=at(monday, '11:00'))
        assert exc.value.field == 'date'

    def test_payment_intent_used_once(self, booking_input):
        create_booking(booking_input('10:00', payment_intent_id='pi_same'))

        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input('14:00', payment_intent_id='pi_same'))

        assert exc.value.field == 'payment_intent_id'

    def test_service_of_another_barber(self, booking_input, django_user_model):
        from apps.barbers.models import Barber
        other = Barber.objects.create(
            user=django_user_model.objects.create_user(username='kim', password='pw'),
            business_name='Kim Cuts',
        )
        foreign = Service.objects.create(barber=other, name='Shave', duration_minutes=15, price=Decimal('20'))

        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(service_id=foreign.pk))

        assert exc.value.field == 'service_id'

    def test_inactive_service(self, booking_input, service):
        service.is_active = False
        service.save()

        with pytest.raises(ValidationError):
            create_booking(booking_input())

    def test_admission_rejection_carries_reason(self, booking_input):
        with pytest.raises(ConflictError) as exc:
            create_booking(booking_input('07:00'))

        assert exc.value.reason == RejectReason.OUTSIDE_AVAILABILITY
        assert not Booking.objects.exists()

    def test_second_booking_for_same_time_conflicts(self, booking_input):
        create_booking(booking_input('10:00', payment_intent_id='pi_a'))

        with pytest.raises(ConflictError) as exc:
            create_booking(booking_input('10:00', payment_intent_id='pi_b'))

        assert exc.value.reason == RejectReason.INTERVAL_TOO_SHORT

    def test_second_booking_fills_the_slot_without_interval(self, booking_input, barber):
        store.update_constraints(barber, min_interval_minutes=0)
        create_booking(booking_input('10:00', payment_intent_id='pi_a'))

        with pytest.raises(ConflictError) as exc:
            create_booking(booking_input('10:00', payment_intent_id='pi_b'))

        assert exc.value.reason == RejectReason.SLOT_FULL

    def test_lost_race_is_a_constraint_violation(self, booking_input, make_booking, monday, at):
        make_booking(at(monday, '10:00'))

        # Admission saw a free slot, the insert finds it taken
        with mock.patch.object(engine, 'ensure_admissible'):
            with pytest.raises(ConstraintViolation) as exc:
                create_booking(booking_input('10:00'))

        assert exc.value.reason == RejectReason.TIME_CONFLICT
        assert Booking.objects.count() == 1


class TestFeeSplit:
    def test_consistent_split_is_stored(self, booking_input):
        booking = create_booking(booking_input(price='100', platform_fee='20', barber_payout='80'))

        booking.refresh_from_db()
        assert booking.price == Decimal('100.00')
        assert booking.platform_fee == Decimal('20.00')
        assert booking.barber_payout == Decimal('80.00')

    def test_inconsistent_split_is_rejected(self, booking_input):
        with pytest.raises(ValidationError) as exc:
            create_booking(booking_input(price='100', platform_fee='20', barber_payout='70'))

        assert exc.value.field == 'platform_fee'
        assert not Booking.objects.exists()

    @pytest.mark.parametrize('given,expected', [
        ({'platform_fee': '20'}, (Decimal('20.00'), Decimal('80.00'))),
        ({'barber_payout': '80'}, (Decimal('20.00'), Decimal('80.00'))),
        ({}, (None, None)),
    ])
    def test_missing_side_is_derived(self, booking_input, given, expected):
        booking = create_booking(booking_input(price='100', **given))

        assert (booking.platform_fee, booking.barber_payout) == expected
        assert booking.price == Decimal('100.00')

    def test_fee_above_price(self, booking_input):
        with pytest.raises(ValidationError):
            create_booking(booking_input(price='10', platform_fee='12'))


class TestCreationNotifications:
    def test_client_and_barber_are_notified(self, booking_input, client_user, barber_user):
        create_booking(booking_input(client_id=client_user.pk, guest_name='', guest_email='', guest_phone=''))

        assert _titles(barber_user) == ['New Booking']
        assert _titles(client_user) == ['Booking Confirmation']

    def test_guest_booking_notifies_only_the_barber(self, booking_input, barber_user):
        create_booking(booking_input())

        assert _titles(barber_user) == ['New Booking']
        assert Notification.objects.count() == 1

    def test_notification_failure_keeps_the_booking(self, booking_input):
        with mock.patch.object(Notification.objects, 'create', side_effect=DatabaseError('down')):
            booking = create_booking(booking_input())

        assert Booking.objects.filter(pk=booking.pk).exists()
        assert BookingStatusLog.objects.filter(booking=booking).count() == 1


class TestCreateConfirmed:
    def test_confirmed_without_admission(self, booking_input, client_user):
        # 07:00 is outside every template
        booking = create_confirmed_booking(booking_input(
            '07:00', client_id=client_user.pk, guest_name='', guest_email='', guest_phone='',
        ))

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.SUCCEEDED
        assert BookingStatusLog.objects.get(booking=booking).changed_by == 'webhook'
        assert _titles(client_user) == ['Booking Confirmation', 'Booking Confirmed']

    def test_taken_start_is_a_constraint_violation(self, booking_input, make_booking, monday, at):
        make_booking(at(monday, '10:00'))

        with pytest.raises(ConstraintViolation):
            create_confirmed_booking(booking_input('10:00'))


class TestUpdateBooking:
    @pytest.fixture
    def booking(self, booking_input, client_user):
        return create_booking(booking_input(
            client_id=client_user.pk, guest_name='', guest_email='', guest_phone='',
        ))

    @pytest.mark.parametrize('action,status,title', [
        (confirm_booking, BookingStatus.CONFIRMED, 'Booking Confirmed'),
        (cancel_booking, BookingStatus.CANCELLED, 'Booking Cancelled'),
    ])
    def test_status_changes_notify_client(self, booking, client_user, action, status, title):
        updated = action(booking, changed_by='barber')

        assert updated.status == status
        assert Notification.objects.filter(user=client_user, title=title).exists()
        log = BookingStatusLog.objects.filter(booking=booking).last()
        assert (log.from_status, log.to_status, log.changed_by) == ('pending', status, 'barber')

    def test_completion_uses_generic_title(self, booking, client_user):
        confirm_booking(booking)
        complete_booking(booking)

        notice = Notification.objects.get(user=client_user, title='Booking Status Updated')
        assert notice.message.endswith('completed')

    def test_guest_confirmation_sends_email(self, booking_input, django_capture_on_commit_callbacks):
        booking = create_booking(booking_input())

        with django_capture_on_commit_callbacks(execute=True):
            confirm_booking(booking)

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ['jordan@example.com']
        assert mail.outbox[0].subject.startswith('Booking Confirmed')

    def test_disallowed_transition(self, booking):
        with pytest.raises(InvalidTransition):
            complete_booking(booking)

        booking.refresh_from_db()
        assert booking.status == BookingStatus.PENDING

    @pytest.mark.parametrize('terminal', [
        BookingStatus.COMPLETED, BookingStatus.CANCELLED,
        BookingStatus.REFUNDED, BookingStatus.EXPIRED,
    ])
    def test_terminal_bookings_never_change_status(self, make_booking, monday, at, terminal):
        booking = make_booking(at(monday, '10:00'), status=terminal)

        for target in BookingStatus.values:
            with pytest.raises(InvalidTransition):
                update_booking(booking, {'status': target})
            with pytest.raises(InvalidTransition):
                transition(booking, target, changed_by='system')

        booking.refresh_from_db()
        assert booking.status == terminal
        assert not BookingStatusLog.objects.filter(booking=booking).exists()

    def test_notes_only_update_writes_no_log(self, booking):
        updated = update_booking(booking, {'notes': 'Skin fade please'})

        assert updated.notes == 'Skin fade please'
        assert BookingStatusLog.objects.filter(booking=booking).count() == 1

    def test_reschedule_into_free_time(self, booking, monday, at):
        updated = update_booking(booking, {'start_time': at(monday, '13:00')})

        assert updated.start_time == at(monday, '13:00')
        assert updated.end_time == at(monday, '13:30')

    def test_reschedule_next_to_itself(self, booking, monday, at):
        # Only this booking occupies the neighbourhood, so it must not block itself
        updated = update_booking(booking, {'start_time': at(monday, '10:30')})
        assert updated.start_time == at(monday, '10:30')

    def test_reschedule_into_conflict(self, booking, make_booking, monday, at):
        make_booking(at(monday, '13:00'))

        with pytest.raises(ConflictError):
            update_booking(booking, {'start_time': at(monday, '13:00')})

        booking.refresh_from_db()
        assert booking.start_time == at(monday, '10:00')

    def test_reschedule_terminal_booking(self, make_booking, monday, at):
        booking = make_booking(at(monday, '10:00'), status=BookingStatus.CANCELLED)

        with pytest.raises(InvalidTransition):
            update_booking(booking, {'start_time': at(monday, '13:00')})

    def test_unknown_field(self, booking):
        with pytest.raises(ValidationError) as exc:
            update_booking(booking, {'price': '1.00'})
        assert exc.value.field == 'price'


class TestTransition:
    def test_payment_status_moves_with_status(self, make_booking, monday, at):
        booking = make_booking(at(monday, '10:00'), status=BookingStatus.PENDING)

        updated = transition(booking, BookingStatus.CONFIRMED, changed_by='webhook',
                             payment_status=PaymentStatus.SUCCEEDED)

        assert (updated.status, updated.payment_status) == ('confirmed', 'succeeded')
        assert not Notification.objects.exists()

    def test_failed_booking_cannot_retake_a_taken_start(self, make_booking, monday, at):
        failed = make_booking(at(monday, '10:00'), status=BookingStatus.FAILED)
        make_booking(at(monday, '10:00'))

        with pytest.raises(ConstraintViolation):
            transition(failed, BookingStatus.CONFIRMED, changed_by='webhook')


class TestGetBooking:
    def test_found(self, make_booking, monday, at):
        booking = make_booking(at(monday, '10:00'))
        assert get_booking(booking.pk) == booking

    @pytest.mark.parametrize('booking_id', ['8f1c1c2a-0000-4000-8000-000000000000', 'nope'])
    def test_missing(self, booking_id):
        with pytest.raises(NotFoundError):
            get_booking(booking_id)
