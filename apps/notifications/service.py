"""
Notification service — in-app notifications for bookings.

Fire-and-forget: a failed notification is logged and discarded, it never
rolls back the booking change that triggered it.

Public API:
  create_notification(user, title, message, type, booking=None)
  notify_booking_created(booking)
  notify_status_changed(booking)
  notify_payment(booking, succeeded)
"""
import logging

from django.db import transaction

from apps.core.timeutils import fmt_time, to_local

from . import emails
from .models import Notification, NotificationType

logger = logging.getLogger(__name__)

STATUS_TITLES = {
    'confirmed': ('Booking Confirmed', 'Your booking has been confirmed', NotificationType.BOOKING_CONFIRMED),
    'cancelled': ('Booking Cancelled', 'Your booking has been cancelled', NotificationType.BOOKING_CANCELLED),
}


def _when(booking) -> str:
    local = to_local(booking.start_time)
    return f"{local.strftime('%b %d, %Y')} at {fmt_time(local)}"


def create_notification(user, title: str, message: str, type: str, booking=None):
    """Create one notification row. Returns it, or None if it could not be stored."""
    if user is None:
        logger.debug('Notification "%s" skipped — no user account', title)
        return None
    try:
        # Savepoint: a failed insert must not poison the caller's transaction
        with transaction.atomic():
            return Notification.objects.create(
                user=user, title=title, message=message, type=type, booking=booking,
            )
    except Exception as exc:
        logger.exception('Failed to create notification "%s" for user %s: %s', title, user.pk, exc)
        return None


def notify_booking_created(booking) -> None:
    """New Booking to the barber; Booking Confirmation to the client if registered."""
    when = _when(booking)
    create_notification(
        user=booking.barber.user,
        title='New Booking',
        message=f'New booking request for {when}',
        type=NotificationType.BOOKING_CREATED,
        booking=booking,
    )
    if booking.client_id:
        create_notification(
            user=booking.client,
            title='Booking Confirmation',
            message=f'Your booking has been created for {when}',
            type=NotificationType.BOOKING_CREATED,
            booking=booking,
        )


def notify_status_changed(booking) -> None:
    """
    Status-change notice to the client, worded by the new status. Guests get
    an e-mail on confirmation and cancellation instead, after commit.
    """
    if booking.is_guest:
        # Sent only once the surrounding transaction commits
        if booking.status == 'confirmed':
            transaction.on_commit(lambda: emails.send_booking_confirmed(booking))
        elif booking.status == 'cancelled':
            transaction.on_commit(lambda: emails.send_booking_cancelled(booking))
        return

    title, message, kind = STATUS_TITLES.get(booking.status, (
        'Booking Status Updated',
        f'Your booking status has been updated to {booking.get_status_display().lower()}',
        NotificationType.BOOKING_STATUS_UPDATED,
    ))
    create_notification(
        user=booking.client,
        title=title,
        message=message,
        type=kind,
        booking=booking,
    )


def notify_payment(booking, succeeded: bool) -> None:
    """Payment outcome notice to the barber, and to the client when registered."""
    if succeeded:
        title, kind = 'Payment Received', NotificationType.PAYMENT_SUCCESS
        message = f'Payment of ${booking.price} received for the booking on {_when(booking)}'
    else:
        title, kind = 'Payment Failed', NotificationType.PAYMENT_FAILED
        message = f'Payment failed for the booking on {_when(booking)}'

    create_notification(user=booking.barber.user, title=title, message=message, type=kind, booking=booking)
    if booking.client_id:
        create_notification(user=booking.client, title=title, message=message, type=kind, booking=booking)
