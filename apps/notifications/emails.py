"""
Guest e-mails. Guests have no user account, so they get an e-mail where a
registered client would get an in-app notification.

All functions are synchronous and never raise.

Public API:
  send_booking_confirmed(booking)
  send_booking_cancelled(booking)
"""
import logging
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from apps.core.timeutils import fmt_time, to_local

logger = logging.getLogger(__name__)

# kind -> subject prefix; templates live at emails/booking_<kind>.{txt,html}
SUBJECTS = {
    'confirmed': 'Booking Confirmed',
    'cancelled': 'Booking Cancelled',
}


def _booking_context(booking) -> dict:
    start = to_local(booking.start_time)
    return {
        'guest_name':    booking.customer_name,
        'service_name':  booking.service.name,
        'barber_name':   booking.barber.business_name,
        'location':      booking.barber.location,
        'booking_date':  start.date(),
        'start_time':    fmt_time(start),
        'end_time':      fmt_time(to_local(booking.end_time)),
        'duration':      booking.duration_minutes,
        'price':         booking.price,
        'booking_ref':   booking.id_short,
        'site_url':      settings.SITE_URL,
        'support_email': settings.DEFAULT_FROM_EMAIL,
    }


def _send_booking_email(kind: str, booking) -> None:
    """Render emails/booking_<kind> as text + HTML and send it to the guest."""
    if not booking.guest_email:
        logger.warning('Email skipped — booking %s has no guest e-mail', booking.id_short)
        return

    ctx = _booking_context(booking)
    subject = f'{SUBJECTS[kind]} - {booking.service.name} on {ctx["booking_date"].strftime("%b %d, %Y")}'
    try:
        msg = EmailMultiAlternatives(
            subject=subject,
            body=render_to_string(f'emails/booking_{kind}.txt', ctx),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[booking.guest_email],
        )
        msg.attach_alternative(render_to_string(f'emails/booking_{kind}.html', ctx), 'text/html')
        msg.send(fail_silently=False)
    except Exception as exc:
        # Runs from on_commit, after the booking change is stored
        logger.exception('Failed to send "%s" to %s: %s', subject, booking.guest_email, exc)
        return
    logger.info('Email "%s" sent to %s', subject, booking.guest_email)


def send_booking_confirmed(booking):
    """Sent when a guest booking reaches CONFIRMED (usually from the payment webhook)."""
    _send_booking_email('confirmed', booking)


def send_booking_cancelled(booking):
    _send_booking_email('cancelled', booking)
