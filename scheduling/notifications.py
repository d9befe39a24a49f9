"""
Booking notification emails.

Every message is tried on each configured SMTP provider in turn (primary,
then backup). Each provider is retried with exponential backoff before
moving on to the next one.
"""

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string
from django.utils import timezone
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .models import AvailabilitySlot, Booking

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when a message could not be sent through any provider."""


def send_booking_notifications(booking_id) -> bool:
    """
    Look up a booking and send its emails. Entry point for the worker.

    Returns:
        False if the booking no longer exists, True once the emails are sent

    Raises:
        EmailDeliveryError: If at least one message could not be delivered
    """
    booking = Booking.objects.filter(pk=booking_id).first()
    if booking is None:
        logger.warning("Booking %s not found, no emails sent", booking_id)
        return False

    send_booking_confirmation_emails(booking)
    return True


def send_booking_confirmation_emails(booking: Booking) -> None:
    """
    Send the customer confirmation and the owner notification for a booking.

    Both messages are attempted even if the first one fails.

    Raises:
        EmailDeliveryError: If at least one message could not be delivered
    """
    slot = AvailabilitySlot.objects.filter(pk=booking.slot_id).first()
    context = {
        'booking': booking,
        'slot': slot,
        'studio_name': settings.STUDIO_NAME,
        'owner_email': settings.BOOKING_OWNER_EMAIL,
        'sent_at': timezone.localtime(),
    }

    messages = [
        (
            'customer confirmation',
            f"Booking confirmation - {settings.STUDIO_NAME}",
            'scheduling/emails/customer_confirmation',
            [booking.customer_email],
        ),
        (
            'owner notification',
            f"New booking - {settings.STUDIO_NAME}",
            'scheduling/emails/owner_notification',
            [settings.BOOKING_OWNER_EMAIL],
        ),
    ]

    failures = []
    for label, subject, template, recipients in messages:
        try:
            send_templated_email(subject, template, context, recipients)
        except EmailDeliveryError as exc:
            logger.error("Failed to send %s for booking %s: %s", label, booking.pk, exc)
            failures.append(f"{label}: {exc}")

    if failures:
        raise EmailDeliveryError('; '.join(failures))

    logger.info("Booking emails sent for booking %s", booking.pk)


def send_templated_email(subject, template, context, recipients) -> None:
    """Render <template>.txt and <template>.html and send them with fallback."""
    text_body = render_to_string(f'{template}.txt', context)
    html_body = render_to_string(f'{template}.html', context)

    errors = []
    for provider in settings.NOTIFICATION_EMAIL_PROVIDERS:
        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=provider['from_email'],
            to=recipients,
            connection=_get_provider_connection(provider),
        )
        message.attach_alternative(html_body, 'text/html')
        try:
            _send_with_retry(message, provider['name'])
            return
        except OSError as exc:
            logger.warning("Email provider %s failed: %s", provider['name'], exc)
            errors.append(f"{provider['name']}: {exc}")

    raise EmailDeliveryError(
        'All email providers failed. ' + ' | '.join(errors)
        if errors else 'No email provider is configured.'
    )


def _get_provider_connection(provider):
    return get_connection(
        host=provider['host'],
        port=provider['port'],
        username=provider['username'],
        password=provider['password'],
        use_ssl=provider['use_ssl'],
        use_tls=provider['use_tls'],
        timeout=provider['timeout'],
    )


def _send_with_retry(message: EmailMultiAlternatives, provider_name: str) -> None:
    """Send a message, retrying transient SMTP/socket errors with backoff."""
    retrying = Retrying(
        stop=stop_after_attempt(settings.EMAIL_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=settings.EMAIL_RETRY_WAIT_MULTIPLIER),
        retry=retry_if_exception_type(OSError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            message.send()
    logger.debug(
        "Email sent via %s on attempt %d",
        provider_name, retrying.statistics.get('attempt_number', 1)
    )
