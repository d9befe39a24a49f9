"""
Domain exceptions and the REST framework exception handler.
"""

import logging
import traceback

from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base exception for rule violations reported to the client as 400."""


class ScheduleValidationError(SchedulingError):
    """Input that is well-formed but violates a scheduling rule."""


class SlotUnavailableError(SchedulingError):
    """The slot is inactive or has no remaining capacity."""


class CapacityError(SchedulingError):
    """A change would leave a slot with more active bookings than capacity."""


def api_exception_handler(exc, context):
    """
    Map domain errors to 400 and unexpected errors to a generic 500.

    The traceback is only included in the body when DEBUG is on.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, SchedulingError):
        return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    view = context.get('view')
    logger.exception(
        "Unhandled error in %s", view.__class__.__name__ if view else 'view',
        exc_info=exc
    )
    body = {'error': 'Internal server error'}
    if settings.DEBUG:
        body['traceback'] = ''.join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
