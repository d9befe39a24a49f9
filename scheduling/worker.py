"""
ARQ background worker for the scheduling app.

Runs booking notification emails off the request path and moves the
slot generation horizon forward every night.

Start it with: arq scheduling.worker.WorkerSettings
"""

import logging
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'coaching.settings')

import django
from arq.connections import RedisSettings
from arq.cron import cron
from asgiref.sync import sync_to_async
from django.conf import settings

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Redis connection used by the worker and by the job queue client."""
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    redis_settings.conn_timeout = settings.REDIS_CONN_TIMEOUT
    redis_settings.conn_retries = settings.REDIS_CONN_RETRIES
    return redis_settings


async def startup(ctx):
    django.setup()
    logger.info("Scheduling worker started")


async def send_booking_emails_task(_ctx, booking_id: str):
    """
    Send the confirmation and owner emails for a booking.

    Args:
        ctx: ARQ context
        booking_id: Booking primary key

    Returns:
        dict with booking_id and whether the emails went out
    """
    from .notifications import send_booking_notifications

    logger.info("Starting booking emails for booking %s", booking_id)
    sent = await sync_to_async(send_booking_notifications)(booking_id)
    return {'booking_id': booking_id, 'sent': sent}


async def generate_slots_task(_ctx):
    """Nightly run of the slot expander over every active recurring slot."""
    from .services import generate_slots_for_all_patterns

    created = await sync_to_async(generate_slots_for_all_patterns)(
        settings.SLOT_GENERATION_HORIZON_DAYS
    )
    logger.info("Nightly generation created %d slot(s)", created)
    return {'slots_created': created}


class WorkerSettings:
    """ARQ worker settings"""

    functions = [
        send_booking_emails_task,
        generate_slots_task,
    ]
    redis_settings = get_redis_settings()
    on_startup = startup

    max_jobs = settings.ARQ_MAX_JOBS
    job_timeout = settings.ARQ_JOB_TIMEOUT
    keep_result = 3600

    cron_jobs = [
        cron(generate_slots_task, hour=0, minute=5),
    ]
