"""
Queue client for background jobs run by scheduling.worker.
"""

import logging

from arq import create_pool
from asgiref.sync import async_to_sync
from redis.exceptions import RedisError

from .worker import get_redis_settings

logger = logging.getLogger(__name__)


def enqueue_booking_notifications(booking_id) -> bool:
    """
    Queue the booking emails. Meant to run from transaction.on_commit.

    A queue outage is logged and never affects the booking itself.

    Returns:
        True if the job was queued
    """
    try:
        job = async_to_sync(_enqueue)(
            'send_booking_emails_task',
            str(booking_id),
            _job_id=f'booking-emails:{booking_id}',
        )
    except (RedisError, OSError):
        logger.exception("Could not queue emails for booking %s", booking_id)
        return False

    if job is None:
        logger.info("Emails for booking %s were already queued", booking_id)
    else:
        logger.info("Booking emails job queued: %s", job.job_id)
    return True


async def _enqueue(function_name, *args, **kwargs):
    pool = await create_pool(get_redis_settings())
    try:
        return await pool.enqueue_job(function_name, *args, **kwargs)
    finally:
        await pool.close()
