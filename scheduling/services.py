"""
Service layer for scheduling business logic.
Services are framework-agnostic and handle all business operations.
"""

import logging
from typing import List, Optional, Tuple
from datetime import date, time, timedelta

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .exceptions import CapacityError, ScheduleValidationError, SlotUnavailableError
from .models import AvailabilitySlot, Booking, RecurringSlot
from .types import (
    DEFAULT_HORIZON_DAYS,
    AvailabilitySlotUpdateData,
    BookingUpdateData,
    RecurringSlotUpdateData,
)

logger = logging.getLogger(__name__)


def weekday_index(day: date) -> int:
    """Day of week with 0=Sunday, 6=Saturday."""
    return day.isoweekday() % 7


def generate_slots_for_pattern(
    pattern: RecurringSlot,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    today: Optional[date] = None
) -> List[AvailabilitySlot]:
    """
    Materialize availability slots for a recurring pattern.

    Slots that already exist for the same date, times and pattern are
    skipped, so the call is idempotent. A slot that fails to save is
    logged and skipped; the remaining dates are still generated.

    Args:
        pattern: RecurringSlot instance
        horizon_days: How many days ahead of today to generate slots
        today: Reference date (defaults to the current local date)

    Returns:
        List of created AvailabilitySlot instances
    """
    if not pattern.is_active:
        return []

    today = today or timezone.localdate()
    dates_to_generate = _calculate_slot_dates(pattern, horizon_days, today)
    if not dates_to_generate:
        return []

    existing_dates = set(
        AvailabilitySlot.objects.for_pattern(pattern).filter(
            date__in=dates_to_generate,
            start_time=pattern.start_time,
            end_time=pattern.end_time,
        ).values_list('date', flat=True)
    )

    created = []
    for slot_date in dates_to_generate:
        if slot_date in existing_dates:
            continue
        slot = _create_generated_slot(pattern, slot_date)
        if slot is not None:
            created.append(slot)

    if created:
        logger.info(
            "Generated %d slot(s) for recurring slot %s", len(created), pattern.pk
        )
    return created


def generate_slots_for_all_patterns(
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    today: Optional[date] = None
) -> int:
    """
    Generate availability slots for all active patterns.

    Args:
        horizon_days: How many days ahead to generate slots
        today: Reference date (defaults to the current local date)

    Returns:
        Number of slots created
    """
    today = today or timezone.localdate()
    total_created = 0

    for pattern in RecurringSlot.objects.active():
        created = generate_slots_for_pattern(pattern, horizon_days, today)
        total_created += len(created)

    return total_created


def _calculate_slot_dates(
    pattern: RecurringSlot,
    horizon_days: int,
    today: date
) -> List[date]:
    """Calculate all dates on which the pattern should have a slot."""
    start_date = max(pattern.valid_from, today)
    end_date = today + timedelta(days=horizon_days)
    if pattern.valid_until and pattern.valid_until < end_date:
        end_date = pattern.valid_until

    dates = []
    if start_date > end_date:
        return dates

    current_date = start_date + timedelta(
        days=(pattern.day_of_week - weekday_index(start_date)) % 7
    )
    while current_date <= end_date:
        dates.append(current_date)
        current_date += timedelta(days=7)

    return dates


def _create_generated_slot(
    pattern: RecurringSlot,
    slot_date: date
) -> Optional[AvailabilitySlot]:
    """Insert one generated slot inside a savepoint; None if it was not created."""
    try:
        with transaction.atomic():
            return AvailabilitySlot.objects.create(
                recurring_slot=pattern,
                date=slot_date,
                start_time=pattern.start_time,
                end_time=pattern.end_time,
                description=pattern.description,
                max_bookings=pattern.max_bookings,
                is_active=pattern.is_active,
            )
    except IntegrityError:
        logger.debug(
            "Slot for recurring slot %s on %s already exists", pattern.pk, slot_date
        )
    except (DatabaseError, ValidationError):
        logger.exception(
            "Failed to generate slot for recurring slot %s on %s", pattern.pk, slot_date
        )
    return None


def get_availability(
    slot_date: date,
    course_type: Optional[str] = None
) -> List[AvailabilitySlot]:
    """
    Get bookable slots for a date with their remaining capacity.

    Each slot is annotated with active_booking_count, available_spots,
    total_spots and is_available.

    Args:
        slot_date: Date to query
        course_type: Optional case-insensitive filter on the description

    Returns:
        List of annotated AvailabilitySlot instances ordered by start time
    """
    queryset = AvailabilitySlot.objects.active().on_date(slot_date)

    if course_type:
        queryset = queryset.matching_course(course_type)

    return list(
        queryset.with_availability().order_by('start_time', 'end_time')
    )


def get_slots_for_date(slot_date: date) -> List[AvailabilitySlot]:
    """Get active slots on a date ordered by start time."""
    return list(
        AvailabilitySlot.objects.active().on_date(slot_date).order_by('start_time')
    )


@transaction.atomic
def create_availability_slot(
    slot_date: date,
    start_time: time,
    end_time: time,
    max_bookings: int = 1,
    description: str = '',
    is_active: bool = True
) -> AvailabilitySlot:
    """
    Create a one-off availability slot.

    Raises:
        ScheduleValidationError: If the time range or capacity is invalid
    """
    _validate_time_range(start_time, end_time)
    _validate_capacity(max_bookings)

    return AvailabilitySlot.objects.create(
        recurring_slot=None,
        date=slot_date,
        start_time=start_time,
        end_time=end_time,
        description=description,
        max_bookings=max_bookings,
        is_active=is_active,
    )


@transaction.atomic
def update_availability_slot(
    slot: AvailabilitySlot,
    update_data: AvailabilitySlotUpdateData
) -> AvailabilitySlot:
    """
    Update an availability slot (partial merge).

    Raises:
        ScheduleValidationError: If the resulting time range is invalid or
            collides with another slot of the same pattern
        CapacityError: If capacity would drop below the active bookings
    """
    slot = AvailabilitySlot.objects.select_for_update().get(pk=slot.pk)

    if update_data.max_bookings is not None:
        _validate_capacity(update_data.max_bookings)
        active_count = Booking.objects.for_slot(slot.pk).active().count()
        if update_data.max_bookings < active_count:
            raise CapacityError(
                f"Slot already has {active_count} active booking(s); "
                f"capacity cannot be lowered to {update_data.max_bookings}."
            )

    _validate_time_range(
        update_data.start_time or slot.start_time,
        update_data.end_time or slot.end_time
    )

    fields_to_update = {
        'date': update_data.date,
        'start_time': update_data.start_time,
        'end_time': update_data.end_time,
        'description': update_data.description,
        'max_bookings': update_data.max_bookings,
        'is_active': update_data.is_active,
    }
    _apply_field_updates(slot, fields_to_update)

    try:
        with transaction.atomic():
            slot.save()
    except IntegrityError:
        raise ScheduleValidationError(
            "A slot for this pattern already exists at that date and time"
        )
    return slot


@transaction.atomic
def delete_availability_slot(slot: AvailabilitySlot) -> None:
    """Delete a slot. Its bookings are kept and still reference the slot id."""
    slot.delete()


@transaction.atomic
def create_recurring_slot(
    day_of_week: int,
    start_time: time,
    end_time: time,
    valid_from: date,
    max_bookings: int = 1,
    description: str = '',
    valid_until: Optional[date] = None,
    generate_slots: bool = True,
    horizon_days: int = DEFAULT_HORIZON_DAYS
) -> Tuple[RecurringSlot, int]:
    """
    Create a new recurring slot and generate availability slots.

    Generation covers every active pattern, so the horizon of the other
    patterns moves forward as well.

    Args:
        day_of_week: Day of week (0=Sunday, 6=Saturday)
        start_time: Class start time
        end_time: Class end time
        valid_from: First date the pattern is active
        max_bookings: Capacity of each generated slot
        description: Course type
        valid_until: Last date the pattern is active (None = no end)
        generate_slots: Whether to generate slots immediately
        horizon_days: How many days ahead to generate slots

    Returns:
        Tuple of (created RecurringSlot, number of slots created)

    Raises:
        ScheduleValidationError: If validation fails
    """
    _validate_pattern_data(
        day_of_week, start_time, end_time, max_bookings, valid_from, valid_until
    )

    pattern = RecurringSlot.objects.create(
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        description=description,
        max_bookings=max_bookings,
        valid_from=valid_from,
        valid_until=valid_until,
        is_active=True,
    )

    slots_created = 0
    if generate_slots:
        slots_created = generate_slots_for_all_patterns(horizon_days)

    return pattern, slots_created


@transaction.atomic
def update_recurring_slot(
    pattern: RecurringSlot,
    update_data: RecurringSlotUpdateData,
    horizon_days: int = DEFAULT_HORIZON_DAYS
) -> RecurringSlot:
    """
    Update a recurring slot and re-run slot generation.

    Future generated slots pick up description, capacity and active flag
    changes. After a day or time change, future slots that no longer match
    the pattern are closed unless they already hold active bookings.

    Raises:
        ScheduleValidationError: If validation fails
    """
    pattern_fields = {
        'day_of_week': update_data.day_of_week,
        'start_time': update_data.start_time,
        'end_time': update_data.end_time,
        'description': update_data.description,
        'max_bookings': update_data.max_bookings,
        'valid_from': update_data.valid_from,
        'valid_until': update_data.valid_until,
        'is_active': update_data.is_active,
    }
    _apply_field_updates(pattern, pattern_fields)

    _validate_pattern_data(
        pattern.day_of_week,
        pattern.start_time,
        pattern.end_time,
        pattern.max_bookings,
        pattern.valid_from,
        pattern.valid_until,
    )
    pattern.save()

    _update_future_slots(pattern, update_data)
    generate_slots_for_all_patterns(horizon_days)

    return pattern


@transaction.atomic
def delete_recurring_slot(pattern: RecurringSlot) -> int:
    """
    Delete a recurring slot together with every slot generated from it.

    Returns:
        Number of availability slots removed
    """
    pattern_id = pattern.pk
    deleted, _ = AvailabilitySlot.objects.for_pattern(pattern).delete()
    pattern.delete()
    logger.info(
        "Deleted recurring slot %s and %d generated slot(s)", pattern_id, deleted
    )
    return deleted


@transaction.atomic
def create_booking(
    slot: AvailabilitySlot,
    customer_name: str,
    customer_email: str,
    customer_phone: str = '',
    notes: str = ''
) -> Booking:
    """
    Book a spot on a slot.

    The slot row is locked while the active bookings are counted so two
    concurrent requests cannot both take the last spot.

    Raises:
        SlotUnavailableError: If the slot is inactive or full
    """
    slot = AvailabilitySlot.objects.select_for_update().filter(pk=slot.pk).first()
    if slot is None:
        raise SlotUnavailableError("This slot no longer exists.")
    _ensure_spot_available(slot)

    booking = Booking.objects.create(
        slot=slot,
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone or '',
        notes=notes or '',
        status=Booking.STATUS_PENDING,
    )
    logger.info("Booking %s created for slot %s", booking.pk, slot.pk)
    return booking


@transaction.atomic
def update_booking(
    booking: Booking,
    update_data: BookingUpdateData
) -> Booking:
    """
    Update a booking, usually its status.

    Raises:
        ScheduleValidationError: If the status is unknown
        SlotUnavailableError: If a cancelled booking is reactivated on a full slot
    """
    if update_data.status is not None:
        valid_statuses = dict(Booking.STATUS_CHOICES)
        if update_data.status not in valid_statuses:
            raise ScheduleValidationError(f"Unknown booking status: {update_data.status}")

        reactivating = (
            booking.status == Booking.STATUS_CANCELLED
            and update_data.status != Booking.STATUS_CANCELLED
        )
        if reactivating:
            slot = AvailabilitySlot.objects.select_for_update().filter(
                pk=booking.slot_id
            ).first()
            if slot is None:
                raise SlotUnavailableError("The slot for this booking no longer exists.")
            _ensure_spot_available(slot)

    fields_to_update = {
        'status': update_data.status,
        'customer_name': update_data.customer_name,
        'customer_email': update_data.customer_email,
        'customer_phone': update_data.customer_phone,
        'notes': update_data.notes,
    }
    _apply_field_updates(booking, fields_to_update)

    booking.save()
    return booking


def get_bookings_for_slot(slot_id) -> List[Booking]:
    """Get every booking referencing a slot id, oldest first."""
    return list(Booking.objects.for_slot(slot_id))


def _ensure_spot_available(slot: AvailabilitySlot) -> None:
    """Raise SlotUnavailableError unless the (locked) slot has a free spot."""
    if not slot.is_active:
        raise SlotUnavailableError("This slot is not open for booking.")

    active_count = Booking.objects.for_slot(slot.pk).active().count()
    if active_count >= slot.max_bookings:
        raise SlotUnavailableError("This slot is no longer available.")


def _validate_time_range(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise ScheduleValidationError("End time must be after start time")


def _validate_capacity(max_bookings: int) -> None:
    if max_bookings < 1:
        raise ScheduleValidationError("Maximum bookings must be at least 1")


def _validate_pattern_data(
    day_of_week: int,
    start_time: time,
    end_time: time,
    max_bookings: int,
    valid_from: date,
    valid_until: Optional[date]
) -> None:
    """Validate recurring slot data."""
    if not 0 <= day_of_week <= 6:
        raise ScheduleValidationError(
            "Day of week must be between 0 (Sunday) and 6 (Saturday)"
        )

    _validate_time_range(start_time, end_time)
    _validate_capacity(max_bookings)

    if valid_until and valid_until < valid_from:
        raise ScheduleValidationError("Valid-until date cannot be before valid-from date")


def _update_future_slots(
    pattern: RecurringSlot,
    update_data: RecurringSlotUpdateData
) -> None:
    """Push description, capacity and active flag changes to future generated slots."""
    future_slots = AvailabilitySlot.objects.for_pattern(pattern).from_date(
        timezone.localdate()
    )

    updates = {}
    if update_data.description is not None:
        updates['description'] = update_data.description
    if update_data.max_bookings is not None:
        updates['max_bookings'] = update_data.max_bookings
    if update_data.is_active is not None:
        updates['is_active'] = update_data.is_active

    if updates:
        updates['updated_at'] = timezone.now()
        future_slots.update(**updates)

    schedule_changed = any(
        value is not None
        for value in (update_data.day_of_week, update_data.start_time, update_data.end_time)
    )
    if schedule_changed:
        _close_stale_slots(pattern, future_slots)


def _close_stale_slots(pattern: RecurringSlot, future_slots) -> int:
    """
    Deactivate future slots left on the pattern's previous day or times.

    Slots that already hold active bookings stay open.
    """
    stale_slots = future_slots.exclude(
        # week_day counts from 1=Sunday
        date__week_day=pattern.day_of_week + 1,
        start_time=pattern.start_time,
        end_time=pattern.end_time,
    ).exclude(
        pk__in=Booking.objects.active().values('slot_id')
    ).filter(is_active=True)

    closed = stale_slots.update(is_active=False, updated_at=timezone.now())
    if closed:
        logger.info(
            "Closed %d slot(s) no longer matching recurring slot %s", closed, pattern.pk
        )
    return closed


def _apply_field_updates(obj, fields: dict) -> None:
    """Apply field updates to object if values are not None."""
    for field_name, value in fields.items():
        if value is not None:
            setattr(obj, field_name, value)
