"""
Custom managers and querysets for scheduling models.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models


ACTIVE_BOOKING_STATUSES = ('pending', 'confirmed')


class RecurringSlotQuerySet(models.QuerySet):
    """Custom queryset for RecurringSlot model with chainable methods."""

    def active(self):
        """Get all active recurring slots."""
        return self.filter(is_active=True)


class RecurringSlotManager(models.Manager):
    """Custom manager for RecurringSlot model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return RecurringSlotQuerySet(self.model, using=self._db)

    def active(self):
        """Get all active recurring slots."""
        return self.get_queryset().active()


class AvailabilitySlotQuerySet(models.QuerySet):
    """Custom queryset for AvailabilitySlot model with chainable methods."""

    def active(self):
        """Get all bookable (active) slots."""
        return self.filter(is_active=True)

    def on_date(self, date):
        return self.filter(date=date)

    def from_date(self, date):
        """Get slots on or after a date."""
        return self.filter(date__gte=date)

    def for_pattern(self, pattern):
        """
        Get all slots generated from a specific recurring pattern.

        Args:
            pattern: RecurringSlot instance
        """
        return self.filter(recurring_slot=pattern)

    def matching_course(self, course_type):
        """Case-insensitive substring match on the course description."""
        return self.filter(description__icontains=course_type)

    def with_availability(self):
        """
        Annotate each slot with its booking counts.

        Adds active_booking_count, available_spots, total_spots and is_available.
        """
        return self.annotate(
            active_booking_count=models.Count(
                'bookings',
                filter=models.Q(bookings__status__in=ACTIVE_BOOKING_STATUSES)
            ),
        ).annotate(
            available_spots=models.ExpressionWrapper(
                models.F('max_bookings') - models.F('active_booking_count'),
                output_field=models.IntegerField()
            ),
            total_spots=models.F('max_bookings'),
        ).annotate(
            is_available=models.Case(
                models.When(available_spots__gt=0, then=models.Value(True)),
                default=models.Value(False),
                output_field=models.BooleanField()
            ),
        )


class AvailabilitySlotManager(models.Manager):
    """Custom manager for AvailabilitySlot model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return AvailabilitySlotQuerySet(self.model, using=self._db)

    def active(self):
        """Get all bookable (active) slots."""
        return self.get_queryset().active()

    def on_date(self, date):
        return self.get_queryset().on_date(date)

    def for_pattern(self, pattern):
        return self.get_queryset().for_pattern(pattern)

    def with_availability(self):
        return self.get_queryset().with_availability()


class BookingQuerySet(models.QuerySet):
    """Custom queryset for Booking model with chainable methods."""

    def active(self):
        """Get bookings that hold a spot (not cancelled)."""
        return self.filter(status__in=ACTIVE_BOOKING_STATUSES)

    def for_slot(self, slot_id):
        """
        Get bookings referencing a slot.

        Args:
            slot_id: AvailabilitySlot primary key (the slot may no longer exist)
        """
        return self.filter(slot_id=slot_id)


class BookingManager(models.Manager):
    """Custom manager for Booking model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return BookingQuerySet(self.model, using=self._db)

    def active(self):
        """Get bookings that hold a spot (not cancelled)."""
        return self.get_queryset().active()

    def for_slot(self, slot_id):
        return self.get_queryset().for_slot(slot_id)
