"""
Models for the coaching studio booking system.

This implementation uses the Slot Materialization Pattern where:
- RecurringSlot stores weekly class templates (e.g. "Open Ring, Mondays 18:45-20:00")
- AvailabilitySlot stores ALL actual bookable slots (both one-off and generated)
- Booking stores customer reservations against an AvailabilitySlot
"""

import uuid

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinLengthValidator, MinValueValidator

from .managers import (
    AvailabilitySlotManager,
    BookingManager,
    RecurringSlotManager,
)


class RecurringSlot(models.Model):
    """
    Stores a weekly recurring class template.

    Concrete bookable slots are materialized into AvailabilitySlot by
    services.generate_slots_for_all_patterns().
    """

    DAY_OF_WEEK_CHOICES = [
        (0, 'Sunday'),
        (1, 'Monday'),
        (2, 'Tuesday'),
        (3, 'Wednesday'),
        (4, 'Thursday'),
        (5, 'Friday'),
        (6, 'Saturday'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    day_of_week = models.PositiveSmallIntegerField(
        choices=DAY_OF_WEEK_CHOICES,
        help_text="Day of week for the class (0=Sunday, 6=Saturday)"
    )
    start_time = models.TimeField()
    end_time = models.TimeField()
    description = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Course type, e.g. Open Ring or Boxe Femme"
    )
    max_bookings = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Maximum number of active bookings per generated slot"
    )

    valid_from = models.DateField(
        help_text="First date this pattern may generate slots"
    )
    valid_until = models.DateField(
        null=True,
        blank=True,
        help_text="Last date this pattern may generate slots (null = open-ended)"
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RecurringSlotManager()

    class Meta:
        ordering = ['day_of_week', 'start_time']
        indexes = [
            models.Index(fields=['is_active', 'day_of_week'], name='recurring_active_day_idx'),
            models.Index(fields=['valid_from', 'valid_until'], name='recurring_validity_idx'),
        ]

    def __str__(self):
        label = self.description or 'Class'
        return (
            f"{label} - Every {self.day_name} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"
        )

    @property
    def day_name(self):
        """Get human-readable day name."""
        return dict(self.DAY_OF_WEEK_CHOICES).get(self.day_of_week, 'Unknown')

    def clean(self):
        super().clean()

        errors = {}
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            errors['end_time'] = 'End time must be after start time.'
        if self.valid_until and self.valid_from and self.valid_until < self.valid_from:
            errors['valid_until'] = 'Valid-until date cannot be before valid-from date.'
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class AvailabilitySlot(models.Model):
    """
    Stores ALL bookable slots (both one-off and generated from a pattern).

    One-off slots: recurring_slot = null
    Generated slots: reference the RecurringSlot that produced them
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    description = models.CharField(max_length=200, blank=True, default='')
    max_bookings = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    is_active = models.BooleanField(default=True)

    recurring_slot = models.ForeignKey(
        RecurringSlot,
        on_delete=models.CASCADE,
        related_name='availability_slots',
        null=True,
        blank=True,
        help_text="Pattern this slot was generated from (null for one-off slots)"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AvailabilitySlotManager()

    class Meta:
        ordering = ['date', 'start_time']
        indexes = [
            models.Index(fields=['date', 'is_active'], name='avail_slot_date_active_idx'),
            models.Index(fields=['recurring_slot', 'date'], name='avail_slot_pattern_date_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['date', 'start_time', 'end_time', 'recurring_slot'],
                condition=models.Q(recurring_slot__isnull=False),
                name='unique_generated_slot',
            ),
        ]

    def __str__(self):
        label = self.description or 'Slot'
        return (
            f"{label} - {self.date.isoformat()} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"
        )

    @property
    def is_one_off(self):
        return self.recurring_slot_id is None

    def clean(self):
        super().clean()

        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({
                'end_time': 'End time must be after start time.'
            })

    def save(self, *args, **kwargs):
        """Save with validation; the unique_generated_slot constraint is left to the database."""
        self.full_clean(validate_constraints=False)
        super().save(*args, **kwargs)


class Booking(models.Model):
    """
    A customer reservation for an AvailabilitySlot.

    The slot reference carries no database constraint: bookings are never
    hard-deleted and keep their slot_id after the slot itself is removed.
    """

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    slot = models.ForeignKey(
        AvailabilitySlot,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='bookings'
    )

    customer_name = models.CharField(
        max_length=200,
        validators=[MinLengthValidator(2)]
    )
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True, default='')
    notes = models.TextField(blank=True, default='')

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingManager()

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['slot', 'status'], name='booking_slot_status_idx'),
        ]

    def __str__(self):
        return f"{self.customer_name} <{self.customer_email}> [{self.status}]"

    @property
    def is_active(self):
        return self.status != self.STATUS_CANCELLED

    def save(self, *args, **kwargs):
        """Save with validation; the slot may be gone when an old booking is updated."""
        exclude = None if self._state.adding else ['slot']
        self.full_clean(exclude=exclude)
        super().save(*args, **kwargs)


class ContactSubmission(models.Model):
    """A message sent through the website contact form."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200, validators=[MinLengthValidator(2)])
    email = models.EmailField()
    message = models.TextField(validators=[MinLengthValidator(10)])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} <{self.email}>"
