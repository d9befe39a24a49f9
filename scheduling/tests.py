"""
Tests for the coaching studio scheduling system.

Tests cover:
- RecurringSlot, AvailabilitySlot and Booking models and managers
- Slot generation from recurring slots
- Availability calculation
- Booking capacity rules
- Notification emails and background jobs
- API endpoints
- Management commands
"""

import smtplib
import uuid
from datetime import date, time, timedelta
from io import StringIO
from unittest import mock

from asgiref.sync import async_to_sync
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError, transaction
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .exceptions import CapacityError, ScheduleValidationError, SlotUnavailableError
from .jobs import enqueue_booking_notifications
from .models import AvailabilitySlot, Booking, ContactSubmission, RecurringSlot
from .notifications import EmailDeliveryError, send_booking_confirmation_emails
from .types import AvailabilitySlotUpdateData, BookingUpdateData, RecurringSlotUpdateData
from .worker import generate_slots_task, send_booking_emails_task


# 2024-01-01 is a Monday, 2024-01-03 a Wednesday.
WEDNESDAY = date(2024, 1, 3)


def make_pattern(**kwargs):
    data = {
        'day_of_week': 1,
        'start_time': time(18, 45),
        'end_time': time(20, 0),
        'description': 'Open Ring',
        'max_bookings': 8,
        'valid_from': date(2024, 1, 1),
    }
    data.update(kwargs)
    return RecurringSlot.objects.create(**data)


def make_slot(**kwargs):
    data = {
        'date': date(2024, 1, 8),
        'start_time': time(18, 45),
        'end_time': time(20, 0),
        'description': 'Open Ring',
        'max_bookings': 10,
    }
    data.update(kwargs)
    return AvailabilitySlot.objects.create(**data)


def smtp_provider(name):
    return {
        'name': name,
        'host': f'{name}.example.com',
        'port': 465,
        'username': '',
        'password': '',
        'use_ssl': True,
        'use_tls': False,
        'timeout': 5,
        'from_email': f'studio@{name}.example.com',
    }


def make_booking(slot, status='pending', name='Alex Martin'):
    return Booking.objects.create(
        slot=slot,
        customer_name=name,
        customer_email='alex@example.com',
        status=status
    )


class RecurringSlotModelTests(TestCase):
    """Test RecurringSlot model and validation."""

    def test_create_recurring_slot(self):
        pattern = make_pattern()

        self.assertEqual(pattern.day_of_week, 1)
        self.assertEqual(pattern.day_name, "Monday")
        self.assertTrue(pattern.is_active)
        self.assertIsNone(pattern.valid_until)
        self.assertIsInstance(pattern.id, uuid.UUID)

    def test_sunday_is_day_zero(self):
        pattern = make_pattern(day_of_week=0)
        self.assertEqual(pattern.day_name, "Sunday")

    def test_end_time_must_follow_start_time(self):
        with self.assertRaises(ValidationError):
            make_pattern(start_time=time(20, 0), end_time=time(18, 45))

    def test_valid_until_cannot_precede_valid_from(self):
        with self.assertRaises(ValidationError):
            make_pattern(valid_from=date(2024, 2, 1), valid_until=date(2024, 1, 1))

    def test_capacity_must_be_positive(self):
        with self.assertRaises(ValidationError):
            make_pattern(max_bookings=0)


class AvailabilitySlotModelTests(TestCase):
    """Test AvailabilitySlot model."""

    def test_one_off_slot(self):
        slot = make_slot()

        self.assertTrue(slot.is_one_off)
        self.assertIsNone(slot.recurring_slot)

    def test_generated_slot(self):
        pattern = make_pattern()
        slot = make_slot(recurring_slot=pattern)

        self.assertFalse(slot.is_one_off)
        self.assertIn(slot, pattern.availability_slots.all())

    def test_duplicate_generated_slot_rejected_by_database(self):
        pattern = make_pattern()
        make_slot(recurring_slot=pattern)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_slot(recurring_slot=pattern)

    def test_duplicate_one_off_slots_allowed(self):
        make_slot()
        make_slot()

        self.assertEqual(AvailabilitySlot.objects.filter(recurring_slot__isnull=True).count(), 2)


class BookingModelTests(TestCase):
    """Test Booking model."""

    def test_default_status_is_pending(self):
        booking = make_booking(make_slot())

        self.assertEqual(booking.status, Booking.STATUS_PENDING)
        self.assertTrue(booking.is_active)

    def test_booking_survives_slot_deletion(self):
        slot = make_slot()
        booking = make_booking(slot)
        slot_id = slot.id

        slot.delete()

        booking.refresh_from_db()
        self.assertEqual(booking.slot_id, slot_id)
        self.assertEqual(Booking.objects.for_slot(slot_id).count(), 1)

    def test_orphaned_booking_can_still_be_updated(self):
        slot = make_slot()
        booking = make_booking(slot)
        slot.delete()

        booking.status = Booking.STATUS_CANCELLED
        booking.save()

        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.STATUS_CANCELLED)


class ManagerTests(TestCase):
    """Test custom manager methods."""

    def setUp(self):
        make_pattern(description="Active Monday")
        make_pattern(description="Inactive Tuesday", day_of_week=2, is_active=False)
        make_pattern(
            description="Ended Wednesday",
            day_of_week=3,
            valid_until=date(2024, 1, 31)
        )

    def test_active_filter(self):
        self.assertEqual(RecurringSlot.objects.active().count(), 2)

    def test_for_pattern_filter(self):
        pattern = RecurringSlot.objects.get(description="Active Monday")
        make_slot(recurring_slot=pattern)
        make_slot(start_time=time(10, 0), end_time=time(11, 0))

        self.assertEqual(AvailabilitySlot.objects.for_pattern(pattern).count(), 1)

    def test_from_date_filter(self):
        make_slot(date=date(2024, 1, 8))
        make_slot(date=date(2024, 1, 15))

        later = AvailabilitySlot.objects.active().from_date(date(2024, 1, 10))
        self.assertEqual([slot.date for slot in later], [date(2024, 1, 15)])

    def test_booking_active_filter(self):
        slot = make_slot()
        make_booking(slot, status='pending')
        make_booking(slot, status='confirmed')
        make_booking(slot, status='cancelled')

        self.assertEqual(Booking.objects.active().count(), 2)
        self.assertEqual(Booking.objects.for_slot(slot.id).count(), 3)

    def test_with_availability_counts_slots_without_bookings(self):
        make_slot(max_bookings=4)

        slot = AvailabilitySlot.objects.with_availability().get()
        self.assertEqual(slot.active_booking_count, 0)
        self.assertEqual(slot.available_spots, 4)
        self.assertEqual(slot.total_spots, 4)
        self.assertTrue(slot.is_available)


class SlotGenerationTests(TestCase):
    """Test generating availability slots from recurring slots."""

    def test_monday_pattern_from_wednesday_yields_two_slots(self):
        pattern = make_pattern()

        created = services.generate_slots_for_pattern(pattern, 14, today=WEDNESDAY)

        self.assertEqual(
            sorted(slot.date for slot in created),
            [date(2024, 1, 8), date(2024, 1, 15)]
        )
        self.assertEqual(AvailabilitySlot.objects.for_pattern(pattern).count(), 2)

    def test_generated_slot_copies_pattern_fields(self):
        pattern = make_pattern()

        slot = services.generate_slots_for_pattern(pattern, 14, today=WEDNESDAY)[0]

        self.assertEqual(slot.start_time, time(18, 45))
        self.assertEqual(slot.end_time, time(20, 0))
        self.assertEqual(slot.max_bookings, 8)
        self.assertEqual(slot.description, 'Open Ring')
        self.assertTrue(slot.is_active)
        self.assertEqual(slot.recurring_slot, pattern)

    def test_no_duplicate_generation(self):
        pattern = make_pattern()

        first_run = services.generate_slots_for_all_patterns(14, today=WEDNESDAY)
        before = set(
            AvailabilitySlot.objects.values_list('date', 'start_time', 'end_time', 'recurring_slot')
        )
        second_run = services.generate_slots_for_all_patterns(14, today=WEDNESDAY)
        after = set(
            AvailabilitySlot.objects.values_list('date', 'start_time', 'end_time', 'recurring_slot')
        )

        self.assertEqual(first_run, 2)
        self.assertEqual(second_run, 0)
        self.assertEqual(before, after)
        self.assertEqual(AvailabilitySlot.objects.for_pattern(pattern).count(), 2)

    def test_sunday_pattern(self):
        make_pattern(day_of_week=0)

        services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        dates = list(AvailabilitySlot.objects.values_list('date', flat=True))
        self.assertEqual(dates, [date(2024, 1, 7), date(2024, 1, 14)])
        for slot_date in dates:
            self.assertEqual(slot_date.weekday(), 6)

    def test_today_and_horizon_end_are_included(self):
        make_pattern(day_of_week=3)

        services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        dates = list(AvailabilitySlot.objects.values_list('date', flat=True))
        self.assertEqual(dates, [date(2024, 1, 3), date(2024, 1, 10), date(2024, 1, 17)])

    def test_inactive_pattern_is_skipped(self):
        make_pattern(is_active=False)

        total = services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        self.assertEqual(total, 0)
        self.assertFalse(AvailabilitySlot.objects.exists())

    def test_future_valid_from_clips_start(self):
        make_pattern(valid_from=date(2024, 1, 10))

        services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        dates = list(AvailabilitySlot.objects.values_list('date', flat=True))
        self.assertEqual(dates, [date(2024, 1, 15)])

    def test_valid_until_clips_end(self):
        make_pattern(valid_until=date(2024, 1, 10))

        services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        dates = list(AvailabilitySlot.objects.values_list('date', flat=True))
        self.assertEqual(dates, [date(2024, 1, 8)])

    def test_expired_pattern_is_a_noop(self):
        make_pattern(valid_from=date(2023, 1, 1), valid_until=date(2023, 12, 31))

        created = services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        self.assertEqual(created, 0)

    def test_past_dates_are_not_generated(self):
        make_pattern(valid_from=date(2023, 12, 1))

        services.generate_slots_for_all_patterns(14, today=WEDNESDAY)

        self.assertFalse(AvailabilitySlot.objects.filter(date__lt=WEDNESDAY).exists())

    def test_failure_on_one_slot_does_not_stop_generation(self):
        pattern = make_pattern()
        real_create = AvailabilitySlot.objects.create
        calls = []

        def flaky_create(**kwargs):
            calls.append(kwargs['date'])
            if len(calls) == 1:
                raise DatabaseError("connection reset")
            return real_create(**kwargs)

        with mock.patch.object(AvailabilitySlot.objects, 'create', side_effect=flaky_create):
            with self.assertLogs('scheduling.services', level='ERROR'):
                created = services.generate_slots_for_pattern(pattern, 14, today=WEDNESDAY)

        self.assertEqual(len(calls), 2)
        self.assertEqual([slot.date for slot in created], [date(2024, 1, 15)])

    def test_concurrent_insert_is_treated_as_existing(self):
        pattern = make_pattern()
        make_slot(recurring_slot=pattern, date=date(2024, 1, 8))

        slot = services._create_generated_slot(pattern, date(2024, 1, 8))

        self.assertIsNone(slot)
        self.assertEqual(AvailabilitySlot.objects.for_pattern(pattern).count(), 1)

    def test_weekday_index(self):
        self.assertEqual(services.weekday_index(date(2024, 1, 7)), 0)
        self.assertEqual(services.weekday_index(date(2024, 1, 8)), 1)
        self.assertEqual(services.weekday_index(date(2024, 1, 13)), 6)


class AvailabilityTests(TestCase):
    """Test the availability calculation."""

    def test_available_spots_subtract_active_bookings(self):
        slot = make_slot(max_bookings=10)
        make_booking(slot, status='pending')
        make_booking(slot, status='confirmed')
        make_booking(slot, status='confirmed')
        make_booking(slot, status='cancelled')

        result = services.get_availability(date(2024, 1, 8))

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].available_spots, 7)
        self.assertEqual(result[0].total_spots, 10)
        self.assertTrue(result[0].is_available)

    def test_full_slot_is_not_available(self):
        slot = make_slot(max_bookings=1)
        make_booking(slot, status='confirmed')

        result = services.get_availability(date(2024, 1, 8))

        self.assertEqual(result[0].available_spots, 0)
        self.assertFalse(result[0].is_available)

    def test_only_active_slots_on_date(self):
        make_slot()
        make_slot(is_active=False, start_time=time(10, 0), end_time=time(11, 0))
        make_slot(date=date(2024, 1, 9))

        result = services.get_availability(date(2024, 1, 8))

        self.assertEqual(len(result), 1)
        self.assertEqual(len(services.get_slots_for_date(date(2024, 1, 8))), 1)

    def test_course_filter_is_case_insensitive_substring(self):
        make_slot(description='Boxe Femme', start_time=time(20, 15), end_time=time(21, 15))
        make_slot(description='HIIT Mixte', start_time=time(18, 0), end_time=time(18, 45))

        result = services.get_availability(date(2024, 1, 8), course_type='boxe')

        self.assertEqual([slot.description for slot in result], ['Boxe Femme'])

    def test_ordered_by_start_time(self):
        make_slot(start_time=time(20, 15), end_time=time(21, 15))
        make_slot(start_time=time(9, 30), end_time=time(10, 30))
        make_slot(start_time=time(12, 15), end_time=time(13, 0))

        result = services.get_availability(date(2024, 1, 8))

        self.assertEqual(
            [slot.start_time for slot in result],
            [time(9, 30), time(12, 15), time(20, 15)]
        )

    def test_patterns_alone_do_not_produce_availability(self):
        make_pattern()

        self.assertEqual(services.get_availability(date(2024, 1, 8)), [])


class BookingServiceTests(TestCase):
    """Test booking creation and updates."""

    def setUp(self):
        self.slot = make_slot(max_bookings=1)

    def _book(self, slot=None):
        return services.create_booking(
            slot=slot or self.slot,
            customer_name='Sam Durand',
            customer_email='sam@example.com'
        )

    def test_create_booking(self):
        booking = self._book()

        self.assertEqual(booking.status, Booking.STATUS_PENDING)
        self.assertEqual(booking.slot_id, self.slot.id)

    def test_second_booking_on_full_slot_is_rejected(self):
        booking = self._book()
        services.update_booking(booking, BookingUpdateData(status='confirmed'))

        with self.assertRaises(SlotUnavailableError):
            self._book()

        self.assertEqual(Booking.objects.for_slot(self.slot.id).count(), 1)

    def test_capacity_above_one_allows_several_bookings(self):
        slot = make_slot(max_bookings=3, start_time=time(10, 0), end_time=time(11, 0))

        for _ in range(3):
            self._book(slot)

        with self.assertRaises(SlotUnavailableError):
            self._book(slot)

    def test_cancelled_booking_frees_the_spot(self):
        booking = self._book()
        services.update_booking(booking, BookingUpdateData(status='cancelled'))

        second = self._book()

        self.assertEqual(second.status, Booking.STATUS_PENDING)

    def test_inactive_slot_is_rejected(self):
        slot = make_slot(is_active=False, start_time=time(10, 0), end_time=time(11, 0))

        with self.assertRaises(SlotUnavailableError):
            self._book(slot)

    def test_reactivating_on_full_slot_is_rejected(self):
        first = self._book()
        services.update_booking(first, BookingUpdateData(status='cancelled'))
        self._book()

        with self.assertRaises(SlotUnavailableError):
            services.update_booking(first, BookingUpdateData(status='confirmed'))

        first.refresh_from_db()
        self.assertEqual(first.status, Booking.STATUS_CANCELLED)

    def test_unknown_status_is_rejected(self):
        booking = self._book()

        with self.assertRaises(ScheduleValidationError):
            services.update_booking(booking, BookingUpdateData(status='no-show'))

    def test_update_booking_notes(self):
        booking = self._book()

        updated = services.update_booking(booking, BookingUpdateData(notes='First class'))

        self.assertEqual(updated.notes, 'First class')
        self.assertEqual(updated.status, Booking.STATUS_PENDING)


class AvailabilitySlotServiceTests(TestCase):
    """Test one-off slot CRUD."""

    def test_create_one_off_slot(self):
        slot = services.create_availability_slot(
            slot_date=date(2024, 1, 20),
            start_time=time(10, 0),
            end_time=time(12, 0),
            max_bookings=15,
            description='Stage'
        )

        self.assertTrue(slot.is_one_off)
        self.assertEqual(slot.max_bookings, 15)

    def test_create_rejects_inverted_times(self):
        with self.assertRaises(ScheduleValidationError):
            services.create_availability_slot(
                slot_date=date(2024, 1, 20),
                start_time=time(12, 0),
                end_time=time(10, 0)
            )

    def test_update_slot(self):
        slot = make_slot()

        updated = services.update_availability_slot(
            slot, AvailabilitySlotUpdateData(description='Sparring', max_bookings=4)
        )

        self.assertEqual(updated.description, 'Sparring')
        self.assertEqual(updated.max_bookings, 4)
        self.assertEqual(updated.start_time, time(18, 45))

    def test_capacity_cannot_drop_below_active_bookings(self):
        slot = make_slot(max_bookings=3)
        make_booking(slot)
        make_booking(slot)

        with self.assertRaises(CapacityError):
            services.update_availability_slot(slot, AvailabilitySlotUpdateData(max_bookings=1))

    def test_moving_generated_slot_onto_sibling_is_rejected(self):
        pattern = make_pattern()
        first = make_slot(recurring_slot=pattern, date=date(2024, 1, 8))
        second = make_slot(recurring_slot=pattern, date=date(2024, 1, 15))

        with self.assertRaises(ScheduleValidationError):
            services.update_availability_slot(
                second, AvailabilitySlotUpdateData(date=first.date)
            )

        second.refresh_from_db()
        self.assertEqual(second.date, date(2024, 1, 15))


class RecurringSlotServiceTests(TestCase):
    """Test recurring slot CRUD and its effect on generated slots."""

    def setUp(self):
        self.today = timezone.localdate()
        self.weekday = services.weekday_index(self.today)

    def _create(self, **kwargs):
        data = {
            'day_of_week': self.weekday,
            'start_time': time(18, 0),
            'end_time': time(18, 45),
            'valid_from': self.today - timedelta(days=30),
            'max_bookings': 10,
            'description': 'HIIT Mixte',
        }
        data.update(kwargs)
        return services.create_recurring_slot(**data)

    def test_create_pattern_with_generation(self):
        pattern, count = self._create()

        self.assertEqual(count, 3)
        self.assertEqual(AvailabilitySlot.objects.for_pattern(pattern).count(), 3)

    def test_create_pattern_without_generation(self):
        pattern, count = self._create(generate_slots=False)

        self.assertIsNotNone(pattern.id)
        self.assertEqual(count, 0)
        self.assertFalse(AvailabilitySlot.objects.exists())

    def test_create_pattern_validation(self):
        with self.assertRaises(ScheduleValidationError):
            self._create(day_of_week=7)
        with self.assertRaises(ScheduleValidationError):
            self._create(start_time=time(19, 0), end_time=time(18, 0))
        with self.assertRaises(ScheduleValidationError):
            self._create(valid_until=self.today - timedelta(days=31))

    def test_create_pattern_extends_other_patterns(self):
        earlier, _ = self._create(generate_slots=False)

        _, count = self._create(start_time=time(20, 0), end_time=time(21, 0))

        self.assertEqual(count, 6)
        self.assertEqual(AvailabilitySlot.objects.for_pattern(earlier).count(), 3)

    def test_update_pattern_extends_other_patterns(self):
        earlier, _ = self._create(generate_slots=False)
        pattern, _ = self._create(
            start_time=time(20, 0), end_time=time(21, 0), generate_slots=False
        )

        services.update_recurring_slot(pattern, RecurringSlotUpdateData(description='Sparring'))

        self.assertEqual(AvailabilitySlot.objects.for_pattern(earlier).count(), 3)
        self.assertEqual(AvailabilitySlot.objects.for_pattern(pattern).count(), 3)

    def test_update_propagates_to_future_slots(self):
        pattern, _ = self._create()

        services.update_recurring_slot(
            pattern, RecurringSlotUpdateData(description='HIIT Femme', max_bookings=6)
        )

        slots = AvailabilitySlot.objects.for_pattern(pattern)
        self.assertEqual(slots.count(), 3)
        for slot in slots:
            self.assertEqual(slot.description, 'HIIT Femme')
            self.assertEqual(slot.max_bookings, 6)

    def test_update_time_regenerates_slots(self):
        pattern, _ = self._create()

        services.update_recurring_slot(
            pattern, RecurringSlotUpdateData(start_time=time(19, 0), end_time=time(20, 0))
        )

        slots = AvailabilitySlot.objects.for_pattern(pattern)
        self.assertEqual(slots.active().filter(start_time=time(19, 0)).count(), 3)
        self.assertEqual(slots.filter(start_time=time(18, 0)).count(), 3)
        self.assertFalse(slots.active().filter(start_time=time(18, 0)).exists())

    def test_update_day_closes_unbooked_slots_on_old_day(self):
        pattern, _ = self._create()
        old_slots = AvailabilitySlot.objects.for_pattern(pattern).order_by('date')
        booked_slot = old_slots[1]
        make_booking(booked_slot, status='confirmed')
        new_day = (self.weekday + 1) % 7

        services.update_recurring_slot(pattern, RecurringSlotUpdateData(day_of_week=new_day))

        open_slots = AvailabilitySlot.objects.for_pattern(pattern).active()
        self.assertEqual(
            {services.weekday_index(slot.date) for slot in open_slots.exclude(pk=booked_slot.pk)},
            {new_day}
        )
        self.assertTrue(open_slots.filter(pk=booked_slot.pk).exists())
        self.assertEqual(open_slots.filter(date__week_day=self.weekday + 1).count(), 1)

    def test_deactivating_pattern_deactivates_future_slots(self):
        pattern, _ = self._create()

        services.update_recurring_slot(pattern, RecurringSlotUpdateData(is_active=False))

        self.assertFalse(AvailabilitySlot.objects.for_pattern(pattern).active().exists())

    def test_update_rejects_invalid_range(self):
        pattern, _ = self._create()

        with self.assertRaises(ScheduleValidationError):
            services.update_recurring_slot(
                pattern, RecurringSlotUpdateData(end_time=time(17, 0))
            )

    def test_delete_cascades_to_generated_slots(self):
        pattern, _ = self._create()
        other, _ = self._create(start_time=time(20, 0), end_time=time(21, 0))
        one_off = make_slot(date=self.today)
        booked_slot = AvailabilitySlot.objects.for_pattern(pattern).first()
        booking = make_booking(booked_slot)
        pattern_id = pattern.pk

        with self.assertLogs('scheduling.services', level='INFO') as logs:
            removed = services.delete_recurring_slot(pattern)

        self.assertEqual(removed, 3)
        self.assertIn(f'Deleted recurring slot {pattern_id} and 3', logs.output[-1])
        self.assertFalse(RecurringSlot.objects.filter(pk=pattern_id).exists())
        self.assertFalse(AvailabilitySlot.objects.filter(recurring_slot_id=pattern_id).exists())
        self.assertEqual(AvailabilitySlot.objects.for_pattern(other).count(), 3)
        self.assertTrue(AvailabilitySlot.objects.filter(pk=one_off.pk).exists())
        self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())


@override_settings(
    EMAIL_RETRY_ATTEMPTS=3,
    EMAIL_RETRY_WAIT_MULTIPLIER=0,
    NOTIFICATION_EMAIL_PROVIDERS=[smtp_provider('primary')],
    BOOKING_OWNER_EMAIL='owner@example.com',
    STUDIO_NAME='Test Studio'
)
class NotificationTests(TestCase):
    """Test booking notification emails."""

    def setUp(self):
        self.slot = make_slot(description='Boxe Femme')
        self.booking = Booking.objects.create(
            slot=self.slot,
            customer_name='Lea Petit',
            customer_email='lea@example.com',
            customer_phone='0600000000',
            notes='First time'
        )

    def test_sends_customer_and_owner_emails(self):
        send_booking_confirmation_emails(self.booking)

        self.assertEqual(len(mail.outbox), 2)
        customer, owner = mail.outbox
        self.assertEqual(customer.to, ['lea@example.com'])
        self.assertIn('Test Studio', customer.subject)
        self.assertIn('Boxe Femme', customer.body)
        self.assertIn('18:45 - 20:00', customer.body)
        self.assertEqual(owner.to, ['owner@example.com'])
        self.assertIn('lea@example.com', owner.body)
        self.assertIn('First time', owner.body)
        self.assertEqual(customer.alternatives[0][1], 'text/html')

    def test_transient_failure_is_retried(self):
        with mock.patch(
            'scheduling.notifications.EmailMultiAlternatives.send',
            side_effect=[smtplib.SMTPServerDisconnected('bye'), 1, 1]
        ) as send:
            send_booking_confirmation_emails(self.booking)

        self.assertEqual(send.call_count, 3)

    def test_total_failure_raises_after_both_messages(self):
        with mock.patch(
            'scheduling.notifications.EmailMultiAlternatives.send',
            side_effect=smtplib.SMTPException('down')
        ) as send:
            with self.assertRaises(EmailDeliveryError):
                send_booking_confirmation_emails(self.booking)

        self.assertEqual(send.call_count, 6)

    @override_settings(EMAIL_RETRY_ATTEMPTS=2)
    def test_backup_provider_used_when_primary_fails(self):
        providers = [smtp_provider('primary'), smtp_provider('backup')]
        senders = []

        def fake_send(message, fail_silently=False):
            senders.append(message.from_email)
            if message.from_email.endswith('primary.example.com'):
                raise smtplib.SMTPConnectError(421, 'unavailable')
            return 1

        with override_settings(NOTIFICATION_EMAIL_PROVIDERS=providers):
            with mock.patch(
                'scheduling.notifications.EmailMultiAlternatives.send',
                autospec=True,
                side_effect=fake_send
            ):
                send_booking_confirmation_emails(self.booking)

        self.assertEqual(senders, [
            'studio@primary.example.com',
            'studio@primary.example.com',
            'studio@backup.example.com',
        ] * 2)


    def test_worker_task_sends_booking_emails(self):
        result = async_to_sync(send_booking_emails_task)({}, str(self.booking.pk))

        self.assertEqual(result, {'booking_id': str(self.booking.pk), 'sent': True})
        self.assertEqual(len(mail.outbox), 2)

    def test_worker_task_skips_missing_booking(self):
        missing_id = str(uuid.uuid4())

        with self.assertLogs('scheduling.notifications', level='WARNING'):
            result = async_to_sync(send_booking_emails_task)({}, missing_id)

        self.assertFalse(result['sent'])
        self.assertEqual(len(mail.outbox), 0)


class JobQueueTests(TestCase):
    """Test queuing background jobs and the worker's slot generation."""

    def test_enqueue_booking_notifications(self):
        booking_id = uuid.uuid4()
        pool = mock.AsyncMock()
        pool.enqueue_job.return_value = mock.Mock(job_id=f'booking-emails:{booking_id}')

        with mock.patch('scheduling.jobs.create_pool', new=mock.AsyncMock(return_value=pool)):
            queued = enqueue_booking_notifications(booking_id)

        self.assertTrue(queued)
        pool.enqueue_job.assert_awaited_once_with(
            'send_booking_emails_task',
            str(booking_id),
            _job_id=f'booking-emails:{booking_id}'
        )
        pool.close.assert_awaited_once()

    def test_enqueue_failure_is_logged(self):
        with mock.patch(
            'scheduling.jobs.create_pool',
            new=mock.AsyncMock(side_effect=ConnectionRefusedError('redis down'))
        ):
            with self.assertLogs('scheduling.jobs', level='ERROR'):
                queued = enqueue_booking_notifications(uuid.uuid4())

        self.assertFalse(queued)

    @override_settings(SLOT_GENERATION_HORIZON_DAYS=14)
    def test_generate_slots_task(self):
        make_pattern(day_of_week=services.weekday_index(timezone.localdate()))

        result = async_to_sync(generate_slots_task)({})

        self.assertEqual(result, {'slots_created': 3})
        self.assertEqual(AvailabilitySlot.objects.count(), 3)


class RecurringSlotAPITests(APITestCase):
    """Test recurring slot API endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.today = timezone.localdate()

    def test_create_pattern(self):
        data = {
            'day_of_week': str(services.weekday_index(self.today)),
            'start_time': '18:45',
            'end_time': '20:00',
            'description': 'Open Ring',
            'max_bookings': '8',
            'valid_from': '2024-01-01',
        }

        response = self.client.post('/api/recurring-slots', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['recurring_slot']['max_bookings'], 8)
        self.assertEqual(response.data['recurring_slot']['start_time'], '18:45:00')
        self.assertEqual(response.data['slots_created'], 3)

    def test_create_pattern_validation_error(self):
        data = {
            'day_of_week': 9,
            'start_time': '20:00',
            'end_time': '18:45',
            'valid_from': '2024-01-01',
        }

        response = self.client.post('/api/recurring-slots', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('day_of_week', response.data)

    def test_list_patterns(self):
        make_pattern()
        make_pattern(day_of_week=0)

        response = self.client.get('/api/recurring-slots')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['day_name'] for p in response.data], ['Sunday', 'Monday'])

    def test_update_pattern(self):
        pattern = make_pattern()

        response = self.client.put(
            f'/api/recurring-slots/{pattern.id}',
            {'description': 'Sparring', 'max_bookings': 6},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['description'], 'Sparring')
        self.assertEqual(response.data['start_time'], '18:45:00')

    def test_update_rejects_inverted_times(self):
        pattern = make_pattern()

        response = self.client.patch(
            f'/api/recurring-slots/{pattern.id}',
            {'end_time': '18:00'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_unknown_pattern(self):
        response = self.client.put(
            f'/api/recurring-slots/{uuid.uuid4()}', {'description': 'x'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_pattern(self):
        pattern = make_pattern()
        make_slot(recurring_slot=pattern)

        response = self.client.delete(f'/api/recurring-slots/{pattern.id}')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(RecurringSlot.objects.exists())
        self.assertFalse(AvailabilitySlot.objects.exists())

    def test_generate_endpoint(self):
        make_pattern(day_of_week=services.weekday_index(self.today))

        response = self.client.post('/api/recurring-slots/generate?days=7')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slots_created'], 2)

        response = self.client.post('/api/recurring-slots/generate?days=7')
        self.assertEqual(response.data['slots_created'], 0)


class AvailabilitySlotAPITests(APITestCase):
    """Test availability slot API endpoints."""

    def setUp(self):
        self.client = APIClient()

    def test_availability_for_date(self):
        slot = make_slot(max_bookings=10)
        for _ in range(3):
            make_booking(slot)

        response = self.client.get('/api/availability-slots/2024-01-08')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['id'], str(slot.id))
        self.assertEqual(response.data[0]['available_spots'], 7)
        self.assertEqual(response.data[0]['total_spots'], 10)
        self.assertTrue(response.data[0]['is_available'])

    def test_availability_course_filter(self):
        make_slot(description='Boxe Femme')
        make_slot(description='HIIT Mixte', start_time=time(10, 0), end_time=time(11, 0))

        response = self.client.get('/api/availability-slots/2024-01-08', {'course': 'hiit'})

        self.assertEqual([s['description'] for s in response.data], ['HIIT Mixte'])

    def test_availability_impossible_date(self):
        response = self.client.get('/api/availability-slots/2024-02-30')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_availability_malformed_date(self):
        response = self.client.get('/api/availability-slots/next-monday')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_and_list_one_off_slot(self):
        data = {
            'date': '2024-01-20',
            'start_time': '10:00',
            'end_time': '12:00',
            'description': 'Stage',
            'max_bookings': '15',
        }

        response = self.client.post('/api/availability-slots', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_one_off'])
        self.assertIsNone(response.data['recurring_slot_id'])

        response = self.client.get('/api/availability-slots')
        self.assertEqual(len(response.data), 1)

    def test_update_slot(self):
        slot = make_slot()

        response = self.client.put(
            f'/api/availability-slots/{slot.id}', {'is_active': False}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

    def test_update_slot_capacity_below_bookings(self):
        slot = make_slot(max_bookings=2)
        make_booking(slot)
        make_booking(slot)

        response = self.client.patch(
            f'/api/availability-slots/{slot.id}', {'max_bookings': 1}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_update_slot_onto_sibling_date(self):
        pattern = make_pattern()
        first = make_slot(recurring_slot=pattern, date=date(2024, 1, 8))
        second = make_slot(recurring_slot=pattern, date=date(2024, 1, 15))

        response = self.client.put(
            f'/api/availability-slots/{second.id}', {'date': '2024-01-08'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.data['error'],
            'A slot for this pattern already exists at that date and time'
        )
        self.assertEqual(AvailabilitySlot.objects.filter(date=first.date).count(), 1)

    def test_update_unknown_slot(self):
        response = self.client.put(
            f'/api/availability-slots/{uuid.uuid4()}', {'is_active': False}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_slot(self):
        slot = make_slot()

        response = self.client.delete(f'/api/availability-slots/{slot.id}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(AvailabilitySlot.objects.exists())

    def test_unexpected_error_returns_generic_500(self):
        with mock.patch(
            'scheduling.views.services.get_availability',
            side_effect=RuntimeError('boom')
        ):
            with self.assertLogs('scheduling.exceptions', level='ERROR'):
                response = self.client.get('/api/availability-slots/2024-01-08')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'Internal server error'})


@override_settings(BOOKING_NOTIFICATIONS_ENABLED=True)
class BookingAPITests(APITestCase):
    """Test booking API endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.slot = make_slot(max_bookings=1)

    def _payload(self, **kwargs):
        data = {
            'slot_id': str(self.slot.id),
            'customer_name': 'Nora Blanc',
            'customer_email': 'nora@example.com',
            'customer_phone': '0611223344',
        }
        data.update(kwargs)
        return data

    def test_create_booking_queues_emails(self):
        with mock.patch('scheduling.views.enqueue_booking_notifications') as enqueue:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                response = self.client.post(
                    '/api/booking-slots', self._payload(), format='json'
                )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['slot_id'], str(self.slot.id))
        self.assertTrue(response.data['notifications_queued'])
        self.assertEqual(len(callbacks), 1)
        enqueue.assert_called_once_with(uuid.UUID(response.data['id']))
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(BOOKING_NOTIFICATIONS_ENABLED=False)
    def test_notifications_disabled(self):
        with mock.patch('scheduling.views.enqueue_booking_notifications') as enqueue:
            with self.captureOnCommitCallbacks(execute=True):
                response = self.client.post(
                    '/api/booking-slots', self._payload(), format='json'
                )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['notifications_queued'])
        enqueue.assert_not_called()

    def test_full_slot_is_rejected(self):
        make_booking(self.slot, status='confirmed')

        response = self.client.post('/api/booking-slots', self._payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'This slot is no longer available.')
        self.assertEqual(Booking.objects.count(), 1)

    def test_invalid_payload(self):
        response = self.client.post(
            '/api/booking-slots',
            self._payload(customer_email='not-an-email', customer_name='N'),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer_email', response.data)
        self.assertIn('customer_name', response.data)

    def test_unknown_slot(self):
        response = self.client.post(
            '/api/booking-slots', self._payload(slot_id=str(uuid.uuid4())), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('slot_id', response.data)

    def test_queue_outage_keeps_booking(self):
        with mock.patch(
            'scheduling.jobs.create_pool',
            new=mock.AsyncMock(side_effect=ConnectionRefusedError('redis down'))
        ):
            with self.assertLogs('scheduling.jobs', level='ERROR'):
                with self.captureOnCommitCallbacks(execute=True):
                    response = self.client.post(
                        '/api/booking-slots', self._payload(), format='json'
                    )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Booking.objects.filter(pk=response.data['id']).exists())

    def test_list_bookings_for_slot(self):
        other = make_slot(start_time=time(10, 0), end_time=time(11, 0))
        make_booking(self.slot)
        make_booking(other)

        response = self.client.get('/api/booking-slots', {'slot_id': str(self.slot.id)})

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['slot_id'], str(self.slot.id))

        response = self.client.get('/api/booking-slots')
        self.assertEqual(len(response.data), 2)

    def test_update_booking_status(self):
        booking = make_booking(self.slot)

        response = self.client.put(
            f'/api/booking-slots/{booking.id}', {'status': 'confirmed'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')

    def test_update_booking_invalid_status(self):
        booking = make_booking(self.slot)

        response = self.client.put(
            f'/api/booking-slots/{booking.id}', {'status': 'no-show'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_unknown_booking(self):
        response = self.client.put(
            f'/api/booking-slots/{uuid.uuid4()}', {'status': 'confirmed'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ContactAndHealthAPITests(APITestCase):
    """Test the contact form and health check endpoints."""

    def setUp(self):
        self.client = APIClient()

    def test_submit_contact(self):
        data = {
            'name': 'Jo Bernard',
            'email': 'jo@example.com',
            'message': 'Do you run classes for teenagers?',
        }

        response = self.client.post('/api/contact', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(ContactSubmission.objects.count(), 1)

        response = self.client.get('/api/contacts')
        self.assertEqual(response.data[0]['email'], 'jo@example.com')

    def test_submit_contact_validation(self):
        response = self.client.post(
            '/api/contact', {'name': 'J', 'email': 'jo', 'message': 'short'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(set(response.data), {'name', 'email', 'message'})

    def test_health(self):
        with self.assertLogs('scheduling.middleware', level='INFO') as logs:
            response = self.client.get('/api/health')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')
        self.assertIn('GET /api/health 200', logs.output[0])


class ManagementCommandTests(TestCase):
    """Test management commands."""

    def test_generate_slots_command(self):
        make_pattern(day_of_week=services.weekday_index(timezone.localdate()))

        out = StringIO()
        call_command('generate_slots', '--days=14', stdout=out)

        self.assertIn('Successfully generated 3 new slot(s)', out.getvalue())
        self.assertEqual(AvailabilitySlot.objects.count(), 3)

    def test_seed_schedule_command(self):
        out = StringIO()
        call_command('seed_schedule', '--valid-from=2024-01-01', stdout=out)

        self.assertEqual(RecurringSlot.objects.count(), 27)
        self.assertEqual(RecurringSlot.objects.filter(day_of_week=1).count(), 2)
        self.assertTrue(AvailabilitySlot.objects.exists())

        call_command('seed_schedule', '--valid-from=2024-01-01', stdout=StringIO())
        self.assertEqual(RecurringSlot.objects.count(), 27)
