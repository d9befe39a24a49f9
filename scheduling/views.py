"""Views for the scheduling system."""

import logging
from functools import partial

from django.conf import settings
from django.db import DatabaseError, connection, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import AvailabilitySlot, Booking, ContactSubmission, RecurringSlot
from .jobs import enqueue_booking_notifications
from .serializers import (
    AvailabilityQuerySerializer,
    AvailabilitySlotCreateSerializer,
    AvailabilitySlotReadSerializer,
    AvailabilitySlotUpdateSerializer,
    BookingCreateSerializer,
    BookingListQuerySerializer,
    BookingReadSerializer,
    BookingUpdateSerializer,
    ContactSubmissionSerializer,
    GenerateSlotsQuerySerializer,
    RecurringSlotCreateSerializer,
    RecurringSlotReadSerializer,
    RecurringSlotWriteSerializer,
    SlotAvailabilitySerializer,
)
from . import services
from .types import AvailabilitySlotUpdateData, BookingUpdateData, RecurringSlotUpdateData

logger = logging.getLogger(__name__)


class HealthView(APIView):
    """
    GET /api/health - Check that the database answers
    """

    def get(self, request):
        try:
            connection.ensure_connection()
            ContactSubmission.objects.exists()
        except DatabaseError as exc:
            logger.error("Health check failed: %s", exc)
            return Response({
                'status': 'error',
                'message': 'Database connection failed',
                'timestamp': timezone.now().isoformat(),
            }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({
            'status': 'ok',
            'message': 'Database connection successful',
            'timestamp': timezone.now().isoformat(),
        })


class ContactSubmitView(APIView):
    """
    POST /api/contact - Store a contact form message
    """

    def post(self, request):
        serializer = ContactSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class ContactListView(APIView):
    """
    GET /api/contacts - List contact form messages (newest first)
    """

    def get(self, request):
        serializer = ContactSubmissionSerializer(ContactSubmission.objects.all(), many=True)
        return Response(serializer.data)


class AvailabilitySlotListCreateView(APIView):
    """
    List all availability slots or create a one-off slot.

    GET /api/availability-slots - List all slots
    POST /api/availability-slots - Create a one-off slot
    """

    def get(self, request):
        slots = AvailabilitySlot.objects.all()
        serializer = AvailabilitySlotReadSerializer(slots, many=True)
        return Response(serializer.data)

    def post(self, request):
        serializer = AvailabilitySlotCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        slot = services.create_availability_slot(
            slot_date=data['date'],
            start_time=data['start_time'],
            end_time=data['end_time'],
            max_bookings=data.get('max_bookings', 1),
            description=data.get('description', ''),
            is_active=data.get('is_active', True)
        )

        response_serializer = AvailabilitySlotReadSerializer(slot)
        return Response(response_serializer.data, status=status.HTTP_201_CREATED)


class DateAvailabilityView(APIView):
    """
    Bookable slots for a date with remaining capacity.

    GET /api/availability-slots/{YYYY-MM-DD}?course=boxe
    """

    def get(self, request, date):
        try:
            slot_date = parse_date(date)
        except ValueError:
            slot_date = None
        if slot_date is None:
            raise ValidationError({'date': f'Invalid date: {date}'})

        query_serializer = AvailabilityQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        slots = services.get_availability(
            slot_date,
            course_type=query_serializer.validated_data.get('course')
        )
        serializer = SlotAvailabilitySerializer(slots, many=True)
        return Response(serializer.data)


class AvailabilitySlotDetailView(APIView):
    """
    Retrieve, update, or delete an availability slot.

    GET /api/availability-slots/{id}
    PUT|PATCH /api/availability-slots/{id} - Partial update
    DELETE /api/availability-slots/{id}
    """

    def get(self, request, pk):
        slot = get_object_or_404(AvailabilitySlot, pk=pk)
        serializer = AvailabilitySlotReadSerializer(slot)
        return Response(serializer.data)

    def put(self, request, pk):
        slot = get_object_or_404(AvailabilitySlot, pk=pk)
        serializer = AvailabilitySlotUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        update_data = AvailabilitySlotUpdateData(**serializer.validated_data)
        updated_slot = services.update_availability_slot(slot, update_data)

        response_serializer = AvailabilitySlotReadSerializer(updated_slot)
        return Response(response_serializer.data)

    patch = put

    def delete(self, request, pk):
        slot = get_object_or_404(AvailabilitySlot, pk=pk)
        services.delete_availability_slot(slot)

        return Response({
            'message': 'Availability slot deleted.'
        }, status=status.HTTP_200_OK)


class BookingListCreateView(APIView):
    """
    List bookings or book a slot.

    GET /api/booking-slots?slot_id={id} - List bookings (optionally for one slot)
    POST /api/booking-slots - Book a spot and queue the confirmation emails
    """

    def get(self, request):
        query_serializer = BookingListQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        slot_id = query_serializer.validated_data.get('slot_id')
        if slot_id:
            bookings = services.get_bookings_for_slot(slot_id)
        else:
            bookings = Booking.objects.all()

        serializer = BookingReadSerializer(bookings, many=True)
        return Response(serializer.data)

    def post(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        booking = services.create_booking(
            slot=data['slot_id'],
            customer_name=data['customer_name'],
            customer_email=data['customer_email'],
            customer_phone=data.get('customer_phone', ''),
            notes=data.get('notes', '')
        )

        notifications_queued = settings.BOOKING_NOTIFICATIONS_ENABLED
        if notifications_queued:
            transaction.on_commit(partial(enqueue_booking_notifications, booking.pk))

        response_data = dict(BookingReadSerializer(booking).data)
        response_data['notifications_queued'] = notifications_queued
        return Response(response_data, status=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    """
    Retrieve or update a booking.

    GET /api/booking-slots/{id}
    PUT|PATCH /api/booking-slots/{id} - Update status or customer details
    """

    def get(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        serializer = BookingReadSerializer(booking)
        return Response(serializer.data)

    def put(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        serializer = BookingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        update_data = BookingUpdateData(**serializer.validated_data)
        updated_booking = services.update_booking(booking, update_data)

        response_serializer = BookingReadSerializer(updated_booking)
        return Response(response_serializer.data)

    patch = put


class RecurringSlotListCreateView(APIView):
    """
    List all recurring slots or create a new one.

    GET /api/recurring-slots - List all patterns
    POST /api/recurring-slots - Create a pattern and generate its slots
    """

    def get(self, request):
        patterns = RecurringSlot.objects.all()
        serializer = RecurringSlotReadSerializer(patterns, many=True)
        return Response(serializer.data)

    def post(self, request):
        serializer = RecurringSlotCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        pattern, slots_created = services.create_recurring_slot(
            day_of_week=data['day_of_week'],
            start_time=data['start_time'],
            end_time=data['end_time'],
            valid_from=data['valid_from'],
            max_bookings=data.get('max_bookings', 1),
            description=data.get('description', ''),
            valid_until=data.get('valid_until'),
            generate_slots=data.get('generate_slots', True),
            horizon_days=data.get('horizon_days', settings.SLOT_GENERATION_HORIZON_DAYS)
        )

        response_serializer = RecurringSlotReadSerializer(pattern)
        return Response({
            'recurring_slot': response_serializer.data,
            'slots_created': slots_created
        }, status=status.HTTP_201_CREATED)


class RecurringSlotDetailView(APIView):
    """
    Retrieve, update, or delete a recurring slot.

    GET /api/recurring-slots/{id}
    PUT|PATCH /api/recurring-slots/{id} - Partial update, then regenerate slots
    DELETE /api/recurring-slots/{id} - Delete the pattern and its generated slots
    """

    def get(self, request, pk):
        pattern = get_object_or_404(RecurringSlot, pk=pk)
        serializer = RecurringSlotReadSerializer(pattern)
        return Response(serializer.data)

    def put(self, request, pk):
        pattern = get_object_or_404(RecurringSlot, pk=pk)
        serializer = RecurringSlotWriteSerializer(pattern, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        update_data = RecurringSlotUpdateData(**serializer.validated_data)
        updated_pattern = services.update_recurring_slot(
            pattern=pattern,
            update_data=update_data,
            horizon_days=settings.SLOT_GENERATION_HORIZON_DAYS
        )

        response_serializer = RecurringSlotReadSerializer(updated_pattern)
        return Response(response_serializer.data)

    patch = put

    def delete(self, request, pk):
        pattern = get_object_or_404(RecurringSlot, pk=pk)
        services.delete_recurring_slot(pattern)
        return Response(status=status.HTTP_204_NO_CONTENT)


class GenerateSlotsView(APIView):
    """
    Manually run slot generation for every active pattern.

    POST /api/recurring-slots/generate?days=14
    """

    def post(self, request):
        query_serializer = GenerateSlotsQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        slots_created = services.generate_slots_for_all_patterns(
            horizon_days=query_serializer.validated_data.get(
                'days', settings.SLOT_GENERATION_HORIZON_DAYS
            )
        )
        return Response({
            'message': 'Availability slots generated successfully',
            'slots_created': slots_created
        })
