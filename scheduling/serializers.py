"""
Serializers for the scheduling system.
"""

from rest_framework import serializers

from .models import AvailabilitySlot, Booking, ContactSubmission, RecurringSlot


class RecurringSlotReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying RecurringSlot (output)."""

    day_name = serializers.ReadOnlyField()

    class Meta:
        model = RecurringSlot
        fields = [
            'id',
            'day_of_week',
            'day_name',
            'start_time',
            'end_time',
            'description',
            'max_bookings',
            'valid_from',
            'valid_until',
            'is_active',
            'created_at',
            'updated_at',
        ]


class RecurringSlotWriteSerializer(serializers.ModelSerializer):
    """Serializer for updating RecurringSlot (input, partial)."""

    class Meta:
        model = RecurringSlot
        fields = [
            'day_of_week',
            'start_time',
            'end_time',
            'description',
            'max_bookings',
            'valid_from',
            'valid_until',
            'is_active',
        ]

    def validate(self, data):
        """Validate the merged time range and validity window."""
        instance = self.instance
        start_time = data.get('start_time', instance.start_time if instance else None)
        end_time = data.get('end_time', instance.end_time if instance else None)
        if start_time and end_time and start_time >= end_time:
            raise serializers.ValidationError({
                'end_time': 'End time must be after start time.'
            })

        valid_from = data.get('valid_from', instance.valid_from if instance else None)
        valid_until = data.get('valid_until', instance.valid_until if instance else None)
        if valid_from and valid_until and valid_until < valid_from:
            raise serializers.ValidationError({
                'valid_until': 'Valid-until date cannot be before valid-from date.'
            })

        return data


class RecurringSlotCreateSerializer(serializers.Serializer):
    """Serializer for creating a recurring slot with generation options."""

    day_of_week = serializers.IntegerField(min_value=0, max_value=6)
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    description = serializers.CharField(
        max_length=200, required=False, allow_blank=True, default=''
    )
    max_bookings = serializers.IntegerField(min_value=1, default=1)
    valid_from = serializers.DateField()
    valid_until = serializers.DateField(required=False, allow_null=True)
    generate_slots = serializers.BooleanField(default=True)
    horizon_days = serializers.IntegerField(min_value=1, max_value=90, required=False)

    def validate(self, data):
        if data['start_time'] >= data['end_time']:
            raise serializers.ValidationError({
                'end_time': 'End time must be after start time.'
            })

        valid_until = data.get('valid_until')
        if valid_until and valid_until < data['valid_from']:
            raise serializers.ValidationError({
                'valid_until': 'Valid-until date cannot be before valid-from date.'
            })

        return data


class GenerateSlotsQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=90, required=False)


class AvailabilitySlotReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying AvailabilitySlot (output)."""

    recurring_slot_id = serializers.UUIDField(read_only=True, allow_null=True)
    is_one_off = serializers.BooleanField(read_only=True)

    class Meta:
        model = AvailabilitySlot
        fields = [
            'id',
            'date',
            'start_time',
            'end_time',
            'description',
            'max_bookings',
            'is_active',
            'recurring_slot_id',
            'is_one_off',
            'created_at',
            'updated_at',
        ]


class SlotAvailabilitySerializer(AvailabilitySlotReadSerializer):
    """Availability slot annotated by AvailabilitySlotQuerySet.with_availability()."""

    available_spots = serializers.IntegerField(read_only=True)
    total_spots = serializers.IntegerField(read_only=True)
    is_available = serializers.BooleanField(read_only=True)

    class Meta(AvailabilitySlotReadSerializer.Meta):
        fields = AvailabilitySlotReadSerializer.Meta.fields + [
            'available_spots',
            'total_spots',
            'is_available',
        ]


class AvailabilitySlotCreateSerializer(serializers.Serializer):
    """Serializer for creating a one-off availability slot."""

    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    description = serializers.CharField(
        max_length=200, required=False, allow_blank=True, default=''
    )
    max_bookings = serializers.IntegerField(min_value=1, default=1)
    is_active = serializers.BooleanField(default=True)

    def validate(self, data):
        if data['start_time'] >= data['end_time']:
            raise serializers.ValidationError({
                'end_time': 'End time must be after start time.'
            })
        return data


class AvailabilitySlotUpdateSerializer(serializers.Serializer):
    """Serializer for updating an availability slot."""

    date = serializers.DateField(required=False)
    start_time = serializers.TimeField(required=False)
    end_time = serializers.TimeField(required=False)
    description = serializers.CharField(max_length=200, required=False, allow_blank=True)
    max_bookings = serializers.IntegerField(min_value=1, required=False)
    is_active = serializers.BooleanField(required=False)


class AvailabilityQuerySerializer(serializers.Serializer):
    course = serializers.CharField(required=False, allow_blank=True)


class BookingReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying Booking (output)."""

    slot_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id',
            'slot_id',
            'customer_name',
            'customer_email',
            'customer_phone',
            'notes',
            'status',
            'created_at',
            'updated_at',
        ]


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for a customer booking request."""

    slot_id = serializers.PrimaryKeyRelatedField(
        queryset=AvailabilitySlot.objects.all(),
        pk_field=serializers.UUIDField()
    )
    customer_name = serializers.CharField(min_length=2, max_length=200)
    customer_email = serializers.EmailField()
    customer_phone = serializers.CharField(
        max_length=50, required=False, allow_blank=True, default=''
    )
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class BookingUpdateSerializer(serializers.Serializer):
    """Serializer for updating a booking (admin)."""

    status = serializers.ChoiceField(choices=Booking.STATUS_CHOICES, required=False)
    customer_name = serializers.CharField(min_length=2, max_length=200, required=False)
    customer_email = serializers.EmailField(required=False)
    customer_phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class BookingListQuerySerializer(serializers.Serializer):
    slot_id = serializers.UUIDField(required=False)


class ContactSubmissionSerializer(serializers.ModelSerializer):
    """Contact form input and output."""

    name = serializers.CharField(min_length=2, max_length=200)
    message = serializers.CharField(min_length=10)

    class Meta:
        model = ContactSubmission
        fields = ['id', 'name', 'email', 'message', 'created_at']
        read_only_fields = ['id', 'created_at']
