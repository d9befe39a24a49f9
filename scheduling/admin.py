"""
Admin configuration for the scheduling app.
"""

from django.conf import settings
from django.contrib import admin, messages

from .models import AvailabilitySlot, Booking, ContactSubmission, RecurringSlot
from . import services


@admin.register(RecurringSlot)
class RecurringSlotAdmin(admin.ModelAdmin):
    """Admin interface for RecurringSlot model."""

    list_display = ['description', 'day_name', 'start_time', 'end_time', 'max_bookings', 'valid_from', 'valid_until', 'is_active']
    list_filter = ['is_active', 'day_of_week']
    search_fields = ['description']
    actions = ['generate_slots']

    fieldsets = (
        ('Class', {
            'fields': ('description', 'max_bookings', 'is_active')
        }),
        ('Weekly Schedule', {
            'fields': ('day_of_week', 'start_time', 'end_time')
        }),
        ('Validity', {
            'fields': ('valid_from', 'valid_until')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']

    @admin.action(description='Generate availability slots for selected patterns')
    def generate_slots(self, request, queryset):
        total = 0
        for pattern in queryset:
            total += len(services.generate_slots_for_pattern(
                pattern, settings.SLOT_GENERATION_HORIZON_DAYS
            ))
        self.message_user(request, f'{total} slot(s) generated.', messages.SUCCESS)

    def delete_model(self, request, obj):
        services.delete_recurring_slot(obj)

    def delete_queryset(self, request, queryset):
        for pattern in queryset:
            services.delete_recurring_slot(pattern)


@admin.register(AvailabilitySlot)
class AvailabilitySlotAdmin(admin.ModelAdmin):
    """Admin interface for AvailabilitySlot model."""

    list_display = ['date', 'start_time', 'end_time', 'description', 'max_bookings', 'is_active', 'recurring_slot']
    list_filter = ['is_active', 'date', 'recurring_slot']
    search_fields = ['description']
    date_hierarchy = 'date'

    readonly_fields = ['created_at', 'updated_at']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for Booking model."""

    list_display = ['customer_name', 'customer_email', 'slot_id', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['customer_name', 'customer_email', 'customer_phone']
    raw_id_fields = ['slot']

    readonly_fields = ['created_at', 'updated_at']

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ContactSubmission)
class ContactSubmissionAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'created_at']
    search_fields = ['name', 'email', 'message']
    readonly_fields = ['created_at']
