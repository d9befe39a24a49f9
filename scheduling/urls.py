"""
URL routing for the scheduling API.
"""

from django.urls import path, register_converter

from .converters import IsoDateStringConverter
from .views import (
    AvailabilitySlotDetailView,
    AvailabilitySlotListCreateView,
    BookingDetailView,
    BookingListCreateView,
    ContactListView,
    ContactSubmitView,
    DateAvailabilityView,
    GenerateSlotsView,
    HealthView,
    RecurringSlotDetailView,
    RecurringSlotListCreateView,
)

register_converter(IsoDateStringConverter, 'isodate')

urlpatterns = [
    path('health', HealthView.as_view(), name='health'),
    path('contact', ContactSubmitView.as_view(), name='contact-submit'),
    path('contacts', ContactListView.as_view(), name='contact-list'),
    path('availability-slots', AvailabilitySlotListCreateView.as_view(), name='availability-slot-list-create'),
    path('availability-slots/<isodate:date>', DateAvailabilityView.as_view(), name='availability-by-date'),
    path('availability-slots/<uuid:pk>', AvailabilitySlotDetailView.as_view(), name='availability-slot-detail'),
    path('booking-slots', BookingListCreateView.as_view(), name='booking-list-create'),
    path('booking-slots/<uuid:pk>', BookingDetailView.as_view(), name='booking-detail'),
    path('recurring-slots', RecurringSlotListCreateView.as_view(), name='recurring-slot-list-create'),
    path('recurring-slots/generate', GenerateSlotsView.as_view(), name='recurring-slot-generate'),
    path('recurring-slots/<uuid:pk>', RecurringSlotDetailView.as_view(), name='recurring-slot-detail'),
]
