"""
Data types and constants for the scheduling system.

This module contains:
- DTOs (Data Transfer Objects) for service layer operations
- Constants used across the application
"""

from dataclasses import dataclass
from typing import Optional
import datetime
from datetime import date, time


DEFAULT_HORIZON_DAYS = 14


@dataclass
class RecurringSlotUpdateData:
    """DTO for recurring slot update operations."""
    day_of_week: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    description: Optional[str] = None
    max_bookings: Optional[int] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: Optional[bool] = None


@dataclass
class AvailabilitySlotUpdateData:
    """DTO for availability slot update operations."""
    date: Optional[datetime.date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    description: Optional[str] = None
    max_bookings: Optional[int] = None
    is_active: Optional[bool] = None


@dataclass
class BookingUpdateData:
    """DTO for booking update operations."""
    status: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
