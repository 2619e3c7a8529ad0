"""Availability resolution and same-day status for homestay rooms."""

from homestay_booking.availability.resolver import AvailabilityResolver
from homestay_booking.availability.same_day import (
    SameDayEvaluator,
    SameDayMonitor,
    derive_countdown,
    is_today,
)
from homestay_booking.availability.strategies import (
    DEFAULT_STRATEGIES,
    availability_endpoint,
    basic_flag,
    booking_list,
    first_success,
)

__all__ = [
    "AvailabilityResolver",
    "SameDayEvaluator",
    "SameDayMonitor",
    "derive_countdown",
    "is_today",
    "DEFAULT_STRATEGIES",
    "availability_endpoint",
    "basic_flag",
    "booking_list",
    "first_success",
]
