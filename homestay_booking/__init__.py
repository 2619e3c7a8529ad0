"""Client-side booking core for the homestay site."""

from homestay_booking.services import BookingServices, build_services

__all__ = ["BookingServices", "build_services"]
