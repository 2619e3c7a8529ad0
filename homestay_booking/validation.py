"""Local validation run before any booking request leaves the client."""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from homestay_booking.schemas import BookingDraft, GuestContact

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
PHONE_RE = re.compile(r"^[\+]?[0-9\s\-\(\)]+$")

MIN_NAME_LENGTH = 3


def validate_guest(guest: Optional[GuestContact]) -> list[str]:
    if guest is None:
        return ["Guest name is required", "Guest email is required", "Guest phone is required"]

    errors: list[str] = []
    name = guest.name.strip()
    if not name:
        errors.append("Guest name is required")
    elif len(name) < MIN_NAME_LENGTH:
        errors.append("Please provide your full name for the booking.")
    elif not NAME_RE.match(name):
        errors.append("Name should only contain letters, spaces, hyphens, and apostrophes")

    email = guest.email.strip()
    if not email:
        errors.append("Guest email is required")
    elif not EMAIL_RE.match(email):
        errors.append("Please provide a valid email address for booking confirmation.")

    phone = guest.phone.strip()
    if not phone:
        errors.append("Guest phone is required")
    elif not PHONE_RE.match(phone):
        errors.append("Please enter a valid phone number")
    return errors


def validate_draft(draft: BookingDraft, today: date) -> list[str]:
    errors: list[str] = []
    if draft.number_of_guests <= 0:
        errors.append("Number of guests must be greater than 0")
    if draft.start_date < today:
        errors.append("Start date cannot be in the past")
    if draft.end_date <= draft.start_date:
        errors.append("End date must be after start date")
    return errors
