"""Availability strategies and the "first success wins" combinator.

Each strategy takes ``(api, room_id, date_range)`` and either returns an
``AvailabilityResult`` or raises. The resolver runs them in order.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

from homestay_booking.booking_api import BookingApi
from homestay_booking.errors import AuthenticationRequired, AvailabilityUnknown
from homestay_booking.schemas import AvailabilityResult, Booking, DateRange

logger = logging.getLogger(__name__)

Strategy = Callable[[BookingApi, int, DateRange], Awaitable[AvailabilityResult]]

PLACEHOLDER_NOTE = "Exact booking dates unavailable - placeholder based on availability check"


def conflicting_bookings(bookings: Sequence[Booking], room_id: int, date_range: DateRange) -> list[Booking]:
    """Non-cancelled bookings of ``room_id`` that overlap ``date_range`` (half-open)."""

    conflicts = []
    for booking in bookings:
        if booking.room_id != room_id or booking.is_cancelled:
            continue
        if booking.start_date is None or booking.end_date is None:
            continue
        if date_range.overlaps(booking.start_date, booking.end_date):
            conflicts.append(booking)
    return sorted(conflicts, key=lambda b: b.start_date)


async def availability_endpoint(api: BookingApi, room_id: int, date_range: DateRange) -> AvailabilityResult:
    data = await api.get_room_availability(room_id, date_range)
    current = data.get("current_booking")
    return AvailabilityResult(
        room_id=room_id,
        date_range=date_range,
        is_available=bool(data["is_available"]),
        current_booking=Booking.model_validate(current) if current else None,
        next_available_date=(data.get("next_available_date") or "")[:10] or None,
        upcoming_bookings=[Booking.model_validate(b) for b in data.get("upcoming_bookings") or []],
        source="availability_endpoint",
    )


async def booking_list(api: BookingApi, room_id: int, date_range: DateRange) -> AvailabilityResult:
    if not api.session.is_authenticated:
        raise AuthenticationRequired("Booking list fallback needs an authenticated session")
    bookings = await api.get_all_bookings()
    conflicts = conflicting_bookings(bookings, room_id, date_range)
    logger.debug(f"[AVAILABILITY] Room {room_id}: {len(conflicts)} conflicting bookings in full list")
    return AvailabilityResult(
        room_id=room_id,
        date_range=date_range,
        is_available=not conflicts,
        current_booking=conflicts[0] if conflicts else None,
        upcoming_bookings=conflicts,
        source="booking_list",
    )


async def basic_flag(api: BookingApi, room_id: int, date_range: DateRange) -> AvailabilityResult:
    data = await api.get_basic_availability(room_id, date_range)
    is_available = bool(data["is_available"])
    placeholder = None
    if not is_available:
        placeholder = Booking(
            id=f"placeholder-{room_id}",
            room_id=room_id,
            start_date=date_range.start_date,
            end_date=date_range.end_date,
            status="confirmed",
            booking_status="confirmed",
            placeholder=True,
            note=PLACEHOLDER_NOTE,
        )
    return AvailabilityResult(
        room_id=room_id,
        date_range=date_range,
        is_available=is_available,
        current_booking=placeholder,
        source="basic_flag",
    )


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (availability_endpoint, booking_list, basic_flag)


async def first_success(
    strategies: Sequence[Strategy],
    api: BookingApi,
    room_id: int,
    date_range: DateRange,
) -> AvailabilityResult:
    """Return the first strategy result that does not raise."""

    failures: list[tuple[str, Exception]] = []
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            return await strategy(api, room_id, date_range)
        except Exception as exc:
            logger.warning(f"[AVAILABILITY] Room {room_id}: {name} failed ({exc}), falling back")
            failures.append((name, exc))
    raise AvailabilityUnknown(room_id, failures)
