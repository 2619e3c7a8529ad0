"""Availability resolution for a room and a date range."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from homestay_booking.availability.strategies import (
    DEFAULT_STRATEGIES,
    Strategy,
    first_success,
)
from homestay_booking.booking_api import BookingApi
from homestay_booking.config import Clock, Settings, get_settings
from homestay_booking.errors import AvailabilityUnknown
from homestay_booking.schemas import AvailabilityResult, DateRange, DynamicRoomStatus

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    """Resolve ``available | occupied`` for a room, failing safe when nothing answers."""

    def __init__(
        self,
        api: BookingApi,
        *,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
        strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self.api = api
        self.clock = clock or Clock()
        self.settings = settings or get_settings()
        self.strategies = tuple(strategies)

    async def resolve(self, room_id: int, date_range: DateRange) -> AvailabilityResult:
        try:
            result = await first_success(self.strategies, self.api, room_id, date_range)
        except AvailabilityUnknown as exc:
            logger.error(f"[AVAILABILITY] {exc}; treating room as not available")
            return AvailabilityResult.failsafe(
                room_id,
                date_range,
                "Could not verify availability for this room. Please try again.",
            )
        logger.debug(
            f"[AVAILABILITY] Room {room_id} {date_range.start_date}..{date_range.end_date}: "
            f"available={result.is_available} via {result.source}"
        )
        return result

    async def find_next_available_date(
        self,
        room_id: int,
        *,
        start: Optional[date] = None,
        lookahead_days: Optional[int] = None,
        stride_days: Optional[int] = None,
    ) -> Optional[date]:
        """Walk forward one-night windows and return the first open check-in date."""

        start = start or self.clock.today()
        lookahead = lookahead_days or self.settings.next_available_lookahead_days
        stride = stride_days or self.settings.next_available_stride_days
        for offset in range(0, lookahead, stride):
            day = start + timedelta(days=offset)
            result = await self.resolve(room_id, DateRange.starting(day))
            if result.is_available:
                logger.info(f"[AVAILABILITY] Room {room_id} available from {day}")
                return day
        logger.info(f"[AVAILABILITY] No availability for room {room_id} in next {lookahead} days")
        return None

    async def dynamic_status(self, room_id: int) -> DynamicRoomStatus:
        """Best-effort current status for listings.

        Falls back to ``available`` with low confidence when nothing answers, so
        it must never feed the pre-submit guard.
        """

        today = self.clock.today()
        try:
            data = await self.api.get_room_status(room_id)
            return DynamicRoomStatus(
                status=data["dynamic_status"],
                next_available_date=(data.get("next_available_date") or "")[:10] or None,
                data_source="database",
                confidence="high",
            )
        except Exception as exc:
            logger.warning(f"[AVAILABILITY] Room status endpoint failed for room {room_id}: {exc}")

        month = DateRange(start_date=today, end_date=today + timedelta(days=30))
        try:
            data = await self.api.get_room_availability(room_id, month)
            if data["is_available"]:
                status = "available"
            else:
                status = "occupied" if data.get("current_booking") else "maintenance"
            return DynamicRoomStatus(
                status=status,
                next_available_date=(data.get("next_available_date") or "")[:10] or None,
                data_source="database",
                confidence="high",
            )
        except Exception as exc:
            logger.warning(f"[AVAILABILITY] Extended availability failed for room {room_id}: {exc}")

        week = DateRange(start_date=today, end_date=today + timedelta(days=7))
        try:
            bookings = await self.api.get_room_bookings(room_id, week.start_date, week.end_date)
            real = [b for b in bookings if not b.placeholder and not b.is_cancelled]
            if real:
                current = [
                    b for b in real
                    if b.start_date and b.end_date and b.start_date <= today <= b.end_date
                ]
                if current:
                    return DynamicRoomStatus(
                        status="occupied",
                        next_available_date=await self.find_next_available_date(room_id),
                    )
                return DynamicRoomStatus(status="available")
        except Exception as exc:
            logger.warning(f"[AVAILABILITY] Room bookings failed for room {room_id}: {exc}")

        try:
            data = await self.api.get_basic_availability(room_id, week)
            if not data["is_available"]:
                return DynamicRoomStatus(
                    status="occupied",
                    next_available_date=await self.find_next_available_date(room_id, lookahead_days=7),
                    data_source="availability_check",
                    confidence="medium",
                )
            return DynamicRoomStatus(
                status="available",
                data_source="availability_check",
                confidence="medium",
            )
        except Exception as exc:
            logger.error(f"[AVAILABILITY] Could not determine status for room {room_id}: {exc}")

        return DynamicRoomStatus(status="available", data_source="static", confidence="low")
