"""Same-day bookability after early checkouts, with countdown and polling."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from homestay_booking.booking_api import BookingApi
from homestay_booking.config import Clock, Settings, get_settings
from homestay_booking.schemas import Countdown, SameDayAvailability
from homestay_booking.tasks import PeriodicTask

logger = logging.getLogger(__name__)

AVAILABLE_NOW = "Available now!"


def is_today(day: date, clock: Clock) -> bool:
    return day.isoformat() == clock.today_str()


def _parse_hhmm(value: str) -> Optional[tuple[int, int]]:
    try:
        hours, minutes = value.strip().split(":")[:2]
        hour, minute = int(hours), int(minutes)
    except (AttributeError, ValueError):
        return None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None
    return hour, minute


def derive_countdown(availability: SameDayAvailability, now: datetime) -> Optional[Countdown]:
    """Time left until housekeeping finishes, or ``None`` when there is nothing to count."""

    if availability.housekeeping_status != "in_progress" or not availability.housekeeping_complete_time:
        return None
    parsed = _parse_hhmm(availability.housekeeping_complete_time)
    if parsed is None:
        return None
    target = now.replace(hour=parsed[0], minute=parsed[1], second=0, microsecond=0)
    remaining = int((target - now).total_seconds() // 60)
    if target <= now:
        return Countdown(label=AVAILABLE_NOW, remaining_minutes=0, available_now=True)
    hours, minutes = divmod(remaining, 60)
    return Countdown(label=f"Available in {hours}h {minutes}m", remaining_minutes=remaining)


class SameDayEvaluator:
    def __init__(self, api: BookingApi, *, clock: Optional[Clock] = None) -> None:
        self.api = api
        self.clock = clock or Clock()

    async def evaluate_today(self, room_id: int, today: Optional[date] = None) -> SameDayAvailability:
        today = today or self.clock.today()
        try:
            result = await self.api.get_same_day_availability(room_id, today)
            logger.debug(f"[SAME-DAY] Backend result for room {room_id}: {result.message}")
            return result
        except Exception as exc:
            logger.warning(f"[SAME-DAY] Backend endpoint error for room {room_id}, using fallback: {exc}")
        return await self._fallback(room_id, today)

    async def _fallback(self, room_id: int, today: date) -> SameDayAvailability:
        try:
            bookings = await self.api.get_room_bookings(room_id, today, today)
        except Exception as exc:
            logger.error(f"[SAME-DAY] Fallback check failed for room {room_id}: {exc}")
            return SameDayAvailability(
                is_available=False,
                can_book_today=False,
                earliest_booking_time="unknown",
                message="Unable to check same-day availability",
                source="failsafe",
            )

        completed_today = [
            b for b in bookings
            if b.effective_status == "completed" and b.end_date == today
        ]
        active_today = [
            b for b in bookings
            if b.is_active
            and b.start_date is not None
            and b.end_date is not None
            and b.start_date <= today <= b.end_date
        ]

        if active_today:
            return SameDayAvailability(
                is_available=False,
                can_book_today=False,
                earliest_booking_time="later",
                message="Room is currently occupied",
                current_booking=active_today[0],
                source="fallback",
            )
        if completed_today:
            previous = completed_today[0]
            return SameDayAvailability(
                is_available=True,
                can_book_today=True,
                early_checkout=True,
                earliest_booking_time="now",
                checkout_time=previous.checkout_time,
                previous_booking=previous,
                message="Room had checkout today - backend verification recommended",
                source="fallback",
            )
        return SameDayAvailability(
            is_available=True,
            can_book_today=True,
            earliest_booking_time="now",
            message="Room appears available",
            source="fallback",
        )


UpdateCallback = Callable[[SameDayAvailability, Optional[Countdown]], None]


class SameDayMonitor:
    """Keeps one room's same-day status fresh while its screen is open.

    Two independent timers: a poll every ``same_day_poll_seconds`` and, while
    housekeeping is in progress, a countdown tick every
    ``countdown_interval_seconds``. Both stop on ``stop()``.
    """

    def __init__(
        self,
        evaluator: SameDayEvaluator,
        room_id: int,
        *,
        settings: Optional[Settings] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> None:
        self.evaluator = evaluator
        self.room_id = room_id
        self.settings = settings or get_settings()
        self.on_update = on_update
        self.availability: Optional[SameDayAvailability] = None
        self.countdown: Optional[Countdown] = None
        self._poll: Optional[PeriodicTask] = None
        self._countdown_task: Optional[PeriodicTask] = None
        self._rechecked = False

    @property
    def clock(self) -> Clock:
        return self.evaluator.clock

    async def __aenter__(self) -> "SameDayMonitor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()

    async def start(self) -> "SameDayMonitor":
        await self.refresh()
        self._poll = PeriodicTask(
            self.refresh,
            self.settings.same_day_poll_seconds,
            immediate=False,
            name=f"same-day-poll-{self.room_id}",
        ).start()
        return self

    def stop(self) -> None:
        if self._poll is not None:
            self._poll.stop()
        self._stop_countdown()

    @property
    def timers_running(self) -> bool:
        return any(t is not None and t.running for t in (self._poll, self._countdown_task))

    async def refresh(self) -> SameDayAvailability:
        self.availability = await self.evaluator.evaluate_today(self.room_id)
        self._sync_countdown()
        self._notify()
        return self.availability

    def _notify(self) -> None:
        if self.on_update is not None and self.availability is not None:
            self.on_update(self.availability, self.countdown)

    def _sync_countdown(self) -> None:
        availability = self.availability
        wants_countdown = (
            availability is not None
            and availability.housekeeping_status == "in_progress"
            and bool(availability.housekeeping_complete_time)
        )
        if not wants_countdown:
            self.countdown = None
            self._stop_countdown()
            return
        self.countdown = derive_countdown(availability, self.clock.now())
        if self._countdown_task is None or not self._countdown_task.running:
            self._countdown_task = PeriodicTask(
                self._tick,
                self.settings.countdown_interval_seconds,
                name=f"same-day-countdown-{self.room_id}",
            ).start()

    def _stop_countdown(self) -> None:
        if self._countdown_task is not None:
            self._countdown_task.stop()

    async def _tick(self) -> None:
        if self.availability is None:
            return
        self.countdown = derive_countdown(self.availability, self.clock.now())
        self._notify()
        if self.countdown is None or self.countdown.available_now:
            self._stop_countdown()
            if self.countdown is not None and not self._rechecked:
                self._rechecked = True
                logger.info(f"[SAME-DAY] Housekeeping window passed for room {self.room_id}, re-checking")
                await self.refresh()
