"""Room selection state for the booking form.

Every date change marks all rooms as checking, waits out a debounce, then
resolves every room concurrently. Each fan-out is tagged with the DateRange it
was issued for and results for an older range are dropped on arrival. In-flight
HTTP requests are not cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Literal, Optional

from homestay_booking.availability.resolver import AvailabilityResolver
from homestay_booking.config import Settings, get_settings
from homestay_booking.schemas import AvailabilityResult, DateRange, Room, RoomPartition, RoomStatus
from homestay_booking.tasks import DelayedTask

logger = logging.getLogger(__name__)

SelectAction = Literal["selected", "date_picker"]


class RoomSelection:
    def __init__(
        self,
        resolver: AvailabilityResolver,
        rooms: Iterable[Room],
        *,
        settings: Optional[Settings] = None,
        selected_room_id: Optional[int] = None,
    ) -> None:
        self.resolver = resolver
        self.rooms = [room for room in rooms if room is not None]
        self.settings = settings or get_settings()
        self.results: dict[int, AvailabilityResult] = {}
        self.active_range: Optional[DateRange] = None
        self.first_check_complete = False
        self.selected_room_id = selected_room_id
        if self.selected_room_id is None and self.rooms:
            self.selected_room_id = self.rooms[0].id
        self.picker_room_id: Optional[int] = None
        self._debounce: Optional[DelayedTask] = None
        self._inflight: set[asyncio.Task] = set()

    def room(self, room_id: int) -> Optional[Room]:
        return next((room for room in self.rooms if room.id == room_id), None)

    def set_dates(self, date_range: DateRange) -> None:
        """Record a new date range and schedule a debounced check of every room."""

        self.active_range = date_range
        self.first_check_complete = False
        self.results = {room.id: AvailabilityResult.pending(room.id, date_range) for room in self.rooms}
        if self._debounce is not None:
            self._debounce.cancel()
        if not self.rooms:
            return
        self._debounce = DelayedTask(
            lambda: self._launch(date_range),
            self.settings.debounce_seconds,
            name="room-availability-debounce",
        ).start()

    async def _launch(self, date_range: DateRange) -> None:
        task = asyncio.get_running_loop().create_task(self.check_all(date_range))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        await task

    async def check_all(self, date_range: DateRange) -> RoomPartition:
        """Resolve every room for ``date_range`` concurrently."""

        if self.active_range is None:
            self.active_range = date_range
            self.results = {room.id: AvailabilityResult.pending(room.id, date_range) for room in self.rooms}
        logger.debug(
            f"[AVAILABILITY] Checking {len(self.rooms)} rooms for "
            f"{date_range.start_date}..{date_range.end_date}"
        )
        await asyncio.gather(*(self._check_room(room, date_range) for room in self.rooms))
        if date_range == self.active_range:
            self.first_check_complete = True
            available = sum(1 for r in self.results.values() if r.is_available)
            logger.info(f"[AVAILABILITY] {available}/{len(self.rooms)} rooms available")
        return self.partition()

    async def _check_room(self, room: Room, date_range: DateRange) -> None:
        try:
            result = await self.resolver.resolve(room.id, date_range)
        except Exception as exc:
            logger.error(f"[AVAILABILITY] Check failed for room {room.id}: {exc}")
            result = AvailabilityResult.failsafe(room.id, date_range, str(exc))
        if date_range != self.active_range:
            logger.debug(f"[AVAILABILITY] Discarding stale result for room {room.id}")
            return
        self.results[room.id] = result

    async def settle(self) -> None:
        """Wait for the pending debounce and every fan-out still in flight."""

        while True:
            pending = [t for t in self._inflight if not t.done()]
            if self._debounce is not None and not self._debounce.done:
                await self._debounce.wait()
                continue
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _settled(self, room_id: int) -> Optional[AvailabilityResult]:
        result = self.results.get(room_id)
        if result is None or result.checking or result.date_range != self.active_range:
            return None
        return result

    def is_room_available(self, room: Room) -> bool:
        result = self._settled(room.id)
        if result is not None:
            return result.is_available
        if not self.first_check_complete:
            # No answer yet: show the room rather than flash "not available".
            return True
        return room.status == "available"

    def partition(self) -> RoomPartition:
        available, unavailable = [], []
        for room in self.rooms:
            (available if self.is_room_available(room) else unavailable).append(room)
        return RoomPartition(
            available=available,
            unavailable=unavailable,
            first_check_complete=self.first_check_complete,
            checking=any(r.checking for r in self.results.values()),
        )

    def select_room(self, room_id: int) -> SelectAction:
        """Select a room, or open the per-room date picker if it is known to conflict."""

        room = self.room(room_id)
        if room is None:
            raise KeyError(f"Room {room_id} is not part of this homestay")
        if not self.is_room_available(room):
            self.picker_room_id = room_id
            return "date_picker"
        self.picker_room_id = None
        self.selected_room_id = room_id
        return "selected"

    def last_known_status(self, room_id: int) -> Optional[RoomStatus]:
        """Status fed to the pre-submit guard; ``None`` when the room is unknown."""

        room = self.room(room_id)
        if room is None:
            return None
        result = self._settled(room_id)
        if result is None:
            return room.status
        if result.is_available:
            return "available"
        return "maintenance" if room.status == "maintenance" else "occupied"

    def teardown(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
        self.results = {}
        self.active_range = None
