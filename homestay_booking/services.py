"""Wires one session's client, resolver, evaluator and submitter together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from homestay_booking.api_client import ApiClient
from homestay_booking.availability import AvailabilityResolver, SameDayEvaluator, SameDayMonitor
from homestay_booking.booking_api import BookingApi
from homestay_booking.config import Clock, Settings, get_settings
from homestay_booking.drafts import DraftStore, FileDraftStore
from homestay_booking.payments import PaymentTracker
from homestay_booking.schemas import Room
from homestay_booking.selection import RoomSelection
from homestay_booking.session import AuthSession
from homestay_booking.submission import BookingSubmitter


@dataclass
class BookingServices:
    client: ApiClient
    api: BookingApi
    resolver: AvailabilityResolver
    evaluator: SameDayEvaluator
    submitter: BookingSubmitter
    clock: Clock
    settings: Settings

    @property
    def session(self) -> AuthSession:
        return self.client.session

    def room_selection(self, rooms: Iterable[Room], selected_room_id: Optional[int] = None) -> RoomSelection:
        return RoomSelection(
            self.resolver,
            rooms,
            settings=self.settings,
            selected_room_id=selected_room_id,
        )

    def same_day_monitor(self, room_id: int, **kwargs) -> SameDayMonitor:
        return SameDayMonitor(self.evaluator, room_id, settings=self.settings, **kwargs)

    def payment_tracker(self, booking_id: int, **kwargs) -> PaymentTracker:
        return PaymentTracker(self.api, booking_id, **kwargs)

    async def aclose(self) -> None:
        await self.client.aclose()


def build_services(
    client: ApiClient,
    *,
    clock: Optional[Clock] = None,
    drafts: Optional[DraftStore] = None,
) -> BookingServices:
    settings = client.settings or get_settings()
    clock = clock or Clock(settings.tz)
    api = BookingApi(client)
    resolver = AvailabilityResolver(api, clock=clock, settings=settings)
    evaluator = SameDayEvaluator(api, clock=clock)
    submitter = BookingSubmitter(
        api,
        resolver,
        evaluator,
        clock=clock,
        drafts=drafts or FileDraftStore(settings.draft_store_path),
    )
    return BookingServices(
        client=client,
        api=api,
        resolver=resolver,
        evaluator=evaluator,
        submitter=submitter,
        clock=clock,
        settings=settings,
    )
