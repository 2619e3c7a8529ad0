"""Booking submission: guard, validate, route, and classify failures."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote, urlencode

from homestay_booking.availability.resolver import AvailabilityResolver
from homestay_booking.availability.same_day import SameDayEvaluator
from homestay_booking.booking_api import BookingApi
from homestay_booking.config import Clock
from homestay_booking.drafts import DraftStore, MemoryDraftStore
from homestay_booking.errors import AuthenticationRequired, ValidationFailed
from homestay_booking.schemas import BookingDraft, BookingOutcome, RoomStatus, SameDayAvailability
from homestay_booking.session import AuthSession
from homestay_booking.validation import validate_draft, validate_guest

logger = logging.getLogger(__name__)

AVAILABILITY_MARKERS = ("not available", "no longer available", "already booked")
AUTH_MARKER = "authentication"


def is_auth_failure(message: str) -> bool:
    return AUTH_MARKER in message.lower()


def is_availability_failure(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in AVAILABILITY_MARKERS)


def same_day_message(info: SameDayAvailability) -> str:
    checkout = f" at {info.checkout_time}" if info.checkout_time else ""
    if info.can_book_today and info.early_checkout:
        if info.housekeeping_status == "completed":
            return (
                f"Room had early checkout{checkout} and housekeeping is complete. "
                "You can book this room immediately!"
            )
        ready = (
            f" - available around {info.housekeeping_complete_time}"
            if info.housekeeping_complete_time
            else ""
        )
        return f"Room had early checkout{checkout}. Housekeeping in progress{ready}. Please try again shortly."
    if info.can_book_today:
        return "Room is available for same-day booking. You can book immediately!"
    booking = (
        f" (Booking: {info.current_booking.booking_number})"
        if info.current_booking and info.current_booking.booking_number
        else ""
    )
    later = (
        f" Available from {info.earliest_booking_time}"
        if info.earliest_booking_time and info.earliest_booking_time != "unknown"
        else ""
    )
    return f"{info.message}{booking}{later}"


class BookingSubmitter:
    def __init__(
        self,
        api: BookingApi,
        resolver: AvailabilityResolver,
        evaluator: SameDayEvaluator,
        *,
        session: Optional[AuthSession] = None,
        clock: Optional[Clock] = None,
        drafts: Optional[DraftStore] = None,
        login_path: str = "/auth/login",
    ) -> None:
        self.api = api
        self.resolver = resolver
        self.evaluator = evaluator
        self.session = session or api.session
        self.clock = clock or resolver.clock
        self.drafts = drafts or MemoryDraftStore()
        self.login_path = login_path

    async def submit(
        self,
        draft: BookingDraft,
        *,
        known_status: Optional[RoomStatus] = None,
    ) -> BookingOutcome:
        if known_status is not None and known_status != "available":
            return BookingOutcome(
                status="rejected",
                message=(
                    f"This room is currently {known_status}. "
                    "Please select different dates or choose another room."
                ),
            )

        try:
            self.validate(draft)
        except ValidationFailed as exc:
            return self._invalid(draft, exc)

        try:
            if self.session.is_authenticated:
                booking = await self.api.create_authenticated_booking(draft)
            else:
                booking = await self.api.create_guest_booking(draft)
        except Exception as exc:
            logger.warning(f"[BOOKING] Booking for room {draft.room_id} failed: {exc}")
            return await self.classify_failure(draft, exc)

        self.drafts.clear()
        logger.info(f"[BOOKING] Created booking {booking.booking_number or booking.id} pending payment")
        return BookingOutcome(
            status="pending_payment",
            message="Your booking is reserved. Please complete payment to confirm it.",
            booking=booking,
        )

    async def submit_checked(self, draft: BookingDraft) -> BookingOutcome:
        """Look the room up for the draft's dates first and only submit when it is free.

        Used when the caller has no status of its own for the room, so the
        pre-submit guard always runs against a fresh availability result.
        """

        try:
            self.validate(draft)
        except ValidationFailed as exc:
            return self._invalid(draft, exc)

        result = await self.resolver.resolve(draft.room_id, draft.date_range)
        if not result.is_available:
            logger.info(
                f"[BOOKING] Room {draft.room_id} not available from {draft.start_date} "
                f"to {draft.end_date}, not submitting"
            )
            next_date = await self.resolver.find_next_available_date(draft.room_id)
            message = result.error or "This room is not available for the selected dates."
            if next_date is not None:
                message += f" This room is available starting {next_date.isoformat()}."
            return BookingOutcome(
                status="unavailable",
                message=message,
                availability=result,
                next_available_date=next_date,
                retryable=result.source == "failsafe",
            )
        return await self.submit(draft, known_status="available")

    def validate(self, draft: BookingDraft) -> None:
        """Raise ``ValidationFailed`` unless the draft can be sent as-is."""

        errors = validate_draft(draft, self.clock.today())
        if not self.session.is_authenticated:
            errors.extend(validate_guest(draft.guest))
        if errors:
            raise ValidationFailed(errors)

    def _invalid(self, draft: BookingDraft, exc: ValidationFailed) -> BookingOutcome:
        logger.info(f"[BOOKING] Draft for room {draft.room_id} failed validation: {exc.errors}")
        return BookingOutcome(status="invalid", message=exc.errors[0], errors=exc.errors)

    async def classify_failure(self, draft: BookingDraft, exc: Exception) -> BookingOutcome:
        message = str(exc) or "Unknown error occurred"
        if isinstance(exc, AuthenticationRequired) or is_auth_failure(message):
            try:
                self.drafts.save(draft)
            except OSError as err:
                logger.warning(f"[BOOKING] Could not keep the pending draft: {err}")
            return BookingOutcome(
                status="login_required",
                message="Please login to continue with your booking",
                login_url=self.login_url(draft),
                draft=draft,
            )
        if is_availability_failure(message):
            return await self._availability_conflict(draft)
        return BookingOutcome(status="failed", message=message, retryable=True)

    def login_url(self, draft: BookingDraft) -> str:
        params = {"room": draft.room_id}
        if draft.homestay_id is not None:
            params = {"homestay": draft.homestay_id, **params}
        return_url = f"/book-now?{urlencode(params)}"
        return f"{self.login_path}?returnUrl={quote(return_url, safe='')}"

    async def _availability_conflict(self, draft: BookingDraft) -> BookingOutcome:
        today = self.clock.today()
        if draft.start_date == today:
            info = await self.evaluator.evaluate_today(draft.room_id, today)
            next_date = None
            if not info.can_book_today:
                next_date = await self.resolver.find_next_available_date(draft.room_id)
            return BookingOutcome(
                status="unavailable",
                message=same_day_message(info),
                same_day=info,
                next_available_date=next_date,
                retryable=info.can_book_today,
            )

        result = await self.resolver.resolve(draft.room_id, draft.date_range)
        if result.is_available:
            return BookingOutcome(
                status="unavailable",
                message="Availability changed while booking. The room looks free again, please retry.",
                availability=result,
                retryable=True,
            )
        next_date = await self.resolver.find_next_available_date(draft.room_id)
        message = "This room was just booked by another guest."
        if next_date is not None:
            message += f" This room is available starting {next_date.isoformat()}."
        return BookingOutcome(
            status="unavailable",
            message=message,
            availability=result,
            next_available_date=next_date,
        )
