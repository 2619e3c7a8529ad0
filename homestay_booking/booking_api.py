"""Named calls for every backend endpoint the booking client depends on."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from homestay_booking.api_client import ApiClient
from homestay_booking.errors import ApiError
from homestay_booking.schemas import (
    Booking,
    BookingConfirmation,
    BookingDraft,
    DateRange,
    Homestay,
    PaymentRequest,
    PaymentStatus,
    Room,
    SameDayAvailability,
)

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")


def _as_list(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("bookings", "items", "rows"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


def guest_payload(draft: BookingDraft) -> dict[str, Any]:
    """Cleaned body for ``POST /bookings/guest``."""

    guest = draft.guest
    if guest is None:
        raise ValueError("Guest contact details are required for guest bookings")
    payload = authenticated_payload(draft)
    payload.update(
        {
            "guest_name": guest.name.strip(),
            "guest_email": guest.email.strip().lower(),
            "guest_phone": guest.phone.strip(),
        }
    )
    return payload


def authenticated_payload(draft: BookingDraft) -> dict[str, Any]:
    """Body for ``POST /bookings``; new bookings always start pending payment."""

    notes = (draft.notes or "").strip()
    return {
        "start_date": draft.start_date.isoformat(),
        "end_date": draft.end_date.isoformat(),
        "room_id": int(draft.room_id),
        "homestay_id": draft.homestay_id,
        "number_of_guests": int(draft.number_of_guests),
        "special_requests": (draft.special_requests or "").strip(),
        "notes": f"{notes} | PAYMENT_REQUIRED" if notes else "PAYMENT_REQUIRED",
        "check_in_time": draft.check_in_time or "14:00",
        "check_out_time": draft.check_out_time or "11:00",
        "payment_method": draft.payment_method or "qris",
        "booking_status": "pending",
        "payment_status": "pending",
    }


class BookingApi:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    @property
    def session(self):
        return self.client.session

    # Availability

    async def get_room_availability(self, room_id: int, date_range: DateRange) -> dict[str, Any]:
        data = await self.client.get(
            f"/bookings/room/{room_id}/availability",
            params=date_range.as_params(),
            auth="none",
        )
        if not isinstance(data, dict) or "is_available" not in data:
            raise ApiError("Unexpected availability response", payload=data)
        return data

    async def get_basic_availability(self, room_id: int, date_range: DateRange) -> dict[str, Any]:
        """Room-level flag only; asks for completed bookings so same-day checkouts show up."""

        params: dict[str, Any] = {**date_range.as_params(), "include_completed": "true", "real_time": "true"}
        data = await self.client.get(
            f"/bookings/room/{room_id}/availability",
            params=params,
            auth="none",
        )
        if not isinstance(data, dict) or "is_available" not in data:
            raise ApiError("Failed to check room availability", payload=data)
        return data

    async def get_same_day_availability(self, room_id: int, day: date) -> SameDayAvailability:
        data = await self.client.get(
            f"/bookings/room/{room_id}/same-day-availability",
            params={"date": day.isoformat()},
            auth="none",
        )
        return SameDayAvailability.model_validate(data)

    async def get_room_bookings(
        self,
        room_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Booking]:
        params: dict[str, Any] = {"include_cancelled": "false"}
        if start is not None:
            params["start_date"] = start.isoformat()
        if end is not None:
            params["end_date"] = end.isoformat()
        data = await self.client.get(f"/bookings/room/{room_id}", params=params)
        return [Booking.model_validate(item) for item in _as_list(data)]

    async def get_all_bookings(self) -> list[Booking]:
        data = await self.client.get("/bookings", auth="required")
        return [Booking.model_validate(item) for item in _as_list(data)]

    async def get_user_bookings(self) -> list[Booking]:
        data = await self.client.get("/bookings/my", auth="required")
        return [Booking.model_validate(item) for item in _as_list(data)]

    async def get_booking(self, booking_id: int) -> Booking:
        data = await self.client.get(f"/bookings/{booking_id}")
        return Booking.model_validate(data)

    async def get_room_status(self, room_id: int) -> dict[str, Any]:
        data = await self.client.get(f"/rooms/{room_id}/status", auth="none")
        if not isinstance(data, dict):
            raise ApiError("Unexpected room status response", payload=data)
        return {
            "dynamic_status": data.get("dynamic_status") or data.get("status") or "available",
            "is_bookable": data.get("is_bookable", True),
            "next_available_date": data.get("next_available_date"),
        }

    async def get_homestay_rooms_status(self, homestay_id: int) -> list[dict[str, Any]]:
        data = await self.client.get(f"/rooms/homestay/{homestay_id}/status", auth="none")
        return data or []

    async def refresh_room_availability(self, room_id: int) -> dict[str, Any]:
        return await self.client.post(f"/rooms/{room_id}/refresh-availability")

    # Homestays

    async def get_homestay(self, homestay_id: int, language: str = "en") -> Homestay:
        data = await self.client.get(f"/homestays/{homestay_id}", params={"lang": language})
        homestay = Homestay.model_validate(data)
        if not homestay.rooms:
            logger.info(f"[BOOKING] Homestay {homestay_id} has no rooms, using a fallback room")
            homestay.rooms = [
                Room(
                    id=homestay.id * 1000,
                    homestay_id=homestay.id,
                    name=f"Room at {homestay.title}",
                    price_per_night=homestay.base_price,
                    max_guests=homestay.max_guests,
                    number_people=homestay.max_guests,
                    status="available",
                )
            ]
        return homestay

    # Bookings

    async def create_guest_booking(self, draft: BookingDraft) -> BookingConfirmation:
        data = await self.client.post("/bookings/guest", json=guest_payload(draft), auth="none")
        return BookingConfirmation.model_validate(data)

    async def create_authenticated_booking(self, draft: BookingDraft) -> BookingConfirmation:
        data = await self.client.post(
            "/bookings", json=authenticated_payload(draft), auth="required"
        )
        return BookingConfirmation.model_validate(data)

    async def update_booking_status(
        self,
        booking_id: int,
        status: str,
        cancellation_reason: Optional[str] = None,
    ) -> Any:
        if status not in BOOKING_STATUSES:
            raise ValueError(f"Unknown booking status: {status}")
        return await self.client.put(
            f"/bookings/{booking_id}/status",
            json={"status": status, "cancellation_reason": cancellation_reason},
            auth="required",
        )

    async def cancel_booking(self, booking_id: int, reason: str) -> Any:
        return await self.client.put(
            f"/bookings/{booking_id}/status",
            json={"status": "cancelled", "cancellation_reason": reason},
        )

    # Payments

    async def create_payment(self, booking_id: int, customer_name: str, customer_email: str) -> PaymentRequest:
        data = await self.client.post(
            "/qris/create",
            json={
                "booking_id": booking_id,
                "customer_name": customer_name,
                "customer_email": customer_email,
            },
        )
        return PaymentRequest.model_validate(data)

    async def payment_status(self, booking_id: int) -> PaymentStatus:
        try:
            data = await self.client.get(f"/qris/status/{booking_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                raise ApiError("Payment not found", status_code=404) from exc
            if exc.status_code is not None and 400 <= exc.status_code < 500 and exc.status_code != 401:
                raise ApiError("Bad request - check booking ID", status_code=exc.status_code) from exc
            raise
        if not isinstance(data, dict) or "payment_status" not in data:
            raise ApiError("Unexpected response format from backend", payload=data)
        return PaymentStatus.model_validate(data)
