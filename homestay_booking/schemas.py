"""Pydantic schemas shared by the booking client and its HTTP façade."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

RoomStatus = Literal["available", "occupied", "maintenance"]
HousekeepingStatus = Literal["in_progress", "completed"]
PaymentState = Literal["PENDING", "COMPLETED", "FAILED", "EXPIRED"]

ACTIVE_BOOKING_STATUSES = frozenset({"confirmed", "pending"})


def _iso_day(value: Any) -> Any:
    # Backends mix "2025-03-11" and "2025-03-11T00:00:00.000Z"; keep the calendar day.
    if isinstance(value, str) and len(value) > 10 and value[4] == "-":
        return value[:10]
    return value


class DateRange(BaseModel):
    """Half-open stay interval: check-in day included, check-out day excluded."""

    model_config = ConfigDict(frozen=True)

    start_date: date = Field(..., description="Check-in date (YYYY-MM-DD)")
    end_date: date = Field(..., description="Check-out date (YYYY-MM-DD)")

    @model_validator(mode="after")
    def _end_after_start(self) -> "DateRange":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days

    def overlaps(self, start: date, end: date) -> bool:
        return start < self.end_date and end > self.start_date

    def as_params(self) -> dict[str, str]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }

    @classmethod
    def starting(cls, start: date, nights: int = 1) -> "DateRange":
        return cls(start_date=start, end_date=start + timedelta(days=nights))


class Room(BaseModel):
    id: int
    homestay_id: Optional[int] = None
    name: Optional[str] = None
    room_number: Optional[Union[str, int]] = None
    number_people: Optional[int] = None
    max_guests: Optional[int] = None
    max_occupancy: Optional[int] = None
    price_per_night: float = 0.0
    status: RoomStatus = "available"
    next_available_date: Optional[date] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_status(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            status = str(data.get("status") or "available").lower()
            # Anything the client does not recognise must not read as bookable.
            data["status"] = status if status in ("available", "occupied", "maintenance") else "occupied"
            if data.get("price_per_night") is None and data.get("price") is not None:
                data["price_per_night"] = data["price"]
            data["next_available_date"] = _iso_day(data.get("next_available_date"))
        return data

    @property
    def label(self) -> str:
        return str(self.room_number or self.name or self.id)

    def default_guest_count(self) -> int:
        capacity = self.max_occupancy or self.max_guests
        if capacity == 1:
            return 1
        return min(self.number_people or 2, capacity or 2)


class Homestay(BaseModel):
    id: int
    title: str = ""
    description: str = ""
    base_price: float = 0.0
    max_guests: int = 2
    rooms: list[Room] = Field(default_factory=list)


class Booking(BaseModel):
    """A booking as returned by the backend, or a placeholder synthesised locally."""

    id: Optional[Union[int, str]] = None
    room_id: Optional[int] = None
    booking_number: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    booking_status: Optional[str] = None
    checkout_time: Optional[str] = None
    placeholder: bool = False
    note: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("room_id") is None and isinstance(data.get("room"), dict):
            data["room_id"] = data["room"].get("id")
        data["start_date"] = _iso_day(data.get("start_date") or data.get("check_in"))
        data["end_date"] = _iso_day(data.get("end_date") or data.get("check_out"))
        return data

    @property
    def effective_status(self) -> str:
        return (self.booking_status or self.status or "").lower()

    @property
    def is_cancelled(self) -> bool:
        return self.effective_status == "cancelled"

    @property
    def is_active(self) -> bool:
        return self.effective_status in ACTIVE_BOOKING_STATUSES


class AvailabilityResult(BaseModel):
    room_id: int
    date_range: Optional[DateRange] = None
    is_available: bool = False
    checking: bool = False
    current_booking: Optional[Booking] = None
    next_available_date: Optional[date] = None
    upcoming_bookings: list[Booking] = Field(default_factory=list)
    source: str = Field("pending", description="Strategy that produced this result")
    error: Optional[str] = None

    @classmethod
    def pending(cls, room_id: int, date_range: DateRange) -> "AvailabilityResult":
        return cls(room_id=room_id, date_range=date_range, checking=True)

    @classmethod
    def failsafe(cls, room_id: int, date_range: DateRange, error: str) -> "AvailabilityResult":
        return cls(
            room_id=room_id,
            date_range=date_range,
            is_available=False,
            source="failsafe",
            error=error,
        )


class SameDayAvailability(BaseModel):
    is_available: bool = False
    can_book_today: bool = False
    early_checkout: bool = False
    earliest_booking_time: str = "unknown"
    message: str = ""
    checkout_time: Optional[str] = None
    housekeeping_status: Optional[HousekeepingStatus] = None
    housekeeping_complete_time: Optional[str] = None
    current_booking: Optional[Booking] = None
    previous_booking: Optional[Booking] = None
    source: str = "backend"


class Countdown(BaseModel):
    label: str
    remaining_minutes: Optional[int] = None
    available_now: bool = False


class GuestContact(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""


class BookingDraft(BaseModel):
    """In-progress booking form; mutated by the user, submitted once."""

    room_id: int
    start_date: date
    end_date: date
    number_of_guests: int = 1
    homestay_id: Optional[int] = None
    guest: Optional[GuestContact] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    check_in_time: str = "14:00"
    check_out_time: str = "11:00"
    payment_method: str = "qris"

    @property
    def date_range(self) -> DateRange:
        return DateRange(start_date=self.start_date, end_date=self.end_date)


class BookingConfirmation(BaseModel):
    id: Union[int, str]
    booking_number: Optional[str] = None
    room_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = "pending"
    payment_status: str = "pending"
    total_price: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["status"] = data.get("booking_status") or data.get("status") or "pending"
            data["start_date"] = _iso_day(data.get("start_date"))
            data["end_date"] = _iso_day(data.get("end_date"))
        return data


OutcomeStatus = Literal[
    "pending_payment",
    "rejected",
    "invalid",
    "login_required",
    "unavailable",
    "failed",
]


class BookingOutcome(BaseModel):
    status: OutcomeStatus = Field(..., description="Classified result of the submission")
    message: str = Field(..., description="Human readable explanation")
    booking: Optional[BookingConfirmation] = None
    errors: list[str] = Field(default_factory=list)
    login_url: Optional[str] = None
    draft: Optional[BookingDraft] = Field(None, description="Draft to restore after login")
    same_day: Optional[SameDayAvailability] = None
    availability: Optional[AvailabilityResult] = None
    next_available_date: Optional[date] = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "pending_payment"


class RoomPartition(BaseModel):
    available: list[Room] = Field(default_factory=list)
    unavailable: list[Room] = Field(default_factory=list)
    first_check_complete: bool = False
    checking: bool = False


class DynamicRoomStatus(BaseModel):
    status: RoomStatus
    next_available_date: Optional[date] = None
    data_source: Literal["database", "availability_check", "static"] = "database"
    confidence: Literal["high", "medium", "low"] = "high"


class PaymentStatus(BaseModel):
    payment_status: PaymentState
    payment_completed_at: Optional[str] = None
    booking_status: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.payment_status != "PENDING"


class PaymentRequest(BaseModel):
    booking_id: int
    amount: Optional[float] = None
    qr_code: Optional[str] = None
    payment_status: PaymentState = "PENDING"
    expires_at: Optional[str] = None
