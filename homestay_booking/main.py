"""FastAPI entrypoint exposing the booking client to the front-end."""

from datetime import date
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, ValidationError

from homestay_booking.api_client import ApiClient
from homestay_booking.availability import derive_countdown, is_today
from homestay_booking.config import Settings, get_settings
from homestay_booking.drafts import MemoryDraftStore
from homestay_booking.errors import ApiError
from homestay_booking.schemas import (
    AvailabilityResult,
    BookingDraft,
    BookingOutcome,
    Countdown,
    DateRange,
    RoomPartition,
    RoomStatus,
    SameDayAvailability,
)
from homestay_booking.services import BookingServices, build_services
from homestay_booking.session import AuthSession

app = FastAPI(title="Homestay Booking Client", version="0.1.0")


class SameDayResponse(BaseModel):
    availability: SameDayAvailability
    countdown: Optional[Countdown] = None


def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for backend calls; ``None`` means a real network connection."""
    return None


async def get_services(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> AsyncIterator[BookingServices]:
    """One API client per request, carrying the caller's bearer token if any.

    Pending drafts live only as long as the request. A draft that needs a
    login is handed back to the caller inside the outcome instead.
    """
    client = ApiClient(AuthSession.from_authorization(authorization), settings=settings, transport=transport)
    try:
        yield build_services(client, drafts=MemoryDraftStore())
    finally:
        await client.aclose()


def _date_range(start_date: date, end_date: date) -> DateRange:
    try:
        return DateRange(start_date=start_date, end_date=end_date)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail="End date must be after start date") from exc


@app.get("/rooms/{room_id}/availability", response_model=AvailabilityResult)
async def room_availability(
    room_id: int,
    start_date: date,
    end_date: date,
    services: BookingServices = Depends(get_services),
) -> AvailabilityResult:
    return await services.resolver.resolve(room_id, _date_range(start_date, end_date))


@app.get("/rooms/{room_id}/same-day", response_model=SameDayResponse)
async def same_day_status(
    room_id: int,
    day: Optional[date] = Query(None, alias="date"),
    services: BookingServices = Depends(get_services),
) -> SameDayResponse:
    day = day or services.clock.today()
    if not is_today(day, services.clock):
        raise HTTPException(status_code=400, detail="Same-day status is only available for today")
    availability = await services.evaluator.evaluate_today(room_id, day)
    return SameDayResponse(
        availability=availability,
        countdown=derive_countdown(availability, services.clock.now()),
    )


@app.get("/homestays/{homestay_id}/availability", response_model=RoomPartition)
async def homestay_availability(
    homestay_id: int,
    start_date: date,
    end_date: date,
    services: BookingServices = Depends(get_services),
) -> RoomPartition:
    date_range = _date_range(start_date, end_date)
    try:
        homestay = await services.api.get_homestay(homestay_id)
    except ApiError as exc:
        raise HTTPException(status_code=exc.status_code or 502, detail=exc.message) from exc
    selection = services.room_selection(homestay.rooms)
    return await selection.check_all(date_range)


@app.post("/bookings", response_model=BookingOutcome)
async def submit_booking(
    draft: BookingDraft,
    known_status: Optional[RoomStatus] = None,
    services: BookingServices = Depends(get_services),
) -> BookingOutcome:
    if known_status is None:
        return await services.submitter.submit_checked(draft)
    return await services.submitter.submit(draft, known_status=known_status)


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("homestay_booking.main:app", host="0.0.0.0", port=8000, reload=True)
