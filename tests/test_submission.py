"""
Tests for booking submission: guard, validation, routing and failure classification.
"""

from datetime import date

import httpx
import pytest

from homestay_booking.drafts import DraftStore, FileDraftStore, MemoryDraftStore
from homestay_booking.errors import ValidationFailed
from homestay_booking.schemas import BookingDraft, GuestContact
from homestay_booking.validation import validate_guest

CREATED = {
    "status": "success",
    "data": {"id": 55, "booking_number": "BK-0055", "booking_status": "pending", "room_id": 7},
}


def make_draft(**overrides):
    values = {
        "room_id": 7,
        "homestay_id": 3,
        "start_date": date(2025, 3, 15),
        "end_date": date(2025, 3, 17),
        "number_of_guests": 2,
        "guest": GuestContact(name="Sari Putri", email="Sari@Example.com ", phone="+62 812 3456 7890"),
        "notes": "Late arrival",
    }
    values.update(overrides)
    return BookingDraft(**values)


def open_from(day):
    """Availability endpoint that is open only for stays starting on ``day``."""

    def handler(request):
        return {"is_available": request.url.params["start_date"] == day}

    return handler


class TestSubmitGate:
    """Tests for everything that stops a submission before the network."""

    def test_invalid_email_never_hits_network(self, backend, make_services, run):
        services = make_services()
        draft = make_draft(guest=GuestContact(name="Sari Putri", email="not-an-email", phone="0812"))

        outcome = run(services.submitter.submit(draft))

        assert outcome.status == "invalid"
        assert "valid email" in outcome.message
        assert backend.requests == []

    def test_known_unavailable_status_is_rejected(self, backend, make_services, run):
        services = make_services()

        outcome = run(services.submitter.submit(make_draft(), known_status="maintenance"))

        assert outcome.status == "rejected"
        assert "currently maintenance" in outcome.message
        assert backend.requests == []

    def test_past_start_date_is_invalid(self, backend, make_services, run):
        services = make_services(token="secret-token")

        outcome = run(
            services.submitter.submit(make_draft(start_date=date(2025, 3, 9), end_date=date(2025, 3, 11)))
        )

        assert outcome.status == "invalid"
        assert "Start date cannot be in the past" in outcome.errors
        assert backend.requests == []

    def test_validate_raises_with_every_error(self, make_services):
        services = make_services()
        draft = make_draft(number_of_guests=0, guest=None)

        with pytest.raises(ValidationFailed) as excinfo:
            services.submitter.validate(draft)

        assert "Number of guests must be greater than 0" in excinfo.value.errors
        assert "Guest email is required" in excinfo.value.errors

    @pytest.mark.parametrize(
        "guest, message",
        [
            (GuestContact(name="Al", email="al@example.com", phone="0812"), "full name"),
            (GuestContact(name="R2 D2", email="r2@example.com", phone="0812"), "only contain letters"),
            (GuestContact(name="Sari Putri", email="sari@example.com", phone=""), "phone is required"),
            (GuestContact(name="Sari Putri", email="sari@example.com", phone="call me"), "valid phone"),
        ],
    )
    def test_guest_rules(self, guest, message):
        errors = validate_guest(guest)
        assert any(message in error for error in errors)


class TestCheckedSubmit:
    """Tests for resolving availability before anything is sent."""

    def test_unavailable_room_is_never_posted(self, backend, make_services, run):
        backend.on("GET", "/bookings/room/7/availability", open_from("2025-03-12"))
        services = make_services()

        outcome = run(services.submitter.submit_checked(make_draft()))

        assert outcome.status == "unavailable"
        assert outcome.availability.is_available is False
        assert outcome.next_available_date == date(2025, 3, 12)
        assert "available starting 2025-03-12" in outcome.message
        assert backend.calls("POST", "/bookings/guest") == []
        assert backend.calls("POST", "/bookings") == []

    def test_unreachable_availability_blocks_submit(self, backend, make_services, run):
        services = make_services()

        outcome = run(services.submitter.submit_checked(make_draft()))

        assert outcome.status == "unavailable"
        assert outcome.availability.source == "failsafe"
        assert outcome.retryable is True
        assert backend.calls("POST", "/bookings/guest") == []

    def test_available_room_is_submitted(self, backend, make_services, run):
        backend.on("GET", "/bookings/room/7/availability", {"is_available": True})
        backend.on("POST", "/bookings/guest", CREATED)
        services = make_services()

        outcome = run(services.submitter.submit_checked(make_draft()))

        assert outcome.status == "pending_payment"
        assert len(backend.calls("POST", "/bookings/guest")) == 1

    def test_invalid_draft_skips_lookup(self, backend, make_services, run):
        services = make_services()

        outcome = run(services.submitter.submit_checked(make_draft(end_date=date(2025, 3, 15))))

        assert outcome.status == "invalid"
        assert "End date must be after start date" in outcome.errors
        assert backend.requests == []


class TestRouting:
    """Tests for choosing between the authenticated and guest endpoints."""

    def test_authenticated_session_uses_authenticated_endpoint(self, backend, make_services, run):
        backend.on("POST", "/bookings", CREATED)
        services = make_services(token="secret-token")

        outcome = run(services.submitter.submit(make_draft()))

        assert outcome.status == "pending_payment"
        assert outcome.booking.booking_number == "BK-0055"
        assert outcome.booking.status == "pending"
        assert backend.calls("POST", "/bookings/guest") == []
        request = backend.calls("POST", "/bookings")[0]
        assert request.headers["authorization"] == "Bearer secret-token"
        body = backend.body_of(request)
        assert body["booking_status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["notes"] == "Late arrival | PAYMENT_REQUIRED"

    def test_guest_booking_sends_cleaned_contact(self, backend, make_services, run):
        backend.on("POST", "/bookings/guest", CREATED)
        drafts = MemoryDraftStore()
        drafts.save(make_draft())
        services = make_services(drafts=drafts)

        outcome = run(services.submitter.submit(make_draft()))

        assert outcome.ok
        body = backend.body_of(backend.calls("POST", "/bookings/guest")[0])
        assert body["guest_email"] == "sari@example.com"
        assert body["check_in_time"] == "14:00"
        assert body["payment_method"] == "qris"
        assert "authorization" not in backend.calls("POST", "/bookings/guest")[0].headers
        assert drafts.load() is None


class TestFailureClassification:
    """Tests for turning backend failures into outcomes."""

    def test_expired_token_asks_for_login_and_keeps_draft(self, backend, make_services, run):
        backend.on("POST", "/bookings", (401, {"message": "Token expired"}))
        drafts = MemoryDraftStore()
        services = make_services(token="stale-token", drafts=drafts)

        outcome = run(services.submitter.submit(make_draft()))

        assert outcome.status == "login_required"
        assert outcome.login_url == "/auth/login?returnUrl=%2Fbook-now%3Fhomestay%3D3%26room%3D7"
        assert drafts.load().room_id == 7
        assert services.session.is_authenticated is False
        assert outcome.draft.room_id == 7

    def test_conflict_for_future_dates_suggests_next_date(self, backend, make_services, run):
        backend.on("POST", "/bookings/guest", (400, {"message": "Room is not available for the selected dates"}))
        backend.on("GET", "/bookings/room/7/availability", open_from("2025-03-12"))
        services = make_services()

        outcome = run(services.submitter.submit(make_draft()))

        assert outcome.status == "unavailable"
        assert outcome.availability.is_available is False
        assert outcome.next_available_date == date(2025, 3, 12)
        assert "available starting 2025-03-12" in outcome.message

    def test_conflict_for_today_reevaluates_same_day(self, backend, make_services, run):
        backend.on("POST", "/bookings/guest", (409, {"message": "Room already booked"}))
        backend.on(
            "GET",
            "/bookings/room/7/same-day-availability",
            {
                "is_available": False,
                "can_book_today": False,
                "earliest_booking_time": "15:00",
                "message": "Room is currently occupied",
                "current_booking": {"id": 9, "booking_number": "BK-0009"},
            },
        )
        backend.on("GET", "/bookings/room/7/availability", open_from("2025-03-12"))
        services = make_services()
        draft = make_draft(start_date=date(2025, 3, 10), end_date=date(2025, 3, 11))

        outcome = run(services.submitter.submit(draft))

        assert outcome.status == "unavailable"
        assert outcome.same_day.can_book_today is False
        assert "Room is currently occupied (Booking: BK-0009)" in outcome.message
        assert "Available from 15:00" in outcome.message
        assert outcome.next_available_date == date(2025, 3, 12)

    def test_server_error_is_generic_and_retryable(self, backend, make_services, run):
        backend.on("POST", "/bookings/guest", (503, {}))
        services = make_services()

        outcome = run(services.submitter.submit(make_draft()))

        assert outcome.status == "failed"
        assert outcome.retryable is True
        assert outcome.message == "Server error. Please try again later."

    def test_unreachable_server(self, backend, make_services, run):
        backend.on("POST", "/bookings/guest", httpx.ConnectError("refused"))
        services = make_services()

        outcome = run(services.submitter.submit(make_draft()))

        assert outcome.status == "failed"
        assert outcome.message.startswith("Network error")


class TestDraftStore:
    """Tests for the on-disk pending draft."""

    def test_store_interface_is_abstract(self):
        with pytest.raises(TypeError):
            DraftStore()

    def test_round_trip_and_clear(self, tmp_path):
        store = FileDraftStore(tmp_path / "draft.json")
        assert store.load() is None

        store.save(make_draft())
        loaded = store.load()
        assert loaded.room_id == 7
        assert loaded.guest.name == "Sari Putri"

        store.clear()
        assert store.load() is None

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "draft.json"
        path.write_text("{not json")
        assert FileDraftStore(path).load() is None
