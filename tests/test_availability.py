"""
Tests for the availability resolver and its fallback strategies.
"""

from datetime import date

import httpx
import pytest

from homestay_booking.availability import strategies
from homestay_booking.errors import AvailabilityUnknown
from homestay_booking.schemas import Booking, DateRange

ROOM_7_RANGE = DateRange(start_date=date(2025, 3, 10), end_date=date(2025, 3, 12))


def primary_down(request):
    return (500, {"message": "Internal error"})


class TestConflictingBookings:
    """Tests for the local overlap filter used by the booking-list strategy."""

    def test_checkout_day_does_not_conflict_with_checkin(self):
        bookings = [Booking(id=1, room_id=7, start_date="2025-03-08", end_date="2025-03-10", status="confirmed")]
        assert strategies.conflicting_bookings(bookings, 7, ROOM_7_RANGE) == []

    def test_booking_starting_on_checkout_day_does_not_conflict(self):
        bookings = [Booking(id=1, room_id=7, start_date="2025-03-12", end_date="2025-03-14", status="confirmed")]
        assert strategies.conflicting_bookings(bookings, 7, ROOM_7_RANGE) == []

    def test_cancelled_and_other_rooms_are_ignored(self):
        bookings = [
            Booking(id=1, room_id=7, start_date="2025-03-10", end_date="2025-03-11", status="cancelled"),
            Booking(id=2, room_id=8, start_date="2025-03-10", end_date="2025-03-11", status="confirmed"),
        ]
        assert strategies.conflicting_bookings(bookings, 7, ROOM_7_RANGE) == []

    def test_booking_status_wins_over_status(self):
        bookings = [
            Booking(
                id=3,
                room_id=7,
                start_date="2025-03-09",
                end_date="2025-03-11",
                status="confirmed",
                booking_status="cancelled",
            )
        ]
        assert strategies.conflicting_bookings(bookings, 7, ROOM_7_RANGE) == []

    def test_legacy_shapes_are_normalised(self):
        booking = Booking.model_validate(
            {"id": 4, "room": {"id": 7}, "check_in": "2025-03-11T00:00:00.000Z", "check_out": "2025-03-13"}
        )
        assert booking.room_id == 7
        assert strategies.conflicting_bookings([booking], 7, ROOM_7_RANGE) == [booking]


class TestResolverFallbackChain:
    """Tests for the ordered strategies and the fail-safe default."""

    def test_primary_endpoint_answers(self, backend, make_services, run):
        backend.on(
            "GET",
            "/bookings/room/7/availability",
            {"status": "success", "data": {"is_available": True, "next_available_date": None}},
        )
        services = make_services()

        result = run(services.resolver.resolve(7, ROOM_7_RANGE))

        assert result.is_available is True
        assert result.source == "availability_endpoint"
        request = backend.calls("GET", "/bookings/room/7/availability")[0]
        assert request.url.params["start_date"] == "2025-03-10"
        assert request.url.params["end_date"] == "2025-03-12"
        assert "authorization" not in request.headers

    def test_primary_reports_current_booking(self, backend, make_services, run):
        backend.on(
            "GET",
            "/bookings/room/7/availability",
            {
                "is_available": False,
                "current_booking": {"id": 11, "start_date": "2025-03-09", "end_date": "2025-03-11"},
                "next_available_date": "2025-03-11T00:00:00Z",
            },
        )
        services = make_services()

        result = run(services.resolver.resolve(7, ROOM_7_RANGE))

        assert result.is_available is False
        assert result.current_booking.id == 11
        assert result.next_available_date == date(2025, 3, 11)

    def test_booking_list_fallback_with_session(self, backend, make_services, run):
        """Room 7 with a confirmed booking 03-11..03-13 conflicts with 03-10..03-12."""
        backend.on("GET", "/bookings/room/7/availability", httpx.ConnectError("connection refused"))
        backend.on(
            "GET",
            "/bookings",
            [
                {"id": 21, "room_id": 7, "start_date": "2025-03-11", "end_date": "2025-03-13", "status": "confirmed"},
                {"id": 22, "room_id": 9, "start_date": "2025-03-10", "end_date": "2025-03-12", "status": "confirmed"},
            ],
        )
        services = make_services(token="secret-token")

        result = run(services.resolver.resolve(7, ROOM_7_RANGE))

        assert result.is_available is False
        assert result.source == "booking_list"
        assert result.current_booking.id == 21
        assert backend.calls("GET", "/bookings")[0].headers["authorization"] == "Bearer secret-token"

    def test_basic_flag_fallback_without_session(self, backend, make_services, run):
        """No session, primary fails, booking list is skipped, basic flag says available."""

        def availability(request):
            if request.url.params.get("include_completed") == "true":
                return {"is_available": True}
            return (500, {"message": "boom"})

        backend.on("GET", "/bookings/room/7/availability", availability)
        services = make_services()

        result = run(services.resolver.resolve(7, ROOM_7_RANGE))

        assert result.is_available is True
        assert result.source == "basic_flag"
        assert backend.calls("GET", "/bookings") == []

    def test_basic_flag_synthesises_placeholder(self, backend, make_services, run):
        def availability(request):
            if request.url.params.get("real_time") == "true":
                return {"is_available": False}
            return {"unexpected": "shape"}

        backend.on("GET", "/bookings/room/7/availability", availability)
        services = make_services()

        result = run(services.resolver.resolve(7, ROOM_7_RANGE))

        assert result.is_available is False
        assert result.current_booking.placeholder is True
        assert result.current_booking.id == "placeholder-7"
        assert result.current_booking.start_date == date(2025, 3, 10)
        assert result.current_booking.note == strategies.PLACEHOLDER_NOTE

    def test_every_strategy_failing_is_not_available(self, backend, make_services, run):
        backend.on("GET", "/bookings/room/7/availability", primary_down)
        backend.on("GET", "/bookings", (500, {"message": "down"}))
        services = make_services(token="secret-token")

        result = run(services.resolver.resolve(7, ROOM_7_RANGE))

        assert result.is_available is False
        assert result.source == "failsafe"
        assert result.error

    def test_first_success_collects_failures(self, make_services, run):
        async def broken(api, room_id, date_range):
            raise RuntimeError("nope")

        services = make_services()
        with pytest.raises(AvailabilityUnknown) as excinfo:
            run(strategies.first_success([broken, broken], services.api, 7, ROOM_7_RANGE))
        assert len(excinfo.value.failures) == 2
        assert "broken" in str(excinfo.value)


class TestNextAvailableDate:
    """Tests for the forward search used after a conflict."""

    def test_strides_two_days_and_returns_first_open_day(self, backend, make_services, run, clock):
        def availability(request):
            return {"is_available": request.url.params["start_date"] == "2025-03-14"}

        backend.on("GET", "/bookings/room/7/availability", availability)
        services = make_services()

        found = run(services.resolver.find_next_available_date(7))

        assert found == date(2025, 3, 14)
        starts = [r.url.params["start_date"] for r in backend.calls()]
        assert starts == ["2025-03-10", "2025-03-12", "2025-03-14"]
        assert all(
            (date.fromisoformat(r.url.params["end_date"]) - date.fromisoformat(r.url.params["start_date"])).days == 1
            for r in backend.calls()
        )

    def test_gives_up_after_lookahead(self, backend, make_services, run):
        backend.on("GET", "/bookings/room/7/availability", {"is_available": False})
        services = make_services()

        found = run(services.resolver.find_next_available_date(7))

        assert found is None
        assert len(backend.calls()) == 7


class TestDynamicStatus:
    """Tests for the informational room status chain."""

    def test_status_endpoint(self, backend, make_services, run):
        backend.on("GET", "/rooms/7/status", {"dynamic_status": "maintenance", "is_bookable": False})
        services = make_services()

        status = run(services.resolver.dynamic_status(7))

        assert status.status == "maintenance"
        assert status.confidence == "high"

    def test_unavailable_without_current_booking_is_maintenance(self, backend, make_services, run):
        backend.on("GET", "/rooms/7/status", (500, {}))
        backend.on("GET", "/bookings/room/7/availability", {"is_available": False})
        services = make_services()

        status = run(services.resolver.dynamic_status(7))

        assert status.status == "maintenance"
        assert status.data_source == "database"

    def test_total_failure_is_static_low_confidence(self, backend, make_services, run):
        backend.on("GET", "/rooms/7/status", httpx.ConnectError("down"))
        backend.on("GET", "/bookings/room/7/availability", httpx.ConnectError("down"))
        backend.on("GET", "/bookings/room/7", httpx.ConnectError("down"))
        services = make_services()

        status = run(services.resolver.dynamic_status(7))

        assert status.status == "available"
        assert status.data_source == "static"
        assert status.confidence == "low"
