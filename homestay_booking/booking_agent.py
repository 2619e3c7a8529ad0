"""Natural-language booking assistant powered by OpenAI + local validation."""

from __future__ import annotations

import asyncio
import json
import os
import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from openai import OpenAI

from homestay_booking.api_client import ApiClient
from homestay_booking.config import Clock, get_settings, load_env
from homestay_booking.schemas import BookingDraft, BookingOutcome, GuestContact
from homestay_booking.services import build_services
from homestay_booking.session import AuthSession

FIELDS = (
    "room_id",
    "check_in",
    "check_out",
    "guests",
    "guest_name",
    "guest_email",
    "guest_phone",
    "special_requests",
)


def _agent_prefix() -> str:
    """Return a bold/cyan Agent prefix, falling back to plain if color is disabled."""

    if os.getenv("NO_COLOR"):
        return "Agent:"
    return "\033[1;36m\033[1mAgent\033[0m:"


AGENT_PREFIX = _agent_prefix()


def _agent_print(message: str) -> None:
    if os.getenv("NO_COLOR"):
        print(f"Agent: {message}")
    else:
        print(f"{AGENT_PREFIX} \033[1m{message}\033[0m")


def _today(clock: Optional[Clock] = None) -> date:
    return (clock or Clock()).today()


def _next_weekday(target_weekday: int, today: date, *, prefer_next_week: bool = False) -> date:
    """Return the next occurrence of the weekday (0=Mon), never today."""

    base = today + (timedelta(days=7) if prefer_next_week else timedelta())
    days_ahead = (target_weekday - base.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return base + timedelta(days=days_ahead)


WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def _parse_relative_date(text: str, today: date) -> Optional[date]:
    lowered = text.lower()
    if "today" in lowered:
        return today
    if "tomorrow" in lowered:
        return today + timedelta(days=1)
    target = next((idx for name, idx in WEEKDAYS.items() if name in lowered), None)
    if target is None:
        return None
    return _next_weekday(target, today, prefer_next_week="next week" in lowered)


def _normalize_date(raw: Optional[str], today: date) -> str:
    """Return ``YYYY-MM-DD`` or an empty string when the text can't be read."""

    if not raw:
        return ""
    text = raw.strip()

    relative = _parse_relative_date(text, today)
    if relative:
        return relative.isoformat()

    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%d %b %Y", "%d %B %Y"):
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    # Day/month without a year -> this year, or next year if already passed.
    for fmt in ("%d/%m", "%d-%m", "%d %b", "%d %B"):
        try:
            parsed = datetime.strptime(f"{text} {today.year}", f"{fmt} %Y").date()
        except ValueError:
            continue
        if parsed < today:
            parsed = parsed.replace(year=today.year + 1)
        return parsed.isoformat()

    return ""


def _normalize_int(raw: Any) -> int:
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        return 0


def _parse_json_payload(text: str) -> Dict[str, Any]:
    try:
        return json.loads(text)
    except ValueError:
        # If the model wrapped JSON in chatter, grab the first brace block.
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if match:
            return json.loads(match.group(0))
        raise


def _validate_payload(payload: Dict[str, Any], today: date) -> Dict[str, Any]:
    check_in = _normalize_date(payload.get("check_in"), today)
    check_out = _normalize_date(payload.get("check_out"), today)
    nights = _normalize_int(payload.get("nights"))
    if check_in and not check_out and nights:
        check_out = (date.fromisoformat(check_in) + timedelta(days=nights)).isoformat()
    return {
        "room_id": _normalize_int(payload.get("room_id")),
        "check_in": check_in,
        "check_out": check_out,
        "guests": _normalize_int(payload.get("guests")),
        "guest_name": str(payload.get("guest_name") or "").strip(),
        "guest_email": str(payload.get("guest_email") or "").strip().lower(),
        "guest_phone": str(payload.get("guest_phone") or "").strip(),
        "special_requests": str(payload.get("special_requests") or "").strip(),
    }


SYSTEM_PROMPT = (
    "You extract homestay booking fields from guest messages. "
    "Respond ONLY with JSON with keys: room_id, check_in, check_out, nights, guests, "
    "guest_name, guest_email, guest_phone, special_requests. "
    "room_id is an integer or null. guests and nights are integers or null. "
    "For check_in and check_out, copy the guest's wording (e.g. 'next Friday' or '12/12'); "
    "do NOT invent or assume a year. Use null for anything not mentioned."
)


def booking_agent(
    prompt: str,
    *,
    model: Optional[str] = None,
    client: Optional[Any] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Use OpenAI to draft booking fields, then enforce local normalization."""

    if client is None:
        load_env()
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        client = OpenAI(api_key=api_key)

    completion = client.chat.completions.create(
        model=model or get_settings().openai_model,
        temperature=0,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
    )
    content = completion.choices[0].message.content or "{}"
    return _validate_payload(_parse_json_payload(content), today or _today())


def _format_booking_summary(payload: Dict[str, Any]) -> str:
    """Return a compact, human summary of the booking."""
    room = payload.get("room_id") or "<?>"
    check_in = payload.get("check_in") or "<?>"
    check_out = payload.get("check_out") or "<?>"
    guests = payload.get("guests") or 0
    name = payload.get("guest_name") or "guest"
    return f"Room {room} from {check_in} to {check_out} for {guests} guest(s), booked by {name}."


class DraftSession:
    """Collects booking fields across chat turns."""

    def __init__(
        self,
        *,
        model: Optional[str] = None,
        client: Optional[Any] = None,
        authenticated: bool = False,
        today: Optional[date] = None,
    ) -> None:
        self.model = model
        self.client = client
        self.authenticated = authenticated
        self.today = today
        self.fields: Dict[str, Any] = {
            "room_id": 0,
            "check_in": "",
            "check_out": "",
            "guests": 0,
            "guest_name": "",
            "guest_email": "",
            "guest_phone": "",
            "special_requests": "",
        }
        self.awaiting_confirmation = False

    def update_from_prompt(self, prompt: str, allowed: Optional[set[str]] = None) -> None:
        parsed = booking_agent(prompt, model=self.model, client=self.client, today=self.today)
        for key in self.fields:
            # When tweaking an existing summary, only touch the allowed fields.
            if allowed is not None and key not in allowed:
                continue
            value = parsed.get(key)
            if isinstance(value, int):
                if value > 0:
                    self.fields[key] = value
            elif isinstance(value, str) and value.strip():
                self.fields[key] = value.strip()

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.fields["room_id"]:
            missing.append("room number")
        if not self.fields["check_in"]:
            missing.append("check-in date")
        if not self.fields["check_out"]:
            missing.append("check-out date (or number of nights)")
        if not self.fields["guests"]:
            missing.append("number of guests")
        if not self.authenticated:
            if not self.fields["guest_name"]:
                missing.append("your full name")
            if not self.fields["guest_email"]:
                missing.append("email")
            if not self.fields["guest_phone"]:
                missing.append("phone number")
        return missing

    def has_all_fields(self) -> bool:
        return not self.missing_fields()

    def payload(self) -> Dict[str, Any]:
        return dict(self.fields)

    def to_draft(self) -> BookingDraft:
        guest = None
        if self.fields["guest_name"] or self.fields["guest_email"] or self.fields["guest_phone"]:
            guest = GuestContact(
                name=self.fields["guest_name"],
                email=self.fields["guest_email"],
                phone=self.fields["guest_phone"],
            )
        return BookingDraft(
            room_id=int(self.fields["room_id"]),
            start_date=date.fromisoformat(self.fields["check_in"]),
            end_date=date.fromisoformat(self.fields["check_out"]),
            number_of_guests=int(self.fields["guests"]),
            guest=guest,
            special_requests=self.fields["special_requests"] or None,
            notes="Booked through booking assistant",
        )


def _looks_like_booking_intent(text: str) -> bool:
    lowered = text.lower()
    return any(kw in lowered for kw in ["book", "booking", "reserve", "room", "stay", "homestay"])


def _is_yes(text: str) -> bool:
    """Detect natural 'yes' style confirmations."""
    normalized = text.strip().lower()
    direct_yes = {
        "yes", "y", "yeah", "yep", "yup", "ok", "okay", "sure", "confirm",
        "fine", "alright", "go ahead", "do it", "book it", "lock it in",
    }
    if normalized in direct_yes:
        return True
    return any(
        phrase in normalized
        for phrase in ["looks good", "sounds good", "all good", "thats fine", "that's fine", "book it"]
    )


async def submit_draft(
    draft: BookingDraft,
    session: Optional[AuthSession] = None,
    *,
    client: Optional[ApiClient] = None,
) -> BookingOutcome:
    """Check the room is free for the chat-collected dates, then submit."""

    async with client or ApiClient(session or AuthSession.init()) as api_client:
        services = build_services(api_client)
        return await services.submitter.submit_checked(draft)


def _describe_outcome(outcome: BookingOutcome) -> str:
    if outcome.ok and outcome.booking is not None:
        ref = outcome.booking.booking_number or outcome.booking.id
        return f"Booked! Reference {ref}. {outcome.message}"
    text = outcome.message
    if outcome.next_available_date:
        text += f" Next open date: {outcome.next_available_date.isoformat()}."
    if outcome.login_url:
        text += f" Log in here: {outcome.login_url}"
    return text


def _fields_mentioned(prompt: str) -> set[str]:
    lowered = prompt.lower()
    allowed: set[str] = set()
    if "room" in lowered:
        allowed.add("room_id")
    if any(word in lowered for word in ["check-in", "check in", "arrive", "from", "date"]):
        allowed.add("check_in")
    if any(word in lowered for word in ["check-out", "check out", "leave", "until", "nights", "date"]):
        allowed.add("check_out")
    if any(word in lowered for word in ["guest", "people", "persons", "adults"]):
        allowed.add("guests")
    if "name" in lowered:
        allowed.add("guest_name")
    if "email" in lowered or "@" in lowered:
        allowed.add("guest_email")
    if "phone" in lowered or "number" in lowered:
        allowed.add("guest_phone")
    if "request" in lowered or "note" in lowered:
        allowed.add("special_requests")
    return allowed


def chat_loop(
    *,
    model: Optional[str] = None,
    session: Optional[AuthSession] = None,
    client: Optional[Any] = None,
) -> None:
    """Interactive CLI chatbot that switches into booking mode when asked."""

    session = session or AuthSession.init()
    _agent_print("Hi! I can help you book a homestay room. Type 'exit' or press Ctrl+C to quit.")
    draft_session: Optional[DraftSession] = None

    while True:
        try:
            prompt = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not prompt or prompt.lower() in {"exit", "quit"}:
            break

        if draft_session is None:
            if not _looks_like_booking_intent(prompt):
                _agent_print(
                    "If you want to book a room, try something like "
                    "'room 3 from next Friday for 2 nights, 2 guests, I'm Sari Putri, sari@example.com'."
                )
                continue
            draft_session = DraftSession(model=model, client=client, authenticated=session.is_authenticated)

        if draft_session.awaiting_confirmation and _is_yes(prompt):
            try:
                outcome = asyncio.run(submit_draft(draft_session.to_draft(), session))
            except Exception as exc:
                _agent_print(f"Booking could not be sent: {exc}")
            else:
                _agent_print(_describe_outcome(outcome))
            draft_session = None
            continue

        allowed = _fields_mentioned(prompt) if draft_session.awaiting_confirmation else None
        try:
            draft_session.update_from_prompt(prompt, allowed=allowed)
        except Exception as exc:
            _agent_print(
                "I couldn't quite map that to the booking details, "
                f"but keep going and I'll adjust what I can. (Error: {exc})"
            )

        missing = draft_session.missing_fields()
        if missing:
            draft_session.awaiting_confirmation = False
            _agent_print(f"Almost there, I still need: {', '.join(missing)}.")
            continue

        draft_session.awaiting_confirmation = True
        _agent_print(
            "Here's what I've put together: "
            + _format_booking_summary(draft_session.payload())
            + " Shall I book it? If not, tell me what to change."
        )


if __name__ == "__main__":
    chat_loop()


__all__ = ["booking_agent", "chat_loop", "DraftSession", "submit_draft"]
