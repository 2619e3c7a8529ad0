"""Environment-driven settings and the timezone-aware clock."""

from __future__ import annotations

import os
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_API_BASE_URL = "http://localhost:5000/api"
DEFAULT_TIMEZONE = "Asia/Jakarta"


def load_env() -> None:
    """Lightweight .env loader (only sets variables that aren't already set)."""

    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())


class Settings(BaseModel):
    api_base_url: str = Field(DEFAULT_API_BASE_URL, description="Booking backend base URL")
    api_timeout: float = Field(20.0, description="Per-request timeout in seconds")
    timezone: str = Field(DEFAULT_TIMEZONE, description="IANA zone used for 'today'")
    debounce_seconds: float = 0.5
    countdown_interval_seconds: float = 60.0
    same_day_poll_seconds: float = 300.0
    next_available_lookahead_days: int = 14
    next_available_stride_days: int = 2
    debug_api: bool = False
    openai_model: str = "gpt-4o-mini"
    draft_store_path: Path = PROJECT_ROOT / "pending_booking.json"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings from the environment once and cache them."""

    load_env()
    draft_path = os.getenv("HOMESTAY_DRAFT_PATH")
    return Settings(
        api_base_url=os.getenv("HOMESTAY_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        api_timeout=_float_env("HOMESTAY_API_TIMEOUT", 20.0),
        timezone=os.getenv("HOMESTAY_TIMEZONE", DEFAULT_TIMEZONE),
        debug_api=os.getenv("HOMESTAY_DEBUG_API", "").lower() == "true",
        openai_model=os.getenv("HOMESTAY_OPENAI_MODEL", "gpt-4o-mini"),
        draft_store_path=Path(draft_path) if draft_path else PROJECT_ROOT / "pending_booking.json",
    )


class Clock:
    """Source of 'now' in the configured timezone; swap `now_fn` in tests."""

    def __init__(
        self,
        tz: Optional[ZoneInfo] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.tz = tz or get_settings().tz
        self._now_fn = now_fn

    def now(self) -> datetime:
        if self._now_fn is not None:
            return self._now_fn()
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def today_str(self) -> str:
        return self.today().isoformat()
