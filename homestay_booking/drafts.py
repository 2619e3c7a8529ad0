"""Keeps an unfinished booking around while the guest goes off to log in."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from homestay_booking.schemas import BookingDraft

logger = logging.getLogger(__name__)


class DraftStore(ABC):
    @abstractmethod
    def save(self, draft: BookingDraft) -> None:
        pass

    @abstractmethod
    def load(self) -> Optional[BookingDraft]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class MemoryDraftStore(DraftStore):
    def __init__(self) -> None:
        self._draft: Optional[BookingDraft] = None

    def save(self, draft: BookingDraft) -> None:
        self._draft = draft.model_copy()

    def load(self) -> Optional[BookingDraft]:
        return self._draft

    def clear(self) -> None:
        self._draft = None


class FileDraftStore(DraftStore):
    """JSON file holding at most one pending draft."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, draft: BookingDraft) -> None:
        payload: dict[str, Any] = draft.model_dump(mode="json")
        self.path.write_text(json.dumps(payload, indent=2))
        logger.info(f"[BOOKING] Saved pending booking draft to {self.path}")

    def load(self) -> Optional[BookingDraft]:
        if not self.path.exists():
            return None
        try:
            return BookingDraft.model_validate(json.loads(self.path.read_text()))
        except ValueError as exc:
            logger.warning(f"[BOOKING] Ignoring unreadable draft at {self.path}: {exc}")
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
