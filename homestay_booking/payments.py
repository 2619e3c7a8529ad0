"""Polling for payment completion of a pending booking."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from homestay_booking.booking_api import BookingApi
from homestay_booking.errors import ApiError
from homestay_booking.schemas import PaymentStatus
from homestay_booking.tasks import PeriodicTask

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 5.0


class PaymentTracker:
    """Poll ``/qris/status/{booking_id}`` until the payment leaves PENDING."""

    def __init__(
        self,
        api: BookingApi,
        booking_id: int,
        *,
        interval: float = DEFAULT_POLL_SECONDS,
        on_complete: Optional[Callable[[PaymentStatus], None]] = None,
    ) -> None:
        self.api = api
        self.booking_id = booking_id
        self.interval = interval
        self.on_complete = on_complete
        self.last_status: Optional[PaymentStatus] = None
        self._task: Optional[PeriodicTask] = None

    def start(self) -> "PaymentTracker":
        self._task = PeriodicTask(self.check, self.interval, name=f"payment-{self.booking_id}").start()
        return self

    def stop(self) -> None:
        if self._task is not None:
            self._task.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.running

    async def wait(self) -> Optional[PaymentStatus]:
        if self._task is not None:
            await self._task.wait()
        return self.last_status

    async def check(self) -> Optional[PaymentStatus]:
        try:
            status = await self.api.payment_status(self.booking_id)
        except ApiError as exc:
            if exc.status_code is not None and exc.status_code < 500:
                logger.error(f"[PAYMENT] Giving up on booking {self.booking_id}: {exc}")
                self.stop()
                raise
            logger.warning(f"[PAYMENT] Status check failed for booking {self.booking_id}: {exc}")
            return None
        self.last_status = status
        if status.is_terminal:
            logger.info(f"[PAYMENT] Booking {self.booking_id} payment {status.payment_status}")
            self.stop()
            if self.on_complete is not None:
                self.on_complete(status)
        return status
