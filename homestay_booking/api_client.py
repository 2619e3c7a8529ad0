"""Thin async HTTP wrapper around the booking backend."""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

import httpx

from homestay_booking.config import Settings, get_settings
from homestay_booking.errors import ApiError, AuthenticationRequired
from homestay_booking.session import AuthSession

logger = logging.getLogger(__name__)

AuthMode = Literal["auto", "required", "none"]

NETWORK_ERROR_MESSAGE = (
    "Network error: The server is not reachable. Please check your internet connection."
)
INVALID_RESPONSE_MESSAGE = "The server returned an invalid response"


def _error_message(status_code: int, payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    if status_code == 404:
        return "Booking service not available. Please check the endpoint URL."
    if status_code == 400:
        return "Invalid booking data. Please check your information."
    if status_code >= 500:
        return "Server error. Please try again later."
    return f"Request failed with status {status_code}"


def _payload(response: httpx.Response) -> Any:
    text = response.text
    if "<!DOCTYPE html>" in text[:200]:
        return {"message": INVALID_RESPONSE_MESSAGE}
    if not text.strip():
        return None
    try:
        return response.json()
    except ValueError:
        return {"message": INVALID_RESPONSE_MESSAGE}


def unwrap(payload: Any) -> Any:
    """Strip the ``{"status": ..., "data": ...}`` envelope when present."""

    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class ApiClient:
    """Async client that injects the session's bearer token and clears it on 401."""

    def __init__(
        self,
        session: Optional[AuthSession] = None,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session or AuthSession()
        hooks = {"request": [self._trace_request], "response": [self._trace_response]}
        self._client = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.api_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
            event_hooks=hooks if self.settings.debug_api else None,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _trace_request(self, request: httpx.Request) -> None:
        auth = "token present" if "authorization" in request.headers else "no token"
        logger.debug(f"[API] {request.method} {request.url} ({auth})")

    async def _trace_response(self, response: httpx.Response) -> None:
        logger.debug(f"[API] {response.status_code} from {response.request.url}")

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        auth: AuthMode = "auto",
    ) -> Any:
        headers: dict[str, str] = {}
        if auth == "required" and not self.session.is_authenticated:
            raise AuthenticationRequired(
                "Authentication token is required for this request"
            )
        if auth != "none":
            headers.update(self.session.auth_headers())

        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning(f"[API] {method} {path} failed: {exc}")
            raise ApiError(NETWORK_ERROR_MESSAGE) from exc

        payload = _payload(response)
        if response.status_code == 401:
            self.session.clear()
            message = _error_message(401, payload)
            if "authentication" not in message.lower():
                message = f"Authentication required. {message}"
            raise AuthenticationRequired(message, status_code=401, payload=payload)
        if response.is_error:
            raise ApiError(
                _error_message(response.status_code, payload),
                status_code=response.status_code,
                payload=payload,
            )
        return unwrap(payload)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)
