from __future__ import annotations

from typing import Any, Optional, Type
from types import TracebackType

import httpx
from pydantic import ValidationError

from ..application.dtos import (
    CreateIntentDTO,
    IntentResponseDTO,
    VerifyPaymentDTO,
    VerifyResponseDTO,
)
from ..domain.errors import PaymentApiError
from .http.http_client import AsyncHttpClient


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class PaymentsApiClient:
    """Asynchronous client for the PlayPass payments HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(base_url, timeout=timeout, transport=transport)

    async def create_intent(self, wallet_address: str) -> IntentResponseDTO:
        """Request a signed payment intent for ``wallet_address``.

        Raises:
            PaymentApiError: On transport failure or any non-2xx answer; the
                server's ``code`` is carried over when present.
        """
        dto = CreateIntentDTO(wallet_address=wallet_address)
        try:
            resp = await self._http.post(
                "/payments/create-intent",
                json=dto.model_dump(by_alias=True),
                raise_for_status=False,
            )
        except httpx.HTTPError as e:
            raise PaymentApiError(f"Failed to fetch quote: {e}") from e

        body = _json_body(resp)
        if resp.is_error:
            raise PaymentApiError(
                str(body.get("error") or "Failed to get quote"),
                code=body.get("code"),
                status_code=resp.status_code,
            )
        try:
            return IntentResponseDTO.model_validate(body)
        except ValidationError as e:
            raise PaymentApiError(
                "Malformed quote response", status_code=resp.status_code
            ) from e

    async def verify(
        self, tx_hash: str, token: str, wallet_address: str
    ) -> VerifyResponseDTO:
        """Submit a transaction for verification.

        Structured 4xx/5xx answers are returned as-is so the caller can act on
        ``code`` and ``retryable``.

        Raises:
            PaymentApiError: When no structured answer was received.
        """
        dto = VerifyPaymentDTO(tx_hash=tx_hash, token=token, wallet_address=wallet_address)
        try:
            resp = await self._http.post(
                "/payments/verify",
                json=dto.model_dump(by_alias=True),
                raise_for_status=False,
            )
        except httpx.HTTPError as e:
            raise PaymentApiError(f"Verify request failed: {e}") from e

        try:
            return VerifyResponseDTO.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise PaymentApiError(
                f"Unreadable verify response (HTTP {resp.status_code})",
                status_code=resp.status_code,
            ) from e

    async def health(self) -> dict[str, Any]:
        resp = await self._http.get("/payments/create-intent")
        return resp.json()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PaymentsApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
