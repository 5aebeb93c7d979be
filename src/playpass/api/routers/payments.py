"""Payment API routes."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Gauge, Histogram

from ...application.dtos import (
    CreateIntentDTO,
    ErrorResponseDTO,
    HealthDTO,
    IntentResponseDTO,
    VerifyPaymentDTO,
    VerifyResponseDTO,
)
from ...application.use_cases.intent import IntentService
from ...application.use_cases.verification import VerificationService
from ...domain.entities import VerificationCode
from ...domain.errors import InvalidWalletAddressError
from ...envs.server_env import ServerConfig
from ..dependencies import (
    get_intent_service,
    get_server_config,
    get_verification_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

CONFIG_HINT = "Check server logs for configuration errors"

payment_requests_total = Counter(
    "payment_requests_total",
    "Total payment API requests processed",
    ["endpoint", "status"],
)

payment_request_duration_seconds = Histogram(
    "payment_request_duration_seconds",
    "Wall time to process a payment API request",
    ["endpoint", "status"],
)

payment_verifications_inprogress = Gauge(
    "payment_verifications_inprogress",
    "Number of payment verifications currently being processed",
    multiprocess_mode="livesum",
)


def _observe(endpoint: str, status_label: str, start_time: float) -> None:
    payment_requests_total.labels(endpoint=endpoint, status=status_label).inc()
    elapsed = time.perf_counter() - start_time
    payment_request_duration_seconds.labels(
        endpoint=endpoint, status=status_label
    ).observe(elapsed)


async def _read_json_object(request: Request) -> dict[str, Any]:
    """Request body as a dict; anything else reads as an empty body."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


@router.get("/create-intent", response_model=HealthDTO)
async def intent_health(
    config: ServerConfig = Depends(get_server_config),
) -> JSONResponse:
    """Report whether the payment service is configured."""
    if config.is_valid:
        health = HealthDTO(
            status="ready",
            configured=True,
            error_count=0,
            message="Payment service is configured and ready",
        )
    else:
        health = HealthDTO(
            status="misconfigured",
            configured=False,
            error_count=len(config.errors),
            message="Payment service has configuration errors. Check server logs.",
        )
    return JSONResponse(content=health.model_dump(by_alias=True))


@router.post(
    "/create-intent",
    response_model=IntentResponseDTO,
    responses={
        400: {"model": ErrorResponseDTO},
        500: {"model": ErrorResponseDTO},
        503: {"model": ErrorResponseDTO},
    },
)
async def create_intent(
    request: Request,
    config: ServerConfig = Depends(get_server_config),
    intent_service: Optional[IntentService] = Depends(get_intent_service),
) -> JSONResponse:
    """Quote the price and issue a signed payment token for a wallet."""
    start_time = time.perf_counter()

    if not config.is_valid or intent_service is None:
        _observe("create_intent", "config_error", start_time)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=ErrorResponseDTO(
                error="Payment service is not configured",
                code=VerificationCode.CONFIG_ERROR.value,
                hint=CONFIG_HINT,
            ).model_dump(exclude_none=True),
        )

    try:
        dto = CreateIntentDTO.model_validate(await _read_json_object(request))
        intent = await intent_service.create_intent(dto.wallet_address)
        _observe("create_intent", "success", start_time)
        return JSONResponse(content=intent.model_dump(by_alias=True))
    except InvalidWalletAddressError as e:
        _observe("create_intent", "client_error", start_time)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponseDTO(
                error=str(e), code=VerificationCode.INVALID_ADDRESS.value
            ).model_dump(exclude_none=True),
        )
    except Exception:
        logger.exception("Failed to create payment intent")
        _observe("create_intent", "server_error", start_time)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponseDTO(
                error="Failed to create payment intent",
                code=VerificationCode.INTERNAL_ERROR.value,
            ).model_dump(exclude_none=True),
        )


@router.post(
    "/verify",
    response_model=VerifyResponseDTO,
    responses={400: {"model": VerifyResponseDTO}},
)
async def verify_payment(
    request: Request,
    config: ServerConfig = Depends(get_server_config),
    verification_service: Optional[VerificationService] = Depends(
        get_verification_service
    ),
) -> JSONResponse:
    """Verify an on-chain payment against its token and grant access once."""
    start_time = time.perf_counter()

    if not config.is_valid or verification_service is None:
        _observe("verify", "config_error", start_time)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "paid": False,
                "error": "Payment service is not configured",
                "code": VerificationCode.CONFIG_ERROR.value,
                "retryable": False,
            },
        )

    payment_verifications_inprogress.inc()
    try:
        dto = VerifyPaymentDTO.model_validate(await _read_json_object(request))
        outcome = await verification_service.verify_payment(dto)
    except Exception:
        logger.exception("Unexpected error during payment verification")
        _observe("verify", "server_error", start_time)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "paid": False,
                "error": "Verification failed unexpectedly. Please try again.",
                "code": VerificationCode.INTERNAL_ERROR.value,
                "retryable": True,
            },
        )
    finally:
        payment_verifications_inprogress.dec()

    body = VerifyResponseDTO.from_outcome(outcome).to_wire()
    if outcome.paid:
        _observe("verify", "success", start_time)
        return JSONResponse(content=body)
    _observe("verify", "retryable" if outcome.retryable else "client_error", start_time)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)
