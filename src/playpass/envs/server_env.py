from __future__ import annotations

import logging
import os
from typing import Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..crypto.addresses import is_valid_address, to_checksum
from ..domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://mainnet.base.org"
DEFAULT_PRICE_FEED_URL = (
    "https://api.coingecko.com/api/v3/simple/price?ids=ethereum&vs_currencies=gbp"
)
BASE_CHAIN_ID = 8453


class ApiSettings(BaseModel):
    """HTTP server settings; always constructible so health checks keep working."""

    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_workers: int = 1
    api_cors_origins: list[str] = ["*"]
    app_name: str = "PlayPass"
    app_version: str = "1.0.0"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class PaymentSettings(BaseModel):
    """Validated payment configuration. Only exists when every check passed."""

    treasury_address: str
    rpc_url: str = DEFAULT_RPC_URL
    signing_secret: str = Field(..., min_length=1)
    chain_id: int = BASE_CHAIN_ID
    min_confirmations: int = Field(1, ge=1)
    intent_ttl_ms: int = Field(10 * 60 * 1000, gt=0)
    payment_amount_gbp: float = Field(0.0003, gt=0)
    safety_buffer_percent: float = Field(5, ge=0)
    fallback_eth_gbp_rate: float = Field(2000, gt=0)
    price_feed_url: str = DEFAULT_PRICE_FEED_URL
    price_feed_timeout: float = Field(5.0, gt=0)
    replay_store_url: Optional[str] = None

    @field_validator("treasury_address")
    @classmethod
    def validate_treasury_address(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("TREASURY_ADDRESS env var is missing")
        if not is_valid_address(v):
            raise ValueError(f'TREASURY_ADDRESS is not a valid Ethereum address: "{v}"')
        return to_checksum(v)

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        v = v.strip() or DEFAULT_RPC_URL
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f'BASE_RPC_URL must be a valid URL: "{v}"')
        return v

    @field_validator("replay_store_url")
    @classmethod
    def validate_replay_store_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if urlparse(v).scheme not in {"redis", "rediss", "unix"}:
            raise ValueError(f'REPLAY_STORE_URL must be a redis:// URL: "{v}"')
        return v


class ServerConfig(BaseModel):
    """Configuration built once at process start and injected into handlers."""

    api: ApiSettings
    payments: Optional[PaymentSettings] = None
    errors: list[str] = []

    @property
    def is_valid(self) -> bool:
        return self.payments is not None and not self.errors

    def require_payments(self) -> PaymentSettings:
        """Return payment settings or raise so the caller can fail closed."""
        if not self.is_valid or self.payments is None:
            raise ConfigurationError(self.errors or ["Payment settings missing"])
        return self.payments


def _format_validation_errors(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        msg = str(err.get("msg", ""))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        else:
            field = ".".join(str(p) for p in err.get("loc", ()))
            msg = f"{field.upper()}: {msg}"
        messages.append(msg)
    return messages


def resolve_signing_secret(
    environ: Mapping[str, str], api: ApiSettings
) -> tuple[Optional[str], Optional[str]]:
    """Return ``(secret, error)``.

    Outside production a missing secret falls back to an insecure value derived
    from the treasury address and pid, so it stays fixed for this process. The
    fallback is refused with several workers, since each would sign differently.
    """
    secret = (environ.get("PAYMENT_TOKEN_SECRET") or "").strip()
    if secret:
        logger.info("Payment token secret configured")
        return secret, None
    if api.is_production:
        return None, "PAYMENT_TOKEN_SECRET must be set in production"
    if api.api_workers > 1:
        return None, "PAYMENT_TOKEN_SECRET must be set when API_WORKERS > 1"

    treasury = (environ.get("TREASURY_ADDRESS") or "").strip() or "default"
    logger.warning(
        "PAYMENT_TOKEN_SECRET not set; using development fallback "
        "(NOT SECURE FOR PRODUCTION). Generate one with: openssl rand -hex 32"
    )
    return f"dev-secret-{treasury}-{os.getpid()}", None


def _api_settings(environ: Mapping[str, str]) -> ApiSettings:
    raw = {
        "environment": environ.get("PLAYPASS_ENV"),
        "api_host": environ.get("API_HOST"),
        "api_port": environ.get("API_PORT"),
        "api_debug": environ.get("API_DEBUG"),
        "api_workers": environ.get("API_WORKERS"),
        "api_cors_origins": environ["API_CORS_ORIGINS"].split(",")
        if environ.get("API_CORS_ORIGINS")
        else None,
        "app_name": environ.get("APP_NAME"),
        "app_version": environ.get("APP_VERSION"),
    }
    return ApiSettings(**{k: v for k, v in raw.items() if v is not None})


def build_server_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Validate the whole environment once, collecting every error."""
    environ = os.environ if environ is None else environ
    api = _api_settings(environ)
    errors: list[str] = []

    secret, secret_error = resolve_signing_secret(environ, api)
    if secret_error:
        errors.append(secret_error)

    raw = {
        "treasury_address": environ.get("TREASURY_ADDRESS", ""),
        "rpc_url": environ.get("BASE_RPC_URL"),
        "signing_secret": secret or "",
        "chain_id": environ.get("CHAIN_ID"),
        "min_confirmations": environ.get("MIN_CONFIRMATIONS"),
        "intent_ttl_ms": environ.get("INTENT_TTL_MS"),
        "payment_amount_gbp": environ.get("PAYMENT_AMOUNT_GBP"),
        "safety_buffer_percent": environ.get("SAFETY_BUFFER_PERCENT"),
        "fallback_eth_gbp_rate": environ.get("FALLBACK_ETH_GBP_RATE"),
        "price_feed_url": environ.get("PRICE_FEED_URL"),
        "price_feed_timeout": environ.get("PRICE_FEED_TIMEOUT"),
        "replay_store_url": environ.get("REPLAY_STORE_URL"),
    }

    payments: Optional[PaymentSettings] = None
    try:
        payments = PaymentSettings(**{k: v for k, v in raw.items() if v is not None})
    except ValidationError as e:
        errors.extend(
            msg
            for msg in _format_validation_errors(e)
            # The secret error is already reported above.
            if not (secret_error and msg.startswith("SIGNING_SECRET"))
        )

    if errors:
        logger.error("Server configuration errors:")
        for i, err in enumerate(errors, start=1):
            logger.error("  %d. %s", i, err)
        return ServerConfig(api=api, payments=None, errors=errors)

    assert payments is not None
    logger.info(
        "Server config validated: treasury=%s rpc=%s chain_id=%s",
        payments.treasury_address,
        payments.rpc_url,
        payments.chain_id,
    )
    return ServerConfig(api=api, payments=payments, errors=[])


def get_settings() -> ServerConfig:
    """Return typed settings instance sourced from env vars."""
    return build_server_config(os.environ)
