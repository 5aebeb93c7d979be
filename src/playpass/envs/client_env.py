from __future__ import annotations

import os
from urllib.parse import urlparse

from eth_account import Account
from pydantic import BaseModel, computed_field, field_validator

from .server_env import BASE_CHAIN_ID, DEFAULT_RPC_URL


class Settings(BaseModel):
    private_key: str
    api_base_url: str
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = BASE_CHAIN_ID
    auto_prompt: bool = True
    preferences_path: str = os.path.join(
        os.path.expanduser("~"), ".playpass", "preferences.json"
    )
    confirmation_timeout: float = 120.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def wallet_address(self) -> str:
        """Checksummed address of the configured key."""
        return Account.from_key(self.private_key).address

    @field_validator("private_key")
    @classmethod
    def validate_private_key(cls, v: str) -> str:
        if not v:
            raise ValueError("Private key cannot be empty")
        try:
            Account.from_key(v)
        except Exception as e:
            raise ValueError(f"Invalid private key: {e}") from e
        return v

    @field_validator("api_base_url", "rpc_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v:
            raise ValueError("URL cannot be empty")
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("URL must start with http:// or https://")
        if not parsed.netloc:
            raise ValueError("URL must include a host")
        return v.rstrip("/")


def get_settings() -> Settings:
    private_key = os.environ.get("PLAYPASS_PRIVATE_KEY")
    api_base_url = os.environ.get("PLAYPASS_API_URL")
    if not (private_key and api_base_url):
        raise ValueError("PLAYPASS_PRIVATE_KEY and PLAYPASS_API_URL are required")

    raw = {
        "private_key": private_key,
        "api_base_url": api_base_url,
        "rpc_url": os.environ.get("BASE_RPC_URL"),
        "chain_id": os.environ.get("CHAIN_ID"),
        "auto_prompt": os.environ.get("PLAYPASS_AUTO_PROMPT"),
        "preferences_path": os.environ.get("PLAYPASS_PREFS_PATH"),
        "confirmation_timeout": os.environ.get("PLAYPASS_CONFIRMATION_TIMEOUT"),
    }
    return Settings(**{k: v for k, v in raw.items() if v is not None})
