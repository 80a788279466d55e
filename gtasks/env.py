from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .constants import (
    DEFAULT_SCOPE,
    ENV_FILE,
    KEYRING_ACCOUNT,
    KEYRING_SERVICE,
    LOGGER,
)

REQUIRED_ENV = (
    "GOOGLE_OAUTH2_CLIENT_ID",
    "GOOGLE_OAUTH2_CLIENT_SECRET",
)


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str
    scope: str
    keyring_service: str
    keyring_account: str
    callback_timeout: float | None


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def load_env() -> None:
    if not ENV_FILE.exists():
        return
    load_dotenv(ENV_FILE, override=True)


def validate_env() -> None:
    missing = [key for key in REQUIRED_ENV if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )


def load_settings(*, require_client: bool = True) -> Settings:
    """Read the runtime settings from the environment.

    Sign-out never talks to the provider, so callers that only need the
    credential store pass ``require_client=False``.
    """
    if require_client:
        validate_env()

    timeout = _get_env_int("GTASKS_CALLBACK_TIMEOUT", 0)
    if timeout < 0:
        raise RuntimeError("GTASKS_CALLBACK_TIMEOUT must not be negative.")

    return Settings(
        client_id=os.getenv("GOOGLE_OAUTH2_CLIENT_ID", "").strip(),
        client_secret=os.getenv("GOOGLE_OAUTH2_CLIENT_SECRET", "").strip(),
        scope=os.getenv("GOOGLE_OAUTH2_SCOPES", "").strip() or DEFAULT_SCOPE,
        keyring_service=os.getenv("GTASKS_KEYRING_SERVICE", "").strip() or KEYRING_SERVICE,
        keyring_account=os.getenv("GTASKS_KEYRING_ACCOUNT", "").strip() or KEYRING_ACCOUNT,
        callback_timeout=float(timeout) if timeout else None,
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("GTASKS_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
