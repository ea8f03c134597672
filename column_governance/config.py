"""Runtime settings read from the environment (populated by keyvault_loader.load_env)."""

import logging
import os
from typing import Optional

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CLASSIFY_MAX_WORKERS = 8


def _get(name: str) -> str:
    return os.environ.get(name, "").strip()


def openai_api_key() -> Optional[str]:
    return _get("OPENAI_API_KEY") or None


def openai_model() -> str:
    return _get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL


def openai_base_url() -> str:
    return (_get("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL).rstrip("/")


def openai_timeout() -> Optional[float]:
    """Request timeout in seconds; None leaves the transport default (no timeout)."""
    raw = _get("OPENAI_TIMEOUT_SECONDS")
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"OPENAI_TIMEOUT_SECONDS must be a number, got {raw!r}")
    return value if value > 0 else None


def classify_max_workers() -> int:
    raw = _get("CLASSIFY_MAX_WORKERS")
    if not raw:
        return DEFAULT_CLASSIFY_MAX_WORKERS
    try:
        return max(1, int(raw))
    except ValueError:
        raise ValueError(f"CLASSIFY_MAX_WORKERS must be an integer, got {raw!r}")


def api_auth_token() -> Optional[str]:
    return _get("API_AUTH_TOKEN") or None


def configure_logging() -> None:
    """Configure root logging from LOG_LEVEL (default INFO)."""
    level = _get("LOG_LEVEL").upper() or "INFO"
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s: %(message)s")
