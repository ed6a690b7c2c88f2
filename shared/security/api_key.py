"""Shared secret staff terminals present in the X-Terminal-Key header."""
import os
import secrets
import warnings

DEV_TERMINAL_KEY = "insecure-default-change-me"


def load_terminal_key() -> str:
    key = os.getenv("TERMINAL_API_KEY", "").strip()
    if not key:
        # Lets a local cluster start; any real deployment must set the variable
        warnings.warn(
            "TERMINAL_API_KEY is not set; terminals will authenticate with the development key",
            stacklevel=2,
        )
        return DEV_TERMINAL_KEY
    return key


TERMINAL_API_KEY = load_terminal_key()


def verify_api_key(provided_key: str | None) -> bool:
    """True when a terminal presented the configured key (constant-time compare)."""
    if not provided_key:
        return False
    return secrets.compare_digest(provided_key.encode(), TERMINAL_API_KEY.encode())
