"""
Helper Functions
================

Common utility functions used across the application.
"""

import time
from datetime import datetime, timezone
from typing import Any

# Prefix used for keys the store cannot hold verbatim (leading ``$``)
DOLLAR_KEY_PREFIX = "__dollar__"


def utc_now() -> datetime:
    """Get current UTC datetime with timezone info."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def sanitize_payload(obj: Any) -> Any:
    """
    Prepare a webhook JSON payload for storage.

    - ``null`` object values are dropped (an absent key reads as "not set")
    - ``null`` array elements stay ``None`` so indices are preserved
    - object keys starting with ``$`` (e.g. ``$email`` subscriber attributes)
      are rewritten to ``__dollar__email``
    """
    if isinstance(obj, list):
        return [sanitize_payload(item) for item in obj]

    if isinstance(obj, dict):
        result: dict[str, Any] = {}
        for key, value in obj.items():
            if value is None:
                continue
            safe_key = (
                f"{DOLLAR_KEY_PREFIX}{key[1:]}"
                if isinstance(key, str) and key.startswith("$")
                else key
            )
            result[safe_key] = sanitize_payload(value)
        return result

    return obj
