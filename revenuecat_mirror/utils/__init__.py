"""
Utilities Module
================

Helper functions and utility classes.
"""

from revenuecat_mirror.utils.helpers import now_ms, sanitize_payload, utc_now

__all__ = ["now_ms", "sanitize_payload", "utc_now"]
