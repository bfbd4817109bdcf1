"""Template shortcodes for Lantern.

Shortcodes are plain callables exposed to every template as globals.
"""

from __future__ import annotations

from datetime import datetime, timezone


def current_build_date() -> str:
    """Return the current UTC time as an ISO 8601 timestamp.

    Millisecond precision with a ``Z`` suffix, e.g. ``2024-05-01T12:00:00.000Z``.
    Evaluated on every call.
    """
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
