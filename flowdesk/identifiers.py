"""ID generation and timestamp utilities."""

from __future__ import annotations

import secrets
import string
import time
import uuid
from datetime import datetime, timezone

_BASE36 = string.digits + string.ascii_lowercase


def utc_timestamp() -> str:
    """Generate an ISO8601 UTC timestamp with millisecond precision.

    The fixed width keeps timestamps ordered under plain string comparison.
    """
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def generate_flowchart_id() -> str:
    """Generate a unique flowchart ID (UUID4)."""
    return str(uuid.uuid4())


def generate_agent_id() -> str:
    """Generate a unique agent ID (UUID4)."""
    return str(uuid.uuid4())


def generate_item_id(prefix: str) -> str:
    """Generate a node or connection ID: ``<prefix>-<epoch ms>-<9 char base36>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}-{time.time_ns() // 1_000_000}-{suffix}"
