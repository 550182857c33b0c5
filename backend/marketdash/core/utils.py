from __future__ import annotations
import uuid
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def generate_id(prefix: str) -> str:
    """Generates a unique ID with the given prefix."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
