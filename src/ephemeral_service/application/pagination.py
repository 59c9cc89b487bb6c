"""Cursor helpers for one-shot paging.

Cursor format: base64("<iso-timestamp>|<content id>")
"""
from __future__ import annotations

import base64
import binascii
from datetime import datetime

from ephemeral_service.application.exceptions import InvalidArgumentError


def encode_cursor(ts: datetime, content_id: str) -> str:
    raw = f"{ts.isoformat()}|{content_id}"
    cursor = base64.urlsafe_b64encode(raw.encode()).decode()
    return cursor.rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    # Restore base64 padding if it was stripped
    cursor += "=" * ((4 - len(cursor) % 4) % 4)
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
        ts_str, content_id = raw.split("|", 1)
        return datetime.fromisoformat(ts_str), content_id
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise InvalidArgumentError("Malformed cursor") from exc
