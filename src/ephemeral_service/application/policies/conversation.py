from __future__ import annotations

from ephemeral_service.application.exceptions import InvalidArgumentError

SEPARATOR = "_"


def _check(user_id: str) -> None:
    if not user_id:
        raise InvalidArgumentError("Participant id must not be empty")
    # Stricter than non-empty: an id holding the separator could make two
    # different pairs join to the same conversation id.
    if SEPARATOR in user_id:
        raise InvalidArgumentError(
            f"Participant id must not contain {SEPARATOR!r}: {user_id}"
        )


def participants(id_a: str, id_b: str) -> tuple[str, str]:
    """Return the pair sorted, as stored on every message."""
    _check(id_a)
    _check(id_b)
    lo, hi = sorted((id_a, id_b))
    return lo, hi


def conversation_id(id_a: str, id_b: str) -> str:
    lo, hi = participants(id_a, id_b)
    return f"{lo}{SEPARATOR}{hi}"
