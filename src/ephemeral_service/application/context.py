from __future__ import annotations

from dataclasses import dataclass

from ephemeral_service.application.ports.clock import Clock
from ephemeral_service.application.ports.notifier import ContentNotifier
from ephemeral_service.application.ports.store import ContentStore


@dataclass(slots=True)
class AppContext:
    """Collaborators shared by the service functions of one process."""

    store: ContentStore
    clock: Clock
    notifier: ContentNotifier | None = None
    message_max_length: int = 500
    broadcast_max_length: int = 100
    live_view_tick_seconds: float = 30.0
