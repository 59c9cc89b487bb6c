from __future__ import annotations

from typing import TypeAlias

from ephemeral_service.domain.entities.broadcast import Broadcast
from ephemeral_service.domain.entities.message import Message
from ephemeral_service.domain.entities.snap import Snap

EphemeralContent: TypeAlias = Message | Snap | Broadcast
