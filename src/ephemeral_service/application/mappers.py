"""Conversions between domain entities and store documents."""
from __future__ import annotations

from ephemeral_service.application.ports.store import Document
from ephemeral_service.domain.entities.broadcast import Broadcast
from ephemeral_service.domain.entities.content import EphemeralContent
from ephemeral_service.domain.entities.message import Message
from ephemeral_service.domain.entities.snap import Snap
from ephemeral_service.domain.value_objects.enums import ContentKind


def message_to_document(entity: Message) -> Document:
    return {
        "owner_id": entity.from_id,
        "from_id": entity.from_id,
        "to_id": entity.to_id,
        "text": entity.text,
        "conversation_id": entity.conversation_id,
        "participants": list(entity.participants),
        "created_at": entity.created_at,
        "expires_at": entity.expires_at,
        "is_read": entity.is_read,
    }


def document_to_message(doc: Document) -> Message:
    lo, hi = doc["participants"]
    return Message(
        id=doc["id"],
        from_id=doc["from_id"],
        to_id=doc["to_id"],
        text=doc["text"],
        conversation_id=doc["conversation_id"],
        participants=(lo, hi),
        created_at=doc["created_at"],
        expires_at=doc["expires_at"],
        is_read=bool(doc.get("is_read", False)),
    )


def snap_to_document(entity: Snap) -> Document:
    return {
        "owner_id": entity.owner_id,
        "media_url": entity.media_url,
        "media_type": entity.media_type,
        "caption": entity.caption,
        "is_story": entity.is_story,
        "created_at": entity.created_at,
        "expires_at": entity.expires_at,
    }


def document_to_snap(doc: Document) -> Snap:
    return Snap(
        id=doc["id"],
        owner_id=doc["owner_id"],
        media_url=doc["media_url"],
        media_type=doc["media_type"],
        caption=doc.get("caption"),
        is_story=bool(doc.get("is_story", False)),
        created_at=doc["created_at"],
        expires_at=doc["expires_at"],
    )


def broadcast_to_document(entity: Broadcast) -> Document:
    return {
        "owner_id": entity.owner_id,
        "text": entity.text,
        "created_at": entity.created_at,
        "expires_at": entity.expires_at,
    }


def document_to_broadcast(doc: Document) -> Broadcast:
    return Broadcast(
        id=doc["id"],
        owner_id=doc["owner_id"],
        text=doc["text"],
        created_at=doc["created_at"],
        expires_at=doc["expires_at"],
    )


def document_to_content(kind: ContentKind, doc: Document) -> EphemeralContent:
    if kind == ContentKind.MESSAGE:
        return document_to_message(doc)
    if kind == ContentKind.SNAP:
        return document_to_snap(doc)
    return document_to_broadcast(doc)
