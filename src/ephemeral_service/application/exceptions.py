from __future__ import annotations

from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class InvalidArgumentError(AppError):
    pass


class StoreError(AppError):
    """Transient failure talking to the content store."""


class DispatchError(AppError):
    """A single push send failed. Never escapes the fan-out dispatcher."""

    def __init__(self, kind: DeliveryErrorKind, detail: str = "") -> None:
        self.kind = kind
        super().__init__(detail or kind.value)
