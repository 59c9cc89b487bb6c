from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, TypeAlias

from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind


@dataclass(frozen=True, slots=True)
class PushNotification:
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Delivered:
    success: ClassVar[bool] = True

    token: str


@dataclass(frozen=True, slots=True)
class Failed:
    success: ClassVar[bool] = False

    token: str
    error_kind: DeliveryErrorKind
    detail: str = ""


DeliveryResult: TypeAlias = Delivered | Failed


@dataclass(frozen=True, slots=True)
class FanoutReport:
    results: tuple[DeliveryResult, ...] = ()

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, Delivered))

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, Failed))

    @property
    def failed(self) -> list[Failed]:
        return [r for r in self.results if isinstance(r, Failed)]

    @property
    def failed_tokens(self) -> list[str]:
        return [r.token for r in self.failed]

    def as_dict(self) -> dict[str, object]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "results": [
                {
                    "token": r.token,
                    "success": r.success,
                    "error_kind": r.error_kind.value if isinstance(r, Failed) else None,
                }
                for r in self.results
            ],
        }
