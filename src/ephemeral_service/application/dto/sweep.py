from __future__ import annotations

from dataclasses import dataclass, field

from ephemeral_service.domain.value_objects.enums import ContentKind


@dataclass(frozen=True, slots=True)
class SweepError:
    kind: ContentKind
    detail: str


@dataclass(slots=True)
class SweepReport:
    """Outcome of an expiry sweep or an account purge."""

    counts_by_kind: dict[ContentKind, int] = field(default_factory=dict)
    errors: list[SweepError] = field(default_factory=list)
    skipped: bool = False

    @property
    def total(self) -> int:
        return sum(self.counts_by_kind.values())

    def as_dict(self) -> dict[str, object]:
        return {
            "counts_by_kind": {k.value: v for k, v in self.counts_by_kind.items()},
            "errors": [{"kind": e.kind.value, "detail": e.detail} for e in self.errors],
            "skipped": self.skipped,
            "total": self.total,
        }
