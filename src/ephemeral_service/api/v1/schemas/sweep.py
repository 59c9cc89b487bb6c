from __future__ import annotations

from pydantic import BaseModel

from ephemeral_service.application.dto.sweep import SweepReport


class SweepErrorResponse(BaseModel):
    kind: str
    detail: str


class SweepReportResponse(BaseModel):
    counts_by_kind: dict[str, int]
    errors: list[SweepErrorResponse]
    skipped: bool
    total: int

    @classmethod
    def from_report(cls, report: SweepReport) -> SweepReportResponse:
        return cls.model_validate(report.as_dict())
