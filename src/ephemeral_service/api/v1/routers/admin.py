from __future__ import annotations

from fastapi import APIRouter

from ephemeral_service.api.deps import CurrentAdmin, SweeperDep
from ephemeral_service.api.v1.schemas.sweep import SweepReportResponse
from ephemeral_service.services.sweeper import run_sweep

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.post("/sweep", response_model=SweepReportResponse)
async def sweep_expired(
    _admin: CurrentAdmin,
    sweeper: SweeperDep,
) -> SweepReportResponse:
    report = await run_sweep(sweeper)
    return SweepReportResponse.from_report(report)
