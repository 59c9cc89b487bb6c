from __future__ import annotations

from fastapi import APIRouter

from ephemeral_service.api.deps import CurrentPrincipal, DirectoryDep, SweeperDep
from ephemeral_service.api.v1.schemas.sweep import SweepReportResponse
from ephemeral_service.services import account_service

router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


@router.delete("/me/content", response_model=SweepReportResponse)
async def purge_my_content(
    principal: CurrentPrincipal,
    sweeper: SweeperDep,
    directory: DirectoryDep,
) -> SweepReportResponse:
    report = await account_service.purge_all_content_for(principal.user_id, sweeper, directory)
    return SweepReportResponse.from_report(report)
