from __future__ import annotations

import logging

from ephemeral_service.application.dto.sweep import SweepReport
from ephemeral_service.application.exceptions import InvalidArgumentError
from ephemeral_service.application.ports.recipients import RecipientDirectory
from ephemeral_service.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


async def purge_all_content_for(
    user_id: str,
    sweeper: ExpirySweeper,
    directory: RecipientDirectory | None = None,
) -> SweepReport:
    """Account-deletion step: remove every record the user owns or takes part in.

    With a ``directory`` the user's follow edges and push token go too, so a
    deleted device stops receiving vendor fan-outs.
    """
    if not user_id:
        raise InvalidArgumentError("User id must not be empty")
    logger.info("Purging all ephemeral content for %s", user_id)
    report = await sweeper.purge_owner(user_id)
    if report.errors:
        logger.warning(
            "Content purge for %s finished with %d errors", user_id, len(report.errors),
        )
    if directory is not None:
        await directory.forget_user(user_id)
        logger.info("Follow edges and push token cleared for %s", user_id)
    return report
