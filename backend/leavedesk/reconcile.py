"""Operator command that repairs approved requests whose debit never landed.

Run with:  python -m leavedesk.reconcile

Only relevant when ``LEAVEDESK_ATOMIC_DECISIONS`` is off. One pass, no loop;
exits non-zero when any request could not be repaired.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from leavedesk.config import get_settings
from leavedesk.db import dispose_engine, get_session_factory
from leavedesk.schemas.request import ReconcileResult
from leavedesk.services.request import reconcile_debits
from leavedesk.services.store import LeaveStore

logger = logging.getLogger(__name__)


async def run_reconciliation() -> ReconcileResult:
    """Run one reconciliation pass against the configured database."""
    settings = get_settings()
    session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            result = await reconcile_debits(LeaveStore(session), settings)
    finally:
        await dispose_engine()
    logger.info(
        "Reconciliation complete: examined=%d repaired=%d failed=%d",
        result.examined,
        result.repaired,
        result.failed,
    )
    return result


def main() -> int:
    """Entry point for the reconcile command."""
    logging.basicConfig(
        level=get_settings().log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )
    result = asyncio.run(run_reconciliation())
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
