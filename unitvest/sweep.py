"""
Maturity sweep command for external schedulers (cron, Kubernetes CronJob).

Usage:
    python -m unitvest.sweep

Exit status is 0 when every matured investment was settled, 1 when some
failed (they stay matured and are retried on the next run) and 2 when the
database could not be reached at all.
"""

import asyncio
import logging
import sys

from unitvest.core.exceptions import PartialBatchFailure
from unitvest.db.session import AsyncSessionLocal, engine
from unitvest.main import create_tables
from unitvest.services.notification_service import NotificationService
from unitvest.services.sweeper import MaturitySweeper

logger = logging.getLogger(__name__)


async def main() -> int:
    try:
        if not await create_tables():
            return 2
        sweeper = MaturitySweeper(AsyncSessionLocal, NotificationService(AsyncSessionLocal))
        result = await sweeper.run_maturity_sweep()
        result.raise_for_failures()
    except PartialBatchFailure as exc:
        logger.error("%s", exc)
        for error in exc.errors:
            logger.error("  %s: %s", error.investment_id, error.reason)
        return 1
    finally:
        await engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
