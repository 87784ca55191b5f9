"""
Bulk recomputation over every trainee progress record.

Trainees are independent of each other, so a run walks the table in id
order and commits every `batch_size` trainees. A trainee that fails is
skipped and reported; a batch whose commit fails is rolled back and
reported without touching batches that were already committed.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from retention.config import settings
from retention.core.policy import ScoringPolicy
from retention.database import AsyncSessionLocal
from retention.models.progress import TraineeProgress
from retention.schemas.progress import BatchReport
from retention.services.tracking import score_row

logger = logging.getLogger(__name__)


async def _next_batch(db: AsyncSession, after_id: int, batch_size: int):
    result = await db.execute(
        select(TraineeProgress)
        .where(TraineeProgress.id > after_id)
        .order_by(TraineeProgress.id)
        .limit(batch_size)
    )
    return list(result.scalars().all())


async def run_batch_recompute(
    now: datetime,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    batch_size: Optional[int] = None,
    policy: Optional[ScoringPolicy] = None,
) -> BatchReport:
    batch_size = batch_size or settings.BATCH_SIZE
    policy = policy or settings.scoring_policy
    report = BatchReport()
    last_id = 0
    batch_number = 0

    logger.info("Starting bulk recompute", extra={"batch_size": batch_size})

    while True:
        async with session_factory() as db:
            rows = await _next_batch(db, last_id, batch_size)
            if not rows:
                break
            batch_number += 1
            first_id, last_id = rows[0].id, rows[-1].id
            at_risk = []
            failed = []

            for row in rows:
                report.processed += 1
                trainee_id = row.trainee_id
                try:
                    result = await score_row(db, row, now, policy)
                except Exception as e:
                    failed.append(trainee_id)
                    logger.error(
                        f"Failed to recompute trainee: {type(e).__name__}: {str(e)}",
                        exc_info=True,
                        extra={"trainee_id": trainee_id, "batch": batch_number},
                    )
                    continue
                if result.risk.at_risk_of_dropout:
                    at_risk.append(trainee_id)

            try:
                await db.commit()
            except Exception as e:
                await db.rollback()
                report.failed_batches.append(batch_number)
                report.failed_trainees.extend(failed)
                logger.error(
                    f"Failed to commit batch: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                    extra={"batch": batch_number, "first_id": first_id, "last_id": last_id},
                )
                continue

            report.updated += len(rows) - len(failed)
            report.failed_trainees.extend(failed)
            report.at_risk.extend(at_risk)
            logger.debug(
                "Committed batch",
                extra={"batch": batch_number, "size": len(rows), "failed": len(failed)},
            )

    logger.info(
        "Bulk recompute completed",
        extra={
            "processed": report.processed,
            "updated": report.updated,
            "failed_trainees": len(report.failed_trainees),
            "failed_batches": len(report.failed_batches),
            "at_risk": len(report.at_risk),
        },
    )
    return report
