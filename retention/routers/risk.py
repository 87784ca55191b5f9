from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from retention.database import get_db
from retention.schemas.progress import AtRiskItem, BatchReport, RetentionReport
from retention.services import tracking
from retention.services.batch import run_batch_recompute

router = APIRouter(prefix="/risk", tags=["risk"])


@router.get("/at-risk", response_model=List[AtRiskItem])
async def get_at_risk_trainees(db: AsyncSession = Depends(get_db)):
    return await tracking.list_at_risk(db)


@router.get("/retention-report", response_model=RetentionReport)
async def get_retention_report(db: AsyncSession = Depends(get_db)):
    return await tracking.build_retention_report(db)


@router.post("/recompute", response_model=BatchReport)
async def recompute_all():
    # Opens its own sessions, one per batch
    return await run_batch_recompute(datetime.now(timezone.utc))
