from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from retention.config import settings
from retention.database import get_db
from retention.schemas.attendance import (
    AttendanceStatus,
    AttendanceResponse,
    AttendanceStatistics,
    MarkAbsentRequest,
    ArrivalRequest,
    DepartureRequest,
)
from retention.services import attendance as weighting
from retention.services import tracking
from retention.services.tracking import AttendanceRecordNotFoundError, ProgressNotFoundError

router = APIRouter(prefix="/attendance", tags=["attendance"])


async def _load(db: AsyncSession, record_id: int):
    try:
        record, session = await tracking.get_attendance_record(db, record_id)
    except AttendanceRecordNotFoundError as e:
        raise HTTPException(404, str(e))
    return record, session, tracking.to_fact(record)


async def _save(db: AsyncSession, record, session, fact) -> AttendanceResponse:
    """Persist the marked fact, then rescore the trainee it belongs to."""
    tracking.write_fact(record, fact)
    if session is not None:
        try:
            await tracking.recompute_trainee(
                db, record.trainee_id, session.program_id, datetime.now(timezone.utc), settings.scoring_policy
            )
        except ProgressNotFoundError:
            # attendance can be taken before the enrollment is linked
            await db.commit()
    else:
        await db.commit()
    await db.refresh(record)
    return AttendanceResponse(
        **tracking.to_fact(record).model_dump(),
        weight=weighting.attendance_weight(fact, settings.scoring_policy),
        participation_percentage=weighting.participation_percentage(fact),
    )


@router.post("/{record_id}/present", response_model=AttendanceResponse)
async def mark_present(record_id: int, db: AsyncSession = Depends(get_db)):
    record, session, fact = await _load(db, record_id)
    weighting.mark_present(fact)
    return await _save(db, record, session, fact)


@router.post("/{record_id}/absent", response_model=AttendanceResponse)
async def mark_absent(record_id: int, payload: MarkAbsentRequest, db: AsyncSession = Depends(get_db)):
    record, session, fact = await _load(db, record_id)
    weighting.mark_absent(fact, payload.reason, payload.excused)
    return await _save(db, record, session, fact)


@router.post("/{record_id}/late", response_model=AttendanceResponse)
async def mark_late(record_id: int, payload: ArrivalRequest, db: AsyncSession = Depends(get_db)):
    record, session, fact = await _load(db, record_id)
    starts_at = session.starts_at if session else None
    weighting.mark_late(fact, payload.arrival_time, starts_at, settings.scoring_policy)
    return await _save(db, record, session, fact)


@router.post("/{record_id}/partial", response_model=AttendanceResponse)
async def mark_partial(record_id: int, payload: DepartureRequest, db: AsyncSession = Depends(get_db)):
    record, session, fact = await _load(db, record_id)
    ends_at = session.ends_at if session else None
    weighting.mark_partial(fact, payload.departure_time, ends_at, settings.scoring_policy)
    return await _save(db, record, session, fact)


@router.post("/{record_id}/arrival", response_model=AttendanceResponse)
async def record_arrival(record_id: int, payload: ArrivalRequest, db: AsyncSession = Depends(get_db)):
    record, session, fact = await _load(db, record_id)
    if fact.status == AttendanceStatus.ABSENT:
        raise HTTPException(400, "Cannot record an arrival on an absent record. Mark it present or late first.")
    starts_at = session.starts_at if session else None
    weighting.record_arrival(fact, payload.arrival_time, starts_at, settings.scoring_policy)
    return await _save(db, record, session, fact)


@router.post("/{record_id}/departure", response_model=AttendanceResponse)
async def record_departure(record_id: int, payload: DepartureRequest, db: AsyncSession = Depends(get_db)):
    record, session, fact = await _load(db, record_id)
    if fact.status == AttendanceStatus.ABSENT:
        raise HTTPException(400, "Cannot record a departure on an absent record. Mark it present or partial first.")
    ends_at = session.ends_at if session else None
    weighting.record_departure(fact, payload.departure_time, ends_at, settings.scoring_policy)
    return await _save(db, record, session, fact)


@router.get("/trainee/{trainee_id}/{program_id}", response_model=AttendanceStatistics)
async def get_attendance_statistics(trainee_id: int, program_id: int, db: AsyncSession = Depends(get_db)):
    facts = await tracking.load_attendance_facts(db, trainee_id, program_id)
    return weighting.attendance_statistics(facts, settings.scoring_policy)
