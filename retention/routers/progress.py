from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from retention.config import settings
from retention.database import get_db
from retention.schemas.progress import (
    ProgressSnapshot,
    ScoringResult,
    ActivityCreate,
    ItemProgressUpdate,
    ContractLink,
    MissionUpdate,
    SkillUpdate,
)
from retention.services import tracking
from retention.services.tracking import ProgressNotFoundError, TraineeNotFoundError, ProgramNotFoundError

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/{trainee_id}/{program_id}", response_model=ProgressSnapshot)
async def get_progress(
    trainee_id: int,
    program_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        row = await tracking.get_progress_row(db, trainee_id, program_id)
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))
    return tracking.to_snapshot(row)


@router.post("/{trainee_id}/{program_id}", response_model=ProgressSnapshot, status_code=201)
async def link_trainee(
    trainee_id: int,
    program_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        await tracking.get_progress_row(db, trainee_id, program_id)
    except ProgressNotFoundError:
        try:
            row = await tracking.start_progress(db, trainee_id, program_id, datetime.now(timezone.utc))
        except (TraineeNotFoundError, ProgramNotFoundError) as e:
            raise HTTPException(404, str(e))
        return tracking.to_snapshot(row)
    raise HTTPException(400, "Trainee is already linked to this program.")


@router.post("/{trainee_id}/{program_id}/activity", response_model=ScoringResult)
async def record_activity(
    trainee_id: int,
    program_id: int,
    payload: ActivityCreate,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.record_login(
            db, trainee_id, program_id, now, payload.minutes_spent, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/modules/{module_id}", response_model=ScoringResult)
async def update_module(
    trainee_id: int,
    program_id: int,
    module_id: str,
    payload: ItemProgressUpdate,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.update_item_progress(
            db, trainee_id, program_id, "module", module_id, payload.percentage, now, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/chapters/{chapter_id}", response_model=ScoringResult)
async def update_chapter(
    trainee_id: int,
    program_id: int,
    chapter_id: str,
    payload: ItemProgressUpdate,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.update_item_progress(
            db, trainee_id, program_id, "chapter", chapter_id, payload.percentage, now, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/recompute", response_model=ScoringResult)
async def recompute_progress(
    trainee_id: int,
    program_id: int,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.recompute_trainee(db, trainee_id, program_id, now, settings.scoring_policy)
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/modules/{module_id}/complete", response_model=ScoringResult)
async def complete_module(
    trainee_id: int,
    program_id: int,
    module_id: str,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.complete_item(
            db, trainee_id, program_id, "module", module_id, now, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/chapters/{chapter_id}/complete", response_model=ScoringResult)
async def complete_chapter(
    trainee_id: int,
    program_id: int,
    chapter_id: str,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.complete_item(
            db, trainee_id, program_id, "chapter", chapter_id, now, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


# Work-study
@router.post("/{trainee_id}/{program_id}/contract", response_model=ScoringResult)
async def link_contract(
    trainee_id: int,
    program_id: int,
    payload: ContractLink,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.link_contract(
            db, trainee_id, program_id, payload.contract_id, now, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/missions/{mission_id}", response_model=ScoringResult)
async def record_mission(
    trainee_id: int,
    program_id: int,
    mission_id: str,
    payload: MissionUpdate,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.record_mission(
            db, trainee_id, program_id, mission_id, payload.title, payload.completion_rate,
            now, payload.status, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/{trainee_id}/{program_id}/skills/{skill_code}", response_model=ScoringResult)
async def record_skill(
    trainee_id: int,
    program_id: int,
    skill_code: str,
    payload: SkillUpdate,
    db: AsyncSession = Depends(get_db)
):
    now = datetime.now(timezone.utc)
    try:
        return await tracking.record_skill(
            db, trainee_id, program_id, skill_code, payload.name, payload.level,
            now, payload.context, settings.scoring_policy
        )
    except ProgressNotFoundError as e:
        raise HTTPException(404, str(e))
