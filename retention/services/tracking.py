import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case

from retention.core.policy import ScoringPolicy, DEFAULT_POLICY
from retention.models.attendance import AttendanceRecord
from retention.models.progress import TraineeProgress
from retention.models.session import TrainingSession
from retention.models.trainee import Trainee, Program
from retention.schemas.attendance import AttendanceFact
from retention.schemas.progress import ProgressSnapshot, ScoringResult, RetentionReport
from retention.services import progress as progress_service
from retention.services import alternance as alternance_service
from retention.services.scoring import recompute

logger = logging.getLogger(__name__)

JSON_FIELDS = ("module_progress", "chapter_progress", "difficulty_signals", "mission_progress", "skills_acquired")


class ProgressNotFoundError(LookupError):
    def __init__(self, trainee_id: int, program_id: int):
        super().__init__(f"No progress record for trainee {trainee_id} in program {program_id}")
        self.trainee_id = trainee_id
        self.program_id = program_id


class TraineeNotFoundError(LookupError):
    def __init__(self, trainee_id: int):
        super().__init__(f"Trainee {trainee_id} not found")
        self.trainee_id = trainee_id


class ProgramNotFoundError(LookupError):
    def __init__(self, program_id: int):
        super().__init__(f"Program {program_id} not found")
        self.program_id = program_id


class AttendanceRecordNotFoundError(LookupError):
    def __init__(self, record_id: int):
        super().__init__(f"Attendance record {record_id} not found")
        self.record_id = record_id


def to_snapshot(row: TraineeProgress) -> ProgressSnapshot:
    return ProgressSnapshot.model_validate(row)


def write_snapshot(row: TraineeProgress, snapshot: ProgressSnapshot) -> None:
    """Copy engine output back onto the ORM row."""
    plain = snapshot.model_dump(exclude={"id", "trainee_id", "program_id", *JSON_FIELDS})
    json_ready = snapshot.model_dump(mode="json", include=set(JSON_FIELDS))
    for field, value in plain.items():
        if field == "alternance_status" and value is not None:
            value = value.value
        setattr(row, field, value)
    for field, value in json_ready.items():
        setattr(row, field, value)


def to_fact(record: AttendanceRecord) -> AttendanceFact:
    return AttendanceFact.model_validate(record)


def write_fact(record: AttendanceRecord, fact: AttendanceFact) -> None:
    data = fact.model_dump(exclude={"id", "trainee_id", "session_id"})
    for field, value in data.items():
        if field in ("status", "location") and value is not None:
            value = value.value
        setattr(record, field, value)


async def get_progress_row(db: AsyncSession, trainee_id: int, program_id: int) -> TraineeProgress:
    result = await db.execute(
        select(TraineeProgress)
        .where(TraineeProgress.trainee_id == trainee_id)
        .where(TraineeProgress.program_id == program_id)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise ProgressNotFoundError(trainee_id, program_id)
    return row


async def load_attendance_facts(db: AsyncSession, trainee_id: int, program_id: int) -> List[AttendanceFact]:
    result = await db.execute(
        select(AttendanceRecord)
        .join(TrainingSession, TrainingSession.id == AttendanceRecord.session_id)
        .where(AttendanceRecord.trainee_id == trainee_id)
        .where(TrainingSession.program_id == program_id)
        .order_by(AttendanceRecord.id)
    )
    return [to_fact(record) for record in result.scalars().all()]


async def start_progress(db: AsyncSession, trainee_id: int, program_id: int, now: datetime) -> TraineeProgress:
    """Link a trainee to a program; called once per enrollment."""
    if await db.get(Trainee, trainee_id) is None:
        raise TraineeNotFoundError(trainee_id)
    if await db.get(Program, program_id) is None:
        raise ProgramNotFoundError(program_id)
    row = TraineeProgress(
        trainee_id=trainee_id,
        program_id=program_id,
        started_at=now,
        last_activity=now,
        module_progress={},
        chapter_progress={},
        difficulty_signals=[],
        mission_progress={},
        skills_acquired={},
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return row


async def score_row(
    db: AsyncSession, row: TraineeProgress, now: datetime, policy: ScoringPolicy = DEFAULT_POLICY
) -> ScoringResult:
    """Recompute one loaded row in place. Does not commit."""
    facts = await load_attendance_facts(db, row.trainee_id, row.program_id)
    snapshot = to_snapshot(row)
    result = recompute(snapshot, now, facts, policy)
    write_snapshot(row, snapshot)
    return result


async def recompute_trainee(
    db: AsyncSession, trainee_id: int, program_id: int, now: datetime, policy: ScoringPolicy = DEFAULT_POLICY
) -> ScoringResult:
    row = await get_progress_row(db, trainee_id, program_id)
    result = await score_row(db, row, now, policy)
    await db.commit()
    logger.debug(
        "Recomputed trainee progress",
        extra={
            "trainee_id": trainee_id,
            "program_id": program_id,
            "engagement_score": result.engagement.score,
            "risk_score": result.risk.risk_score,
        },
    )
    return result


async def record_login(
    db: AsyncSession,
    trainee_id: int,
    program_id: int,
    now: datetime,
    minutes_spent: int = 0,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    row = await get_progress_row(db, trainee_id, program_id)
    snapshot = to_snapshot(row)
    progress_service.record_activity(snapshot, now)
    progress_service.add_time_spent(snapshot, minutes_spent)
    write_snapshot(row, snapshot)
    result = await score_row(db, row, now, policy)
    await db.commit()
    return result


async def update_item_progress(
    db: AsyncSession,
    trainee_id: int,
    program_id: int,
    kind: str,
    item_id: str,
    percentage: float,
    now: datetime,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    """`kind` is "module" or "chapter"."""
    row = await get_progress_row(db, trainee_id, program_id)
    snapshot = to_snapshot(row)
    if kind == "module":
        progress_service.update_module_progress(snapshot, item_id, percentage, now)
    elif kind == "chapter":
        progress_service.update_chapter_progress(snapshot, item_id, percentage, now)
    else:
        raise ValueError(f"Unknown progress item kind: {kind}")
    write_snapshot(row, snapshot)
    result = await score_row(db, row, now, policy)
    await db.commit()
    return result


async def get_attendance_record(
    db: AsyncSession, record_id: int
) -> Tuple[AttendanceRecord, Optional[TrainingSession]]:
    record = await db.get(AttendanceRecord, record_id)
    if record is None:
        raise AttendanceRecordNotFoundError(record_id)
    session = await db.get(TrainingSession, record.session_id)
    return record, session


async def list_at_risk(db: AsyncSession) -> List[TraineeProgress]:
    result = await db.execute(
        select(TraineeProgress)
        .where(TraineeProgress.at_risk_of_dropout.is_(True))
        .order_by(TraineeProgress.risk_score.desc(), TraineeProgress.id)
    )
    return list(result.scalars().all())


async def build_retention_report(db: AsyncSession) -> RetentionReport:
    result = await db.execute(
        select(
            func.count(TraineeProgress.id),
            func.count(TraineeProgress.completed_at),
            func.sum(case((TraineeProgress.at_risk_of_dropout.is_(True), 1), else_=0)),
            func.avg(TraineeProgress.engagement_score),
            func.avg(TraineeProgress.attendance_rate),
        )
    )
    total, completed, at_risk, avg_engagement, avg_attendance = result.one()
    total = total or 0
    return RetentionReport(
        total_enrollments=total,
        completion_rate=round(completed / total * 100, 2) if total else 0.0,
        at_risk_rate=round((at_risk or 0) / total * 100, 2) if total else 0.0,
        average_engagement=round(float(avg_engagement or 0), 2),
        average_attendance=round(float(avg_attendance or 0), 2),
    )


async def complete_item(
    db: AsyncSession,
    trainee_id: int,
    program_id: int,
    kind: str,
    item_id: str,
    now: datetime,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    row = await get_progress_row(db, trainee_id, program_id)
    snapshot = to_snapshot(row)
    if kind == "module":
        progress_service.complete_module(snapshot, item_id, now)
    elif kind == "chapter":
        progress_service.complete_chapter(snapshot, item_id, now)
    else:
        raise ValueError(f"Unknown progress item kind: {kind}")
    write_snapshot(row, snapshot)
    result = await score_row(db, row, now, policy)
    await db.commit()
    return result


async def link_contract(
    db: AsyncSession,
    trainee_id: int,
    program_id: int,
    contract_id: int,
    now: datetime,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    """Attach a work-study contract; scoring picks up the work-study view from then on."""
    row = await get_progress_row(db, trainee_id, program_id)
    row.alternance_contract_id = contract_id
    result = await score_row(db, row, now, policy)
    await db.commit()
    logger.info(
        "Linked work-study contract",
        extra={"trainee_id": trainee_id, "program_id": program_id, "contract_id": contract_id},
    )
    return result


async def record_mission(
    db: AsyncSession,
    trainee_id: int,
    program_id: int,
    mission_id: str,
    title: str,
    completion_rate: float,
    now: datetime,
    status: Optional[str] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    row = await get_progress_row(db, trainee_id, program_id)
    snapshot = to_snapshot(row)
    alternance_service.add_mission_progress(snapshot, mission_id, title, completion_rate, now, status)
    write_snapshot(row, snapshot)
    result = await score_row(db, row, now, policy)
    await db.commit()
    return result


async def record_skill(
    db: AsyncSession,
    trainee_id: int,
    program_id: int,
    skill_code: str,
    name: str,
    level: float,
    now: datetime,
    context: Optional[str] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    row = await get_progress_row(db, trainee_id, program_id)
    snapshot = to_snapshot(row)
    alternance_service.add_acquired_skill(snapshot, skill_code, name, level, now, context)
    write_snapshot(row, snapshot)
    result = await score_row(db, row, now, policy)
    await db.commit()
    return result
