import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import retention.models  # noqa: F401
from retention.database import Base
from retention.models import AttendanceRecord, Program, Trainee, TraineeProgress, TrainingSession
from retention.services import batch as batch_service
from retention.services import tracking
from retention.services.batch import run_batch_recompute
from retention.services.tracking import ProgressNotFoundError, ProgramNotFoundError, TraineeNotFoundError

TRAINEES = 5


@asynccontextmanager
async def seeded_database(path, now):
    """
    Five trainees in program 1. Odd ids are active and on track,
    even ids went quiet twenty days ago without any progress.
    """
    engine = create_async_engine("sqlite+aiosqlite:///" + str(path))
    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as db:
            db.add_all([Program(id=1, title="Web development"), Program(id=2, title="Networks")])
            db.add_all([
                TrainingSession(id=1, program_id=1, title="Kick-off", starts_at=now - timedelta(days=3)),
                TrainingSession(id=2, program_id=2, title="Routing", starts_at=now - timedelta(days=2)),
            ])
            for trainee_id in range(1, TRAINEES + 1):
                active = trainee_id % 2 == 1
                db.add(Trainee(id=trainee_id, full_name="Trainee {}".format(trainee_id)))
                db.add(TraineeProgress(
                    trainee_id=trainee_id,
                    program_id=1,
                    started_at=now - timedelta(days=40),
                    last_activity=now if active else now - timedelta(days=20),
                    login_count=40 if active else 0,
                    module_progress={"1": {"completed": True, "percentage": 100.0}} if active else {},
                ))
            await db.commit()
        yield engine, factory
    finally:
        await engine.dispose()


async def _rows(factory):
    async with factory() as db:
        result = await db.execute(select(TraineeProgress).order_by(TraineeProgress.id))
        return {row.trainee_id: row for row in result.scalars().all()}


def test_bulk_recompute_scores_every_trainee(tmp_path, now):
    async def scenario():
        async with seeded_database(tmp_path / "batch.db", now) as (engine, factory):
            report = await run_batch_recompute(now, factory, batch_size=2)
            return report, await _rows(factory)

    report, rows = asyncio.run(scenario())
    assert report.processed == TRAINEES
    assert report.updated == TRAINEES
    assert report.failed_trainees == []
    assert report.failed_batches == []
    assert report.at_risk == [2, 4]
    assert rows[1].engagement_score == 100
    assert rows[1].completion_percentage == 100
    assert rows[1].at_risk_of_dropout is False
    assert rows[2].at_risk_of_dropout is True
    assert rows[2].difficulty_signals == ["low_engagement", "prolonged_inactivity", "slow_progress"]
    assert all(row.last_risk_assessment is not None for row in rows.values())


def test_failing_trainee_is_skipped(tmp_path, now, monkeypatch):
    real_score_row = batch_service.score_row

    async def flaky_score_row(db, row, now, policy):
        if row.trainee_id == 3:
            raise RuntimeError("corrupted progress payload")
        return await real_score_row(db, row, now, policy)

    monkeypatch.setattr(batch_service, "score_row", flaky_score_row)

    async def scenario():
        async with seeded_database(tmp_path / "batch.db", now) as (engine, factory):
            report = await run_batch_recompute(now, factory, batch_size=2)
            return report, await _rows(factory)

    report, rows = asyncio.run(scenario())
    assert report.processed == TRAINEES
    assert report.updated == TRAINEES - 1
    assert report.failed_trainees == [3]
    assert report.failed_batches == []
    assert rows[3].last_risk_assessment is None
    assert rows[4].last_risk_assessment is not None


class FailingSecondCommit(AsyncSession):
    """Session whose second commit across the run blows up."""

    commits = 0

    async def commit(self):
        type(self).commits += 1
        if type(self).commits == 2:
            raise RuntimeError("database went away")
        await super().commit()


def test_failed_commit_only_loses_its_batch(tmp_path, now):
    async def scenario():
        async with seeded_database(tmp_path / "batch.db", now) as (engine, factory):
            FailingSecondCommit.commits = 0
            failing = async_sessionmaker(bind=engine, expire_on_commit=False, class_=FailingSecondCommit)
            report = await run_batch_recompute(now, failing, batch_size=2)
            return report, await _rows(factory)

    report, rows = asyncio.run(scenario())
    assert report.failed_batches == [2]
    assert report.failed_trainees == []
    assert report.updated == 3
    assert report.at_risk == [2]
    assert rows[1].last_risk_assessment is not None
    assert rows[2].last_risk_assessment is not None
    assert rows[3].last_risk_assessment is None
    assert rows[4].last_risk_assessment is None
    assert rows[5].last_risk_assessment is not None


def test_recompute_trainee_only_counts_its_program(tmp_path, now):
    async def scenario():
        async with seeded_database(tmp_path / "batch.db", now) as (engine, factory):
            async with factory() as db:
                db.add_all([
                    AttendanceRecord(trainee_id=1, session_id=1, status="late"),
                    AttendanceRecord(trainee_id=1, session_id=2, status="absent"),
                ])
                await db.commit()
                result = await tracking.recompute_trainee(db, 1, 1, now)
                with pytest.raises(ProgressNotFoundError):
                    await tracking.recompute_trainee(db, 1, 2, now)
            return result, await _rows(factory)

    result, rows = asyncio.run(scenario())
    assert result.progress.attendance_rate == 80.0
    assert result.progress.missed_sessions == 0
    assert rows[1].attendance_rate == 80.0
    assert rows[1].engagement_score == result.engagement.score


def test_linking_requires_known_trainee_and_program(tmp_path, now):
    async def scenario():
        async with seeded_database(tmp_path / "batch.db", now) as (engine, factory):
            async with factory() as db:
                with pytest.raises(TraineeNotFoundError):
                    await tracking.start_progress(db, 99, 1, now)
                with pytest.raises(ProgramNotFoundError):
                    await tracking.start_progress(db, 1, 99, now)
                await tracking.start_progress(db, 1, 2, now)
            async with factory() as db:
                result = await db.execute(select(TraineeProgress.trainee_id, TraineeProgress.program_id))
                return sorted(result.all())

    pairs = asyncio.run(scenario())
    assert (99, 1) not in pairs
    assert (1, 99) not in pairs
    assert (1, 2) in pairs
    assert len(pairs) == TRAINEES + 1
