from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint, func
from retention.database import Base

class TraineeProgress(Base):
    __tablename__ = "trainee_progress"

    id = Column(Integer, primary_key=True, index=True)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False)

    completion_percentage = Column(Float, nullable=False, default=0.0)
    module_progress = Column(JSON, nullable=False, default=dict)   # module id -> item progress
    chapter_progress = Column(JSON, nullable=False, default=dict)  # chapter id -> item progress
    last_activity = Column(DateTime(timezone=True), nullable=False)

    engagement_score = Column(Integer, nullable=False, default=0)
    difficulty_signals = Column(JSON, nullable=False, default=list)
    at_risk_of_dropout = Column(Boolean, nullable=False, default=False, index=True)
    risk_score = Column(Float, nullable=False, default=0.0)
    last_risk_assessment = Column(DateTime(timezone=True), nullable=True)

    total_time_spent = Column(Integer, nullable=False, default=0)  # minutes
    login_count = Column(Integer, nullable=False, default=0)
    average_session_duration = Column(Float, nullable=True)
    attendance_rate = Column(Float, nullable=False, default=100.0)
    missed_sessions = Column(Integer, nullable=False, default=0)

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Work-study extension
    alternance_contract_id = Column(Integer, nullable=True)
    center_completion_rate = Column(Float, nullable=True)
    company_completion_rate = Column(Float, nullable=True)
    mission_progress = Column(JSON, nullable=False, default=dict)
    skills_acquired = Column(JSON, nullable=False, default=dict)
    alternance_status = Column(String(50), nullable=True)
    alternance_risk_score = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("trainee_id", "program_id", name="uq_trainee_program"),
    )
