from datetime import datetime
from typing import List, Optional

from retention.core.policy import ScoringPolicy, DEFAULT_POLICY
from retention.schemas.progress import (
    ProgressSnapshot,
    MissionProgress,
    SkillRecord,
    RiskFactor,
    RiskSeverity,
    AlternanceStatus,
    AlternanceAssessment,
)
from retention.utils.helpers import clamp


def company_completion_rate(progress: ProgressSnapshot) -> float:
    """Mean mission completion; 0.00 while no mission is assigned."""
    missions = list(progress.mission_progress.values())
    if not missions:
        return 0.0
    return round(sum(m.completion_rate for m in missions) / len(missions), 2)


def skills_acquisition_rate(progress: ProgressSnapshot, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    skills = list(progress.skills_acquired.values())
    if not skills:
        return 0.0
    mastered = sum(1 for skill in skills if skill.level >= policy.SKILL_MASTERY_LEVEL)
    return mastered / len(skills) * 100


def alternance_risk_factors(
    center_rate: float,
    company_rate: float,
    skills_count: int,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> List[RiskFactor]:
    factors: List[RiskFactor] = []
    if center_rate < policy.CENTER_RATE_FLOOR:
        factors.append(RiskFactor(
            factor="center_delay",
            severity=RiskSeverity.HIGH,
            description="Training-center progress below {:.0f}%".format(policy.CENTER_RATE_FLOOR),
        ))
    if company_rate < policy.COMPANY_RATE_FLOOR:
        factors.append(RiskFactor(
            factor="company_delay",
            severity=RiskSeverity.HIGH,
            description="Company mission progress below {:.0f}%".format(policy.COMPANY_RATE_FLOOR),
        ))
    if abs(center_rate - company_rate) > policy.IMBALANCE_POINTS:
        factors.append(RiskFactor(
            factor="center_company_imbalance",
            severity=RiskSeverity.MEDIUM,
            description="Large gap between center and company progress",
        ))
    if skills_count < policy.MIN_SKILLS:
        factors.append(RiskFactor(
            factor="few_skills_acquired",
            severity=RiskSeverity.MEDIUM,
            description="Fewer than {} skills recorded".format(policy.MIN_SKILLS),
        ))
    return factors


def severity_weight(severity: RiskSeverity, policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    return {
        RiskSeverity.HIGH: policy.SEVERITY_HIGH,
        RiskSeverity.MEDIUM: policy.SEVERITY_MEDIUM,
        RiskSeverity.LOW: policy.SEVERITY_LOW,
    }[severity]


def alternance_status(overall_rate: float, risk_score: int, policy: ScoringPolicy = DEFAULT_POLICY) -> AlternanceStatus:
    # first match wins
    if overall_rate >= policy.COMPLETED_RATE:
        return AlternanceStatus.COMPLETED
    elif risk_score >= policy.AT_RISK_SCORE:
        return AlternanceStatus.AT_RISK
    elif risk_score >= policy.NEEDS_SUPPORT_SCORE:
        return AlternanceStatus.NEEDS_SUPPORT
    elif overall_rate < policy.PAUSED_RATE:
        return AlternanceStatus.PAUSED
    return AlternanceStatus.ACTIVE


def assess_alternance(
    progress: ProgressSnapshot,
    base_risk_score: Optional[float] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AlternanceAssessment:
    """
    Blend center and company progress into the work-study view.

    The center rate mirrors overall completion. Severity weights of the
    detected factors are added on top of the base risk score, and the
    status is derived from that blended score.
    """
    if base_risk_score is None:
        base_risk_score = progress.risk_score
    center_rate = progress.completion_percentage
    company_rate = company_completion_rate(progress)
    overall_rate = (center_rate + company_rate) / 2

    factors = alternance_risk_factors(center_rate, company_rate, len(progress.skills_acquired), policy)
    risk_score = int(clamp(base_risk_score + sum(severity_weight(f.severity, policy) for f in factors)))

    return AlternanceAssessment(
        center_completion_rate=center_rate,
        company_completion_rate=company_rate,
        overall_rate=round(overall_rate, 2),
        risk_factors=factors,
        alternance_risk_score=risk_score,
        alternance_status=alternance_status(overall_rate, risk_score, policy),
        skills_acquisition_rate=skills_acquisition_rate(progress, policy),
        alternance_engagement=calculate_alternance_engagement(progress, policy),
    )


def apply_alternance(progress: ProgressSnapshot, assessment: AlternanceAssessment) -> None:
    progress.center_completion_rate = assessment.center_completion_rate
    progress.company_completion_rate = assessment.company_completion_rate
    progress.alternance_risk_score = assessment.alternance_risk_score
    # terminated is set by contract management and sticks
    if progress.alternance_status != AlternanceStatus.TERMINATED:
        progress.alternance_status = assessment.alternance_status


def add_mission_progress(
    progress: ProgressSnapshot,
    mission_id,
    title: str,
    completion_rate: float,
    now: datetime,
    status: Optional[str] = None,
) -> MissionProgress:
    mission = MissionProgress(
        title=title,
        completion_rate=completion_rate,
        status=status or "in_progress",
        last_updated=now,
    )
    progress.mission_progress[str(mission_id)] = mission
    return mission


def add_acquired_skill(
    progress: ProgressSnapshot,
    skill_code: str,
    name: str,
    level: float,
    now: datetime,
    context: Optional[str] = None,
) -> SkillRecord:
    skill = SkillRecord(name=name, level=level, context=context or "general", acquired_at=now)
    progress.skills_acquired[skill_code] = skill
    return skill


def calculate_alternance_engagement(progress: ProgressSnapshot, policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    """Half base engagement, 30% mission completion, 20% skill mastery."""
    score = int(progress.engagement_score * 0.5)
    if progress.mission_progress:
        score += int(company_completion_rate(progress) / 100 * 30)
    if progress.skills_acquired:
        score += int(skills_acquisition_rate(progress, policy) / 100 * 20)
    return int(clamp(score))
