from datetime import datetime
from typing import Iterable, Optional

from retention.core.policy import ScoringPolicy, DEFAULT_POLICY
from retention.schemas.attendance import (
    AttendanceFact,
    AttendanceStatus,
    AttendanceLocation,
    LocationAttendanceRates,
    AttendanceStatistics,
)
from retention.utils.helpers import clamp, whole_minutes


def attendance_weight(fact: AttendanceFact, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Contribution of one session to the attendance rate (0–1)."""
    if fact.status == AttendanceStatus.PRESENT:
        return policy.WEIGHT_PRESENT
    if fact.status == AttendanceStatus.LATE:
        return policy.WEIGHT_LATE
    if fact.status == AttendanceStatus.PARTIAL:
        return policy.WEIGHT_PARTIAL
    if fact.excused:
        return policy.WEIGHT_ABSENT_EXCUSED
    return policy.WEIGHT_ABSENT_UNEXCUSED


def is_attended(fact: AttendanceFact) -> bool:
    return fact.status != AttendanceStatus.ABSENT


def participation_percentage(fact: AttendanceFact) -> float:
    return fact.participation_score / 10 * 100


def record_arrival(
    fact: AttendanceFact,
    arrival: datetime,
    session_start: Optional[datetime],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AttendanceStatus:
    """
    Store the arrival time and derive lateness from the session start.

    A `present` record turns `late` once lateness exceeds the grace period.
    Without a known session start, `minutes_late` stays unset.
    """
    fact.arrival_time = arrival
    if session_start is None:
        fact.minutes_late = None
        return fact.status

    fact.minutes_late = max(0, whole_minutes(arrival, session_start))
    if fact.minutes_late > policy.LATENESS_GRACE_MINUTES and fact.status == AttendanceStatus.PRESENT:
        fact.status = AttendanceStatus.LATE
    return fact.status


def record_departure(
    fact: AttendanceFact,
    departure: datetime,
    session_end: Optional[datetime],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AttendanceStatus:
    """Departure counterpart of `record_arrival`; early leavers become `partial`."""
    fact.departure_time = departure
    if session_end is None:
        fact.minutes_early_departure = None
        return fact.status

    fact.minutes_early_departure = max(0, whole_minutes(session_end, departure))
    if (
        fact.minutes_early_departure > policy.EARLY_DEPARTURE_GRACE_MINUTES
        and fact.status == AttendanceStatus.PRESENT
    ):
        fact.status = AttendanceStatus.PARTIAL
    return fact.status


def mark_present(fact: AttendanceFact) -> AttendanceStatus:
    fact.status = AttendanceStatus.PRESENT
    fact.arrival_time = None
    fact.departure_time = None
    fact.minutes_late = None
    fact.minutes_early_departure = None
    fact.absence_reason = None
    return fact.status


def mark_absent(fact: AttendanceFact, reason: Optional[str] = None, excused: bool = False) -> AttendanceStatus:
    fact.status = AttendanceStatus.ABSENT
    fact.absence_reason = reason
    fact.excused = excused
    fact.participation_score = 0
    fact.arrival_time = None
    fact.departure_time = None
    fact.minutes_late = None
    fact.minutes_early_departure = None
    return fact.status


def mark_late(
    fact: AttendanceFact,
    arrival: datetime,
    session_start: Optional[datetime],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AttendanceStatus:
    fact.status = AttendanceStatus.LATE
    fact.absence_reason = None
    fact.departure_time = None
    fact.minutes_early_departure = None
    return record_arrival(fact, arrival, session_start, policy)


def mark_partial(
    fact: AttendanceFact,
    departure: Optional[datetime] = None,
    session_end: Optional[datetime] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AttendanceStatus:
    fact.status = AttendanceStatus.PARTIAL
    fact.absence_reason = None
    if departure is not None:
        record_departure(fact, departure, session_end, policy)
    return fact.status


def calculate_attendance_rate(facts: Iterable[AttendanceFact], policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Weighted attendance as a percentage; 100.00 until a session is recorded."""
    weights = [attendance_weight(fact, policy) for fact in facts]
    if not weights:
        return 100.0
    return round(clamp(sum(weights) / len(weights) * 100), 2)


def count_missed_sessions(facts: Iterable[AttendanceFact]) -> int:
    return sum(1 for fact in facts if fact.status == AttendanceStatus.ABSENT)


def attendance_rate_by_location(
    facts: Iterable[AttendanceFact], policy: ScoringPolicy = DEFAULT_POLICY
) -> LocationAttendanceRates:
    """Work-study split: a side with no recorded sessions has no rate."""
    facts = list(facts)
    rates = {}
    for location in AttendanceLocation:
        located = [fact for fact in facts if fact.location == location]
        rates[location.value] = calculate_attendance_rate(located, policy) if located else None
    return LocationAttendanceRates(**rates)


def attendance_statistics(
    facts: Iterable[AttendanceFact], policy: ScoringPolicy = DEFAULT_POLICY
) -> AttendanceStatistics:
    facts = list(facts)
    by_status = {status.value: 0 for status in AttendanceStatus}
    for fact in facts:
        by_status[fact.status.value] += 1

    attended = [fact for fact in facts if is_attended(fact)]
    average_participation = None
    if attended:
        average_participation = round(sum(f.participation_score for f in attended) / len(attended), 2)

    return AttendanceStatistics(
        total_records=len(facts),
        by_status=by_status,
        attendance_rate=calculate_attendance_rate(facts, policy),
        missed_sessions=count_missed_sessions(facts),
        average_participation=average_participation,
        by_location=attendance_rate_by_location(facts, policy),
    )
