from datetime import datetime
from typing import Dict

from retention.schemas.progress import ProgressSnapshot, ItemProgress
from retention.utils.helpers import clamp


def recompute_completion(progress: ProgressSnapshot, now: datetime) -> float:
    """
    Share of tracked modules and chapters that are completed, in percent.

    No tracked entries gives 0.00. The first time the share reaches 100,
    `completed_at` is stamped; an existing stamp is never moved or cleared.
    """
    entries = list(progress.module_progress.values()) + list(progress.chapter_progress.values())
    if not entries:
        progress.completion_percentage = 0.0
        return progress.completion_percentage

    completed = sum(1 for entry in entries if entry.completed)
    percentage = completed / len(entries) * 100
    progress.completion_percentage = round(percentage, 2)

    if percentage >= 100 and progress.completed_at is None:
        progress.completed_at = now
    return progress.completion_percentage


def _set_item(items: Dict[str, ItemProgress], item_id, percentage: float, now: datetime) -> ItemProgress:
    percentage = clamp(percentage)
    previous = items.get(str(item_id))
    completed = percentage >= 100
    if completed:
        completed_at = previous.completed_at if previous and previous.completed_at else now
    else:
        completed_at = None
    entry = ItemProgress(
        completed=completed,
        percentage=percentage,
        completed_at=completed_at,
        last_updated=now,
    )
    items[str(item_id)] = entry
    return entry


def update_module_progress(progress: ProgressSnapshot, module_id, percentage: float, now: datetime) -> float:
    _set_item(progress.module_progress, module_id, percentage, now)
    return recompute_completion(progress, now)


def update_chapter_progress(progress: ProgressSnapshot, chapter_id, percentage: float, now: datetime) -> float:
    _set_item(progress.chapter_progress, chapter_id, percentage, now)
    return recompute_completion(progress, now)


def complete_module(progress: ProgressSnapshot, module_id, now: datetime) -> float:
    return update_module_progress(progress, module_id, 100, now)


def complete_chapter(progress: ProgressSnapshot, chapter_id, now: datetime) -> float:
    return update_chapter_progress(progress, chapter_id, 100, now)


def record_activity(progress: ProgressSnapshot, now: datetime) -> None:
    """A login: refreshes recency and counts towards login frequency."""
    progress.last_activity = now
    progress.login_count += 1
    _refresh_average_session(progress)


def add_time_spent(progress: ProgressSnapshot, minutes: int) -> None:
    progress.total_time_spent += max(0, minutes)
    _refresh_average_session(progress)


def _refresh_average_session(progress: ProgressSnapshot) -> None:
    if progress.login_count > 0:
        progress.average_session_duration = round(progress.total_time_spent / progress.login_count, 2)


def completion_label(progress: ProgressSnapshot) -> str:
    if progress.completed_at is not None:
        return "completed"
    percentage = progress.completion_percentage
    if percentage == 0:
        return "not_started"
    elif percentage < 25:
        return "beginner"
    elif percentage < 50:
        return "in_progress"
    elif percentage < 75:
        return "advanced"
    else:
        return "almost_done"
