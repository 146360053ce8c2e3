from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from activity_engine.domain.state_machine import ActivityState

DUE_SOON_DAYS = 7

CLOSED_STATES: frozenset[ActivityState] = frozenset(
    {
        ActivityState.COMPLETED,
        ActivityState.CANCELLED,
        ActivityState.LEGAL_APPROVED,
    }
)


class DeadlineBucket(StrEnum):
    OVERDUE = "OVERDUE"
    DUE_SOON = "DUE_SOON"
    ON_TRACK = "ON_TRACK"
    CLOSED = "CLOSED"


_BUCKET_RANK: dict[DeadlineBucket, int] = {
    DeadlineBucket.OVERDUE: 0,
    DeadlineBucket.DUE_SOON: 1,
    DeadlineBucket.ON_TRACK: 2,
    DeadlineBucket.CLOSED: 3,
}

# Undated drafts sort after every dated activity in their bucket.
_UNDATED_SORT_DAYS = 10**6


@dataclass(frozen=True)
class DeadlineClassification:
    bucket: DeadlineBucket
    sort_key: tuple[int, int, int]

    @property
    def is_urgent(self) -> bool:
        return self.bucket in {DeadlineBucket.OVERDUE, DeadlineBucket.DUE_SOON}


def today_utc() -> date:
    return datetime.now(UTC).date()


def days_remaining(due_date: date | None, today: date | None = None) -> int | None:
    if due_date is None:
        return None
    reference = today or today_utc()
    return (due_date - reference).days


def is_overdue(state: ActivityState, remaining: int | None) -> bool:
    if state in CLOSED_STATES:
        return False
    if state == ActivityState.OVERDUE:
        return True
    return remaining is not None and remaining < 0


def classify(
    *,
    days_left: int | None,
    overdue: bool,
    state: ActivityState,
    activity_id: int = 0,
) -> DeadlineClassification:
    if state in CLOSED_STATES:
        bucket = DeadlineBucket.CLOSED
    elif overdue:
        bucket = DeadlineBucket.OVERDUE
    elif days_left is not None and days_left <= DUE_SOON_DAYS:
        bucket = DeadlineBucket.DUE_SOON
    else:
        bucket = DeadlineBucket.ON_TRACK
    sort_days = _UNDATED_SORT_DAYS if days_left is None else days_left
    return DeadlineClassification(
        bucket=bucket,
        sort_key=(_BUCKET_RANK[bucket], sort_days, activity_id),
    )


def classify_deadline(activity: Any, today: date | None = None) -> DeadlineClassification:
    """Classify an activity-like object exposing ``state``, ``due_date`` and ``id``."""
    remaining = days_remaining(activity.due_date, today)
    return classify(
        days_left=remaining,
        overdue=is_overdue(activity.state, remaining),
        state=activity.state,
        activity_id=activity.id or 0,
    )


def sort_by_deadline(activities: list[Any], today: date | None = None) -> list[Any]:
    reference = today or today_utc()
    return sorted(activities, key=lambda item: classify_deadline(item, reference).sort_key)
