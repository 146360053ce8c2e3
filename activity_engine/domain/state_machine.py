from __future__ import annotations

from enum import StrEnum


class ActivityState(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PENDING_SUPERVISOR_REVIEW = "PENDING_SUPERVISOR_REVIEW"
    PENDING_LEGAL_REVIEW = "PENDING_LEGAL_REVIEW"
    LEGAL_REJECTED_WITH_NOTES = "LEGAL_REJECTED_WITH_NOTES"
    LEGAL_APPROVED = "LEGAL_APPROVED"
    CANCELLED = "CANCELLED"
    OVERDUE = "OVERDUE"


INITIAL_STATE = ActivityState.PENDING

LOCKED_STATES: frozenset[ActivityState] = frozenset(
    {
        ActivityState.COMPLETED,
        ActivityState.CANCELLED,
        ActivityState.LEGAL_APPROVED,
    }
)

# Transitions a caller may request through the generic transition call.
ALLOWED_TRANSITIONS: dict[ActivityState, set[ActivityState]] = {
    ActivityState.PENDING: {ActivityState.IN_PROGRESS, ActivityState.CANCELLED},
    ActivityState.IN_PROGRESS: {
        ActivityState.COMPLETED,
        ActivityState.CANCELLED,
        ActivityState.PENDING,
    },
    ActivityState.COMPLETED: set(),
    ActivityState.PENDING_SUPERVISOR_REVIEW: set(),
    ActivityState.PENDING_LEGAL_REVIEW: set(),
    ActivityState.LEGAL_REJECTED_WITH_NOTES: {ActivityState.IN_PROGRESS},
    ActivityState.LEGAL_APPROVED: set(),
    ActivityState.CANCELLED: set(),
    ActivityState.OVERDUE: {ActivityState.IN_PROGRESS, ActivityState.CANCELLED},
}

# Performed by the engine itself, never requested by a caller.
SYSTEM_TRANSITIONS: dict[ActivityState, set[ActivityState]] = {
    ActivityState.COMPLETED: {ActivityState.PENDING_SUPERVISOR_REVIEW},
}

# Applied by the scheduled overdue sweep that lives outside the engine.
EXTERNAL_TRANSITIONS: dict[ActivityState, set[ActivityState]] = {
    ActivityState.PENDING: {ActivityState.OVERDUE},
    ActivityState.IN_PROGRESS: {ActivityState.OVERDUE},
}

SUPERVISOR_REVIEW_TRANSITIONS: dict[ActivityState, set[ActivityState]] = {
    ActivityState.PENDING_SUPERVISOR_REVIEW: {
        ActivityState.PENDING_LEGAL_REVIEW,
        ActivityState.IN_PROGRESS,
    },
}

LEGAL_REVIEW_TRANSITIONS: dict[ActivityState, set[ActivityState]] = {
    ActivityState.PENDING_LEGAL_REVIEW: {
        ActivityState.LEGAL_APPROVED,
        ActivityState.LEGAL_REJECTED_WITH_NOTES,
    },
}

REOPEN_TARGETS: dict[ActivityState, ActivityState] = {
    ActivityState.CANCELLED: ActivityState.PENDING,
    ActivityState.COMPLETED: ActivityState.IN_PROGRESS,
    ActivityState.LEGAL_APPROVED: ActivityState.IN_PROGRESS,
}


def can_transition(source: ActivityState, target: ActivityState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())


def can_supervisor_review(source: ActivityState, target: ActivityState) -> bool:
    return target in SUPERVISOR_REVIEW_TRANSITIONS.get(source, set())


def can_legal_review(source: ActivityState, target: ActivityState) -> bool:
    return target in LEGAL_REVIEW_TRANSITIONS.get(source, set())


def is_locked(state: ActivityState) -> bool:
    return state in LOCKED_STATES


def completion_target(requires_legal_review: bool) -> ActivityState:
    """State an activity lands in once ``IN_PROGRESS -> COMPLETED`` is accepted.

    Activities that need legal sign-off are escalated to supervisor review in
    the same write, so they are never persisted as ``COMPLETED``.
    """
    if requires_legal_review:
        return next(iter(SYSTEM_TRANSITIONS[ActivityState.COMPLETED]))
    return ActivityState.COMPLETED


def reopen_target(source: ActivityState) -> ActivityState | None:
    return REOPEN_TARGETS.get(source)


def reachable_states() -> set[ActivityState]:
    """Every state reachable from the initial state through any edge kind."""
    edges: dict[ActivityState, set[ActivityState]] = {}
    for table in (
        ALLOWED_TRANSITIONS,
        SYSTEM_TRANSITIONS,
        EXTERNAL_TRANSITIONS,
        SUPERVISOR_REVIEW_TRANSITIONS,
        LEGAL_REVIEW_TRANSITIONS,
    ):
        for source, targets in table.items():
            edges.setdefault(source, set()).update(targets)
    for source, target in REOPEN_TARGETS.items():
        edges.setdefault(source, set()).add(target)

    seen = {INITIAL_STATE}
    frontier = [INITIAL_STATE]
    while frontier:
        current = frontier.pop()
        for target in edges.get(current, set()):
            if target not in seen:
                seen.add(target)
                frontier.append(target)
    return seen
