from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from activity_engine.domain.roles import Principal
from activity_engine.domain.state_machine import ActivityState, is_locked


@dataclass(frozen=True)
class CapabilitySet:
    can_edit: bool = False
    can_reopen: bool = False
    can_transfer: bool = False
    can_approve: bool = False
    can_supervise: bool = False
    is_locked: bool = False
    is_responsible: bool = False


def authorize(principal: Principal | None, activity: Any) -> CapabilitySet:
    """Derive what ``principal`` may do on ``activity`` in its current state.

    Pure: depends only on the role tags, the activity state and its principal
    responsible. Callers must call it again after every state change.
    """
    if principal is None or activity is None:
        return CapabilitySet()

    state = ActivityState(activity.state)
    locked = is_locked(state)
    responsible = (
        activity.responsible_principal is not None
        and activity.responsible_principal == principal.user_id
    )
    supervisor = principal.is_supervisor
    director = principal.is_director
    admin = principal.is_admin

    return CapabilitySet(
        can_edit=not locked and (responsible or supervisor or director or admin),
        can_reopen=locked and (supervisor or director or admin),
        can_transfer=not locked and (supervisor or director),
        can_approve=principal.is_legal and state == ActivityState.PENDING_LEGAL_REVIEW,
        can_supervise=state == ActivityState.PENDING_SUPERVISOR_REVIEW and (supervisor or director or admin),
        is_locked=locked,
        is_responsible=responsible,
    )
