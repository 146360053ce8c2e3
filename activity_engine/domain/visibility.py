from __future__ import annotations

from dataclasses import dataclass

from activity_engine.domain.roles import TEAM_ROLE_ACTORS, ActorTeam, Principal, RoleTag

ALL_ACTORS: tuple[ActorTeam, ...] = tuple(ActorTeam)

_SEE_ALL_ROLES = frozenset({RoleTag.ZONAL_SUPERVISOR, RoleTag.DIRECTOR, RoleTag.ADMINISTRATOR})


@dataclass(frozen=True)
class ActorVisibility:
    allowed_actors: tuple[ActorTeam, ...] = ()
    can_see_all: bool = False
    primary_actor: ActorTeam | None = None
    # Filter to push into list queries; None means "no filter".
    actor_filter: ActorTeam | None = None

    def is_actor_allowed(self, actor: ActorTeam | str) -> bool:
        if self.can_see_all:
            return True
        return ActorTeam(actor) in self.allowed_actors


def resolve_visibility(principal: Principal | None) -> ActorVisibility:
    if principal is None:
        return ActorVisibility()
    if principal.roles & _SEE_ALL_ROLES:
        return ActorVisibility(allowed_actors=ALL_ACTORS, can_see_all=True)

    allowed = tuple(
        actor
        for role, actor in TEAM_ROLE_ACTORS.items()
        if role in principal.roles
    )
    if not allowed:
        return ActorVisibility()
    return ActorVisibility(
        allowed_actors=allowed,
        primary_actor=allowed[0],
        actor_filter=allowed[0] if len(allowed) == 1 else None,
    )
