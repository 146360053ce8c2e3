from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class RoleTag(StrEnum):
    TECHNICAL_TEAM = "TECHNICAL_TEAM"
    LEGAL_TEAM = "LEGAL_TEAM"
    RESIDENTIAL_TEAM = "RESIDENTIAL_TEAM"
    INSTITUTION_TEAM = "INSTITUTION_TEAM"
    ZONAL_SUPERVISOR = "ZONAL_SUPERVISOR"
    DIRECTOR = "DIRECTOR"
    ADMINISTRATOR = "ADMINISTRATOR"


class ActorTeam(StrEnum):
    EQUIPO_TECNICO = "EQUIPO_TECNICO"
    EQUIPO_LEGAL = "EQUIPO_LEGAL"
    EQUIPOS_RESIDENCIALES = "EQUIPOS_RESIDENCIALES"
    ADULTOS_INSTITUCION = "ADULTOS_INSTITUCION"


TEAM_ROLE_ACTORS: dict[RoleTag, ActorTeam] = {
    RoleTag.TECHNICAL_TEAM: ActorTeam.EQUIPO_TECNICO,
    RoleTag.LEGAL_TEAM: ActorTeam.EQUIPO_LEGAL,
    RoleTag.RESIDENTIAL_TEAM: ActorTeam.EQUIPOS_RESIDENCIALES,
    RoleTag.INSTITUTION_TEAM: ActorTeam.ADULTOS_INSTITUCION,
}


@dataclass(frozen=True)
class Principal:
    """Caller identity as seen by the engine: a user id and closed role tags."""

    user_id: str
    roles: frozenset[RoleTag] = field(default_factory=frozenset)

    def has_role(self, role: RoleTag) -> bool:
        return role in self.roles

    @property
    def is_supervisor(self) -> bool:
        return RoleTag.ZONAL_SUPERVISOR in self.roles

    @property
    def is_director(self) -> bool:
        return RoleTag.DIRECTOR in self.roles

    @property
    def is_admin(self) -> bool:
        return RoleTag.ADMINISTRATOR in self.roles

    @property
    def is_legal(self) -> bool:
        return RoleTag.LEGAL_TEAM in self.roles
