from __future__ import annotations

import logging
from collections.abc import Iterable

from activity_engine.domain.roles import Principal, RoleTag

logger = logging.getLogger(__name__)

# Keys are normalized group names as the directory service reports them.
GROUP_ROLE_TAGS: dict[str, RoleTag] = {
    "legal": RoleTag.LEGAL_TEAM,
    "legales": RoleTag.LEGAL_TEAM,
    "equipo legal": RoleTag.LEGAL_TEAM,
    "equipo de legales": RoleTag.LEGAL_TEAM,
    "técnico": RoleTag.TECHNICAL_TEAM,
    "tecnico": RoleTag.TECHNICAL_TEAM,
    "equipo técnico": RoleTag.TECHNICAL_TEAM,
    "equipo tecnico": RoleTag.TECHNICAL_TEAM,
    "residenciales": RoleTag.RESIDENTIAL_TEAM,
    "equipos residenciales": RoleTag.RESIDENTIAL_TEAM,
    "equipo residencial": RoleTag.RESIDENTIAL_TEAM,
    "adultos": RoleTag.INSTITUTION_TEAM,
    "institución": RoleTag.INSTITUTION_TEAM,
    "institucion": RoleTag.INSTITUTION_TEAM,
    "adultos responsables": RoleTag.INSTITUTION_TEAM,
    "adultos institucion": RoleTag.INSTITUTION_TEAM,
    "jefe zonal": RoleTag.ZONAL_SUPERVISOR,
    "jz": RoleTag.ZONAL_SUPERVISOR,
    "director": RoleTag.DIRECTOR,
    "director provincial": RoleTag.DIRECTOR,
    "director interior": RoleTag.DIRECTOR,
    "admin": RoleTag.ADMINISTRATOR,
    "administrador": RoleTag.ADMINISTRATOR,
}


def normalize_group_name(name: str) -> str:
    return " ".join(name.split()).lower()


def _role_for_group(name: str) -> RoleTag | None:
    normalized = normalize_group_name(name)
    mapped = GROUP_ROLE_TAGS.get(normalized)
    if mapped is not None:
        return mapped
    try:
        return RoleTag(normalized.upper().replace(" ", "_"))
    except ValueError:
        return None


def resolve_role_tags(
    group_names: Iterable[str],
    *,
    is_superuser: bool = False,
    is_staff: bool = False,
    legal_flag: bool = False,
) -> frozenset[RoleTag]:
    """Map raw group names onto the closed set of role tags.

    Unknown names are dropped. Superuser and staff accounts are administrators;
    the per-user legal flag grants the legal team tag.
    """
    roles: set[RoleTag] = set()
    for name in group_names:
        if not isinstance(name, str) or not name.strip():
            continue
        role = _role_for_group(name)
        if role is None:
            logger.warning("ignoring unmapped group %r", name)
            continue
        roles.add(role)
    if is_superuser or is_staff:
        roles.add(RoleTag.ADMINISTRATOR)
    if legal_flag:
        roles.add(RoleTag.LEGAL_TEAM)
    return frozenset(roles)


def principal_from_groups(
    user_id: str,
    group_names: Iterable[str],
    *,
    is_superuser: bool = False,
    is_staff: bool = False,
    legal_flag: bool = False,
) -> Principal:
    return Principal(
        user_id=user_id,
        roles=resolve_role_tags(
            group_names,
            is_superuser=is_superuser,
            is_staff=is_staff,
            legal_flag=legal_flag,
        ),
    )
