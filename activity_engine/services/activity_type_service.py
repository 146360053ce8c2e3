from __future__ import annotations

import logging

from sqlmodel import Session

from activity_engine.domain.context import CallContext
from activity_engine.domain.errors import UnauthorizedError
from activity_engine.domain.models import ActivityType, ActivityTypeCreate
from activity_engine.domain.roles import ActorTeam, Principal
from activity_engine.infra.db import open_session
from activity_engine.infra.gateway import SqlActivityGateway
from activity_engine.services.activity_service import CALL_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Catalog shipped with the initial schema; the review and evidence flags of
# every activity are copied from its type when the activity is created.
DEFAULT_ACTIVITY_TYPES: tuple[ActivityTypeCreate, ...] = (
    ActivityTypeCreate(
        code="VISITA_DOMICILIARIA",
        name="Visita domiciliaria",
        actor=ActorTeam.EQUIPO_TECNICO,
        sort_order=10,
    ),
    ActivityTypeCreate(
        code="ENTREVISTA_FAMILIAR",
        name="Entrevista familiar",
        actor=ActorTeam.EQUIPO_TECNICO,
        sort_order=20,
    ),
    ActivityTypeCreate(
        code="INFORME_SEGUIMIENTO",
        name="Informe de seguimiento",
        actor=ActorTeam.EQUIPO_TECNICO,
        requires_legal_review=True,
        sort_order=30,
    ),
    ActivityTypeCreate(
        code="ACTA_COMPROMISO",
        name="Firma de acta de compromiso",
        actor=ActorTeam.EQUIPO_TECNICO,
        requires_evidence=True,
        sort_order=40,
    ),
    ActivityTypeCreate(
        code="INFORME_JURIDICO",
        name="Informe jurídico",
        actor=ActorTeam.EQUIPO_LEGAL,
        requires_legal_review=True,
        sort_order=10,
    ),
    ActivityTypeCreate(
        code="PRESENTACION_JUDICIAL",
        name="Presentación judicial",
        actor=ActorTeam.EQUIPO_LEGAL,
        requires_legal_review=True,
        requires_evidence=True,
        sort_order=20,
    ),
    ActivityTypeCreate(
        code="VISITA_RESIDENCIA",
        name="Visita a residencia",
        actor=ActorTeam.EQUIPOS_RESIDENCIALES,
        sort_order=10,
    ),
    ActivityTypeCreate(
        code="SEGUIMIENTO_INSTITUCIONAL",
        name="Seguimiento institucional",
        actor=ActorTeam.ADULTOS_INSTITUCION,
        sort_order=10,
    ),
)


class ActivityTypeService:
    def _session(self) -> Session:
        return open_session()

    @staticmethod
    def _context(ctx: CallContext | None) -> CallContext:
        return ctx if ctx is not None else CallContext.with_timeout(CALL_TIMEOUT_SECONDS)

    def list_types(
        self,
        *,
        actor: ActorTeam | None = None,
        include_inactive: bool = False,
        ctx: CallContext | None = None,
    ) -> list[ActivityType]:
        ctx = self._context(ctx)
        with self._session() as session:
            return SqlActivityGateway(session).list_activity_types(
                ctx,
                actor=actor,
                include_inactive=include_inactive,
            )

    def get_type(self, code: str, *, ctx: CallContext | None = None) -> ActivityType:
        ctx = self._context(ctx)
        with self._session() as session:
            return SqlActivityGateway(session).load_activity_type(code.strip().upper(), ctx)

    def save_type(
        self,
        principal: Principal,
        payload: ActivityTypeCreate,
        *,
        ctx: CallContext | None = None,
    ) -> ActivityType:
        """Create or replace a catalog entry. Existing activities keep their flags."""
        if not principal.is_admin:
            raise UnauthorizedError("only administrators may manage activity types")
        ctx = self._context(ctx)
        row = ActivityType(**payload.model_dump(exclude={"code"}), code=payload.code.strip().upper())
        with self._session() as session:
            saved = SqlActivityGateway(session).save_activity_type(row, ctx)
            session.commit()
            session.refresh(saved)
        logger.info("activity type %s saved by %s", saved.code, principal.user_id)
        return saved

    def seed_defaults(self, *, ctx: CallContext | None = None) -> int:
        ctx = self._context(ctx)
        inserted = 0
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            existing = {row.code for row in gateway.list_activity_types(ctx, include_inactive=True)}
            for payload in DEFAULT_ACTIVITY_TYPES:
                if payload.code in existing:
                    continue
                gateway.save_activity_type(ActivityType(**payload.model_dump()), ctx)
                inserted += 1
            session.commit()
        if inserted:
            logger.info("seeded %s default activity types", inserted)
        return inserted
