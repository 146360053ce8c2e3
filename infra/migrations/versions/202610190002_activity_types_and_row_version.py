"""activity type catalog and activity row version

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19
"""

from __future__ import annotations

from datetime import UTC, datetime

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190002"
down_revision = "202610190001"
branch_labels = None
depends_on = None

# code, name, actor, requires_legal_review, requires_evidence, sort_order
_DEFAULT_TYPES = (
    ("VISITA_DOMICILIARIA", "Visita domiciliaria", "EQUIPO_TECNICO", False, False, 10),
    ("ENTREVISTA_FAMILIAR", "Entrevista familiar", "EQUIPO_TECNICO", False, False, 20),
    ("INFORME_SEGUIMIENTO", "Informe de seguimiento", "EQUIPO_TECNICO", True, False, 30),
    ("ACTA_COMPROMISO", "Firma de acta de compromiso", "EQUIPO_TECNICO", False, True, 40),
    ("INFORME_JURIDICO", "Informe jurídico", "EQUIPO_LEGAL", True, False, 10),
    ("PRESENTACION_JUDICIAL", "Presentación judicial", "EQUIPO_LEGAL", True, True, 20),
    ("VISITA_RESIDENCIA", "Visita a residencia", "EQUIPOS_RESIDENCIALES", False, False, 10),
    ("SEGUIMIENTO_INSTITUCIONAL", "Seguimiento institucional", "ADULTOS_INSTITUCION", False, False, 10),
)


def upgrade() -> None:
    activity_types = op.create_table(
        "activity_types",
        sa.Column("code", sa.String(length=60), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("actor", sa.String(length=30), nullable=False),
        sa.Column("requires_legal_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_evidence", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("code"),
    )
    op.create_index("ix_activity_types_actor", "activity_types", ["actor"])
    op.create_index("ix_activity_types_active", "activity_types", ["active"])

    now = datetime.now(UTC)
    op.bulk_insert(
        activity_types,
        [
            {
                "code": code,
                "name": name,
                "actor": actor,
                "requires_legal_review": legal,
                "requires_evidence": evidence,
                "active": True,
                "sort_order": order,
                "created_at": now,
            }
            for code, name, actor, legal, evidence, order in _DEFAULT_TYPES
        ],
    )

    op.add_column(
        "activities",
        sa.Column("requires_evidence", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column(
        "activities",
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_foreign_key(
        "fk_activities_activity_type",
        "activities",
        "activity_types",
        ["activity_type"],
        ["code"],
    )


def downgrade() -> None:
    op.drop_constraint("fk_activities_activity_type", "activities", type_="foreignkey")
    op.drop_column("activities", "version")
    op.drop_column("activities", "requires_evidence")
    op.drop_index("ix_activity_types_active", table_name="activity_types")
    op.drop_index("ix_activity_types_actor", table_name="activity_types")
    op.drop_table("activity_types")
