"""Properties and linking core tables.

Revision ID: 0001_properties_and_links
Revises:
Create Date: 2026-10-19

Creates property_definitions, entity_properties, entity_links and
entity_inherited_display. The workspaces table is owned elsewhere and must
already exist.
"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel.sql.sqltypes
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "0001_properties_and_links"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the core tables."""
    # property_definitions - workspace-scoped property schema
    op.create_table(
        "property_definitions",
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("options", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("empty_label", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_property_definitions_workspace_id",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_property_definitions_workspace_id", "property_definitions", ["workspace_id"]
    )
    op.create_index(
        "ix_property_definitions_workspace_name_unique",
        "property_definitions",
        ["workspace_id", "name"],
        unique=True,
    )

    # entity_properties - one value per (entity, definition)
    op.create_table(
        "entity_properties",
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("property_definition_id", sa.Uuid(), nullable=False),
        sa.Column("value", JSONB, nullable=True),
        sa.ForeignKeyConstraint(
            ["property_definition_id"],
            ["property_definitions.id"],
            name="fk_entity_properties_property_definition_id",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_entity_properties_property_definition_id",
        "entity_properties",
        ["property_definition_id"],
    )
    op.create_index(
        "ix_entity_properties_entity_property_unique",
        "entity_properties",
        ["entity_type", "entity_id", "property_definition_id"],
        unique=True,
    )
    op.create_index("ix_entity_properties_entity", "entity_properties", ["entity_type", "entity_id"])

    # entity_links - directed mentions between entities
    op.create_table(
        "entity_links",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_entity_type", sa.String(length=32), nullable=False),
        sa.Column("source_entity_id", sa.Uuid(), nullable=False),
        sa.Column("target_entity_type", sa.String(length=32), nullable=False),
        sa.Column("target_entity_id", sa.Uuid(), nullable=False),
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "NOT (source_entity_type = target_entity_type "
            "AND source_entity_id = target_entity_id)",
            name="ck_entity_links_no_self_link",
        ),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_entity_links_workspace_id",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entity_links_workspace_id", "entity_links", ["workspace_id"])
    op.create_index(
        "ix_entity_links_unique",
        "entity_links",
        ["source_entity_type", "source_entity_id", "target_entity_type", "target_entity_id"],
        unique=True,
    )
    op.create_index(
        "ix_entity_links_source", "entity_links", ["source_entity_type", "source_entity_id"]
    )
    op.create_index(
        "ix_entity_links_target", "entity_links", ["target_entity_type", "target_entity_id"]
    )

    # entity_inherited_display - show/hide inherited properties per target
    op.create_table(
        "entity_inherited_display",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("source_entity_type", sa.String(length=32), nullable=False),
        sa.Column("source_entity_id", sa.Uuid(), nullable=False),
        sa.Column("property_definition_id", sa.Uuid(), nullable=False),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(
            ["property_definition_id"],
            ["property_definitions.id"],
            name="fk_entity_inherited_display_property_definition_id",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_entity_inherited_display_property_definition_id",
        "entity_inherited_display",
        ["property_definition_id"],
    )
    op.create_index(
        "ix_entity_inherited_display_unique",
        "entity_inherited_display",
        [
            "entity_type",
            "entity_id",
            "source_entity_type",
            "source_entity_id",
            "property_definition_id",
        ],
        unique=True,
    )


def downgrade() -> None:
    """Drop the core tables in reverse order."""
    op.drop_table("entity_inherited_display")
    op.drop_table("entity_links")
    op.drop_table("entity_properties")
    op.drop_table("property_definitions")
