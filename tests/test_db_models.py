from sqlalchemy import JSON, CheckConstraint
from sqlalchemy.dialects import postgresql, sqlite

from propgraph.db.models import (
    EntityInheritedDisplay,
    EntityLink,
    EntityProperty,
    PropertyDefinition,
)


def _index(table, name: str):
    return next(index for index in table.indexes if index.name == name)


def test_property_definition_table_shape() -> None:
    table = PropertyDefinition.__table__

    assert set(table.columns.keys()) == {
        "id",
        "workspace_id",
        "name",
        "type",
        "options",
        "empty_label",
        "created_at",
        "updated_at",
    }

    unique = _index(table, "ix_property_definitions_workspace_name_unique")
    assert unique.unique is True
    assert [c.name for c in unique.columns] == ["workspace_id", "name"]

    assert table.columns["options"].nullable is False
    assert table.columns["empty_label"].nullable is True


def test_json_columns_are_jsonb_on_postgres_only() -> None:
    options = PropertyDefinition.__table__.columns["options"].type

    assert isinstance(options, JSON)
    assert options.compile(dialect=postgresql.dialect()) == "JSONB"
    assert options.compile(dialect=sqlite.dialect()) == "JSON"


def test_entity_property_table_shape() -> None:
    table = EntityProperty.__table__

    assert set(table.columns.keys()) == {
        "id",
        "entity_type",
        "entity_id",
        "property_definition_id",
        "value",
        "created_at",
        "updated_at",
    }

    unique = _index(table, "ix_entity_properties_entity_property_unique")
    assert unique.unique is True
    assert [c.name for c in unique.columns] == [
        "entity_type",
        "entity_id",
        "property_definition_id",
    ]
    assert table.columns["value"].nullable is True


def test_entity_link_table_shape() -> None:
    table = EntityLink.__table__

    assert set(table.columns.keys()) == {
        "id",
        "source_entity_type",
        "source_entity_id",
        "target_entity_type",
        "target_entity_id",
        "workspace_id",
        "created_at",
    }

    unique = _index(table, "ix_entity_links_unique")
    assert unique.unique is True

    checks = {c.name for c in table.constraints if isinstance(c, CheckConstraint)}
    assert "ck_entity_links_no_self_link" in checks


def test_entity_inherited_display_table_shape() -> None:
    table = EntityInheritedDisplay.__table__

    assert set(table.columns.keys()) == {
        "id",
        "entity_type",
        "entity_id",
        "source_entity_type",
        "source_entity_id",
        "property_definition_id",
        "is_visible",
    }

    unique = _index(table, "ix_entity_inherited_display_unique")
    assert unique.unique is True
    assert len(unique.columns) == 5
