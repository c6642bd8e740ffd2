# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""JSON codec for schema documents.

Absent optional values are omitted instead of written as ``null`` and empty
collections are omitted, except the top-level ``entities`` and
``embeddables`` arrays. ``primaryKey`` and ``owningSide`` are always written.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from schemair.errors import SchemaFormatError
from schemair.ir import (
    Column,
    Embeddable,
    EmbeddingInfo,
    Entity,
    EnumInfo,
    EnumStorage,
    FetchMode,
    GenerationStrategy,
    RelationKind,
    Relationship,
    SchemaDocument,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _put(payload: dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)) and not value:
        return
    payload[key] = list(value) if isinstance(value, tuple) else value


def column_to_dict(column: Column) -> dict[str, Any]:
    """Serialize one column."""
    payload: dict[str, Any] = {
        "fieldName": column.field_name,
        "columnName": column.column_name,
        "javaType": column.java_type,
        "sqlType": column.sql_type,
        "primaryKey": column.primary_key,
    }
    if column.generation_strategy is not GenerationStrategy.NONE:
        payload["generationStrategy"] = column.generation_strategy.value
    _put(payload, "nullable", column.nullable)
    _put(payload, "unique", column.unique)
    _put(payload, "length", column.length)
    _put(payload, "precision", column.precision)
    _put(payload, "scale", column.scale)
    if column.enum_info is not None:
        payload["isEnum"] = True
        enum_payload: dict[str, Any] = {"storageType": column.enum_info.storage.value}
        _put(enum_payload, "possibleValues", column.enum_info.possible_values)
        payload["enumInfo"] = enum_payload
    if column.embedding is not None:
        payload["isEmbeddedAttribute"] = True
        payload["embeddedFromFieldName"] = column.embedding.owner_field
        payload["originalEmbeddableFieldName"] = column.embedding.source_field
        payload["embeddableClassName"] = column.embedding.embeddable_class
    if column.inherited_from is not None:
        payload["inherited"] = True
        payload["inheritedFromClass"] = column.inherited_from
    return payload


def relationship_to_dict(relationship: Relationship) -> dict[str, Any]:
    """Serialize one relationship."""
    payload: dict[str, Any] = {
        "fieldName": relationship.field_name,
        "type": relationship.kind.value,
        "targetEntityJavaClass": relationship.target_entity,
    }
    _put(payload, "mappedBy", relationship.mapped_by)
    payload["fetchType"] = relationship.fetch.value
    _put(payload, "cascadeTypes", relationship.cascade)
    payload["owningSide"] = relationship.owning_side
    _put(payload, "joinColumnName", relationship.join_column)
    _put(payload, "joinTableName", relationship.join_table)
    _put(payload, "joinTableJoinColumnName", relationship.join_table_join_column)
    _put(
        payload,
        "joinTableInverseJoinColumnName",
        relationship.join_table_inverse_join_column,
    )
    if relationship.inherited_from is not None:
        payload["inherited"] = True
        payload["inheritedFromClass"] = relationship.inherited_from
    return payload


def schema_to_dict(document: SchemaDocument) -> dict[str, Any]:
    """Serialize a schema document into JSON-compatible primitives."""
    entities = []
    for entity in document.entities:
        entity_payload: dict[str, Any] = {
            "javaClassName": entity.class_name,
            "tableName": entity.table_name,
        }
        _put(entity_payload, "mappedSuperclass", entity.mapped_superclass)
        _put(entity_payload, "columns", [column_to_dict(c) for c in entity.columns])
        _put(
            entity_payload,
            "relationships",
            [relationship_to_dict(r) for r in entity.relationships],
        )
        entities.append(entity_payload)
    embeddables = []
    for embeddable in document.embeddables:
        embeddable_payload: dict[str, Any] = {"javaClassName": embeddable.class_name}
        _put(embeddable_payload, "fields", [column_to_dict(c) for c in embeddable.columns])
        embeddables.append(embeddable_payload)
    return {
        "repositoryUrl": document.repository_url,
        "analysisTimestamp": document.analysis_timestamp.astimezone(timezone.utc).strftime(
            TIMESTAMP_FORMAT
        ),
        "entities": entities,
        "embeddables": embeddables,
    }


def dumps(document: SchemaDocument) -> str:
    """Render a schema document as indented JSON text."""
    return json.dumps(schema_to_dict(document), indent=2, ensure_ascii=False)


def _require(payload: dict[str, Any], key: str, expected: type, where: str) -> Any:
    value = payload.get(key)
    if not isinstance(value, expected):
        raise SchemaFormatError(f"{where}: '{key}' must be {expected.__name__}.")
    return value


def _optional(payload: dict[str, Any], key: str, expected: type, where: str) -> Any:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise SchemaFormatError(f"{where}: '{key}' must be {expected.__name__}.")
    return value


def _flag_group(
    payload: dict[str, Any], flag: str, members: tuple[str, ...], where: str
) -> bool:
    """Check that a flag is true iff all of its payload keys are present."""
    flagged = payload.get(flag) is True
    present = [key for key in members if key in payload]
    if flagged and len(present) != len(members):
        raise SchemaFormatError(f"{where}: '{flag}' is set but {members} are incomplete.")
    if not flagged and present:
        raise SchemaFormatError(f"{where}: {present} present without '{flag}'.")
    return flagged


def column_from_dict(payload: dict[str, Any], where: str = "column") -> Column:
    """Deserialize one column.

    Raises:
        SchemaFormatError: If required keys are missing or flag groups disagree.
    """
    if not isinstance(payload, dict):
        raise SchemaFormatError(f"{where}: expected an object.")
    field_name = _require(payload, "fieldName", str, where)
    where = f"{where} {field_name}"
    enum_info = None
    if _flag_group(payload, "isEnum", ("enumInfo",), where):
        raw_enum = _require(payload, "enumInfo", dict, where)
        try:
            storage = EnumStorage(raw_enum.get("storageType"))
        except ValueError as exc:
            raise SchemaFormatError(f"{where}: invalid enum storage type.") from exc
        values = raw_enum.get("possibleValues", [])
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise SchemaFormatError(f"{where}: 'possibleValues' must be a string list.")
        enum_info = EnumInfo(storage=storage, possible_values=tuple(values))
    embedding = None
    if _flag_group(
        payload,
        "isEmbeddedAttribute",
        ("embeddedFromFieldName", "originalEmbeddableFieldName", "embeddableClassName"),
        where,
    ):
        embedding = EmbeddingInfo(
            owner_field=_require(payload, "embeddedFromFieldName", str, where),
            embeddable_class=_require(payload, "embeddableClassName", str, where),
            source_field=_require(payload, "originalEmbeddableFieldName", str, where),
        )
    inherited_from = None
    if _flag_group(payload, "inherited", ("inheritedFromClass",), where):
        inherited_from = _require(payload, "inheritedFromClass", str, where)
    raw_strategy = payload.get("generationStrategy", GenerationStrategy.NONE.value)
    try:
        strategy = GenerationStrategy(raw_strategy)
    except ValueError as exc:
        raise SchemaFormatError(f"{where}: invalid generation strategy.") from exc
    try:
        return Column(
            field_name=field_name,
            column_name=_require(payload, "columnName", str, where),
            java_type=_require(payload, "javaType", str, where),
            sql_type=_require(payload, "sqlType", str, where),
            primary_key=_require(payload, "primaryKey", bool, where),
            generation_strategy=strategy,
            nullable=_optional(payload, "nullable", bool, where),
            unique=_optional(payload, "unique", bool, where),
            length=_optional(payload, "length", int, where),
            precision=_optional(payload, "precision", int, where),
            scale=_optional(payload, "scale", int, where),
            enum_info=enum_info,
            embedding=embedding,
            inherited_from=inherited_from,
        )
    except ValueError as exc:
        if isinstance(exc, SchemaFormatError):
            raise
        raise SchemaFormatError(f"{where}: {exc}") from exc


def relationship_from_dict(payload: dict[str, Any], where: str = "relationship") -> Relationship:
    """Deserialize one relationship.

    Raises:
        SchemaFormatError: If required keys are missing or invariants fail.
    """
    if not isinstance(payload, dict):
        raise SchemaFormatError(f"{where}: expected an object.")
    field_name = _require(payload, "fieldName", str, where)
    where = f"{where} {field_name}"
    inherited_from = None
    if _flag_group(payload, "inherited", ("inheritedFromClass",), where):
        inherited_from = _require(payload, "inheritedFromClass", str, where)
    cascade = payload.get("cascadeTypes", [])
    if not isinstance(cascade, list) or not all(isinstance(c, str) for c in cascade):
        raise SchemaFormatError(f"{where}: 'cascadeTypes' must be a string list.")
    try:
        return Relationship(
            field_name=field_name,
            kind=RelationKind(payload.get("type")),
            target_entity=_require(payload, "targetEntityJavaClass", str, where),
            fetch=FetchMode(payload.get("fetchType")),
            owning_side=_require(payload, "owningSide", bool, where),
            mapped_by=_optional(payload, "mappedBy", str, where),
            cascade=tuple(cascade),
            join_column=_optional(payload, "joinColumnName", str, where),
            join_table=_optional(payload, "joinTableName", str, where),
            join_table_join_column=_optional(payload, "joinTableJoinColumnName", str, where),
            join_table_inverse_join_column=_optional(
                payload, "joinTableInverseJoinColumnName", str, where
            ),
            inherited_from=inherited_from,
        )
    except ValueError as exc:
        if isinstance(exc, SchemaFormatError):
            raise
        raise SchemaFormatError(f"{where}: {exc}") from exc


def schema_from_dict(payload: dict[str, Any]) -> SchemaDocument:
    """Deserialize a schema document.

    Raises:
        SchemaFormatError: If the payload does not describe a valid document.
    """
    if not isinstance(payload, dict):
        raise SchemaFormatError("document: expected an object.")
    raw_timestamp = _require(payload, "analysisTimestamp", str, "document")
    try:
        timestamp = datetime.strptime(raw_timestamp, TIMESTAMP_FORMAT).replace(
            tzinfo=timezone.utc
        )
    except ValueError as exc:
        raise SchemaFormatError(f"document: invalid timestamp {raw_timestamp!r}.") from exc

    entities = []
    for raw_entity in _require(payload, "entities", list, "document"):
        if not isinstance(raw_entity, dict):
            raise SchemaFormatError("entity: expected an object.")
        class_name = _require(raw_entity, "javaClassName", str, "entity")
        where = f"entity {class_name}"
        try:
            entities.append(
                Entity(
                    class_name=class_name,
                    table_name=_require(raw_entity, "tableName", str, where),
                    mapped_superclass=_optional(raw_entity, "mappedSuperclass", str, where),
                    columns=tuple(
                        column_from_dict(c, where) for c in raw_entity.get("columns", [])
                    ),
                    relationships=tuple(
                        relationship_from_dict(r, where)
                        for r in raw_entity.get("relationships", [])
                    ),
                )
            )
        except ValueError as exc:
            if isinstance(exc, SchemaFormatError):
                raise
            raise SchemaFormatError(f"{where}: {exc}") from exc

    embeddables = []
    for raw_embeddable in payload.get("embeddables", []):
        if not isinstance(raw_embeddable, dict):
            raise SchemaFormatError("embeddable: expected an object.")
        class_name = _require(raw_embeddable, "javaClassName", str, "embeddable")
        where = f"embeddable {class_name}"
        try:
            embeddables.append(
                Embeddable(
                    class_name=class_name,
                    columns=tuple(
                        column_from_dict(c, where) for c in raw_embeddable.get("fields", [])
                    ),
                )
            )
        except ValueError as exc:
            if isinstance(exc, SchemaFormatError):
                raise
            raise SchemaFormatError(f"{where}: {exc}") from exc

    try:
        return SchemaDocument(
            repository_url=_require(payload, "repositoryUrl", str, "document"),
            analysis_timestamp=timestamp,
            entities=tuple(entities),
            embeddables=tuple(embeddables),
        )
    except ValueError as exc:
        if isinstance(exc, SchemaFormatError):
            raise
        raise SchemaFormatError(f"document: {exc}") from exc


def loads(text: str) -> SchemaDocument:
    """Parse a schema document from JSON text.

    Raises:
        SchemaFormatError: If the text is not valid JSON or not a valid document.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaFormatError(f"document is not valid JSON: {exc}") from exc
    return schema_from_dict(payload)


def load_schema(path: Path) -> SchemaDocument:
    """Read a schema document from disk.

    Raises:
        OSError: If the file cannot be read.
        SchemaFormatError: If the content is not a valid document.
    """
    logger.info(f"Loading schema document (path={path})")
    return loads(path.read_text(encoding="utf-8"))
