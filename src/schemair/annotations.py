# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Typed persistence annotation variants.

Raw :class:`~schemair.ast_access.AnnotationUsage` values are converted once
into one of the closed variants below. Each variant carries only the
arguments the resolvers read, already coerced to their Python types.
Annotations outside the persistence vocabulary become :class:`Unrecognized`
so callers can still inspect them.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Union

from schemair.ast_access import AnnotationUsage, AnnotationValue
from schemair.ir import EnumStorage, FetchMode, GenerationStrategy, RelationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityMarker:
    name: str | None = None


@dataclass(frozen=True)
class TableMarker:
    name: str | None = None


@dataclass(frozen=True)
class MappedSuperclassMarker:
    pass


@dataclass(frozen=True)
class EmbeddableMarker:
    pass


@dataclass(frozen=True)
class IdMarker:
    pass


@dataclass(frozen=True)
class GeneratedValueMarker:
    strategy: GenerationStrategy = GenerationStrategy.AUTO


@dataclass(frozen=True)
class ColumnMarker:
    name: str | None = None
    nullable: bool | None = None
    unique: bool | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None


@dataclass(frozen=True)
class TransientMarker:
    pass


@dataclass(frozen=True)
class EmbeddedMarker:
    is_id: bool = False


@dataclass(frozen=True)
class EnumeratedMarker:
    storage: EnumStorage = EnumStorage.ORDINAL


@dataclass(frozen=True)
class RelationMarker:
    """Represent ``@OneToOne``, ``@OneToMany``, ``@ManyToOne`` or ``@ManyToMany``."""

    kind: RelationKind
    mapped_by: str | None = None
    fetch: FetchMode | None = None
    cascade: tuple[str, ...] = ()
    target_entity: str | None = None


@dataclass(frozen=True)
class JoinColumnMarker:
    name: str | None = None


@dataclass(frozen=True)
class JoinTableMarker:
    name: str | None = None
    join_column: str | None = None
    inverse_join_column: str | None = None


@dataclass(frozen=True)
class AttributeOverride:
    field_name: str
    column_name: str | None = None
    nullable: bool | None = None


@dataclass(frozen=True)
class AttributeOverridesMarker:
    overrides: tuple[AttributeOverride, ...] = ()

    def lookup(self, field_name: str) -> AttributeOverride | None:
        for override in self.overrides:
            if override.field_name == field_name:
                return override
        return None


@dataclass(frozen=True)
class Unrecognized:
    name: str
    arguments: Mapping[str, AnnotationValue]


Annotation = Union[
    EntityMarker,
    TableMarker,
    MappedSuperclassMarker,
    EmbeddableMarker,
    IdMarker,
    GeneratedValueMarker,
    ColumnMarker,
    TransientMarker,
    EmbeddedMarker,
    EnumeratedMarker,
    RelationMarker,
    JoinColumnMarker,
    JoinTableMarker,
    AttributeOverridesMarker,
    Unrecognized,
]

_RELATION_KINDS: dict[str, RelationKind] = {
    "OneToOne": RelationKind.ONE_TO_ONE,
    "OneToMany": RelationKind.ONE_TO_MANY,
    "ManyToOne": RelationKind.MANY_TO_ONE,
    "ManyToMany": RelationKind.MANY_TO_MANY,
}


def constant_name(value: AnnotationValue | None) -> str | None:
    """Strip the qualifier from an enum constant reference.

    ``GenerationType.IDENTITY`` and ``IDENTITY`` both yield ``IDENTITY``.
    """
    if value is None or not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    return text.rsplit(".", 1)[-1]


def _string(value: AnnotationValue | None) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _boolean(value: AnnotationValue | None) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _integer(value: AnnotationValue | None) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _values(value: AnnotationValue | None) -> tuple[AnnotationValue, ...]:
    if value is None:
        return ()
    if isinstance(value, tuple):
        return value
    return (value,)


def _first_annotation(value: AnnotationValue | None, name: str) -> AnnotationUsage | None:
    for item in _values(value):
        if isinstance(item, AnnotationUsage) and item.name == name:
            return item
    return None


def _attribute_override(usage: AnnotationUsage) -> AttributeOverride | None:
    field_name = _string(usage.arguments.get("name"))
    if field_name is None:
        return None
    column = _first_annotation(usage.arguments.get("column"), "Column")
    if column is None:
        return AttributeOverride(field_name=field_name)
    return AttributeOverride(
        field_name=field_name,
        column_name=_string(column.arguments.get("name")),
        nullable=_boolean(column.arguments.get("nullable")),
    )


def classify(usage: AnnotationUsage) -> Annotation:
    """Convert one raw annotation usage into its typed variant.

    Args:
        usage: Annotation as reported by the AST access layer.

    Returns:
        Typed annotation variant, or :class:`Unrecognized`.
    """
    args = usage.arguments
    name = usage.name
    if name == "Entity":
        return EntityMarker(name=_string(args.get("name")))
    if name == "Table":
        return TableMarker(name=_string(args.get("name")))
    if name == "MappedSuperclass":
        return MappedSuperclassMarker()
    if name == "Embeddable":
        return EmbeddableMarker()
    if name == "Id":
        return IdMarker()
    if name == "GeneratedValue":
        raw = constant_name(args.get("strategy"))
        try:
            strategy = GenerationStrategy(raw) if raw else GenerationStrategy.AUTO
        except ValueError:
            logger.warning(f"Unknown generation strategy; using AUTO (strategy={raw})")
            strategy = GenerationStrategy.AUTO
        return GeneratedValueMarker(strategy=strategy)
    if name == "Column":
        return ColumnMarker(
            name=_string(args.get("name")),
            nullable=_boolean(args.get("nullable")),
            unique=_boolean(args.get("unique")),
            length=_integer(args.get("length")),
            precision=_integer(args.get("precision")),
            scale=_integer(args.get("scale")),
        )
    if name == "Transient":
        return TransientMarker()
    if name in ("Embedded", "EmbeddedId"):
        return EmbeddedMarker(is_id=name == "EmbeddedId")
    if name == "Enumerated":
        raw = constant_name(args.get("value"))
        storage = EnumStorage.STRING if raw == "STRING" else EnumStorage.ORDINAL
        return EnumeratedMarker(storage=storage)
    if name in _RELATION_KINDS:
        raw_fetch = constant_name(args.get("fetch"))
        fetch = FetchMode(raw_fetch) if raw_fetch in ("EAGER", "LAZY") else None
        cascade = tuple(
            constant
            for constant in (constant_name(item) for item in _values(args.get("cascade")))
            if constant
        )
        return RelationMarker(
            kind=_RELATION_KINDS[name],
            mapped_by=_string(args.get("mappedBy")),
            fetch=fetch,
            cascade=cascade,
            target_entity=_string(args.get("targetEntity")),
        )
    if name == "JoinColumn":
        return JoinColumnMarker(name=_string(args.get("name")))
    if name == "JoinTable":
        join_column = _first_annotation(args.get("joinColumns"), "JoinColumn")
        inverse = _first_annotation(args.get("inverseJoinColumns"), "JoinColumn")
        return JoinTableMarker(
            name=_string(args.get("name")),
            join_column=_string(join_column.arguments.get("name")) if join_column else None,
            inverse_join_column=_string(inverse.arguments.get("name")) if inverse else None,
        )
    if name == "AttributeOverride":
        override = _attribute_override(usage)
        return AttributeOverridesMarker(overrides=(override,) if override else ())
    if name == "AttributeOverrides":
        overrides = []
        for item in _values(args.get("value")):
            if isinstance(item, AnnotationUsage) and item.name == "AttributeOverride":
                override = _attribute_override(item)
                if override is not None:
                    overrides.append(override)
        return AttributeOverridesMarker(overrides=tuple(overrides))
    return Unrecognized(name=name, arguments=args)


@dataclass(frozen=True)
class AnnotationSet:
    """Typed view of all annotations on one declaration."""

    items: tuple[Annotation, ...]

    @classmethod
    def of(cls, usages: Iterable[AnnotationUsage]) -> "AnnotationSet":
        return cls(items=tuple(classify(usage) for usage in usages))

    def find(self, variant: type) -> Annotation | None:
        for item in self.items:
            if isinstance(item, variant):
                return item
        return None

    def has(self, variant: type) -> bool:
        return self.find(variant) is not None

    def overrides(self) -> AttributeOverridesMarker:
        """Merge every ``@AttributeOverride`` on the declaration."""
        merged: list[AttributeOverride] = []
        for item in self.items:
            if isinstance(item, AttributeOverridesMarker):
                merged.extend(item.overrides)
        return AttributeOverridesMarker(overrides=tuple(merged))
