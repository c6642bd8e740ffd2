# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Schema IR value types.

Records are immutable and validate their invariants on construction, so a
record that exists is a valid one.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class GenerationStrategy(str, Enum):
    """Primary key generation strategy."""

    IDENTITY = "IDENTITY"
    SEQUENCE = "SEQUENCE"
    AUTO = "AUTO"
    TABLE = "TABLE"
    UUID = "UUID"
    ASSIGNED = "ASSIGNED"
    NONE = "NONE"


class EnumStorage(str, Enum):
    """Enumeration storage mode."""

    ORDINAL = "ORDINAL"
    STRING = "STRING"


class FetchMode(str, Enum):
    """Association fetch mode."""

    EAGER = "EAGER"
    LAZY = "LAZY"


class RelationKind(str, Enum):
    """Association cardinality."""

    ONE_TO_ONE = "OneToOne"
    ONE_TO_MANY = "OneToMany"
    MANY_TO_ONE = "ManyToOne"
    MANY_TO_MANY = "ManyToMany"

    @property
    def is_to_many(self) -> bool:
        return self in (RelationKind.ONE_TO_MANY, RelationKind.MANY_TO_MANY)

    @property
    def counterpart(self) -> "RelationKind":
        """Return the kind expected on the other end of the association."""
        return _COUNTERPARTS[self]


_COUNTERPARTS: dict[RelationKind, RelationKind] = {
    RelationKind.ONE_TO_ONE: RelationKind.ONE_TO_ONE,
    RelationKind.ONE_TO_MANY: RelationKind.MANY_TO_ONE,
    RelationKind.MANY_TO_ONE: RelationKind.ONE_TO_MANY,
    RelationKind.MANY_TO_MANY: RelationKind.MANY_TO_MANY,
}


@dataclass(frozen=True)
class EnumInfo:
    """Describe how an enumeration column is stored.

    Attributes:
        storage: Ordinal or textual storage.
        possible_values: Declared enum constants, in declaration order.
    """

    storage: EnumStorage
    possible_values: tuple[str, ...] = ()


@dataclass(frozen=True)
class EmbeddingInfo:
    """Describe the embedded value object a column was flattened from.

    Attributes:
        owner_field: Field on the owning class holding the value object.
        embeddable_class: Fully-qualified value type name.
        source_field: Field name inside the value type.
    """

    owner_field: str
    embeddable_class: str
    source_field: str


@dataclass(frozen=True)
class Column:
    """Represent one persisted scalar attribute.

    Attributes:
        field_name: Source field name.
        column_name: Resolved column name.
        java_type: Source type name.
        sql_type: Best-effort storage type.
        primary_key: Whether the column is (part of) the primary key.
        generation_strategy: Key generation strategy; ``NONE`` for non-keys.
        nullable: Declared nullability, ``None`` when unset.
        unique: Declared uniqueness, ``None`` when unset.
        length: Declared length.
        precision: Declared numeric precision.
        scale: Declared numeric scale.
        enum_info: Present iff the column stores an enumeration.
        embedding: Present iff the column comes from an embedded value object.
        inherited_from: Declaring mapped superclass, iff the column is inherited.
    """

    field_name: str
    column_name: str
    java_type: str
    sql_type: str
    primary_key: bool = False
    generation_strategy: GenerationStrategy = GenerationStrategy.NONE
    nullable: bool | None = None
    unique: bool | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    enum_info: EnumInfo | None = None
    embedding: EmbeddingInfo | None = None
    inherited_from: str | None = None

    def __post_init__(self) -> None:
        if not self.field_name:
            raise ValueError("Column field_name must not be empty.")
        if not self.column_name:
            raise ValueError(f"Column {self.field_name!r} has an empty column_name.")
        if self.generation_strategy is not GenerationStrategy.NONE and not self.primary_key:
            raise ValueError(
                f"Column {self.field_name!r} declares a generation strategy "
                "but is not a primary key."
            )
        if self.inherited_from == "":
            raise ValueError(f"Column {self.field_name!r} has an empty inherited_from.")

    @property
    def is_enum(self) -> bool:
        return self.enum_info is not None

    @property
    def is_embedded(self) -> bool:
        return self.embedding is not None

    @property
    def inherited(self) -> bool:
        return self.inherited_from is not None


@dataclass(frozen=True)
class Relationship:
    """Represent one association from an entity to another entity.

    Attributes:
        field_name: Source field name.
        kind: Association cardinality.
        target_entity: Fully-qualified target entity name.
        mapped_by: Owning-side field name; set iff this is the inverse side.
        fetch: Fetch mode.
        cascade: Cascaded operation names.
        owning_side: Whether this side declares the physical join.
        join_column: Foreign key column for owning single-valued joins.
        join_table: Join table name.
        join_table_join_column: Join table column referencing the owner.
        join_table_inverse_join_column: Join table column referencing the target.
        inherited_from: Declaring mapped superclass, iff inherited.
    """

    field_name: str
    kind: RelationKind
    target_entity: str
    fetch: FetchMode
    owning_side: bool
    mapped_by: str | None = None
    cascade: tuple[str, ...] = ()
    join_column: str | None = None
    join_table: str | None = None
    join_table_join_column: str | None = None
    join_table_inverse_join_column: str | None = None
    inherited_from: str | None = None

    def __post_init__(self) -> None:
        if not self.field_name:
            raise ValueError("Relationship field_name must not be empty.")
        if not self.target_entity:
            raise ValueError(f"Relationship {self.field_name!r} has no target entity.")
        if not self.owning_side and not self.mapped_by:
            raise ValueError(
                f"Inverse relationship {self.field_name!r} must name its owning field."
            )
        if self.owning_side and self.mapped_by:
            raise ValueError(
                f"Owning relationship {self.field_name!r} must not carry mapped_by."
            )
        if self.join_table is None and (
            self.join_table_join_column or self.join_table_inverse_join_column
        ):
            raise ValueError(
                f"Relationship {self.field_name!r} names join table columns "
                "without a join table."
            )

    @property
    def inherited(self) -> bool:
        return self.inherited_from is not None


@dataclass(frozen=True)
class Entity:
    """Represent one persistent class.

    Attributes:
        class_name: Fully-qualified class name.
        table_name: Resolved table name.
        mapped_superclass: Direct mapped superclass, if any.
        columns: Columns, inherited ones first.
        relationships: Associations, inherited ones first.
    """

    class_name: str
    table_name: str
    mapped_superclass: str | None = None
    columns: tuple[Column, ...] = ()
    relationships: tuple[Relationship, ...] = ()

    def __post_init__(self) -> None:
        if not self.class_name:
            raise ValueError("Entity class_name must not be empty.")
        if not self.table_name:
            raise ValueError(f"Entity {self.class_name!r} has an empty table_name.")
        keys = [column for column in self.columns if column.primary_key]
        if len(keys) > 1:
            owners = {column.embedding.owner_field if column.embedding else None for column in keys}
            # Composite keys are only expressible through one embedded id.
            if len(owners) != 1 or None in owners:
                raise ValueError(
                    f"Entity {self.class_name!r} declares more than one primary key column."
                )

    @property
    def primary_key_columns(self) -> tuple[Column, ...]:
        return tuple(column for column in self.columns if column.primary_key)


@dataclass(frozen=True)
class Embeddable:
    """Represent one composite value type.

    Attributes:
        class_name: Fully-qualified class name.
        columns: The value type's own columns.
    """

    class_name: str
    columns: tuple[Column, ...] = ()

    def __post_init__(self) -> None:
        if not self.class_name:
            raise ValueError("Embeddable class_name must not be empty.")
        for column in self.columns:
            if column.is_embedded or column.inherited:
                raise ValueError(
                    f"Embeddable {self.class_name!r} column {column.field_name!r} "
                    "must not carry embedding or inheritance metadata."
                )


@dataclass(frozen=True)
class SchemaDocument:
    """Represent the root schema artifact of one analysis run.

    Attributes:
        repository_url: Originating repository identifier.
        analysis_timestamp: Generation time (UTC, whole seconds).
        entities: Entities in declaration order.
        embeddables: Embeddable value types sorted by class name.
    """

    repository_url: str
    analysis_timestamp: datetime
    entities: tuple[Entity, ...] = ()
    embeddables: tuple[Embeddable, ...] = ()

    def __post_init__(self) -> None:
        if self.analysis_timestamp.utcoffset() is None:
            raise ValueError("SchemaDocument analysis_timestamp must be timezone-aware.")
        # Stored as UTC whole seconds, the precision of the serialized form.
        object.__setattr__(
            self,
            "analysis_timestamp",
            self.analysis_timestamp.astimezone(timezone.utc).replace(microsecond=0),
        )
        names = [entity.class_name for entity in self.entities]
        if len(names) != len(set(names)):
            raise ValueError("SchemaDocument contains duplicate entity class names.")

    def entity(self, class_name: str) -> Entity | None:
        for entity in self.entities:
            if entity.class_name == class_name:
                return entity
        return None
