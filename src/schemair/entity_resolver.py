# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Resolve entity classes into columns and association observations.

Associations are only observed here. Ownership, pairing and join defaults
need every entity of the run and are decided by
:class:`schemair.relationships.RelationshipResolver`.
"""

import logging
from dataclasses import dataclass, replace
from schemair.annotations import (
    AnnotationSet,
    ColumnMarker,
    EmbeddableMarker,
    EmbeddedMarker,
    EntityMarker,
    EnumeratedMarker,
    GeneratedValueMarker,
    IdMarker,
    JoinColumnMarker,
    JoinTableMarker,
    MappedSuperclassMarker,
    RelationMarker,
    TableMarker,
    TransientMarker,
)
from schemair.ast_access import FieldDeclaration, SourceUnit, TypeDeclaration
from schemair.context import ResolutionContext
from schemair.ir import (
    Column,
    Embeddable,
    EmbeddingInfo,
    EnumInfo,
    EnumStorage,
    GenerationStrategy,
    RelationKind,
)
from schemair.naming import guess_sql_type, to_snake_case

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssociationObservation:
    """Represent one association field as declared, before ownership is decided.

    Attributes:
        owner_class: Qualified name of the entity holding the field.
        owner_table: Table name of the owning entity.
        field_name: Field name.
        marker: Cardinality annotation as written.
        is_collection: Whether the field type is multi-valued.
        target_entity: Qualified name of the referenced class.
        join_column: ``@JoinColumn`` on the field, if any.
        join_table: ``@JoinTable`` on the field, if any.
        inherited_from: Declaring mapped superclass, iff inherited.
        order: Declaration order key ``(class position, field position)``.
    """

    owner_class: str
    owner_table: str
    field_name: str
    marker: RelationMarker
    is_collection: bool
    target_entity: str
    join_column: JoinColumnMarker | None = None
    join_table: JoinTableMarker | None = None
    inherited_from: str | None = None
    order: tuple[int, int] = (0, 0)

    @property
    def key(self) -> tuple[str, str]:
        return self.owner_class, self.field_name

    @property
    def owner_simple_name(self) -> str:
        return self.owner_class.rsplit(".", 1)[-1]

    @property
    def claims_ownership(self) -> bool:
        # ManyToOne always holds the foreign key.
        return self.marker.kind is RelationKind.MANY_TO_ONE or self.marker.mapped_by is None


@dataclass(frozen=True)
class ResolvedClass:
    """Represent one entity with resolved columns and raw associations.

    Attributes:
        class_name: Qualified class name.
        table_name: Resolved table name.
        mapped_superclass: Direct mapped superclass, if any.
        columns: Columns, farthest ancestor first.
        associations: Association observations, farthest ancestor first.
        source_path: Root-relative file path the class was read from.
        position: Position of the class in the run's declaration order.
    """

    class_name: str
    table_name: str
    mapped_superclass: str | None
    columns: tuple[Column, ...]
    associations: tuple[AssociationObservation, ...]
    source_path: str
    position: int = 0

    @property
    def simple_name(self) -> str:
        return self.class_name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class _Layer:
    """Members declared directly on one class of an inheritance chain."""

    declaring_class: str
    parent: str | None
    columns: tuple[Column, ...]
    associations: tuple[AssociationObservation, ...]


def _is_skipped(field: FieldDeclaration, annotations: AnnotationSet) -> bool:
    if "static" in field.modifiers or "transient" in field.modifiers:
        return True
    return annotations.has(TransientMarker)


def _member_key(member: Column | AssociationObservation) -> str:
    """Return the source field a member came from."""
    if isinstance(member, Column) and member.embedding is not None:
        return member.embedding.owner_field
    return member.field_name


def _override_key(column: Column) -> str:
    if column.embedding is not None:
        return f"{column.embedding.owner_field}.{column.embedding.source_field}"
    return column.field_name


def primary_type(unit: SourceUnit) -> TypeDeclaration | None:
    """Pick the declaration a source file is about.

    The top-level type named after the file wins; otherwise the first
    top-level class, then the first top-level declaration of any kind.
    """
    for declaration in unit.types:
        if declaration.name == unit.path.stem:
            return declaration
    for declaration in unit.types:
        if declaration.kind == "class":
            return declaration
    return unit.types[0] if unit.types else None


class EntityResolver:
    """Turn candidate files into :class:`ResolvedClass` records."""

    def __init__(self, context: ResolutionContext) -> None:
        self._context = context

    def resolve(self, relative_path: str, position: int = 0) -> ResolvedClass | None:
        """Resolve the entity declared in one candidate file.

        Args:
            relative_path: Root-relative POSIX path of the candidate.
            position: Declaration order of the candidate within the run.

        Returns:
            Resolved entity, or ``None`` when the file does not declare one.
            The reason is recorded as a diagnostic.
        """
        unit = self._context.unit_for(self._context.root_path / relative_path)
        if unit is None:
            return None
        declaration = primary_type(unit)
        if declaration is None:
            self._context.report(
                subject=relative_path,
                code="no_type_declaration",
                message="Candidate file declares no type",
            )
            return None
        annotations = AnnotationSet.of(declaration.annotations)
        if not annotations.has(EntityMarker):
            self._context.report(
                subject=relative_path,
                code="not_an_entity",
                message=f"Candidate type {declaration.qualified_name} is not annotated @Entity",
            )
            return None

        class_name = declaration.qualified_name
        table = annotations.find(TableMarker)
        table_name = table.name if table is not None and table.name else to_snake_case(declaration.name)
        mapped_superclass = self._mapped_superclass_of(declaration, unit)
        layers = self._superclass_chain(mapped_superclass, subject=class_name)
        own_columns, own_associations = self._own_members(declaration, unit, owner_class=class_name)
        layers.append(
            _Layer(
                declaring_class=class_name,
                parent=mapped_superclass,
                columns=tuple(own_columns),
                associations=tuple(own_associations),
            )
        )

        columns, associations = self._merge_layers(
            layers,
            class_name=class_name,
            table_name=table_name,
            position=position,
            entity_annotations=annotations,
        )
        columns = self._check_primary_key(class_name, columns)
        logger.debug(
            f"Entity resolved (class_name={class_name} table_name={table_name} "
            f"columns={len(columns)} associations={len(associations)})"
        )
        return ResolvedClass(
            class_name=class_name,
            table_name=table_name,
            mapped_superclass=mapped_superclass,
            columns=tuple(columns),
            associations=tuple(associations),
            source_path=relative_path,
            position=position,
        )

    def resolve_embeddable(self, qualified_name: str, subject: str) -> Embeddable | None:
        """Resolve a value type once per run.

        Args:
            qualified_name: Qualified value type name.
            subject: ``Class.field`` that referenced it, for diagnostics.

        Returns:
            Resolved value type, or ``None`` when it is unknown or not
            annotated ``@Embeddable``.
        """
        cache = self._context.embeddables
        if qualified_name in cache:
            return cache[qualified_name]
        found = self._context.lookup(qualified_name)
        if found is None:
            self._context.report(
                subject=subject,
                code="unknown_embeddable",
                message=f"Embedded type {qualified_name} is not declared in the project",
            )
            cache[qualified_name] = None
            return None
        unit, declaration = found
        if not AnnotationSet.of(declaration.annotations).has(EmbeddableMarker):
            self._context.report(
                subject=subject,
                code="not_embeddable",
                message=f"Embedded type {qualified_name} is not annotated @Embeddable",
            )
            cache[qualified_name] = None
            return None

        columns: list[Column] = []
        for field in declaration.fields:
            annotations = AnnotationSet.of(field.annotations)
            if _is_skipped(field, annotations):
                continue
            field_subject = f"{qualified_name}.{field.name}"
            if annotations.has(RelationMarker) or annotations.has(EmbeddedMarker):
                self._context.report(
                    subject=field_subject,
                    code="unsupported_embeddable_member",
                    message="Associations and nested value types inside embeddables are skipped",
                )
                continue
            columns.append(
                self._basic_column(field, annotations, unit, subject=field_subject, allow_key=False)
            )
        embeddable = Embeddable(class_name=qualified_name, columns=tuple(columns))
        cache[qualified_name] = embeddable
        return embeddable

    def _mapped_superclass_of(self, declaration: TypeDeclaration, unit: SourceUnit) -> str | None:
        if not declaration.superclass_name:
            return None
        qualified = self._context.qualify(declaration.superclass_name, unit)
        found = self._context.lookup(qualified)
        if found is None:
            logger.debug(
                f"Superclass is outside the project (class_name={declaration.qualified_name} "
                f"superclass={qualified})"
            )
            return None
        if not AnnotationSet.of(found[1].annotations).has(MappedSuperclassMarker):
            return None
        return qualified

    def _superclass_chain(self, start: str | None, subject: str) -> list[_Layer]:
        """Collect mapped superclass layers, farthest ancestor first."""
        layers: list[_Layer] = []
        seen = {subject}
        current = start
        while current is not None:
            if current in seen:
                self._context.report(
                    subject=subject,
                    code="inheritance_cycle",
                    message=f"Mapped superclass chain revisits {current}",
                )
                break
            seen.add(current)
            layer = self._superclass_layer(current)
            if layer is None:
                break
            layers.append(layer)
            current = layer.parent
        layers.reverse()
        return layers

    def _superclass_layer(self, qualified_name: str) -> _Layer | None:
        cache = self._context.superclass_layers
        if qualified_name in cache:
            return cache[qualified_name]
        found = self._context.lookup(qualified_name)
        if found is None:
            cache[qualified_name] = None
            return None
        unit, declaration = found
        columns, associations = self._own_members(declaration, unit, owner_class=qualified_name)
        layer = _Layer(
            declaring_class=qualified_name,
            parent=self._mapped_superclass_of(declaration, unit),
            columns=tuple(columns),
            associations=tuple(associations),
        )
        cache[qualified_name] = layer
        return layer

    def _own_members(
        self,
        declaration: TypeDeclaration,
        unit: SourceUnit,
        owner_class: str,
    ) -> tuple[list[Column], list[AssociationObservation]]:
        columns: list[Column] = []
        associations: list[AssociationObservation] = []
        for index, field in enumerate(declaration.fields):
            annotations = AnnotationSet.of(field.annotations)
            if _is_skipped(field, annotations):
                continue
            subject = f"{owner_class}.{field.name}"
            relation = annotations.find(RelationMarker)
            if relation is not None:
                associations.append(
                    self._association(field, annotations, relation, unit, owner_class, index)
                )
                continue
            embedded = annotations.find(EmbeddedMarker)
            type_name = self._context.qualify(field.declared_type, unit)
            found = self._context.lookup(type_name)
            if embedded is not None or (
                found is not None and AnnotationSet.of(found[1].annotations).has(EmbeddableMarker)
            ):
                columns.extend(self._embedded_columns(field, annotations, embedded, type_name, subject))
                continue
            columns.append(self._basic_column(field, annotations, unit, subject=subject))
        return columns, associations

    def _basic_column(
        self,
        field: FieldDeclaration,
        annotations: AnnotationSet,
        unit: SourceUnit,
        subject: str,
        allow_key: bool = True,
    ) -> Column:
        marker = annotations.find(ColumnMarker) or ColumnMarker()
        type_name = self._context.qualify(field.declared_type, unit)
        found = self._context.lookup(type_name)
        java_type = field.declared_type
        if found is not None and not field.declared_type.endswith("[]"):
            java_type = type_name
        if field.type_arguments:
            java_type = f"{java_type}<{', '.join(field.type_arguments)}>"
        sql_type = guess_sql_type(java_type)

        enum_info = None
        enumerated = annotations.find(EnumeratedMarker)
        enum_declaration = found[1] if found is not None and found[1].kind == "enum" else None
        if enumerated is not None or enum_declaration is not None:
            storage = enumerated.storage if enumerated is not None else EnumStorage.ORDINAL
            values = enum_declaration.enum_constants if enum_declaration is not None else ()
            if enum_declaration is None:
                logger.debug(f"Enum constants unavailable for external type (subject={subject})")
            enum_info = EnumInfo(storage=storage, possible_values=values)
            sql_type = "VARCHAR" if storage is EnumStorage.STRING else "INTEGER"

        primary_key = allow_key and annotations.has(IdMarker)
        strategy = GenerationStrategy.NONE
        nullable = marker.nullable
        unique = marker.unique
        generated = annotations.find(GeneratedValueMarker)
        if primary_key:
            strategy = generated.strategy if generated is not None else GenerationStrategy.ASSIGNED
            nullable = False if nullable is None else nullable
            unique = True if unique is None else unique
        elif generated is not None:
            self._context.report(
                subject=subject,
                code="generated_value_without_id",
                message="@GeneratedValue on a non-key field is ignored",
            )

        return Column(
            field_name=field.name,
            column_name=marker.name or to_snake_case(field.name),
            java_type=java_type,
            sql_type=sql_type,
            primary_key=primary_key,
            generation_strategy=strategy,
            nullable=nullable,
            unique=unique,
            length=marker.length,
            precision=marker.precision,
            scale=marker.scale,
            enum_info=enum_info,
        )

    def _embedded_columns(
        self,
        field: FieldDeclaration,
        annotations: AnnotationSet,
        embedded: EmbeddedMarker | None,
        type_name: str,
        subject: str,
    ) -> list[Column]:
        embeddable = self.resolve_embeddable(type_name, subject=subject)
        if embeddable is None:
            return []
        is_id = embedded is not None and embedded.is_id
        overrides = annotations.overrides()
        prefix = to_snake_case(field.name)
        columns: list[Column] = []
        for column in embeddable.columns:
            override = overrides.lookup(column.field_name)
            column_name = f"{prefix}_{column.column_name}"
            nullable = column.nullable
            if override is not None:
                column_name = override.column_name or column_name
                if override.nullable is not None:
                    nullable = override.nullable
            columns.append(
                replace(
                    column,
                    column_name=column_name,
                    primary_key=is_id,
                    generation_strategy=GenerationStrategy.ASSIGNED if is_id else GenerationStrategy.NONE,
                    nullable=False if is_id else nullable,
                    embedding=EmbeddingInfo(
                        owner_field=field.name,
                        embeddable_class=embeddable.class_name,
                        source_field=column.field_name,
                    ),
                )
            )
        return columns

    def _association(
        self,
        field: FieldDeclaration,
        annotations: AnnotationSet,
        marker: RelationMarker,
        unit: SourceUnit,
        owner_class: str,
        index: int,
    ) -> AssociationObservation:
        written = marker.target_entity or (
            field.element_type if field.is_collection else field.declared_type
        )
        target = self._context.qualify(written, unit)
        if marker.kind.is_to_many != field.is_collection:
            self._context.report(
                subject=f"{owner_class}.{field.name}",
                code="multiplicity_mismatch",
                message=(
                    f"{marker.kind.value} field type {field.declared_type} "
                    f"{'is not' if marker.kind.is_to_many else 'is'} a collection"
                ),
            )
        return AssociationObservation(
            owner_class=owner_class,
            owner_table="",
            field_name=field.name,
            marker=marker,
            is_collection=field.is_collection,
            target_entity=target,
            join_column=annotations.find(JoinColumnMarker),
            join_table=annotations.find(JoinTableMarker),
            order=(0, index),
        )

    def _merge_layers(
        self,
        layers: list[_Layer],
        class_name: str,
        table_name: str,
        position: int,
        entity_annotations: AnnotationSet,
    ) -> tuple[list[Column], list[AssociationObservation]]:
        """Flatten inheritance layers; the closest declaration of a field wins."""
        winners: dict[str, int] = {}
        for depth in reversed(range(len(layers))):
            layer = layers[depth]
            for member in (*layer.columns, *layer.associations):
                winners.setdefault(_member_key(member), depth)

        overrides = entity_annotations.overrides()
        own_depth = len(layers) - 1
        columns: list[Column] = []
        associations: list[AssociationObservation] = []
        for depth, layer in enumerate(layers):
            inherited_from = layer.declaring_class if depth != own_depth else None
            for column in layer.columns:
                if winners[_member_key(column)] != depth:
                    logger.debug(
                        f"Field hidden by a closer declaration (class_name={class_name} "
                        f"field={column.field_name} declared_in={layer.declaring_class})"
                    )
                    continue
                if inherited_from is not None:
                    column = replace(column, inherited_from=inherited_from)
                    override = overrides.lookup(_override_key(column))
                    if override is not None:
                        column = replace(
                            column,
                            column_name=override.column_name or column.column_name,
                            nullable=(
                                override.nullable if override.nullable is not None else column.nullable
                            ),
                        )
                columns.append(column)
            for association in layer.associations:
                if winners[_member_key(association)] != depth:
                    continue
                associations.append(
                    replace(
                        association,
                        owner_class=class_name,
                        owner_table=table_name,
                        inherited_from=inherited_from,
                        order=(position, len(associations)),
                    )
                )
        return columns, associations

    def _check_primary_key(self, class_name: str, columns: list[Column]) -> list[Column]:
        keys = [column for column in columns if column.primary_key]
        if not keys:
            self._context.report(
                subject=class_name,
                code="missing_primary_key",
                message="Entity declares no primary key",
            )
            return columns
        kept = _member_key(keys[-1])
        if all(_member_key(column) == kept for column in keys):
            return columns
        self._context.report(
            subject=class_name,
            code="multiple_primary_keys",
            message=f"Entity declares several primary keys; keeping {kept}",
        )
        return [
            replace(column, primary_key=False, generation_strategy=GenerationStrategy.NONE)
            if column.primary_key and _member_key(column) != kept
            else column
            for column in columns
        ]
