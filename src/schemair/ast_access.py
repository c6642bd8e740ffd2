# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""AST access contract and the typed source view it produces."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Protocol, Union

TypeKind = Literal["class", "enum", "interface", "record", "annotation"]

AnnotationValue = Union[str, bool, int, "AnnotationUsage", tuple["AnnotationValue", ...]]


@dataclass(frozen=True)
class AnnotationUsage:
    """Represent one annotation usage as written in source.

    Attributes:
        name: Simple annotation name (``Column`` for ``@jakarta.persistence.Column``).
        arguments: Argument values keyed by element name; a single unnamed
            argument is stored under ``value``.
    """

    name: str
    arguments: Mapping[str, AnnotationValue] = field(default_factory=dict)


@dataclass(frozen=True)
class FieldDeclaration:
    """Represent one declared field variable.

    Attributes:
        name: Field name.
        declared_type: Declared type text without type arguments (``List``).
        type_arguments: Type argument texts (``("Item",)`` for ``List<Item>``).
        is_collection: Whether the declared type is a collection, map or array.
        modifiers: Keyword modifiers such as ``static`` or ``transient``.
        annotations: Field-level annotation usages in source order.
    """

    name: str
    declared_type: str
    type_arguments: tuple[str, ...] = ()
    is_collection: bool = False
    modifiers: frozenset[str] = frozenset()
    annotations: tuple[AnnotationUsage, ...] = ()

    @property
    def element_type(self) -> str:
        """Return the element type for collections, else the declared type."""
        if self.is_collection and self.type_arguments:
            return self.type_arguments[-1]
        if self.declared_type.endswith("[]"):
            return self.declared_type[:-2]
        return self.declared_type


@dataclass(frozen=True)
class TypeDeclaration:
    """Represent one class-like declaration.

    Attributes:
        name: Simple type name.
        qualified_name: Package-qualified name, nested types joined with ``.``.
        kind: Declaration keyword.
        superclass_name: ``extends`` clause type text, if any.
        annotations: Type-level annotation usages.
        fields: Declared fields in source order.
        enum_constants: Constant names for enum declarations.
        nested: Member type declarations.
    """

    name: str
    qualified_name: str
    kind: TypeKind
    superclass_name: str | None = None
    annotations: tuple[AnnotationUsage, ...] = ()
    fields: tuple[FieldDeclaration, ...] = ()
    enum_constants: tuple[str, ...] = ()
    nested: tuple["TypeDeclaration", ...] = ()

    def walk(self) -> list["TypeDeclaration"]:
        """Return this declaration followed by all nested declarations."""
        declarations = [self]
        for member in self.nested:
            declarations.extend(member.walk())
        return declarations


@dataclass(frozen=True)
class SourceUnit:
    """Represent one parsed source file.

    Attributes:
        path: File path the unit was parsed from.
        package: Declared package, empty for the default package.
        imports: Single-type imports (fully-qualified names).
        wildcard_imports: Packages imported on demand (``a.b`` for ``a.b.*``).
        types: Top-level type declarations.
    """

    path: Path
    package: str
    imports: tuple[str, ...] = ()
    wildcard_imports: tuple[str, ...] = ()
    types: tuple[TypeDeclaration, ...] = ()

    def all_types(self) -> list[TypeDeclaration]:
        """Return every top-level and nested declaration in the unit."""
        declarations: list[TypeDeclaration] = []
        for declaration in self.types:
            declarations.extend(declaration.walk())
        return declarations


class AstAccess(Protocol):
    """Language-specific parser producing typed source views."""

    def parse(self, path: Path) -> SourceUnit:
        """Parse one source file.

        Raises:
            SourceParseError: If the file cannot be read or parsed.
        """
