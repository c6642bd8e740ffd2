# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Java AST access backed by tree-sitter."""

import logging
import threading
from pathlib import Path
from typing import Any

from tree_sitter_language_pack import get_parser

from schemair.ast_access import (
    AnnotationUsage,
    AnnotationValue,
    FieldDeclaration,
    SourceUnit,
    TypeDeclaration,
    TypeKind,
)
from schemair.errors import SourceParseError

logger = logging.getLogger(__name__)

COLLECTION_TYPE_NAMES: frozenset[str] = frozenset(
    {
        "Collection",
        "Iterable",
        "List",
        "ArrayList",
        "LinkedList",
        "Set",
        "HashSet",
        "LinkedHashSet",
        "SortedSet",
        "NavigableSet",
        "TreeSet",
        "Queue",
        "Deque",
        "Map",
        "HashMap",
        "LinkedHashMap",
        "SortedMap",
        "TreeMap",
    }
)

_DECLARATION_KINDS: dict[str, TypeKind] = {
    "class_declaration": "class",
    "enum_declaration": "enum",
    "interface_declaration": "interface",
    "record_declaration": "record",
    "annotation_type_declaration": "annotation",
}

_MODIFIER_KEYWORDS: frozenset[str] = frozenset(
    {"public", "protected", "private", "abstract", "static", "final", "transient", "volatile"}
)


def _text(node: Any) -> str:
    """Extract text from a tree-sitter node."""
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="ignore")


def _simple_name(qualified: str) -> str:
    return qualified.rsplit(".", 1)[-1]


def _find_child_by_type(node: Any, child_type: str) -> Any | None:
    """Find first child of given type."""
    for child in node.children:
        if child.type == child_type:
            return child
    return None


def _name_child(node: Any) -> Any | None:
    """Find the qualified or simple name child of a declaration."""
    scoped = _find_child_by_type(node, "scoped_identifier")
    if scoped is not None:
        return scoped
    return _find_child_by_type(node, "identifier")


class JavaAstAccess:
    """Parse Java sources into :class:`SourceUnit` views."""

    def __init__(self) -> None:
        self._local = threading.local()

    def parse(self, path: Path) -> SourceUnit:
        """Parse one Java file.

        Args:
            path: Java source file.

        Returns:
            Typed view of the file's package, imports and declarations.

        Raises:
            SourceParseError: If the file cannot be read or contains syntax errors.
        """
        try:
            source = path.read_bytes()
        except OSError as exc:
            logger.warning(f"Skipping unreadable source file (path={path} error={exc})")
            raise SourceParseError(str(exc)) from exc
        return self.parse_bytes(source, path=path)

    def parse_bytes(self, source: bytes, path: Path) -> SourceUnit:
        """Parse Java source already loaded in memory.

        Raises:
            SourceParseError: If the source contains syntax errors.
        """
        tree = self._parser().parse(source)
        root = tree.root_node
        if root.has_error:
            logger.warning(f"Java source contains syntax errors (path={path})")
            raise SourceParseError(f"syntax error in {path}")

        package = ""
        imports: list[str] = []
        wildcard_imports: list[str] = []
        types: list[TypeDeclaration] = []
        for child in root.named_children:
            if child.type == "package_declaration":
                name_node = _name_child(child)
                package = _text(name_node)
            elif child.type == "import_declaration":
                if _find_child_by_type(child, "static") is not None:
                    continue
                name_node = _name_child(child)
                if _find_child_by_type(child, "asterisk") is not None:
                    wildcard_imports.append(_text(name_node))
                else:
                    imports.append(_text(name_node))
            elif child.type in _DECLARATION_KINDS:
                types.append(self._declaration(child, prefix=package))
        return SourceUnit(
            path=path,
            package=package,
            imports=tuple(imports),
            wildcard_imports=tuple(wildcard_imports),
            types=tuple(types),
        )

    def _parser(self) -> Any:
        # tree-sitter parsers are not safe to share between threads.
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = get_parser("java")
            self._local.parser = parser
        return parser

    def _declaration(self, node: Any, prefix: str) -> TypeDeclaration:
        name = _text(node.child_by_field_name("name"))
        qualified_name = f"{prefix}.{name}" if prefix else name
        kind = _DECLARATION_KINDS[node.type]
        superclass_node = node.child_by_field_name("superclass")
        superclass_name = None
        if superclass_node is not None and superclass_node.named_children:
            superclass_name = self._type_parts(superclass_node.named_children[0])[0]

        annotations, _ = self._modifiers(node)
        body = node.child_by_field_name("body")
        fields: list[FieldDeclaration] = []
        enum_constants: list[str] = []
        nested: list[TypeDeclaration] = []
        if body is not None:
            members = list(body.named_children)
            if body.type == "enum_body":
                for member in body.named_children:
                    if member.type == "enum_constant":
                        enum_constants.append(_text(member.child_by_field_name("name")))
                    elif member.type == "enum_body_declarations":
                        members.extend(member.named_children)
            for member in members:
                if member.type == "field_declaration":
                    fields.extend(self._fields(member))
                elif member.type in _DECLARATION_KINDS:
                    nested.append(self._declaration(member, prefix=qualified_name))
        return TypeDeclaration(
            name=name,
            qualified_name=qualified_name,
            kind=kind,
            superclass_name=superclass_name,
            annotations=tuple(annotations),
            fields=tuple(fields),
            enum_constants=tuple(enum_constants),
            nested=tuple(nested),
        )

    def _modifiers(self, node: Any) -> tuple[list[AnnotationUsage], frozenset[str]]:
        modifiers_node = _find_child_by_type(node, "modifiers")
        if modifiers_node is None:
            return [], frozenset()
        annotations: list[AnnotationUsage] = []
        keywords: set[str] = set()
        for child in modifiers_node.children:
            if child.type in ("annotation", "marker_annotation"):
                annotations.append(self._annotation(child))
            elif child.type in _MODIFIER_KEYWORDS:
                keywords.add(child.type)
        return annotations, frozenset(keywords)

    def _fields(self, node: Any) -> list[FieldDeclaration]:
        annotations, modifiers = self._modifiers(node)
        declared_type, type_arguments, is_array = self._type_parts(
            node.child_by_field_name("type")
        )
        is_collection = is_array or _simple_name(declared_type) in COLLECTION_TYPE_NAMES
        if is_array:
            declared_type = f"{declared_type}[]"
        fields: list[FieldDeclaration] = []
        for declarator in node.children_by_field_name("declarator"):
            name = _text(declarator.child_by_field_name("name"))
            # byte[] and char[] hold scalar data, not associations
            collection = is_collection and declared_type not in ("byte[]", "Byte[]", "char[]")
            fields.append(
                FieldDeclaration(
                    name=name,
                    declared_type=declared_type,
                    type_arguments=type_arguments,
                    is_collection=collection,
                    modifiers=modifiers,
                    annotations=tuple(annotations),
                )
            )
        return fields

    def _type_parts(self, node: Any) -> tuple[str, tuple[str, ...], bool]:
        """Split a type node into raw name, type argument texts and array flag."""
        if node is None:
            return "", (), False
        if node.type == "array_type":
            element, arguments, _ = self._type_parts(node.child_by_field_name("element"))
            return element, arguments, True
        if node.type == "generic_type":
            raw = ""
            arguments: list[str] = []
            for child in node.named_children:
                if child.type == "type_arguments":
                    for argument in child.named_children:
                        if argument.type == "wildcard":
                            bound = [c for c in argument.named_children if c.type != "annotation"]
                            arguments.append(_text(bound[-1]) if bound else "Object")
                        else:
                            arguments.append(_text(argument))
                else:
                    raw = _text(child)
            return raw, tuple(arguments), False
        if node.type == "annotated_type":
            inner = [c for c in node.named_children if c.type not in ("annotation", "marker_annotation")]
            return self._type_parts(inner[-1] if inner else None)
        return _text(node), (), False

    def _annotation(self, node: Any) -> AnnotationUsage:
        name = _simple_name(_text(node.child_by_field_name("name")))
        arguments: dict[str, AnnotationValue] = {}
        argument_list = node.child_by_field_name("arguments")
        if argument_list is not None:
            for child in argument_list.named_children:
                if child.type == "element_value_pair":
                    key = _text(child.child_by_field_name("key"))
                    arguments[key] = self._element_value(child.child_by_field_name("value"))
                elif child.type not in ("comment", "line_comment", "block_comment"):
                    arguments["value"] = self._element_value(child)
        return AnnotationUsage(name=name, arguments=arguments)

    def _element_value(self, node: Any) -> AnnotationValue:
        if node is None:
            return ""
        if node.type in ("annotation", "marker_annotation"):
            return self._annotation(node)
        if node.type == "element_value_array_initializer":
            return tuple(
                self._element_value(child)
                for child in node.named_children
                if child.type not in ("comment", "line_comment", "block_comment")
            )
        if node.type == "string_literal":
            return _text(node).strip('"')
        if node.type == "true":
            return True
        if node.type == "false":
            return False
        if node.type == "decimal_integer_literal":
            try:
                return int(_text(node).rstrip("lL").replace("_", ""))
            except ValueError:
                return _text(node)
        if node.type == "class_literal":
            return _text(node).removesuffix(".class").strip()
        return _text(node)
