from pathlib import Path

import pytest

from schemair.annotations import (
    AnnotationSet,
    ColumnMarker,
    GeneratedValueMarker,
    JoinTableMarker,
    RelationMarker,
    Unrecognized,
    classify,
)
from schemair.ast_access import AnnotationUsage
from schemair.errors import SourceParseError
from schemair.ir import FetchMode, GenerationStrategy, RelationKind
from schemair.java_ast import JavaAstAccess


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_ph1_ast_001_parses_package_imports_and_fields(tmp_path: Path) -> None:
    source = tmp_path / "Order.java"
    _write_file(
        source,
        "\n".join(
            [
                "package com.shop;",
                "",
                "import jakarta.persistence.*;",
                "import java.util.List;",
                "import static java.util.Objects.requireNonNull;",
                "",
                "@Entity",
                '@Table(name = "orders")',
                "public class Order extends BaseEntity {",
                "    private static final long serialVersionUID = 1L;",
                "    @Id",
                "    @GeneratedValue(strategy = GenerationType.IDENTITY)",
                "    private Long id;",
                '    @Column(name = "total_amount", nullable = false, precision = 10, scale = 2)',
                "    private java.math.BigDecimal total;",
                "    private transient String scratch;",
                '    @OneToMany(mappedBy = "order", cascade = {CascadeType.PERSIST, CascadeType.MERGE}, fetch = FetchType.EAGER)',
                "    private List<Item> items;",
                "    private byte[] payload;",
                "",
                "    public enum Status { NEW, PAID }",
                "}",
            ]
        ),
    )

    unit = JavaAstAccess().parse(source)

    assert unit.package == "com.shop"
    assert unit.imports == ("java.util.List",)
    assert unit.wildcard_imports == ("jakarta.persistence",)
    order = unit.types[0]
    assert order.qualified_name == "com.shop.Order"
    assert order.kind == "class"
    assert order.superclass_name == "BaseEntity"
    assert [annotation.name for annotation in order.annotations] == ["Entity", "Table"]
    assert order.annotations[1].arguments == {"name": "orders"}

    fields = {field.name: field for field in order.fields}
    assert "static" in fields["serialVersionUID"].modifiers
    assert "transient" in fields["scratch"].modifiers
    assert fields["total"].declared_type == "java.math.BigDecimal"
    items = fields["items"]
    assert items.declared_type == "List"
    assert items.type_arguments == ("Item",)
    assert items.is_collection
    assert items.element_type == "Item"
    assert fields["payload"].declared_type == "byte[]"
    assert not fields["payload"].is_collection

    status = order.nested[0]
    assert status.qualified_name == "com.shop.Order.Status"
    assert status.enum_constants == ("NEW", "PAID")
    assert [declaration.name for declaration in unit.all_types()] == ["Order", "Status"]


def test_ph1_ast_002_annotation_arguments_become_typed_markers(tmp_path: Path) -> None:
    source = tmp_path / "Order.java"
    _write_file(
        source,
        "\n".join(
            [
                "package com.shop;",
                "@Entity",
                "public class Order {",
                "    @Id",
                "    @GeneratedValue(strategy = GenerationType.SEQUENCE)",
                "    private Long id;",
                '    @Column(name = "total_amount", nullable = false, precision = 10, scale = 2)',
                "    private java.math.BigDecimal total;",
                '    @OneToMany(mappedBy = "order", cascade = {CascadeType.PERSIST, CascadeType.MERGE}, fetch = FetchType.EAGER)',
                "    private java.util.List<Item> items;",
                "    @ManyToMany",
                '    @JoinTable(name = "order_tags", joinColumns = @JoinColumn(name = "order_ref"),',
                '        inverseJoinColumns = @JoinColumn(name = "tag_ref"))',
                "    private java.util.Set<Tag> tags;",
                "}",
            ]
        ),
    )

    fields = {field.name: field for field in JavaAstAccess().parse(source).types[0].fields}

    id_set = AnnotationSet.of(fields["id"].annotations)
    assert id_set.find(GeneratedValueMarker) == GeneratedValueMarker(
        strategy=GenerationStrategy.SEQUENCE
    )
    total = AnnotationSet.of(fields["total"].annotations).find(ColumnMarker)
    assert total == ColumnMarker(name="total_amount", nullable=False, precision=10, scale=2)
    relation = AnnotationSet.of(fields["items"].annotations).find(RelationMarker)
    assert relation == RelationMarker(
        kind=RelationKind.ONE_TO_MANY,
        mapped_by="order",
        fetch=FetchMode.EAGER,
        cascade=("PERSIST", "MERGE"),
    )
    join_table = AnnotationSet.of(fields["tags"].annotations).find(JoinTableMarker)
    assert join_table == JoinTableMarker(
        name="order_tags", join_column="order_ref", inverse_join_column="tag_ref"
    )


def test_ph1_ast_003_syntax_error_raises_parse_error(tmp_path: Path) -> None:
    source = tmp_path / "Broken.java"
    _write_file(source, "public class Broken { private int ; ")

    with pytest.raises(SourceParseError):
        JavaAstAccess().parse(source)


def test_ph1_ast_004_missing_file_raises_parse_error(tmp_path: Path) -> None:
    with pytest.raises(SourceParseError):
        JavaAstAccess().parse(tmp_path / "Missing.java")


def test_ph1_ast_005_unknown_annotations_are_kept_as_unrecognized() -> None:
    usage = AnnotationUsage(name="Version", arguments={})

    assert classify(usage) == Unrecognized(name="Version", arguments={})
