from pathlib import Path

from schemair.context import ResolutionContext
from schemair.entity_resolver import EntityResolver
from schemair.ir import EnumStorage, GenerationStrategy
from schemair.java_ast import JavaAstAccess


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _java(root: Path, relative: str, *lines: str) -> str:
    _write_file(root / relative, "\n".join(lines))
    return relative


def _resolver(root: Path) -> tuple[EntityResolver, ResolutionContext]:
    context = ResolutionContext(root_path=root, ast_access=JavaAstAccess(), max_workers=2)
    return EntityResolver(context), context


def test_ph2_res_001_basic_columns_keys_and_table_names(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    path = _java(
        root,
        "src/com/shop/CustomerAccount.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class CustomerAccount {",
        "    @Id",
        "    @GeneratedValue(strategy = GenerationType.IDENTITY)",
        "    private Long id;",
        '    @Column(name = "e_mail", unique = true, length = 120)',
        "    private String emailAddress;",
        "    private java.time.LocalDate birthDate;",
        "    private static int counter;",
        "    @Transient",
        "    private String cached;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert resolved.class_name == "com.shop.CustomerAccount"
    assert resolved.table_name == "customer_account"
    columns = {column.field_name: column for column in resolved.columns}
    assert list(columns) == ["id", "emailAddress", "birthDate"]
    key = columns["id"]
    assert key.primary_key
    assert key.generation_strategy is GenerationStrategy.IDENTITY
    assert key.nullable is False
    assert key.unique is True
    assert key.sql_type == "BIGINT"
    email = columns["emailAddress"]
    assert email.column_name == "e_mail"
    assert email.unique is True
    assert email.length == 120
    assert email.nullable is None
    assert columns["birthDate"].column_name == "birth_date"
    assert columns["birthDate"].sql_type == "DATE"
    assert context.diagnostics == []


def test_ph2_res_002_explicit_table_name_and_assigned_key(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    path = _java(
        root,
        "Product.java",
        "import jakarta.persistence.*;",
        "@Entity",
        '@Table(name = "catalog_products")',
        "public class Product {",
        "    @Id",
        "    private String sku;",
        "}",
    )
    resolver, _ = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert resolved.class_name == "Product"
    assert resolved.table_name == "catalog_products"
    assert resolved.columns[0].generation_strategy is GenerationStrategy.ASSIGNED


def test_ph2_res_003_mapped_superclass_columns_come_first(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "src/com/shop/BaseEntity.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@MappedSuperclass",
        "public abstract class BaseEntity {",
        "    @Id",
        "    @GeneratedValue",
        "    private Long id;",
        "}",
    )
    _java(
        root,
        "src/com/shop/Audited.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@MappedSuperclass",
        "public abstract class Audited extends BaseEntity {",
        "    private java.time.Instant createdAt;",
        "}",
    )
    path = _java(
        root,
        "src/com/shop/Customer.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@Entity",
        '@AttributeOverride(name = "createdAt", column = @Column(name = "created_on"))',
        "public class Customer extends Audited {",
        "    private String name;",
        "}",
    )
    resolver, _ = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert resolved.mapped_superclass == "com.shop.Audited"
    assert [column.field_name for column in resolved.columns] == ["id", "createdAt", "name"]
    assert [column.inherited_from for column in resolved.columns] == [
        "com.shop.BaseEntity",
        "com.shop.Audited",
        None,
    ]
    assert resolved.columns[0].generation_strategy is GenerationStrategy.AUTO
    assert resolved.columns[1].column_name == "created_on"


def test_ph2_res_004_embedded_value_columns_are_prefixed_and_tagged(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "src/com/shop/Address.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@Embeddable",
        "public class Address {",
        "    private String street;",
        '    @Column(name = "town")',
        "    private String city;",
        "}",
    )
    path = _java(
        root,
        "src/com/shop/Customer.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class Customer {",
        "    @Id",
        "    private Long id;",
        "    @Embedded",
        "    private Address homeAddress;",
        '    @AttributeOverride(name = "street", column = @Column(name = "billing_line"))',
        "    private Address billingAddress;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    embedded = [column for column in resolved.columns if column.embedding is not None]
    assert [(column.field_name, column.column_name) for column in embedded] == [
        ("street", "home_address_street"),
        ("city", "home_address_town"),
        ("street", "billing_line"),
        ("city", "billing_address_town"),
    ]
    assert {column.embedding.embeddable_class for column in embedded} == {"com.shop.Address"}
    assert [column.embedding.owner_field for column in embedded[:2]] == ["homeAddress"] * 2
    address = context.embeddables["com.shop.Address"]
    assert [column.column_name for column in address.columns] == ["street", "town"]


def test_ph2_res_005_embedded_id_columns_form_the_key(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "OrderLineKey.java",
        "import jakarta.persistence.*;",
        "@Embeddable",
        "public class OrderLineKey {",
        "    private Long orderId;",
        "    private Integer lineNo;",
        "}",
    )
    path = _java(
        root,
        "OrderLine.java",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class OrderLine {",
        "    @EmbeddedId",
        "    private OrderLineKey key;",
        "    private int quantity;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    keys = [column for column in resolved.columns if column.primary_key]
    assert [column.column_name for column in keys] == ["key_order_id", "key_line_no"]
    assert all(column.nullable is False for column in keys)
    assert all(column.generation_strategy is GenerationStrategy.ASSIGNED for column in keys)
    assert context.diagnostics == []


def test_ph2_res_006_enum_columns_capture_storage_and_values(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "src/com/shop/Status.java",
        "package com.shop;",
        "public enum Status { NEW, PAID, SHIPPED }",
    )
    path = _java(
        root,
        "src/com/shop/Order.java",
        "package com.shop;",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class Order {",
        "    @Id",
        "    private Long id;",
        "    @Enumerated(EnumType.STRING)",
        "    private Status status;",
        "    private Status previousStatus;",
        "}",
    )
    resolver, _ = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    columns = {column.field_name: column for column in resolved.columns}
    status = columns["status"]
    assert status.java_type == "com.shop.Status"
    assert status.enum_info is not None
    assert status.enum_info.storage is EnumStorage.STRING
    assert status.enum_info.possible_values == ("NEW", "PAID", "SHIPPED")
    assert status.sql_type == "VARCHAR"
    previous = columns["previousStatus"]
    assert previous.enum_info is not None
    assert previous.enum_info.storage is EnumStorage.ORDINAL
    assert previous.sql_type == "INTEGER"


def test_ph2_res_007_non_entities_and_missing_keys_are_reported(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    plain = _java(
        root,
        "Report.java",
        "import jakarta.persistence.*;",
        '@Table(name = "report")',
        "public class Report {",
        "    @Column private String title;",
        "}",
    )
    keyless = _java(
        root,
        "AuditLog.java",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class AuditLog {",
        "    private String message;",
        "}",
    )
    resolver, context = _resolver(root)

    assert resolver.resolve(plain) is None
    resolved = resolver.resolve(keyless)

    assert resolved is not None
    assert [column.field_name for column in resolved.columns] == ["message"]
    assert [(item.subject, item.code) for item in context.diagnostics] == [
        ("Report.java", "not_an_entity"),
        ("AuditLog", "missing_primary_key"),
    ]


def test_ph2_res_008_unparseable_candidate_is_skipped_with_diagnostic(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    path = _java(root, "Broken.java", "@Entity public class Broken { @Id Long ; }")
    resolver, context = _resolver(root)

    assert resolver.resolve(path) is None
    assert [item.code for item in context.diagnostics] == ["parse_error"]


def test_ph2_res_009_imported_types_resolve_across_packages(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "src/com/shop/model/Money.java",
        "package com.shop.model;",
        "import jakarta.persistence.*;",
        "@Embeddable",
        "public class Money {",
        "    private java.math.BigDecimal amount;",
        "    private String currency;",
        "}",
    )
    path = _java(
        root,
        "src/com/shop/orders/Invoice.java",
        "package com.shop.orders;",
        "import jakarta.persistence.*;",
        "import com.shop.model.Money;",
        "@Entity",
        "public class Invoice {",
        "    @Id",
        "    private Long id;",
        "    private Money total;",
        "}",
    )
    resolver, _ = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert [column.column_name for column in resolved.columns] == [
        "id",
        "total_amount",
        "total_currency",
    ]
    assert resolved.columns[1].sql_type == "NUMERIC"


def test_ph2_res_010_closest_ancestor_declaration_wins(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "a/Base.java",
        "package a;",
        "import jakarta.persistence.*;",
        "@MappedSuperclass",
        "public abstract class Base {",
        "    @Id",
        "    private Long id;",
        "    private String code;",
        "}",
    )
    _java(
        root,
        "a/Mid.java",
        "package a;",
        "import jakarta.persistence.*;",
        "@MappedSuperclass",
        "public abstract class Mid extends Base {",
        '    @Column(name = "mid_code")',
        "    private String code;",
        "}",
    )
    path = _java(
        root,
        "a/Leaf.java",
        "package a;",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class Leaf extends Mid {",
        "    private String name;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert [
        (column.field_name, column.column_name, column.inherited_from)
        for column in resolved.columns
    ] == [
        ("id", "id", "a.Base"),
        ("code", "mid_code", "a.Mid"),
        ("name", "name", None),
    ]
    assert context.diagnostics == []


def test_ph2_res_011_mapped_superclass_cycle_is_broken(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _java(
        root,
        "a/First.java",
        "package a;",
        "import jakarta.persistence.*;",
        "@MappedSuperclass",
        "public abstract class First extends Second {",
        "    @Id",
        "    private Long id;",
        "}",
    )
    _java(
        root,
        "a/Second.java",
        "package a;",
        "import jakarta.persistence.*;",
        "@MappedSuperclass",
        "public abstract class Second extends First {",
        "    private String label;",
        "}",
    )
    path = _java(
        root,
        "a/Widget.java",
        "package a;",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class Widget extends First {",
        "    private String name;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert [column.field_name for column in resolved.columns] == ["label", "id", "name"]
    assert [(item.subject, item.code) for item in context.diagnostics] == [
        ("a.Widget", "inheritance_cycle")
    ]


def test_ph2_res_012_last_of_several_keys_is_kept(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    path = _java(
        root,
        "Ticket.java",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class Ticket {",
        "    @Id",
        "    @GeneratedValue",
        "    private Long id;",
        "    @Id",
        "    private String code;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    columns = {column.field_name: column for column in resolved.columns}
    assert columns["code"].primary_key is True
    assert columns["code"].generation_strategy is GenerationStrategy.ASSIGNED
    assert columns["id"].primary_key is False
    assert columns["id"].generation_strategy is GenerationStrategy.NONE
    assert [(item.subject, item.code) for item in context.diagnostics] == [
        ("Ticket", "multiple_primary_keys")
    ]


def test_ph2_res_013_unknown_embedded_type_is_skipped(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    path = _java(
        root,
        "Customer.java",
        "import jakarta.persistence.*;",
        "@Entity",
        "public class Customer {",
        "    @Id",
        "    private Long id;",
        "    @Embedded",
        "    private GeoPoint location;",
        "}",
    )
    resolver, context = _resolver(root)

    resolved = resolver.resolve(path)

    assert resolved is not None
    assert [column.field_name for column in resolved.columns] == ["id"]
    assert [(item.subject, item.code) for item in context.diagnostics] == [
        ("Customer.location", "unknown_embeddable")
    ]
    assert context.embeddables == {"GeoPoint": None}
