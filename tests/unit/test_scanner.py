import re
from pathlib import Path

import pytest

from schemair.errors import WorkingTreeError
from schemair.scanner import (
    CandidateClassScanner,
    ExcludeMarkers,
    RequireAnyPattern,
    RequirePattern,
)


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


ENTITY_SOURCE = "\n".join(
    [
        "package com.shop;",
        "",
        "import jakarta.persistence.Entity;",
        "import jakarta.persistence.Id;",
        "",
        "@Entity",
        "public class Order {",
        "    @Id",
        "    private Long id;",
        "}",
    ]
)


def test_ph1_scan_001_default_rules_classify_content() -> None:
    scanner = CandidateClassScanner()

    assert scanner.is_candidate(ENTITY_SOURCE)
    assert not scanner.is_candidate(ENTITY_SOURCE.replace("Order", "OrderDto"))
    assert not scanner.is_candidate(ENTITY_SOURCE.replace("@Entity", ""))
    assert scanner.is_candidate("@Table(name = \"x\")\nclass X { @Column String name; }")
    assert not scanner.is_candidate("@Entity\nclass X { String name; }")


def test_ph1_scan_002_custom_rules_are_pluggable() -> None:
    scanner = CandidateClassScanner(
        rules=(
            ExcludeMarkers(markers=("Generated",)),
            RequirePattern(pattern=re.compile(r"@Document")),
            RequireAnyPattern(patterns=(re.compile(r"@Field"), re.compile(r"@Id"))),
        )
    )

    assert scanner.is_candidate("@Document class Note { @Id String id; }")
    assert not scanner.is_candidate("@Generated @Document class Note { @Id String id; }")


def test_ph1_scan_003_scan_returns_sorted_relative_candidates(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write_file(root / "src" / "com" / "shop" / "Order.java", ENTITY_SOURCE)
    _write_file(
        root / "src" / "com" / "shop" / "Item.java",
        ENTITY_SOURCE.replace("Order", "Item"),
    )
    _write_file(
        root / "src" / "com" / "shop" / "OrderDto.java",
        ENTITY_SOURCE.replace("Order", "OrderDto"),
    )
    _write_file(root / "src" / "com" / "shop" / "Helper.java", "class Helper {}")
    _write_file(root / "README.md", "@Entity @Id")

    result = CandidateClassScanner().scan(root)

    assert result.candidates == [
        "src/com/shop/Item.java",
        "src/com/shop/Order.java",
    ]
    assert result.file_names == ["Item.java", "Order.java"]
    assert result.errors == []


def test_ph1_scan_004_scan_respects_gitignore(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write_file(root / ".gitignore", "build/\n")
    _write_file(root / "build" / "Order.java", ENTITY_SOURCE)
    _write_file(root / "src" / "Order.java", ENTITY_SOURCE)

    assert CandidateClassScanner().scan(root).candidates == ["src/Order.java"]
    assert CandidateClassScanner(respect_gitignore=False).scan(root).candidates == [
        "build/Order.java",
        "src/Order.java",
    ]


def test_ph1_scan_005_unreadable_file_becomes_diagnostic(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write_file(root / "Order.java", ENTITY_SOURCE)
    (root / "Broken.java").write_bytes(b"\xff\xfe\xfa invalid utf-8")

    result = CandidateClassScanner().scan(root)

    assert result.candidates == ["Order.java"]
    assert [error.subject for error in result.errors] == ["Broken.java"]
    assert result.errors[0].code == "unreadable_file"


def test_ph1_scan_006_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(WorkingTreeError):
        CandidateClassScanner().scan(tmp_path / "missing")


def test_ph1_scan_007_rejects_non_positive_worker_count() -> None:
    with pytest.raises(ValueError):
        CandidateClassScanner(max_workers=0)
