from pathlib import Path

from schemair.context import ResolutionContext
from schemair.entity_resolver import EntityResolver, ResolvedClass
from schemair.errors import Diagnostic
from schemair.ir import FetchMode, RelationKind, Relationship
from schemair.java_ast import JavaAstAccess
from schemair.relationships import RelationshipResolver


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _resolve_project(
    root: Path, sources: dict[str, list[str]]
) -> tuple[dict[str, dict[str, Relationship]], list[Diagnostic], list[ResolvedClass]]:
    for relative, lines in sources.items():
        _write_file(root / relative, "\n".join(lines))
    context = ResolutionContext(root_path=root, ast_access=JavaAstAccess(), max_workers=2)
    resolver = EntityResolver(context)
    resolved = []
    for relative in sources:
        item = resolver.resolve(relative, position=len(resolved))
        if item is not None:
            resolved.append(item)
    relationships, diagnostics = RelationshipResolver().resolve(resolved)
    by_class = {
        owner: {relationship.field_name: relationship for relationship in items}
        for owner, items in relationships.items()
    }
    return by_class, context.diagnostics + diagnostics, resolved


def test_ph2_rel_001_mapped_by_marks_inverse_and_many_to_one_owns(tmp_path: Path) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "Order.java": [
                "import jakarta.persistence.*;",
                "import java.util.List;",
                "@Entity",
                "public class Order {",
                "    @Id private Long id;",
                '    @OneToMany(mappedBy = "order", cascade = CascadeType.ALL)',
                "    private List<Item> items;",
                "}",
            ],
            "Item.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Item {",
                "    @Id private Long id;",
                "    @ManyToOne",
                "    private Order order;",
                "}",
            ],
        },
    )

    items = relationships["Order"]["items"]
    assert items.owning_side is False
    assert items.mapped_by == "order"
    assert items.kind is RelationKind.ONE_TO_MANY
    assert items.fetch is FetchMode.LAZY
    assert items.cascade == ("ALL",)
    assert items.join_column is None
    order = relationships["Item"]["order"]
    assert order.owning_side is True
    assert order.mapped_by is None
    assert order.join_column == "order_id"
    assert order.fetch is FetchMode.EAGER
    assert diagnostics == []


def test_ph2_rel_002_mutual_inverse_claims_are_broken_by_declaration_order(
    tmp_path: Path,
) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "User.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class User {",
                "    @Id private Long id;",
                '    @OneToOne(mappedBy = "user")',
                "    private Profile profile;",
                "}",
            ],
            "Profile.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Profile {",
                "    @Id private Long id;",
                '    @OneToOne(mappedBy = "profile")',
                "    private User user;",
                "}",
            ],
        },
    )

    profile = relationships["User"]["profile"]
    user = relationships["Profile"]["user"]
    assert profile.owning_side is True
    assert profile.mapped_by is None
    assert profile.join_column == "profile_id"
    assert user.owning_side is False
    assert user.mapped_by == "profile"
    assert [(item.subject, item.code) for item in diagnostics] == [("Profile.user", "double_inverse")]


def test_ph2_rel_003_many_to_one_wins_a_double_ownership_claim(
    tmp_path: Path,
) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "Author.java": [
                "import jakarta.persistence.*;",
                "import java.util.Set;",
                "@Entity",
                "public class Author {",
                "    @Id private Long id;",
                "    @OneToMany",
                "    private Set<Book> books;",
                "}",
            ],
            "Book.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Book {",
                "    @Id private Long id;",
                "    @ManyToOne",
                '    @JoinColumn(name = "writer_id")',
                "    private Author author;",
                "}",
            ],
        },
    )

    books = relationships["Author"]["books"]
    author = relationships["Book"]["author"]
    assert author.owning_side is True
    assert author.join_column == "writer_id"
    assert books.owning_side is False
    assert books.mapped_by == "author"
    assert books.join_table is None
    assert [(item.subject, item.code) for item in diagnostics] == [("Author.books", "double_ownership")]


def test_ph2_rel_004_many_to_many_join_table_defaults_and_overrides(tmp_path: Path) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "Student.java": [
                "import jakarta.persistence.*;",
                "import java.util.Set;",
                "@Entity",
                '@Table(name = "students")',
                "public class Student {",
                "    @Id private Long id;",
                "    @ManyToMany",
                "    private Set<Course> courses;",
                "    @ManyToMany",
                '    @JoinTable(name = "mentoring", joinColumns = @JoinColumn(name = "student_ref"))',
                "    private Set<Course> mentoredCourses;",
                "}",
            ],
            "Course.java": [
                "import jakarta.persistence.*;",
                "import java.util.Set;",
                "@Entity",
                "public class Course {",
                "    @Id private Long id;",
                '    @ManyToMany(mappedBy = "courses")',
                "    private Set<Student> students;",
                "}",
            ],
        },
    )

    courses = relationships["Student"]["courses"]
    assert courses.owning_side is True
    assert courses.join_table == "students_course"
    assert courses.join_table_join_column == "student_id"
    assert courses.join_table_inverse_join_column == "course_id"
    mentored = relationships["Student"]["mentoredCourses"]
    assert mentored.join_table == "mentoring"
    assert mentored.join_table_join_column == "student_ref"
    assert mentored.join_table_inverse_join_column == "course_id"
    students = relationships["Course"]["students"]
    assert students.owning_side is False
    assert students.mapped_by == "courses"
    assert diagnostics == []


def test_ph2_rel_005_unresolved_mapped_by_stays_inverse_with_diagnostic(
    tmp_path: Path,
) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "Team.java": [
                "import jakarta.persistence.*;",
                "import java.util.List;",
                "@Entity",
                "public class Team {",
                "    @Id private Long id;",
                '    @OneToMany(mappedBy = "squad")',
                "    private List<Player> players;",
                "}",
            ],
            "Player.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Player {",
                "    @Id private Long id;",
                "    @ManyToOne",
                "    private Team team;",
                "}",
            ],
        },
    )

    players = relationships["Team"]["players"]
    assert players.owning_side is False
    assert players.mapped_by == "squad"
    assert relationships["Player"]["team"].owning_side is True
    assert [(item.subject, item.code) for item in diagnostics] == [("Team.players", "unresolved_inverse")]


def test_ph2_rel_006_self_reference_pairs_distinct_fields(tmp_path: Path) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "Employee.java": [
                "import jakarta.persistence.*;",
                "import java.util.List;",
                "@Entity",
                "public class Employee {",
                "    @Id private Long id;",
                "    @ManyToOne",
                "    private Employee manager;",
                '    @OneToMany(mappedBy = "manager")',
                "    private List<Employee> reports;",
                "}",
            ],
        },
    )

    assert relationships["Employee"]["manager"].owning_side is True
    assert relationships["Employee"]["manager"].join_column == "manager_id"
    assert relationships["Employee"]["reports"].mapped_by == "manager"
    assert diagnostics == []


def test_ph2_rel_007_inherited_associations_belong_to_each_entity(tmp_path: Path) -> None:
    relationships, diagnostics, resolved = _resolve_project(
        tmp_path,
        {
            "Tenant.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Tenant {",
                "    @Id private Long id;",
                "}",
            ],
            "TenantOwned.java": [
                "import jakarta.persistence.*;",
                "@MappedSuperclass",
                "public abstract class TenantOwned {",
                "    @Id private Long id;",
                "    @ManyToOne(fetch = FetchType.LAZY)",
                "    private Tenant tenant;",
                "}",
            ],
            "Invoice.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Invoice extends TenantOwned {",
                "    private String number;",
                "}",
            ],
        },
    )

    tenant = relationships["Invoice"]["tenant"]
    assert tenant.inherited_from == "TenantOwned"
    assert tenant.owning_side is True
    assert tenant.fetch is FetchMode.LAZY
    assert tenant.join_column == "tenant_id"
    assert [item.class_name for item in resolved] == ["Tenant", "Invoice"]
    assert [item.code for item in diagnostics] == ["not_an_entity"]


def test_ph2_rel_008_mutual_one_to_one_owners_are_broken_by_declaration_order(
    tmp_path: Path,
) -> None:
    relationships, diagnostics, _ = _resolve_project(
        tmp_path,
        {
            "Person.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Person {",
                "    @Id private Long id;",
                "    @OneToOne",
                "    private Passport passport;",
                "}",
            ],
            "Passport.java": [
                "import jakarta.persistence.*;",
                "@Entity",
                "public class Passport {",
                "    @Id private Long id;",
                "    @OneToOne",
                "    private Person holder;",
                "}",
            ],
        },
    )

    passport = relationships["Person"]["passport"]
    holder = relationships["Passport"]["holder"]
    assert passport.owning_side is True
    assert passport.join_column == "passport_id"
    assert holder.owning_side is False
    assert holder.mapped_by == "passport"
    assert [(item.subject, item.code) for item in diagnostics] == [
        ("Passport.holder", "double_ownership")
    ]
