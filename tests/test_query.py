import pytest

from coursedb import MysqlPool, PostgresPool, SQLitePool
from coursedb.exception import CourseDBError
from coursedb.query import ParamType, SQLQuery


@pytest.mark.parametrize(
    "text,param_type",
    (
        ("SELECT * FROM category WHERE id = $id", ParamType.KEYWORD),
        ("SELECT * FROM category WHERE id = $1", ParamType.POSITIONAL),
        ("SELECT * FROM category", ParamType.NONE),
    ),
)
def test_param_type(text, param_type):
    assert SQLQuery("q", text).param_type is param_type


def test_mixed_param_types():
    with pytest.raises(CourseDBError, match="mixes positional and keyword"):
        SQLQuery("q", "SELECT * FROM category WHERE id = $1 OR id = $id")


@pytest.mark.parametrize(
    "interface,expected",
    (
        (SQLitePool, "UPDATE category SET name = :name WHERE id = :id"),
        (PostgresPool, "UPDATE category SET name = %(name)s WHERE id = %(id)s"),
        (MysqlPool, "UPDATE category SET name = %(name)s WHERE id = %(id)s"),
    ),
)
def test_renders_for_interface(interface, expected):
    query = SQLQuery(
        "update_category", "UPDATE category SET name = $name WHERE id = $id"
    )

    assert query.for_interface(interface) == expected
    assert query.text == "UPDATE category SET name = $name WHERE id = $id"


def test_equality():
    text = "SELECT * FROM course"

    assert SQLQuery("a", text) == SQLQuery("b", text)
    assert SQLQuery("a", text) != SQLQuery("a", text + " ORDER BY id")


def test_renders_positional_markers():
    query = SQLQuery(
        "get_category", "SELECT * FROM category WHERE id = $1 AND name = $2"
    )

    assert query.for_interface(SQLitePool) == (
        "SELECT * FROM category WHERE id = ? AND name = ?"
    )
    assert query.for_interface(PostgresPool) == (
        "SELECT * FROM category WHERE id = %s AND name = %s"
    )


def test_renders_multiline_keywords():
    query = SQLQuery(
        "list_courses",
        """
        SELECT *
        FROM course
        WHERE category_id = $category_id
        AND price > $price
        """,
    )

    assert query.for_interface(MysqlPool) == (
        """
        SELECT *
        FROM course
        WHERE category_id = %(category_id)s
        AND price > %(price)s
        """
    )


def test_bind_keywords():
    query = SQLQuery(
        "update_category", "UPDATE category SET name = $name WHERE id = $id"
    )

    values = query.bind({"id": "c1", "name": "Backend", "extra": 1})

    assert values == {"name": "Backend", "id": "c1"}
    assert query.parameters == ["name", "id"]


def test_bind_missing_keyword():
    query = SQLQuery("delete_category", "DELETE FROM category WHERE id = $id")

    with pytest.raises(CourseDBError, match="missing values for: id"):
        query.bind({"name": "Backend"})


def test_bind_positional_follows_markers():
    query = SQLQuery(
        "get_category", "SELECT * FROM category WHERE name = $2 AND id = $1"
    )

    assert query.bind({"id": "c1", "name": "Backend"}) == ["Backend", "c1"]


def test_bind_positional_too_few_values():
    query = SQLQuery("get_category", "SELECT * FROM category WHERE id = $2")

    with pytest.raises(CourseDBError, match="expects 2 positional values"):
        query.bind({"id": "c1"})


def test_bind_without_placeholders():
    query = SQLQuery("list_all_categories", "SELECT * FROM category")

    assert query.bind({}) is None
