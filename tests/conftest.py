import pytest

from coursedb import CourseDB, SQLitePool

SCHEMA = """
CREATE TABLE category (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NULL
);

CREATE TABLE course (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NULL,
    category_id TEXT NOT NULL REFERENCES category (id),
    price NUMERIC NOT NULL
);
"""


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "courses.db")


@pytest.fixture
async def pool(db_path):
    pool = SQLitePool(db_path)
    await pool.open()
    async with pool.connection() as conn:
        await conn.executescript(SCHEMA)
    yield pool
    await pool.close()


@pytest.fixture
def course_db(pool):
    return CourseDB(pool)


@pytest.fixture
def queries(course_db):
    return course_db.queries
