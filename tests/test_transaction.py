import asyncio
from unittest.mock import AsyncMock

import pytest

from coursedb import CourseQueries, SQLitePool, Transaction, TransactionRunner
from coursedb.exception import DBConnectionError, StatementError
from coursedb.transaction import (
    BeginTransactionError,
    CommitError,
    RollbackError,
    TransactionError,
    TransactionState,
    TransactionTimeoutError,
)


async def create_category_and_orphan_course(queries):
    await queries.create_category(id="c1", name="Backend")
    await queries.create_course(
        id="k1", name="Go", category_id="missing", price=123.1
    )


@pytest.fixture
def runner(pool):
    return TransactionRunner(pool, CourseQueries)


async def test_lifecycle(pool):
    transaction = Transaction(pool)
    assert transaction.state is TransactionState.IDLE
    assert not transaction.is_active

    await transaction.begin()
    assert transaction.is_active

    await CourseQueries(transaction).create_category(id="c1", name="Backend")
    await transaction.commit()

    assert transaction.is_committed
    assert not transaction.is_active
    assert await CourseQueries(pool).get_category(id="c1") is not None


async def test_no_reentry_after_terminal_state(pool):
    transaction = Transaction(pool)
    await transaction.begin()
    await transaction.rollback()

    assert transaction.is_rolled_back
    with pytest.raises(TransactionError):
        await transaction.begin()
    with pytest.raises(TransactionError):
        await transaction.commit()
    with pytest.raises(TransactionError):
        await transaction.rollback()


async def test_begin_twice(pool):
    transaction = Transaction(pool)
    await transaction.begin()

    with pytest.raises(TransactionError, match="is active"):
        await transaction.begin()
    await transaction.rollback()


async def test_context_manager_commits(pool):
    async with Transaction(pool) as transaction:
        await CourseQueries(transaction).create_category(
            id="c1", name="Backend"
        )

    assert transaction.is_committed
    assert len(await CourseQueries(pool).list_all_categories()) == 1


async def test_context_manager_rolls_back(pool):
    with pytest.raises(StatementError):
        async with Transaction(pool) as transaction:
            await create_category_and_orphan_course(
                CourseQueries(transaction)
            )

    assert transaction.is_rolled_back
    assert await CourseQueries(pool).list_all_categories() == []


async def test_success_commits_once(pool, runner):
    pool.commit = AsyncMock(wraps=pool.commit)
    pool.rollback = AsyncMock(wraps=pool.rollback)

    async def unit_of_work(queries):
        await queries.create_category(id="c1", name="Backend")
        await queries.create_course(
            id="k1", name="Go", category_id="c1", price=123.1
        )

    await runner.run(unit_of_work)

    pool.commit.assert_awaited_once()
    pool.rollback.assert_not_awaited()
    (course,) = await CourseQueries(pool).list_courses()
    assert course.category_name == "Backend"


async def test_failure_rolls_back_once(pool, runner):
    pool.commit = AsyncMock(wraps=pool.commit)
    pool.rollback = AsyncMock(wraps=pool.rollback)

    with pytest.raises(StatementError):
        await runner.run(create_category_and_orphan_course)

    pool.rollback.assert_awaited_once()
    pool.commit.assert_not_awaited()
    assert await CourseQueries(pool).list_all_categories() == []


async def test_rollback_failure_reports_both_errors(pool, runner):
    pool.rollback = AsyncMock(side_effect=RuntimeError("connection lost"))

    with pytest.raises(RollbackError) as exc_info:
        await runner.run(create_category_and_orphan_course)

    error = exc_info.value
    assert isinstance(error.original, StatementError)
    assert isinstance(error.rollback_error, RuntimeError)
    assert error.__cause__ is error.original
    assert "connection lost" in str(error)
    assert "FOREIGN KEY constraint failed" in str(error)

    # The connection went back to the pool and nothing was kept
    assert await CourseQueries(pool).list_all_categories() == []


async def test_rollback_failure_without_cause(pool):
    transaction = Transaction(pool)
    await transaction.begin()
    pool.rollback = AsyncMock(side_effect=RuntimeError("connection lost"))

    with pytest.raises(RollbackError) as exc_info:
        await transaction.rollback()

    assert exc_info.value.original is None
    assert transaction.is_rolled_back


async def test_begin_failure_skips_unit_of_work(pool, runner):
    pool.begin = AsyncMock(side_effect=RuntimeError("read only"))
    unit_of_work = AsyncMock()

    with pytest.raises(BeginTransactionError, match="read only"):
        await runner.run(unit_of_work)

    unit_of_work.assert_not_awaited()
    # The connection was released
    assert await CourseQueries(pool).list_all_categories() == []


async def test_connection_failure_skips_unit_of_work(tmp_path):
    pool = SQLitePool(str(tmp_path / "missing" / "courses.db"))
    unit_of_work = AsyncMock()

    with pytest.raises(DBConnectionError):
        await TransactionRunner(pool, CourseQueries).run(unit_of_work)

    unit_of_work.assert_not_awaited()


async def test_commit_failure_is_not_followed_by_rollback(pool, runner):
    pool.commit = AsyncMock(side_effect=RuntimeError("disk full"))
    pool.rollback = AsyncMock(wraps=pool.rollback)

    async def unit_of_work(queries):
        await queries.create_category(id="c1", name="Backend")

    with pytest.raises(CommitError, match="disk full"):
        await runner.run(unit_of_work)

    pool.rollback.assert_not_awaited()
    assert await CourseQueries(pool).list_all_categories() == []


async def test_handle_unusable_after_run(pool, runner):
    captured = []

    async def unit_of_work(queries):
        captured.append(queries)
        await queries.create_category(id="c1", name="Backend")

    await runner.run(unit_of_work)

    with pytest.raises(TransactionError, match="not active"):
        await captured[0].list_all_categories()


async def test_fresh_executor_per_transaction(pool, runner):
    seen = []

    async def unit_of_work(queries):
        seen.append(queries)

    await runner.run(unit_of_work)
    await runner.run(unit_of_work)

    first, second = seen
    assert first is not second
    assert first.source is not second.source
    assert first.interface is pool


async def test_cancellation_rolls_back(pool, runner):
    written = asyncio.Event()

    async def unit_of_work(queries):
        await queries.create_category(id="c1", name="Backend")
        written.set()
        await asyncio.sleep(10)

    task = asyncio.create_task(runner.run(unit_of_work))
    await written.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert await CourseQueries(pool).list_all_categories() == []


async def test_timeout_rolls_back(pool, runner):
    async def unit_of_work(queries):
        await queries.create_category(id="c1", name="Backend")
        await asyncio.sleep(10)

    with pytest.raises(TransactionTimeoutError):
        await runner.run(unit_of_work, timeout=0.05)

    assert await CourseQueries(pool).list_all_categories() == []


async def test_runner_default_timeout(pool):
    runner = TransactionRunner(pool, CourseQueries, timeout=0.05)

    with pytest.raises(TransactionTimeoutError):
        await runner.run(lambda queries: asyncio.sleep(10))


async def test_transaction_owns_connection(pool):
    transaction = Transaction(pool)
    await transaction.begin()
    await CourseQueries(transaction).create_category(id="c1", name="Backend")

    listing = asyncio.create_task(CourseQueries(pool).list_all_categories())
    await asyncio.sleep(0.01)
    assert not listing.done()

    await transaction.commit()

    assert [category.id for category in await listing] == ["c1"]


async def test_timeout_error_from_unit_of_work_is_kept(pool, runner):
    pool.rollback = AsyncMock(wraps=pool.rollback)

    async def unit_of_work(queries):
        await queries.create_category(id="c1", name="Backend")
        raise TimeoutError("upstream lookup timed out")

    with pytest.raises(TimeoutError, match="upstream lookup") as exc_info:
        await runner.run(unit_of_work, timeout=5)

    assert not isinstance(exc_info.value, TransactionTimeoutError)
    pool.rollback.assert_awaited_once()
    assert await CourseQueries(pool).list_all_categories() == []
