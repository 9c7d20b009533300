import pytest

from codeless.codegen import StatementError, lower_create_table, lower_statements, schema_columns
from codeless.lang import parse
from codeless.runtime import CodelessError, Database, Forbidden, NotFound, SqliteAdapter

TASK = "data Task { title: String, done: Boolean? }"


async def open_database(path):
    schema = parse(TASK).schemas[0]
    columns = {schema.name: schema_columns(schema)}
    adapter = SqliteAdapter(str(path))
    await adapter.connect()
    adapter.prepare({schema.name: lower_statements(schema, "sqlite").as_dict()}, columns)
    await adapter.execute_ddl([lower_create_table(schema, "sqlite")])
    return Database(adapter, columns)


@pytest.mark.asyncio
async def test_crud_round(tmp_path):
    db = await open_database(tmp_path / "store.db")
    try:
        row = await db.Task.save({"title": "a", "done": False, "id": 99, "bogus": 1})
        assert row == {"id": 1, "title": "a", "done": 0}
        assert await db.table("Task").find(1) == row
        updated = await db.Task.update(1, {"title": "b"})
        assert updated == {"id": 1, "title": "b", "done": 0}
        assert await db.Task.remove(1) is True
        assert await db.Task.remove(1) is False
        assert await db.Task.find(1) is None
    finally:
        await db.adapter.close()


@pytest.mark.asyncio
async def test_missing_rows_raise_not_found(tmp_path):
    db = await open_database(tmp_path / "store.db")
    try:
        with pytest.raises(NotFound, match="Task 5 not found"):
            await db.Task.update(5, {"title": "x"})
        with pytest.raises(NotFound):
            await db.Task.get(5)
    finally:
        await db.adapter.close()


@pytest.mark.asyncio
async def test_digit_string_keys_match_integer_ids(tmp_path):
    db = await open_database(tmp_path / "store.db")
    try:
        row = await db.Task.save({"title": "a"})
        assert await db.Task.get("1") == row
        assert (await db.Task.update("1", {"title": "b"}))["title"] == "b"
        assert await db.Task.find("\u00b9") is None
        assert await db.Task.remove("1") is True
    finally:
        await db.adapter.close()


@pytest.mark.asyncio
async def test_find_all_filters_and_sorts(tmp_path):
    db = await open_database(tmp_path / "store.db")
    try:
        for title, done in (("b", True), ("a", False), ("c", True)):
            await db.Task.save({"title": title, "done": done})
        rows = await db.Task.find_all({"done": True}, order_by={"field": "title", "direction": "desc"})
        assert [row["title"] for row in rows] == ["c", "b"]
        with pytest.raises(CodelessError) as exc_info:
            await db.Task.find_all(order_by="nope")
        assert exc_info.value.status == 400
    finally:
        await db.adapter.close()


@pytest.mark.asyncio
async def test_transaction_rolls_back(tmp_path):
    db = await open_database(tmp_path / "store.db")
    try:
        with pytest.raises(RuntimeError):
            async with db.transaction():
                await db.Task.save({"title": "temp"})
                assert len(await db.Task.find_all()) == 1
                raise RuntimeError("abort")
        assert await db.Task.find_all() == []

        async with db.transaction():
            await db.Task.save({"title": "kept"})
        assert [row["title"] for row in await db.Task.find_all()] == ["kept"]
    finally:
        await db.adapter.close()


@pytest.mark.asyncio
async def test_raw_queries_are_read_only(tmp_path):
    db = await open_database(tmp_path / "store.db")
    try:
        await db.Task.save({"title": "a"})
        assert await db.query('SELECT title FROM "Task" WHERE id = ?', 1) == [{"title": "a"}]
        with pytest.raises(Forbidden):
            await db.query('UPDATE "Task" SET title = ?', "x")
    finally:
        await db.adapter.close()


def test_unknown_tables_are_rejected():
    db = Database(SqliteAdapter(":memory:"), {"Task": ("id", "title")})
    with pytest.raises(StatementError, match="Unknown table 'User'"):
        db.table("User")
    with pytest.raises(AttributeError):
        db.User
    assert repr(db.Task) == "TableStore('Task')"
