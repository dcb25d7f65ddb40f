"""Tests for the SQL layer against a temporary SQLite database."""

from collections.abc import Generator
from unittest.mock import patch

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import OperationalError

from cachestack.db.manager import DatabaseManager
from cachestack.exceptions import KeyNotFoundError
from cachestack.layers.sql import SqlLayer, SqlLayerOptions
from cachestack.service import CacheService


@pytest.fixture
def database_url(temp_db_path: str) -> str:
    return f"sqlite:///{temp_db_path}"


@pytest.fixture
def layer(database_url: str) -> Generator[SqlLayer, None, None]:
    """Create a SQL layer in namespace mx."""
    sql_layer = SqlLayer(SqlLayerOptions(database_url=database_url), namespace="mx")
    yield sql_layer
    sql_layer.db_manager.close()


class TestSqlLayer:
    """Tests for SqlLayer."""

    def test_name(self, layer: SqlLayer) -> None:
        """Test layer name."""
        assert layer.name == "sql"

    @pytest.mark.asyncio
    async def test_table_created_on_first_use(self, layer: SqlLayer) -> None:
        """Test the key/value table is created lazily."""
        assert await layer.contains("foo") is False

        tables = inspect(layer.db_manager.engine).get_table_names()
        assert "key_value" in tables

    @pytest.mark.asyncio
    async def test_set_and_get(self, layer: SqlLayer) -> None:
        """Test basic set and get operations."""
        assert await layer.set("foo", '"bar"') is True
        assert await layer.get("foo") == '"bar"'

    @pytest.mark.asyncio
    async def test_rows_are_namespaced(self, layer: SqlLayer) -> None:
        """Test the stored key carries the namespace prefix."""
        await layer.set("foo", "1")

        table = layer._table
        with layer.db_manager.get_session() as session:
            keys = session.execute(select(table.c.key)).scalars().all()
        assert keys == ["mx:foo"]

    @pytest.mark.asyncio
    async def test_get_missing(self, layer: SqlLayer) -> None:
        """Test a missing row raises KeyNotFoundError."""
        with pytest.raises(KeyNotFoundError):
            await layer.get("nop")

    @pytest.mark.asyncio
    async def test_empty_value_is_a_hit(self, layer: SqlLayer) -> None:
        """Test an empty string row is returned."""
        await layer.set("foo", "")
        assert await layer.get("foo") == ""

    @pytest.mark.asyncio
    async def test_overwrite(self, layer: SqlLayer) -> None:
        """Test writing an existing key replaces the row."""
        await layer.set("foo", "1")
        await layer.set("foo", "2")

        assert await layer.get("foo") == "2"

    @pytest.mark.asyncio
    async def test_get_multi_and_set_multi(self, layer: SqlLayer) -> None:
        """Test batch operations."""
        assert await layer.set_multi({"a": "1", "b": "2", "c": "3"}) is True
        assert await layer.set_multi({"c": "4"}) is True

        assert await layer.get_multi(["a", "c", "z"]) == {"a": "1", "c": "4"}
        assert await layer.get_multi([]) == {}

    @pytest.mark.asyncio
    async def test_delete(self, layer: SqlLayer) -> None:
        """Test delete is idempotent."""
        await layer.set("foo", "1")

        assert await layer.delete("foo") is True
        assert await layer.delete("foo") is True
        assert await layer.contains("foo") is False

    @pytest.mark.asyncio
    async def test_delete_multi(self, layer: SqlLayer) -> None:
        """Test batch delete."""
        await layer.set_multi({"a": "1", "b": "2", "c": "3"})

        assert await layer.delete_multi(["a", "b"]) is True
        assert await layer.get_multi(["a", "b", "c"]) == {"c": "3"}

    @pytest.mark.asyncio
    async def test_flush_respects_namespace(self, layer: SqlLayer, database_url: str) -> None:
        """Test flush only deletes this namespace's rows."""
        other = SqlLayer(SqlLayerOptions(database_url=database_url), namespace="mx_other")
        try:
            await layer.set("foo", "1")
            await other.set("foo", "2")

            assert await layer.flush() is True

            assert await layer.contains("foo") is False
            assert await other.get("foo") == "2"
        finally:
            other.db_manager.close()

    @pytest.mark.asyncio
    async def test_flush_escapes_like_wildcards(self, database_url: str) -> None:
        """Test a namespace containing LIKE wildcards matches literally."""
        percent = SqlLayer(SqlLayerOptions(database_url=database_url), namespace="a%")
        plain = SqlLayer(SqlLayerOptions(database_url=database_url), namespace="ab")
        try:
            await percent.set("foo", "1")
            await plain.set("foo", "2")

            await percent.flush()

            assert await plain.get("foo") == "2"
        finally:
            percent.db_manager.close()
            plain.db_manager.close()

    @pytest.mark.asyncio
    async def test_custom_table_name(self, database_url: str) -> None:
        """Test the table name option."""
        custom = SqlLayer(SqlLayerOptions(database_url=database_url, table_name="cache_rows"))
        try:
            await custom.set("foo", "1")
            tables = inspect(custom.db_manager.engine).get_table_names()
            assert "cache_rows" in tables
        finally:
            custom.db_manager.close()

    @pytest.mark.asyncio
    async def test_shared_db_manager(self, db_manager: DatabaseManager) -> None:
        """Test a caller-supplied manager is used as is."""
        shared = SqlLayer(namespace="mx", db_manager=db_manager)
        await shared.set("foo", "1")

        assert shared.db_manager is db_manager
        assert await shared.get("foo") == "1"

    @pytest.mark.asyncio
    async def test_database_errors_degrade(self, layer: SqlLayer) -> None:
        """Test driver errors become misses and failed writes."""
        error = OperationalError("SELECT", {}, Exception("disk I/O error"))

        with patch.object(layer, "_run", side_effect=error):
            with pytest.raises(KeyNotFoundError):
                await layer.get("foo")
            assert await layer.get_multi(["foo"]) == {}
            assert await layer.set("foo", "1") is False
            assert await layer.contains("foo") is False
            assert await layer.delete("foo") is False
            assert await layer.flush() is False

    @pytest.mark.asyncio
    async def test_health_check(self, layer: SqlLayer) -> None:
        """Test health check reports the table and connection."""
        health = await layer.health_check()

        assert health["layer"] == "sql"
        assert health["table"] == "key_value"
        assert health["connected"] is True


class TestSqlBackedStack:
    """A memory layer in front of the SQL layer."""

    @pytest.mark.asyncio
    async def test_write_through_and_promotion(self, database_url: str) -> None:
        """Test writes reach the database and reads refill the memory layer."""
        service = CacheService(
            {
                "namespace": "mx",
                "layers": [
                    {"layer_name": "memory", "layer_options": {"ttl": 60}},
                    {"layer_name": "sql", "layer_options": {"database_url": database_url}},
                ],
            }
        )
        memory, sql = service.layer_stack
        try:
            assert await service.set("foo", {"bar": [1, 2]}) is True
            assert await sql.get("foo") == '{"bar":[1,2]}'

            await memory.delete("foo")
            assert await service.get("foo") == {"bar": [1, 2]}
            assert await memory.get("foo") == '{"bar":[1,2]}'
        finally:
            await service.close()
