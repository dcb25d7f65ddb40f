"""Relational layer: the durable end of a stack."""

import asyncio
import logging
import threading
from typing import Any, Callable, TypeVar

from sqlalchemy import delete, exists, insert, select
from sqlalchemy.exc import SQLAlchemyError

from cachestack.config import settings
from cachestack.db.manager import DatabaseManager
from cachestack.db.models import key_value_table
from cachestack.exceptions import KeyNotFoundError
from cachestack.layers.base import Layer, LayerOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlLayerOptions(LayerOptions):
    """
    Options for SqlLayer.

    Attributes:
        database_url: SQLAlchemy URL (defaults to CACHESTACK_DATABASE_URL)
        table_name: Key/value table name
        ensure_table_created: Create the table on first use if missing
    """

    database_url: str | None = None
    table_name: str = "key_value"
    ensure_table_created: bool = True


class SqlLayer(Layer):
    """
    Key/value table in any SQLAlchemy-supported database.

    Writes replace existing rows (delete then insert) inside one
    transaction so no dialect-specific upsert is needed. Calls run in
    a worker thread because the engine is synchronous.
    """

    Options = SqlLayerOptions

    def __init__(
        self,
        options: SqlLayerOptions | None = None,
        namespace: str = "",
        db_manager: DatabaseManager | None = None,
    ) -> None:
        super().__init__(options, namespace)
        self._db = db_manager or DatabaseManager(
            database_url=self.options.database_url or settings.database_url
        )
        self._table = key_value_table(self.options.table_name, self._db.metadata)
        self._table_ready = not self.options.ensure_table_created
        self._table_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "sql"

    @property
    def db_manager(self) -> DatabaseManager:
        return self._db

    def _ensure_table(self) -> None:
        if self._table_ready:
            return
        with self._table_lock:
            if not self._table_ready:
                self._table.create(bind=self._db.engine, checkfirst=True)
                self._table_ready = True

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking database call in a worker thread."""

        def call() -> T:
            self._ensure_table()
            return fn(*args)

        return await asyncio.to_thread(call)

    def _select_one(self, key: str) -> str | None:
        t = self._table
        with self._db.get_session() as session:
            row = session.execute(select(t.c.value).where(t.c.key == key).limit(1)).first()
        if row is None:
            return None
        return row[0]

    def _select_many(self, keys: list[str]) -> dict[str, str]:
        t = self._table
        with self._db.get_session() as session:
            rows = session.execute(select(t.c.key, t.c.value).where(t.c.key.in_(keys))).all()
        return {row[0]: row[1] for row in rows}

    def _replace(self, data: dict[str, str]) -> None:
        t = self._table
        with self._db.get_session() as session:
            session.execute(delete(t).where(t.c.key.in_(list(data))))
            session.execute(insert(t), [{"key": k, "value": v} for k, v in data.items()])

    def _exists(self, key: str) -> bool:
        t = self._table
        with self._db.get_session() as session:
            return bool(session.execute(select(exists().where(t.c.key == key))).scalar())

    def _delete_many(self, keys: list[str]) -> None:
        t = self._table
        with self._db.get_session() as session:
            session.execute(delete(t).where(t.c.key.in_(keys)))

    def _delete_prefix(self, prefix: str) -> int:
        t = self._table
        with self._db.get_session() as session:
            result = session.execute(delete(t).where(t.c.key.startswith(prefix, autoescape=True)))
        return result.rowcount

    async def get(self, key: str) -> str:
        value = None
        try:
            value = await self._run(self._select_one, self._namespaced_key(key))
        except SQLAlchemyError as e:
            logger.error(f"SQL GET error for {key}: {e}")

        if value is None:
            raise KeyNotFoundError(key)
        return value

    async def get_multi(self, keys: list[str]) -> dict[str, str]:
        if not keys:
            return {}

        try:
            rows = await self._run(self._select_many, [self._namespaced_key(k) for k in keys])
        except SQLAlchemyError as e:
            logger.error(f"SQL GET_MULTI error: {e}")
            return {}

        return {self._strip_namespace(k): v for k, v in rows.items() if v is not None}

    async def set(self, key: str, value: str) -> bool:
        return await self.set_multi({key: value})

    async def set_multi(self, data: dict[str, str]) -> bool:
        if not data:
            return True

        try:
            await self._run(self._replace, {self._namespaced_key(k): v for k, v in data.items()})
            return True
        except SQLAlchemyError as e:
            logger.error(f"SQL SET error: {e}")
            return False

    async def contains(self, key: str) -> bool:
        try:
            return await self._run(self._exists, self._namespaced_key(key))
        except SQLAlchemyError as e:
            logger.error(f"SQL EXISTS error for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        return await self.delete_multi([key])

    async def delete_multi(self, keys: list[str]) -> bool:
        if not keys:
            return True

        try:
            await self._run(self._delete_many, [self._namespaced_key(k) for k in keys])
            return True
        except SQLAlchemyError as e:
            logger.error(f"SQL DELETE error: {e}")
            return False

    async def flush(self) -> bool:
        try:
            count = await self._run(self._delete_prefix, self._namespaced_key(""))
            logger.debug(f"Flushed {count} rows from {self._table.name}")
            return True
        except SQLAlchemyError as e:
            logger.error(f"SQL FLUSH error: {e}")
            return False

    async def close(self) -> None:
        await asyncio.to_thread(self._db.close)

    async def health_check(self) -> dict[str, Any]:
        health = await super().health_check()
        health["table"] = self._table.name
        health["connected"] = await asyncio.to_thread(self._db.health_check)
        return health
