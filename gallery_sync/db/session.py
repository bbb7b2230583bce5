"""Database session management.

This module provides the DatabaseSessionManager class, which repositories use
for every database access. It handles:
- Connection management with SQLite (WAL, foreign keys on)
- Serialized writes through an asyncio lock
- Async operation wrappers with timeout and locked-database retry
- Schema creation
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import peewee
from playhouse.sqlite_ext import SqliteExtDatabase

from gallery_sync.db.models import ALL_MODELS, database_proxy

if TYPE_CHECKING:
    from gallery_sync.config import DatabaseConfig, RuntimeConfig

# Default database operation constants
DB_OPERATION_TIMEOUT = 30.0
DB_MAX_RETRIES = 3


@dataclass
class DatabaseSessionManager:
    """Peewee-backed database session manager.

    Attributes:
        path: Path to the SQLite database file
        operation_timeout: Default timeout for database operations in seconds
        max_retries: Maximum retries while the database file is locked or busy
    """

    path: str
    _logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    _database: peewee.SqliteDatabase = field(init=False)
    _write_lock: asyncio.Lock = field(init=False)

    operation_timeout: float = field(default=DB_OPERATION_TIMEOUT)
    max_retries: int = field(default=DB_MAX_RETRIES)

    def __post_init__(self) -> None:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._database = SqliteExtDatabase(
            self.path,
            pragmas={
                "journal_mode": "wal",
                "synchronous": "normal",
                "foreign_keys": 1,
            },
            check_same_thread=False,
        )
        database_proxy.initialize(self._database)
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls, runtime: RuntimeConfig, database: DatabaseConfig
    ) -> DatabaseSessionManager:
        return cls(
            path=runtime.db_path,
            operation_timeout=database.operation_timeout,
            max_retries=database.max_retries,
        )

    @property
    def database(self) -> peewee.SqliteDatabase:
        """Access the underlying Peewee database instance."""
        return self._database

    def connection_context(self) -> Any:
        """Return a connection context manager."""
        return self._database.connection_context()

    def migrate(self) -> None:
        """Create tables that do not exist yet."""
        with self._database.connection_context():
            self._database.create_tables(ALL_MODELS, safe=True)
        self._logger.info("db_migrated", extra={"path": self._mask_path(self.path)})

    def close(self) -> None:
        if not self._database.is_closed():
            self._database.close()

    async def _safe_db_operation(
        self,
        operation: Any,
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "database_operation",
        read_only: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Execute a database operation in a worker thread with timeout and retry.

        Raises:
            TimeoutError: If the operation times out
            peewee.OperationalError: If the database stays locked or busy after retries
            peewee.IntegrityError: If a constraint is violated
        """

        def _op_wrapper() -> Any:
            with self._database.connection_context():
                return operation(*args, **kwargs)

        async def _run() -> Any:
            if read_only:
                # WAL lets readers proceed alongside the single writer.
                return await asyncio.to_thread(_op_wrapper)
            async with self._write_lock:
                return await asyncio.to_thread(_op_wrapper)

        return await self._with_retries(_run, timeout=timeout, operation_name=operation_name)

    async def _safe_db_transaction(
        self,
        operation: Any,
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "database_transaction",
        **kwargs: Any,
    ) -> Any:
        """Execute a database operation inside one transaction, rolled back on error."""

        def _execute_in_transaction() -> Any:
            with self._database.connection_context(), self._database.atomic() as txn:
                try:
                    return operation(*args, **kwargs)
                except BaseException:
                    txn.rollback()
                    raise

        async def _run() -> Any:
            async with self._write_lock:
                return await asyncio.to_thread(_execute_in_transaction)

        return await self._with_retries(_run, timeout=timeout, operation_name=operation_name)

    async def _with_retries(
        self, run: Any, *, timeout: float | None, operation_name: str
    ) -> Any:
        if timeout is None:
            timeout = self.operation_timeout

        retries = 0
        while True:
            try:
                return await asyncio.wait_for(run(), timeout=timeout)

            except TimeoutError:
                self._logger.exception(
                    "db_operation_timeout",
                    extra={"operation": operation_name, "timeout": timeout, "retries": retries},
                )
                raise

            except peewee.OperationalError as e:
                error_msg = str(e).lower()
                if ("locked" in error_msg or "busy" in error_msg) and retries < self.max_retries:
                    retries += 1
                    wait_time = 0.1 * (2**retries)
                    self._logger.warning(
                        "db_locked_retrying",
                        extra={
                            "operation": operation_name,
                            "retry": retries,
                            "max_retries": self.max_retries,
                            "wait_time": wait_time,
                            "error": str(e),
                        },
                    )
                    await asyncio.sleep(wait_time)
                    continue

                self._logger.exception(
                    "db_operational_error",
                    extra={"operation": operation_name, "retries": retries, "error": str(e)},
                )
                raise

            except peewee.IntegrityError as e:
                self._logger.exception(
                    "db_integrity_error",
                    extra={"operation": operation_name, "error": str(e)},
                )
                raise

    @staticmethod
    def _mask_path(path: str) -> str:
        try:
            p = Path(path)
            if not p.name:
                return str(p)
            parent = p.parent.name
            if parent:
                return f".../{parent}/{p.name}"
            return p.name
        except (OSError, ValueError, TypeError):
            return "..."
