from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from functools import lru_cache
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc
from opentelemetry import trace

from app.core.config import get_settings
from app.services.errors import RepositoryUnavailableError, RepositoryValidationError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class StorageConstraintError(Exception):
    """Raised when a statement violates a database constraint."""

    def __init__(self, message: str, *, constraint: str | None = None) -> None:
        super().__init__(message)
        self.constraint = constraint


class StorageUniqueViolationError(StorageConstraintError):
    """Raised when an insert or update collides with a unique key."""


class StorageForeignKeyViolationError(StorageConstraintError):
    """Raised when a referenced row does not exist."""


class Storage(Protocol):
    async def execute(self, sql: str, values: Sequence[Any] = ()) -> list[dict[str, Any]]: ...


class PostgresStorage:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def execute(self, sql: str, values: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run one statement, binding ``values`` to ``$1..$N`` in order."""
        pool = await self._get_pool()
        with tracer.start_as_current_span("storage.execute") as span:
            span.set_attribute("db.system", "postgresql")
            span.set_attribute("db.parameter_count", len(values))
            try:
                rows = await pool.fetch(sql, *values)
            except pg_exc.UniqueViolationError as exc:
                raise StorageUniqueViolationError(
                    str(exc),
                    constraint=getattr(exc, "constraint_name", None),
                ) from exc
            except pg_exc.ForeignKeyViolationError as exc:
                raise StorageForeignKeyViolationError(
                    str(exc),
                    constraint=getattr(exc, "constraint_name", None),
                ) from exc
            except pg_exc.CheckViolationError as exc:
                raise RepositoryValidationError(
                    f"value violates constraint {getattr(exc, 'constraint_name', None) or 'check'}"
                ) from exc
            except pg_exc.DataError as exc:
                raise RepositoryValidationError(f"invalid value: {exc}") from exc
            except (OSError, pg_exc.PostgresConnectionError) as exc:
                logger.warning("database connection failed during execute: %s", exc)
                raise RepositoryUnavailableError("database unavailable") from exc
            span.set_attribute("db.row_count", len(rows))
        return [dict(row) for row in rows]

    async def ping(self) -> None:
        await self.execute("select 1")

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JOBLY_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            # Another caller may have created the pool while this one waited.
            if self._pool is not None:
                return self._pool
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self.database_url,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                    command_timeout=self.command_timeout_seconds,
                )
            except Exception as exc:  # pragma: no cover - depends on environment
                raise RepositoryUnavailableError("database unavailable") from exc
            return self._pool


@lru_cache
def get_storage() -> PostgresStorage:
    settings = get_settings()
    return PostgresStorage(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )
