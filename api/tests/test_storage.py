from __future__ import annotations

import asyncio
from typing import Any

import pytest
from asyncpg import exceptions as pg_exc

import app.services.storage as storage_module
from app.services.errors import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from app.services.jobs import JobRepository
from app.services.storage import (
    PostgresStorage,
    StorageForeignKeyViolationError,
    StorageUniqueViolationError,
)


class _FailingPool:
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def fetch(self, sql: str, *values: Any) -> list[Any]:
        self.calls.append((sql, values))
        raise self.error


def _storage_with_pool(pool: Any) -> PostgresStorage:
    storage = PostgresStorage(database_url="postgresql://jobly@localhost/jobly", min_pool_size=1, max_pool_size=1)
    storage._pool = pool
    return storage


@pytest.mark.parametrize(
    ("driver_error", "expected"),
    [
        (pg_exc.UniqueViolationError("duplicate key value"), StorageUniqueViolationError),
        (pg_exc.ForeignKeyViolationError("missing company"), StorageForeignKeyViolationError),
        (pg_exc.CheckViolationError("salary must be non-negative"), RepositoryValidationError),
        (pg_exc.DataError("invalid input for query argument $1"), RepositoryValidationError),
        (pg_exc.PostgresConnectionError("connection lost"), RepositoryUnavailableError),
        (ConnectionResetError("reset by peer"), RepositoryUnavailableError),
    ],
)
def test_execute_translates_driver_errors(driver_error: Exception, expected: type[Exception]) -> None:
    storage = _storage_with_pool(_FailingPool(driver_error))

    with pytest.raises(expected) as excinfo:
        asyncio.run(storage.execute("select 1", (1,)))

    assert excinfo.value.__cause__ is driver_error


def test_out_of_range_argument_reaches_callers_as_validation_error() -> None:
    pool = _FailingPool(pg_exc.DataError("invalid input for query argument $1: 3000000000 (value out of int32 range)"))
    storage = _storage_with_pool(pool)

    with pytest.raises(RepositoryValidationError, match="invalid value"):
        asyncio.run(storage.execute("select id from jobs where salary = $1", (3000000000,)))
    assert pool.calls == [("select id from jobs where salary = $1", (3000000000,))]


def test_oversized_job_id_is_not_found_without_querying() -> None:
    pool = _FailingPool(pg_exc.DataError("invalid input for query argument $1: 99999999999 (value out of int32 range)"))
    repository = JobRepository(_storage_with_pool(pool))

    with pytest.raises(RepositoryNotFoundError, match="job not found: 99999999999"):
        asyncio.run(repository.get(99999999999))
    assert pool.calls == []


def test_concurrent_first_use_creates_one_pool(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[object] = []

    async def _create_pool(**_: Any) -> object:
        await asyncio.sleep(0)
        pool = object()
        created.append(pool)
        return pool

    monkeypatch.setattr(storage_module.asyncpg, "create_pool", _create_pool)
    storage = PostgresStorage(database_url="postgresql://jobly@localhost/jobly", min_pool_size=1, max_pool_size=1)

    async def _first_use() -> list[object]:
        return list(await asyncio.gather(storage._get_pool(), storage._get_pool(), storage._get_pool()))

    pools = asyncio.run(_first_use())

    assert len(created) == 1
    assert pools == [created[0]] * 3
