from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest

from app.services.companies import CompanyRepository
from app.services.errors import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from app.services.jobs import JobRepository
from app.services.storage import PostgresStorage

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "db" / "schema.sql"

T = TypeVar("T")


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("JOBLY_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require JOBLY_DATABASE_URL or DATABASE_URL")
    return url


@pytest.fixture(autouse=True)
def reset_tables(database_url: str) -> None:
    asyncio.run(_reset_catalog(database_url))


def _run(
    database_url: str,
    operation: Callable[[CompanyRepository, JobRepository], Awaitable[T]],
) -> T:
    async def _scoped() -> T:
        storage = PostgresStorage(database_url=database_url, min_pool_size=1, max_pool_size=2)
        try:
            return await operation(CompanyRepository(storage), JobRepository(storage))
        finally:
            await storage.close()

    return asyncio.run(_scoped())


async def _reset_catalog(database_url: str) -> None:
    conn = await asyncpg.connect(database_url)
    try:
        await conn.execute(SCHEMA_PATH.read_text())
        await conn.execute("truncate jobs, companies restart identity cascade")
        await conn.executemany(
            """
            insert into companies (handle, name, num_employees, description, logo_url)
            values ($1, $2, $3, $4, $5)
            """,
            [
                ("c1", "C1", 1, "Desc1", "http://c1.img"),
                ("c2", "C2", 2, "Desc2", "http://c2.img"),
                ("c3", "C3", 3, "Desc3", "http://c3.img"),
            ],
        )
        await conn.executemany(
            """
            insert into jobs (title, salary, equity, company_handle)
            values ($1, $2, $3, $4)
            """,
            [
                ("t1-a", 50000, Decimal("0.050"), "c1"),
                ("t2-a", 90000, Decimal("0.095"), "c1"),
                ("t3-b", 150000, Decimal("0"), "c2"),
            ],
        )
    finally:
        await conn.close()


def _titles(rows: list[dict[str, Any]]) -> list[str]:
    return [row["title"] for row in rows]


def test_find_jobs_without_filters_returns_everything_in_title_order(database_url: str) -> None:
    jobs = _run(database_url, lambda companies, jobs: jobs.find())

    assert _titles(jobs) == ["t1-a", "t2-a", "t3-b"]


def test_find_jobs_ands_salary_and_equity(database_url: str) -> None:
    jobs = _run(database_url, lambda companies, jobs: jobs.find({"minSalary": 70000, "hasEquity": True}))

    assert _titles(jobs) == ["t2-a"]


def test_find_jobs_title_substring_is_case_insensitive(database_url: str) -> None:
    jobs = _run(database_url, lambda companies, jobs: jobs.find({"titleLike": "A"}))

    assert _titles(jobs) == ["t1-a", "t2-a"]


def test_find_companies_with_equal_bounds(database_url: str) -> None:
    companies = _run(
        database_url,
        lambda companies, jobs: companies.find({"nameLike": "c", "minEmployees": 2, "maxEmployees": 2}),
    )

    assert [company["handle"] for company in companies] == ["c2"]


def test_find_is_repeatable(database_url: str) -> None:
    async def _twice(companies: CompanyRepository, jobs: JobRepository) -> tuple[list, list]:
        filters = {"minEmployees": 1}
        return await companies.find(filters), await companies.find(filters)

    first, second = _run(database_url, _twice)

    assert first == second
    assert [company["handle"] for company in first] == ["c1", "c2", "c3"]


def test_inverted_employee_range_is_rejected(database_url: str) -> None:
    with pytest.raises(RepositoryValidationError):
        _run(database_url, lambda companies, jobs: companies.find({"minEmployees": 3, "maxEmployees": 1}))


def test_company_create_get_round_trip(database_url: str) -> None:
    async def _create_then_get(companies: CompanyRepository, jobs: JobRepository) -> tuple[dict, dict]:
        created = await companies.create(
            handle="new",
            name="New",
            description="New Description",
            num_employees=1,
            logo_url="http://new.img",
        )
        return created, await companies.get("new")

    created, fetched = _run(database_url, _create_then_get)

    assert created == {
        "handle": "new",
        "name": "New",
        "description": "New Description",
        "numEmployees": 1,
        "logoUrl": "http://new.img",
    }
    assert fetched == {**created, "jobs": []}


def test_company_get_embeds_its_jobs(database_url: str) -> None:
    company = _run(database_url, lambda companies, jobs: companies.get("c1"))

    assert _titles(company["jobs"]) == ["t1-a", "t2-a"]
    assert company["jobs"][0]["equity"] == Decimal("0.050")


def test_duplicate_company_conflicts(database_url: str) -> None:
    with pytest.raises(RepositoryConflictError, match="duplicate company: c1"):
        _run(database_url, lambda companies, jobs: companies.create(handle="c1", name="Other"))


def test_company_update_leaves_other_fields_unchanged(database_url: str) -> None:
    async def _update_then_get(companies: CompanyRepository, jobs: JobRepository) -> dict:
        await companies.update("c1", [("name", "New"), ("logoUrl", None)])
        return await companies.get("c1")

    company = _run(database_url, _update_then_get)

    assert company["name"] == "New"
    assert company["logoUrl"] is None
    assert company["description"] == "Desc1"
    assert company["numEmployees"] == 1


def test_update_and_remove_missing_company(database_url: str) -> None:
    with pytest.raises(RepositoryNotFoundError):
        _run(database_url, lambda companies, jobs: companies.update("nope", [("name", "x")]))
    with pytest.raises(RepositoryNotFoundError):
        _run(database_url, lambda companies, jobs: companies.remove("nope"))


def test_removing_company_removes_its_jobs(database_url: str) -> None:
    async def _remove(companies: CompanyRepository, jobs: JobRepository) -> list:
        await companies.remove("c1")
        return await jobs.find()

    assert _titles(_run(database_url, _remove)) == ["t3-b"]


def test_job_create_get_update_round_trip(database_url: str) -> None:
    async def _flow(companies: CompanyRepository, jobs: JobRepository) -> tuple[dict, dict]:
        created = await jobs.create(title="new", salary=100000, equity="0.05", company_handle="c3")
        await jobs.update(created["id"], [("salary", 120000)])
        return created, await jobs.get(created["id"])

    created, fetched = _run(database_url, _flow)

    assert created["companyHandle"] == "c3"
    assert fetched == {**created, "salary": 120000}


def test_job_create_for_missing_company_is_not_found(database_url: str) -> None:
    with pytest.raises(RepositoryNotFoundError, match="company not found: nope"):
        _run(database_url, lambda companies, jobs: jobs.create(title="new", company_handle="nope"))


def test_update_and_remove_missing_job(database_url: str) -> None:
    with pytest.raises(RepositoryNotFoundError):
        _run(database_url, lambda companies, jobs: jobs.update(99999, [("title", "x")]))
    with pytest.raises(RepositoryNotFoundError):
        _run(database_url, lambda companies, jobs: jobs.remove(99999))
