from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from app.services.errors import RepositoryNotFoundError, RepositoryValidationError
from app.services.sql import (
    ColumnMapping,
    FilterField,
    FilterKind,
    FilterSpec,
    ParameterizedStatement,
    sql_for_filters,
    sql_for_partial_update,
)
from app.services.storage import Storage, StorageForeignKeyViolationError, get_storage
from app.services.validation import (
    coerce_fraction,
    coerce_number,
    fits_int4,
    require_allowed_fields,
    require_field_updates,
)

logger = logging.getLogger(__name__)

JOB_COLUMNS = ColumnMapping({"companyHandle": "company_handle"})
JOB_FILTERS = FilterSpec(
    fields=(
        FilterField(name="titleLike", kind=FilterKind.PATTERN, column="title"),
        FilterField(name="minSalary", kind=FilterKind.LOWER_BOUND, column="salary", range_key="salary", cast="numeric"),
        FilterField(name="hasEquity", kind=FilterKind.BOOLEAN_GATE, column="equity", predicate='"equity" > 0'),
    )
)
JOB_UPDATABLE_FIELDS = frozenset({"title", "salary", "equity"})

JOB_SELECT_SQL = "id, title, salary, equity, company_handle"


class JobRepository:
    def __init__(
        self,
        storage: Storage,
        *,
        columns: ColumnMapping = JOB_COLUMNS,
        filters: FilterSpec = JOB_FILTERS,
    ) -> None:
        self.storage = storage
        self.columns = columns
        self.filters = filters

    async def create(
        self,
        *,
        title: str,
        company_handle: str,
        salary: Any = None,
        equity: Any = None,
    ) -> dict[str, Any]:
        if salary is not None:
            salary = coerce_number("salary", salary, integer=True)
        if equity is not None:
            equity = coerce_fraction("equity", equity)

        company_rows = await self.storage.execute(
            """
            select handle
            from companies
            where handle = $1
            """,
            (company_handle,),
        )
        if not company_rows:
            raise RepositoryNotFoundError(f"company not found: {company_handle}")

        # The company can still disappear between the check and the insert.
        try:
            rows = await self.storage.execute(
                f"""
                insert into jobs (title, salary, equity, company_handle)
                values ($1, $2, $3, $4)
                returning {JOB_SELECT_SQL}
                """,
                (title, salary, equity, company_handle),
            )
        except StorageForeignKeyViolationError as exc:
            raise RepositoryNotFoundError(f"company not found: {company_handle}") from exc

        job = self._job_row_to_dict(rows[0])
        logger.info("job created id=%s company_handle=%s", job["id"], company_handle)
        return job

    async def find(self, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        where = sql_for_filters(self.filters, filters)
        statement = ParameterizedStatement(
            sql=f"""
            select {JOB_SELECT_SQL}
            from jobs{where.render()}
            order by title, id
            """,
            values=where.values,
        )
        logger.debug("job find predicates=%s params=%s", where.sql or "true", len(statement.values))
        rows = await self.storage.execute(statement.sql, statement.values)
        return [self._job_row_to_dict(row) for row in rows]

    async def get(self, job_id: int) -> dict[str, Any]:
        self._require_storable_id(job_id)
        rows = await self.storage.execute(
            f"""
            select {JOB_SELECT_SQL}
            from jobs
            where id = $1
            """,
            (job_id,),
        )
        if not rows:
            raise RepositoryNotFoundError(f"job not found: {job_id}")
        return self._job_row_to_dict(rows[0])

    async def update(self, job_id: int, updates: Sequence[tuple[str, Any]]) -> dict[str, Any]:
        self._require_storable_id(job_id)
        checked = require_field_updates(updates)
        require_allowed_fields(checked, JOB_UPDATABLE_FIELDS)
        checked = [(name, self._coerce_update_value(name, value)) for name, value in checked]

        set_clause = sql_for_partial_update(checked, self.columns)
        statement = ParameterizedStatement(
            sql=f"""
            update jobs
            set {set_clause.sql}
            where id = ${set_clause.next_index}
            returning {JOB_SELECT_SQL}
            """,
            values=(*set_clause.values, job_id),
        )
        rows = await self.storage.execute(statement.sql, statement.values)
        if not rows:
            raise RepositoryNotFoundError(f"job not found: {job_id}")

        logger.info("job updated id=%s fields=%s", job_id, ",".join(name for name, _ in checked))
        return self._job_row_to_dict(rows[0])

    async def remove(self, job_id: int) -> None:
        self._require_storable_id(job_id)
        rows = await self.storage.execute(
            """
            delete from jobs
            where id = $1
            returning id
            """,
            (job_id,),
        )
        if not rows:
            raise RepositoryNotFoundError(f"job not found: {job_id}")
        logger.info("job removed id=%s", job_id)

    @staticmethod
    def _require_storable_id(job_id: int) -> None:
        # Ids are serial integers; anything wider cannot name a stored job.
        if not fits_int4(job_id):
            raise RepositoryNotFoundError(f"job not found: {job_id}")

    @staticmethod
    def _coerce_update_value(name: str, value: Any) -> Any:
        if value is None:
            if name == "title":
                raise RepositoryValidationError("title cannot be null")
            return None
        if name == "salary":
            return coerce_number(name, value, integer=True)
        if name == "equity":
            return coerce_fraction(name, value)
        return value

    @staticmethod
    def _job_row_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "salary": row["salary"],
            "equity": row["equity"],
            "companyHandle": row["company_handle"],
        }


def get_job_repository() -> JobRepository:
    return JobRepository(get_storage())
