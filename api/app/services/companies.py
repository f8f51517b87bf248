from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from app.services.errors import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from app.services.sql import (
    ColumnMapping,
    FilterField,
    FilterKind,
    FilterSpec,
    ParameterizedStatement,
    sql_for_filters,
    sql_for_partial_update,
)
from app.services.storage import Storage, StorageUniqueViolationError, get_storage
from app.services.validation import coerce_number, require_allowed_fields, require_field_updates

logger = logging.getLogger(__name__)

COMPANY_COLUMNS = ColumnMapping(
    {
        "numEmployees": "num_employees",
        "logoUrl": "logo_url",
    }
)
COMPANY_FILTERS = FilterSpec(
    fields=(
        FilterField(name="nameLike", kind=FilterKind.PATTERN, column="name"),
        FilterField(
            name="minEmployees",
            kind=FilterKind.LOWER_BOUND,
            column="num_employees",
            range_key="employees",
            integer=True,
        ),
        FilterField(
            name="maxEmployees",
            kind=FilterKind.UPPER_BOUND,
            column="num_employees",
            range_key="employees",
            integer=True,
        ),
    )
)
COMPANY_UPDATABLE_FIELDS = frozenset({"name", "description", "numEmployees", "logoUrl"})

COMPANY_SELECT_SQL = "handle, name, description, num_employees, logo_url"


class CompanyRepository:
    def __init__(
        self,
        storage: Storage,
        *,
        columns: ColumnMapping = COMPANY_COLUMNS,
        filters: FilterSpec = COMPANY_FILTERS,
    ) -> None:
        self.storage = storage
        self.columns = columns
        self.filters = filters

    async def create(
        self,
        *,
        handle: str,
        name: str,
        description: str | None = None,
        num_employees: Any = None,
        logo_url: str | None = None,
    ) -> dict[str, Any]:
        """Insert a company and return it in external form.

        The unique constraints on ``handle`` and ``name`` decide duplicates, so
        two concurrent creators cannot both succeed.
        """
        if num_employees is not None:
            num_employees = coerce_number("numEmployees", num_employees, integer=True)

        try:
            rows = await self.storage.execute(
                f"""
                insert into companies (handle, name, description, num_employees, logo_url)
                values ($1, $2, $3, $4, $5)
                returning {COMPANY_SELECT_SQL}
                """,
                (handle, name, description, num_employees, logo_url),
            )
        except StorageUniqueViolationError as exc:
            raise RepositoryConflictError(f"duplicate company: {handle}") from exc

        logger.info("company created handle=%s", handle)
        return self._company_row_to_dict(rows[0])

    async def find(self, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        where = sql_for_filters(self.filters, filters)
        statement = ParameterizedStatement(
            sql=f"""
            select {COMPANY_SELECT_SQL}
            from companies{where.render()}
            order by name, handle
            """,
            values=where.values,
        )
        logger.debug("company find predicates=%s params=%s", where.sql or "true", len(statement.values))
        rows = await self.storage.execute(statement.sql, statement.values)
        return [self._company_row_to_dict(row) for row in rows]

    async def get(self, handle: str) -> dict[str, Any]:
        rows = await self.storage.execute(
            f"""
            select {COMPANY_SELECT_SQL}
            from companies
            where handle = $1
            """,
            (handle,),
        )
        if not rows:
            raise RepositoryNotFoundError(f"company not found: {handle}")

        company = self._company_row_to_dict(rows[0])
        job_rows = await self.storage.execute(
            """
            select id, title, salary, equity
            from jobs
            where company_handle = $1
            order by id
            """,
            (handle,),
        )
        company["jobs"] = [self._company_job_row_to_dict(row) for row in job_rows]
        return company

    async def update(self, handle: str, updates: Sequence[tuple[str, Any]]) -> dict[str, Any]:
        """Apply a partial update; fields missing from ``updates`` are untouched."""
        checked = require_field_updates(updates)
        require_allowed_fields(checked, COMPANY_UPDATABLE_FIELDS)
        checked = [(name, self._coerce_update_value(name, value)) for name, value in checked]

        set_clause = sql_for_partial_update(checked, self.columns)
        statement = ParameterizedStatement(
            sql=f"""
            update companies
            set {set_clause.sql}
            where handle = ${set_clause.next_index}
            returning {COMPANY_SELECT_SQL}
            """,
            values=(*set_clause.values, handle),
        )
        try:
            rows = await self.storage.execute(statement.sql, statement.values)
        except StorageUniqueViolationError as exc:
            raise RepositoryConflictError(f"duplicate company name for {handle}") from exc
        if not rows:
            raise RepositoryNotFoundError(f"company not found: {handle}")

        logger.info("company updated handle=%s fields=%s", handle, ",".join(name for name, _ in checked))
        return self._company_row_to_dict(rows[0])

    async def remove(self, handle: str) -> None:
        rows = await self.storage.execute(
            """
            delete from companies
            where handle = $1
            returning handle
            """,
            (handle,),
        )
        if not rows:
            raise RepositoryNotFoundError(f"company not found: {handle}")
        logger.info("company removed handle=%s", handle)

    @staticmethod
    def _coerce_update_value(name: str, value: Any) -> Any:
        if name == "name" and value is None:
            raise RepositoryValidationError("name cannot be null")
        if name == "numEmployees" and value is not None:
            return coerce_number(name, value, integer=True)
        return value

    @staticmethod
    def _company_row_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "handle": row["handle"],
            "name": row["name"],
            "description": row["description"],
            "numEmployees": row["num_employees"],
            "logoUrl": row["logo_url"],
        }

    @staticmethod
    def _company_job_row_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "salary": row["salary"],
            "equity": row["equity"],
        }


def get_company_repository() -> CompanyRepository:
    return CompanyRepository(get_storage())
