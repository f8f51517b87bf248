"""Positional SQL fragments for partial updates and optional filters.

Only identifiers owned by application code (a ``ColumnMapping`` or a
``FilterSpec``) are interpolated into statement text. Every value is bound as a
``$N`` parameter, and the Nth placeholder always refers to the Nth value.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple

from app.services.errors import RepositoryValidationError
from app.services.validation import (
    check_range,
    coerce_flag,
    coerce_number,
    coerce_pattern,
    require_field_updates,
)


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks a field the caller did not supply; ``None`` means "set to null".
UNSET: Any = _Unset()


class FieldUpdate(NamedTuple):
    name: str
    value: Any


def field_updates(pairs: Iterable[tuple[str, Any]]) -> tuple[FieldUpdate, ...]:
    """Build an ordered update request, dropping fields that are ``UNSET``."""
    return tuple(FieldUpdate(name, value) for name, value in pairs if value is not UNSET)


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    columns: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    def resolve(self, name: str) -> str:
        return self.columns.get(name, name)


@dataclass(frozen=True, slots=True)
class SetClause:
    sql: str
    values: tuple[Any, ...]
    next_index: int


@dataclass(frozen=True, slots=True)
class WhereClause:
    predicates: tuple[str, ...]
    values: tuple[Any, ...]
    next_index: int

    @property
    def sql(self) -> str:
        return " AND ".join(self.predicates)

    def render(self) -> str:
        if not self.predicates:
            return ""
        return f" WHERE {self.sql}"


@dataclass(frozen=True, slots=True)
class ParameterizedStatement:
    sql: str
    values: tuple[Any, ...] = ()


class FilterKind(str, Enum):
    PATTERN = "pattern"
    LOWER_BOUND = "lower_bound"
    UPPER_BOUND = "upper_bound"
    BOOLEAN_GATE = "boolean_gate"


@dataclass(frozen=True, slots=True)
class FilterField:
    name: str
    kind: FilterKind
    column: str
    range_key: str | None = None
    integer: bool = False
    cast: str | None = None
    predicate: str | None = None


@dataclass(frozen=True, slots=True)
class FilterSpec:
    fields: tuple[FilterField, ...]

    @property
    def names(self) -> frozenset[str]:
        return frozenset(item.name for item in self.fields)

    def ranges(self) -> list[tuple[FilterField, FilterField]]:
        lower_bounds = {
            item.range_key: item
            for item in self.fields
            if item.kind is FilterKind.LOWER_BOUND and item.range_key is not None
        }
        return [
            (lower_bounds[item.range_key], item)
            for item in self.fields
            if item.kind is FilterKind.UPPER_BOUND and item.range_key in lower_bounds
        ]


def quote_identifier(name: str) -> str:
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def sql_for_partial_update(
    updates: Sequence[tuple[str, Any]],
    mapping: ColumnMapping,
    *,
    start_index: int = 1,
) -> SetClause:
    """Build ``"col1"=$1, "col2"=$2, ...`` in the caller's field order.

    ``next_index`` is the placeholder number a trailing ``WHERE`` should use.
    Raises ``RepositoryValidationError`` for an empty update.
    """
    checked = require_field_updates(updates)
    assignments: list[str] = []
    values: list[Any] = []

    def bind(value: Any) -> str:
        values.append(value)
        return f"${start_index + len(values) - 1}"

    for name, value in checked:
        assignments.append(f"{quote_identifier(mapping.resolve(name))}={bind(value)}")

    return SetClause(
        sql=", ".join(assignments),
        values=tuple(values),
        next_index=start_index + len(values),
    )


def normalize_filters(spec: FilterSpec, supplied: Mapping[str, Any] | None) -> dict[str, Any]:
    """Type-check supplied filters and drop the ones that contribute nothing.

    Every check runs here, before any predicate text exists.
    """
    supplied = dict(supplied or {})
    unknown = sorted(set(supplied) - spec.names)
    if unknown:
        raise RepositoryValidationError(f"unsupported filters: {', '.join(unknown)}")

    normalized: dict[str, Any] = {}
    for item in spec.fields:
        raw = supplied.get(item.name, UNSET)
        if raw is UNSET or raw is None:
            continue
        if item.kind is FilterKind.PATTERN:
            value = coerce_pattern(item.name, raw)
            if value is None:
                continue
        elif item.kind is FilterKind.BOOLEAN_GATE:
            value = coerce_flag(item.name, raw)
        else:
            value = coerce_number(item.name, raw, integer=item.integer)
        normalized[item.name] = value

    for lower, upper in spec.ranges():
        check_range(lower.name, normalized.get(lower.name), upper.name, normalized.get(upper.name))
    return normalized


def sql_for_filters(
    spec: FilterSpec,
    supplied: Mapping[str, Any] | None,
    *,
    start_index: int = 1,
) -> WhereClause:
    normalized = normalize_filters(spec, supplied)
    predicates: list[str] = []
    values: list[Any] = []

    def bind(value: Any, cast: str | None = None) -> str:
        values.append(value)
        token = f"${start_index + len(values) - 1}"
        return f"{token}::{cast}" if cast else token

    # Declared order, not input order, so the same filters always yield the same text.
    for item in spec.fields:
        if item.name not in normalized:
            continue
        value = normalized[item.name]
        column = quote_identifier(item.column)
        if item.kind is FilterKind.PATTERN:
            predicates.append(f"{column} ILIKE {bind(f'%{escape_like(value)}%')}")
        elif item.kind is FilterKind.LOWER_BOUND:
            predicates.append(f"{column} >= {bind(value, item.cast)}")
        elif item.kind is FilterKind.UPPER_BOUND:
            predicates.append(f"{column} <= {bind(value, item.cast)}")
        elif value:
            predicates.append(item.predicate or f"{column} > 0")

    return WhereClause(
        predicates=tuple(predicates),
        values=tuple(values),
        next_index=start_index + len(values),
    )
