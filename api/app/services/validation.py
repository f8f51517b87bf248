from __future__ import annotations

from collections.abc import Collection, Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

from app.services.errors import RepositoryValidationError

TRUE_STRINGS = {"1", "true", "yes", "on"}
FALSE_STRINGS = {"0", "false", "no", "off"}

# Bounds of a Postgres ``integer`` column or parameter.
INT4_MIN = -(2**31)
INT4_MAX = 2**31 - 1


def require_field_updates(updates: Iterable[tuple[str, Any]]) -> list[tuple[str, Any]]:
    """Return the updates as a list, rejecting empty and repeated-field requests."""
    checked = list(updates)
    if not checked:
        raise RepositoryValidationError("no data to update")

    seen: set[str] = set()
    for name, _ in checked:
        if name in seen:
            raise RepositoryValidationError(f"duplicate field in update: {name}")
        seen.add(name)
    return checked


def require_allowed_fields(updates: Iterable[tuple[str, Any]], allowed: Collection[str]) -> None:
    unexpected = [name for name, _ in updates if name not in allowed]
    if unexpected:
        raise RepositoryValidationError(f"fields cannot be updated: {', '.join(unexpected)}")


def coerce_number(name: str, value: Any, *, integer: bool = False) -> int | Decimal:
    """Parse a non-negative number.

    Query strings arrive as text, so numeric strings are accepted. Bools, NaN
    and infinities are not numbers here. Integer fields come back as ``int``
    and must fit a Postgres ``integer``; everything else is a ``Decimal``.
    """
    number = _parse_decimal(name, value)
    if number < 0:
        raise RepositoryValidationError(f"{name} must be non-negative")
    if integer:
        if number != number.to_integral_value():
            raise RepositoryValidationError(f"{name} must be an integer")
        if number > INT4_MAX:
            raise RepositoryValidationError(f"{name} must be at most {INT4_MAX}")
        return int(number)
    return number


def coerce_fraction(name: str, value: Any) -> Decimal:
    number = _parse_decimal(name, value)
    if number < 0 or number > 1:
        raise RepositoryValidationError(f"{name} must be between 0 and 1")
    return number


def coerce_flag(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_STRINGS:
            return True
        if normalized in FALSE_STRINGS:
            return False
    raise RepositoryValidationError(f"{name} must be a boolean")


def coerce_pattern(name: str, value: Any) -> str | None:
    if not isinstance(value, str):
        raise RepositoryValidationError(f"{name} must be a string")
    stripped = value.strip()
    return stripped or None


def fits_int4(value: int) -> bool:
    return INT4_MIN <= value <= INT4_MAX


def check_range(lower_name: str, lower: Any, upper_name: str, upper: Any) -> None:
    # A missing bound never inverts a range; equal bounds are a valid range.
    if lower is None or upper is None:
        return
    if lower > upper:
        raise RepositoryValidationError(f"{lower_name} cannot be greater than {upper_name}")


def _parse_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise RepositoryValidationError(f"{name} must be a number")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise RepositoryValidationError(f"{name} must be a number") from exc
    else:
        raise RepositoryValidationError(f"{name} must be a number")
    if not number.is_finite():
        raise RepositoryValidationError(f"{name} must be a number")
    return number
