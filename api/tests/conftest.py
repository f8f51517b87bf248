from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest

os.environ.setdefault("JOBLY_OTEL_ENABLED", "false")


class ScriptedStorage:
    """Storage fake that replays queued results and records every statement."""

    def __init__(self, *results: list[dict[str, Any]] | Exception) -> None:
        self._results = list(results)
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def execute(self, sql: str, values: Any = ()) -> list[dict[str, Any]]:
        self.calls.append((" ".join(sql.split()), tuple(values)))
        result = self._results.pop(0) if self._results else []
        if isinstance(result, Exception):
            raise result
        return result

    async def ping(self) -> None:
        return None


@pytest.fixture
def make_storage() -> Callable[..., ScriptedStorage]:
    return ScriptedStorage
