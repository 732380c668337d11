from __future__ import annotations

from contextvars import ContextVar

_db_time_ms: ContextVar[float | None] = ContextVar("db_time_ms", default=None)
_db_queries: ContextVar[int | None] = ContextVar("db_queries", default=None)


def start_db_timer() -> tuple[object, object]:
    return _db_time_ms.set(0.0), _db_queries.set(0)


def stop_db_timer(tokens: tuple[object, object]) -> None:
    time_token, queries_token = tokens
    _db_time_ms.reset(time_token)
    _db_queries.reset(queries_token)


def add_db_time(delta_ms: float) -> None:
    current = _db_time_ms.get()
    if current is None:
        return
    _db_time_ms.set(current + delta_ms)
    _db_queries.set((_db_queries.get() or 0) + 1)


def get_db_time_ms() -> float | None:
    return _db_time_ms.get()


def get_db_query_count() -> int | None:
    return _db_queries.get()
