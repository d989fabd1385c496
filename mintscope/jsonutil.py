"""JSON helpers backed by orjson."""

from __future__ import annotations

from typing import Any, Callable

import orjson

__all__ = ["loads", "dumps", "dumps_bytes"]


def loads(data: str | bytes) -> Any:
    """Parse JSON from ``data`` into Python objects."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return orjson.loads(data)


def _resolve_opts(sort_keys: bool, indent: int | None, allow_non_str_keys: bool) -> int:
    opts = 0
    if indent:
        opts |= orjson.OPT_INDENT_2
    if sort_keys:
        opts |= orjson.OPT_SORT_KEYS
    if allow_non_str_keys:
        opts |= orjson.OPT_NON_STR_KEYS
    return opts


def dumps_bytes(
    obj: Any,
    *,
    sort_keys: bool = False,
    indent: int | None = None,
    default: Callable[[Any], Any] | None = None,
    allow_non_str_keys: bool = False,
) -> bytes:
    """Serialize ``obj`` to a JSON byte string."""
    opts = _resolve_opts(sort_keys, indent, allow_non_str_keys)
    return orjson.dumps(obj, option=opts, default=default)


def dumps(
    obj: Any,
    *,
    sort_keys: bool = False,
    indent: int | None = None,
    default: Callable[[Any], Any] | None = None,
    allow_non_str_keys: bool = False,
) -> str:
    """Serialize ``obj`` to a JSON formatted ``str``."""
    return dumps_bytes(
        obj,
        sort_keys=sort_keys,
        indent=indent,
        default=default,
        allow_non_str_keys=allow_non_str_keys,
    ).decode("utf-8")
