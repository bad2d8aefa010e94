"""Helpers for plain JSON values (the output of ``json.loads``)."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and no whitespace; NaN and Infinity are rejected."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def json_pointer(parts: Iterable[Any]) -> str:
    """Render a path of keys/indices as an RFC 6901 JSON pointer."""
    return "".join("/" + str(p).replace("~", "~0").replace("/", "~1") for p in parts)


def non_finite_paths(value: Any, prefix: tuple[Any, ...] = ()) -> list[str]:
    """JSON pointers to every NaN or infinite number inside ``value``.

    ``json.loads`` accepts ``NaN`` and ``Infinity`` but they are not JSON and
    cannot be written back out as JSON.
    """
    if isinstance(value, float):
        return [] if math.isfinite(value) else [json_pointer(prefix)]
    paths: list[str] = []
    if isinstance(value, dict):
        for key, item in value.items():
            paths.extend(non_finite_paths(item, prefix + (key,)))
    elif isinstance(value, list):
        for index, item in enumerate(value):
            paths.extend(non_finite_paths(item, prefix + (index,)))
    return paths


__all__ = ["canonical_json", "json_pointer", "non_finite_paths"]
