"""Board snapshot serialization for stream clients."""

from __future__ import annotations

import dataclasses
import enum
import json
from typing import Any


MAX_FRAME_BYTES = 1024 * 1024


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: _to_jsonable(getattr(value, field.name)) for field in dataclasses.fields(value)}
    if isinstance(value, enum.Enum):
        return _to_jsonable(value.value)
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def serialize_snapshot(snapshot: Any) -> bytes:
    """Serialize a board snapshot (or filtered mapping) into deterministic JSON bytes."""
    payload = _to_jsonable(snapshot)
    data = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    if len(data) > MAX_FRAME_BYTES:
        raise ValueError(f"Serialized frame exceeds max size ({len(data)} bytes > {MAX_FRAME_BYTES}).")
    return data
