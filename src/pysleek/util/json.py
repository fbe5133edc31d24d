from __future__ import annotations

import dataclasses
import json
from typing import Any


def _default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).hex()
    if isinstance(obj, tuple):
        return list(obj)
    # `dataclasses.is_dataclass()` is true for both instances and dataclass *types*.
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(obj: Any, *, indent: int | None = None) -> str:
    """
    JSON serialize the way Nostr clients do (`JSON.stringify`).

    Compact separators and raw UTF-8 (no `\\uXXXX` escapes for non-ASCII), which
    is also the NIP-01 canonical form used for event ids. Key order is preserved.
    """

    if indent is not None:
        return json.dumps(obj, default=_default, ensure_ascii=False, indent=indent)
    return json.dumps(obj, default=_default, ensure_ascii=False, separators=(",", ":"))


def loads(data: str | bytes) -> Any:
    return json.loads(data)
