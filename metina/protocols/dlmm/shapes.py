"""Shape detection for per-pair position enumeration results.

The enumeration call returns, per pair, one of:

* a list of positions,
* a wrapped object holding a nested positions list
  (``lbPairPositionsData``, ``positions``) or a single ``position``,
* a single position object.

Shapes are tried in that fixed order; anything else is ``UNKNOWN`` and treated
as no data.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

_WRAPPED_LIST_KEYS = ("lbPairPositionsData", "positions")
_IDENTITY_KEYS = ("publicKey", "address", "owner")


class ShapeKind(str, Enum):
    LIST = "list"
    WRAPPED = "wrapped"
    SINGLE = "single"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PositionShape:
    kind: ShapeKind
    items: tuple[Any, ...] = ()


def _as_list(value: Any) -> PositionShape | None:
    if isinstance(value, (list, tuple)):
        return PositionShape(ShapeKind.LIST, tuple(value))
    return None


def _as_wrapped(value: Any) -> PositionShape | None:
    if not isinstance(value, dict):
        return None
    for key in _WRAPPED_LIST_KEYS:
        if isinstance(value.get(key), (list, tuple)):
            return PositionShape(ShapeKind.WRAPPED, tuple(value[key]))
    if value.get("position"):
        return PositionShape(ShapeKind.WRAPPED, (value["position"],))
    return None


def _as_single(value: Any) -> PositionShape | None:
    # A dict carrying ``lbPair`` describes the pair, not a position.
    if not isinstance(value, dict) or "lbPair" in value:
        return None
    if any(value.get(key) for key in _IDENTITY_KEYS):
        return PositionShape(ShapeKind.SINGLE, (value,))
    return None


_DETECTORS = (_as_list, _as_wrapped, _as_single)


def detect_shape(value: Any) -> PositionShape:
    for detector in _DETECTORS:
        shape = detector(value)
        if shape is not None:
            return shape
    return PositionShape(ShapeKind.UNKNOWN)


def position_identifier(item: Any) -> str | None:
    """Extract the position address from one enumerated element."""
    if isinstance(item, str):
        return item or None
    if not isinstance(item, dict):
        # Public-key objects render as their base58 address.
        text = str(item) if item is not None else ""
        return text or None

    if item.get("publicKey"):
        return str(item["publicKey"])
    nested = item.get("position")
    if isinstance(nested, dict) and nested.get("publicKey"):
        return str(nested["publicKey"])
    if item.get("address"):
        return str(item["address"])
    return None


def flatten_identifiers(by_pair: dict[str, Any]) -> list[str]:
    """Flat, de-duplicated position identifiers in first-seen order."""
    seen: dict[str, None] = {}
    for value in by_pair.values():
        for identifier in _identifiers(detect_shape(value).items):
            seen.setdefault(identifier, None)
    return list(seen)


def _identifiers(items: Iterable[Any]) -> Iterable[str]:
    for item in items:
        identifier = position_identifier(item)
        if identifier:
            yield identifier
