"""
stickytree — Layered Locals

Per-state view data with explicit layer fallback.

Lookup order for a state's locals:
  1. the state's own layer
  2. each ancestor layer, nearest first
  3. the inactive pool, when one is passed in

The inactive pool is never linked into the chain; callers hand it to
``lookup`` explicitly. Writes always land on the own layer.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from stickytree.systems.statetree.types import is_view_key

_MISSING = object()


class LayeredLocals:
    """A single layer plus a link to its parent layer."""

    def __init__(
        self,
        own: dict[str, Any] | None = None,
        parent: LayeredLocals | None = None,
        params: dict[str, Any] | None = None,
        resolved: dict[str, Any] | None = None,
    ) -> None:
        self._own: dict[str, Any] = own if own is not None else {}
        self.parent = parent
        self.params: dict[str, Any] = dict(params or {})
        self.resolved: dict[str, Any] = dict(resolved or {})

    # ─── Layers ──────────────────────────────────────────────────────

    @property
    def own(self) -> dict[str, Any]:
        return self._own

    def layers(self) -> list[dict[str, Any]]:
        """Own layer first, then each ancestor layer."""
        chain: list[dict[str, Any]] = []
        layer: LayeredLocals | None = self
        while layer is not None:
            chain.append(layer._own)
            layer = layer.parent
        return chain

    def own_views(self) -> dict[str, Any]:
        """This layer's ``view@state`` entries only, never inherited ones."""
        return {k: v for k, v in self._own.items() if is_view_key(k)}

    # ─── Lookup ──────────────────────────────────────────────────────

    def lookup(
        self,
        key: str,
        default: Any = None,
        pool: Mapping[str, Any] | None = None,
    ) -> Any:
        for layer in self.layers():
            value = layer.get(key, _MISSING)
            if value is not _MISSING:
                return value
        if pool is not None:
            return pool.get(key, default)
        return default

    def get(self, key: str, default: Any = None) -> Any:
        return self.lookup(key, default)

    def __getitem__(self, key: str) -> Any:
        value = self.lookup(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __contains__(self, key: object) -> bool:
        return any(key in layer for layer in self.layers())

    def __setitem__(self, key: str, value: Any) -> None:
        self._own[key] = value

    def __delitem__(self, key: str) -> None:
        del self._own[key]

    def keys(self) -> list[str]:
        """Every visible key, own layer first, without duplicates."""
        seen: dict[str, None] = {}
        for layer in self.layers():
            for key in layer:
                seen.setdefault(key, None)
        return list(seen)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return f"LayeredLocals(own={sorted(self._own)}, depth={len(self.layers())})"
