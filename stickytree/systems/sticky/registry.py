"""
stickytree — Virtual Root Registry

Holds every currently-inactive state and the aggregated pool of their
retained view entries, and performs the lifecycle bookkeeping that the
surrogate hooks delegate to while the engine walks a substituted path.

The pool is not linked into any locals chain. Consumers pass it to
``LayeredLocals.lookup(key, pool=registry.pool)`` as the last fallback.

Lifecycle:
  state_inactivated  — node moves into the inactive map, views snapshot
                       into the pool, ``on_inactivate`` runs
  state_reactivated  — node leaves the inactive map, its pool entries go,
                       ``on_reactivate`` runs
  state_entering     — a stale inactive copy is exited first, then the
                       real ``on_enter`` runs and current params are recorded
  state_exiting      — inactive descendants are exited deepest first, then
                       the real ``on_exit`` runs and the node is dropped
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import structlog

from stickytree.systems.statetree.types import StateNode, StateStatus
from stickytree.systems.sticky.types import StickyEventType

if TYPE_CHECKING:
    from stickytree.config import StickyConfig
    from stickytree.systems.statetree.tree import StateTree
    from stickytree.systems.statetree.types import Hook
    from stickytree.systems.sticky.events import StickyEventBus

logger = structlog.get_logger("stickytree.systems.sticky.registry")


def _deepest_first(nodes: Iterable[StateNode]) -> list[StateNode]:
    return sorted(nodes, key=lambda n: (n.depth, n.name), reverse=True)


class VirtualRootRegistry:
    """
    Inactive-state registry plus the view pool shared by all inactive states.

    Insertion order of the inactive map is preserved; ``inactive_states()``
    returns nodes in the order they were inactivated.
    """

    def __init__(
        self,
        tree: StateTree,
        config: StickyConfig,
        bus: StickyEventBus | None = None,
    ) -> None:
        self._tree = tree
        self._config = config
        self._bus = bus
        self._logger = logger.bind(system="sticky", component="registry")

        self._inactive: dict[str, StateNode] = {}
        self._pool: dict[str, Any] = {}
        self._sticky: set[str] = set()

        self._total_inactivated: int = 0
        self._total_reactivated: int = 0
        self._total_exited: int = 0

        tree.on_state_registered(self.register_sticky)

    # ─── Sticky registration ─────────────────────────────────────────

    def register_sticky(self, node: StateNode) -> None:
        """Record a state as sticky. Wired to ``StateTree.on_state_registered``."""
        if node.sticky:
            self._sticky.add(node.name)

    def is_sticky(self, node: StateNode) -> bool:
        return node.name in self._sticky

    # ─── Inactive map ────────────────────────────────────────────────

    @property
    def pool(self) -> Mapping[str, Any]:
        """Read-only view of the aggregated inactive view entries."""
        return MappingProxyType(self._pool)

    def lookup(self, key: str, default: Any = None) -> Any:
        return self._pool.get(key, default)

    def inactive_states(self) -> list[StateNode]:
        return list(self._inactive.values())

    def is_inactive(self, node: StateNode) -> bool:
        return self._inactive.get(node.name) is node

    def get_inactive(
        self,
        node: StateNode,
        params: dict[str, Any] | None = None,
    ) -> StateNode | None:
        """
        The inactive node, or None. When ``params`` is given the node only
        matches if its recorded own params equal the ones in ``params``.
        """
        if not self.is_inactive(node):
            return None
        if params is None:
            return node
        for name in node.own_params:
            if name == self._config.reload_param:
                continue
            if node.current_params.get(name) != params.get(name):
                return None
        return node

    def inactive_descendants(self, node: StateNode) -> list[StateNode]:
        """Inactive strict descendants of ``node``, deepest first."""
        return _deepest_first(
            n for n in self._inactive.values() if n.is_descendant_of(node)
        )

    def refresh(self, inactives: Iterable[StateNode]) -> None:
        """
        Rebuild the pool from the nodes that will be inactive once the
        pending transition succeeds. The pool dict object is kept.
        """
        for key in [k for k in self._pool if "@" in k]:
            del self._pool[key]
        for node in inactives:
            if node.locals is None:
                continue
            for key, view in node.locals.own_views().items():
                self._pool[key] = view

    # ─── Lifecycle bookkeeping ───────────────────────────────────────

    def state_inactivated(self, node: StateNode) -> None:
        self._inactive[node.name] = node
        node.status = StateStatus.INACTIVE
        if node.locals is not None:
            for key, view in node.locals.own_views().items():
                self._pool[key] = view
        self._total_inactivated += 1

        if node.hooks.on_inactivate is not None:
            node.hooks.on_inactivate(node, dict(node.current_params))

        self._logger.debug("state_inactivated", state=node.name)
        self._publish(StickyEventType.STATE_INACTIVATED, node)

    def state_reactivated(self, node: StateNode) -> None:
        self._inactive.pop(node.name, None)
        node.status = StateStatus.ENTERED
        self._drop_views(node)
        self._total_reactivated += 1

        if node.hooks.on_reactivate is not None:
            node.hooks.on_reactivate(node, dict(node.current_params))

        self._logger.debug("state_reactivated", state=node.name)
        self._publish(StickyEventType.STATE_REACTIVATED, node)

    def state_entering(
        self,
        node: StateNode,
        params: dict[str, Any],
        on_enter: Hook | None = None,
        update_params: bool = False,
    ) -> None:
        inactive = self.get_inactive(node)
        if inactive is not None and (
            update_params or self.get_inactive(node, params) is None
        ):
            # The engine already installed the fresh layer; exiting the stale
            # inactive copy must not clobber it
            saved = node.locals
            self.state_exiting(inactive)
            node.locals = saved

        if on_enter is not None:
            on_enter(node, params)

        node.status = StateStatus.ENTERED
        node.current_params = {
            name: params.get(name)
            for name in node.params
            if name != self._config.reload_param
        }
        self._logger.debug("state_entered", state=node.name)
        self._publish(StickyEventType.STATE_ENTERED, node, params=node.current_params)

    def state_exiting(
        self,
        node: StateNode,
        exited: Iterable[StateNode] = (),
        on_exit: Hook | None = None,
        params: dict[str, Any] | None = None,
    ) -> None:
        """
        Exit ``node`` for good. Inactive states at or below it are exited
        first, deepest first, unless they are already queued in ``exited``
        and will be exited by the engine itself.
        """
        queued = {n.name for n in exited}
        cascade = _deepest_first(
            n
            for n in self._inactive.values()
            if n.includes(node) and n.name not in queued
        )
        for inactive in cascade:
            self._logger.debug(
                "inactive_state_exiting",
                state=inactive.name,
                because=node.name,
            )
            if inactive.hooks.on_exit is not None:
                inactive.hooks.on_exit(inactive, dict(inactive.current_params))
            self._retire(inactive)

        if on_exit is not None:
            # An inactive node is exited with the params it was last entered with
            if params is None or node.status is StateStatus.INACTIVE:
                params = dict(node.current_params)
            on_exit(node, params)
        if node.status is not StateStatus.EXITED:
            self._retire(node)

    def reset(self, target: str | StateNode = "*", params: dict[str, Any] | None = None) -> bool:
        """
        Exit inactive state(s) immediately. ``"*"`` exits every inactive
        state. Returns False when ``target`` is unknown or not inactive.
        """
        if target == "*":
            for node in _deepest_first(self._inactive.values()):
                if self.is_inactive(node):
                    self.state_exiting(node)
            return True

        node = self._tree.find(target)
        if node is None:
            return False
        inactive = self.get_inactive(node, params)
        if inactive is None:
            return False
        self.state_exiting(inactive)
        return True

    # ─── Internals ───────────────────────────────────────────────────

    def _retire(self, node: StateNode) -> None:
        self._drop_views(node)
        node.locals = None
        node.status = StateStatus.EXITED
        self._inactive.pop(node.name, None)
        self._total_exited += 1
        self._logger.debug("state_exited", state=node.name)
        self._publish(StickyEventType.STATE_EXITED, node)

    def _drop_views(self, node: StateNode) -> None:
        owned = set(node.locals.own_views()) if node.locals is not None else set()
        for key in list(self._pool):
            if key in owned or key.partition("@")[2] == node.name:
                del self._pool[key]

    def _publish(self, event_type: StickyEventType, node: StateNode, **data: Any) -> None:
        if self._bus is not None:
            self._bus.publish(event_type, state_name=node.name, **data)

    # ─── Stats ───────────────────────────────────────────────────────

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "inactive": len(self._inactive),
            "pool_entries": len(self._pool),
            "sticky_states": len(self._sticky),
            "total_inactivated": self._total_inactivated,
            "total_reactivated": self._total_reactivated,
            "total_exited": self._total_exited,
        }
