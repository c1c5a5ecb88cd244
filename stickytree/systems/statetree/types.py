"""
stickytree — State Tree Type Definitions

The node model shared by the tree, the external transition engine and the
sticky-state core. Nodes are mutable, identity-bearing objects: paths
compare nodes with ``is``, and the sticky core swaps ``path`` lists and hook
slots in place for the lifetime of one transition.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from stickytree.systems.statetree.locals import LayeredLocals

# hook(state, params): ``state`` is whatever path element the engine is
# walking (a real node or a surrogate standing in for one).
Hook = Callable[[Any, dict[str, Any]], Any]

# resolve(params) -> value | awaitable
Resolver = Callable[[dict[str, Any]], Any]

ROOT_NAME = ""


class StateStatus(enum.StrEnum):
    """Lifecycle position of a node."""

    REGISTERED = "registered"
    ENTERED = "entered"
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXITED = "exited"


@dataclass
class LifecycleHooks:
    """The hook slots a node exposes to the transition engine."""

    on_enter: Hook | None = None
    on_exit: Hook | None = None
    on_inactivate: Hook | None = None
    on_reactivate: Hook | None = None

    def copy(self) -> LifecycleHooks:
        return replace(self)


@dataclass(eq=False)
class ViewLocal:
    """
    One loaded view: the template plus the data it was resolved with.

    Compared by identity. A renderer skips re-mounting when it sees the same
    ViewLocal object it rendered last time.
    """

    view_name: str
    state_name: str
    template: Any = None
    resolved: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return view_key(self.view_name, self.state_name)


def view_key(view_name: str, state_name: str) -> str:
    """Build the ``viewName@stateName`` key used in layered locals."""
    if "@" in view_name:
        return view_name
    return f"{view_name}@{state_name}"


def is_view_key(key: str) -> bool:
    return "@" in key


class StateNode:
    """
    A registered state in the tree.

    ``path`` is the real ancestor chain (root first, self last). While a
    sticky transition is in flight it may hold a substitute list; the
    restore ledger puts the original list object back.
    """

    def __init__(
        self,
        name: str,
        parent: StateNode | None = None,
        *,
        sticky: bool = False,
        params: tuple[str, ...] | list[str] = (),
        views: dict[str, Any] | None = None,
        resolve: dict[str, Resolver] | None = None,
        hooks: LifecycleHooks | None = None,
    ) -> None:
        self.name = name
        self.parent = parent
        self.children: list[StateNode] = []
        self.sticky = sticky
        self.hooks = hooks or LifecycleHooks()
        self.own_params: list[str] = list(params)
        self.params: list[str] = (list(parent.params) if parent else []) + list(params)
        self.views: dict[str, Any] = dict(views or {})
        self.resolve: dict[str, Resolver] = dict(resolve or {})
        self.locals: LayeredLocals | None = None
        self.status: StateStatus = StateStatus.REGISTERED
        self.current_params: dict[str, Any] = {}
        self.path: list[StateNode] = list(reversed(self.ancestors)) + [self]

    @property
    def depth(self) -> int:
        return len(self.ancestors)

    @property
    def ancestors(self) -> list[StateNode]:
        """Real ancestors, nearest first. Never reads the substitutable ``path``."""
        chain: list[StateNode] = []
        node = self.parent
        while node is not None:
            chain.append(node)
            node = node.parent
        return chain

    def includes(self, other: StateNode) -> bool:
        """True when ``other`` is this node or one of its ancestors."""
        return other is self or any(a is other for a in self.ancestors)

    def is_descendant_of(self, other: StateNode) -> bool:
        return other is not self and self.includes(other)

    def __repr__(self) -> str:
        return f"StateNode({self.name!r}, status={self.status.value})"
