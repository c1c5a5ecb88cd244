"""
stickytree — State Tree

The static hierarchy of named, nested states. Owns registration and name
resolution; publishes a ``state_registered`` notification that the sticky
core subscribes to in order to learn which states are sticky.

Names are dotted (``"app.inbox.message"``). The root has the empty name.
Relative names follow the usual router conventions:
  "^"           the parent of the relative state
  "^.sibling"   a sibling of the relative state
  ".child"      a child of the relative state
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import structlog

from stickytree.systems.statetree.errors import StateNotFoundError, StateRegistrationError
from stickytree.systems.statetree.locals import LayeredLocals
from stickytree.systems.statetree.types import (
    ROOT_NAME,
    Hook,
    LifecycleHooks,
    Resolver,
    StateNode,
    StateStatus,
)

logger = structlog.get_logger("stickytree.systems.statetree.tree")

StateRegisteredCallback = Callable[[StateNode], None]


class StateTree:
    """
    Registry of every state node, rooted at an implicit ``""`` root.

    The root is active from construction: it carries an empty locals layer
    that every entered state's layer chains back to.
    """

    def __init__(self) -> None:
        self._logger = logger.bind(component="state_tree")
        self._root = StateNode(ROOT_NAME)
        self._root.locals = LayeredLocals()
        self._root.status = StateStatus.ACTIVE
        self._states: dict[str, StateNode] = {ROOT_NAME: self._root}
        self._listeners: list[StateRegisteredCallback] = []

    @property
    def root(self) -> StateNode:
        return self._root

    # ─── Registration ────────────────────────────────────────────────

    def register(
        self,
        name: str,
        *,
        parent: str | StateNode | None = None,
        sticky: bool = False,
        params: tuple[str, ...] | list[str] = (),
        views: dict[str, Any] | None = None,
        resolve: dict[str, Resolver] | None = None,
        on_enter: Hook | None = None,
        on_exit: Hook | None = None,
        on_inactivate: Hook | None = None,
        on_reactivate: Hook | None = None,
    ) -> StateNode:
        """Register a state beneath its parent and notify subscribers."""
        if not name:
            raise StateRegistrationError("The root state is implicit and cannot be registered")
        if name in self._states:
            raise StateRegistrationError(f"State '{name}' is already registered")

        if parent is None:
            parent_name = name.rpartition(".")[0]
            parent_node = self._states.get(parent_name)
        elif isinstance(parent, StateNode):
            parent_node = parent if self._states.get(parent.name) is parent else None
            parent_name = parent.name
        else:
            parent_name = parent
            parent_node = self._states.get(parent)
        if parent_node is None:
            raise StateRegistrationError(
                f"Cannot register '{name}': parent '{parent_name}' is not registered"
            )

        node = StateNode(
            name,
            parent_node,
            sticky=sticky,
            params=params,
            views=views,
            resolve=resolve,
            hooks=LifecycleHooks(
                on_enter=on_enter,
                on_exit=on_exit,
                on_inactivate=on_inactivate,
                on_reactivate=on_reactivate,
            ),
        )
        parent_node.children.append(node)
        self._states[name] = node

        self._logger.debug("state_registered", state=name, sticky=sticky)
        for callback in list(self._listeners):
            callback(node)
        return node

    def on_state_registered(self, callback: StateRegisteredCallback) -> None:
        """
        Subscribe to registrations. States registered before the
        subscription are replayed so late subscribers see the whole tree.
        """
        self._listeners.append(callback)
        for node in list(self._states.values()):
            if node is not self._root:
                callback(node)

    # ─── Lookup ──────────────────────────────────────────────────────

    def find(
        self,
        name: str | StateNode,
        relative_to: str | StateNode | None = None,
    ) -> StateNode | None:
        """Resolve an absolute or relative name. Returns None when unknown."""
        if isinstance(name, StateNode):
            return name if self._states.get(name.name) is name else None

        if name.startswith("^") or name.startswith("."):
            base = self._base(relative_to)
            if base is None:
                return None
            return self._find_relative(name, base)

        return self._states.get(name)

    def get(
        self,
        name: str | StateNode,
        relative_to: str | StateNode | None = None,
    ) -> StateNode:
        """Like ``find`` but raises StateNotFoundError."""
        node = self.find(name, relative_to)
        if node is None:
            label = name.name if isinstance(name, StateNode) else name
            rel = relative_to.name if isinstance(relative_to, StateNode) else relative_to
            raise StateNotFoundError(label, rel)
        return node

    def _base(self, relative_to: str | StateNode | None) -> StateNode | None:
        if relative_to is None:
            return None
        if isinstance(relative_to, StateNode):
            return self.find(relative_to)
        return self._states.get(relative_to)

    def _find_relative(self, name: str, base: StateNode) -> StateNode | None:
        segments = name.split(".")
        node: StateNode | None = base
        # A leading "." yields an empty first segment: stay on the base
        if segments and segments[0] == "":
            segments = segments[1:]
        while segments and segments[0] == "^":
            if node is None or node.parent is None:
                return None
            node = node.parent
            segments = segments[1:]
        if node is None:
            return None
        if not segments:
            return node
        prefix = f"{node.name}." if node.name else ""
        return self._states.get(prefix + ".".join(segments))

    # ─── Paths ───────────────────────────────────────────────────────

    def path_of(self, node: StateNode) -> list[StateNode]:
        """The real ancestor chain ending at ``node``, root first."""
        return list(reversed(node.ancestors)) + [node]

    def descendants_of(self, node: StateNode) -> list[StateNode]:
        """All registered descendants, depth-first in registration order."""
        found: list[StateNode] = []
        stack = list(reversed(node.children))
        while stack:
            child = stack.pop()
            found.append(child)
            stack.extend(reversed(child.children))
        return found

    # ─── Container protocol ──────────────────────────────────────────

    def __contains__(self, name: object) -> bool:
        if isinstance(name, StateNode):
            return self._states.get(name.name) is name
        return name in self._states

    def __iter__(self) -> Iterator[StateNode]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)
