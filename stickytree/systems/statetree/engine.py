"""
stickytree — Transition Engine Boundary

The contract between the sticky core and the path-driven engine that
actually runs enter/exit hooks, plus ``PathEngine``, a small in-process
engine honouring that contract.

The engine never gets patched at runtime. The caller hands it explicit
from/to paths in an EngineRequest, and the engine walks whatever it is given:

  1. keep  — leading elements identical in both paths (``is``) whose own
             params are equal between from/to params
  2. resolve — build a locals layer for every entering element, chained to
             the previous element's locals
  3. exit  — leaf-to-root over from_path beyond the keep: ``on_exit`` then
             ``locals = None``
  4. enter — root-to-leaf over to_path beyond the keep: install the resolved
             layer then ``on_enter``

Failures surface as TransitionFailed whose ``message`` may be one of the
sentinel strings below.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from stickytree.systems.statetree.locals import LayeredLocals
from stickytree.systems.statetree.types import ViewLocal, view_key

if TYPE_CHECKING:
    from stickytree.systems.statetree.tree import StateTree
    from stickytree.systems.statetree.types import StateNode

logger = structlog.get_logger("stickytree.systems.statetree.engine")

TRANSITION_PREVENTED = "transition prevented"
TRANSITION_ABORTED = "transition aborted"
TRANSITION_SUPERSEDED = "transition superseded"


class TransitionFailed(Exception):
    """The engine rejected or abandoned a transition."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class EngineRequest:
    """One delegated transition: the real endpoints plus the paths to walk."""

    from_state: StateNode
    to_state: StateNode
    from_path: list[Any]
    to_path: list[Any]
    from_params: dict[str, Any] = field(default_factory=dict)
    to_params: dict[str, Any] = field(default_factory=dict)
    options: Any = None


@runtime_checkable
class TransitionEngine(Protocol):
    """What the sticky coordinator needs from a transition engine."""

    current: StateNode
    params: dict[str, Any]

    async def execute(self, request: EngineRequest) -> StateNode: ...


# guard(request) -> False prevents the transition
TransitionGuard = Callable[[EngineRequest], bool | None]


def own_params_equal(
    element: Any,
    to_params: dict[str, Any],
    from_params: dict[str, Any],
) -> bool:
    """True when every own param of ``element`` has the same value in both sets."""
    return all(to_params.get(p) == from_params.get(p) for p in element.own_params)


class PathEngine:
    """
    Reference engine walking explicit paths.

    Only one transition is current at a time; a transition that finds a
    newer one started while it awaited resolves fails with
    "transition superseded" and touches no hooks. ``abort()`` makes the
    in-flight one fail with "transition aborted" the same way.
    """

    def __init__(self, tree: StateTree) -> None:
        self._tree = tree
        self.current: StateNode = tree.root
        self.params: dict[str, Any] = {}
        self.transition: EngineRequest | None = None
        self._aborted: EngineRequest | None = None
        self._guards: list[TransitionGuard] = []
        self._logger = logger.bind(component="path_engine")

    def add_guard(self, guard: TransitionGuard) -> None:
        self._guards.append(guard)

    def abort(self) -> bool:
        """Abandon the in-flight transition before it touches any hooks."""
        if self.transition is None:
            return False
        self._aborted = self.transition
        self.transition = None
        return True

    async def execute(self, request: EngineRequest) -> StateNode:
        self.transition = request

        for guard in list(self._guards):
            if guard(request) is False:
                self._forget(request)
                raise TransitionFailed(TRANSITION_PREVENTED)

        to_path, from_path = request.to_path, request.from_path
        keep = 0
        while (
            keep < len(to_path)
            and keep < len(from_path)
            and to_path[keep] is from_path[keep]
            and own_params_equal(to_path[keep], request.to_params, request.from_params)
        ):
            keep += 1

        # Always yield once so a newer request can supersede this one
        await asyncio.sleep(0)
        self._check_current(request)

        entering: list[tuple[Any, LayeredLocals]] = []
        parent_locals = to_path[keep - 1].locals if keep > 0 else None
        for element in to_path[keep:]:
            layer = await self._resolve(element, request.to_params, parent_locals)
            self._check_current(request)
            entering.append((element, layer))
            parent_locals = layer

        for element in reversed(from_path[keep:]):
            if element.hooks.on_exit is not None:
                element.hooks.on_exit(element, request.from_params)
            element.locals = None

        for element, layer in entering:
            element.locals = layer
            if element.hooks.on_enter is not None:
                element.hooks.on_enter(element, request.to_params)

        self.current = request.to_state
        self.params = dict(request.to_params)
        self._forget(request)
        self._logger.debug(
            "transition_complete",
            to_state=request.to_state.name,
            kept=keep,
            exited=len(from_path) - keep,
            entered=len(entering),
        )
        return request.to_state

    async def _resolve(
        self,
        element: Any,
        params: dict[str, Any],
        parent: LayeredLocals | None,
    ) -> LayeredLocals:
        resolved: dict[str, Any] = {}
        for key, resolver in element.resolve.items():
            value = resolver(params)
            if inspect.isawaitable(value):
                value = await value
            resolved[key] = value

        layer = LayeredLocals(parent=parent, params=params, resolved=resolved)
        for view_name, template in element.views.items():
            layer[view_key(view_name, element.name)] = ViewLocal(
                view_name=view_name,
                state_name=element.name,
                template=template,
                resolved=dict(resolved),
            )
        return layer

    def _check_current(self, request: EngineRequest) -> None:
        if self._aborted is request:
            self._aborted = None
            raise TransitionFailed(TRANSITION_ABORTED)
        if self.transition is not request:
            raise TransitionFailed(TRANSITION_SUPERSEDED)

    def _forget(self, request: EngineRequest) -> None:
        if self.transition is request:
            self.transition = None
