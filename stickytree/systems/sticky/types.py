"""
stickytree — Sticky State Type Definitions

All data types for transition planning and path substitution: the
per-element classifications, the surrogate path elements handed to the
engine, the plan and record of one transition, and the events the core
publishes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import Field

from stickytree.primitives.common import Identified, new_id, utc_now
from stickytree.systems.statetree.types import LifecycleHooks

if TYPE_CHECKING:
    from stickytree.systems.statetree.locals import LayeredLocals
    from stickytree.systems.statetree.types import StateNode


# ─── Classification ───────────────────────────────────────────────────


class TransitionKind(enum.StrEnum):
    """What happens to one path element beyond the pivot."""

    ENTER = "enter"
    EXIT = "exit"
    INACTIVATE = "inactivate"
    REACTIVATE = "reactivate"
    UPDATE_PARAMS = "updateStateParams"


class SurrogateKind(enum.StrEnum):
    REACTIVATE_PHASE1 = "reactivate_phase1"
    REACTIVATE_PHASE2 = "reactivate_phase2"
    INACTIVATE = "inactivate"
    ENTER = "enter"
    EXIT = "exit"
    UPDATE_PARAMS = "update_params"


class TransitionPhase(enum.StrEnum):
    """Coordinator state machine, one instance per transition record."""

    IDLE = "idle"
    PLANNED = "planned"
    SUBSTITUTED = "substituted"
    DELEGATED = "delegated"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


# ─── Surrogates ───────────────────────────────────────────────────────


class SurrogateState:
    """
    A transient stand-in for a real node on a substitute path.

    Lives for one transition only. ``own_params`` is empty so the engine
    always treats a surrogate present in both paths as unchanged.
    """

    def __init__(
        self,
        kind: SurrogateKind,
        real: StateNode,
        *,
        hooks: LifecycleHooks | None = None,
        locals: LayeredLocals | None = None,
        resolve: dict[str, Any] | None = None,
        views: dict[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        self.real = real
        self.name = real.name
        self.hooks = hooks if hooks is not None else LifecycleHooks()
        self.locals = locals
        self.resolve: dict[str, Any] = resolve if resolve is not None else {}
        self.views: dict[str, Any] = views if views is not None else {}
        self.params: list[str] = []
        self.own_params: list[str] = []

    def __repr__(self) -> str:
        return f"SurrogateState({self.kind.value}:{self.name!r})"


def describe_element(element: Any) -> str:
    """``kind:name`` for surrogates, the plain name for real nodes."""
    if isinstance(element, SurrogateState):
        return f"{element.kind.value}:{element.name}"
    return element.name or "(root)"


# ─── Options / Plan / Record ──────────────────────────────────────────


@dataclass
class TransitionOptions:
    """Caller options for one transition request."""

    # True reloads the whole target path below the root; a name or node
    # reloads from that state down
    reload: bool | str | StateNode = False
    # Base for relative target names; defaults to the engine's current state
    relative: str | StateNode | None = None
    # Fill target params missing from the request with the current ones
    inherit: bool = False


@dataclass
class TransitionPlan:
    """
    Classification of both paths for one transition.

    ``enter`` and ``exit`` map path indices beyond the pivot to a kind.
    ``orphans`` are inactive descendants of the terminal reactivated
    target, in processing order (deepest first); all are exited.
    ``inactives`` lists the nodes that will be inactive once the
    transition commits.
    """

    pivot_index: int
    enter: dict[int, TransitionKind] = field(default_factory=dict)
    exit: dict[int, TransitionKind] = field(default_factory=dict)
    orphans: list[StateNode] = field(default_factory=list)
    inactives: list[StateNode] = field(default_factory=list)
    to_path: list[StateNode] = field(default_factory=list)
    from_path: list[StateNode] = field(default_factory=list)

    @property
    def keep(self) -> int:
        """Number of leading elements kept by the transition."""
        return self.pivot_index + 1

    @property
    def kept(self) -> list[StateNode]:
        return self.to_path[: self.keep]

    def nodes_of(self, kind: TransitionKind) -> list[StateNode]:
        found = [self.to_path[i] for i, k in sorted(self.enter.items()) if k is kind]
        found.extend(self.from_path[i] for i, k in sorted(self.exit.items()) if k is kind)
        if kind is TransitionKind.EXIT:
            found.extend(self.orphans)
        return found

    def classify(self, node: StateNode, *, exiting: bool = False) -> TransitionKind | None:
        """
        The kind assigned to ``node``, or None when kept or uninvolved.

        A node on both paths beyond the pivot (same node, changed params)
        has two kinds. Its to-path kind is returned unless ``exiting`` asks
        for the from-path one.
        """
        if not exiting:
            for idx, kind in self.enter.items():
                if self.to_path[idx] is node:
                    return kind
        for idx, kind in self.exit.items():
            if self.from_path[idx] is node:
                return kind
        if any(orphan is node for orphan in self.orphans):
            return TransitionKind.EXIT
        return None


@dataclass
class TransitionRecord:
    """One accepted transition request, from acceptance to restore."""

    from_state: StateNode
    to_state: StateNode
    from_params: dict[str, Any] = field(default_factory=dict)
    to_params: dict[str, Any] = field(default_factory=dict)
    options: TransitionOptions = field(default_factory=TransitionOptions)
    reload_boundary: StateNode | None = None
    id: str = field(default_factory=new_id)
    phase: TransitionPhase = TransitionPhase.IDLE
    superseded: bool = False
    exited: list[StateNode] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)

    @property
    def settled(self) -> bool:
        return self.phase in (TransitionPhase.COMMITTED, TransitionPhase.ROLLED_BACK)

    def describe(self) -> str:
        return (
            f"{self.from_state.name or '(root)'} {self.from_params} -> "
            f"{self.to_state.name or '(root)'} {self.to_params}"
        )


# ─── Events ───────────────────────────────────────────────────────────


class StickyEventType(enum.StrEnum):
    """All event types emitted by the sticky core."""

    STATE_ENTERED = "state_entered"
    STATE_EXITED = "state_exited"
    STATE_INACTIVATED = "state_inactivated"
    STATE_REACTIVATED = "state_reactivated"
    TRANSITION_COMMITTED = "transition_committed"
    TRANSITION_ROLLED_BACK = "transition_rolled_back"
    TRANSITION_SUPERSEDED = "transition_superseded"


class StickyEvent(Identified):
    """A typed event emitted by the sticky core."""

    event_type: StickyEventType
    timestamp: datetime = Field(default_factory=utc_now)
    state_name: str | None = None
    transition_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
