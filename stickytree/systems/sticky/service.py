"""
stickytree — Transition Coordinator

Front door of the sticky core. Accepts transition requests, plans them,
steers the engine through substitute paths and guarantees that every
temporary mutation is undone before control returns to the caller.

Per-request phases:
  idle → planned → substituted → delegated → committed | rolled_back

Iron Rules:
  - At most one transition is pending. Accepting a request first rolls
    back the pending one.
  - An unknown target (or reload state) fails before anything is mutated.
  - The engine's result and failures reach the caller unchanged.
  - Cancellation is a failure like any other: roll back, then propagate.

Interface:
  transition_to()     — plan, substitute, delegate, settle
  reset()             — exit inactive state(s) immediately
  inactive_states()   — currently inactive nodes, in inactivation order
  resolve_view()      — look a view up through a state's locals, then the pool
  pending / phase     — the transition currently in flight, if any
  health()            — self-health report
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any

import structlog

from stickytree.config import StickyConfig
from stickytree.systems.statetree.engine import EngineRequest
from stickytree.systems.statetree.types import StateNode, StateStatus
from stickytree.systems.sticky import debug
from stickytree.systems.sticky.errors import RestoreError
from stickytree.systems.sticky.events import StickyEventBus
from stickytree.systems.sticky.ledger import RestoreLedger
from stickytree.systems.sticky.planner import TransitionPlanner
from stickytree.systems.sticky.registry import VirtualRootRegistry
from stickytree.systems.sticky.surrogates import SurrogateBuilder
from stickytree.systems.sticky.types import (
    StickyEventType,
    TransitionOptions,
    TransitionPhase,
    TransitionRecord,
)

if TYPE_CHECKING:
    from stickytree.systems.statetree.engine import TransitionEngine
    from stickytree.systems.statetree.tree import StateTree

logger = structlog.get_logger("stickytree.systems.sticky")


class TransitionCoordinator:
    """
    Sticky-state transition coordinator.

    Coordinates:
      VirtualRootRegistry  — inactive states and their retained views
      TransitionPlanner    — per-element classification
      SurrogateBuilder     — substitute paths for one transition
      RestoreLedger        — undo of every temporary mutation
    """

    system_id: str = "sticky"

    def __init__(
        self,
        tree: StateTree,
        engine: TransitionEngine,
        config: StickyConfig | None = None,
        bus: StickyEventBus | None = None,
    ) -> None:
        self._tree = tree
        self._engine = engine
        self._config = config or StickyConfig()
        self._bus = bus or StickyEventBus(self._config.event_buffer_size)
        self._logger = logger.bind(system="sticky", component="coordinator")

        self._registry = VirtualRootRegistry(tree, self._config, self._bus)
        self._planner = TransitionPlanner(self._registry, self._config)
        self._pending: tuple[TransitionRecord, RestoreLedger] | None = None

        self._total_requests: int = 0
        self._total_committed: int = 0
        self._total_rolled_back: int = 0
        self._total_superseded: int = 0

    # ─── Collaborators ───────────────────────────────────────────────

    @property
    def tree(self) -> StateTree:
        return self._tree

    @property
    def engine(self) -> TransitionEngine:
        return self._engine

    @property
    def registry(self) -> VirtualRootRegistry:
        return self._registry

    @property
    def config(self) -> StickyConfig:
        return self._config

    @property
    def bus(self) -> StickyEventBus:
        return self._bus

    @property
    def pending(self) -> TransitionRecord | None:
        return self._pending[0] if self._pending is not None else None

    @property
    def phase(self) -> TransitionPhase:
        record = self.pending
        return record.phase if record is not None else TransitionPhase.IDLE

    # ─── Transitions ─────────────────────────────────────────────────

    async def transition_to(
        self,
        to: str | StateNode,
        to_params: dict[str, Any] | None = None,
        options: TransitionOptions | None = None,
    ) -> StateNode:
        """
        Transition to ``to``. Returns whatever the engine resolved with;
        re-raises whatever the engine raised, after rolling back.
        """
        options = options or TransitionOptions()
        self._total_requests += 1
        self._supersede()

        from_state = self._engine.current
        base = options.relative if options.relative is not None else from_state
        to_state = self._tree.get(to, relative_to=base)
        to_path = self._tree.path_of(to_state)
        boundary = self._reload_boundary(options.reload, to_path, base)

        reload_param = self._config.reload_param
        from_params = {k: v for k, v in self._engine.params.items() if k != reload_param}
        target_params = dict(to_params or {})
        if options.inherit:
            for name in to_state.params:
                if name not in target_params and name in from_params:
                    target_params[name] = from_params[name]

        record = TransitionRecord(
            from_state=from_state,
            to_state=to_state,
            from_params=from_params,
            to_params=target_params,
            options=options,
            reload_boundary=boundary,
        )
        ledger = RestoreLedger(record.id)
        ledger.save_paths(to_state, from_state)
        self._pending = (record, ledger)
        record.phase = TransitionPhase.PLANNED

        try:
            sub_to, sub_from = self._substitute(record, ledger, to_path)
            record.phase = TransitionPhase.DELEGATED
            reached = await self._engine.execute(
                EngineRequest(
                    from_state=from_state,
                    to_state=to_state,
                    from_path=sub_from,
                    to_path=sub_to,
                    from_params=from_params,
                    to_params=target_params,
                    options=options,
                )
            )
        except (asyncio.CancelledError, Exception) as exc:
            self._fail(record, ledger, exc)
            raise

        return self._commit(record, ledger, reached)

    def _reload_boundary(
        self,
        reload: bool | str | StateNode,
        to_path: list[StateNode],
        base: str | StateNode | None,
    ) -> StateNode | None:
        if reload is None or reload is False or reload == "":
            return None
        if reload is True:
            # Everything below the root
            return to_path[1] if len(to_path) > 1 else None
        boundary = self._tree.get(reload, relative_to=base)
        if not any(n is boundary for n in to_path):
            self._logger.debug(
                "reload_state_not_on_target_path",
                reload=boundary.name,
                to_state=to_path[-1].name,
            )
            return None
        return boundary

    def _substitute(
        self,
        record: TransitionRecord,
        ledger: RestoreLedger,
        to_path: list[StateNode],
    ) -> tuple[list[Any], list[Any]]:
        boundary = record.reload_boundary
        if boundary is not None:
            self._inject_reload_param(boundary, record.to_params, ledger)

        plan = self._planner.plan(
            self._tree.path_of(record.from_state),
            to_path,
            record.from_params,
            record.to_params,
            boundary,
        )
        if self._config.debug:
            debug.log_transition(record, plan, self._registry)

        self._registry.refresh(plan.inactives)

        builder = SurrogateBuilder(self._registry, ledger, record)
        sub_to, sub_from = builder.build(plan)
        record.to_state.path = sub_to
        record.from_state.path = sub_from
        record.phase = TransitionPhase.SUBSTITUTED

        if self._config.debug:
            debug.log_surrogate_paths(sub_to, sub_from)
        return sub_to, sub_from

    def _inject_reload_param(
        self,
        boundary: StateNode,
        to_params: dict[str, Any],
        ledger: RestoreLedger,
    ) -> None:
        # A fresh random value makes the boundary's own params differ, so the
        # engine re-enters it and everything below it
        name = self._config.reload_param
        to_params[name] = random.random()
        boundary.own_params.append(name)
        boundary.params.append(name)

        def undo() -> None:
            boundary.own_params.remove(name)
            boundary.params.remove(name)

        ledger.add(undo, f"remove_reload_param:{boundary.name}")

    # ─── Settlement ──────────────────────────────────────────────────

    def _supersede(self) -> None:
        if self._pending is None:
            return
        record, ledger = self._pending
        self._pending = None
        record.superseded = True
        record.phase = TransitionPhase.ROLLED_BACK
        self._total_superseded += 1
        ledger.rollback()
        self._logger.debug("transition_superseded", transition_id=record.id)
        self._bus.publish(
            StickyEventType.TRANSITION_SUPERSEDED,
            state_name=record.to_state.name,
            transition_id=record.id,
        )

    def _settle(self, record: TransitionRecord, ledger: RestoreLedger, phase: TransitionPhase) -> None:
        try:
            ledger.rollback()
        finally:
            if self._pending is not None and self._pending[0] is record:
                self._pending = None
            if not record.settled:
                record.phase = phase

    def _commit(self, record: TransitionRecord, ledger: RestoreLedger, reached: StateNode) -> StateNode:
        self._settle(record, ledger, TransitionPhase.COMMITTED)
        reached.status = StateStatus.ACTIVE
        self._total_committed += 1

        if self._config.debug:
            debug.log_views_after_success(reached, self._registry)
        self._bus.publish(
            StickyEventType.TRANSITION_COMMITTED,
            state_name=reached.name,
            transition_id=record.id,
            exited=[n.name for n in record.exited],
        )
        return reached

    def _fail(self, record: TransitionRecord, ledger: RestoreLedger, exc: BaseException) -> None:
        try:
            self._settle(record, ledger, TransitionPhase.ROLLED_BACK)
        except RestoreError as restore_exc:
            # The caller gets the original failure; the restore failure is logged
            self._logger.error(
                "restore_failed_after_transition_failure",
                transition_id=record.id,
                error=str(restore_exc),
            )
        self._total_rolled_back += 1
        # The pool was filled for inactives that never came to be. A newer
        # pending transition owns the pool until it settles.
        if self._pending is None:
            self._registry.refresh(self._registry.inactive_states())

        message = getattr(exc, "message", str(exc))
        if isinstance(exc, asyncio.CancelledError):
            self._logger.debug("transition_cancelled", transition_id=record.id)
        elif message in self._config.benign_failures:
            self._logger.debug("transition_rejected", transition_id=record.id, reason=message)
        else:
            self._logger.warning(
                "transition_failed",
                transition_id=record.id,
                transition=record.describe(),
                error=str(exc),
                error_type=type(exc).__name__,
            )
        self._bus.publish(
            StickyEventType.TRANSITION_ROLLED_BACK,
            state_name=record.to_state.name,
            transition_id=record.id,
            reason=message,
        )

    # ─── Inactive states ─────────────────────────────────────────────

    def reset(self, target: str | StateNode = "*", params: dict[str, Any] | None = None) -> bool:
        """Exit inactive state(s) now. ``"*"`` exits all of them."""
        done = self._registry.reset(target, params)
        self._logger.debug("inactive_reset", target=getattr(target, "name", target), done=done)
        return done

    def inactive_states(self) -> list[StateNode]:
        return self._registry.inactive_states()

    def resolve_view(self, state: str | StateNode, key: str) -> Any:
        """
        Look ``key`` (``"view@state"``) up from ``state``'s locals chain,
        falling back to the inactive pool.
        """
        node = self._tree.get(state)
        if node.locals is None:
            return self._registry.lookup(key)
        return node.locals.lookup(key, pool=self._registry.pool)

    # ─── Health ──────────────────────────────────────────────────────

    async def health(self) -> dict[str, Any]:
        return {
            "status": "busy" if self._pending is not None else "idle",
            "phase": self.phase.value,
            "current_state": self._engine.current.name,
            "inactive_states": [n.name for n in self._registry.inactive_states()],
            "total_requests": self._total_requests,
        }

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "total_requests": self._total_requests,
            "total_committed": self._total_committed,
            "total_rolled_back": self._total_rolled_back,
            "total_superseded": self._total_superseded,
            "registry": self._registry.stats,
            "events": self._bus.stats,
        }
