"""
stickytree — Surrogate Builder

Turns a TransitionPlan into the pair of substitute paths handed to the
engine. The engine only knows keep / exit / enter; each surrogate makes one
of those primitive steps perform a sticky step instead:

  reactivate  phase-1 surrogate on BOTH paths (kept, carries retained locals)
              + phase-2 surrogate appended to the to-path (entered, its
              on_enter re-attaches the retained locals)
  inactivate  surrogate on the from-path whose on_exit parks the node in
              the registry instead of running the real on_exit
  enter       the real node, on_enter wrapped to record the activation
  update      as enter, discarding the stale inactive copy first
  exit        the real node, on_exit wrapped to drop the node for good

Every hook slot that gets swapped registers its undo on the ledger.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stickytree.systems.sticky.types import (
    SurrogateKind,
    SurrogateState,
    TransitionKind,
    TransitionPlan,
)

if TYPE_CHECKING:
    from stickytree.systems.statetree.types import StateNode
    from stickytree.systems.sticky.ledger import RestoreLedger
    from stickytree.systems.sticky.registry import VirtualRootRegistry
    from stickytree.systems.sticky.types import TransitionRecord


class SurrogateBuilder:
    """Builds surrogates for a single transition. Not reusable."""

    def __init__(
        self,
        registry: VirtualRootRegistry,
        ledger: RestoreLedger,
        record: TransitionRecord,
    ) -> None:
        self._registry = registry
        self._ledger = ledger
        self._record = record

    # ─── Entered states ──────────────────────────────────────────────

    def enter(self, node: StateNode) -> StateNode:
        return self._wrap_enter(node, update_params=False)

    def update_params(self, node: StateNode) -> StateNode:
        return self._wrap_enter(node, update_params=True)

    def _wrap_enter(self, node: StateNode, update_params: bool) -> StateNode:
        hooks = node.hooks
        old_on_enter = hooks.on_enter
        registry = self._registry

        def on_enter(element: Any, params: dict[str, Any]) -> None:
            registry.state_entering(node, params, old_on_enter, update_params)

        hooks.on_enter = on_enter

        def undo() -> None:
            hooks.on_enter = old_on_enter

        self._ledger.add(undo, f"restore_on_enter:{node.name}")
        return node

    # ─── Reactivated states ──────────────────────────────────────────

    def reactivate_phase1(self, node: StateNode) -> SurrogateState:
        surrogate = SurrogateState(
            SurrogateKind.REACTIVATE_PHASE1,
            node,
            hooks=node.hooks.copy(),
            locals=node.locals,
            views=dict(node.views),
        )
        return surrogate

    def reactivate_phase2(self, node: StateNode) -> SurrogateState:
        hooks = node.hooks
        old_on_enter = hooks.on_enter
        # Nothing to resolve and no views to load: the retained layer is reused
        surrogate = SurrogateState(SurrogateKind.REACTIVATE_PHASE2, node, hooks=hooks)
        registry = self._registry

        def on_enter(element: Any, params: dict[str, Any]) -> None:
            surrogate.locals = node.locals
            registry.state_reactivated(node)

        hooks.on_enter = on_enter

        def undo() -> None:
            hooks.on_enter = old_on_enter

        self._ledger.add(undo, f"restore_on_enter:{node.name}")
        return surrogate

    # ─── Exited states ───────────────────────────────────────────────

    def inactivate(self, node: StateNode) -> SurrogateState:
        hooks = node.hooks
        old_on_exit = hooks.on_exit
        surrogate = SurrogateState(SurrogateKind.INACTIVATE, node, hooks=hooks)
        registry = self._registry

        def on_exit(element: Any, params: dict[str, Any]) -> None:
            registry.state_inactivated(node)

        hooks.on_exit = on_exit

        def undo() -> None:
            hooks.on_exit = old_on_exit

        self._ledger.add(undo, f"restore_on_exit:{node.name}")
        return surrogate

    def exit(self, node: StateNode) -> StateNode:
        hooks = node.hooks
        old_on_exit = hooks.on_exit
        registry = self._registry
        exited = self._record.exited

        def on_exit(element: Any, params: dict[str, Any]) -> None:
            registry.state_exiting(node, exited, old_on_exit, params)

        hooks.on_exit = on_exit

        def undo() -> None:
            hooks.on_exit = old_on_exit

        self._ledger.add(undo, f"restore_on_exit:{node.name}")
        return node

    # ─── Assembly ────────────────────────────────────────────────────

    def build(self, plan: TransitionPlan) -> tuple[list[Any], list[Any]]:
        """
        Returns ``(to_path, from_path)`` substitutes.

        to:   kept + phase-1 + enter/update + phase-2
        from: kept + phase-1 + inactivate/exit + orphan exits

        Orphans are appended shallowest first so the engine, which exits
        leaf-to-root, exits the deepest orphan first.
        """
        to_path: list[Any] = list(plan.to_path[: plan.keep])
        from_path: list[Any] = list(plan.from_path[: plan.keep])
        reactivated: list[SurrogateState] = []

        for idx in sorted(plan.enter):
            kind = plan.enter[idx]
            node = plan.to_path[idx]
            if kind is TransitionKind.REACTIVATE:
                phase1 = self.reactivate_phase1(node)
                to_path.append(phase1)
                from_path.append(phase1)
                reactivated.append(self.reactivate_phase2(node))
            elif kind is TransitionKind.UPDATE_PARAMS:
                to_path.append(self.update_params(node))
            else:
                to_path.append(self.enter(node))

        for idx in sorted(plan.exit):
            kind = plan.exit[idx]
            node = plan.from_path[idx]
            if kind is TransitionKind.INACTIVATE:
                from_path.append(self.inactivate(node))
            else:
                from_path.append(self.exit(node))
            self._record.exited.append(node)

        to_path.extend(reactivated)

        for orphan in reversed(plan.orphans):
            from_path.append(self.exit(orphan))
        self._record.exited.extend(plan.orphans)

        return to_path, from_path
