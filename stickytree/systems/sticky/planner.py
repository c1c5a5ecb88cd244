"""
stickytree — Transition Planner

Diffs the real from/to paths of one transition and classifies every
element beyond the shared prefix:

  to-path    enter | reactivate | updateStateParams
  from-path  exit | inactivate

plus the inactive orphans of a directly reactivated target and the set of
states that will be inactive once the transition commits. Pure: reads the
registry, never mutates anything.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from stickytree.systems.statetree.engine import own_params_equal
from stickytree.systems.sticky.types import TransitionKind, TransitionPlan

if TYPE_CHECKING:
    from stickytree.config import StickyConfig
    from stickytree.systems.statetree.types import StateNode
    from stickytree.systems.sticky.registry import VirtualRootRegistry

logger = structlog.get_logger("stickytree.systems.sticky.planner")


def _contains(path: list[StateNode], node: StateNode) -> bool:
    return any(element is node for element in path)


class TransitionPlanner:
    """Classifies the states of a pending transition."""

    def __init__(self, registry: VirtualRootRegistry, config: StickyConfig) -> None:
        self._registry = registry
        self._config = config
        self._logger = logger.bind(system="sticky", component="planner")

    def plan(
        self,
        from_path: list[StateNode],
        to_path: list[StateNode],
        from_params: dict[str, Any],
        to_params: dict[str, Any],
        reload_boundary: StateNode | None = None,
    ) -> TransitionPlan:
        pivot = self.pivot_index(from_path, to_path, from_params, to_params, reload_boundary)
        plan = TransitionPlan(
            pivot_index=pivot,
            to_path=list(to_path),
            from_path=list(from_path),
        )
        self._classify_entering(plan, to_params, reload_boundary)
        self._classify_exiting(plan)
        self._find_orphans(plan)
        plan.inactives = self._future_inactives(plan)
        return plan

    # ─── Pivot ───────────────────────────────────────────────────────

    def pivot_index(
        self,
        from_path: list[StateNode],
        to_path: list[StateNode],
        from_params: dict[str, Any],
        to_params: dict[str, Any],
        reload_boundary: StateNode | None = None,
    ) -> int:
        """
        Largest index whose element, and every element before it, is the
        same node on both paths with unchanged own params. The reload
        boundary is never kept. Index 0 is the root and always kept.
        """
        pivot = 0
        for idx in range(1, min(len(from_path), len(to_path))):
            node = to_path[idx]
            if from_path[idx] is not node:
                break
            if node is reload_boundary:
                break
            if not own_params_equal(node, to_params, from_params):
                break
            pivot = idx
        return pivot

    # ─── Classification ──────────────────────────────────────────────

    def _classify_entering(
        self,
        plan: TransitionPlan,
        to_params: dict[str, Any],
        reload_boundary: StateNode | None,
    ) -> None:
        # Once an element is freshly entered, everything below it is too
        forced = reload_boundary is not None and any(
            reload_boundary is n for n in plan.kept
        )
        for idx in range(plan.keep, len(plan.to_path)):
            node = plan.to_path[idx]
            inactive = self._registry.get_inactive(node)
            if node is reload_boundary:
                forced = True

            if forced:
                kind = TransitionKind.UPDATE_PARAMS if inactive else TransitionKind.ENTER
            elif inactive is None:
                kind = TransitionKind.ENTER
            elif self._registry.get_inactive(node, to_params) is not None:
                kind = TransitionKind.REACTIVATE
            else:
                kind = TransitionKind.UPDATE_PARAMS

            if kind is not TransitionKind.REACTIVATE:
                forced = True
            plan.enter[idx] = kind

    def _classify_exiting(self, plan: TransitionPlan) -> None:
        inactivating = True
        for idx in range(plan.keep, len(plan.from_path)):
            node = plan.from_path[idx]
            sticky = self._registry.is_sticky(node) or (
                self._config.inherit_sticky
                and idx > plan.keep
                and plan.exit.get(idx - 1) is TransitionKind.INACTIVATE
            )
            if inactivating and sticky and not _contains(plan.to_path, node):
                plan.exit[idx] = TransitionKind.INACTIVATE
            else:
                plan.exit[idx] = TransitionKind.EXIT
                inactivating = False

    def _find_orphans(self, plan: TransitionPlan) -> None:
        terminal: StateNode | None = None
        for idx, kind in plan.enter.items():
            if kind in (TransitionKind.REACTIVATE, TransitionKind.UPDATE_PARAMS):
                terminal = plan.to_path[idx]
        if terminal is None or not plan.to_path or terminal is not plan.to_path[-1]:
            return
        plan.orphans = self._registry.inactive_descendants(terminal)

    def _future_inactives(self, plan: TransitionPlan) -> list[StateNode]:
        leaving: list[StateNode] = []
        leaving.extend(plan.nodes_of(TransitionKind.REACTIVATE))
        leaving.extend(plan.nodes_of(TransitionKind.UPDATE_PARAMS))
        leaving.extend(plan.orphans)
        exited = [plan.from_path[i] for i, k in plan.exit.items() if k is TransitionKind.EXIT]
        updated = plan.nodes_of(TransitionKind.UPDATE_PARAMS)

        remaining = []
        for node in self._registry.inactive_states():
            if _contains(leaving, node):
                continue
            if any(node.is_descendant_of(gone) for gone in exited + updated):
                continue
            remaining.append(node)

        remaining.extend(plan.nodes_of(TransitionKind.INACTIVATE))
        return remaining
