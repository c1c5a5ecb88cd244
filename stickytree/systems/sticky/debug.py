"""
stickytree — Transition Debug Logging

Verbose structlog output used when ``sticky.debug`` is on: the
classification of a pending transition, the substitute paths handed to the
engine, and the locals chain of the reached state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from stickytree.systems.statetree.types import is_view_key
from stickytree.systems.sticky.types import describe_element

if TYPE_CHECKING:
    from stickytree.systems.statetree.types import StateNode
    from stickytree.systems.sticky.registry import VirtualRootRegistry
    from stickytree.systems.sticky.types import TransitionPlan, TransitionRecord

logger = structlog.get_logger("stickytree.systems.sticky.debug")


def _annotate(path: list[StateNode], kinds: dict[int, Any]) -> list[str]:
    # "ENTER: a.b" for classified elements, "(a)" for kept ones
    out = []
    for idx, node in enumerate(path):
        label = node.name or "(root)"
        kind = kinds.get(idx)
        out.append(f"{kind.value.upper()}: {label}" if kind else f"({label})")
    return out


def log_transition(
    record: TransitionRecord,
    plan: TransitionPlan,
    registry: VirtualRootRegistry,
) -> None:
    logger.debug(
        "sticky_transition",
        transition_id=record.id,
        transition=record.describe(),
        inactives_before=[n.name for n in registry.inactive_states()],
        inactives_after=[n.name for n in plan.inactives],
        will_exit=_annotate(plan.from_path, plan.exit),
        will_enter=_annotate(plan.to_path, plan.enter),
        orphans=[n.name for n in plan.orphans],
    )


def log_surrogate_paths(to_path: list[Any], from_path: list[Any]) -> None:
    logger.debug(
        "sticky_surrogate_paths",
        from_path=[describe_element(e) for e in from_path],
        to_path=[describe_element(e) for e in to_path],
    )


def _views_for(node: StateNode) -> str:
    label = node.name or "root"
    if node.locals is None:
        return f"({label}.locals: none)"
    views = ", ".join(
        f"'{key}' ({getattr(value, 'state_name', '?')})"
        for key, value in node.locals.own.items()
        if is_view_key(key)
    )
    return f"({label}.locals" + (f": {views}" if views else "") + ")"


def log_views_after_success(state: StateNode, registry: VirtualRootRegistry) -> None:
    """Log the locals chain of ``state`` root first, with the inactive pool before the root."""
    chain = [_views_for(n) for n in reversed(state.ancestors)] + [_views_for(state)]
    pool = ", ".join(f"'{key}'" for key in registry.pool)
    chain.insert(0, f"(inactives: {pool})" if pool else "(inactives)")
    logger.debug(
        "sticky_views",
        current_state=state.name,
        inactive_states=[n.name for n in registry.inactive_states()],
        views=" / ".join(chain),
    )
