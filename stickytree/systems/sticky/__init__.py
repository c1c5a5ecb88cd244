"""
stickytree — Sticky States

Transition planning and path substitution for sticky subtrees: states that
are parked in an inactive pool with their views intact when navigation
moves away, and restored exactly as left when it comes back.
"""

from stickytree.systems.sticky.errors import LedgerClosedError, RestoreError, StickyError
from stickytree.systems.sticky.events import StickyEventBus
from stickytree.systems.sticky.ledger import RestoreLedger
from stickytree.systems.sticky.planner import TransitionPlanner
from stickytree.systems.sticky.registry import VirtualRootRegistry
from stickytree.systems.sticky.service import TransitionCoordinator
from stickytree.systems.sticky.surrogates import SurrogateBuilder
from stickytree.systems.sticky.types import (
    StickyEvent,
    StickyEventType,
    SurrogateKind,
    SurrogateState,
    TransitionKind,
    TransitionOptions,
    TransitionPhase,
    TransitionPlan,
    TransitionRecord,
)

__all__ = [
    # Service
    "TransitionCoordinator",
    # Components
    "RestoreLedger",
    "StickyEventBus",
    "SurrogateBuilder",
    "TransitionPlanner",
    "VirtualRootRegistry",
    # Errors
    "LedgerClosedError",
    "RestoreError",
    "StickyError",
    # Types
    "StickyEvent",
    "StickyEventType",
    "SurrogateKind",
    "SurrogateState",
    "TransitionKind",
    "TransitionOptions",
    "TransitionPhase",
    "TransitionPlan",
    "TransitionRecord",
]
