"""
stickytree — State Tree

The hierarchy of named, nested states, the layered view-locals each state
carries, and the boundary to the path-driven transition engine.
"""

from stickytree.systems.statetree.engine import (
    TRANSITION_ABORTED,
    TRANSITION_PREVENTED,
    TRANSITION_SUPERSEDED,
    EngineRequest,
    PathEngine,
    TransitionEngine,
    TransitionFailed,
)
from stickytree.systems.statetree.errors import (
    StateNotFoundError,
    StateRegistrationError,
    StateTreeError,
)
from stickytree.systems.statetree.locals import LayeredLocals
from stickytree.systems.statetree.tree import StateTree
from stickytree.systems.statetree.types import (
    ROOT_NAME,
    LifecycleHooks,
    StateNode,
    StateStatus,
    ViewLocal,
    is_view_key,
    view_key,
)

__all__ = [
    # Tree
    "StateTree",
    "LayeredLocals",
    # Engine boundary
    "EngineRequest",
    "PathEngine",
    "TransitionEngine",
    "TransitionFailed",
    "TRANSITION_ABORTED",
    "TRANSITION_PREVENTED",
    "TRANSITION_SUPERSEDED",
    # Errors
    "StateNotFoundError",
    "StateRegistrationError",
    "StateTreeError",
    # Types
    "ROOT_NAME",
    "LifecycleHooks",
    "StateNode",
    "StateStatus",
    "ViewLocal",
    "is_view_key",
    "view_key",
]
