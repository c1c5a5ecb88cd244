"""
stickytree -- State Tree Error Hierarchy

Namespace: stickytree.systems.statetree.errors
Distinct from: stickytree.systems.sticky.errors  (transition bookkeeping errors)

  StateNotFoundError      -- a name did not resolve; callers abort the transition
  StateRegistrationError  -- the tree rejected a registration (duplicate, orphan)
"""

from __future__ import annotations


class StateTreeError(RuntimeError):
    """Base for all state tree errors."""


class StateNotFoundError(StateTreeError, LookupError):
    """A state name (absolute or relative) did not resolve to a registered node."""

    def __init__(self, name: str, relative_to: str | None = None) -> None:
        self.name = name
        self.relative_to = relative_to
        where = f" relative to '{relative_to}'" if relative_to is not None else ""
        super().__init__(f"No such state '{name}'{where}")


class StateRegistrationError(StateTreeError):
    """A state could not be registered (duplicate name or unknown parent)."""
