"""
stickytree -- Restore Ledger

Every temporary mutation made to steer the engine through one transition
is registered here together with the original to/from path lists. The
coordinator rolls the ledger back when the transition settles, whatever
the outcome, and again when a newer request supersedes it. Only the first
rollback does anything.

Restore order:
  1. to-state path
  2. from-state path
  3. undo actions, most recently registered first
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from stickytree.systems.sticky.errors import LedgerClosedError, RestoreError

if TYPE_CHECKING:
    from stickytree.systems.statetree.types import StateNode

logger = structlog.get_logger("stickytree.systems.sticky.ledger")

UndoAction = Callable[[], Any]


class RestoreLedger:
    """Ordered undo actions plus saved path lists for one transition."""

    def __init__(self, transition_id: str = "") -> None:
        self._transition_id = transition_id
        self._log = logger.bind(system="sticky", component="ledger", transition_id=transition_id)
        self._actions: list[tuple[str, UndoAction]] = []
        self._saved_to: tuple[StateNode, list[Any]] | None = None
        self._saved_from: tuple[StateNode, list[Any]] | None = None
        self._rolled_back = False

    @property
    def rolled_back(self) -> bool:
        return self._rolled_back

    def __len__(self) -> int:
        return len(self._actions)

    def save_paths(self, to_state: StateNode, from_state: StateNode) -> None:
        """Remember the path list objects currently held by both endpoints."""
        self._saved_to = (to_state, to_state.path)
        self._saved_from = (from_state, from_state.path)

    def add(self, undo: UndoAction, label: str = "") -> None:
        if self._rolled_back:
            raise LedgerClosedError(
                f"Cannot register '{label or undo!r}' on a ledger that already rolled back"
            )
        self._actions.append((label or getattr(undo, "__name__", "undo"), undo))

    def rollback(self) -> bool:
        """
        Put every saved path and hook back. Returns False when the ledger
        had already rolled back. Every undo is attempted even if one fails;
        failures are then raised together as RestoreError.
        """
        if self._rolled_back:
            return False
        self._rolled_back = True

        if self._saved_to is not None:
            node, path = self._saved_to
            node.path = path
        if self._saved_from is not None:
            node, path = self._saved_from
            node.path = path

        failures: list[tuple[str, BaseException]] = []
        for label, undo in reversed(self._actions):
            try:
                undo()
            except Exception as exc:
                self._log.error("restore_action_failed", action=label, error=str(exc))
                failures.append((label, exc))
        self._actions.clear()

        if failures:
            raise RestoreError(failures)

        self._log.debug("ledger_rolled_back")
        return True
