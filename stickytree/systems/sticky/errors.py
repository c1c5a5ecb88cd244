"""
stickytree -- Sticky Core Error Hierarchy

All exceptions raised by the transition planning and substitution core.

Namespace: stickytree.systems.sticky.errors
Distinct from: stickytree.systems.statetree.errors  (registration / lookup)
and stickytree.systems.statetree.engine.TransitionFailed (engine rejections,
which the coordinator re-raises unchanged).

Severity guide:
  LedgerClosedError  HIGH     -- an undo was registered after the ledger rolled back
  RestoreError       CRITICAL -- an undo action failed; node paths or hooks may be stale
"""

from __future__ import annotations


class StickyError(RuntimeError):
    """Base for all sticky core errors."""


class LedgerClosedError(StickyError):
    """
    An undo action was added to a ledger that has already rolled back.

    The action would never run, leaving a temporary mutation in place.
    """


class RestoreError(StickyError):
    """
    One or more undo actions raised during rollback.

    Every action is still attempted; ``failures`` carries (label, exception)
    pairs for each that raised.
    """

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        labels = ", ".join(label for label, _ in failures)
        super().__init__(f"{len(failures)} restore action(s) failed: {labels}")
        self.failures = failures
