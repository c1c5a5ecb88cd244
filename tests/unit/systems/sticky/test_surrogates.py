"""
Unit tests for SurrogateBuilder.

Tests the hook wrapping of each surrogate kind, the undo registered for
it, and the assembly of both substitute paths.
"""

from __future__ import annotations

from unittest.mock import MagicMock

from stickytree.config import StickyConfig
from stickytree.systems.statetree.locals import LayeredLocals
from stickytree.systems.statetree.tree import StateTree
from stickytree.systems.sticky.ledger import RestoreLedger
from stickytree.systems.sticky.planner import TransitionPlanner
from stickytree.systems.sticky.registry import VirtualRootRegistry
from stickytree.systems.sticky.surrogates import SurrogateBuilder
from stickytree.systems.sticky.types import (
    SurrogateKind,
    SurrogateState,
    TransitionRecord,
)


def _make_builder(tree: StateTree, to: str = "", frm: str = ""):
    registry = VirtualRootRegistry(tree, StickyConfig())
    ledger = RestoreLedger()
    record = TransitionRecord(from_state=tree.get(frm), to_state=tree.get(to))
    return SurrogateBuilder(registry, ledger, record), registry, ledger, record


# ─── Tests: Individual surrogates ─────────────────────────────────


class TestEnterSurrogate:
    def test_wraps_on_enter_and_records_params(self):
        tree = StateTree()
        on_enter = MagicMock()
        a = tree.register("a", params=["id"], on_enter=on_enter)
        builder, registry, ledger, _ = _make_builder(tree)

        element = builder.enter(a)
        assert element is a
        assert a.hooks.on_enter is not on_enter

        a.hooks.on_enter(a, {"id": 4})
        on_enter.assert_called_once_with(a, {"id": 4})
        assert a.current_params == {"id": 4}

        ledger.rollback()
        assert a.hooks.on_enter is on_enter


class TestReactivateSurrogates:
    def test_phase1_carries_retained_locals_and_no_params(self):
        tree = StateTree()
        a = tree.register("a", sticky=True, params=["id"], views={"main": "<a>"})
        a.locals = LayeredLocals({"main@a": "view"})
        builder, _, ledger, _ = _make_builder(tree)

        phase1 = builder.reactivate_phase1(a)

        assert isinstance(phase1, SurrogateState)
        assert phase1.kind is SurrogateKind.REACTIVATE_PHASE1
        assert phase1.real is a
        assert phase1.locals is a.locals
        assert phase1.own_params == []
        assert phase1.hooks is not a.hooks
        assert len(ledger) == 0

    def test_phase2_reattaches_locals_on_enter(self):
        tree = StateTree()
        on_enter = MagicMock()
        a = tree.register("a", sticky=True, views={"main": "<a>"}, resolve={"x": lambda p: 1}, on_enter=on_enter)
        retained = LayeredLocals({"main@a": "view"})
        a.locals = retained
        builder, registry, ledger, _ = _make_builder(tree)
        registry.state_inactivated(a)

        phase2 = builder.reactivate_phase2(a)
        assert phase2.resolve == {}
        assert phase2.views == {}
        assert phase2.hooks is a.hooks

        phase2.locals = LayeredLocals()
        phase2.hooks.on_enter(phase2, {})

        assert phase2.locals is retained
        assert not registry.is_inactive(a)
        on_enter.assert_not_called()

        ledger.rollback()
        assert a.hooks.on_enter is on_enter


class TestExitSurrogates:
    def test_inactivate_skips_real_on_exit(self):
        tree = StateTree()
        on_exit = MagicMock()
        on_inactivate = MagicMock()
        a = tree.register("a", sticky=True, on_exit=on_exit, on_inactivate=on_inactivate)
        builder, registry, ledger, _ = _make_builder(tree)

        surrogate = builder.inactivate(a)
        surrogate.hooks.on_exit(surrogate, {})

        on_exit.assert_not_called()
        on_inactivate.assert_called_once()
        assert registry.is_inactive(a)

        ledger.rollback()
        assert a.hooks.on_exit is on_exit

    def test_exit_runs_real_hook_and_drops_node(self):
        tree = StateTree()
        on_exit = MagicMock()
        a = tree.register("a", on_exit=on_exit)
        a.locals = LayeredLocals()
        builder, registry, ledger, record = _make_builder(tree)

        element = builder.exit(a)
        element.hooks.on_exit(element, {"p": 1})

        on_exit.assert_called_once_with(a, {"p": 1})
        assert a.locals is None
        ledger.rollback()
        assert a.hooks.on_exit is on_exit


# ─── Tests: Assembly ──────────────────────────────────────────────


class TestBuild:
    def test_reactivate_and_inactivate_paths(self):
        tree = StateTree()
        tree.register("A", sticky=True)
        tree.register("B", sticky=True)
        tree.register("A.X")
        config = StickyConfig()
        registry = VirtualRootRegistry(tree, config)
        registry.state_inactivated(tree.get("A"))
        plan = TransitionPlanner(registry, config).plan(
            tree.path_of(tree.get("B")), tree.path_of(tree.get("A.X")), {}, {}
        )
        ledger = RestoreLedger()
        record = TransitionRecord(from_state=tree.get("B"), to_state=tree.get("A.X"))

        to_path, from_path = SurrogateBuilder(registry, ledger, record).build(plan)

        root, a, b, ax = tree.root, tree.get("A"), tree.get("B"), tree.get("A.X")
        assert to_path[0] is root and from_path[0] is root
        phase1 = to_path[1]
        assert phase1.kind is SurrogateKind.REACTIVATE_PHASE1
        assert from_path[1] is phase1
        assert to_path[2] is ax
        assert to_path[3].kind is SurrogateKind.REACTIVATE_PHASE2
        assert from_path[2].kind is SurrogateKind.INACTIVATE
        assert from_path[2].real is b
        assert len(to_path) == 4 and len(from_path) == 3
        assert record.exited == [b]
        # enter(A.X) + phase2(A) + inactivate(B)
        assert len(ledger) == 3
        assert a.path == [root, a]

    def test_orphans_appended_shallowest_first(self):
        tree = StateTree()
        tree.register("A", sticky=True)
        tree.register("A.X", sticky=True)
        tree.register("A.X.Y", sticky=True)
        tree.register("B")
        config = StickyConfig()
        registry = VirtualRootRegistry(tree, config)
        for name in ("A", "A.X", "A.X.Y"):
            registry.state_inactivated(tree.get(name))
        plan = TransitionPlanner(registry, config).plan(
            tree.path_of(tree.get("B")), tree.path_of(tree.get("A")), {}, {}
        )
        record = TransitionRecord(from_state=tree.get("B"), to_state=tree.get("A"))

        _, from_path = SurrogateBuilder(registry, RestoreLedger(), record).build(plan)

        # The engine walks the from-path leaf to root: A.X.Y exits first
        assert [e.name for e in from_path] == ["", "A", "B", "A.X", "A.X.Y"]
        assert [n.name for n in record.exited] == ["B", "A.X.Y", "A.X"]
