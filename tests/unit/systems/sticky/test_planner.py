"""
Unit tests for TransitionPlanner.

Tests pivot detection and the per-element classification of both paths
against a registry holding a hand-built set of inactive states.
"""

from __future__ import annotations

from stickytree.config import StickyConfig
from stickytree.systems.statetree.tree import StateTree
from stickytree.systems.sticky.planner import TransitionPlanner
from stickytree.systems.sticky.registry import VirtualRootRegistry
from stickytree.systems.sticky.types import TransitionKind

ENTER = TransitionKind.ENTER
EXIT = TransitionKind.EXIT
INACTIVATE = TransitionKind.INACTIVATE
REACTIVATE = TransitionKind.REACTIVATE
UPDATE = TransitionKind.UPDATE_PARAMS


def _make_tree() -> StateTree:
    tree = StateTree()
    tree.register("A", sticky=True, params=["id"])
    tree.register("A.X")
    tree.register("A.X.Y")
    tree.register("A.Z", sticky=True)
    tree.register("B")
    tree.register("C", sticky=True)
    tree.register("C.D")
    return tree


def _make_planner(
    tree: StateTree, **config: object
) -> tuple[TransitionPlanner, VirtualRootRegistry]:
    cfg = StickyConfig(**config)
    registry = VirtualRootRegistry(tree, cfg)
    return TransitionPlanner(registry, cfg), registry


def _inactivate(registry: VirtualRootRegistry, tree: StateTree, name: str, **params: object) -> None:
    node = tree.get(name)
    node.current_params = dict(params)
    registry.state_inactivated(node)


def _plan(planner, tree, from_name, to_name, from_params=None, to_params=None, boundary=None):
    return planner.plan(
        tree.path_of(tree.get(from_name)),
        tree.path_of(tree.get(to_name)),
        from_params or {},
        to_params or {},
        tree.get(boundary) if boundary else None,
    )


# ─── Tests: Pivot ─────────────────────────────────────────────────


class TestPivot:
    def test_root_is_always_kept(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "", "B")
        assert plan.pivot_index == 0
        assert plan.keep == 1
        assert plan.kept == [tree.root]

    def test_shared_prefix_is_kept(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "A.X.Y", "A.Z", {"id": 1}, {"id": 1})
        assert plan.pivot_index == 1
        assert plan.enter == {2: ENTER}
        assert plan.exit == {2: EXIT, 3: EXIT}

    def test_changed_own_param_stops_pivot(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "A.X", "A.X", {"id": 1}, {"id": 2})
        assert plan.pivot_index == 0
        assert plan.enter == {1: ENTER, 2: ENTER}
        # The target's own ancestor is on the to-path: never inactivated
        assert plan.exit == {1: EXIT, 2: EXIT}

    def test_reload_boundary_is_never_kept(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "A.X.Y", "A.X.Y", {"id": 1}, {"id": 1}, boundary="A.X")
        assert plan.pivot_index == 1
        assert plan.enter == {2: ENTER, 3: ENTER}
        assert plan.exit == {2: EXIT, 3: EXIT}


# ─── Tests: Exit classification ───────────────────────────────────


class TestExiting:
    def test_sticky_state_is_inactivated(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "A.X", "B", {"id": 1})
        assert plan.exit == {1: INACTIVATE, 2: EXIT}
        assert plan.enter == {1: ENTER}
        assert plan.inactives == [tree.get("A")]

    def test_sticky_below_exiting_parent_is_exited(self):
        tree = _make_tree()
        tree.register("B.S", sticky=True)
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "B.S", "C")
        assert plan.exit == {1: EXIT, 2: EXIT}

    def test_inherit_sticky_inactivates_descendants(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree, inherit_sticky=True)
        plan = _plan(planner, tree, "A.X.Y", "B", {"id": 1})
        assert plan.exit == {1: INACTIVATE, 2: INACTIVATE, 3: INACTIVATE}
        assert plan.inactives == [tree.get("A"), tree.get("A.X"), tree.get("A.X.Y")]

    def test_exited_parent_drops_inactive_descendants(self):
        tree = _make_tree()
        tree.register("B.S", sticky=True)
        tree.register("B.T")
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "B.S")
        plan = _plan(planner, tree, "B.T", "C")
        assert plan.exit == {1: EXIT, 2: EXIT}
        assert plan.inactives == []


# ─── Tests: Enter classification ──────────────────────────────────


class TestEntering:
    def test_inactive_with_same_params_is_reactivated(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "A", id=1)
        plan = _plan(planner, tree, "B", "A", {}, {"id": 1})
        assert plan.enter == {1: REACTIVATE}
        assert plan.exit == {1: EXIT}
        assert plan.inactives == []

    def test_inactive_with_changed_params_is_updated(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "A", id=1)
        plan = _plan(planner, tree, "B", "A.X", {}, {"id": 2})
        assert plan.enter == {1: UPDATE, 2: ENTER}

    def test_fresh_entry_forces_descendants(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "C")
        _inactivate(registry, tree, "C.D")
        plan = _plan(planner, tree, "B", "C.D", boundary="C")
        assert plan.enter == {1: UPDATE, 2: UPDATE}

    def test_reactivated_parent_with_entered_child(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "A", id=1)
        plan = _plan(planner, tree, "B", "A.X", {}, {"id": 1})
        assert plan.enter == {1: REACTIVATE, 2: ENTER}
        assert plan.classify(tree.get("A")) is REACTIVATE
        assert plan.classify(tree.get("A.X")) is ENTER
        assert plan.classify(tree.get("B")) is EXIT
        assert plan.classify(tree.get("C")) is None

    def test_changed_params_classify_both_sides(self):
        tree = _make_tree()
        planner, _ = _make_planner(tree)
        plan = _plan(planner, tree, "A.X", "A.X", {"id": 1}, {"id": 2})
        a = tree.get("A")
        assert plan.pivot_index == 0
        assert plan.classify(a) is ENTER
        assert plan.classify(a, exiting=True) is EXIT
        assert plan.classify(tree.get("A.X"), exiting=True) is EXIT
        assert plan.classify(tree.get("B"), exiting=True) is None

    def test_peer_sticky_swap(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "A", id=1)
        plan = _plan(planner, tree, "C", "A", {}, {"id": 1})
        assert plan.enter == {1: REACTIVATE}
        assert plan.exit == {1: INACTIVATE}
        assert plan.inactives == [tree.get("C")]


# ─── Tests: Orphans ───────────────────────────────────────────────


class TestOrphans:
    def test_reactivated_target_orphans_deepest_first(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "A", id=1)
        _inactivate(registry, tree, "A.X")
        _inactivate(registry, tree, "A.Z")
        _inactivate(registry, tree, "A.X.Y")
        plan = _plan(planner, tree, "B", "A", {}, {"id": 1})

        assert [n.name for n in plan.orphans] == ["A.X.Y", "A.Z", "A.X"]
        assert plan.classify(tree.get("A.X.Y")) is EXIT
        assert plan.inactives == []

    def test_no_orphans_when_target_is_deeper(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "A", id=1)
        _inactivate(registry, tree, "A.Z")
        plan = _plan(planner, tree, "B", "A.X", {}, {"id": 1})
        assert plan.orphans == []
        assert plan.inactives == [tree.get("A.Z")]

    def test_unrelated_inactives_survive(self):
        tree = _make_tree()
        planner, registry = _make_planner(tree)
        _inactivate(registry, tree, "C")
        plan = _plan(planner, tree, "B", "A", {}, {"id": 1})
        assert plan.inactives == [tree.get("C")]
        assert plan.nodes_of(ENTER) == [tree.get("A")]
