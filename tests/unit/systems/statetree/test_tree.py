"""
Unit tests for StateTree.

Tests registration, parent inference, relative lookup, and the
registration notification used to discover sticky states.
"""

from __future__ import annotations

import pytest

from stickytree.systems.statetree.errors import StateNotFoundError, StateRegistrationError
from stickytree.systems.statetree.tree import StateTree
from stickytree.systems.statetree.types import StateStatus


def _make_tree() -> StateTree:
    tree = StateTree()
    tree.register("app", params=["lang"])
    tree.register("app.inbox", sticky=True)
    tree.register("app.inbox.message", params=["id"])
    tree.register("app.settings")
    return tree


# ─── Tests: Registration ──────────────────────────────────────────


def test_root_is_active_with_locals():
    tree = StateTree()
    assert tree.root.name == ""
    assert tree.root.status == StateStatus.ACTIVE
    assert tree.root.locals is not None
    assert len(tree) == 1


def test_parent_inferred_from_dotted_name():
    tree = _make_tree()
    message = tree.get("app.inbox.message")
    assert message.parent is tree.get("app.inbox")
    assert tree.get("app").parent is tree.root
    assert tree.get("app.inbox").children == [message]


def test_params_accumulate_down_the_tree():
    tree = _make_tree()
    message = tree.get("app.inbox.message")
    assert message.own_params == ["id"]
    assert message.params == ["lang", "id"]


def test_path_is_root_first():
    tree = _make_tree()
    message = tree.get("app.inbox.message")
    assert [n.name for n in message.path] == ["", "app", "app.inbox", "app.inbox.message"]
    assert tree.path_of(message) == message.path
    assert message.depth == 3


def test_explicit_parent():
    tree = StateTree()
    tree.register("shell")
    node = tree.register("panel", parent="shell")
    assert node.parent is tree.get("shell")


def test_duplicate_raises():
    tree = _make_tree()
    with pytest.raises(StateRegistrationError, match="already registered"):
        tree.register("app")


def test_missing_parent_raises():
    tree = StateTree()
    with pytest.raises(StateRegistrationError, match="not registered"):
        tree.register("ghost.child")


def test_root_cannot_be_registered():
    tree = StateTree()
    with pytest.raises(StateRegistrationError):
        tree.register("")


def test_hooks_are_stored():
    tree = StateTree()
    calls = []
    node = tree.register("a", on_enter=lambda s, p: calls.append(s.name))
    node.hooks.on_enter(node, {})
    assert calls == ["a"]


# ─── Tests: Notification ──────────────────────────────────────────


class TestStateRegistered:
    def test_subscriber_sees_new_states(self):
        tree = StateTree()
        seen = []
        tree.on_state_registered(lambda n: seen.append(n.name))
        tree.register("a")
        tree.register("a.b")
        assert seen == ["a", "a.b"]

    def test_late_subscriber_gets_replay(self):
        tree = _make_tree()
        seen = []
        tree.on_state_registered(lambda n: seen.append(n.name))
        assert seen == ["app", "app.inbox", "app.inbox.message", "app.settings"]


# ─── Tests: Lookup ────────────────────────────────────────────────


class TestFind:
    def test_absolute(self):
        tree = _make_tree()
        assert tree.find("app.inbox").name == "app.inbox"
        assert tree.find("") is tree.root

    def test_unknown_returns_none(self):
        tree = _make_tree()
        assert tree.find("nope") is None

    def test_get_unknown_raises(self):
        tree = _make_tree()
        with pytest.raises(StateNotFoundError) as info:
            tree.get("nope", relative_to="app")
        assert info.value.name == "nope"
        assert info.value.relative_to == "app"

    def test_node_must_belong_to_tree(self):
        tree = _make_tree()
        other = _make_tree()
        assert tree.find(other.get("app")) is None
        assert tree.find(tree.get("app")) is tree.get("app")

    def test_parent(self):
        tree = _make_tree()
        assert tree.find("^", relative_to="app.inbox") is tree.get("app")

    def test_sibling(self):
        tree = _make_tree()
        assert tree.find("^.settings", relative_to="app.inbox") is tree.get("app.settings")

    def test_child(self):
        tree = _make_tree()
        inbox = tree.get("app.inbox")
        assert tree.find(".message", relative_to=inbox) is tree.get("app.inbox.message")

    def test_child_of_root(self):
        tree = _make_tree()
        assert tree.find(".app", relative_to=tree.root) is tree.get("app")

    def test_parent_of_root_is_none(self):
        tree = _make_tree()
        assert tree.find("^", relative_to=tree.root) is None

    def test_relative_without_base_is_none(self):
        tree = _make_tree()
        assert tree.find("^.settings") is None


def test_descendants_depth_first():
    tree = _make_tree()
    names = [n.name for n in tree.descendants_of(tree.get("app"))]
    assert names == ["app.inbox", "app.inbox.message", "app.settings"]


def test_contains_and_iter():
    tree = _make_tree()
    assert "app.inbox" in tree
    assert tree.get("app") in tree
    assert "ghost" not in tree
    assert len(list(tree)) == len(tree) == 5


def test_includes():
    tree = _make_tree()
    message = tree.get("app.inbox.message")
    assert message.includes(tree.get("app"))
    assert message.includes(message)
    assert not message.is_descendant_of(message)
    assert not tree.get("app.settings").includes(tree.get("app.inbox"))
