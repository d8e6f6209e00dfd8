"""Tests for ExpansionStateStore transitions and remembered layouts."""

from __future__ import annotations

import pytest

from hunkstage.core.expansion import (
    COLLAPSED,
    FULLY_EXPANDED,
    HEADERS_ONLY,
    ExpansionStateStore,
    PartialHunks,
    hunk_visible,
    is_expanded,
)

KEY = "unstaged:hello.txt"


@pytest.fixture
def store() -> ExpansionStateStore:
    return ExpansionStateStore()


class TestFileStates:
    def test_absent_key_is_collapsed(self, store: ExpansionStateStore) -> None:
        assert store.get(KEY) == COLLAPSED
        assert not is_expanded(store.get(KEY))

    def test_setting_collapsed_removes_entry(self, store: ExpansionStateStore) -> None:
        store.set(KEY, FULLY_EXPANDED)
        store.set(KEY, COLLAPSED)
        assert store.keys() == []

    def test_returned_state_is_a_copy(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({1: True}))
        store.get(KEY).hunks[1] = False
        assert store.get(KEY) == PartialHunks({1: True})

    def test_hunk_visibility(self) -> None:
        assert hunk_visible(FULLY_EXPANDED, 3)
        assert not hunk_visible(HEADERS_ONLY, 1)
        assert not hunk_visible(COLLAPSED, 1)
        assert hunk_visible(PartialHunks({2: True}), 2)
        assert not hunk_visible(PartialHunks({2: True}), 1)


class TestRememberedState:
    def test_partial_layout_restored_after_collapse(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({2: True}))
        previous = store.collapse(KEY)
        assert previous == PartialHunks({2: True})
        assert store.get(KEY) == COLLAPSED
        assert store.recall(KEY) == PartialHunks({2: True})
        assert store.expand(KEY) == PartialHunks({2: True})

    def test_headers_only_restored(self, store: ExpansionStateStore) -> None:
        store.set(KEY, HEADERS_ONLY)
        store.collapse(KEY)
        assert store.expand(KEY) == HEADERS_ONLY

    def test_full_expansion_forgets_snapshot(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({2: True}))
        store.collapse(KEY)
        store.set(KEY, FULLY_EXPANDED)
        store.collapse(KEY)
        assert store.recall(KEY) is None
        assert store.expand(KEY) == FULLY_EXPANDED

    def test_first_expand_uses_default(self, store: ExpansionStateStore) -> None:
        assert store.expand(KEY) == FULLY_EXPANDED
        assert store.expand("unstaged:other", HEADERS_ONLY) == HEADERS_ONLY

    def test_expand_keeps_current_state(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({1: True}))
        assert store.expand(KEY) == PartialHunks({1: True})

    def test_memory_disabled(self) -> None:
        store = ExpansionStateStore(remember_hunk_state=False)
        store.set(KEY, PartialHunks({2: True}))
        store.collapse(KEY)
        assert store.recall(KEY) is None
        assert store.expand(KEY) == FULLY_EXPANDED

    def test_clear_files_keeps_memory(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({2: True}))
        store.collapse(KEY)
        store.set(KEY, HEADERS_ONLY)
        assert store.clear_files([KEY, "staged:missing"]) == [KEY]
        assert store.recall(KEY) == PartialHunks({2: True})

    def test_clear_files_with_repeated_keys(self, store: ExpansionStateStore) -> None:
        store.set(KEY, FULLY_EXPANDED)
        store.set("staged:hello.txt", HEADERS_ONLY)
        assert store.clear_files([KEY, "staged:hello.txt", KEY]) == [KEY, "staged:hello.txt"]
        assert store.keys() == []


class TestHunkToggles:
    def test_toggle_partial(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({1: True}))
        assert store.toggle_hunk(KEY, 1)
        assert store.toggle_hunk(KEY, 2)
        assert store.get(KEY) == PartialHunks({1: False, 2: True})

    def test_toggle_ignored_outside_partial(self, store: ExpansionStateStore) -> None:
        store.set(KEY, FULLY_EXPANDED)
        assert not store.toggle_hunk(KEY, 1)
        assert store.get(KEY) == FULLY_EXPANDED

    def test_collapse_one_hunk_of_full(self, store: ExpansionStateStore) -> None:
        store.set(KEY, FULLY_EXPANDED)
        assert store.collapse_hunk(KEY, 2, 3)
        assert store.get(KEY) == PartialHunks({1: True, 2: False, 3: True})


class TestSectionsAndCommits:
    def test_section_snapshot_round_trip(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({2: True}))
        store.set("unstaged:notes.md", FULLY_EXPANDED)
        store.set("staged:hello.txt", HEADERS_ONLY)
        snapshot = store.remember_section("unstaged")
        assert set(snapshot) == {KEY, "unstaged:notes.md"}
        store.clear_files(store.keys_in_section("unstaged"))
        assert store.keys() == ["staged:hello.txt"]
        assert store.recall_section("unstaged") == snapshot
        store.forget_section("unstaged")
        assert store.recall_section("unstaged") is None

    def test_submodule_keys_belong_to_submodules(self, store: ExpansionStateStore) -> None:
        store.set("submodule:vendor/lib", FULLY_EXPANDED)
        assert store.keys_in_section("submodules") == ["submodule:vendor/lib"]

    def test_section_flags(self, store: ExpansionStateStore) -> None:
        store.set_section_collapsed("recent", True)
        assert store.is_section_collapsed("recent")
        assert store.collapsed_sections() == ["recent"]
        store.set_section_collapsed("recent", False)
        assert store.collapsed_sections() == []

    def test_commit_flags(self, store: ExpansionStateStore) -> None:
        store.set_commit_expanded("c1", True)
        store.set_commit_expanded("c2", True)
        store.clear_commits(["c1"])
        assert not store.is_commit_expanded("c1")
        assert store.is_commit_expanded("c2")
        store.clear_commits()
        assert not store.is_commit_expanded("c2")

    def test_prune_drops_unlisted_targets(self, store: ExpansionStateStore) -> None:
        store.set(KEY, PartialHunks({1: True}))
        store.collapse(KEY)
        store.set("unstaged:gone.txt", FULLY_EXPANDED)
        store.set("unstaged:notes.md", FULLY_EXPANDED)
        store.remember_section("unstaged")
        store.set_commit_expanded("dead", True)

        stale = store.prune({"unstaged:notes.md"}, set())
        assert stale == ["unstaged:gone.txt"]
        assert store.recall(KEY) is None
        assert set(store.recall_section("unstaged")) == {"unstaged:notes.md"}
        assert not store.is_commit_expanded("dead")
