"""Hunk Stage core: the diff source contract and an in-memory implementation."""

from __future__ import annotations

import abc
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

DiffLines = Union[str, Sequence[str]]
FetchReply = Tuple[Optional[DiffLines], Optional[str]]


class DiffSource(abc.ABC):
    """
    Supplies diff output and applies patches. Every call is a coroutine that
    reports failure as (None, error) rather than raising.

    Options are passed through untouched (working directory, environment...).
    """

    @abc.abstractmethod
    async def fetch_diff(self, path: str, staged: bool, options: Dict[str, Any]) -> FetchReply:
        ...

    @abc.abstractmethod
    async def fetch_diff_untracked(self, path: str, options: Dict[str, Any]) -> FetchReply:
        ...

    @abc.abstractmethod
    async def fetch_submodule_recorded_sha(
        self, path: str, options: Dict[str, Any]
    ) -> Tuple[Optional[str], Optional[str]]:
        ...

    @abc.abstractmethod
    async def apply_patch(self, patch_text: str, options: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        ...


class StaticDiffSource(DiffSource):
    """
    Diff source backed by dictionaries. Used by the CLI (a diff read from a
    file), the self-tests and the test suite.

    Every request is recorded in `calls` as (method, path) so callers can
    assert how many fetches were issued.
    """

    def __init__(
        self,
        diffs: Optional[Dict[Tuple[str, bool], DiffLines]] = None,
        untracked: Optional[Dict[str, DiffLines]] = None,
        submodule_shas: Optional[Dict[str, Optional[str]]] = None,
        errors: Optional[Dict[str, str]] = None,
    ):
        self.diffs: Dict[Tuple[str, bool], DiffLines] = dict(diffs or {})
        self.untracked: Dict[str, DiffLines] = dict(untracked or {})
        self.submodule_shas: Dict[str, Optional[str]] = dict(submodule_shas or {})
        self.errors: Dict[str, str] = dict(errors or {})  # path -> error for any call
        self.calls: List[Tuple[str, str]] = []
        self.applied: List[Tuple[str, Dict[str, Any]]] = []

    async def fetch_diff(self, path: str, staged: bool, options: Dict[str, Any]) -> FetchReply:
        self.calls.append(("fetch_diff", path))
        if path in self.errors:
            return None, self.errors[path]
        diff = self.diffs.get((path, staged))
        if diff is None:
            # a clean file produces empty diff output, not an error
            return [], None
        return diff, None

    async def fetch_diff_untracked(self, path: str, options: Dict[str, Any]) -> FetchReply:
        self.calls.append(("fetch_diff_untracked", path))
        if path in self.errors:
            return None, self.errors[path]
        diff = self.untracked.get(path)
        if diff is None:
            return None, f"{path}: no such file"
        return diff, None

    async def fetch_submodule_recorded_sha(
        self, path: str, options: Dict[str, Any]
    ) -> Tuple[Optional[str], Optional[str]]:
        self.calls.append(("fetch_submodule_recorded_sha", path))
        if path in self.errors:
            return None, self.errors[path]
        return self.submodule_shas.get(path), None

    async def apply_patch(self, patch_text: str, options: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        self.calls.append(("apply_patch", ""))
        if not patch_text:
            return False, "empty patch"
        self.applied.append((patch_text, dict(options)))
        return True, None

    def fetch_count(self) -> int:
        return sum(1 for method, _ in self.calls if method != "apply_patch")
