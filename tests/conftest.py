"""Shared pytest fixtures for hunkstage tests."""

from __future__ import annotations

import pytest

from hunkstage.core.models import DiffData, FileEntry, StatusSnapshot, SubmoduleEntry
from hunkstage.core.normalizer import DiffTextNormalizer
from hunkstage.core.parser import UnifiedDiffParser
from hunkstage.core.source import StaticDiffSource

HELLO_DIFF = (
    "diff --git a/hello.txt b/hello.txt\n"
    "index 123..456 100644\n"
    "--- a/hello.txt\n"
    "+++ b/hello.txt\n"
    "@@ -10,3 +10,3 @@\n"
    " context1\n"
    "-removedA\n"
    "+addedB\n"
    "+addedC\n"
    " context2\n"
    "@@ -40,2 +40,3 @@ def tail():\n"
    " last\n"
    "+appended\n"
    " end\n"
)

NOTES_DIFF = (
    "diff --git a/notes.md b/notes.md\n"
    "--- a/notes.md\n"
    "+++ b/notes.md\n"
    "@@ -1 +1 @@\n"
    "-old\n"
    "+new\n"
)

NEW_FILE_DIFF = (
    "diff --git a/new.txt b/new.txt\n"
    "new file mode 100644\n"
    "--- /dev/null\n"
    "+++ b/new.txt\n"
    "@@ -0,0 +1,2 @@\n"
    "+alpha\n"
    "+beta\n"
)

SUB_SHA_NEW = "b" * 40
SUB_SHA_OLD = "a" * 40


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Run async tests under asyncio only; the fetcher is built on asyncio.gather."""
    return "asyncio"


@pytest.fixture
def source() -> StaticDiffSource:
    return StaticDiffSource(
        diffs={
            ("hello.txt", False): HELLO_DIFF,
            ("notes.md", False): NOTES_DIFF,
            ("hello.txt", True): NOTES_DIFF.replace("notes.md", "hello.txt"),
        },
        untracked={"new.txt": NEW_FILE_DIFF},
        submodule_shas={"vendor/lib": SUB_SHA_OLD},
    )


@pytest.fixture
def snapshot() -> StatusSnapshot:
    return StatusSnapshot(
        files=[
            FileEntry(path="new.txt", section="untracked"),
            FileEntry(path="hello.txt", section="unstaged"),
            FileEntry(path="notes.md", section="unstaged"),
            FileEntry(path="hello.txt", section="staged"),
        ],
        commits={"recent": ["c1", "c2"]},
        submodules=[SubmoduleEntry(path="vendor/lib", sha=SUB_SHA_NEW)],
    )


@pytest.fixture
def hello_text() -> str:
    return HELLO_DIFF


@pytest.fixture
def hello_data(hello_text: str) -> DiffData:
    return UnifiedDiffParser().parse(DiffTextNormalizer().to_lines(hello_text))
