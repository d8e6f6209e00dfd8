from .normalizer import DiffTextNormalizer
from .models import (
    Hunk, DiffData, SubmoduleDiff, FileEntry, SubmoduleEntry, StatusSnapshot,
    HunkIndexOutOfRange, cache_key, submodule_key,
)
from .parser import UnifiedDiffParser
from .patches import HunkPatchBuilder, PartialPatchBuilder, NO_PATCH, NoPatch
from .expansion import (
    Collapsed, HeadersOnly, PartialHunks, FullyExpanded,
    COLLAPSED, HEADERS_ONLY, FULLY_EXPANDED, ExpansionStateStore,
)
from .source import DiffSource, StaticDiffSource
from .fetch import BatchResult, DiffFetcher
from .layout import ViewRow, materialize
from .visibility import Scope, VisibilityLevelController, next_level, resolve_scope
from .session import DEFAULT_SESSION_OPTIONS, PatchRequest, StagingError, ViewSession
from .selftests import HunkStageSelfTests

__all__ = [
    "DiffTextNormalizer","Hunk","DiffData","SubmoduleDiff","FileEntry","SubmoduleEntry",
    "StatusSnapshot","HunkIndexOutOfRange","cache_key","submodule_key",
    "UnifiedDiffParser","HunkPatchBuilder","PartialPatchBuilder","NO_PATCH","NoPatch",
    "Collapsed","HeadersOnly","PartialHunks","FullyExpanded",
    "COLLAPSED","HEADERS_ONLY","FULLY_EXPANDED","ExpansionStateStore",
    "DiffSource","StaticDiffSource","BatchResult","DiffFetcher","ViewRow","materialize",
    "Scope","VisibilityLevelController","next_level","resolve_scope",
    "DEFAULT_SESSION_OPTIONS","PatchRequest","StagingError","ViewSession","HunkStageSelfTests",
]
