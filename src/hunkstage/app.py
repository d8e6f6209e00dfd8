"""Hunk Stage entrypoint (CLI patch synthesis + selftest)."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Set

from .core.models import HunkIndexOutOfRange
from .core.normalizer import DiffTextNormalizer
from .core.parser import UnifiedDiffParser
from .core.patches import NO_PATCH, HunkPatchBuilder, PartialPatchBuilder
from .core.selftests import HunkStageSelfTests


def _run_selftests_cli() -> int:
    ok, report = HunkStageSelfTests.run()
    print(report)
    return 0 if ok else 2


def _parse_selection(text: str) -> Set[int]:
    selected: Set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            lo, hi = part.split("-", 1)
            selected.update(range(int(lo), int(hi) + 1))
        else:
            selected.add(int(part))
    return selected


def _build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="hunkstage", description="Build single-hunk and line-level patches from a diff.")
    ap.add_argument("--selftest", action="store_true", help="run the in-process self tests")
    sub = ap.add_subparsers(dest="command")

    p_hunk = sub.add_parser("hunk", help="print the patch for one hunk")
    p_hunk.add_argument("diff_file")
    p_hunk.add_argument("hunk_index", type=int)

    p_lines = sub.add_parser("lines", help="print the patch for selected lines of one hunk")
    p_lines.add_argument("diff_file")
    p_lines.add_argument("hunk_index", type=int)
    p_lines.add_argument("--select", required=True,
                         help="display positions, 1-based from the first hunk header (e.g. 3,5-7)")
    p_lines.add_argument("--reverse", action="store_true", help="build an unstage patch")
    return ap


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv if argv is None else argv)
    if "--selftest" in argv:
        return _run_selftests_cli()

    args = _build_arg_parser().parse_args(argv[1:])
    if args.command is None:
        _build_arg_parser().print_usage(sys.stderr)
        return 2

    normalizer = DiffTextNormalizer()
    parser = UnifiedDiffParser()
    raw = Path(args.diff_file).read_text(encoding="utf-8", errors="replace")
    data = parser.parse(normalizer.to_lines(raw))

    try:
        if args.command == "hunk":
            lines = HunkPatchBuilder().build(data, args.hunk_index)
        else:
            result = PartialPatchBuilder(parser).build(
                data, args.hunk_index, _parse_selection(args.select), args.reverse
            )
            if result is NO_PATCH:
                print("no patch: selection contains no changes", file=sys.stderr)
                return 1
            lines = result
    except HunkIndexOutOfRange as e:
        print(str(e), file=sys.stderr)
        return 2

    sys.stdout.write(normalizer.to_text(lines))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
