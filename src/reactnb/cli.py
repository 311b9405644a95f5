from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .cellparser import parse
from .fmt import format_text
from .lint import lint_notebook
from .model import ExceptionStatement
from .parse import parse_file
from .plan import topo_order

logger = logging.getLogger(__name__)


def _cmd_parse(source_path: str) -> int:
    if source_path == "-":
        source = sys.stdin.read()
    else:
        source = Path(source_path).read_text(encoding="utf-8")
    result = parse(source)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 1 if isinstance(result, ExceptionStatement) else 0


def _cmd_fmt(path: Path) -> int:
    original = path.read_text(encoding="utf-8")
    text = format_text(original)
    if text != original:
        path.write_text(text, encoding="utf-8")
    print(f"Formatted: {path}")
    return 0


def _cmd_lint(path: Path) -> int:
    nb = parse_file(str(path))
    errors, warns = lint_notebook(nb)
    for w in warns:
        print(f"WARN: {w.message}")
    for e in errors:
        print(f"ERROR: {e.message}")
    if errors:
        return 1
    print("OK: no lint errors")
    return 0


def _cmd_graph(path: Path) -> int:
    nb = parse_file(str(path))
    try:
        order = topo_order(nb)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1
    for cid in order:
        print(cid)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="reactnb", description="Reactive notebook toolkit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_parse = sub.add_parser("parse", help="Parse one cell's source and print the result as JSON")
    p_parse.add_argument("file", nargs="?", default="-", help="File holding the cell source (default: stdin)")

    p_fmt = sub.add_parser("fmt", help="Format a .reactnb file (header + cells)")
    p_fmt.add_argument("file")

    p_lint = sub.add_parser("lint", help="Lint a .reactnb file")
    p_lint.add_argument("file")

    p_graph = sub.add_parser("graph", help="Print js cells in evaluation order")
    p_graph.add_argument("file")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.cmd == "parse":
            return _cmd_parse(args.file)
        path = Path(args.file)
        if args.cmd == "fmt":
            return _cmd_fmt(path)
        if args.cmd == "lint":
            return _cmd_lint(path)
        if args.cmd == "graph":
            return _cmd_graph(path)
    except (OSError, ValueError) as e:
        logger.debug("%s failed", args.cmd, exc_info=True)
        print(f"ERROR: {e}")
        return 2

    parser.error(f"unknown command {args.cmd}")
    return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
