from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .config import ConfigManager
from .core import outline
from .core.buffers import Buffer, Workspace
from .core.exceptions import SidebarError
from .core.models import SidebarSettings
from .core.query import SORT_KEYS
from .core.services import Depth, SidebarService, TreeMirrorService
from .core.services.sidebar_service import GROUP_PROPERTIES
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

__all__ = ["main", "build_parser"]


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="outline-sidebar",
        description="Print sidebar views and tree outlines of an Org-style outline file.",
    )
    ap.add_argument("file", help="Outline file to read")
    ap.add_argument("--today", type=_parse_date, default=None,
                    help="Reference date YYYY-MM-DD for date views (default: today)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log progress to the console")

    sub = ap.add_subparsers(dest="command")
    sub.add_parser("show", help="Show the configured default views (default command)")

    q = sub.add_parser("query", help="Show entries selected by an XPath predicate")
    q.add_argument("xpath", help="XPath over the outline index, e.g. \"//entry[@todo='TODO']\"")
    q.add_argument("--narrow", type=int, metavar="LINE", default=None,
                   help="Only consider entries in the subtree of the heading at LINE (1-based)")
    q.add_argument("--group-by", choices=sorted(GROUP_PROPERTIES), default=None,
                   help="Group entries by one property")
    q.add_argument("--sort", nargs="+", metavar="KEY", default=(),
                   help=f"Sort keys among {', '.join(SORT_KEYS)}; prefix with - to reverse")

    t = sub.add_parser("tree", help="Show the tree outline, or the subtree at a line")
    t.add_argument("--jump", type=int, metavar="LINE", default=None,
                   help="Show the subtree view of the heading at LINE (1-based)")
    t.add_argument("--depth", choices=[d.value for d in Depth], default=None,
                   help="Subtree depth for --jump (default: children if any, else none)")
    return ap


def _line_pos(buf: Buffer, line: int) -> int:
    """Return the offset of 1-based *line* in *buf*."""
    lines = buf.text.split("\n")
    if not 1 <= line <= len(lines):
        raise SidebarError(f"Line {line} is outside the document (1..{len(lines)})", buf.name)
    return sum(len(s) + 1 for s in lines[:line - 1])


def _print_surface(buf: Buffer, out: TextIO) -> None:
    if buf.header_line:
        print(f"== {buf.header_line} ==", file=out)
    text = buf.visible_text()
    if text:
        print(text, file=out)
    print(file=out)


def _run(args: argparse.Namespace, out: TextIO) -> None:
    settings = SidebarSettings.from_config(ConfigManager().get_sidebar_config())
    workspace = Workspace()
    path = Path(args.file)
    try:
        source = workspace.open_file(path)
    except OSError as e:
        raise SidebarError(f"Cannot read {path}: {e}", path.name, e) from e

    command = args.command or "show"
    logger.debug("CLI: %s %s", command, path)
    if command == "tree":
        trees = TreeMirrorService(workspace, settings)
        mirror = trees.open(source)
        if args.jump is None:
            _print_surface(mirror.buffer, out)
            return
        view = trees.jump(mirror, _line_pos(source, args.jump), args.depth)
        _print_surface(view.buffer, out)
        return

    service = SidebarService(workspace, settings=settings, today=args.today)
    if command == "query":
        if args.narrow is not None:
            pos = _line_pos(source, args.narrow)
            heading = outline.back_to_heading(source.text, pos)
            if heading is None:
                raise SidebarError(f"No heading at line {args.narrow}", source.name)
            source.narrow(heading, outline.subtree_end(source.text, heading))
        surfaces = service.show_query(
            source,
            args.xpath,
            narrow=args.narrow is not None,
            group_property=args.group_by,
            sort=args.sort,
        )
    else:
        surfaces = service.show(source)

    if not surfaces:
        print("No items.", file=out)
    for surface in surfaces:
        _print_surface(surface, out)


def main(argv: Optional[Sequence[str]] = None, out: Optional[TextIO] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    setup_logging(verbose=args.verbose)
    out = out or sys.stdout
    try:
        _run(args, out)
    except SidebarError as e:
        logger.info("CLI FAIL: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
