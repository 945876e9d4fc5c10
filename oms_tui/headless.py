"""Headless renderer: print a rendered event log to stdout.

Usage:
    # Render the whole log at terminal width
    python -m oms_tui session.ndjson

    # Render the last 40 rows at 100 columns, without styling
    python -m oms_tui session.ndjson --width 100 --height 40 --plain

The event log is NDJSON, one event object per line. Lines that do not
decode become ``rpc_parse_error`` events so they show up in the output.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.text import Text

from .block_renderer import RenderOptions, get_rendered_rpc_lines, render_rpc_events
from .config import load_config, set_config
from .errors import EventLogError, OmsTuiError

logger = logging.getLogger(__name__)


def parse_event_line(line: str, line_number: int) -> Optional[Dict[str, Any]]:
    """Decode one NDJSON line; blank lines yield None."""
    text = line.strip()
    if not text:
        return None
    try:
        event = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Line {line_number}: undecodable event: {e}")
        return {"type": "rpc", "data": {"type": "rpc_parse_error", "error": f"line {line_number}: {e.msg}"}}
    if not isinstance(event, dict):
        return {
            "type": "rpc",
            "data": {"type": "rpc_parse_error", "error": f"line {line_number}: not an object"},
        }
    return event


def read_event_log(path: str) -> List[Dict[str, Any]]:
    """Read an NDJSON event log.

    Raises:
        EventLogError: If the file cannot be read.
    """
    events = []
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for number, line in enumerate(f, start=1):
                event = parse_event_line(line, number)
                if event is not None:
                    events.append(event)
    except OSError as e:
        raise EventLogError(f"Cannot read event log {path}: {e}") from e
    return events


def render_event_log(
    events: Sequence[Any],
    width: int,
    height: Optional[int] = None,
    scroll_top: Optional[int] = None,
    options: Optional[RenderOptions] = None,
) -> List[str]:
    """All rendered lines, or the window selected by ``height``/``scroll_top``."""
    if height is None:
        return get_rendered_rpc_lines(events, width, options)
    return render_rpc_events(events, width, height, scroll_top, options)


def write_lines(console: Console, lines: Sequence[str], plain: bool = False) -> None:
    for line in lines:
        text = Text.from_ansi(line)
        if plain:
            console.print(text.plain, markup=False, highlight=False, soft_wrap=True)
        else:
            console.print(text, no_wrap=True, overflow="ignore", crop=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oms_tui",
        description="Render an orchestration event log the way the dashboard shows it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m oms_tui session.ndjson
  python -m oms_tui session.ndjson --width 100 --height 40 --scroll-top 0
  python -m oms_tui session.ndjson --plain --align-tags
        """,
    )
    parser.add_argument("events", metavar="PATH", help="NDJSON event log")
    parser.add_argument(
        "--width", "-w",
        type=int,
        help="Render width in columns (default: terminal width)",
    )
    parser.add_argument(
        "--height",
        type=int,
        help="Viewport height; prints only the visible window",
    )
    parser.add_argument(
        "--scroll-top",
        type=int,
        help="First visible line of the window (default: follow the tail)",
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Strip colors and styling",
    )
    parser.add_argument(
        "--align-tags",
        action="store_true",
        help="Align log tags into one shared column",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="JSON render config (unknown keys and invalid values are errors)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )

    console = Console(no_color=args.plain, highlight=False)
    error_console = Console(stderr=True, highlight=False)

    try:
        if args.config:
            set_config(load_config(args.config, strict=True))
        events = read_event_log(args.events)
    except OmsTuiError as e:
        error_console.print(f"Error: {e}", markup=False)
        return 1

    width = args.width if args.width is not None else console.width
    if width <= 0:
        error_console.print("Error: width must be positive", markup=False)
        return 2

    options = RenderOptions(align_log_tags=args.align_tags)
    lines = render_event_log(events, width, args.height, args.scroll_top, options)
    logger.debug(f"Rendered {len(events)} events into {len(lines)} lines at width {width}")
    write_lines(console, lines, plain=args.plain)
    return 0


if __name__ == "__main__":
    sys.exit(main())
