"""Command-line interface: ``tail`` follows the live log, ``parse`` reads history.

Events go to stdout (JSON Lines or a pretty one-line form); warnings and
diagnostics go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO

from channels import select
from config_loader import (
    build_config,
    load_config_file,
    normalise_event_types,
    parse_timestamp,
    reject_overlap,
)
from errors import AppError, ConfigError
from logging_config import setup_logging
from models import Event, EventType, TypeFilter
from services import ParseOptions, WatchEngine, parse_dir

logger = logging.getLogger(__name__)

FORMATS = ("jsonl", "pretty")
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def format_jsonl(event: Event) -> str:
    return json.dumps(event.to_dict(), ensure_ascii=False)


def format_pretty(event: Event) -> str:
    ts = event.timestamp.strftime("%H:%M:%S")
    if event.type == EventType.PLAYER_JOIN:
        return f"[{ts}] + {event.player_name} joined"
    if event.type == EventType.PLAYER_LEFT:
        return f"[{ts}] - {event.player_name} left"
    if event.type == EventType.WORLD_JOIN:
        if event.world_name:
            return f"[{ts}] > Joined world: {event.world_name}"
        return f"[{ts}] > Joined instance: {event.instance_id}"
    return f"[{ts}] ? {event.type.value}"


FORMATTERS: Dict[str, Callable[[Event], str]] = {
    "jsonl": format_jsonl,
    "pretty": format_pretty,
}


def _type_help() -> str:
    return f"comma-separated event types ({', '.join(EventType.names())})"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vrclog-watch",
        description="Parse and monitor VRChat log files.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging on stderr")
    parser.add_argument("--log-file", type=Path, default=None, help="also write diagnostics to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    tail = subparsers.add_parser("tail", help="monitor the newest log file and print events")
    tail.add_argument("-d", "--log-dir", default="", help="log directory (auto-detected if omitted)")
    tail.add_argument("-f", "--format", choices=FORMATS, default="jsonl")
    tail.add_argument("-t", "--types", "--include-types", dest="include_types", action="append",
                      default=[], help=_type_help())
    tail.add_argument("--exclude-types", action="append", default=[], help=_type_help())
    tail.add_argument("--raw", action="store_true", help="include raw log lines in output")
    tail.add_argument("--replay-last", type=int, default=-1,
                      help="replay last N lines before tailing (-1 disabled, 0 from start)")
    tail.add_argument("--replay-since", default="",
                      help="replay events since an RFC 3339 timestamp")
    tail.add_argument("--poll-interval", type=float, default=None,
                      help="seconds between log rotation checks")
    tail.add_argument("--config", type=Path, default=None, help="YAML config file")
    tail.set_defaults(handler=run_tail)

    parse = subparsers.add_parser("parse", help="parse log files in chronological order")
    parse.add_argument("files", nargs="*", help="explicit log files (default: all in the log directory)")
    parse.add_argument("-d", "--log-dir", default="", help="log directory (auto-detected if omitted)")
    parse.add_argument("-f", "--format", choices=FORMATS, default="jsonl")
    parse.add_argument("--include-types", action="append", default=[], help=_type_help())
    parse.add_argument("--exclude-types", action="append", default=[], help=_type_help())
    parse.add_argument("--since", default="", help="only events at/after this RFC 3339 timestamp")
    parse.add_argument("--until", default="", help="only events before this RFC 3339 timestamp")
    parse.add_argument("--raw", action="store_true", help="include raw log lines in output")
    parse.add_argument("--stop-on-error", action="store_true", help="stop at the first malformed line")
    parse.set_defaults(handler=run_parse)

    return parser


def _tail_raw_config(args: argparse.Namespace) -> Dict[str, Any]:
    if args.replay_last >= 0 and args.replay_since:
        raise ConfigError("--replay-last and --replay-since cannot be used together")

    raw: Dict[str, Any] = load_config_file(args.config) if args.config else {}
    if args.log_dir:
        raw["log_dir"] = args.log_dir
    if args.poll_interval is not None:
        raw["poll_interval"] = args.poll_interval
    if args.raw:
        raw["include_raw_line"] = True
    if args.include_types:
        raw["include_types"] = args.include_types
    if args.exclude_types:
        raw["exclude_types"] = args.exclude_types
    if args.replay_last == 0:
        raw["replay"] = {"mode": "from_start"}
    elif args.replay_last > 0:
        raw["replay"] = {"mode": "last_n", "last_n": args.replay_last}
    elif args.replay_since:
        raw["replay"] = {"mode": "since_time", "since": args.replay_since}
    return raw


def _install_signal_handlers(cancel: threading.Event) -> None:
    def _handler(signum, frame):  # pragma: no cover - signal delivery
        logger.debug("Received signal %s, stopping", signum)
        cancel.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(signum, _handler)
        except ValueError:  # pragma: no cover - not on the main thread
            pass


def run_tail(
    args: argparse.Namespace,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
    cancel: Optional[threading.Event] = None,
) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    config = build_config(
        _tail_raw_config(args),
        log=logging.getLogger("vrclog.watch") if args.verbose else None,
    )
    formatter = FORMATTERS[args.format]

    with WatchEngine(config) as engine:
        events, errors = engine.start(cancel)
        open_channels = [events, errors]
        while open_channels:
            selected = select(open_channels, cancel=cancel)
            if selected is None:
                break
            if not selected.ok:
                open_channels.remove(selected.source)
                continue
            if selected.source is events:
                print(formatter(selected.value), file=out, flush=True)
            else:
                print(f"warning: {selected.value}", file=err, flush=True)
    return EXIT_OK


def run_parse(
    args: argparse.Namespace,
    out: Optional[TextIO] = None,
    cancel: Optional[threading.Event] = None,
) -> int:
    out = out or sys.stdout
    include = normalise_event_types(args.include_types)
    exclude = normalise_event_types(args.exclude_types)
    reject_overlap(include, exclude)

    options = ParseOptions(
        type_filter=TypeFilter.compile(include, exclude),
        since=parse_timestamp(args.since, "--since"),
        until=parse_timestamp(args.until, "--until"),
        include_raw_line=args.raw,
        stop_on_error=args.stop_on_error,
    )
    options.validate()
    formatter = FORMATTERS[args.format]

    for event in parse_dir(
        log_dir=args.log_dir or None,
        paths=args.files or None,
        options=options,
        cancel=cancel,
    ):
        print(formatter(event), file=out, flush=True)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        log_file=args.log_file,
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )
    cancel = threading.Event()
    _install_signal_handlers(cancel)

    try:
        return args.handler(args, cancel=cancel)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except (AppError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
