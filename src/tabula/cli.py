"""Command line entry point.

Usage:
    tabula rename "build #{tab_position}"   # from inside a zellij pane
    tabula rename --literal "{weird} name"
    tabula replay events.jsonl             # drive the engine offline
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Iterable

from loguru import logger

from tabula import __version__
from tabula.config_loader import load_config
from tabula.cwd_labels import GitRootResolver, WorkingDirectoryLabeler
from tabula.errors import TemplateError
from tabula.events import CwdUpdate, PipeMessage, decode_event
from tabula.logging_config import setup_logger
from tabula.plugin import TabulaPlugin
from tabula.snapshot import RenameAction
from tabula.tab_format import escape_label, validate_template


def build_rename_payload(pane_id: str, name: str, use_stable_identity: bool = True) -> str:
    return json.dumps({
        "item_id": str(pane_id),
        "label_template": name,
        "use_stable_identity": use_stable_identity,
    })


def cmd_rename(args: argparse.Namespace, config: dict) -> int:
    if not os.environ.get("ZELLIJ"):
        print("Error: Not running in Zellij", file=sys.stderr)
        return 1

    pane_id = args.pane_id or os.environ.get("ZELLIJ_PANE_ID")
    if not pane_id:
        print("Error: no pane id (set ZELLIJ_PANE_ID or pass --pane-id)", file=sys.stderr)
        return 1

    name = escape_label(args.name) if args.literal else args.name
    try:
        validate_template(name)
    except TemplateError as e:
        print(f"Error: invalid tab name template: {e}", file=sys.stderr)
        return 1

    pipe_name = args.pipe_name or config["pipe"]["name"]
    payload = build_rename_payload(pane_id, name, use_stable_identity=not args.direct)

    try:
        result = subprocess.run(
            ["zellij", "pipe", "--name", pipe_name, "--", payload],
            capture_output=True,
            text=True,
            timeout=args.timeout,
            check=False  # Non-zero exit handled below
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
        logger.error(
            "Could not send rename request",
            operation="cmd_rename",
            status="failed",
            pipe_name=pipe_name,
            error=str(e),
            error_type=type(e).__name__
        )
        return 1

    if result.returncode != 0:
        logger.error(
            "zellij pipe failed",
            operation="cmd_rename",
            status="failed",
            pipe_name=pipe_name,
            returncode=result.returncode,
            stderr=result.stderr.strip() if result.stderr else None
        )
        return 1

    logger.debug(
        "Rename request sent",
        operation="cmd_rename",
        status="success",
        pipe_name=pipe_name,
        pane_id=pane_id
    )
    return 0


async def replay(lines: Iterable[str], config: dict | None = None) -> tuple[list[RenameAction], int]:
    """Feed a JSONL event log through a fresh plugin.

    Returns:
        Tuple of (rename actions issued, number of undecodable lines).
    """
    actions: list[RenameAction] = []

    def rename_tab(tab_id: int, name: str) -> None:
        actions.append(RenameAction(target=tab_id, label=name))

    plugin = TabulaPlugin(rename_tab, config)
    cwd_config = plugin.config["cwd_labels"]
    labeler = None
    if cwd_config["enabled"]:
        labeler = WorkingDirectoryLabeler(
            plugin,
            GitRootResolver(timeout=cwd_config["git_timeout"]),
            template=cwd_config["template"],
        )

    errors = 0
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            event = decode_event(json.loads(line))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            errors += 1
            logger.error(
                "Skipping undecodable event",
                operation="replay",
                status="skip",
                line_number=line_number,
                error=str(e),
                error_type=type(e).__name__
            )
            continue

        if isinstance(event, PipeMessage):
            plugin.pipe(event)
        elif isinstance(event, CwdUpdate):
            if labeler is None:
                continue
            try:
                await labeler.refresh(event.pane_id, event.cwd)
            except TemplateError as e:
                logger.warning(
                    "Working directory template invalid",
                    operation="replay",
                    status="skip",
                    line_number=line_number,
                    error=str(e)
                )
        else:
            plugin.update(event)

    return actions, errors


def cmd_replay(args: argparse.Namespace, config: dict) -> int:
    path = Path(args.events)
    try:
        lines = path.read_text().splitlines()
    except OSError as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return 1

    actions, errors = asyncio.run(replay(lines, config))
    for action in actions:
        print(json.dumps({"tab_id": action.target, "name": action.label}, ensure_ascii=False))
    return 1 if errors else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabula", description="Stable tab names for zellij")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Config file (default: ~/.config/tabula/config.toml)")
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument("--no-log-file", action="store_true", help="Only log to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    p_rename = sub.add_parser("rename", help="Rename the current tab via the plugin pipe")
    p_rename.add_argument("name", help="New tab name; {tab_position} is the 1-indexed tab position")
    p_rename.add_argument("--pane-id", help="Pane id (default: $ZELLIJ_PANE_ID)")
    p_rename.add_argument("--literal", action="store_true", help="Send the name verbatim (escape braces)")
    p_rename.add_argument("--direct", action="store_true", help="Target the tab index instead of the stable tab id")
    p_rename.add_argument("--pipe-name", help="Pipe name the plugin listens on")
    p_rename.add_argument("--timeout", type=float, default=5.0, help="Seconds to wait for zellij")
    p_rename.set_defaults(func=cmd_rename)

    p_replay = sub.add_parser("replay", help="Replay a JSONL event log and print rename actions")
    p_replay.add_argument("events", help="Path to the event log")
    p_replay.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logger(args.log_level or "INFO", log_to_file=False)
    config = load_config(Path(args.config).expanduser() if args.config else None)
    setup_logger(
        args.log_level or config["logging"]["level"],
        log_to_file=config["logging"]["file"] and not args.no_log_file,
    )

    return args.func(args, config)
