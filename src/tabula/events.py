"""Host event types and their decoding from JSON records.

Records use the host's field names (``name``, ``is_plugin``,
``is_suppressed``); the engine's own names (``label``, ``is_virtual``,
``is_hidden``) are accepted too.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from tabula.snapshot import Group, Item


@dataclass(frozen=True)
class TabUpdate:
    groups: list[Group]


@dataclass(frozen=True)
class PaneUpdate:
    items: dict[int, list[Item]]


@dataclass(frozen=True)
class PipeMessage:
    name: str
    payload: str | None = None


@dataclass(frozen=True)
class CwdUpdate:
    """A pane's working directory, reported for directory-based labels."""
    pane_id: int
    cwd: str


def parse_groups(records: list[dict]) -> list[Group]:
    return [
        Group(
            position=int(record["position"]),
            label=str(record.get("name", record.get("label", ""))),
        )
        for record in records
    ]


def _flag(record: dict, *keys: str) -> bool:
    return any(bool(record.get(key, False)) for key in keys)


def parse_items(mapping: dict[Any, list[dict]]) -> dict[int, list[Item]]:
    """Decode a pane manifest; JSON object keys arrive as strings."""
    return {
        int(position): [
            Item(
                id=int(record["id"]),
                is_virtual=_flag(record, "is_plugin", "is_virtual"),
                is_hidden=_flag(record, "is_suppressed", "is_hidden"),
            )
            for record in records
        ]
        for position, records in mapping.items()
    }


def decode_event(record: dict) -> TabUpdate | PaneUpdate | PipeMessage | CwdUpdate:
    """Decode one event log record.

    Raises:
        ValueError: Unknown event type or unparseable numbers.
        KeyError: Required field missing.
    """
    event_type = record.get("type")
    if event_type == "tab_update":
        return TabUpdate(groups=parse_groups(record["tabs"]))
    if event_type == "pane_update":
        return PaneUpdate(items=parse_items(record["panes"]))
    if event_type == "pipe":
        payload = record.get("payload")
        if payload is not None and not isinstance(payload, str):
            payload = json.dumps(payload)
        return PipeMessage(name=str(record["name"]), payload=payload)
    if event_type == "cwd_update":
        return CwdUpdate(pane_id=int(record["pane_id"]), cwd=str(record["cwd"]))
    raise ValueError(f"unknown event type: {event_type!r}")
