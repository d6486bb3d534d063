"""Templated rename requests delivered over the named pipe.

A request names a pane and a label template. The pane is resolved to its
tab's current display index, the template is rendered with the 1-indexed
position, and the tab is renamed through its stable id (default) or through
``display index + 1`` (direct mode).

Direct mode bypasses the stable id layer entirely and so renames the wrong
tab once a tab before it has been closed. It is kept for hosts whose rename
call does take the display index.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import uuid4

from loguru import logger

from tabula.errors import Error, ErrorType, Result, TemplateError
from tabula.events import PipeMessage
from tabula.reconciler import IdentityReconciler
from tabula.snapshot import RenameAction, SnapshotStore
from tabula.tab_format import format_tab_name

DEFAULT_PIPE_NAME = "change-tab-name"

# Payload keys, with the names older shell helpers send as fallbacks
_FIELD_NAMES = {
    "item_id": ("item_id", "pane_id"),
    "label_template": ("label_template", "name"),
    "use_stable_identity": ("use_stable_identity", "use_stable_ids"),
}

_ITEM_ID_PATTERN = re.compile(r"\+?[0-9]+")
# Host pane ids are unsigned 32-bit
_MAX_ITEM_ID = 2**32 - 1


@dataclass(frozen=True)
class RenameRequest:
    item_id: str
    label_template: str
    use_stable_identity: bool = True


class RenameStatus(Enum):
    RENAMED = "renamed"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"


@dataclass(frozen=True)
class RenameOutcome:
    status: RenameStatus
    action: RenameAction | None = None


def _lookup(data: dict, field_name: str):
    for key in _FIELD_NAMES[field_name]:
        if key in data:
            return True, data[key]
    return False, None


def parse_rename_payload(
    payload: str | None,
    default_use_stable_identity: bool = True,
) -> Result[RenameRequest]:
    """Decode a pipe payload into a :class:`RenameRequest`.

    Only the structure is checked here; the pane id is parsed later so that
    a non-numeric id is reported as such rather than as a malformed payload.
    """
    if payload is None:
        return Result.err(Error(
            error_type=ErrorType.MISSING_PAYLOAD,
            message="missing payload"
        ))

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        return Result.err(Error(
            error_type=ErrorType.MALFORMED_REQUEST,
            message=f"invalid JSON: {e}",
            original_exception=e
        ))

    if not isinstance(data, dict):
        return Result.err(Error(
            error_type=ErrorType.MALFORMED_REQUEST,
            message="payload must be a JSON object",
            context={"payload_type": type(data).__name__}
        ))

    found, item_id = _lookup(data, "item_id")
    if not found or not isinstance(item_id, str):
        return Result.err(Error(
            error_type=ErrorType.MALFORMED_REQUEST,
            message="item_id must be a string containing a number"
        ))

    found, label_template = _lookup(data, "label_template")
    if not found or not isinstance(label_template, str):
        return Result.err(Error(
            error_type=ErrorType.MALFORMED_REQUEST,
            message="label_template must be a string"
        ))

    found, use_stable_identity = _lookup(data, "use_stable_identity")
    if not found:
        use_stable_identity = default_use_stable_identity
    elif not isinstance(use_stable_identity, bool):
        return Result.err(Error(
            error_type=ErrorType.MALFORMED_REQUEST,
            message="use_stable_identity must be a boolean"
        ))

    return Result.ok(RenameRequest(
        item_id=item_id,
        label_template=label_template,
        use_stable_identity=use_stable_identity,
    ))


class RenameRequestHandler:
    """Resolve rename requests against the current mappings.

    Requests never trigger reconciliation; they see whatever the last pass
    produced. A rejected request leaves every mapping untouched.
    """

    def __init__(
        self,
        store: SnapshotStore,
        reconciler: IdentityReconciler,
        rename_tab: Callable[[int, str], None],
        pipe_name: str = DEFAULT_PIPE_NAME,
        default_use_stable_identity: bool = True,
    ):
        self.store = store
        self.reconciler = reconciler
        self.rename_tab = rename_tab
        self.pipe_name = pipe_name
        self.default_use_stable_identity = default_use_stable_identity

    def _reject(self, error: Error, trace_id: str) -> Result[RenameOutcome]:
        # error.message may echo user templates, so it stays out of the
        # (str.format-expanded) log message
        logger.error(
            "Rename request rejected",
            operation="rename_request",
            status="rejected",
            trace_id=trace_id,
            pipe_name=self.pipe_name,
            error_type=error.error_type.value,
            error=error.message,
            **error.context
        )
        return Result.err(error)

    def handle_pipe(self, message: PipeMessage) -> Result[RenameOutcome]:
        """Handle a pipe message; messages for other pipes are ignored."""
        if message.name != self.pipe_name:
            logger.debug(
                "Ignoring message for another pipe",
                operation="rename_request",
                status="ignored",
                pipe_name=message.name
            )
            return Result.ok(RenameOutcome(status=RenameStatus.IGNORED))

        parsed = parse_rename_payload(message.payload, self.default_use_stable_identity)
        if parsed.is_err():
            return self._reject(parsed.error, str(uuid4()))
        return self.handle_request(parsed.value)

    def handle_request(self, request: RenameRequest) -> Result[RenameOutcome]:
        trace_id = str(uuid4())

        if not _ITEM_ID_PATTERN.fullmatch(request.item_id) or int(request.item_id) > _MAX_ITEM_ID:
            return self._reject(Error(
                error_type=ErrorType.INVALID_IDENTIFIER,
                message="item_id must be a string containing an unsigned 32-bit number",
                context={"item_id": request.item_id}
            ), trace_id)
        pane_id = int(request.item_id)

        tab_position = self.reconciler.pane_to_tab.get(pane_id)
        if tab_position is None:
            return self._reject(Error(
                error_type=ErrorType.UNKNOWN_ITEM,
                message=f"pane {pane_id} not found in mapping",
                context={
                    "pane_id": pane_id,
                    "known_panes": len(self.reconciler.pane_to_tab),
                    "tabs": len(self.store.groups),
                }
            ), trace_id)

        try:
            final_name = format_tab_name(request.label_template, tab_position)
        except TemplateError as e:
            return self._reject(Error(
                error_type=ErrorType.TEMPLATE_ERROR,
                message=f"invalid name format '{request.label_template}': {e}",
                context={"pane_id": pane_id, "template": request.label_template},
                original_exception=e
            ), trace_id)

        group = self.store.group_at(tab_position)
        if group is not None and group.label == final_name:
            logger.debug(
                "Tab already has the requested name",
                operation="rename_request",
                status="unchanged",
                trace_id=trace_id,
                pane_id=pane_id,
                name=final_name
            )
            return Result.ok(RenameOutcome(status=RenameStatus.UNCHANGED))

        stable_id = self.reconciler.pane_to_stable_id.get(pane_id)
        if request.use_stable_identity:
            if stable_id is None:
                return self._reject(Error(
                    error_type=ErrorType.NO_STABLE_IDENTITY,
                    message=f"no stable tab ID found for pane {pane_id}",
                    context={"pane_id": pane_id}
                ), trace_id)
            tab_id = stable_id
        else:
            tab_id = tab_position + 1

        self.rename_tab(tab_id, final_name)

        if stable_id is not None:
            self.reconciler.register_template(stable_id, request.label_template, tab_position)

        logger.info(
            "Tab renamed",
            operation="rename_request",
            status="renamed",
            trace_id=trace_id,
            pane_id=pane_id,
            tab_id=tab_id,
            tab_position=tab_position,
            use_stable_identity=request.use_stable_identity,
            template_registered=stable_id is not None,
            name=final_name
        )
        return Result.ok(RenameOutcome(
            status=RenameStatus.RENAMED,
            action=RenameAction(target=tab_id, label=final_name),
        ))
