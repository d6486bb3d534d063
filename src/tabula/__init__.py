"""Stable tab identities and self-updating tab names for zellij."""

__version__ = "0.1.0"

from tabula.errors import Error, ErrorType, Result, TemplateError  # noqa: E402
from tabula.events import CwdUpdate, PaneUpdate, PipeMessage, TabUpdate  # noqa: E402
from tabula.plugin import TabulaPlugin  # noqa: E402
from tabula.rename_request import RenameOutcome, RenameRequest, RenameStatus  # noqa: E402
from tabula.snapshot import Group, Item, RenameAction  # noqa: E402
from tabula.tab_format import escape_label, format_tab_name  # noqa: E402

__all__ = [
    "CwdUpdate",
    "Error",
    "ErrorType",
    "Group",
    "Item",
    "PaneUpdate",
    "PipeMessage",
    "RenameAction",
    "RenameOutcome",
    "RenameRequest",
    "RenameStatus",
    "Result",
    "TabUpdate",
    "TabulaPlugin",
    "TemplateError",
    "escape_label",
    "format_tab_name",
]
