"""Tab labels derived from a pane's working directory.

Optional layer on top of the rename pipeline: the pane's working directory
is resolved to its git root (looked up asynchronously and cached), turned
into a short label, and submitted as an ordinary rename request. The engine
itself never waits on any of this.
"""

from __future__ import annotations

import asyncio
import os
from string import Formatter

from loguru import logger

from tabula.errors import Result, TemplateError
from tabula.rename_request import RenameOutcome, RenameRequest
from tabula.tab_format import PLACEHOLDER, escape_label

LABEL_FIELD = "label"


def normalize_tab_path(path: str) -> str:
    """Expand ~, resolve symlinks and strip trailing slashes for comparison."""
    return os.path.realpath(os.path.expanduser(path)).rstrip("/") or "/"


def label_for_directory(path: str, git_root: str | None = None) -> str:
    """Short tab label for a working directory.

    Inside a repository the label is the repository name, followed by the
    subdirectory when the path is below the root (``repo/src/app``).
    Elsewhere it is the directory's basename, or ``~`` for the home
    directory.
    """
    path = normalize_tab_path(path)
    if git_root:
        root = normalize_tab_path(git_root)
        name = os.path.basename(root) or root
        relative = os.path.relpath(path, root)
        if relative == "." or relative.startswith(".."):
            return name
        return f"{name}/{relative}"
    if path == normalize_tab_path("~"):
        return "~"
    return os.path.basename(path) or path


def build_label_template(template: str, label: str) -> str:
    """Fill ``{label}`` in ``template`` and keep ``{tab_position}`` for the engine.

    Raises:
        TemplateError: Any field other than ``label`` or ``tab_position``.
    """
    parts: list[str] = []
    try:
        for literal, field_name, format_spec, conversion in Formatter().parse(template):
            parts.append(escape_label(literal))
            if field_name is None:
                continue
            if field_name == LABEL_FIELD and not format_spec and conversion is None:
                parts.append(escape_label(label))
            elif field_name == PLACEHOLDER:
                spec = f":{format_spec}" if format_spec else ""
                conv = f"!{conversion}" if conversion else ""
                parts.append(f"{{{PLACEHOLDER}{conv}{spec}}}")
            else:
                raise TemplateError(f"unknown placeholder '{field_name or '<positional>'}'")
    except TemplateError:
        raise
    except ValueError as e:
        raise TemplateError(str(e)) from e
    return "".join(parts)


class GitRootResolver:
    """Async ``git rev-parse --show-toplevel`` with a per-directory cache.

    Misses (not a repository, git missing, timeout) are cached as ``None``
    too, so a directory is only looked up once until invalidated.
    """

    def __init__(self, timeout: float = 2.0, git: str = "git"):
        self.timeout = timeout
        self.git = git
        self._cache: dict[str, str | None] = {}

    def invalidate(self, path: str | None = None) -> None:
        if path is None:
            self._cache.clear()
        else:
            self._cache.pop(normalize_tab_path(path), None)

    async def resolve(self, path: str) -> str | None:
        key = normalize_tab_path(path)
        if key in self._cache:
            return self._cache[key]
        root = await self._lookup(key)
        self._cache[key] = root
        return root

    async def _lookup(self, path: str) -> str | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.git, "-C", path, "rev-parse", "--show-toplevel",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(
                "Could not start git",
                operation="git_root_lookup",
                status="failed",
                path=path,
                error=str(e),
                error_type=type(e).__name__
            )
            return None

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(
                "Git root lookup timed out",
                operation="git_root_lookup",
                status="timeout",
                path=path,
                timeout=self.timeout
            )
            return None

        if proc.returncode != 0:
            logger.debug(
                "Directory is not inside a git repository",
                operation="git_root_lookup",
                status="not_a_repo",
                path=path,
                returncode=proc.returncode,
                stderr=stderr.decode(errors="replace").strip() if stderr else None
            )
            return None

        root = stdout.decode(errors="replace").strip()
        return root or None


class WorkingDirectoryLabeler:
    """Rename a pane's tab after its working directory.

    Args:
        plugin: Plugin whose rename pipeline receives the requests.
        resolver: Git root lookup; a fresh :class:`GitRootResolver` by default.
        template: Label template; ``{label}`` is the directory label and
            ``{tab_position}`` is left for the engine to render.
    """

    def __init__(self, plugin, resolver: GitRootResolver | None = None, template: str = "{label}"):
        self.plugin = plugin
        self.resolver = resolver or GitRootResolver()
        self.template = template

    async def refresh(self, pane_id: int, cwd: str) -> Result[RenameOutcome]:
        git_root = await self.resolver.resolve(cwd)
        label = label_for_directory(cwd, git_root)
        label_template = build_label_template(self.template, label)
        logger.debug(
            "Working directory label derived",
            operation="cwd_label",
            status="derived",
            pane_id=pane_id,
            cwd=cwd,
            git_root=git_root,
            label=label
        )
        return self.plugin.rename(RenameRequest(
            item_id=str(pane_id),
            label_template=label_template,
            use_stable_identity=self.plugin.config["rename"]["use_stable_identity"]
        ))
