"""TOML configuration loading with defaults fallback."""

from __future__ import annotations

import copy
import re
import time
import tomllib
from pathlib import Path

from loguru import logger

from tabula.errors import Error, ErrorType, Result

CONFIG_DIR = Path("~/.config/tabula").expanduser()
CONFIG_PATH = CONFIG_DIR / "config.toml"

# Defaults match what the plugin does without any config file
DEFAULT_CONFIG = {
    "pipe": {
        "name": "change-tab-name",
    },
    "rename": {
        "use_stable_identity": True,  # Direct tab index mode is fragile
    },
    "logging": {
        "level": "INFO",
        "file": True,
    },
    "cwd_labels": {
        "enabled": False,
        "template": "{label}",
        "git_timeout": 2.0,
    },
}


def extract_toml_error_context(error: tomllib.TOMLDecodeError, file_path: Path) -> dict:
    """
    Pull the offending line out of a TOML parse error.

    Returns:
        Dict with line_number, line_content and formatted_message
    """
    error_str = str(error)
    line_number = getattr(error, "lineno", None)
    line_content = None

    if line_number is None:
        # Older tomllib only carries "(at line 15, column 3)" in the text
        line_match = re.search(r"line\s+(\d+)", error_str, re.IGNORECASE)
        if line_match:
            line_number = int(line_match.group(1))

    if line_number and file_path.exists():
        try:
            lines = file_path.read_text().splitlines()
            if 0 < line_number <= len(lines):
                line_content = lines[line_number - 1].rstrip()
        except OSError:
            line_content = None

    if line_number:
        formatted = f"Error on line {line_number}"
        if line_content:
            display_line = line_content[:50] + "..." if len(line_content) > 50 else line_content
            formatted += f": {display_line}"
        formatted += f"\n\nDetails: {error_str}"
    else:
        formatted = f"TOML parse error: {error_str}"

    return {
        "line_number": line_number,
        "line_content": line_content,
        "formatted_message": formatted,
    }


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config_from_path(config_path: Path) -> Result[dict]:
    """
    Load configuration from a TOML file merged over DEFAULT_CONFIG.

    Args:
        config_path: Path to the TOML file

    Returns:
        Result[dict]: Ok with merged config, or Err with error details
    """
    start_time = time.perf_counter()

    if not config_path.exists():
        return Result.err(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message=f"Config file not found: {config_path}",
            context={"config_path": str(config_path)}
        ))

    try:
        with open(config_path, "rb") as f:
            user_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        error_context = extract_toml_error_context(e, config_path)
        logger.error(
            "Invalid TOML syntax in configuration file",
            operation="load_config_from_path",
            status="failed",
            file=str(config_path),
            line_number=error_context["line_number"],
            line_content=error_context["line_content"],
            error=error_context["formatted_message"]
        )
        return Result.err(Error(
            error_type=ErrorType.PARSE_ERROR,
            message=error_context["formatted_message"],
            context={"config_path": str(config_path), "line_number": error_context["line_number"]},
            original_exception=e
        ))

    merged = deep_merge(DEFAULT_CONFIG, user_config)
    logger.debug(
        "Config loaded successfully",
        operation="load_config_from_path",
        status="success",
        config_path=str(config_path),
        metrics={"duration_ms": int((time.perf_counter() - start_time) * 1000)}
    )
    return Result.ok(merged)


def load_config(config_path: Path | None = None) -> dict:
    """Load the user config, falling back to defaults when missing or invalid."""
    result = load_config_from_path(config_path or CONFIG_PATH)
    if result.is_ok():
        return result.value

    if result.error.error_type is ErrorType.FILE_NOT_FOUND:
        logger.debug(
            "No config file, using defaults",
            operation="load_config",
            status="default",
            config_path=str(config_path or CONFIG_PATH)
        )
    else:
        logger.warning(
            "Config file invalid, using defaults",
            operation="load_config",
            status="fallback",
            config_path=str(config_path or CONFIG_PATH)
        )
    return copy.deepcopy(DEFAULT_CONFIG)
