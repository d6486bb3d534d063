"""Label template rendering.

Templates use ``str.format`` field syntax with exactly one recognised field,
``{tab_position}``, which renders as the 1-indexed display position of the
tab. ``{{`` and ``}}`` produce literal braces and an optional format spec is
applied to the integer (``"{tab_position:02}"`` renders ``"03"`` for the
third tab). Anything else is a :class:`TemplateError`.
"""

from __future__ import annotations

from string import Formatter

from tabula.errors import TemplateError

PLACEHOLDER = "tab_position"

_formatter = Formatter()


def format_tab_name(template: str, tab_position: int) -> str:
    """Render ``template`` for the tab at 0-indexed ``tab_position``.

    Raises:
        TemplateError: Malformed braces, unknown field names, conversions,
            nested fields or a format spec the integer rejects.
    """
    value = tab_position + 1
    parts: list[str] = []
    try:
        for literal, field_name, format_spec, conversion in _formatter.parse(template):
            parts.append(literal)
            if field_name is None:
                continue
            if field_name != PLACEHOLDER:
                shown = field_name or "<positional>"
                raise TemplateError(
                    f"unknown placeholder '{shown}' (only '{{{PLACEHOLDER}}}' is supported)"
                )
            if conversion is not None:
                raise TemplateError(f"conversion '!{conversion}' is not supported")
            if format_spec and ("{" in format_spec or "}" in format_spec):
                raise TemplateError("nested placeholders are not supported")
            parts.append(format(value, format_spec or ""))
    except TemplateError:
        raise
    except ValueError as e:
        raise TemplateError(str(e)) from e
    return "".join(parts)


def validate_template(template: str) -> None:
    """Raise :class:`TemplateError` if ``template`` cannot be rendered."""
    format_tab_name(template, 0)


def escape_label(text: str) -> str:
    """Escape literal text so it renders unchanged as a template."""
    return text.replace("{", "{{").replace("}", "}}")
