"""Utility functions for buildgraph."""

from __future__ import annotations

from typing import Any

from expandvars import ExpandvarsException, expand


def expandvars_dict(
    data: dict[str, Any], environ: dict[str, str], nounset: bool = True
) -> dict[str, Any]:
    """Recursively expand ``${VAR}`` placeholders in all string values.

    Args:
        data: Parsed manifest data
        environ: Variables available for substitution
        nounset: Raise instead of substituting an empty string for unset variables

    Raises:
        ExpandvarsException: If a variable is unset and ``nounset`` is True
    """

    def expand_item(item: Any) -> Any:
        if isinstance(item, str):
            return expand(item, nounset=nounset, environ=environ)
        if isinstance(item, dict):
            return expandvars_dict(item, environ, nounset)
        if isinstance(item, list):
            return [expand_item(i) for i in item]
        return item

    return {key: expand_item(value) for key, value in data.items()}


def parse_comma_list(value: str | None) -> list[str] | None:
    """Split a comma-separated option value, dropping blanks."""
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


__all__ = ["ExpandvarsException", "expandvars_dict", "parse_comma_list"]
