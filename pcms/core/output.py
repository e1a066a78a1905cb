"""
Output formatters for CLI display.

Supports human-readable, JSON, and markdown output modes.
"""

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class OutputFormat(str, Enum):
    HUMAN = "human"
    JSON = "json"
    MARKDOWN = "markdown"


def format_result(
    result: Any,
    fmt: OutputFormat = OutputFormat.HUMAN,
    title: Optional[str] = None,
) -> str:
    """Format a result object (dataclass, dict or plain object) for display."""
    if fmt == OutputFormat.JSON:
        return _format_json(result)
    elif fmt == OutputFormat.MARKDOWN:
        return _format_markdown(result, title)
    else:
        return _format_human(result, title)


def _to_dict(result: Any) -> Dict:
    if hasattr(result, "to_dict"):
        return result.to_dict()
    if is_dataclass(result):
        return asdict(result)
    elif isinstance(result, dict):
        return result
    elif hasattr(result, "__dict__"):
        return result.__dict__
    return {"value": str(result)}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


def _format_json(result: Any) -> str:
    return json.dumps(_to_dict(result), indent=2, ensure_ascii=False, default=_json_default)


def _format_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float):
        return f"{value:.3f}" if abs(value) < 100 else f"{value:,.1f}"
    if isinstance(value, dict):
        return ", ".join(f"{k}={_format_value(v)}" for k, v in value.items()) or "-"
    return str(value)


def _format_human(result: Any, title: Optional[str] = None) -> str:
    lines = []
    if title:
        lines.extend([title, "=" * len(title), ""])

    data = _to_dict(result)
    max_key_len = max(len(str(k)) for k in data.keys()) if data else 0

    for key, value in data.items():
        label = key.replace("_", " ").title()
        if isinstance(value, list):
            formatted = "\n".join(f"  - {_format_value(v)}" for v in value) if value else "(none)"
            if value:
                formatted = "\n" + formatted
        else:
            formatted = _format_value(value)
        lines.append(f"{label:<{max_key_len + 2}}: {formatted}")

    return "\n".join(lines)


def _format_markdown(result: Any, title: Optional[str] = None) -> str:
    lines = []
    if title:
        lines.extend([f"# {title}", ""])

    data = _to_dict(result)
    lines.extend(["| Parameter | Value |", "|-----------|-------|"])

    for key, value in data.items():
        label = key.replace("_", " ").title()
        if isinstance(value, list):
            formatted = ", ".join(_format_value(v) for v in value) if value else "-"
        else:
            formatted = _format_value(value)
        lines.append(f"| {label} | {formatted} |")

    return "\n".join(lines)


def format_table(rows: Sequence[Dict[str, Any]], columns: List[str], max_width: int = 24) -> str:
    """Render dict rows as a fixed-width text table (used by ``records list``)."""
    if not rows:
        return "(no rows)"

    def cell(value: Any) -> str:
        text = "" if value is None else _format_value(value)
        return text if len(text) <= max_width else text[: max_width - 1] + "…"

    widths = {
        c: min(max_width, max(len(c), *(len(cell(r.get(c))) for r in rows)))
        for c in columns
    }
    header = "  ".join(f"{c:<{widths[c]}}" for c in columns)
    lines = [header, "-" * len(header)]
    for r in rows:
        lines.append("  ".join(f"{cell(r.get(c)):<{widths[c]}}" for c in columns))
    return "\n".join(lines)
