"""
Cell cleaning rules.

Each rule is a small callable built from a ``(cleaning_type, config)`` pair as
stored in the cleaning_rules table. Rules are pure: value in, value out. A
rule that cannot make sense of its input raises CleaningError; the extractor
records that as a field error and keeps the raw value.

    rule = build_rule("number_format", {"remove_chars": ["元"], "decimal_places": 2})
    rule("1,234.5元")   # -> 1234.5
    rule("3.5万")        # -> 35000.0
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from pcms.fields.catalog import FieldDefinition, RuleSpec
from pcms.imports.errors import CleaningError

# Excel's day zero (serial 1 is 1900-01-01 with the 1900 leap-year bug folded in)
EXCEL_EPOCH = datetime(1899, 12, 30)
MAX_EXCEL_SERIAL = 2958465  # 9999-12-31

_LINE_BREAKS_RE = re.compile(r"[\r\n]+")
_SPACES_RE = re.compile(r"\s+")
_CN_DATE_RE = re.compile(r"^(\d{4})\s*[年/.\-]\s*(\d{1,2})\s*[月/.\-]\s*(\d{1,2})\s*日?$")
_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

NUMBER_MULTIPLIERS = {"万": 10_000, "亿": 100_000_000}

_REGISTRY: Dict[str, Type["CleaningRule"]] = {}


def register(cls: Type["CleaningRule"]) -> Type["CleaningRule"]:
    _REGISTRY[cls.cleaning_type] = cls
    return cls


def available_rule_types() -> List[str]:
    return sorted(_REGISTRY)


class CleaningRule:
    """Base class. Subclasses set ``cleaning_type`` and implement ``clean``."""

    cleaning_type = ""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = dict(config or {})
        self.null_values = {str(v) for v in self.config.get("null_values", [])}
        self.configure()

    def configure(self) -> None:
        """Validate and pre-compute config. Raise ValueError on bad config."""

    def clean(self, value: Any) -> Any:
        raise NotImplementedError

    def __call__(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and (not value.strip() or value.strip() in self.null_values):
            return None
        return self.clean(value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config!r})"


@register
class TrimSpacesRule(CleaningRule):
    cleaning_type = "trim_spaces"

    def clean(self, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


@register
class TextCleanRule(CleaningRule):
    """Coerce to text, fold line breaks and space runs, trim; blank becomes None."""

    cleaning_type = "text_clean"

    def configure(self) -> None:
        self.remove_line_breaks = bool(self.config.get("remove_line_breaks", True))
        self.normalize_spaces = bool(self.config.get("normalize_spaces", True))
        self.trim = bool(self.config.get("trim", True))

    def clean(self, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            # Numeric codes (contract numbers) arrive from Excel as floats
            value = str(int(value))
        elif isinstance(value, datetime):
            value = value.strftime("%Y-%m-%d") if value.time() == datetime.min.time() else value.isoformat(" ")
        elif isinstance(value, date):
            value = value.isoformat()
        elif not isinstance(value, str):
            value = str(value)

        if self.remove_line_breaks:
            value = _LINE_BREAKS_RE.sub(" ", value)
        if self.normalize_spaces:
            value = _SPACES_RE.sub(" ", value)
        if self.trim:
            value = value.strip()
        if not value or value in self.null_values:
            return None
        return value


@register
class RemoveCharsRule(CleaningRule):
    cleaning_type = "remove_chars"

    def configure(self) -> None:
        chars = self.config.get("characters")
        if not chars:
            raise ValueError("remove_chars requires a non-empty 'characters' list")
        self.characters = list(chars)

    def clean(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for ch in self.characters:
            value = value.replace(ch, "")
        return value


@register
class CaseRule(CleaningRule):
    cleaning_type = "case"

    _MODES: Dict[str, Callable[[str], str]] = {"upper": str.upper, "lower": str.lower}

    def configure(self) -> None:
        mode = self.config.get("mode", "upper")
        if mode not in self._MODES:
            raise ValueError(f"case mode must be 'upper' or 'lower', got {mode!r}")
        self.convert = self._MODES[mode]

    def clean(self, value: Any) -> Any:
        return self.convert(value) if isinstance(value, str) else value


@register
class RegexReplaceRule(CleaningRule):
    cleaning_type = "regex_replace"

    def configure(self) -> None:
        pattern = self.config.get("pattern")
        if not pattern:
            raise ValueError("regex_replace requires a 'pattern'")
        try:
            self.pattern = re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern {pattern!r}: {e}")
        self.replacement = self.config.get("replacement", "")
        if not isinstance(self.replacement, str):
            raise ValueError(f"regex_replace replacement must be text, got {self.replacement!r}")
        # sub() compiles the template before searching, so bad group
        # references fail here even though nothing matches
        try:
            self.pattern.sub(self.replacement, "")
        except (re.error, IndexError) as e:
            raise ValueError(f"Invalid replacement {self.replacement!r}: {e}")

    def clean(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return self.pattern.sub(self.replacement, value)
        except (re.error, IndexError) as e:
            raise CleaningError(f"regex_replace failed on {value!r}: {e}")


@register
class DateFormatRule(CleaningRule):
    """
    Normalize a date cell to ``output`` (default ISO).

    Accepts datetime/date cells, Excel serial numbers, numbers too large to
    be a serial read through ``formats`` (20240305 with ``%Y%m%d``), strings
    in any of the configured strptime ``formats``, and Chinese ``2024年3月5日``
    style text.
    """

    cleaning_type = "date_format"

    def configure(self) -> None:
        self.formats = list(self.config.get("formats") or ["%Y-%m-%d"])
        self.output = self.config.get("output", "%Y-%m-%d")

    def clean(self, value: Any) -> Any:
        parsed = self._parse(value)
        if parsed is None:
            raise CleaningError(f"Unrecognized date: {value!r}")
        return parsed.strftime(self.output)

    def _parse(self, value: Any) -> Optional[datetime]:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            parsed = _from_excel_serial(value)
            if parsed is None and float(value).is_integer():
                # Ledgers also key dates in as plain numbers, e.g. 20240305
                parsed = self._strptime(str(int(value)))
            return parsed

        text = _LINE_BREAKS_RE.sub("", str(value)).strip()
        if not text:
            return None
        parsed = self._strptime(text)
        if parsed is not None:
            return parsed

        m = _CN_DATE_RE.match(text)
        if m:
            try:
                return datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                return None
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        if _NUMERIC_RE.match(text):
            return _from_excel_serial(float(text))
        return None

    def _strptime(self, text: str) -> Optional[datetime]:
        for fmt in self.formats:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        return None


@register
class NumberFormatRule(CleaningRule):
    """Strip currency symbols and separators, apply 万/亿 multipliers, round."""

    cleaning_type = "number_format"

    def configure(self) -> None:
        self.remove = list(self.config.get("remove_chars") or [])
        places = self.config.get("decimal_places")
        if places is not None and (not isinstance(places, int) or places < 0):
            raise ValueError(f"decimal_places must be a non-negative integer, got {places!r}")
        self.decimal_places = places

    def clean(self, value: Any) -> Any:
        if isinstance(value, bool):
            raise CleaningError(f"Not a number: {value!r}")
        if isinstance(value, (int, float)):
            return self._round(float(value))

        text = str(value)
        for ch in self.remove:
            text = text.replace(ch, "")
        text = _SPACES_RE.sub("", text)
        if not text or text in self.null_values:
            return None

        multiplier = 1
        for suffix, factor in NUMBER_MULTIPLIERS.items():
            if text.endswith(suffix):
                text, multiplier = text[: -len(suffix)], factor
                break
        text = text.replace(",", "").replace("，", "")

        if not _NUMERIC_RE.match(text):
            raise CleaningError(f"Not a number: {value!r}")
        return self._round(float(text) * multiplier)

    def _round(self, number: float) -> float:
        return round(number, self.decimal_places) if self.decimal_places is not None else number


def _from_excel_serial(serial: float) -> Optional[datetime]:
    if not 0 < serial <= MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=float(serial))


# ---------------------------------------------------------------------------
# Building pipelines
# ---------------------------------------------------------------------------

def build_rule(cleaning_type: str, config: Optional[Dict[str, Any]] = None) -> CleaningRule:
    """
    Instantiate one rule.

    Raises:
        ValueError: Unknown cleaning type or invalid config.
    """
    cls = _REGISTRY.get(cleaning_type)
    if cls is None:
        raise ValueError(
            f"Unknown cleaning type '{cleaning_type}' "
            f"(expected one of: {', '.join(available_rule_types())})"
        )
    return cls(config)


def build_rules(specs: Iterable[RuleSpec]) -> List[CleaningRule]:
    """Rules in priority order (stable for equal priorities)."""
    return [build_rule(s.cleaning_type, s.config) for s in sorted(specs, key=lambda s: s.priority)]


def rules_for_field(field: FieldDefinition) -> List[CleaningRule]:
    """The field's configured rules, or the default rule for its data type."""
    if field.cleaning_rules:
        return build_rules(field.cleaning_rules)
    from pcms.fields.seed import default_rule_for

    return build_rules([default_rule_for(field.data_type)])


def apply_rules(value: Any, rules: Iterable[CleaningRule]) -> Any:
    """Run ``value`` through ``rules`` in order. CleaningError propagates."""
    for rule in rules:
        value = rule(value)
    return value
