"""Cell value coercion to declared field types.

``coerce`` turns a raw cell value (usually text) into the native value for
a field type: ``int`` for integer, ``float`` for number, ``bool``,
``datetime.date`` and so on. Values listed in the schema's missing values
(by default the empty string) coerce to ``None``.

Two reading modes:
    strict=True   canonical lexical forms only. A number must be written
                  with a decimal point or exponent ("1962.0", "1.9e3").
    strict=False  surrounding whitespace is ignored, integral text is a
                  valid number, and field options such as ``groupChar``,
                  ``decimalChar`` and ``bareNumber`` are honoured.

``coerce_with_fallback`` is what the type/format check uses: a strict
read that, for numbers only, retries once with ".0" appended so that
integral text in a number column ("1968") is accepted.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Sequence
from urllib.parse import urlparse

import pandas as pd

from schemasync.lib.errors import CoercionError
from schemasync.lib.schema import DEFAULT_FORMAT, DEFAULT_MISSING_VALUES, Field

__all__ = [
    "coerce",
    "coerce_with_fallback",
    "coerce_field_value",
    "NUMBER_FALLBACK_SUFFIX",
    "supported_types",
]

NUMBER_FALLBACK_SUFFIX = ".0"

DEFAULT_TRUE_VALUES = ("true", "True", "TRUE", "1")
DEFAULT_FALSE_VALUES = ("false", "False", "FALSE", "0")

_INTEGER_RE = re.compile(r"[+-]?\d+")
_STRICT_NUMBER_RE = re.compile(
    r"[+-]?(?:(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+)"
)
_LENIENT_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_SPECIAL_NUMBERS = {"NaN": float("nan"), "INF": float("inf"), "-INF": float("-inf")}
_BARE_NUMBER_RE = re.compile(r"^\D*?([+-]?\d[\d.eE+-]*|[+-]?\.\d[\d.eE+-]*)\D*$")
_YEAR_RE = re.compile(r"\d{4}")
_YEARMONTH_RE = re.compile(r"(\d{4})-(\d{2})")
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")

_DEFAULT_PATTERNS = {
    "date": "%Y-%m-%d",
    "time": "%H:%M:%S",
    "datetime": "%Y-%m-%dT%H:%M:%SZ",
}

Caster = Callable[[Any, str, bool, Mapping[str, Any]], Any]


def coerce(
    value: Any,
    field_type: str,
    field_format: Optional[str] = None,
    strict: bool = True,
    *,
    options: Optional[Mapping[str, Any]] = None,
    missing_values: Sequence[str] = DEFAULT_MISSING_VALUES,
) -> Any:
    """Coerce a raw cell value to the native value of ``field_type``.

    Args:
        value: Raw cell value (text or an already-typed Python value)
        field_type: Declared field type, e.g. "integer"
        field_format: Declared format; None means "default"
        strict: Accept canonical lexical forms only
        options: Extra field properties (trueValues, groupChar, ...)
        missing_values: Strings that stand for a null

    Returns:
        The typed value, or None for a missing value

    Raises:
        CoercionError: If the value cannot be read as the declared type
    """
    if value is None:
        return None
    if isinstance(value, str) and value in missing_values:
        return None

    fmt = field_format or DEFAULT_FORMAT
    caster = _CASTERS.get(field_type)
    if caster is None:
        raise CoercionError(value, field_type, fmt, reason="unsupported field type")
    return caster(value, fmt, strict, options or {})


def coerce_with_fallback(
    value: Any,
    field_type: str,
    field_format: Optional[str] = None,
    *,
    options: Optional[Mapping[str, Any]] = None,
    missing_values: Sequence[str] = DEFAULT_MISSING_VALUES,
) -> Any:
    """Strict coercion with the single ".0" retry for number fields."""
    try:
        return coerce(
            value,
            field_type,
            field_format,
            strict=True,
            options=options,
            missing_values=missing_values,
        )
    except CoercionError as e:
        if field_type != "number":
            raise
        try:
            return coerce(
                f"{value}{NUMBER_FALLBACK_SUFFIX}",
                field_type,
                field_format,
                strict=True,
                options=options,
                missing_values=missing_values,
            )
        except CoercionError:
            raise e from None


def coerce_field_value(
    target: Field,
    value: Any,
    strict: bool = False,
    missing_values: Sequence[str] = DEFAULT_MISSING_VALUES,
) -> Any:
    """Coerce ``value`` using the type, format and options of ``target``."""
    return coerce(
        value,
        target.type,
        target.format,
        strict=strict,
        options=target.extras,
        missing_values=missing_values,
    )


def supported_types() -> Sequence[str]:
    return tuple(_CASTERS)


# ============================================
# Casters
# ============================================


def _text(value: Any, strict: bool) -> str:
    return value if strict else value.strip()


def _cast_string(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> str:
    # typed cells are read through their text form
    if not isinstance(value, str):
        value = str(value)

    if fmt == "email" and not _EMAIL_RE.fullmatch(value):
        raise CoercionError(value, "string", fmt, reason="not an email address")
    if fmt == "uri":
        parsed = urlparse(value)
        if not (parsed.scheme and (parsed.netloc or parsed.path)):
            raise CoercionError(value, "string", fmt, reason="not a URI")
    if fmt == "uuid":
        try:
            uuid.UUID(value)
        except ValueError:
            raise CoercionError(value, "string", fmt, reason="not a UUID") from None
    if fmt == "binary":
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise CoercionError(value, "string", fmt, reason="not base64") from None
    return value


def _strip_number_decorations(text: str, options: Mapping[str, Any]) -> str:
    group_char = options.get("groupChar")
    if group_char:
        text = text.replace(group_char, "")
    decimal_char = options.get("decimalChar")
    if decimal_char and decimal_char != ".":
        text = text.replace(decimal_char, ".")
    if options.get("bareNumber", True) is False:
        match = _BARE_NUMBER_RE.match(text)
        if match:
            text = match.group(1)
    return text


def _cast_integer(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> int:
    if isinstance(value, bool):
        raise CoercionError(value, "integer", fmt, reason="boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if not strict and value == int(value):
            return int(value)
        raise CoercionError(value, "integer", fmt, reason="not integral")
    if not isinstance(value, str):
        raise CoercionError(value, "integer", fmt, reason="unsupported value")

    text = _text(value, strict)
    if not strict:
        text = _strip_number_decorations(text, options)
    if not _INTEGER_RE.fullmatch(text):
        raise CoercionError(value, "integer", fmt)
    return int(text)


def _cast_number(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> float:
    if isinstance(value, bool):
        raise CoercionError(value, "number", fmt, reason="boolean is not a number")
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if not isinstance(value, str):
        raise CoercionError(value, "number", fmt, reason="unsupported value")

    text = _text(value, strict)
    if text in _SPECIAL_NUMBERS:
        return _SPECIAL_NUMBERS[text]
    if not strict:
        text = _strip_number_decorations(text, options)
    pattern = _STRICT_NUMBER_RE if strict else _LENIENT_NUMBER_RE
    if not pattern.fullmatch(text):
        raise CoercionError(value, "number", fmt)
    return float(text)


def _cast_boolean(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> bool:
    if isinstance(value, bool):
        return value
    true_values = [str(v) for v in options.get("trueValues", DEFAULT_TRUE_VALUES)]
    false_values = [str(v) for v in options.get("falseValues", DEFAULT_FALSE_VALUES)]
    text = value if isinstance(value, str) else str(value)

    if strict:
        if text in true_values:
            return True
        if text in false_values:
            return False
    else:
        folded = text.strip().lower()
        if folded in {v.lower() for v in true_values}:
            return True
        if folded in {v.lower() for v in false_values}:
            return False
    raise CoercionError(value, "boolean", fmt)


def _parse_temporal(value: str, kind: str, fmt: str, strict: bool) -> datetime:
    text = _text(value, strict)
    if fmt == "any":
        try:
            parsed = pd.to_datetime(text)
        except (ValueError, TypeError, OverflowError):
            raise CoercionError(value, kind, fmt) from None
        if parsed is pd.NaT:
            raise CoercionError(value, kind, fmt)
        return parsed.to_pydatetime()

    pattern = _DEFAULT_PATTERNS[kind] if fmt == DEFAULT_FORMAT else fmt
    if pattern.startswith("fmt:"):
        pattern = pattern[4:]
    try:
        return datetime.strptime(text, pattern)
    except ValueError:
        if kind == "datetime" and fmt == DEFAULT_FORMAT and not strict:
            try:
                return datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                pass
        raise CoercionError(value, kind, fmt) from None


def _cast_date(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> date:
    if isinstance(value, datetime):
        if strict:
            raise CoercionError(value, "date", fmt, reason="datetime is not a date")
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise CoercionError(value, "date", fmt, reason="unsupported value")
    return _parse_temporal(value, "date", fmt, strict).date()


def _cast_time(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> time:
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise CoercionError(value, "time", fmt, reason="unsupported value")
    return _parse_temporal(value, "time", fmt, strict).time()


def _cast_datetime(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise CoercionError(value, "datetime", fmt, reason="unsupported value")
    return _parse_temporal(value, "datetime", fmt, strict)


def _cast_year(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str) or not _YEAR_RE.fullmatch(_text(value, strict)):
        raise CoercionError(value, "year", fmt)
    return int(_text(value, strict))


def _cast_yearmonth(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> tuple:
    if isinstance(value, (tuple, list)) and len(value) == 2:
        year, month = value
    elif isinstance(value, str) and _YEARMONTH_RE.fullmatch(_text(value, strict)):
        year, month = _YEARMONTH_RE.fullmatch(_text(value, strict)).groups()
    else:
        raise CoercionError(value, "yearmonth", fmt)
    year, month = int(year), int(month)
    if not 1 <= month <= 12:
        raise CoercionError(value, "yearmonth", fmt, reason="month out of range")
    return (year, month)


def _json_container(value: Any, kind: str, expected: type, fmt: str) -> Any:
    if isinstance(value, expected):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            raise CoercionError(value, kind, fmt, reason="invalid JSON") from None
        if isinstance(parsed, expected):
            return parsed
    raise CoercionError(value, kind, fmt)


def _cast_object(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> dict:
    return _json_container(value, "object", dict, fmt)


def _cast_array(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> list:
    return _json_container(value, "array", list, fmt)


def _cast_any(value: Any, fmt: str, strict: bool, options: Mapping[str, Any]) -> Any:
    return value


_CASTERS: Dict[str, Caster] = {
    "string": _cast_string,
    "integer": _cast_integer,
    "number": _cast_number,
    "boolean": _cast_boolean,
    "date": _cast_date,
    "time": _cast_time,
    "datetime": _cast_datetime,
    "year": _cast_year,
    "yearmonth": _cast_yearmonth,
    "object": _cast_object,
    "array": _cast_array,
    "any": _cast_any,
}
