"""Validation of critique payloads against a JSON Schema subset.

Covers types, required fields, enums, minimum/maximum, minLength, pattern,
``additionalProperties: false``, item counts and array items.
"""

from __future__ import annotations

import json
import re
from typing import Any


class SchemaInputError(ValueError):
    """The payload or the schema is not valid JSON."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"unexpected constant {name}")


def _load(data: bytes | str, label: str) -> Any:
    try:
        return json.loads(data, parse_constant=_reject_constant)
    except ValueError as exc:
        raise SchemaInputError(f"{label}: {exc}") from exc


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _format_number(value: float) -> str:
    number = float(value)
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    text = repr(number)
    mantissa, sep, exponent = text.partition("e")
    if not sep:
        return text
    sign = "-" if exponent.startswith("-") else "+"
    return f"{mantissa}e{sign}{exponent.lstrip('+-').rjust(2, '0')}"


def _format(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "[" + " ".join(_format(v) for v in value) + "]"
    if isinstance(value, dict):
        return "map[" + " ".join(f"{k}:{_format(value[k])}" for k in sorted(value)) + "]"
    return str(value)


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _type_matches(kind: str, value: Any) -> bool:
    if kind == "object":
        return isinstance(value, dict)
    if kind == "array":
        return isinstance(value, list)
    if kind == "string":
        return isinstance(value, str)
    if kind == "integer":
        number = _number(value)
        return number is not None and number.is_integer()
    if kind == "number":
        return _number(value) is not None
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "null":
        return value is None
    return True


class _Validator:
    def __init__(self) -> None:
        self.errors: list[str] = []

    def add(self, path: str, message: str) -> None:
        self.errors.append(f"{path}: {message}")

    def walk(self, path: str, doc: Any, schema: Any) -> None:
        if not isinstance(schema, dict):
            return
        kind = schema.get("type")
        if isinstance(kind, str) and not _type_matches(kind, doc):
            self.add(path, f"wrong type, want {kind}")
            return

        if isinstance(doc, dict):
            self._walk_object(path, doc, schema)
        elif isinstance(doc, list):
            self._walk_array(path, doc, schema)
        elif isinstance(doc, str):
            self._walk_string(path, doc, schema)
        elif _number(doc) is not None:
            self._walk_number(path, float(doc), schema)

        enum = schema.get("enum")
        if isinstance(enum, list):
            shown = _format(doc)
            if not any(_format(e) == shown for e in enum):
                options = ", ".join(_format(e) for e in enum)
                self.add(path, f"must be one of [{options}], got {shown}")

    def _walk_object(self, path: str, doc: dict, schema: dict) -> None:
        required = schema.get("required")
        if isinstance(required, list):
            for name in required:
                key = name if isinstance(name, str) else ""
                if key not in doc:
                    self.add(path, f"missing required field {_quote(key)}")
        closed = schema.get("additionalProperties") is False
        props = schema.get("properties")
        if not isinstance(props, dict):
            props = {}
        for key, value in doc.items():
            sub = props.get(key)
            if not isinstance(sub, dict):
                if closed:
                    self.add(path, f"unknown field {_quote(key)}")
                continue
            self.walk(f"{path}.{key}", value, sub)

    def _walk_array(self, path: str, doc: list, schema: dict) -> None:
        most = _number(schema.get("maxItems"))
        if most is not None and len(doc) > int(most):
            self.add(path, f"max {int(most)} items, got {len(doc)}")
        least = _number(schema.get("minItems"))
        if least is not None and len(doc) < int(least):
            self.add(path, f"min {int(least)} items, got {len(doc)}")
        items = schema.get("items")
        if isinstance(items, dict):
            for index, element in enumerate(doc):
                self.walk(f"{path}[{index}]", element, items)

    def _walk_string(self, path: str, doc: str, schema: dict) -> None:
        least = _number(schema.get("minLength"))
        if least is not None and len(doc.encode("utf-8")) < int(least):
            self.add(path, f"minLength {int(least)}")
        pattern = schema.get("pattern")
        if isinstance(pattern, str):
            try:
                compiled = re.compile(pattern)
            except re.error:
                return
            if not compiled.search(doc):
                self.add(path, f"does not match pattern {_quote(pattern)}")

    def _walk_number(self, path: str, doc: float, schema: dict) -> None:
        least = _number(schema.get("minimum"))
        if least is not None and doc < least:
            self.add(path, f"minimum {_format_number(least)}")
        most = _number(schema.get("maximum"))
        if most is not None and doc > most:
            self.add(path, f"maximum {_format_number(most)}")


def _evidence_errors(doc: Any) -> list[str]:
    errors = []
    root = doc if isinstance(doc, dict) else {}
    issues = root.get("issues")
    if not isinstance(issues, list):
        return errors
    for index, issue in enumerate(issues):
        obj = issue if isinstance(issue, dict) else {}
        where = f"$.issues[{index}]"
        file_name = obj.get("file")
        if not isinstance(file_name, str) or not file_name.strip():
            errors.append(f"{where}: 'file' required for this mode")
        for key in ("line_start", "line_end"):
            if key not in obj:
                errors.append(f"{where}: '{key}' required for this mode")
                continue
            number = _number(obj[key])
            if number is None or number < 1:
                errors.append(f"{where}: '{key}' must be int >= 1")
    return errors


def validate(payload: bytes | str, schema: bytes | str, require_evidence: bool = False) -> list[str]:
    """Return sorted validation messages for ``payload``; empty means valid.

    With ``require_evidence`` every issue must also carry a non-empty ``file``
    and ``line_start``/``line_end`` of at least 1.
    """
    doc = _load(payload, "invalid JSON")
    sch = _load(schema, "invalid schema JSON")
    validator = _Validator()
    validator.walk("$", doc, sch)
    if require_evidence:
        validator.errors.extend(_evidence_errors(doc))
    return sorted(validator.errors)