"""
Generable — Schema Decoder & Validator

Turns corrected JSON text into an instance of a pydantic model.

decode() separates the three ways a response can be wrong:
  - nothing there           -> EMPTY_CONTENT
  - not JSON at all         -> INVALID_JSON
  - JSON, but the wrong shape -> one classified ParseError

validate() is a shallow, non-decoding check against the model's JSON
Schema, useful for diagnostics even when strict decoding would fail.
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from generable.parsing.corrector import complete_partial, correct
from generable.parsing.types import (
    Failure,
    ParseError,
    ParseErrorKind,
    ParseOutcome,
    Success,
    ValidationIssue,
)

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

# pydantic error-type prefix -> JSON Schema kind
_EXPECTED_KIND: dict[str, str] = {
    "int": "integer",
    "float": "number",
    "decimal": "number",
    "string": "string",
    "bool": "boolean",
    "list": "array",
    "tuple": "array",
    "set": "array",
    "dict": "object",
    "model": "object",
    "model_attributes": "object",
}

# Lower sorts first: the highest-precedence kind wins when pydantic reports
# several problems at once.
_PRECEDENCE: dict[ParseErrorKind, int] = {
    ParseErrorKind.MISSING_REQUIRED_FIELD: 0,
    ParseErrorKind.TYPE_MISMATCH: 1,
    ParseErrorKind.NULL_VALUE: 2,
    ParseErrorKind.DATA_CORRUPTED: 3,
    ParseErrorKind.DECODING_FAILED: 4,
}


def decode(text: str, schema: type[M]) -> ParseOutcome[M]:
    if not text or not text.strip():
        return Failure(ParseError.empty_content())

    corrected = correct(text)

    try:
        corrected.encode("utf-8")
    except UnicodeEncodeError:
        return Failure(ParseError.encoding_error())

    try:
        payload = json.loads(corrected)
    except (json.JSONDecodeError, ValueError) as exc:
        return Failure(ParseError.invalid_json(text, str(exc)))

    try:
        return Success(schema.model_validate(payload))
    except ValidationError as exc:
        error = map_validation_error(exc)
        logger.debug(
            "schema_decode_failed",
            schema=schema.__name__,
            kind=error.kind.value,
            path=error.path,
        )
        return Failure(error)
    except (TypeError, ValueError) as exc:
        return Failure(ParseError.decoding_failed(str(exc)))


def decode_partial(text: str, schema: type[M]) -> M | None:
    """
    Best-effort decode of an incomplete document for streaming previews.

    Leading prose and an opening fence are skipped before the heuristic
    completion runs. Returns None whenever the preview does not decode.
    """
    start = _first_container(text)
    if start < 0:
        return None

    completed = complete_partial(text[start:])
    try:
        return schema.model_validate(json.loads(completed))
    except (json.JSONDecodeError, ValidationError, ValueError, TypeError):
        return None


def validate(text: str, schema: type[BaseModel]) -> list[ValidationIssue]:
    """Shallow top-level checks: required keys present, declared kinds compatible."""
    try:
        payload = json.loads(correct(text)) if text and text.strip() else None
    except (json.JSONDecodeError, ValueError):
        payload = None

    if not isinstance(payload, dict):
        return [ValidationIssue(field="root", message="Invalid JSON structure")]

    issues: list[ValidationIssue] = []
    json_schema = schema.model_json_schema()
    definitions = json_schema.get("$defs", {})

    for name in json_schema.get("required", []):
        if name not in payload:
            issues.append(ValidationIssue(field=name, message="Required field is missing"))

    for name, prop in json_schema.get("properties", {}).items():
        if name not in payload:
            continue
        expected = _declared_kinds(prop, definitions)
        if not expected:
            continue
        actual = json_kind(payload[name])
        if not any(kinds_compatible(kind, actual) for kind in expected):
            issues.append(ValidationIssue(
                field=name,
                message=f"Expected {' or '.join(expected)} but got {actual}",
            ))

    return issues


def map_validation_error(exc: ValidationError) -> ParseError:
    """Collapse pydantic's error list to the single most relevant ParseError."""
    classified = [_classify(err) for err in exc.errors()]
    if not classified:
        return ParseError.decoding_failed(str(exc))
    return min(classified, key=lambda e: _PRECEDENCE.get(e.kind, len(_PRECEDENCE)))


def json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "unknown"


def kinds_compatible(expected: str, actual: str) -> bool:
    if expected == actual:
        return True
    return {expected, actual} == {"integer", "number"}


# ─── Internals ────────────────────────────────────────────────────


def _classify(err: Any) -> ParseError:
    err_type: str = err.get("type", "")
    path = ".".join(str(part) for part in err.get("loc", ()))
    message: str = err.get("msg", "")
    value = err.get("input")

    if err_type == "missing":
        return ParseError.missing_required_field(path, message)

    expected = _expected_from_type(err_type)
    if expected is not None:
        if value is None:
            return ParseError.null_value(path, expected)
        return ParseError.type_mismatch(path, expected, json_kind(value))

    # Right kind, unacceptable value: enum members, constraints, validators.
    return ParseError.data_corrupted(f"{path}: {message}" if path else message)


def _expected_from_type(err_type: str) -> str | None:
    for suffix in ("_type", "_parsing"):
        if err_type.endswith(suffix):
            prefix = err_type[: -len(suffix)]
            return _EXPECTED_KIND.get(prefix, prefix)
    return None


def _declared_kinds(prop: dict[str, Any], definitions: dict[str, Any]) -> list[str]:
    if "$ref" in prop:
        ref = prop["$ref"].rsplit("/", 1)[-1]
        target = definitions.get(ref, {})
        if "type" in target:
            return [target["type"]]
        return ["object"] if "properties" in target else []

    declared = prop.get("type")
    if isinstance(declared, str):
        return [declared]
    if isinstance(declared, list):
        return [k for k in declared if isinstance(k, str)]

    kinds: list[str] = []
    for option in prop.get("anyOf", []):
        kinds.extend(_declared_kinds(option, definitions))
    return kinds


def _first_container(text: str) -> int:
    positions = [pos for pos in (text.find("{"), text.find("[")) if pos >= 0]
    return min(positions) if positions else -1
