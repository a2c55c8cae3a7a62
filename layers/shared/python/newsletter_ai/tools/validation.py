"""Tool argument validation and schema enforcement.

Tool arguments come from the model, so they are untrusted: they may be a JSON
string rather than an object, carry extra keys, or use the wrong types. The
validator compiles a tool's JSON Schema once and turns any candidate value into
either a clean copy of the arguments or a list of violations. It never raises
on bad input.

Strictness rules applied on top of the declared schema:
- Object schemas that say nothing about `additionalProperties` reject unknown keys.
- Values are never coerced, unless the property schema sets `"x-coerce": true`.
"""
from __future__ import annotations

import copy
import json
import logging
import math
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import jsonschema
from jsonschema.validators import validator_for

from newsletter_ai.schema import Violation

logger = logging.getLogger(__name__)

COERCE_KEYWORD = "x-coerce"

# jsonschema keyword -> violation code
_CODES = {
    "required": "missing_required",
    "type": "wrong_type",
    "enum": "not_in_enum",
    "const": "not_in_enum",
    "minLength": "length_out_of_range",
    "maxLength": "length_out_of_range",
    "minItems": "size_out_of_range",
    "maxItems": "size_out_of_range",
    "minProperties": "size_out_of_range",
    "maxProperties": "size_out_of_range",
    "minimum": "out_of_range",
    "maximum": "out_of_range",
    "exclusiveMinimum": "out_of_range",
    "exclusiveMaximum": "out_of_range",
    "additionalProperties": "unexpected_field",
    "unevaluatedProperties": "unexpected_field",
    "pattern": "pattern_mismatch",
}

_SUBSCHEMA_LISTS = ("allOf", "anyOf", "oneOf", "prefixItems")
_SUBSCHEMA_MAPS = ("properties", "patternProperties", "$defs", "definitions")


@dataclass
class ValidationResult:
    ok: bool
    value: dict[str, Any] | None = None
    violations: list[Violation] = field(default_factory=list)


def format_path(parts: Iterable[Any]) -> str:
    """Render a jsonschema error path as `$.field[0].child`."""
    out = "$"
    for p in parts:
        if isinstance(p, int):
            out += f"[{p}]"
        else:
            out += f".{p}"
    return out


def strict_schema(schema: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of `schema` where objects default to `additionalProperties: false`."""
    result = copy.deepcopy(dict(schema))
    _close_objects(result)
    return result


def _close_objects(node: Any) -> None:
    if not isinstance(node, dict):
        return
    is_object = node.get("type") == "object" or "properties" in node
    if is_object and "additionalProperties" not in node and "unevaluatedProperties" not in node:
        node["additionalProperties"] = False
    for key in _SUBSCHEMA_MAPS:
        sub = node.get(key)
        if isinstance(sub, dict):
            for child in sub.values():
                _close_objects(child)
    for key in _SUBSCHEMA_LISTS:
        sub = node.get(key)
        if isinstance(sub, list):
            for child in sub:
                _close_objects(child)
    for key in ("items", "additionalProperties", "not"):
        _close_objects(node.get(key))


_INTEGER_TEXT = re.compile(r"-?[0-9]+")
_DECIMAL_TEXT = re.compile(r"-?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][-+]?[0-9]+)?")


def _coerce_scalar(schema: Mapping[str, Any], value: str) -> Any:
    """Convert plain numeric or boolean text; anything else is left for the validator to reject."""
    kind = schema.get("type")
    text = value.strip()
    if kind == "integer":
        return int(text) if _INTEGER_TEXT.fullmatch(text) else value
    if kind == "number":
        if _INTEGER_TEXT.fullmatch(text):
            return int(text)
        if _DECIMAL_TEXT.fullmatch(text):
            number = float(text)
            return number if math.isfinite(number) else value
        return value
    if kind == "boolean":
        lowered = text.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    return value


def _coerce(schema: Any, value: Any) -> Any:
    """Apply opt-in coercion for properties marked with `x-coerce`."""
    if not isinstance(schema, Mapping):
        return value
    if schema.get(COERCE_KEYWORD) is True and isinstance(value, str):
        return _coerce_scalar(schema, value)
    if isinstance(value, dict):
        props = schema.get("properties")
        if isinstance(props, Mapping):
            return {k: _coerce(props.get(k), v) for k, v in value.items()}
        return value
    if isinstance(value, list):
        items = schema.get("items")
        if isinstance(items, Mapping):
            return [_coerce(items, v) for v in value]
    return value


def _has_coercion(schema: Any) -> bool:
    if isinstance(schema, Mapping):
        if schema.get(COERCE_KEYWORD) is True:
            return True
        return any(_has_coercion(v) for v in schema.values())
    if isinstance(schema, list):
        return any(_has_coercion(v) for v in schema)
    return False


class ArgumentValidator:
    """Compiled validator for one tool's argument schema.

    Raises `jsonschema.SchemaError` at construction if the schema itself is
    invalid: that is a registration bug, not model output.
    """

    def __init__(self, schema: Mapping[str, Any]):
        self.schema = strict_schema(schema)
        cls = validator_for(self.schema, default=jsonschema.Draft202012Validator)
        cls.check_schema(self.schema)
        self._validator = cls(self.schema)
        self._coerces = _has_coercion(self.schema)

    def validate(self, raw: Any) -> ValidationResult:
        try:
            return self._validate(raw)
        except Exception as e:
            logger.exception("Argument validation crashed")
            return ValidationResult(
                ok=False,
                violations=[Violation(path="$", code="validator_error", message=f"Validation error: {e}")],
            )

    def _validate(self, raw: Any) -> ValidationResult:
        candidate = raw
        if isinstance(raw, (str, bytes)):
            try:
                candidate = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                return ValidationResult(
                    ok=False,
                    violations=[Violation(path="$", code="malformed_json", message=f"Arguments are not valid JSON: {e}")],
                )

        candidate = copy.deepcopy(candidate)
        if self._coerces:
            candidate = _coerce(self.schema, candidate)

        violations = self._collect(candidate)
        if violations:
            return ValidationResult(ok=False, violations=violations)
        if not isinstance(candidate, dict):
            return ValidationResult(
                ok=False,
                violations=[Violation(path="$", code="wrong_type", message="Arguments must be a JSON object")],
            )
        return ValidationResult(ok=True, value=candidate)

    def _collect(self, instance: Any) -> list[Violation]:
        violations: list[Violation] = []
        seen: set[tuple[str, str]] = set()
        errors = sorted(self._validator.iter_errors(instance), key=lambda e: (list(map(str, e.absolute_path)), e.validator))
        for err in errors:
            path = deque(err.absolute_path)
            code = _CODES.get(str(err.validator), str(err.validator))

            if err.validator == "required" and isinstance(err.instance, dict):
                for name in err.validator_value:
                    key = (format_path([*path, name]), code)
                    if name in err.instance or key in seen:
                        continue
                    seen.add(key)
                    violations.append(Violation(path=key[0], code=code, message=f"{name!r} is a required property"))
                continue

            if err.validator == "additionalProperties" and isinstance(err.instance, dict):
                declared = (err.schema.get("properties") or {}) if isinstance(err.schema, dict) else {}
                if not (isinstance(err.schema, dict) and err.schema.get("patternProperties")):
                    for name in err.instance:
                        key = (format_path([*path, name]), code)
                        if name in declared or key in seen:
                            continue
                        seen.add(key)
                        violations.append(Violation(path=key[0], code=code, message=f"Unexpected field {name!r}"))
                    continue

            key = (format_path(path), f"{code}:{err.message}")
            if key in seen:
                continue
            seen.add(key)
            violations.append(Violation(path=key[0], code=code, message=err.message))
        return violations


def validate_arguments(schema: Mapping[str, Any], raw: Any) -> ValidationResult:
    """One-shot validation for callers that do not keep a compiled validator.

    An invalid schema is reported as a `schema_error` violation instead of raising.
    """
    try:
        validator = ArgumentValidator(schema)
    except jsonschema.SchemaError as e:
        return ValidationResult(ok=False, violations=[Violation(path="$", code="schema_error", message=e.message)])
    return validator.validate(raw)
