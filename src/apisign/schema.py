from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import httpx
from jsonschema import Draft7Validator

from apisign.errors import SchemaValidationError


def load_schema(path: str | Path) -> dict[str, Any]:
    schema = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(schema, dict):
        raise ValueError(f"JSON schema in {path} must be an object")
    Draft7Validator.check_schema(schema)
    return schema


def _format_error_path(path: Iterable[object]) -> str:
    parts = [str(part) for part in path]
    return "$" + "".join(f"[{part}]" if part.isdigit() else f".{part}" for part in parts)


def collect_schema_errors(instance: object, schema: Mapping[str, Any]) -> list[str]:
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda err: list(map(str, err.absolute_path)))
    return [f"{_format_error_path(err.absolute_path)}: {err.message}" for err in errors]


def validate_response(
    instance: object, schema: Mapping[str, Any], *, source: str | None = None
) -> None:
    """Validate a decoded JSON document, reporting every violation at once."""
    errors = collect_schema_errors(instance, schema)
    if errors:
        raise SchemaValidationError(errors, source=source)


def validate_response_body(
    response: httpx.Response, schema: Mapping[str, Any], *, source: str | None = None
) -> object:
    try:
        payload = response.json()
    except ValueError as exc:
        raise SchemaValidationError(
            [f"$: response body is not valid JSON ({exc})"], source=source
        ) from exc
    validate_response(payload, schema, source=source)
    return payload
