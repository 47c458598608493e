"""JSON-schema contracts for backend answers (schemas ship in landmark_guide/schemas)."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import best_match

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    return json.loads((SCHEMAS_DIR / name).read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def _validator(name: str) -> jsonschema.Draft7Validator:
    schema = load_schema(name)
    jsonschema.Draft7Validator.check_schema(schema)
    return jsonschema.Draft7Validator(schema)


def validate_or_raise(payload: dict[str, Any], schema_name: str) -> None:
    """Raise the most relevant jsonschema.ValidationError, if the payload has any."""
    error = best_match(_validator(schema_name).iter_errors(payload))
    if error is not None:
        raise error
