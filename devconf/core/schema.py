"""Access to the JSON Schemas bundled with devconf."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import ValidationError, validators


@lru_cache(maxsize=None)
def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("devconf.schemas").joinpath(f"{name}.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def describe_error(exc: ValidationError) -> tuple[str | None, str]:
    """Split a schema error into a dotted field path and its message."""
    path = ".".join(str(p) for p in exc.absolute_path)
    return (path or None), exc.message
