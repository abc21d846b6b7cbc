"""swarmpipe JSON Schema definitions and validation utilities.

Schemas:
    - pipeline.schema.json: Pipeline configuration (agents, models, phases,
      verify commands) as written in ``swarm.config.yaml``

Usage:
    from swarmpipe.schemas import validate_pipeline

    with open("swarm.config.json") as f:
        data = json.load(f)
    validate_pipeline(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from importlib.resources import files
from typing import Any

import jsonschema


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'pipeline.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("swarmpipe.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_pipeline_schema() -> dict[str, Any]:
    """Get the pipeline config schema.

    Returns:
        JSON Schema for pipeline configuration
    """
    return _load_schema("pipeline.schema.json")


def validate_pipeline(data: dict[str, Any]) -> None:
    """Validate a raw pipeline configuration against the schema.

    Args:
        data: Pipeline configuration dictionary (camelCase keys)

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_pipeline_schema())


__all__ = [
    "get_pipeline_schema",
    "validate_pipeline",
]
