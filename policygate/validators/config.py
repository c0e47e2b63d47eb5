"""Sandbox configuration validation against JSON Schema."""

import json
from pathlib import Path

import jsonschema
from pydantic import ValidationError

from policygate.models.options import SandboxConfig

# Path to the configuration schema
SCHEMA_PATH = Path(__file__).parent.parent / "contracts" / "config_schema.json"


def _load_schema() -> dict:
    """Load the configuration JSON schema."""
    with open(SCHEMA_PATH) as f:
        return json.load(f)


def validate_config(config: dict) -> tuple[bool, list[str]]:
    """
    Validate a configuration dict against the schema and the option models.

    Args:
        config: The configuration dictionary to validate.

    Returns:
        A tuple of (is_valid, list_of_errors).
        If valid, errors list is empty.
    """
    errors: list[str] = []

    try:
        schema = _load_schema()
        validator = jsonschema.Draft7Validator(schema)
        for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
            location = "/".join(str(part) for part in error.path) or "<root>"
            errors.append(f"Schema validation error at {location}: {error.message}")
    except FileNotFoundError:
        errors.append(f"Schema file not found: {SCHEMA_PATH}")
    except json.JSONDecodeError as e:
        errors.append(f"Schema JSON decode error: {e}")

    # Unknown flags pass the schema's name pattern; the options model knows the real set
    if not errors:
        try:
            SandboxConfig.model_validate(config)
        except ValidationError as e:
            for error in e.errors():
                location = "/".join(str(part) for part in error["loc"])
                errors.append(f"Option error at {location}: {error['msg']}")

    return (len(errors) == 0, errors)


def load_config(path: Path) -> SandboxConfig:
    """
    Load and validate a configuration file.

    Raises:
        ValueError: If the file is not valid JSON or fails validation.
    """
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Config JSON decode error: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Config validation failed: top level must be an object")
    ok, errors = validate_config(data)
    if not ok:
        raise ValueError("Config validation failed: " + "; ".join(errors))
    return SandboxConfig.model_validate(data)
