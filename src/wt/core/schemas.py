"""Schema validation at the I/O boundary.

Registry and config documents are validated with JSON Schema before they
are turned into typed models. Schemas are bundled as YAML under
``wt/data/schemas`` and validated with jsonschema's Draft 2020-12
validator so that every violation is reported at once.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from wt.core.exceptions import ValidationError
from wt.data import get_data_path, read_yaml


@lru_cache(maxsize=8)
def _validator(schema_name: str) -> Draft202012Validator:
    schema = load_schema(schema_name)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def load_schema(schema_name: str) -> Dict[str, Any]:
    """Load a bundled schema by name (``.schema.yaml`` suffix optional).

    Raises:
        FileNotFoundError: If the schema file does not exist.
        ValueError: If the schema is not a YAML mapping.
    """
    filename = schema_name
    if not filename.endswith((".yaml", ".yml")):
        filename = f"{filename}.schema.yaml"
    if not get_data_path("schemas", filename).exists():
        raise FileNotFoundError(f"Schema not found: {filename}")
    schema = read_yaml("schemas", filename)
    if not isinstance(schema, dict):
        raise ValueError(f"Schema must be a YAML mapping, got {type(schema).__name__}")
    return schema


def schema_errors(payload: Any, schema_name: str) -> List[str]:
    """Return readable ``path: message`` strings for every violation (empty if valid)."""
    errors: List[str] = []
    for error in sorted(_validator(schema_name).iter_errors(payload), key=lambda e: list(map(str, e.path))):
        if error.path:
            path_str = ".".join(str(p) for p in error.path)
            errors.append(f"{path_str}: {error.message}")
        else:
            errors.append(error.message)
    return errors


def validate_payload(payload: Any, schema_name: str, *, source: str | None = None) -> None:
    """Validate ``payload`` against a bundled schema.

    Raises:
        ValidationError: Listing every violation; ``context["errors"]`` holds them.
    """
    errors = schema_errors(payload, schema_name)
    if not errors:
        return
    where = f" in {source}" if source else ""
    details = "\n".join(f"  - {e}" for e in errors)
    raise ValidationError(
        f"Invalid {schema_name}{where}:\n{details}",
        context={"schema": schema_name, "source": source, "errors": errors},
    )


__all__ = ["load_schema", "schema_errors", "validate_payload"]
