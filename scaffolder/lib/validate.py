"""
Schema validation for scaffolder.

Enforces JSON Schema validation at every input boundary (settings files,
project templates). Reports every violation at once rather than the first.
"""

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml


class SchemaError(Exception):
    """Schema validation failed."""

    def __init__(self, schema_name: str, problems: list[str], source: str | None = None):
        self.schema_name = schema_name
        self.problems = problems
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"[{schema_name}] {len(problems)} problem(s){where}: " + "; ".join(problems))


# Cache loaded schemas
_schema_cache: dict[str, dict] = {}


def _get_schemas_dir() -> Path:
    """Get path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict:
    """Load schema by name, with caching."""
    if schema_name not in _schema_cache:
        schema_path = _get_schemas_dir() / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise SchemaError(schema_name, [f"Schema file not found: {schema_path}"])
        _schema_cache[schema_name] = json.loads(schema_path.read_text())
    return _schema_cache[schema_name]


def _format_path(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"


def collect_errors(data: Any, schema_name: str) -> list[str]:
    """Return every schema violation as 'path: message', in document order."""
    schema = _load_schema(schema_name)
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    return [f"{_format_path(e)}: {e.message}" for e in errors]


def validate(data: Any, schema_name: str, source: str | None = None) -> None:
    """
    Validate data against named schema.

    Args:
        data: Parsed document to validate
        schema_name: Schema name (e.g., "settings", "template")
        source: Where the data came from, for error messages

    Raises:
        SchemaError: If validation fails, listing all problems
    """
    problems = collect_errors(data, schema_name)
    if problems:
        raise SchemaError(schema_name, problems, source)


def validate_yaml_file(filepath: Path, schema_name: str) -> dict:
    """
    Load a YAML file and validate it against schema.

    Returns:
        Parsed and validated data

    Raises:
        SchemaError: If file missing, unparseable or doesn't match schema
    """
    if not filepath.exists():
        raise SchemaError(schema_name, [f"File not found: {filepath}"])

    try:
        data = yaml.safe_load(filepath.read_text())
    except yaml.YAMLError as e:
        raise SchemaError(schema_name, [f"Invalid YAML: {e}"], str(filepath)) from None

    validate(data, schema_name, str(filepath))
    return data
