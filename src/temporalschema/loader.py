"""Load schemas (and documents) from JSON or YAML files."""

import json
from pathlib import Path
from typing import Any

import yaml

_YAML_SUFFIXES = (".yaml", ".yml")


def load_document(path: Path) -> Any:
    """Load a JSON or YAML file. The suffix picks the parser.

    Raises:
        ValueError: If the file is empty or cannot be parsed
    """
    path = Path(path)
    with path.open() as fh:
        try:
            if path.suffix.lower() in _YAML_SUFFIXES:
                data = yaml.safe_load(fh)
            else:
                data = json.load(fh)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Cannot parse {path}: {exc}") from exc

    if data is None:
        raise ValueError(f"{path} is empty or contains only whitespace")
    return data


def load_schema(path: Path) -> dict[str, Any] | bool:
    """Load a schema file; the top level must be an object or a boolean."""
    schema = load_document(path)
    if not isinstance(schema, (dict, bool)):
        raise ValueError(f"{path} does not contain a JSON Schema object")
    return schema
