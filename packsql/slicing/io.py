"""
Slice I/O

Loading schema snapshots and department policies from disk, and saving
slice documents so a slice can be re-activated without recomputing it.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from packsql.models.pack import SliceResult
from packsql.models.schema import Schema
from packsql.slicing.policy import DepartmentPolicy

logger = logging.getLogger(__name__)


def load_schema(path: str | Path) -> Schema:
    """Load a schema snapshot from a JSON file (camelCase or snake_case keys)."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Schema file not found: {file_path}")
    data = json.loads(file_path.read_text(encoding="utf-8"))
    schema = Schema.model_validate(data)
    logger.info(
        f"Loaded schema {schema.schema_name} with {len(schema.tables)} tables",
        extra={"path": str(file_path), "tables": len(schema.tables)},
    )
    return schema


def parse_policies(data: Any) -> list[DepartmentPolicy]:
    """Build policies from a list, or a mapping with a `policies` key."""
    if isinstance(data, dict):
        data = data.get("policies", [])
    if not isinstance(data, list):
        raise ValueError("Policies must be a list of policy mappings")
    return [DepartmentPolicy.model_validate(item) for item in data]


def load_policies(path: str | Path) -> list[DepartmentPolicy]:
    """
    Load department policies from YAML.

    Expected structure:
        policies:
          - dept_id: hr
            name: Human Resources
            include_prefixes: [hr]
            exclude_prefixes: [hrTmp]
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Policies file not found: {file_path}")
    policies = parse_policies(yaml.safe_load(file_path.read_text(encoding="utf-8")) or [])
    logger.info(
        f"Loaded {len(policies)} department policies from {file_path}",
        extra={"path": str(file_path), "policies": len(policies)},
    )
    return policies


def dump_slice(result: SliceResult, indent: int | None = 2) -> str:
    """Serialize a slice to its JSON document."""
    return json.dumps(result.to_document(), indent=indent, ensure_ascii=False)


def load_slice(path: str | Path) -> SliceResult:
    """Load a previously saved slice document."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Slice file not found: {file_path}")
    return SliceResult.model_validate_json(file_path.read_text(encoding="utf-8"))


def save_slice(
    result: SliceResult,
    output_dir: str | Path,
    file_name: str | None = None,
    overwrite: bool = False,
) -> Path:
    """
    Write a slice document to `output_dir`.

    The default file name is `<schema>_<strategy>-slice_<UTC timestamp>.json`.
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    if file_name is None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        file_name = f"{result.schema_name}_{result.strategy}-slice_{stamp}.json"
    file_path = directory / file_name
    if file_path.exists() and not overwrite:
        raise FileExistsError(f"Slice file already exists: {file_path}")

    file_path.write_text(dump_slice(result), encoding="utf-8")
    logger.info(
        f"Saved slice to {file_path}",
        extra={"path": str(file_path), "packs": len(result.packs)},
    )
    return file_path
