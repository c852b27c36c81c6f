"""JSON / JSONL readers shared by the CLI commands."""
import json
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from spacelens.core.exceptions import DataLoadError
from spacelens.core.models import SpaceField, SpacePoint, point_list_adapter


def load_records(file_path: Path, key: str) -> List[Dict[str, Any]]:
    """
    Load records from a JSONL file, a JSON list, or a JSON object holding
    the list under ``key``.
    """
    try:
        if file_path.suffix == ".jsonl":
            with open(file_path, "r") as f:
                return [json.loads(line) for line in f if line.strip()]

        with open(file_path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DataLoadError(f"Cannot read {file_path}: {e}")

    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise DataLoadError(f"Expected a list of records in {file_path}")
    return data


def load_fields(file_path: Path) -> List[SpaceField]:
    """Load field metadata (list or {"fields": [...]})."""
    try:
        return [SpaceField.model_validate(f) for f in load_records(file_path, "fields")]
    except ValidationError as e:
        raise DataLoadError(f"Invalid field metadata in {file_path}: {e}")


def load_points(file_path: Path) -> List[SpacePoint]:
    """Load points written by the ``points`` command."""
    try:
        return point_list_adapter.validate_python(load_records(file_path, "points"))
    except ValidationError as e:
        raise DataLoadError(f"Invalid points in {file_path}: {e}")
