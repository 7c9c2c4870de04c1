"""JSON config file loading utilities."""

import json
from pathlib import Path
from typing import Any

from rigforge.core.options import ImportOptions


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


def load_import_options(path: Path) -> ImportOptions:
    """Load :class:`ImportOptions` from a JSON object file."""
    data = load_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: import options must be a JSON object")
    return ImportOptions.from_dict(data)
