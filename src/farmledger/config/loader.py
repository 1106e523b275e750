"""Farm scenario loading: YAML documents into validated ``Config`` objects."""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .schema import Config

DEFAULT_SCENARIO = Path(__file__).parent / "defaults.yaml"


def load_config(yaml_path: Optional[Union[str, Path]] = None) -> Config:
    """
    Read a farm scenario (tokens, pools, schedule, simulation) from YAML.

    Keys missing from the document fall back to the schema defaults, so an
    empty file yields the default single-token farm.

    Args:
        yaml_path: Scenario file (defaults to the bundled defaults.yaml)

    Raises:
        ValueError: If the document is not a mapping or fails validation
    """
    path = Path(yaml_path) if yaml_path is not None else DEFAULT_SCENARIO
    with open(path, 'r') as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: scenario must be a mapping, got {type(data).__name__}")
    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Validate an already-parsed scenario mapping."""
    return Config.from_dict(data)
