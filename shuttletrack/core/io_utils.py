"""
YAML file helpers.
"""
import yaml
from pathlib import Path
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Load a YAML mapping.

    Args:
        filepath: Path to YAML file

    Returns:
        Parsed dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If the document is not a mapping
        yaml.YAMLError: If file is malformed
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    logger.debug(f"Loaded {filepath}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at top level of {filepath}")
    return data
