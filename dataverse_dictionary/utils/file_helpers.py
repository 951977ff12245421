"""
File Helper Utilities
Common file operations and utilities
"""
from pathlib import Path
import json
import yaml
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Load YAML configuration file

    Args:
        filepath: Path to YAML file

    Returns:
        Dictionary with configuration (empty for an empty file)
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def save_json(data: Any, filepath: Path, indent: int = 2) -> None:
    """
    Save data to JSON file

    Args:
        data: Data to save
        filepath: Path to save to
        indent: JSON indentation
    """
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)


def ensure_dir(directory: Path) -> Path:
    """
    Ensure directory exists, create if it doesn't

    Args:
        directory: Directory path

    Returns:
        The directory path
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_client_output_dir(client_name: str, base_dir: Optional[Path] = None) -> Path:
    """
    Get the output directory for a specific client

    Args:
        client_name: Name of the client
        base_dir: Base data directory (default: ./data)

    Returns:
        Path to client's output directory
    """
    if base_dir is None:
        base_dir = Path('data')

    return ensure_dir(Path(base_dir) / client_name / 'dictionary')


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in file names"""
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        name = name.replace(char, '_')
    return name


def list_clients(config_dir: Optional[Path] = None) -> list:
    """
    List client configurations

    Args:
        config_dir: Configuration directory

    Returns:
        List of client names (YAML file stems, template excluded)
    """
    if config_dir is None:
        config_dir = Path('config')

    if not config_dir.exists():
        return []

    return sorted(
        f.stem for f in config_dir.glob('*.yaml')
        if f.stem != 'client_template'
    )
