"""YAML loader for the packaged tax-law, RMD and state-tax tables."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from retireplan.utils.exceptions import ConfigError


def load_yaml(path: Path) -> Any:
    """Parse one reference table.

    Raises:
        ConfigError: If the file is missing or is not valid YAML.
    """
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"reference table not found: {path.name}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"malformed reference table {path.name}: {exc}") from exc


def package_root() -> Path:
    """Directory of the installed ``retireplan`` package."""
    return Path(__file__).resolve().parent.parent


def load_package_yaml(relative_path: str) -> Any:
    """Load a YAML file relative to the retireplan package root.

    Args:
        relative_path: Path relative to ``src/retireplan/``,
            e.g. ``"taxes/tables/us_federal_2025.yaml"``.
    """
    return load_yaml(package_root() / relative_path)


def list_package_files(relative_dir: str, pattern: str) -> list[Path]:
    """List package data files in ``relative_dir`` matching a glob ``pattern``."""
    return sorted((package_root() / relative_dir).glob(pattern))
