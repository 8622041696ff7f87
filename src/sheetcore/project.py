"""Project-level configuration and scaffolding."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "sheetcore.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "rows": 50,
    "columns": 26,
    "sheet_file": "sheet.yaml",
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

DEMO_CONFIG = """\
# sheetcore project configuration
rows: 50
columns: 26
sheet_file: sheet.yaml
# logging_fsync: true
"""


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``sheetcore.yaml``, with defaults.

    Args:
        project_dir: Root of the sheetcore project.

    Returns:
        Merged configuration dict.  Unknown keys are passed through.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)
    return config


def sheet_path(project_dir: Path, config: dict[str, Any] | None = None) -> Path:
    """Path of the project's sheet document."""
    config = config if config is not None else load_project_config(project_dir)
    return Path(project_dir) / str(config["sheet_file"])


def scaffold_project(target_dir: Path) -> Path:
    """Create a new, empty sheetcore project at the target directory.

    Args:
        target_dir: Directory to create (must not already contain a sheet).

    Returns:
        Path to the created project directory.
    """
    from sheetcore.persistence import save_sheet
    from sheetcore.spreadsheet import Spreadsheet

    target_dir = Path(target_dir).resolve()
    target_dir.mkdir(parents=True, exist_ok=True)

    config_path = target_dir / CONFIG_FILENAME
    if not config_path.exists():
        config_path.write_text(DEMO_CONFIG)

    config = load_project_config(target_dir)
    path = sheet_path(target_dir, config)
    if path.exists():
        raise FileExistsError(f"{path.name} already exists in {target_dir}")

    save_sheet(Spreadsheet(int(config["rows"]), int(config["columns"])), path)
    (target_dir / "logs").mkdir(exist_ok=True)
    return target_dir
