"""Project-level configuration and scaffolding."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "sheet_file": "sheet.txt",
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
    "show_dependencies": True,
    "autosave": False,
}

DEMO_CONFIG = """\
# gridcalc project configuration

# Save file used by `gridcalc shell` when no file is given.
sheet_file: sheet.txt

# Structured event log under logs/.
logging_enabled: true
logging_fsync: false
# logging_tail_bytes: 2097152

# Include upstream/downstream links when showing the sheet.
show_dependencies: true

# Save after every successful edit in the shell.
autosave: false
"""

DEMO_SHEET = """\
A1:5
B1:=A1*2
C1:=A1+B1*(2-0.5)
D1:total
"""


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``gridcalc.yaml``, with defaults.

    Args:
        project_dir: Root of the gridcalc project.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: The config file is not valid YAML, or not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"{config_path} is not valid YAML: {exc}") from exc
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)
    return config


def sheet_path(project_dir: Path, config: dict[str, Any] | None = None) -> Path:
    """Resolve the configured sheet file relative to *project_dir*."""
    cfg = config if config is not None else load_project_config(project_dir)
    path = Path(str(cfg.get("sheet_file") or DEFAULT_CONFIG["sheet_file"]))
    if not path.is_absolute():
        path = Path(project_dir) / path
    return path


def scaffold_project(target_dir: Path) -> Path:
    """Create a new project with a config file and a demo sheet.

    Args:
        target_dir: Directory to create (must not already contain gridcalc.yaml).

    Returns:
        The project directory.
    """
    target_dir = Path(target_dir)
    if (target_dir / CONFIG_FILENAME).exists():
        raise FileExistsError(f"{CONFIG_FILENAME} already exists in {target_dir}")
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / CONFIG_FILENAME).write_text(DEMO_CONFIG)
    sheet_file = target_dir / DEFAULT_CONFIG["sheet_file"]
    if not sheet_file.exists():
        sheet_file.write_text(DEMO_SHEET, encoding="utf-8")
    (target_dir / "logs").mkdir(exist_ok=True)
    return target_dir
