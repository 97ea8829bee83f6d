# itinerary_workflow/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
from pathlib import Path

import yaml
from platformdirs import user_config_path

from .schema import WorkflowConfig

logger = logging.getLogger(__name__)


def get_config_path() -> Path:
    """Get path to config file, ensuring config directory exists."""
    config_dir = user_config_path("itinerary-workflow", ensure_exists=True)
    return config_dir / "config.yaml"


def load_config(path: Path | str | None = None) -> WorkflowConfig:
    """
    Load configuration from YAML file.

    With no explicit path, reads the user config file and creates it with
    defaults if it doesn't exist. An explicit path must exist.

    Args:
        path: Optional config file path

    Returns:
        Validated WorkflowConfig

    Raises:
        FileNotFoundError: If an explicit path does not exist
    """
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = get_config_path()

        if not config_path.exists():
            default_config = WorkflowConfig()
            config_dict = default_config.model_dump(mode="json")

            with config_path.open("w") as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

            logger.info(f"Created default config at {config_path}")
            return default_config

    with config_path.open("r") as f:
        config_data = yaml.safe_load(f) or {}

    config = WorkflowConfig(**config_data)
    logger.info(f"Loaded config from {config_path}")
    return config
