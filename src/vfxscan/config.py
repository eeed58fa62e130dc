"""
Runtime configuration.

Values come from, in increasing priority: built-in defaults, a
``vfxscan.toml`` file, and the ``VFXSCAN_DB`` / ``VFXSCAN_LOG_LEVEL``
environment variables. Command line flags are applied on top by the CLI.

Example ``vfxscan.toml``::

    database_path = "//studio/share/DB/vfx_launcher.db"
    debounce_seconds = 2.0
    log_level = "INFO"
    log_file = "logs/vfxscan.log"
"""

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "vfxscan.toml"

ENV_DATABASE = "VFXSCAN_DB"
ENV_LOG_LEVEL = "VFXSCAN_LOG_LEVEL"


@dataclass
class Config:
    database_path: str = "vfx_launcher.db"
    debounce_seconds: float = 2.0
    log_level: str = "INFO"
    log_file: Optional[str] = None


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """
    Load configuration from ``path`` (or ``./vfxscan.toml`` if present).

    A missing default file is not an error. An explicit path that does not
    exist, or a file that does not parse, raises.
    """
    config = Config()

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if config_path.is_file():
        with config_path.open("rb") as f:
            data = tomllib.load(f)

        known = {f.name for f in fields(Config)}
        for key, value in data.items():
            if key in known:
                setattr(config, key, value)
            else:
                logger.warning("Unknown config key %r in %s", key, config_path)

        logger.info("Configuration loaded from %s", config_path)

    if os.environ.get(ENV_DATABASE):
        config.database_path = os.environ[ENV_DATABASE]
    if os.environ.get(ENV_LOG_LEVEL):
        config.log_level = os.environ[ENV_LOG_LEVEL]

    config.debounce_seconds = float(config.debounce_seconds)
    return config
