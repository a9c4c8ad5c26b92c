"""
Logging Configuration

Loads a YAML dictConfig (with ``${VAR}`` substitution) for the harness loggers.
"""

import logging
import logging.config
import os
import string
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "harness_log.yaml"


def setup_logging(config_path: str | None = None, *, verbose: bool = False) -> None:
    """
    Load the YAML config, substitute environment variables, and initialize logging.
    """
    path = config_path or os.getenv("BFF_E2E_LOG_CONFIG", str(DEFAULT_CONFIG_PATH))
    mapping = os.environ.copy()
    if verbose:
        mapping["LOG_LEVEL"] = "DEBUG"
    mapping.setdefault("LOG_LEVEL", "INFO")

    if not os.path.exists(path):
        logging.basicConfig(level=mapping["LOG_LEVEL"])
        return

    with open(path, "r", encoding="utf-8") as f:
        template = string.Template(f.read())
    content = template.safe_substitute(mapping)
    config = yaml.safe_load(content)
    logging.config.dictConfig(config)
