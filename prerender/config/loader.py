"""
Pipeline Configuration Loader
=============================

Assemble the immutable pipeline configuration from two YAML sources: the
pipeline settings file (locales, themes, timeouts, browser options) and the
route list shared with the application.
"""

from typing import Any, Dict
from pathlib import Path

import yaml
from pydantic import ValidationError

from prerender.config.logging import get_logger
from prerender.models.schemas import PipelineConfig

logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Exception raised when pipeline configuration is missing or malformed."""

    pass


def _read_yaml_mapping(path: Path) -> Dict[str, Any]:
    """Read a YAML file that must contain a top-level mapping."""
    if not path.exists():
        raise ConfigurationError(f"File not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}")

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Top-level YAML structure in {path} must be a mapping")
    return loaded


def load_pipeline_config(config_path: Path, routes_path: Path) -> PipelineConfig:
    """
    Load and merge pipeline settings with the route list.

    Args:
        config_path: YAML file with pipeline settings
        routes_path: YAML file with a top-level ``routes`` list

    Returns:
        Validated, immutable PipelineConfig

    Raises:
        ConfigurationError: If either file is missing, unparsable, or the
            merged data does not validate
    """
    raw = _read_yaml_mapping(config_path)
    routes_data = _read_yaml_mapping(routes_path)

    routes = routes_data.get("routes")
    if not isinstance(routes, list) or not routes:
        raise ConfigurationError(f"No routes defined in {routes_path}")

    merged = {**raw, "routes": routes}

    try:
        config = PipelineConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline configuration: {e}")

    logger.info(
        "Pipeline configuration loaded",
        routes=len(config.routes),
        locales=list(config.locales),
        themes=list(config.themes),
        concurrency=config.concurrency,
    )
    return config
