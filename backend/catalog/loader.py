# catalog/loader.py
"""
Catalog configuration sources.

The catalog is configured either from a YAML file (BEBOP_CONFIG_PATH) or,
when no file is configured, from the BEBOP_EVENT_CONFIG setting. File
parsing lives here so catalog.registry.load() stays a pure function of a
mapping.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from django.conf import settings

from catalog.registry import Catalog, load
from events.errors import ConfigurationError


logger = logging.getLogger(__name__)


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a catalog configuration file.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or does not
            contain a mapping at the top level
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data


def get_configured_source() -> Dict[str, Any]:
    """Return the raw configuration mapping selected by settings."""
    path = getattr(settings, "BEBOP_CONFIG_PATH", "")
    if path:
        logger.info(f"Loading catalog from {path}")
        return load_config_file(path)
    return dict(getattr(settings, "BEBOP_EVENT_CONFIG", None) or {})


def load_catalog_from_settings(path: Optional[Union[str, Path]] = None) -> Catalog:
    """Build a catalog from an explicit file, or from settings."""
    if path:
        return load(load_config_file(path))
    return load(get_configured_source())
