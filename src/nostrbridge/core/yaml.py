"""YAML configuration loading.

Safe loading via ``yaml.safe_load`` so that a configuration file can
never instantiate arbitrary Python objects. Used by
[BaseService.from_yaml()][nostrbridge.core.base_service.BaseService.from_yaml]
and by the CLI to read the bridge configuration.

Examples:
    ```python
    from nostrbridge.core.yaml import load_yaml

    config = load_yaml("config/bridge.yaml")
    ```

See Also:
    [BridgeConfig][nostrbridge.services.bridge.configs.BridgeConfig]:
        Pydantic model constructed from the returned dictionary.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a dictionary. An existing but empty file
        yields an empty dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file contains invalid YAML syntax.
        ConfigurationError: If the document is not a mapping at the top level.

    Warning:
        The structure of the returned dictionary is not validated here.
        Pass it to the service's Pydantic config model for that.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping, got {type(data).__name__}: {config_path}"
        )
    return data
