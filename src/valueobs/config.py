"""
Engine configuration, loaded from YAML.

Example valueobs.yaml:

    record_directive: observable_value
    observing_marker: Observing
    ignoring_marker: Ignoring
    runtime_module: valueobs.runtime
    capabilities:
      Decimal: {equatable: true}
      Node: {identity: true}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import yaml

from valueobs.capabilities import CapabilityResolver
from valueobs.model import TypeCapabilities


class ConfigError(ValueError):
    """Raised when a configuration file is malformed."""
    pass


_CAPABILITY_KEYS = {"observable", "equatable", "identity"}


@dataclass
class EngineConfig:
    """
    Names and tables the frontend, engine and backend agree on.

    Properties:
        record_directive: Class decorator selecting the record transformation
        observing_marker: Annotation wrapper for explicit observation
        ignoring_marker: Annotation wrapper excluding a member
        runtime_module: Module generated code imports support from
        capabilities: Extra capability entries keyed by type name
    """

    record_directive: str = "observable_value"
    observing_marker: str = "Observing"
    ignoring_marker: str = "Ignoring"
    runtime_module: str = "valueobs.runtime"
    capabilities: Dict[str, TypeCapabilities] = field(default_factory=dict)

    def resolver(self, observable_types: Iterable[str] = ()) -> CapabilityResolver:
        return CapabilityResolver(
            observable_types=observable_types,
            overrides=self.capabilities,
        )


def _capabilities_from_dict(name: str, d: Any) -> TypeCapabilities:
    if not isinstance(d, dict):
        raise ConfigError(f"Capabilities for '{name}' must be a mapping, got {type(d).__name__}")
    unknown = set(d) - _CAPABILITY_KEYS
    if unknown:
        raise ConfigError(f"Unknown capability keys for '{name}': {sorted(unknown)}")
    return TypeCapabilities(
        observable=bool(d.get("observable", False)),
        equatable=bool(d.get("equatable", False)),
        identity=bool(d.get("identity", False)),
    )


def config_from_dict(d: Dict[str, Any]) -> EngineConfig:
    known = {"record_directive", "observing_marker", "ignoring_marker", "runtime_module", "capabilities"}
    unknown = set(d) - known
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    config = EngineConfig()
    for key in ("record_directive", "observing_marker", "ignoring_marker", "runtime_module"):
        if key in d:
            value = d[key]
            if not isinstance(value, str) or not value:
                raise ConfigError(f"'{key}' must be a non-empty string")
            setattr(config, key, value)

    capabilities = d.get("capabilities") or {}
    if not isinstance(capabilities, dict):
        raise ConfigError("'capabilities' must be a mapping of type name to flags")
    config.capabilities = {
        str(name): _capabilities_from_dict(str(name), flags)
        for name, flags in capabilities.items()
    }
    return config


def config_from_yaml(s: str) -> EngineConfig:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}")
    if d is None:
        return EngineConfig()
    if not isinstance(d, dict):
        raise ConfigError("Configuration must be a mapping")
    return config_from_dict(d)


def load_config(path: Union[str, Path, None] = None) -> EngineConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the file. None returns the defaults.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If the file is malformed
    """
    if path is None:
        return EngineConfig()
    try:
        content = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Config file not found: {path}")
    return config_from_yaml(content)
