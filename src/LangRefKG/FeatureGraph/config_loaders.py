# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.config_loaders",
#   "purpose": "Utility loaders that hydrate feature graph settings from JSON, YAML, and TOML sources.",
#   "sections": [
#     {
#       "id": "configloaderror",
#       "name": "ConfigLoadError",
#       "anchor": "class-configloaderror",
#       "kind": "class"
#     },
#     {
#       "id": "load-yaml-mapping",
#       "name": "load_yaml_mapping",
#       "anchor": "function-load-yaml-mapping",
#       "kind": "function"
#     },
#     {
#       "id": "load-toml-mapping",
#       "name": "load_toml_mapping",
#       "anchor": "function-load-toml-mapping",
#       "kind": "function"
#     },
#     {
#       "id": "load-config-mapping",
#       "name": "load_config_mapping",
#       "anchor": "function-load-config-mapping",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Utility loaders that hydrate feature graph settings from JSON, YAML, and TOML.

Operators tune link-classification patterns, compiler commands, and pool sizes
through a single settings file passed with ``--config``. This module
centralises the deserialisation logic for those documents, wrapping third-party
parsers with helpful error messages, and returns plain mappings so the
settings layer can validate them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

__all__ = [
    "ConfigLoadError",
    "load_config_mapping",
    "load_toml_mapping",
    "load_yaml_mapping",
]


@dataclass(slots=True)
class ConfigLoadError(RuntimeError):
    """Raised when configuration documents cannot be deserialized."""

    message: str

    def __str__(self) -> str:  # pragma: no cover - dataclass convenience
        """Return the stored error message for human-facing output."""

        return self.message


def load_yaml_mapping(raw: str) -> Any:
    """Deserialize a settings document expressed as YAML."""

    import yaml

    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Failed to parse YAML configuration payload: {exc}") from exc


def load_toml_mapping(raw: str) -> Any:
    """Deserialize a settings document expressed as TOML."""

    import tomllib

    try:
        return tomllib.loads(raw)
    except (tomllib.TOMLDecodeError, ValueError, TypeError) as exc:
        raise ConfigLoadError(f"Failed to parse TOML configuration payload: {exc}") from exc


def load_config_mapping(path: Path) -> Dict[str, Any]:
    """Load a configuration mapping from JSON, YAML, or TOML based on the suffix."""

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Cannot read configuration file {path}: {exc}") from exc
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = load_yaml_mapping(raw)
    elif suffix == ".toml":
        data = load_toml_mapping(raw)
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigLoadError(f"Failed to parse JSON configuration payload: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Configuration file {path} must contain an object; received {type(data).__name__}."
        )
    section = data.get("featuregraph")
    if isinstance(section, dict):
        return section
    return data
