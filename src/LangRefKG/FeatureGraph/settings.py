# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.settings",
#   "purpose": "Pydantic Settings for feature graph extraction, validation, and logging.",
#   "sections": [
#     {"id": "loglevel", "name": "LogLevel", "anchor": "class-loglevel", "kind": "class"},
#     {"id": "logformat", "name": "LogFormat", "anchor": "class-logformat", "kind": "class"},
#     {"id": "extractionpolicy", "name": "ExtractionPolicy", "anchor": "class-extractionpolicy", "kind": "class"},
#     {"id": "featuregraphsettings", "name": "FeatureGraphSettings", "anchor": "class-featuregraphsettings", "kind": "class"},
#     {"id": "build-settings", "name": "build_settings", "anchor": "function-build-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""
Pydantic v2 Settings for feature graph configuration management.

Settings use a consistent ENV prefix (``LANGREFKG_``) and field validators.
:func:`build_settings` layers the sources with the precedence
CLI > ENV > config file > defaults, mirroring how every command of the CLI
resolves its options.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, Mapping, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .config_loaders import ConfigLoadError, load_config_mapping

__all__ = [
    "LogLevel",
    "LogFormat",
    "ExtractionPolicy",
    "FeatureGraphSettings",
    "DEFAULT_REQUIRES_PATTERN",
    "DEFAULT_SUPERSEDES_PATTERN",
    "build_settings",
]

DEFAULT_REQUIRES_PATTERN = r"\b(?:requires?|depends\s+on|needs)\b"
DEFAULT_SUPERSEDES_PATTERN = r"\b(?:supersedes|replaces|obsoletes)\b"


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Supported log output formats."""

    CONSOLE = "console"
    JSON = "json"


class ExtractionPolicy(str, Enum):
    """Execution policy for per-document extraction."""

    IO = "io"
    CPU = "cpu"


def _split_str_tuple(value: Any) -> Any:
    """Accept comma/semicolon separated strings for tuple-valued settings."""

    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return ()
        for separator in (",", ";"):
            if separator in text:
                return tuple(part.strip() for part in text.split(separator) if part.strip())
        return (text,)
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    return value


class FeatureGraphSettings(BaseSettings):
    """Configuration shared by every feature graph command."""

    model_config = SettingsConfigDict(
        env_prefix="LANGREFKG_",
        case_sensitive=False,
        extra="forbid",
    )

    log_level: LogLevel = Field(LogLevel.INFO, description="Root logging level")
    log_format: LogFormat = Field(LogFormat.CONSOLE, description="Console text or structured JSON")
    workers: int = Field(4, ge=1, description="Parallel extraction tasks")
    policy: ExtractionPolicy = Field(
        ExtractionPolicy.IO, description="Extraction pool type (io=threads, cpu=processes)"
    )
    include: Annotated[tuple[str, ...], NoDecode] = Field(
        ("**/*.md", "**/*.markdown"), description="Glob patterns selecting documents"
    )
    ignore: Annotated[tuple[str, ...], NoDecode] = Field(
        (), description="Glob patterns excluded from discovery"
    )
    requires_pattern: str = Field(
        DEFAULT_REQUIRES_PATTERN,
        description="Case-insensitive regex marking a link as a REQUIRES edge",
    )
    supersedes_pattern: str = Field(
        DEFAULT_SUPERSEDES_PATTERN,
        description="Case-insensitive regex marking a link as a SUPERSEDES edge",
    )
    non_code_languages: Annotated[tuple[str, ...], NoDecode] = Field(
        ("text", "txt", "console", "output", "shell", "sh", "bash", "plaintext"),
        description="Fence info strings that are not code examples",
    )
    example_timeout_s: float = Field(10.0, gt=0, description="Per-example syntax check timeout")
    example_workers: int = Field(2, ge=1, description="Syntax-check workers per dialect")
    c_compiler: str = Field("cc", min_length=1, description="C compiler used for syntax checks")
    cxx_compiler: str = Field("c++", min_length=1, description="C++ compiler used for syntax checks")
    compiler_flags: Annotated[tuple[str, ...], NoDecode] = Field(
        (), description="Extra flags passed to every syntax check"
    )

    @field_validator("include", "ignore", "non_code_languages", "compiler_flags", mode="before")
    @classmethod
    def _normalise_tuples(cls, value: Any) -> Any:
        return _split_str_tuple(value)

    @field_validator("non_code_languages")
    @classmethod
    def _lowercase_languages(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.lower() for item in value)

    @field_validator("requires_pattern", "supersedes_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        return value


def build_settings(
    config_file: Optional[Path] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> FeatureGraphSettings:
    """Return settings layered as CLI > ENV > ``config_file`` > defaults.

    ``None`` values in ``cli_overrides`` mean "not given on the command line".

    Raises:
        ConfigLoadError: If the config file cannot be parsed or names unknown keys.
        pydantic.ValidationError: If a layered value fails validation.
    """

    layered: Dict[str, Any] = {}
    if config_file is not None:
        file_values = load_config_mapping(config_file)
        unknown = sorted(key for key in file_values if key not in FeatureGraphSettings.model_fields)
        if unknown:
            raise ConfigLoadError(
                f"Unknown configuration fields in {config_file}: {', '.join(unknown)}"
            )
        layered.update(file_values)

    env_layer = FeatureGraphSettings()
    layered.update(env_layer.model_dump(include=env_layer.model_fields_set))

    for key, value in (cli_overrides or {}).items():
        if value is not None:
            layered[key] = value
    return FeatureGraphSettings(**layered)
