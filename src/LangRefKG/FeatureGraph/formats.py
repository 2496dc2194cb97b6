# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.formats",
#   "purpose": "Pydantic data contracts for feature records, edges, and the persisted graph schema.",
#   "sections": [
#     {"id": "sourcelocation", "name": "SourceLocation", "anchor": "class-sourcelocation", "kind": "class"},
#     {"id": "codeexample", "name": "CodeExample", "anchor": "class-codeexample", "kind": "class"},
#     {"id": "featurerecord", "name": "FeatureRecord", "anchor": "class-featurerecord", "kind": "class"},
#     {"id": "edgetype", "name": "EdgeType", "anchor": "class-edgetype", "kind": "class"},
#     {"id": "edge", "name": "Edge", "anchor": "class-edge", "kind": "class"},
#     {"id": "linkreference", "name": "LinkReference", "anchor": "class-linkreference", "kind": "class"},
#     {"id": "graphdocument", "name": "GraphDocument", "anchor": "class-graphdocument", "kind": "class"},
#     {"id": "validate-schema-version", "name": "validate_schema_version", "anchor": "function-validate-schema-version", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""
Feature Graph Formats

This module defines the Pydantic models that make up the feature graph's data
contract: feature records with their code examples, typed edges, unresolved
link references produced by extraction, and the versioned JSON document used to
persist a frozen graph.

Key Features:
- Immutable models (``frozen=True``) so a built graph cannot be edited in place
- camelCase JSON keys (``introducedVersion``) with snake_case Python attributes
- Version fields normalised to canonical labels from the fixed enumerations
- ``schemaVersion`` checks for forward-compatible loading

Usage:
    from LangRefKG.FeatureGraph import formats

    document = formats.GraphDocument.model_validate(payload)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import GraphFormatError, VersionParseError
from .versions import Family, Version, parse_version

__all__ = [
    "SCHEMA_VERSION",
    "COMPATIBLE_SCHEMA_VERSIONS",
    "SourceLocation",
    "CodeExample",
    "FeatureRecord",
    "EdgeType",
    "Edge",
    "LinkReference",
    "GraphDocument",
    "validate_schema_version",
]

SCHEMA_VERSION = 1
COMPATIBLE_SCHEMA_VERSIONS: FrozenSet[int] = frozenset({1})


class _FrozenModel(BaseModel):
    """Shared configuration for immutable, camelCase-serialised models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )


class SourceLocation(_FrozenModel):
    """File and 1-based inclusive line range a model was extracted from."""

    path: str = Field(..., min_length=1, description="POSIX path relative to the input root")
    line_start: int = Field(..., ge=1, description="First line (1-based)")
    line_end: int = Field(..., ge=1, description="Last line (inclusive)")

    @model_validator(mode="after")
    def _check_range(self) -> "SourceLocation":
        if self.line_end < self.line_start:
            raise ValueError(
                f"line_end ({self.line_end}) precedes line_start ({self.line_start})"
            )
        return self

    def __str__(self) -> str:
        if self.line_start == self.line_end:
            return f"{self.path}:{self.line_start}"
        return f"{self.path}:{self.line_start}-{self.line_end}"


class CodeExample(_FrozenModel):
    """A fenced code block attached to a feature record."""

    dialect: str = Field(..., min_length=1, description="Dialect tag such as 'c99' or 'cpp20'")
    source: str = Field(..., description="Raw example source text")
    source_location: SourceLocation


class FeatureRecord(_FrozenModel):
    """One documented language feature."""

    id: str = Field(..., min_length=1, description="Stable corpus-wide identifier")
    name: str = Field(..., min_length=1, description="Heading text without the version tag")
    anchor: str = Field(..., min_length=1, description="Heading slug the record is linked by")
    language_family: Family
    introduced_version: str
    deprecated_version: Optional[str] = None
    description: str = ""
    examples: Tuple[CodeExample, ...] = ()
    source_location: SourceLocation

    @field_validator("introduced_version", "deprecated_version", mode="before")
    @classmethod
    def _normalise_version(cls, value: Any, info: ValidationInfo) -> Any:
        """Map any accepted spelling onto the family's canonical label."""

        if value is None:
            return None
        family = info.data.get("language_family")
        if family is None:
            # language_family failed validation; let that error surface.
            return str(value)
        try:
            return parse_version(value, family).label
        except VersionParseError as exc:
            raise ValueError(str(exc)) from exc

    @model_validator(mode="after")
    def _check_lifecycle(self) -> "FeatureRecord":
        if self.deprecated_version is not None and self.deprecated is not None:
            if self.deprecated <= self.introduced:
                raise ValueError(
                    f"{self.id}: deprecated version {self.deprecated_version} must follow "
                    f"introduced version {self.introduced_version}"
                )
        return self

    @property
    def introduced(self) -> Version:
        return parse_version(self.introduced_version, self.language_family)

    @property
    def deprecated(self) -> Optional[Version]:
        if self.deprecated_version is None:
            return None
        return parse_version(self.deprecated_version, self.language_family)

    def available_at(self, version: Version) -> bool:
        """Return ``True`` when the feature exists and is not deprecated at ``version``."""

        if version.family is not self.language_family:
            return False
        if self.introduced > version:
            return False
        deprecated = self.deprecated
        return deprecated is None or deprecated > version


class EdgeType(str, Enum):
    """Relation kinds between feature records."""

    RELATES_TO = "RELATES_TO"
    REQUIRES = "REQUIRES"
    SUPERSEDES = "SUPERSEDES"


class Edge(_FrozenModel):
    """Directed, typed relation between two feature ids."""

    type: EdgeType
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)

    @property
    def sort_key(self) -> Tuple[str, str, str]:
        return (self.source, self.type.value, self.target)


class LinkReference(_FrozenModel):
    """An inline link found by extraction, not yet resolved to a feature id."""

    from_id: str
    target_path: str
    target_anchor: str = ""
    edge_type_hint: EdgeType = EdgeType.RELATES_TO
    source_location: SourceLocation

    @property
    def key(self) -> Tuple[str, str]:
        return (self.target_path, self.target_anchor)


class GraphDocument(BaseModel):
    """Persisted JSON form of a frozen graph."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    schema_version: int = Field(SCHEMA_VERSION, description="Persisted graph schema version")
    generation: Optional[str] = Field(None, description="Content hash of the graph build")
    nodes: List[FeatureRecord] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)


def validate_schema_version(value: Any) -> int:
    """Return ``value`` when it names a readable schema version.

    Raises:
        GraphFormatError: When the version is missing, not an integer, or newer
            than this release understands.
    """

    if value is None:
        raise GraphFormatError("graph file has no schemaVersion field")
    if isinstance(value, bool) or not isinstance(value, int):
        raise GraphFormatError(f"schemaVersion must be an integer, got {value!r}")
    if value not in COMPATIBLE_SCHEMA_VERSIONS:
        supported = ", ".join(str(v) for v in sorted(COMPATIBLE_SCHEMA_VERSIONS))
        raise GraphFormatError(
            f"unsupported graph schemaVersion {value}; this release reads {supported}"
        )
    return value
