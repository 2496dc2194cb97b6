# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.versions",
#   "purpose": "Language families, ordered standard versions, and code-fence dialect tags.",
#   "sections": [
#     {"id": "family", "name": "Family", "anchor": "class-family", "kind": "class"},
#     {"id": "version", "name": "Version", "anchor": "class-version", "kind": "class"},
#     {"id": "parse-version", "name": "parse_version", "anchor": "function-parse-version", "kind": "function"},
#     {"id": "normalize-dialect", "name": "normalize_dialect", "anchor": "function-normalize-dialect", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Language families, ordered standard versions, and code-fence dialect tags.

Each family owns one totally ordered sequence of published standards. Versions
only support comparison; the sequences are fixed enumerations so persisted
graphs carry canonical labels (``C++17``) rather than free-form strings.
Dialects are the lowercase tags attached to fenced code examples (``cpp17``)
and select the syntax-check backend for an example.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Dict, FrozenSet, Optional, Tuple

from .errors import VersionParseError

__all__ = [
    "Family",
    "Version",
    "FAMILY_VERSIONS",
    "KNOWN_DIALECTS",
    "default_dialect",
    "dialect_family",
    "dialect_version",
    "is_known_dialect",
    "normalize_dialect",
    "parse_family",
    "parse_version",
]


class Family(str, Enum):
    """Language lineage whose standards form one ordered sequence."""

    C = "c"
    CPP = "cpp"

    @property
    def label(self) -> str:
        """Return the human-facing family prefix used in version labels."""

        return "C++" if self is Family.CPP else "C"


@total_ordering
@dataclass(frozen=True)
class Version:
    """One published standard of a language family."""

    family: Family
    label: str
    ordinal: int

    def _check_family(self, other: "Version") -> None:
        if other.family is not self.family:
            raise TypeError(
                f"Cannot compare {self.label} with {other.label}: different language families"
            )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        self._check_family(other)
        return self.ordinal < other.ordinal

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.family is other.family and self.ordinal == other.ordinal

    def __hash__(self) -> int:
        return hash((self.family, self.ordinal))

    def __str__(self) -> str:
        return self.label

    @property
    def short(self) -> str:
        """Return the two-digit year suffix (``"17"`` for ``C++17``)."""

        return self.label[len(self.family.label) :]


def _build_sequence(family: Family, years: Tuple[str, ...]) -> Tuple[Version, ...]:
    return tuple(
        Version(family=family, label=f"{family.label}{year}", ordinal=index)
        for index, year in enumerate(years)
    )


FAMILY_VERSIONS: Dict[Family, Tuple[Version, ...]] = {
    Family.C: _build_sequence(Family.C, ("89", "99", "11", "17", "23")),
    Family.CPP: _build_sequence(Family.CPP, ("98", "11", "14", "17", "20", "23", "26")),
}

_BY_LABEL: Dict[str, Version] = {
    version.label.lower(): version
    for sequence in FAMILY_VERSIONS.values()
    for version in sequence
}

_FAMILY_ALIASES: Dict[str, Family] = {
    "c": Family.C,
    "cpp": Family.CPP,
    "c++": Family.CPP,
    "cxx": Family.CPP,
}

_VERSION_TEXT = re.compile(r"^\s*(?P<family>c\+\+|cpp|cxx|c)?\s*(?P<year>\d{2})\s*$", re.IGNORECASE)


def parse_family(value: str | Family) -> Family:
    """Return the :class:`Family` named by ``value`` (``c``, ``cpp``, ``C++``...)."""

    if isinstance(value, Family):
        return value
    family = _FAMILY_ALIASES.get(str(value).strip().lower())
    if family is None:
        raise VersionParseError(f"Unknown language family {value!r}; expected one of c, cpp")
    return family


def parse_version(value: str | Version, family: Optional[Family | str] = None) -> Version:
    """Parse ``value`` into a known :class:`Version`.

    Accepts canonical labels (``C++17``), lowercase and ``cpp``/``cxx``
    spellings (``cpp17``), and bare years (``17``) when ``family`` is given.

    Raises:
        VersionParseError: If the text names no version of the requested family.
    """

    if isinstance(value, Version):
        if family is not None and value.family is not parse_family(family):
            raise VersionParseError(f"{value.label} does not belong to family {family!r}")
        return value
    expected = parse_family(family) if family is not None else None
    match = _VERSION_TEXT.match(str(value))
    if match is None:
        raise VersionParseError(f"Unrecognised version {value!r}")
    prefix = match.group("family")
    if prefix:
        named = _FAMILY_ALIASES[prefix.lower()]
        if expected is not None and named is not expected:
            raise VersionParseError(f"{value!r} does not belong to family {expected.value!r}")
    elif expected is not None:
        named = expected
    else:
        raise VersionParseError(f"Version {value!r} needs a family prefix (C or C++)")
    version = _BY_LABEL.get(f"{named.label}{match.group('year')}".lower())
    if version is None:
        known = ", ".join(v.label for v in FAMILY_VERSIONS[named])
        raise VersionParseError(f"Unknown {named.label} version {value!r}; known: {known}")
    return version


# ---------------------------------------------------------------------------
# Dialects
# ---------------------------------------------------------------------------

_DIALECT_PREFIXES: Dict[str, str] = {
    "c++": "cpp",
    "cxx": "cpp",
    "gnu++": "cpp",
    "gnu": "c",
}

KNOWN_DIALECTS: Dict[Family, FrozenSet[str]] = {
    family: frozenset({family.value} | {f"{family.value}{v.short}" for v in sequence})
    for family, sequence in FAMILY_VERSIONS.items()
}


def normalize_dialect(info: str) -> str:
    """Normalise a code-fence info word into a dialect tag.

    ``C++17`` → ``cpp17``, ``cxx`` → ``cpp``, ``-std=gnu99`` → ``c99``.
    Anything else is returned lowercased so unknown tags survive for reporting.
    """

    text = info.strip().lower()
    if text.startswith("-std="):
        text = text[len("-std=") :]
    elif text.startswith("std="):
        text = text[len("std=") :]
    for prefix, replacement in sorted(_DIALECT_PREFIXES.items(), key=lambda item: -len(item[0])):
        if text.startswith(prefix):
            rest = text[len(prefix) :]
            if rest == "" or rest.isdigit():
                return f"{replacement}{rest}"
    return text


def is_known_dialect(dialect: str, family: Family) -> bool:
    """Return ``True`` when ``dialect`` is a valid tag for ``family``."""

    return dialect in KNOWN_DIALECTS[family]


def dialect_family(dialect: str) -> Optional[Family]:
    """Return the family a dialect belongs to, or ``None`` for unknown tags."""

    for family, dialects in KNOWN_DIALECTS.items():
        if dialect in dialects:
            return family
    return None


def dialect_version(dialect: str) -> Optional[Version]:
    """Return the standard pinned by ``dialect`` (``None`` for generic ``c``/``cpp``)."""

    family = dialect_family(dialect)
    if family is None or dialect == family.value:
        return None
    return parse_version(dialect[len(family.value) :], family)


def default_dialect(version: Version) -> str:
    """Return the dialect used for untagged examples of a record at ``version``."""

    return f"{version.family.value}{version.short}"
