"""Data models for dependencies, risk flags and vulnerability records."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


class Technology(Enum):
    """Enum for supported technologies (package ecosystems)."""
    NODE = "node"
    RUBY = "ruby"


class Group(Enum):
    """Declaration context of a dependency."""
    DEFAULT = "default"
    DEVELOPMENT = "development"


class TriState(Enum):
    """Per-kind filter state."""
    UNSET = "unset"
    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class RiskFlags:
    """Risk flags computed once by the classifier."""
    deprecated: bool = False
    outdated: bool = False
    vulnerable: bool = False

    def any(self) -> bool:
        return self.deprecated or self.outdated or self.vulnerable

    def union(self, other: "RiskFlags") -> "RiskFlags":
        return RiskFlags(
            deprecated=self.deprecated or other.deprecated,
            outdated=self.outdated or other.outdated,
            vulnerable=self.vulnerable or other.vulnerable,
        )

    def kinds(self) -> List[str]:
        """Names of the raised flags, in a stable order."""
        return [k for k in ("deprecated", "outdated", "vulnerable") if getattr(self, k)]


@dataclass(frozen=True)
class VulnerabilityRecord:
    """A single advisory affecting a package version."""
    id: str
    summary: str = ""
    severity: str = "UNKNOWN"
    url: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "summary": self.summary, "severity": self.severity, "url": self.url}


@dataclass
class PackageMetadata:
    """Registry metadata for one package, already reduced to what the audit needs."""
    latest_version: str
    version_date: Optional[str]
    latest_version_date: Optional[str]
    deprecated: bool = False


@dataclass
class Dependency:
    """A resolved dependency flowing through the audit pipeline.

    ``resolved_version`` is always a concrete version; ``technology`` never
    changes after creation; ``groups`` only grows.
    """
    name: str
    resolved_version: str
    technology: Technology
    declared_range: str = ""
    groups: Set[Group] = field(default_factory=set)
    version_date: Optional[str] = None
    latest_version: Optional[str] = None
    latest_version_date: Optional[str] = None
    registry_deprecated: bool = False
    flags: RiskFlags = field(default_factory=RiskFlags)
    vulnerabilities: List[VulnerabilityRecord] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, Technology]:
        return (self.name, self.technology)

    @property
    def deprecated(self) -> bool:
        return self.flags.deprecated

    @property
    def outdated(self) -> bool:
        return self.flags.outdated

    @property
    def vulnerable(self) -> bool:
        return self.flags.vulnerable

    def has_risk(self) -> bool:
        return self.flags.any()

    def has_metadata(self) -> bool:
        return bool(self.latest_version)

    def apply_metadata(self, meta: PackageMetadata) -> None:
        self.latest_version = meta.latest_version
        self.version_date = meta.version_date
        self.latest_version_date = meta.latest_version_date
        self.registry_deprecated = meta.deprecated

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view used by the JSON export."""
        return {
            "name": self.name,
            "technology": self.technology.value,
            "version": self.resolved_version,
            "declared_range": self.declared_range,
            "groups": sorted(g.value for g in self.groups),
            "version_date": self.version_date,
            "latest_version": self.latest_version,
            "latest_version_date": self.latest_version_date,
            "flags": self.flags.kinds(),
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
        }


# Type alias for stable map key for lookups.
PackageKey = Tuple[str, Technology]
