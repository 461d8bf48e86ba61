from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Severity(str, Enum):
    """Normalised advisory severity buckets."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, severity: Optional[str]) -> "Severity":
        """Classify a free-form severity string by case-insensitive substring match."""
        value = (severity or "").upper()
        if "CRITICAL" in value:
            return cls.CRITICAL
        if "HIGH" in value:
            return cls.HIGH
        if "MEDIUM" in value or "MODERATE" in value:
            return cls.MEDIUM
        if "LOW" in value:
            return cls.LOW
        return cls.UNKNOWN


class RiskLevel(str, Enum):
    """Typosquat risk buckets."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FixStatus(str, Enum):
    """Terminal states of a remediation run."""
    NO_FIXES_NEEDED = "no_fixes_needed"
    DRY_RUN = "dry_run"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Dependency:
    """A resolved gem from a lock file.

    Equality and hashing use ``(name, version, source)``; the list of direct
    dependency names is informational only.
    """
    name: str
    version: str
    source: str
    dependency_names: tuple = field(default=(), compare=False)


@dataclass(frozen=True)
class VulnerabilityRecord:
    """A published advisory against a single gem."""
    id: str
    package_name: str
    severity: str = ""
    summary: str = ""
    details: str = ""
    affected_versions: tuple = ()
    fixed_versions: tuple = ()
    aliases: tuple = ()
    references: tuple = ()

    @property
    def severity_level(self) -> Severity:
        return Severity.classify(self.severity)

    @property
    def latest_fix(self) -> Optional[str]:
        return self.fixed_versions[-1] if self.fixed_versions else None


@dataclass(frozen=True)
class VulnerableDependency:
    dependency: Dependency
    vulnerability: VulnerabilityRecord
    recommended_fix: str


@dataclass
class Analysis:
    """Aggregate result of correlating dependencies with advisories."""
    vulnerable_dependencies: List[VulnerableDependency] = field(default_factory=list)

    @property
    def has_vulnerabilities(self) -> bool:
        return bool(self.vulnerable_dependencies)

    @property
    def vulnerability_count(self) -> int:
        return len(self.vulnerable_dependencies)

    @property
    def high_severity_count(self) -> int:
        return sum(
            1 for vd in self.vulnerable_dependencies
            if vd.vulnerability.severity_level in (Severity.HIGH, Severity.CRITICAL)
        )


@dataclass(frozen=True)
class FixPlanEntry:
    gem_name: str
    current_version: str
    target_version: str
    vulnerability_id: str
    severity: str

    def to_dict(self) -> dict:
        return {
            "gem_name": self.gem_name,
            "current_version": self.current_version,
            "target_version": self.target_version,
            "vulnerability_id": self.vulnerability_id,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class FixOutcome:
    """Result of attempting a single upgrade."""
    entry: FixPlanEntry
    success: bool


@dataclass
class FixResult:
    status: FixStatus
    fixes: List[FixPlanEntry] = field(default_factory=list)
    message: str = ""
    failed: List[FixPlanEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "fixes": [fix.to_dict() for fix in self.fixes],
            "failed": [fix.to_dict() for fix in self.failed],
            "message": self.message,
        }


@dataclass(frozen=True)
class PopularPackage:
    """Reference corpus entry used for typosquat detection."""
    name: str
    downloads: int


@dataclass(frozen=True)
class TyposquatMatch:
    gem_name: str
    version: str
    suspected_target: str
    similarity_score: float
    target_downloads: int
    risk_level: RiskLevel

    def to_dict(self) -> dict:
        return {
            "gem_name": self.gem_name,
            "version": self.version,
            "suspected_target": self.suspected_target,
            "similarity_score": round(self.similarity_score, 4),
            "target_downloads": self.target_downloads,
            "risk_level": self.risk_level.value,
        }
