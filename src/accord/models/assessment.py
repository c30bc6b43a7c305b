"""
Assessment data model for Accord.

Defines the scan scope, per-phase results, the derived risk profile and
the Assessment produced by the scan orchestrator.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from accord.models.finding import ComplianceStatus, Finding, Severity

NEUTRAL_PHASE_SCORE = 50.0
NOT_AVAILABLE = "Not Available"


@dataclass(frozen=True)
class Scope:
    """
    Boundary of a scan.

    Attributes:
        subscription_id: Cloud subscription / account identifier
        resource_group: Optional resource group narrowing the scan
        name: Display name for reports
    """

    subscription_id: str
    resource_group: str | None = None
    name: str = ""

    @property
    def path(self) -> str:
        """Provider scope path, e.g. /subscriptions/x/resourceGroups/y."""
        path = f"/subscriptions/{self.subscription_id}"
        if self.resource_group:
            path += f"/resourceGroups/{self.resource_group}"
        return path

    def is_valid(self) -> bool:
        return bool(self.subscription_id and self.subscription_id.strip())

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription_id": self.subscription_id,
            "resource_group": self.resource_group,
            "name": self.name,
            "path": self.path,
        }

    def __str__(self) -> str:
        return self.name or self.path


class PhaseStatus(Enum):
    """Outcome of a single phase."""

    COMPLETED = "Completed"
    NOT_AVAILABLE = NOT_AVAILABLE


class AssessmentStatus(Enum):
    """Overall outcome of an assessment run."""

    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    CANCELED = "canceled"


class RiskLevel(Enum):
    """Overall risk level of an assessment."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PhaseResult:
    """
    Result of one scan phase (domain).

    Attributes:
        domain: Phase name, e.g. "access_control" or "secrets"
        score: Phase score in [0, 100]
        findings: Findings produced by the phase
        passed: Number of checks that passed
        total: Number of checks evaluated
        status: Completed or Not Available
        error: Failure description for degraded phases
        started_at: When the phase started
        completed_at: When the phase finished
    """

    domain: str
    score: float
    findings: tuple[Finding, ...] = ()
    passed: int = 0
    total: int = 0
    status: PhaseStatus = PhaseStatus.COMPLETED
    error: str | None = None
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "score", min(100.0, max(0.0, float(self.score))))
        object.__setattr__(self, "findings", tuple(self.findings))

    @classmethod
    def not_available(
        cls,
        domain: str,
        error: str,
        started_at: datetime | None = None,
    ) -> PhaseResult:
        """
        Build the degraded result used when a phase fails.

        Args:
            domain: Phase name
            error: Failure description
            started_at: When the failed phase started

        Returns:
            PhaseResult with the neutral score and no findings
        """
        return cls(
            domain=domain,
            score=NEUTRAL_PHASE_SCORE,
            findings=(),
            status=PhaseStatus.NOT_AVAILABLE,
            error=error,
            started_at=started_at or _utcnow(),
            completed_at=_utcnow(),
        )

    @property
    def is_available(self) -> bool:
        return self.status == PhaseStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "score": round(self.score, 2),
            "passed": self.passed,
            "total": self.total,
            "status": self.status.value,
            "error": self.error,
            "finding_count": len(self.findings),
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }


@dataclass(frozen=True)
class RiskProfile:
    """
    Risk derived from an assessment.

    Attributes:
        risk_level: Overall risk level
        risk_score: 0 (no risk) to 10 (maximal risk)
        top_risks: Up to five distinct high-impact categories
        risk_categories: Per-domain risk score, 0 to 10
    """

    risk_level: RiskLevel
    risk_score: float
    top_risks: tuple[str, ...] = ()
    risk_categories: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "risk_score": round(self.risk_score, 2),
            "top_risks": list(self.top_risks),
            "risk_categories": {
                k: round(v, 2) for k, v in self.risk_categories.items()
            },
        }


@dataclass(frozen=True)
class Assessment:
    """
    Aggregated result of an assessment run.

    Attributes:
        scope: Scope that was assessed
        phases: Phase results keyed by domain, in declared order
        all_findings: Findings from every phase
        severity_counts: Finding counts keyed by severity
        overall_score: Mean phase score in [0, 100]
        risk_profile: Derived risk profile
        executive_summary: One paragraph summary
        status: Completed, completed with errors or canceled
        started_at: When the run started
        ended_at: When the run finished
        assessment_id: Unique identifier
        catalog_version: Version of the control catalog used
        evidence_uri: Location of the stored evidence, if any
    """

    scope: Scope
    phases: dict[str, PhaseResult]
    all_findings: tuple[Finding, ...]
    severity_counts: dict[Severity, int]
    overall_score: float
    risk_profile: RiskProfile
    executive_summary: str
    status: AssessmentStatus
    started_at: datetime
    ended_at: datetime
    assessment_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    catalog_version: str = "Unknown"
    evidence_uri: str | None = None

    @property
    def passed_controls(self) -> int:
        return sum(p.passed for p in self.phases.values())

    @property
    def total_controls(self) -> int:
        return sum(p.total for p in self.phases.values())

    @property
    def compliance_percentage(self) -> float:
        """Share of evaluated checks that passed, across all phases."""
        total = self.total_controls
        if total == 0:
            return 0.0
        return self.passed_controls / total * 100

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def count_by_status(self) -> dict[ComplianceStatus, int]:
        counts: dict[ComplianceStatus, int] = {s: 0 for s in ComplianceStatus}
        for finding in self.all_findings:
            counts[finding.compliance_status] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the assessment to a flat, JSON-serializable dictionary.

        Returns:
            Dictionary suitable for json.dumps without a custom encoder
        """
        return {
            "assessment_id": self.assessment_id,
            "scope": self.scope.to_dict(),
            "status": self.status.value,
            "catalog_version": self.catalog_version,
            "overall_score": round(self.overall_score, 2),
            "compliance_percentage": round(self.compliance_percentage, 2),
            "passed_controls": self.passed_controls,
            "total_controls": self.total_controls,
            "severity_counts": {s.value: c for s, c in self.severity_counts.items()},
            "status_counts": {s.value: c for s, c in self.count_by_status().items()},
            "risk_profile": self.risk_profile.to_dict(),
            "executive_summary": self.executive_summary,
            "phases": {name: p.to_dict() for name, p in self.phases.items()},
            "findings": [f.to_dict() for f in self.all_findings],
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "evidence_uri": self.evidence_uri,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)
