"""
Finding data model for Accord.

This module defines the Finding class representing the outcome of
evaluating one resource (or a group of resources) against one or more
compliance controls, and FindingCollection for managing groups of findings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Iterator

from accord.models.control import normalize_control_id


class Severity(Enum):
    """Severity level of a finding, ordered from most to least severe."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"

    @property
    def rank(self) -> int:
        """Numeric rank where a higher value means more severe."""
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def from_string(cls, value: str) -> Severity:
        """
        Create Severity from string value.

        Args:
            value: String representation (case-insensitive, "info" accepted)

        Returns:
            Matching Severity enum value

        Raises:
            ValueError: If value is not a valid severity
        """
        value_lower = value.strip().lower()
        if value_lower == "info":
            return cls.INFORMATIONAL
        for severity in cls:
            if severity.value == value_lower:
                return severity
        raise ValueError(f"Invalid severity: {value}")


_SEVERITY_RANK = {
    Severity.INFORMATIONAL: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class ComplianceStatus(Enum):
    """Compliance outcome of a control evaluation."""

    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    PARTIALLY_COMPLIANT = "partially_compliant"
    MANUAL_REVIEW_REQUIRED = "manual_review_required"
    NOT_APPLICABLE = "not_applicable"

    @classmethod
    def from_string(cls, value: str) -> ComplianceStatus:
        """
        Create ComplianceStatus from string value.

        Accepts both snake_case values and CamelCase names such as
        "ManualReviewRequired".

        Raises:
            ValueError: If value is not a valid status
        """
        normalized = value.strip().replace("-", "_").replace(" ", "_")
        if normalized and "_" not in normalized and normalized.lower() != normalized:
            normalized = "".join(
                f"_{c.lower()}" if c.isupper() else c for c in normalized
            ).lstrip("_")
        normalized = normalized.lower()
        for status in cls:
            if status.value == normalized:
                return status
        raise ValueError(f"Invalid compliance status: {value}")


class FindingType(Enum):
    """Category of control area a finding belongs to."""

    SECURITY = "security"
    COMPLIANCE = "compliance"
    CONFIGURATION = "configuration"
    ACCESS_CONTROL = "access_control"
    DATA_PROTECTION = "data_protection"
    NETWORK_SECURITY = "network_security"
    MONITORING = "monitoring"
    LOGGING = "logging"
    BACKUP = "backup"
    ENCRYPTION = "encryption"
    PATCH_MANAGEMENT = "patch_management"
    RESOURCE_MANAGEMENT = "resource_management"
    CONTINGENCY_PLANNING = "contingency_planning"
    IDENTITY_MANAGEMENT = "identity_management"
    CONFIGURATION_MANAGEMENT = "configuration_management"
    INCIDENT_RESPONSE = "incident_response"
    RISK_ASSESSMENT = "risk_assessment"
    SECURITY_ASSESSMENT = "security_assessment"

    @classmethod
    def from_string(cls, value: str) -> FindingType:
        """
        Create FindingType from string value.

        Raises:
            ValueError: If value is not a valid finding type
        """
        value_lower = value.strip().lower().replace(" ", "_").replace("-", "_")
        for finding_type in cls:
            if finding_type.value == value_lower:
                return finding_type
        raise ValueError(f"Invalid finding type: {value}")


class RemediationComplexity(Enum):
    """Effort tier required to remediate a finding."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    EXPERT = "expert"

    @classmethod
    def from_string(cls, value: str) -> RemediationComplexity:
        value_lower = value.strip().lower()
        for complexity in cls:
            if complexity.value == value_lower:
                return complexity
        raise ValueError(f"Invalid remediation complexity: {value}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Finding:
    """
    Represents a compliance finding.

    Findings are produced by control checkers and by external finding
    producers (code, secret and dependency scanners). They are write-once:
    enrichment produces a new Finding via dataclasses.replace.

    Attributes:
        id: Unique finding identifier
        resource_id: Identifier of the affected resource ("multiple" for
            grouped findings)
        resource_type: Provider resource type, e.g.
            Microsoft.Storage/storageAccounts, or "Multiple"
        finding_type: Control area of the finding
        severity: Severity level
        compliance_status: Outcome of the control evaluation
        title: Short description of the finding
        description: Detailed explanation
        recommendation: Recommended fix in plain text
        affected_controls: Upper-cased control ids the finding maps to
        resource_name: Human readable resource name
        category: Free-form category used for risk grouping
        rule_id: Checker rule that produced the finding
        remediation_guidance: Advisory runbook text looked up by rule id
        is_auto_remediable: Whether the finding can be fixed automatically
        remediation_complexity: Effort tier, set by the enricher
        detected_at: When the condition was detected
        metadata: Additional producer-specific data
    """

    # Required fields
    id: str
    resource_id: str
    resource_type: str
    finding_type: FindingType
    severity: Severity
    compliance_status: ComplianceStatus
    title: str
    description: str = ""
    recommendation: str = ""

    affected_controls: frozenset[str] = field(default_factory=frozenset)
    resource_name: str = ""
    category: str = ""
    rule_id: str | None = None
    remediation_guidance: str = ""

    # Remediation classification
    is_auto_remediable: bool = False
    remediation_complexity: RemediationComplexity | None = None

    detected_at: datetime = field(default_factory=_utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Normalize control ids so lookups never depend on producer casing
        controls = frozenset(
            normalize_control_id(c) for c in self.affected_controls if c and c.strip()
        )
        object.__setattr__(self, "affected_controls", controls)

    def is_critical(self) -> bool:
        """Check if this finding has critical severity."""
        return self.severity == Severity.CRITICAL

    def is_high_or_critical(self) -> bool:
        """Check if this finding has high or critical severity."""
        return self.severity >= Severity.HIGH

    def is_compliant(self) -> bool:
        """Check if the evaluated control was met."""
        return self.compliance_status == ComplianceStatus.COMPLIANT

    def is_violation(self) -> bool:
        """Check if the finding records an unmet control."""
        return self.compliance_status in (
            ComplianceStatus.NON_COMPLIANT,
            ComplianceStatus.PARTIALLY_COMPLIANT,
        )

    def is_grouped(self) -> bool:
        """Check if the finding summarizes multiple resources."""
        return self.resource_type.strip().lower() == "multiple"

    def risk_category(self) -> str:
        """Category used when ranking top risks."""
        return self.category or self.finding_type.value

    def to_dict(self) -> dict[str, Any]:
        """
        Convert finding to dictionary representation.

        Returns:
            Dictionary with all finding fields
        """
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "resource_type": self.resource_type,
            "resource_name": self.resource_name,
            "finding_type": self.finding_type.value,
            "severity": self.severity.value,
            "compliance_status": self.compliance_status.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "affected_controls": sorted(self.affected_controls),
            "category": self.category,
            "rule_id": self.rule_id,
            "remediation_guidance": self.remediation_guidance,
            "is_auto_remediable": self.is_auto_remediable,
            "remediation_complexity": (
                self.remediation_complexity.value
                if self.remediation_complexity
                else None
            ),
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        """
        Create a Finding from a dictionary.

        Args:
            data: Dictionary with finding fields

        Returns:
            New Finding instance
        """
        detected_at = _utcnow()
        if data.get("detected_at"):
            detected_at = datetime.fromisoformat(data["detected_at"])

        finding_type_val = data.get("finding_type", "compliance")
        if isinstance(finding_type_val, str):
            finding_type = FindingType.from_string(finding_type_val)
        else:
            finding_type = finding_type_val

        severity_val = data.get("severity", "medium")
        if isinstance(severity_val, str):
            severity = Severity.from_string(severity_val)
        else:
            severity = severity_val

        status_val = data.get("compliance_status", "manual_review_required")
        if isinstance(status_val, str):
            status = ComplianceStatus.from_string(status_val)
        else:
            status = status_val

        complexity = data.get("remediation_complexity")
        if isinstance(complexity, str):
            complexity = RemediationComplexity.from_string(complexity)

        return cls(
            id=data["id"],
            resource_id=data.get("resource_id", ""),
            resource_type=data.get("resource_type", ""),
            resource_name=data.get("resource_name", ""),
            finding_type=finding_type,
            severity=severity,
            compliance_status=status,
            title=data.get("title", ""),
            description=data.get("description", ""),
            recommendation=data.get("recommendation", ""),
            affected_controls=frozenset(data.get("affected_controls", [])),
            category=data.get("category", ""),
            rule_id=data.get("rule_id"),
            remediation_guidance=data.get("remediation_guidance", ""),
            is_auto_remediable=bool(data.get("is_auto_remediable", False)),
            remediation_complexity=complexity,
            detected_at=detected_at,
            metadata=dict(data.get("metadata", {})),
        )


class FindingCollection:
    """
    A collection of Finding objects with filtering capabilities.

    Attributes:
        findings: List of Finding objects in this collection
    """

    def __init__(self, findings: Iterable[Finding] | None = None) -> None:
        self._findings: list[Finding] = list(findings) if findings is not None else []

    @property
    def findings(self) -> list[Finding]:
        """Get the list of findings."""
        return self._findings

    def __len__(self) -> int:
        return len(self._findings)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self._findings)

    def __getitem__(self, index: int) -> Finding:
        return self._findings[index]

    def add(self, finding: Finding) -> None:
        """Add a finding to the collection."""
        self._findings.append(finding)

    def extend(self, findings: Iterable[Finding]) -> None:
        """Add multiple findings to the collection."""
        self._findings.extend(findings)

    def filter_by_severity(self, severity: Severity) -> FindingCollection:
        """
        Filter findings by exact severity.

        Args:
            severity: Severity level to filter by

        Returns:
            New FindingCollection containing only matching findings
        """
        return FindingCollection(f for f in self._findings if f.severity == severity)

    def filter_at_least(self, severity: Severity) -> FindingCollection:
        """
        Filter findings at or above a severity threshold.

        Args:
            severity: Minimum severity to keep

        Returns:
            New FindingCollection containing only matching findings
        """
        return FindingCollection(f for f in self._findings if f.severity >= severity)

    def filter_by_status(self, status: ComplianceStatus) -> FindingCollection:
        """Filter findings by compliance status."""
        return FindingCollection(
            f for f in self._findings if f.compliance_status == status
        )

    def filter_by_type(self, finding_type: FindingType) -> FindingCollection:
        """Filter findings by finding type."""
        return FindingCollection(
            f for f in self._findings if f.finding_type == finding_type
        )

    def filter_by_control(self, control_id: str) -> FindingCollection:
        """Filter findings mapped to a control id (case-insensitive)."""
        wanted = normalize_control_id(control_id)
        return FindingCollection(
            f for f in self._findings if wanted in f.affected_controls
        )

    def filter_auto_remediable(self) -> FindingCollection:
        """Filter to findings that can be remediated automatically."""
        return FindingCollection(f for f in self._findings if f.is_auto_remediable)

    def filter_violations(self) -> FindingCollection:
        """Filter to findings recording an unmet control."""
        return FindingCollection(f for f in self._findings if f.is_violation())

    def get_by_id(self, finding_id: str) -> Finding | None:
        for finding in self._findings:
            if finding.id == finding_id:
                return finding
        return None

    def count_by_severity(self) -> dict[Severity, int]:
        """
        Count findings grouped by severity.

        Returns:
            Dictionary mapping Severity to count
        """
        counts: dict[Severity, int] = {s: 0 for s in Severity}
        for finding in self._findings:
            counts[finding.severity] += 1
        return counts

    def count_by_severity_dict(self) -> dict[str, int]:
        """Count findings grouped by severity (string keys)."""
        counts = self.count_by_severity()
        return {severity.value: count for severity, count in counts.items()}

    def count_by_status(self) -> dict[ComplianceStatus, int]:
        """Count findings grouped by compliance status."""
        counts: dict[ComplianceStatus, int] = {s: 0 for s in ComplianceStatus}
        for finding in self._findings:
            counts[finding.compliance_status] += 1
        return counts

    def to_list(self) -> list[dict[str, Any]]:
        """Convert collection to list of dictionaries."""
        return [finding.to_dict() for finding in self._findings]

    def to_json(self) -> str:
        """Convert collection to JSON string."""
        return json.dumps(self.to_list(), indent=2, default=str)

    @classmethod
    def from_list(cls, data: list[dict[str, Any]]) -> FindingCollection:
        """Create collection from list of dictionaries."""
        return cls(Finding.from_dict(item) for item in data)

    def merge(self, other: FindingCollection) -> FindingCollection:
        """
        Merge with another collection.

        Returns:
            New FindingCollection with findings from both collections
        """
        return FindingCollection(self._findings + other._findings)
