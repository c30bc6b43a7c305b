"""
Data models for Accord.

This package provides the core data structures:
- Finding / FindingCollection: compliance findings
- Catalog / Control: the versioned control catalog
- PhaseResult / Assessment: orchestrator output
- RemediationAction / RemediationClassification: remediation proposals
"""

from accord.models.assessment import (
    NEUTRAL_PHASE_SCORE,
    NOT_AVAILABLE,
    Assessment,
    AssessmentStatus,
    PhaseResult,
    PhaseStatus,
    RiskLevel,
    RiskProfile,
    Scope,
)
from accord.models.control import (
    Catalog,
    CatalogResult,
    CatalogSource,
    Control,
    ControlEnhancement,
    ControlGroup,
    ControlPart,
    control_family,
    normalize_control_id,
)
from accord.models.finding import (
    ComplianceStatus,
    Finding,
    FindingCollection,
    FindingType,
    RemediationComplexity,
    Severity,
)
from accord.models.remediation import (
    RemediationAction,
    RemediationActionType,
    RemediationClassification,
)

__all__ = [
    # Finding
    "ComplianceStatus",
    "Finding",
    "FindingCollection",
    "FindingType",
    "RemediationComplexity",
    "Severity",
    # Catalog
    "Catalog",
    "CatalogResult",
    "CatalogSource",
    "Control",
    "ControlEnhancement",
    "ControlGroup",
    "ControlPart",
    "control_family",
    "normalize_control_id",
    # Assessment
    "NEUTRAL_PHASE_SCORE",
    "NOT_AVAILABLE",
    "Assessment",
    "AssessmentStatus",
    "PhaseResult",
    "PhaseStatus",
    "RiskLevel",
    "RiskProfile",
    "Scope",
    # Remediation
    "RemediationAction",
    "RemediationActionType",
    "RemediationClassification",
]
