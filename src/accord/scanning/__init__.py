"""
Assessment orchestration for Accord.

This package provides:
- ScanOrchestrator: runs phases with failure isolation and aggregates results
- Phase implementations: ControlFamilyPhase and FindingSourcePhase
- CancellationToken: cooperative cancellation of a running assessment
"""

from accord.scanning.cancellation import AssessmentCanceledError, CancellationToken
from accord.scanning.orchestrator import (
    ScanOrchestrator,
    build_executive_summary,
    build_risk_profile,
    calculate_overall_score,
    create_orchestrator,
    determine_risk_level,
    is_reportable,
    score_bucket,
    top_risk_categories,
)
from accord.scanning.phases import (
    SEVERITY_PENALTIES,
    ControlFamilyPhase,
    FindingSourcePhase,
    Phase,
    PhaseContext,
    PhaseError,
    control_passed,
)

__all__ = [
    # Orchestrator
    "ScanOrchestrator",
    "create_orchestrator",
    # Aggregation
    "build_executive_summary",
    "build_risk_profile",
    "calculate_overall_score",
    "determine_risk_level",
    "is_reportable",
    "score_bucket",
    "top_risk_categories",
    # Phases
    "SEVERITY_PENALTIES",
    "ControlFamilyPhase",
    "FindingSourcePhase",
    "Phase",
    "PhaseContext",
    "PhaseError",
    "control_passed",
    # Cancellation
    "AssessmentCanceledError",
    "CancellationToken",
]
