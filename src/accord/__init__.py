"""
Accord - NIST SP 800-53 compliance assessment for cloud environments

Assesses a subscription against the control catalog and produces findings
with severity, compliance status and a remediation classification.

Quick Start:
    >>> from accord import Scope, ControlFamilyPhase, create_orchestrator
    >>>
    >>> orchestrator = create_orchestrator()
    >>> assessment = orchestrator.run_assessment(
    ...     Scope(subscription_id="00000000-0000-0000-0000-000000000000"),
    ...     [ControlFamilyPhase("access_control", control_ids=["AC-2", "AC-6"])],
    ... )
    >>> print(assessment.executive_summary)
"""

from __future__ import annotations

__version__ = "0.1.0"

# Core models
from accord.models import (
    Assessment,
    AssessmentStatus,
    Catalog,
    CatalogResult,
    CatalogSource,
    ComplianceStatus,
    Control,
    Finding,
    FindingCollection,
    FindingType,
    PhaseResult,
    RemediationAction,
    RemediationClassification,
    RemediationComplexity,
    RiskLevel,
    RiskProfile,
    Scope,
    Severity,
)

# Catalog
from accord.catalog import CatalogCache, RetryPolicy

# Configuration
from accord.config import (
    AccordConfiguration,
    create_default_config,
    load_config_from_env,
)

# Checkers
from accord.scanners import (
    ControlDispatcher,
    ScannerRegistry,
    create_default_registry,
)

# Remediation
from accord.remediation import FindingEnricher, RemediationClassifier

# Orchestration
from accord.scanning import (
    CancellationToken,
    ControlFamilyPhase,
    FindingSourcePhase,
    Phase,
    ScanOrchestrator,
    create_orchestrator,
)

__all__ = [
    "__version__",
    # Models
    "Assessment",
    "AssessmentStatus",
    "Catalog",
    "CatalogResult",
    "CatalogSource",
    "ComplianceStatus",
    "Control",
    "Finding",
    "FindingCollection",
    "FindingType",
    "PhaseResult",
    "RemediationAction",
    "RemediationClassification",
    "RemediationComplexity",
    "RiskLevel",
    "RiskProfile",
    "Scope",
    "Severity",
    # Catalog
    "CatalogCache",
    "RetryPolicy",
    # Configuration
    "AccordConfiguration",
    "create_default_config",
    "load_config_from_env",
    # Checkers
    "ControlDispatcher",
    "ScannerRegistry",
    "create_default_registry",
    # Remediation
    "FindingEnricher",
    "RemediationClassifier",
    # Orchestration
    "CancellationToken",
    "ControlFamilyPhase",
    "FindingSourcePhase",
    "Phase",
    "ScanOrchestrator",
    "create_orchestrator",
]
