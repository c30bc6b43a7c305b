"""
Control checkers and routing for Accord.

This package provides:
- ScannerRegistry / ControlDispatcher: route a control id to its checker
- ResourcePropertyChecker: generic checker driven by declarative rules
- AccessControlChecker: RBAC checks over role assignments
- DefaultChecker: manual review for controls without automated coverage
"""

from accord.scanners.access_control import AccessControlChecker
from accord.scanners.base import (
    MULTIPLE_RESOURCES,
    Checker,
    ControlChecker,
    build_finding,
    manual_review_finding,
    not_applicable_finding,
)
from accord.scanners.conditions import (
    AllOf,
    AnyOf,
    Compare,
    Condition,
    ConditionError,
    Not,
    compare,
    get_path_value,
)
from accord.scanners.default import INSUFFICIENT_COVERAGE, DefaultChecker
from accord.scanners.property_checker import (
    PropertyRule,
    ResourcePropertyChecker,
    RuleSetChecker,
)
from accord.scanners.registry import (
    ControlDispatcher,
    ScannerRegistry,
    create_default_registry,
    lookup_keys,
)
from accord.scanners.rules import (
    RuleLoadError,
    load_advisories,
    load_rules,
)

__all__ = [
    # Routing
    "ControlDispatcher",
    "ScannerRegistry",
    "create_default_registry",
    "lookup_keys",
    # Checkers
    "AccessControlChecker",
    "Checker",
    "ControlChecker",
    "DefaultChecker",
    "INSUFFICIENT_COVERAGE",
    "PropertyRule",
    "ResourcePropertyChecker",
    "RuleSetChecker",
    # Finding helpers
    "MULTIPLE_RESOURCES",
    "build_finding",
    "manual_review_finding",
    "not_applicable_finding",
    # Conditions
    "AllOf",
    "AnyOf",
    "Compare",
    "Condition",
    "ConditionError",
    "Not",
    "compare",
    "get_path_value",
    # Rules
    "RuleLoadError",
    "load_advisories",
    "load_rules",
]
