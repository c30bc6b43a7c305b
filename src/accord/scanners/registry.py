"""
Control routing for Accord.

ScannerRegistry maps control ids and family prefixes to checkers.
ControlDispatcher resolves a control through the registry and the catalog,
runs the checker and guarantees that failures surface as manual-review
findings instead of exceptions.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from accord.catalog.cache import CatalogCache
from accord.cloud.base import ResourceProvider
from accord.models import (
    ComplianceStatus,
    Control,
    Finding,
    Scope,
    normalize_control_id,
)
from accord.scanners.access_control import AccessControlChecker
from accord.scanners.base import Checker, manual_review_finding, not_applicable_finding
from accord.scanners.default import DefaultChecker
from accord.scanners.property_checker import ResourcePropertyChecker, RuleSetChecker
from accord.scanners.rules import group_rules_by_control, load_advisories, load_rules

if TYPE_CHECKING:
    from accord.scanning.cancellation import CancellationToken

logger = logging.getLogger(__name__)

ACCESS_CONTROL_IDS = ("AC-2", "AC-5", "AC-6")
UNKNOWN_CONTROL_ID = "UNKNOWN"

_ENHANCEMENT_SUFFIX = re.compile(r"\(\d+\)$")


def lookup_keys(control_id: str) -> list[str]:
    """
    Registry keys tried for a control id, most specific first.

    Example:
        "AC-2(1)" -> ["AC-2(1)", "AC-2", "AC"]
    """
    normalized = normalize_control_id(control_id)
    keys = [normalized]
    base = _ENHANCEMENT_SUFFIX.sub("", normalized)
    if base != normalized:
        keys.append(base)
    family = base.split("-", 1)[0]
    if family != base:
        keys.append(family)
    return keys


class ScannerRegistry:
    """
    Registry of checkers keyed by control id or family prefix.

    Keys are case-insensitive. Registration is thread-safe.
    """

    def __init__(self) -> None:
        self._checkers: dict[str, Checker] = {}
        self._lock = threading.Lock()

    def register(self, key: str, checker: Checker) -> None:
        """
        Register a checker for a control id (e.g. "SC-8") or family ("SC").

        Raises:
            ValueError: If key is blank or checker is not callable
        """
        if not callable(checker):
            raise ValueError(f"Checker for {key} is not callable")
        normalized = normalize_control_id(key)
        with self._lock:
            if normalized in self._checkers:
                logger.debug(f"Replacing checker for {normalized}")
            self._checkers[normalized] = checker

    def unregister(self, key: str) -> bool:
        """Remove a checker. Returns True if one was registered."""
        normalized = normalize_control_id(key)
        with self._lock:
            return self._checkers.pop(normalized, None) is not None

    def resolve(self, control_id: str) -> Checker | None:
        """Most specific checker for control_id, or None."""
        try:
            keys = lookup_keys(control_id)
        except ValueError:
            return None
        with self._lock:
            for key in keys:
                checker = self._checkers.get(key)
                if checker is not None:
                    return checker
        return None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._checkers)

    def families(self) -> list[str]:
        """Family prefixes with at least one registered checker."""
        with self._lock:
            return sorted({key.split("-", 1)[0] for key in self._checkers})

    def __contains__(self, control_id: str) -> bool:
        return self.resolve(control_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._checkers)


def create_default_registry(
    rules_path: str | Path | None = None,
    advisories_path: str | Path | None = None,
) -> ScannerRegistry:
    """
    Build a registry with the bundled property rules and access checks.

    Args:
        rules_path: Alternative rules file
        advisories_path: Alternative advisories file

    Returns:
        Populated ScannerRegistry
    """
    registry = ScannerRegistry()
    advisories = load_advisories(advisories_path)
    for control_id, rules in group_rules_by_control(load_rules(rules_path)).items():
        checkers = [ResourcePropertyChecker(rule, advisories) for rule in rules]
        registry.register(control_id, RuleSetChecker(control_id, checkers))

    access_checker = AccessControlChecker()
    for control_id in ACCESS_CONTROL_IDS:
        registry.register(control_id, access_checker)

    logger.info(
        f"Registered checkers for {len(registry)} controls "
        f"across families {', '.join(registry.families())}"
    )
    return registry


class ControlDispatcher:
    """
    Routes a control to its checker.

    dispatch() never raises for a well-formed scope: checker failures and
    unverifiable controls become ManualReviewRequired findings.
    """

    def __init__(
        self,
        registry: ScannerRegistry,
        provider: ResourceProvider,
        catalog: CatalogCache | None = None,
        default_checker: Checker | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            registry: Checker registry
            provider: Resource provider passed to checkers
            catalog: Catalog cache used to resolve control metadata
            default_checker: Checker for unregistered controls
        """
        self.registry = registry
        self.provider = provider
        self.catalog = catalog
        self.default_checker = default_checker or DefaultChecker()

    def dispatch(
        self,
        control_id: str,
        scope: Scope,
        cancel_token: CancellationToken | None = None,
    ) -> list[Finding]:
        """
        Evaluate a control for a scope.

        Args:
            control_id: Control id in any case (e.g. "sc-8", "AC-2(1)")
            scope: Scope to assess
            cancel_token: Passed to the catalog lookup

        Returns:
            Findings for the control
        """
        try:
            normalized = normalize_control_id(control_id)
        except ValueError:
            normalized = UNKNOWN_CONTROL_ID

        checker = self.registry.resolve(normalized)
        if checker is None:
            logger.debug(f"No checker registered for {normalized}; using default")
            control = self._placeholder(normalized)
            return self._run(self.default_checker, normalized, control, scope)

        degraded = False
        control: Control | None = None
        if self.catalog is not None:
            result = self.catalog.get_catalog(cancel_token=cancel_token)
            if result.catalog is None:
                degraded = True
                logger.warning(
                    f"Catalog unavailable while checking {normalized}: {result.error}"
                )
            else:
                control = result.catalog.get_control(normalized)
                if control is None:
                    return [
                        not_applicable_finding(
                            normalized,
                            f"Control {normalized} is not defined in catalog "
                            f"version {result.catalog.version}",
                            scope=scope,
                        )
                    ]

        findings = self._run(
            checker, normalized, control or self._placeholder(normalized), scope
        )
        if degraded:
            findings = [self._downgrade(f) for f in findings]
        return findings

    def _placeholder(self, control_id: str) -> Control:
        return Control(
            id=control_id,
            title=control_id,
            family=control_id.split("-", 1)[0],
        )

    def _run(
        self, checker: Checker, control_id: str, control: Control, scope: Scope
    ) -> list[Finding]:
        try:
            findings = list(checker(scope, control, self.provider) or [])
        except Exception as e:
            logger.warning(f"Checker for {control_id} failed: {type(e).__name__}: {e}")
            return [
                manual_review_finding(
                    control_id,
                    f"checker failed ({type(e).__name__}: {e})",
                    scope=scope,
                )
            ]
        return [
            f if f.affected_controls else replace(f, affected_controls=frozenset({control_id}))
            for f in findings
        ]

    def _downgrade(self, finding: Finding) -> Finding:
        if finding.compliance_status != ComplianceStatus.COMPLIANT:
            return finding
        return replace(
            finding,
            compliance_status=ComplianceStatus.MANUAL_REVIEW_REQUIRED,
            description=(
                f"{finding.description} Control definition could not be verified "
                "because the catalog is unavailable."
            ).strip(),
            metadata={**finding.metadata, "catalog_degraded": True},
        )
