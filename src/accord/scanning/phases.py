"""
Assessment phases.

A phase evaluates one domain of the assessment and returns a PhaseResult.
Phases may raise; the orchestrator isolates failures and substitutes a
neutral "Not Available" result.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from accord.catalog.cache import CatalogCache
from accord.models import (
    ComplianceStatus,
    Finding,
    PhaseResult,
    Scope,
    Severity,
)
from accord.scanners.registry import ControlDispatcher
from accord.scanning.cancellation import CancellationToken

logger = logging.getLogger(__name__)

SEVERITY_PENALTIES: dict[Severity, float] = {
    Severity.CRITICAL: 20.0,
    Severity.HIGH: 10.0,
    Severity.MEDIUM: 5.0,
    Severity.LOW: 2.0,
    Severity.INFORMATIONAL: 0.0,
}


class PhaseError(Exception):
    """Raised by a phase that cannot produce a result."""

    pass


@dataclass
class PhaseContext:
    """
    Shared services available to phases.

    Attributes:
        dispatcher: Control dispatcher
        catalog: Catalog cache, if configured
        cancel_token: Cancellation token of the current run
        assessment_id: Id of the current run
    """

    dispatcher: ControlDispatcher | None = None
    catalog: CatalogCache | None = None
    cancel_token: CancellationToken | None = None
    assessment_id: str = ""

    def check_canceled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_canceled()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Phase(ABC):
    """Abstract base class for assessment phases."""

    @property
    @abstractmethod
    def domain(self) -> str:
        """Unique domain name of the phase."""
        pass

    @abstractmethod
    def run(self, scope: Scope, context: PhaseContext) -> PhaseResult:
        """
        Execute the phase.

        Args:
            scope: Scope being assessed
            context: Shared services

        Returns:
            PhaseResult for the domain
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(domain={self.domain!r})"


def control_passed(findings: list[Finding]) -> bool:
    """
    Check whether a control's findings show it as implemented.

    A control passes when at least one finding is compliant and none is a
    violation or needs manual review. Not applicable findings are neutral.
    """
    statuses = {f.compliance_status for f in findings}
    if ComplianceStatus.NON_COMPLIANT in statuses:
        return False
    if ComplianceStatus.PARTIALLY_COMPLIANT in statuses:
        return False
    if ComplianceStatus.MANUAL_REVIEW_REQUIRED in statuses:
        return False
    return ComplianceStatus.COMPLIANT in statuses


class ControlFamilyPhase(Phase):
    """
    Dispatches every control of a family (or an explicit list).

    Score is passed / total * 100; a phase without controls scores 100.
    """

    def __init__(
        self,
        domain: str,
        family: str | None = None,
        control_ids: Iterable[str] | None = None,
        include_enhancements: bool = False,
    ):
        """
        Initialize the phase.

        Args:
            domain: Phase name
            family: Control family prefix resolved through the catalog
            control_ids: Explicit controls; takes precedence over family
            include_enhancements: Also dispatch enhancements of family controls

        Raises:
            ValueError: If neither family nor control_ids is given
        """
        if not family and control_ids is None:
            raise ValueError("ControlFamilyPhase requires a family or control_ids")
        self._domain = domain
        self.family = family
        self.control_ids = list(control_ids) if control_ids is not None else None
        self.include_enhancements = include_enhancements

    @property
    def domain(self) -> str:
        return self._domain

    def resolve_controls(self, context: PhaseContext) -> list[str]:
        """
        Control ids evaluated by this phase.

        Raises:
            PhaseError: If the family cannot be resolved without a catalog
        """
        if self.control_ids is not None:
            return list(self.control_ids)
        if context.catalog is None:
            raise PhaseError(f"No catalog configured to resolve family {self.family}")
        result = context.catalog.get_catalog(cancel_token=context.cancel_token)
        if result.catalog is None:
            raise PhaseError(f"Catalog unavailable: {result.error}")
        ids: list[str] = []
        for control in result.catalog.get_controls_by_family(self.family or ""):
            ids.append(control.id)
            if self.include_enhancements:
                ids.extend(control.enhancement_ids)
        return ids

    def run(self, scope: Scope, context: PhaseContext) -> PhaseResult:
        if context.dispatcher is None:
            raise PhaseError("No control dispatcher configured")
        started_at = _utcnow()
        control_ids = self.resolve_controls(context)

        findings: list[Finding] = []
        passed = 0
        for control_id in control_ids:
            context.check_canceled()
            control_findings = context.dispatcher.dispatch(
                control_id, scope, cancel_token=context.cancel_token
            )
            if control_passed(control_findings):
                passed += 1
            findings.extend(control_findings)

        total = len(control_ids)
        score = passed / total * 100 if total else 100.0
        logger.debug(f"{self.domain}: {passed}/{total} controls passed")
        return PhaseResult(
            domain=self.domain,
            score=score,
            findings=tuple(findings),
            passed=passed,
            total=total,
            started_at=started_at,
            completed_at=_utcnow(),
        )


FindingProducer = Callable[[Scope], Iterable[Finding]]


class FindingSourcePhase(Phase):
    """
    Wraps an external finding producer (secret, dependency or container
    scanners).

    Score is 100 minus a severity-weighted penalty over the findings that
    are neither compliant nor not applicable, clipped to [0, 100].
    """

    def __init__(
        self,
        domain: str,
        producer: FindingProducer,
        penalties: dict[Severity, float] | None = None,
    ):
        self._domain = domain
        self.producer = producer
        self.penalties = dict(penalties or SEVERITY_PENALTIES)

    @property
    def domain(self) -> str:
        return self._domain

    def score(self, findings: list[Finding]) -> float:
        penalty = sum(
            self.penalties.get(f.severity, 0.0)
            for f in findings
            if f.compliance_status
            not in (ComplianceStatus.COMPLIANT, ComplianceStatus.NOT_APPLICABLE)
        )
        return min(100.0, max(0.0, 100.0 - penalty))

    def run(self, scope: Scope, context: PhaseContext) -> PhaseResult:
        started_at = _utcnow()
        context.check_canceled()
        findings = list(self.producer(scope))
        context.check_canceled()
        passed = sum(1 for f in findings if f.is_compliant())
        return PhaseResult(
            domain=self.domain,
            score=self.score(findings),
            findings=tuple(findings),
            passed=passed,
            total=len(findings),
            started_at=started_at,
            completed_at=_utcnow(),
        )
