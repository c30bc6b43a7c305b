"""
Base types for control checkers.

A checker is any callable taking (scope, control, provider) and returning
a list of findings. ControlChecker is the class form used by the built-in
checkers; plain functions are accepted by the registry as well.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable

from accord.cloud.base import ResourceDescriptor, ResourceProvider
from accord.models import (
    ComplianceStatus,
    Control,
    Finding,
    FindingType,
    Scope,
    Severity,
)

Checker = Callable[[Scope, Control, ResourceProvider], list[Finding]]

MULTIPLE_RESOURCES = "Multiple"


class ControlChecker(ABC):
    """
    Abstract base class for control checkers.

    Subclasses implement check(). Calling the checker delegates to check()
    so instances can be registered anywhere a plain function can.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Checker name used in logs and finding metadata."""
        pass

    @abstractmethod
    def check(
        self, scope: Scope, control: Control, provider: ResourceProvider
    ) -> list[Finding]:
        """
        Evaluate the control for the scope.

        Args:
            scope: Scope being assessed
            control: Control definition (a placeholder when the catalog
                is unavailable)
            provider: Resource provider used for read-only queries

        Returns:
            Findings for the control
        """
        pass

    def __call__(
        self, scope: Scope, control: Control, provider: ResourceProvider
    ) -> list[Finding]:
        return self.check(scope, control, provider)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


def new_finding_id(prefix: str) -> str:
    """Generate a finding id such as "sc-8-storage-https-3f2a9c1b"."""
    return f"{prefix.lower()}-{uuid.uuid4().hex[:8]}"


def build_finding(
    control_id: str,
    *,
    title: str,
    status: ComplianceStatus,
    severity: Severity,
    finding_type: FindingType,
    description: str = "",
    recommendation: str = "",
    resource: ResourceDescriptor | None = None,
    resource_id: str | None = None,
    resource_type: str | None = None,
    rule_id: str | None = None,
    category: str = "",
    remediation_guidance: str = "",
    metadata: dict[str, Any] | None = None,
) -> Finding:
    """
    Create a finding for a single control.

    The target is either a ResourceDescriptor or an explicit
    resource_id / resource_type pair. With neither, the finding targets
    the assessed scope as a whole.
    """
    if resource is not None:
        resource_id = resource.id
        resource_type = resource.type
        resource_name = resource.name
    else:
        resource_name = ""
    return Finding(
        id=new_finding_id(rule_id or control_id),
        resource_id=resource_id or "",
        resource_type=resource_type or "",
        resource_name=resource_name,
        finding_type=finding_type,
        severity=severity,
        compliance_status=status,
        title=title,
        description=description,
        recommendation=recommendation,
        affected_controls=frozenset({control_id}),
        category=category,
        rule_id=rule_id,
        remediation_guidance=remediation_guidance,
        metadata=dict(metadata or {}),
    )


def manual_review_finding(
    control_id: str,
    reason: str,
    scope: Scope | None = None,
    rule_id: str | None = None,
    resource_id: str | None = None,
    resource_type: str | None = None,
    severity: Severity = Severity.MEDIUM,
    finding_type: FindingType = FindingType.COMPLIANCE,
) -> Finding:
    """
    Finding recording that a control could not be verified automatically.

    The description names the control, what could not be verified and why.
    """
    target = resource_id or (scope.path if scope else "the assessed scope")
    return build_finding(
        control_id,
        title=f"Manual review required for {control_id}",
        status=ComplianceStatus.MANUAL_REVIEW_REQUIRED,
        severity=severity,
        finding_type=finding_type,
        description=(
            f"Control {control_id} could not be verified for {target}: {reason}"
        ),
        recommendation=(
            f"Review {control_id} manually and record evidence of implementation."
        ),
        resource_id=resource_id or (scope.path if scope else ""),
        resource_type=resource_type or "scope",
        rule_id=rule_id,
        metadata={"reason": reason},
    )


def not_applicable_finding(
    control_id: str,
    reason: str,
    scope: Scope | None = None,
    rule_id: str | None = None,
    resource_type: str | None = None,
) -> Finding:
    """Informational finding recording that there was nothing to check."""
    return build_finding(
        control_id,
        title=f"No applicable resources for {control_id}",
        status=ComplianceStatus.NOT_APPLICABLE,
        severity=Severity.INFORMATIONAL,
        finding_type=FindingType.COMPLIANCE,
        description=reason,
        resource_id=scope.path if scope else "",
        resource_type=resource_type or "scope",
        rule_id=rule_id,
        metadata={"reason": reason},
    )
