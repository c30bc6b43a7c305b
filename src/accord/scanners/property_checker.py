"""
Generic resource-property checker.

Every declarative rule is evaluated by the same state machine:

    list resources in scope
      -> listing fails            : informational, not applicable
      -> no matching resources    : informational, not applicable
                                    (non-compliant when the rule requires
                                    at least one resource)
      -> per resource properties
           -> authorization/transient/unexpected error : manual review
           -> not found                                : non-compliant
           -> predicate holds                          : compliant
           -> predicate fails                          : non-compliant
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from accord.cloud.base import (
    AuthorizationError,
    CloudProviderError,
    NotFoundError,
    ResourceDescriptor,
    ResourceProvider,
    TransientProviderError,
)
from accord.models import (
    ComplianceStatus,
    Control,
    Finding,
    FindingType,
    Scope,
    Severity,
)
from accord.scanners.base import (
    MULTIPLE_RESOURCES,
    ControlChecker,
    build_finding,
    manual_review_finding,
    not_applicable_finding,
)
from accord.scanners.conditions import Condition

logger = logging.getLogger(__name__)

NOT_FOUND_NON_COMPLIANT = "non_compliant"
NOT_FOUND_MANUAL_REVIEW = "manual_review"


@dataclass(frozen=True)
class PropertyRule:
    """
    Declarative property check for one control.

    Attributes:
        id: Rule identifier, also the advisory lookup key
        control_id: Control the rule provides evidence for
        name: Short name of the check
        title: Title of the finding raised when the check fails
        resource_types: Resource types the rule applies to ("*" for all)
        condition: Predicate over the resource property document
        severity: Severity of a failing check
        finding_type: Finding type of a failing check
        category: Risk category reported for failures
        recommendation: Short fix recommendation
        description: What the rule verifies
        not_found: Policy when the resource configuration is missing
        grouped: Report failures as a single multi-resource finding
        require_resources: Fail when no matching resource exists
    """

    id: str
    control_id: str
    name: str
    title: str
    resource_types: tuple[str, ...]
    condition: Condition
    severity: Severity = Severity.MEDIUM
    finding_type: FindingType = FindingType.CONFIGURATION
    category: str = ""
    recommendation: str = ""
    description: str = ""
    not_found: str = NOT_FOUND_NON_COMPLIANT
    grouped: bool = False
    require_resources: bool = False
    tags: tuple[str, ...] = field(default_factory=tuple)

    def applies_to(self, resource: ResourceDescriptor) -> bool:
        """Check if the rule targets the resource's type."""
        if "*" in self.resource_types:
            return True
        return any(resource.is_type(t) for t in self.resource_types)

    @property
    def target_label(self) -> str:
        if "*" in self.resource_types:
            return "resources"
        return ", ".join(self.resource_types)


class ResourcePropertyChecker(ControlChecker):
    """Evaluates a single PropertyRule against the resources in scope."""

    def __init__(self, rule: PropertyRule, advisories: dict[str, str] | None = None):
        self.rule = rule
        self._guidance = (advisories or {}).get(rule.id, "")

    @property
    def name(self) -> str:
        return self.rule.id

    def check(
        self, scope: Scope, control: Control, provider: ResourceProvider
    ) -> list[Finding]:
        rule = self.rule
        control_id = control.id

        try:
            resources = provider.list_resources(scope)
        except CloudProviderError as e:
            logger.warning(f"{rule.id}: resource listing failed: {e}")
            return [
                not_applicable_finding(
                    control_id,
                    f"Nothing to check for {rule.name}: resources in {scope.path} "
                    f"could not be listed ({type(e).__name__}: {e})",
                    scope=scope,
                    rule_id=rule.id,
                )
            ]

        matching = [r for r in resources if rule.applies_to(r)]
        if not matching:
            if rule.require_resources:
                return [self._missing_resources_finding(control_id, scope)]
            return [
                not_applicable_finding(
                    control_id,
                    f"No {rule.target_label} found in {scope.path} for {rule.name}",
                    scope=scope,
                    rule_id=rule.id,
                )
            ]

        findings: list[Finding] = []
        passed: list[ResourceDescriptor] = []
        failed: list[tuple[ResourceDescriptor, str]] = []

        for resource in matching:
            try:
                properties = provider.get_resource_properties(resource.id)
            except NotFoundError as e:
                if rule.not_found == NOT_FOUND_MANUAL_REVIEW:
                    findings.append(self._manual_review(control_id, scope, resource, e))
                else:
                    failed.append((resource, f"configuration not found ({e})"))
                continue
            except (AuthorizationError, TransientProviderError) as e:
                findings.append(self._manual_review(control_id, scope, resource, e))
                continue
            except CloudProviderError as e:
                logger.warning(f"{rule.id}: unexpected provider error for {resource.id}: {e}")
                findings.append(self._manual_review(control_id, scope, resource, e))
                continue

            if rule.condition.evaluate(properties):
                passed.append(resource)
            else:
                failed.append(
                    (resource, f"expected {rule.condition.describe()}")
                )

        if rule.grouped:
            findings.extend(self._grouped_findings(control_id, scope, passed, failed))
        else:
            findings.extend(self._compliant(control_id, r) for r in passed)
            findings.extend(
                self._non_compliant(control_id, r, reason) for r, reason in failed
            )

        logger.debug(
            f"{rule.id}: {len(passed)} compliant, {len(failed)} non-compliant "
            f"of {len(matching)} resources"
        )
        return findings

    def _base_metadata(self) -> dict[str, Any]:
        return {"checker": self.name}

    def _compliant(self, control_id: str, resource: ResourceDescriptor) -> Finding:
        return build_finding(
            control_id,
            title=self.rule.name,
            status=ComplianceStatus.COMPLIANT,
            severity=Severity.INFORMATIONAL,
            finding_type=self.rule.finding_type,
            description=f"{resource.name} satisfies: {self.rule.condition.describe()}",
            resource=resource,
            rule_id=self.rule.id,
            category=self.rule.category,
            metadata=self._base_metadata(),
        )

    def _non_compliant(
        self, control_id: str, resource: ResourceDescriptor, reason: str
    ) -> Finding:
        description = self.rule.description or self.rule.name
        return build_finding(
            control_id,
            title=self.rule.title,
            status=ComplianceStatus.NON_COMPLIANT,
            severity=self.rule.severity,
            finding_type=self.rule.finding_type,
            description=f"{description}. {resource.name}: {reason}",
            recommendation=self.rule.recommendation,
            resource=resource,
            rule_id=self.rule.id,
            category=self.rule.category,
            remediation_guidance=self._guidance,
            metadata=self._base_metadata(),
        )

    def _manual_review(
        self,
        control_id: str,
        scope: Scope,
        resource: ResourceDescriptor,
        error: CloudProviderError,
    ) -> Finding:
        logger.info(f"{self.rule.id}: cannot verify {resource.id}: {error}")
        return manual_review_finding(
            control_id,
            f"{self.rule.name} could not be evaluated "
            f"({type(error).__name__}: {error})",
            scope=scope,
            rule_id=self.rule.id,
            resource_id=resource.id,
            resource_type=resource.type,
            severity=self.rule.severity,
            finding_type=self.rule.finding_type,
        )

    def _grouped_findings(
        self,
        control_id: str,
        scope: Scope,
        passed: list[ResourceDescriptor],
        failed: list[tuple[ResourceDescriptor, str]],
    ) -> list[Finding]:
        if not failed and not passed:
            return []
        if not failed:
            return [
                build_finding(
                    control_id,
                    title=self.rule.name,
                    status=ComplianceStatus.COMPLIANT,
                    severity=Severity.INFORMATIONAL,
                    finding_type=self.rule.finding_type,
                    description=f"All {len(passed)} {self.rule.target_label} compliant",
                    resource_id=scope.path,
                    resource_type=MULTIPLE_RESOURCES,
                    rule_id=self.rule.id,
                    category=self.rule.category,
                    metadata={**self._base_metadata(), "resource_count": len(passed)},
                )
            ]
        names = ", ".join(r.name for r, _ in failed)
        return [
            build_finding(
                control_id,
                title=self.rule.title,
                status=ComplianceStatus.NON_COMPLIANT,
                severity=self.rule.severity,
                finding_type=self.rule.finding_type,
                description=(
                    f"{len(failed)} of {len(failed) + len(passed)} "
                    f"{self.rule.target_label} fail {self.rule.name}: {names}"
                ),
                recommendation=self.rule.recommendation,
                resource_id=scope.path,
                resource_type=MULTIPLE_RESOURCES,
                rule_id=self.rule.id,
                category=self.rule.category,
                remediation_guidance=self._guidance,
                metadata={
                    **self._base_metadata(),
                    "affected_resources": [r.id for r, _ in failed],
                },
            )
        ]

    def _missing_resources_finding(self, control_id: str, scope: Scope) -> Finding:
        return build_finding(
            control_id,
            title=self.rule.title,
            status=ComplianceStatus.NON_COMPLIANT,
            severity=self.rule.severity,
            finding_type=self.rule.finding_type,
            description=f"No {self.rule.target_label} found in {scope.path}",
            recommendation=self.rule.recommendation,
            resource_id=scope.path,
            resource_type=MULTIPLE_RESOURCES,
            rule_id=self.rule.id,
            category=self.rule.category,
            remediation_guidance=self._guidance,
            metadata=self._base_metadata(),
        )


class RuleSetChecker(ControlChecker):
    """Runs several checkers for one control and concatenates their findings."""

    def __init__(self, control_id: str, checkers: list[ControlChecker]):
        self.control_id = control_id
        self.checkers = list(checkers)

    @property
    def name(self) -> str:
        return f"rules:{self.control_id}"

    def check(
        self, scope: Scope, control: Control, provider: ResourceProvider
    ) -> list[Finding]:
        findings: list[Finding] = []
        for checker in self.checkers:
            findings.extend(checker(scope, control, provider))
        return findings
