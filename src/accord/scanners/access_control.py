"""
Access control checks over role assignments.

Evaluates AC family controls from the role assignments visible at the
assessed scope:

- AC-2: more than MAX_SUBSCRIPTION_OWNERS Owner assignments
- AC-5: a principal holding several privileged roles at subscription scope
- AC-6 (and other AC controls): privileged roles assigned at subscription scope
"""

from __future__ import annotations

import logging
from collections import defaultdict

from accord.cloud.base import CloudProviderError, ResourceProvider, RoleAssignment
from accord.models import (
    ComplianceStatus,
    Control,
    Finding,
    FindingType,
    Scope,
    Severity,
)
from accord.scanners.base import (
    ControlChecker,
    build_finding,
    manual_review_finding,
    not_applicable_finding,
)

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = frozenset({"owner", "contributor", "user access administrator"})
MAX_SUBSCRIPTION_OWNERS = 3
ROLE_ASSIGNMENT_TYPE = "Microsoft.Authorization/roleAssignments"


def _is_privileged(assignment: RoleAssignment) -> bool:
    return assignment.role_name.strip().lower() in PRIVILEGED_ROLES


def _is_owner(assignment: RoleAssignment) -> bool:
    return assignment.role_name.strip().lower() == "owner"


class AccessControlChecker(ControlChecker):
    """Checks RBAC role assignments for AC family controls."""

    @property
    def name(self) -> str:
        return "access_control"

    def check(
        self, scope: Scope, control: Control, provider: ResourceProvider
    ) -> list[Finding]:
        try:
            assignments = provider.get_role_assignments(scope)
        except CloudProviderError as e:
            logger.warning(f"Role assignments unavailable for {scope.path}: {e}")
            return [
                manual_review_finding(
                    control.id,
                    f"role assignments could not be read ({type(e).__name__}: {e})",
                    scope=scope,
                    finding_type=FindingType.ACCESS_CONTROL,
                )
            ]

        if not assignments:
            return [
                not_applicable_finding(
                    control.id,
                    f"No role assignments visible at {scope.path}",
                    scope=scope,
                    resource_type=ROLE_ASSIGNMENT_TYPE,
                )
            ]

        subscription_level = [a for a in assignments if a.scope_type == "subscription"]

        base_id = control.id.split("(", 1)[0]
        if base_id == "AC-2":
            findings = self._check_owner_count(control.id, scope, subscription_level)
        elif base_id == "AC-5":
            findings = self._check_separation_of_duties(
                control.id, scope, subscription_level
            )
        else:
            findings = self._check_privileged_assignments(control.id, subscription_level)

        if not findings:
            findings = [self._compliant(control.id, scope, len(assignments))]
        return findings

    def _check_owner_count(
        self, control_id: str, scope: Scope, assignments: list[RoleAssignment]
    ) -> list[Finding]:
        owners = [a for a in assignments if _is_owner(a)]
        if len(owners) <= MAX_SUBSCRIPTION_OWNERS:
            return []
        return [
            build_finding(
                control_id,
                title="Excessive subscription owner assignments",
                status=ComplianceStatus.NON_COMPLIANT,
                severity=Severity.HIGH,
                finding_type=FindingType.ACCESS_CONTROL,
                description=(
                    f"{len(owners)} Owner role assignments at {scope.path} "
                    f"(maximum {MAX_SUBSCRIPTION_OWNERS})"
                ),
                recommendation=(
                    f"Reduce subscription owners to {MAX_SUBSCRIPTION_OWNERS} or fewer "
                    "and use scoped roles for day-to-day administration."
                ),
                resource_id=scope.path,
                resource_type=ROLE_ASSIGNMENT_TYPE,
                category="Account Management",
                metadata={"owners": [a.principal_id for a in owners]},
            )
        ]

    def _check_separation_of_duties(
        self, control_id: str, scope: Scope, assignments: list[RoleAssignment]
    ) -> list[Finding]:
        roles_by_principal: dict[str, set[str]] = defaultdict(set)
        for assignment in assignments:
            if _is_privileged(assignment):
                roles_by_principal[assignment.principal_id].add(assignment.role_name)

        findings = []
        for principal_id, roles in sorted(roles_by_principal.items()):
            if len(roles) < 2:
                continue
            findings.append(
                build_finding(
                    control_id,
                    title="Principal holds multiple privileged roles",
                    status=ComplianceStatus.NON_COMPLIANT,
                    severity=Severity.MEDIUM,
                    finding_type=FindingType.ACCESS_CONTROL,
                    description=(
                        f"Principal {principal_id} holds {', '.join(sorted(roles))} "
                        f"at {scope.path}"
                    ),
                    recommendation="Split privileged duties across separate principals.",
                    resource_id=principal_id,
                    resource_type=ROLE_ASSIGNMENT_TYPE,
                    category="Separation of Duties",
                    metadata={"roles": sorted(roles)},
                )
            )
        return findings

    def _check_privileged_assignments(
        self, control_id: str, assignments: list[RoleAssignment]
    ) -> list[Finding]:
        findings = []
        for assignment in assignments:
            if not _is_privileged(assignment):
                continue
            findings.append(
                build_finding(
                    control_id,
                    title=f"Privileged role {assignment.role_name} assigned at subscription scope",
                    status=ComplianceStatus.NON_COMPLIANT,
                    severity=Severity.HIGH,
                    finding_type=FindingType.ACCESS_CONTROL,
                    description=(
                        f"{assignment.principal_type or 'Principal'} "
                        f"{assignment.principal_id} is {assignment.role_name} "
                        f"on {assignment.scope}"
                    ),
                    recommendation=(
                        "Scope the assignment to the resource groups the principal "
                        "manages, or use Privileged Identity Management for "
                        "just-in-time elevation."
                    ),
                    resource_id=assignment.id,
                    resource_type=ROLE_ASSIGNMENT_TYPE,
                    category="Least Privilege",
                    metadata={
                        "principal_id": assignment.principal_id,
                        "role_name": assignment.role_name,
                    },
                )
            )
        return findings

    def _compliant(self, control_id: str, scope: Scope, count: int) -> Finding:
        return build_finding(
            control_id,
            title=f"Role assignments satisfy {control_id}",
            status=ComplianceStatus.COMPLIANT,
            severity=Severity.INFORMATIONAL,
            finding_type=FindingType.ACCESS_CONTROL,
            description=f"{count} role assignments reviewed at {scope.path}",
            resource_id=scope.path,
            resource_type=ROLE_ASSIGNMENT_TYPE,
            metadata={"assignment_count": count},
        )
