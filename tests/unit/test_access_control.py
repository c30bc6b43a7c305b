"""
Tests for AccessControlChecker.
"""

from __future__ import annotations

import pytest

from accord.cloud import AuthorizationError, InMemoryResourceProvider, RoleAssignment
from accord.models import ComplianceStatus, Control, Severity
from accord.scanners import AccessControlChecker

from conftest import SUBSCRIPTION_SCOPE


def owner(principal_id: str, role: str = "Owner") -> RoleAssignment:
    return RoleAssignment(
        id=f"{SUBSCRIPTION_SCOPE}/providers/Microsoft.Authorization/roleAssignments/{principal_id}-{role}",
        principal_id=principal_id,
        principal_type="User",
        role_name=role,
        scope=SUBSCRIPTION_SCOPE,
    )


def control(control_id: str) -> Control:
    return Control(id=control_id, title=control_id, family="AC")


@pytest.fixture
def checker():
    return AccessControlChecker()


class TestLeastPrivilege:
    """AC-6 style checks for privileged subscription assignments."""

    def test_flags_subscription_owner(self, checker, scope, role_assignments):
        provider = InMemoryResourceProvider(role_assignments=role_assignments)

        findings = checker(scope, control("AC-6"), provider)

        assert len(findings) == 1
        assert findings[0].compliance_status == ComplianceStatus.NON_COMPLIANT
        assert findings[0].severity == Severity.HIGH
        assert findings[0].metadata == {"principal_id": "user-admin", "role_name": "Owner"}

    def test_resource_group_assignments_ignored(self, checker, scope, role_assignments):
        provider = InMemoryResourceProvider(
            role_assignments=[a for a in role_assignments if a.role_name != "Owner"]
        )

        findings = checker(scope, control("AC-6"), provider)

        assert [f.compliance_status for f in findings] == [ComplianceStatus.COMPLIANT]
        assert findings[0].title == "Role assignments satisfy AC-6"
        assert findings[0].metadata["assignment_count"] == 2


class TestAccountManagement:
    """AC-2 owner count checks."""

    def test_few_owners_compliant(self, checker, scope, role_assignments):
        provider = InMemoryResourceProvider(role_assignments=role_assignments)

        findings = checker(scope, control("AC-2"), provider)

        assert findings[0].compliance_status == ComplianceStatus.COMPLIANT

    def test_too_many_owners(self, checker, scope):
        provider = InMemoryResourceProvider(
            role_assignments=[owner(f"user-{i}") for i in range(4)]
        )

        findings = checker(scope, control("AC-2(1)"), provider)

        assert len(findings) == 1
        assert findings[0].title == "Excessive subscription owner assignments"
        assert findings[0].affected_controls == frozenset({"AC-2(1)"})
        assert len(findings[0].metadata["owners"]) == 4


class TestSeparationOfDuties:
    """AC-5 checks."""

    def test_multiple_privileged_roles(self, checker, scope):
        provider = InMemoryResourceProvider(
            role_assignments=[
                owner("user-admin"),
                owner("user-admin", "User Access Administrator"),
                owner("user-ops", "Contributor"),
            ]
        )

        findings = checker(scope, control("AC-5"), provider)

        assert len(findings) == 1
        assert findings[0].resource_id == "user-admin"
        assert findings[0].metadata["roles"] == ["Owner", "User Access Administrator"]


class TestFailures:
    """Unavailable or empty role data."""

    def test_provider_error_needs_manual_review(self, checker, scope):
        provider = InMemoryResourceProvider()
        provider.fail("get_role_assignments", AuthorizationError("forbidden"))

        findings = checker(scope, control("AC-6"), provider)

        assert findings[0].compliance_status == ComplianceStatus.MANUAL_REVIEW_REQUIRED
        assert "AuthorizationError" in findings[0].metadata["reason"]

    def test_no_assignments_not_applicable(self, checker, scope):
        findings = checker(scope, control("AC-6"), InMemoryResourceProvider())

        assert findings[0].compliance_status == ComplianceStatus.NOT_APPLICABLE
