"""
Tests for RemediationClassifier and its rule tables.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from accord.models import (
    FindingType,
    RemediationActionType,
    RemediationComplexity,
)
from accord.remediation import (
    AUTO_CONFIGURE_ACTION,
    GROUPED_RULES,
    MANUAL_REVIEW_ACTION,
    TYPED_RULES,
    ClassificationRule,
    RemediationClassifier,
)
from accord.remediation.rules import first_match, title_has

from conftest import STORAGE_TYPE

KEYVAULT = "Microsoft.KeyVault/vaults"
NSG = "Microsoft.Network/networkSecurityGroups"
SQL = "Microsoft.Sql/servers"
VM = "Microsoft.Compute/virtualMachines"


@pytest.fixture
def classifier():
    return RemediationClassifier()


class TestRuleTables:
    """Ordering and first-match semantics of the tables."""

    def test_access_control_is_first_grouped_row(self):
        assert GROUPED_RULES[0].name == "grouped-access-control"
        assert GROUPED_RULES[0].auto_remediable is False

    def test_first_match_wins(self, make_finding):
        rules = (
            ClassificationRule("first", title_has("https"), False),
            ClassificationRule("second", title_has("https"), True),
        )
        assert first_match(rules, make_finding()).name == "first"

    def test_no_match(self, make_finding):
        assert first_match(TYPED_RULES, make_finding(finding_type=FindingType.BACKUP)) is None


class TestEvaluate:
    """Auto-remediation decisions."""

    def test_storage_encryption(self, classifier, make_finding):
        finding = make_finding(
            finding_type=FindingType.ENCRYPTION,
            title="Storage encryption disabled",
            resource_type=STORAGE_TYPE,
        )

        result = classifier.classify(finding)

        assert result.is_auto_remediable
        assert result.complexity == RemediationComplexity.MODERATE
        assert result.estimated_duration == timedelta(minutes=15)
        assert [a.name for a in result.actions] == ["Enable Storage Encryption"]
        assert classifier.evaluate(finding) == (True, "typed-encryption-network")

    def test_grouped_data_classification(self, classifier, make_finding):
        finding = make_finding(
            resource_type="Multiple",
            finding_type=FindingType.CONFIGURATION,
            title="Data classification missing sensitivity label",
        )

        assert classifier.evaluate(finding) == (False, "grouped-data-classification")

    @pytest.mark.parametrize(
        "resource_type,title",
        [
            ("Multiple", "TLS not enforced for role assignment"),
            ("Multiple", "Privileged access assignment review"),
            (STORAGE_TYPE, "Storage account HTTPS required"),
            ("Microsoft.Authorization/roleAssignments", "Owner assigned at subscription"),
        ],
    )
    def test_access_control_never_auto_remediable(
        self, classifier, make_finding, resource_type, title
    ):
        finding = make_finding(
            finding_type=FindingType.ACCESS_CONTROL,
            resource_type=resource_type,
            title=title,
        )

        result = classifier.classify(finding)

        assert not result.is_auto_remediable
        assert [a.name for a in result.actions] == [MANUAL_REVIEW_ACTION]

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("HTTPS not enforced on 4 storage accounts", "grouped-transport"),
            ("Diagnostic settings disabled on key vaults", "grouped-diagnostics"),
            ("Backup not configured for virtual machines", "grouped-backup"),
            ("Role access assignment exceeds policy", "grouped-role-assignment"),
            ("Some other grouped problem", "grouped-default"),
        ],
    )
    def test_grouped_rows(self, classifier, make_finding, title, expected):
        finding = make_finding(
            resource_type="Multiple",
            finding_type=FindingType.COMPLIANCE,
            title=title,
        )
        assert classifier.evaluate(finding)[1] == expected

    def test_compliance_boundary_controls(self, classifier, make_finding):
        boundary = make_finding(
            finding_type=FindingType.COMPLIANCE,
            title="Boundary control gap",
            affected_controls=frozenset({"sc-7"}),
        )
        other = make_finding(
            finding_type=FindingType.COMPLIANCE,
            title="Boundary control gap",
            affected_controls=frozenset({"PL-2"}),
        )

        assert classifier.evaluate(boundary) == (True, "typed-compliance-boundary")
        assert classifier.evaluate(other) == (False, "typed-compliance")

    def test_security_monitoring(self, classifier, make_finding):
        monitoring = make_finding(
            finding_type=FindingType.SECURITY, title="Log Analytics agent missing"
        )
        other = make_finding(finding_type=FindingType.SECURITY, title="Weak password policy")

        assert classifier.is_auto_remediable(monitoring)
        assert not classifier.is_auto_remediable(other)

    @pytest.mark.parametrize(
        "resource_type,title,expected",
        [
            (KEYVAULT, "Key Vault soft delete disabled", "keyvault-soft-delete"),
            (NSG, "NSG allows RDP from internet", "nsg-rdp"),
            ("Microsoft.Sql/servers", "SQL auditing disabled", "sql-auditing"),
            (SQL, "Transparent data encryption not enabled", "sql-tde"),
            (SQL, "Threat detection disabled", "sql-threat-detection"),
            (STORAGE_TYPE, "Diagnostic settings not configured", "diagnostics-disabled"),
            (NSG, "Diagnostic logs not enabled", "diagnostics-disabled"),
            ("Microsoft.Web/sites", "Web app HTTPS only disabled", "webapp-https"),
            (STORAGE_TYPE, "Required tags missing", "tags-missing"),
        ],
    )
    def test_legacy_rows(self, classifier, make_finding, resource_type, title, expected):
        finding = make_finding(
            finding_type=FindingType.BACKUP, resource_type=resource_type, title=title
        )
        assert classifier.evaluate(finding) == (True, expected)

    @pytest.mark.parametrize(
        "resource_type,title",
        [
            (SQL, "SQL auditing retention below 90 days"),
            (SQL, "SQL auditing not enabled"),
            (SQL, "TDE uses service-managed key"),
            (SQL, "Threat detection email recipients missing"),
            ("Microsoft.Insights/components", "Diagnostic export disabled"),
        ],
    )
    def test_legacy_rows_require_qualifiers(
        self, classifier, make_finding, resource_type, title
    ):
        finding = make_finding(
            finding_type=FindingType.MONITORING, resource_type=resource_type, title=title
        )
        assert classifier.evaluate(finding) == (False, "legacy-default")

    @pytest.mark.parametrize("title", ["", "   "])
    def test_empty_title_is_not_remediable(self, classifier, make_finding, title):
        finding = make_finding(finding_type=FindingType.ENCRYPTION, title=title)

        result = classifier.classify(finding)

        assert classifier.evaluate(finding) == (False, "empty-title")
        assert [a.name for a in result.actions] == [MANUAL_REVIEW_ACTION]

    def test_legacy_default(self, classifier, make_finding):
        finding = make_finding(
            finding_type=FindingType.MONITORING,
            resource_type="Microsoft.Insights/scheduledQueryRules",
            title="Audit review alert rules not configured",
        )
        assert classifier.evaluate(finding) == (False, "legacy-default")


class TestComplexityAndActions:
    """Complexity tiers, durations and proposed actions."""

    def test_deterministic(self, classifier, make_finding):
        finding = make_finding()
        assert classifier.classify(finding) == classifier.classify(finding)

    def test_simple_keyword(self, classifier, make_finding):
        result = classifier.classify(make_finding())

        assert result.complexity == RemediationComplexity.SIMPLE
        assert result.estimated_minutes == 5
        assert [a.name for a in result.actions] == ["Require HTTPS Only"]

    def test_not_remediable_is_complex(self, classifier, make_finding):
        finding = make_finding(
            finding_type=FindingType.ACCESS_CONTROL,
            recommendation="Remove the Owner assignment.",
        )

        result = classifier.classify(finding)

        assert result.complexity == RemediationComplexity.COMPLEX
        assert result.estimated_duration == timedelta(hours=1)
        action = result.actions[0]
        assert action.action_type == RemediationActionType.MANUAL_ACTION
        assert action.requires_approval
        assert action.description == "Remove the Owner assignment."

    def test_generic_action_when_no_template(self, classifier, make_finding):
        finding = make_finding(title="Storage account allows public network access")

        result = classifier.classify(finding)

        assert result.complexity == RemediationComplexity.MODERATE
        assert len(result.actions) == 1
        assert result.actions[0].name == AUTO_CONFIGURE_ACTION
        assert result.actions[0].description == finding.recommendation

    def test_multiple_templates(self, classifier, make_finding):
        finding = make_finding(
            resource_type=KEYVAULT,
            title="Key Vault diagnostic settings and soft delete disabled",
        )

        names = [a.name for a in classifier.classify(finding).actions]

        assert names == ["Enable Soft Delete", "Enable Diagnostic Settings"]

    def test_template_parameters(self, classifier, make_finding):
        finding = make_finding(title="Storage account minimum TLS version below 1.2")

        action = classifier.classify(finding).actions[0]

        assert action.name == "Update Minimum TLS Version"
        assert action.parameters == {"minimumTlsVersion": "1.2"}

    def test_nsg_action_requires_approval(self, classifier, make_finding):
        finding = make_finding(
            finding_type=FindingType.NETWORK_SECURITY,
            resource_type=NSG,
            title="Network security group allows remote access port from the internet",
        )

        actions = classifier.classify(finding).actions

        assert actions[0].name == "Update NSG Rules"
        assert actions[0].requires_approval

    @pytest.mark.parametrize(
        "resource_type,title,expected",
        [
            (VM, "OS disk encryption disabled", ["Enable Azure Disk Encryption"]),
            (
                STORAGE_TYPE,
                "Virtual machine disk encryption disabled",
                ["Enable Storage Encryption"],
            ),
            (
                SQL,
                "Transparent data encryption disabled for storage",
                ["Enable Transparent Data Encryption"],
            ),
        ],
    )
    def test_resource_terms_match_resource_type_only(
        self, classifier, make_finding, resource_type, title, expected
    ):
        finding = make_finding(
            finding_type=FindingType.ENCRYPTION, resource_type=resource_type, title=title
        )

        assert [a.name for a in classifier.classify(finding).actions] == expected
