"""
Ordered rule tables for remediation classification.

Each table is evaluated top to bottom and the first matching row wins.
Predicates only read the finding, so every table can be tested on its own.

Precedence:
    1. GROUPED_RULES   - findings that summarize multiple resources
    2. TYPED_RULES     - by finding type (and affected controls)
    3. LEGACY_RULES    - by title keywords within a resource type
    4. LEGACY_DEFAULT  - not auto-remediable
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from accord.models import Finding, FindingType, RemediationComplexity

Predicate = Callable[[Finding], bool]


@dataclass(frozen=True)
class ClassificationRule:
    """A table row: when predicate matches, the finding's remediability."""

    name: str
    predicate: Predicate
    auto_remediable: bool

    def matches(self, finding: Finding) -> bool:
        return self.predicate(finding)


# Predicate builders


def title_has(*terms: str) -> Predicate:
    """Title contains any of terms (case-insensitive)."""
    return lambda f: any(t in f.title.lower() for t in terms)


def resource_has(*terms: str) -> Predicate:
    """Resource type contains any of terms (case-insensitive)."""
    return lambda f: any(t in f.resource_type.lower() for t in terms)


def type_is(*types: FindingType) -> Predicate:
    return lambda f: f.finding_type in types


def controls_include(*control_ids: str) -> Predicate:
    wanted = frozenset(control_ids)
    return lambda f: bool(f.affected_controls & wanted)


def all_of(*predicates: Predicate) -> Predicate:
    return lambda f: all(p(f) for p in predicates)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda f: any(p(f) for p in predicates)


def first_match(
    rules: tuple[ClassificationRule, ...], finding: Finding
) -> ClassificationRule | None:
    """First row of rules matching finding, or None."""
    for rule in rules:
        if rule.matches(finding):
            return rule
    return None


_DISABLED = ("disabled", "not enabled")
_DISABLED_OR_MISSING = ("disabled", "not enabled", "not configured")


GROUPED_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "grouped-access-control", type_is(FindingType.ACCESS_CONTROL), False
    ),
    ClassificationRule("grouped-transport", title_has("tls", "https"), True),
    ClassificationRule(
        "grouped-diagnostics",
        all_of(title_has("diagnostic"), title_has(*_DISABLED)),
        True,
    ),
    ClassificationRule(
        "grouped-encryption",
        all_of(title_has("encryption"), title_has(*_DISABLED)),
        True,
    ),
    ClassificationRule(
        "grouped-logging",
        all_of(
            title_has("logging", "log analytics", "monitoring"),
            title_has(*_DISABLED_OR_MISSING),
        ),
        True,
    ),
    ClassificationRule(
        "grouped-backup",
        all_of(
            title_has("backup", "recovery", "disaster"),
            title_has(*_DISABLED_OR_MISSING),
        ),
        True,
    ),
    ClassificationRule("grouped-mfa", title_has("multi-factor", "mfa"), True),
    ClassificationRule(
        "grouped-network", title_has("network security", "firewall", "nsg"), True
    ),
    ClassificationRule(
        "grouped-baseline",
        title_has("configuration baseline", "security baseline"),
        True,
    ),
    ClassificationRule(
        "grouped-role-assignment",
        all_of(title_has("access"), title_has("assignment")),
        False,
    ),
    ClassificationRule(
        "grouped-data-classification",
        title_has("data classification", "sensitivity label"),
        False,
    ),
)

GROUPED_DEFAULT = True


TYPED_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "typed-encryption-network",
        type_is(FindingType.ENCRYPTION, FindingType.NETWORK_SECURITY),
        True,
    ),
    ClassificationRule("typed-configuration", type_is(FindingType.CONFIGURATION), True),
    ClassificationRule("typed-access-control", type_is(FindingType.ACCESS_CONTROL), False),
    ClassificationRule(
        "typed-security-monitoring",
        all_of(
            type_is(FindingType.SECURITY),
            title_has(
                "diagnostic",
                "monitoring",
                "log analytics",
                "authentication monitoring",
            ),
        ),
        True,
    ),
    ClassificationRule("typed-security", type_is(FindingType.SECURITY), False),
    ClassificationRule(
        "typed-compliance-boundary",
        all_of(
            type_is(FindingType.COMPLIANCE),
            controls_include("SC-7", "SC-8", "AU-2", "AU-12"),
        ),
        True,
    ),
    ClassificationRule("typed-compliance", type_is(FindingType.COMPLIANCE), False),
)


_STORAGE = resource_has("storage")
_VM = resource_has("virtualmachine")
_NSG = resource_has("networksecuritygroup")
_KEYVAULT = resource_has("keyvault")
_SQL = resource_has("microsoft.sql/servers", "microsoft.sql/databases")
_DIAGNOSABLE = resource_has(
    "microsoft.storage",
    "microsoft.compute",
    "microsoft.keyvault",
    "microsoft.sql",
    "microsoft.network",
    "microsoft.web",
)
_COSMOS = resource_has("documentdb", "cosmos")
_WEB = resource_has("web/sites")

LEGACY_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "storage-encryption",
        all_of(_STORAGE, title_has("encryption"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "storage-https",
        all_of(_STORAGE, title_has("https"), title_has("required")),
        True,
    ),
    ClassificationRule(
        "storage-tls",
        all_of(_STORAGE, title_has("tls"), title_has("version", "1.0", "1.1")),
        True,
    ),
    ClassificationRule(
        "storage-public-access",
        all_of(_STORAGE, title_has("public"), title_has("access")),
        True,
    ),
    ClassificationRule(
        "vm-disk-encryption",
        all_of(_VM, title_has("disk"), title_has("encryption")),
        True,
    ),
    ClassificationRule(
        "vm-diagnostics",
        all_of(_VM, title_has("diagnostic"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "nsg-open-port",
        all_of(_NSG, title_has("port"), title_has("open", "unrestricted")),
        True,
    ),
    ClassificationRule("nsg-rdp", all_of(_NSG, title_has("rdp", "3389")), True),
    ClassificationRule("nsg-ssh", all_of(_NSG, title_has("ssh", "22")), True),
    ClassificationRule(
        "nsg-management-port",
        all_of(_NSG, title_has("management port", "administrative")),
        True,
    ),
    ClassificationRule(
        "keyvault-soft-delete",
        all_of(_KEYVAULT, title_has("soft delete"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "keyvault-purge-protection",
        all_of(_KEYVAULT, title_has("purge protection"), title_has(*_DISABLED)),
        True,
    ),
    ClassificationRule(
        "keyvault-diagnostics",
        all_of(_KEYVAULT, title_has("diagnostic"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "keyvault-rbac",
        all_of(_KEYVAULT, title_has("rbac"), title_has("not enabled")),
        True,
    ),
    ClassificationRule(
        "sql-tde",
        all_of(
            _SQL,
            title_has("tde", "transparent data encryption"),
            title_has(*_DISABLED),
        ),
        True,
    ),
    ClassificationRule(
        "sql-auditing",
        all_of(_SQL, title_has("auditing"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "sql-threat-detection",
        all_of(_SQL, title_has("threat detection"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "sql-open-firewall",
        all_of(_SQL, title_has("firewall"), title_has("0.0.0.0")),
        True,
    ),
    ClassificationRule(
        "cosmos-diagnostics",
        all_of(_COSMOS, title_has("diagnostic"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "webapp-https",
        all_of(_WEB, title_has("https"), title_has("only")),
        True,
    ),
    ClassificationRule(
        "webapp-tls",
        all_of(_WEB, title_has("tls"), title_has("version")),
        True,
    ),
    ClassificationRule(
        "webapp-diagnostics",
        all_of(_WEB, title_has("diagnostic"), title_has("disabled")),
        True,
    ),
    ClassificationRule(
        "diagnostics-disabled",
        all_of(
            title_has("diagnostic"),
            title_has(*_DISABLED_OR_MISSING),
            _DIAGNOSABLE,
        ),
        True,
    ),
    ClassificationRule(
        "tags-missing",
        all_of(title_has("tag"), title_has("missing", "required")),
        True,
    ),
    ClassificationRule(
        "backup-not-configured",
        all_of(
            title_has("backup"),
            title_has("not configured", "disabled"),
            any_of(_VM, _SQL),
        ),
        True,
    ),
)

LEGACY_DEFAULT = False


# Complexity and duration

SIMPLE_KEYWORDS = (
    "tag",
    "https",
    "tls version",
    "diagnostic",
    "soft delete",
    "purge protection",
)
MODERATE_KEYWORDS = ("encryption", "firewall", "nsg", "backup")

DURATIONS: dict[RemediationComplexity, timedelta] = {
    RemediationComplexity.SIMPLE: timedelta(minutes=5),
    RemediationComplexity.MODERATE: timedelta(minutes=15),
    RemediationComplexity.COMPLEX: timedelta(hours=1),
}
DEFAULT_DURATION = timedelta(minutes=30)


# Remediation action templates


@dataclass(frozen=True)
class ActionTemplate:
    """
    Remediation action proposed when a finding matches.

    title_terms groups must all match the title (any term per group);
    resource_terms groups must all match the resource type.
    """

    name: str
    description: str
    title_terms: tuple[tuple[str, ...], ...]
    resource_terms: tuple[tuple[str, ...], ...] = ()
    complexity: RemediationComplexity = RemediationComplexity.SIMPLE
    minutes: int = 5
    requires_approval: bool = False
    parameters: dict[str, str] = field(default_factory=dict)

    def matches(self, finding: Finding) -> bool:
        title = finding.title.lower()
        resource_type = finding.resource_type.lower()
        return all(any(t in title for t in group) for group in self.title_terms) and all(
            any(t in resource_type for t in group) for group in self.resource_terms
        )


ACTION_TEMPLATES: tuple[ActionTemplate, ...] = (
    ActionTemplate(
        name="Enable Storage Encryption",
        description="Enable storage service encryption for blob and file services",
        title_terms=(("encryption",),),
        resource_terms=(("storage",),),
        complexity=RemediationComplexity.MODERATE,
        minutes=10,
    ),
    ActionTemplate(
        name="Enable Azure Disk Encryption",
        description="Encrypt virtual machine disks with Azure Disk Encryption",
        title_terms=(("disk",), ("encryption",)),
        resource_terms=(("virtualmachine", "microsoft.compute"),),
        complexity=RemediationComplexity.MODERATE,
        minutes=20,
        requires_approval=True,
    ),
    ActionTemplate(
        name="Update NSG Rules",
        description="Restrict inbound network security group rules for exposed ports",
        title_terms=(("port",),),
        resource_terms=(("networksecuritygroup",),),
        complexity=RemediationComplexity.MODERATE,
        minutes=10,
        requires_approval=True,
    ),
    ActionTemplate(
        name="Enable Soft Delete",
        description="Enable soft delete on the key vault",
        title_terms=(("soft delete",),),
        resource_terms=(("keyvault",),),
    ),
    ActionTemplate(
        name="Enable Purge Protection",
        description="Enable purge protection on the key vault",
        title_terms=(("purge protection",),),
        resource_terms=(("keyvault",),),
        requires_approval=True,
    ),
    ActionTemplate(
        name="Enable Transparent Data Encryption",
        description="Enable transparent data encryption on SQL databases",
        title_terms=(("tde", "transparent data encryption"),),
        resource_terms=(("sql",),),
        complexity=RemediationComplexity.MODERATE,
        minutes=15,
    ),
    ActionTemplate(
        name="Enable Diagnostic Settings",
        description="Send resource logs and metrics to Log Analytics",
        title_terms=(("diagnostic",),),
    ),
    ActionTemplate(
        name="Update Minimum TLS Version",
        description="Require TLS 1.2 as the minimum TLS version",
        title_terms=(("tls",),),
        parameters={"minimumTlsVersion": "1.2"},
    ),
    ActionTemplate(
        name="Require HTTPS Only",
        description="Reject plain HTTP traffic",
        title_terms=(("https",),),
    ),
    ActionTemplate(
        name="Apply Required Tags",
        description="Apply the organization's required resource tags",
        title_terms=(("tag",),),
        minutes=2,
    ),
    ActionTemplate(
        name="Configure Audit Alert Rules",
        description="Create scheduled query alert rules for audit review",
        title_terms=(("alert", "audit review"),),
        resource_terms=(("scheduledqueryrules", "insights"),),
        complexity=RemediationComplexity.MODERATE,
        minutes=15,
    ),
    ActionTemplate(
        name="Configure Log Retention",
        description="Retain workspace logs for at least 90 days",
        title_terms=(("retention",),),
        resource_terms=(("operationalinsights",),),
        parameters={"retentionDays": "90"},
    ),
)

AUTO_CONFIGURE_ACTION = "Auto-Configure Compliance Setting"
MANUAL_REVIEW_ACTION = "Manual Review Required"
