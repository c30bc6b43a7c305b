"""
Remediation classification for Accord.

Provides the rule-table driven RemediationClassifier and the
FindingEnricher that applies it to findings.
"""

from accord.remediation.classifier import RemediationClassifier
from accord.remediation.enricher import FindingEnricher
from accord.remediation.rules import (
    ACTION_TEMPLATES,
    AUTO_CONFIGURE_ACTION,
    GROUPED_RULES,
    LEGACY_RULES,
    MANUAL_REVIEW_ACTION,
    TYPED_RULES,
    ActionTemplate,
    ClassificationRule,
)

__all__ = [
    "RemediationClassifier",
    "FindingEnricher",
    # Rule tables
    "ACTION_TEMPLATES",
    "AUTO_CONFIGURE_ACTION",
    "GROUPED_RULES",
    "LEGACY_RULES",
    "MANUAL_REVIEW_ACTION",
    "TYPED_RULES",
    "ActionTemplate",
    "ClassificationRule",
]
