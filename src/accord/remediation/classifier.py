"""
Remediation classifier for Accord.

Decides whether a finding can be remediated automatically, how complex the
fix is and which actions to propose. Classification is a pure function of
the finding: no I/O, no clock, no randomness.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from accord.models import (
    Finding,
    RemediationAction,
    RemediationActionType,
    RemediationClassification,
    RemediationComplexity,
)
from accord.remediation.rules import (
    ACTION_TEMPLATES,
    AUTO_CONFIGURE_ACTION,
    DEFAULT_DURATION,
    DURATIONS,
    GROUPED_DEFAULT,
    GROUPED_RULES,
    LEGACY_DEFAULT,
    LEGACY_RULES,
    MANUAL_REVIEW_ACTION,
    MODERATE_KEYWORDS,
    SIMPLE_KEYWORDS,
    TYPED_RULES,
    ActionTemplate,
    ClassificationRule,
    first_match,
)


class RemediationClassifier:
    """
    Classifies findings against ordered rule tables.

    The classifier holds no mutable state; a single instance can be shared
    across threads.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        grouped_rules: tuple[ClassificationRule, ...] = GROUPED_RULES,
        typed_rules: tuple[ClassificationRule, ...] = TYPED_RULES,
        legacy_rules: tuple[ClassificationRule, ...] = LEGACY_RULES,
        action_templates: tuple[ActionTemplate, ...] = ACTION_TEMPLATES,
    ):
        """
        Initialize the classifier.

        Args:
            logger: Logger for debug traces of matched rules
            grouped_rules: Rules for multi-resource findings
            typed_rules: Rules keyed on finding type
            legacy_rules: Keyword rules keyed on title and resource type
            action_templates: Ordered remediation action templates
        """
        self._logger = logger or logging.getLogger(__name__)
        self._grouped_rules = grouped_rules
        self._typed_rules = typed_rules
        self._legacy_rules = legacy_rules
        self._action_templates = action_templates

    def classify(self, finding: Finding) -> RemediationClassification:
        """
        Classify a finding.

        Args:
            finding: Finding to classify

        Returns:
            RemediationClassification with remediability, complexity,
            estimated duration and proposed actions
        """
        remediable, rule_name = self.evaluate(finding)
        complexity = self.complexity(finding, remediable)
        duration = self.duration(complexity)
        actions = self.actions(finding, remediable, complexity, duration)

        self._logger.debug(
            f"Classified {finding.id}: rule={rule_name} "
            f"auto_remediable={remediable} complexity={complexity.value}"
        )
        return RemediationClassification(
            is_auto_remediable=remediable,
            complexity=complexity,
            estimated_duration=duration,
            actions=tuple(actions),
        )

    def is_auto_remediable(self, finding: Finding) -> bool:
        return self.evaluate(finding)[0]

    def evaluate(self, finding: Finding) -> tuple[bool, str]:
        """
        Walk the rule tables in precedence order.

        Returns:
            Tuple of (auto_remediable, name of the deciding rule)
        """
        if not finding.title.strip():
            return False, "empty-title"

        if finding.is_grouped():
            rule = first_match(self._grouped_rules, finding)
            if rule is not None:
                return rule.auto_remediable, rule.name
            return GROUPED_DEFAULT, "grouped-default"

        rule = first_match(self._typed_rules, finding)
        if rule is not None:
            return rule.auto_remediable, rule.name

        rule = first_match(self._legacy_rules, finding)
        if rule is not None:
            return rule.auto_remediable, rule.name
        return LEGACY_DEFAULT, "legacy-default"

    def complexity(self, finding: Finding, remediable: bool) -> RemediationComplexity:
        if not remediable:
            return RemediationComplexity.COMPLEX
        title = finding.title.lower()
        if any(k in title for k in SIMPLE_KEYWORDS):
            return RemediationComplexity.SIMPLE
        if any(k in title for k in MODERATE_KEYWORDS):
            return RemediationComplexity.MODERATE
        return RemediationComplexity.MODERATE

    def duration(self, complexity: RemediationComplexity) -> timedelta:
        return DURATIONS.get(complexity, DEFAULT_DURATION)

    def actions(
        self,
        finding: Finding,
        remediable: bool,
        complexity: RemediationComplexity,
        duration: timedelta,
    ) -> list[RemediationAction]:
        """
        Proposed remediation actions.

        Non-remediable findings get a single manual review action. Remediable
        findings get every matching template, or a generic configuration
        action carrying the finding's recommendation when none match.
        """
        if not remediable:
            return [
                RemediationAction(
                    name=MANUAL_REVIEW_ACTION,
                    description=finding.recommendation
                    or f"Review and remediate: {finding.title}",
                    action_type=RemediationActionType.MANUAL_ACTION,
                    complexity=RemediationComplexity.COMPLEX,
                    estimated_duration=timedelta(hours=1),
                    requires_approval=True,
                )
            ]

        actions = [
            RemediationAction(
                name=template.name,
                description=template.description,
                action_type=RemediationActionType.CONFIGURATION_CHANGE,
                complexity=template.complexity,
                estimated_duration=timedelta(minutes=template.minutes),
                requires_approval=template.requires_approval,
                parameters=dict(template.parameters),
            )
            for template in self._action_templates
            if template.matches(finding)
        ]
        if actions:
            return actions

        return [
            RemediationAction(
                name=AUTO_CONFIGURE_ACTION,
                description=finding.recommendation,
                action_type=RemediationActionType.CONFIGURATION_CHANGE,
                complexity=complexity,
                estimated_duration=duration,
            )
        ]
