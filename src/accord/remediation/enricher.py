"""
Finding enrichment with remediation classification.

FindingEnricher attaches the classifier's verdict to violation findings.
Findings are immutable, so enrichment returns new instances.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable

from accord.models import Finding
from accord.remediation.classifier import RemediationClassifier

logger = logging.getLogger(__name__)


class FindingEnricher:
    """Applies remediation classification to findings."""

    def __init__(self, classifier: RemediationClassifier | None = None):
        self.classifier = classifier or RemediationClassifier()

    def enrich(self, finding: Finding) -> Finding:
        """
        Enrich a single finding.

        Only violations are classified; compliant, not applicable and
        manual review findings are returned unchanged.

        Args:
            finding: Finding to enrich

        Returns:
            New finding with is_auto_remediable, remediation_complexity and
            remediation metadata set
        """
        if not finding.is_violation():
            return finding

        classification = self.classifier.classify(finding)
        metadata = dict(finding.metadata)
        metadata["estimated_duration_minutes"] = classification.estimated_minutes
        metadata["remediation_actions"] = [a.to_dict() for a in classification.actions]
        return replace(
            finding,
            is_auto_remediable=classification.is_auto_remediable,
            remediation_complexity=classification.complexity,
            metadata=metadata,
        )

    def enrich_all(self, findings: Iterable[Finding]) -> list[Finding]:
        """Enrich findings, preserving order."""
        enriched = [self.enrich(f) for f in findings]
        logger.debug(f"Enriched {len(enriched)} findings")
        return enriched

    def summarize(self, findings: Iterable[Finding]) -> dict[str, Any]:
        """
        Remediation summary over enriched findings.

        Returns:
            Dictionary with violation counts by remediability and complexity,
            and the total estimated minutes
        """
        violations = [f for f in findings if f.is_violation()]
        by_complexity: dict[str, int] = {}
        total_minutes = 0
        auto = 0
        for finding in violations:
            if finding.is_auto_remediable:
                auto += 1
            if finding.remediation_complexity is not None:
                key = finding.remediation_complexity.value
                by_complexity[key] = by_complexity.get(key, 0) + 1
            total_minutes += int(finding.metadata.get("estimated_duration_minutes", 0))
        return {
            "total_violations": len(violations),
            "auto_remediable": auto,
            "manual": len(violations) - auto,
            "by_complexity": by_complexity,
            "estimated_minutes": total_minutes,
        }
