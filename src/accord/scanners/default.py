"""Fallback checker for controls without automated coverage."""

from __future__ import annotations

from accord.cloud.base import ResourceProvider
from accord.models import Control, Finding, Scope
from accord.scanners.base import ControlChecker, manual_review_finding

INSUFFICIENT_COVERAGE = "insufficient automated coverage"


class DefaultChecker(ControlChecker):
    """
    Deterministic checker used when no registered checker matches.

    Always reports that the control needs manual review; it never
    simulates results.
    """

    @property
    def name(self) -> str:
        return "default"

    def check(
        self, scope: Scope, control: Control, provider: ResourceProvider
    ) -> list[Finding]:
        return [
            manual_review_finding(
                control.id,
                INSUFFICIENT_COVERAGE,
                scope=scope,
            )
        ]
