"""
Remediation data model for Accord.

Defines proposed remediation actions and the classification produced
for a finding by the remediation classifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

from accord.models.finding import RemediationComplexity


class RemediationActionType(Enum):
    """Kind of change a remediation action performs."""

    CONFIGURATION_CHANGE = "configuration_change"
    POLICY_ASSIGNMENT = "policy_assignment"
    RESOURCE_UPDATE = "resource_update"
    SCRIPT_EXECUTION = "script_execution"
    MANUAL_ACTION = "manual_action"


@dataclass(frozen=True)
class RemediationAction:
    """
    A proposed remediation step. Actions are proposals only; Accord
    never executes them.

    Attributes:
        name: Short action name, e.g. "Enable Diagnostic Settings"
        description: What the action changes
        action_type: Kind of change
        complexity: Effort tier of this action
        estimated_duration: Expected time to apply
        requires_approval: Whether a human must approve before applying
        parameters: Action parameters, e.g. {"minimumTlsVersion": "1.2"}
    """

    name: str
    description: str
    action_type: RemediationActionType
    complexity: RemediationComplexity
    estimated_duration: timedelta
    requires_approval: bool = False
    parameters: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "action_type": self.action_type.value,
            "complexity": self.complexity.value,
            "estimated_duration_minutes": int(
                self.estimated_duration.total_seconds() // 60
            ),
            "requires_approval": self.requires_approval,
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True)
class RemediationClassification:
    """
    Remediation verdict for one finding.

    Attributes:
        is_auto_remediable: Whether the finding can be fixed automatically
        complexity: Effort tier
        estimated_duration: Expected time to remediate
        actions: Proposed actions, never empty
    """

    is_auto_remediable: bool
    complexity: RemediationComplexity
    estimated_duration: timedelta
    actions: tuple[RemediationAction, ...] = ()

    @property
    def estimated_minutes(self) -> int:
        return int(self.estimated_duration.total_seconds() // 60)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_auto_remediable": self.is_auto_remediable,
            "complexity": self.complexity.value,
            "estimated_duration_minutes": self.estimated_minutes,
            "actions": [a.to_dict() for a in self.actions],
        }
