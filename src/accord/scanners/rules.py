"""
Rule loader for Accord.

Loads declarative property rules and advisory text from YAML files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from accord.models import FindingType, Severity, normalize_control_id
from accord.scanners.conditions import Condition, ConditionError
from accord.scanners.property_checker import (
    NOT_FOUND_MANUAL_REVIEW,
    NOT_FOUND_NON_COMPLIANT,
    PropertyRule,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_RULES_PATH = DATA_DIR / "rules.yaml"
DEFAULT_ADVISORIES_PATH = DATA_DIR / "advisories.yaml"

_REQUIRED_FIELDS = ("id", "control", "name", "title", "resource_types", "check")


class RuleLoadError(Exception):
    """Exception raised when rule loading fails."""

    def __init__(self, message: str, source_path: str | None = None):
        self.source_path = source_path
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise RuleLoadError("File not found", str(path))
    except yaml.YAMLError as e:
        raise RuleLoadError(f"Invalid YAML: {e}", str(path))


def parse_rule(data: dict[str, Any], source_path: str | None = None) -> PropertyRule:
    """
    Convert a rule mapping into a PropertyRule.

    Raises:
        RuleLoadError: If required fields are missing or invalid
    """
    missing = [f for f in _REQUIRED_FIELDS if not data.get(f)]
    if missing:
        rule_id = data.get("id", "<unnamed>")
        raise RuleLoadError(
            f"Rule {rule_id} missing required field(s): {', '.join(missing)}",
            source_path,
        )

    rule_id = str(data["id"])
    try:
        condition = Condition.from_dict(data["check"])
        severity = Severity.from_string(str(data.get("severity", "medium")))
        finding_type = FindingType.from_string(
            str(data.get("finding_type", "configuration"))
        )
        control_id = normalize_control_id(str(data["control"]))
    except (ConditionError, ValueError) as e:
        raise RuleLoadError(f"Rule {rule_id}: {e}", source_path)

    not_found = str(data.get("not_found", NOT_FOUND_NON_COMPLIANT))
    if not_found not in (NOT_FOUND_NON_COMPLIANT, NOT_FOUND_MANUAL_REVIEW):
        raise RuleLoadError(
            f"Rule {rule_id}: invalid not_found policy {not_found!r}", source_path
        )

    resource_types = data["resource_types"]
    if isinstance(resource_types, str):
        resource_types = [resource_types]

    return PropertyRule(
        id=rule_id,
        control_id=control_id,
        name=str(data["name"]),
        title=str(data["title"]),
        resource_types=tuple(str(t) for t in resource_types),
        condition=condition,
        severity=severity,
        finding_type=finding_type,
        category=str(data.get("category", "")),
        recommendation=str(data.get("recommendation", "")),
        description=str(data.get("description", "")),
        not_found=not_found,
        grouped=bool(data.get("grouped", False)),
        require_resources=bool(data.get("require_resources", False)),
    )


def load_rules(path: str | Path | None = None) -> list[PropertyRule]:
    """
    Load property rules from a YAML file.

    Args:
        path: Rules file; defaults to the bundled rules

    Returns:
        Rules in file order

    Raises:
        RuleLoadError: If the file cannot be read or a rule is invalid
    """
    rules_path = Path(path) if path else DEFAULT_RULES_PATH
    data = _read_yaml(rules_path)
    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise RuleLoadError("Expected a mapping with a 'rules' list", str(rules_path))

    rules: list[PropertyRule] = []
    seen: set[str] = set()
    for entry in data["rules"]:
        if not isinstance(entry, dict):
            raise RuleLoadError("Each rule must be a mapping", str(rules_path))
        rule = parse_rule(entry, str(rules_path))
        if rule.id in seen:
            raise RuleLoadError(f"Duplicate rule id: {rule.id}", str(rules_path))
        seen.add(rule.id)
        rules.append(rule)

    logger.info(f"Loaded {len(rules)} property rules from {rules_path}")
    return rules


def load_advisories(path: str | Path | None = None) -> dict[str, str]:
    """
    Load advisory remediation text keyed by rule id.

    Raises:
        RuleLoadError: If the file cannot be read or is not a mapping
    """
    advisories_path = Path(path) if path else DEFAULT_ADVISORIES_PATH
    data = _read_yaml(advisories_path) or {}
    if not isinstance(data, dict):
        raise RuleLoadError("Expected a mapping of rule id to text", str(advisories_path))
    return {str(k): str(v).strip() for k, v in data.items()}


def group_rules_by_control(rules: list[PropertyRule]) -> dict[str, list[PropertyRule]]:
    """Group rules by control id, preserving file order."""
    grouped: dict[str, list[PropertyRule]] = {}
    for rule in rules:
        grouped.setdefault(rule.control_id, []).append(rule)
    return grouped
