"""
Structured conditions evaluated against resource property documents.

A condition compares the value at a dotted path with an expected value
using a named operator. Conditions compose with all_of / any_of / not,
and list-valued properties are tested with any_item / no_item whose
value is a nested condition applied to each element.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

OPERATORS = (
    "==",
    "!=",
    ">",
    "<",
    ">=",
    "<=",
    "in",
    "not_in",
    "contains",
    "starts_with",
    "ends_with",
    "matches",
    "exists",
    "not_exists",
    "not_empty",
    "any_item",
    "no_item",
)


class ConditionError(Exception):
    """Raised for malformed condition definitions."""

    pass


def get_path_value(document: Any, path: str) -> Any:
    """
    Get the value at a dotted path.

    Dictionary keys are matched exactly first and then case-insensitively,
    since providers are inconsistent about property casing.

    Args:
        document: Property document
        path: Dot-separated path (e.g., "encryption.services.blob.enabled")

    Returns:
        Value at path, or None when any segment is missing
    """
    if not path:
        return document
    value: Any = document
    for part in path.split("."):
        if isinstance(value, dict):
            if part in value:
                value = value[part]
                continue
            lowered = part.lower()
            for key in value:
                if isinstance(key, str) and key.lower() == lowered:
                    value = value[key]
                    break
            else:
                return None
        elif isinstance(value, list) and part.isdigit():
            index = int(part)
            if index >= len(value):
                return None
            value = value[index]
        else:
            return None
    return value


def _fold(value: Any) -> Any:
    """Lower-case strings (recursively in lists) for case-insensitive compares."""
    if isinstance(value, str):
        return value.lower()
    if isinstance(value, (list, tuple, set)):
        return [_fold(v) for v in value]
    return value


def compare(left: Any, operator: str, right: Any) -> bool:
    """
    Perform a comparison operation.

    String comparisons ignore case. Ordering comparisons between
    incompatible types are false rather than errors.

    Args:
        left: Value found in the document
        operator: Comparison operator
        right: Expected value

    Returns:
        Comparison result
    """
    if operator == "exists":
        return left is not None
    if operator == "not_exists":
        return left is None
    if operator == "not_empty":
        return left is not None and left != "" and left != [] and left != {}

    left, right = _fold(left), _fold(right)
    try:
        if operator == "==":
            return left == right
        elif operator == "!=":
            return left != right
        elif operator == ">":
            return left is not None and left > right
        elif operator == "<":
            return left is not None and left < right
        elif operator == ">=":
            return left is not None and left >= right
        elif operator == "<=":
            return left is not None and left <= right
        elif operator == "in":
            if isinstance(right, list):
                return left in right
            elif isinstance(right, str):
                return str(left) in right
            return False
        elif operator == "not_in":
            if isinstance(right, list):
                return left not in right
            elif isinstance(right, str):
                return str(left) not in right
            return True
        elif operator == "contains":
            if isinstance(left, list):
                return right in left
            elif isinstance(left, str):
                return str(right) in left
            return False
        elif operator == "starts_with":
            return isinstance(left, str) and left.startswith(str(right))
        elif operator == "ends_with":
            return isinstance(left, str) and left.endswith(str(right))
        elif operator == "matches":
            if not isinstance(left, str):
                return False
            try:
                return bool(re.search(str(right), left))
            except re.error as e:
                raise ConditionError(f"Invalid regex pattern: {right}") from e
    except TypeError:
        return False
    raise ConditionError(f"Unknown operator: {operator}")


class Condition(ABC):
    """A predicate over a property document."""

    @abstractmethod
    def evaluate(self, document: Any) -> bool:
        pass

    @abstractmethod
    def describe(self) -> str:
        """Human readable form used in finding descriptions."""
        pass

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Condition:
        """
        Build a condition tree from its dictionary form.

        Examples:
            {"path": "supportsHttpsTrafficOnly", "op": "==", "value": true}
            {"all_of": [{...}, {...}]}
            {"path": "securityRules", "op": "no_item", "value": {...}}

        Raises:
            ConditionError: If the definition is malformed
        """
        if not isinstance(data, dict):
            raise ConditionError(f"Condition must be a mapping, got {type(data).__name__}")
        if "all_of" in data:
            return AllOf(tuple(Condition.from_dict(c) for c in data["all_of"]))
        if "any_of" in data:
            return AnyOf(tuple(Condition.from_dict(c) for c in data["any_of"]))
        if "not" in data:
            return Not(Condition.from_dict(data["not"]))
        if "op" not in data:
            raise ConditionError(f"Condition requires 'op': {data}")
        operator = data["op"]
        if operator not in OPERATORS:
            raise ConditionError(f"Unknown operator: {operator}")
        value = data.get("value")
        if operator in ("any_item", "no_item"):
            value = Condition.from_dict(value)
        return Compare(path=str(data.get("path", "")), operator=operator, value=value)


@dataclass(frozen=True)
class Compare(Condition):
    """Compare the value at path with value."""

    path: str
    operator: str
    value: Any = None

    def evaluate(self, document: Any) -> bool:
        actual = get_path_value(document, self.path)
        if self.operator in ("any_item", "no_item"):
            items = actual if isinstance(actual, list) else []
            hit = any(self.value.evaluate(item) for item in items)
            return hit if self.operator == "any_item" else not hit
        return compare(actual, self.operator, self.value)

    def describe(self) -> str:
        if self.operator in ("exists", "not_exists", "not_empty"):
            return f"{self.path} {self.operator}"
        if isinstance(self.value, Condition):
            return f"{self.path} {self.operator} ({self.value.describe()})"
        return f"{self.path} {self.operator} {self.value!r}"


@dataclass(frozen=True)
class AllOf(Condition):
    conditions: tuple[Condition, ...]

    def evaluate(self, document: Any) -> bool:
        return all(c.evaluate(document) for c in self.conditions)

    def describe(self) -> str:
        return " and ".join(c.describe() for c in self.conditions)


@dataclass(frozen=True)
class AnyOf(Condition):
    conditions: tuple[Condition, ...]

    def evaluate(self, document: Any) -> bool:
        return any(c.evaluate(document) for c in self.conditions)

    def describe(self) -> str:
        return "(" + " or ".join(c.describe() for c in self.conditions) + ")"


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    def evaluate(self, document: Any) -> bool:
        return not self.condition.evaluate(document)

    def describe(self) -> str:
        return f"not ({self.condition.describe()})"
