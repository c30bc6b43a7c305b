"""
Tests for structured property conditions.
"""

from __future__ import annotations

import pytest

from accord.scanners.conditions import (
    AllOf,
    AnyOf,
    Compare,
    Condition,
    ConditionError,
    Not,
    compare,
    get_path_value,
)


class TestGetPathValue:
    """Tests for dotted path lookup."""

    def test_nested_path(self):
        doc = {"encryption": {"services": {"blob": {"enabled": True}}}}
        assert get_path_value(doc, "encryption.services.blob.enabled") is True

    def test_case_insensitive_fallback(self):
        doc = {"networkAcls": {"defaultAction": "Deny"}}
        assert get_path_value(doc, "networkacls.DefaultAction") == "Deny"

    def test_list_index(self):
        doc = {"rules": [{"port": 22}, {"port": 3389}]}
        assert get_path_value(doc, "rules.1.port") == 3389
        assert get_path_value(doc, "rules.5.port") is None

    def test_missing_segment(self):
        assert get_path_value({"a": {"b": 1}}, "a.c") is None
        assert get_path_value({"a": 1}, "a.b") is None

    def test_empty_path_returns_document(self):
        doc = {"a": 1}
        assert get_path_value(doc, "") is doc


class TestCompare:
    """Tests for compare operators."""

    @pytest.mark.parametrize(
        "left,operator,right,expected",
        [
            ("TLS1_2", "==", "tls1_2", True),
            (True, "==", True, True),
            (False, "!=", False, False),
            (90, ">=", 90, True),
            (30, ">", 90, False),
            (None, ">", 1, False),
            ("TLS1_0", "in", ["TLS1_2", "TLS1_3"], False),
            ("Standard_GRS", "in", ["Standard_GRS", "Standard_RAGRS"], True),
            ("Allow", "not_in", ["Deny"], True),
            (["a", "b"], "contains", "A", True),
            ("https://vault.azure.net", "starts_with", "https://", True),
            ("myvault.vault.azure.net", "ends_with", ".net", True),
            ("TLS1_2", "matches", r"^tls1_[23]$", True),
            (5, "matches", "5", False),
            ("x", "exists", None, True),
            (None, "not_exists", None, True),
            ({}, "not_empty", None, False),
            ({"owner": "team"}, "not_empty", None, True),
        ],
    )
    def test_operators(self, left, operator, right, expected):
        assert compare(left, operator, right) is expected

    def test_incompatible_ordering_is_false(self):
        assert compare("abc", ">", 5) is False

    def test_unknown_operator(self):
        with pytest.raises(ConditionError, match="Unknown operator"):
            compare(1, "approximately", 1)

    def test_invalid_regex(self):
        with pytest.raises(ConditionError, match="Invalid regex"):
            compare("value", "matches", "[unclosed")


class TestConditionFromDict:
    """Tests for building condition trees."""

    def test_simple_compare(self):
        condition = Condition.from_dict(
            {"path": "supportsHttpsTrafficOnly", "op": "==", "value": True}
        )

        assert isinstance(condition, Compare)
        assert condition.evaluate({"supportsHttpsTrafficOnly": True})
        assert not condition.evaluate({"supportsHttpsTrafficOnly": False})
        assert not condition.evaluate({})

    def test_composition(self):
        condition = Condition.from_dict(
            {
                "all_of": [
                    {"path": "encryption.keySource", "op": "exists"},
                    {
                        "any_of": [
                            {"path": "tier", "op": "==", "value": "Premium"},
                            {"not": {"path": "public", "op": "==", "value": True}},
                        ]
                    },
                ]
            }
        )

        assert isinstance(condition, AllOf)
        assert isinstance(condition.conditions[1], AnyOf)
        assert isinstance(condition.conditions[1].conditions[1], Not)
        assert condition.evaluate({"encryption": {"keySource": "kv"}, "public": False})
        assert not condition.evaluate({"encryption": {"keySource": "kv"}, "public": True})
        assert not condition.evaluate({"public": False})

    def test_list_item_operators(self):
        exposed = {
            "path": "properties.destinationPortRange",
            "op": "in",
            "value": ["22", "3389"],
        }
        no_item = Condition.from_dict(
            {"path": "securityRules", "op": "no_item", "value": exposed}
        )
        any_item = Condition.from_dict(
            {"path": "securityRules", "op": "any_item", "value": exposed}
        )
        open_nsg = {"securityRules": [{"properties": {"destinationPortRange": "3389"}}]}
        closed_nsg = {"securityRules": [{"properties": {"destinationPortRange": "443"}}]}

        assert not no_item.evaluate(open_nsg)
        assert no_item.evaluate(closed_nsg)
        assert any_item.evaluate(open_nsg)
        assert no_item.evaluate({})

    def test_missing_op(self):
        with pytest.raises(ConditionError, match="requires 'op'"):
            Condition.from_dict({"path": "a"})

    def test_unknown_op(self):
        with pytest.raises(ConditionError):
            Condition.from_dict({"path": "a", "op": "~="})

    def test_not_a_mapping(self):
        with pytest.raises(ConditionError):
            Condition.from_dict(["path", "op"])

    def test_describe(self):
        condition = Condition.from_dict(
            {
                "all_of": [
                    {"path": "encryption.keySource", "op": "exists"},
                    {"path": "minimumTlsVersion", "op": "==", "value": "TLS1_2"},
                ]
            }
        )
        assert condition.describe() == (
            "encryption.keySource exists and minimumTlsVersion == 'TLS1_2'"
        )
