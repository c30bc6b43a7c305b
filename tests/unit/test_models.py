"""
Tests for Accord data models.

Tests cover:
- Control id normalization and catalog lookups
- Severity ordering and enum parsing
- Finding normalization, classification helpers and serialization
- PhaseResult, RiskProfile and Assessment
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from accord.models import (
    NEUTRAL_PHASE_SCORE,
    NOT_AVAILABLE,
    Assessment,
    AssessmentStatus,
    CatalogResult,
    CatalogSource,
    ComplianceStatus,
    Finding,
    FindingCollection,
    FindingType,
    PhaseResult,
    PhaseStatus,
    RemediationAction,
    RemediationActionType,
    RemediationClassification,
    RemediationComplexity,
    RiskLevel,
    RiskProfile,
    Scope,
    Severity,
    control_family,
    normalize_control_id,
)


class TestControlIds:
    """Tests for control id helpers."""

    def test_normalize_upper_cases(self):
        assert normalize_control_id("ac-3") == "AC-3"

    def test_normalize_strips_whitespace(self):
        assert normalize_control_id("  sc-8 ") == "SC-8"

    def test_normalize_oscal_enhancement(self):
        assert normalize_control_id("ac-2.1") == "AC-2(1)"

    def test_normalize_printed_enhancement_unchanged(self):
        assert normalize_control_id("AC-2(1)") == "AC-2(1)"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_normalize_blank_raises(self, value):
        with pytest.raises(ValueError):
            normalize_control_id(value)

    def test_control_family(self):
        assert control_family("ac-2(1)") == "AC"
        assert control_family("SC-28") == "SC"


class TestCatalog:
    """Tests for the parsed Catalog."""

    def test_lookup_is_case_insensitive(self, catalog):
        lower = catalog.get_control("ac-3")
        upper = catalog.get_control("AC-3")

        assert lower is not None
        assert lower is upper
        assert lower.title == "Access Enforcement"

    def test_unknown_control_returns_none(self, catalog):
        assert catalog.get_control("AC-99") is None

    def test_enhancements_are_indexed(self, catalog):
        enhancement = catalog.get_control("ac-2.1")

        assert enhancement is not None
        assert enhancement.id == "AC-2(1)"
        assert enhancement.family == "AC"

    def test_control_count_includes_enhancements(self, catalog):
        # 4 AC + 1 enhancement + 1 AU + 3 SC
        assert catalog.control_count() == 9

    def test_controls_by_family(self, catalog):
        ids = [c.id for c in catalog.get_controls_by_family("sc")]
        assert ids == ["SC-7", "SC-8", "SC-28"]

    def test_search_matches_prose(self, catalog):
        results = catalog.search("logical access")
        assert [c.id for c in results] == ["AC-3"]

    def test_control_prose_views(self, catalog):
        control = catalog.get_control("AC-2")

        assert "types of accounts" in control.statement
        assert "individual and shared" in control.guidance
        assert control.enhancement_ids == ["AC-2(1)"]
        assert control.params == {"ac-02_odp.01": "prerequisites"}

    def test_objectives(self, catalog):
        assert catalog.get_control("AC-3").objectives == [
            "approved authorizations are enforced."
        ]

    def test_metadata(self, catalog):
        assert catalog.version == "5.1.1"
        assert catalog.title.startswith("NIST")


class TestCatalogResult:
    """Tests for CatalogResult."""

    def test_degraded_result(self):
        result = CatalogResult(None, error="unavailable")

        assert result.is_degraded
        assert result.version == "Unknown"

    def test_result_with_catalog(self, catalog):
        result = CatalogResult(catalog, CatalogSource.REMOTE)

        assert not result.is_degraded
        assert result.version == "5.1.1"


class TestSeverity:
    """Tests for Severity enum."""

    def test_ordering(self):
        assert Severity.CRITICAL > Severity.HIGH > Severity.MEDIUM
        assert Severity.LOW > Severity.INFORMATIONAL
        assert Severity.HIGH >= Severity.HIGH

    def test_sorting(self):
        values = sorted([Severity.LOW, Severity.CRITICAL, Severity.MEDIUM])
        assert values == [Severity.LOW, Severity.MEDIUM, Severity.CRITICAL]

    def test_from_string(self):
        assert Severity.from_string("HIGH") == Severity.HIGH
        assert Severity.from_string("info") == Severity.INFORMATIONAL

    def test_from_string_invalid(self):
        with pytest.raises(ValueError, match="Invalid severity"):
            Severity.from_string("urgent")


class TestComplianceStatus:
    """Tests for ComplianceStatus parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("compliant", ComplianceStatus.COMPLIANT),
            ("NonCompliant", ComplianceStatus.NON_COMPLIANT),
            ("ManualReviewRequired", ComplianceStatus.MANUAL_REVIEW_REQUIRED),
            ("not-applicable", ComplianceStatus.NOT_APPLICABLE),
            ("Partially Compliant", ComplianceStatus.PARTIALLY_COMPLIANT),
        ],
    )
    def test_from_string(self, value, expected):
        assert ComplianceStatus.from_string(value) == expected

    def test_from_string_invalid(self):
        with pytest.raises(ValueError):
            ComplianceStatus.from_string("unknown")


class TestFinding:
    """Tests for the Finding model."""

    def test_affected_controls_normalized(self, make_finding):
        finding = make_finding(affected_controls=frozenset({"sc-8", "ac-2.1", " "}))
        assert finding.affected_controls == frozenset({"SC-8", "AC-2(1)"})

    def test_violation_helpers(self, make_finding):
        violation = make_finding()
        partial = make_finding(compliance_status=ComplianceStatus.PARTIALLY_COMPLIANT)
        manual = make_finding(compliance_status=ComplianceStatus.MANUAL_REVIEW_REQUIRED)

        assert violation.is_violation()
        assert partial.is_violation()
        assert not manual.is_violation()
        assert make_finding(compliance_status=ComplianceStatus.COMPLIANT).is_compliant()

    def test_is_grouped(self, make_finding):
        assert make_finding(resource_type="Multiple").is_grouped()
        assert make_finding(resource_type=" multiple ").is_grouped()
        assert not make_finding().is_grouped()

    def test_risk_category_falls_back_to_type(self, make_finding):
        assert make_finding(category="Data in Transit").risk_category() == "Data in Transit"
        assert make_finding(category="").risk_category() == "configuration"

    def test_severity_helpers(self, make_finding):
        assert make_finding(severity=Severity.CRITICAL).is_critical()
        assert make_finding(severity=Severity.HIGH).is_high_or_critical()
        assert not make_finding(severity=Severity.MEDIUM).is_high_or_critical()

    def test_finding_is_immutable(self, make_finding):
        finding = make_finding()
        with pytest.raises(AttributeError):
            finding.title = "changed"

    def test_to_dict_is_json_serializable(self, make_finding):
        finding = make_finding(
            remediation_complexity=RemediationComplexity.SIMPLE,
            metadata={"checker": "sc-8-storage-https-only"},
        )
        data = finding.to_dict()

        assert json.loads(json.dumps(data))["severity"] == "high"
        assert data["affected_controls"] == ["SC-8"]
        assert data["remediation_complexity"] == "simple"

    def test_from_dict(self):
        finding = Finding.from_dict(
            {
                "id": "f-1",
                "resource_id": "/subscriptions/x",
                "resource_type": "scope",
                "finding_type": "access_control",
                "severity": "critical",
                "compliance_status": "ManualReviewRequired",
                "title": "Manual review required for AC-2",
                "affected_controls": ["ac-2"],
                "detected_at": "2024-01-15T10:00:00+00:00",
            }
        )

        assert finding.finding_type == FindingType.ACCESS_CONTROL
        assert finding.severity == Severity.CRITICAL
        assert finding.compliance_status == ComplianceStatus.MANUAL_REVIEW_REQUIRED
        assert finding.affected_controls == frozenset({"AC-2"})
        assert finding.detected_at.year == 2024


class TestFindingCollection:
    """Tests for FindingCollection."""

    @pytest.fixture
    def collection(self, make_finding):
        return FindingCollection(
            [
                make_finding(id="f-1", severity=Severity.CRITICAL),
                make_finding(id="f-2", severity=Severity.HIGH),
                make_finding(
                    id="f-3",
                    severity=Severity.INFORMATIONAL,
                    compliance_status=ComplianceStatus.COMPLIANT,
                ),
                make_finding(
                    id="f-4",
                    severity=Severity.MEDIUM,
                    affected_controls=frozenset({"AC-2"}),
                    compliance_status=ComplianceStatus.MANUAL_REVIEW_REQUIRED,
                ),
            ]
        )

    def test_len_and_iteration(self, collection):
        assert len(collection) == 4
        assert [f.id for f in collection] == ["f-1", "f-2", "f-3", "f-4"]

    def test_count_by_severity_includes_all_levels(self, collection):
        counts = collection.count_by_severity()

        assert counts[Severity.CRITICAL] == 1
        assert counts[Severity.LOW] == 0
        assert set(counts) == set(Severity)

    def test_filter_at_least(self, collection):
        assert [f.id for f in collection.filter_at_least(Severity.HIGH)] == ["f-1", "f-2"]

    def test_filter_violations(self, collection):
        assert len(collection.filter_violations()) == 2

    def test_filter_by_control(self, collection):
        assert [f.id for f in collection.filter_by_control("ac-2")] == ["f-4"]

    def test_get_by_id(self, collection):
        assert collection.get_by_id("f-3").is_compliant()
        assert collection.get_by_id("missing") is None


class TestPhaseResult:
    """Tests for PhaseResult."""

    def test_score_is_clipped(self):
        assert PhaseResult(domain="a", score=140).score == 100.0
        assert PhaseResult(domain="b", score=-5).score == 0.0

    def test_not_available(self):
        result = PhaseResult.not_available("secrets", "RuntimeError: boom")

        assert result.score == NEUTRAL_PHASE_SCORE == 50
        assert result.status == PhaseStatus.NOT_AVAILABLE
        assert result.status.value == NOT_AVAILABLE == "Not Available"
        assert result.findings == ()
        assert not result.is_available
        assert result.error == "RuntimeError: boom"


class TestAssessment:
    """Tests for the Assessment aggregate."""

    def test_to_dict_is_json_serializable(self, make_finding):
        started = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        phase = PhaseResult(
            domain="transport",
            score=50,
            findings=(make_finding(),),
            passed=1,
            total=2,
        )
        assessment = Assessment(
            scope=Scope(subscription_id="sub-1"),
            phases={"transport": phase},
            all_findings=phase.findings,
            severity_counts={Severity.HIGH: 1},
            overall_score=50.0,
            risk_profile=RiskProfile(RiskLevel.LOW, 5.0, ("configuration",)),
            executive_summary="summary",
            status=AssessmentStatus.COMPLETED,
            started_at=started,
            ended_at=started + timedelta(seconds=3),
        )

        data = json.loads(assessment.to_json())

        assert data["status"] == "completed"
        assert data["severity_counts"] == {"high": 1}
        assert data["phases"]["transport"]["finding_count"] == 1
        assert data["compliance_percentage"] == 50.0
        assert data["duration_seconds"] == 3.0
        assert data["scope"]["path"] == "/subscriptions/sub-1"
        assert data["risk_profile"]["risk_level"] == "Low"


class TestScope:
    """Tests for Scope."""

    def test_path(self):
        assert Scope("sub-1").path == "/subscriptions/sub-1"
        assert Scope("sub-1", "rg").path == "/subscriptions/sub-1/resourceGroups/rg"

    def test_is_valid(self):
        assert Scope("sub-1").is_valid()
        assert not Scope("  ").is_valid()


class TestRemediationModels:
    """Tests for remediation dataclasses."""

    def test_classification_minutes(self):
        action = RemediationAction(
            name="Require HTTPS Only",
            description="Reject plain HTTP traffic",
            action_type=RemediationActionType.CONFIGURATION_CHANGE,
            complexity=RemediationComplexity.SIMPLE,
            estimated_duration=timedelta(minutes=5),
        )
        classification = RemediationClassification(
            is_auto_remediable=True,
            complexity=RemediationComplexity.SIMPLE,
            estimated_duration=timedelta(minutes=5),
            actions=(action,),
        )

        assert classification.estimated_minutes == 5
        data = classification.to_dict()
        assert data["actions"][0]["action_type"] == "configuration_change"
        assert data["actions"][0]["estimated_duration_minutes"] == 5
