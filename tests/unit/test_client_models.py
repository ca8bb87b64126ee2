"""
Unit tests for domain models.

Tests the wire-format parsing including:
- Case provider analyses and legacy single imageUrl
- Tracking detail ordering (snapshots ascending, comparisons newest first)
- Comparison change fields
- The attention signal
"""

from datetime import datetime, timezone

from corio_client.models import (
    AddSnapshotResult,
    AnalysisProvider,
    Case,
    ComparisonAnalysis,
    LesionTracking,
    LesionTrackingDetail,
    PatientData,
    Progression,
    RiskLevel,
    TrackingStatus,
    needs_attention,
    parse_timestamp,
)
from fixtures.mock_data import (
    generate_case_data,
    generate_comparison_analysis,
    generate_comparison_data,
    generate_snapshot_data,
    generate_tracking_data,
    generate_tracking_detail,
)


class TestParsing:

    def test_parse_timestamp_with_z_suffix(self):
        parsed = parse_timestamp("2025-03-01T10:00:00.000Z")
        assert parsed == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_parse_timestamp_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None


class TestPatientData:

    def test_payload_generates_patient_id(self):
        payload = PatientData(lesion_location=["back"]).to_payload()
        assert payload["patientId"].startswith("P-")

    def test_payload_keeps_given_fields(self):
        data = PatientData(lesion_location=["back"], patient_id="P-7", age=41, gender="female", skin_type="III")
        assert data.to_payload() == {"patientId": "P-7", "age": 41, "gender": "female", "skinType": "III"}


class TestCaseModel:

    def test_case_with_both_providers(self):
        case = Case.from_dict(generate_case_data(case_id="DR-123456"))

        assert case.case_id == "DR-123456"
        assert set(case.analyses) == {AnalysisProvider.GEMINI, AnalysisProvider.OPENAI}
        assert case.analyses[AnalysisProvider.GEMINI].top_diagnosis.confidence == 90
        assert case.is_analyzed

    def test_case_with_one_provider_keeps_errors(self):
        errors = [{"provider": "openai", "code": "timeout", "message": "timed out"}]
        case = Case.from_dict(generate_case_data(providers=("gemini",), analysis_errors=errors))

        assert list(case.analyses) == [AnalysisProvider.GEMINI]
        assert case.analysis_errors == errors

    def test_legacy_single_image_url(self):
        data = generate_case_data()
        data["imageUrls"] = None
        data["imageUrl"] = "https://storage.test/old.jpg"

        assert Case.from_dict(data).image_urls == ["https://storage.test/old.jpg"]

    def test_unknown_selected_provider_is_ignored(self):
        case = Case.from_dict(generate_case_data(selectedAnalysisProvider="claude"))
        assert case.selected_provider is None


class TestLesionTrackingModels:

    def test_tracking_defaults_to_monitoring(self):
        data = generate_tracking_data()
        del data["status"]
        assert LesionTracking.from_dict(data).status == TrackingStatus.MONITORING

    def test_detail_sorts_snapshots_ascending(self):
        detail = LesionTrackingDetail.from_dict(generate_tracking_detail(orders=(1, 2, 3)))
        assert [s.snapshot_order for s in detail.snapshots] == [1, 2, 3]

    def test_detail_sorts_comparisons_newest_first(self):
        comparisons = [
            generate_comparison_data("trk-1", "snap-1", "snap-2", comparison_id="c12"),
            generate_comparison_data("trk-1", "snap-2", "snap-3", comparison_id="c23"),
            generate_comparison_data("trk-1", "snap-1", "snap-3", comparison_id="c13"),
        ]
        detail = LesionTrackingDetail.from_dict(generate_tracking_detail(comparisons=comparisons))

        assert [c.current_snapshot_id for c in detail.comparisons] == ["snap-3", "snap-3", "snap-2"]
        assert detail.latest_comparison.current_snapshot_id == "snap-3"
        assert detail.find_comparison("snap-1", "snap-2").id == "c12"
        assert detail.find_comparison("snap-2", "snap-1") is None

    def test_add_snapshot_result_without_comparison(self):
        result = AddSnapshotResult.from_dict({"snapshot": generate_snapshot_data("trk-1", 4), "comparison": None})
        assert result.snapshot.snapshot_order == 4
        assert result.comparison is None


class TestComparisonAnalysis:

    def test_change_fields(self):
        analysis = ComparisonAnalysis.from_dict(
            generate_comparison_analysis("elevated", "worsened", size_change="Grew by 2 mm", color_change="")
        )
        assert analysis.risk_level == RiskLevel.ELEVATED
        assert analysis.overall_progression == Progression.WORSENED
        assert analysis.size_change == "Grew by 2 mm"
        assert analysis.color_change is None
        assert analysis.changed_attributes == ["size"]

    def test_nested_changes_object(self):
        analysis = ComparisonAnalysis.from_dict({
            "riskLevel": "low",
            "overallProgression": "stable",
            "changes": {"border": "Slightly irregular"},
        })
        assert analysis.border_change == "Slightly irregular"
        assert analysis.changed_attributes == ["border"]

    def test_missing_categories_are_unknown(self):
        analysis = ComparisonAnalysis.from_dict({})
        assert analysis.risk_level is None
        assert analysis.overall_progression is None
        assert analysis.risk_level_raw is None
        assert not needs_attention(analysis)

    def test_off_enum_values_are_not_mapped_to_a_category(self):
        analysis = ComparisonAnalysis.from_dict({"riskLevel": "critical", "overallProgression": "unclear"})
        assert analysis.risk_level is None
        assert analysis.overall_progression is None
        assert analysis.risk_level_raw == "critical"
        assert analysis.progression_raw == "unclear"

    def test_category_case_is_ignored(self):
        analysis = ComparisonAnalysis.from_dict({"riskLevel": "High", "overallProgression": " Worsened "})
        assert analysis.risk_level == RiskLevel.HIGH
        assert analysis.overall_progression == Progression.WORSENED
        assert needs_attention(analysis)


class TestNeedsAttention:

    def test_high_risk(self):
        assert needs_attention(ComparisonAnalysis(RiskLevel.HIGH, Progression.STABLE))

    def test_significant_change(self):
        assert needs_attention(ComparisonAnalysis(RiskLevel.LOW, Progression.SIGNIFICANT_CHANGE))

    def test_worsened(self):
        assert needs_attention(ComparisonAnalysis(RiskLevel.MODERATE, Progression.WORSENED))

    def test_stable_low_risk(self):
        assert not needs_attention(ComparisonAnalysis(RiskLevel.LOW, Progression.STABLE))
        assert not needs_attention(ComparisonAnalysis(RiskLevel.ELEVATED, Progression.IMPROVED))
