"""
Tests for execution/casefile_rag/case_strength.py

Covers: clamp01, combine_strength bounds and monotonicity, settlement range,
        element weights validation, element / evidence / timeline scoring,
        risks, strengths and recommendations.
"""

import math

import pytest


# ---------------------------------------------------------------------------
# Pure scoring helpers
# ---------------------------------------------------------------------------

class TestClamp:

    @pytest.mark.parametrize("value,expected", [
        (None, 0.0), ("abc", 0.0), (math.nan, 0.0), (1.5, 1.0), (-2, 0.0), (0.42, 0.42), ("0.3", 0.3),
    ])
    def test_clamp01(self, value, expected):
        from execution.casefile_rag.case_strength import clamp01
        assert clamp01(value) == pytest.approx(expected)


class TestCombineStrength:

    def test_bounds(self):
        from execution.casefile_rag.case_strength import combine_strength
        assert combine_strength(0, 0, 0) == 0.0
        assert combine_strength(1, 1, 1) == pytest.approx(1.0)
        assert combine_strength(5, 5, 5) == pytest.approx(1.0)
        assert combine_strength(-1, -1, -1) == 0.0

    def test_weights(self):
        from execution.casefile_rag.case_strength import combine_strength
        assert combine_strength(1, 0, 0) == pytest.approx(0.4)
        assert combine_strength(0, 1, 0) == pytest.approx(0.4)
        assert combine_strength(0, 0, 1) == pytest.approx(0.2)

    @pytest.mark.parametrize("index", [0, 1, 2])
    def test_monotonic(self, index):
        from execution.casefile_rag.case_strength import combine_strength

        previous = -1.0
        for step in range(11):
            args = [0.5, 0.5, 0.5]
            args[index] = step / 10
            current = combine_strength(*args)
            assert current >= previous
            previous = current


class TestSettlementRange:

    def test_minimum_base(self):
        from execution.casefile_rag.case_strength import settlement_range
        assert settlement_range(0, 0.0) == (10000, 30000)
        assert settlement_range(4250, 0.0) == (10000, 30000)

    def test_formula(self):
        from execution.casefile_rag.case_strength import settlement_range
        # multiplier 1 + 3 * 0.5 = 2.5, pain 2 + 2 * 0.5 = 3
        assert settlement_range(20000, 0.5) == (50000, 110000)

    def test_strength_clamped(self):
        from execution.casefile_rag.case_strength import settlement_range
        assert settlement_range(10000, 3.0) == settlement_range(10000, 1.0) == (40000, 80000)

    def test_low_never_above_high(self):
        from execution.casefile_rag.case_strength import settlement_range
        for strength in (0.0, 0.25, 0.5, 0.75, 1.0):
            low, high = settlement_range(15000, strength)
            assert low <= high


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class TestWeights:

    def test_defaults(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer
        assert CaseStrengthAnalyzer().weights == {
            "duty": 0.25, "breach": 0.25, "causation": 0.25, "damages": 0.25,
        }

    def test_missing_keys_zero(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer
        analyzer = CaseStrengthAnalyzer({"damages": 1.0})
        assert analyzer.weights["duty"] == 0.0

    def test_negative_rejected(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer
        with pytest.raises(ValueError, match="non-negative"):
            CaseStrengthAnalyzer({"duty": -0.1, "breach": 1})

    def test_all_zero_rejected(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer
        with pytest.raises(ValueError, match="all be zero"):
            CaseStrengthAnalyzer({"duty": 0, "breach": 0})


class TestScoring:

    def _legal(self):
        return {
            "source_credibility": 0.9,
            "legal_elements": [
                {"element": "duty", "reliability_score": 1.0, "evidence_strength": 0.6},
                {"element": "duty", "reliability_score": 0.2, "evidence_strength": 0.2},
                {"element_type": "proximate_cause", "confidence": 0.8, "evidence_strength": 0.4},
                {"element": "unrelated", "reliability_score": 1.0, "evidence_strength": 1.0},
            ],
        }

    def test_score_elements_best_per_element(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        scores = CaseStrengthAnalyzer().score_elements([self._legal()])
        assert scores.duty == pytest.approx(0.8)
        assert scores.causation == pytest.approx(0.6)
        assert scores.breach == 0.0
        assert scores.overall == pytest.approx(0.35)

    def test_custom_weights(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        scores = CaseStrengthAnalyzer({"duty": 1.0}).score_elements([self._legal()])
        assert scores.overall == pytest.approx(0.8)

    def test_evidence_quality(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        evidence = CaseStrengthAnalyzer().assess_evidence_quality(
            [{"authenticity_score": 1.0}, {"authenticity_score": 0.5}],
            [self._legal()],
            [],
        )
        assert evidence.medical_documentation == pytest.approx(0.75)
        assert evidence.legal_documentation == pytest.approx(0.9)
        assert evidence.timeline_completeness == 0.0
        assert evidence.credibility_score == pytest.approx(0.55)

    def test_timeline_score(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        analyzer = CaseStrengthAnalyzer()
        assert analyzer.score_timeline([]) == 0.0
        score = analyzer.score_timeline([
            {"event_type": "injury", "reliability_score": 0.6},
            {"event_type": "treatment", "reliability_score": 0.8},
        ])
        assert score == pytest.approx(0.9)
        capped = analyzer.score_timeline([
            {"event_type": t, "reliability_score": 1.0} for t in ("injury", "treatment", "diagnosis")
        ])
        assert capped == 1.0


class TestAnalyze:

    def test_no_inputs(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        metrics = CaseStrengthAnalyzer().analyze()
        assert metrics.overall_strength == 0.0
        assert (metrics.settlement_range_low, metrics.settlement_range_high) == (10000, 30000)
        assert metrics.confidence_level == 0.0
        assert len(metrics.risk_factors) == 6
        assert metrics.strengths == []
        assert metrics.recommendations[-1] == "Focus on strengthening weak legal elements before proceeding"

    def test_strong_case(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        legal = {
            "source_credibility": 1.0,
            "legal_elements": [
                {"element": name, "reliability_score": 1.0, "evidence_strength": 1.0}
                for name in ("duty", "breach", "causation", "damages")
            ],
            "case_strength": {"strengths": ["Surveillance video"], "weaknesses": ["Late reporting"]},
        }
        medical = {"authenticity_score": 1.0, "estimated_costs": 50000}
        events = [
            {"event_type": "injury", "reliability_score": 1.0},
            {"event_type": "treatment", "reliability_score": 1.0},
        ]
        metrics = CaseStrengthAnalyzer().analyze([medical], [legal], events)

        assert metrics.overall_strength == pytest.approx(1.0)
        assert metrics.settlement_range_low == 200000
        assert metrics.settlement_range_high == 400000
        assert "Clear duty of care established" in metrics.strengths
        assert "Surveillance video" in metrics.strengths
        assert metrics.risk_factors == ["Late reporting"]
        assert metrics.recommendations == ["Strong case - consider aggressive settlement negotiations"]

    def test_stronger_evidence_never_lowers_score(self):
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        def run(reliability):
            legal = {
                "source_credibility": 0.6,
                "legal_elements": [{"element": "breach", "reliability_score": reliability, "evidence_strength": 0.5}],
            }
            return CaseStrengthAnalyzer().analyze([], [legal], []).overall_strength

        assert run(0.9) >= run(0.5) >= run(0.1)

    def test_from_analysis_objects(self, sample_medical_record, sample_police_report):
        from execution.casefile_rag.medical import MedicalDocumentProcessor
        from execution.casefile_rag.legal_analysis import LegalDocumentAnalyzer
        from execution.casefile_rag.timeline import TimelineReconstructor
        from execution.casefile_rag.case_strength import CaseStrengthAnalyzer

        medical = MedicalDocumentProcessor().process("med-1", sample_medical_record)
        legal = LegalDocumentAnalyzer().analyze("leg-1", sample_police_report, "police_report")
        timeline = TimelineReconstructor().reconstruct([medical], [legal])

        metrics = CaseStrengthAnalyzer().analyze([medical], [legal], timeline.events)
        assert 0.0 <= metrics.overall_strength <= 1.0
        assert metrics.settlement_range_low <= metrics.settlement_range_high
        assert metrics.to_dict()["legal_elements"]["overall"] == metrics.legal_elements.overall
