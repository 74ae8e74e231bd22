"""
Case Strength Scoring

Combines the stored medical analyses, legal analyses and timeline events for
a client into one case-strength score with a settlement range, confidence,
risks, strengths and recommendations.

    overall = 0.4 * element score + 0.4 * evidence credibility + 0.2 * timeline

All inputs are clamped to [0, 1] before weighting, so the result stays in
[0, 1] and never drops when a sub-score rises.
"""

import logging
from typing import Optional, Iterable
from datetime import datetime
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_ELEMENT_WEIGHTS = {
    "duty": 0.25,
    "breach": 0.25,
    "causation": 0.25,
    "damages": 0.25,
}

ELEMENT_ALIASES = {
    "duty": "duty",
    "breach": "breach",
    "causation": "causation",
    "proximate_cause": "causation",
    "factual_causation": "causation",
    "damages": "damages",
}

ELEMENTS_WEIGHT = 0.4
EVIDENCE_WEIGHT = 0.4
TIMELINE_WEIGHT = 0.2

MINIMUM_BASE_DAMAGES = 10000

RISK_ELEMENT_THRESHOLD = 0.6
RISK_DOCUMENTATION_THRESHOLD = 0.7
RECOMMENDATION_ELEMENT_THRESHOLD = 0.7
RECOMMENDATION_DOCUMENTATION_THRESHOLD = 0.8


def clamp01(value) -> float:
    try:
        value = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))


def _as_dict(item) -> dict:
    return item.to_dict() if hasattr(item, "to_dict") else dict(item)


def _mean(values: list[float]) -> float:
    return float(np.mean(values)) if values else 0.0


# =============================================================================
# Data classes
# =============================================================================

@dataclass
class LegalElementScore:
    duty: float = 0.0
    breach: float = 0.0
    causation: float = 0.0
    damages: float = 0.0
    overall: float = 0.0

    def to_dict(self) -> dict:
        return {
            "duty": self.duty,
            "breach": self.breach,
            "causation": self.causation,
            "damages": self.damages,
            "overall": self.overall,
        }


@dataclass
class EvidenceQuality:
    medical_documentation: float = 0.0
    legal_documentation: float = 0.0
    timeline_completeness: float = 0.0
    credibility_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "medical_documentation": self.medical_documentation,
            "legal_documentation": self.legal_documentation,
            "timeline_completeness": self.timeline_completeness,
            "credibility_score": self.credibility_score,
        }


@dataclass
class CaseStrengthMetrics:
    """Case-level strength assessment."""
    overall_strength: float
    settlement_range_low: int
    settlement_range_high: int
    confidence_level: float
    legal_elements: LegalElementScore
    evidence_quality: EvidenceQuality
    timeline_score: float
    risk_factors: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    analyzed_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "overall_strength": self.overall_strength,
            "settlement_range_low": self.settlement_range_low,
            "settlement_range_high": self.settlement_range_high,
            "confidence_level": self.confidence_level,
            "legal_elements": self.legal_elements.to_dict(),
            "evidence_quality": self.evidence_quality.to_dict(),
            "timeline_score": self.timeline_score,
            "risk_factors": self.risk_factors,
            "strengths": self.strengths,
            "recommendations": self.recommendations,
            "analyzed_at": self.analyzed_at,
        }


# =============================================================================
# Scoring
# =============================================================================

def combine_strength(elements_overall: float, credibility: float, timeline_score: float) -> float:
    """Weighted blend of the three sub-scores, clamped to [0, 1]."""
    combined = (
        ELEMENTS_WEIGHT * clamp01(elements_overall) +
        EVIDENCE_WEIGHT * clamp01(credibility) +
        TIMELINE_WEIGHT * clamp01(timeline_score)
    )
    return max(0.0, min(1.0, combined))


def settlement_range(base_damages: float, strength: float) -> tuple[int, int]:
    """
    Conservative and optimistic settlement figures.

    low  = base * (1 + 3s)
    high = base * ((1 + 3s) + (2 + 2s))
    """
    strength = clamp01(strength)
    base = max(float(base_damages or 0), MINIMUM_BASE_DAMAGES)
    strength_multiplier = 1 + strength * 3
    pain_multiplier = 2 + strength * 2
    return round(base * strength_multiplier), round(base * (strength_multiplier + pain_multiplier))


class CaseStrengthAnalyzer:
    """
    Scores a client's case from its stored analyses.

    Usage:
        analyzer = CaseStrengthAnalyzer()
        metrics = analyzer.analyze(medical_analyses, legal_analyses, timeline_events)
        print(metrics.overall_strength, metrics.settlement_range_low)
    """

    def __init__(self, weights: Optional[dict] = None):
        """
        Args:
            weights: Element weights keyed duty/breach/causation/damages.
                Missing keys get 0. Must be non-negative and not all zero.
        """
        if weights is None:
            weights = dict(DEFAULT_ELEMENT_WEIGHTS)
        else:
            weights = {name: float(weights.get(name, 0.0)) for name in DEFAULT_ELEMENT_WEIGHTS}

        if any(w < 0 for w in weights.values()):
            raise ValueError("Element weights must be non-negative")
        if sum(weights.values()) == 0:
            raise ValueError("Element weights must not all be zero")

        self.weights = weights

    def analyze(
        self,
        medical_analyses: Iterable = (),
        legal_analyses: Iterable = (),
        timeline_events: Iterable = (),
    ) -> CaseStrengthMetrics:
        """
        Score the case.

        Args:
            medical_analyses: MedicalAnalysis objects or their dicts
            legal_analyses: LegalAnalysis objects or their dicts
            timeline_events: TimelineEvent objects or their dicts

        Returns:
            CaseStrengthMetrics
        """
        medical = [_as_dict(m) for m in medical_analyses]
        legal = [_as_dict(a) for a in legal_analyses]
        events = [_as_dict(e) for e in timeline_events]

        elements = self.score_elements(legal)
        evidence = self.assess_evidence_quality(medical, legal, events)
        timeline_score = self.score_timeline(events)

        overall = combine_strength(elements.overall, evidence.credibility_score, timeline_score)

        medical_costs = sum(float(m.get("estimated_costs") or 0) for m in medical)
        low, high = settlement_range(medical_costs, overall)

        risks, strengths = self.assess_risks_and_strengths(elements, evidence, legal)

        metrics = CaseStrengthMetrics(
            overall_strength=round(overall, 4),
            settlement_range_low=low,
            settlement_range_high=high,
            confidence_level=round(evidence.credibility_score * 0.7 + timeline_score * 0.3, 4),
            legal_elements=elements,
            evidence_quality=evidence,
            timeline_score=round(timeline_score, 4),
            risk_factors=risks,
            strengths=strengths,
            recommendations=self.recommend(elements, evidence),
        )

        logger.info(
            f"Case strength {metrics.overall_strength:.2f} "
            f"(settlement ${low:,} - ${high:,}, confidence {metrics.confidence_level:.0%}) "
            f"from {len(medical)} medical, {len(legal)} legal, {len(events)} events"
        )
        return metrics

    def score_elements(self, legal_analyses: list[dict]) -> LegalElementScore:
        """Best (reliability + evidence) / 2 per element across all legal analyses."""
        best = {name: 0.0 for name in DEFAULT_ELEMENT_WEIGHTS}

        for analysis in legal_analyses:
            for element in analysis.get("legal_elements") or []:
                raw_name = str(element.get("element") or element.get("element_type") or "").lower()
                name = ELEMENT_ALIASES.get(raw_name)
                if name is None:
                    continue
                reliability = clamp01(element.get("reliability_score", element.get("confidence")))
                evidence = clamp01(element.get("evidence_strength"))
                best[name] = max(best[name], (reliability + evidence) / 2)

        total_weight = sum(self.weights.values())
        overall = sum(best[name] * self.weights[name] for name in best) / total_weight

        return LegalElementScore(
            duty=round(best["duty"], 4),
            breach=round(best["breach"], 4),
            causation=round(best["causation"], 4),
            damages=round(best["damages"], 4),
            overall=round(clamp01(overall), 4),
        )

    def assess_evidence_quality(
        self,
        medical_analyses: list[dict],
        legal_analyses: list[dict],
        timeline_events: list[dict],
    ) -> EvidenceQuality:
        medical = _mean([clamp01(m.get("authenticity_score")) for m in medical_analyses])
        legal = _mean([clamp01(a.get("source_credibility")) for a in legal_analyses])
        timeline = _mean([clamp01(e.get("reliability_score")) for e in timeline_events])

        return EvidenceQuality(
            medical_documentation=round(medical, 4),
            legal_documentation=round(legal, 4),
            timeline_completeness=round(timeline, 4),
            credibility_score=round((medical + legal + timeline) / 3, 4),
        )

    def score_timeline(self, timeline_events: list[dict]) -> float:
        if not timeline_events:
            return 0.0

        average = _mean([clamp01(e.get("reliability_score")) for e in timeline_events])
        types = {e.get("event_type") for e in timeline_events}
        bonus = 0.1 * sum(1 for t in ("injury", "treatment", "diagnosis") if t in types)
        return min(1.0, average + bonus)

    def assess_risks_and_strengths(
        self,
        elements: LegalElementScore,
        evidence: EvidenceQuality,
        legal_analyses: list[dict],
    ) -> tuple[list[str], list[str]]:
        risks = []
        strengths = []

        checks = [
            (elements.duty, RISK_ELEMENT_THRESHOLD,
             "Duty element needs strengthening", "Clear duty of care established"),
            (elements.breach, RISK_ELEMENT_THRESHOLD,
             "Breach of duty requires more evidence", "Strong evidence of breach"),
            (elements.causation, RISK_ELEMENT_THRESHOLD,
             "Causation link needs reinforcement", "Well-established causation"),
            (elements.damages, RISK_ELEMENT_THRESHOLD,
             "Damages documentation incomplete", "Comprehensive damages documentation"),
            (evidence.medical_documentation, RISK_DOCUMENTATION_THRESHOLD,
             "Medical documentation needs improvement", "Excellent medical documentation"),
            (evidence.legal_documentation, RISK_DOCUMENTATION_THRESHOLD,
             "Additional legal documentation required", "Strong legal documentation"),
        ]
        for score, threshold, risk, strength in checks:
            if score < threshold:
                risks.append(risk)
            else:
                strengths.append(strength)

        for analysis in legal_analyses:
            document_strength = analysis.get("case_strength") or {}
            for weakness in document_strength.get("weaknesses") or []:
                if weakness not in risks:
                    risks.append(weakness)
            for strength in document_strength.get("strengths") or []:
                if strength not in strengths:
                    strengths.append(strength)

        return risks, strengths

    def recommend(self, elements: LegalElementScore, evidence: EvidenceQuality) -> list[str]:
        recommendations = []

        if elements.duty < RECOMMENDATION_ELEMENT_THRESHOLD:
            recommendations.append("Obtain expert testimony to establish duty of care")
        if elements.breach < RECOMMENDATION_ELEMENT_THRESHOLD:
            recommendations.append("Gather additional evidence of standard of care breach")
        if elements.causation < RECOMMENDATION_ELEMENT_THRESHOLD:
            recommendations.append("Secure medical expert opinion on causation")
        if elements.damages < RECOMMENDATION_ELEMENT_THRESHOLD:
            recommendations.append("Complete economic damages analysis with documentation")

        if evidence.medical_documentation < RECOMMENDATION_DOCUMENTATION_THRESHOLD:
            recommendations.append("Request additional medical records from all treating providers")
        if evidence.legal_documentation < RECOMMENDATION_DOCUMENTATION_THRESHOLD:
            recommendations.append("Obtain witness statements and incident reports")

        if elements.overall > 0.8:
            recommendations.append("Strong case - consider aggressive settlement negotiations")
        elif elements.overall > 0.6:
            recommendations.append("Good case foundation - continue evidence development")
        else:
            recommendations.append("Focus on strengthening weak legal elements before proceeding")

        return recommendations
