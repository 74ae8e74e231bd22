"""
Timeline Reconstruction

Merges dated events from medical analyses, dated facts from legal analyses
and manually entered events into one chronology, then:
- adjusts each event's reliability from its wording
- cross-references events that fall within a week of each other
- flags treatment gaps and inconsistencies
- summarizes overall timeline reliability
"""

import re
import logging
from typing import Optional, Iterable
from datetime import datetime
from dataclasses import dataclass, field

import numpy as np

from .medical import parse_event_date
from .legal_analysis import has_specific_details
from .legal_patterns import (
    VAGUE_LANGUAGE_TERMS,
    SPECIFIC_MEDICAL_PATTERNS,
    TIMELINE_HEARSAY_INDICATORS,
    LEGAL_FACT_DATE_PATTERN,
)

logger = logging.getLogger(__name__)

RELATED_WINDOW_DAYS = 7
INJURY_TO_TREATMENT_GAP_DAYS = 30
TREATMENT_GAP_DAYS = 60


@dataclass
class TimelineEvent:
    """One event in the reconstructed chronology."""
    event_date: str
    event_type: str
    description: str
    reliability_score: float
    source_document: str
    source_type: str  # medical | legal | manual_entry
    provider: Optional[str] = None
    cross_referenced: bool = False
    consistency_score: float = 0.5

    @property
    def parsed_date(self) -> Optional[datetime]:
        return parse_event_date(self.event_date)

    def to_dict(self) -> dict:
        return {
            "event_date": self.event_date,
            "event_type": self.event_type,
            "description": self.description,
            "provider": self.provider,
            "reliability_score": self.reliability_score,
            "source_document": self.source_document,
            "source_type": self.source_type,
            "cross_referenced": self.cross_referenced,
            "consistency_score": self.consistency_score,
        }


@dataclass
class ReliabilityAssessment:
    overall_score: float = 0.0
    high_confidence_events: int = 0
    low_confidence_events: int = 0
    total_events: int = 0

    def to_dict(self) -> dict:
        return {
            "overall_score": self.overall_score,
            "high_confidence_events": self.high_confidence_events,
            "low_confidence_events": self.low_confidence_events,
            "total_events": self.total_events,
        }


@dataclass
class TimelineResult:
    """Reconstructed timeline with gaps, inconsistencies and recommendations."""
    events: list[TimelineEvent] = field(default_factory=list)
    gaps_identified: list[str] = field(default_factory=list)
    inconsistencies: list[str] = field(default_factory=list)
    reliability_assessment: ReliabilityAssessment = field(default_factory=ReliabilityAssessment)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "events": [e.to_dict() for e in self.events],
            "gaps_identified": self.gaps_identified,
            "inconsistencies": self.inconsistencies,
            "reliability_assessment": self.reliability_assessment.to_dict(),
            "recommendations": self.recommendations,
        }


def _as_dict(item) -> dict:
    return item.to_dict() if hasattr(item, "to_dict") else dict(item)


def _clamp(value: float) -> float:
    return max(0.1, min(1.0, value))


def _sort_key(event: TimelineEvent):
    parsed = event.parsed_date
    return (parsed is None, parsed or datetime.max)


def _days_between(a: TimelineEvent, b: TimelineEvent) -> Optional[float]:
    da, db = a.parsed_date, b.parsed_date
    if da is None or db is None:
        return None
    return (db - da).total_seconds() / 86400


# =============================================================================
# Wording checks
# =============================================================================

def is_vague(description: str) -> bool:
    lowered = description.lower()
    return any(term in lowered for term in VAGUE_LANGUAGE_TERMS)


def has_specific_medical_details(description: str) -> bool:
    return any(p.search(description) for p in SPECIFIC_MEDICAL_PATTERNS)


def is_hearsay_event(description: str) -> bool:
    lowered = description.lower()
    return any(term in lowered for term in TIMELINE_HEARSAY_INDICATORS)


def descriptions_related(first: str, second: str) -> bool:
    """More than 30% overlap between the words longer than three characters."""
    words1 = {w for w in re.split(r"\W+", first.lower()) if len(w) > 3}
    words2 = {w for w in re.split(r"\W+", second.lower()) if len(w) > 3}
    if not words1 or not words2:
        return False
    return len(words1 & words2) / min(len(words1), len(words2)) > 0.3


def legal_fact_reliability(fact: str) -> float:
    score = 0.6
    if has_specific_details(fact):
        score += 0.2
    if re.search(r"officer|report|documented", fact, re.IGNORECASE):
        score += 0.1
    if re.search(r"approximately|around|about", fact, re.IGNORECASE):
        score -= 0.2
    return round(_clamp(score), 4)


def has_contradiction(event: TimelineEvent, other: TimelineEvent) -> bool:
    if event.event_date == other.event_date:
        if (
            event.event_type == "injury" and other.event_type == "treatment" and
            "no injury" in event.description.lower()
        ):
            return True

    # Treatment recorded before the injury it treats
    if event.event_type == "treatment" and other.event_type == "injury":
        days = _days_between(event, other)
        if days is not None and days > 0:
            return True

    return False


# =============================================================================
# Reconstruction
# =============================================================================

class TimelineReconstructor:
    """
    Builds a cross-referenced chronology for a client.

    Usage:
        reconstructor = TimelineReconstructor()
        result = reconstructor.reconstruct(medical_analyses, legal_analyses)
        for gap in result.gaps_identified:
            print(gap)
    """

    def reconstruct(
        self,
        medical_analyses: Iterable = (),
        legal_analyses: Iterable = (),
        manual_events: Iterable = (),
    ) -> TimelineResult:
        """
        Reconstruct the timeline.

        Args:
            medical_analyses: MedicalAnalysis objects or their dicts
            legal_analyses: LegalAnalysis objects or their dicts
            manual_events: Dicts with event_date, event_type, description

        Returns:
            TimelineResult
        """
        events = self.gather_events(medical_analyses, legal_analyses, manual_events)
        events = [self._adjust_reliability(e) for e in events]
        events = self.cross_reference(events)

        gaps = self.identify_gaps(events)
        inconsistencies = self.identify_inconsistencies(events)
        assessment = self.assess(events)
        recommendations = self.recommend(events, gaps, inconsistencies)

        logger.info(
            f"Timeline: {len(events)} events, {len(gaps)} gaps, "
            f"{len(inconsistencies)} inconsistencies, overall={assessment.overall_score:.2f}"
        )

        return TimelineResult(
            events=events,
            gaps_identified=gaps,
            inconsistencies=inconsistencies,
            reliability_assessment=assessment,
            recommendations=recommendations,
        )

    def gather_events(self, medical_analyses, legal_analyses, manual_events) -> list[TimelineEvent]:
        events = []

        for analysis in map(_as_dict, medical_analyses):
            for raw in analysis.get("timeline_events") or []:
                events.append(TimelineEvent(
                    event_date=raw.get("date") or raw.get("event_date") or "",
                    event_type=raw.get("event_type", "treatment"),
                    description=raw.get("description", ""),
                    provider=raw.get("provider"),
                    reliability_score=raw.get("reliability_score") or 0.5,
                    source_document=analysis.get("document_id", "unknown"),
                    source_type="medical",
                ))

        for analysis in map(_as_dict, legal_analyses):
            classification = analysis.get("information_classification") or {}
            for fact in classification.get("facts") or []:
                match = LEGAL_FACT_DATE_PATTERN.search(fact)
                if not match:
                    continue
                event_type = (
                    "injury" if re.search(r"injury|accident|incident", fact, re.IGNORECASE)
                    else "legal_milestone"
                )
                events.append(TimelineEvent(
                    event_date=match.group(0),
                    event_type=event_type,
                    description=fact,
                    reliability_score=legal_fact_reliability(fact),
                    source_document=analysis.get("document_id", "unknown"),
                    source_type="legal",
                ))

        for raw in manual_events:
            raw = _as_dict(raw)
            events.append(TimelineEvent(
                event_date=raw.get("event_date") or raw.get("date") or "",
                event_type=raw.get("event_type", "legal_milestone"),
                description=raw.get("description", ""),
                provider=raw.get("provider"),
                reliability_score=raw.get("reliability_score", 0.5),
                source_document=raw.get("source_document") or "manual_entry",
                source_type=raw.get("source_type") or "manual_entry",
            ))

        events.sort(key=_sort_key)
        return events

    def _adjust_reliability(self, event: TimelineEvent) -> TimelineEvent:
        reliability = event.reliability_score
        if is_vague(event.description):
            reliability *= 0.8
        if has_specific_medical_details(event.description):
            reliability *= 1.2
        if is_hearsay_event(event.description):
            reliability *= 0.7
        if event.source_type == "medical" and event.provider:
            reliability *= 1.1
        event.reliability_score = round(_clamp(reliability), 4)
        return event

    def cross_reference(self, events: list[TimelineEvent]) -> list[TimelineEvent]:
        """Score each event by how many nearby events corroborate it."""
        for i, event in enumerate(events):
            related = []
            for j, other in enumerate(events):
                if i == j:
                    continue
                days = _days_between(event, other)
                if days is None or abs(days) > RELATED_WINDOW_DAYS:
                    continue
                if other.event_type == event.event_type or descriptions_related(
                    event.description, other.description
                ):
                    related.append(other)

            consistency = 0.5
            if related:
                consistency = min(1.0, 0.5 + len(related) * 0.2)
                if any(has_contradiction(event, other) for other in related):
                    consistency *= 0.6

            event.cross_referenced = bool(related)
            event.consistency_score = round(consistency, 4)

        return events

    def identify_gaps(self, events: list[TimelineEvent]) -> list[str]:
        gaps = []
        dated = [e for e in events if e.parsed_date is not None]

        for prev, current in zip(dated, dated[1:]):
            days = _days_between(prev, current)
            if (
                prev.event_type == "injury" and current.event_type == "treatment" and
                days > INJURY_TO_TREATMENT_GAP_DAYS
            ):
                gaps.append(
                    f"Significant gap ({round(days)} days) between injury on {prev.event_date} "
                    f"and first treatment on {current.event_date}"
                )
            if (
                prev.event_type == "treatment" and current.event_type == "treatment" and
                days > TREATMENT_GAP_DAYS
            ):
                gaps.append(
                    f"Treatment gap of {round(days)} days between {prev.event_date} and {current.event_date}"
                )

        return gaps

    def identify_inconsistencies(self, events: list[TimelineEvent]) -> list[str]:
        inconsistencies = []

        for event in events:
            if event.consistency_score < 0.4:
                inconsistencies.append(
                    f"Low consistency score ({event.consistency_score:.2f}) for event on "
                    f"{event.event_date}: {event.description}"
                )
            if event.reliability_score < 0.3:
                inconsistencies.append(
                    f"Low reliability score ({event.reliability_score:.2f}) for event on "
                    f"{event.event_date}: {event.description}"
                )

        injury_dates = [e.event_date for e in events if e.event_type == "injury"]
        if len(injury_dates) > 1:
            inconsistencies.append(f"Multiple injury dates reported: {', '.join(injury_dates)}")

        return inconsistencies

    def assess(self, events: list[TimelineEvent]) -> ReliabilityAssessment:
        if not events:
            return ReliabilityAssessment()

        weighted = np.array([e.reliability_score * e.consistency_score for e in events])
        return ReliabilityAssessment(
            overall_score=round(float(np.mean(weighted)), 4),
            high_confidence_events=sum(
                1 for e in events if e.reliability_score >= 0.8 and e.consistency_score >= 0.7
            ),
            low_confidence_events=sum(
                1 for e in events if e.reliability_score < 0.5 or e.consistency_score < 0.5
            ),
            total_events=len(events),
        )

    def recommend(self, events: list[TimelineEvent], gaps: list[str], inconsistencies: list[str]) -> list[str]:
        recommendations = []

        if gaps:
            recommendations.append("Pursue medical records to fill treatment gaps")
            recommendations.append("Subpoena all healthcare provider records to establish complete treatment timeline")

        if inconsistencies:
            recommendations.append("Investigate and resolve timeline inconsistencies before discovery")
            recommendations.append("Prepare explanations for any unavoidable discrepancies in documentation")

        if any(e.reliability_score < 0.6 for e in events):
            recommendations.append("Obtain corroborating evidence for all low-reliability timeline events")
            recommendations.append("Interview witnesses to verify critical timeline elements")

        if any(e.event_type == "injury" for e in events):
            recommendations.append("Document pre-injury health status to establish baseline for damages")
            recommendations.append("Obtain expert medical testimony to connect all treatment to original injury")

        recommendations.append("Ensure all timeline evidence is accurately represented and not exaggerated")
        recommendations.append("Maintain attorney-client privilege for all timeline discussions")
        return recommendations
