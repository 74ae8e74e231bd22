"""
Legal Document Analyzer

Reads police reports, incident reports, witness statements and legal
correspondence and scores them against the four negligence elements
(duty, breach, causation, damages).

Steps:
1. Identify key issues
2. Score source credibility
3. Classify sentences as fact, hearsay or opinion
4. Match facts to element indicators
5. Build plaintiff arguments, defense arguments and evidence gaps
6. Score document strength and list next steps
"""

import re
import logging
from typing import Optional
from datetime import datetime
from dataclasses import dataclass, field

from .legal_patterns import (
    KEY_ISSUE_PATTERNS,
    SOURCE_TYPE_BONUS,
    OFFICIAL_FORMATTING_PATTERNS,
    SIGNATURE_PATTERN,
    CASE_NUMBER_PATTERN,
    DATE_PATTERN,
    TIME_PATTERN,
    LOCATION_PATTERN,
    HEARSAY_INDICATORS,
    OPINION_INDICATORS,
    DIRECT_FACT_INDICATORS,
    SPECIFIC_DETAIL_PATTERNS,
    ELEMENT_INDICATORS,
    DUTY_RELATIONSHIP_INDICATORS,
    COUNTER_ARGUMENT_TRIGGERS,
)

logger = logging.getLogger(__name__)

ELEMENT_NAMES = ("duty", "breach", "causation", "damages")
STRONG_EVIDENCE_THRESHOLD = 0.6

ADVOCACY_NOTES = [
    "Thoroughly examine all evidence for client's benefit",
    "Identify every possible theory of liability",
    "Pursue all available remedies within ethical bounds",
]

ETHICAL_NOTES = [
    "Ensure all claims are supported by evidence",
    "Do not exaggerate injuries or damages",
    "Maintain attorney-client privilege",
    "Provide honest assessment of case merits",
]

STANDARD_NEXT_STEPS = [
    "Conduct thorough discovery of defendant's records",
    "Identify and interview all potential witnesses",
    "Obtain all medical records and expert medical opinions",
    "Research similar cases for settlement benchmarks",
]


# =============================================================================
# Data classes
# =============================================================================

@dataclass
class InformationClassification:
    """Sentences sorted by evidentiary weight."""
    facts: list[str] = field(default_factory=list)
    hearsay: list[str] = field(default_factory=list)
    opinions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "facts": self.facts,
            "hearsay": self.hearsay,
            "opinions": self.opinions,
        }


@dataclass
class LegalElement:
    """Evidence for one negligence element."""
    element: str
    present: bool
    evidence_strength: float
    reliability_score: float
    supporting_facts: list[str] = field(default_factory=list)
    counter_arguments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "element": self.element,
            "present": self.present,
            "evidence_strength": self.evidence_strength,
            "reliability_score": self.reliability_score,
            "supporting_facts": self.supporting_facts,
            "counter_arguments": self.counter_arguments,
        }


@dataclass
class ArgumentAnalysis:
    plaintiff_arguments: list[str] = field(default_factory=list)
    defense_arguments: list[str] = field(default_factory=list)
    evidence_gaps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "plaintiff_arguments": self.plaintiff_arguments,
            "defense_arguments": self.defense_arguments,
            "evidence_gaps": self.evidence_gaps,
        }


@dataclass
class DocumentStrength:
    """Strength of a single legal document."""
    overall_strength: float
    legal_elements_completeness: float
    evidence_quality: float
    potential_defenses: list[str] = field(default_factory=list)
    recommended_next_steps: list[str] = field(default_factory=list)
    advocacy_notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overall_strength": self.overall_strength,
            "legal_elements_completeness": self.legal_elements_completeness,
            "evidence_quality": self.evidence_quality,
            "potential_defenses": self.potential_defenses,
            "recommended_next_steps": self.recommended_next_steps,
            "advocacy_notes": self.advocacy_notes,
        }


@dataclass
class LegalAnalysis:
    """Result of analyzing one legal document."""
    document_id: str
    document_type: str
    key_issues: list[str]
    source_credibility: float
    classification: InformationClassification
    elements: list[LegalElement]
    arguments: ArgumentAnalysis
    strength: DocumentStrength
    client_id: Optional[str] = None
    analyzed_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def element(self, name: str) -> Optional[LegalElement]:
        for element in self.elements:
            if element.element == name:
                return element
        return None

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "client_id": self.client_id,
            "document_type": self.document_type,
            "key_issues": self.key_issues,
            "source_credibility": self.source_credibility,
            "information_classification": self.classification.to_dict(),
            "legal_elements": [e.to_dict() for e in self.elements],
            "arguments_analysis": self.arguments.to_dict(),
            "case_strength": self.strength.to_dict(),
            "analyzed_at": self.analyzed_at,
        }


# =============================================================================
# Sentence-level helpers
# =============================================================================

def _contains_any(text: str, indicators: list[str]) -> bool:
    lowered = text.lower()
    return any(indicator in lowered for indicator in indicators)


def is_hearsay(sentence: str) -> bool:
    return _contains_any(sentence, HEARSAY_INDICATORS)


def is_opinion(sentence: str) -> bool:
    return _contains_any(sentence, OPINION_INDICATORS)


def has_specific_details(sentence: str) -> bool:
    """Times, dates, measurements or proper names."""
    return any(p.search(sentence) for p in SPECIFIC_DETAIL_PATTERNS)


def is_direct_fact(sentence: str) -> bool:
    return _contains_any(sentence, DIRECT_FACT_INDICATORS) or has_specific_details(sentence)


# =============================================================================
# Analysis steps
# =============================================================================

def identify_key_issues(text: str) -> list[str]:
    issues = [
        issue for pattern, issue in KEY_ISSUE_PATTERNS
        if re.search(pattern, text, re.IGNORECASE)
    ]
    return issues or ["General Personal Injury Matter"]


def assess_source_credibility(text: str, document_type: str) -> float:
    """
    Score how far a legal source can be trusted.

    Starts at 0.5 plus a bonus by document type. Official formatting,
    signatures and case numbers raise it; a missing date/time or street
    address lowers it. Clamped to [0.1, 1.0].
    """
    credibility = 0.5 + SOURCE_TYPE_BONUS.get(document_type, 0.0)

    if any(re.search(p, text, re.IGNORECASE) for p in OFFICIAL_FORMATTING_PATTERNS):
        credibility += 0.2
    if re.search(SIGNATURE_PATTERN, text, re.IGNORECASE):
        credibility += 0.1
    if re.search(CASE_NUMBER_PATTERN, text, re.IGNORECASE):
        credibility += 0.1

    if not (re.search(DATE_PATTERN, text) and re.search(TIME_PATTERN, text)):
        credibility -= 0.1
    if not re.search(LOCATION_PATTERN, text, re.IGNORECASE):
        credibility -= 0.1

    return round(max(0.1, min(1.0, credibility)), 4)


def classify_information(text: str) -> InformationClassification:
    """Sort sentences into hearsay, opinion and direct fact, in that precedence."""
    result = InformationClassification()

    for sentence in re.split(r"[.!?]+", text):
        sentence = sentence.strip()
        if len(sentence) <= 10:
            continue
        if is_hearsay(sentence):
            result.hearsay.append(sentence)
        elif is_opinion(sentence):
            result.opinions.append(sentence)
        elif is_direct_fact(sentence):
            result.facts.append(sentence)

    return result


def calculate_evidence_strength(supporting_facts: list[str]) -> float:
    if not supporting_facts:
        return 0.0
    strength = min(len(supporting_facts) * 0.25, 1.0)
    if any(has_specific_details(fact) for fact in supporting_facts):
        strength += 0.2
    return round(min(strength, 1.0), 4)


def calculate_reliability_score(supporting_facts: list[str]) -> float:
    if not supporting_facts:
        return 0.0
    total = 0.0
    for fact in supporting_facts:
        score = 0.5
        if has_specific_details(fact):
            score += 0.3
        if is_direct_fact(fact):
            score += 0.2
        total += min(score, 1.0)
    return round(total / len(supporting_facts), 4)


def counter_arguments_for(element: str, text: str) -> list[str]:
    return [
        message for pattern, message in COUNTER_ARGUMENT_TRIGGERS.get(element, [])
        if re.search(pattern, text, re.IGNORECASE)
    ]


def analyze_elements(text: str, classification: InformationClassification) -> list[LegalElement]:
    """Score duty, breach, causation and damages from the classified facts."""
    elements = []

    for name in ELEMENT_NAMES:
        indicators = ELEMENT_INDICATORS[name]
        supporting = [f for f in classification.facts if _contains_any(f, indicators)]

        present = bool(supporting)
        if name == "duty" and not present:
            # Duty can follow from the relationship alone (driver, landlord, store)
            present = _contains_any(text, DUTY_RELATIONSHIP_INDICATORS)

        elements.append(LegalElement(
            element=name,
            present=present,
            evidence_strength=calculate_evidence_strength(supporting),
            reliability_score=calculate_reliability_score(supporting),
            supporting_facts=supporting,
            counter_arguments=counter_arguments_for(name, text),
        ))

    return elements


def build_arguments(elements: list[LegalElement]) -> ArgumentAnalysis:
    analysis = ArgumentAnalysis()
    for element in elements:
        if element.present and element.evidence_strength > STRONG_EVIDENCE_THRESHOLD:
            analysis.plaintiff_arguments.append(
                f"Strong evidence for {element.element}: {'; '.join(element.supporting_facts)}"
            )
        else:
            analysis.evidence_gaps.append(
                f"Weak evidence for {element.element} - need additional documentation"
            )
        analysis.defense_arguments.extend(element.counter_arguments)
    return analysis


def assess_document_strength(elements: list[LegalElement], arguments: ArgumentAnalysis) -> DocumentStrength:
    """Completeness and evidence quality averaged into one document score."""
    count = len(elements) or 1
    completeness = sum(1 for e in elements if e.present) / count
    evidence_quality = sum(e.evidence_strength for e in elements) / count

    next_steps = [
        f"Gather additional evidence for {e.element} element"
        for e in elements
        if not e.present or e.evidence_strength < STRONG_EVIDENCE_THRESHOLD
    ]
    next_steps.extend(STANDARD_NEXT_STEPS)

    return DocumentStrength(
        overall_strength=round((completeness + evidence_quality) / 2, 4),
        legal_elements_completeness=round(completeness, 4),
        evidence_quality=round(evidence_quality, 4),
        potential_defenses=list(arguments.defense_arguments),
        recommended_next_steps=next_steps,
        advocacy_notes=ADVOCACY_NOTES + ETHICAL_NOTES,
    )


class LegalDocumentAnalyzer:
    """
    Runs the element analysis over a legal document.

    Usage:
        analyzer = LegalDocumentAnalyzer()
        analysis = analyzer.analyze(document_id, text, "police_report")
        print(analysis.strength.overall_strength)
    """

    def analyze(
        self,
        document_id: str,
        text: str,
        document_type: str,
        client_id: Optional[str] = None,
    ) -> LegalAnalysis:
        """
        Analyze a legal document.

        Args:
            document_id: Stored document ID
            text: Full document text
            document_type: police_report, incident_report, witness_statement
                or legal_correspondence
            client_id: Owning client

        Returns:
            LegalAnalysis
        """
        key_issues = identify_key_issues(text)
        credibility = assess_source_credibility(text, document_type)
        classification = classify_information(text)
        elements = analyze_elements(text, classification)
        arguments = build_arguments(elements)
        strength = assess_document_strength(elements, arguments)

        logger.info(
            f"Legal analysis {document_id} ({document_type}): credibility={credibility:.2f}, "
            f"strength={strength.overall_strength:.2f}, issues={key_issues}"
        )

        return LegalAnalysis(
            document_id=document_id,
            client_id=client_id,
            document_type=document_type,
            key_issues=key_issues,
            source_credibility=credibility,
            classification=classification,
            elements=elements,
            arguments=arguments,
            strength=strength,
        )


# CLI for testing
if __name__ == "__main__":
    import sys
    import json
    from pathlib import Path

    from .document_parser import detect_document_type

    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 2:
        print("Usage: python -m execution.casefile_rag.legal_analysis <report.txt>")
        sys.exit(1)

    path = Path(sys.argv[1])
    text = path.read_text(encoding="utf-8")
    result = LegalDocumentAnalyzer().analyze(path.stem, text, detect_document_type(text))
    print(json.dumps(result.to_dict(), indent=2))
