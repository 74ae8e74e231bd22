"""
Medical Document Processor

Pulls the facts a personal-injury file needs out of medical records:
- Authenticity of the record (formatting, provider credentials, terminology)
- ICD-10 codes with a reliability score from the surrounding wording
- Medications, with prescribed entries weighted above patient-reported ones
- A dated treatment timeline
- A relevance filter that keeps injury-related codes and pain medications

Everything is regex and keyword driven, no model calls.
"""

import re
import logging
from typing import Optional
from datetime import datetime
from dataclasses import dataclass, field

from .legal_patterns import (
    ICD10_PATTERNS,
    ICD10_DESCRIPTIONS,
    RELEVANT_ICD10_PATTERN,
    MEDICAL_FORMATTING_PATTERNS,
    PROVIDER_CREDENTIAL_PATTERNS,
    MEDICAL_TERMINOLOGY,
    TIMELINE_DATE_PATTERNS,
    EVENT_TYPE_PATTERNS,
    PROVIDER_PATTERNS,
    MEDICATION_PATTERNS,
    RELEVANT_MEDICATIONS,
    RELEVANT_INDICATIONS,
    BILLED_AMOUNT_PATTERN,
)

logger = logging.getLogger(__name__)

DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%B %d, %Y", "%B %d %Y")


def parse_event_date(value: str) -> Optional[datetime]:
    """Parse the date forms found in records. Returns None if unparseable."""
    if not value:
        return None
    cleaned = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def _clamp(value: float, low: float = 0.1, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _context(text: str, needle: str, before: int, after: int) -> str:
    index = text.find(needle)
    if index == -1:
        return ""
    return text[max(0, index - before):index + len(needle) + after]


# =============================================================================
# Data classes
# =============================================================================

@dataclass
class ICD10Code:
    """A diagnosis code found in a record."""
    code: str
    description: str
    category: str  # primary | secondary | comorbidity
    reliability_score: float
    source_location: str

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "description": self.description,
            "category": self.category,
            "reliability_score": self.reliability_score,
            "source_location": self.source_location,
        }


@dataclass
class MedicationRecord:
    """A medication mention with dosage and who prescribed it."""
    name: str
    dosage: str
    frequency: str
    start_date: str
    prescribing_physician: str
    indication: str
    reliability_score: float
    end_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "prescribing_physician": self.prescribing_physician,
            "indication": self.indication,
            "reliability_score": self.reliability_score,
        }


@dataclass
class MedicalTimelineEvent:
    """A dated entry in a medical record."""
    date: str
    event_type: str
    description: str
    provider: str
    reliability_score: float
    source_document: str = "current_document"

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "event_type": self.event_type,
            "description": self.description,
            "provider": self.provider,
            "reliability_score": self.reliability_score,
            "source_document": self.source_document,
        }


@dataclass
class MedicalAnalysis:
    """Result of processing one medical document."""
    document_id: str
    document_type: str
    authenticity_score: float
    icd10_codes: list[ICD10Code] = field(default_factory=list)
    medications: list[MedicationRecord] = field(default_factory=list)
    timeline_events: list[MedicalTimelineEvent] = field(default_factory=list)
    relevance_score: float = 0.0
    estimated_costs: float = 0.0
    client_id: Optional[str] = None
    processed_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "client_id": self.client_id,
            "document_type": self.document_type,
            "authenticity_score": self.authenticity_score,
            "icd10_codes": [c.to_dict() for c in self.icd10_codes],
            "medications": [m.to_dict() for m in self.medications],
            "timeline_events": [e.to_dict() for e in self.timeline_events],
            "relevance_score": self.relevance_score,
            "estimated_costs": self.estimated_costs,
            "processed_at": self.processed_at,
        }


# =============================================================================
# Authenticity
# =============================================================================

def assess_authenticity(text: str) -> float:
    """
    Score how much a record looks like a genuine clinical document.

    Base 0.5, +0.2 for clinical formatting, +0.2 for provider credentials,
    +0.1 for medical terminology. Capped at 1.0.
    """
    score = 0.5
    if any(re.search(p, text, re.IGNORECASE) for p in MEDICAL_FORMATTING_PATTERNS):
        score += 0.2
    if any(re.search(p, text) for p in PROVIDER_CREDENTIAL_PATTERNS):
        score += 0.2
    if any(re.search(p, text, re.IGNORECASE) for p in MEDICAL_TERMINOLOGY):
        score += 0.1
    return round(min(1.0, score), 4)


# =============================================================================
# ICD-10 codes
# =============================================================================

def categorize_icd10_code(code: str) -> str:
    if code.startswith(("S", "T")):
        return "primary"
    if code.startswith("M"):
        return "secondary"
    return "comorbidity"


def assess_code_reliability(text: str, code: str) -> float:
    """Score a code from the ±50 characters around its first mention."""
    context = _context(text, code, 50, 50)

    reliability = 0.5
    if re.search(r"diagnosis|confirmed|assessed", context, re.IGNORECASE):
        reliability += 0.3
    if re.search(r"suspected|possible|rule out", context, re.IGNORECASE):
        reliability -= 0.2
    if re.search(r"physician|doctor|provider", context, re.IGNORECASE):
        reliability += 0.2
    return round(_clamp(reliability), 4)


def extract_icd10_codes(text: str) -> list[ICD10Code]:
    """Extract injury, musculoskeletal and external-cause ICD-10 codes."""
    codes = []
    seen = set()
    for pattern in ICD10_PATTERNS:
        for match in pattern.finditer(text):
            code = match.group(1)
            if code in seen:
                continue
            seen.add(code)
            codes.append(ICD10Code(
                code=code,
                description=ICD10_DESCRIPTIONS.get(code, "Description to be verified"),
                category=categorize_icd10_code(code),
                reliability_score=assess_code_reliability(text, code),
                source_location=_context(text, code, 30, 30) or "Code not found in context",
            ))
    return codes


# =============================================================================
# Medications
# =============================================================================

def _medication_reliability(text: str, name: str) -> float:
    context = _context(text, name, 100, 100 - len(name))

    reliability = 0.5
    if re.search(r"prescribed|prescription|\bRx\b", context, re.IGNORECASE):
        reliability += 0.3
    if re.search(r"patient reports|patient states", context, re.IGNORECASE):
        reliability -= 0.1
    if re.search(r"physician|doctor|provider", context, re.IGNORECASE):
        reliability += 0.2
    return round(_clamp(reliability), 4)


def _medication_start_date(text: str, name: str) -> str:
    context = _context(text, name, 50, 50 - len(name))
    match = re.search(r"\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}", context)
    return match.group(0) if match else "Date not specified"


def _prescribing_physician(text: str, name: str) -> str:
    context = _context(text, name, 100, 100 - len(name))
    match = re.search(r"Dr\.\s+(\w+\s+\w+)", context)
    return match.group(1) if match else "Physician not specified"


def _medication_indication(text: str, name: str) -> str:
    context = _context(text, name, 50, 100 - len(name))
    match = re.search(r"for\s+([^.,\n]+)", context, re.IGNORECASE)
    return match.group(1).strip() if match else "Indication not specified"


def extract_medications(text: str) -> list[MedicationRecord]:
    """Extract medications in "Name 10 mg 2 times daily" or "Prescription: ..." form."""
    medications = []
    for pattern in MEDICATION_PATTERNS:
        for match in pattern.finditer(text):
            name = (match.group(1) or "").strip()
            if not name:
                continue
            medications.append(MedicationRecord(
                name=name,
                dosage=(match.group(2) or "").strip() or "Not specified",
                frequency=(match.group(3) or "").strip() or "Not specified",
                start_date=_medication_start_date(text, name),
                prescribing_physician=_prescribing_physician(text, name),
                indication=_medication_indication(text, name),
                reliability_score=_medication_reliability(text, name),
            ))
    return medications


# =============================================================================
# Timeline
# =============================================================================

def classify_medical_event(description: str) -> str:
    lowered = description.lower()
    for event_type, pattern in EVENT_TYPE_PATTERNS:
        if re.search(pattern, lowered):
            return event_type
    return "treatment"


def assess_event_reliability(description: str) -> float:
    reliability = 0.6
    if re.search(r"physician|doctor|nurse|provider", description, re.IGNORECASE):
        reliability += 0.2
    if re.search(r"\b\d+\s*(?:mg|ml|cc|units)\b", description, re.IGNORECASE):
        reliability += 0.1
    if re.search(r"approximately|around|about|maybe|possibly", description, re.IGNORECASE):
        reliability -= 0.2
    return round(_clamp(reliability), 4)


def extract_provider(text: str) -> str:
    for pattern in PROVIDER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return "Provider not specified"


def _date_sort_key(value: str):
    parsed = parse_event_date(value)
    # Unparseable dates sort last
    return (parsed is None, parsed or datetime.max)


def reconstruct_timeline(text: str, source_document: str = "current_document") -> list[MedicalTimelineEvent]:
    """Read dated entries and return them in chronological order."""
    events = []
    provider = extract_provider(text)

    for pattern in TIMELINE_DATE_PATTERNS:
        for match in pattern.finditer(text):
            description = (match.group(2) or "").strip()
            if not description:
                continue
            events.append(MedicalTimelineEvent(
                date=match.group(1).strip(),
                event_type=classify_medical_event(description),
                description=description,
                provider=provider,
                reliability_score=assess_event_reliability(description),
                source_document=source_document,
            ))

    events.sort(key=lambda e: _date_sort_key(e.date))
    return events


# =============================================================================
# Relevance
# =============================================================================

def is_relevant_code(code: str) -> bool:
    return bool(RELEVANT_ICD10_PATTERN.search(code))


def is_relevant_medication(name: str, indication: str) -> bool:
    name_lower = name.lower()
    indication_lower = (indication or "").lower()
    return (
        any(med in name_lower for med in RELEVANT_MEDICATIONS) or
        any(ind in indication_lower for ind in RELEVANT_INDICATIONS)
    )


def filter_relevant(
    codes: list[ICD10Code],
    medications: list[MedicationRecord],
) -> tuple[list[ICD10Code], list[MedicationRecord], float]:
    """
    Keep injury-related codes and medications.

    Returns:
        (codes, medications, relevance_score) where the score is the mean of
        the average code reliability and the average medication reliability.
    """
    relevant_codes = [c for c in codes if is_relevant_code(c.code)]
    relevant_meds = [m for m in medications if is_relevant_medication(m.name, m.indication)]

    code_relevance = (
        sum(c.reliability_score for c in relevant_codes) / len(relevant_codes)
        if relevant_codes else 0.0
    )
    med_relevance = (
        sum(m.reliability_score for m in relevant_meds) / len(relevant_meds)
        if relevant_meds else 0.0
    )
    return relevant_codes, relevant_meds, round((code_relevance + med_relevance) / 2, 4)


def extract_billed_amount(text: str) -> float:
    """Sum the billed amounts stated in a record."""
    total = 0.0
    for match in BILLED_AMOUNT_PATTERN.finditer(text):
        try:
            total += float(match.group(1).replace(",", ""))
        except ValueError:
            continue
    return round(total, 2)


# =============================================================================
# Processor
# =============================================================================

class MedicalDocumentProcessor:
    """
    Runs every medical extraction step over a document.

    Usage:
        processor = MedicalDocumentProcessor()
        analysis = processor.process(document_id, text, client_id="c1")
        print(analysis.authenticity_score, len(analysis.icd10_codes))
    """

    def process(
        self,
        document_id: str,
        text: str,
        client_id: Optional[str] = None,
        document_type: str = "medical_record",
    ) -> MedicalAnalysis:
        """
        Process a medical document.

        Args:
            document_id: Stored document ID
            text: Full document text
            client_id: Owning client
            document_type: Detected medical document type

        Returns:
            MedicalAnalysis with relevant codes, medications and timeline
        """
        authenticity = assess_authenticity(text)

        codes, medications, relevance = filter_relevant(
            extract_icd10_codes(text),
            extract_medications(text),
        )
        timeline = reconstruct_timeline(text, source_document=document_id)

        logger.info(
            f"Medical analysis {document_id}: authenticity={authenticity:.2f}, "
            f"{len(codes)} codes, {len(medications)} medications, {len(timeline)} events"
        )

        return MedicalAnalysis(
            document_id=document_id,
            client_id=client_id,
            document_type=document_type,
            authenticity_score=authenticity,
            icd10_codes=codes,
            medications=medications,
            timeline_events=timeline,
            relevance_score=relevance,
            estimated_costs=extract_billed_amount(text),
        )


# CLI for testing
if __name__ == "__main__":
    import sys
    import json
    from pathlib import Path

    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 2:
        print("Usage: python -m execution.casefile_rag.medical <record.txt>")
        sys.exit(1)

    path = Path(sys.argv[1])
    result = MedicalDocumentProcessor().process(path.stem, path.read_text(encoding="utf-8"))
    print(json.dumps(result.to_dict(), indent=2))
