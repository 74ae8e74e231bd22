"""
Centralized regex patterns and keyword tables for case-file analysis.

All document-type keywords, citation regexes, ICD-10 patterns, evidence
indicators and element keywords used by the analyzers live here so that
the scoring modules only contain scoring logic.
"""

import re

# =============================================================================
# Document type detection
# =============================================================================

DOCUMENT_TYPE_PATTERNS = {
    "police_report": [
        r"police\s+report", r"incident\s+report\s+number", r"badge\s*(?:number|#)",
        r"officer", r"department", r"report\s+number",
    ],
    "incident_report": [
        r"incident\s+report", r"date\s+of\s+incident", r"time\s+of\s+incident",
        r"incident\s+description",
    ],
    "witness_statement": [
        r"witness\s+statement", r"i\s+(?:saw|observed|witnessed)", r"statement\s+of",
        r"sworn\s+statement",
    ],
    "legal_correspondence": [
        r"dear\s+(?:counsel|sir|madam)", r"re:\s", r"demand\s+letter",
        r"attorney", r"law\s+(?:firm|office)", r"sincerely",
    ],
    "medical_record": [
        r"chief\s+complaint", r"history\s+of\s+present\s+illness", r"patient\s+(?:id|name)",
        r"assessment\s+and\s+plan", r"vital\s+signs",
    ],
    "diagnostic_report": [
        r"diagnos(?:is|tic)", r"icd-?10", r"impression", r"findings",
    ],
    "imaging_result": [
        r"x-ray", r"\bmri\b", r"ct\s+scan", r"radiolog", r"imaging",
    ],
    "treatment_note": [
        r"treatment\s+(?:note|plan)", r"physical\s+therapy", r"follow-?up\s+visit",
        r"progress\s+note",
    ],
}

MEDICAL_DOCUMENT_TYPES = frozenset({
    "medical_record", "diagnostic_report", "imaging_result", "treatment_note",
})

LEGAL_DOCUMENT_TYPES = frozenset({
    "police_report", "incident_report", "witness_statement", "legal_correspondence",
})

# =============================================================================
# Statute and case-law citations
# =============================================================================

STATUTE_CODE_PATTERN = re.compile(
    r"(Texas\s+[A-Za-z]+(?:\s+[&]?\s*[A-Za-z]+)*\s+Code\s+§\s+\d+\.\d+(?:\(\w+\))?)"
)

DTPA_PATTERN = re.compile(
    r"(Texas\s+Deceptive\s+Trade\s+Practices\s+Act|DTPA)\s+(?:§|Section)\s+(\d+\.\d+(?:\(\w+\))?)",
    re.IGNORECASE,
)

STATUTE_PARSE_PATTERN = re.compile(
    r"(?:Texas\s+)?((?:[A-Za-z]+\s+)+(?:&\s+)?(?:[A-Za-z]+\s+)*Code)\s+(?:§|Section)\s+"
    r"(\d+(?:\.\d+)?)(?:\(([a-z0-9]+)\))?",
    re.IGNORECASE,
)

DTPA_PARSE_PATTERN = re.compile(
    r"(?:Texas\s+Deceptive\s+Trade\s+Practices\s+Act|DTPA)\s+(?:§|Section)\s+"
    r"(\d+(?:\.\d+)?)(?:\(([a-z0-9]+)\))?",
    re.IGNORECASE,
)

CLOSEST_STATUTE_CODES = {
    "Business": ["Texas Business & Commerce Code", "Texas Business Organizations Code"],
    "Civil": ["Texas Civil Practice & Remedies Code", "Texas Civil Statutes"],
    "Family": ["Texas Family Code"],
    "Property": ["Texas Property Code"],
    "Insurance": ["Texas Insurance Code"],
}

CASE_NAME_PATTERN = re.compile(
    r"\b([A-Z][A-Za-z.'&]*(?:\s+[A-Z][A-Za-z.'&]*)*\s+v\.\s+[A-Z][A-Za-z.'&]*(?:\s+[A-Z][A-Za-z.'&]*)*)"
)

REPORTER_CITATION_PATTERN = re.compile(
    r"\b\d+\s+[A-Za-z][A-Za-z\.]*(?:\s?\d+[a-z]{1,2})?\s+\d+\s*\([^)]+\)"
)

# =============================================================================
# Medical patterns
# =============================================================================

ICD10_PATTERNS = [
    re.compile(r"\b([ST]\d{2}\.\d{1,3}[A-Z]?)\b"),
    re.compile(r"\b(M\d{2}\.\d{1,3})\b"),
    re.compile(r"\b([VWX]\d{2}\.\d{1,3}[A-Z]?)\b"),
]

ICD10_DESCRIPTIONS = {
    "S72.001A": "Fracture of unspecified part of neck of right femur, initial encounter",
    "M54.5": "Low back pain",
    "S13.4XXA": "Sprain of ligaments of cervical spine, initial encounter",
}

RELEVANT_ICD10_PATTERN = re.compile(r"^[STUVWXY]|^M[0-9]|^G[89]")

MEDICAL_FORMATTING_PATTERNS = [
    r"Chief Complaint:", r"History of Present Illness:", r"Assessment and Plan:",
    r"SOAP", r"Provider:", r"Patient ID:",
]

PROVIDER_CREDENTIAL_PATTERNS = [
    r"\bMD\b|\bDO\b|\bNP\b|\bPA\b",
    r"Dr\.\s+\w+",
    r"Phone:\s*\(\d{3}\)\s*\d{3}-\d{4}",
]

MEDICAL_TERMINOLOGY = [
    r"\b(?:diagnosis|prognosis|treatment|medication|prescription|symptom|examination)\b",
    r"\b(?:patient|physician|doctor|nurse|clinic|hospital)\b",
]

TIMELINE_DATE_PATTERNS = [
    re.compile(r"(\d{1,2}/\d{1,2}/\d{4})\s*[-:]\s*([^.\n]+)"),
    re.compile(r"(\d{4}-\d{2}-\d{2})\s*[-:]\s*([^.\n]+)"),
    re.compile(
        r"((?:January|February|March|April|May|June|July|August|September|October|November|December)"
        r"\s+\d{1,2},\s+\d{4})\s*[-:]\s*([^.\n]+)"
    ),
]

EVENT_TYPE_PATTERNS = [
    ("injury", r"injury|accident|incident|trauma"),
    ("treatment", r"treatment|therapy|visit|appointment"),
    ("diagnosis", r"diagnosis|diagnosed|assessment"),
    ("medication", r"medication|prescription|drug"),
    ("therapy", r"physical therapy|\bpt\b|occupational therapy"),
    ("imaging", r"x-ray|mri|ct scan|imaging"),
]

PROVIDER_PATTERNS = [
    re.compile(r"Dr\.\s+(\w+\s+\w+)"),
    re.compile(r"Provider:\s*([^,\n]+)"),
    re.compile(r"Physician:\s*([^,\n]+)"),
]

MEDICATION_PATTERNS = [
    re.compile(
        r"(\w+)\s+(\d+\s*mg)\s+(\d+\s*times?\s+(?:daily|per day|bid|tid|qid))",
        re.IGNORECASE,
    ),
    re.compile(
        r"Prescription:[ \t]*([^,\n]+?)(?:,[ \t]*|[ \t]+|(?=\n)|$)(\d+\s*mg)?[ \t]*([^,\n]*)",
        re.IGNORECASE,
    ),
]

RELEVANT_MEDICATIONS = [
    "tramadol", "hydrocodone", "oxycodone", "ibuprofen", "naproxen",
    "cyclobenzaprine", "tizanidine", "gabapentin", "pregabalin",
]

RELEVANT_INDICATIONS = ["pain", "inflammation", "muscle spasm", "neuropathy", "injury"]

# =============================================================================
# Legal evidence classification
# =============================================================================

HEARSAY_INDICATORS = [
    "told me", "said that", "heard that", "someone said", "according to",
    "reported that", "stated that", "claimed that",
]

OPINION_INDICATORS = [
    "i think", "i believe", "in my opinion", "it seems", "appears to be",
    "looks like", "probably", "likely",
]

DIRECT_FACT_INDICATORS = [
    "observed", "witnessed", "saw", "occurred at", "happened at",
    "documented", "recorded", "measured",
]

SPECIFIC_DETAIL_PATTERNS = [
    re.compile(r"\d{1,2}:\d{2}"),
    re.compile(r"\d{1,2}/\d{1,2}/\d{4}"),
    re.compile(r"\d+\s*(?:feet|mph|degrees)", re.IGNORECASE),
    re.compile(r"[A-Z][a-z]+\s[A-Z][a-z]+"),
]

ELEMENT_INDICATORS = {
    "duty": [
        "duty of care", "responsible for", "obligation to", "standard of care",
        "property owner", "business owner", "driver", "physician",
    ],
    "breach": [
        "negligent", "careless", "failed to", "did not", "breach",
        "below standard", "unreasonable", "improper",
    ],
    "causation": [
        "caused by", "resulted in", "because of", "due to", "as a result",
        "led to", "resulted from", "consequence of",
    ],
    "damages": [
        "injury", "injured", "damage", "damaged", "hurt", "pain",
        "medical bills", "hospital", "treatment", "surgery", "broken",
    ],
}

DUTY_RELATIONSHIP_INDICATORS = [
    "business premises", "parking lot", "store", "restaurant", "driver",
    "pedestrian", "property owner", "landlord",
]

COUNTER_ARGUMENT_TRIGGERS = {
    "duty": [
        (r"trespasser|no permission",
         "Plaintiff may have been a trespasser with limited duty owed"),
        (r"obvious danger|open and obvious",
         "Danger was open and obvious, reducing duty"),
    ],
    "breach": [
        (r"reasonable care|proper procedures",
         "Defendant followed reasonable care standards"),
        (r"industry standard|accepted practice",
         "Actions were consistent with industry standards"),
    ],
    "causation": [
        (r"pre-existing|prior injury",
         "Injuries may be from pre-existing conditions"),
        (r"intervening cause|other factors",
         "Intervening causes may break causation chain"),
    ],
    "damages": [
        (r"no injury|minor",
         "Damages appear minimal or non-existent"),
        (r"exaggerated|inconsistent",
         "Claimed damages may be exaggerated"),
    ],
}

KEY_ISSUE_PATTERNS = [
    (r"accident|collision|fall|slip|injury|incident", "Personal Injury Incident"),
    (r"negligent|careless|breach of duty|standard of care", "Negligence Claim"),
    (r"property damage|vehicle damage|damage to", "Property Damage"),
    (r"fault|liable|responsible|at fault", "Liability Determination"),
]

SOURCE_TYPE_BONUS = {
    "police_report": 0.3,
    "incident_report": 0.2,
    "legal_correspondence": 0.2,
    "witness_statement": 0.1,
}

OFFICIAL_FORMATTING_PATTERNS = [
    r"Report Number:|Case Number:|Badge Number:",
    r"Officer:|Detective:|Department:",
    r"Date of Incident:|Time of Incident:",
]

SIGNATURE_PATTERN = r"Officer\s+\w+|Badge\s+#?\d+|Signature:"
CASE_NUMBER_PATTERN = r"Case\s*#?\s*\d+|Report\s*#?\s*\d+"
DATE_PATTERN = r"\d{1,2}/\d{1,2}/\d{4}"
TIME_PATTERN = r"\d{1,2}:\d{2}"
LOCATION_PATTERN = r"\d+\s+\w+\s+(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd)"

# =============================================================================
# Timeline cross-referencing
# =============================================================================

VAGUE_LANGUAGE_TERMS = [
    "approximately", "around", "about", "maybe", "possibly",
    "some time", "later", "eventually", "soon",
]

SPECIFIC_MEDICAL_PATTERNS = [
    re.compile(r"\d+\s*(?:mg|ml|cc|units)", re.IGNORECASE),
    re.compile(r"\d+:\d{2}\s*(?:am|pm)", re.IGNORECASE),
    re.compile(r"Dr\.\s+\w+", re.IGNORECASE),
    re.compile(r"\b[A-Z]\d+\.\d+\b"),
]

TIMELINE_HEARSAY_INDICATORS = [
    "patient reports", "patient states", "patient claims",
    "told me", "said that", "according to",
]

LEGAL_FACT_DATE_PATTERN = re.compile(r"\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}")

# =============================================================================
# Duplicate detection: legal concept patterns
# =============================================================================

LEGAL_CONCEPT_PATTERNS = [
    re.compile(r"§\s*\d+\.\d+"),
    re.compile(r"texas\s+business\s+&\s+commerce\s+code[^.]*\."),
    re.compile(r"violation[^.]*\."),
]

# =============================================================================
# IRAC structure markers
# =============================================================================

IRAC_MARKERS = {
    "issue": re.compile(r"\*\*ISSUE\s*(?:\[\d+\])?\s*:\*\*", re.IGNORECASE),
    "rule": re.compile(r"\*\*RULE\s*(?:\[\d+\])?\s*:\*\*", re.IGNORECASE),
    "application": re.compile(r"\*\*APPLICATION\s*(?:\[\d+\])?\s*:\*\*", re.IGNORECASE),
    "conclusion": re.compile(r"\*\*CONCLUSION\s*(?:\[\d+\])?\s*:\*\*", re.IGNORECASE),
}

# =============================================================================
# Billing amounts in medical records
# =============================================================================

BILLED_AMOUNT_PATTERN = re.compile(
    r"(?:total\s+charges?|charges?|billed|amount\s+due|balance\s+due|total)\s*:?\s*"
    r"\$\s?([\d,]+(?:\.\d{2})?)",
    re.IGNORECASE,
)
