"""
IRAC Analysis Parser

Turns markdown analysis text written in Issue / Rule / Application /
Conclusion form into structured issues.

Expected shape:

    **CASE SUMMARY:** ...
    **ISSUE [1]:** [Tort Law] Whether the store owed a duty ...
    **RULE [1]:** ...
    **APPLICATION [1]:** ...
    **CONCLUSION [1]:** ...
    **OVERALL CONCLUSION:** ...
    **RECOMMENDED FOLLOW-UP QUESTIONS:**
    1. ...
    **NEXT STEPS:**
    - ...
"""

import re
import logging
from typing import Optional
from dataclasses import dataclass, field

from .legal_patterns import IRAC_MARKERS

logger = logging.getLogger(__name__)

# Any bold "**NAME:**" or "**NAME [n]:**" header
HEADER_PATTERN = re.compile(r"\*\*\s*([A-Za-z][A-Za-z \-/&]*?)\s*(?:\[(\d+)\])?\s*:\s*\*\*")

IRAC_SECTIONS = ("ISSUE", "RULE", "APPLICATION", "CONCLUSION")


@dataclass
class IracIssue:
    """One issue worked through Issue, Rule, Application and Conclusion."""
    id: str
    issue_statement: str
    rule: str
    application: str
    conclusion: str
    category: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "issue_statement": self.issue_statement,
            "rule": self.rule,
            "application": self.application,
            "conclusion": self.conclusion,
            "category": self.category,
        }


@dataclass
class IracAnalysis:
    case_summary: str = ""
    legal_issues: list[IracIssue] = field(default_factory=list)
    overall_conclusion: str = ""
    follow_up_questions: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "case_summary": self.case_summary,
            "legal_issues": [i.to_dict() for i in self.legal_issues],
            "overall_conclusion": self.overall_conclusion,
            "follow_up_questions": self.follow_up_questions,
            "next_steps": self.next_steps,
        }


def is_irac_structured(text: str) -> bool:
    """True if the text carries all four IRAC markers."""
    if not text:
        return False
    return all(marker.search(text) for marker in IRAC_MARKERS.values())


def clean_irac_text(text: str) -> str:
    cleaned = re.sub(r"^\*\*.*?\*\*\s*", "", text.strip())
    cleaned = re.sub(r"\n\s*\n", "\n\n", cleaned)
    return cleaned.strip()


def _split_sections(text: str) -> list[tuple[str, Optional[str], str]]:
    """Return (NAME, number, body) for every bold header, in document order."""
    headers = list(HEADER_PATTERN.finditer(text))
    sections = []
    for i, header in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
        name = re.sub(r"\s+", " ", header.group(1)).strip().upper()
        sections.append((name, header.group(2), text[header.end():end].strip()))
    return sections


def parse_follow_up_questions(text: str) -> list[str]:
    if not text:
        return []
    parts = re.split(r"(?:^|\n)\s*\d+\.\s", text)
    return [p.strip() for p in parts if p.strip()]


def parse_next_steps(text: str) -> list[str]:
    if not text:
        return []
    parts = re.split(r"(?:^|\n)\s*[-•]\s", text)
    return [p.strip() for p in parts if p.strip()]


def _split_category(statement: str) -> tuple[Optional[str], str]:
    match = re.match(r"^\[(.*?)\]\s*(.*)", statement, re.DOTALL)
    if match:
        return match.group(1).strip(), match.group(2)
    return None, statement


def parse_irac_issues(sections: list[tuple[str, Optional[str], str]]) -> list[IracIssue]:
    """Pair numbered ISSUE sections with their RULE, APPLICATION and CONCLUSION."""
    numbered = {}
    unnumbered = {}
    order = []

    for name, number, body in sections:
        if name not in IRAC_SECTIONS:
            continue
        if number is None:
            unnumbered.setdefault(name, body)
        else:
            numbered.setdefault((name, number), body)
            if name == "ISSUE" and number not in order:
                order.append(number)

    issues = []
    for number in order:
        parts = {
            section: numbered.get((section, number)) or unnumbered.get(section, "")
            for section in IRAC_SECTIONS
        }
        if not all(parts.values()):
            logger.debug(f"Skipping incomplete IRAC issue {number}")
            continue
        category, statement = _split_category(parts["ISSUE"])
        issues.append(IracIssue(
            id=f"issue-{number}",
            issue_statement=clean_irac_text(statement),
            rule=clean_irac_text(parts["RULE"]),
            application=clean_irac_text(parts["APPLICATION"]),
            conclusion=clean_irac_text(parts["CONCLUSION"]),
            category=category,
        ))

    if not issues and all(unnumbered.get(s) for s in IRAC_SECTIONS):
        category, statement = _split_category(unnumbered["ISSUE"])
        issues.append(IracIssue(
            id="issue-1",
            issue_statement=clean_irac_text(statement),
            rule=clean_irac_text(unnumbered["RULE"]),
            application=clean_irac_text(unnumbered["APPLICATION"]),
            conclusion=clean_irac_text(unnumbered["CONCLUSION"]),
            category=category,
        ))

    return issues


def parse_irac_analysis(text: str) -> Optional[IracAnalysis]:
    """
    Parse IRAC-formatted analysis text.

    Args:
        text: Markdown analysis with bold section headers

    Returns:
        IracAnalysis, or None when the text is empty
    """
    if not text or not text.strip():
        return None

    sections = _split_sections(text)
    section_map = {}
    for name, number, body in sections:
        if number is None:
            section_map.setdefault(name, body)

    analysis = IracAnalysis(
        case_summary=section_map.get("CASE SUMMARY", ""),
        legal_issues=parse_irac_issues(sections),
        overall_conclusion=section_map.get("OVERALL CONCLUSION", ""),
        follow_up_questions=parse_follow_up_questions(section_map.get("RECOMMENDED FOLLOW-UP QUESTIONS", "")),
        next_steps=parse_next_steps(section_map.get("NEXT STEPS", "")),
    )
    logger.info(f"Parsed IRAC analysis with {len(analysis.legal_issues)} issues")
    return analysis
