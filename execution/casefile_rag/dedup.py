"""
Duplicate Detection

Content hashing and overlap checks used to keep the same document or the
same analysis from being stored twice for a client.
"""

import re
import hashlib
import logging
from datetime import datetime
from typing import Callable, Union

from .legal_patterns import LEGAL_CONCEPT_PATTERNS

logger = logging.getLogger(__name__)

NEAR_DUPLICATE_THRESHOLD = 0.6
LEGAL_PATTERN_THRESHOLD = 0.7


def normalize_content(text: str) -> str:
    """Strip, lowercase and collapse whitespace runs to one space."""
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def generate_content_hash(text: str) -> str:
    """SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize_content(text).encode("utf-8")).hexdigest()


def is_exact_duplicate(first: str, second: str) -> bool:
    """Same normalized text, or one normalized text contains the other."""
    a = normalize_content(first)
    b = normalize_content(second)
    if not a or not b:
        return a == b
    if generate_content_hash(a) == generate_content_hash(b):
        return True
    return a in b or b in a


def _significant_words(text: str) -> set:
    return {w for w in re.split(r"\W+", (text or "").lower()) if len(w) > 3}


def word_overlap(first: str, second: str) -> float:
    """Shared words longer than three characters over the smaller word set."""
    words1 = _significant_words(first)
    words2 = _significant_words(second)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / min(len(words1), len(words2))


def is_near_duplicate(first: str, second: str, threshold: float = NEAR_DUPLICATE_THRESHOLD) -> bool:
    return word_overlap(first, second) >= threshold


def are_similar_legal_concepts(first: str, second: str) -> bool:
    a = (first or "").strip().lower()
    b = (second or "").strip().lower()
    if not a or not b:
        return False
    if a == b:
        return True

    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) > 20 and shorter in longer:
        return True

    return word_overlap(a, b) >= NEAR_DUPLICATE_THRESHOLD


def extract_legal_patterns(text: str) -> list[str]:
    """Section references, Business & Commerce Code sentences and violation sentences."""
    lowered = (text or "").lower()
    patterns = []
    for pattern in LEGAL_CONCEPT_PATTERNS:
        patterns.extend(match.group(0).strip() for match in pattern.finditer(lowered))
    return patterns


def is_legal_pattern_duplicate(
    text: str,
    existing_texts: list[str],
    threshold: float = LEGAL_PATTERN_THRESHOLD,
) -> bool:
    """
    True when more than `threshold` of the new text's legal patterns already
    appear in one of the existing texts.
    """
    new_patterns = extract_legal_patterns(text)
    if not new_patterns:
        return False

    for existing in existing_texts:
        existing_patterns = extract_legal_patterns(existing)
        if not existing_patterns:
            continue
        overlapping = [
            p for p in new_patterns
            if any(e in p or p in e for e in existing_patterns)
        ]
        if overlapping and len(overlapping) / len(new_patterns) > threshold:
            return True

    return False


def _created_at(record: dict) -> datetime:
    value = record.get("created_at")
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            pass
    return datetime.min


def find_duplicate_groups(
    records: list[dict],
    key: Union[str, Callable[[dict], str]] = "content",
) -> tuple[list, list]:
    """
    Group records with identical content and pick the newest of each group.

    Args:
        records: Dicts with "id", "created_at" and the content field
        key: Field to hash, or a callable returning the grouping value

    Returns:
        (keep_ids, remove_ids)
    """
    groups: dict[str, list[dict]] = {}
    for record in records:
        if callable(key):
            group_key = key(record)
        else:
            group_key = generate_content_hash(str(record.get(key) or ""))
        groups.setdefault(group_key, []).append(record)

    keep, remove = [], []
    for group_key, group in groups.items():
        group.sort(key=_created_at, reverse=True)
        keep.append(group[0]["id"])
        if len(group) > 1:
            logger.info(f"Found {len(group)} duplicates for {str(group_key)[:16]}")
            remove.extend(r["id"] for r in group[1:])

    return keep, remove
