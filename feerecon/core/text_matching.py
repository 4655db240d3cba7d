# feerecon/core/text_matching.py

"""
Resolve a bank transaction to a child from its free text.

Resolution order:
1. Member number (5 digits)    -> 0.95, short-circuits
2. Child name                  -> 0.4-0.85
3. Parent name of a child      -> 0.4-0.85, tagged "parent_name"

Names below 0.5 are not accepted.
"""

import re
from typing import Optional

from pydantic import BaseModel

from feerecon.config import get_settings
from feerecon.core.normalizers import compact, normalize_match_text
from feerecon.models import Child, MatchedBy

settings = get_settings()

MEMBER_NUMBER_PATTERN = re.compile(r"\b(\d{5})\b")

# Score bands
FULL_NAME_SCORE = 0.85
BOTH_NAMES_SCORE = 0.80
LAST_NAME_WITH_INITIAL_SCORE = 0.75
LAST_NAME_SCORE = 0.6
FIRST_NAME_SCORE = 0.4

MIN_LAST_NAME_LENGTH = 3
MIN_FIRST_NAME_LENGTH = 4


class ChildMatch(BaseModel):
    """A child resolved from transaction text."""

    child: Child
    confidence: float
    matched_by: MatchedBy


def extract_member_number(text: str | None) -> Optional[str]:
    """Return the first standalone 5-digit token, or None."""
    match = MEMBER_NUMBER_PATTERN.search(normalize_match_text(text))
    return match.group(1) if match else None


def person_name_score(normalized_text: str, first_name: str, last_name: str) -> float:
    """
    Score how well a person's name appears in already-normalized text.

    "Emma Mular", "Mular Emma" and "Mular, Emma" all land in the full-name band.
    """
    raw_first = (first_name or "").strip()
    raw_last = (last_name or "").strip()
    first = normalize_match_text(first_name)
    last = normalize_match_text(last_name)

    if not first and not last:
        return 0.0

    if first and last:
        patterns = (
            f"{first} {last}",
            f"{last} {first}",
            f"{last}, {first}",
            f"{last} , {first}",
        )
        if any(pattern in normalized_text for pattern in patterns):
            return FULL_NAME_SCORE

        compact_text = compact(normalized_text)
        # Fold the glued pair as a whole, folding can merge letters across the seam
        glued = (
            compact(normalize_match_text(raw_first + raw_last)),
            compact(normalize_match_text(raw_last + raw_first)),
        )
        if any(pair and pair in compact_text for pair in glued):
            return FULL_NAME_SCORE

        if first in normalized_text and last in normalized_text:
            return BOTH_NAMES_SCORE

    if last and last in normalized_text and len(raw_last) >= MIN_LAST_NAME_LENGTH:
        if first and f"{first[0]}." in normalized_text:
            return LAST_NAME_WITH_INITIAL_SCORE
        return LAST_NAME_SCORE

    if first and first in normalized_text and len(raw_first) >= MIN_FIRST_NAME_LENGTH:
        return FIRST_NAME_SCORE

    return 0.0


def match_child_by_name(text: str | None, children: list[Child]) -> Optional[ChildMatch]:
    """Best child whose own name appears in the text. Ties keep roster order."""
    normalized = normalize_match_text(text)
    if not normalized:
        return None

    best: Optional[ChildMatch] = None
    for child in children:
        score = person_name_score(normalized, child.first_name, child.last_name)
        if score >= settings.min_name_confidence and (best is None or score > best.confidence):
            best = ChildMatch(child=child, confidence=score, matched_by="name")

    return best


def match_child_by_parent_name(text: str | None, children: list[Child]) -> Optional[ChildMatch]:
    """Best child one of whose parents' names appears in the text."""
    normalized = normalize_match_text(text)
    if not normalized:
        return None

    best: Optional[ChildMatch] = None
    for child in children:
        for parent in child.parents:
            score = person_name_score(normalized, parent.first_name, parent.last_name)
            if score >= settings.min_name_confidence and (best is None or score > best.confidence):
                best = ChildMatch(child=child, confidence=score, matched_by="parent_name")

    return best


def match_child(text: str | None, children: list[Child]) -> Optional[ChildMatch]:
    """Run the full resolution order against a roster snapshot."""
    member_number = extract_member_number(text)
    if member_number:
        for child in children:
            if child.member_number == member_number:
                return ChildMatch(
                    child=child,
                    confidence=settings.member_number_confidence,
                    matched_by="member_number",
                )

    return match_child_by_name(text, children) or match_child_by_parent_name(text, children)
