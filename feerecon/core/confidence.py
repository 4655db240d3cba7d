# feerecon/core/confidence.py

"""
Confidence scoring and the auto-confirm policy.

The text matcher score is the base:
- Member number:   0.95
- Name / parent:   0.4-0.85
Boosts:
- Name-based match with a resolved fee:  +0.05 (max 0.93)
- Combined fee + reminder match:         +0.02 (max 0.99)

Only member-number matches (or better) reach the auto-confirm threshold, so a
name match alone always goes to review.
"""

from feerecon.config import get_settings
from feerecon.core.fee_resolver import FeeResolution
from feerecon.models import MatchedBy

settings = get_settings()

AUTO_CONFIRM_THRESHOLD = settings.auto_match_threshold

NAME_BASED_SOURCES: tuple[MatchedBy, ...] = ("name", "parent_name")


def calculate_confidence(
    base_score: float,
    matched_by: MatchedBy,
    resolution: FeeResolution,
) -> float:
    """Combine the text score with resolution-strength boosts."""
    confidence = base_score

    if resolution.resolved and matched_by in NAME_BASED_SOURCES:
        confidence = min(confidence + settings.name_match_boost, settings.name_match_max_confidence)

    if resolution.combined and confidence > 0:
        confidence = min(confidence + settings.combined_match_boost, settings.combined_match_max_confidence)

    return round(confidence, 4)


def is_auto_confirm_eligible(confidence: float, resolution: FeeResolution) -> bool:
    """Unattended confirmation needs a resolved fee and confidence at the threshold."""
    return resolution.resolved and confidence >= AUTO_CONFIRM_THRESHOLD
