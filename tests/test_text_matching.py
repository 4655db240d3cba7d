# tests/test_text_matching.py

"""
Tests for resolving a child from transaction text.
"""

import pytest

from feerecon.core.text_matching import (
    BOTH_NAMES_SCORE,
    FIRST_NAME_SCORE,
    FULL_NAME_SCORE,
    LAST_NAME_SCORE,
    LAST_NAME_WITH_INITIAL_SCORE,
    extract_member_number,
    match_child,
    person_name_score,
)
from feerecon.core.normalizers import normalize_match_text

from tests.fakes import make_child


def score(text: str, first: str, last: str) -> float:
    return person_name_score(normalize_match_text(text), first, last)


# ============================================
# Member Number Tests
# ============================================

class TestMemberNumber:

    def test_standalone_number(self):
        assert extract_member_number("Essensgeld 11089 Maerz") == "11089"

    def test_glued_to_name(self):
        assert extract_member_number("Bachle11089") == "11089"

    def test_across_line_break(self):
        assert extract_member_number("Mitglied\n11089\nMaerz") == "11089"

    def test_longer_numbers_ignored(self):
        assert extract_member_number("Ref 1108912") is None

    def test_no_number(self):
        assert extract_member_number("Essensgeld Maerz") is None
        assert extract_member_number(None) is None

    def test_member_number_wins_over_name(self):
        emma = make_child("Emma", "Mular", member_number="11089")
        paul = make_child("Paul", "Bachle", member_number="22222")

        result = match_child("Paul Bachle 11089", [paul, emma])

        assert result.child.id == emma.id
        assert result.matched_by == "member_number"
        assert result.confidence == 0.95

    def test_unknown_member_number_falls_back_to_name(self):
        emma = make_child("Emma", "Mular", member_number="11089")

        result = match_child("Emma Mular 99999", [emma])

        assert result.matched_by == "name"


# ============================================
# Name Scoring Tests
# ============================================

class TestNameScoring:
    """Test the name score bands."""

    @pytest.mark.parametrize("text", [
        "Emma Mular",
        "Mular Emma",
        "Mular, Emma",
        "Essensgeld EMMA MULAR Maerz",
        "MularEmma",
    ])
    def test_full_name_variants(self, text):
        assert score(text, "Emma", "Mular") == FULL_NAME_SCORE

    def test_both_names_apart(self):
        assert score("Emma geb. Mular", "Emma", "Mular") == BOTH_NAMES_SCORE

    def test_last_name_with_initial(self):
        assert score("E. Mular", "Emma", "Mular") == LAST_NAME_WITH_INITIAL_SCORE

    def test_last_name_only(self):
        assert score("Familie Mular", "Emma", "Mular") == LAST_NAME_SCORE

    def test_first_name_only(self):
        assert score("Essen fuer Emma", "Emma", "Mular") == FIRST_NAME_SCORE

    def test_short_last_name_ignored(self):
        assert score("Ng", "Li", "Ng") == 0.0

    def test_eszett_spellings(self):
        for text in ("Lena Quaißer", "Lena Quaisser", "Lena Quaiser"):
            assert score(text, "Lena", "Quaißer") == FULL_NAME_SCORE

    def test_glued_names_folded_across_the_seam(self):
        assert score("JonasSander", "Jonas", "Sander") == FULL_NAME_SCORE
        assert score("Essensgeld SanderJonas", "Jonas", "Sander") == FULL_NAME_SCORE

    def test_mojibake(self):
        assert score("Tim ThrÃ¤nhardt", "Tim", "Thränhardt") == FULL_NAME_SCORE

    def test_no_match(self):
        assert score("Miete Wohnung", "Emma", "Mular") == 0.0


# ============================================
# Child Resolution Tests
# ============================================

class TestMatchChild:

    def test_by_child_name(self):
        emma = make_child("Emma", "Mular")

        result = match_child("Essensgeld Emma Mular", [emma])

        assert result.child.id == emma.id
        assert result.matched_by == "name"
        assert result.confidence == FULL_NAME_SCORE

    def test_best_score_wins(self):
        lena = make_child("Lena", "Mular", member_number="11111")
        emma = make_child("Emma", "Mular", member_number="22222")

        result = match_child("Emma Mular", [lena, emma])

        assert result.child.id == emma.id

    def test_tie_keeps_roster_order(self):
        first = make_child("Emma", "Mular", member_number="11111")
        second = make_child("Lena", "Mular", member_number="22222")

        result = match_child("Familie Mular", [first, second])

        assert result.child.id == first.id

    def test_first_name_alone_is_not_enough(self):
        emma = make_child("Emma", "Mular")

        assert match_child("Essen fuer Emma", [emma]) is None

    def test_by_parent_name(self):
        emma = make_child("Emma", "Mular", parents=[("Sabine", "Kraus")])

        result = match_child("Sabine Kraus", [emma])

        assert result.child.id == emma.id
        assert result.matched_by == "parent_name"
        assert result.confidence == FULL_NAME_SCORE

    def test_child_name_before_parent_name(self):
        emma = make_child("Emma", "Mular", member_number="11111")
        paul = make_child("Paul", "Weber", member_number="22222", parents=[("Emma", "Mular")])

        result = match_child("Emma Mular", [paul, emma])

        assert result.child.id == emma.id
        assert result.matched_by == "name"

    def test_payer_name_and_description_line_break(self):
        emma = make_child("Emma", "Mular", member_number="11089")

        result = match_child("Sabine Kraus Essensgeld\nMitgl.-Nr. 11089", [emma])

        assert result.matched_by == "member_number"

    def test_empty_text(self):
        assert match_child("", [make_child("Emma", "Mular")]) is None
        assert match_child("Emma Mular", []) is None
