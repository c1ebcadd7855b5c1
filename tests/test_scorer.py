import pytest

from clientimport_workers.errors import InvalidConfigurationError, UnknownFieldError
from clientimport_workers.mapping.models import CanonicalField, ScoringWeights
from clientimport_workers.mapping.scorer import (
    NO_CANDIDATES_REASON,
    FieldScorer,
    build_candidates,
    guess_column,
)


def test_broken_street_header_maps_to_address():
    guesses = guess_column(CanonicalField.ADDRESS, ["Stra�e", "Vorname", "Nachname"])
    best = guesses[0]
    assert best.column_index == 0
    assert best.confidence >= 0.8
    assert best.signals.exact_alias
    assert any("exact alias" in reason for reason in best.reasons)


def test_guesses_sorted_by_confidence_then_column():
    guesses = guess_column("email", ["Notiz", "Mail", "E-Mail"])
    confidences = [guess.confidence for guess in guesses]
    assert confidences == sorted(confidences, reverse=True)
    assert len(guesses) == 3
    # equal scores keep column order
    assert [g.column_index for g in guesses[:2]] == [1, 2]


def test_no_candidates_gives_single_zero_guess():
    guesses = guess_column(CanonicalField.EMAIL, [])
    assert len(guesses) == 1
    assert guesses[0].confidence == 0.0
    assert guesses[0].column_index is None
    assert guesses[0].reasons == [NO_CANDIDATES_REASON]


def test_unknown_field_raises():
    with pytest.raises(UnknownFieldError):
        guess_column("shoeSize", ["Vorname"])


def test_content_boost_from_sample_rows():
    headers = ["Spalte A", "Spalte B"]
    rows = [["foo", "max@example.com"], ["bar", "anna@example.at"], ["baz", "eva@example.de"]]
    guesses = guess_column(CanonicalField.EMAIL, headers, sample_rows=rows)
    assert guesses[0].column_index == 1
    assert guesses[0].signals.content_boost == 1.0
    assert guesses[0].content_hints
    assert guesses[0].confidence >= 0.6


def test_position_boost_only_inside_expected_window():
    scorer = FieldScorer()
    candidates = build_candidates(["xyz", "xyz"])
    at_home = scorer.score(CanonicalField.AMS_ID, candidates[0])
    elsewhere = scorer.score(CanonicalField.AMS_ID, candidates[1])
    assert at_home.signals.position_boost == pytest.approx(0.2)
    assert elsewhere.signals.position_boost == 0.0


def test_fuzzy_match_below_threshold_does_not_contribute():
    scorer = FieldScorer()
    candidate = build_candidates(["qqqq"])[0]
    guess = scorer.score(CanonicalField.EMAIL, candidate)
    assert guess.signals.fuzzy_score == 0.0
    assert guess.confidence == 0.0


def test_empty_header_scores_only_content_and_position():
    scorer = FieldScorer()
    candidate = build_candidates([""], [["max@example.com"], ["eva@example.at"]])[0]
    guess = scorer.score(CanonicalField.EMAIL, candidate)
    assert not guess.signals.exact_alias
    assert guess.signals.content_boost == 1.0


def test_confidence_is_clamped():
    scorer = FieldScorer(weights=ScoringWeights(exact_alias=5.0))
    guess = scorer.score(CanonicalField.FIRST_NAME, build_candidates(["Vorname"])[0])
    assert guess.confidence == 1.0


def test_custom_weights_change_scores():
    plain = guess_column(CanonicalField.EMAIL, ["Mail"])[0]
    weights = ScoringWeights(exact_alias=0.1, token_overlap=0.0, fuzzy_match=0.0)
    heavy = guess_column(CanonicalField.EMAIL, ["Mail"], weights=weights)[0]
    assert heavy.confidence < plain.confidence


def test_negative_weight_is_rejected():
    with pytest.raises(InvalidConfigurationError):
        ScoringWeights(fuzzy_match=-1)


def test_build_candidates_limits_samples():
    rows = [[str(i)] for i in range(50)]
    candidates = build_candidates(["Nr"], rows, sample_size=5)
    assert candidates[0].sample_values == ("0", "1", "2", "3", "4")


def test_build_candidates_tolerates_short_rows():
    candidates = build_candidates(["A", "B"], [["1"], ["2", "x"]])
    assert candidates[1].sample_values == ("x",)
