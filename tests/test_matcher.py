import pytest

from image_sync.matching.matcher import Matcher, fuzzy_score, match_show
from image_sync.models.enums import MatchKind, SubstringPolicy
from image_sync.models.show import CandidateShow


def _candidates(*names):
    return [
        CandidateShow(name=name, image_ref=f"https://img.example.com/{i}.jpg")
        for i, name in enumerate(names)
    ]


def test_exact_match_ignores_case_punctuation_and_whitespace():
    result = match_show("Paw  Patrol", _candidates("Peppa Pig", "PAW-Patrol!"))
    assert result.kind == MatchKind.EXACT
    assert result.candidate.name == "PAW-Patrol!"
    assert result.score is None


def test_year_suffix_is_stripped_for_exact_match():
    result = match_show("Bluey", _candidates("Bluey (2018-present)"))
    assert result.matched
    assert result.kind == MatchKind.EXACT


def test_year_from_image_filename_is_stripped_for_exact_match():
    # name_from_filename("bluey-2018-present.jpg")
    result = match_show("Bluey", _candidates("bluey 2018 present"))
    assert result.kind == MatchKind.EXACT


def test_exact_stage_wins_over_earlier_substring_candidate():
    result = match_show("Bluey", _candidates("Bluey Minisodes", "Bluey"))
    assert result.kind == MatchKind.EXACT
    assert result.candidate.name == "Bluey"


def test_target_contained_in_candidate_is_a_substring_match():
    result = match_show("Paw Patrol", _candidates("PAW Patrol: Rescue Knights"))
    assert result.kind == MatchKind.SUBSTRING
    assert result.candidate.name == "PAW Patrol: Rescue Knights"


def test_candidate_contained_in_target_is_a_substring_match():
    result = match_show(
        "The Magic School Bus Rides Again", _candidates("Magic School Bus")
    )
    assert result.matched
    assert result.kind == MatchKind.SUBSTRING


def test_substring_requires_shorter_side_longer_than_three():
    result = match_show("Up", _candidates("Up and Away"))
    assert not result.matched
    assert result.kind is None
    assert result.candidate is None


def test_substring_stage_is_order_sensitive():
    # Same words, different order: not a substring, falls through to fuzzy
    result = match_show("Rides Again Magic School Bus", _candidates("Magic School Bus Rides Again"))
    assert result.kind == MatchKind.FUZZY
    assert result.score == pytest.approx(1.0)


def test_first_policy_picks_first_substring_candidate_and_reports_alternatives():
    candidates = _candidates("PAW Patrol: Rescue Knights", "Paw Patrol The Movie")
    result = Matcher(substring_policy=SubstringPolicy.FIRST).match("Paw Patrol", candidates)
    assert result.candidate.name == "PAW Patrol: Rescue Knights"
    assert [c.name for c in result.alternatives] == ["Paw Patrol The Movie"]


def test_closest_policy_picks_smallest_length_difference():
    candidates = _candidates("PAW Patrol: Rescue Knights", "Paw Patrol The Movie")
    result = Matcher(substring_policy="closest").match("Paw Patrol", candidates)
    assert result.kind == MatchKind.SUBSTRING
    assert result.candidate.name == "Paw Patrol The Movie"
    assert [c.name for c in result.alternatives] == ["PAW Patrol: Rescue Knights"]


def test_fuzzy_picks_highest_scoring_candidate_over_threshold():
    candidates = _candidates(
        "again rides bus school magic adventures",  # 5/6
        "magic school bus rides again",  # 5/5
    )
    result = match_show("bus school magic rides again", candidates)
    assert result.kind == MatchKind.FUZZY
    assert result.candidate.name == "magic school bus rides again"
    assert result.score == pytest.approx(1.0)


def test_no_spurious_low_confidence_match():
    result = match_show("Bluey", _candidates("Peppa Pig", "Paw Patrol", "Octonauts"))
    assert not result.matched
    assert result.alternatives == []


def test_score_at_threshold_is_not_accepted():
    # 4 of 5 words overlap: exactly 0.8, which does not exceed the threshold
    candidates = _candidates("again rides school magic")
    result = match_show("magic school bus rides again", candidates)
    assert fuzzy_score("magic school bus rides again", "again rides school magic") == pytest.approx(0.8)
    assert not result.matched


def test_lower_threshold_accepts_weaker_fuzzy_match():
    candidates = _candidates("Daniel Tiger's Neighborhood")
    assert not Matcher().match("Daniel Tigers Neighborhood", candidates).matched
    result = Matcher(threshold=0.7).match("Daniel Tigers Neighborhood", candidates)
    assert result.kind == MatchKind.FUZZY
    assert result.score == pytest.approx(0.75)


def test_empty_target_never_matches():
    assert not match_show("", _candidates("Bluey")).matched
    assert not match_show("???", _candidates("Bluey")).matched


def test_empty_candidate_list_returns_no_match():
    assert not match_show("Bluey", []).matched


def test_invalid_threshold_is_rejected():
    with pytest.raises(ValueError):
        Matcher(threshold=1.5)


@pytest.mark.parametrize(
    "first, second",
    [
        ("the magic school bus rides again", "magic school bus"),
        ("daniel tigers neighborhood", "daniel tiger s neighborhood"),
        ("paw patrol", "paw patrol rescue knights"),
        ("bluey", "peppa pig"),
        ("", "bluey"),
        ("octonauts octonauts", "octonauts"),
    ],
)
def test_fuzzy_score_is_symmetric_and_bounded(first, second):
    score = fuzzy_score(first, second)
    assert score == pytest.approx(fuzzy_score(second, first))
    assert 0.0 <= score <= 1.0


def test_fuzzy_score_counts_contained_words_longer_than_three():
    # "tigers" contains "tiger"; the lone "s" is ignored
    assert fuzzy_score("daniel tigers neighborhood", "daniel tiger s neighborhood") == pytest.approx(0.75)
    # three-letter words only count when equal
    assert fuzzy_score("bus", "buses") == 0.0
    assert fuzzy_score("bus", "bus") == 1.0


def test_prepared_candidates_give_same_result():
    matcher = Matcher()
    candidates = _candidates("Bluey (2018-present)", "PAW Patrol: Rescue Knights")
    prepared = matcher.prepare(candidates)
    for name in ("Bluey", "Paw Patrol", "Nothing Here"):
        assert matcher.match(name, candidates, prepared) == matcher.match(name, candidates)
