"""Tests for pairwise compatibility scoring."""
import pytest

from blend.errors import ConfigurationError
from blend.matching.compatibility import (
    NEUTRAL,
    ProfileScorer,
    intents_complement,
    score_age_proximity,
    score_communication,
    score_intent_overlap,
    score_meeting_mode,
    score_values_alignment,
)
from blend.matching.model import Pace, Profile, ResponseStyle
from factories import make_profile


@pytest.fixture
def scorer():
    return ProfileScorer()


def test_shared_intents_close_age_matching_style_scores_top_quartile(scorer):
    a = Profile(
        id="a", age=30, intent_ids={"polyamory", "open", "friends-first"},
        pace_preference="medium", response_style="relaxed",
    )
    b = Profile(
        id="b", age=32, intent_ids={"polyamory", "open", "friends-first"},
        pace_preference="medium", response_style="relaxed",
    )
    score = scorer.score(a, b)
    assert score >= 75
    assert score == pytest.approx(86.3333, abs=0.01)


def test_score_is_deterministic(scorer):
    a = make_profile("a", age=27, intent_ids={"kink", "open"})
    b = make_profile("b", age=41, intent_ids={"swinging"}, pace_preference=Pace.FAST)
    assert scorer.score(a, b) == scorer.score(a, b)


def test_score_is_symmetric(scorer):
    a = make_profile("a", age=24, intent_ids={"third-for-us"}, response_style=ResponseStyle.QUICK)
    b = make_profile("b", age=36, intent_ids={"join-couple", "polyamory"}, photo_count=1, bio=None)
    assert scorer.score(a, b) == scorer.score(b, a)


@pytest.mark.parametrize(
    "a,b",
    [
        (Profile(id="a"), Profile(id="b")),
        (
            make_profile("a", age=18, intent_ids={"kink"}, pace_preference=Pace.SLOW, photo_count=0, bio=""),
            make_profile("b", age=80, intent_ids={"friends-first"}, pace_preference=Pace.FAST, photo_count=0, bio=""),
        ),
        (
            make_profile("a", photo_count=12, bio="x" * 2000),
            make_profile("b", photo_count=12, bio="x" * 2000),
        ),
    ],
)
def test_score_is_bounded(scorer, a, b):
    assert 0 <= scorer.score(a, b) <= 100


def test_adding_shared_intents_never_lowers_score(scorer):
    a_intents = {"polyamory", "kink"}
    b_intents = {"polyamory", "swinging"}
    previous = scorer.score(
        make_profile("a", intent_ids=a_intents), make_profile("b", intent_ids=b_intents)
    )
    for tag in ("open", "couples-dating", "kink", "friends-first"):
        a_intents = a_intents | {tag}
        b_intents = b_intents | {tag}
        current = scorer.score(
            make_profile("a", intent_ids=a_intents), make_profile("b", intent_ids=b_intents)
        )
        assert current >= previous
        previous = current


def test_missing_data_scores_neutral_per_dimension():
    bare = Profile(id="bare")
    full = make_profile("full")
    assert score_intent_overlap(bare, full)[0] == NEUTRAL
    assert score_age_proximity(bare, full)[0] == NEUTRAL
    assert score_communication(bare, full)[0] == NEUTRAL
    assert score_values_alignment(bare, full)[0] == NEUTRAL


def test_age_proximity_reaches_zero_at_band():
    a = make_profile("a", age=25)
    assert score_age_proximity(a, make_profile("b", age=25))[0] == 100
    assert score_age_proximity(a, make_profile("b", age=40))[0] == 0
    assert score_age_proximity(a, make_profile("b", age=60))[0] == 0


def test_communication_adjacent_pace_scores_between_exact_and_opposite():
    slow = make_profile("a", pace_preference=Pace.SLOW)
    medium = make_profile("b", pace_preference=Pace.MEDIUM)
    fast = make_profile("c", pace_preference=Pace.FAST)
    exact = score_communication(slow, slow)[0]
    adjacent = score_communication(slow, medium)[0]
    opposite = score_communication(slow, fast)[0]
    assert exact > adjacent > opposite


def test_complementary_intents_earn_partial_credit():
    assert intents_complement("third-for-us", "join-couple")
    assert intents_complement("join-couple", "third-for-us")
    assert not intents_complement("kink", "friends-first")

    unrelated = score_intent_overlap(
        make_profile("a", intent_ids={"kink"}), make_profile("b", intent_ids={"friends-first"})
    )[0]
    complementary = score_intent_overlap(
        make_profile("a", intent_ids={"third-for-us"}), make_profile("b", intent_ids={"join-couple"})
    )[0]
    assert unrelated == 0
    assert complementary > unrelated


def test_explain_reports_dimensions_and_challenges(scorer):
    a = make_profile("a", pace_preference=Pace.SLOW, response_style=ResponseStyle.QUICK, virtual_only=True)
    b = make_profile("b", pace_preference=Pace.FAST, response_style=ResponseStyle.RELAXED, virtual_only=False)
    report = scorer.explain(a, b)

    assert set(report.dimensions) == {"intent", "age", "communication", "values", "meeting", "completeness"}
    assert report.overall_score == scorer.score(a, b)
    assert any("communication" in c for c in report.potential_challenges)
    assert any("virtually" in c for c in report.potential_challenges)
    assert 1 <= len(report.conversation_starters) <= 4
    assert report.to_dict()["dimensions"]["communication"]["score"] == 25.0


def test_scorer_rejects_bad_weights():
    with pytest.raises(ConfigurationError):
        ProfileScorer(weights={"intent": 0.5, "age": 0.5})
    with pytest.raises(ConfigurationError):
        ProfileScorer(weights={"intent": 0.5, "age": 0.5, "communication": 0.5, "completeness": 0.1})
    with pytest.raises(ConfigurationError):
        ProfileScorer(age_band=0)


def test_values_alignment_rewards_shared_bio_values():
    traveller = make_profile("a", bio="I love to travel and explore. Honest communication matters.")
    also = make_profile("b", bio="Always planning the next adventure; I value honest talk.")
    homebody = make_profile("c", bio="Committed, stable and reliable. Music and art fill my weekends.")

    shared, factors = score_values_alignment(traveller, also)
    assert shared == 100
    assert factors == ["Shared value: adventure", "Shared value: communication"]
    assert score_values_alignment(traveller, homebody)[0] == 0
    assert score_values_alignment(also, traveller)[0] == shared


def test_meeting_mode_compares_virtual_and_openness():
    in_person = make_profile("a", virtual_only=False)
    virtual = make_profile("b", virtual_only=True, open_to_meet=False)
    unknown = make_profile("c")

    assert score_meeting_mode(in_person, make_profile("d", virtual_only=False))[0] == 100
    assert score_meeting_mode(in_person, virtual)[0] == 20
    assert score_meeting_mode(virtual, in_person)[0] == 20
    assert score_meeting_mode(in_person, unknown)[0] == 75


def test_meeting_mismatch_lowers_overall_score(scorer):
    a = make_profile("a", virtual_only=False)
    same = make_profile("b", virtual_only=False)
    different = make_profile("b", virtual_only=True, open_to_meet=False)
    assert scorer.score(a, same) > scorer.score(a, different)
    assert scorer.score(a, different) == scorer.score(different, a)
    assert "Different openness to meeting in person" in scorer.explain(a, different).potential_challenges
