"""Tests for taste profile learning."""
from dataclasses import replace
from datetime import timedelta

import pytest

from blend.errors import ConfigurationError
from blend.matching.model import ConversationMetrics, Pace, ResponseStyle, ViewAction
from blend.matching.taste import (
    ActivePeriod,
    AttractionPatterns,
    BehavioralPatterns,
    BioLength,
    MessageStyle,
    ResponseSpeed,
    TasteProfileBuilder,
    group_into_sessions,
    taste_match,
)
from factories import make_event, make_profile

LIKED_AGES = [28, 28, 29, 29, 30, 30, 31, 31, 31, 32, 32, 33, 33, 34, 34]


@pytest.fixture
def builder():
    return TasteProfileBuilder()


@pytest.fixture
def twenty_events():
    """15 likes clustered at 28-34 plus 5 passes on much older profiles."""
    events = [make_event(i, ViewAction.LIKE, age=age) for i, age in enumerate(LIKED_AGES)]
    events += [make_event(15 + i, ViewAction.PASS, age=55 + i) for i in range(5)]
    return events


def test_three_events_have_zero_confidence_and_neutral_defaults(builder):
    taste = builder.rebuild([make_event(i) for i in range(3)])
    assert taste.confidence_score == 0
    assert taste.is_learning
    assert taste.attraction_patterns == AttractionPatterns()
    assert taste.behavioral_patterns == BehavioralPatterns()
    assert taste.total_profiles_viewed == 3


def test_clustered_likes_set_preferred_age_range(builder, twenty_events):
    taste = builder.rebuild(twenty_events)
    low, high = taste.attraction_patterns.preferred_age_range
    assert abs(low - 28) <= 1
    assert abs(high - 34) <= 1
    assert taste.confidence_score > 0
    assert taste.confidence_score == pytest.approx(20 / 50)


def test_rebuild_is_idempotent(builder, twenty_events):
    assert builder.rebuild(twenty_events) == builder.rebuild(twenty_events)


def test_rebuild_ignores_input_order(builder, twenty_events):
    assert builder.rebuild(list(reversed(twenty_events))) == builder.rebuild(twenty_events)


def test_confidence_never_decreases_as_events_accumulate(builder):
    events = [make_event(i, ViewAction.LIKE if i % 3 else ViewAction.PASS) for i in range(80)]
    previous = 0.0
    for n in range(len(events) + 1):
        confidence = builder.rebuild(events[:n]).confidence_score
        assert 0.0 <= confidence <= 1.0
        assert confidence >= previous
        previous = confidence
    assert previous == 1.0


def test_few_liked_ages_fall_back_to_observed_range(builder):
    events = [make_event(0, ViewAction.LIKE, age=26), make_event(1, ViewAction.LIKE, age=41)]
    events += [make_event(2 + i, ViewAction.PASS, age=30) for i in range(4)]
    taste = builder.rebuild(events)
    assert taste.attraction_patterns.preferred_age_range == (26, 41)


def test_attraction_patterns_from_liked_snapshots(builder):
    events = [
        make_event(
            i,
            ViewAction.LIKE,
            intent_ids={"polyamory", "open"} if i % 2 else {"polyamory", "kink"},
            bio_length=220,
            photo_count=5,
            has_voice_intro=i < 4,
            pace_preference=Pace.SLOW,
            response_style=ResponseStyle.QUICK,
        )
        for i in range(6)
    ]
    events.append(make_event(6, ViewAction.PASS, intent_ids={"swinging"}))
    patterns = builder.rebuild(events).attraction_patterns

    assert patterns.preferred_relationship_structures == ("polyamory", "kink", "open")
    assert patterns.bio_length_preference == BioLength.LONG
    assert patterns.preferred_photo_count == 5
    assert patterns.prefers_voice_intros is True
    assert patterns.preferred_pace == Pace.SLOW
    assert patterns.preferred_response_style == ResponseStyle.QUICK


def test_rare_intents_are_not_preferred(builder):
    events = [make_event(i, intent_ids={"open"}) for i in range(5)]
    events.append(make_event(5, intent_ids={"kink"}))
    patterns = builder.rebuild(events).attraction_patterns
    assert patterns.preferred_relationship_structures == ("open",)


def test_sessions_split_on_idle_gap(builder):
    first = [make_event(i) for i in range(5)]                        # 20:00-20:08
    later = [make_event(100 + i) for i in range(5)]                  # 23:20-23:28
    assert len(group_into_sessions(first + later, idle_minutes=30)) == 2

    behavior = builder.rebuild(first + later).behavioral_patterns
    assert behavior.avg_profiles_viewed_per_session == 5
    assert behavior.avg_session_duration_mins == 8
    assert behavior.active_period == ActivePeriod.EVENING
    assert behavior.typical_active_hours[0] == 20
    assert set(behavior.typical_active_hours) == {20, 23}
    assert behavior.most_active_day == 4                             # Friday
    assert behavior.like_rate == 1.0
    assert behavior.avg_dwell_seconds == 4.0


def test_conversations_shape_message_style_and_speed(builder):
    events = [make_event(i) for i in range(5)]
    conversations = [
        ConversationMetrics("t1", avg_response_time_ms=10 * 60000, avg_message_length=20, met_in_person=True),
        ConversationMetrics("t2", avg_response_time_ms=20 * 60000, avg_message_length=30),
    ]
    taste = builder.rebuild(events, conversations)
    assert taste.behavioral_patterns.message_style == MessageStyle.CONCISE
    assert taste.behavioral_patterns.response_speed == ResponseSpeed.FAST
    assert taste.total_conversations == 2
    assert taste.successful_connections == 1


def test_totals_count_each_action(builder, twenty_events):
    extra = make_event(40, ViewAction.SUPER_LIKE)
    taste = builder.rebuild(twenty_events + [extra])
    assert taste.total_likes == 15
    assert taste.total_super_likes == 1
    assert taste.total_passes == 5
    assert taste.total_profiles_viewed == 21


def test_taste_match_rewards_learned_preferences(builder, twenty_events):
    taste = builder.rebuild(twenty_events)
    fits = make_profile("fits", age=31, intent_ids={"polyamory"})
    misses = make_profile("misses", age=60, intent_ids={"swinging"}, pace_preference=Pace.FAST,
                          response_style=ResponseStyle.QUICK, bio="")
    assert taste_match(fits, taste).score > taste_match(misses, taste).score
    assert taste_match(fits, taste).score <= 100


def test_taste_match_is_neutral_without_data(builder):
    taste = builder.rebuild([])
    assert taste_match(make_profile("x"), taste).score == 50


def test_to_dict_serialises_enums(builder, twenty_events):
    data = builder.rebuild(twenty_events).to_dict()
    assert data["attraction_patterns"]["bio_length_preference"] in {"short", "medium", "long"}
    assert data["behavioral_patterns"]["active_period"] == "evening"


def test_builder_rejects_bad_sample_constants():
    with pytest.raises(ConfigurationError):
        TasteProfileBuilder(min_sample_count=0)
    with pytest.raises(ConfigurationError):
        TasteProfileBuilder(min_sample_count=10, target_sample_count=5)


def test_rebuild_accepts_naive_timestamps_in_the_log(builder):
    events = [make_event(i) for i in range(5)]
    mixed = list(events)
    mixed[2] = replace(events[2], created_at=events[2].created_at.replace(tzinfo=None))

    assert mixed[2].created_at == events[2].created_at
    assert builder.rebuild(mixed) == builder.rebuild(events)


def test_unobserved_pace_and_style_earn_no_bonus(builder, twenty_events):
    taste = builder.rebuild(twenty_events)
    assert taste.attraction_patterns.preferred_pace is None
    assert taste.attraction_patterns.preferred_response_style is None
    assert taste.to_dict()["attraction_patterns"]["preferred_pace"] is None

    medium_relaxed = make_profile("m", age=60, intent_ids={"swinging"}, bio="")
    unset = make_profile("u", age=60, intent_ids={"swinging"}, bio="",
                         pace_preference=None, response_style=None)
    assert taste_match(medium_relaxed, taste).score == taste_match(unset, taste).score
    assert not any("pace" in r for r in taste_match(medium_relaxed, taste).reasons)
