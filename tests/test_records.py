"""Tests for collaborator row validation."""
import pytest
from pydantic import ValidationError

from blend.compute.records import ActivityStatsRecord, ProfileRecord, ViewEventRecord
from blend.matching.model import Pace, ViewAction


def test_profile_record_maps_to_profile():
    profile = ProfileRecord(
        id="p1",
        age=33,
        bio="Hello there",
        intent_ids=["open", "kink", "open"],
        pace_preference="slow",
        photos=["a.jpg", "b.jpg"],
        voice_intro_url="https://cdn.example/voice.m4a",
        updated_at="2026-02-01T10:00:00Z",
    ).to_profile()

    assert profile.intent_ids == frozenset({"open", "kink"})
    assert profile.pace_preference == Pace.SLOW
    assert profile.photo_count == 2
    assert profile.has_voice_intro
    assert profile.bio_length == 11


def test_profile_without_photos_keeps_count_unknown():
    assert ProfileRecord(id="p1").to_profile().photo_count is None


@pytest.mark.parametrize(
    "row",
    [
        {"id": ""},
        {"id": "p1", "age": 12},
        {"id": "p1", "pace_preference": "glacial"},
    ],
)
def test_invalid_profile_rows_are_rejected(row):
    with pytest.raises(ValidationError):
        ProfileRecord(**row)


def test_view_event_row_maps_to_event():
    event = ViewEventRecord(
        viewer_id="u1",
        viewed_profile_id="u2",
        action="super_like",
        dwell_time_ms=-20,
        profile_metadata={"age": 29, "bio_length": 140, "photo_count": 3, "intent_ids": ["open"]},
        created_at="2026-03-01T21:15:00",
    ).to_event()

    assert event.action is ViewAction.SUPER_LIKE
    assert event.dwell_ms == 0
    assert event.snapshot.age == 29
    assert event.snapshot.intent_ids == frozenset({"open"})
    assert event.created_at.tzinfo is not None


def test_view_rows_without_a_decision_are_rejected():
    with pytest.raises(ValidationError):
        ViewEventRecord(
            viewer_id="u1",
            viewed_profile_id="u2",
            action="view",
            created_at="2026-03-01T21:15:00Z",
        )


def test_activity_stats_row_round_trips_to_dataclass():
    stats = ActivityStatsRecord(vouches_received=4, response_rate=0.5, photo_verified=True).to_stats()
    assert stats.vouches_received == 4
    assert stats.photo_verified is True
    assert stats.days_since_sti_update is None


@pytest.mark.parametrize(
    "row",
    [{"response_rate": 1.5}, {"average_rating": 6}, {"no_shows": -1}],
)
def test_out_of_range_stats_are_rejected(row):
    with pytest.raises(ValidationError):
        ActivityStatsRecord(**row)
