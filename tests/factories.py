"""Builders for profiles and view events used across the test modules."""
from datetime import datetime, timedelta, timezone

from blend.matching.model import Pace, Profile, ProfileSnapshot, ResponseStyle, ViewAction, ViewEvent

BASE_TIME = datetime(2026, 3, 6, 20, 0, tzinfo=timezone.utc)   # a Friday evening


def make_profile(id, **overrides):
    fields = dict(
        age=30,
        city="Portland",
        bio="Curious, kind and into long walks. " * 3,
        intent_ids=frozenset({"polyamory", "open"}),
        pace_preference=Pace.MEDIUM,
        response_style=ResponseStyle.RELAXED,
        photo_count=4,
    )
    fields.update(overrides)
    return Profile(id=id, **fields)


def make_event(
    index,
    action=ViewAction.LIKE,
    age=30,
    viewer="viewer",
    minutes_apart=2,
    **snapshot_fields,
):
    snapshot_fields.setdefault("intent_ids", frozenset({"polyamory"}))
    snapshot_fields.setdefault("bio_length", 120)
    snapshot_fields.setdefault("photo_count", 4)
    return ViewEvent(
        subject_user_id=viewer,
        viewed_user_id=f"candidate-{index:03d}",
        dwell_ms=4000,
        action=action,
        snapshot=ProfileSnapshot(age=age, **snapshot_fields),
        created_at=BASE_TIME + timedelta(minutes=index * minutes_apart),
    )
