"""
Blend - Matching Domain Model

Plain records handed to the scoring core by the profile-storage and
behaviour-storage collaborators. The core never mutates them.

    Profile          → owned by profile editing; scored pairwise
    ProfileSnapshot  → the slice of a Profile captured at decision time
    ViewEvent        → one profile view with a decision (append-only)
    ConversationMetrics → per-thread messaging aggregates (optional input)
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional


class ViewAction(str, Enum):
    LIKE = "like"
    PASS = "pass"
    SUPER_LIKE = "super_like"

    @property
    def is_positive(self) -> bool:
        return self in (ViewAction.LIKE, ViewAction.SUPER_LIKE)


class Pace(str, Enum):
    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"


class ResponseStyle(str, Enum):
    QUICK = "quick"
    RELAXED = "relaxed"


# Ordinal position used for "adjacent" vs "opposite" pace comparisons
PACE_ORDER = {Pace.SLOW: 0, Pace.MEDIUM: 1, Pace.FAST: 2}


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC so every stored time compares with every other."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _coerce_enum(enum_cls, value):
    """Map a raw value onto an enum member, or None when absent/unknown."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Profile:
    id: str
    age: Optional[int] = None
    city: str = ""
    bio: Optional[str] = None
    intent_ids: FrozenSet[str] = field(default_factory=frozenset)
    pace_preference: Optional[Pace] = None
    response_style: Optional[ResponseStyle] = None
    photo_count: Optional[int] = None
    virtual_only: Optional[bool] = None
    open_to_meet: bool = True
    has_voice_intro: bool = False
    updated_at: Optional[str] = None       # last-modified marker, part of cache fingerprints

    def __post_init__(self):
        # Frozen: normalise through object.__setattr__
        object.__setattr__(self, "intent_ids", frozenset(self.intent_ids or ()))
        object.__setattr__(self, "pace_preference", _coerce_enum(Pace, self.pace_preference))
        object.__setattr__(self, "response_style", _coerce_enum(ResponseStyle, self.response_style))

    @property
    def bio_length(self) -> int:
        return len(self.bio or "")

    @staticmethod
    def from_record(record: Dict[str, Any]) -> "Profile":
        photos = record.get("photos")
        photo_count = record.get("photo_count")
        if photo_count is None and photos is not None:
            photo_count = len(photos)
        return Profile(
            id=str(record.get("id", "")),
            age=record.get("age"),
            city=record.get("city") or "",
            bio=record.get("bio"),
            intent_ids=frozenset(record.get("intent_ids") or ()),
            pace_preference=record.get("pace_preference"),
            response_style=record.get("response_style"),
            photo_count=photo_count,
            virtual_only=record.get("virtual_only"),
            open_to_meet=record.get("open_to_meet", True),
            has_voice_intro=bool(record.get("voice_intro_url") or record.get("has_voice_intro")),
            updated_at=record.get("updated_at"),
        )


@dataclass(frozen=True)
class ProfileSnapshot:
    age: Optional[int] = None
    intent_ids: FrozenSet[str] = field(default_factory=frozenset)
    bio_length: int = 0
    photo_count: int = 0
    has_voice_intro: bool = False
    pace_preference: Optional[Pace] = None
    response_style: Optional[ResponseStyle] = None

    def __post_init__(self):
        object.__setattr__(self, "intent_ids", frozenset(self.intent_ids or ()))
        object.__setattr__(self, "bio_length", max(0, int(self.bio_length or 0)))
        object.__setattr__(self, "photo_count", max(0, int(self.photo_count or 0)))
        object.__setattr__(self, "pace_preference", _coerce_enum(Pace, self.pace_preference))
        object.__setattr__(self, "response_style", _coerce_enum(ResponseStyle, self.response_style))

    @classmethod
    def of(cls, profile: Profile) -> "ProfileSnapshot":
        return cls(
            age=profile.age,
            intent_ids=profile.intent_ids,
            bio_length=profile.bio_length,
            photo_count=profile.photo_count or 0,
            has_voice_intro=profile.has_voice_intro,
            pace_preference=profile.pace_preference,
            response_style=profile.response_style,
        )


@dataclass(frozen=True)
class ViewEvent:
    subject_user_id: str
    viewed_user_id: str
    dwell_ms: int
    action: ViewAction
    snapshot: ProfileSnapshot
    created_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "created_at", as_utc(self.created_at))

    @property
    def is_like(self) -> bool:
        return self.action.is_positive

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        data["created_at"] = self.created_at.isoformat()
        data["snapshot"]["intent_ids"] = sorted(self.snapshot.intent_ids)
        for key in ("pace_preference", "response_style"):
            value = getattr(self.snapshot, key)
            data["snapshot"][key] = value.value if value else None
        return data


@dataclass(frozen=True)
class ConversationMetrics:
    thread_id: str
    messages_sent: int = 0
    messages_received: int = 0
    avg_response_time_ms: float = 0.0
    avg_message_length: float = 0.0
    met_in_person: bool = False


def liked(events: Iterable[ViewEvent]):
    """Events where the subject liked or super-liked the viewed profile."""
    return [e for e in events if e.is_like]
