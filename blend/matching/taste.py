"""
Blend - Taste Profile Builder

Learns what a user is drawn to (attraction patterns) and how they use the app
(behavioural patterns) from their recorded view events.

A rebuild is a pure, total, deterministic function of the event log:

    rebuild(events) == rebuild(events)          # idempotent
    confidence(events + more) >= confidence(events)
    confidence == 0 while len(events) < min_sample_count

Below the minimum sample the profile carries population-neutral defaults, so
"still learning" displays never special-case missing fields.
"""
import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from blend.errors import ConfigurationError
from blend.matching.model import (
    ConversationMetrics,
    Pace,
    Profile,
    ResponseStyle,
    ViewAction,
    ViewEvent,
    as_utc,
)

logger = structlog.get_logger()

MIN_SAMPLE_COUNT = 5
TARGET_SAMPLE_COUNT = 50
MIN_INTENT_OCCURRENCES = 2
SESSION_IDLE_MINUTES = 30
MAX_ACTIVE_HOURS = 4

# Bio length buckets (characters)
SHORT_BIO_MAX = 50
LONG_BIO_MIN = 150


class BioLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class MessageStyle(str, Enum):
    CONCISE = "concise"
    BALANCED = "balanced"
    VERBOSE = "verbose"


class ResponseSpeed(str, Enum):
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"


class ActivePeriod(str, Enum):
    NIGHT = "night"            # 00-05
    MORNING = "morning"        # 06-11
    AFTERNOON = "afternoon"    # 12-17
    EVENING = "evening"        # 18-23


def bucket_bio_length(length: float) -> BioLength:
    if length < SHORT_BIO_MAX:
        return BioLength.SHORT
    if length > LONG_BIO_MIN:
        return BioLength.LONG
    return BioLength.MEDIUM


def period_of_hour(hour: int) -> ActivePeriod:
    if hour < 6:
        return ActivePeriod.NIGHT
    if hour < 12:
        return ActivePeriod.MORNING
    if hour < 18:
        return ActivePeriod.AFTERNOON
    return ActivePeriod.EVENING


# =============================================
# TASTE PROFILE
# =============================================

@dataclass(frozen=True)
class AttractionPatterns:
    preferred_age_range: Tuple[int, int] = (21, 55)
    avg_liked_age: float = 0.0
    bio_length_preference: BioLength = BioLength.MEDIUM
    preferred_photo_count: int = 3
    preferred_relationship_structures: Tuple[str, ...] = ()
    prefers_voice_intros: bool = False
    # None until some liked profile carried the field
    preferred_pace: Optional[Pace] = None
    preferred_response_style: Optional[ResponseStyle] = None


@dataclass(frozen=True)
class BehavioralPatterns:
    avg_session_duration_mins: float = 0.0
    avg_profiles_viewed_per_session: float = 0.0
    typical_active_hours: Tuple[int, ...] = ()
    active_period: ActivePeriod = ActivePeriod.EVENING
    avg_daily_sessions: float = 0.0
    most_active_day: int = 0               # datetime.weekday(): 0 = Monday
    like_rate: float = 0.0
    avg_dwell_seconds: float = 0.0
    message_style: MessageStyle = MessageStyle.BALANCED
    response_speed: ResponseSpeed = ResponseSpeed.MODERATE


@dataclass(frozen=True)
class TasteProfile:
    user_id: str = ""
    attraction_patterns: AttractionPatterns = field(default_factory=AttractionPatterns)
    behavioral_patterns: BehavioralPatterns = field(default_factory=BehavioralPatterns)
    confidence_score: float = 0.0

    total_profiles_viewed: int = 0
    total_likes: int = 0
    total_super_likes: int = 0
    total_passes: int = 0
    total_conversations: int = 0
    successful_connections: int = 0

    @property
    def is_learning(self) -> bool:
        return self.confidence_score == 0.0

    def to_dict(self) -> dict:
        ap, bp = self.attraction_patterns, self.behavioral_patterns
        return {
            "user_id": self.user_id,
            "confidence_score": round(self.confidence_score, 2),
            "attraction_patterns": {
                "preferred_age_range": list(ap.preferred_age_range),
                "avg_liked_age": ap.avg_liked_age,
                "bio_length_preference": ap.bio_length_preference.value,
                "preferred_photo_count": ap.preferred_photo_count,
                "preferred_relationship_structures": list(ap.preferred_relationship_structures),
                "prefers_voice_intros": ap.prefers_voice_intros,
                "preferred_pace": ap.preferred_pace.value if ap.preferred_pace else None,
                "preferred_response_style": (
                    ap.preferred_response_style.value if ap.preferred_response_style else None
                ),
            },
            "behavioral_patterns": {
                "avg_session_duration_mins": bp.avg_session_duration_mins,
                "avg_profiles_viewed_per_session": bp.avg_profiles_viewed_per_session,
                "typical_active_hours": list(bp.typical_active_hours),
                "active_period": bp.active_period.value,
                "avg_daily_sessions": bp.avg_daily_sessions,
                "most_active_day": bp.most_active_day,
                "like_rate": bp.like_rate,
                "avg_dwell_seconds": bp.avg_dwell_seconds,
                "message_style": bp.message_style.value,
                "response_speed": bp.response_speed.value,
            },
            "total_profiles_viewed": self.total_profiles_viewed,
            "total_likes": self.total_likes,
            "total_super_likes": self.total_super_likes,
            "total_passes": self.total_passes,
            "total_conversations": self.total_conversations,
            "successful_connections": self.successful_connections,
        }


# =============================================
# BUILDER
# =============================================

def _mode(values: Iterable, order: Sequence):
    """Most common value; ties resolved by position in `order`."""
    counts = Counter(v for v in values if v is not None)
    if not counts:
        return None
    return max(order, key=lambda v: (counts.get(v, 0), -order.index(v)))


def group_into_sessions(events: Sequence[ViewEvent], idle_minutes: int) -> List[List[ViewEvent]]:
    """Split chronologically ordered events wherever the gap exceeds the idle threshold."""
    if not events:
        return []
    max_gap = timedelta(minutes=idle_minutes)
    sessions = [[events[0]]]
    for prev, curr in zip(events, events[1:]):
        if curr.created_at - prev.created_at > max_gap:
            sessions.append([curr])
        else:
            sessions[-1].append(curr)
    return sessions


class TasteProfileBuilder:
    def __init__(
        self,
        min_sample_count: int = MIN_SAMPLE_COUNT,
        target_sample_count: int = TARGET_SAMPLE_COUNT,
        min_intent_occurrences: int = MIN_INTENT_OCCURRENCES,
        session_idle_minutes: int = SESSION_IDLE_MINUTES,
    ):
        if min_sample_count < 1:
            raise ConfigurationError("min_sample_count", "must be >= 1")
        if target_sample_count < min_sample_count:
            raise ConfigurationError("target_sample_count", "must be >= min_sample_count")
        if min_intent_occurrences < 1:
            raise ConfigurationError("min_intent_occurrences", "must be >= 1")
        if session_idle_minutes <= 0:
            raise ConfigurationError("session_idle_minutes", "must be > 0")
        self.min_sample_count = min_sample_count
        self.target_sample_count = target_sample_count
        self.min_intent_occurrences = min_intent_occurrences
        self.session_idle_minutes = session_idle_minutes

    def confidence(self, sample_count: int) -> float:
        if sample_count < self.min_sample_count:
            return 0.0
        return min(1.0, sample_count / self.target_sample_count)

    def rebuild(
        self,
        events: Sequence[ViewEvent],
        conversations: Sequence[ConversationMetrics] = (),
        user_id: Optional[str] = None,
    ) -> TasteProfile:
        # sorted() is stable: equal timestamps keep their log order
        ordered = sorted(events, key=lambda e: as_utc(e.created_at))
        if user_id is None:
            user_id = ordered[0].subject_user_id if ordered else ""

        likes = [e for e in ordered if e.is_like]
        totals = dict(
            total_profiles_viewed=len(ordered),
            total_likes=sum(1 for e in ordered if e.action == ViewAction.LIKE),
            total_super_likes=sum(1 for e in ordered if e.action == ViewAction.SUPER_LIKE),
            total_passes=sum(1 for e in ordered if e.action == ViewAction.PASS),
            total_conversations=len(conversations),
            successful_connections=sum(1 for c in conversations if c.met_in_person),
        )

        if len(ordered) < self.min_sample_count:
            logger.debug(
                "taste_profile_learning",
                user_id=user_id,
                events=len(ordered),
                needed=self.min_sample_count,
            )
            return TasteProfile(user_id=user_id, confidence_score=0.0, **totals)

        return TasteProfile(
            user_id=user_id,
            attraction_patterns=self.analyze_attraction(likes),
            behavioral_patterns=self.analyze_behavior(ordered, conversations),
            confidence_score=self.confidence(len(ordered)),
            **totals,
        )

    def analyze_attraction(self, likes: Sequence[ViewEvent]) -> AttractionPatterns:
        if not likes:
            return AttractionPatterns()
        snapshots = [e.snapshot for e in likes]
        defaults = AttractionPatterns()

        ages = [s.age for s in snapshots if s.age and s.age > 0]
        if not ages:
            age_range, avg_age = defaults.preferred_age_range, defaults.avg_liked_age
        else:
            if len(ages) >= max(2, self.min_sample_count):
                cuts = statistics.quantiles(ages, n=10, method="inclusive")
                age_range = (int(round(cuts[0])), int(round(cuts[-1])))
            else:
                age_range = (min(ages), max(ages))
            avg_age = round(statistics.fmean(ages), 1)

        avg_bio = statistics.fmean(s.bio_length for s in snapshots)
        avg_photos = statistics.fmean(s.photo_count for s in snapshots)

        intent_counts = Counter(tag for s in snapshots for tag in s.intent_ids)
        structures = tuple(
            tag
            for tag, count in sorted(intent_counts.items(), key=lambda kv: (-kv[1], kv[0]))
            if count >= self.min_intent_occurrences
        )

        with_voice = sum(1 for s in snapshots if s.has_voice_intro)

        return AttractionPatterns(
            preferred_age_range=age_range,
            avg_liked_age=avg_age,
            bio_length_preference=bucket_bio_length(avg_bio),
            preferred_photo_count=int(round(avg_photos)),
            preferred_relationship_structures=structures,
            prefers_voice_intros=with_voice / len(snapshots) > 0.5,
            preferred_pace=_mode(
                (s.pace_preference for s in snapshots), [Pace.MEDIUM, Pace.SLOW, Pace.FAST]
            ),
            preferred_response_style=_mode(
                (s.response_style for s in snapshots),
                [ResponseStyle.RELAXED, ResponseStyle.QUICK],
            ),
        )

    def analyze_behavior(
        self,
        ordered: Sequence[ViewEvent],
        conversations: Sequence[ConversationMetrics] = (),
    ) -> BehavioralPatterns:
        if not ordered:
            return BehavioralPatterns()

        sessions = group_into_sessions(ordered, self.session_idle_minutes)
        durations = [
            (s[-1].created_at - s[0].created_at).total_seconds() / 60.0 for s in sessions
        ]

        hour_counts = Counter(e.created_at.hour for e in ordered)
        top_hours = tuple(
            hour for hour, _ in sorted(hour_counts.items(), key=lambda kv: (-kv[1], kv[0]))
        )[:MAX_ACTIVE_HOURS]
        period = _mode(
            (period_of_hour(e.created_at.hour) for e in ordered),
            [ActivePeriod.EVENING, ActivePeriod.AFTERNOON, ActivePeriod.MORNING, ActivePeriod.NIGHT],
        )

        day_counts = Counter(e.created_at.weekday() for e in ordered)
        most_active_day = max(range(7), key=lambda d: (day_counts.get(d, 0), -d))
        unique_days = len({e.created_at.date() for e in ordered})

        likes = sum(1 for e in ordered if e.is_like)

        message_style = MessageStyle.BALANCED
        response_speed = ResponseSpeed.MODERATE
        if conversations:
            avg_length = statistics.fmean(c.avg_message_length for c in conversations)
            if avg_length < 50:
                message_style = MessageStyle.CONCISE
            elif avg_length > 150:
                message_style = MessageStyle.VERBOSE
            avg_response_mins = statistics.fmean(c.avg_response_time_ms for c in conversations) / 60000
            if avg_response_mins < 30:
                response_speed = ResponseSpeed.FAST
            elif avg_response_mins > 120:
                response_speed = ResponseSpeed.SLOW

        return BehavioralPatterns(
            avg_session_duration_mins=round(statistics.fmean(durations), 2),
            avg_profiles_viewed_per_session=round(len(ordered) / len(sessions), 2),
            typical_active_hours=top_hours,
            active_period=period,
            avg_daily_sessions=round(len(sessions) / max(1, unique_days), 2),
            most_active_day=most_active_day,
            like_rate=round(likes / len(ordered), 2),
            avg_dwell_seconds=round(statistics.fmean(e.dwell_ms for e in ordered) / 1000.0, 2),
            message_style=message_style,
            response_speed=response_speed,
        )


# =============================================
# TASTE MATCHING
# =============================================

@dataclass(frozen=True)
class TasteMatch:
    score: float
    reasons: Tuple[str, ...] = ()

    @property
    def matches(self) -> bool:
        return self.score >= 60


def taste_match(profile: Profile, taste: TasteProfile, min_confidence: float = 0.0) -> TasteMatch:
    """How well a candidate fits the viewer's learned attraction patterns (0-100)."""
    if taste.confidence_score <= 0 or taste.confidence_score < min_confidence:
        return TasteMatch(score=50.0, reasons=("Not enough data for taste matching",))

    patterns = taste.attraction_patterns
    score = 50.0
    reasons = []

    low, high = patterns.preferred_age_range
    if profile.age and low <= profile.age <= high:
        score += 10
        reasons.append("Age is in your preferred range")

    liked_intents = profile.intent_ids & set(patterns.preferred_relationship_structures)
    if liked_intents:
        score += min(len(liked_intents) * 8, 16)
        reasons.append(f"Shares {len(liked_intents)} intent(s) you typically like")

    if patterns.preferred_pace and profile.pace_preference == patterns.preferred_pace:
        score += 10
        reasons.append("Matches your preferred dating pace")

    if (
        patterns.preferred_response_style
        and profile.response_style == patterns.preferred_response_style
    ):
        score += 10
        reasons.append("Has your preferred communication style")

    if bucket_bio_length(profile.bio_length) == patterns.bio_length_preference:
        score += 5

    if patterns.prefers_voice_intros and profile.has_voice_intro:
        score += 5
        reasons.append("Has a voice intro")

    return TasteMatch(score=min(score, 100.0), reasons=tuple(reasons))
