"""
Blend - Trust Score Engine

Turns a member's lifetime activity statistics into a bounded trust score,
a tier and a set of earned badges. Used for messaging gates and profile display.

Trust Score = f(Behavior, Community, Reliability, Safety, Engagement, Transparency)

    Behavior      (0-100, weight 15%): How do dates rate them?
    Community     (0-100, weight 20%): Who vouches for them? Do they show up to events?
    Reliability   (0-100, weight 20%): Do they keep the dates they make?
    Safety        (0-100, weight 20%): Upheld reports vs. verified identity
    Engagement    (0-100, weight 10%): Do they reply? Are they around?
    Transparency  (0-100, weight 15%): STI disclosure cadence and profile completeness

Each dimension reads its own slice of the stats, so one noisy signal cannot
move more than one dimension.

Tiers (configurable table):
    90-100  ambassador
    75-89   verified
    50-74   trusted
    25-49   member
    0-24    newcomer

Badges are independent predicates over the stats and strictly additive:
a badge passed in as previously earned is always kept.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import structlog

from blend.errors import ConfigurationError

logger = structlog.get_logger()


# =============================================
# ENUMS
# =============================================

class TrustTier(str, Enum):
    NEWCOMER   = "newcomer"
    MEMBER     = "member"
    TRUSTED    = "trusted"
    VERIFIED   = "verified"
    AMBASSADOR = "ambassador"


TIER_ORDER: Tuple[TrustTier, ...] = (
    TrustTier.NEWCOMER,
    TrustTier.MEMBER,
    TrustTier.TRUSTED,
    TrustTier.VERIFIED,
    TrustTier.AMBASSADOR,
)


class TrustBadge(str, Enum):
    COMMUNITY_VOUCHED  = "community_vouched"
    EVENT_HOST         = "event_host"
    SAFE_DATER         = "safe_dater"
    GREAT_COMMUNICATOR = "great_communicator"
    RESPECTFUL         = "respectful"
    LONG_TERM_MEMBER   = "long_term_member"
    RELIABLE           = "reliable"
    VERIFIED_PHOTO     = "verified_photo"
    VERIFIED_SOCIAL    = "verified_social"
    STI_TRANSPARENT    = "sti_transparent"
    CONSENT_CHAMPION   = "consent_champion"
    COMMUNITY_BUILDER  = "community_builder"


# =============================================
# CONFIGURATION TABLES
# =============================================

DIMENSION_WEIGHTS: Dict[str, float] = {
    "behavior":     0.15,
    "community":    0.20,
    "reliability":  0.20,
    "safety":       0.20,
    "engagement":   0.10,
    "transparency": 0.15,
}

DIMENSION_INFO: Dict[str, Tuple[str, str]] = {
    "behavior":     ("Behavior", "How dates rate the experience"),
    "community":    ("Community", "Vouches and event participation"),
    "reliability":  ("Reliability", "Showing up for the dates you make"),
    "safety":       ("Safety", "Verification and a clean report history"),
    "engagement":   ("Engagement", "Responsiveness and activity"),
    "transparency": ("Transparency", "STI disclosure cadence and profile completeness"),
}

# (minimum overall score, tier), ascending
TRUST_TIER_THRESHOLDS: Tuple[Tuple[float, TrustTier], ...] = (
    (0,  TrustTier.NEWCOMER),
    (25, TrustTier.MEMBER),
    (50, TrustTier.TRUSTED),
    (75, TrustTier.VERIFIED),
    (90, TrustTier.AMBASSADOR),
)

TRUST_TIER_INFO: Dict[TrustTier, Dict[str, str]] = {
    TrustTier.NEWCOMER: {
        "label": "Newcomer",
        "description": "Just getting started in the community",
    },
    TrustTier.MEMBER: {
        "label": "Member",
        "description": "An active, established member",
    },
    TrustTier.TRUSTED: {
        "label": "Trusted",
        "description": "Consistently positive interactions",
    },
    TrustTier.VERIFIED: {
        "label": "Verified",
        "description": "Verified identity with a strong track record",
    },
    TrustTier.AMBASSADOR: {
        "label": "Ambassador",
        "description": "A pillar of the community",
    },
}

# STI disclosure is considered current within this many days
STI_CURRENT_DAYS = 90
STI_RECENT_DAYS = 180

RESPECTFUL_MIN_DAYS = 90
LONG_TERM_MIN_DAYS = 365


def validate_tier_thresholds(
    thresholds: Sequence[Tuple[float, TrustTier]],
) -> Tuple[Tuple[float, TrustTier], ...]:
    """Tier tables must start at 0 and be strictly ascending."""
    table = tuple(thresholds)
    if not table:
        raise ConfigurationError("tier_thresholds", "table is empty")
    if table[0][0] != 0:
        raise ConfigurationError("tier_thresholds", f"first threshold must be 0, got {table[0][0]}")
    for (low, _), (high, tier) in zip(table, table[1:]):
        if high <= low:
            raise ConfigurationError(
                "tier_thresholds", f"threshold for {getattr(tier, 'value', tier)} must exceed {low}"
            )
    try:
        tiers = [TrustTier(t) for _, t in table]
    except ValueError as e:
        raise ConfigurationError("tier_thresholds", str(e))
    if len(set(tiers)) != len(tiers):
        raise ConfigurationError("tier_thresholds", "each tier may appear only once")
    return tuple((float(low), tier) for (low, _), tier in zip(table, tiers))


def tier_for_score(
    score: float,
    thresholds: Sequence[Tuple[float, TrustTier]] = TRUST_TIER_THRESHOLDS,
) -> TrustTier:
    tier = thresholds[0][1]
    for low, candidate in thresholds:
        if score >= low:
            tier = candidate
        else:
            break
    return TrustTier(tier)


def can_message(sender_tier: TrustTier, required_tier: TrustTier) -> bool:
    """Messaging gate: the sender's tier must be at or above the recipient's minimum."""
    return TIER_ORDER.index(TrustTier(sender_tier)) >= TIER_ORDER.index(TrustTier(required_tier))


# =============================================
# ACTIVITY STATS - aggregated server-side
# =============================================

def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(max(value, low), high)


@dataclass(frozen=True)
class ActivityStats:
    """
    Lifetime activity counters for one member.
    Answers: "What has this person actually done on the platform?"
    """
    # Dates
    dates_completed: int = 0
    dates_cancelled: int = 0
    no_shows: int = 0

    # Community
    events_attended: int = 0
    events_hosted: int = 0
    vouches_received: int = 0
    vouches_given: int = 0

    # Reviews
    reviews_received: int = 0
    average_rating: float = 0.0            # 1-5

    # Moderation
    reports_received: int = 0
    reports_upheld: int = 0

    # Engagement
    response_rate: float = 0.0             # 0-1
    sessions_last_30d: int = 0

    # Profile and verification
    profile_completeness: float = 0.0      # 0-100
    photo_verified: bool = False
    id_verified: bool = False
    social_verified: bool = False

    # Health transparency
    sti_disclosures: int = 0
    days_since_sti_update: Optional[int] = None
    consent_checklist_completed: bool = False

    days_on_platform: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================
# DIMENSIONS - each returns (score 0-100, factors)
# =============================================

def score_behavior(stats: ActivityStats) -> Tuple[float, List[str]]:
    """Rating quality, trusted in proportion to review volume (5 reviews = full weight)."""
    reviews = max(stats.reviews_received, 0)
    if reviews == 0:
        return 50.0, ["No reviews yet"]
    rating_score = _clamp((stats.average_rating - 1) / 4 * 100)
    volume = min(reviews / 5, 1.0)
    score = 50.0 + (rating_score - 50.0) * volume
    factors = [f"{reviews} review{'s' if reviews != 1 else ''} averaging {stats.average_rating:.1f}"]
    return _clamp(score), factors


def score_community(stats: ActivityStats) -> Tuple[float, List[str]]:
    score = 20.0
    factors = []

    vouches = max(stats.vouches_received, 0)
    if vouches:
        score += min(vouches * 10, 50)
        factors.append(f"Vouched for by {vouches} member{'s' if vouches != 1 else ''}")

    attended = max(stats.events_attended, 0)
    if attended:
        score += min(attended * 3, 15)
        factors.append(f"Attended {attended} event{'s' if attended != 1 else ''}")

    hosted = max(stats.events_hosted, 0)
    if hosted:
        score += min(hosted * 5, 15)
        factors.append(f"Hosted {hosted} event{'s' if hosted != 1 else ''}")

    score += min(max(stats.vouches_given, 0) * 2, 10)
    return _clamp(score), factors


def score_reliability(stats: ActivityStats) -> Tuple[float, List[str]]:
    completed = max(stats.dates_completed, 0)
    cancelled = max(stats.dates_cancelled, 0)
    no_shows = max(stats.no_shows, 0)
    total = completed + cancelled + no_shows
    if total == 0:
        return 50.0, ["No date history yet"]

    show_rate = completed / total
    score = show_rate * 100 - no_shows * 10
    factors = [f"Kept {completed} of {total} dates"]
    if no_shows:
        factors.append(f"{no_shows} no-show{'s' if no_shows != 1 else ''}")
    return _clamp(score), factors


def score_safety(stats: ActivityStats) -> Tuple[float, List[str]]:
    score = 60.0
    factors = []

    upheld = max(stats.reports_upheld, 0)
    if upheld:
        score -= upheld * 25
        factors.append(f"{upheld} upheld report{'s' if upheld != 1 else ''}")

    if stats.photo_verified:
        score += 15
        factors.append("Photo verified")
    if stats.id_verified:
        score += 15
        factors.append("ID verified")
    if stats.social_verified:
        score += 10
        factors.append("Social account linked")

    return _clamp(score), factors


def score_engagement(stats: ActivityStats) -> Tuple[float, List[str]]:
    response_rate = _clamp(stats.response_rate, 0.0, 1.0)
    sessions = min(max(stats.sessions_last_30d, 0), 20)
    score = response_rate * 60 + sessions * 2
    factors = []
    if response_rate >= 0.9:
        factors.append("Replies to almost every message")
    if sessions >= 10:
        factors.append("Active this month")
    return _clamp(score), factors


def score_transparency(stats: ActivityStats) -> Tuple[float, List[str]]:
    factors = []
    if stats.sti_disclosures <= 0:
        sti = 0.0
    elif stats.days_since_sti_update is not None and stats.days_since_sti_update <= STI_CURRENT_DAYS:
        sti = 50.0
        factors.append("STI status is current")
    elif stats.days_since_sti_update is not None and stats.days_since_sti_update <= STI_RECENT_DAYS:
        sti = 30.0
        factors.append("STI status updated in the last six months")
    else:
        sti = 10.0
        factors.append("STI status is out of date")

    completeness = _clamp(stats.profile_completeness)
    if completeness >= 80:
        factors.append("Complete profile")
    return _clamp(sti + completeness * 0.5), factors


DIMENSION_SCORERS: Dict[str, Callable[[ActivityStats], Tuple[float, List[str]]]] = {
    "behavior":     score_behavior,
    "community":    score_community,
    "reliability":  score_reliability,
    "safety":       score_safety,
    "engagement":   score_engagement,
    "transparency": score_transparency,
}


# =============================================
# BADGES - independent, side-effect-free predicates
# =============================================

BADGE_RULES: Dict[TrustBadge, Callable[[ActivityStats], bool]] = {
    TrustBadge.COMMUNITY_VOUCHED:  lambda s: s.vouches_received >= 3,
    TrustBadge.EVENT_HOST:         lambda s: s.events_hosted >= 3,
    TrustBadge.SAFE_DATER:         lambda s: s.reviews_received >= 5 and s.average_rating >= 4,
    TrustBadge.GREAT_COMMUNICATOR: lambda s: s.response_rate >= 0.9,
    TrustBadge.RESPECTFUL:         lambda s: s.reports_upheld == 0 and s.days_on_platform >= RESPECTFUL_MIN_DAYS,
    TrustBadge.LONG_TERM_MEMBER:   lambda s: s.days_on_platform >= LONG_TERM_MIN_DAYS,
    TrustBadge.RELIABLE:           lambda s: s.dates_completed >= 5,
    TrustBadge.VERIFIED_PHOTO:     lambda s: s.photo_verified,
    TrustBadge.VERIFIED_SOCIAL:    lambda s: s.social_verified,
    TrustBadge.STI_TRANSPARENT:    lambda s: (
        s.sti_disclosures >= 2
        and s.days_since_sti_update is not None
        and s.days_since_sti_update <= STI_CURRENT_DAYS
    ),
    TrustBadge.CONSENT_CHAMPION:   lambda s: (
        s.consent_checklist_completed and s.reviews_received >= 3 and s.average_rating >= 4.5
    ),
    TrustBadge.COMMUNITY_BUILDER:  lambda s: s.events_attended >= 5 and s.vouches_given >= 3,
}


def earned_badges(stats: ActivityStats) -> FrozenSet[TrustBadge]:
    return frozenset(badge for badge, rule in BADGE_RULES.items() if rule(stats))


# =============================================
# OUTPUT
# =============================================

@dataclass(frozen=True)
class TrustDimension:
    name: str
    score: float                      # 0-100
    weight: float
    description: str
    factors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TrustScore:
    overall_score: float              # 0-100, exactly Σ score * weight
    tier: TrustTier
    badges: FrozenSet[TrustBadge]
    dimensions: Dict[str, TrustDimension]
    stats: ActivityStats
    calculated_at: str

    @property
    def tier_label(self) -> str:
        return TRUST_TIER_INFO[self.tier]["label"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": round(self.overall_score, 1),
            "tier": self.tier.value,
            "tier_label": self.tier_label,
            "badges": sorted(b.value for b in self.badges),
            "dimensions": {
                key: round(d.score, 1) for key, d in self.dimensions.items()
            },
            "calculated_at": self.calculated_at,
        }

    def to_compact(self) -> Dict[str, Any]:
        """Minimal payload for profile cards."""
        return {
            "overall_score": int(round(self.overall_score)),
            "tier": self.tier.value,
            "badges": sorted(b.value for b in self.badges),
        }

    def to_full(self) -> Dict[str, Any]:
        """Everything, including per-dimension factors and the underlying stats."""
        d = self.to_dict()
        d["dimensions"] = {
            key: {
                "name": dim.name,
                "score": round(dim.score, 1),
                "weight": dim.weight,
                "description": dim.description,
                "factors": list(dim.factors),
            }
            for key, dim in self.dimensions.items()
        }
        d["tier_description"] = TRUST_TIER_INFO[self.tier]["description"]
        d["stats"] = self.stats.to_dict()
        return d


# =============================================
# THE ENGINE
# =============================================

class TrustScoreEngine:
    def __init__(self, tier_thresholds: Sequence[Tuple[float, TrustTier]] = TRUST_TIER_THRESHOLDS):
        self.tier_thresholds = validate_tier_thresholds(tier_thresholds)

    def compute(
        self,
        stats: ActivityStats,
        previous_badges: Iterable[TrustBadge] = (),
        now: Optional[datetime] = None,
    ) -> TrustScore:
        dimensions = {}
        for key, scorer in DIMENSION_SCORERS.items():
            score, factors = scorer(stats)
            name, description = DIMENSION_INFO[key]
            dimensions[key] = TrustDimension(
                name=name,
                score=score,
                weight=DIMENSION_WEIGHTS[key],
                description=description,
                factors=tuple(factors),
            )

        overall = sum(d.score * d.weight for d in dimensions.values())
        tier = tier_for_score(overall, self.tier_thresholds)
        badges = frozenset(TrustBadge(b) for b in previous_badges) | earned_badges(stats)

        logger.info(
            "trust_score_computed",
            overall_score=round(overall, 2),
            tier=tier.value,
            badges=len(badges),
        )
        return TrustScore(
            overall_score=overall,
            tier=tier,
            badges=badges,
            dimensions=dimensions,
            stats=stats,
            calculated_at=(now or datetime.now(timezone.utc)).isoformat(),
        )


# =============================================
# NOTIFICATIONS
# =============================================

@dataclass(frozen=True)
class TrustNotification:
    type: str                         # tier_upgraded | score_decreased | badge_earned
    title: str
    body: str


def diff_trust_scores(previous: Optional[TrustScore], current: TrustScore) -> List[TrustNotification]:
    """What changed between two computations, phrased for the member."""
    notifications = []
    if previous is None:
        return notifications

    if current.tier != previous.tier:
        if TIER_ORDER.index(current.tier) > TIER_ORDER.index(previous.tier):
            notifications.append(TrustNotification(
                type="tier_upgraded",
                title="Trust level up!",
                body=f"You are now {current.tier_label}",
            ))
        else:
            notifications.append(TrustNotification(
                type="score_decreased",
                title="Trust level changed",
                body=f"Your trust level is now {current.tier_label}",
            ))

    for badge in sorted(current.badges - previous.badges, key=lambda b: b.value):
        notifications.append(TrustNotification(
            type="badge_earned",
            title="New badge earned!",
            body=f'You earned the "{badge.value.replace("_", " ")}" badge',
        ))
    return notifications
