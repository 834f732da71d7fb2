"""
Blend - Compatibility Scoring Engine

Pairwise compatibility between two profiles, used to order the discovery feed.

Compatibility = f(Intent, Age, Communication, Values, Meeting, Completeness)

    Intent overlap   (0-100, weight 35%): Do you want the same kinds of relationships?
    Age proximity    (0-100, weight 20%): How close are you in age?
    Communication    (0-100, weight 20%): Do your pace and response styles fit?
    Values           (0-100, weight 10%): Do your bios talk about the same things?
    Meeting mode     (0-100, weight 10%): Virtual only or in person, open to meet?
    Completeness     (0-100, weight  5%): Are both profiles filled in?

Properties:
    - Pure, total and deterministic. Missing data scores a neutral 50 for
      that dimension instead of failing the whole computation.
    - Symmetric: score(a, b) == score(b, a). Every dimension is a symmetric
      function of the pair, so one cache entry serves both directions.
    - Adding shared intents never lowers the score.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from blend.errors import ConfigurationError
from blend.matching.model import PACE_ORDER, Profile

NEUTRAL = 50.0

DEFAULT_WEIGHTS: Dict[str, float] = {
    "intent": 0.35,
    "age": 0.20,
    "communication": 0.20,
    "values": 0.10,
    "meeting": 0.10,
    "completeness": 0.05,
}

AGE_BAND_YEARS = 15

# Pace: same value, one step apart, or slow-vs-fast
PACE_EXACT = 100.0
PACE_ADJACENT = 60.0
PACE_OPPOSITE = 10.0

RESPONSE_MATCH = 100.0
RESPONSE_MISMATCH = 40.0

# Meeting flags: both the same, or differing
MEETING_MATCH = 100.0
MEETING_MISMATCH = 20.0

# Shared values are boosted: two of three in common already scores 100
VALUES_BOOST = 150.0

# Completeness saturates at these values
COMPLETE_PHOTO_COUNT = 4
COMPLETE_BIO_LENGTH = 150

# Some intents are complementary rather than identical
INTENT_COMPATIBILITY: Dict[str, Tuple[str, ...]] = {
    "couples-dating": ("couples-dating", "third-for-us", "join-couple", "polyamory", "open"),
    "third-for-us": ("join-couple", "polyamory", "open", "swinging"),
    "join-couple": ("third-for-us", "couples-dating", "polyamory"),
    "polyamory": ("polyamory", "couples-dating", "third-for-us", "join-couple", "open"),
    "open": ("open", "polyamory", "couples-dating", "swinging", "friends-first"),
    "swinging": ("swinging", "third-for-us", "open", "kink"),
    "friends-first": ("friends-first", "open", "polyamory"),
    "kink": ("kink", "swinging", "open"),
}

# Keyword substrings that mark a value in a lowercased bio
VALUE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "communication": ("communication", "honest", "open", "transparent", "talk", "discuss", "share"),
    "adventure": ("adventure", "travel", "explore", "spontaneous", "new experiences", "try new"),
    "stability": ("stable", "secure", "consistent", "reliable", "committed", "long-term"),
    "growth": ("growth", "learn", "evolve", "develop", "improve", "better"),
    "intimacy": ("intimate", "connection", "deep", "meaningful", "emotional", "close"),
    "independence": ("independent", "autonomy", "space", "freedom", "self"),
    "community": ("community", "friends", "social", "group", "together", "collective"),
    "creativity": ("creative", "art", "music", "write", "create", "express"),
}


def _complementary_pairs() -> FrozenSet[FrozenSet[str]]:
    pairs = set()
    for intent, partners in INTENT_COMPATIBILITY.items():
        for other in partners:
            if other != intent:
                pairs.add(frozenset((intent, other)))
    return frozenset(pairs)


_COMPLEMENTARY = _complementary_pairs()


def intents_complement(a: str, b: str) -> bool:
    return frozenset((a, b)) in _COMPLEMENTARY


# =============================================
# DIMENSIONS - each returns (score 0-100, factors)
# =============================================

def score_intent_overlap(a: Profile, b: Profile) -> Tuple[float, List[str]]:
    """
    Half credit-weighted Jaccard, half overlap coefficient.

    Credit per tag in the union: 1 if both have it, 0.5 if only one side has
    it but the other side holds a complementary intent, else 0.
    """
    ia, ib = a.intent_ids, b.intent_ids
    if not ia or not ib:
        return NEUTRAL, ["Relationship intents not specified"]

    shared = ia & ib
    union = ia | ib
    credit = float(len(shared))
    complementary = 0
    for tag in union - shared:
        other_side = ib if tag in ia else ia
        if any(intents_complement(tag, o) for o in other_side):
            credit += 0.5
            complementary += 1

    jaccard = credit / len(union)
    overlap = len(shared) / min(len(ia), len(ib))
    score = 100.0 * (0.5 * jaccard + 0.5 * overlap)

    factors = []
    if shared:
        factors.append(f"{len(shared)} shared intent{'s' if len(shared) > 1 else ''}")
    if complementary:
        factors.append("Complementary relationship goals")
    return min(max(score, 0.0), 100.0), factors


def score_age_proximity(a: Profile, b: Profile, band: int = AGE_BAND_YEARS) -> Tuple[float, List[str]]:
    if not a.age or not b.age or a.age <= 0 or b.age <= 0:
        return NEUTRAL, ["Age not specified"]
    gap = abs(a.age - b.age)
    score = 100.0 * (1.0 - gap / band)
    factors = []
    if gap <= 3:
        factors.append("Close in age")
    elif gap >= band:
        factors.append(f"Age gap of {gap} years")
    return min(max(score, 0.0), 100.0), factors


def score_communication(a: Profile, b: Profile) -> Tuple[float, List[str]]:
    factors = []

    if a.pace_preference is None or b.pace_preference is None:
        pace = NEUTRAL
    else:
        steps = abs(PACE_ORDER[a.pace_preference] - PACE_ORDER[b.pace_preference])
        if steps == 0:
            pace = PACE_EXACT
            factors.append(f"Both prefer {a.pace_preference.value} pace")
        elif steps == 1:
            pace = PACE_ADJACENT
            factors.append("Pace preferences are compatible")
        else:
            pace = PACE_OPPOSITE
            factors.append("Very different dating pace")

    if a.response_style is None or b.response_style is None:
        response = NEUTRAL
    elif a.response_style == b.response_style:
        response = RESPONSE_MATCH
        factors.append(f"Both have a {a.response_style.value} response style")
    else:
        response = RESPONSE_MISMATCH

    return (pace + response) / 2.0, factors


def extract_values(bio: Optional[str]) -> FrozenSet[str]:
    text = (bio or "").lower()
    return frozenset(
        value
        for value, keywords in VALUE_KEYWORDS.items()
        if any(keyword in text for keyword in keywords)
    )


def score_values_alignment(a: Profile, b: Profile) -> Tuple[float, List[str]]:
    """Values mentioned in both bios over the larger of the two value sets, boosted."""
    va, vb = extract_values(a.bio), extract_values(b.bio)
    if not va or not vb:
        return NEUTRAL, ["Values not mentioned"]
    shared = sorted(va & vb)
    score = min(VALUES_BOOST * len(shared) / max(len(va), len(vb)), 100.0)
    return score, [f"Shared value: {v}" for v in shared[:3]]


def score_meeting_mode(a: Profile, b: Profile) -> Tuple[float, List[str]]:
    factors = []

    if a.virtual_only is None or b.virtual_only is None:
        virtual = NEUTRAL
    elif a.virtual_only == b.virtual_only:
        virtual = MEETING_MATCH
        factors.append("Both open to virtual" if a.virtual_only else "Both open to meeting")
    else:
        virtual = MEETING_MISMATCH

    if a.open_to_meet == b.open_to_meet:
        openness = MEETING_MATCH
        factors.append("Same openness to meeting")
    else:
        openness = MEETING_MISMATCH

    return (virtual + openness) / 2.0, factors


def profile_quality(p: Profile) -> float:
    """0-1 completeness of a single profile (photos 60%, bio 40%)."""
    if p.photo_count is None:
        photos = 0.5
    else:
        photos = min(max(p.photo_count, 0), COMPLETE_PHOTO_COUNT) / COMPLETE_PHOTO_COUNT
    bio = min(p.bio_length, COMPLETE_BIO_LENGTH) / COMPLETE_BIO_LENGTH
    return 0.6 * photos + 0.4 * bio


def score_completeness(a: Profile, b: Profile) -> Tuple[float, List[str]]:
    score = 100.0 * (profile_quality(a) + profile_quality(b)) / 2.0
    factors = ["Detailed profiles"] if score >= 80 else []
    return score, factors


# =============================================
# OUTPUT
# =============================================

@dataclass(frozen=True)
class CompatibilityDimension:
    name: str
    score: float
    weight: float
    factors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CompatibilityReport:
    """Explained compatibility for the match-insights display."""
    overall_score: float
    dimensions: Dict[str, CompatibilityDimension]
    match_explanation: str
    potential_challenges: Tuple[str, ...] = ()
    conversation_starters: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "overall_score": round(self.overall_score, 1),
            "dimensions": {
                key: {
                    "name": d.name,
                    "score": round(d.score, 1),
                    "weight": d.weight,
                    "factors": list(d.factors),
                }
                for key, d in self.dimensions.items()
            },
            "match_explanation": self.match_explanation,
            "potential_challenges": list(self.potential_challenges),
            "conversation_starters": list(self.conversation_starters),
        }


_DIMENSION_NAMES = {
    "intent": "Intent Compatibility",
    "age": "Age Proximity",
    "communication": "Communication Style",
    "values": "Values Alignment",
    "meeting": "Meeting Style",
    "completeness": "Profile Completeness",
}


class ProfileScorer:
    """Weighted, bounded, symmetric pairwise compatibility."""

    def __init__(self, weights: Optional[Dict[str, float]] = None, age_band: int = AGE_BAND_YEARS):
        weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        if set(weights) != set(DEFAULT_WEIGHTS):
            raise ConfigurationError("weights", f"expected keys {sorted(DEFAULT_WEIGHTS)}")
        if any(w < 0 for w in weights.values()):
            raise ConfigurationError("weights", "weights must be non-negative")
        if abs(sum(weights.values()) - 1.0) > 1e-6:
            raise ConfigurationError("weights", f"weights must sum to 1.0, got {sum(weights.values())}")
        if age_band <= 0:
            raise ConfigurationError("age_band", "must be > 0")
        self.weights = weights
        self.age_band = age_band

    def _dimensions(self, viewer: Profile, candidate: Profile) -> Dict[str, Tuple[float, List[str]]]:
        return {
            "intent": score_intent_overlap(viewer, candidate),
            "age": score_age_proximity(viewer, candidate, self.age_band),
            "communication": score_communication(viewer, candidate),
            "values": score_values_alignment(viewer, candidate),
            "meeting": score_meeting_mode(viewer, candidate),
            "completeness": score_completeness(viewer, candidate),
        }

    def score(self, viewer: Profile, candidate: Profile) -> float:
        dims = self._dimensions(viewer, candidate)
        total = sum(dims[key][0] * weight for key, weight in self.weights.items())
        return round(min(max(total, 0.0), 100.0), 4)

    __call__ = score

    def explain(self, viewer: Profile, candidate: Profile) -> CompatibilityReport:
        dims = self._dimensions(viewer, candidate)
        dimensions = {
            key: CompatibilityDimension(
                name=_DIMENSION_NAMES[key],
                score=value,
                weight=self.weights[key],
                factors=tuple(factors),
            )
            for key, (value, factors) in dims.items()
        }
        overall = self.score(viewer, candidate)
        return CompatibilityReport(
            overall_score=overall,
            dimensions=dimensions,
            match_explanation=_match_explanation(dimensions),
            potential_challenges=tuple(_potential_challenges(dimensions, viewer, candidate)),
            conversation_starters=tuple(_conversation_starters(dimensions)),
        )


def _match_explanation(dimensions: Dict[str, CompatibilityDimension]) -> str:
    ranked = sorted(dimensions.values(), key=lambda d: (-d.score, d.name))
    high = [d for d in ranked if d.score >= 70]
    if len(high) >= 2:
        return f"Strong compatibility in {high[0].name.lower()} and {high[1].name.lower()}."
    if len(high) == 1:
        return f"Good match for {high[0].name.lower()}."
    return "Potential connection worth exploring. Different perspectives can lead to growth."


def _potential_challenges(
    dimensions: Dict[str, CompatibilityDimension], viewer: Profile, candidate: Profile
) -> List[str]:
    challenges = []
    if dimensions["communication"].score < 50:
        challenges.append("Different communication paces - discuss expectations early")
    if dimensions["intent"].score < 50:
        challenges.append("Different relationship goals - clarify what you are looking for")
    if (
        viewer.virtual_only is not None
        and candidate.virtual_only is not None
        and viewer.virtual_only != candidate.virtual_only
    ):
        challenges.append("One of you is only looking to connect virtually")
    if viewer.open_to_meet != candidate.open_to_meet:
        challenges.append("Different openness to meeting in person")
    return challenges


def _conversation_starters(dimensions: Dict[str, CompatibilityDimension]) -> List[str]:
    starters = []
    if dimensions["intent"].score >= 70:
        starters.append("Compare your ENM journeys and what you've learned")
    if dimensions["communication"].score >= 70:
        starters.append("Talk about how you like to stay in touch between dates")
    if dimensions["values"].score >= 70:
        starters.append("Ask what matters most to them in a connection")
    starters.append("Ask about their ideal first date scenario")
    starters.append("Share what brought you to ENM")
    return starters[:4]
