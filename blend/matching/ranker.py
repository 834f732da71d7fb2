"""
Blend - Discovery Ranker

Orders a candidate list for the discovery feed.

    base  = scorer(viewer, candidate)                 # 0-100, symmetric
    taste = taste_match(candidate, viewer_taste)      # 0-100, only when confident
    score = (1 - w) * base + w * taste                # w = taste_weight

Personalisation is a no-op unless the viewer's taste profile has reached the
minimum confidence. Ordering is total: score descending, then candidate id.
"""
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import structlog

from blend.errors import ConfigurationError
from blend.matching.compatibility import ProfileScorer
from blend.matching.model import Profile
from blend.matching.taste import TasteProfile, taste_match

logger = structlog.get_logger()

MIN_TASTE_CONFIDENCE = 0.3
TASTE_WEIGHT = 0.3

PairScorer = Callable[[Profile, Profile], float]


@dataclass(frozen=True)
class RankedCandidate:
    profile: Profile
    score: float
    base_score: float
    taste_score: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "profile_id": self.profile.id,
            "score": round(self.score, 2),
            "base_score": round(self.base_score, 2),
            "taste_score": round(self.taste_score, 2) if self.taste_score is not None else None,
        }


class DiscoveryRanker:
    def __init__(
        self,
        scorer: Optional[PairScorer] = None,
        min_taste_confidence: float = MIN_TASTE_CONFIDENCE,
        taste_weight: float = TASTE_WEIGHT,
    ):
        if not 0 <= min_taste_confidence <= 1:
            raise ConfigurationError("min_taste_confidence", "must be in [0, 1]")
        if not 0 <= taste_weight <= 1:
            raise ConfigurationError("taste_weight", "must be in [0, 1]")
        self.scorer = scorer or ProfileScorer()
        self.min_taste_confidence = min_taste_confidence
        self.taste_weight = taste_weight

    def personalizes(self, taste: Optional[TasteProfile]) -> bool:
        return taste is not None and taste.confidence_score >= self.min_taste_confidence

    def rank_scored(
        self,
        candidates: Iterable[Profile],
        viewer: Profile,
        taste: Optional[TasteProfile] = None,
        already_seen: Iterable[str] = (),
        personalize: bool = True,
    ) -> List[RankedCandidate]:
        seen = set(already_seen)
        seen.add(viewer.id)
        use_taste = personalize and self.personalizes(taste)

        ranked = []
        for candidate in candidates:
            if candidate.id in seen:
                continue
            # Duplicate candidate ids in the input collapse to the first
            seen.add(candidate.id)

            base = self.scorer(viewer, candidate)
            if use_taste:
                taste_score = taste_match(candidate, taste).score
                score = (1 - self.taste_weight) * base + self.taste_weight * taste_score
            else:
                taste_score = None
                score = base
            ranked.append(RankedCandidate(candidate, score, base, taste_score))

        ranked.sort(key=lambda r: (-r.score, r.profile.id))
        logger.debug(
            "discovery_ranked",
            viewer_id=viewer.id,
            candidates=len(ranked),
            personalized=use_taste,
        )
        return ranked

    def rank(
        self,
        candidates: Iterable[Profile],
        viewer: Profile,
        taste: Optional[TasteProfile] = None,
        already_seen: Iterable[str] = (),
        personalize: bool = True,
    ) -> List[Profile]:
        return [
            r.profile
            for r in self.rank_scored(candidates, viewer, taste, already_seen, personalize)
        ]
