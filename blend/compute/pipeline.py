"""
Blend - Scoring Pipeline

Wires the repository, the cache and the engines together for screen code:

    track_view → event log → scheduler → (taste entry invalidated when due)
    discovery_feed → taste profile (cached) + compatibility (cached per pair) → ranking
    notify_profile_changed / start_discovery_session → pair entries of that profile evicted
    get_trust_score → activity stats → trust engine (cached), badges carried forward

Nothing here is a module-level singleton: the repository and the cache are
passed in, so each test (or each process) owns its own instances.
"""
import threading
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Union

import structlog

from blend.compute.cache import ScoreCache, fingerprint
from blend.compute.refresh import RebuildScheduler
from blend.compute.repository import ActivityRepository, InMemoryRepository
from blend.config import Settings, get_settings
from blend.matching.compatibility import ProfileScorer
from blend.matching.model import Profile, ProfileSnapshot, ViewAction, ViewEvent
from blend.matching.ranker import DiscoveryRanker
from blend.matching.taste import TasteProfile, TasteProfileBuilder
from blend.matching.tracker import BehaviorTracker
from blend.trust.engine import (
    TrustBadge,
    TrustNotification,
    TrustScore,
    TrustScoreEngine,
    diff_trust_scores,
)

logger = structlog.get_logger()


def taste_key(user_id: str) -> str:
    return f"taste:{user_id}"


def trust_key(user_id: str) -> str:
    return f"trust:{user_id}"


def _profile_version(profile: Profile) -> Any:
    """updated_at when the profile store provides one, else the scored content itself."""
    if profile.updated_at:
        return profile.updated_at
    return [
        profile.age,
        sorted(profile.intent_ids),
        profile.pace_preference.value if profile.pace_preference else None,
        profile.response_style.value if profile.response_style else None,
        profile.photo_count,
        profile.bio,
        profile.virtual_only,
        profile.open_to_meet,
    ]


def pair_key(a: Profile, b: Profile) -> str:
    """Order-independent: the scorer is symmetric, so (a, b) and (b, a) share an entry."""
    parts = sorted(
        ([a.id, _profile_version(a)], [b.id, _profile_version(b)]),
        key=lambda p: (p[0], str(p[1])),
    )
    return fingerprint("pair", *parts)


class ScoringService:
    def __init__(
        self,
        repository: ActivityRepository,
        cache: Optional[ScoreCache] = None,
        scorer: Optional[ProfileScorer] = None,
        builder: Optional[TasteProfileBuilder] = None,
        trust_engine: Optional[TrustScoreEngine] = None,
        scheduler: Optional[RebuildScheduler] = None,
        min_taste_confidence: Optional[float] = None,
        taste_weight: Optional[float] = None,
    ):
        self.repository = repository
        self.cache = cache if cache is not None else ScoreCache()
        self.scorer = scorer or ProfileScorer()
        self.builder = builder or TasteProfileBuilder()
        self.trust_engine = trust_engine or TrustScoreEngine()
        self.scheduler = scheduler or RebuildScheduler()
        self.tracker = BehaviorTracker(repository)

        ranker_options = {}
        if min_taste_confidence is not None:
            ranker_options["min_taste_confidence"] = min_taste_confidence
        if taste_weight is not None:
            ranker_options["taste_weight"] = taste_weight
        self.ranker = DiscoveryRanker(scorer=self.compatibility, **ranker_options)

        self._earned_badges: Dict[str, FrozenSet[TrustBadge]] = {}
        # Pair entries each profile takes part in, and the profile version they were scored at
        self._pair_lock = threading.Lock()
        self._pair_keys: Dict[str, Set[str]] = {}
        self._pair_versions: Dict[str, str] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        repository: Optional[ActivityRepository] = None,
        cache: Optional[ScoreCache] = None,
    ) -> "ScoringService":
        settings = (settings or get_settings()).validate()
        if repository is None:
            repository = InMemoryRepository(retention_limit=settings.EVENT_RETENTION_LIMIT)
        return cls(
            repository=repository,
            cache=cache,
            scorer=ProfileScorer(age_band=settings.AGE_BAND_YEARS),
            builder=TasteProfileBuilder(
                min_sample_count=settings.TASTE_MIN_SAMPLE_COUNT,
                target_sample_count=settings.TASTE_TARGET_SAMPLE_COUNT,
                min_intent_occurrences=settings.TASTE_MIN_INTENT_OCCURRENCES,
                session_idle_minutes=settings.SESSION_IDLE_MINUTES,
            ),
            scheduler=RebuildScheduler(
                every_n_events=settings.REBUILD_EVERY_N_EVENTS,
                min_interval_seconds=settings.REBUILD_MIN_INTERVAL_SECONDS,
            ),
            min_taste_confidence=settings.TASTE_MIN_CONFIDENCE,
            taste_weight=settings.TASTE_WEIGHT,
        )

    # =============================================
    # BEHAVIOUR
    # =============================================

    def track_view(
        self,
        viewer_id: str,
        candidate_id: str,
        dwell_ms: int,
        action: Union[ViewAction, str],
        snapshot: Optional[ProfileSnapshot] = None,
        created_at: Optional[datetime] = None,
    ) -> ViewEvent:
        event = self.tracker.track_view(viewer_id, candidate_id, dwell_ms, action, snapshot, created_at)
        if self.scheduler.record_event(viewer_id, now=event.created_at):
            self.cache.invalidate(taste_key(viewer_id))
        return event

    # =============================================
    # TASTE
    # =============================================

    def _build_taste(self, user_id: str) -> TasteProfile:
        events = self.repository.get_events(user_id)
        get_conversations = getattr(self.repository, "get_conversations", None)
        conversations = get_conversations(user_id) if get_conversations else ()
        taste = self.builder.rebuild(events, conversations, user_id=user_id)
        # The scheduler runs on event time
        self.scheduler.mark_rebuilt(user_id, now=max((e.created_at for e in events), default=None))
        logger.info(
            "taste_profile_rebuilt",
            user_id=user_id,
            events=len(events),
            confidence=round(taste.confidence_score, 2),
        )
        return taste

    def get_taste_profile(self, user_id: str, force_refresh: bool = False) -> TasteProfile:
        key = taste_key(user_id)
        if force_refresh:
            self.cache.invalidate(key)
        return self.cache.get_or_compute(key, lambda: self._build_taste(user_id))

    async def aget_taste_profile(self, user_id: str, force_refresh: bool = False) -> TasteProfile:
        key = taste_key(user_id)
        if force_refresh:
            self.cache.invalidate(key)
        return await self.cache.aget_or_compute(key, lambda: self._build_taste(user_id))

    # =============================================
    # COMPATIBILITY + DISCOVERY
    # =============================================

    def _track_pair(self, key: str, *profiles: Profile) -> None:
        superseded = []
        with self._pair_lock:
            for profile in profiles:
                version = str(_profile_version(profile))
                if self._pair_versions.get(profile.id, version) != version:
                    superseded.append(profile.id)
                self._pair_versions[profile.id] = version
        for profile_id in superseded:
            self._evict_pairs(profile_id)
        with self._pair_lock:
            for profile in profiles:
                self._pair_keys.setdefault(profile.id, set()).add(key)

    def _evict_pairs(self, profile_id: str) -> int:
        with self._pair_lock:
            keys = self._pair_keys.pop(profile_id, set())
            for other_id in list(self._pair_keys):
                self._pair_keys[other_id] -= keys
                if not self._pair_keys[other_id]:
                    del self._pair_keys[other_id]
        for key in keys:
            self.cache.invalidate(key)
        return len(keys)

    def compatibility(self, viewer: Profile, candidate: Profile) -> float:
        key = pair_key(viewer, candidate)
        # An edited profile drops the pair entries scored at its old version
        self._track_pair(key, viewer, candidate)
        return self.cache.get_or_compute(key, lambda: self.scorer.score(viewer, candidate))

    def notify_profile_changed(self, profile_id: str) -> int:
        """Drop every cached pair score the profile takes part in; returns how many."""
        with self._pair_lock:
            self._pair_versions.pop(profile_id, None)
        evicted = self._evict_pairs(profile_id)
        logger.info("profile_pairs_invalidated", profile_id=profile_id, entries=evicted)
        return evicted

    def start_discovery_session(self, viewer_id: str) -> int:
        """Compatibility is recomputed once per discovery session."""
        evicted = self._evict_pairs(viewer_id)
        logger.debug("discovery_session_started", viewer_id=viewer_id, evicted=evicted)
        return evicted

    def discovery_feed(
        self,
        viewer: Profile,
        candidates: Iterable[Profile],
        already_seen: Iterable[str] = (),
        personalize: bool = True,
    ) -> List[Profile]:
        taste = self.get_taste_profile(viewer.id) if personalize else None
        return self.ranker.rank(candidates, viewer, taste, already_seen, personalize)

    # =============================================
    # TRUST
    # =============================================

    def _compute_trust(self, user_id: str) -> TrustScore:
        stats = self.repository.get_activity_stats(user_id)
        score = self.trust_engine.compute(stats, self._earned_badges.get(user_id, frozenset()))
        self._earned_badges[user_id] = score.badges
        return score

    def get_trust_score(self, user_id: str, force_refresh: bool = False) -> TrustScore:
        key = trust_key(user_id)
        if force_refresh:
            self.cache.invalidate(key)
        return self.cache.get_or_compute(key, lambda: self._compute_trust(user_id))

    async def aget_trust_score(self, user_id: str, force_refresh: bool = False) -> TrustScore:
        key = trust_key(user_id)
        if force_refresh:
            self.cache.invalidate(key)
        return await self.cache.aget_or_compute(key, lambda: self._compute_trust(user_id))

    def notify_stats_changed(self, user_id: str) -> List[TrustNotification]:
        """
        Call after the stats collaborator updates a member's activity.
        Recomputes the trust score and returns what changed for the member.
        """
        key = trust_key(user_id)
        previous = self.cache.peek(key)
        self.cache.invalidate(key)
        current = self.get_trust_score(user_id)
        notifications = diff_trust_scores(previous, current)
        if notifications:
            logger.info(
                "trust_score_changed",
                user_id=user_id,
                tier=current.tier.value,
                notifications=[n.type for n in notifications],
            )
        return notifications
