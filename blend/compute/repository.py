"""
Blend - Activity Repository

The narrow read interface the scoring pipeline needs from the storage
collaborators, plus an in-memory implementation used by tests and local runs.
"""
import threading
from collections import defaultdict
from typing import Dict, List, Protocol, Sequence

import structlog

from blend.errors import ConfigurationError
from blend.matching.model import ConversationMetrics, ViewEvent
from blend.trust.engine import ActivityStats

logger = structlog.get_logger()


class ActivityRepository(Protocol):
    def get_activity_stats(self, user_id: str) -> ActivityStats:
        ...

    def get_events(self, user_id: str) -> List[ViewEvent]:
        ...


class InMemoryRepository:
    """
    Event log + stats store kept in process memory.

    retention_limit > 0 keeps only the newest N events per user.
    """

    def __init__(self, retention_limit: int = 0):
        if retention_limit < 0:
            raise ConfigurationError("retention_limit", "must be >= 0")
        self.retention_limit = retention_limit
        self._lock = threading.Lock()
        self._events: Dict[str, List[ViewEvent]] = defaultdict(list)
        self._stats: Dict[str, ActivityStats] = {}
        self._conversations: Dict[str, List[ConversationMetrics]] = defaultdict(list)

    # === EventSink ===

    def append_event(self, event: ViewEvent) -> None:
        with self._lock:
            log = self._events[event.subject_user_id]
            log.append(event)
            if self.retention_limit and len(log) > self.retention_limit:
                dropped = len(log) - self.retention_limit
                del log[:dropped]
                logger.debug("events_trimmed", user_id=event.subject_user_id, dropped=dropped)

    # === ActivityRepository ===

    def get_events(self, user_id: str) -> List[ViewEvent]:
        with self._lock:
            return list(self._events.get(user_id, ()))

    def get_activity_stats(self, user_id: str) -> ActivityStats:
        with self._lock:
            return self._stats.get(user_id, ActivityStats())

    def set_activity_stats(self, user_id: str, stats: ActivityStats) -> None:
        with self._lock:
            self._stats[user_id] = stats

    # === Conversations (optional taste input) ===

    def get_conversations(self, user_id: str) -> List[ConversationMetrics]:
        with self._lock:
            return list(self._conversations.get(user_id, ()))

    def add_conversations(self, user_id: str, conversations: Sequence[ConversationMetrics]) -> None:
        with self._lock:
            self._conversations[user_id].extend(conversations)
