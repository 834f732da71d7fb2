"""
Blend - Taste Rebuild Scheduling

Decides when a user's taste profile is due for a rebuild. The rebuild itself
stays a pure function of the event log; this only batches the triggers.

A rebuild is due when either:
    1. at least `every_n_events` events arrived since the last rebuild, or
    2. at least one event is pending and `min_interval_seconds` have passed
       since the last rebuild (or since the first pending event, if the user
       has never been rebuilt).
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import structlog

from blend.errors import ConfigurationError
from blend.matching.model import as_utc

logger = structlog.get_logger()

REBUILD_EVERY_N_EVENTS = 5
REBUILD_MIN_INTERVAL_SECONDS = 300


def _clock(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else datetime.now(timezone.utc)


@dataclass
class _UserState:
    pending: int = 0
    first_pending_at: Optional[datetime] = None
    last_rebuilt_at: Optional[datetime] = None


class RebuildScheduler:
    def __init__(
        self,
        every_n_events: int = REBUILD_EVERY_N_EVENTS,
        min_interval_seconds: int = REBUILD_MIN_INTERVAL_SECONDS,
    ):
        if every_n_events < 1:
            raise ConfigurationError("every_n_events", "must be >= 1")
        if min_interval_seconds < 0:
            raise ConfigurationError("min_interval_seconds", "must be >= 0")
        self.every_n_events = every_n_events
        self.min_interval = timedelta(seconds=min_interval_seconds)
        self._lock = threading.Lock()
        self._users: Dict[str, _UserState] = {}

    def record_event(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """Count one new event; True when a rebuild is now due."""
        now = _clock(now)
        with self._lock:
            state = self._users.setdefault(user_id, _UserState())
            state.pending += 1
            if state.first_pending_at is None:
                state.first_pending_at = now
            due = self._is_due(state, now)
        if due:
            logger.debug("taste_rebuild_due", user_id=user_id, pending=state.pending)
        return due

    def is_due(self, user_id: str, now: Optional[datetime] = None) -> bool:
        now = _clock(now)
        with self._lock:
            state = self._users.get(user_id)
            return state is not None and self._is_due(state, now)

    def _is_due(self, state: _UserState, now: datetime) -> bool:
        if state.pending <= 0:
            return False
        if state.pending >= self.every_n_events:
            return True
        since = state.last_rebuilt_at or state.first_pending_at
        return now - since >= self.min_interval

    def mark_rebuilt(self, user_id: str, now: Optional[datetime] = None) -> None:
        now = _clock(now)
        with self._lock:
            state = self._users.setdefault(user_id, _UserState())
            state.pending = 0
            state.first_pending_at = None
            state.last_rebuilt_at = now

    def pending(self, user_id: str) -> int:
        with self._lock:
            state = self._users.get(user_id)
            return state.pending if state else 0
