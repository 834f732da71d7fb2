"""
Blend - Behaviour Tracker

Pure ingestion: shapes and validates one view-with-decision into a ViewEvent
and hands it to the event sink (the behaviour-storage collaborator).
No scoring happens here.
"""
from datetime import datetime, timezone
from typing import Optional, Protocol, Union

import structlog

from blend.errors import InvalidEventError
from blend.matching.model import ProfileSnapshot, ViewAction, ViewEvent, as_utc

logger = structlog.get_logger()


class EventSink(Protocol):
    def append_event(self, event: ViewEvent) -> None:
        ...


def parse_action(action: Union[ViewAction, str]) -> ViewAction:
    """Accept an enum member or its string value; anything else is a usage error."""
    if isinstance(action, ViewAction):
        return action
    if isinstance(action, str):
        try:
            return ViewAction(action)
        except ValueError:
            pass
    raise InvalidEventError(
        "action", action, f"must be one of {[a.value for a in ViewAction]}"
    )


class BehaviorTracker:
    def __init__(self, sink: EventSink):
        self.sink = sink

    def track_view(
        self,
        viewer_id: str,
        candidate_id: str,
        dwell_ms: int,
        action: Union[ViewAction, str],
        snapshot: ProfileSnapshot,
        created_at: Optional[datetime] = None,
    ) -> ViewEvent:
        """
        Record one profile view with its decision.

        Raises InvalidEventError for an unknown action or missing ids; callers
        must not be able to record ambiguous events.
        """
        try:
            parsed = parse_action(action)
            if not viewer_id:
                raise InvalidEventError("viewer_id", viewer_id, "must be non-empty")
            if not candidate_id:
                raise InvalidEventError("candidate_id", candidate_id, "must be non-empty")
        except InvalidEventError as e:
            logger.warning("view_event_rejected", field=e.field, reason=e.reason)
            raise

        event = ViewEvent(
            subject_user_id=viewer_id,
            viewed_user_id=candidate_id,
            dwell_ms=max(0, int(dwell_ms or 0)),
            action=parsed,
            snapshot=snapshot if snapshot is not None else ProfileSnapshot(),
            created_at=as_utc(created_at) if created_at else datetime.now(timezone.utc),
        )
        self.sink.append_event(event)
        logger.debug(
            "view_event_tracked",
            viewer_id=viewer_id,
            candidate_id=candidate_id,
            action=parsed.value,
            dwell_ms=event.dwell_ms,
        )
        return event
