"""Review event notifications.

Services record a `ReviewEvent` for each state change in an `EventOutbox`;
the events go out only once the session has committed. How the event reaches people (push, broadcast, e-mail, database
inbox) is decided by whoever subscribes; the default subscriber only logs.
"""
import inspect
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Event kind enumeration."""
    ASSET_UPLOADED = "asset_uploaded"
    NEW_VERSION = "new_version"
    ASSET_APPROVED = "asset_approved"
    REVISION_REQUESTED = "revision_requested"
    SENT_TO_CLIENT = "sent_to_client"
    ASSET_REOPENED = "asset_reopened"
    COMMENT_CREATED = "comment_created"
    USER_MENTIONED = "user_mentioned"


class ReviewEvent(BaseModel):
    """Plain data payload describing something that happened."""
    kind: EventKind
    asset_id: int
    asset_title: str
    project_id: int
    actor_id: int | None = None
    actor_name: str | None = None
    version: int | None = None
    comment: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[ReviewEvent], Awaitable[None] | None]


def log_event(event: ReviewEvent) -> None:
    logger.info(
        "review event %s: asset=%s v%s actor=%s",
        event.kind.value, event.asset_id, event.version, event.actor_name,
    )


class NotificationDispatcher:
    """Fans events out to subscribers. A failing subscriber never fails the caller."""

    def __init__(self, subscribers: list[Subscriber] | None = None):
        self._subscribers: list[Subscriber] = list(subscribers or [])

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    async def emit(self, event: ReviewEvent) -> None:
        for callback in self._subscribers:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Notification subscriber %r failed for %s", callback, event.kind.value)


def default_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher([log_event])


class EventOutbox:
    """Holds events raised inside a transaction until it has committed."""

    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher
        self.pending: list[ReviewEvent] = []

    def add(self, event: ReviewEvent) -> None:
        self.pending.append(event)

    def discard(self) -> None:
        self.pending.clear()

    async def release(self) -> None:
        events, self.pending = self.pending, []
        for event in events:
            await self.dispatcher.emit(event)
