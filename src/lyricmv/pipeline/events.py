"""Observer channel for project state changes."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from ..models import ProjectState, ProjectStatus

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    STATUS = "status"
    PROGRESS = "progress"
    ERROR = "error"


@dataclass
class PipelineEvent:
    """A change observed on a project."""

    kind: EventKind
    project_id: str
    status: ProjectStatus
    progress: int
    message: str = ""
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


Subscriber = Callable[[PipelineEvent], None]


class EventBus:
    """Fan-out of pipeline events to subscribers.

    Subscribers are called synchronously on the thread that applied the
    change. A subscriber that raises is logged and does not affect the
    others or the pipeline.
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber and return a function that removes it."""
        with self._lock:
            self._subscribers.append(subscriber)
        return lambda: self.unsubscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def emit(self, event: PipelineEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Event subscriber failed on {event.kind.value} event: {e}")


def diff_events(before: ProjectState, after: ProjectState, message: str = "") -> List[PipelineEvent]:
    """Derive the events implied by moving from ``before`` to ``after``."""
    events: List[PipelineEvent] = []

    def make(kind: EventKind) -> PipelineEvent:
        return PipelineEvent(
            kind=kind,
            project_id=after.id,
            status=after.status,
            progress=after.progress,
            message=message,
            error=after.error,
        )

    if after.status != before.status:
        events.append(make(EventKind.STATUS))
    if after.progress != before.progress:
        events.append(make(EventKind.PROGRESS))
    if after.error and after.error != before.error:
        events.append(make(EventKind.ERROR))

    return events
