"""Access/usage logging for entity lookups.

Consumers are told about lookups (a view opened, an entity card clicked) in a
fire-and-forget manner: `notify_access` awaits the logger but swallows and
logs anything it raises, so a broken access log never fails the lookup that
triggered it.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel

from fitmarket.logging import PprintLogger, setup_logging

ANONYMOUS_USER = "Anonymous/External"


def access_key(subject: str, timestamp: datetime) -> str:
    """Build the ``"{subject}_{MM/DD/YY}"`` key used to group accesses per day."""
    return f"{subject}_{timestamp.strftime('%m/%d/%y')}"


class AccessEvent(BaseModel, frozen=True):
    """One recorded lookup.

    Attributes:
        key: Subject and day, e.g. ``"Acme Corp_03/14/25"``.
        view: View or entity kind label the lookup came from.
        subject: Entity name or view name that was accessed.
        accessed_by: User identity, or the anonymous marker.
        timestamp: When the lookup happened.
    """

    key: str
    view: str
    subject: str
    accessed_by: str = ANONYMOUS_USER
    timestamp: datetime

    @classmethod
    def for_subject(
        cls, subject: str, view: str, timestamp: datetime, accessed_by: str | None = None
    ) -> "AccessEvent":
        return cls(
            key=access_key(subject, timestamp),
            view=view,
            subject=subject,
            accessed_by=accessed_by or ANONYMOUS_USER,
            timestamp=timestamp,
        )


class AccessLoggerInterface(ABC):
    """Abstract sink for access events."""

    @abstractmethod
    async def record(self, event: AccessEvent) -> None:
        """Persist or forward an access event."""


class InMemoryAccessLogger(AccessLoggerInterface):
    """Keeps events in a list; used in tests and when no sink is configured."""

    def __init__(self) -> None:
        self.events: list[AccessEvent] = []

    async def record(self, event: AccessEvent) -> None:
        self.events.append(event)

    def keys(self) -> list[str]:
        return [event.key for event in self.events]


async def notify_access(
    access_logger: AccessLoggerInterface | None,
    event: AccessEvent,
    logger: PprintLogger | None = None,
) -> bool:
    """Hand an event to the access logger without letting it fail the caller.

    Returns:
        True if the event was recorded, False if there was no logger or it raised.
    """
    if access_logger is None:
        return False
    try:
        await access_logger.record(event)
    except Exception as exc:  # any sink failure is dropped after logging
        (logger or setup_logging("fitmarket.access")).warning(
            {"message": "Access logging failed", "key": event.key, "error": f"{type(exc).__name__}: {exc}"}
        )
        return False
    return True

