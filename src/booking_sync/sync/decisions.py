"""Per-event reconciliation decisions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..models.booking import Booking
from ..models.event import RemoteEvent

MALFORMED = "malformed"
UNCHANGED = "unchanged"


class Action(str, Enum):
    """What to do with one remote event."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


@dataclass(frozen=True)
class Decision:
    """A decision computed for one remote event against local state."""

    action: Action
    event: RemoteEvent
    existing: Optional[Booking] = None
    changes: dict[str, Any] = field(default_factory=dict)
    reason: str = ""

    @property
    def malformed(self) -> bool:
        return self.action == Action.SKIP and self.reason == MALFORMED


def decide(event: RemoteEvent, existing: Optional[Booking]) -> Decision:
    """
    Decide how to apply a remote event.

    Pure function of the event and the currently stored booking, so the
    same redelivered event always maps to the same terminal state.

    Args:
        event: Remote event from the change feed
        existing: Booking currently mirroring this event, if any

    Returns:
        Decision to dispatch against the booking store
    """
    if event.is_cancelled:
        # Deleting an absent booking is a valid no-op
        return Decision(Action.DELETE, event, existing)

    if not event.has_times:
        return Decision(Action.SKIP, event, existing, reason=MALFORMED)

    if existing is None:
        return Decision(Action.CREATE, event)

    changes = existing.changed_fields(event)
    if changes:
        return Decision(Action.UPDATE, event, existing, changes=changes)

    return Decision(Action.SKIP, event, existing, reason=UNCHANGED)
