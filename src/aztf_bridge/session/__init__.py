"""Import session: item model, type resolution and state persistence."""

from aztf_bridge.session.models import (
    ImportSession,
    ImportStatus,
    ItemSnapshot,
    ResourceDescriptor,
    ResourceItem,
    SessionOutcome,
    TransitionEvent,
)
from aztf_bridge.session.resolver import TypeResolver
from aztf_bridge.session.state import ImportStateStore

__all__ = [
    "ImportSession",
    "ImportStateStore",
    "ImportStatus",
    "ItemSnapshot",
    "ResourceDescriptor",
    "ResourceItem",
    "SessionOutcome",
    "TransitionEvent",
    "TypeResolver",
]
