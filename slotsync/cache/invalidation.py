"""
Explicit publish/subscribe bus for cross-cache refresh signals.

Topics are "kind" or "kind:param" (e.g. "resources", "resources:Room").
Publishing "kind:param" reaches subscribers of that exact topic and of the
bare "kind", so a catalog-wide listener hears every per-type signal.
"""

import logging
from typing import Callable

from slotsync.domain.models import ResourceType

log = logging.getLogger(__name__)

RESOURCES = "resources"

Subscriber = Callable[[str], None]


def resources_topic(resource_type: ResourceType | None = None) -> str:
    return f"{RESOURCES}:{resource_type}" if resource_type else RESOURCES


class InvalidationBus:

    def __init__(self):
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback(topic). Returns an unsubscribe function."""
        self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str) -> int:
        """Deliver topic to its subscribers. Returns how many were called."""
        targets = list(self._subscribers.get(topic, []))
        kind, sep, _ = topic.partition(":")
        if sep:
            targets += self._subscribers.get(kind, [])
        log.debug("publish %s → %d subscriber(s)", topic, len(targets))
        for callback in targets:
            callback(topic)
        return len(targets)
