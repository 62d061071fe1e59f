# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Event bus carrying audit events out of the authorization core."""

import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class AppEvent(str, Enum):
    """Audit events published by the RBAC services and guards."""

    # Catalog events
    PERMISSION_CREATED = "permission.created"

    # Role events
    ROLE_CREATED = "role.created"
    ROLE_UPDATED = "role.updated"
    ROLE_DELETED = "role.deleted"
    ROLE_PERMISSIONS_CHANGED = "role.permissions_changed"

    # Assignment events
    USER_ROLE_ASSIGNED = "user_role.assigned"
    USER_ROLE_REMOVED = "user_role.removed"

    # Authorization events
    ACCESS_DENIED = "access.denied"
    RBAC_RECONCILED = "rbac.reconciled"


@dataclass
class EventPayload:
    """Payload for an application event."""

    event_type: AppEvent
    timestamp: datetime
    data: dict[str, Any]
    source: str | None = None  # None means from the host app


# Type alias for event handlers
EventHandler = Callable[[EventPayload], Any]


class EventBus:
    """Central event bus for audit events.

    Subscribers (activity log, security log, metrics) receive every event
    they registered for. A failing handler is logged and skipped; nothing
    raised by a subscriber reaches the publisher.
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._handlers: dict[AppEvent, list[tuple[str | None, EventHandler]]] = (
            defaultdict(list)
        )
        self._async_handlers: dict[
            AppEvent, list[tuple[str | None, EventHandler]]
        ] = defaultdict(list)

    def subscribe(
        self,
        event_type: AppEvent,
        handler: EventHandler,
        subscriber_id: str | None = None,
    ) -> None:
        """Subscribe to an event.

        Args:
            event_type: Event type to subscribe to
            handler: Function to call when event fires (sync or async)
            subscriber_id: Name of the subscriber (for tracking/unsubscribe)
        """
        if inspect.iscoroutinefunction(handler):
            self._async_handlers[event_type].append((subscriber_id, handler))
        else:
            self._handlers[event_type].append((subscriber_id, handler))

        logger.debug(
            f"Subscribed {subscriber_id or 'host'} to event {event_type.value}"
        )

    def unsubscribe(
        self,
        event_type: AppEvent,
        handler: EventHandler,
        subscriber_id: str | None = None,
    ) -> None:
        """Unsubscribe a handler from an event."""
        entry = (subscriber_id, handler)
        if entry in self._handlers[event_type]:
            self._handlers[event_type].remove(entry)
        if entry in self._async_handlers[event_type]:
            self._async_handlers[event_type].remove(entry)

    def clear(self) -> None:
        """Remove every handler."""
        self._handlers.clear()
        self._async_handlers.clear()

    async def publish(
        self,
        event_type: AppEvent,
        data: dict[str, Any],
        source: str | None = None,
    ) -> None:
        """Publish an event to sync and async subscribers.

        Args:
            event_type: Type of event
            data: Event data payload
            source: Component that generated the event (None for host)
        """
        payload = EventPayload(
            event_type=event_type,
            timestamp=datetime.utcnow(),
            data=data,
            source=source,
        )

        self._call_sync_handlers(payload)

        for subscriber_id, handler in self._async_handlers.get(event_type, []):
            try:
                await handler(payload)
            except Exception as e:
                logger.error(
                    f"Error in async event handler for {event_type.value} "
                    f"(subscriber: {subscriber_id}): {e}"
                )

    def publish_sync(
        self,
        event_type: AppEvent,
        data: dict[str, Any],
        source: str | None = None,
    ) -> None:
        """Publish an event synchronously (sync handlers only).

        Use this from sync code such as services and guards.
        Note: Async handlers will NOT be called.
        """
        payload = EventPayload(
            event_type=event_type,
            timestamp=datetime.utcnow(),
            data=data,
            source=source,
        )

        self._call_sync_handlers(payload)

        if self._async_handlers.get(event_type):
            logger.warning(
                f"Event {event_type.value} has async handlers that were "
                "not called due to sync publish"
            )

    def _call_sync_handlers(self, payload: EventPayload) -> None:
        for subscriber_id, handler in self._handlers.get(payload.event_type, []):
            try:
                handler(payload)
            except Exception as e:
                logger.error(
                    f"Error in sync event handler for {payload.event_type.value} "
                    f"(subscriber: {subscriber_id}): {e}"
                )

    def get_subscriber_count(self, event_type: AppEvent) -> int:
        """Get the number of subscribers for an event type."""
        sync_count = len(self._handlers.get(event_type, []))
        async_count = len(self._async_handlers.get(event_type, []))
        return sync_count + async_count


# Global event bus singleton
event_bus = EventBus()
