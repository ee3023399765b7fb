"""Synchronous event bus for state-change notification.

The EventBus provides a lightweight, synchronous pub/sub mechanism that
decouples the state machine from whoever renders or records its changes.

Design goals:
- Zero overhead when no subscribers (single dict lookup)
- Synchronous, registration-order delivery for determinism
- Handlers may subscribe or unsubscribe while an event is being delivered;
  such changes are queued and applied once the outermost delivery finishes
"""

from __future__ import annotations

from collections import defaultdict
from typing import TypeVar
from collections.abc import Callable

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class EventBus:
    """Synchronous event bus for domain events.

    Events are dispatched immediately to all registered handlers.
    With no subscribers, emit() is essentially a no-op (dict lookup only).

    Example:
        bus = EventBus()
        unsubscribe = bus.subscribe(TransitionEvent, on_transition)
        bus.emit(event)
        unsubscribe()
    """

    def __init__(self) -> None:
        """Initialize an empty event bus."""
        self._handlers: dict[type, list[Callable]] = defaultdict(list)
        self._dispatch_depth = 0
        self._pending: list[tuple[str, type, Callable]] = []

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers.

        Handlers are called synchronously in registration order. Handlers
        registered or removed during delivery take effect for the next event.

        Args:
            event: The domain event to dispatch
        """
        handlers = self._handlers.get(type(event))
        if not handlers:
            return

        self._dispatch_depth += 1
        try:
            for handler in handlers:
                handler(event)
        finally:
            self._dispatch_depth -= 1
            if self._dispatch_depth == 0 and self._pending:
                self._apply_pending()

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> Unsubscribe:
        """Register a handler for a specific event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance

        Returns:
            A callable removing this registration. Calling it more than once
            is harmless.
        """
        if self._dispatch_depth:
            self._pending.append(("add", event_type, handler))
        else:
            self._handlers[event_type].append(handler)

        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            self.unsubscribe(event_type, handler)

        return unsubscribe

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> bool:
        """Remove a handler for a specific event type.

        Args:
            event_type: The event class to unsubscribe from
            handler: The handler to remove

        Returns:
            True if handler was found (or queued for removal), False otherwise
        """
        if self._dispatch_depth:
            registered = handler in self._handlers.get(event_type, ()) or any(
                op == "add" and kind is event_type and queued is handler
                for op, kind, queued in self._pending
            )
            if registered:
                self._pending.append(("remove", event_type, handler))
            return registered

        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def _apply_pending(self) -> None:
        pending, self._pending = self._pending, []
        for op, event_type, handler in pending:
            if op == "add":
                self._handlers[event_type].append(handler)
            else:
                handlers = self._handlers.get(event_type)
                if handlers and handler in handlers:
                    handlers.remove(handler)

    def clear_subscribers(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        self._pending.clear()

    def has_subscribers(self, event_type: type) -> bool:
        return bool(self._handlers.get(event_type))

    def subscriber_count(self, event_type: type) -> int:
        return len(self._handlers.get(event_type, []))
