"""Handler registry - routes decoded messages to subscribers.

Handlers are registered per message type. A message is delivered to the
handlers of its own type first, then to those of each ancestor type up to
GpsdMessage, so a handler on GpsdMessage observes everything.

Thread-safe: registration may happen from any thread, including from
inside a handler, while the I/O thread dispatches.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from .protocol.messages import GpsdMessage, chain_of

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=GpsdMessage)

Handler = Callable[[Any], None]
Submit = Callable[..., Any]


class HandlerRegistry:
    """Ordered multimap of message type -> handlers.

    Handlers keep insertion order and are not de-duplicated: the same
    callable may be registered several times, for one or many types.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[GpsdMessage], list[Handler]] = {}
        self._lock = threading.Lock()

    def register(self, message_type: type[M], handler: Callable[[M], None]) -> None:
        """Append a handler for a message type.

        Args:
            message_type: A GpsdMessage subclass, concrete or abstract
            handler: Called with each matching message
        """
        if not isinstance(message_type, type) or not issubclass(message_type, GpsdMessage):
            raise TypeError(f"{message_type!r} is not a gpsd message type")
        with self._lock:
            self._handlers.setdefault(message_type, []).append(handler)

    def unregister(self, message_type: type[M], handler: Callable[[M], None]) -> bool:
        """Remove the first registration of a handler for a message type.

        Returns:
            True if a registration was removed
        """
        with self._lock:
            handlers = self._handlers.get(message_type)
            if not handlers:
                return False
            try:
                handlers.remove(handler)
            except ValueError:
                return False
            return True

    def unregister_everywhere(self, handler: Handler) -> bool:
        """Remove a handler from every message type it was registered for.

        Returns:
            True if any registration was removed
        """
        removed = False
        with self._lock:
            for handlers in self._handlers.values():
                while handler in handlers:
                    handlers.remove(handler)
                    removed = True
        return removed

    def handlers_for(self, message_type: type[GpsdMessage]) -> list[Handler]:
        """Snapshot of the handlers registered for exactly this type."""
        with self._lock:
            return list(self._handlers.get(message_type, ()))

    def dispatch(self, message: GpsdMessage, submit: Submit | None = None) -> int:
        """Deliver a message along its dispatch chain.

        Args:
            message: The decoded message
            submit: Scheduler for handler calls, e.g. ThreadPoolExecutor.submit.
                Handlers run inline when omitted.

        Returns:
            Number of handler invocations run or scheduled
        """
        count = 0
        for message_type in chain_of(type(message)):
            for handler in self.handlers_for(message_type):
                if submit is None:
                    self._invoke(handler, message)
                else:
                    submit(self._invoke, handler, message)
                count += 1
        return count

    @staticmethod
    def _invoke(handler: Handler, message: GpsdMessage) -> None:
        try:
            handler(message)
        except Exception:
            logger.exception(f"Error in handler {handler!r} for {type(message).__name__}")


class OneShotHandler:
    """Handler that runs its callback at most once, then unregisters itself.

    Used to bind a reply to a sent command: the first message of the
    command's type consumes the handler, later ones are ignored.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        message_type: type[M],
        callback: Callable[[M], None],
    ) -> None:
        self._registry = registry
        self._message_type = message_type
        self._callback = callback
        self._consumed = False
        self._lock = threading.Lock()

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __call__(self, message: GpsdMessage) -> None:
        with self._lock:
            if self._consumed:
                return
            self._consumed = True
        self._registry.unregister(self._message_type, self)
        self._callback(message)

    def __repr__(self) -> str:
        return f"OneShotHandler({self._message_type.__name__}, {self._callback!r})"
