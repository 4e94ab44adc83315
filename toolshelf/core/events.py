"""
Notification Channel for toolshelf

Typed publish/subscribe channel through which the engine announces state
changes (loaded, saved, dirtied, reordered, ...) to presentation-layer code
without depending on it.

Handlers subscribe to a message class and receive every published message that
is an instance of that class, so subscribing to CollectionMutated sees every
structural edit. A handler that raises is logged and reported as an
ErrorOccurred message; delivery to the remaining handlers continues.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    """Base class for everything published on the channel"""
    pass


# Configuration lifecycle

@dataclass(frozen=True)
class ConfigurationLoaded(Message):
    identifier: str
    shelf: Any = field(compare=False, repr=False)
    reference_report: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ConfigurationSaved(Message):
    identifier: str


@dataclass(frozen=True)
class ConfigurationDirty(Message):
    pass


@dataclass(frozen=True)
class AvailableConfigurationsUpdated(Message):
    identifiers: Tuple[str, ...]
    display_names: Tuple[str, ...]


@dataclass(frozen=True)
class LoadFailed(Message):
    identifier: Optional[str]
    message: str


@dataclass(frozen=True)
class SaveFailed(Message):
    identifier: Optional[str]
    message: str


# Structural edits of the active collection

@dataclass(frozen=True)
class CollectionMutated(Message):
    """Base class for every edit of a shelf's groups or items"""
    pass


@dataclass(frozen=True)
class GroupAdded(CollectionMutated):
    index: int
    name: str


@dataclass(frozen=True)
class GroupRemoved(CollectionMutated):
    index: int


@dataclass(frozen=True)
class GroupRenamed(CollectionMutated):
    index: int
    name: str


@dataclass(frozen=True)
class GroupMoved(CollectionMutated):
    from_index: int
    to_index: int


@dataclass(frozen=True)
class ItemAdded(CollectionMutated):
    group_index: int
    item_index: int


@dataclass(frozen=True)
class ItemRemoved(CollectionMutated):
    group_index: int
    item_index: int


@dataclass(frozen=True)
class ItemModified(CollectionMutated):
    group_index: int
    item_index: int


@dataclass(frozen=True)
class ItemMoved(CollectionMutated):
    group_index: int
    from_index: int
    to_index: int


# Drag and drop

@dataclass(frozen=True)
class DragStateChanged(Message):
    kind: str
    active: bool


@dataclass(frozen=True)
class Reordered(Message):
    kind: str
    group_index: Optional[int]
    from_index: int
    to_index: int


@dataclass(frozen=True)
class ErrorOccurred(Message):
    source: str
    error: str


Handler = Callable[[Message], None]


class Subscription:
    """Handle returned by subscribe(); usable as a context manager."""

    def __init__(self, channel: "NotificationChannel", message_type: Type[Message], handler: Handler):
        self._channel = channel
        self.message_type = message_type
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._channel.unsubscribe(self.message_type, self.handler)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class NotificationChannel:
    """
    Synchronous typed publish/subscribe channel.

    One channel is created per session and passed explicitly to the components
    that publish or subscribe; there is no global instance.
    """

    def __init__(self):
        self._handlers: Dict[Type[Message], List[Handler]] = {}

    def subscribe(self, message_type: Type[Message], handler: Handler) -> Subscription:
        """
        Register a handler for a message class and all its subclasses.

        Args:
            message_type: Message subclass to listen for
            handler: Callable receiving the message instance

        Returns:
            Subscription that can be used to unsubscribe
        """
        if not (isinstance(message_type, type) and issubclass(message_type, Message)):
            raise TypeError(f"Cannot subscribe to non-message type {message_type!r}")
        self._handlers.setdefault(message_type, []).append(handler)
        return Subscription(self, message_type, handler)

    def unsubscribe(self, message_type: Type[Message], handler: Handler) -> bool:
        """Remove one registration of handler. Returns False if it was not registered."""
        handlers = self._handlers.get(message_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[message_type]
        return True

    def publish(self, message: Message) -> int:
        """
        Deliver a message to every matching handler.

        Handlers run grouped by subscribed type, in the order the types were first
        subscribed, and in subscription order within a type.

        Returns:
            Number of handlers that received the message
        """
        delivered = 0
        for message_type, handlers in list(self._handlers.items()):
            if not isinstance(message, message_type):
                continue
            for handler in list(handlers):
                try:
                    handler(message)
                except Exception as e:
                    self._handle_error(type(message).__name__, e)
                delivered += 1
        return delivered

    def subscription_counts(self) -> Dict[str, int]:
        return {message_type.__name__: len(handlers) for message_type, handlers in self._handlers.items()}

    def clear(self) -> None:
        self._handlers.clear()
        logger.debug("All channel subscriptions cleared")

    def _handle_error(self, source: str, error: Exception) -> None:
        logger.error(f"Handler for '{source}' raised: {error}", exc_info=error)
        # Failures while reporting a failure are only logged
        if source == ErrorOccurred.__name__:
            return
        self.publish(ErrorOccurred(source=source, error=str(error)))
