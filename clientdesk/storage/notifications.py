"""
Synchronous change notification.

Listeners are called in-line with the mutating operation as
``listener(action, data, store_name)``. A listener that raises is logged
and skipped; it never affects other listeners or the operation's caller.
"""
import logging
from enum import Enum
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class ChangeAction(str, Enum):
    """Kinds of store mutation reported to listeners.

    BULK_UPDATE is the bulk-replace kind: the store's whole record list was
    swapped for a new one and the listener receives that list.
    """
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_UPDATE = "bulk_update"
    CLEAR = "clear"
    IMPORT = "import"


Listener = Callable[[ChangeAction, Any, str], Any]


class ListenerSet:
    """An insertion-ordered set of listeners."""

    def __init__(self, label: str):
        self.label = label
        self._listeners: List[Listener] = []

    def add(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Callable taking (action, data, store_name)

        Returns:
            A callable that removes the listener again
        """
        if listener not in self._listeners:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, action: ChangeAction, data: Any, store_name: str) -> None:
        # Iterate a snapshot so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener(action, data, store_name)
            except Exception as e:
                logger.error(
                    f"[{self.label}] Listener {listener!r} failed on {action.value} for '{store_name}': {e}",
                    exc_info=True
                )

    def __len__(self) -> int:
        return len(self._listeners)
