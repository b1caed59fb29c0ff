"""In-process change notification for record store observers."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from virtual_tourist.domain.events import ChangeEvent

ChangeListener = Callable[[ChangeEvent], None]

_logger = logging.getLogger(__name__)


@dataclass
class ChangeNotifier:
    """Fan out change events to subscribed listeners.

    Listeners are called synchronously in subscription order. A failing
    listener is logged and does not prevent delivery to the others.
    """

    _listeners: list[ChangeListener] = field(default_factory=list)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener and return a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: ChangeListener) -> None:
        """Remove a listener if it is registered."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: ChangeEvent) -> None:
        """Deliver an event to every listener."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.exception(
                    "Change listener failed: kind=%s key=%s", event.kind, event.key
                )
