"""
Change notification channel for consent grants and revocations
"""

import threading
from typing import Callable, List

import structlog

from .models import ConsentChangeEvent

logger = structlog.get_logger(__name__)

ConsentChangeListener = Callable[[ConsentChangeEvent], None]


class ConsentChangeChannel:
    """Observer list where one failing listener cannot starve the others"""

    def __init__(self) -> None:
        self._listeners: List[ConsentChangeListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ConsentChangeListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that removes it again"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ConsentChangeEvent) -> int:
        """Deliver ``event`` to every listener; returns how many raised"""
        with self._lock:
            listeners = list(self._listeners)

        failures = 0
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                failures += 1
                logger.error("Consent listener failed",
                             category=event.category.value,
                             grantee=event.grantee.value,
                             listener=getattr(listener, "__name__", repr(listener)),
                             error=str(e))
        return failures

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
