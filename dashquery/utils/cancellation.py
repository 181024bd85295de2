"""
Request-scoped cancellation.

A token is shared by every widget of one dashboard request. Executors
register a callback while a statement is in flight so that cancelling the
request also cancels the statement on the server.
"""

import threading
from typing import Callable, Dict

from loguru import logger

from dashquery.utils.errors import RequestCancelled


class CancellationToken:
    """Thread-safe cancellation flag with in-flight callbacks."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Mark the request cancelled and fire every registered callback once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        logger.warning(f"Request cancelled, interrupting {len(callbacks)} in-flight statement(s)")
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Cancellation callback failed: {e}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled("Request was cancelled.")

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback fired on cancel. Returns an unregister function.

        If the token is already cancelled the callback fires immediately.
        """
        with self._lock:
            if not self._event.is_set():
                handle = self._next_id
                self._next_id += 1
                self._callbacks[handle] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(handle, None)

                return unregister

        callback()
        return lambda: None
