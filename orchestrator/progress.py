"""Structured progress events for console output or any other UI layer."""

import logging
from typing import Callable, Dict, List, Optional

from models import ProgressEvent

ProgressCallback = Callable[[str, ProgressEvent], None]


class ProgressReporter:
    """
    Fan-out of progress events to subscribed callbacks.

    Callbacks receive ``(event_type, event)`` where ``event_type`` is one of
    ``start``, ``progress``, ``complete``, ``warning``, ``error`` or ``log``.
    A failing subscriber is logged and never interrupts the migration.
    """

    EVENT_TYPES = ('start', 'progress', 'complete', 'warning', 'error', 'log')

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.orchestrator.progress')
        self._subscribers: List[ProgressCallback] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a callback; returns a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event_type: str, event: ProgressEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event_type, event)
            except Exception as e:
                self.logger.warning(f"Progress subscriber failed on {event_type}: {str(e)}")

    def _emit(
        self,
        event_type: str,
        phase: str,
        message: str,
        level: str,
        current: Optional[int] = None,
        total: Optional[int] = None,
        counters: Optional[Dict[str, int]] = None
    ) -> None:
        self.emit(event_type, ProgressEvent(
            phase=phase,
            message=message,
            current=current,
            total=total,
            counters=dict(counters or {}),
            level=level
        ))

    def start(self, phase: str, message: str, **kwargs) -> None:
        self._emit('start', phase, message, 'info', **kwargs)

    def progress(self, phase: str, message: str, **kwargs) -> None:
        self._emit('progress', phase, message, kwargs.pop('level', 'info'), **kwargs)

    def complete(self, phase: str, message: str, **kwargs) -> None:
        self._emit('complete', phase, message, 'success', **kwargs)

    def warning(self, phase: str, message: str, **kwargs) -> None:
        self._emit('warning', phase, message, 'warning', **kwargs)

    def error(self, phase: str, message: str, **kwargs) -> None:
        self._emit('error', phase, message, 'error', **kwargs)

    def log(self, phase: str, message: str, level: str = 'info') -> None:
        self._emit('log', phase, message, level)


def logging_subscriber(logger: Optional[logging.Logger] = None) -> ProgressCallback:
    """
    Build a subscriber that writes events to a logger.

    Per-item progress goes to DEBUG so the console is not flooded when tqdm
    bars are shown; phase boundaries go to INFO.
    """
    target = logger or logging.getLogger('confluence_bookstack_migrator.progress')
    levels = {
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'success': logging.INFO,
        'info': logging.INFO
    }

    def callback(event_type: str, event: ProgressEvent) -> None:
        message = f"[{event.phase}] {event.message}"
        if event.current is not None and event.total is not None:
            message += f" ({event.current}/{event.total})"

        if event_type == 'progress' and event.level == 'info':
            target.debug(message)
            return

        if event_type == 'complete' and event.counters:
            counters = ', '.join(f"{key}: {value}" for key, value in event.counters.items())
            message += f" [{counters}]"

        target.log(levels.get(event.level, logging.INFO), message)

    return callback


__all__ = ['ProgressReporter', 'ProgressCallback', 'logging_subscriber']
