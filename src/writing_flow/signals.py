"""Push notifications published by the session engine."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Signal(str, Enum):
    TIMER_CHANGED = "timer_changed"
    TIMER_EXPIRED = "timer_expired"
    INACTIVITY = "inactivity"
    BACKSPACE_REJECTED = "backspace_rejected"
    SESSION_STATE_CHANGED = "session_state_changed"
    ANALYSIS_READY = "analysis_ready"
    ANALYSIS_FAILED = "analysis_failed"


class SignalBus:
    """Synchronous observer list keyed by signal.

    Handlers run on the publishing thread in subscription order. The handler
    list is copied under the lock and invoked outside it, so a handler may
    publish or subscribe without deadlocking.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[Signal, list[tuple[int, Handler]]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, signal: Signal, handler: Handler) -> int:
        with self._lock:
            token = next(self._tokens)
            self._handlers.setdefault(signal, []).append((token, handler))
            return token

    def unsubscribe(self, token: int) -> bool:
        with self._lock:
            for handlers in self._handlers.values():
                for index, (existing, _) in enumerate(handlers):
                    if existing == token:
                        del handlers[index]
                        return True
        return False

    def publish(self, signal: Signal, payload: Any = None) -> None:
        with self._lock:
            handlers = [handler for _, handler in self._handlers.get(signal, ())]
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed.", signal.value)


@dataclass(slots=True, frozen=True)
class SignalRecord:
    sequence: int
    signal: Signal
    payload: Any


class SignalLog:
    """Bounded, sequence-numbered record of everything published on a bus."""

    def __init__(self, bus: SignalBus, maxlen: int = 1000) -> None:
        self._lock = threading.Lock()
        self._records: deque[SignalRecord] = deque(maxlen=maxlen)
        self._sequence = 0
        self._tokens = [
            bus.subscribe(signal, self._recorder(signal)) for signal in Signal
        ]
        self._bus = bus

    def _recorder(self, signal: Signal) -> Handler:
        def record(payload: Any) -> None:
            with self._lock:
                self._sequence += 1
                self._records.append(SignalRecord(self._sequence, signal, payload))

        return record

    def since(self, sequence: int = 0, signal: Optional[Signal] = None) -> list[SignalRecord]:
        with self._lock:
            return [
                record
                for record in self._records
                if record.sequence > sequence and (signal is None or record.signal == signal)
            ]

    @property
    def last_sequence(self) -> int:
        with self._lock:
            return self._sequence

    def close(self) -> None:
        for token in self._tokens:
            self._bus.unsubscribe(token)
        self._tokens = []
