"""
Admission gate for shop status evaluation.

Caps the number of requests resolving shop status at the same time so they
cannot exhaust the (small) database connection pool. Excess callers wait in
arrival order; a released slot is handed straight to the oldest waiter.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Iterator, Optional

from storefront.observability import set_gauge
from storefront.observability.metrics import GATE_IN_USE, GATE_WAITING


class AdmissionGate:
    """
    FIFO counting gate with direct hand-off.

    ``acquire`` never times out and the wait list is unbounded. Every
    successful ``acquire`` must be paired with exactly one ``release``;
    prefer the ``slot()`` context manager.
    """

    def __init__(self, max_slots: int = 2, name: str = "shop_status_gate") -> None:
        if max_slots < 1:
            raise ValueError("max_slots must be at least 1")
        self.max_slots = max_slots
        self.name = name
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._held = 0
        self._waiters: Deque[threading.Event] = deque()

    @property
    def held(self) -> int:
        with self._lock:
            return self._held

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._waiters)

    def acquire(self) -> None:
        """Block until a slot is granted to the caller."""
        with self._lock:
            # A queued waiter always goes first, even if a slot looks free
            if self._held < self.max_slots and not self._waiters:
                self._held += 1
                self._publish_locked()
                return
            ticket = threading.Event()
            self._waiters.append(ticket)
            self._publish_locked()
            queued = len(self._waiters)

        self.logger.debug("Admission queued", extra={"gate": self.name, "position": queued})
        ticket.wait()

    def release(self) -> None:
        """Give up one slot, handing it to the oldest waiter when there is one."""
        next_ticket: Optional[threading.Event] = None
        with self._lock:
            if self._held <= 0:
                raise RuntimeError(f"{self.name}: release() without a matching acquire()")
            if self._waiters:
                # Slot changes owner; the held count stays the same
                next_ticket = self._waiters.popleft()
            else:
                self._held -= 1
            self._publish_locked()

        if next_ticket is not None:
            next_ticket.set()

    @contextmanager
    def slot(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def _publish_locked(self) -> None:
        labels = {"gate": self.name}
        set_gauge(GATE_IN_USE, self._held, labels=labels)
        set_gauge(GATE_WAITING, len(self._waiters), labels=labels)
