"""Per-second reservoirs that bound how many requests are sampled."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class _ReservoirState:
    """Counters shared by all reservoirs."""

    capacity: int = 0
    used: int = 0
    current_epoch: int = 0


@dataclass
class Reservoir(_ReservoirState):
    """A reservoir local to this process, refilled every second."""

    clock: Callable[[], float] = field(default=time.time, compare=False, repr=False)

    def take(self) -> bool:
        """Consume one unit if any remains in the current second."""
        now = int(self.clock())
        if now != self.current_epoch:
            self.used = 0
            self.current_epoch = now
        if self.used >= self.capacity:
            return False
        self.used += 1
        return True


@dataclass
class CentralizedReservoir(_ReservoirState):
    """A reservoir whose quota is shared out among all clients by the service."""

    quota: int = 0
    refreshed_at: int = 0
    expires_at: int = 0
    interval: int = 0
    borrowed: bool = False

    def expired(self, now: int) -> bool:
        """Return True once ``now`` is past the quota's expiry."""
        return now > self.expires_at

    def borrow(self, now: int) -> bool:
        """Return True if nothing has been borrowed yet in this second."""
        if now != self.current_epoch:
            self.reset(now)
        already = self.borrowed
        self.borrowed = True
        return not already and self.capacity != 0

    def take(self, now: int) -> bool:
        """Consume one unit of quota if any remains in this second."""
        if now != self.current_epoch:
            self.reset(now)
        if self.quota > self.used:
            self.used += 1
            return True
        return False

    def reset(self, now: int) -> None:
        """Start a new second: clear usage and the borrow flag."""
        self.current_epoch = now
        self.used = 0
        self.borrowed = False