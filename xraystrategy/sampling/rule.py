"""Sampling rules, requests and decisions."""

from __future__ import annotations

import logging
import random
import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Optional

from .reservoir import CentralizedReservoir, Reservoir

_logger = logging.getLogger("xraystrategy")


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def wildcard_match(pattern: str, text: str) -> bool:
    """Match ``text`` against a pattern with ``*`` and ``?``, ignoring case."""
    return _compile(pattern).fullmatch(text) is not None


@dataclass
class Decision:
    """A sampling decision and the name of the rule that made it, if any."""

    sample: bool = False
    rule: Optional[str] = None


@dataclass
class Request:
    """The parameters a sampling decision is made on."""

    host: str = ""
    method: str = ""
    url: str = ""
    service_name: str = ""
    service_type: str = ""


class SamplingStrategy(ABC):
    """Decides whether a request is traced."""

    @abstractmethod
    def should_trace(self, request: Request) -> Decision:
        """Return the sampling decision for ``request``."""


@dataclass
class Properties:
    """The base properties that define a sampling rule."""

    service_name: str = ""
    host: str = ""
    http_method: str = ""
    url_path: str = ""
    fixed_target: int = 0
    rate: float = 0.0

    def applies_to(self, host: str, path: str, method: str) -> bool:
        """Return True if the rule matches; empty arguments match anything."""
        return (
            (not host or wildcard_match(self.host, host))
            and (not path or wildcard_match(self.url_path, path))
            and (not method or wildcard_match(self.http_method, method))
        )


@dataclass
class SamplingStatistics:
    """Sampling counters of one rule for one reporting interval."""

    rule_name: str
    request_count: int
    sampled_count: int
    borrow_count: int
    timestamp: float
    client_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Return the shape the sampling service expects."""
        out = {
            "RuleName": self.rule_name,
            "RequestCount": self.request_count,
            "SampledCount": self.sampled_count,
            "BorrowCount": self.borrow_count,
            "Timestamp": self.timestamp,
        }
        if self.client_id is not None:
            out["ClientID"] = self.client_id
        return out


@dataclass
class CentralizedRule:
    """A sampling rule whose quota is managed by the sampling service."""

    rule_name: str = ""
    priority: int = 0
    reservoir: CentralizedReservoir = field(default_factory=CentralizedReservoir)
    properties: Properties = field(default_factory=Properties)
    service_type: str = ""
    resource_arn: str = ""
    attributes: dict = field(default_factory=dict)
    requests: int = 0
    sampled: int = 0
    borrows: int = 0
    used_at: int = 0
    clock: Callable[[], float] = field(default=time.time, compare=False, repr=False)
    rand: Callable[[], float] = field(default=random.random, compare=False, repr=False)
    lock: threading.Lock = field(
        default_factory=threading.Lock, compare=False, repr=False
    )

    __hash__ = object.__hash__

    def applies_to(self, request: Request) -> bool:
        """Return True if the rule matches the request; empty fields match anything."""
        p = self.properties
        return (
            (not request.host or wildcard_match(p.host, request.host))
            and (not request.url or wildcard_match(p.url_path, request.url))
            and (not request.method or wildcard_match(p.http_method, request.method))
            and (
                not request.service_name
                or wildcard_match(p.service_name, request.service_name)
            )
            and (
                not request.service_type
                or wildcard_match(self.service_type, request.service_type)
            )
        )

    def stale(self, now: int) -> bool:
        """Return True if the rule has been used and its quota is due for refresh."""
        with self.lock:
            return (
                self.requests != 0
                and now >= self.reservoir.refreshed_at + self.reservoir.interval
            )

    def sample(self) -> Decision:
        """Decide whether to sample, updating the rule's counters."""
        now = int(self.clock())
        decision = Decision(rule=self.rule_name)
        with self.lock:
            self.requests += 1

            if self.reservoir.expired(now):
                if self.reservoir.borrow(now):
                    _logger.debug(
                        "Sampling target has expired for rule %s. Borrowing a request.",
                        self.rule_name,
                    )
                    decision.sample = True
                    self.borrows += 1
                    return decision
                _logger.debug(
                    "Sampling target has expired for rule %s. Using fixed rate.",
                    self.rule_name,
                )
                decision.sample = self._bernoulli_sample()
                return decision

            if self.reservoir.take(now):
                self.sampled += 1
                decision.sample = True
                return decision

            _logger.debug(
                "Sampling target has been exhausted for rule %s. Using fixed rate.",
                self.rule_name,
            )
            decision.sample = self._bernoulli_sample()
            return decision

    def _bernoulli_sample(self) -> bool:
        if self.rand() < self.properties.rate:
            self.sampled += 1
            return True
        return False

    def snapshot(self) -> SamplingStatistics:
        """Return the counters gathered so far and reset them."""
        with self.lock:
            requests, sampled, borrows = self.requests, self.sampled, self.borrows
            self.requests = self.sampled = self.borrows = 0
        return SamplingStatistics(
            rule_name=self.rule_name,
            request_count=requests,
            sampled_count=sampled,
            borrow_count=borrows,
            timestamp=self.clock(),
        )


@dataclass
class Rule:
    """A sampling rule read from a local rule file."""

    properties: Properties = field(default_factory=Properties)
    reservoir: Reservoir = field(default_factory=Reservoir)
    rand: Callable[[], float] = field(default=random.random, compare=False, repr=False)
    lock: threading.Lock = field(
        default_factory=threading.Lock, compare=False, repr=False
    )

    def sample(self) -> Decision:
        """Sample from the reservoir first, then at the fixed rate."""
        with self.lock:
            if self.reservoir.take():
                return Decision(sample=True)
            return Decision(sample=self.rand() < self.properties.rate)