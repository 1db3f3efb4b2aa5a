"""The ruleset fetched from the sampling service."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from .reservoir import CentralizedReservoir
from .rule import CentralizedRule, Properties
from .service import SamplingRule

DEFAULT_RULE = "Default"
DEFAULT_INTERVAL = 10
MANIFEST_TTL = 3600  # seconds


def _require(svc_rule: SamplingRule, *names: str) -> tuple[Any, ...]:
    """Read all named fields up front so that an update never stops half-way."""
    values = []
    for name in names:
        value = getattr(svc_rule, name)
        if value is None:
            raise ValueError(f"sampling rule {svc_rule.rule_name} is missing {name}")
        values.append(value)
    return tuple(values)


@dataclass(eq=False)
class CentralizedManifest:
    """Custom rules sorted by priority, an index by name, and a default rule."""

    default: Optional[CentralizedRule] = None
    rules: list[CentralizedRule] = field(default_factory=list)
    index: dict[str, CentralizedRule] = field(default_factory=dict)
    refreshed_at: int = 0
    clock: Callable[[], float] = field(default=time.time, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def put_rule(self, svc_rule: SamplingRule) -> CentralizedRule:
        """Update the named rule, or create it; a new rule may break the order.

        Raises ``ValueError`` if the rule lacks a field it needs.
        """
        name = svc_rule.rule_name
        if name is None:
            raise ValueError("sampling rule without rule name")

        if name == DEFAULT_RULE:
            with self.lock:
                existing = self.default
            if existing is not None:
                self._update_default_rule(existing, svc_rule)
                return existing
            return self._create_default_rule(svc_rule)

        with self.lock:
            existing = self.index.get(name)
        if existing is None:
            return self._create_user_rule(svc_rule)
        self._update_user_rule(existing, svc_rule)
        return existing

    def _create_user_rule(self, svc_rule: SamplingRule) -> CentralizedRule:
        (
            name,
            service_name,
            http_method,
            url_path,
            reservoir_size,
            fixed_rate,
            host,
            priority,
            service_type,
            resource_arn,
        ) = _require(
            svc_rule,
            "rule_name",
            "service_name",
            "http_method",
            "url_path",
            "reservoir_size",
            "fixed_rate",
            "host",
            "priority",
            "service_type",
            "resource_arn",
        )
        rule = CentralizedRule(
            rule_name=name,
            priority=priority,
            reservoir=CentralizedReservoir(
                capacity=reservoir_size, interval=DEFAULT_INTERVAL
            ),
            properties=Properties(
                service_name=service_name,
                http_method=http_method,
                url_path=url_path,
                fixed_target=reservoir_size,
                rate=fixed_rate,
                host=host,
            ),
            service_type=service_type,
            resource_arn=resource_arn,
            attributes=dict(svc_rule.attributes or {}),
        )
        with self.lock:
            existing = self.index.get(name)
            if existing is not None:
                return existing
            self.rules.append(rule)
            self.index[name] = rule
        return rule

    def _update_user_rule(self, rule: CentralizedRule, svc_rule: SamplingRule) -> None:
        (
            service_name,
            http_method,
            url_path,
            reservoir_size,
            fixed_rate,
            host,
            priority,
            service_type,
            resource_arn,
        ) = _require(
            svc_rule,
            "service_name",
            "http_method",
            "url_path",
            "reservoir_size",
            "fixed_rate",
            "host",
            "priority",
            "service_type",
            "resource_arn",
        )
        props = Properties(
            service_name=service_name,
            http_method=http_method,
            url_path=url_path,
            fixed_target=reservoir_size,
            rate=fixed_rate,
            host=host,
        )
        with rule.lock:
            rule.properties = props
            rule.priority = priority
            rule.reservoir.capacity = reservoir_size
            rule.service_type = service_type
            rule.resource_arn = resource_arn
            rule.attributes = dict(svc_rule.attributes or {})

    def _create_default_rule(self, svc_rule: SamplingRule) -> CentralizedRule:
        name, reservoir_size, fixed_rate = _require(
            svc_rule, "rule_name", "reservoir_size", "fixed_rate"
        )
        rule = CentralizedRule(
            rule_name=name,
            reservoir=CentralizedReservoir(
                capacity=reservoir_size, interval=DEFAULT_INTERVAL
            ),
            properties=Properties(fixed_target=reservoir_size, rate=fixed_rate),
        )
        with self.lock:
            if self.default is not None:
                return self.default
            self.default = rule
            self.index[name] = rule
        return rule

    def _update_default_rule(self, rule: CentralizedRule, svc_rule: SamplingRule) -> None:
        reservoir_size, fixed_rate = _require(svc_rule, "reservoir_size", "fixed_rate")
        props = Properties(fixed_target=reservoir_size, rate=fixed_rate)
        with rule.lock:
            rule.properties = props
            rule.reservoir.capacity = reservoir_size

    def prune(self, actives: Iterable[CentralizedRule]) -> None:
        """Remove every rule not among ``actives``, keeping the order of the rest."""
        keep = {id(rule) for rule in actives}
        with self.lock:
            for rule in self.rules:
                if id(rule) not in keep:
                    self.index.pop(rule.rule_name, None)
            self.rules = [rule for rule in self.rules if id(rule) in keep]

    def sort(self) -> None:
        """Order rules by priority, then by name."""
        with self.lock:
            self.rules.sort(key=lambda rule: (rule.priority, rule.rule_name))

    def expired(self) -> bool:
        """Return True if the manifest has not been refreshed within the TTL."""
        with self.lock:
            return self.refreshed_at < int(self.clock()) - MANIFEST_TTL