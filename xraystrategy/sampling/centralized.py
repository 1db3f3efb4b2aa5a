"""Quota-based sampling with the sampling service acting as arbitrator."""

from __future__ import annotations

import logging
import os
import random
import secrets
import threading
import time
from typing import Any, Callable, Optional, Union

from .centralized_manifest import CentralizedManifest
from .localized import LocalizedStrategy
from .proxy import DaemonProxy
from .rule import CentralizedRule, Decision, Request, SamplingStatistics, SamplingStrategy
from .service import SamplingTarget

_logger = logging.getLogger("xraystrategy")

_RULE_PERIOD = 300.0
_RULE_JITTER = 5.0
_TARGET_PERIOD = 10.1
_TARGET_JITTER = 0.1


class CentralizedStrategy(SamplingStrategy):
    """Samples by rules and quotas from the sampling service.

    Falls back to a local strategy while no fresh rules are available.
    """

    def __init__(
        self,
        fallback: Optional[LocalizedStrategy] = None,
        proxy: Any = None,
        clock: Callable[[], float] = time.time,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.fallback = fallback if fallback is not None else LocalizedStrategy()
        self.proxy = proxy
        self.clock = clock
        self.rand = rand
        self.client_id = secrets.token_hex(12)
        self.manifest = CentralizedManifest(clock=clock)
        self.daemon_address: Optional[str] = None
        self._lock = threading.Lock()
        self._started = False
        self._stop_event = threading.Event()

    @classmethod
    def from_json_bytes(cls, data: Union[bytes, str]) -> "CentralizedStrategy":
        """Create a strategy whose fallback rules are given as JSON text."""
        return cls(fallback=LocalizedStrategy.from_json_bytes(data))

    @classmethod
    def from_file_path(cls, path: Union[str, os.PathLike]) -> "CentralizedStrategy":
        """Create a strategy whose fallback rules are read from a JSON file."""
        return cls(fallback=LocalizedStrategy.from_file_path(path))

    def should_trace(self, request: Request) -> Decision:
        if not self._started:
            self.start()
        _logger.debug(
            "Determining ShouldTrace decision for:\n\thost: %s\n\tpath: %s"
            "\n\tmethod: %s\n\tservicename: %s\n\tservicetype: %s",
            request.host,
            request.url,
            request.method,
            request.service_name,
            request.service_type,
        )

        if self.manifest.expired():
            _logger.debug(
                "Centralized sampling data expired. Using fallback sampling strategy"
            )
            return self.fallback.should_trace(request)

        with self.manifest.lock:
            for rule in self.manifest.rules:
                with rule.lock:
                    applicable = rule.applies_to(request)
                if not applicable:
                    continue
                _logger.debug("Applicable rule: %s", rule.rule_name)
                return rule.sample()

            default = self.manifest.default
            if default is not None:
                _logger.debug("Applicable rule: %s", default.rule_name)
                return default.sample()

        _logger.debug(
            "Centralized default sampling rule unavailable. "
            "Using fallback sampling strategy"
        )
        return self.fallback.should_trace(request)

    def start(self) -> None:
        """Start the rule and target pollers, once."""
        with self._lock:
            if self._started:
                return
            if self.proxy is None:
                self.proxy = DaemonProxy(self.daemon_address)
            stop = self._stop_event
            threading.Thread(
                target=self._rule_poller, args=(stop,), name="xray-rule-poller", daemon=True
            ).start()
            threading.Thread(
                target=self._target_poller,
                args=(stop,),
                name="xray-target-poller",
                daemon=True,
            ).start()
            self._started = True

    def stop(self) -> None:
        """Stop the pollers; a later decision starts them again."""
        with self._lock:
            self._stop_event.set()
            self._stop_event = threading.Event()
            self._started = False

    def _rule_poller(self, stop: threading.Event) -> None:
        try:
            self.refresh_manifest()
        except Exception as exc:
            _logger.debug(
                "Error occurred during initial refresh of sampling rules. %s", exc
            )
        else:
            _logger.info("Successfully fetched sampling rules")

        while not stop.wait(_RULE_PERIOD + random.uniform(0, _RULE_JITTER)):
            try:
                self.refresh_manifest()
            except Exception as exc:
                _logger.debug("Error occurred while refreshing sampling rules. %s", exc)
            else:
                _logger.debug("Successfully fetched sampling rules")

    def _target_poller(self, stop: threading.Event) -> None:
        while not stop.wait(_TARGET_PERIOD + random.uniform(0, _TARGET_JITTER)):
            try:
                self.refresh_targets()
            except Exception as exc:
                _logger.debug(
                    "Error occurred while refreshing targets for sampling rules. %s",
                    exc,
                )

    def refresh_manifest(self) -> None:
        """Fetch rules from the service and bring the manifest up to date.

        Raises if the rules could not be fetched, or after the update if
        some of them could not be applied.
        """
        # Taken before the call so the manifest never looks fresher than it is.
        now = int(self.clock())
        records = self.proxy.get_sampling_rules()

        actives: list[CentralizedRule] = []
        failed = False
        try:
            for record in records:
                svc_rule = record.sampling_rule
                if svc_rule is None:
                    _logger.debug("Sampling rule missing from sampling rule record.")
                    failed = True
                    continue
                name = svc_rule.rule_name
                if name is None:
                    _logger.debug("Sampling rule without rule name is not supported")
                    failed = True
                    continue
                if svc_rule.version is None:
                    _logger.debug(
                        "Sampling rule without version number is not supported: %s",
                        name,
                    )
                    failed = True
                    continue
                if svc_rule.version != 1:
                    _logger.debug(
                        "Sampling rule without version 1 is not supported: %s", name
                    )
                    failed = True
                    continue
                if svc_rule.attributes:
                    _logger.debug(
                        "Sampling rule with non nil Attributes is not applicable: %s",
                        name,
                    )
                    continue
                if svc_rule.resource_arn is None:
                    _logger.debug(
                        "Sampling rule without ResourceARN is not applicable: %s", name
                    )
                    continue
                if svc_rule.resource_arn != "*":
                    _logger.debug(
                        "Sampling rule with ResourceARN not equal to * "
                        "is not applicable: %s",
                        name,
                    )
                    continue
                try:
                    rule = self.manifest.put_rule(svc_rule)
                except Exception as exc:
                    failed = True
                    _logger.debug("Error occurred creating/updating rule. %s", exc)
                else:
                    actives.append(rule)

            self.manifest.prune(actives)
            self.manifest.sort()
            with self.manifest.lock:
                self.manifest.refreshed_at = now
        except Exception:
            # Keep the rules in a consistent order whatever happened.
            self.manifest.sort()
            raise

        if failed:
            raise RuntimeError("error occurred creating/updating rules")

    def refresh_targets(self) -> None:
        """Report statistics and apply the targets the service returns.

        Raises if the report failed or some targets could not be applied.
        """
        statistics = self.snapshots()
        if not statistics:
            _logger.debug("No statistics to report. Not refreshing sampling targets.")
            return

        output = self.proxy.get_sampling_targets(statistics)

        failed = False
        refresh = False
        for target in output.sampling_target_documents:
            try:
                self.update_target(target)
            except Exception as exc:
                failed = True
                _logger.debug("Error occurred updating target for rule. %s", exc)

        for unprocessed in output.unprocessed_statistics:
            _logger.debug(
                "Error occurred updating sampling target for rule: %s, code: %s, "
                "message: %s",
                unprocessed.rule_name,
                unprocessed.error_code,
                unprocessed.message,
            )
            if unprocessed.error_code is None or unprocessed.rule_name is None:
                continue
            if unprocessed.error_code.startswith("5"):
                failed = True
            if unprocessed.error_code.startswith("4"):
                refresh = True

        if not failed:
            _logger.debug("Successfully refreshed sampling targets")

        remote = output.last_rule_modification
        if remote is not None:
            with self.manifest.lock:
                local = self.manifest.refreshed_at
            if int(remote) >= local:
                refresh = True

        if refresh:
            _logger.info("Refreshing sampling rules out-of-band.")
            threading.Thread(
                target=self._refresh_out_of_band, name="xray-rule-refresh", daemon=True
            ).start()

        if failed:
            raise RuntimeError("error occurred updating sampling targets")

    def _refresh_out_of_band(self) -> None:
        try:
            self.refresh_manifest()
        except Exception as exc:
            _logger.debug(
                "Error occurred refreshing sampling rules out-of-band. %s", exc
            )

    def snapshots(self) -> list[SamplingStatistics]:
        """Take statistics from every rule due for refresh, resetting its counters."""
        now = int(self.clock())
        statistics = []
        with self.manifest.lock:
            rules = list(self.manifest.rules)
            if self.manifest.default is not None:
                rules.append(self.manifest.default)
            for rule in rules:
                if not rule.stale(now):
                    continue
                snapshot = rule.snapshot()
                snapshot.client_id = self.client_id
                statistics.append(snapshot)
        return statistics

    def update_target(self, target: SamplingTarget) -> None:
        """Apply a target to the rule it names; raises ``ValueError`` if invalid."""
        name = target.rule_name
        if name is None:
            raise ValueError("invalid sampling target. Missing rule name")
        if target.fixed_rate is None:
            raise ValueError(f"invalid sampling target for rule {name}. Missing fixed rate")

        with self.manifest.lock:
            rule = self.manifest.index.get(name)
        if rule is None:
            raise ValueError(f"rule {name} not found")

        with rule.lock:
            rule.reservoir.refreshed_at = int(self.clock())
            rule.properties.rate = target.fixed_rate
            if target.reservoir_quota is not None:
                rule.reservoir.quota = target.reservoir_quota
            if target.reservoir_quota_ttl is not None:
                rule.reservoir.expires_at = int(target.reservoir_quota_ttl)
            if target.interval is not None:
                rule.reservoir.interval = target.interval

    def load_daemon_endpoints(self, address: Optional[str]) -> None:
        """Use the daemon at ``address`` (``host:port``) once the pollers start."""
        self.daemon_address = address