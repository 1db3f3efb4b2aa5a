"""Client for the sampling endpoints served by the local trace daemon."""

from __future__ import annotations

import json
import logging
import urllib.request
from typing import Any, Iterable, Optional

from .rule import SamplingStatistics
from .service import SamplingRuleRecord, SamplingTargetsOutput

DEFAULT_DAEMON_ADDRESS = "127.0.0.1:2000"

_logger = logging.getLogger("xraystrategy")


class DaemonProxy:
    """Sends unsigned sampling requests to the daemon, which forwards them."""

    timeout: float = 5.0

    def __init__(self, address: Optional[str] = None) -> None:
        self.address = address or DEFAULT_DAEMON_ADDRESS
        self.base_url = f"http://{self.address}"
        # The daemon is local: never route these calls through an HTTP proxy.
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
        _logger.info("X-Ray proxy using address : %s", self.address)

    def _call(self, path: str, body: dict) -> dict:
        request = urllib.request.Request(
            self.base_url + path,
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        with self._opener.open(request, timeout=self.timeout) as response:
            payload = response.read()
        if not payload:
            return {}
        doc: Any = json.loads(payload)
        if not isinstance(doc, dict):
            raise ValueError(f"unexpected response from daemon: {doc!r}")
        return doc

    def get_sampling_rules(self) -> list[SamplingRuleRecord]:
        """Fetch the sampling rules known to the service."""
        doc = self._call("/GetSamplingRules", {})
        return [
            SamplingRuleRecord.from_dict(item)
            for item in doc.get("SamplingRuleRecords") or []
        ]

    def get_sampling_targets(
        self, statistics: Iterable[SamplingStatistics]
    ) -> SamplingTargetsOutput:
        """Report sampling statistics and receive targets for the next interval."""
        body = {"SamplingStatisticsDocuments": [s.to_dict() for s in statistics]}
        return SamplingTargetsOutput.from_dict(self._call("/SamplingTargets", body))