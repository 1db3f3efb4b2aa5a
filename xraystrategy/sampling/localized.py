"""Sampling decisions made from a local ruleset."""

from __future__ import annotations

import json
import logging
import os
from typing import Optional, Union

from .manifest import (
    DEFAULT_RULES,
    RuleManifest,
    manifest_from_file_path,
    manifest_from_json_bytes,
)
from .rule import Decision, Request, SamplingStrategy

_logger = logging.getLogger("xraystrategy")


class LocalizedStrategy(SamplingStrategy):
    """Makes sampling decisions from rules held locally.

    Without a manifest the built-in rules apply: the first request each
    second is sampled, and 5% of requests thereafter.
    """

    def __init__(self, manifest: Optional[RuleManifest] = None) -> None:
        if manifest is None:
            manifest = manifest_from_json_bytes(json.dumps(DEFAULT_RULES))
        self.manifest = manifest

    @classmethod
    def from_file_path(cls, path: Union[str, os.PathLike]) -> "LocalizedStrategy":
        """Create a strategy from the ruleset in the JSON file at ``path``."""
        return cls(manifest_from_file_path(path))

    @classmethod
    def from_json_bytes(cls, data: Union[bytes, str]) -> "LocalizedStrategy":
        """Create a strategy from a ruleset given as JSON text."""
        return cls(manifest_from_json_bytes(data))

    def should_trace(self, request: Request) -> Decision:
        _logger.debug(
            "Determining ShouldTrace decision for:\n\thost: %s\n\tpath: %s\n\tmethod: %s",
            request.host,
            request.url,
            request.method,
        )
        for rule in self.manifest.rules:
            props = rule.properties
            if props.applies_to(request.host, request.url, request.method):
                _logger.debug(
                    "Applicable rule:\n\tfixed_target: %d\n\trate: %f\n\thost: %s"
                    "\n\turl_path: %s\n\thttp_method: %s",
                    props.fixed_target,
                    props.rate,
                    props.host,
                    props.url_path,
                    props.http_method,
                )
                return rule.sample()
        default = self.manifest.default
        _logger.debug(
            "Default rule applies:\n\tfixed_target: %d\n\trate: %f",
            default.properties.fixed_target,
            default.properties.rate,
        )
        return default.sample()