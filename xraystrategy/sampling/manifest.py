"""Local sampling rule manifests read from JSON."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Union

from .reservoir import Reservoir
from .rule import Properties, Rule

DEFAULT_RULES: dict = {
    "version": 2,
    "default": {"fixed_target": 1, "rate": 0.05},
    "rules": [],
}
"""The built-in ruleset: the first request each second, then 5% of the rest."""


class ManifestError(ValueError):
    """Raised when a sampling rule manifest is malformed or invalid."""


@dataclass
class RuleManifest:
    """A full local ruleset: custom rules plus a default rule."""

    version: int
    default: Rule
    rules: list[Rule] = field(default_factory=list)


def manifest_from_file_path(path: Union[str, os.PathLike]) -> RuleManifest:
    """Read a sampling ruleset from the JSON file at ``path``."""
    with open(path, "rb") as fh:
        data = fh.read()
    return manifest_from_json_bytes(data)


def manifest_from_json_bytes(data: Union[bytes, str]) -> RuleManifest:
    """Build a sampling ruleset from JSON text."""
    try:
        doc = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ManifestError(f"invalid sampling rule manifest: {exc}") from exc
    if not isinstance(doc, dict):
        raise ManifestError("sampling rule manifest must be a JSON object")

    version = _get(doc, "version", int, 0)
    default_doc = doc.get("default")
    default_props = None if default_doc is None else _parse_properties(default_doc)
    rules_doc = doc.get("rules")
    if rules_doc is None:
        rules_doc = []
    if not isinstance(rules_doc, list):
        raise ManifestError(f"invalid value for 'rules': {rules_doc!r}")
    rule_props = [_parse_properties(item) for item in rules_doc]

    if version not in (1, 2):
        raise ManifestError(f"sampling rule manifest version {version} not supported")
    if default_props is None:
        raise ManifestError("sampling rule manifest must include a default rule")
    if default_props.url_path or default_props.service_name or default_props.http_method:
        raise ManifestError(
            "the default rule must not specify values for url_path, "
            "service_name, or http_method"
        )
    if default_props.fixed_target < 0 or default_props.rate < 0:
        raise ManifestError(
            "the default rule must specify non-negative values for fixed_target and rate"
        )

    for props in rule_props:
        if version == 1:
            _validate_version1(props)
            # Version 1 rules name the host in service_name.
            props.host = props.service_name
            props.service_name = ""
        else:
            _validate_version2(props)

    return RuleManifest(
        version=version,
        default=_make_rule(default_props),
        rules=[_make_rule(props) for props in rule_props],
    )


def _get(doc: dict, key: str, kinds: Any, default: Any) -> Any:
    value = doc.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise ManifestError(f"invalid value for {key!r}: {value!r}")
    return value


def _parse_properties(obj: Any) -> Properties:
    if not isinstance(obj, dict):
        raise ManifestError(f"sampling rule must be a JSON object, got {obj!r}")
    return Properties(
        service_name=_get(obj, "service_name", str, ""),
        host=_get(obj, "host", str, ""),
        http_method=_get(obj, "http_method", str, ""),
        url_path=_get(obj, "url_path", str, ""),
        fixed_target=_get(obj, "fixed_target", int, 0),
        rate=float(_get(obj, "rate", (int, float), 0.0)),
    )


def _validate_version1(props: Properties) -> None:
    if props.fixed_target < 0 or props.rate < 0:
        raise ManifestError(
            "all rules must have non-negative values for fixed_target and rate"
        )
    if props.host or not props.service_name or not props.http_method or not props.url_path:
        raise ManifestError(
            "all non-default rules must have values for url_path, "
            "service_name, and http_method"
        )


def _validate_version2(props: Properties) -> None:
    if props.fixed_target < 0 or props.rate < 0:
        raise ManifestError(
            "all rules must have non-negative values for fixed_target and rate"
        )
    if props.service_name or not props.host or not props.http_method or not props.url_path:
        raise ManifestError(
            "all non-default rules must have values for url_path, host, and http_method"
        )


def _make_rule(props: Properties) -> Rule:
    reservoir = Reservoir(capacity=props.fixed_target, current_epoch=int(time.time()))
    return Rule(properties=props, reservoir=reservoir)