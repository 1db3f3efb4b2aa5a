"""Shapes of the sampling service's rules, targets and responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


def _timestamp(value: Any) -> Optional[float]:
    return None if value is None else float(value)


@dataclass
class SamplingRule:
    """A sampling rule as described by the sampling service."""

    rule_name: Optional[str] = None
    rule_arn: Optional[str] = None
    resource_arn: Optional[str] = None
    priority: Optional[int] = None
    fixed_rate: Optional[float] = None
    reservoir_size: Optional[int] = None
    service_name: Optional[str] = None
    service_type: Optional[str] = None
    host: Optional[str] = None
    http_method: Optional[str] = None
    url_path: Optional[str] = None
    version: Optional[int] = None
    attributes: Optional[dict] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SamplingRule":
        """Build a rule from the service's JSON shape."""
        return cls(
            rule_name=data.get("RuleName"),
            rule_arn=data.get("RuleARN"),
            resource_arn=data.get("ResourceARN"),
            priority=data.get("Priority"),
            fixed_rate=data.get("FixedRate"),
            reservoir_size=data.get("ReservoirSize"),
            service_name=data.get("ServiceName"),
            service_type=data.get("ServiceType"),
            host=data.get("Host"),
            http_method=data.get("HTTPMethod"),
            url_path=data.get("URLPath"),
            version=data.get("Version"),
            attributes=data.get("Attributes"),
        )


@dataclass
class SamplingRuleRecord:
    """A sampling rule with its creation and modification times."""

    sampling_rule: Optional[SamplingRule] = None
    created_at: Optional[float] = None
    modified_at: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SamplingRuleRecord":
        """Build a record from the service's JSON shape."""
        rule = data.get("SamplingRule")
        return cls(
            sampling_rule=None if rule is None else SamplingRule.from_dict(rule),
            created_at=_timestamp(data.get("CreatedAt")),
            modified_at=_timestamp(data.get("ModifiedAt")),
        )


@dataclass
class SamplingTarget:
    """A quota and rate assigned to one rule for the next interval."""

    rule_name: Optional[str] = None
    fixed_rate: Optional[float] = None
    reservoir_quota: Optional[int] = None
    reservoir_quota_ttl: Optional[float] = None
    interval: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SamplingTarget":
        """Build a target from the service's JSON shape."""
        return cls(
            rule_name=data.get("RuleName"),
            fixed_rate=data.get("FixedRate"),
            reservoir_quota=data.get("ReservoirQuota"),
            reservoir_quota_ttl=_timestamp(data.get("ReservoirQuotaTTL")),
            interval=data.get("Interval"),
        )


@dataclass
class UnprocessedStatistics:
    """Statistics the service could not process, with the reason."""

    rule_name: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "UnprocessedStatistics":
        """Build an entry from the service's JSON shape."""
        return cls(
            rule_name=data.get("RuleName"),
            error_code=data.get("ErrorCode"),
            message=data.get("Message"),
        )


@dataclass
class SamplingTargetsOutput:
    """The service's reply to a report of sampling statistics."""

    last_rule_modification: Optional[float] = None
    sampling_target_documents: list[SamplingTarget] = field(default_factory=list)
    unprocessed_statistics: list[UnprocessedStatistics] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "SamplingTargetsOutput":
        """Build the reply from the service's JSON shape."""
        return cls(
            last_rule_modification=_timestamp(data.get("LastRuleModification")),
            sampling_target_documents=[
                SamplingTarget.from_dict(item)
                for item in data.get("SamplingTargetDocuments") or []
            ],
            unprocessed_statistics=[
                UnprocessedStatistics.from_dict(item)
                for item in data.get("UnprocessedStatistics") or []
            ],
        )