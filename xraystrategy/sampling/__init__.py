"""Trace sampling: reservoirs, rules, manifests and local and centralized strategies."""

__all__ = [
    "centralized",
    "centralized_manifest",
    "localized",
    "manifest",
    "proxy",
    "reservoir",
    "rule",
    "service",
]