"""
Rule registry module for Infragate.

Loads named policies once at startup and answers "which policies apply to
this resource?" for the lifetime of the process.

Key concepts:
    - Policy: Immutable name + enforcement level + compiled predicate
    - PolicyRegistry: Ordered, read-only collection with scoped lookup
    - ConfigError: Raised at load; a registry is never partially loaded
"""

from infragate.registry.registry import Policy, PolicyRegistry

__all__ = [
    "Policy",
    "PolicyRegistry",
]
