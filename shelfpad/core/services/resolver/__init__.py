"""
Resolver adapter — subprocess contract with the external package resolver.

Public API:

    from shelfpad.core.services.resolver import ResolverClient, QueryOptions, query_with_retry
"""

from shelfpad.core.services.resolver.deadline import Deadline
from shelfpad.core.services.resolver.locate import find_resolver
from shelfpad.core.services.resolver.protocol import decode_payload
from shelfpad.core.services.resolver.query import (
    QueryOptions,
    ResolverClient,
    query_with_retry,
)

__all__ = [
    "Deadline",
    "QueryOptions",
    "ResolverClient",
    "decode_payload",
    "find_resolver",
    "query_with_retry",
]
