"""
Stateful bindings over ApiClient for UI code.

Provides:
- Query: fetch on activation, refetch, local mutate
- Mutation: explicit POST/PUT/PATCH/DELETE with cache invalidation
- PaginatedQuery / InfiniteQuery: page-based and cumulative listings
- PollingQuery: interval refresh
- SearchQuery: debounced search
"""

from apiflow.bindings.base import Binding, BindingOptions
from apiflow.bindings.query import Query
from apiflow.bindings.mutation import Mutation, MutationOptions
from apiflow.bindings.pagination import (
    InfiniteQuery,
    PaginatedQuery,
    PaginationOptions,
)
from apiflow.bindings.polling import PollingOptions, PollingQuery
from apiflow.bindings.search import SearchOptions, SearchQuery

__all__ = [
    "Binding",
    "BindingOptions",
    "Query",
    "Mutation",
    "MutationOptions",
    "PaginatedQuery",
    "InfiniteQuery",
    "PaginationOptions",
    "PollingQuery",
    "PollingOptions",
    "SearchQuery",
    "SearchOptions",
]
