"""Saved-jobs reconciliation core.

:class:`BookmarkStore` owns the durable set of saved identifiers and
:class:`CollectionFetcher` turns that set into job records. Consumers
subscribe to the store and re-run the fetcher whenever the set changes.
"""

from .fetcher import CollectionFetcher, CollectionSnapshot, JobLookupResult, LookupStatus
from .store import BookmarkStore, PersistenceError

__all__ = [
    "BookmarkStore",
    "CollectionFetcher",
    "CollectionSnapshot",
    "JobLookupResult",
    "LookupStatus",
    "PersistenceError",
]
