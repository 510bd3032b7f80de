"""
Record Store Protocol for Link Validation.

This module defines the query/update contract the validation engine,
ingestion and reporting layers require from the persistence layer, so that
different storage backends (MongoDB, SQLite) can be used interchangeably.
"""

from abc import abstractmethod
from typing import List, Protocol, runtime_checkable

from ..data_models import LinkRecord, LinkStatus


@runtime_checkable
class RecordStore(Protocol):
    """
    Protocol for link record stores.

    Implementations must be safe to call from worker threads, since the
    engine runs store calls in an executor while probes are in flight.

    Example Usage:
        >>> store = MongoRecordStore(collection)
        >>> ids = store.insert_many([LinkRecord.new_pending("https://a.org")])
        >>> pending = store.fetch_batch_by_status(LinkStatus.PENDING, 1000)
        >>> store.bulk_update([r.with_verdict(verdict) for r in pending])
    """

    @abstractmethod
    def count_by_status(self, status: LinkStatus) -> int:
        """
        Count records with the given status.

        Raises:
            StoreOperationError: If the query fails
        """
        ...

    @abstractmethod
    def fetch_batch_by_status(self, status: LinkStatus, limit: int) -> List[LinkRecord]:
        """
        Fetch up to ``limit`` records with the given status, ordered by id.

        Always reads from the front of the filtered set. Records whose status
        has changed since the previous call are no longer part of the set, so
        an offset would skip records that are still pending.

        Raises:
            StoreOperationError: If the query fails
        """
        ...

    @abstractmethod
    def bulk_update(self, records: List[LinkRecord]) -> int:
        """
        Write ``status``, ``reason`` and ``updated_at`` of every record.

        Returns:
            Number of records actually modified

        Raises:
            StoreOperationError: If the bulk write fails
        """
        ...

    @abstractmethod
    def insert_many(self, records: List[LinkRecord]) -> List[str]:
        """
        Insert new records and return their store-assigned ids in input order.

        Raises:
            StoreOperationError: If the insert fails
        """
        ...

    @abstractmethod
    def count_broken(self) -> int:
        """Count records with status ``broken``."""
        ...

    @abstractmethod
    def fetch_broken_page(self, skip: int, limit: int) -> List[LinkRecord]:
        """Fetch one page of broken records, ordered by id."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        ...


__all__ = ["RecordStore"]
