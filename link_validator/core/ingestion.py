"""
Link Ingestion

Turns a caller-supplied list of URLs into pending link records and inserts
them into the record store.
"""

import logging
from typing import Iterable, List, Optional

from ..utils.error_handler import ValidationInputError
from .data_models import LinkRecord, utc_now
from .record_store.protocol import RecordStore

logger = logging.getLogger(__name__)

EMPTY_LINKS_MESSAGE = "Links array cannot be empty"


class LinkIngestor:
    """Add new links to the backlog"""

    def __init__(self, store: RecordStore):
        self.store = store

    def add_links(self, urls: Optional[Iterable[str]]) -> List[LinkRecord]:
        """
        Create one pending record per URL.

        URL format is not checked here; malformed URLs are reported as broken
        by the next validation run. Duplicates create separate records.

        Args:
            urls: URLs to add

        Returns:
            The inserted records, carrying their store-assigned ids

        Raises:
            ValidationInputError: If the list is empty, is a bare string or has
                blank entries
            StoreOperationError: If the insert fails
        """
        if urls is None:
            raise ValidationInputError(EMPTY_LINKS_MESSAGE)
        if isinstance(urls, str):
            raise ValidationInputError("Links must be a list of URLs, not a string")

        cleaned = []
        for index, url in enumerate(urls):
            if not isinstance(url, str) or not url.strip():
                raise ValidationInputError(f"Link at position {index} is empty")
            cleaned.append(url.strip())

        if not cleaned:
            raise ValidationInputError(EMPTY_LINKS_MESSAGE)

        now = utc_now()
        records = [LinkRecord.new_pending(url, now) for url in cleaned]

        ids = self.store.insert_many(records)
        for record, record_id in zip(records, ids):
            record.id = record_id

        logger.info(f"Added {len(records)} links to the backlog")
        return records


__all__ = ["LinkIngestor", "EMPTY_LINKS_MESSAGE"]
