"""
Broken Link Reporting

Paginated, read-only listing of records whose last verdict was broken.
"""

import logging

from ..utils.error_handler import ValidationInputError
from .data_models import BrokenLinksPage
from .record_store.protocol import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500
MAX_PAGE_SIZE = 10000


class BrokenLinkReporter:
    """Pages through broken links in id order"""

    def __init__(self, store: RecordStore):
        self.store = store

    def list_broken(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> BrokenLinksPage:
        """
        Get one page of broken links.

        Args:
            page: 1-based page number
            page_size: Records per page, 1 to 10000

        Returns:
            The requested page with pagination metadata

        Raises:
            ValidationInputError: If page or page_size is out of range
        """
        if page < 1:
            raise ValidationInputError("Page must be greater than 0")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationInputError(
                f"PageSize must be between 1 and {MAX_PAGE_SIZE}"
            )

        total_count = self.store.count_broken()
        skip = (page - 1) * page_size
        records = self.store.fetch_broken_page(skip, page_size)

        logger.debug(
            f"Broken links page {page} (size {page_size}): "
            f"{len(records)} of {total_count}"
        )
        return BrokenLinksPage(
            records=records,
            page=page,
            page_size=page_size,
            total_count=total_count,
        )


__all__ = ["BrokenLinkReporter", "DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE"]
