"""MongoDB record store implementation."""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ...utils.error_handler import StoreOperationError
from ..data_models import LinkRecord, LinkStatus

logger = logging.getLogger(__name__)


class MongoRecordStore:
    """
    Link records stored as documents in a MongoDB collection.

    Document shape::

        {_id: ObjectId, url, status, reason, created_at, updated_at}

    The collection may be injected (e.g. a mongomock collection in tests);
    otherwise use :meth:`from_config`, which owns and later closes the client.
    """

    def __init__(self, collection: Collection, client: Optional[MongoClient] = None):
        self._collection = collection
        self._client = client
        self._ensure_indexes()

    @classmethod
    def from_config(cls, store_config) -> "MongoRecordStore":
        """Connect using a :class:`StoreConfig`."""
        try:
            client: MongoClient = MongoClient(
                store_config.connection_string,
                serverSelectionTimeoutMS=store_config.server_selection_timeout_ms,
            )
            client.server_info()  # Test connection
        except PyMongoError as e:
            raise StoreOperationError("connect", str(e)) from e

        collection = client[store_config.database_name][store_config.collection_name]
        logger.info(
            f"MongoDB connection established to "
            f"{store_config.database_name}/{store_config.collection_name}"
        )
        return cls(collection, client=client)

    def _ensure_indexes(self) -> None:
        try:
            self._collection.create_index([("status", ASCENDING), ("_id", ASCENDING)])
        except PyMongoError as e:
            raise StoreOperationError("create_index", str(e)) from e

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_document(record: LinkRecord) -> Dict[str, Any]:
        return {
            "url": record.url,
            "status": record.status.value,
            "reason": record.reason,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }

    @staticmethod
    def _from_document(doc: Dict[str, Any]) -> LinkRecord:
        return LinkRecord(
            id=str(doc["_id"]),
            url=doc["url"],
            status=LinkStatus(doc.get("status", LinkStatus.PENDING.value)),
            reason=doc.get("reason"),
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at"),
        )

    @staticmethod
    def _object_id(record_id: Optional[str]) -> ObjectId:
        try:
            return ObjectId(record_id)
        except (InvalidId, TypeError) as e:
            raise StoreOperationError("bulk_update", f"invalid record id {record_id!r}") from e

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    def count_by_status(self, status: LinkStatus) -> int:
        try:
            return self._collection.count_documents({"status": LinkStatus(status).value})
        except PyMongoError as e:
            raise StoreOperationError("count_by_status", str(e)) from e

    def fetch_batch_by_status(self, status: LinkStatus, limit: int) -> List[LinkRecord]:
        try:
            cursor = (
                self._collection.find({"status": LinkStatus(status).value})
                .sort("_id", ASCENDING)
                .limit(limit)
            )
            return [self._from_document(doc) for doc in cursor]
        except PyMongoError as e:
            raise StoreOperationError("fetch_batch_by_status", str(e)) from e

    def bulk_update(self, records: List[LinkRecord]) -> int:
        if not records:
            return 0

        operations = [
            UpdateOne(
                {"_id": self._object_id(record.id)},
                {
                    "$set": {
                        "status": record.status.value,
                        "reason": record.reason,
                        "updated_at": record.updated_at,
                    }
                },
            )
            for record in records
        ]

        try:
            result = self._collection.bulk_write(operations, ordered=False)
        except PyMongoError as e:
            raise StoreOperationError("bulk_update", str(e)) from e

        logger.info(f"Updated {result.modified_count} links in database")
        return result.modified_count

    def insert_many(self, records: List[LinkRecord]) -> List[str]:
        if not records:
            return []

        try:
            result = self._collection.insert_many(
                [self._to_document(record) for record in records], ordered=True
            )
        except PyMongoError as e:
            raise StoreOperationError("insert_many", str(e)) from e

        logger.info(f"Inserted {len(result.inserted_ids)} links into database")
        return [str(inserted_id) for inserted_id in result.inserted_ids]

    def count_broken(self) -> int:
        return self.count_by_status(LinkStatus.BROKEN)

    def fetch_broken_page(self, skip: int, limit: int) -> List[LinkRecord]:
        try:
            cursor = (
                self._collection.find({"status": LinkStatus.BROKEN.value})
                .sort("_id", ASCENDING)
                .skip(skip)
                .limit(limit)
            )
            return [self._from_document(doc) for doc in cursor]
        except PyMongoError as e:
            raise StoreOperationError("fetch_broken_page", str(e)) from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["MongoRecordStore"]
