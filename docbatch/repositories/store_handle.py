"""
Store Handle

Owns one MongoDB client for a logical session and exposes the raw
query/write primitives every other docbatch component is built on.

The handle is an explicitly owned object: create it, initialize() it,
pass it to the operations that need it and close() it when done.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pymongo.results import BulkWriteResult, InsertManyResult, InsertOneResult

from ..common.config import DEFAULT_DATABASE, DEFAULT_SERVER_SELECTION_TIMEOUT_MS, StoreConfig
from ..common.error_handling import MalformedInputError, StoreNotInitializedError, store_operation
from ..common.result import Result
from ..common.utils import is_empty

logger = logging.getLogger(__name__)


class StoreHandle:
    """
    Connection to one MongoDB database.

    Connection Management:
    - One MongoClient per handle, created by initialize()
    - Every primitive fails fast with StoreNotInitializedError until then
    - The handle serializes commands through its client; concurrent
      independent command streams should use independent handles

    Error Handling:
    - Primitives raise: PyMongoError from the driver, DocBatchError for
      local conditions. Public operations turn those into Result envelopes.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        database: str = DEFAULT_DATABASE,
        server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    ):
        """
        Args:
            url: MongoDB connection string (may also be given to initialize())
            database: Database name used when the URL carries no default database
            server_selection_timeout_ms: Driver timeout for finding a usable server
        """
        self._url = url
        self._database_name = database
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._client: Optional[MongoClient] = None
        self._db: Optional[Database] = None

    @classmethod
    def from_config(cls, config: StoreConfig) -> "StoreHandle":
        return cls(
            url=config.url,
            database=config.database,
            server_selection_timeout_ms=config.server_selection_timeout_ms,
        )

    # ===== Lifecycle =====

    @store_operation("initialize store", critical=True)
    def initialize(self, url: Optional[str] = None) -> Result:
        """
        Connect to MongoDB and verify the server answers a ping.

        Calling initialize() on an initialized handle is a no-op.

        Args:
            url: Connection string; overrides the one given to the constructor

        Returns:
            Result with resp set to the database name, or a failure
        """
        if self._db is not None:
            return Result.ok(self._db.name)

        url = url or self._url
        if is_empty(url):
            raise MalformedInputError("No connection URL configured (set MONGO_DB_URL)")

        client = MongoClient(url, serverSelectionTimeoutMS=self._server_selection_timeout_ms)
        try:
            db = client.get_default_database(default=self._database_name)
            client.admin.command("ping")
        except PyMongoError:
            client.close()
            raise

        self._url = url
        self._client = client
        self._db = db
        logger.info(f"Connected to MongoDB: {db.name}")
        return Result.ok(db.name)

    def close(self) -> Result:
        """Close the MongoDB connection. Safe to call on an uninitialized handle."""
        if self._client is None:
            return Result.empty("Store handle was not connected")
        self._client.close()
        self._client = None
        self._db = None
        logger.info("Disconnected from MongoDB")
        return Result.empty("Store handle closed")

    @property
    def is_initialized(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> Database:
        """Get the database instance."""
        if self._db is None:
            raise StoreNotInitializedError()
        return self._db

    def __enter__(self) -> "StoreHandle":
        result = self.initialize()
        if not result:
            raise StoreNotInitializedError(f"Could not initialize store handle: {result.text}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ===== Raw primitives =====

    def collection(self, name: str) -> Collection:
        """Get a collection by name."""
        if is_empty(name):
            raise MalformedInputError("Collection name is required")
        return self.db[name]

    def find_window(
        self,
        collection: str,
        query: Mapping[str, Any],
        limit: int,
        key_field: str = "_id",
        projection: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch up to limit documents matching query, ascending by key_field.

        Args:
            collection: Collection name
            query: MongoDB query filter
            limit: Maximum documents to return (must be >= 1)
            key_field: Unique, totally ordered sort key
            projection: Fields to include/exclude

        Returns:
            List of documents sorted by key_field
        """
        cursor = (
            self.collection(collection)
            .find(query, projection)
            .sort(key_field, ASCENDING)
            .limit(limit)
        )
        return list(cursor)

    def find(
        self,
        collection: str,
        query: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """Find multiple documents. A limit of 0 means no limit."""
        cursor = self.collection(collection).find(query, projection)
        if sort:
            cursor = cursor.sort(sort)
        if limit > 0:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        sort: Optional[List[tuple]] = None,
    ) -> Optional[Dict[str, Any]]:
        """First document matching query in sort order, or None."""
        return self.collection(collection).find_one(query, sort=sort)

    def count_documents(self, collection: str, query: Mapping[str, Any]) -> int:
        return self.collection(collection).count_documents(query)

    def insert_many(self, collection: str, documents: Sequence[Mapping[str, Any]]) -> InsertManyResult:
        return self.collection(collection).insert_many(list(documents))

    def insert_one(self, collection: str, document: Mapping[str, Any]) -> InsertOneResult:
        return self.collection(collection).insert_one(document)

    def bulk_write(self, collection: str, requests: Sequence[Any], ordered: bool = False) -> BulkWriteResult:
        """Submit write requests as one batch. Unordered unless asked otherwise."""
        return self.collection(collection).bulk_write(list(requests), ordered=ordered)

    def find_one_and_replace(
        self,
        collection: str,
        filter: Mapping[str, Any],
        replacement: Mapping[str, Any],
        upsert: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Replace one document, returning the replacement as stored."""
        return self.collection(collection).find_one_and_replace(
            filter,
            replacement,
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )

    def find_one_and_update(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Mapping[str, Any],
        upsert: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Update one document, returning it as it was before the update."""
        return self.collection(collection).find_one_and_update(filter, update, upsert=upsert)

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def drop_collection(self, name: str) -> None:
        self.collection(name).drop()

    def distinct(self, collection: str, field: str, query: Optional[Mapping[str, Any]] = None) -> List[Any]:
        return self.collection(collection).distinct(field, query)
