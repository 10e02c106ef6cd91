"""
Document operations

Thin single-call wrappers over the store handle. Each returns a Result
envelope; queries that legitimately match nothing are informational
successes, not failures.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from pymongo import ASCENDING

from ..common.error_handling import MalformedInputError, store_operation
from ..common.result import Result
from ..common.utils import is_empty
from .store_handle import StoreHandle

logger = logging.getLogger(__name__)


def _require_key(document: Mapping[str, Any], key_field: str) -> Any:
    if key_field not in document:
        raise MalformedInputError(f"Document has no '{key_field}' to match on")
    return document[key_field]


@store_operation("insert documents")
def insert_documents(
    store: StoreHandle, collection: str, documents: Optional[Sequence[Mapping[str, Any]]]
) -> Result:
    """
    Insert documents in a collection.

    Returns:
        Result with resp = list of inserted ids
    """
    if not documents:
        return Result.empty("No documents to insert")
    result = store.insert_many(collection, [dict(document) for document in documents])
    logger.info(f"Inserted {len(result.inserted_ids)} document(s) into {collection}")
    return Result.ok(result.inserted_ids)


@store_operation("insert one")
def insert_one(store: StoreHandle, collection: str, document: Optional[Mapping[str, Any]]) -> Result:
    """Insert a copy of a single document. Returns the inserted id."""
    if not document:
        return Result.empty("No document to insert")
    result = store.insert_one(collection, dict(document))
    return Result.ok(result.inserted_id)


@store_operation("update document")
def update_document(
    store: StoreHandle,
    collection: str,
    document: Mapping[str, Any],
    timestamp: bool = False,
    key_field: str = "_id",
) -> Result:
    """
    Replace the document with the same key. Never inserts.

    Args:
        store: Initialized store handle
        collection: Collection name
        document: Full replacement document carrying key_field
        timestamp: If True, sets lastModifiedAt to the current UTC time (ISO-8601)
        key_field: Field the replacement is matched on

    Returns:
        Result with resp = the document as stored, or informational text if
        no document had that key
    """
    if document is None:
        raise MalformedInputError("A replacement document is required")
    replacement = dict(document)
    if timestamp:
        replacement["lastModifiedAt"] = datetime.now(timezone.utc).isoformat()

    key = _require_key(replacement, key_field)
    updated = store.find_one_and_replace(collection, {key_field: key}, replacement, upsert=False)
    if updated is None:
        return Result.empty(f"No document with {key_field}={key!r} to update")
    return Result.ok(updated)


@store_operation("upsert document")
def upsert_document(
    store: StoreHandle,
    collection: str,
    update: Mapping[str, Any],
    upsert: bool = False,
    query: Optional[Mapping[str, Any]] = None,
    key_field: str = "_id",
) -> Result:
    """
    Update (or with upsert=True, create) one document.

    Args:
        store: Initialized store handle
        collection: Collection name
        update: Update operators, or a plain field mapping which is applied
                with $set (key_field excluded)
        upsert: Create the document when nothing matches
        query: Filter; defaults to matching update[key_field]
        key_field: Field used for the default filter

    Returns:
        Result with resp = the document before the update, or informational
        text if nothing matched before
    """
    if not update:
        raise MalformedInputError("An update document is required")

    if query is None:
        query = {key_field: _require_key(update, key_field)}

    if any(name.startswith("$") for name in update):
        update_doc = dict(update)
    else:
        update_doc = {"$set": {name: value for name, value in update.items() if name != key_field}}

    previous = store.find_one_and_update(collection, query, update_doc, upsert=upsert)
    if previous is None:
        text = "Document created" if upsert else "No document matched the upsert query"
        return Result.empty(text)
    return Result.ok(previous)


@store_operation("find one document")
def find_one_by_query(
    store: StoreHandle,
    collection: str,
    query: Mapping[str, Any],
    sort: Optional[List[tuple]] = None,
) -> Result:
    """Find the first document matching query. Sorts by _id ascending by default."""
    document = store.find_one(collection, query, sort=sort or [("_id", ASCENDING)])
    if document is None:
        return Result.empty("No document matched the query")
    return Result.ok(document)


@store_operation("find documents")
def find_by_query(
    store: StoreHandle,
    collection: str,
    query: Mapping[str, Any],
    limit: Optional[int] = None,
    projection: Optional[Mapping[str, Any]] = None,
) -> Result:
    """
    Find documents matching query.

    Args:
        limit: Maximum documents; None or 0 means no limit
        projection: Fields to include/exclude
    """
    if is_empty(limit):
        limit = 0
    if limit < 0:
        raise MalformedInputError(f"limit must be >= 0, got {limit}")
    documents = store.find(collection, query, projection=projection or None, limit=limit)
    if not documents:
        return Result.empty("No documents matched the query")
    return Result.ok(documents)


@store_operation("count documents")
def count_by_query(store: StoreHandle, collection: str, query: Mapping[str, Any]) -> Result:
    """Count documents matching query."""
    return Result.ok(store.count_documents(collection, query))


@store_operation("drop collection")
def drop_collection(store: StoreHandle, name: str) -> Result:
    """Drop a collection if it exists."""
    if name not in store.list_collection_names():
        return Result.empty(f"Collection {name} does not exist")
    store.drop_collection(name)
    logger.warning(f"⚠ Dropped collection {name}")
    return Result.ok(True)


@store_operation("find distinct")
def find_distinct(store: StoreHandle, collection: str, field: str) -> Result:
    """Distinct values of field across documents where it exists."""
    if is_empty(field):
        raise MalformedInputError("A field name is required")
    values = store.distinct(collection, field, {field: {"$exists": True}})
    if not values:
        return Result.empty(f"No documents have field {field}")
    return Result.ok(values)
