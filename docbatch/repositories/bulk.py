"""
Bulk Batch Engine

Queues insert and update operations into one unordered batch and submits
it as a single bulk_write round trip.

The driver reports per-operation outcomes in one aggregate
(nInserted, nMatched, nModified, upserted, writeErrors, ...). That
aggregate is returned verbatim as the envelope's resp; callers inspect
writeErrors for per-item failures. Execution order across operations is
not guaranteed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pymongo import InsertOne, UpdateMany, UpdateOne
from pymongo.errors import BulkWriteError

from ..common.error_handling import MalformedInputError, store_operation
from ..common.result import Result
from ..common.utils import omit
from .store_handle import StoreHandle

logger = logging.getLogger(__name__)

NOTHING_TO_DO = "No operations to execute"


@dataclass(frozen=True)
class Insert:
    """Insert one document."""
    document: Mapping[str, Any]

    def to_request(self) -> InsertOne:
        return InsertOne(dict(self.document))


@dataclass(frozen=True)
class Update:
    """Set fields on the single document matching filter."""
    filter: Mapping[str, Any]
    set_fields: Mapping[str, Any] = field(default_factory=dict)

    def to_request(self) -> UpdateOne:
        return UpdateOne(dict(self.filter), {"$set": dict(self.set_fields)})


@dataclass(frozen=True)
class UpdateMatching:
    """Set fields on every document matching filter, as one queued operation."""
    filter: Mapping[str, Any]
    set_fields: Mapping[str, Any] = field(default_factory=dict)

    def to_request(self) -> UpdateMany:
        return UpdateMany(dict(self.filter), {"$set": dict(self.set_fields)})


BulkOperation = Union[Insert, Update, UpdateMatching]


def _payloads(operation: BulkOperation) -> List[Any]:
    if isinstance(operation, Insert):
        return [operation.document]
    return [operation.filter, operation.set_fields]


def build_update_operations(
    updates: Iterable[Mapping[str, Any]],
    omits: Optional[Union[str, Sequence[str]]] = None,
    key_field: str = "_id",
) -> List[Update]:
    """
    Turn full documents into keyed partial updates.

    The filter is taken from each document's key before omits are stripped,
    so omitting the key (e.g. "_id") keeps it out of $set but not out of the
    filter.

    Raises:
        MalformedInputError: If a document has no key_field
    """
    operations = []
    for position, document in enumerate(updates):
        if not isinstance(document, Mapping):
            raise MalformedInputError(
                f"Update at position {position} is not a document: {document!r}"
            )
        if key_field not in document:
            raise MalformedInputError(
                f"Update at position {position} has no '{key_field}' to match on"
            )
        operations.append(
            Update(filter={key_field: document[key_field]}, set_fields=omit(document, omits))
        )
    return operations


@store_operation("bulk write")
def bulk_write(
    store: StoreHandle,
    collection: str,
    operations: Optional[Iterable[BulkOperation]],
) -> Result:
    """
    Submit operations as one unordered batch.

    Args:
        store: Initialized store handle
        collection: Collection name
        operations: Insert / Update / UpdateMatching operations

    Returns:
        - Result.empty(NOTHING_TO_DO) for no operations (no round trip)
        - Result.ok(<aggregate report>) once the batch was executed, including
          batches where individual operations failed (see writeErrors)
        - Result.fail(...) when the batch could not be executed at all
    """
    requests = []
    for position, operation in enumerate(operations or []):
        if not isinstance(operation, (Insert, Update, UpdateMatching)):
            raise MalformedInputError(f"Unsupported bulk operation: {operation!r}")
        if not all(isinstance(payload, Mapping) for payload in _payloads(operation)):
            raise MalformedInputError(
                f"Bulk operation at position {position} carries a non-document payload: {operation!r}"
            )
        requests.append(operation.to_request())

    if not requests:
        return Result.empty(NOTHING_TO_DO)

    logger.info(f"Submitting {len(requests)} bulk operation(s) to {collection}")
    try:
        result = store.bulk_write(collection, requests, ordered=False)
    except BulkWriteError as e:
        report: Dict[str, Any] = e.details
        logger.warning(
            f"Bulk write to {collection} finished with "
            f"{len(report.get('writeErrors', []))} failed operation(s)"
        )
        return Result.ok(report)

    return Result.ok(result.bulk_api_result)


def bulk_create(
    store: StoreHandle,
    collection: str,
    documents: Optional[Sequence[Mapping[str, Any]]],
) -> Result:
    """Insert documents in one unordered batch."""
    return bulk_write(store, collection, [Insert(document) for document in documents or []])


@store_operation("bulk update")
def bulk_update(
    store: StoreHandle,
    collection: str,
    updates: Optional[Sequence[Mapping[str, Any]]],
    omits: Optional[Union[str, Sequence[str]]] = None,
    key_field: str = "_id",
) -> Result:
    """
    Update documents by key in one unordered batch.

    Args:
        store: Initialized store handle
        collection: Collection name
        updates: Documents carrying key_field plus the fields to set
        omits: Fields never written, e.g. ["_id"] or server-managed fields
        key_field: Field the filter matches on

    Returns:
        Same envelope as bulk_write
    """
    if not updates:
        return Result.empty(NOTHING_TO_DO)
    return bulk_write(store, collection, build_update_operations(updates, omits, key_field))


@store_operation("bulk update by query")
def bulk_update_by_query(
    store: StoreHandle,
    collection: str,
    updates: Mapping[str, Any],
    query: Mapping[str, Any],
) -> Result:
    """Set the same fields on every document matching query, as one queued operation."""
    if query is None:
        raise MalformedInputError("A query is required; pass {} to update every document")
    if not updates:
        return Result.empty(NOTHING_TO_DO)
    return bulk_write(store, collection, [UpdateMatching(filter=query, set_fields=updates)])
