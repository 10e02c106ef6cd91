"""
Data access over MongoDB collections.

Public API:
- StoreHandle: owned connection with raw query/write primitives
- KeysetPaginator / work_page_by_page: walk a query result window by window
- process_a_batch: fetch and handle exactly one window
- bulk_write / bulk_create / bulk_update / bulk_update_by_query: one-round-trip batches
- document operations: insert, replace, upsert, find, count, drop, distinct

Usage:
    from docbatch.repositories import StoreHandle, work_page_by_page, bulk_update

    store = StoreHandle.from_config(StoreConfig.from_env())
    store.initialize()

    def mark_seen(window, store):
        return bulk_update(store, "events", [{**doc, "seen": True} for doc in window], omits=["_id"])

    result = work_page_by_page(store, "events", {"seen": False}, 500, mark_seen, (store,))
"""

from .store_handle import StoreHandle
from .paginator import KeysetCursor, KeysetPaginator, process_a_batch, work_page_by_page
from .bulk import (
    Insert,
    Update,
    UpdateMatching,
    bulk_create,
    bulk_update,
    bulk_update_by_query,
    bulk_write,
)
from .documents import (
    count_by_query,
    drop_collection,
    find_by_query,
    find_distinct,
    find_one_by_query,
    insert_documents,
    insert_one,
    update_document,
    upsert_document,
)

__all__ = [
    # Store handle
    "StoreHandle",
    # Traversal
    "KeysetCursor",
    "KeysetPaginator",
    "work_page_by_page",
    "process_a_batch",
    # Bulk writes
    "Insert",
    "Update",
    "UpdateMatching",
    "bulk_write",
    "bulk_create",
    "bulk_update",
    "bulk_update_by_query",
    # Document operations
    "insert_documents",
    "insert_one",
    "update_document",
    "upsert_document",
    "find_one_by_query",
    "find_by_query",
    "count_by_query",
    "drop_collection",
    "find_distinct",
]
