"""
Keyset Cursor Paginator and Single-Pass Batch Fetcher

Walks every document matching a query in fixed-size windows ordered by a
unique key, handing each window to a caller-supplied handler.

Assumptions:
  a) windows are sorted ascending by key_field ("_id" by default)
  b) the key_field predicate of the query is owned by the paginator and
     overwritten with {"$gt": <last key seen>} on every advance

Consistency caveat: documents inserted during a traversal with a key
below the current high-water mark are never visited; documents inserted
above it show up on a later window.
"""

import copy
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..common.error_handling import (
    ENVELOPED_ERRORS,
    HandlerError,
    MalformedInputError,
    describe_error,
    store_operation,
)
from ..common.logger import get_logger
from ..common.result import Result
from .store_handle import StoreHandle

Document = Dict[str, Any]
WindowHandler = Callable[..., Any]

NO_MORE_DATA = "No more documents to process"
NOTHING_TO_PROCESS = "No documents matched the batch query"
HANDLER_RETURNED_NOTHING = "Window processed"


@dataclass
class KeysetCursor:
    """
    Observable traversal state.

    Attributes:
        last_key: Key of the last document of the last fully handled window.
                  Persist it and pass it back as start_after to resume.
        pages: Number of windows handed to the handler successfully
        documents: Number of documents in those windows
        exhausted: True once the traversal reached the end of the data
    """
    last_key: Any = None
    pages: int = 0
    documents: int = 0
    exhausted: bool = False

    def advance(self, window: Sequence[Document], key_field: str) -> None:
        self.last_key = window[-1][key_field]
        self.pages += 1
        self.documents += len(window)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_key": self.last_key,
            "pages": self.pages,
            "documents": self.documents,
            "exhausted": self.exhausted,
        }


def _ensure_key_in_projection(
    projection: Optional[Mapping[str, Any]], key_field: str
) -> Optional[Dict[str, Any]]:
    """The key field must always come back: keep inclusion projections inclusive, drop an exclusion of the key."""
    if projection is None:
        return None
    projection = dict(projection)
    if not any(name != key_field for name in projection):
        # Only the key was named: every field comes back
        return None
    excludes = any(not value for name, value in projection.items() if name != key_field)
    if excludes:
        projection.pop(key_field, None)
    else:
        projection[key_field] = 1
    return projection


def _invoke_handler(
    handler: WindowHandler, window: List[Document], handler_args: Sequence[Any]
) -> Result:
    """
    Run the handler on one window and normalise its outcome.

    Raises:
        HandlerError: If the handler raised or returned a failed Result
    """
    try:
        value = handler(window, *handler_args)
    except Exception as e:
        raise HandlerError(f"Window handler failed: {describe_error(e)}", cause=e) from e

    result = Result.wrap(value, HANDLER_RETURNED_NOTHING)
    if not result:
        raise HandlerError(f"Window handler failed: {result.text}")
    return result


class KeysetPaginator:
    """
    Resumable keyset-paginated batch processor.

    Each step fetches up to page_size documents above the last key seen:
    - empty window: traversal complete, handler not called
    - partial window (< page_size): last page, handler result returned
    - full window: handler called, lower bound advanced, next fetch

    A full final window therefore costs one extra (empty) fetch.

    Usage:
        paginator = KeysetPaginator(store, "events", {"processed": False}, 500, handle_window)
        result = paginator.run()
        if not result:
            save_checkpoint(paginator.cursor.last_key)
    """

    def __init__(
        self,
        store: StoreHandle,
        collection: str,
        query: Optional[Mapping[str, Any]],
        page_size: int,
        handler: WindowHandler,
        handler_args: Sequence[Any] = (),
        projection: Optional[Mapping[str, Any]] = None,
        key_field: str = "_id",
        start_after: Any = None,
        stop_requested: Optional[Callable[[], bool]] = None,
        run_id: Optional[str] = None,
    ):
        """
        Args:
            store: Initialized store handle
            collection: Collection to traverse
            query: MongoDB query filter; copied, never mutated
            page_size: Window size (>= 1)
            handler: Called as handler(window, *handler_args) for every non-empty window
            handler_args: Extra positional arguments for the handler
            projection: Fields to include/exclude; the key field is always kept
            key_field: Unique, totally ordered key used for sorting and advancing
            start_after: Resume strictly after this key (persisted cursor.last_key)
            stop_requested: Checked before every fetch; when it returns True the
                            traversal stops and reports the resume key
            run_id: Correlation id for log lines (generated if omitted)
        """
        self.store = store
        self.collection = collection
        self.page_size = page_size
        self.handler = handler
        self.handler_args = tuple(handler_args or ())
        self.key_field = key_field
        self.projection = _ensure_key_in_projection(projection, key_field)
        self.stop_requested = stop_requested
        self.run_id = run_id or uuid.uuid4().hex
        self.logger = get_logger(__name__, run_id=self.run_id, collection=collection)

        self.query: Dict[str, Any] = copy.deepcopy(dict(query or {}))
        if key_field in self.query:
            self.logger.warning(
                f"Query predicate on '{key_field}' is replaced as the traversal advances"
            )

        self.cursor = KeysetCursor(last_key=start_after)
        if start_after is not None:
            self.query[key_field] = {"$gt": start_after}

    def _validate(self) -> None:
        if not callable(self.handler):
            raise MalformedInputError("handler must be callable")
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int) or self.page_size < 1:
            raise MalformedInputError(f"page_size must be an integer >= 1, got {self.page_size!r}")

    def fetch_window(self) -> List[Document]:
        """Fetch the next window above the current lower bound."""
        return self.store.find_window(
            self.collection,
            self.query,
            self.page_size,
            key_field=self.key_field,
            projection=self.projection,
        )

    def run(self) -> Result:
        """
        Traverse the collection until exhaustion, failure or a stop request.

        Returns:
            - Result.empty(NO_MORE_DATA) when the traversal ends on an empty window
            - the handler's (wrapped) result when it ends on a partial window
            - Result.fail(...) on a fetch failure, handler failure or stop request;
              self.cursor still holds the last fully handled key
        """
        try:
            self._validate()
            while True:
                if self.stop_requested is not None and self.stop_requested():
                    self.logger.interrupted(self.cursor.pages, self.cursor.last_key)
                    return Result.fail(
                        f"Traversal interrupted; resume after key {self.cursor.last_key!r}"
                    )

                window = self.fetch_window()

                if not window:
                    self._finish()
                    return Result.empty(NO_MORE_DATA)

                result = _invoke_handler(self.handler, window, self.handler_args)
                self.cursor.advance(window, self.key_field)
                self.logger.window(self.cursor.pages, len(window), self.cursor.last_key)

                if len(window) < self.page_size:
                    self._finish()
                    return result

                self.query[self.key_field] = {"$gt": self.cursor.last_key}
        except ENVELOPED_ERRORS as e:
            self.logger.aborted(self.cursor.pages, self.cursor.last_key, describe_error(e))
            return Result.fail(describe_error(e))

    def _finish(self) -> None:
        self.cursor.exhausted = True
        self.logger.finished(self.cursor.pages, self.cursor.documents)


def work_page_by_page(
    store: StoreHandle,
    collection: str,
    query: Optional[Mapping[str, Any]],
    page_size: int,
    handler: WindowHandler,
    handler_args: Sequence[Any] = (),
    **options,
) -> Result:
    """
    Work on a collection window by window. page_size can be 1.

    Functional entry point over KeysetPaginator; options are passed through
    (projection, key_field, start_after, stop_requested, run_id).
    """
    return KeysetPaginator(
        store, collection, query, page_size, handler, handler_args, **options
    ).run()


@store_operation("process a batch")
def process_a_batch(
    store: StoreHandle,
    collection: str,
    query: Optional[Mapping[str, Any]],
    batch_size: int,
    handler: WindowHandler,
    handler_args: Sequence[Any] = (),
    projection: Optional[Mapping[str, Any]] = None,
    key_field: str = "_id",
) -> Result:
    """
    Fetch exactly one window and hand it to the handler.

    Nothing is advanced or repeated: calling again is the caller's job
    (e.g. on a scheduler tick, with progress persisted in the documents).

    Args:
        store: Initialized store handle
        collection: Collection name
        query: MongoDB query filter
        batch_size: Maximum window size (>= 1)
        handler: Called as handler(window, *handler_args)
        handler_args: Extra positional arguments for the handler
        projection: Fields to include/exclude; the key field is always kept
        key_field: Sort key

    Returns:
        Result.empty(NOTHING_TO_PROCESS) for an empty window, otherwise the
        handler's (wrapped) result; failures as Result.fail
    """
    if not callable(handler):
        raise MalformedInputError("handler must be callable")
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise MalformedInputError(f"batch_size must be an integer >= 1, got {batch_size!r}")

    window = store.find_window(
        collection,
        dict(query or {}),
        batch_size,
        key_field=key_field,
        projection=_ensure_key_in_projection(projection, key_field),
    )
    if not window:
        return Result.empty(NOTHING_TO_PROCESS)
    return _invoke_handler(handler, window, handler_args)
