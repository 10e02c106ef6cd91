"""
Global fixtures for all unit tests.

Provides an in-memory stand-in for the pymongo client so store handles,
traversals and bulk writes can be exercised without a MongoDB server:
- MongoClient in docbatch.repositories.store_handle is patched for every test
- FakeCollection implements find().sort().limit() with the query operators
  the traversal relies on ($gt, $gte, $lt, $in, $exists, equality)
"""

import copy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest
from pymongo import InsertOne, UpdateMany, UpdateOne
from pymongo.errors import AutoReconnect

from docbatch.repositories.store_handle import StoreHandle


def _matches_condition(value: Any, present: bool, condition: Any) -> bool:
    if isinstance(condition, dict) and any(key.startswith("$") for key in condition):
        for operator, operand in condition.items():
            if operator == "$exists":
                if present != bool(operand):
                    return False
            elif not present:
                return False
            elif operator == "$gt" and not value > operand:
                return False
            elif operator == "$gte" and not value >= operand:
                return False
            elif operator == "$lt" and not value < operand:
                return False
            elif operator == "$in" and value not in operand:
                return False
        return True
    return present and value == condition


def matches(document: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    for field, condition in (query or {}).items():
        if not _matches_condition(document.get(field), field in document, condition):
            return False
    return True


def project(document: Dict[str, Any], projection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not projection:
        return copy.deepcopy(document)
    includes = {name for name, flag in projection.items() if flag}
    excludes = {name for name, flag in projection.items() if not flag}
    others = {name: flag for name, flag in projection.items() if name != "_id"}
    if any(others.values()) or (not others and projection.get("_id")):
        keep = includes | ({"_id"} if "_id" not in excludes else set())
        return {name: copy.deepcopy(value) for name, value in document.items() if name in keep}
    return {name: copy.deepcopy(value) for name, value in document.items() if name not in excludes}


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = documents

    def sort(self, key_or_list, direction=None):
        if isinstance(key_or_list, str):
            keys = [(key_or_list, direction or 1)]
        else:
            keys = list(key_or_list)
        for key, order in reversed(keys):
            self._documents.sort(key=lambda document: document[key], reverse=order < 0)
        return self

    def limit(self, count: int):
        if count:
            self._documents = self._documents[:count]
        return self

    def __iter__(self):
        return iter(self._documents)


class FakeCollection:
    """In-memory collection recording every find and bulk_write call."""

    def __init__(self, name: str, database: "FakeDatabase"):
        self.name = name
        self.database = database
        self.documents: List[Dict[str, Any]] = []
        self.find_calls: List[Dict[str, Any]] = []
        self.bulk_calls: List[Dict[str, Any]] = []
        self.fail_on_find: Optional[int] = None

    def seed(self, documents):
        self.documents.extend(copy.deepcopy(list(documents)))
        self.database.created.add(self.name)

    def find(self, query=None, projection=None):
        self.find_calls.append({"query": copy.deepcopy(query), "projection": projection})
        if self.fail_on_find is not None and len(self.find_calls) == self.fail_on_find:
            raise AutoReconnect("connection reset by peer")
        selected = [project(doc, projection) for doc in self.documents if matches(doc, query)]
        return FakeCursor(selected)

    def find_one(self, filter=None, sort=None):
        cursor = self.find(filter)
        if sort:
            cursor = cursor.sort(sort)
        return next(iter(cursor.limit(1)), None)

    def count_documents(self, query):
        return sum(1 for doc in self.documents if matches(doc, query))

    def insert_many(self, documents):
        self.seed(documents)
        return SimpleNamespace(inserted_ids=[doc.get("_id") for doc in documents])

    def insert_one(self, document):
        self.seed([document])
        return SimpleNamespace(inserted_id=document.get("_id"))

    def bulk_write(self, requests, ordered=True):
        self.bulk_calls.append({"requests": list(requests), "ordered": ordered})
        report = {
            "writeErrors": [],
            "writeConcernErrors": [],
            "nInserted": sum(1 for request in requests if isinstance(request, InsertOne)),
            "nUpserted": 0,
            "nMatched": sum(1 for request in requests if isinstance(request, (UpdateOne, UpdateMany))),
            "nModified": sum(1 for request in requests if isinstance(request, (UpdateOne, UpdateMany))),
            "nRemoved": 0,
            "upserted": [],
        }
        return SimpleNamespace(bulk_api_result=report)

    def find_one_and_replace(self, filter, replacement, upsert=False, return_document=None):
        for position, document in enumerate(self.documents):
            if matches(document, filter):
                self.documents[position] = copy.deepcopy(dict(replacement))
                return copy.deepcopy(self.documents[position])
        return None

    def find_one_and_update(self, filter, update, upsert=False):
        for document in self.documents:
            if matches(document, filter):
                before = copy.deepcopy(document)
                document.update(update.get("$set", {}))
                return before
        if upsert:
            created = dict(filter)
            created.update(update.get("$set", {}))
            self.seed([created])
        return None

    def distinct(self, field, query=None):
        values = []
        for document in self.documents:
            if matches(document, query) and document.get(field) not in values:
                values.append(document.get(field))
        return values

    def drop(self):
        self.documents = []
        self.database.created.discard(self.name)


class FakeDatabase:
    def __init__(self, name: str):
        self.name = name
        self.collections: Dict[str, FakeCollection] = {}
        self.created = set()

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name, self)
        return self.collections[name]

    def list_collection_names(self):
        return sorted(self.created)


class FakeMongoClient:
    """Stands in for pymongo.MongoClient; one database per client."""

    def __init__(self, url=None, **kwargs):
        self.url = url
        self.kwargs = kwargs
        self.closed = False
        self.admin = MagicMock()
        self._databases: Dict[str, FakeDatabase] = {}

    def get_default_database(self, default=None):
        path = (self.url or "").split("://", 1)[-1].split("/", 1)
        name = path[1].split("?", 1)[0] if len(path) > 1 and path[1] else default
        if name not in self._databases:
            self._databases[name] = FakeDatabase(name)
        return self._databases[name]

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def mock_mongo_client():
    """
    Prevent real MongoDB connection attempts in all unit tests.

    MongoClient with an unreachable URL blocks for the whole server
    selection timeout, so every handle gets an in-memory client instead.
    """
    with patch(
        "docbatch.repositories.store_handle.MongoClient", side_effect=FakeMongoClient
    ) as mock_client:
        yield mock_client


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep developer .env settings out of the tests."""
    for name in (
        "MONGO_DB_URL",
        "MONGO_DB_NAME",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS",
        "DOCBATCH_PAGE_SIZE",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store():
    """Initialized store handle backed by the in-memory client."""
    handle = StoreHandle("mongodb://localhost:27017/docbatch_test")
    result = handle.initialize()
    assert result.status is True
    yield handle
    handle.close()


@pytest.fixture
def items(store):
    """Empty 'items' collection; call items.seed([...]) to add documents."""
    return store.db["items"]


def numbered(count: int, start: int = 1) -> List[Dict[str, Any]]:
    """Documents with integer keys start..start+count-1."""
    return [{"_id": key, "name": f"item-{key}"} for key in range(start, start + count)]


@pytest.fixture
def make_documents():
    return numbered
