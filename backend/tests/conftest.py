"""Shared fixtures: an in-memory donation store and a router/app wired to it."""
import copy
import os
from typing import Any, Dict, List

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

# Importing main builds the default app; keep it pointed at a local server
os.environ.setdefault("DATABASE_URL", "mongodb://localhost:27017")

from config import Settings
from database import StoreHealth
from errors import StoreError
from main import create_app
from queries import AllOf, AnyOf, DateRange, FieldEquals, Filter, MatchNothing, PageRequest, TextSearch
from router import DonationRouter

ADMIN_PASSWORD = "s3cret"

TEXT_FIELDS = ("name", "project", "content", "contact", "method")


def matches(doc: Dict[str, Any], criteria: Filter) -> bool:
    if isinstance(criteria, TextSearch):
        words = criteria.term.lower().split()
        haystack = " ".join(str(doc.get(f, "")) for f in TEXT_FIELDS).lower()
        return any(w in haystack for w in words)
    if isinstance(criteria, FieldEquals):
        return doc.get(criteria.field) == criteria.value
    if isinstance(criteria, DateRange):
        value = doc.get(criteria.field)
        if value is None:
            return False
        if criteria.start is not None and value < criteria.start:
            return False
        if criteria.end is not None and value > criteria.end:
            return False
        return True
    if isinstance(criteria, MatchNothing):
        return False
    if isinstance(criteria, AnyOf):
        return any(matches(doc, c) for c in criteria.clauses)
    if isinstance(criteria, AllOf):
        return all(matches(doc, c) for c in criteria.clauses)
    raise TypeError(criteria)


class FakeDonationStore:
    """Evaluates the filter tree in memory; enforces sparse-unique localId."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.healthy = True
        self.closed = False

    def find(self, criteria: Filter, page: PageRequest) -> List[Dict[str, Any]]:
        self.calls.append("find")
        found = [d for d in self.docs if matches(d, criteria)]
        found.sort(key=lambda d: d.get(page.sort_field), reverse=page.sort_direction < 0)
        return copy.deepcopy(found[page.skip:page.skip + page.limit])

    def count(self, criteria: Filter) -> int:
        self.calls.append("count")
        return sum(1 for d in self.docs if matches(d, criteria))

    def _insert(self, doc: Dict[str, Any], operation: str) -> str:
        local_id = doc.get("localId")
        if local_id and any(d.get("localId") == local_id for d in self.docs):
            raise StoreError(f"E11000 duplicate key error dup key: {{ localId: \"{local_id}\" }}", operation)
        stored = copy.deepcopy(doc)
        stored["_id"] = ObjectId()
        self.docs.append(stored)
        return str(stored["_id"])

    def insert_one(self, doc: Dict[str, Any]) -> str:
        self.calls.append("insert_one")
        return self._insert(doc, "insert_one")

    def insert_many(self, docs: List[Dict[str, Any]]) -> List[str]:
        self.calls.append("insert_many")
        return [self._insert(d, "insert_many") for d in docs]

    def delete_one(self, criteria: Filter) -> int:
        self.calls.append("delete_one")
        for i, d in enumerate(self.docs):
            if matches(d, criteria):
                del self.docs[i]
                return 1
        return 0

    def check_health(self) -> StoreHealth:
        self.calls.append("check_health")
        if self.healthy:
            return StoreHealth(True, "MongoDB 连接正常")
        return StoreHealth(False, "MongoDB 连接失败: timed out")

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings():
    return Settings(_env_file=None, admin_password=ADMIN_PASSWORD, log_format="text")


@pytest.fixture
def store():
    return FakeDonationStore()


@pytest.fixture
def router(settings, store):
    return DonationRouter(settings, store)


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store)) as c:
        yield c
