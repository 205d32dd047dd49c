from typing import Any, Dict, List, NamedTuple, Optional, Protocol
import logging
from datetime import datetime, timezone

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, TEXT
from pymongo.errors import PyMongoError

from config import Settings
from errors import StoreError
from queries import AllOf, AnyOf, DateRange, FieldEquals, Filter, MatchNothing, PageRequest, TextSearch

logger = logging.getLogger(__name__)

TEXT_SEARCH_FIELDS = ("name", "project", "content", "contact", "method")

# (keys, options) for the bootstrap script
INDEXES = [
    ([("submittedAt", DESCENDING)], {"name": "submittedAt_desc"}),
    ([("name", ASCENDING)], {"name": "name_asc"}),
    ([("project", ASCENDING)], {"name": "project_asc"}),
    ([("payment", ASCENDING)], {"name": "payment_asc"}),
    ([("localId", ASCENDING)], {"name": "localId_unique", "unique": True, "sparse": True}),
    ([("deviceId", ASCENDING)], {"name": "deviceId_index"}),
    ([("batchId", ASCENDING)], {"name": "batchId_index"}),
    ([("contact", ASCENDING)], {"name": "contact_index"}),
    ([("amountTWD", DESCENDING)], {"name": "amountTWD_desc"}),
    ([(f, TEXT) for f in TEXT_SEARCH_FIELDS], {"name": "donation_text"}),
]


class StoreHealth(NamedTuple):
    ok: bool
    message: str


class DonationStore(Protocol):
    def find(self, criteria: Filter, page: PageRequest) -> List[Dict[str, Any]]: ...

    def count(self, criteria: Filter) -> int: ...

    def insert_one(self, doc: Dict[str, Any]) -> str: ...

    def insert_many(self, docs: List[Dict[str, Any]]) -> List[str]: ...

    def delete_one(self, criteria: Filter) -> int: ...

    def check_health(self) -> StoreHealth: ...

    def close(self) -> None: ...


def to_mongo_filter(criteria: Filter) -> Dict[str, Any]:
    if isinstance(criteria, TextSearch):
        return {"$text": {"$search": criteria.term}}
    if isinstance(criteria, FieldEquals):
        return {criteria.field: criteria.value}
    if isinstance(criteria, DateRange):
        bounds: Dict[str, Any] = {}
        if criteria.start is not None:
            bounds["$gte"] = criteria.start
        if criteria.end is not None:
            bounds["$lte"] = criteria.end
        return {criteria.field: bounds}
    if isinstance(criteria, MatchNothing):
        # every document has an _id
        return {"_id": {"$exists": False}}
    if isinstance(criteria, AnyOf):
        return {"$or": [to_mongo_filter(c) for c in criteria.clauses]}
    if isinstance(criteria, AllOf):
        parts = [to_mongo_filter(c) for c in criteria.clauses]
        merged: Dict[str, Any] = {}
        for part in parts:
            if any(key in merged for key in part):
                return {"$and": parts}
            merged.update(part)
        return merged
    raise TypeError(f"Unsupported filter clause: {criteria!r}")


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return value


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready copy: ObjectIds to str, datetimes to ISO-8601 UTC."""
    out: Dict[str, Any] = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            out[key] = str(value)
        else:
            out[key] = _iso(value)
    return out


class MongoDonationStore:
    def __init__(self, settings: Settings, client: Optional[MongoClient] = None):
        self._client = client or MongoClient(
            settings.database_url,
            maxPoolSize=settings.mongo_max_pool_size,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
            tz_aware=True,
        )
        self._db = self._client[settings.database_name]
        self.collection = self._db[settings.collection_name]

    def _fail(self, operation: str, exc: PyMongoError) -> StoreError:
        logger.error("MongoDB %s failed: %s", operation, exc, extra={"operation": operation})
        return StoreError(str(exc), operation)

    def find(self, criteria: Filter, page: PageRequest) -> List[Dict[str, Any]]:
        try:
            cursor = (
                self.collection.find(to_mongo_filter(criteria))
                .sort(page.sort_field, page.sort_direction)
                .skip(page.skip)
                .limit(page.limit)
            )
            return list(cursor)
        except PyMongoError as e:
            raise self._fail("find", e) from e

    def count(self, criteria: Filter) -> int:
        try:
            return self.collection.count_documents(to_mongo_filter(criteria))
        except PyMongoError as e:
            raise self._fail("count", e) from e

    def insert_one(self, doc: Dict[str, Any]) -> str:
        try:
            res = self.collection.insert_one(dict(doc))
        except PyMongoError as e:
            raise self._fail("insert_one", e) from e
        return str(res.inserted_id)

    def insert_many(self, docs: List[Dict[str, Any]]) -> List[str]:
        try:
            res = self.collection.insert_many([dict(d) for d in docs])
        except PyMongoError as e:
            raise self._fail("insert_many", e) from e
        return [str(i) for i in res.inserted_ids]

    def delete_one(self, criteria: Filter) -> int:
        try:
            res = self.collection.delete_one(to_mongo_filter(criteria))
        except PyMongoError as e:
            raise self._fail("delete_one", e) from e
        return res.deleted_count

    def check_health(self) -> StoreHealth:
        try:
            self._client.admin.command("ping")
        except PyMongoError as e:
            logger.warning("MongoDB ping failed: %s", e)
            return StoreHealth(False, f"MongoDB 连接失败: {e}")
        return StoreHealth(True, "MongoDB 连接正常")

    def ensure_indexes(self) -> List[str]:
        created: List[str] = []
        for keys, options in INDEXES:
            try:
                created.append(self.collection.create_index(keys, **options))
            except PyMongoError as e:
                logger.warning("Index %s not created: %s", options["name"], e)
        return created

    def stats(self) -> Dict[str, Any]:
        try:
            totals = list(self.collection.aggregate([
                {"$group": {
                    "_id": None,
                    "totalRecords": {"$sum": 1},
                    "totalAmountTWD": {"$sum": "$amountTWD"},
                    "totalAmountRMB": {"$sum": "$amountRMB"},
                }},
            ]))
            projects = self.collection.distinct("project")
            payments = list(self.collection.aggregate([
                {"$group": {"_id": "$payment", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
            ]))
        except PyMongoError as e:
            raise self._fail("stats", e) from e
        head = totals[0] if totals else {}
        return {
            "totalRecords": head.get("totalRecords", 0),
            "totalAmountTWD": head.get("totalAmountTWD", 0),
            "totalAmountRMB": head.get("totalAmountRMB", 0),
            "projects": projects,
            "payments": {p["_id"]: p["count"] for p in payments},
        }

    def close(self) -> None:
        self._client.close()
