"""Bootstrap the donations collection: indexes plus sample data. Run: python backend/init_db.py"""
import logging
import sys
from typing import Any, Dict, List

from config import Settings, get_settings
from database import MongoDonationStore
from errors import StoreError
from observability import setup_logging
from queries import AllOf
from records import normalize_donation

logger = logging.getLogger(__name__)

SAMPLE_DONATIONS: List[Dict[str, Any]] = [
    {
        "name": "王大明",
        "project": "供灯祈福(总功德主)",
        "method": "1.供灯祈福共修 (七天)\n2.附 福慧灯 三盏\n3.附 常年光明灯 三盏",
        "amountTWD": 300000,
        "amountRMB": 71428.57,
        "content": "祈求合家平安，事业顺利",
        "payment": "已缴费",
        "contact": "0912345678",
        "deviceId": "device_001",
        "localId": "local_001",
        "submittedAt": "2024-01-15",
    },
    {
        "name": "李小花",
        "project": "供灯祈福(个人福慧功德主)",
        "method": "1.供灯祈福共修 (七天)\n2.附 常年光明灯 一盏",
        "amountTWD": 6000,
        "amountRMB": 1428.57,
        "content": "祈求身体健康",
        "payment": "未缴费",
        "contact": "0923456789",
        "deviceId": "device_002",
        "localId": "local_002",
        "submittedAt": "2024-01-14",
    },
    {
        "name": "陈建国",
        "project": "常年光明灯（阖家光明灯功德主）",
        "method": "佛龕供灯一年",
        "amountTWD": 1000,
        "amountRMB": 238.10,
        "content": "阖家平安",
        "payment": "已缴费",
        "contact": "0934567890",
        "deviceId": "device_003",
        "localId": "local_003",
        "submittedAt": "2024-01-13",
    },
    {
        "name": "林美惠",
        "project": "新春祈福单(随喜功德主)",
        "method": "祈福共修 (三天)",
        "amountTWD": 0,
        "amountRMB": 0,
        "content": "随喜功德",
        "payment": "随喜",
        "contact": "0945678901",
        "deviceId": "device_004",
        "localId": "local_004",
        "submittedAt": "2024-01-12",
    },
]


def init(settings: Settings, store: MongoDonationStore) -> Dict[str, Any]:
    health = store.check_health()
    if not health.ok:
        raise StoreError(health.message, "ping")
    print(f"Connected to {settings.database_name}.{settings.collection_name}")

    created = store.ensure_indexes()
    print(f"Indexes ready: {', '.join(created)}")

    count = store.count(AllOf([]))
    if count == 0:
        docs = [normalize_donation(d).model_dump() for d in SAMPLE_DONATIONS]
        ids = store.insert_many(docs)
        print(f"Inserted {len(ids)} sample donations")
    else:
        print(f"Collection already holds {count} records, skipping sample data")

    return store.stats()


def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level, "text")
    store = MongoDonationStore(settings)
    try:
        stats = init(settings, store)
    except StoreError as e:
        logger.error("Database bootstrap failed: %s", e.message)
        return 1
    finally:
        store.close()

    print(f"Total records: {stats['totalRecords']}")
    print(f"Total TWD: {stats['totalAmountTWD']:,}")
    print(f"Total RMB: {stats['totalAmountRMB']:.2f}")
    print(f"Projects: {len(stats['projects'])}")
    print("Payment status: " + ", ".join(f"{k}: {v}" for k, v in stats["payments"].items()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
