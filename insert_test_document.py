"""Insert one test document into the collection watched by check_change_stream.py."""

import sys
import logging
from datetime import datetime, timezone
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from check_change_stream import MONGO_URI, MONGO_DB, MONGO_COLL, MONGO_TIMEOUT_MS

logger = logging.getLogger("ChangeStreamWriter")

TEST_TEXT = "change stream test"


def build_test_document(now=None) -> dict:
    if now is None:
        now = datetime.now(timezone.utc)
    return {"test": TEST_TEXT, "timestamp": now}


def insert_test_document(col, doc=None):
    """Insert `doc` (or a fresh test document) and return its _id."""
    if doc is None:
        doc = build_test_document()
    result = col.insert_one(doc)
    logger.info(f"Inserted {result.inserted_id} into {col.full_name}")
    return result.inserted_id


def main() -> int:
    print(f"Inserting test document into {MONGO_DB}.{MONGO_COLL}")

    client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)
    try:
        inserted_id = insert_test_document(client[MONGO_DB][MONGO_COLL])
    except PyMongoError as e:
        logger.error(f"Insert failed: {e}")
        print(f"❌ Insert failed: {e}")
        return 1
    finally:
        client.close()

    print(f"✅ Inserted: {inserted_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
