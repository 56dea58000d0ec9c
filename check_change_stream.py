"""
Change stream diagnostic for MongoDB.

Checks that the deployment is a replica set, reports the watched collection,
then waits for one change event (or gives up after WATCH_TIMEOUT_SECONDS).

Run with:  python check_change_stream.py
Trigger:   python insert_test_document.py   (in another terminal)
"""

import os
import sys
import time
import logging
from pprint import pprint
from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import PyMongoError

# ======================
# CONFIG & SETUP
# ======================

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "WARNING").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("ChangeStreamCheck")

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB_NAME", "spanlink-demo")
MONGO_COLL = os.getenv("MONGO_COLL_NAME", "aggregated_contexts")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

WATCH_TIMEOUT = int(os.getenv("WATCH_TIMEOUT_SECONDS", "30"))
# Upper bound for a single getMore on the change stream
POLL_MS = 1000

EXIT_OK = 0
EXIT_NO_REPLICA_SET = 1
EXIT_MONGO_ERROR = 2

TIMEOUT_CAUSES = [
    "No documents were inserted during the test period",
    "Change stream is not working (check replica set)",
    "The downstream app might have the same issue",
]

# ======================
# STEPS
# ======================

def check_replica_set(client) -> str:
    """Return the replica set name. Raises PyMongoError when there is none."""
    status = client.admin.command("replSetGetStatus")
    return status.get("set", "")


def print_collection_count(col) -> int:
    count = col.count_documents({})
    print(f"  Document count: {count}")
    return count


def print_latest_document(col):
    # _id is an ObjectId by default, so descending _id is newest first
    latest = col.find_one(sort=[("_id", -1)])
    if latest is not None:
        pprint(latest)
    return latest


def wait_for_change(col, timeout=WATCH_TIMEOUT):
    """
    Watch the collection and return the first change event.

    Returns None if nothing arrives within `timeout` seconds of opening the
    stream. The stream is closed on every path.
    """
    stream = col.watch(max_await_time_ms=POLL_MS)
    logger.info(f"Change stream opened on {col.full_name}")
    deadline = time.monotonic() + timeout
    try:
        while stream.alive:
            change = stream.try_next()
            if change is not None:
                return change
            if time.monotonic() >= deadline:
                break
        return None
    finally:
        stream.close()
        logger.info("Change stream closed")


def print_change(change):
    print("=== CHANGE DETECTED ===")
    print(f"Operation Type: {change.get('operationType')}")
    print("Full Document:")
    pprint(change)
    print("=======================")


def print_timeout(timeout=WATCH_TIMEOUT, elapsed=None):
    if elapsed is not None and elapsed < timeout:
        print(f"Change stream closed after {elapsed:.1f} seconds without any changes.")
    else:
        print(f"Timeout: No changes detected in {timeout} seconds.")
    print("This could mean:")
    for i, cause in enumerate(TIMEOUT_CAUSES, start=1):
        print(f"  {i}. {cause}")


def print_insert_hint():
    print("   Insert a test document in another terminal to test:")
    print("   python insert_test_document.py")
    print("   or, from mongosh:")
    print(f"   db.{MONGO_COLL}.insertOne({{test: 'change stream test', timestamp: new Date()}})")

# ======================
# MAIN
# ======================

def main() -> int:
    print("=== Testing MongoDB Change Stream ===")
    print(f"URI: {MONGO_URI}")
    print(f"DB: {MONGO_DB}")
    print(f"COLL: {MONGO_COLL}")
    print("")

    client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)
    try:
        print("1. Checking replica set status...")
        try:
            set_name = check_replica_set(client)
        except PyMongoError as e:
            logger.error(f"replSetGetStatus failed: {e}")
            print("❌ ERROR: Replica set is NOT initialized!")
            print(f"  Error: {e}")
            print("  Change streams require a replica set. Please initialize it first.")
            return EXIT_NO_REPLICA_SET
        print(f"✅ Replica set is initialized: {set_name}")
        print("")

        col = client[MONGO_DB][MONGO_COLL]
        step = "2"
        try:
            print(f"2. Checking collection '{MONGO_COLL}'...")
            count = print_collection_count(col)
            print("")

            if count > 0:
                step = "3"
                print("3. Latest document:")
                print_latest_document(col)
                print("")

            step = "4"
            print(f"4. Starting change stream listener (will wait {WATCH_TIMEOUT} seconds for changes)...")
            print_insert_hint()
            print("")
            print("Waiting for changes...")
            started = time.monotonic()
            change = wait_for_change(col, WATCH_TIMEOUT)
            elapsed = time.monotonic() - started
        except PyMongoError as e:
            logger.error(f"Step {step} failed: {e}")
            print(f"❌ MongoDB error during step {step}: {e}")
            return EXIT_MONGO_ERROR

        if change is not None:
            print_change(change)
        else:
            print_timeout(WATCH_TIMEOUT, elapsed)
        return EXIT_OK
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
