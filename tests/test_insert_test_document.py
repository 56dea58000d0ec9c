import io
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from pymongo.errors import ServerSelectionTimeoutError

import insert_test_document as writer


class TestInsertTestDocument(unittest.TestCase):

    def test_build_document(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(
            writer.build_test_document(now),
            {"test": "change stream test", "timestamp": now},
        )

    def test_build_document_defaults_to_utc_now(self):
        doc = writer.build_test_document()
        self.assertEqual(doc["timestamp"].tzinfo, timezone.utc)

    def test_insert_returns_id(self):
        col = MagicMock()
        col.insert_one.return_value.inserted_id = "abc123"
        doc = {"test": "x"}

        self.assertEqual(writer.insert_test_document(col, doc), "abc123")
        col.insert_one.assert_called_once_with(doc)

    @patch("sys.stdout", new_callable=io.StringIO)
    def test_main_inserts_into_watched_collection(self, stdout):
        client = MagicMock()
        col = client.__getitem__.return_value.__getitem__.return_value
        col.insert_one.return_value.inserted_id = "abc123"

        with patch.object(writer, "MongoClient", return_value=client):
            self.assertEqual(writer.main(), 0)

        client.__getitem__.assert_called_once_with(writer.MONGO_DB)
        client.__getitem__.return_value.__getitem__.assert_called_once_with(writer.MONGO_COLL)
        inserted = col.insert_one.call_args[0][0]
        self.assertEqual(inserted["test"], "change stream test")
        self.assertIn("Inserted: abc123", stdout.getvalue())
        client.close.assert_called_once()

    @patch("sys.stdout", new_callable=io.StringIO)
    def test_main_reports_failure(self, stdout):
        client = MagicMock()
        col = client.__getitem__.return_value.__getitem__.return_value
        col.insert_one.side_effect = ServerSelectionTimeoutError("connection refused")

        with patch.object(writer, "MongoClient", return_value=client):
            self.assertEqual(writer.main(), 1)

        self.assertIn("Insert failed: connection refused", stdout.getvalue())
        client.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
