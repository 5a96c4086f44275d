import tempfile
import unittest
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from dose_reminder.app import ReminderApp
from dose_reminder.config import CacheConfig
from dose_reminder.core.models import ReminderBatch
from dose_reminder.modules.notifications import (
    NotificationHistory, batch_from_received, batch_from_response,
)
from dose_reminder.modules.storage import KeyValueStore
from fakes import BrokenStore, FakeApi, log_dict

DATA = {
    "type": "MEDICATION_REMINDER",
    "timeSlotId": "1744531200000",
    "medications": ["log1", "log2", "log1"],
    "time": "2025-04-13T08:00:00.000Z",
}


class TestAdapters(unittest.TestCase):
    def test_foreground_and_tap_give_same_batch(self):
        received = {"request": {"content": {"data": DATA}}}
        response = {"notification": received}
        self.assertEqual(batch_from_received(received), batch_from_response(response))
        self.assertEqual(
            batch_from_received(received),
            ReminderBatch(["log1", "log2"], "2025-04-13T08:00:00.000Z"),
        )

    def test_flat_data_shape(self):
        batch = batch_from_received({"data": dict(DATA, medications=None, medicationIds=["x"])})
        self.assertEqual(batch.medication_ids, ["x"])

    def test_other_notifications_ignored(self):
        self.assertIsNone(batch_from_received({"data": {"type": "LOW_STOCK"}}))
        self.assertIsNone(batch_from_response({}))
        self.assertIsNone(batch_from_received({"data": dict(DATA, medications=[])}))


class TestNotificationHistory(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.history = NotificationHistory(KeyValueStore(self._tmp.name), limit=2)

    def tearDown(self):
        self._tmp.cleanup()

    async def test_newest_first_and_limited(self):
        await self.history.store.set_item("notificationsHistory", (
            '[{"id": "old", "timestamp": "2025-04-10T08:00:00"},'
            ' {"id": "newer", "timestamp": "2025-04-12T08:00:00"}]'
        ))
        await self.history.record("MEDICATION REMINDER", "Time to take your medications.")
        items = await self.history.load()
        self.assertEqual(len(items), 2)
        self.assertEqual(items[0]["title"], "MEDICATION REMINDER")
        self.assertEqual(items[1]["id"], "newer")

    async def test_clear(self):
        await self.history.record("t", "m")
        await self.history.clear()
        self.assertEqual(await self.history.load(), [])

    async def test_broken_storage(self):
        history = NotificationHistory(BrokenStore())
        self.assertEqual(await history.load(), [])
        entry = await history.record("t", "m")
        self.assertFalse(entry["read"])


class TestNotificationRouter(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.api = FakeApi([log_dict("log1", "Paracetamol"), log_dict("log2", "Ibuprofen")])
        self.app = ReminderApp(cache_config=CacheConfig(data_dir=self._tmp.name), api=self.api)

    def tearDown(self):
        self._tmp.cleanup()

    async def test_both_paths_reach_session(self):
        entries = await self.app.router.handle_received({"request": {"content": {"data": DATA}}})
        self.assertEqual([e.id for e in entries], ["log2", "log1"])
        entries = await self.app.router.handle_response({"notification": {"data": DATA}})
        self.assertEqual([e.id for e in entries], ["log2", "log1"])
        self.assertEqual(self.api.count("get_medication_logs_by_id"), 2)
        self.assertEqual(len(await self.app.history.load()), 2)

    async def test_non_reminder_ignored(self):
        self.assertIsNone(await self.app.router.handle_received({"data": {"type": "APPOINTMENT"}}))
        self.assertEqual(self.api.calls, [])


if __name__ == '__main__':
    unittest.main()
