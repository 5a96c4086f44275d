import asyncio
import json
import tempfile
import unittest
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from dose_reminder.core.models import IntakeLogEntry, IntakeStatus
from dose_reminder.modules.intake_cache import LocalIntakeCache
from dose_reminder.modules.storage import KeyValueStore
from fakes import BrokenStore, log_dict


def _entries():
    return [
        IntakeLogEntry.from_dict(log_dict("log1", "Paracetamol")),
        IntakeLogEntry.from_dict(log_dict("log2", "Ibuprofen", status="Taken")),
        IntakeLogEntry.from_dict(log_dict("log3", "Aspirin", status="Missed")),
    ]


class TestLocalIntakeCache(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = KeyValueStore(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    async def test_replace_all_then_get_all(self):
        cache = LocalIntakeCache(self.store)
        entries = _entries()
        await cache.replace_all(list(reversed(entries)))
        got = await cache.get_all()
        self.assertEqual({e.id: e for e in got}, {e.id: e for e in entries})

    async def test_survives_restart(self):
        await LocalIntakeCache(self.store).replace_all(_entries())
        reopened = LocalIntakeCache(KeyValueStore(self._tmp.name))
        got = {e.id: e for e in await reopened.get_all()}
        self.assertEqual(got["log2"].status, IntakeStatus.TAKEN)
        self.assertEqual(got["log3"].missed_at, "2025-04-13T09:00:00.000Z")

    async def test_persisted_shape_is_array_of_entries(self):
        await LocalIntakeCache(self.store).replace_all(_entries())
        raw = json.loads(await self.store.get_item("medicationIntakeLogs"))
        self.assertIsInstance(raw, list)
        self.assertEqual(
            set(raw[0]),
            {"id", "medicationId", "medicationName", "medicationType",
             "scheduledTime", "status", "takenAt", "missedAt"},
        )

    async def test_replace_all_drops_old_entries(self):
        cache = LocalIntakeCache(self.store)
        await cache.replace_all(_entries())
        await cache.replace_all(_entries()[:1])
        self.assertEqual([e.id for e in await cache.get_all()], ["log1"])

    async def test_patch(self):
        cache = LocalIntakeCache(self.store)
        await cache.replace_all(_entries())
        updated = await cache.patch("log1", IntakeStatus.TAKEN, taken_at="2025-04-13T08:02:00.000Z")
        self.assertEqual(updated.status, IntakeStatus.TAKEN)
        self.assertIsNone(updated.missed_at)
        stored = await LocalIntakeCache(KeyValueStore(self._tmp.name)).get("log1")
        self.assertEqual(stored.taken_at, "2025-04-13T08:02:00.000Z")

    async def test_patch_back_to_pending_clears_timestamps(self):
        cache = LocalIntakeCache(self.store)
        await cache.replace_all(_entries())
        updated = await cache.patch("log2", IntakeStatus.PENDING)
        self.assertIsNone(updated.taken_at)
        self.assertIsNone(updated.missed_at)

    async def test_patch_unknown_id_is_noop(self):
        cache = LocalIntakeCache(self.store)
        await cache.replace_all(_entries())
        with self.assertLogs("dose_reminder.cache", level="WARNING"):
            self.assertIsNone(await cache.patch("nope", IntakeStatus.TAKEN, taken_at="x"))
        self.assertEqual(len(await cache.get_all()), 3)

    async def test_corrupt_storage_reads_as_empty(self):
        await self.store.set_item("medicationIntakeLogs", "{not json")
        cache = LocalIntakeCache(self.store)
        self.assertEqual(await cache.get_all(), [])

    async def test_storage_failure_is_not_fatal(self):
        cache = LocalIntakeCache(BrokenStore())
        self.assertEqual(await cache.get_all(), [])
        with self.assertLogs("dose_reminder.cache", level="WARNING"):
            await cache.replace_all(_entries())
        # in-memory state still serves this session
        self.assertEqual(len(await cache.get_all()), 3)

    async def test_concurrent_patches_on_cold_cache(self):
        entries = [IntakeLogEntry.from_dict(log_dict(f"log{i}", "Med")) for i in range(20)]
        await LocalIntakeCache(self.store).replace_all(entries)

        cache = LocalIntakeCache(self.store)
        await asyncio.gather(*(
            cache.patch(e.id, IntakeStatus.TAKEN, taken_at="2025-04-13T08:05:00.000Z") for e in entries
        ))
        self.assertTrue(all(e.status is IntakeStatus.TAKEN for e in await cache.get_all()))

        reloaded = await LocalIntakeCache(self.store).get_all()
        self.assertEqual(len(reloaded), 20)
        self.assertTrue(all(e.taken_at == "2025-04-13T08:05:00.000Z" for e in reloaded))


if __name__ == '__main__':
    unittest.main()
