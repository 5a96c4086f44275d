import asyncio
import unittest
import sys
import os
from datetime import date, datetime, timezone
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from dose_reminder.core.models import IntakeLogEntry, MedicationSchedule
from dose_reminder.core.planner import fire_points_for_schedule, plan_fire_points
from dose_reminder.core.scheduler import ReminderScheduler
from fakes import FakeApi, log_dict

NOW = datetime(2025, 4, 13, 10, 0, tzinfo=timezone.utc)


def _logs():
    return [
        log_dict("past", "Paracetamol", scheduled="2025-04-13T08:00:00.000Z"),
        log_dict("a", "Paracetamol", scheduled="2025-04-13T20:00:00.000Z"),
        log_dict("b", "Ibuprofen", scheduled="2025-04-13T20:00:00.000Z"),
        log_dict("c", "Ibuprofen", scheduled="2025-04-13T12:00:00.000Z"),
        log_dict("taken", "Aspirin", status="Taken", scheduled="2025-04-13T12:00:00.000Z"),
    ]


class TestPlanFirePoints(unittest.TestCase):
    def test_groups_future_pending_by_time(self):
        entries = [IntakeLogEntry.from_dict(l) for l in _logs()]
        points = plan_fire_points(entries, NOW)
        self.assertEqual(
            [(p.fire_at.hour, p.medication_ids) for p in points],
            [(12, ["c"]), (20, ["a", "b"])],
        )

    def test_payload_shape(self):
        entries = [IntakeLogEntry.from_dict(log_dict("c", "X", scheduled="2025-04-13T12:00:00.000Z"))]
        payload = plan_fire_points(entries, NOW)[0].payload("MEDICATION_REMINDER")
        self.assertEqual(payload["medications"], ["c"])
        self.assertEqual(payload["time"], "2025-04-13T12:00:00.000Z")
        self.assertEqual(payload["timeSlotId"], str(int(datetime(2025, 4, 13, 12, tzinfo=timezone.utc).timestamp() * 1000)))

    def test_dose_times_to_fire_points(self):
        schedule = MedicationSchedule("m1", dose_times=["20:00", "8:00"])
        points = fire_points_for_schedule(schedule, date(2025, 4, 13), tzinfo=timezone.utc)
        self.assertEqual([p.fire_at.hour for p in points], [8, 20])
        self.assertEqual(points[0].medication_ids, ["m1"])


class TestReminderScheduler(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.api = FakeApi(_logs())
        self.booked = []

        async def book(point):
            self.booked.append(point)
            return point.slot_id

        self.scheduler = ReminderScheduler(self.api, book, poll_interval=0.01, clock=lambda: NOW)

    async def test_refresh_does_not_double_book(self):
        first = await self.scheduler.refresh_once()
        second = await self.scheduler.refresh_once()
        self.assertEqual(len(first), 2)
        self.assertEqual(second, [])
        self.assertEqual(len(self.booked), 2)

    async def test_new_medication_in_slot_is_booked(self):
        await self.scheduler.refresh_once()
        self.api.logs["d"] = log_dict("d", "Zinc", scheduled="2025-04-13T20:00:00.000Z")
        added = await self.scheduler.refresh_once()
        self.assertEqual([p.medication_ids for p in added], [["a", "b", "d"]])

    async def test_refused_slot_retried_next_time(self):
        async def refuse(point):
            return None

        self.scheduler.schedule_reminder = refuse
        self.assertEqual(await self.scheduler.refresh_once(), [])
        self.scheduler.schedule_reminder = self._book
        self.assertEqual(len(await self.scheduler.refresh_once()), 2)

    async def _book(self, point):
        self.booked.append(point)
        return point.slot_id

    async def test_loop_survives_api_errors(self):
        self.api.fail.add("get_medication_logs")
        self.scheduler.start()
        await asyncio.sleep(0.05)
        await self.scheduler.stop()
        self.assertGreaterEqual(self.api.count("get_medication_logs"), 2)
        self.assertEqual(self.booked, [])

    async def test_loop_survives_malformed_logs(self):
        self.api.logs["bad"] = log_dict("bad", "Aspirin", status="Skipped")
        with self.assertLogs("dose_reminder.scheduler", level="WARNING"):
            self.scheduler.start()
            await asyncio.sleep(0.1)
            self.assertFalse(self.scheduler._task.done())
            await self.scheduler.stop()
        self.assertGreaterEqual(self.api.count("get_medication_logs"), 2)

    async def test_booking_error_skips_only_that_slot(self):
        async def flaky(point):
            if point.medication_ids == ["c"]:
                raise RuntimeError("notification permission denied")
            return await self._book(point)

        self.scheduler.schedule_reminder = flaky
        with self.assertLogs("dose_reminder.scheduler", level="WARNING"):
            added = await self.scheduler.refresh_once()
        self.assertEqual([p.medication_ids for p in added], [["a", "b"]])

        self.scheduler.schedule_reminder = self._book
        added = await self.scheduler.refresh_once()
        self.assertEqual([p.medication_ids for p in added], [["c"]])


if __name__ == '__main__':
    unittest.main()
