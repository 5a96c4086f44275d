"""Device notification boundary.

The device layer delivers a reminder two ways: while the app is in the
foreground (listener callback) or when the user taps it (response
callback). Both are reduced to a ``ReminderBatch`` here and fed into the
same session entry point.
"""

import json
import logging
import time
import uuid
from typing import Dict, List, Optional

from ..config import MEDICATION_REMINDER_TYPE
from ..core.models import ReminderBatch, parse_timestamp
from .storage import KeyValueStore

logger = logging.getLogger("dose_reminder.notifications")


def _payload_data(notification: Dict) -> Dict:
    if not isinstance(notification, dict):
        return {}
    if isinstance(notification.get("data"), dict):
        return notification["data"]
    content = (notification.get("request") or {}).get("content") or {}
    return content.get("data") or {}


def _to_batch(data: Dict) -> Optional[ReminderBatch]:
    if data.get("type") != MEDICATION_REMINDER_TYPE:
        return None
    batch = ReminderBatch.from_payload(data)
    return batch if batch.medication_ids else None


def batch_from_received(notification: Dict) -> Optional[ReminderBatch]:
    """Foreground delivery."""
    return _to_batch(_payload_data(notification))


def batch_from_response(response: Dict) -> Optional[ReminderBatch]:
    """User tapped the notification."""
    return _to_batch(_payload_data((response or {}).get("notification") or {}))


class NotificationHistory:
    """Persisted list of reminders the user has been shown, newest first."""

    def __init__(self, store: KeyValueStore, key: str = "notificationsHistory", limit: int = 100):
        self.store = store
        self.key = key
        self.limit = limit

    async def load(self) -> List[Dict]:
        try:
            raw = await self.store.get_item(self.key)
            items = json.loads(raw) if raw else []
        except Exception as e:
            logger.warning(f"Error loading notifications: {e}")
            return []
        return sorted(items, key=self._sort_key, reverse=True)

    @staticmethod
    def _sort_key(item: Dict) -> float:
        try:
            value = parse_timestamp(item.get("date") or item.get("timestamp"))
        except ValueError:
            return 0.0
        return value.timestamp() if value else 0.0

    async def record(self, title: str, message: str, kind: str = "reminder", data: Dict = None) -> Dict:
        entry = {
            "id": f"notif-{uuid.uuid4().hex[:8]}",
            "title": title,
            "message": message,
            "type": kind,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
            "read": False,
            "data": data or {},
        }
        items = ([entry] + await self.load())[: self.limit]
        try:
            await self.store.set_item(self.key, json.dumps(items))
        except Exception as e:
            logger.warning(f"Error saving notification: {e}")
        return entry

    async def clear(self) -> None:
        try:
            await self.store.remove_item(self.key)
        except Exception as e:
            logger.warning(f"Error clearing notifications: {e}")


class NotificationRouter:
    def __init__(self, session, history: NotificationHistory = None,
                 title: str = "MEDICATION REMINDER", body: str = "Time to take your medications."):
        self.session = session
        self.history = history
        self.title = title
        self.body = body

    async def handle_received(self, notification: Dict):
        return await self._dispatch(batch_from_received(notification))

    async def handle_response(self, response: Dict):
        return await self._dispatch(batch_from_response(response))

    async def _dispatch(self, batch: Optional[ReminderBatch]):
        if batch is None:
            logger.debug("Ignoring non-reminder notification")
            return None
        if self.history:
            await self.history.record(
                self.title, self.body,
                data={"medications": batch.medication_ids, "time": batch.fired_at},
            )
        return await self.session.on_reminder_batch(batch)
