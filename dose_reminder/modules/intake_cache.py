"""Local shadow copy of medication intake logs.

Mirrors the last known server state under a single storage key so the
reminder screen can render before the network answers. The server is
always the source of truth; every storage failure here is logged and
treated as a miss.
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional

from ..core.models import IntakeLogEntry, IntakeStatus
from .storage import KeyValueStore

logger = logging.getLogger("dose_reminder.cache")


class LocalIntakeCache:
    def __init__(self, store: KeyValueStore, key: str = "medicationIntakeLogs"):
        self.store = store
        self.key = key
        self._entries: Optional[Dict[str, IntakeLogEntry]] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def lock(self) -> asyncio.Lock:
        # created on first use so it binds to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _load(self) -> Dict[str, IntakeLogEntry]:
        if self._entries is not None:
            return self._entries
        async with self.lock:
            if self._entries is None:
                self._entries = await self._read_entries()
        return self._entries

    async def _read_entries(self) -> Dict[str, IntakeLogEntry]:
        entries: Dict[str, IntakeLogEntry] = {}
        try:
            raw = await self.store.get_item(self.key)
            if raw:
                for item in json.loads(raw):
                    entry = IntakeLogEntry.from_dict(item)
                    entries[entry.id] = entry
        except Exception as e:
            logger.warning(f"Intake cache read failed, starting empty: {e}")
            entries = {}
        return entries

    async def _persist(self) -> None:
        """Write the current snapshot. Writes are serialized, so the last one
        to run always carries every patch applied before it."""
        async with self.lock:
            payload = json.dumps([e.to_dict() for e in self._entries.values()])
            try:
                await self.store.set_item(self.key, payload)
            except Exception as e:
                logger.warning(f"Intake cache write failed, keeping in-memory state: {e}")

    async def get_all(self) -> List[IntakeLogEntry]:
        return list((await self._load()).values())

    async def get(self, entry_id: str) -> Optional[IntakeLogEntry]:
        return (await self._load()).get(entry_id)

    async def replace_all(self, entries: List[IntakeLogEntry]) -> None:
        """Overwrite the whole shadow copy. Last writer wins."""
        await self._load()
        self._entries = {e.id: e for e in entries}
        await self._persist()

    async def patch(
        self,
        entry_id: str,
        status: IntakeStatus,
        taken_at: Optional[str] = None,
        missed_at: Optional[str] = None,
    ) -> Optional[IntakeLogEntry]:
        entries = await self._load()
        current = entries.get(entry_id)
        if current is None:
            logger.warning(f"Intake cache patch skipped, unknown entry {entry_id}")
            return None

        timestamp = taken_at if status is IntakeStatus.TAKEN else missed_at
        updated = current.with_status(status, timestamp)
        entries[entry_id] = updated
        await self._persist()
        return updated
