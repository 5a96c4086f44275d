"""Persistent key-value storage.

One JSON file per key under ``data_dir``. Values are strings, like the
device storage they stand in for; callers serialize their own JSON.
Errors are raised to the caller, which decides whether they are fatal.
"""

import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Optional


class KeyValueStore:
    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.data_dir / f"{safe}.json"

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)["value"]

    def _write(self, key: str, value: str) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.data_dir, prefix=f"{path.stem}.", suffix=".tmp", delete=False,
        ) as f:
            json.dump({"key": key, "value": value}, f)
        try:
            os.replace(f.name, path)
        except OSError:
            os.unlink(f.name)
            raise

    def _remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def get_item(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
