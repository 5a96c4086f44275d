"""Entry point: plan the upcoming medication reminders once."""

import asyncio
import logging
import traceback

from .app import ReminderApp
from .modules.api_client import ApiError


async def _run():
    app = ReminderApp()
    try:
        points = await app.scheduler.refresh_once()
        for point in points:
            print(f"{point.fire_at.isoformat()}  {', '.join(point.medication_ids)}")
    finally:
        await app.stop()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        asyncio.run(_run())
    except ApiError as e:
        logging.error(f"Could not reach the backend: {e}")
    except Exception as e:
        print(f"Fatal error: {e}")
        traceback.print_exc()


if __name__ == "__main__":
    main()
