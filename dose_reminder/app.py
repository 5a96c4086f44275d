"""Service wiring for the reminder core.

Every service is built once here and handed to the components that need
it. The UI layer supplies two boundary callables: ``navigate_home`` and
the device ``schedule_reminder`` coroutine.
"""

import logging
from typing import Awaitable, Callable, Optional

from .config import ApiConfig, CacheConfig, ReminderConfig
from .core.planner import FirePoint
from .core.reconciler import ReminderDispatchReconciler
from .core.refresh import RefreshBus
from .core.schedule import DoseScheduleService, ScheduleEditor
from .core.scheduler import ReminderScheduler
from .core.session import ReminderSession
from .core.snooze import SnoozeCoordinator
from .core.transitions import BatchOutcome, IntakeTransitionEngine, TransitionResult
from .modules.api_client import ApiError, PatientApiClient
from .modules.intake_cache import LocalIntakeCache
from .modules.notifications import NotificationHistory, NotificationRouter
from .modules.storage import KeyValueStore

logger = logging.getLogger("dose_reminder.app")


class ReminderApp:
    """Process-wide container for the reminder services."""

    def __init__(
        self,
        api_config: ApiConfig = None,
        cache_config: CacheConfig = None,
        reminder_config: ReminderConfig = None,
        navigate_home: Callable[[], None] = None,
        schedule_reminder: Callable[[FirePoint], Awaitable[Optional[str]]] = None,
        on_sync_error: Callable[[TransitionResult], None] = None,
        api=None,
    ):
        # Configuration
        self.api_config = api_config or ApiConfig()
        self.cache_config = cache_config or CacheConfig()
        self.reminder_config = reminder_config or ReminderConfig()

        # Boundary services
        self.api = api or PatientApiClient(self.api_config)
        self.store = KeyValueStore(self.cache_config.data_dir)
        self.cache = LocalIntakeCache(self.store, self.cache_config.intake_key)
        self.history = NotificationHistory(
            self.store, self.cache_config.history_key, self.cache_config.history_limit,
        )
        self.refresh = RefreshBus()

        # Scheduling core
        self.schedules = DoseScheduleService(self.api)
        self.reconciler = ReminderDispatchReconciler(self.api, self.cache)
        self.engine = IntakeTransitionEngine(
            self.api, self.cache,
            on_sync_error=on_sync_error or self._log_sync_error,
            on_batch_complete=self._on_batch_complete,
        )
        self.snooze = SnoozeCoordinator(self.api, self.reminder_config.snooze_minutes)
        self.session = ReminderSession(
            self.reconciler, self.engine, self.snooze, navigate_home=navigate_home,
        )
        self.router = NotificationRouter(
            self.session, self.history,
            title=self.reminder_config.reminder_title,
            body=self.reminder_config.reminder_body,
        )
        self.scheduler = ReminderScheduler(
            self.api,
            schedule_reminder or self._log_reminder,
            poll_interval=self.reminder_config.refresh_interval,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin periodic reminder planning. Must run inside the event loop."""
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.session.close()
        self.api.close()

    def schedule_editor(self) -> ScheduleEditor:
        return ScheduleEditor(self.schedules)

    async def register_device(self, token: str) -> bool:
        """Send the device push token so the server can deliver reminders."""
        try:
            response = await self.api.register_push_token(token)
        except ApiError as e:
            logger.warning(f"Push token registration failed: {e}")
            return False
        if not response.get("success", True):
            logger.warning(f"Push token rejected: {response.get('message')}")
            return False
        return True

    def on_refresh(self, listener: Callable[[Optional[str]], None]) -> Callable[[], None]:
        """Call ``listener(screen_name)`` whenever intake state changed; returns an unsubscribe."""
        return self.refresh.subscribe(listener)

    # ------------------------------------------------------------------
    # Default hooks
    # ------------------------------------------------------------------

    def _on_batch_complete(self, outcome: BatchOutcome) -> None:
        self.refresh.trigger("Home")

    @staticmethod
    def _log_sync_error(result: TransitionResult) -> None:
        logger.warning(f"Not yet synced: {result.entry_id} ({result.error_message})")

    @staticmethod
    async def _log_reminder(point: FirePoint) -> Optional[str]:
        logger.info(
            f"Reminder for {len(point.medication_ids)} medication(s) at {point.fire_at.isoformat()}"
        )
        return point.slot_id
