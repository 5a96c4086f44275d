# modules/__init__.py
from .api_client import ApiError, PatientApiClient
from .storage import KeyValueStore
from .intake_cache import LocalIntakeCache
from .notifications import NotificationHistory, NotificationRouter, batch_from_received, batch_from_response
