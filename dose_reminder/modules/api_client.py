"""REST client for the patient backend.

Every public method is a coroutine; the blocking ``requests`` call runs in
a worker thread so the event loop stays responsive.

Response policy:
  - 2xx with a JSON body          -> returned as a dict
  - 4xx with a JSON body          -> returned as a dict (business-rule envelope)
  - 5xx, timeouts, connect errors,
    or a body that is not JSON    -> ApiError
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from ..config import ApiConfig

logger = logging.getLogger("dose_reminder.api")


class ApiError(Exception):
    """Transport failure: the request did not produce a usable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PatientApiClient:
    """Thin async wrapper over the backend routes the scheduling core needs."""

    def __init__(self, config: ApiConfig = None, session: requests.Session = None):
        self.config = config or ApiConfig()
        self._session = session or self._build_session()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        # Keep-alive + connection pooling
        adapter = HTTPAdapter(
            pool_connections=self.config.pool_connections,
            pool_maxsize=self.config.pool_maxsize,
            max_retries=self.config.max_retries,
        )
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers.update({"Content-Type": "application/json"})
        return session

    def set_auth_token(self, token: Optional[str]) -> None:
        self.config.auth_token = token

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, prefix: str, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{prefix}{path}"

    def _request(self, method: str, url: str, payload: Dict = None) -> Dict:
        headers = {}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"

        t0 = time.time()
        try:
            r = self._session.request(
                method, url, json=payload, headers=headers,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise ApiError(f"{method} {url} failed: {e}") from e
        latency = (time.time() - t0) * 1000

        if r.status_code >= 500:
            logger.warning(f"{method} {url} -> HTTP {r.status_code} ({latency:.0f}ms)")
            raise ApiError(f"Server error {r.status_code}", status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise ApiError(
                f"{method} {url} returned a non-JSON body (HTTP {r.status_code})",
                status_code=r.status_code,
            ) from e

        if not isinstance(data, dict):
            raise ApiError(f"{method} {url} returned an unexpected body", status_code=r.status_code)

        logger.debug(f"{method} {url} -> HTTP {r.status_code} ({latency:.0f}ms)")
        return data

    async def _call(self, method: str, url: str, payload: Dict = None) -> Dict:
        return await asyncio.to_thread(self._request, method, url, payload)

    # ------------------------------------------------------------------
    # Medication schedule
    # ------------------------------------------------------------------

    async def get_medication_schedule(self, medication_id: str) -> Dict:
        url = self._url(self.config.patient_prefix, f"/medications/{medication_id}/schedule")
        return await self._call("GET", url)

    async def update_medication_schedule(self, medication_id: str, dose_times: List[str]) -> Dict:
        url = self._url(self.config.patient_prefix, f"/medications/{medication_id}/schedule")
        return await self._call("PATCH", url, {"selectedDoseTimes": list(dose_times)})

    # ------------------------------------------------------------------
    # Intake logs
    # ------------------------------------------------------------------

    async def get_medication_logs(self) -> List[Dict]:
        """Upcoming intake logs (the server returns a 14 day window)."""
        data = await self._call("GET", self._url(self.config.patient_prefix, "/medication-logs"))
        return list(data.get("medicationIntakeLogs") or [])

    async def get_medication_logs_by_id(self, intake_ids: List[str]) -> List[Dict]:
        data = await self._call(
            "POST",
            self._url(self.config.patient_prefix, "/medication-logs"),
            {"intakeIds": list(intake_ids)},
        )
        return list(data.get("medicationIntakeLogs") or [])

    async def mark_medication(
        self,
        entry_id: str,
        status: str,
        taken_at: Optional[str] = None,
        missed_at: Optional[str] = None,
    ) -> Dict:
        payload = {"entryId": entry_id, "status": status, "takenAt": taken_at}
        if missed_at is not None:
            payload["missedAt"] = missed_at
        return await self._call("PATCH", self._url(self.config.patient_prefix, "/mark-medication"), payload)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def snooze_medication_reminder(self, medication_ids: List[str]) -> Dict:
        return await self._call(
            "POST",
            self._url(self.config.notification_prefix, "/snooze-medication-reminder"),
            {"medicationIds": list(medication_ids)},
        )

    async def register_push_token(self, token: str) -> Dict:
        return await self._call(
            "POST",
            self._url(self.config.notification_prefix, "/register-push-token"),
            {"token": token},
        )
