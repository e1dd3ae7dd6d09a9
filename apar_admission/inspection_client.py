"""Thin client for the inspection backend's REST API."""

import asyncio
import time
from typing import Any, Iterable, Mapping, Optional, Sequence

import requests

from .bulk import BulkOperationResult, SettledHook, run_bulk
from .config import settings
from .domain import Coordinate, DamageRecord, GeoCheckResult
from .errors import BackendRequestError, GeofenceRejected, SubmissionTransportError
from .geofence import from_rejection
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="inspection_client")


def _json_or_empty(response: requests.Response) -> dict:
    """Decode a JSON object body, tolerating empty or non-JSON replies."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_text(response: requests.Response, fallback: str) -> str:
    payload = _json_or_empty(response)
    return str(payload.get("error") or payload.get("message") or (response.text or "")[:200] or fallback)


class InspectionClient:
    """Minimal client for inspection submit, record delete and reminder dispatch."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize client configuration, defaulting to settings."""
        self.base_url = str(base_url or settings.backend_base_url).rstrip("/")
        self.token = token if token is not None else settings.backend_token
        self.timeout = timeout if timeout is not None else settings.backend_timeout_seconds
        self.max_retries = settings.backend_retries
        self.retry_backoff_sec = settings.backend_retry_backoff_seconds

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, *, retries: int | None = None, **kwargs) -> requests.Response:
        """Send a request, retrying connection-level failures only.

        HTTP error statuses are returned to the caller untouched.
        """
        url = f"{self.base_url}{path}"
        attempts = (self.max_retries if retries is None else retries) + 1
        for attempt in range(attempts):
            try:
                response = requests.request(
                    method, url, headers=self._headers(), timeout=self.timeout, **kwargs
                )
            except requests.exceptions.RequestException as exc:
                logger.warning(
                    "%s %s failed on attempt %d/%d: %s", method, mask_url(url), attempt + 1, attempts, exc
                )
                if attempt + 1 < attempts:
                    time.sleep(self.retry_backoff_sec)
                    continue
                raise BackendRequestError(f"{method} {path} failed: {exc}") from exc
            logger.debug("%s %s -> %s", method, mask_url(url), response.status_code)
            return response
        raise BackendRequestError(f"{method} {path} was not attempted")  # pragma: no cover

    def submit_inspection(
        self,
        asset_id: int | str,
        files: Mapping[str, Any],
        *,
        condition: str | None = None,
        notes: str | None = None,
        location: Optional[Coordinate] = None,
        damages: Sequence[DamageRecord] = (),
        previous: Optional[GeoCheckResult] = None,
    ) -> dict:
        """POST a multipart inspection and return the backend's JSON reply.

        Raises GeofenceRejected when the backend's own geofence check refuses
        the location, and SubmissionTransportError for every other failure.
        Submissions are never retried: the endpoint is not idempotent.
        """
        data: dict[str, Any] = {"apar_id": asset_id}
        if condition is not None:
            data["condition"] = condition
        if notes is not None:
            data["notes"] = notes
        if location is not None:
            data["lat"] = location.latitude
            data["lng"] = location.longitude
        for index, damage in enumerate(damages):
            data[f"damage_categories[{index}][category_id]"] = damage.category_id
            data[f"damage_categories[{index}][severity]"] = damage.severity.value
            data[f"damage_categories[{index}][notes]"] = damage.notes or ""

        try:
            response = self._request("POST", "/api/inspections", retries=0, data=data, files=dict(files))
        except BackendRequestError as exc:
            raise SubmissionTransportError(str(exc)) from exc

        if response.status_code == 422:
            payload = _json_or_empty(response)
            if "distance" in payload or "valid_radius" in payload:
                raise GeofenceRejected(
                    _error_text(response, "Location rejected"),
                    geo_result=from_rejection(payload, previous),
                    valid_radius=payload.get("valid_radius"),
                    payload=payload,
                )
        if not 200 <= response.status_code < 300:
            raise SubmissionTransportError(
                _error_text(response, "Inspection submission failed"),
                status_code=response.status_code,
            )
        logger.info("Inspection for asset %s accepted", asset_id)
        return _json_or_empty(response)

    def delete_record(self, resource: str, record_id: int | str) -> None:
        """DELETE one record, e.g. resource="schedules"."""
        response = self._request("DELETE", f"/api/{resource}/{record_id}")
        if response.status_code == 404:
            raise BackendRequestError(f"{resource} {record_id} not found or already deleted", 404)
        if not 200 <= response.status_code < 300:
            raise BackendRequestError(_error_text(response, f"Failed to delete {resource} {record_id}"),
                                      status_code=response.status_code)

    def notify_schedule(self, schedule_id: int | str) -> None:
        """Ask the backend to send the reminder for one schedule."""
        response = self._request("POST", f"/api/schedules/{schedule_id}/send-reminder")
        if not 200 <= response.status_code < 300:
            raise BackendRequestError(_error_text(response, f"Failed to notify schedule {schedule_id}"),
                                      status_code=response.status_code)


async def delete_many(
    client: InspectionClient,
    resource: str,
    record_ids: Iterable[int | str],
    *,
    on_settled: Optional[SettledHook] = None,
) -> BulkOperationResult:
    """Delete every record concurrently; refresh once via `on_settled`."""
    return await run_bulk(
        record_ids,
        lambda record_id: asyncio.to_thread(client.delete_record, resource, record_id),
        on_settled=on_settled,
    )


async def notify_many(
    client: InspectionClient,
    schedule_ids: Iterable[int | str],
    *,
    on_settled: Optional[SettledHook] = None,
) -> BulkOperationResult:
    """Dispatch a reminder per schedule concurrently; refresh once via `on_settled`."""
    return await run_bulk(
        schedule_ids,
        lambda schedule_id: asyncio.to_thread(client.notify_schedule, schedule_id),
        on_settled=on_settled,
    )
