"""Per-screen inspection workflow: position, evidence, decision, guarded submit.

The workflow owns no decision logic of its own. It keeps the inputs current,
throws away derived state whenever an input it depends on changes, and asks
the submission guard afresh every time a decision is needed.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Tuple

from apar_admission import submission_lock
from apar_admission.capture import CaptureCountdown, Snapshot
from apar_admission.config import Settings, settings as default_settings
from apar_admission.domain import (
    Asset,
    DamageRecord,
    EvidenceSet,
    GeoCheckResult,
    GeofenceConfig,
    LocationReading,
    LocationState,
    SubmissionDecision,
)
from apar_admission.errors import GeofenceRejected, LocationStale, LocationUnavailable, SubmissionDenied
from apar_admission.geofence import check, geofence_for_asset
from apar_admission.inspection_client import InspectionClient
from apar_admission.positioning import PositionTracker
from apar_admission.submission_guard import evaluate, requirements_for
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="workflow")


class InspectionWorkflow:
    """State holder for one inspection of one asset by one technician."""

    def __init__(
        self,
        asset: Asset,
        tracker: PositionTracker,
        *,
        client: InspectionClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.tracker = tracker
        self.client = client or InspectionClient()
        self.location_state = LocationState.UNAVAILABLE
        self.location_error: str | None = None
        self.reading: Optional[LocationReading] = None
        self.geo_result: Optional[GeoCheckResult] = None
        self._bind_asset(asset)

    def _bind_asset(self, asset: Asset) -> None:
        """Point at `asset` and drop everything gathered for the previous one."""
        self.asset = asset
        self.geofence: Optional[GeofenceConfig] = geofence_for_asset(
            asset, self.settings.default_valid_radius_meters
        )
        self.geo_result = None
        self.evidence: EvidenceSet = requirements_for(self.settings)
        self._photo: bytes | None = None
        self._selfie: bytes | None = None
        self._damage_photos: List[bytes | None] = []

    @property
    def geofence_required(self) -> bool:
        return self.geofence is not None

    @property
    def submission_key(self) -> str:
        return f"inspection:asset:{self.asset.id}"

    def _expire_stale_reading(self) -> bool:
        """Drop the reading once it ages past the policy; True if it was dropped."""
        if self.reading is None or self.tracker.freshness(self.reading) == LocationState.FRESH:
            return False
        logger.info("Location reading for asset %s went stale; re-acquire required", self.asset.id)
        self.reading = None
        self.geo_result = None
        self.tracker.invalidate()
        self.location_state = LocationState.STALE
        self.location_error = "Location reading is stale; acquire a new position."
        return True

    def _recheck(self) -> None:
        """Recompute the geofence result from the current reading, if any."""
        if self.geofence is not None and self.reading is not None and self.location_state == LocationState.FRESH:
            self.geo_result = check(self.reading.coordinate, self.geofence)
        else:
            self.geo_result = None

    async def refresh_location(self) -> LocationState:
        """Acquire (or reuse) a reading and re-run the geofence check."""
        self.geo_result = None
        try:
            self.reading = await self.tracker.current()
        except LocationUnavailable as exc:
            self.reading = None
            self.location_state = LocationState.UNAVAILABLE
            self.location_error = str(exc)
            logger.info("Location unavailable for asset %s: %s", self.asset.id, exc)
            return self.location_state
        except LocationStale as exc:
            self.reading = None
            self.tracker.invalidate()
            self.location_state = LocationState.STALE
            self.location_error = str(exc)
            return self.location_state

        self.location_state = LocationState.FRESH
        self.location_error = None
        self._recheck()
        return self.location_state

    def swap_asset(self, asset: Asset) -> None:
        """Point the workflow at another asset (e.g. a second QR scan).

        Photos, selfie and damage records belong to the previous asset and are
        discarded; the location reading is kept while it is fresh.
        """
        logger.debug("Swapping asset %s -> %s", self.asset.id, asset.id)
        self._bind_asset(asset)
        if self.tracker.state() != LocationState.FRESH:
            self.location_state = self.tracker.state()
            self.reading = None
        self._recheck()

    def attach_photo(self, content: bytes) -> None:
        self._photo = content
        self.evidence = self.evidence.model_copy(update={"photo_present": True})

    def attach_selfie(self, content: bytes) -> None:
        self._selfie = content
        self.evidence = self.evidence.model_copy(update={"selfie_present": True})

    def detach_photo(self) -> None:
        """Discard the photo so it can be retaken."""
        self._photo = None
        self.evidence = self.evidence.model_copy(update={"photo_present": False})

    def detach_selfie(self) -> None:
        """Discard the selfie so it can be retaken."""
        self._selfie = None
        self.evidence = self.evidence.model_copy(update={"selfie_present": False})

    def add_damage(self, record: DamageRecord, photo: bytes | None = None) -> None:
        if photo is not None:
            record = record.model_copy(update={"photo_present": True})
        self._damage_photos.append(photo)
        self.evidence = self.evidence.model_copy(
            update={"damage_records": [*self.evidence.damage_records, record]}
        )

    async def capture(self, snapshot: Snapshot, *, selfie: bool = False,
                      countdown: CaptureCountdown | None = None) -> bytes:
        """Run the countdown, take the snapshot and attach it as evidence."""
        countdown = countdown or CaptureCountdown.from_settings(self.settings)
        content = await countdown.run(snapshot)
        if selfie:
            self.attach_selfie(content)
        else:
            self.attach_photo(content)
        return content

    def decision(self) -> SubmissionDecision:
        """Evaluate the guard against the current inputs; never cached.

        A reading that has aged past the policy since it was checked no longer
        validates the location.
        """
        self._expire_stale_reading()
        return evaluate(self.evidence, self.geofence_required, self.geo_result)

    def _files(self) -> dict[str, Tuple[str, bytes, str]]:
        files: dict[str, Tuple[str, bytes, str]] = {}
        if self._photo is not None:
            files["photo"] = ("photo.jpg", self._photo, "image/jpeg")
        if self._selfie is not None:
            files["selfie"] = ("selfie.jpg", self._selfie, "image/jpeg")
        for index, photo in enumerate(self._damage_photos):
            if photo is not None:
                files[f"damage_categories[{index}][damage_photo]"] = (f"damage_{index}.jpg", photo, "image/jpeg")
        return files

    async def submit(self, *, condition: str | None = None, notes: str | None = None) -> dict[str, Any]:
        """Submit the inspection if the guard admits it.

        Raises SubmissionDenied (not yet eligible), DuplicateSubmission (one
        already in flight), GeofenceRejected (the backend's check failed; local
        geofence state is replaced by the backend's) or
        SubmissionTransportError (the attempt itself failed). A reading that
        went stale is re-acquired before the guard runs.
        """
        if self._expire_stale_reading():
            await self.refresh_location()
        decision = self.decision()
        if not decision.allowed:
            raise SubmissionDenied(decision)

        with submission_lock.in_flight(self.submission_key):
            location = self.reading.coordinate if self.reading is not None else None
            try:
                return await asyncio.to_thread(
                    self.client.submit_inspection,
                    self.asset.id,
                    self._files(),
                    condition=condition,
                    notes=notes,
                    location=location,
                    damages=list(self.evidence.damage_records),
                    previous=self.geo_result,
                )
            except GeofenceRejected as exc:
                self.geo_result = exc.geo_result
                self.location_error = str(exc)
                raise
