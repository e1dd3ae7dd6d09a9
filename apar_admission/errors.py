"""Error taxonomy for admission control and inspection submission.

Everything except SubmissionTransportError is recoverable: the caller
re-prompts for the missing input and re-runs the guard. Bulk item failures are
never raised; they are collected in a BulkOperationResult.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from apar_admission.domain import GeoCheckResult, SubmissionDecision


class AdmissionError(Exception):
    """Base class for admission-control errors."""


class LocationUnavailable(AdmissionError):
    """The positioning source failed, timed out or was denied."""


class LocationStale(AdmissionError):
    """A reading is older than the allowed cache age; re-acquire instead of judging it."""

    def __init__(self, age_seconds: float, max_age_seconds: float) -> None:
        super().__init__(
            f"Location reading is {age_seconds:.1f}s old (max {max_age_seconds:.1f}s); re-acquire position."
        )
        self.age_seconds = age_seconds
        self.max_age_seconds = max_age_seconds


class SubmissionDenied(AdmissionError):
    """The guard has not admitted the submission yet."""

    def __init__(self, decision: SubmissionDecision) -> None:
        reasons = ", ".join(reason.value for reason in decision.reasons)
        super().__init__(f"Submission not allowed: {reasons}")
        self.decision = decision


class DuplicateSubmission(AdmissionError):
    """A submission for the same key is already in flight."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Submission already in progress for {key}")
        self.key = key


class GeofenceRejected(AdmissionError):
    """The backend re-checked the location and refused it (HTTP 422)."""

    def __init__(
        self,
        message: str,
        geo_result: Optional[GeoCheckResult],
        valid_radius: Optional[float] = None,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.geo_result = geo_result
        self.valid_radius = valid_radius
        self.payload = dict(payload or {})


class BackendRequestError(AdmissionError):
    """A call to the inspection backend failed (network error or non-2xx reply)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubmissionTransportError(BackendRequestError):
    """The submission attempt itself failed; terminal for this attempt."""
