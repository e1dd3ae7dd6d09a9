"""Admission decision for inspection submissions.

The guard is pure and cheap: callers re-run it on every relevant change (new
photo, new location reading, asset swapped) instead of holding on to an old
decision.
"""

from __future__ import annotations

from typing import List, Optional

from apar_admission.config import Settings
from apar_admission.domain import DenialReason, EvidenceSet, GeoCheckResult, SubmissionDecision


def evaluate(
    evidence: EvidenceSet,
    geofence_required: bool,
    geo_result: Optional[GeoCheckResult],
) -> SubmissionDecision:
    """Return the admit/deny decision; every rule is checked independently."""
    reasons: List[DenialReason] = []

    if evidence.photo_required and not evidence.photo_present:
        reasons.append(DenialReason.MISSING_PHOTO)
    if evidence.selfie_required and not evidence.selfie_present:
        reasons.append(DenialReason.MISSING_SELFIE)
    if geofence_required:
        if geo_result is None:
            reasons.append(DenialReason.LOCATION_NOT_VALIDATED)
        elif not geo_result.is_within_radius:
            reasons.append(DenialReason.LOCATION_OUT_OF_RADIUS)

    return SubmissionDecision(allowed=not reasons, reasons=reasons)


def requirements_for(settings: Settings) -> EvidenceSet:
    """An empty evidence set carrying the configured photo/selfie requirements."""
    return EvidenceSet(
        photo_required=settings.require_photo,
        selfie_required=settings.require_selfie,
    )
