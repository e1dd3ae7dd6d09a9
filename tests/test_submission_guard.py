import unittest

from apar_admission.config import Settings
from apar_admission.domain import DenialReason, EvidenceSet, GeoCheckResult
from apar_admission.submission_guard import evaluate, requirements_for

INSIDE = GeoCheckResult(distance_meters=12, bearing_degrees=40, is_within_radius=True)
OUTSIDE = GeoCheckResult(distance_meters=88, bearing_degrees=40, is_within_radius=False)


def evidence(photo=True, selfie=True):
    return EvidenceSet(photo_required=True, photo_present=photo, selfie_required=True, selfie_present=selfie)


class TestEvaluate(unittest.TestCase):
    def test_everything_present_is_allowed(self):
        decision = evaluate(evidence(), True, INSIDE)
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.reasons, [])

    def test_reasons_are_independent_and_ordered(self):
        decision = evaluate(evidence(photo=False, selfie=False), True, None)
        self.assertFalse(decision.allowed)
        self.assertEqual(
            decision.reasons,
            [DenialReason.MISSING_PHOTO, DenialReason.MISSING_SELFIE, DenialReason.LOCATION_NOT_VALIDATED],
        )

    def test_out_of_radius(self):
        decision = evaluate(evidence(), True, OUTSIDE)
        self.assertEqual(decision.reasons, [DenialReason.LOCATION_OUT_OF_RADIUS])

    def test_missing_selfie_only(self):
        decision = evaluate(evidence(selfie=False), True, INSIDE)
        self.assertEqual(decision.reasons, [DenialReason.MISSING_SELFIE])

    def test_geofence_not_required_ignores_location(self):
        self.assertTrue(evaluate(evidence(), False, None).allowed)
        self.assertTrue(evaluate(evidence(), False, OUTSIDE).allowed)

    def test_empty_evidence_requires_nothing(self):
        self.assertTrue(evaluate(EvidenceSet(), False, None).allowed)

    def test_unrequired_evidence_never_denies(self):
        decision = evaluate(EvidenceSet(photo_required=False, selfie_required=False), True, INSIDE)
        self.assertTrue(decision.allowed)


class TestRequirementsFor(unittest.TestCase):
    def test_defaults_require_photo_and_selfie(self):
        reqs = requirements_for(Settings())
        self.assertTrue(reqs.photo_required)
        self.assertTrue(reqs.selfie_required)
        self.assertFalse(reqs.photo_present)
        self.assertEqual(reqs.damage_records, [])

    def test_selfie_can_be_waived(self):
        reqs = requirements_for(Settings(require_selfie=False))
        self.assertFalse(reqs.selfie_required)
        decision = evaluate(reqs.model_copy(update={"photo_present": True}), False, None)
        self.assertTrue(decision.allowed)


if __name__ == "__main__":
    unittest.main()
