import unittest

from fastapi.testclient import TestClient

from apar_admission.geofence import from_rejection
from apar_admission.main import app as fastapi_app

NOW = "2024-06-10T10:00:00"
ASSET = {"id": 7, "serial_number": "APAR-007", "latitude": 0.0, "longitude": 0.0, "valid_radius": 30}
FULL_EVIDENCE = {"photo_required": True, "photo_present": True, "selfie_required": True, "selfie_present": True}


def location(lat, lng=0.0, captured_at=NOW):
    return {"coordinate": {"latitude": lat, "longitude": lng}, "captured_at": captured_at}


def schedule(**overrides):
    body = {
        "id": 1,
        "asset_id": 7,
        "assigned_user_id": 3,
        "scheduled_date": "2024-06-10",
        "start_time": "09:00:00",
        "end_time": "11:00:00",
    }
    body.update(overrides)
    return body


class TestApi(unittest.TestCase):
    def setUp(self):
        import apar_admission.api as api_mod
        from apar_admission.config import settings

        self.api_mod = api_mod
        self.settings = settings
        self._orig_api_key = settings.api_key
        self._orig_redis = api_mod._redis_client
        api_mod._redis_client = None
        settings.api_key = None
        self.client = TestClient(fastapi_app)

    def tearDown(self):
        self.settings.api_key = self._orig_api_key
        self.api_mod._redis_client = self._orig_redis

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_geofence_check(self):
        resp = self.client.post("/v1/geofence/check", json={
            "reading": {"latitude": 0.0, "longitude": 0.0008},
            "geofence": {"center": {"latitude": 0.0, "longitude": 0.0}, "radius_meters": 30},
        })
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["distance_meters"], 89.0)
        self.assertFalse(data["is_within_radius"])
        self.assertAlmostEqual(data["bearing_degrees"], 270.0, places=3)

    def test_geofence_check_rejects_bad_radius(self):
        resp = self.client.post("/v1/geofence/check", json={
            "reading": {"latitude": 0.0, "longitude": 0.0},
            "geofence": {"center": {"latitude": 0.0, "longitude": 0.0}, "radius_meters": 0},
        })
        self.assertEqual(resp.status_code, 422)

    def test_presentation_table(self):
        resp = self.client.get("/v1/schedules/presentation")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(set(data), {"inactive", "today_ongoing", "today_not_started", "overdue", "upcoming"})
        self.assertEqual(data["overdue"]["color"], "red")

    def test_classify_orders_schedules(self):
        resp = self.client.post("/v1/schedules/classify", json={
            "now": NOW,
            "schedules": [
                schedule(id="up", scheduled_date="2024-06-11"),
                schedule(id="off", is_active=False),
                schedule(id="now"),
                schedule(id="late", scheduled_date="2024-06-09"),
            ],
        })
        self.assertEqual(resp.status_code, 200)
        rows = resp.json()["schedules"]
        self.assertEqual([r["id"] for r in rows], ["now", "late", "up", "off"])
        self.assertEqual(rows[0]["status"], "today_ongoing")
        self.assertEqual(rows[0]["presentation"]["label"], "Today (ongoing)")
        self.assertEqual(rows[0]["start"], "2024-06-10T09:00:00")

    def test_admission_allowed(self):
        resp = self.client.post("/v1/inspections/admission", json={
            "asset": ASSET,
            "evidence": FULL_EVIDENCE,
            "location": location(-0.0001),
            "schedules": [schedule()],
            "now": NOW,
        })
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["decision"], {"allowed": True, "reasons": []})
        self.assertEqual(data["location_state"], "fresh")
        self.assertTrue(data["geo_check"]["is_within_radius"])

    def test_admission_denied_payload_round_trips(self):
        resp = self.client.post("/v1/inspections/admission", json={
            "asset": ASSET,
            "evidence": {**FULL_EVIDENCE, "photo_present": False},
            "location": location(0.0, 0.0008),
            "now": NOW,
        })
        self.assertEqual(resp.status_code, 422)
        body = resp.json()
        self.assertEqual(body["reasons"], ["missing_photo", "location_out_of_radius"])
        self.assertFalse(body["location_valid"])
        self.assertEqual(body["distance"], 89.0)
        self.assertEqual(body["valid_radius"], 30)
        self.assertIn("89 meters", body["error"])

        rebuilt = from_rejection(body)
        self.assertEqual(rebuilt.distance_meters, 89.0)
        self.assertAlmostEqual(rebuilt.bearing_degrees, 270.0, places=3)

    def test_admission_stale_location_not_validated(self):
        resp = self.client.post("/v1/inspections/admission", json={
            "asset": ASSET,
            "evidence": FULL_EVIDENCE,
            "location": location(0.0, captured_at="2024-06-10T09:50:00"),
            "now": NOW,
        })
        self.assertEqual(resp.status_code, 422)
        body = resp.json()
        self.assertEqual(body["reasons"], ["location_not_validated"])
        self.assertEqual(body["location_state"], "stale")
        self.assertIsNone(body["distance"])
        self.assertIsNone(from_rejection(body))

    def test_admission_mobile_asset_ignores_location(self):
        resp = self.client.post("/v1/inspections/admission", json={
            "asset": {"id": 8, "location_type": "mobile"},
            "evidence": FULL_EVIDENCE,
            "now": NOW,
        })
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["geo_check"])

    def test_admission_outside_schedule_window(self):
        resp = self.client.post("/v1/inspections/admission", json={
            "asset": ASSET,
            "evidence": FULL_EVIDENCE,
            "location": location(0.0),
            "schedules": [schedule(start_time="13:00:00", end_time="14:00:00")],
            "now": NOW,
        })
        self.assertEqual(resp.status_code, 422)
        body = resp.json()
        self.assertEqual(body["valid_window"], "13:00:00 - 14:00:00")
        self.assertEqual(body["current_time"], "10:00:00")

    def test_admission_ignores_missed_and_completed_visits(self):
        resp = self.client.post("/v1/inspections/admission", json={
            "asset": ASSET,
            "evidence": FULL_EVIDENCE,
            "location": location(0.0),
            "schedules": [
                schedule(id=1, scheduled_date="2024-05-01"),
                schedule(id=2, start_time="13:00:00", end_time="14:00:00", is_completed=True),
            ],
            "now": NOW,
        })
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["decision"]["allowed"])

    def test_requires_api_key_when_set(self):
        self.settings.api_key = "sekret"

        missing = self.client.get("/v1/schedules/presentation")
        self.assertEqual(missing.status_code, 401)

        wrong = self.client.get("/v1/schedules/presentation", headers={"X-API-Key": "nope"})
        self.assertEqual(wrong.status_code, 401)

        ok = self.client.get("/v1/schedules/presentation", headers={"X-API-Key": "sekret"})
        self.assertEqual(ok.status_code, 200)

        self.assertEqual(self.client.get("/health").status_code, 200)

    def test_api_key_from_redis_set(self):
        class FakeRedis:
            def sismember(self, name, value):
                return name == "api_keys" and value == "from-redis"

        self.api_mod._redis_client = FakeRedis()
        ok = self.client.get("/v1/schedules/presentation", headers={"X-API-Key": "from-redis"})
        self.assertEqual(ok.status_code, 200)
        bad = self.client.get("/v1/schedules/presentation", headers={"X-API-Key": "other"})
        self.assertEqual(bad.status_code, 401)


if __name__ == "__main__":
    unittest.main()
