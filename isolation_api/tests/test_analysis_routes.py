"""
Tests for the modal analysis routes and free-tier gating.
"""

import csv
import io
import math

import pytest

from conftest import VALID_FORM, signup
from isolation_api.database import SessionLocal
from isolation_api.models_db import User

UNIT_FREQ = 1.0 / (2 * math.pi)


class TestModalAnalysis:

    def test_unit_system(self, client):
        resp = client.post("/api/modal-analysis", json=VALID_FORM)
        assert resp.status_code == 200, resp.text
        data = resp.json()

        assert len(data["natural_frequencies"]) == 6
        assert data["natural_frequencies"] == pytest.approx([UNIT_FREQ] * 6)
        assert data["mode_descriptions"][0] == "Vertical Translation"
        assert data["modes"][5] == {"index": 6, "description": "Yaw", "frequency_hz": pytest.approx(UNIT_FREQ)}

    def test_numeric_json_accepted(self, client):
        form = {
            "mass": 2,
            "inertia_matrix": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
            "mounting_locations": [{"stiffness_x": 8, "stiffness_y": 8, "stiffness_z": 8}],
        }
        resp = client.post("/api/modal-analysis", json=form)
        assert resp.status_code == 200
        assert resp.json()["natural_frequencies"][0] == pytest.approx(2 * UNIT_FREQ)

    @pytest.mark.parametrize("mass", ["0", "-1", "abc", ""])
    def test_invalid_mass(self, client, mass):
        resp = client.post("/api/modal-analysis", json=dict(VALID_FORM, mass=mass))
        assert resp.status_code == 400
        assert "ass" in resp.json()["detail"]

    def test_empty_mounts(self, client):
        resp = client.post("/api/modal-analysis", json=dict(VALID_FORM, mounting_locations=[]))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid input: mass and mounting locations are required."

    def test_malformed_inertia(self, client):
        resp = client.post("/api/modal-analysis", json=dict(VALID_FORM, inertia_matrix=[["1", "x", ""], ["", "1", ""], ["", "", "1"]]))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid inertia matrix format."

    def test_too_many_mounts(self, client):
        mounts = VALID_FORM["mounting_locations"] * 11
        resp = client.post("/api/modal-analysis", json=dict(VALID_FORM, mounting_locations=mounts))
        assert resp.status_code == 422


class TestFreeTier:

    def test_anonymous_limit(self, client):
        for expected_remaining in (2, 1, 0):
            resp = client.post("/api/modal-analysis", json=VALID_FORM)
            assert resp.status_code == 200
            assert resp.json()["usage"]["remaining"] == expected_remaining

        resp = client.post("/api/modal-analysis", json=VALID_FORM)
        assert resp.status_code == 403
        assert "Free tier limit reached" in resp.json()["detail"]

    def test_invalid_input_not_counted(self, client):
        client.post("/api/modal-analysis", json=dict(VALID_FORM, mass="0"))
        usage = client.get("/api/usage").json()
        assert usage["used"] == 0
        assert usage["remaining"] == 3

    def test_sessions_counted_separately(self, client):
        for _ in range(3):
            client.post("/api/modal-analysis", json=VALID_FORM, headers={"X-Session-Id": "a"})
        assert client.post("/api/modal-analysis", json=VALID_FORM, headers={"X-Session-Id": "a"}).status_code == 403
        assert client.post("/api/modal-analysis", json=VALID_FORM, headers={"X-Session-Id": "b"}).status_code == 200

    def test_account_counter_persisted(self, client, auth_headers):
        client.post("/api/modal-analysis", json=VALID_FORM, headers=auth_headers)
        me = client.get("/api/auth/me", headers=auth_headers).json()
        assert me["calculations_used"] == 1

    def test_subscriber_unlimited(self, client):
        data = signup(client, email="paid@example.com")
        db = SessionLocal()
        try:
            user = db.get(User, data["user"]["id"])
            user.subscription_tier = "essential"
            db.commit()
        finally:
            db.close()

        headers = {"Authorization": f"Bearer {data['token']}"}
        for _ in range(5):
            assert client.post("/api/modal-analysis", json=VALID_FORM, headers=headers).status_code == 200

        usage = client.get("/api/usage", headers=headers).json()
        assert usage["subscribed"] is True
        assert usage["limit"] is None
        assert usage["used"] == 5

    def test_invalid_token_is_anonymous(self, client):
        resp = client.get("/api/usage", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 200
        assert resp.json()["subscribed"] is False


class TestReport:

    def test_csv_report(self, client):
        resp = client.post("/api/modal-analysis/report", json=VALID_FORM)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "modal_analysis.csv" in resp.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(resp.text)))
        assert rows[0] == ["Mode", "Description", "Frequency (Hz)"]
        assert rows[4][1] == "Roll"

    def test_json_report(self, client):
        resp = client.post("/api/modal-analysis/report?format=json", json=VALID_FORM)
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"]["mount_count"] == 1
        assert len(data["modes"]) == 6

    def test_report_counts_usage(self, client):
        client.post("/api/modal-analysis/report", json=VALID_FORM)
        assert client.get("/api/usage").json()["used"] == 1

    def test_report_invalid_input(self, client):
        resp = client.post("/api/modal-analysis/report", json=dict(VALID_FORM, mass="-2"))
        assert resp.status_code == 400


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy", "service": "isolation-api"}
