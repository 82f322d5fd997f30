"""
Tests de los endpoints HTTP.
"""

import pytest

from app import create_app
from memory_store import InMemoryLicenseStore
from rate_limit import limiter


def _create(client, auth_headers, **body):
    payload = {"customerEmail": "a@b.com", "customerName": "A"}
    payload.update(body)
    return client.post("/api/admin/create-license", json=payload, headers=auth_headers)


@pytest.fixture
def license_key(client, auth_headers):
    response = _create(client, auth_headers, maxActivations=1, planType="pro")
    assert response.status_code == 200
    return response.get_json()["license"]["licenseKey"]


class TestAdminAuth:

    @pytest.mark.parametrize("method, path", [
        ("get", "/api/admin/licenses"),
        ("get", "/api/admin/usage-stats"),
        ("post", "/api/admin/create-license"),
        ("post", "/api/admin/deactivate-license"),
    ])
    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer wrong"},
        {"Authorization": "test-admin-token"},
    ])
    def test_rejects_bad_credentials(self, client, method, path, headers):
        response = getattr(client, method)(path, json={}, headers=headers)

        assert response.status_code == 401
        assert response.get_json() == {"error": "Unauthorized"}

    def test_missing_admin_token_refuses_to_start(self):
        with pytest.raises(RuntimeError):
            create_app("testing", overrides={"ADMIN_TOKEN": ""})


class TestCreateLicense:

    def test_success(self, client, auth_headers):
        response = _create(client, auth_headers, planType="pro", durationMonths=1,
                           maxActivations=2, notes="trial")

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["license"]["licenseKey"].startswith("BABYLON-")
        assert body["license"]["maxActivations"] == 2
        assert body["license"]["planType"] == "pro"

    def test_missing_customer(self, client, auth_headers):
        response = client.post("/api/admin/create-license", json={"customerEmail": "a@b.com"},
                               headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_invalid_max_activations(self, client, auth_headers):
        response = _create(client, auth_headers, maxActivations=0)

        assert response.status_code == 400

    @pytest.mark.parametrize("body", [
        {"durationMonths": 10**6},
        {"maxActivations": 10**20},
        {"customerEmail": "a" * 300 + "@b.com"},
    ])
    def test_out_of_range_input_is_400(self, client, auth_headers, body):
        response = _create(client, auth_headers, **body)

        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"
        assert client.get("/api/admin/licenses", headers=auth_headers).get_json() == []

    def test_listing(self, client, auth_headers, license_key):
        response = client.get("/api/admin/licenses", headers=auth_headers)

        lics = response.get_json()
        assert response.status_code == 200
        assert [lic["licenseKey"] for lic in lics] == [license_key]
        assert lics[0]["isActive"] is True
        assert lics[0]["deviceActivations"] == []


class TestDeviceEndpoints:

    def test_activation_flow(self, client, license_key):
        first = client.post("/api/activate-license", json={
            "license_key": license_key.lower(),
            "device_id": "D1",
            "device_fingerprint": {"os": "linux"},
        })
        assert first.status_code == 200
        assert first.get_json()["valid"] is True
        assert first.get_json()["activations_used"] == 1

        second = client.post("/api/activate-license", json={"license_key": license_key, "device_id": "D2"})
        assert second.get_json()["valid"] is False
        assert second.get_json()["reason"] == "limit_reached"

        again = client.post("/api/activate-license", json={"license_key": license_key, "device_id": "D1"})
        assert again.get_json()["already_activated"] is True
        assert again.get_json()["activations_used"] == 1

        validated = client.post("/api/validate-license", json={"license_key": license_key, "device_id": "D1"})
        assert validated.status_code == 200
        assert validated.get_json()["valid"] is True
        assert validated.get_json()["plan_type"] == "pro"

    def test_validate_unknown_key(self, client):
        response = client.post("/api/validate-license",
                               json={"license_key": "BABYLON-0000-0000-0000", "device_id": "D1"})

        assert response.status_code == 200
        assert response.get_json() == {
            "valid": False,
            "message": "License not found or inactive",
            "reason": "not_found_or_inactive",
        }

    def test_over_long_device_id(self, client, license_key):
        response = client.post("/api/activate-license",
                               json={"license_key": license_key, "device_id": "D" * 300})

        assert response.status_code == 200
        assert response.get_json()["reason"] == "invalid_request"

    def test_malformed_body(self, client):
        response = client.post("/api/validate-license", data="not json",
                               content_type="application/json")

        assert response.status_code == 200
        assert response.get_json()["reason"] == "invalid_request"

    def test_deactivation(self, client, auth_headers, license_key):
        client.post("/api/activate-license", json={"license_key": license_key, "device_id": "D1"})

        response = client.post("/api/admin/deactivate-license", json={"licenseKey": license_key},
                               headers=auth_headers)
        assert response.get_json() == {"success": True, "message": "License deactivated"}

        validated = client.post("/api/validate-license", json={"license_key": license_key, "device_id": "D1"})
        assert validated.get_json()["reason"] == "not_found_or_inactive"

    def test_deactivate_unknown(self, client, auth_headers):
        response = client.post("/api/admin/deactivate-license",
                               json={"licenseKey": "BABYLON-0000-0000-0000"}, headers=auth_headers)

        assert response.status_code == 404

    def test_transient_store_error_is_503(self, license_key):
        store = InMemoryLicenseStore(timeout=0.01)
        app = create_app("testing", store=store)
        client = app.test_client()

        store._lock.acquire()
        try:
            response = client.post("/api/validate-license",
                                   json={"license_key": license_key, "device_id": "D1"})
            health = client.get("/api/health")
        finally:
            store._lock.release()

        assert response.status_code == 503
        assert response.get_json()["reason"] == "transient_error"
        assert health.status_code == 503
        assert health.get_json()["status"] == "ERROR"


class TestUsage:

    def test_record_and_report(self, client, auth_headers):
        response = client.post("/api/record-usage", json={
            "license_key": "ANY-KEY",
            "device_id": "D1",
            "action": "launch",
            "metadata": {"version": "2.0"},
        }, headers={"User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:120.0) Gecko/20100101 Firefox/120.0"})
        assert response.get_json() == {"success": True}

        stats = client.get("/api/admin/usage-stats", headers=auth_headers).get_json()
        assert len(stats) == 1
        assert stats[0]["licenseKey"] == "ANY-KEY"
        assert stats[0]["totalActions"] == 1
        assert stats[0]["uniqueDevices"] == ["D1"]
        assert stats[0]["licenseInfo"] is None

    def test_bad_metadata_is_soft_failure(self, client):
        response = client.post("/api/record-usage", json={
            "license_key": "ANY-KEY", "device_id": "D1", "action": "launch", "metadata": "oops",
        })

        assert response.status_code == 200
        assert response.get_json() == {"success": False}


def test_health(client, license_key):
    body = client.get("/api/health").get_json()

    assert body["status"] == "OK"
    assert body["database"] == "connected"
    assert body["total_licenses"] == 1
    assert body["active_licenses"] == 1
    assert body["service"] == "License Server"


def test_health_with_sqlalchemy(tmp_path):
    app = create_app("testing", overrides={
        "STORE_BACKEND": "sqlalchemy",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'api.db'}",
    })
    client = app.test_client()

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json()["total_licenses"] == 0


class TestRateLimits:

    @pytest.fixture
    def limited_client(self):
        app = create_app("testing", overrides={"RATELIMIT_ENABLED": True})
        limiter.reset()
        return app.test_client()

    def _activate(self, client, ip):
        return client.post("/api/activate-license",
                           json={"license_key": "BABYLON-0000-0000-0000", "device_id": "D1"},
                           headers={"X-Real-IP": ip})

    def test_sixth_activation_from_same_ip_is_rejected(self, limited_client):
        for _ in range(5):
            assert self._activate(limited_client, "203.0.113.7").status_code == 200

        blocked = self._activate(limited_client, "203.0.113.7")

        assert blocked.status_code == 429
        assert blocked.get_json() == {"error": "Too many requests, please try again later."}
        assert self._activate(limited_client, "203.0.113.8").status_code == 200

    def test_validation_is_not_limited_like_activation(self, limited_client):
        for _ in range(10):
            response = limited_client.post("/api/validate-license",
                                           json={"license_key": "BABYLON-0000-0000-0000",
                                                 "device_id": "D1"},
                                           headers={"X-Real-IP": "203.0.113.9"})
            assert response.status_code == 200


def test_cors_headers(client):
    response = client.get("/api/health", headers={"Origin": "https://app.example.com"})

    assert response.headers["Access-Control-Allow-Origin"] == "*"
