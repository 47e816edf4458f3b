"""Integration tests for the HTTP surface."""
import pytest
from datetime import timedelta

from fleetmon.models.base import utcnow

from tests.conftest import AP_HALL, AP_LAB

ADMIN = {"X-User": "root", "X-Role": "admin"}
LAB_USER = {"X-User": "ana", "X-Role": "user", "X-Sector": "LAB-"}
NO_PREFIX_USER = {"X-User": "bob", "X-Role": "user"}


def _checkin(client, serial, name, bssid=AP_LAB, **extra):
    body = {
        "serial_number": serial,
        "device_name": name,
        "mac_address_radio": bssid,
        "ip_address": "10.0.0.15",
        "last_seen": (utcnow() - timedelta(minutes=1)).isoformat(),
    }
    body.update(extra)
    return client.post("/devices/data", json=body)


@pytest.fixture
def fleet(client):
    assert _checkin(client, "SN-1", "LAB-07").status_code == 200
    assert _checkin(client, "SN-2", "IT-1", bssid=AP_HALL).status_code == 200


class TestHealth:

    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestCheckInEndpoint:
    """Test cases for POST /devices/data."""

    def test_check_in(self, client):
        response = _checkin(client, "SN-1", "LAB-07")

        assert response.status_code == 200
        assert response.json() == {"message": "Data saved", "serial_number": "SN-1", "status": "online"}

    def test_check_in_validation_errors(self, client):
        """Test malformed check-ins are rejected with per-field errors."""
        response = client.post("/devices/data", json={"device_name": "LAB-07", "ip_address": "bad"})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"ip_address"}

    def test_check_in_missing_identity(self, client):
        response = client.post("/devices/data", json={"device_name": "LAB-07"})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"serial_number", "device_id"}

    def test_duplicate_equipment_id(self, client):
        _checkin(client, "SN-1", "LAB-07", device_id="EQ-1")

        response = _checkin(client, "SN-2", "LAB-08", device_id="EQ-1")

        assert response.status_code == 409
        assert response.json()["field"] == "device_id"


class TestDeviceEndpoints:
    """Test cases for listing, lookup, history and deletion."""

    def test_list_devices_admin(self, client, fleet):
        response = client.get("/devices", headers=ADMIN)

        assert response.status_code == 200
        devices = response.json()["devices"]
        assert {d["serial_number"] for d in devices} == {"SN-1", "SN-2"}
        assert all(d["online"] for d in devices)

    def test_list_devices_prefix_filtered(self, client, fleet):
        response = client.get("/devices", headers=LAB_USER)

        assert [d["device_name"] for d in response.json()["devices"]] == ["LAB-07"]

    def test_list_devices_no_prefix(self, client, fleet):
        response = client.get("/devices", headers=NO_PREFIX_USER)
        assert response.status_code == 403

    def test_search(self, client, fleet):
        response = client.get("/devices", params={"search": "it-"}, headers=ADMIN)
        assert [d["serial_number"] for d in response.json()["devices"]] == ["SN-2"]

    def test_get_device(self, client, fleet):
        response = client.get("/devices/SN-1", headers=LAB_USER)

        assert response.status_code == 200
        device = response.json()["device"]
        assert device["sector"] == "Laboratorio"
        assert device["floor"] == "2"

    def test_get_device_forbidden(self, client, fleet):
        assert client.get("/devices/SN-2", headers=LAB_USER).status_code == 403

    def test_get_device_not_found(self, client):
        assert client.get("/devices/missing", headers=ADMIN).status_code == 404

    def test_location_history(self, client):
        _checkin(client, "SN-1", "LAB-07", bssid=AP_LAB)
        _checkin(client, "SN-1", "LAB-07", bssid=AP_HALL)

        response = client.get("/devices/SN-1/location-history", headers=ADMIN)

        history = response.json()["history"]
        assert [h["bssid"] for h in history] == [AP_HALL, AP_LAB]
        assert history[0]["sector"] == "Recepcao"

    def test_delete_device(self, client, fleet):
        assert client.delete("/devices/SN-1", headers=LAB_USER).status_code == 200
        assert client.get("/devices/SN-1", headers=ADMIN).status_code == 404


class TestCommandEndpoints:
    """Test cases for command dispatch over HTTP."""

    def test_command_round_trip(self, client, fleet):
        """Test queuing a command and reporting its result from the device."""
        response = client.post(
            "/devices/commands",
            json={"serial_number": "SN-1", "command": "install_app", "apkUrl": "http://x/app.apk"},
            headers=LAB_USER,
        )
        assert response.status_code == 200
        command = response.json()["command"]
        assert command["status"] == "sent"
        assert command["parameters"] == {"apkUrl": "http://x/app.apk"}

        response = client.post("/devices/command-result", json={"serial_number": "SN-1", "success": True})

        assert response.status_code == 200
        assert response.json()["command"]["id"] == command["id"]
        assert response.json()["command"]["status"] == "completed"

        listed = client.get("/devices/SN-1/commands", headers=ADMIN).json()["commands"]
        assert [c["status"] for c in listed] == ["completed"]

    def test_command_result_without_outstanding(self, client, fleet):
        response = client.post("/devices/command-result", json={"serial_number": "SN-1", "success": True})
        assert response.status_code == 404

    def test_command_result_requires_key(self, client):
        response = client.post("/devices/command-result", json={"success": True})
        assert response.status_code == 400

    def test_command_validation(self, client):
        response = client.post("/devices/commands", json={"command": "reboot"}, headers=ADMIN)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "serial_number"

    def test_command_forbidden(self, client, fleet):
        response = client.post(
            "/devices/commands", json={"serial_number": "SN-2", "command": "reboot"}, headers=LAB_USER
        )
        assert response.status_code == 403

    def test_set_maintenance(self, client, fleet):
        response = client.post(
            "/devices/commands",
            json={
                "serial_number": "SN-1",
                "command": "set_maintenance",
                "maintenance_status": True,
                "maintenance_ticket": "INC-9",
            },
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert "command" not in response.json()
        device = client.get("/devices/SN-1", headers=ADMIN).json()["device"]
        assert device["maintenance_status"] is True
        assert device["maintenance_ticket"] == "INC-9"


class TestMonitoringEndpoints:
    """Test cases for IP mappings and kiosk monitoring."""

    def test_ip_mapping_crud(self, client):
        response = client.post(
            "/monitoring/ip-mappings",
            json={"location": "Recepcao", "ipStart": "10.0.1.1", "ipEnd": "10.0.1.50"},
        )
        assert response.status_code == 201
        mapping_id = response.json()["id"]

        duplicate = client.post(
            "/monitoring/ip-mappings",
            json={"location": "Recepcao", "ipStart": "10.0.2.1", "ipEnd": "10.0.2.50"},
        )
        assert duplicate.status_code == 409

        assert [m["location"] for m in client.get("/monitoring/ip-mappings").json()] == ["Recepcao"]
        assert client.delete(f"/monitoring/ip-mappings/{mapping_id}").status_code == 200
        assert client.delete(f"/monitoring/ip-mappings/{mapping_id}").status_code == 404

    def test_ip_mapping_invalid(self, client):
        response = client.post(
            "/monitoring/ip-mappings", json={"location": "X", "ipStart": "nope", "ipEnd": "10.0.0.1"}
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "ip_start"

    def test_totem_check_in(self, client):
        """Test a kiosk is located from the forwarded client address."""
        client.post(
            "/monitoring/ip-mappings",
            json={"location": "Recepcao", "ipStart": "10.0.1.1", "ipEnd": "10.0.1.50"},
        )

        response = client.post(
            "/monitor",
            json={"hostname": "TOTEM-01", "serialNumber": "TT-1"},
            headers={"X-Forwarded-For": "10.0.1.7, 172.16.0.1"},
        )

        assert response.status_code == 200
        assert response.json()["location"] == "Recepcao"

        totems = client.get("/monitoring/totems").json()
        assert totems[0]["serial_number"] == "TT-1"
        assert totems[0]["status"] == "Online"

    def test_totem_check_in_invalid(self, client):
        response = client.post("/monitor", json={"hostname": "TOTEM-01"})
        assert response.status_code == 400
