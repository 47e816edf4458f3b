"""Shared fixtures: an in-memory SQLite database per test and common services."""
from datetime import timedelta
import json

import pytest
from fastapi.testclient import TestClient

from fleetmon.api.app import create_app
from fleetmon.config.settings import Settings
from fleetmon.db.init_db import init_database
from fleetmon.db.session import create_db_engine, create_session_factory
from fleetmon.models.base import utcnow
from fleetmon.services.access_filter import Caller, ROLE_ADMIN
from fleetmon.services.device_registry import DeviceRegistry
from fleetmon.services.location_resolver import AccessPointResolver
from fleetmon.services.status_lifecycle import StatusThresholds

AP_LAB = "AA:AA:AA:AA:AA:01"
AP_HALL = "BB:BB:BB:BB:BB:02"


@pytest.fixture
def engine():
    """Fresh in-memory database with the full schema."""
    engine = create_db_engine("sqlite://")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def thresholds():
    return StatusThresholds(
        offline=timedelta(minutes=60),
        unmonitored=timedelta(days=5),
        online_window=timedelta(minutes=5),
    )


@pytest.fixture
def ap_resolver():
    return AccessPointResolver({
        AP_LAB: {"sector": "Laboratorio", "floor": "2"},
        AP_HALL: {"sector": "Recepcao", "floor": "1"},
    })


@pytest.fixture
def registry(db_session, ap_resolver, thresholds):
    return DeviceRegistry(db_session, resolver=ap_resolver, thresholds=thresholds)


@pytest.fixture
def admin():
    return Caller(username="root", role=ROLE_ADMIN)


@pytest.fixture
def make_payload():
    """Build a raw check-in body with recent timestamps."""
    def _make(serial_number="SN-001", device_name="LAB-07", **overrides):
        body = {
            "device_name": device_name,
            "serial_number": serial_number,
            "device_model": "SM-T295",
            "mac_address_radio": AP_LAB,
            "ip_address": "10.0.0.15",
            "last_seen": (utcnow() - timedelta(minutes=1)).isoformat(),
        }
        body.update(overrides)
        return {k: v for k, v in body.items() if v is not None}
    return _make


@pytest.fixture
def api_settings(tmp_path):
    table = tmp_path / "access_points.json"
    table.write_text(json.dumps({
        "access_points": {
            AP_LAB: {"sector": "Laboratorio", "floor": "2"},
            AP_HALL: {"sector": "Recepcao", "floor": "1"},
        }
    }))
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        sweep_enabled=False,
        access_point_table=str(table),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def client(api_settings):
    """HTTP client with the application lifespan running."""
    with TestClient(create_app(api_settings)) as client:
        yield client
