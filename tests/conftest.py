"""
Shared fixtures for grid tests.

Unit tests use an in-process fake of the store client. Integration tests run
the real relay app behind Starlette's TestClient and point a real
GridStoreClient at it.
"""

import pytest
from starlette.testclient import TestClient

from saviour.grid.client import Delivery, GridStoreClient
from saviour.grid.codec import decode_snapshot, encode_snapshot
from saviour.grid.exceptions import RemoteUnavailable
from saviour.grid.metrics import NullMetricsClient
from saviour.grid.models import (
    Case,
    CaseStatus,
    EmergencyType,
    HospitalPreference,
    Location,
    Snapshot,
)
from saviour.grid.sync import SyncEngine
from saviour.relay.app import app as relay_app
from saviour.relay.app import get_storage
from saviour.relay.storage import NodeStore

TOKEN = "TEST_TOKEN"
NODE = "TEST_NODE"


class FakeStoreClient:
    """Stands in for GridStoreClient without any network."""

    def __init__(self, blob: str = "null"):
        self.blob = blob
        self.fail_fetch = False
        self.fail_write = False
        self.unverified = False
        self.fetch_count = 0
        self.writes: list[str] = []

    def fetch_blob(self) -> str:
        self.fetch_count += 1
        if self.fail_fetch:
            raise RemoteUnavailable("fetch refused")
        return self.blob

    def replace_blob(self, payload: str) -> Delivery:
        if self.fail_write:
            raise RemoteUnavailable("write refused")
        self.writes.append(payload)
        if self.unverified:
            return Delivery.UNVERIFIED
        self.blob = payload
        return Delivery.CONFIRMED

    def close(self):
        pass


def make_case(
    case_id: str = "SAV-TEST-00001",
    status: CaseStatus = CaseStatus.PENDING,
    timestamp: int = 1_700_000_000_000,
    **overrides,
) -> Case:
    """Build a case whose fields survive the wire encoding unchanged."""
    fields = dict(
        id=case_id,
        patient_name="Asha Verma",
        phone_number="9876543210",
        emergency_type=EmergencyType.HEART,
        location=Location(lat=12.97161, lng=77.59456),
        status=status,
        timestamp=timestamp,
        hospital_preference=HospitalPreference.GOVERNMENT,
    )
    fields.update(overrides)
    return Case(**fields)


@pytest.fixture
def case_factory():
    """Factory for cases that round-trip cleanly through the codec."""
    return make_case


@pytest.fixture
def fake_client():
    return FakeStoreClient()


@pytest.fixture
def seeded_client(case_factory):
    """Fake client whose node already holds SAV-A and SAV-B."""
    cases = [case_factory("SAV-A"), case_factory("SAV-B")]
    return FakeStoreClient(blob=encode_snapshot(cases, timestamp=1_700_000_000_000))


@pytest.fixture
def engine(fake_client):
    return SyncEngine(fake_client, poll_interval=0.01, metrics=NullMetricsClient())


@pytest.fixture
def node_store():
    """Fresh relay storage, wired into the relay app for the test."""
    store = NodeStore()
    relay_app.dependency_overrides[get_storage] = lambda: store
    yield store
    relay_app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
def remote_snapshot(node_store):
    """Decode whatever the relay currently holds for the test node."""

    def _read() -> Snapshot | None:
        return decode_snapshot(node_store.read(TOKEN, NODE))

    return _read


@pytest.fixture
def relay_client(node_store):
    """TestClient bound to the relay app."""
    with TestClient(relay_app) as client:
        yield client


@pytest.fixture
def make_store_client(relay_client):
    """Build GridStoreClients that talk to the in-process relay."""

    def _make(**kwargs) -> GridStoreClient:
        return GridStoreClient(
            base_url="http://testserver/api/KeyVal",
            token=TOKEN,
            node=NODE,
            http_client=relay_client,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_engine(make_store_client):
    """Build SyncEngines (one per simulated device) sharing the relay."""

    def _make(**kwargs) -> SyncEngine:
        return SyncEngine(
            make_store_client(), metrics=NullMetricsClient(), **kwargs
        )

    return _make
