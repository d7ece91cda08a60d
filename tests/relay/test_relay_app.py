"""Tests for the grid relay app."""

import json
from urllib.parse import quote

PAYLOAD = json.dumps({"p": [{"i": "SAV-1", "p": "Asha / Ravi"}], "t": 1700000000000})


def test_health(relay_client):
    response = relay_client.get("/")

    assert response.status_code == 200
    assert response.text == "SAVIOUR NODE ACTIVE"


def test_unwritten_node_is_null(relay_client):
    response = relay_client.get("/api/KeyVal/GetValue/T/N")

    assert response.status_code == 200
    assert response.text == "null"


def test_body_write_then_read(relay_client, node_store):
    response = relay_client.post(
        "/api/KeyVal/UpdateValue/T/N",
        content=PAYLOAD.encode("utf-8"),
        headers={"Content-Type": "text/plain"},
    )

    assert response.status_code == 200
    assert response.text == "UPDATE_OK"
    assert node_store.read("T", "N") == PAYLOAD

    read = relay_client.get("/api/KeyVal/GetValue/T/N")
    # The stored text comes back wrapped in a JSON string
    assert read.json() == PAYLOAD


def test_url_embedded_write(relay_client, node_store):
    response = relay_client.post(
        f"/api/KeyVal/UpdateValue/T/N/{quote(PAYLOAD, safe='')}"
    )

    assert response.status_code == 200
    assert node_store.read("T", "N") == PAYLOAD


def test_write_replaces_value(relay_client, node_store):
    relay_client.post("/api/KeyVal/UpdateValue/T/N", content=b'{"p":[],"t":1}')
    relay_client.post("/api/KeyVal/UpdateValue/T/N", content=b'{"p":[],"t":2}')

    assert node_store.read("T", "N") == '{"p":[],"t":2}'


def test_empty_write_rejected(relay_client, node_store):
    response = relay_client.post("/api/KeyVal/UpdateValue/T/N", content=b"")

    assert response.status_code == 400
    assert node_store.read("T", "N") is None


def test_nodes_are_independent(relay_client, node_store):
    relay_client.post("/api/KeyVal/UpdateValue/T/A", content=b'{"p":[],"t":1}')

    assert relay_client.get("/api/KeyVal/GetValue/T/B").text == "null"
    assert relay_client.get("/api/KeyVal/GetValue/OTHER/A").text == "null"


def test_store_counts_cases(node_store):
    assert node_store.write("T", "N", PAYLOAD) == 1
    assert node_store.write("T", "N", "not json") == 0
    assert node_store.write("T", "N", '{"p": "nope"}') == 0

    node_store.clear()
    assert node_store.read("T", "N") is None


def test_settings_from_env(monkeypatch):
    from saviour.relay.app import RelaySettings

    monkeypatch.setenv("SAVIOUR_RELAY_LOG_LEVEL", "debug")

    assert RelaySettings.from_env().log_level == "DEBUG"
