"""Tests for GridStoreClient against a mocked transport."""

from urllib.parse import unquote

import httpx
import pytest

from saviour.grid.client import Delivery, GridStoreClient
from saviour.grid.exceptions import RemoteUnavailable
from saviour.grid.sync_config import GridConfig

BASE = "https://relay.example/api/KeyVal"
PAYLOAD = '{"p":[{"i":"SAV-1","p":"Asha / Ravi"}],"t":1700000000000}'


def make_client(handler, **kwargs) -> GridStoreClient:
    return GridStoreClient(
        base_url=BASE,
        token="TOKEN",
        node="NODE",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestFetchBlob:
    def test_returns_body_text(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text='"{\\"p\\":[],\\"t\\":1}"')

        client = make_client(handler)

        assert client.fetch_blob() == '"{\\"p\\":[],\\"t\\":1}"'
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/api/KeyVal/GetValue/TOKEN/NODE"

    def test_bypasses_caches(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="null")

        make_client(handler).fetch_blob()

        assert "no-store" in seen[0].headers["Cache-Control"]
        assert seen[0].headers["Pragma"] == "no-cache"

    def test_error_status_raises(self):
        client = make_client(lambda request: httpx.Response(502))

        with pytest.raises(RemoteUnavailable):
            client.fetch_blob()

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteUnavailable) as exc_info:
            make_client(handler).fetch_blob()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestReplaceBlob:
    def test_primary_write_confirmed(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="UPDATE_OK")

        delivery = make_client(handler).replace_blob(PAYLOAD)

        assert delivery is Delivery.CONFIRMED
        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/KeyVal/UpdateValue/TOKEN/NODE"
        assert seen[0].headers["Content-Type"] == "text/plain"
        assert seen[0].content.decode("utf-8") == PAYLOAD

    def test_failed_primary_uses_url_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            if len(seen) == 1:
                return httpx.Response(403)
            return httpx.Response(200)

        delivery = make_client(handler).replace_blob(PAYLOAD)

        assert delivery is Delivery.UNVERIFIED
        assert len(seen) == 2
        secondary = seen[1]
        raw_path = secondary.url.raw_path.decode("ascii")
        prefix = "/api/KeyVal/UpdateValue/TOKEN/NODE/"
        assert raw_path.startswith(prefix)
        assert "/" not in raw_path[len(prefix):]
        assert unquote(raw_path[len(prefix):]) == PAYLOAD

    def test_secondary_failure_is_indistinguishable(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        assert make_client(handler).replace_blob(PAYLOAD) is Delivery.UNVERIFIED

    def test_secondary_error_status_still_unverified(self):
        assert (
            make_client(lambda request: httpx.Response(500)).replace_blob(PAYLOAD)
            is Delivery.UNVERIFIED
        )

    def test_no_secondary_raises(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(500)

        client = make_client(handler, secondary_transport=False)

        with pytest.raises(RemoteUnavailable):
            client.replace_blob(PAYLOAD)
        assert len(seen) == 1


class TestHealthCheck:
    def test_root_answers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="SAVIOUR NODE ACTIVE")

        assert make_client(handler).health_check() is True
        assert seen[0].url.path == "/"

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        assert make_client(handler).health_check() is False


class TestConstruction:
    def test_from_config(self):
        config = GridConfig(
            base_url="http://localhost:3000/api/KeyVal/",
            token="T",
            node="N",
            timeout=2.5,
            secondary_transport=False,
        )
        client = GridStoreClient.from_config(config)
        try:
            assert client.base_url == "http://localhost:3000/api/KeyVal"
            assert client.read_url == "http://localhost:3000/api/KeyVal/GetValue/T/N"
            assert client.write_url == "http://localhost:3000/api/KeyVal/UpdateValue/T/N"
            assert client.timeout == 2.5
            assert client.secondary_transport is False
        finally:
            client.close()

    def test_injected_client_not_closed(self):
        http_client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        with GridStoreClient(BASE, "T", "N", http_client=http_client):
            pass

        assert not http_client.is_closed
        http_client.close()


class TestGridConfig:
    def test_defaults(self, monkeypatch):
        for name in (
            "SAVIOUR_GRID_URL",
            "SAVIOUR_GRID_TOKEN",
            "SAVIOUR_GRID_NODE",
            "SAVIOUR_POLL_INTERVAL",
            "SAVIOUR_HTTP_TIMEOUT",
            "SAVIOUR_SECONDARY_TRANSPORT",
        ):
            monkeypatch.delenv(name, raising=False)

        config = GridConfig.from_env()

        assert config.base_url == "https://keyvalue.immanuel.co/api/KeyVal"
        assert config.token == "SAVIOUR_GLOBAL_V1"
        assert config.node == "SAVIOUR_EMERGENCY_GRID"
        assert config.poll_interval == 7.0
        assert config.timeout == 10.0
        assert config.secondary_transport is True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SAVIOUR_GRID_URL", "http://localhost:3000/api/KeyVal")
        monkeypatch.setenv("SAVIOUR_GRID_NODE", "DRILL_GRID")
        monkeypatch.setenv("SAVIOUR_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("SAVIOUR_SECONDARY_TRANSPORT", "false")

        config = GridConfig.from_env()

        assert config.base_url == "http://localhost:3000/api/KeyVal"
        assert config.node == "DRILL_GRID"
        assert config.poll_interval == 2.5
        assert config.secondary_transport is False
