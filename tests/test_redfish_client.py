from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from idrac_gateway.config import IdracConfig
from idrac_gateway.errors import (
    PowerControlError,
    RemoteConnectError,
    RemoteParseError,
    RemoteStatusError,
)
from idrac_gateway.redfish import RESET_ACTION_PATH, SYSTEM_PATH, PowerControlClient, ResetType


def _run(handler, op):
    async def _go():
        client = PowerControlClient(
            base_url="https://idrac.test/",
            username="root",
            password="calvin",
            transport=httpx.MockTransport(handler),
        )
        try:
            return await op(client)
        finally:
            await client.aclose()

    return asyncio.run(_go())


def test_get_power_state_reads_power_state() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"PowerState": "Off", "Model": "PowerEdge R640"})

    assert _run(handler, lambda c: c.get_power_state()) == "Off"

    (request,) = seen
    assert request.method == "GET"
    assert request.url == httpx.URL(f"https://idrac.test{SYSTEM_PATH}")
    assert request.headers["Authorization"] == "Basic cm9vdDpjYWx2aW4="


@pytest.mark.parametrize("body", [{}, {"PowerState": None}, {"PowerState": 1}, ["On"]])
def test_get_power_state_defaults_to_unknown(body: object) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    assert _run(handler, lambda c: c.get_power_state()) == "Unknown"


def test_get_power_state_http_error_embeds_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(RemoteStatusError) as excinfo:
        _run(handler, lambda c: c.get_power_state())

    assert excinfo.value.status_code == 401
    assert "401" in excinfo.value.message


def test_get_power_state_unparseable_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>not json</html>")

    with pytest.raises(RemoteParseError) as excinfo:
        _run(handler, lambda c: c.get_power_state())
    assert excinfo.value.message.startswith("Failed to parse response")


@pytest.mark.parametrize(
    ("op", "reset_type"),
    [
        (lambda c: c.power_on(), "On"),
        (lambda c: c.power_off(), "ForceOff"),
        (lambda c: c.graceful_shutdown(), "GracefulShutdown"),
    ],
)
def test_reset_actions_post_reset_type(op, reset_type: str) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    message = _run(handler, op)

    assert message == f"Successfully executed: {reset_type}"
    (request,) = seen
    assert request.method == "POST"
    assert request.url == httpx.URL(f"https://idrac.test{RESET_ACTION_PATH}")
    assert request.headers["Authorization"] == "Basic cm9vdDpjYWx2aW4="
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {"ResetType": reset_type}


def test_reset_accepts_200() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "accepted"})

    assert "On" in _run(handler, lambda c: c.power_on())


def test_power_off_with_204_no_body_succeeds() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    assert "ForceOff" in _run(handler, lambda c: c.power_off())


@pytest.mark.parametrize("status", [202, 400, 409, 500, 503])
def test_reset_failure_includes_status_and_body(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="overheated")

    with pytest.raises(RemoteStatusError) as excinfo:
        _run(handler, lambda c: c.power_off())

    err = excinfo.value
    assert err.status_code == status
    assert err.body == "overheated"
    assert str(status) in err.message
    assert "overheated" in err.message


@pytest.mark.parametrize(
    "exc_type", [httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout]
)
def test_transport_failures_are_connect_errors_without_retry(exc_type) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise exc_type("boom", request=request)

    with pytest.raises(RemoteConnectError) as excinfo:
        _run(handler, lambda c: c.graceful_shutdown())

    assert isinstance(excinfo.value, PowerControlError)
    assert excinfo.value.message.startswith("Failed to connect to iDRAC")
    assert len(calls) == 1


def test_concurrent_commands_are_sent_independently() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)["ResetType"])
        return httpx.Response(204)

    async def _both(client: PowerControlClient):
        return await asyncio.gather(client.power_off(), client.power_off())

    results = _run(handler, _both)

    assert results == ["Successfully executed: ForceOff"] * 2
    assert seen == ["ForceOff", "ForceOff"]


def test_from_config_uses_credentials() -> None:
    config = IdracConfig(host="https://idrac.example/", username="ops", password="pw", timeout_s=3)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"PowerState": "On"})

    async def _go():
        client = PowerControlClient.from_config(config, transport=httpx.MockTransport(handler))
        try:
            return await client.get_power_state()
        finally:
            await client.aclose()

    assert asyncio.run(_go()) == "On"
    assert seen[0].url.host == "idrac.example"
    assert seen[0].headers["Authorization"] == "Basic b3BzOnB3"


def test_reset_type_values() -> None:
    assert [r.value for r in ResetType] == ["On", "ForceOff", "GracefulShutdown"]
