from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest

from idrac_gateway import passwords
from idrac_gateway.config import GatewayConfig
from idrac_gateway.redfish import PowerControlClient


@pytest.fixture(autouse=True)
def _fast_bcrypt(monkeypatch) -> None:
    # Full-cost bcrypt makes the suite needlessly slow.
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


@dataclass
class FakeIdrac:
    """Scriptable stand-in for the iDRAC Redfish API that records every request."""

    power_state_body: object = field(default_factory=lambda: {"PowerState": "On"})
    status_code: int = 200
    reset_status_code: int = 204
    reset_body: str = ""
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            if self.status_code != 200:
                return httpx.Response(self.status_code, text="error")
            return httpx.Response(200, json=self.power_state_body)
        return httpx.Response(self.reset_status_code, text=self.reset_body)

    def reset_types(self) -> list[str]:
        return [
            json.loads(r.content)["ResetType"] for r in self.requests if r.method == "POST"
        ]


@pytest.fixture
def fake_idrac() -> FakeIdrac:
    return FakeIdrac()


@pytest.fixture
def power_client(fake_idrac: FakeIdrac) -> PowerControlClient:
    return PowerControlClient(
        base_url="https://idrac.test",
        username="root",
        password="calvin",
        transport=httpx.MockTransport(fake_idrac.handler),
    )


@pytest.fixture
def gateway_config(tmp_path: Path) -> GatewayConfig:
    return GatewayConfig.model_validate(
        {
            "database": {"path": str(tmp_path / "data" / "idrac.db")},
            "idrac": {"host": "https://idrac.test", "username": "root", "password": "calvin"},
            "session": {"secret_key": "test-secret"},
        }
    )
