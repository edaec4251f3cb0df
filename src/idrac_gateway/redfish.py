"""Redfish power-control client for the iDRAC management controller.

Each operation is one HTTPS round trip with no retry. A power command whose
acknowledgment was lost may already have been applied, so failures are
reported to the caller instead of being retried here.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

import httpx

from idrac_gateway.config import IdracConfig
from idrac_gateway.errors import RemoteConnectError, RemoteParseError, RemoteStatusError

logger = logging.getLogger(__name__)

SYSTEM_PATH = "/redfish/v1/Systems/System.Embedded.1"
RESET_ACTION_PATH = f"{SYSTEM_PATH}/Actions/ComputerSystem.Reset"

UNKNOWN_POWER_STATE = "Unknown"


class ResetType(str, Enum):
    ON = "On"
    FORCE_OFF = "ForceOff"
    GRACEFUL_SHUTDOWN = "GracefulShutdown"


class PowerControlClient:
    """Power state reads and reset actions against one management controller.

    Holds only the immutable credentials and a pooled `httpx.AsyncClient`, so
    one instance serves any number of concurrent requests. Concurrent commands
    are sent independently; the controller serializes physical power actions.
    """

    def __init__(
        self,
        *,
        base_url: str,
        username: str,
        password: str,
        timeout_s: float = 30.0,
        verify_tls: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(username, password)
        self._http_client = httpx.AsyncClient(
            timeout=timeout_s,
            verify=verify_tls,
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
        )
        logger.info("iDRAC client initialized for host: %s", self.base_url)

    @classmethod
    def from_config(
        cls, config: IdracConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> PowerControlClient:
        return cls(
            base_url=config.host,
            username=config.username,
            password=config.password,
            timeout_s=config.timeout_s,
            verify_tls=config.verify_tls,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http_client.aclose()

    async def _send(self, method: str, path: str, payload: dict[str, Any] | None = None):
        try:
            return await self._http_client.request(
                method,
                f"{self.base_url}{path}",
                auth=self._auth,
                headers={"Content-Type": "application/json"},
                json=payload,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            message = f"Failed to connect to iDRAC: {str(exc) or type(exc).__name__}"
            logger.error(message)
            raise RemoteConnectError(message) from exc

    async def get_power_state(self) -> str:
        """Fetch the current PowerState, e.g. "On" or "Off".

        A body without a string PowerState yields "Unknown" rather than an error.
        """

        response = await self._send("GET", SYSTEM_PATH)
        if response.status_code != httpx.codes.OK:
            message = f"Failed to get power state: HTTP {response.status_code}"
            logger.error(message)
            raise RemoteStatusError(
                message, status_code=response.status_code, body=response.text
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            message = f"Failed to parse response: {exc}"
            logger.error(message)
            raise RemoteParseError(message) from exc

        power_state = data.get("PowerState") if isinstance(data, dict) else None
        if not isinstance(power_state, str):
            power_state = UNKNOWN_POWER_STATE

        logger.info("Current power state: %s", power_state)
        return power_state

    async def power_on(self) -> str:
        return await self._set_power_state(ResetType.ON)

    async def power_off(self) -> str:
        """Immediate, non-graceful power cut (ForceOff)."""
        return await self._set_power_state(ResetType.FORCE_OFF)

    async def graceful_shutdown(self) -> str:
        """Ask the host OS to shut down.

        Success only means the controller accepted the request.
        """
        return await self._set_power_state(ResetType.GRACEFUL_SHUTDOWN)

    async def _set_power_state(self, reset_type: ResetType) -> str:
        logger.info("Sending power command: %s", reset_type.value)

        response = await self._send(
            "POST", RESET_ACTION_PATH, payload={"ResetType": reset_type.value}
        )
        if response.status_code in (httpx.codes.OK, httpx.codes.NO_CONTENT):
            message = f"Successfully executed: {reset_type.value}"
            logger.info(message)
            return message

        message = f"Failed to set power state: HTTP {response.status_code} - {response.text}"
        logger.error(message)
        raise RemoteStatusError(message, status_code=response.status_code, body=response.text)
