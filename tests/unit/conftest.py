"""
Shared fixtures for kumo_controller unit tests.

Provides canned zone/site payloads, mocked cloud and LAN APIs, and a scriptable
address resolver so client, discovery and session tests never touch the network.
"""

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest

from kumo_controller.client import KumoClient
from kumo_controller.cloud_api import KumoCloudAPI, LoginResult
from kumo_controller.local_api import KumoLocalAPI
from kumo_controller.retry_policy import RetryPolicy
from kumo_controller.structs import Credentials, SecurityToken

LOCAL_SERIAL = "2534P0001"
REMOTE_SERIAL = "2534P0002"
LOCAL_MAC = "a4:5f:00:11:22:01"
REMOTE_MAC = "a4:5f:00:11:22:02"
LOCAL_IP = "192.168.1.50"
DEVICE_PASSWORD = base64.b64encode(b"device-secret").decode()
CRYPTO_SERIAL = "0123456789abcdef01"


def make_zone(
    serial: str,
    *,
    mac: str | None = LOCAL_MAC,
    label: str | None = None,
    password: str | None = DEVICE_PASSWORD,
    crypto_serial: str | None = CRYPTO_SERIAL,
    min_cool: float | None = 16,
    max_heat: float | None = 30,
) -> dict[str, object]:
    """A zoneTable entry shaped like the cloud's."""
    return {
        "serial": serial,
        "mac": mac,
        "label": label or f"Zone {serial}",
        "password": password,
        "cryptoSerial": crypto_serial,
        "minCoolSetpoint": min_cool,
        "maxHeatSetpoint": max_heat,
        "unitType": "ductless",
        "firmwareVersion": "02.06.12",
    }


def make_site(*zones: dict[str, object]) -> dict[str, object]:
    """A site tree with every zone under one child site, the way accounts usually look."""
    return {
        "id": "site-root",
        "label": "Home",
        "zoneTable": {},
        "children": [
            {
                "id": "site-child",
                "label": "Main floor",
                "zoneTable": {str(z["serial"]): z for z in zones},
                "children": [],
            },
        ],
    }


class FakeResolver:
    """Address resolver backed by a dict; records every lookup."""

    def __init__(self, table: dict[str, str] | None = None) -> None:
        self.table: dict[str, str] = dict(table or {})
        self.calls: list[str] = []

    async def resolve(self, mac: str) -> str | None:
        self.calls.append(mac)
        return self.table.get(mac)


@pytest.fixture
def credentials():
    return Credentials(username="owner@example.com", password="hunter2")


@pytest.fixture
def site():
    return make_site(make_zone(LOCAL_SERIAL, mac=LOCAL_MAC), make_zone(REMOTE_SERIAL, mac=REMOTE_MAC))


@pytest.fixture
def mock_cloud_api(site):
    """
    Mock KumoCloudAPI.

    Login returns token "tok-1" and the ``site`` fixture; status queries report
    Cool mode.
    """
    api = MagicMock(spec=KumoCloudAPI)
    api.login = AsyncMock(return_value=LoginResult(token=SecurityToken(token_id="tok-1"), site=site))
    api.get_device_updates = AsyncMock(
        return_value={"operation_mode": 3, "room_temp": 23.5, "sp_cool": 24, "sp_heat": 20},
    )
    api.send_device_commands = AsyncMock()
    api.close = AsyncMock()
    return api


@pytest.fixture
def mock_local_api():
    """Mock KumoLocalAPI reporting Heat mode."""
    api = MagicMock(spec=KumoLocalAPI)
    api.query_status = AsyncMock(return_value={"mode": "heat", "roomTemp": 21.0, "spHeat": 22, "spCool": 26})
    api.send_command = AsyncMock()
    api.close = AsyncMock()
    return api


@pytest.fixture
def resolver():
    return FakeResolver({LOCAL_MAC: LOCAL_IP})


@pytest.fixture
def make_client(credentials, mock_cloud_api, mock_local_api, resolver):
    """Factory for a KumoClient wired to the mocks, with no polling and no retry delay."""

    def _make(**overrides: object) -> KumoClient:
        options: dict[str, object] = {
            "cloud_api": mock_cloud_api,
            "local_api": mock_local_api,
            "resolver": resolver,
            "retry_policy": RetryPolicy(base_delay_seconds=0),
            "poll_interval": 0,
        }
        options.update(overrides)
        creds = options.pop("credentials", credentials)
        return KumoClient(creds, **options)  # pyright: ignore[reportArgumentType]

    return _make
