"""Unit tests for main.py module.

Tests CLI parsing, the run() command dispatch and the exit codes of main().
"""
# pyright: reportUnknownMemberType=false

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import LOCAL_IP, LOCAL_SERIAL, make_zone
from kumo_controller.devices.thermostat import DeviceRecord
from kumo_controller.exceptions import AuthError
from kumo_controller.main import _format_device, main, parse_cli, run
from kumo_controller.structs import Credentials, ThermostatMode, ZoneDescriptor


def make_record(ip: str | None = LOCAL_IP) -> DeviceRecord:
    record = DeviceRecord(ZoneDescriptor.model_validate(make_zone(LOCAL_SERIAL, label="Den")), ip)
    record.state.mode = ThermostatMode.COOL
    record.state.temperature = 23.5
    record.state.cool_target = 24
    return record


class TestParseCli:
    """Tests for parse_cli()"""

    def test_set_numeric_target(self):
        args = parse_cli(["set", LOCAL_SERIAL, "CoolTarget", "24.5"])

        assert args.command == "set"
        assert args.name == "CoolTarget"
        assert args.value == 24.5

    def test_set_mode_keeps_string(self):
        args = parse_cli(["set", LOCAL_SERIAL, "Mode", "heat"])

        assert args.value == "heat"

    def test_set_target_rejects_non_numeric(self):
        with pytest.raises(SystemExit):
            _ = parse_cli(["set", LOCAL_SERIAL, "HeatTarget", "warm"])

    def test_unknown_command_name(self):
        with pytest.raises(SystemExit):
            _ = parse_cli(["set", LOCAL_SERIAL, "Fan", "1"])

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            _ = parse_cli([])

    def test_credentials_path(self, tmp_path: Path):
        args = parse_cli(["--credentials", str(tmp_path / "c.yaml"), "devices"])

        assert args.credentials == tmp_path / "c.yaml"

    def test_debug_sets_level(self):
        with patch("kumo_controller.main.configure_logging") as mock_configure:
            _ = parse_cli(["-D", "devices"])

        mock_configure.assert_called_once_with(level=logging.DEBUG)


class TestFormatDevice:
    def test_local_route(self):
        line = _format_device(make_record())

        assert LOCAL_SERIAL in line
        assert "Den" in line
        assert "Cool" in line
        assert "room=23.5" in line
        assert f"[lan {LOCAL_IP}]" in line

    def test_cloud_route(self):
        assert _format_device(make_record(ip=None)).endswith("[cloud]")


class TestRun:
    """Tests for run()"""

    @pytest.mark.asyncio
    async def test_auth_saves_credentials(self, tmp_path: Path, capsys):
        args = SimpleNamespace(command="auth", username="owner@example.com", credentials=tmp_path / "c.yaml")

        with (
            patch("kumo_controller.main.getpass.getpass", return_value="hunter2"),
            patch("kumo_controller.main.authenticate", new_callable=AsyncMock) as mock_auth,
        ):
            assert await run(args) == 0

        assert mock_auth.await_args.args == ("owner@example.com", "hunter2")
        assert "Credentials saved" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_devices_lists_and_stops(self, tmp_path: Path, capsys):
        client = MagicMock()
        client.devices = [make_record()]
        client.stop = AsyncMock()
        args = SimpleNamespace(command="devices", credentials=tmp_path / "c.yaml")

        with patch("kumo_controller.main.connect", AsyncMock(return_value=client)):
            assert await run(args) == 0

        assert LOCAL_SERIAL in capsys.readouterr().out
        client.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_set_executes_then_updates(self, tmp_path: Path):
        client = MagicMock()
        client.execute = AsyncMock()
        client.update = AsyncMock()
        client.stop = AsyncMock()
        client.get_device.return_value = make_record()
        args = SimpleNamespace(
            command="set",
            serial=LOCAL_SERIAL,
            name="CoolTarget",
            value=24.0,
            credentials=tmp_path / "c.yaml",
        )

        with patch("kumo_controller.main.connect", AsyncMock(return_value=client)):
            assert await run(args) == 0

        client.execute.assert_awaited_once_with(LOCAL_SERIAL, "CoolTarget", 24.0)
        client.update.assert_awaited_once_with(LOCAL_SERIAL)
        client.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_stopped_when_command_fails(self, tmp_path: Path):
        client = MagicMock()
        client.execute = AsyncMock(side_effect=AuthError("rejected"))
        client.stop = AsyncMock()
        args = SimpleNamespace(command="set", serial="x", name="Mode", value="Off", credentials=tmp_path / "c.yaml")

        with (
            patch("kumo_controller.main.connect", AsyncMock(return_value=client)),
            pytest.raises(AuthError),
        ):
            _ = await run(args)

        client.stop.assert_awaited_once()


class TestMain:
    """Tests for main() exit codes"""

    def test_kumo_error_exits_1(self, tmp_path: Path):
        with patch("kumo_controller.main.run", AsyncMock(side_effect=AuthError("missing_credentials"))):
            assert main(["--credentials", str(tmp_path / "c.yaml"), "devices"]) == 1

    def test_success_exits_0(self, tmp_path: Path):
        with patch("kumo_controller.main.run", AsyncMock(return_value=0)):
            assert main(["--credentials", str(tmp_path / "c.yaml"), "devices"]) == 0


class TestPackageHelpers:
    """Tests for kumo_controller.authenticate() and connect()"""

    @pytest.mark.asyncio
    async def test_authenticate_saves(self):
        from kumo_controller import authenticate

        store = MagicMock()
        store.save = AsyncMock(return_value=True)

        creds = await authenticate("owner@example.com", "hunter2", store=store)

        assert creds == Credentials("owner@example.com", "hunter2")
        store.save.assert_awaited_once_with(creds)

    @pytest.mark.asyncio
    async def test_authenticate_save_failure(self):
        from kumo_controller import authenticate

        store = MagicMock()
        store.save = AsyncMock(return_value=False)

        with pytest.raises(AuthError):
            _ = await authenticate("owner@example.com", "hunter2", store=store)

    @pytest.mark.asyncio
    async def test_connect_without_stored_credentials(self):
        from kumo_controller import connect

        store = MagicMock()
        store.load = AsyncMock(return_value=None)

        with pytest.raises(AuthError) as exc_info:
            _ = await connect(store=store)

        assert exc_info.value.reason == "missing_credentials"

    @pytest.mark.asyncio
    async def test_connect_starts_client(self, credentials, mock_cloud_api, mock_local_api, resolver):
        from kumo_controller import connect
        from kumo_controller.retry_policy import RetryPolicy

        client = await connect(
            credentials,
            cloud_api=mock_cloud_api,
            local_api=mock_local_api,
            resolver=resolver,
            retry_policy=RetryPolicy(base_delay_seconds=0),
            poll_interval=0,
        )

        assert client.available
        assert client.get_device(LOCAL_SERIAL).ip == LOCAL_IP
        await client.stop()

    @pytest.mark.asyncio
    async def test_connect_stops_client_on_failure(self, credentials, mock_cloud_api, mock_local_api, resolver):
        from kumo_controller import connect

        mock_cloud_api.login.side_effect = AuthError("rejected", status=401)

        with pytest.raises(AuthError):
            _ = await connect(credentials, cloud_api=mock_cloud_api, local_api=mock_local_api, resolver=resolver)

        mock_cloud_api.close.assert_awaited_once()
