from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import signal
import sys
from functools import partial
from pathlib import Path

import uvloop

from kumo_controller import authenticate, connect
from kumo_controller.client import KumoClient
from kumo_controller.const import KUMO_CREDENTIALS_PATH, KUMO_DEBUG, KUMO_VERSION
from kumo_controller.context import CredentialStore
from kumo_controller.correlation import correlation_context
from kumo_controller.devices.thermostat import DeviceRecord
from kumo_controller.exceptions import KumoError
from kumo_controller.logging_abstraction import configure_logging, get_logger
from kumo_controller.structs import CommandName, ThermostatState

logger = get_logger(__name__)


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="kumo-controller", description="Kumo Cloud mini-split controller")
    parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--credentials",
        type=Path,
        default=KUMO_CREDENTIALS_PATH,
        help="Credentials file (default: %(default)s)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {KUMO_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("auth", help="Store Kumo Cloud account credentials")
    auth.add_argument("--username", help="Account e-mail (prompted if omitted)")

    _ = sub.add_parser("devices", help="Discover zones and print their state")

    set_cmd = sub.add_parser("set", help="Send one command to a zone")
    set_cmd.add_argument("serial")
    set_cmd.add_argument("name", choices=[c.value for c in CommandName])
    set_cmd.add_argument("value", help="Off/Heat/Cool/Auto for Mode, degrees C for targets")

    _ = sub.add_parser("watch", help="Print state changes until interrupted")

    args = parser.parse_args(argv)

    if args.command == "set" and args.name != CommandName.MODE:
        try:
            args.value = float(args.value)
        except ValueError:
            parser.error(f"{args.name} needs a numeric value, got {args.value!r}")

    if args.debug or KUMO_DEBUG:
        _ = configure_logging(level=logging.DEBUG)
        logger.debug("Debug mode enabled")
    return args


def _format_device(record: DeviceRecord) -> str:
    route = "lan " + record.ip if record.local_transport() else "cloud"
    state = record.state
    return (
        f"{record.serial:<14} {record.name:<20} {state.mode.value:<5} "
        f"room={state.temperature:g} heat={state.heat_target:g} cool={state.cool_target:g} [{route}]"
    )


def _print_update(record: DeviceRecord, state: ThermostatState) -> None:
    print(
        f"{record.serial} {record.name}: {state.mode.value} "
        f"room={state.temperature:g} heat={state.heat_target:g} cool={state.cool_target:g}",
        flush=True,
    )


async def run(args: argparse.Namespace) -> int:
    store = CredentialStore(args.credentials)

    if args.command == "auth":
        username = args.username or input("Kumo Cloud username: ")
        password = getpass.getpass("Kumo Cloud password: ")
        _ = await authenticate(username, password, store=store)
        print(f"Credentials saved to {store.path}")
        return 0

    client: KumoClient = await connect(store=store)
    try:
        match args.command:
            case "devices":
                for record in client.devices:
                    print(_format_device(record))
            case "set":
                await client.execute(args.serial, args.name, args.value)
                await client.update(args.serial)
                record = client.get_device(args.serial)
                if record is not None:
                    print(_format_device(record))
            case "watch":
                for record in client.devices:
                    print(_format_device(record))
                _ = client.on_update(_print_update)
                await asyncio.Event().wait()
    finally:
        await client.stop()
    return 0


def _signal_handler(signum: int, task: asyncio.Task[int]) -> None:
    logger.info("Intercepted signal: %s (%s)", signal.Signals(signum).name, signum)
    _ = task.cancel()


def main(argv: list[str] | None = None) -> int:
    """Entry point for the kumo-controller command."""
    with correlation_context("cli"):
        args = parse_cli(argv)
        loop = uvloop.new_event_loop()
        asyncio.set_event_loop(loop)
        task = loop.create_task(run(args), name="kumo-cli")
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, partial(_signal_handler, signum, task))
        try:
            return loop.run_until_complete(task)
        except asyncio.CancelledError:
            return 130
        except KumoError as e:
            logger.error("%s", e, extra={"error_type": type(e).__name__})
            return 1
        finally:
            loop.close()


if __name__ == "__main__":
    sys.exit(main())
