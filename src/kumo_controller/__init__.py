"""Local and cloud control of Kumo Cloud mini-split heat pumps."""

__version__ = "0.3.0"

from kumo_controller.client import KumoClient  # noqa: E402
from kumo_controller.context import CredentialStore  # noqa: E402
from kumo_controller.devices import DeviceRecord  # noqa: E402
from kumo_controller.exceptions import (  # noqa: E402
    AuthError,
    InvalidCommandError,
    KumoError,
    MalformedResponseError,
    NotFoundError,
    TransportError,
)
from kumo_controller.structs import CommandName, Credentials, ThermostatMode, ThermostatState  # noqa: E402

__all__ = [
    "AuthError",
    "CommandName",
    "CredentialStore",
    "Credentials",
    "DeviceRecord",
    "InvalidCommandError",
    "KumoClient",
    "KumoError",
    "MalformedResponseError",
    "NotFoundError",
    "ThermostatMode",
    "ThermostatState",
    "TransportError",
    "__version__",
    "authenticate",
    "connect",
]


async def authenticate(username: str, password: str, store: CredentialStore | None = None) -> Credentials:
    """Store account credentials for later ``connect()`` calls."""
    credentials = Credentials(username=username, password=password)
    if not await (store or CredentialStore()).save(credentials):
        raise AuthError("credentials_not_saved")
    return credentials


async def connect(
    credentials: Credentials | None = None,
    store: CredentialStore | None = None,
    **options: object,
) -> KumoClient:
    """Create a client, discover every zone and fetch its first status.

    Stored credentials are used when none are given. ``options`` are passed
    through to KumoClient.

    Raises:
        AuthError: no credentials available, or the cloud rejected them.

    """
    if credentials is None:
        credentials = await (store or CredentialStore()).load()
    if credentials is None:
        raise AuthError("missing_credentials")

    client = KumoClient(credentials, **options)  # pyright: ignore[reportArgumentType]
    try:
        _ = await client.start()
    except BaseException:
        await client.stop()
        raise
    return client
