"""Exception hierarchy for kumo-controller.

Every error raised by the client derives from KumoError. Only TransportError is
recoverable: the dispatcher answers it with one rediscovery and one retry.
"""

from __future__ import annotations


class KumoError(Exception):
    """Base exception for all kumo-controller errors."""


class AuthError(KumoError):
    """Credentials are missing or were rejected, or login could not be completed.

    Attributes:
        reason: Short failure reason (e.g., "missing_credentials", "rejected")
        status: HTTP status of the login response, when there was one
    """

    def __init__(self, reason: str, status: int | None = None):
        self.reason = reason
        self.status = status
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"Authentication failed: {reason}{suffix}")


class NotFoundError(KumoError):
    """No zone with the requested serial has been discovered.

    Attributes:
        serial: The serial that was looked up
    """

    def __init__(self, serial: str):
        self.serial = serial
        super().__init__(f"Tried to access a zone that is not discovered: {serial}")


class InvalidCommandError(KumoError):
    """A command could not be built from the given name and value.

    Attributes:
        command: Requested command name
        value: Requested value
    """

    def __init__(self, command: object, value: object, reason: str = "unsupported"):
        self.command = command
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid command {command!r}={value!r}: {reason}")


class TransportError(KumoError):
    """A request failed at the network, HTTP status or payload-decoding level.

    Attributes:
        transport: "local" or "remote"
        reason: Failure description
        status: HTTP status when the server answered with an error
    """

    def __init__(self, transport: str, reason: str, status: int | None = None):
        self.transport = transport
        self.reason = reason
        self.status = status
        super().__init__(f"{transport} transport failed: {reason}")


class MalformedResponseError(KumoError):
    """A response decoded fine but lacks the fields the client needs.

    Attributes:
        source: Which endpoint produced the response
        reason: Which part was missing
    """

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed {source} response: {reason}")
