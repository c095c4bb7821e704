"""Unit tests for the kumo-controller exception hierarchy."""

import pytest

from kumo_controller.exceptions import (
    AuthError,
    InvalidCommandError,
    KumoError,
    MalformedResponseError,
    NotFoundError,
    TransportError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_type",
        [AuthError, NotFoundError, InvalidCommandError, TransportError, MalformedResponseError],
    )
    def test_all_inherit_from_kumo_error(self, exc_type):
        assert issubclass(exc_type, KumoError)

    def test_malformed_response_is_not_a_transport_error(self):
        """Only transport failures trigger rediscovery"""
        assert not issubclass(MalformedResponseError, TransportError)


class TestAttributes:
    def test_auth_error(self):
        error = AuthError("rejected", status=401)

        assert error.reason == "rejected"
        assert error.status == 401
        assert "rejected" in str(error)
        assert "401" in str(error)

    def test_auth_error_without_status(self):
        error = AuthError("missing_credentials")

        assert error.status is None
        assert "HTTP" not in str(error)

    def test_not_found(self):
        error = NotFoundError("2534P0001")

        assert error.serial == "2534P0001"
        assert "2534P0001" in str(error)

    def test_invalid_command(self):
        error = InvalidCommandError("Mode", "Dry", "unknown mode")

        assert error.command == "Mode"
        assert error.value == "Dry"
        assert error.reason == "unknown mode"
        assert "'Dry'" in str(error)

    def test_transport_error(self):
        error = TransportError("local", "connection refused")

        assert error.transport == "local"
        assert error.reason == "connection refused"
        assert error.status is None
        assert str(error) == "local transport failed: connection refused"

    def test_malformed_response(self):
        error = MalformedResponseError("getDeviceUpdates", "no status record")

        assert error.source == "getDeviceUpdates"
        assert "no status record" in str(error)
