"""Message authentication for requests sent straight to a Kumo LAN adapter.

The adapter accepts a request only when the ``m`` query parameter carries a
SHA-256 digest over an 88-byte block built from a fixed device-class key, a hash
of the device password plus request body, and the device's crypto serial:

    offset  length  content
    0       32      device-class key
    32      32      sha256(base64decode(password) + body)
    64      3       0x08 0x40 0x00
    79      1       crypto serial byte 8
    80      4       crypto serial bytes 4..7
    84      4       crypto serial bytes 0..3

Every other byte is zero, and so is any crypto serial byte past its end.
"""

from __future__ import annotations

import base64
import hashlib

__all__ = ["DEVICE_CLASS_KEY", "build_auth_block", "encode"]

DEVICE_CLASS_KEY: bytes = bytes.fromhex("44c73283b498d432ff25f5c8e06a016aef931e68f0a00ea710e36e6338fb22db")
AUTH_BLOCK_SIZE = 88


def _serial_bytes(serial: bytes, start: int, end: int) -> bytes:
    return serial[start:end].ljust(end - start, b"\x00")


def build_auth_block(body: bytes, password: str | None, crypto_serial: str | None) -> bytes:
    """Assemble the 88-byte block whose digest authenticates ``body``."""
    secret = base64.b64decode(password or "")
    data_hash = hashlib.sha256(secret + body).digest()
    serial = bytes.fromhex(crypto_serial or "")

    block = bytearray(AUTH_BLOCK_SIZE)
    block[0:32] = DEVICE_CLASS_KEY
    block[32:64] = data_hash
    block[64:67] = b"\x08\x40\x00"
    block[79:80] = _serial_bytes(serial, 8, 9)
    block[80:84] = _serial_bytes(serial, 4, 8)
    block[84:88] = _serial_bytes(serial, 0, 4)
    return bytes(block)


def encode(body: str | bytes, password: str | None, crypto_serial: str | None) -> str:
    """Return the hex digest to send as ``?m=`` alongside ``body``.

    ``body`` must be exactly the bytes that go on the wire.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hashlib.sha256(build_auth_block(body, password, crypto_serial)).hexdigest()
