"""Security types and the client side of their authentication handshakes."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Optional

from Crypto.Cipher import DES

from .common import VNCError
from .wire import Wire

CHALLENGE_LEN = 16
VENCRYPT_X509_VNC = 261


class SecurityType(IntEnum):
    """Security type numbers exchanged during the security handshake."""

    INVALID = 0
    NONE = 1
    VNC_AUTH = 2
    VENCRYPT = 19


class ClientAuth(ABC):
    """A method of authenticating with a remote server."""

    security_type: ClassVar[SecurityType]

    @abstractmethod
    def handshake(self, wire: Wire) -> None:
        """Run the authentication exchange over ``wire``."""


@dataclass
class ClientAuthNone(ClientAuth):
    """No authentication."""

    security_type: ClassVar[SecurityType] = SecurityType.NONE

    def handshake(self, wire: Wire) -> None:
        return None


def _reverse_bits(value: int) -> int:
    return int(f"{value:08b}"[::-1], 2)


def vnc_auth_response(password: str, challenge: bytes) -> bytes:
    """Encrypt a 16-byte challenge with DES keyed by the bit-reversed password.

    Only the first eight bytes of the password are used; shorter passwords
    are padded with zero bytes.
    """
    challenge = bytes(challenge)
    if len(challenge) != CHALLENGE_LEN:
        raise VNCError(
            f"VNC authentication challenge must be {CHALLENGE_LEN} bytes, "
            f"got {len(challenge)}"
        )
    key = bytes(_reverse_bits(b) for b in password.encode("utf-8")[:8]).ljust(8, b"\0")
    return DES.new(key, DES.MODE_ECB).encrypt(challenge)


@dataclass
class ClientAuthVNC(ClientAuth):
    """Standard VNC password authentication."""

    password: str

    security_type: ClassVar[SecurityType] = SecurityType.VNC_AUTH

    def handshake(self, wire: Wire) -> None:
        challenge = wire.receive(CHALLENGE_LEN)
        wire.send(vnc_auth_response(self.password, challenge))


@dataclass
class ClientAuthVeNCrypt(ClientAuth):
    """VeNCrypt: X509/VNC over TLS, followed by the ``inner`` authentication."""

    inner: Optional[ClientAuth] = None

    security_type: ClassVar[SecurityType] = SecurityType.VENCRYPT

    def handshake(self, wire: Wire) -> None:
        _major, minor = wire.receive_struct("BB")
        wire.send(bytes([0, 2]))

        (accepted,) = wire.receive_struct("B")
        if accepted != 0:
            raise VNCError("Server does not accept selected version")

        (count,) = wire.receive_struct("B")
        if count == 0:
            raise VNCError("Server sends 0 as SubTypes count")

        if minor == 1:
            raise VNCError("Client does not support 0.1 version of VeNCrypt")
        if minor == 2:
            subtypes = wire.receive_struct(f"{count}i")
            if VENCRYPT_X509_VNC in subtypes:
                wire.send(struct.pack(">I", VENCRYPT_X509_VNC))

        (accepted,) = wire.receive_struct("B")
        if accepted != 1:
            raise VNCError("Server does not accept")

        if self.inner is None:
            raise VNCError("VeNCrypt: no VNC authentication configured")
        wire.start_tls()
        self.inner.handshake(wire)