"""Protocol version, security and initialization handshakes."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Sequence, Tuple, Union

from .auth import (
    ClientAuth,
    ClientAuthNone,
    ClientAuthVeNCrypt,
    ClientAuthVNC,
    SecurityType,
)
from .common import VNCError
from .constants import bool_to_flag
from .pixel_format import PIXEL_FORMAT_LEN, PixelFormat
from .wire import Wire

PROTOCOL_VERSION_LEN = 12
PROTO_VERS_3_3 = b"RFB 003.003\n"
PROTO_VERS_3_8 = b"RFB 003.008\n"
MAX_VERSIONS = {"3.3": PROTO_VERS_3_3, "3.8": PROTO_VERS_3_8}

SERVER_INIT_LEN = 24

_VERSION_RE = re.compile(rb"RFB (\d+)\.(\d+)\n")
_SERVER_INIT_SIZE = struct.Struct(">HH")
_NAME_LENGTH = struct.Struct(">I")


def parse_protocol_version(data: bytes) -> Tuple[int, int]:
    """Return the (major, minor) numbers of a ProtocolVersion message."""
    data = bytes(data)
    if len(data) < PROTOCOL_VERSION_LEN:
        raise VNCError(
            f"ProtocolVersion message too short ({len(data)} < {PROTOCOL_VERSION_LEN})"
        )
    match = _VERSION_RE.match(data)
    if match is None:
        raise VNCError("error parsing ProtocolVersion.")
    return int(match.group(1)), int(match.group(2))


def protocol_version_handshake(wire: Wire, max_version: Optional[str] = None) -> bytes:
    """Agree on a protocol version with the server and return it.

    ``max_version`` ("3.3" or "3.8") forces the version sent to the server.
    """
    if max_version and max_version not in MAX_VERSIONS:
        raise ValueError(
            f"Invalid max protocol version {max_version}; "
            f"supported versions are {sorted(MAX_VERSIONS)}"
        )
    data = wire.receive(PROTOCOL_VERSION_LEN)
    major, minor = parse_protocol_version(data)

    version: Optional[bytes] = None
    if major == 3:
        if minor >= 8:
            version = PROTO_VERS_3_8
        elif minor >= 3:
            version = PROTO_VERS_3_3
    if version is None:
        raise VNCError(
            "ProtocolVersion handshake failed; unsupported version "
            f"'{data.decode('latin-1')}'"
        )
    if max_version:
        version = MAX_VERSIONS[max_version]

    wire.send(version)
    return version


def read_error_reason(wire: Wire) -> str:
    """Read a length-prefixed failure reason string."""
    (length,) = wire.receive_struct("I")
    return wire.receive(length).decode("utf-8", errors="replace")


def _bind_vencrypt(auth: ClientAuth, auths: Iterable[ClientAuth]) -> ClientAuth:
    """Give a VeNCrypt auth the configured VNC authentication to run over TLS."""
    if isinstance(auth, ClientAuthVeNCrypt) and auth.inner is None:
        inner = None
        for candidate in auths:
            if candidate.security_type == SecurityType.VNC_AUTH:
                inner = candidate
        return ClientAuthVeNCrypt(inner)
    return auth


def _security_handshake_33(
    wire: Wire, auths: Sequence[ClientAuth], password: str
) -> SecurityType:
    (raw,) = wire.receive_struct("I")
    security_type = raw & 0xFF  # 3.3 sends a uint32; 3.8 uses a single byte.
    auth: ClientAuth
    if security_type == SecurityType.INVALID:
        reason = read_error_reason(wire)
        raise VNCError(f"Security handshake failed; connection failed: {reason}")
    if security_type == SecurityType.NONE:
        auth = ClientAuthNone()
    elif security_type == SecurityType.VNC_AUTH:
        auth = ClientAuthVNC(password)
    elif security_type == SecurityType.VENCRYPT:
        auth = _bind_vencrypt(ClientAuthVeNCrypt(), auths)
    else:
        raise VNCError(f"Security handshake failed; invalid security type: {raw}")
    auth.handshake(wire)
    return auth.security_type


def _security_handshake_38(wire: Wire, auths: Sequence[ClientAuth]) -> SecurityType:
    (count,) = wire.receive_struct("B")
    if count == 0:
        reason = read_error_reason(wire)
        raise VNCError(f"Security handshake failed; no security types: {reason}")
    server_types = wire.receive(count)

    chosen = next(
        (
            auth
            for server_type in server_types
            for auth in auths
            if auth.security_type == server_type
        ),
        None,
    )
    if chosen is None:
        raise VNCError(
            "Security handshake failed; no suitable auth schemes found; "
            f"server supports: {list(server_types)}"
        )
    wire.send(bytes([chosen.security_type]))
    chosen = _bind_vencrypt(chosen, auths)
    chosen.handshake(wire)
    return chosen.security_type


def security_handshake(
    wire: Wire,
    version: Union[bytes, str],
    auths: Sequence[ClientAuth],
    password: str,
) -> SecurityType:
    """Negotiate and run authentication; return the security type used."""
    if isinstance(version, str):
        version = version.encode("latin-1")
    if version == PROTO_VERS_3_3:
        return _security_handshake_33(wire, auths, password)
    if version == PROTO_VERS_3_8:
        return _security_handshake_38(wire, auths)
    raise VNCError("Security handshake failed; unsupported protocol")


def security_result_handshake(wire: Wire, security_type: int) -> None:
    """Read the SecurityResult message; nothing is sent for the None type."""
    if security_type == SecurityType.NONE:
        return
    (result,) = wire.receive_struct("I")
    if result == 0:
        return
    if result == 1:
        reason = read_error_reason(wire)
        raise VNCError(f"SecurityResult handshake failed: {reason}")
    raise VNCError(f"Invalid SecurityResult status: {result}")


def client_init(wire: Wire, exclusive: bool) -> None:
    """Send ClientInit with the shared flag set unless ``exclusive``.

    Some servers answer with four zero bytes before ServerInit; those are
    skipped.
    """
    wire.send(bytes([bool_to_flag(not exclusive)]))
    if int.from_bytes(wire.peek(4), "big") == 0:
        wire.discard(4)


@dataclass(frozen=True)
class ServerInit:
    """The ServerInit message: framebuffer size, pixel format and name."""

    width: int = 0
    height: int = 0
    pixel_format: PixelFormat = field(default_factory=PixelFormat)
    name_length: int = 0
    name: str = ""

    @classmethod
    def unmarshal(cls, data: bytes) -> "ServerInit":
        """Parse the fixed 24-byte part; the name is read separately."""
        data = bytes(data)
        if len(data) < SERVER_INIT_LEN:
            raise VNCError(
                f"ServerInit needs {SERVER_INIT_LEN} bytes, got {len(data)}"
            )
        width, height = _SERVER_INIT_SIZE.unpack_from(data)
        pf_start = _SERVER_INIT_SIZE.size
        pixel_format = PixelFormat.unmarshal(data[pf_start : pf_start + PIXEL_FORMAT_LEN])
        (name_length,) = _NAME_LENGTH.unpack_from(data, pf_start + PIXEL_FORMAT_LEN)
        return cls(width, height, pixel_format, name_length)


def server_init(wire: Wire) -> ServerInit:
    """Read the ServerInit message, desktop name included."""
    try:
        header = wire.receive(SERVER_INIT_LEN)
    except EOFError as err:
        raise VNCError(f"failure reading ServerInit message; {err}") from err
    init = ServerInit.unmarshal(header)
    try:
        name = wire.receive(init.name_length)
    except EOFError as err:
        raise VNCError(f"failure reading desktop name; {err}") from err
    return replace(init, name=name.decode("utf-8", errors="replace"))