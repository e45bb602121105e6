"""
=============================================================================
PACKET CODEC
=============================================================================

Converts between Packet objects and their wire form.

=============================================================================
WIRE FORMAT
=============================================================================

A frame is exactly 11 tokens joined by "|":

    NORMAN/0.1|true|SHELL|REQUEST|200 OK|0|None| |echo hello|false|NORMAN/END
    └────┬───┘ └┬─┘ └─┬─┘ └──┬──┘ └──┬─┘ ┬ └─┬┘ ┬ └───┬────┘ └─┬─┘ └───┬────┘
      version   │  service req_type status│ enc. │    data     │   term_string
          return_output                  uid   key     multi_packet

There is no length prefix and no escaping. The token count IS the framing
check: any other count is a hard failure (FieldCountMismatch).

=============================================================================
FALLBACK TABLE
=============================================================================

Unrecognized tokens are never errors. They are normalized through fixed
lookup tables. The fallbacks differ per field:

    ┌─────────────────┬─────────────────────────────────────────────────┐
    │  Field          │  Unrecognized token becomes                     │
    ├─────────────────┼─────────────────────────────────────────────────┤
    │  return_output  │  True                                           │
    │  service        │  Service.UNKNOWN                                │
    │  req_type       │  RequestType.ERROR                              │
    │  status         │  Status.MALFORMED (505)                         │
    │  multi_packet   │  False                                          │
    └─────────────────┴─────────────────────────────────────────────────┘

Status is lossy. Only FINE(200), ERROR(500) and TEST(100) have
their own wire text; every other (kind, code) pair encodes as
"505 MALFORMED" and decodes back as MALFORMED(505), so the original code is
gone after one round trip.

=============================================================================
THREAD SAFETY
=============================================================================

Every function here is pure. The tables are module constants that are only
read, so encode/decode can run on any number of worker threads at once.

=============================================================================
"""

from typing import Dict, Tuple

from .errors import FieldCountMismatch
from .packet import (
    Packet,
    RequestType,
    Service,
    Status,
    StatusKind,
)


DELIMITER = "|"
FIELD_COUNT = 11

# ─────────────────────────────────────────────────────────────────────────
# ENCODE TABLES
# ─────────────────────────────────────────────────────────────────────────

_BOOL_TEXT: Dict[bool, str] = {True: "true", False: "false"}

_SERVICE_TEXT: Dict[Service, str] = {
    Service.SHELL: "SHELL",
    Service.DOCKER: "DOCKER",
    Service.AWS: "AWS",
    Service.UNKNOWN: "UNKNOWN",
}

_REQ_TYPE_TEXT: Dict[RequestType, str] = {
    RequestType.REQUEST: "REQUEST",
    RequestType.RETURN: "RETURN",
    RequestType.TEST: "TEST",
    RequestType.ERROR: "ERROR",
}

_STATUS_TEXT: Dict[Tuple[StatusKind, int], str] = {
    (StatusKind.FINE, 200): "200 OK",
    (StatusKind.ERROR, 500): "500 ERR",
    (StatusKind.TEST, 100): "100 TEST",
}
MALFORMED_TEXT = "505 MALFORMED"

# ─────────────────────────────────────────────────────────────────────────
# DECODE TABLES (with their fallbacks)
# ─────────────────────────────────────────────────────────────────────────

RETURN_OUTPUT_TABLE: Dict[str, bool] = {"true": True, "false": False}
RETURN_OUTPUT_FALLBACK = True

SERVICE_TABLE: Dict[str, Service] = {
    "SHELL": Service.SHELL,
    "AWS": Service.AWS,
    "DOCKER": Service.DOCKER,
}
SERVICE_FALLBACK = Service.UNKNOWN

REQ_TYPE_TABLE: Dict[str, RequestType] = {
    "REQUEST": RequestType.REQUEST,
    "RETURN": RequestType.RETURN,
    "TEST": RequestType.TEST,
}
REQ_TYPE_FALLBACK = RequestType.ERROR

STATUS_TABLE: Dict[str, Status] = {
    "200 OK": Status.FINE,
    "500 ERR": Status.ERROR,
    "100 TEST": Status.TEST,
}
STATUS_FALLBACK = Status.MALFORMED

MULTI_PACKET_TABLE: Dict[str, bool] = {"true": True, "false": False}
MULTI_PACKET_FALLBACK = False


def status_text(status: Status) -> str:
    """Wire text for a status; unknown (kind, code) pairs collapse to 505."""
    return _STATUS_TEXT.get((status.kind, status.code), MALFORMED_TEXT)


def encode(packet: Packet) -> str:
    """
    Serialize a packet to its 11-token wire string.

    Never fails for a packet built in memory. Note that a `data` value
    containing the delimiter produces a frame the peer cannot decode;
    the format has no escaping.
    """
    fields = [
        packet.header.version,
        _BOOL_TEXT[packet.header.return_output],
        _SERVICE_TEXT[packet.header.service],
        _REQ_TYPE_TEXT[packet.meta.req_type],
        status_text(packet.meta.status),
        str(packet.meta.uid),
        packet.encryption.encoding_type,
        packet.encryption.key,
        packet.payload.data,
        _BOOL_TEXT[packet.terminator.multi_packet],
        packet.terminator.term_string,
    ]
    return DELIMITER.join(fields)


def decode(wire: str) -> Packet:
    """
    Parse a wire string into a Packet.

    =========================================================================
    DECODING STEPS
    =========================================================================

    1. Split on "|"; anything but 11 tokens raises FieldCountMismatch
    2. Map return_output, service, req_type, status and multi_packet
       through the lookup tables, falling back for unknown tokens
    3. Pass encoding_type and data through verbatim
    4. Skip uid, key and term_string; Packet.build() supplies the constants

    =========================================================================

    Args:
        wire: The frame text.

    Returns:
        The decoded packet.

    Raises:
        FieldCountMismatch: If the frame does not have exactly 11 tokens.
    """
    tokens = wire.split(DELIMITER)
    if len(tokens) != FIELD_COUNT:
        raise FieldCountMismatch(
            expected=FIELD_COUNT,
            actual=len(tokens),
            remainder=tokens,
        )

    (
        version,
        return_output,
        service,
        req_type,
        status,
        _uid,
        encoding_type,
        _key,
        data,
        multi_packet,
        _term_string,
    ) = tokens

    return Packet.build(
        version=version,
        return_output=RETURN_OUTPUT_TABLE.get(return_output, RETURN_OUTPUT_FALLBACK),
        service=SERVICE_TABLE.get(service, SERVICE_FALLBACK),
        req_type=REQ_TYPE_TABLE.get(req_type, REQ_TYPE_FALLBACK),
        status=STATUS_TABLE.get(status, STATUS_FALLBACK),
        encoding_type=encoding_type,
        data=data,
        multi_packet=MULTI_PACKET_TABLE.get(multi_packet, MULTI_PACKET_FALLBACK),
    )


def encode_bytes(packet: Packet) -> bytes:
    """Encode a packet and convert it to UTF-8 bytes for the socket."""
    return encode(packet).encode("utf-8")


def decode_bytes(data: bytes) -> Packet:
    """
    Decode raw bytes read from a socket.

    A fixed-capacity read can cut a multi-byte character in half, so
    invalid sequences are replaced rather than rejected. Trailing NUL
    padding from fixed-size buffers is stripped.
    """
    text = data.decode("utf-8", errors="replace").rstrip("\x00")
    return decode(text)
