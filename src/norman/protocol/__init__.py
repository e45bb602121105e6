"""
=============================================================================
NORMAN WIRE PROTOCOL
=============================================================================

Packet model and codec for the NORMAN remote-command protocol.

    packet.py   Packet and its sub-records, Service, RequestType, Status
    codec.py    encode/decode between Packet and the 11-field wire string
    errors.py   ProtocolError, FieldCountMismatch

The codec has no I/O and no shared state; see core/ for the sockets.

=============================================================================
"""

from .packet import (
    PROTOCOL_VERSION,
    TERM_STRING,
    Packet,
    Header,
    Metadata,
    Encryption,
    Payload,
    Terminator,
    Service,
    RequestType,
    Status,
    StatusKind,
)
from .codec import encode, decode, encode_bytes, decode_bytes, status_text, FIELD_COUNT
from .errors import ProtocolError, FieldCountMismatch

__all__ = [
    "PROTOCOL_VERSION",
    "TERM_STRING",
    "FIELD_COUNT",
    "Packet",
    "Header",
    "Metadata",
    "Encryption",
    "Payload",
    "Terminator",
    "Service",
    "RequestType",
    "Status",
    "StatusKind",
    "encode",
    "decode",
    "encode_bytes",
    "decode_bytes",
    "status_text",
    "ProtocolError",
    "FieldCountMismatch",
]
