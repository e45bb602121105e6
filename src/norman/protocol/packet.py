"""
=============================================================================
NORMAN PACKET MODEL
=============================================================================

A packet is the only thing ever exchanged on the wire. It is made of five
sub-records that are ALWAYS present and always serialized in this order:

    ┌──────────────┬───────────────────────────────────────────────────────┐
    │  Header      │  version | return_output | service                    │
    ├──────────────┼───────────────────────────────────────────────────────┤
    │  Metadata    │  req_type | status | uid                              │
    ├──────────────┼───────────────────────────────────────────────────────┤
    │  Encryption  │  encoding_type | key          (reserved, inert)       │
    ├──────────────┼───────────────────────────────────────────────────────┤
    │  Payload     │  data                                                 │
    ├──────────────┼───────────────────────────────────────────────────────┤
    │  Terminator  │  multi_packet | term_string   ("NORMAN/END")          │
    └──────────────┴───────────────────────────────────────────────────────┘

Packets are immutable value records. They live for a single
request/response exchange and are never persisted.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum


PROTOCOL_VERSION = "NORMAN/0.1"
TERM_STRING = "NORMAN/END"
DEFAULT_KEY = " "
DEFAULT_ENCODING = "None"


class Service(Enum):
    """Target service a request is addressed to."""
    SHELL = "SHELL"
    DOCKER = "DOCKER"
    AWS = "AWS"
    UNKNOWN = "UNKNOWN"  # Fallback for unrecognized tokens


class RequestType(Enum):
    """What kind of packet this is."""
    REQUEST = "REQUEST"  # Client asks for a command to run
    RETURN = "RETURN"    # Server delivers captured output
    TEST = "TEST"
    ERROR = "ERROR"      # Fallback for unrecognized tokens


class StatusKind(Enum):
    """Tag of a Status value."""
    FINE = "FINE"
    ERROR = "ERROR"
    TEST = "TEST"
    MALFORMED = "MALFORMED"


@dataclass(frozen=True)
class Status:
    """
    Tagged status carrying a numeric code.

    The canonical values are available as class attributes:

        Status.FINE       FINE(200)
        Status.ERROR      ERROR(500)
        Status.TEST       TEST(100)
        Status.MALFORMED  MALFORMED(505)

    Any other (kind, code) pair is representable in memory but encodes as
    MALFORMED on the wire.
    """
    kind: StatusKind
    code: int

    def __str__(self) -> str:
        return f"{self.kind.value}({self.code})"


Status.FINE = Status(StatusKind.FINE, 200)
Status.ERROR = Status(StatusKind.ERROR, 500)
Status.TEST = Status(StatusKind.TEST, 100)
Status.MALFORMED = Status(StatusKind.MALFORMED, 505)


@dataclass(frozen=True)
class Header:
    version: str
    return_output: bool
    service: Service


@dataclass(frozen=True)
class Metadata:
    req_type: RequestType
    status: Status
    uid: int = 0  # Reserved for request/response correlation


@dataclass(frozen=True)
class Encryption:
    """Reserved. Never populated with real key material."""
    encoding_type: str
    key: str = DEFAULT_KEY


@dataclass(frozen=True)
class Payload:
    data: str


@dataclass(frozen=True)
class Terminator:
    multi_packet: bool  # Carried on the wire, never acted upon
    term_string: str = TERM_STRING


@dataclass(frozen=True)
class Packet:
    """
    A complete NORMAN packet.

    Build packets with Packet.build() rather than assembling the sub-records
    by hand; build() fixes the reserved fields (uid, key, term_string) to
    their protocol constants, exactly as the decoder does.

    Example:
        packet = Packet.build(
            version="NORMAN/0.1",
            return_output=True,
            service=Service.SHELL,
            req_type=RequestType.REQUEST,
            status=Status.FINE,
            encoding_type="None",
            data="echo hello",
            multi_packet=False,
        )
    """
    header: Header
    meta: Metadata
    encryption: Encryption
    payload: Payload
    terminator: Terminator

    @classmethod
    def build(
        cls,
        version: str,
        return_output: bool,
        service: Service,
        req_type: RequestType,
        status: Status,
        encoding_type: str,
        data: str,
        multi_packet: bool,
    ) -> "Packet":
        return cls(
            header=Header(version, return_output, service),
            meta=Metadata(req_type, status, uid=0),
            encryption=Encryption(encoding_type, key=DEFAULT_KEY),
            payload=Payload(data),
            terminator=Terminator(multi_packet, term_string=TERM_STRING),
        )

    @classmethod
    def request(
        cls,
        command: str,
        service: Service = Service.SHELL,
        version: str = PROTOCOL_VERSION,
    ) -> "Packet":
        """The canonical request a client sends to run `command`."""
        return cls.build(
            version=version,
            return_output=True,
            service=service,
            req_type=RequestType.REQUEST,
            status=Status.FINE,
            encoding_type=DEFAULT_ENCODING,
            data=command,
            multi_packet=False,
        )

    @property
    def data(self) -> str:
        """Shortcut for payload.data."""
        return self.payload.data
