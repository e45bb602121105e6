"""
Protocol errors raised while turning wire strings into packets.
"""

from typing import List


class ProtocolError(Exception):
    """
    Base class for NORMAN protocol failures.

    Every protocol error is answered with status ERROR(500); the wire
    format has no finer-grained error codes.
    """


class FieldCountMismatch(ProtocolError):
    """
    Raised when a frame does not split into exactly the expected tokens.

    Attributes:
        expected: Number of tokens a complete frame has (always 11).
        actual: Number of tokens actually found.
        remainder: The tokens that were read, for diagnostics.
    """

    def __init__(self, expected: int, actual: int, remainder: List[str]):
        super().__init__(
            f"Malformed packet: expected {expected} fields but found {actual}"
        )
        self.expected = expected
        self.actual = actual
        self.remainder = remainder
