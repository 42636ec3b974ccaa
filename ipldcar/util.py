"""Length-delimited sections: varint length prefix followed by payload."""

from typing import Any, BinaryIO, Tuple

from . import cid as _cid


class SectionTooLargeError(ValueError):
    """A section length prefix exceeds the allowed maximum."""

    def __init__(self, message: str = "invalid section data, length of read beyond allowable maximum"):
        super().__init__(message)


class HeaderTooLargeError(ValueError):
    """A header length prefix exceeds the allowed maximum."""

    def __init__(self, message: str = "invalid header data, length of read beyond allowable maximum"):
        super().__init__(message)


class UnexpectedEOFError(EOFError):
    """Input ended in the middle of a value."""

    def __init__(self, message: str = "unexpected EOF"):
        super().__init__(message)


def ld_write(stream: BinaryIO, *args: bytes) -> int:
    """Write the chunks as one length-prefixed section; return bytes written."""
    total = sum(len(chunk) for chunk in args)
    prefix = _cid.encode_uvarint(total)
    stream.write(prefix)
    for chunk in args:
        stream.write(chunk)
    return len(prefix) + total


def ld_size(*args: bytes) -> int:
    """Size of the section that ld_write would produce for the chunks."""
    total = sum(len(chunk) for chunk in args)
    return total + _cid.uvarint_size(total)


def ld_read_size(stream: Any, zero_len_as_eof: bool, max_read_bytes: int) -> int:
    """Read a section length prefix, enforcing the maximum."""
    length = _cid.read_uvarint(stream)
    if length == 0 and zero_len_as_eof:
        raise EOFError("EOF")
    if length > max_read_bytes:
        raise SectionTooLargeError()
    return length


def ld_read(stream: Any, zero_len_as_eof: bool, max_read_bytes: int) -> bytes:
    """Read one length-prefixed section and return its payload."""
    length = ld_read_size(stream, zero_len_as_eof, max_read_bytes)
    buffer = bytearray()
    while len(buffer) < length:
        chunk = stream.read(length - len(buffer))
        if not chunk:
            if buffer:
                raise UnexpectedEOFError()
            raise EOFError("EOF")
        buffer += chunk
    return bytes(buffer)


def read_node(stream: Any, zero_len_as_eof: bool, max_read_bytes: int) -> Tuple["_cid.Cid", bytes]:
    """Read one block section; return its CID and data."""
    data = ld_read(stream, zero_len_as_eof, max_read_bytes)
    used, cid = _cid.cid_from_bytes(data)
    return cid, data[used:]