"""Content identifiers, multihashes and unsigned varints."""

import base64
import hashlib
from dataclasses import dataclass
from typing import Any, Tuple

from .offset_io import read_byte

DAG_PB = 0x70
SHA2_256 = 0x12
IDENTITY = 0x00

_MAX_VARINT_LEN = 9
_BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

_HASHERS = {
    0x11: hashlib.sha1,
    0x12: hashlib.sha256,
    0x13: hashlib.sha512,
    0x14: hashlib.sha3_512,
    0x16: hashlib.sha3_256,
    0xB220: lambda: hashlib.blake2b(digest_size=32),
    0xB240: lambda: hashlib.blake2b(digest_size=64),
}


def _unexpected_eof() -> EOFError:
    from .util import UnexpectedEOFError

    return UnexpectedEOFError()


def encode_uvarint(value: int) -> bytes:
    """Encode a non-negative integer as an unsigned varint."""
    if value < 0:
        raise ValueError("varint must be non-negative")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def uvarint_size(value: int) -> int:
    """Number of bytes the varint encoding of value takes."""
    return len(encode_uvarint(value))


def _decode_uvarint(data: bytes, pos: int) -> Tuple[int, int]:
    value = 0
    shift = 0
    for i in range(_MAX_VARINT_LEN):
        if pos + i >= len(data):
            raise ValueError("varints malformed, could not reach the end")
        byte = data[pos + i]
        if byte < 0x80:
            if i == _MAX_VARINT_LEN - 1 and byte > 1:
                raise ValueError("varints larger than uint63 not supported")
            if byte == 0 and i > 0:
                raise ValueError("varint not minimally encoded")
            return value | (byte << shift), pos + i + 1
        value |= (byte & 0x7F) << shift
        shift += 7
    raise ValueError("varints larger than uint63 not supported")


def read_uvarint(stream: Any) -> int:
    """Read an unsigned varint; EOFError if nothing is left, UnexpectedEOFError if cut short."""
    value = 0
    shift = 0
    for i in range(_MAX_VARINT_LEN):
        try:
            byte = read_byte(stream)
        except EOFError:
            if i:
                raise _unexpected_eof() from None
            raise
        if byte < 0x80:
            if i == _MAX_VARINT_LEN - 1 and byte > 1:
                raise ValueError("varints larger than uint63 not supported")
            if byte == 0 and i > 0:
                raise ValueError("varint not minimally encoded")
            return value | (byte << shift)
        value |= (byte & 0x7F) << shift
        shift += 7
    raise ValueError("varints larger than uint63 not supported")


def _b58encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    chars = []
    while number:
        number, rem = divmod(number, 58)
        chars.append(_BASE58[rem])
    zeros = len(data) - len(data.lstrip(b"\0"))
    return "1" * zeros + "".join(reversed(chars))


def _b58decode(text: str) -> bytes:
    number = 0
    for char in text:
        index = _BASE58.find(char)
        if index < 0:
            raise ValueError(f"invalid base58 character: {char!r}")
        number = number * 58 + index
    zeros = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\0" * zeros + body


def sum_multihash(data: bytes, code: int, length: int = -1) -> bytes:
    """Hash data with the multihash function code, truncated to length (-1 for full)."""
    if code == IDENTITY:
        if length not in (-1, len(data)):
            raise ValueError(
                f"the length of the identity hash ({length}) must be equal to "
                f"the length of the data ({len(data)})"
            )
        digest = bytes(data)
    else:
        factory = _HASHERS.get(code)
        if factory is None:
            raise ValueError(f"no hash function registered for multihash code {code:#x}")
        hasher = factory()
        hasher.update(data)
        digest = hasher.digest()
        if length > len(digest):
            raise ValueError("requested length was too large for digest")
        if length >= 0:
            digest = digest[:length]
    return encode_uvarint(code) + encode_uvarint(len(digest)) + digest


@dataclass(frozen=True)
class Prefix:
    """The parameters that produced a CID, without its digest."""

    version: int
    codec: int
    mh_type: int
    mh_length: int

    def sum(self, data: bytes) -> "Cid":
        mh = sum_multihash(data, self.mh_type, self.mh_length)
        if self.version == 0:
            return new_cid_v0(mh)
        if self.version == 1:
            return new_cid_v1(self.codec, mh)
        raise ValueError(f"invalid cid version: {self.version}")


@dataclass(frozen=True)
class Cid:
    """A content identifier: version, content codec and multihash."""

    version: int
    codec: int
    multihash: bytes

    def to_bytes(self) -> bytes:
        if self.version == 0:
            return self.multihash
        return encode_uvarint(self.version) + encode_uvarint(self.codec) + self.multihash

    def encode(self) -> str:
        if self.version == 0:
            return _b58encode(self.multihash)
        text = base64.b32encode(self.to_bytes()).decode("ascii")
        return "b" + text.lower().rstrip("=")

    def prefix(self) -> Prefix:
        code, pos = _decode_uvarint(self.multihash, 0)
        length, _ = _decode_uvarint(self.multihash, pos)
        return Prefix(self.version, self.codec, code, length)

    def hash(self) -> bytes:
        return self.multihash

    def __str__(self) -> str:
        return self.encode()


def new_cid_v0(multihash: bytes) -> Cid:
    return Cid(0, DAG_PB, bytes(multihash))


def new_cid_v1(codec: int, multihash: bytes) -> Cid:
    return Cid(1, codec, bytes(multihash))


def cid_from_bytes(data: bytes) -> Tuple[int, Cid]:
    """Decode a binary CID at the start of data; return (bytes used, cid)."""
    data = bytes(data)
    if len(data) > 2 and data[0] == SHA2_256 and data[1] == 32:
        if len(data) < 34:
            raise ValueError("not enough bytes for cid v0")
        return 34, new_cid_v0(data[:34])
    version, pos = _decode_uvarint(data, 0)
    if version != 1:
        raise ValueError(f"expected 1 as the cid version number, got: {version}")
    codec, pos = _decode_uvarint(data, pos)
    start = pos
    _, pos = _decode_uvarint(data, pos)
    length, pos = _decode_uvarint(data, pos)
    end = pos + length
    if end > len(data):
        raise ValueError("length greater than remaining number of bytes in buffer")
    return end, new_cid_v1(codec, data[start:end])


def _next_uvarint(stream: Any) -> int:
    try:
        return read_uvarint(stream)
    except EOFError as exc:
        if type(exc) is EOFError:
            raise _unexpected_eof() from None
        raise


def _read_exact(stream: Any, size: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = stream.read(size - len(chunks))
        if not chunk:
            raise _unexpected_eof()
        chunks += chunk
    return bytes(chunks)


def cid_from_reader(stream: Any) -> Tuple[int, Cid]:
    """Read a binary CID from stream; return (bytes used, cid)."""
    first = read_uvarint(stream)
    if first == SHA2_256:
        second = _next_uvarint(stream)
        if second == 32:
            digest = _read_exact(stream, 32)
            return 34, new_cid_v0(bytes([SHA2_256, 32]) + digest)
    if first != 1:
        raise ValueError(f"expected 1 as the cid version number, got: {first}")
    codec = _next_uvarint(stream)
    code = _next_uvarint(stream)
    length = _next_uvarint(stream)
    digest = _read_exact(stream, length)
    multihash = encode_uvarint(code) + encode_uvarint(length) + digest
    used = uvarint_size(first) + uvarint_size(codec) + len(multihash)
    return used, new_cid_v1(codec, multihash)


def decode_cid(text: str) -> Cid:
    """Parse a CID from its string form."""
    if len(text) == 46 and text.startswith("Qm"):
        data = _b58decode(text)
    else:
        if not text:
            raise ValueError("cid too short")
        base, body = text[0], text[1:]
        if base in "bB":
            body = body.upper()
            data = base64.b32decode(body + "=" * (-len(body) % 8))
        elif base == "z":
            data = _b58decode(body)
        elif base in "fF":
            data = bytes.fromhex(body)
        else:
            raise ValueError(f"unsupported multibase prefix: {base!r}")
    used, cid = cid_from_bytes(data)
    if used != len(data):
        raise ValueError("trailing bytes in cid")
    return cid