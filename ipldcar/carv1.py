"""CARv1 format: header encoding, block sections, reading and writing."""

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Iterable, Iterator, List, Optional

import cbor2

from . import util
from .cid import Cid, cid_from_bytes

DEFAULT_MAX_ALLOWED_HEADER_SIZE = 32 << 20
DEFAULT_MAX_ALLOWED_SECTION_SIZE = 8 << 20

_CID_TAG = 42
_BATCH_SIZE = 1000


@dataclass
class CarHeader:
    """The CBOR header at the start of a CARv1 payload."""

    roots: List[Cid] = field(default_factory=list)
    version: int = 0

    def matches(self, other: "CarHeader") -> bool:
        """True if both headers have the same version and the same roots, in any order."""
        if self.version != other.version:
            return False
        if len(self.roots) != len(other.roots):
            return False
        if len(self.roots) == 1:
            return self.roots[0] == other.roots[0]
        return all(root in other.roots for root in self.roots)


@dataclass(frozen=True)
class Block:
    """A block of data together with the CID that names it."""

    cid: Cid
    data: bytes


def encode_header(header: CarHeader) -> bytes:
    """Serialize a header to its CBOR form."""
    roots = [cbor2.CBORTag(_CID_TAG, b"\x00" + root.to_bytes()) for root in header.roots]
    return cbor2.dumps({"roots": roots, "version": header.version})


def _decode_root(item: Any) -> Cid:
    if not isinstance(item, cbor2.CBORTag) or item.tag != _CID_TAG:
        raise ValueError("root is not a tagged CID")
    value = item.value
    if not isinstance(value, (bytes, bytearray)) or not value or value[0] != 0:
        raise ValueError("tagged CID must be bytes with a leading zero")
    data = bytes(value[1:])
    used, cid = cid_from_bytes(data)
    if used != len(data):
        raise ValueError("trailing bytes in tagged CID")
    return cid


def _decode_header(data: bytes) -> CarHeader:
    try:
        obj = cbor2.loads(data)
    except cbor2.CBORDecodeError as exc:
        raise ValueError(str(exc)) from exc
    header = CarHeader()
    if obj is None:
        return header
    if not isinstance(obj, dict):
        raise ValueError(f"expected a map, got {type(obj).__name__}")
    for key, value in obj.items():
        if key == "roots":
            if value is None:
                header.roots = []
            elif isinstance(value, list):
                header.roots = [_decode_root(item) for item in value]
            else:
                raise ValueError(f"roots must be a list, got {type(value).__name__}")
        elif key == "version":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"version must be an unsigned integer, got {value!r}")
            header.version = value
        else:
            raise ValueError(f"unknown field {key!r}")
    return header


def read_header(stream: Any, max_read_bytes: int) -> CarHeader:
    """Read and decode a length-prefixed CAR header from stream."""
    try:
        data = util.ld_read(stream, False, max_read_bytes)
    except util.SectionTooLargeError:
        raise util.HeaderTooLargeError() from None
    try:
        return _decode_header(data)
    except ValueError as exc:
        raise ValueError(f"invalid header: {exc}") from exc


def write_header(header: CarHeader, stream: BinaryIO) -> int:
    """Write header as a length-prefixed section; return bytes written."""
    return util.ld_write(stream, encode_header(header))


def header_size(header: CarHeader) -> int:
    """Number of bytes write_header produces for header."""
    return util.ld_size(encode_header(header))


class CarReader:
    """Reads the header and then the blocks of a CARv1 stream, verifying each block."""

    def __init__(
        self,
        stream: Any,
        zero_len_as_eof: bool = False,
        max_header_size: int = DEFAULT_MAX_ALLOWED_HEADER_SIZE,
        max_section_size: int = DEFAULT_MAX_ALLOWED_SECTION_SIZE,
    ) -> None:
        header = read_header(stream, max_header_size)
        if header.version != 1:
            raise ValueError(f"invalid car version: {header.version}")
        if not header.roots:
            raise ValueError("empty car, no roots")
        self._stream = stream
        self.header = header
        self._zero_len_as_eof = zero_len_as_eof
        self._max_section_size = max_section_size

    def next_block(self) -> Optional[Block]:
        """Return the next verified block, or None at the clean end of the stream."""
        try:
            cid, data = util.read_node(self._stream, self._zero_len_as_eof, self._max_section_size)
        except EOFError as exc:
            if type(exc) is EOFError:
                return None
            raise
        hashed = cid.prefix().sum(data)
        if hashed != cid:
            raise ValueError(f"mismatch in content integrity, name: {cid}, data: {hashed}")
        return Block(cid, data)

    def __iter__(self) -> Iterator[Block]:
        while True:
            block = self.next_block()
            if block is None:
                return
            yield block


def write_car(
    get_block: Callable[[Cid], bytes],
    get_links: Callable[[Cid], Iterable[Cid]],
    roots: Iterable[Cid],
    stream: BinaryIO,
) -> None:
    """Write a CARv1 of every block reachable from roots, depth first, each block once."""
    roots = list(roots)
    write_header(CarHeader(roots, 1), stream)
    seen = set()
    for root in roots:
        stack = [root]
        while stack:
            cid = stack.pop()
            if cid in seen:
                continue
            seen.add(cid)
            util.ld_write(stream, cid.to_bytes(), get_block(cid))
            stack.extend(reversed(list(get_links(cid))))


def load_car(store: Any, stream: Any) -> CarHeader:
    """Put every block of a CARv1 stream into store; return the header.

    The store needs a put(block) method; if it has put_many(blocks), blocks are
    handed over in batches instead.
    """
    reader = CarReader(stream)
    put_many = getattr(store, "put_many", None)
    if callable(put_many):
        batch: List[Block] = []
        for block in reader:
            batch.append(block)
            if len(batch) > _BATCH_SIZE:
                put_many(batch)
                batch = []
        if batch:
            put_many(batch)
    else:
        for block in reader:
            store.put(block)
    return reader.header