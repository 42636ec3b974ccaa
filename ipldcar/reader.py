"""Reading CARv1 and CARv2 payloads: version detection, roots and inspection."""

import mmap
import os
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import cid as _cid
from .carv1 import read_header
from .offset_io import OffsetReadSeeker, read_at
from .options import Option, apply_options
from .util import SectionTooLargeError, UnexpectedEOFError

PRAGMA_SIZE = 11
HEADER_SIZE = 40

__all__ = ["HEADER_SIZE", "PRAGMA_SIZE", "Reader", "Stats", "open_reader", "read_version"]


@dataclass(frozen=True)
class _V2Header:
    """The fixed-size CARv2 header that follows the pragma."""

    characteristics: bytes = bytes(16)
    data_offset: int = 0
    data_size: int = 0
    index_offset: int = 0

    def has_index(self) -> bool:
        return self.index_offset != 0

    @classmethod
    def parse(cls, data: bytes) -> "_V2Header":
        if len(data) < HEADER_SIZE:
            if data:
                raise UnexpectedEOFError()
            raise EOFError("EOF")
        data_offset, data_size, index_offset = struct.unpack_from("<QQQ", data, 16)
        return cls(bytes(data[:16]), data_offset, data_size, index_offset)


class _SectionReader:
    """Reads a bounded window of a source, seekable within it."""

    def __init__(self, source: Any, offset: int, size: int) -> None:
        self._source = source
        self._base = offset
        self._limit = offset + size
        self._off = offset

    def read(self, size: int = -1) -> bytes:
        remaining = self._limit - self._off
        if remaining <= 0:
            return b""
        if size < 0 or size > remaining:
            size = remaining
        data = read_at(self._source, size, self._off)
        self._off += len(data)
        return data

    def read_byte(self) -> int:
        data = self.read(1)
        if not data:
            raise EOFError("EOF")
        return data[0]

    def read_at(self, size: int, offset: int) -> bytes:
        length = self._limit - self._base
        if offset < 0 or offset >= length:
            return b""
        remaining = length - offset
        if size < 0 or size > remaining:
            size = remaining
        return read_at(self._source, size, self._base + offset)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            target = self._base + offset
        elif whence == os.SEEK_CUR:
            target = self._off + offset
        elif whence == os.SEEK_END:
            target = self._limit + offset
        else:
            raise ValueError("Seek: invalid whence")
        if target < self._base:
            raise ValueError("Seek: invalid offset")
        self._off = target
        return self._off - self._base

    def tell(self) -> int:
        return self._off - self._base

    def seekable(self) -> bool:
        return True


@dataclass
class Stats:
    """A summary of a CAR's contents, as produced by Reader.inspect."""

    version: int = 0
    header: _V2Header = field(default_factory=_V2Header)
    roots: List[_cid.Cid] = field(default_factory=list)
    roots_present: bool = False
    block_count: int = 0
    codec_counts: Dict[int, int] = field(default_factory=dict)
    mh_type_counts: Dict[int, int] = field(default_factory=dict)
    avg_cid_length: int = 0
    max_cid_length: int = 0
    min_cid_length: int = 0
    avg_block_length: int = 0
    max_block_length: int = 0
    min_block_length: int = 0
    index_codec: int = 0


def read_version(stream: Any, *args: Option) -> int:
    """Read the version from the pragma or CARv1 header at the start of stream."""
    opts = apply_options(*args)
    return read_header(stream, opts.max_allowed_header_size).version


class Reader:
    """Reads a CARv1 or CARv2 payload from bytes, an mmap or a seekable file."""

    def __init__(self, source: Any, *args: Option) -> None:
        self._source = source
        self._opts = apply_options(*args)
        self._roots: Optional[List[_cid.Cid]] = None
        self._closer: Optional[Any] = None
        self.header = _V2Header()
        self.version = read_version(OffsetReadSeeker(source, 0), *args)
        if self.version not in (1, 2):
            raise ValueError(f"invalid car version: {self.version}")
        if self.version == 2:
            self.header = _V2Header.parse(read_at(source, HEADER_SIZE, PRAGMA_SIZE))

    def roots(self) -> List[_cid.Cid]:
        """Root CIDs from the data payload header, read on first use."""
        if self._roots is None:
            header = read_header(self.data_reader(), self._opts.max_allowed_header_size)
            self._roots = header.roots
        return self._roots

    def data_reader(self) -> Any:
        """A reader positioned at the start of the CARv1 data payload."""
        if self.version == 2:
            return _SectionReader(self._source, self.header.data_offset, self.header.data_size)
        return OffsetReadSeeker(self._source, 0)

    def _index_reader(self) -> Optional[OffsetReadSeeker]:
        if self.version == 1 or not self.header.has_index():
            return None
        return OffsetReadSeeker(self._source, self.header.index_offset)

    def inspect(self, validate_block_hash: bool = False) -> Stats:
        """Scan the payload, validating its structure, and summarise it."""
        stats = Stats(version=self.version, header=self.header)
        total_cid_length = 0
        total_block_length = 0
        min_cid_length: Optional[int] = None
        min_block_length: Optional[int] = None

        reader = self.data_reader()
        stats.roots = read_header(reader, self._opts.max_allowed_header_size).roots
        present = [False] * len(stats.roots)
        present_count = 0

        while True:
            try:
                section_length = _cid.read_uvarint(reader)
            except EOFError as exc:
                if type(exc) is EOFError:
                    break
                raise
            if section_length == 0 and self._opts.zero_length_section_as_eof:
                break
            if section_length > self._opts.max_allowed_section_size:
                raise SectionTooLargeError()

            cid_length, block_cid = _cid.cid_from_reader(reader)
            if section_length < cid_length:
                raise ValueError("section length shorter than CID length")

            if present_count < len(stats.roots):
                for position, root in enumerate(stats.roots):
                    if not present[position] and block_cid == root:
                        present[position] = True
                        present_count += 1

            prefix = block_cid.prefix()
            stats.codec_counts[prefix.codec] = stats.codec_counts.get(prefix.codec, 0) + 1
            stats.mh_type_counts[prefix.mh_type] = stats.mh_type_counts.get(prefix.mh_type, 0) + 1

            block_length = section_length - cid_length
            if validate_block_hash:
                self._validate_block(reader, block_cid, prefix, block_length)
            else:
                reader.seek(block_length, os.SEEK_CUR)

            stats.block_count += 1
            total_cid_length += cid_length
            total_block_length += block_length
            min_cid_length = cid_length if min_cid_length is None else min(min_cid_length, cid_length)
            stats.max_cid_length = max(stats.max_cid_length, cid_length)
            min_block_length = (
                block_length if min_block_length is None else min(min_block_length, block_length)
            )
            stats.max_block_length = max(stats.max_block_length, block_length)

        stats.roots_present = len(stats.roots) == present_count
        if stats.block_count:
            stats.min_cid_length = min_cid_length or 0
            stats.min_block_length = min_block_length or 0
            stats.avg_cid_length = total_cid_length // stats.block_count
            stats.avg_block_length = total_block_length // stats.block_count

        if stats.version != 1 and stats.header.has_index():
            index_reader = self._index_reader()
            stats.index_codec = _cid.read_uvarint(index_reader)
        return stats

    @staticmethod
    def _validate_block(reader: Any, block_cid: _cid.Cid, prefix: _cid.Prefix, length: int) -> None:
        data = reader.read(length) if length else b""
        mh_length = -1 if prefix.mh_type == _cid.IDENTITY else prefix.mh_length
        multihash = _cid.sum_multihash(data, prefix.mh_type, mh_length)
        if prefix.version == 0:
            got = _cid.new_cid_v0(multihash)
        elif prefix.version == 1:
            got = _cid.new_cid_v1(prefix.codec, multihash)
        else:
            raise ValueError(f"invalid cid version: {prefix.version}")
        if got != block_cid:
            raise ValueError(f"mismatch in content integrity, expected: {block_cid}, got: {got}")

    def close(self) -> None:
        """Release the mapping made by open_reader, if any."""
        if self._closer is not None:
            self._closer.close()

    def __enter__(self) -> "Reader":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def open_reader(path: "os.PathLike[str] | str", *args: Option) -> Reader:
    """Memory-map the file at path and return a Reader over it."""
    with open(path, "rb") as handle:
        size = os.fstat(handle.fileno()).st_size
        source: Any = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ) if size else b""
    try:
        reader = Reader(source, *args)
    except BaseException:
        if isinstance(source, mmap.mmap):
            source.close()
        raise
    if isinstance(source, mmap.mmap):
        reader._closer = source
    return reader