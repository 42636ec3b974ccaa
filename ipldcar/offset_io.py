"""Stream helpers: offset-based readers and writers, byte reads and forward-only seeking."""

import io
import mmap
import os
import threading
from typing import Any


def read_at(stream: Any, size: int, offset: int) -> bytes:
    """Read up to size bytes at an absolute offset of stream; size < 0 reads to the end."""
    if hasattr(stream, "read_at"):
        return stream.read_at(size, offset)
    if isinstance(stream, (bytes, bytearray, memoryview, mmap.mmap)):
        if offset >= len(stream):
            return b""
        end = len(stream) if size < 0 else offset + size
        return bytes(stream[offset:end])
    lock = getattr(stream, "_ipldcar_lock", None)
    if lock is None:
        lock = threading.Lock()
        try:
            stream._ipldcar_lock = lock
        except AttributeError:
            pass
    with lock:
        stream.seek(offset, os.SEEK_SET)
        return stream.read(size)


def read_byte(stream: Any) -> int:
    """Read one byte from stream, raising EOFError at its end."""
    if hasattr(stream, "read_byte"):
        return stream.read_byte()
    chunk = stream.read(1)
    if not chunk:
        raise EOFError("EOF")
    return chunk[0]


class OffsetReadSeeker:
    """Reads a source from a base offset onward, without knowing its end."""

    def __init__(self, source: Any, offset: int = 0) -> None:
        if isinstance(source, OffsetReadSeeker):
            self._source = source._source
            self._base = source._base + offset
        else:
            self._source = source
            self._base = offset
        self._off = self._base

    def read(self, size: int = -1) -> bytes:
        data = read_at(self._source, size, self._off)
        self._off += len(data)
        return data

    def read_at(self, size: int, offset: int) -> bytes:
        if offset < 0:
            return b""
        return read_at(self._source, size, offset + self._base)

    def read_byte(self) -> int:
        data = self.read(1)
        if not data:
            raise EOFError("EOF")
        return data[0]

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            self._off = offset + self._base
        elif whence == os.SEEK_CUR:
            if offset < 0 and -offset > self._off:
                raise ValueError("Seek offset underflow")
            self._off += offset
        else:
            raise ValueError("unsupported whence: SeekEnd")
        return self.tell()

    def tell(self) -> int:
        """Position relative to the base offset."""
        return self._off - self._base

    def offset(self) -> int:
        """Absolute position in the underlying source."""
        return self._off

    def seekable(self) -> bool:
        return True


class OffsetWriteSeeker:
    """Writes into a target starting at a base offset."""

    def __init__(self, target: Any, offset: int = 0) -> None:
        self._target = target
        self._base = offset
        self._offset = offset

    def write(self, data: bytes) -> int:
        if hasattr(self._target, "write_at"):
            written = self._target.write_at(data, self._offset)
        else:
            self._target.seek(self._offset, os.SEEK_SET)
            written = self._target.write(data)
            if written is None:
                written = len(data)
        self._offset += written
        return written

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            self._offset = offset + self._base
        elif whence == os.SEEK_CUR:
            self._offset += offset
        else:
            raise ValueError("unsupported whence: SeekEnd")
        return self.tell()

    def tell(self) -> int:
        """Number of bytes past the base offset."""
        return self._offset - self._base


class DiscardingReadSeeker:
    """Gives a plain stream forward-only seeking by reading and discarding bytes."""

    _CHUNK = 64 * 1024

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._offset = 0

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        self._offset += len(data)
        return data

    def read_byte(self) -> int:
        data = self.read(1)
        if not data:
            raise EOFError("EOF")
        return data[0]

    def _discard(self, count: int) -> None:
        while count > 0:
            chunk = self.read(min(count, self._CHUNK))
            if not chunk:
                raise EOFError("EOF")
            count -= len(chunk)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            distance = offset - self._offset
            if distance < 0:
                raise ValueError("unsupported rewind via whence: SeekStart")
            self._discard(distance)
        elif whence == os.SEEK_CUR:
            if offset < 0:
                raise ValueError("unsupported rewind via whence: SeekCurrent")
            self._discard(offset)
        else:
            raise ValueError("unsupported whence: SeekEnd")
        return self._offset

    def tell(self) -> int:
        return self._offset

    def seekable(self) -> bool:
        return True


def to_read_seeker(stream: Any) -> Any:
    """Return stream if it can seek, otherwise a forward-only seeking wrapper."""
    if callable(getattr(stream, "seek", None)):
        seekable = getattr(stream, "seekable", None)
        try:
            if seekable is None or seekable():
                return stream
        except (OSError, ValueError, io.UnsupportedOperation):
            pass
    return DiscardingReadSeeker(stream)