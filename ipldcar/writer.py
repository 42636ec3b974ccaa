"""Rewriting parts of existing CAR files in place."""

import io
import os
import struct
from typing import Iterable, Union

from .carv1 import CarHeader, read_header, write_header
from .cid import Cid
from .options import Option, apply_options
from .util import UnexpectedEOFError

_V2_HEADER_SIZE = 40
_CHARACTERISTICS_SIZE = 16

__all__ = ["replace_roots_in_file"]


def _read_data_offset(stream) -> int:
    """Read the fixed CARv2 header that follows the pragma; return its data offset."""
    data = stream.read(_V2_HEADER_SIZE)
    if len(data) < _V2_HEADER_SIZE:
        if data:
            raise UnexpectedEOFError()
        raise EOFError("EOF")
    (data_offset,) = struct.unpack_from("<Q", data, _CHARACTERISTICS_SIZE)
    return data_offset


def replace_roots_in_file(
    path: Union[str, "os.PathLike[str]"], roots: Iterable[Cid], *args: Option
) -> None:
    """Replace the root CIDs of the CARv1 or CARv2 file at path.

    The roots are replaced only if the new serialized header is exactly as
    long as the existing one; otherwise ValueError is raised and the file is
    left untouched.
    """
    options = apply_options(*args)
    with open(path, "r+b") as handle:
        header = read_header(handle, options.max_allowed_header_size)
        if header.version == 1:
            new_header_offset = 0
            current_size = handle.tell()
        elif header.version == 2:
            new_header_offset = _read_data_offset(handle)
            handle.seek(new_header_offset, os.SEEK_SET)
            read_header(handle, options.max_allowed_header_size)
            current_size = handle.tell() - new_header_offset
        else:
            raise ValueError(f"invalid car version: {header.version}")

        buffer = io.BytesIO()
        write_header(CarHeader(list(roots), 1), buffer)
        replacement = buffer.getvalue()
        if current_size != len(replacement):
            raise ValueError(
                f"current header size ({current_size}) must match "
                f"replacement header size ({len(replacement)})"
            )
        handle.seek(new_header_offset, os.SEEK_SET)
        handle.write(replacement)