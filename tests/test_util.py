import io

import pytest
from hypothesis import given, strategies as st

from ipldcar.cid import new_cid_v1, sum_multihash
from ipldcar.util import (
    HeaderTooLargeError,
    SectionTooLargeError,
    UnexpectedEOFError,
    ld_read,
    ld_read_size,
    ld_size,
    ld_write,
    read_node,
)

LIMIT = 8 << 20


@given(st.lists(st.binary(max_size=30), max_size=5))
def test_ld_size_matches_written(chunks):
    buffer = io.BytesIO()
    written = ld_write(buffer, *chunks)
    assert len(buffer.getvalue()) == ld_size(*chunks) == written


@given(st.lists(st.binary(max_size=200), max_size=5))
def test_ld_round_trip(chunks):
    buffer = io.BytesIO()
    ld_write(buffer, *chunks)
    buffer.seek(0)
    assert ld_read(buffer, False, LIMIT) == b"".join(chunks)


def test_section_too_large():
    buffer = io.BytesIO()
    ld_write(buffer, b"abcdef")
    buffer.seek(0)
    with pytest.raises(SectionTooLargeError, match="length of read beyond allowable maximum"):
        ld_read(buffer, False, 3)


def test_header_error_message():
    assert str(HeaderTooLargeError()) == "invalid header data, length of read beyond allowable maximum"


def test_zero_length_section():
    with pytest.raises(EOFError):
        ld_read_size(io.BytesIO(b"\x00"), True, LIMIT)
    assert ld_read_size(io.BytesIO(b"\x00"), False, LIMIT) == 0


def test_truncated_section():
    with pytest.raises(UnexpectedEOFError, match="unexpected EOF"):
        ld_read(io.BytesIO(bytes([100, 0, 0])), False, LIMIT)


def test_partial_length_prefix():
    with pytest.raises(UnexpectedEOFError):
        ld_read(io.BytesIO(bytes([160])), False, LIMIT)


def test_clean_eof():
    with pytest.raises(EOFError) as info:
        ld_read(io.BytesIO(b""), False, LIMIT)
    assert not isinstance(info.value, UnexpectedEOFError)


def test_read_node_round_trip():
    data = b"fish"
    cid = new_cid_v1(0x55, sum_multihash(data, 0x12))
    buffer = io.BytesIO()
    ld_write(buffer, cid.to_bytes(), data)
    buffer.seek(0)
    got_cid, got_data = read_node(buffer, False, LIMIT)
    assert got_cid == cid
    assert got_data == data


def test_read_node_of_empty_section_is_malformed():
    with pytest.raises(ValueError, match="varints malformed, could not reach the end"):
        read_node(io.BytesIO(b"\x00"), False, LIMIT)