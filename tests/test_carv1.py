import io

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ipldcar.carv1 import (
    Block,
    CarHeader,
    CarReader,
    encode_header,
    header_size,
    load_car,
    read_header,
    write_car,
    write_header,
)
from ipldcar.cid import Prefix
from ipldcar.util import HeaderTooLargeError, SectionTooLargeError, UnexpectedEOFError

FIXTURE = bytes.fromhex(
    "3aa265726f6f747381d82a58250001711220151fe9e73c6267a7060c6f6c4cca943c236f4b1967"
    "23489608edb42a8b8fa80b6776657273696f6e012c01711220151fe9e73c6267a7060c6f6c4cca"
    "943c236f4b196723489608edb42a8b8fa80ba165646f646779f5"
)
FIXTURE_CID = "bafyreiavd7u6opdcm6tqmddpnrgmvfb4enxuwglhenejmchnwqvixd5ibm"


def _raw(data):
    return Prefix(1, 0x55, 0x12, -1).sum(data)


def _cbor(data):
    return Prefix(1, 0x71, 0x12, -1).sum(data)


class _Store:
    def __init__(self):
        self.blocks = {}
        self.order = []

    def put(self, block):
        self.blocks[block.cid] = block.data
        self.order.append(block.cid)


class _BatchStore:
    def __init__(self):
        self.batches = []

    def put_many(self, blocks):
        self.batches.append(list(blocks))


def _load(data):
    reader = CarReader(io.BytesIO(data))
    block = reader.next_block()
    assert str(block.cid) == FIXTURE_CID
    return reader


def test_roundtrip():
    blocks = {}
    links = {}

    def add(cid, data, children=()):
        blocks[cid] = data
        links[cid] = list(children)
        return cid

    a = add(_raw(b"aaaa"), b"aaaa")
    b = add(_raw(b"bbbb"), b"bbbb")
    c = add(_raw(b"cccc"), b"cccc")
    nd1 = add(_cbor(b"nd1"), b"nd1", [a])
    nd2 = add(_cbor(b"nd2"), b"nd2", [nd1, b])
    nd3 = add(_cbor(b"nd3"), b"nd3", [nd2, c])

    buf = io.BytesIO()
    write_car(blocks.__getitem__, links.__getitem__, [nd3], buf)
    buf.seek(0)

    store = _Store()
    header = load_car(store, buf)
    assert header.roots == [nd3]
    assert header.version == 1
    assert store.blocks == blocks
    assert store.order == [nd3, nd2, nd1, a, b, c]


def test_write_car_writes_shared_blocks_once():
    leaf = _raw(b"leaf")
    left = _cbor(b"left")
    right = _cbor(b"right")
    blocks = {leaf: b"leaf", left: b"left", right: b"right"}
    links = {leaf: [], left: [leaf], right: [leaf]}
    buf = io.BytesIO()
    write_car(blocks.__getitem__, links.__getitem__, [left, right], buf)
    buf.seek(0)
    cids = [block.cid for block in CarReader(buf)]
    assert cids == [left, leaf, right]


def test_load_car_batches_with_put_many():
    blocks = {_raw(str(i).encode()): str(i).encode() for i in range(1500)}
    buf = io.BytesIO()
    write_car(blocks.__getitem__, lambda cid: [], list(blocks), buf)
    buf.seek(0)
    store = _BatchStore()
    header = load_car(store, buf)
    assert len(header.roots) == 1500
    assert [len(batch) for batch in store.batches] == [1001, 499]
    loaded = {block.cid: block.data for batch in store.batches for block in batch}
    assert loaded == blocks


def test_eof_clean():
    reader = _load(FIXTURE)
    assert reader.next_block() is None


def test_eof_bad_varint():
    reader = _load(FIXTURE + bytes([160]))
    with pytest.raises(UnexpectedEOFError):
        reader.next_block()


def test_eof_truncated_block():
    reader = _load(FIXTURE + bytes([100, 0, 0]))
    with pytest.raises(UnexpectedEOFError):
        reader.next_block()


def test_iteration_yields_all_blocks():
    blocks = list(CarReader(io.BytesIO(FIXTURE)))
    assert len(blocks) == 1
    assert blocks[0] == Block(blocks[0].cid, bytes.fromhex("a165646f646779f5"))
    assert str(blocks[0].cid) == FIXTURE_CID


def test_content_mismatch_is_error():
    corrupt = FIXTURE[:-1] + b"\xf4"
    reader = CarReader(io.BytesIO(corrupt))
    with pytest.raises(ValueError, match="mismatch in content integrity"):
        reader.next_block()


def test_section_too_large():
    reader = CarReader(io.BytesIO(FIXTURE), max_section_size=10)
    with pytest.raises(SectionTooLargeError):
        reader.next_block()


def test_header_too_large():
    with pytest.raises(HeaderTooLargeError) as info:
        read_header(io.BytesIO(FIXTURE), 10)
    assert str(info.value) == "invalid header data, length of read beyond allowable maximum"


def test_read_header_of_empty_stream_is_eof():
    with pytest.raises(EOFError):
        read_header(io.BytesIO(b""), 100)


def test_sanity_header_is_accepted():
    data = bytes.fromhex("1ca265726f6f747381d82a4800010000036162636776657273696f6e01")
    reader = CarReader(io.BytesIO(data))
    assert reader.header.version == 1
    assert len(reader.header.roots) == 1
    assert reader.header.roots[0].to_bytes() == bytes.fromhex("01000003616263")


@pytest.mark.parametrize(
    "hex_data, message, prefix",
    [
        ("0aa16776657273696f6e02", "invalid car version: 2", None),
        ("13a165726f6f747381d82a480001000003616263", "invalid car version: 0", None),
        ("1da265726f6f747381d82a4800010000036162636776657273696f6e6131", None, "invalid header: "),
        ("0aa16776657273696f6e01", "empty car, no roots", None),
        ("20a265726f6f7473a163636964d82a4800010000036162636776657273696f6e01", None, "invalid header: "),
        ("22a364626c6970f565726f6f747381d82a4800010000036162636776657273696f6e01", None, "invalid header: "),
        ("03820180", None, "invalid header: "),
        ("01f6", None, "invalid car version: 0"),
    ],
)
def test_bad_headers(hex_data, message, prefix):
    with pytest.raises(ValueError) as info:
        CarReader(io.BytesIO(bytes.fromhex(hex_data)))
    if message is not None:
        assert str(info.value) == message
    else:
        assert str(info.value).startswith(prefix)


_ONE = _raw(b"fish")
_ANOTHER = _raw(b"lobster")


@pytest.mark.parametrize(
    "one, other, want",
    [
        (CarHeader([], 1), CarHeader([], 1), True),
        (CarHeader([_ONE], 1), CarHeader([_ONE], 1), True),
        (CarHeader([_ONE, _ANOTHER], 1), CarHeader([_ANOTHER, _ONE], 1), True),
        (CarHeader([_ONE], 1), CarHeader([_ANOTHER], 1), False),
        (CarHeader([_ONE], 0), CarHeader([_ANOTHER], 1), False),
        (CarHeader([], 0), CarHeader([], 1), False),
        (CarHeader(), CarHeader(), True),
    ],
)
def test_header_matches(one, other, want):
    assert one.matches(other) is want


def test_zero_length_section_without_option_is_error():
    reader = CarReader(io.BytesIO(FIXTURE + b"\x00"))
    assert reader.next_block() is not None and str(reader.header.roots[0]) == FIXTURE_CID
    with pytest.raises(ValueError, match="varints malformed, could not reach the end"):
        reader.next_block()


def test_zero_length_section_with_option_is_end():
    reader = CarReader(io.BytesIO(FIXTURE + b"\x00" * 8), zero_len_as_eof=True)
    assert len(list(reader)) == 1


def test_encode_empty_header():
    header = CarHeader([], 1)
    assert encode_header(header) == bytes.fromhex("a265726f6f7473806776657273696f6e01")
    assert header_size(header) == 18


@settings(max_examples=30)
@given(st.lists(st.binary(max_size=30), max_size=5), st.integers(min_value=0, max_value=2**32))
def test_header_size_matches_written_and_roundtrips(payloads, version):
    header = CarHeader([_raw(p) for p in payloads], version)
    buf = io.BytesIO()
    written = write_header(header, buf)
    assert written == len(buf.getvalue())
    assert header_size(header) == len(buf.getvalue())
    buf.seek(0)
    assert read_header(buf, 1 << 20) == header