# ipldcar

`ipldcar` reads, checks and rewrites CAR (Content Addressable aRchive)
files, the format used to ship IPLD blocks around. It understands CARv1
streams and CARv2 containers (a CARv1 payload behind a fixed header, with an
optional index after it).

The only runtime dependency is `cbor2`.

## Reading a CAR file

`ipldcar.reader.open_reader` memory-maps a file and returns a `Reader`,
which detects whether it holds a CARv1 or a CARv2 and raises `ValueError`
for any other version. `Reader` can also be built directly over bytes, an
mmap or a seekable binary file. It is a context manager.

```python
from ipldcar.reader import open_reader
from ipldcar.options import zero_length_section_as_eof

with open_reader("archive.car", zero_length_section_as_eof(True)) as reader:
    print(reader.version)
    print([root.encode() for root in reader.roots()])
    stats = reader.inspect(True)  # True also hashes every block and checks its CID
    print(stats.block_count, stats.roots_present, stats.codec_counts)
```

- `Reader.roots()` reads the root CIDs from the payload header on first use.
- `Reader.data_reader()` returns a file-like view of the CARv1 payload; for a
  CARv2 this is only the wrapped payload, bounded by the header's data offset
  and size.
- `Reader.inspect(validate_block_hash=False)` walks every section and returns
  a `Stats` record: block count, per-codec and per-multihash-type counts,
  average/minimum/maximum CID and block lengths, whether every root appears
  as a block, and, for a CARv2 with an index, the index codec.
- `ipldcar.reader.read_version(stream)` reads only the version from the start
  of a stream.

## Iterating over blocks of a CARv1 stream

```python
from ipldcar.carv1 import CarReader

with open("archive-v1.car", "rb") as stream:
    for block in CarReader(stream):
        print(block.cid.encode(), len(block.data))
```

Every block is hashed and checked against its CID as it is read; a mismatch
raises `ValueError`. `CarReader.next_block()` returns `None` at a clean end
of the stream.

`ipldcar.carv1` also provides `read_header`, `write_header`, `header_size`,
`encode_header`, `CarHeader.matches` (same version and same roots in any
order), `write_car` (writes every block reachable from the roots, given
functions that fetch a block's data and its links) and `load_car` (puts every
block into a store with `put`, or in batches with `put_many` if present).

## Replacing roots in place

```python
from ipldcar.cid import decode_cid
from ipldcar.writer import replace_roots_in_file

replace_roots_in_file("archive.car", [decode_cid("bafy...")])
```

This works on CARv1 and CARv2 files. The new header must serialize to
exactly the same size as the existing one; otherwise `ValueError` is raised
and the file is left untouched.

## CIDs, multihashes and varints

`ipldcar.cid` has the `Cid` and `Prefix` types, `decode_cid` (base32 `b`,
base58btc `z`, hex `f` and bare `Qm...` CIDv0 strings), `cid_from_bytes`,
`cid_from_reader`, `new_cid_v0`, `new_cid_v1`, `sum_multihash` (identity,
SHA-1, SHA2-256, SHA2-512, SHA3-256, SHA3-512, BLAKE2b-256 and BLAKE2b-512)
and unsigned-varint helpers. `ipldcar.util` reads and writes the
length-prefixed sections (`ld_read`, `ld_write`, `ld_size`, `read_node`).

## Options

Functions in `ipldcar.options` return option callables; pass any number of
them to functions that take options. `apply_options(*opts)` returns the
resulting `Options` with defaults filled in.

- `zero_length_section_as_eof(enable)`: treat a zero-length section as the
  end of the data, allowing null padding after a CARv1.
- `max_allowed_header_size(size)` and `max_allowed_section_size(size)`:
  limits on length prefixes, 32 MiB and 8 MiB by default.
- `use_data_padding`, `use_index_padding`, `use_index_codec`,
  `without_index`, `store_identity_cids`, `max_index_cid_size`,
  `max_traversal_links`: recorded in `Options`; nothing in this package
  writes padding, indexes or traversals, so they have no effect here.

## Errors

Malformed input raises exceptions: `ipldcar.util.SectionTooLargeError`,
`HeaderTooLargeError` and `UnexpectedEOFError` (a subclass of `EOFError`),
and `ValueError` for invalid headers, versions, CIDs or content-integrity
mismatches.

## What this package does not do

- It does not build, read or verify CARv2 indexes; `inspect` reports only
  the index codec.
- It does not wrap a CARv1 into a CARv2, extract a CARv1 from a CARv2, or
  attach an index to a file.
- It does not write CAR files from selector traversals, and offers no
  blockstore.
- There is no command-line tool.