"""Options that tune how CAR files are read and written."""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .carv1 import DEFAULT_MAX_ALLOWED_HEADER_SIZE, DEFAULT_MAX_ALLOWED_SECTION_SIZE

DEFAULT_MAX_INDEX_CID_SIZE = 2 << 10

CAR_INDEX_SORTED = 0x0400
CAR_MULTIHASH_INDEX_SORTED = 0x0401
CAR_INDEX_NONE = 0x300000

_MAX_INT64 = (1 << 63) - 1

__all__ = [
    "CAR_INDEX_NONE",
    "CAR_INDEX_SORTED",
    "CAR_MULTIHASH_INDEX_SORTED",
    "DEFAULT_MAX_ALLOWED_HEADER_SIZE",
    "DEFAULT_MAX_ALLOWED_SECTION_SIZE",
    "DEFAULT_MAX_INDEX_CID_SIZE",
    "Options",
    "apply_options",
    "max_allowed_header_size",
    "max_allowed_section_size",
    "max_index_cid_size",
    "max_traversal_links",
    "store_identity_cids",
    "use_data_padding",
    "use_index_codec",
    "use_index_padding",
    "without_index",
    "zero_length_section_as_eof",
]


@dataclass
class Options:
    """Settings gathered from a sequence of option callables."""

    data_padding: int = 0
    index_padding: int = 0
    index_codec: int = 0
    zero_length_section_as_eof: bool = False
    max_index_cid_size: int = 0
    store_identity_cids: bool = False
    blockstore_allow_duplicate_puts: bool = False
    blockstore_use_whole_cids: bool = False
    max_traversal_links: int = _MAX_INT64
    write_as_car_v1: bool = False
    traversal_prototype_chooser: Optional[Any] = None
    max_allowed_header_size: int = DEFAULT_MAX_ALLOWED_HEADER_SIZE
    max_allowed_section_size: int = DEFAULT_MAX_ALLOWED_SECTION_SIZE


Option = Callable[[Options], None]


def apply_options(*args: Option) -> Options:
    """Apply the options in order and fill in defaults for unset fields."""
    opts = Options()
    for option in args:
        option(opts)
    if opts.index_codec == 0:
        opts.index_codec = CAR_MULTIHASH_INDEX_SORTED
    if opts.max_index_cid_size == 0:
        opts.max_index_cid_size = DEFAULT_MAX_INDEX_CID_SIZE
    return opts


def _setter(name: str, value: Any) -> Option:
    def option(opts: Options) -> None:
        setattr(opts, name, value)

    return option


def zero_length_section_as_eof(enable: bool) -> Option:
    """Treat a zero-length section as the end of a CARv1 payload."""
    return _setter("zero_length_section_as_eof", enable)


def use_data_padding(padding: int) -> Option:
    """Padding between the CARv2 header and its data payload."""
    return _setter("data_padding", padding)


def use_index_padding(padding: int) -> Option:
    """Padding between the data payload and its index."""
    return _setter("index_padding", padding)


def use_index_codec(codec: int) -> Option:
    """Codec used when generating an index."""
    return _setter("index_codec", codec)


def without_index() -> Option:
    """Produce no index."""
    return _setter("index_codec", CAR_INDEX_NONE)


def store_identity_cids(enable: bool) -> Option:
    """Keep sections whose CIDs use the identity multihash."""
    return _setter("store_identity_cids", enable)


def max_index_cid_size(size: int) -> Option:
    """Largest CID, in bytes, that may be indexed."""
    return _setter("max_index_cid_size", size)


def max_allowed_header_size(size: int) -> Option:
    """Largest CARv1 header, in bytes, accepted when decoding."""
    return _setter("max_allowed_header_size", size)


def max_allowed_section_size(size: int) -> Option:
    """Largest CARv1 section, in bytes, accepted when decoding."""
    return _setter("max_allowed_section_size", size)


def max_traversal_links(count: int) -> Option:
    """Number of links a selector traversal may follow before failing."""
    return _setter("max_traversal_links", count)