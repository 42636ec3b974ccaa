"""Read, inspect and rewrite CARv1 and CARv2 content-addressable archives."""

__version__ = "0.1.0"
__all__ = ["carv1", "cid", "offset_io", "options", "reader", "search", "util", "writer"]