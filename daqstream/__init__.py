"""Framing, decoding and consumer bookkeeping for a msgpack-based data acquisition streaming protocol."""

__version__ = "1.5.0"

__all__ = [
    "types",
    "meta",
    "writer",
    "datatypes",
    "producer",
    "subscribed",
    "container",
    "siggen",
]