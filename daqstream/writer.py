"""Framing of meta information and signal data into transport packages."""

from __future__ import annotations

import struct
import threading
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, NamedTuple

import msgpack

from .types import (
    METAINFORMATION_MSGPACK,
    SIGNAL_NUMBER_MASK,
    SIZE_MASK,
    SIZE_SHIFT,
    TYPE_MASK,
    TYPE_SHIFT,
    ProtocolError,
    TransportType,
)

_WORD = struct.Struct("<I")
_TWO_WORDS = struct.Struct("<II")
_META_TYPE_FIELD = _WORD.pack(METAINFORMATION_MSGPACK)
_COMPACT_SIZE_LIMIT = 0xFF


class TransportHeader(NamedTuple):
    """A decoded transport header."""

    type: TransportType
    signal_number: int
    length: int
    header_size: int


def create_transport_header(
    transport_type: TransportType, signal_number: int, size: int
) -> bytes:
    """Build the transport header for a payload of ``size`` bytes.

    Sizes up to 255 fit into the header word; larger sizes are written into
    an additional length field following it.
    """
    header = signal_number | (int(transport_type) << TYPE_SHIFT)
    if size <= _COMPACT_SIZE_LIMIT:
        return _WORD.pack(header | (size << SIZE_SHIFT))
    return _TWO_WORDS.pack(header, size)


def parse_transport_header(data: bytes) -> TransportHeader:
    """Decode the transport header at the start of ``data``."""
    if len(data) < _WORD.size:
        raise ProtocolError("transport header is incomplete")
    (word,) = _WORD.unpack_from(data)
    try:
        transport_type = TransportType((word & TYPE_MASK) >> TYPE_SHIFT)
    except ValueError as error:
        raise ProtocolError(f"unknown transport type in header {word:#010x}") from error
    signal_number = word & SIGNAL_NUMBER_MASK
    length = (word & SIZE_MASK) >> SIZE_SHIFT
    if length:
        return TransportHeader(transport_type, signal_number, length, _WORD.size)
    if len(data) < _TWO_WORDS.size:
        raise ProtocolError("additional length field is incomplete")
    _, length = _TWO_WORDS.unpack_from(data)
    return TransportHeader(transport_type, signal_number, length, _TWO_WORDS.size)


class Writer(ABC):
    """Destination for produced meta information and signal data."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Identifier of the destination."""

    @abstractmethod
    def write_meta_information(self, signal_number: int, data: Any) -> int:
        """Write meta information; signal number 0 is stream related."""

    @abstractmethod
    def write_signal_data(self, signal_number: int, data: bytes) -> int:
        """Write signal data; the signal number must be greater than 0."""


class StreamWriter(Writer):
    """Writes transport packages to a binary stream."""

    def __init__(self, stream: BinaryIO, endpoint: str | None = None) -> None:
        self._stream = stream
        self._endpoint = endpoint if endpoint is not None else str(getattr(stream, "name", ""))
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self._endpoint

    def write_meta_information(self, signal_number: int, data: Any) -> int:
        """Encode ``data`` as MessagePack and write it as meta information."""
        return self.write_msgpack_meta_information(
            signal_number, msgpack.packb(data, use_bin_type=True)
        )

    def write_msgpack_meta_information(self, signal_number: int, data: bytes) -> int:
        """Write already encoded MessagePack meta information."""
        header = create_transport_header(
            TransportType.METAINFORMATION, signal_number, len(data) + len(_META_TYPE_FIELD)
        )
        return self._write(header + _META_TYPE_FIELD + bytes(data))

    def write_signal_data(self, signal_number: int, data: bytes) -> int:
        payload = bytes(data)
        header = create_transport_header(TransportType.SIGNALDATA, signal_number, len(payload))
        return self._write(header + payload)

    def _write(self, package: bytes) -> int:
        with self._lock:
            self._stream.write(package)
        return len(package)