"""Shared protocol constants and the small value types used in signal descriptions."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, ClassVar, MutableMapping, Mapping

# Meta information methods
METHOD = "method"
PARAMS = "params"
META_METHOD_APIVERSION = "apiVersion"
META_METHOD_INIT = "init"
META_METHOD_ALIVE = "alive"
META_METHOD_AVAILABLE = "available"
META_METHOD_UNAVAILABLE = "unavailable"
META_METHOD_SUBSCRIBE = "subscribe"
META_METHOD_UNSUBSCRIBE = "unsubscribe"
META_METHOD_SIGNAL = "signal"

# Stream related keys
VERSION = "version"
META_STREAMID = "streamId"
META_FILLLEVEL = "fillLevel"

# Signal related keys
META_SIGNALID = "signalId"
META_TABLEID = "tableId"
META_DEFINITION = "definition"
META_RULE = "rule"
META_RULETYPE_LINEAR = "linear"
META_RULETYPE_EXPLICIT = "explicit"
META_RULETYPE_CONSTANT = "constant"
META_DELTA = "delta"
META_START = "start"
META_SIZE = "size"
META_DIMENSIONS = "dimensions"
META_DATATYPE = "dataType"
META_NAME = "name"
META_COUNT = "count"
META_VALUEINDEX = "valueIndex"
META_INTERPRETATION = "interpretation"
META_RELATEDSIGNALS = "relatedSignals"
META_TYPE = "type"
META_TIME = "time"
META_STATUS = "status"
META_ABSOLUTE_REFERENCE = "absoluteReference"

META_RANGE = "range"
META_LOW = "low"
META_HIGH = "high"
META_POSTSCALING = "postScaling"
META_POFFSET = "offset"
META_SCALE = "scale"
META_RESOLUTION = "resolution"
META_NUMERATOR = "num"
META_DENOMINATOR = "denom"
META_UNIT = "unit"
META_UNIT_ID = "unitId"
META_DISPLAY_NAME = "displayName"
META_QUANTITY = "quantity"

# Data type names
DATA_TYPE_UINT8 = "uint8"
DATA_TYPE_UINT16 = "uint16"
DATA_TYPE_UINT32 = "uint32"
DATA_TYPE_UINT64 = "uint64"
DATA_TYPE_INT8 = "int8"
DATA_TYPE_INT16 = "int16"
DATA_TYPE_INT32 = "int32"
DATA_TYPE_INT64 = "int64"
DATA_TYPE_REAL32 = "real32"
DATA_TYPE_REAL64 = "real64"
DATA_TYPE_COMPLEX32 = "complex32"
DATA_TYPE_COMPLEX64 = "complex64"
DATA_TYPE_BITFIELD = "bitField"
DATA_TYPE_ARRAY = "array"
DATA_TYPE_DYNAMIC_ARRAY = "dynamicArray"
DATA_TYPE_STRUCT = "struct"

# Meta information encoding
METAINFORMATION_MSGPACK = 2

# Transport header layout
SIGNAL_NUMBER_MASK = 0x000FFFFF
SIZE_SHIFT = 20
SIZE_MASK = 0x0FF00000
TYPE_SHIFT = 28
TYPE_MASK = 0xF0000000

EPSILON = 0.000001

_DOUBLE_MAX = sys.float_info.max
_DOUBLE_LOWEST = -sys.float_info.max


class ProtocolError(Exception):
    """Raised when protocol data or meta information is invalid."""


class RuleType(Enum):
    EXPLICIT = "explicit"
    LINEAR = "linear"
    CONSTANT = "constant"
    UNKNOWN = "unknown"


class SampleType(Enum):
    UNKNOWN = "unknown"
    S8 = "s8"
    U8 = "u8"
    S16 = "s16"
    U16 = "u16"
    S32 = "s32"
    U32 = "u32"
    S64 = "s64"
    U64 = "u64"
    REAL32 = "real32"
    REAL64 = "real64"
    COMPLEX32 = "complex32"
    COMPLEX64 = "complex64"
    BITFIELD32 = "bitfield32"
    BITFIELD64 = "bitfield64"
    ARRAY = "array"
    STRUCT = "struct"


class TransportType(IntEnum):
    UNKNOWN = 0
    SIGNALDATA = 1
    METAINFORMATION = 2


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"'{key}' must be a number, got {value!r}")
    return float(value)


def _unsigned(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ProtocolError(f"'{key}' must be an unsigned integer, got {value!r}")
    return value


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"'{key}' must be a string, got {value!r}")
    return value


def _section(composition: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    node = composition.get(key)
    if node is None:
        return None
    if not isinstance(node, Mapping):
        raise ProtocolError(f"'{key}' must be an object")
    return node


@dataclass(eq=False)
class Range:
    """Value range of a signal; unlimited by default."""

    low: float = _DOUBLE_LOWEST
    high: float = _DOUBLE_MAX

    __hash__ = None  # type: ignore[assignment]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Range):
            return NotImplemented
        return abs(self.low - other.low) < EPSILON and abs(self.high - other.high) < EPSILON

    def clear(self) -> None:
        self.low = _DOUBLE_LOWEST
        self.high = _DOUBLE_MAX

    def is_unlimited(self) -> bool:
        return self.low == _DOUBLE_LOWEST and self.high == _DOUBLE_MAX

    def compose(self, composition: MutableMapping[str, Any]) -> None:
        """Write the limits that are set into ``composition``."""
        if self.low != _DOUBLE_LOWEST:
            composition.setdefault(META_RANGE, {})[META_LOW] = self.low
        if self.high != _DOUBLE_MAX:
            composition.setdefault(META_RANGE, {})[META_HIGH] = self.high

    def parse(self, composition: Mapping[str, Any]) -> None:
        """Take over the limits present in ``composition``."""
        node = _section(composition, META_RANGE)
        if node is None:
            return
        if META_LOW in node:
            self.low = _number(node[META_LOW], META_LOW)
        if META_HIGH in node:
            self.high = _number(node[META_HIGH], META_HIGH)


@dataclass(eq=False)
class PostScaling:
    """Linear scaling applied to values: ``value * scale + offset``."""

    offset: float = 0.0
    scale: float = 1.0

    __hash__ = None  # type: ignore[assignment]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PostScaling):
            return NotImplemented
        return (
            abs(self.offset - other.offset) < EPSILON
            and abs(self.scale - other.scale) < EPSILON
        )

    def clear(self) -> None:
        self.offset = 0.0
        self.scale = 1.0

    def is_one_to_one(self) -> bool:
        return self.offset == 0.0 and self.scale == 1.0

    def compose(self, composition: MutableMapping[str, Any]) -> None:
        if self.is_one_to_one():
            return
        node = composition.setdefault(META_POSTSCALING, {})
        node[META_POFFSET] = self.offset
        node[META_SCALE] = self.scale

    def parse(self, composition: Mapping[str, Any]) -> None:
        node = _section(composition, META_POSTSCALING)
        if node is None:
            return
        if META_POFFSET in node:
            self.offset = _number(node[META_POFFSET], META_POFFSET)
        if META_SCALE in node:
            self.scale = _number(node[META_SCALE], META_SCALE)


@dataclass
class Resolution:
    """Time between two ticks as the fraction numerator/denominator."""

    numerator: int = 1
    denominator: int = 1

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"

    def compose(self, composition: MutableMapping[str, Any]) -> None:
        node = composition.setdefault(META_RESOLUTION, {})
        node[META_NUMERATOR] = self.numerator
        node[META_DENOMINATOR] = self.denominator

    def parse(self, composition: Mapping[str, Any]) -> bool:
        """Take over the resolution in ``composition``.

        Returns True if a numerator or denominator was given. Raises
        ProtocolError on a zero value, leaving the resolution unchanged.
        """
        node = _section(composition, META_RESOLUTION)
        if node is None:
            return False
        found = False
        numerator = self.numerator
        denominator = self.denominator
        if META_NUMERATOR in node:
            numerator = _unsigned(node[META_NUMERATOR], META_NUMERATOR)
            if numerator == 0:
                raise ProtocolError("Resolution numerator may not be 0!")
            found = True
        if META_DENOMINATOR in node:
            denominator = _unsigned(node[META_DENOMINATOR], META_DENOMINATOR)
            if denominator == 0:
                raise ProtocolError("Resolution denominator may not be 0!")
            found = True
        self.numerator = numerator
        self.denominator = denominator
        return found


TIME_RESOLUTION_1HZ = Resolution(1, 1)
TIME_FAMILY_1GHZ = Resolution(1, 1000000000)
TIME_FAMILY_NTP = Resolution(1, 1 << 32)


@dataclass
class Unit:
    """Unit of a signal. An id of UNIT_ID_NONE means there is no unit."""

    UNIT_ID_USER: ClassVar[int] = 0
    UNIT_ID_NONE: ClassVar[int] = -1
    UNIT_ID_SECONDS: ClassVar[int] = 5457219
    UNIT_ID_MILLI_SECONDS: ClassVar[int] = 4403766

    id: int = -1
    display_name: str = ""
    quantity: str = ""

    def clear(self) -> None:
        self.id = Unit.UNIT_ID_NONE
        self.display_name = ""
        self.quantity = ""

    def compose(self, composition: MutableMapping[str, Any]) -> None:
        if self.id == Unit.UNIT_ID_NONE:
            return
        node = composition.setdefault(META_UNIT, {})
        node[META_UNIT_ID] = self.id
        node[META_DISPLAY_NAME] = self.display_name
        if self.quantity:
            node[META_QUANTITY] = self.quantity

    def parse(self, composition: Mapping[str, Any]) -> None:
        node = _section(composition, META_UNIT)
        if node is None:
            return
        if META_UNIT_ID in node:
            value = node[META_UNIT_ID]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ProtocolError(f"'{META_UNIT_ID}' must be an integer, got {value!r}")
            self.id = value
        if META_DISPLAY_NAME in node:
            self.display_name = _string(node[META_DISPLAY_NAME], META_DISPLAY_NAME)
        if META_QUANTITY in node:
            self.quantity = _string(node[META_QUANTITY], META_QUANTITY)