"""Sizes and sample types derived from data type definitions in signal meta information."""

from __future__ import annotations

import struct
from typing import Any, Mapping

from .types import (
    DATA_TYPE_ARRAY,
    DATA_TYPE_BITFIELD,
    DATA_TYPE_COMPLEX32,
    DATA_TYPE_COMPLEX64,
    DATA_TYPE_DYNAMIC_ARRAY,
    DATA_TYPE_INT8,
    DATA_TYPE_INT16,
    DATA_TYPE_INT32,
    DATA_TYPE_INT64,
    DATA_TYPE_REAL32,
    DATA_TYPE_REAL64,
    DATA_TYPE_STRUCT,
    DATA_TYPE_UINT8,
    DATA_TYPE_UINT16,
    DATA_TYPE_UINT32,
    DATA_TYPE_UINT64,
    META_COUNT,
    META_DATATYPE,
    META_DELTA,
    META_DIMENSIONS,
    META_RULE,
    META_RULETYPE_LINEAR,
    META_SIZE,
    META_START,
    ProtocolError,
    SampleType,
)

# Little-endian struct formats of the scalar data types.
DATA_TYPE_FORMATS: dict[str, str] = {
    DATA_TYPE_UINT8: "B",
    DATA_TYPE_UINT16: "H",
    DATA_TYPE_UINT32: "I",
    DATA_TYPE_UINT64: "Q",
    DATA_TYPE_INT8: "b",
    DATA_TYPE_INT16: "h",
    DATA_TYPE_INT32: "i",
    DATA_TYPE_INT64: "q",
    DATA_TYPE_REAL32: "f",
    DATA_TYPE_REAL64: "d",
    DATA_TYPE_COMPLEX32: "2f",
    DATA_TYPE_COMPLEX64: "2d",
}

DATA_TYPE_SAMPLE_TYPES: dict[str, SampleType] = {
    DATA_TYPE_UINT8: SampleType.U8,
    DATA_TYPE_UINT16: SampleType.U16,
    DATA_TYPE_UINT32: SampleType.U32,
    DATA_TYPE_UINT64: SampleType.U64,
    DATA_TYPE_INT8: SampleType.S8,
    DATA_TYPE_INT16: SampleType.S16,
    DATA_TYPE_INT32: SampleType.S32,
    DATA_TYPE_INT64: SampleType.S64,
    DATA_TYPE_REAL32: SampleType.REAL32,
    DATA_TYPE_REAL64: SampleType.REAL64,
    DATA_TYPE_COMPLEX32: SampleType.COMPLEX32,
    DATA_TYPE_COMPLEX64: SampleType.COMPLEX64,
}

_SCALAR_SIZES = {name: struct.calcsize("<" + fmt) for name, fmt in DATA_TYPE_FORMATS.items()}

_BITFIELD_SAMPLE_TYPES = {
    DATA_TYPE_UINT32: SampleType.BITFIELD32,
    DATA_TYPE_UINT64: SampleType.BITFIELD64,
}


def _object(definition: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    node = definition.get(key)
    if not isinstance(node, Mapping):
        raise ProtocolError(f"'{key}' must be an object")
    return node


def _data_type(definition: Mapping[str, Any]) -> str | None:
    if META_DATATYPE not in definition:
        return None
    value = definition[META_DATATYPE]
    if not isinstance(value, str):
        raise ProtocolError(f"'{META_DATATYPE}' must be a string")
    return value


def _dimension_count(definition: Mapping[str, Any]) -> int | None:
    """Element count of a one-dimensional array of primitives; None if unsupported."""
    if META_DIMENSIONS not in definition:
        return 1
    dimensions = definition[META_DIMENSIONS]
    if not isinstance(dimensions, list) or len(dimensions) != 1:
        return None
    dimension = dimensions[0]
    if not isinstance(dimension, Mapping):
        return None
    if dimension.get(META_RULE, "") != META_RULETYPE_LINEAR:
        return None
    linear = dimension.get(META_RULETYPE_LINEAR)
    if not isinstance(linear, Mapping):
        return None
    if linear.get(META_START, 0) != 1 or linear.get(META_DELTA, 0) != 0:
        return None
    count = linear.get(META_SIZE, 1)
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise ProtocolError(f"'{META_SIZE}' must be an unsigned integer")
    return count


def data_type_size(definition: Mapping[str, Any]) -> int:
    """Size in bytes of one value described by ``definition``; 0 if unknown."""
    count = _dimension_count(definition)
    if count is None:
        return 0
    data_type = _data_type(definition)
    if data_type is None:
        return 0
    if data_type in _SCALAR_SIZES:
        return _SCALAR_SIZES[data_type] * count
    if data_type == DATA_TYPE_BITFIELD:
        return data_type_size(_object(definition, DATA_TYPE_BITFIELD)) * count
    if data_type == DATA_TYPE_ARRAY:
        details = _object(definition, DATA_TYPE_ARRAY)
        array_count = details.get(META_COUNT)
        if isinstance(array_count, bool) or not isinstance(array_count, int) or array_count < 0:
            raise ProtocolError(f"array '{META_COUNT}' must be an unsigned integer")
        return data_type_size(details) * count * array_count
    if data_type == DATA_TYPE_STRUCT:
        members = definition.get(DATA_TYPE_STRUCT)
        if not isinstance(members, list):
            raise ProtocolError(f"'{DATA_TYPE_STRUCT}' must be an array")
        total = 0
        for member in members:
            if not isinstance(member, Mapping):
                raise ProtocolError("struct member must be an object")
            total += data_type_size(member) * count
        return total
    return 0


def sample_type_from_definition(definition: Mapping[str, Any]) -> SampleType | None:
    """Sample type named by ``definition``; None if it names no data type.

    Raises ProtocolError for unsupported or unknown data types.
    """
    data_type = _data_type(definition)
    if data_type is None:
        return None
    if data_type in DATA_TYPE_SAMPLE_TYPES:
        return DATA_TYPE_SAMPLE_TYPES[data_type]
    if data_type == DATA_TYPE_BITFIELD:
        bitfield_type = _data_type(_object(definition, DATA_TYPE_BITFIELD))
        try:
            return _BITFIELD_SAMPLE_TYPES[bitfield_type]  # type: ignore[index]
        except KeyError as error:
            raise ProtocolError(
                f"bit field of data type '{bitfield_type}' is not supported"
            ) from error
    if data_type == DATA_TYPE_ARRAY:
        _object(definition, DATA_TYPE_ARRAY)
        return SampleType.ARRAY
    if data_type == DATA_TYPE_DYNAMIC_ARRAY:
        raise ProtocolError("Data type 'dynamicArray' is not supported!")
    if data_type == DATA_TYPE_STRUCT:
        if not isinstance(definition.get(DATA_TYPE_STRUCT), list):
            raise ProtocolError(f"'{DATA_TYPE_STRUCT}' must be an array")
        return SampleType.STRUCT
    raise ProtocolError(f"Unknown datatype '{data_type}'")