"""Producers of synchronous and constant-rule signal data."""

from __future__ import annotations

import itertools
import struct
from typing import Any, Iterable, Sequence

from .datatypes import DATA_TYPE_FORMATS, DATA_TYPE_SAMPLE_TYPES
from .types import DATA_TYPE_COMPLEX32, DATA_TYPE_COMPLEX64, SampleType
from .writer import Writer

_COMPLEX_TYPES = (DATA_TYPE_COMPLEX32, DATA_TYPE_COMPLEX64)
_INDEX = struct.Struct("<Q")
_signal_numbers = itertools.count(1)


class _ProducedSignal:
    def __init__(self, signal_id: str, table_id: str, writer: Writer, data_type: str) -> None:
        if data_type not in DATA_TYPE_FORMATS:
            raise ValueError(f"unsupported data type '{data_type}'")
        self.signal_id = signal_id
        self.table_id = table_id
        self.data_type = data_type
        self.signal_number = next(_signal_numbers)
        self._writer = writer
        self._value = struct.Struct("<" + DATA_TYPE_FORMATS[data_type])

    @property
    def sample_type(self) -> SampleType:
        return DATA_TYPE_SAMPLE_TYPES[self.data_type]

    def _pack_value(self, value: Any) -> bytes:
        fields = (value.real, value.imag) if self.data_type in _COMPLEX_TYPES else (value,)
        try:
            return self._value.pack(*fields)
        except struct.error as error:
            raise ValueError(f"{value!r} is not a valid {self.data_type} value") from error


class SynchronousSignal(_ProducedSignal):
    """Signal whose values come without time stamps, at a fixed rate."""

    def __init__(
        self,
        signal_id: str,
        table_id: str,
        writer: Writer,
        data_type: str,
        value_index: int = 0,
    ) -> None:
        super().__init__(signal_id, table_id, writer, data_type)
        self.value_index = value_index

    def add_data(self, values: Iterable[Any]) -> int:
        """Write ``values`` as signal data and advance the value index."""
        items = list(values)
        payload = b"".join(self._pack_value(value) for value in items)
        self.value_index += len(items)
        return self._writer.write_signal_data(self.signal_number, payload)


class ConstantSignal(_ProducedSignal):
    """Signal following a constant rule: each value carries its value index."""

    def __init__(
        self,
        signal_id: str,
        table_id: str,
        writer: Writer,
        data_type: str,
        default_start_value: Any = None,
    ) -> None:
        super().__init__(signal_id, table_id, writer, data_type)
        self.default_start_value = default_start_value

    def add_data(self, values: Sequence[Any], indices: Sequence[int]) -> int:
        """Write each value preceded by its 64 bit value index."""
        if len(values) != len(indices):
            raise ValueError("values and indices must have the same length")
        try:
            payload = b"".join(
                _INDEX.pack(index) + self._pack_value(value)
                for index, value in zip(indices, values)
            )
        except struct.error as error:
            raise ValueError(f"invalid value index: {error}") from error
        return self._writer.write_signal_data(self.signal_number, payload)