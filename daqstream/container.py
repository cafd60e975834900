"""Bookkeeping of subscribed signals and the tables that group them."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .meta import MetaInformation
from .subscribed import DataAsRawCb, DataAsValueCb, SubscribedSignal
from .types import (
    META_METHOD_SIGNAL,
    META_METHOD_SUBSCRIBE,
    META_METHOD_UNSUBSCRIBE,
    META_SIGNALID,
    ProtocolError,
    RuleType,
)

_log = logging.getLogger(__name__)

SignalMetaCb = Callable[[SubscribedSignal, str, Mapping[str, Any]], Any]

_TIME_STAMP = struct.Struct("<Q")
_INDEXED_TIME_STAMP = struct.Struct("<QQ")


def _ignore(*_args: Any) -> None:
    """Default callback: does nothing."""


def _checked(callback: Any) -> Any:
    if not callable(callback):
        raise TypeError("not a valid callback!")
    return callback


@dataclass
class _Table:
    """Signals sharing one time signal."""

    time_signal_number: int = 0
    data_signal_numbers: set[int] = field(default_factory=set)


class SignalContainer:
    """Holds the subscribed signals of a session and dispatches their meta information and data."""

    def __init__(
        self,
        signal_meta_cb: SignalMetaCb | None = None,
        data_as_raw_cb: DataAsRawCb | None = None,
        data_as_value_cb: DataAsValueCb | None = None,
    ) -> None:
        self.signals: dict[int, SubscribedSignal] = {}
        self.tables: dict[str, _Table] = {}
        self._signal_meta_cb: SignalMetaCb = _ignore
        self._data_as_raw_cb: DataAsRawCb = _ignore
        self._data_as_value_cb: DataAsValueCb = _ignore
        if signal_meta_cb is not None:
            self.signal_meta_cb = signal_meta_cb
        if data_as_raw_cb is not None:
            self.data_as_raw_cb = data_as_raw_cb
        if data_as_value_cb is not None:
            self.data_as_value_cb = data_as_value_cb

    @property
    def signal_meta_cb(self) -> SignalMetaCb:
        return self._signal_meta_cb

    @signal_meta_cb.setter
    def signal_meta_cb(self, callback: SignalMetaCb) -> None:
        self._signal_meta_cb = _checked(callback)

    @property
    def data_as_raw_cb(self) -> DataAsRawCb:
        return self._data_as_raw_cb

    @data_as_raw_cb.setter
    def data_as_raw_cb(self, callback: DataAsRawCb) -> None:
        self._data_as_raw_cb = _checked(callback)

    @property
    def data_as_value_cb(self) -> DataAsValueCb:
        return self._data_as_value_cb

    @data_as_value_cb.setter
    def data_as_value_cb(self, callback: DataAsValueCb) -> None:
        self._data_as_value_cb = _checked(callback)

    def process_meta_information(
        self, signal_number: int, meta_information: MetaInformation
    ) -> None:
        """Handle signal related meta information.

        Raises ProtocolError for meta information about unknown signals,
        duplicate subscriptions or invalid content.
        """
        method = meta_information.method
        params = meta_information.params
        if not isinstance(params, Mapping):
            params = {}

        if method == META_METHOD_UNSUBSCRIBE:
            signal = self._known(signal_number, method)
            self._leave_table(signal)
        elif method == META_METHOD_SUBSCRIBE:
            if META_SIGNALID not in params:
                raise ProtocolError("Invalid subscribe ack: No signal id!")
            if signal_number in self.signals:
                raise ProtocolError(
                    f"Got duplicate subscribe ack for signal number {signal_number} "
                    f"with signal id {params[META_SIGNALID]!r}!"
                )
            signal = SubscribedSignal(signal_number)
            self.signals[signal_number] = signal
        else:
            signal = self._known(signal_number, method)

        signal.process_signal_meta_information(method, params)

        # Only after the meta information is processed the table is known.
        if method == META_METHOD_SIGNAL:
            table = self.tables.setdefault(signal.table_id, _Table())
            if signal.is_time_signal:
                table.time_signal_number = signal_number
            else:
                table.data_signal_numbers.add(signal_number)

        self._signal_meta_cb(signal, method, params)

        if method == META_METHOD_UNSUBSCRIBE:
            del self.signals[signal_number]

    def _known(self, signal_number: int, method: str) -> SubscribedSignal:
        try:
            return self.signals[signal_number]
        except KeyError as error:
            raise ProtocolError(
                f"Got meta information '{method}' of signal {signal_number}, "
                "that was not subscribed before"
            ) from error

    def _leave_table(self, signal: SubscribedSignal) -> None:
        table = self.tables.get(signal.table_id)
        if table is None:
            return
        if signal.is_time_signal:
            table.time_signal_number = 0
        else:
            table.data_signal_numbers.discard(signal.signal_number)
        if table.time_signal_number == 0 and not table.data_signal_numbers:
            del self.tables[signal.table_id]

    def process_measured_data(self, signal_number: int, data: bytes) -> int:
        """Handle a package of measured data; returns the number of bytes processed.

        Raises ProtocolError for data of unknown signals, for data signals whose
        time signal is not yet known, and for incomplete time packages.
        """
        data = bytes(data)
        signal = self.signals.get(signal_number)
        if signal is None:
            raise ProtocolError(
                f"Got data for signal '{signal_number}', that has not been yet "
                "reported as subscribed by server"
            )

        if signal.is_time_signal:
            self._process_time_data(signal, data)
            return len(data)

        table = self.tables.get(signal.table_id)
        if table is None:
            return len(data)
        if table.time_signal_number == 0:
            raise ProtocolError(
                f"The time signal isn't yet known for value signal id '{signal.signal_id}', "
                f"number {signal_number}, table '{signal.table_id}'!"
            )
        time_signal = self.signals.get(table.time_signal_number)
        if time_signal is None:
            raise ProtocolError(
                f"time signal {table.time_signal_number} of table '{signal.table_id}' is unknown"
            )
        signal.time_signal = time_signal
        return signal.process_measured_data(
            data, time_signal, self._data_as_raw_cb, self._data_as_value_cb
        )

    def _process_time_data(self, signal: SubscribedSignal, data: bytes) -> None:
        table = self.tables.get(signal.table_id)
        if signal.rule_type is RuleType.EXPLICIT:
            # An explicit time package holds the time stamp only.
            if table is not None and table.data_signal_numbers:
                if len(data) < _TIME_STAMP.size:
                    raise ProtocolError("time package is too short")
                (signal.time,) = _TIME_STAMP.unpack_from(data)
                _log.debug("%s:\n\tTime is: %s", signal.signal_id, signal.time)
            signal.process_measured_data(
                data, None, self._data_as_raw_cb, self._data_as_value_cb
            )
            return

        # Implicit rules: a 64 bit value index followed by a 64 bit time stamp.
        if table is not None and table.data_signal_numbers:
            if len(data) < _INDEXED_TIME_STAMP.size:
                raise ProtocolError("time package is too short")
            signal.time_index, signal.time = _INDEXED_TIME_STAMP.unpack_from(data)
            _log.debug("%s:\n\tStart time is: %s", signal.signal_id, signal.time)