"""Consumer side view of a signal: its description and the delivery of its data."""

from __future__ import annotations

import json
import logging
import struct
from typing import Any, Callable, Mapping

from .datatypes import data_type_size, sample_type_from_definition
from .types import (
    DATA_TYPE_ARRAY,
    DATA_TYPE_BITFIELD,
    DATA_TYPE_STRUCT,
    META_ABSOLUTE_REFERENCE,
    META_DEFINITION,
    META_DELTA,
    META_INTERPRETATION,
    META_METHOD_SIGNAL,
    META_METHOD_SUBSCRIBE,
    META_NAME,
    META_RELATEDSIGNALS,
    META_RULE,
    META_RULETYPE_CONSTANT,
    META_RULETYPE_EXPLICIT,
    META_RULETYPE_LINEAR,
    META_SIGNALID,
    META_START,
    META_TABLEID,
    META_TIME,
    META_TYPE,
    META_VALUEINDEX,
    PostScaling,
    ProtocolError,
    Range,
    Resolution,
    RuleType,
    SampleType,
    Unit,
)

_log = logging.getLogger(__name__)

_UINT64_MASK = (1 << 64) - 1
_VALUE_INDEX_SIZE = 8

DataAsRawCb = Callable[["SubscribedSignal", int, bytes], Any]
DataAsValueCb = Callable[["SubscribedSignal", int, bytes, int], Any]

# Formats used to read values as numbers. 64 bit unsigned values are read as signed.
_DOUBLE_FORMATS: dict[SampleType, str] = {
    SampleType.REAL32: "f",
    SampleType.REAL64: "d",
    SampleType.U8: "B",
    SampleType.U16: "H",
    SampleType.U32: "I",
    SampleType.BITFIELD32: "I",
    SampleType.U64: "q",
    SampleType.BITFIELD64: "q",
    SampleType.S8: "b",
    SampleType.S16: "h",
    SampleType.S32: "i",
    SampleType.S64: "q",
}

_RULES = {
    META_RULETYPE_LINEAR: RuleType.LINEAR,
    META_RULETYPE_EXPLICIT: RuleType.EXPLICIT,
    META_RULETYPE_CONSTANT: RuleType.CONSTANT,
}


def _is_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float))


def _identifier(value: Any, key: str) -> str:
    """A string or a number given as identifier, as text."""
    if isinstance(value, str):
        return value
    if _is_number(value):
        return json.dumps(value)
    raise ProtocolError(f"'{key}' must be a string or a number, got {value!r}")


def _text(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"'{key}' must be a string, got {value!r}")
    return value


class SubscribedSignal:
    """A signal the consumer got subscribed to, as described by its meta information."""

    def __init__(self, signal_number: int) -> None:
        self.signal_number = signal_number
        self.signal_id = ""
        self.table_id = ""
        self.is_time_signal = False
        self.data_value_type = SampleType.UNKNOWN
        # Never zero: it divides the size of delivered data.
        self.data_value_size = 4
        self.rule_type = RuleType.EXPLICIT
        self.time = 0
        self.time_index = 0
        self.linear_delta = 0
        self.linear_delta_json: Any = None
        self.const_rule_start_json: Any = None
        self.linear_value_index = 0
        self.time_base_frequency = 0
        self.time_base_epoch_as_string = ""
        self.member_name = ""
        self.interpretation_object: Any = None
        self.bits_interpretation_object: Any = None
        self.datatype_details: Any = None
        self.unit = Unit()
        self.resolution = Resolution()
        self.range = Range()
        self.post_scaling = PostScaling()
        self.related_signals: dict[str, str] = {}
        self.time_signal: SubscribedSignal | None = None

    @property
    def unit_id(self) -> int:
        return self.unit.id

    @property
    def unit_display_name(self) -> str:
        return self.unit.display_name

    @property
    def unit_quantity(self) -> str:
        return self.unit.quantity

    def process_signal_meta_information(self, method: str, params: Mapping[str, Any]) -> None:
        """Take over signal related meta information.

        Raises ProtocolError if the meta information is invalid.
        """
        if method == META_METHOD_SUBSCRIBE:
            if META_SIGNALID not in params:
                raise ProtocolError("subscribe without signal id")
            self.signal_id = _identifier(params[META_SIGNALID], META_SIGNALID)
        elif method == META_METHOD_SIGNAL:
            self._process_signal(params)

    def _process_signal(self, params: Mapping[str, Any]) -> None:
        if META_TABLEID in params:
            self.table_id = _identifier(params[META_TABLEID], META_TABLEID)

        if META_VALUEINDEX in params:
            value_index = params[META_VALUEINDEX]
            if not _is_number(value_index):
                raise ProtocolError(f"'{META_VALUEINDEX}' must be a number")
            self.linear_value_index = int(value_index)

        if META_INTERPRETATION in params:
            self.interpretation_object = params[META_INTERPRETATION]

        definition = params.get(META_DEFINITION)
        if definition is None:
            return
        if not isinstance(definition, Mapping):
            raise ProtocolError(f"{self.signal_id}: '{META_DEFINITION}' must be an object")
        try:
            self._process_definition(definition, params)
        except (KeyError, TypeError, ValueError) as error:
            raise ProtocolError(
                f"{self.signal_id}: Could not process signal meta information: {error}"
            ) from error

    def _process_definition(self, definition: Mapping[str, Any], params: Mapping[str, Any]) -> None:
        _log.info("%s:\n\tSignal definition", self.signal_id)

        linear = definition.get(META_RULETYPE_LINEAR)
        if isinstance(linear, Mapping) and META_DELTA in linear:
            self.linear_delta_json = linear[META_DELTA]
            if not _is_number(self.linear_delta_json):
                raise ProtocolError(
                    f"{self.signal_id}: Non-numeric delta value is not allowed for linear rule!"
                )
            self.linear_delta = int(self.linear_delta_json)

        constant = definition.get(META_RULETYPE_CONSTANT)
        if isinstance(constant, Mapping) and META_START in constant:
            self.const_rule_start_json = constant[META_START]
            if not _is_number(self.const_rule_start_json):
                raise ProtocolError(
                    f"{self.signal_id}: Non-numeric start value is not allowed for constant rule!"
                )
            _log.info('\tConst rule "start" value: %s', self.const_rule_start_json)

        if META_RULE in definition:
            rule = _text(definition[META_RULE], META_RULE)
            if rule not in _RULES:
                raise ProtocolError(f"{self.signal_id}: Unknown implicit rule '{rule}'")
            if _RULES[rule] is RuleType.LINEAR and self.linear_delta == 0:
                raise ProtocolError(
                    f"{self.signal_id}: Time delta of 0 is not allowed for linear rule!"
                )
            self.rule_type = _RULES[rule]

        value_size = data_type_size(definition)
        if value_size:
            self.data_value_size = value_size

        if META_NAME in definition:
            self.member_name = _text(definition[META_NAME], META_NAME)
            _log.info("\tname: %s", self.member_name)

        sample_type = sample_type_from_definition(definition)
        if sample_type is not None:
            if sample_type in (SampleType.BITFIELD32, SampleType.BITFIELD64):
                self.datatype_details = definition[DATA_TYPE_BITFIELD]
                self.bits_interpretation_object = self.datatype_details.get("bits")
            elif sample_type is SampleType.ARRAY:
                self.datatype_details = definition[DATA_TYPE_ARRAY]
            elif sample_type is SampleType.STRUCT:
                self.datatype_details = definition[DATA_TYPE_STRUCT]
            self.data_value_type = sample_type

        self.unit.parse(definition)
        if self.unit.quantity == META_TIME:
            self.is_time_signal = True

        if self.resolution.parse(definition):
            if self.unit.id == Unit.UNIT_ID_SECONDS or (
                self.unit.id == Unit.UNIT_ID_NONE and self.unit.display_name == "s"
            ):
                # The resolution is the period of a tick; we want the frequency.
                self.time_base_frequency = self.resolution.denominator // self.resolution.numerator
                _log.info("\ttime resolution: %s Hz", self.resolution)
            else:
                raise ProtocolError(f"{self.signal_id}: For time unit 's' is required!")

        if META_ABSOLUTE_REFERENCE in definition:
            self.time_base_epoch_as_string = _text(
                definition[META_ABSOLUTE_REFERENCE], META_ABSOLUTE_REFERENCE
            )
            _log.info("\tabsolute reference: %s", self.time_base_epoch_as_string)

        self.range.parse(definition)
        self.post_scaling.parse(definition)

        if self.is_time_signal:
            if self.rule_type is RuleType.LINEAR:
                frequency = self.time_base_frequency / self.linear_delta
                _log.info(
                    "\tSynchronous signal (linear time), delta %s, frequency %s Hz",
                    self.linear_delta,
                    frequency,
                )
            elif self.rule_type is RuleType.EXPLICIT:
                _log.info("\tAsynchronous signal (Explicit time)")

        if META_RELATEDSIGNALS in params:
            self.related_signals.clear()
            related = params[META_RELATEDSIGNALS]
            if isinstance(related, list):
                for item in related:
                    relation = _text(item[META_TYPE], META_TYPE)
                    signal_id = _text(item[META_SIGNALID], META_SIGNALID)
                    self.related_signals[relation] = signal_id
                    _log.info("\t\tsignal id: %s, type: %s", signal_id, relation)

    def process_measured_data(
        self,
        data: bytes,
        time_signal: SubscribedSignal | None,
        raw_cb: DataAsRawCb,
        value_cb: DataAsValueCb,
    ) -> int:
        """Deliver a package of measured data to the callbacks.

        Returns the number of bytes processed. Raises ProtocolError if the
        time signal follows a rule that is not supported.
        """
        data = bytes(data)
        size = len(data)
        time_rule = time_signal.rule_type if time_signal is not None else RuleType.EXPLICIT

        if time_rule is RuleType.LINEAR:
            assert time_signal is not None
            self.linear_delta = time_signal.linear_delta
            if self.rule_type is RuleType.EXPLICIT:
                # Time stamp of the first value; the index advances afterwards.
                time_stamp = (
                    time_signal.time
                    + (self.linear_value_index - time_signal.time_index) * self.linear_delta
                ) & _UINT64_MASK
                raw_cb(self, time_stamp, data)
                value_count = size // self.data_value_size
                value_cb(self, time_stamp, data, value_count)
                self.linear_value_index += value_count
            elif self.rule_type is RuleType.CONSTANT:
                # Each value is preceded by its value index.
                bytes_per_value = _VALUE_INDEX_SIZE + self.data_value_size
                raw_cb(self, time_signal.time, data)
                value_cb(self, time_signal.time, data, size // bytes_per_value)
            else:
                _log.error("Linear data signal is not supported")
        elif time_rule is RuleType.EXPLICIT:
            if size % self.data_value_size:
                _log.error("Data is not an even multiple of expected data size")
                return size
            time_stamp = time_signal.time if time_signal is not None else 0
            raw_cb(self, time_stamp, data)
            value_cb(self, time_stamp, data, size // self.data_value_size)
        elif time_rule is RuleType.CONSTANT:
            raise ProtocolError(
                f"Domain signal with constant rule is not supported ({self.signal_id})"
            )
        else:
            raise ProtocolError(f"No rule for signal {self.signal_id}")
        return size

    def interpret_values_as_double(self, data: bytes, count: int) -> list[float]:
        """Read ``count`` values from ``data`` as floats; empty for unsupported types."""
        fmt = _DOUBLE_FORMATS.get(self.data_value_type)
        if fmt is None:
            return []
        try:
            values = struct.unpack_from(f"<{count}{fmt}", data)
        except struct.error as error:
            raise ProtocolError(f"not enough data for {count} values: {error}") from error
        return [float(value) for value in values]