import struct

import pytest

from daqstream.subscribed import SubscribedSignal
from daqstream.types import (
    DATA_TYPE_ARRAY,
    DATA_TYPE_BITFIELD,
    DATA_TYPE_COMPLEX32,
    DATA_TYPE_COMPLEX64,
    DATA_TYPE_INT8,
    DATA_TYPE_INT16,
    DATA_TYPE_INT32,
    DATA_TYPE_REAL64,
    DATA_TYPE_STRUCT,
    DATA_TYPE_UINT16,
    DATA_TYPE_UINT32,
    DATA_TYPE_UINT64,
    META_ABSOLUTE_REFERENCE,
    META_COUNT,
    META_DATATYPE,
    META_DEFINITION,
    META_DELTA,
    META_DENOMINATOR,
    META_INTERPRETATION,
    META_METHOD_SIGNAL,
    META_METHOD_SUBSCRIBE,
    META_NAME,
    META_NUMERATOR,
    META_RELATEDSIGNALS,
    META_RESOLUTION,
    META_RULE,
    META_RULETYPE_CONSTANT,
    META_RULETYPE_EXPLICIT,
    META_RULETYPE_LINEAR,
    META_SIGNALID,
    META_STATUS,
    META_TABLEID,
    META_TIME,
    META_TYPE,
    META_VALUEINDEX,
    PostScaling,
    ProtocolError,
    Range,
    RuleType,
    SampleType,
    Unit,
)

SIGNAL_NUMBER = 9
START_TIME = 1000


class Recorder:
    def __init__(self, signal=None):
        self.signal = signal
        self.raw = []
        self.values = []

    def raw_cb(self, signal, time_stamp, data):
        self.raw.append((time_stamp, bytes(data)))

    def value_cb(self, signal, time_stamp, data, count):
        interpreted = signal.interpret_values_as_double(data, count)
        self.values.append((time_stamp, count, interpreted))


def prepare_signals():
    time_signal = SubscribedSignal(SIGNAL_NUMBER + 1)
    data_signal = SubscribedSignal(SIGNAL_NUMBER)
    time_signal.process_signal_meta_information(
        META_METHOD_SUBSCRIBE, {META_SIGNALID: "da time!"}
    )
    time_signal.process_signal_meta_information(
        META_METHOD_SIGNAL,
        {
            META_TABLEID: data_signal.table_id,
            META_DEFINITION: {
                META_RULE: META_RULETYPE_LINEAR,
                META_RULETYPE_LINEAR: {META_DELTA: 1},
                META_DATATYPE: DATA_TYPE_UINT64,
            },
        },
    )
    time_signal.time = START_TIME
    data_signal.process_signal_meta_information(
        META_METHOD_SUBSCRIBE, {META_SIGNALID: "da data!"}
    )
    return data_signal, time_signal


def describe(signal, definition, **params):
    signal.process_signal_meta_information(
        META_METHOD_SIGNAL, {META_DEFINITION: definition, **params}
    )


def test_defaults():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    assert signal.signal_id == ""
    assert signal.is_time_signal is False
    assert signal.rule_type is RuleType.EXPLICIT


def test_time_signal_attachment():
    time_signal = SubscribedSignal(1)
    data_signal = SubscribedSignal(2)
    data_signal.time_signal = time_signal
    assert data_signal.time_signal is time_signal


def test_signal_id_as_number():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    signal.process_signal_meta_information(META_METHOD_SUBSCRIBE, {META_SIGNALID: -8})
    assert signal.signal_id == "-8"


def test_signal_id_as_string():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    signal.process_signal_meta_information(META_METHOD_SUBSCRIBE, {META_SIGNALID: "da id!"})
    assert signal.signal_id == "da id!"


def test_signal_id_object_is_invalid():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    with pytest.raises(ProtocolError):
        signal.process_signal_meta_information(
            META_METHOD_SUBSCRIBE, {META_SIGNALID: {"bla": "da id!"}}
        )
    assert signal.signal_id == ""


def test_signal_id_missing_is_invalid():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    with pytest.raises(ProtocolError):
        signal.process_signal_meta_information(META_METHOD_SUBSCRIBE, {})
    assert signal.signal_id == ""


def test_time_signal_description():
    table_id = "table id"
    interpretation = {"pi": 3.141, "happy": True}
    unit = Unit(id=Unit.UNIT_ID_SECONDS, display_name="s", quantity=META_TIME)
    definition = {
        META_RULE: META_RULETYPE_LINEAR,
        META_RULETYPE_LINEAR: {META_DELTA: 0},
        META_DATATYPE: DATA_TYPE_UINT64,
        META_ABSOLUTE_REFERENCE: "1970-01-01",
        META_RESOLUTION: {META_DENOMINATOR: 1000000000, META_NUMERATOR: 1},
    }
    unit.compose(definition)
    params = {META_TABLEID: table_id, META_DEFINITION: definition}

    signal = SubscribedSignal(SIGNAL_NUMBER)
    with pytest.raises(ProtocolError):
        signal.process_signal_meta_information(META_METHOD_SIGNAL, params)

    definition[META_RULETYPE_LINEAR][META_DELTA] = 3
    params[META_INTERPRETATION] = interpretation
    signal.process_signal_meta_information(META_METHOD_SIGNAL, params)

    assert signal.unit_id == unit.id
    assert signal.unit_display_name == "s"
    assert signal.unit_quantity == META_TIME
    assert signal.is_time_signal is True
    assert signal.table_id == table_id
    assert signal.interpretation_object == interpretation
    assert signal.time_base_frequency == 1000000000
    assert signal.time_base_epoch_as_string == "1970-01-01"
    assert signal.linear_delta == 3
    assert signal.rule_type is RuleType.LINEAR


def test_resolution_requires_seconds():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    definition = {META_RESOLUTION: {META_NUMERATOR: 1, META_DENOMINATOR: 1000}}
    Unit(id=6, display_name="V").compose(definition)
    with pytest.raises(ProtocolError):
        describe(signal, definition)
    assert signal.time_base_frequency == 0


def test_unknown_rule():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    with pytest.raises(ProtocolError):
        describe(signal, {META_RULE: "nonsense"})
    assert signal.rule_type is RuleType.EXPLICIT


def test_non_numeric_linear_delta():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    with pytest.raises(ProtocolError):
        describe(signal, {META_RULETYPE_LINEAR: {META_DELTA: "one"}})
    assert signal.linear_delta == 0


def test_non_numeric_constant_start():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    with pytest.raises(ProtocolError):
        describe(signal, {META_RULETYPE_CONSTANT: {"start": "zero"}})
    assert signal.rule_type is RuleType.EXPLICIT


def test_uint16_with_delay():
    data_signal, time_signal = prepare_signals()
    describe(
        data_signal,
        {META_RULE: META_RULETYPE_EXPLICIT, META_DATATYPE: DATA_TYPE_UINT16},
        **{META_VALUEINDEX: 10},
    )
    assert data_signal.rule_type is RuleType.EXPLICIT
    assert data_signal.data_value_type is SampleType.U16

    data = struct.pack("<3H", 1, 2, 3)
    recorder = Recorder()
    result = data_signal.process_measured_data(
        data, time_signal, recorder.raw_cb, recorder.value_cb
    )
    assert result == len(data)
    assert recorder.raw == [(START_TIME + 10 * time_signal.linear_delta, data)]
    assert recorder.values == [(START_TIME + 10, 3, [1.0, 2.0, 3.0])]
    assert data_signal.linear_value_index == 13

    definition = {}
    Unit(id=6, display_name="V").compose(definition)
    describe(data_signal, definition)
    assert data_signal.unit_display_name == "V"
    assert data_signal.unit_id == 6
    assert data_signal.unit_quantity == ""


def test_uint32_with_constant_rule():
    data_signal, time_signal = prepare_signals()
    describe(data_signal, {META_RULE: META_RULETYPE_CONSTANT, META_DATATYPE: DATA_TYPE_UINT32})
    assert data_signal.rule_type is RuleType.CONSTANT
    assert data_signal.data_value_type is SampleType.U32

    data = b"".join(struct.pack("<QI", index, value) for index, value in [(0, 5), (1, 6), (2, 7)])
    raw = []
    counts = []
    result = data_signal.process_measured_data(
        data,
        time_signal,
        lambda signal, stamp, payload: raw.append((stamp, payload)),
        lambda signal, stamp, payload, count: counts.append((stamp, count)),
    )
    assert result == len(data)
    assert raw == [(START_TIME, data)]
    assert counts == [(START_TIME, 3)]


@pytest.mark.parametrize(
    "data_type, fmt, sample_type",
    [
        (DATA_TYPE_INT8, "b", SampleType.S8),
        (DATA_TYPE_INT16, "h", SampleType.S16),
    ],
)
def test_signed_values(data_type, fmt, sample_type):
    data_signal, time_signal = prepare_signals()
    describe(data_signal, {META_RULE: META_RULETYPE_EXPLICIT, META_DATATYPE: data_type})
    assert data_signal.data_value_type is sample_type
    assert data_signal.rule_type is RuleType.EXPLICIT
    data = struct.pack(f"<3{fmt}", -1, -2, -3)
    recorder = Recorder()
    result = data_signal.process_measured_data(
        data, time_signal, recorder.raw_cb, recorder.value_cb
    )
    assert result == len(data)
    assert recorder.raw[0][1] == data
    assert recorder.values[0][1:] == (3, [-1.0, -2.0, -3.0])


def test_bitfield32():
    data_signal, time_signal = prepare_signals()
    describe(
        data_signal,
        {
            META_RULE: META_RULETYPE_EXPLICIT,
            META_DATATYPE: DATA_TYPE_BITFIELD,
            DATA_TYPE_BITFIELD: {META_DATATYPE: DATA_TYPE_UINT32},
        },
    )
    assert data_signal.rule_type is RuleType.EXPLICIT
    assert data_signal.data_value_type is SampleType.BITFIELD32
    data = struct.pack("<3I", 0x01000000, 0x02000000, 0x03000000)
    recorder = Recorder()
    result = data_signal.process_measured_data(
        data, time_signal, recorder.raw_cb, recorder.value_cb
    )
    assert result == len(data)
    assert recorder.raw == [(START_TIME, data)]
    assert recorder.values == [(START_TIME, 3, [16777216.0, 33554432.0, 50331648.0])]


def test_bitfield64_with_constant_rule():
    data_signal, time_signal = prepare_signals()
    describe(
        data_signal,
        {
            META_RULE: META_RULETYPE_CONSTANT,
            META_DATATYPE: DATA_TYPE_BITFIELD,
            DATA_TYPE_BITFIELD: {META_DATATYPE: DATA_TYPE_UINT64},
        },
    )
    assert data_signal.rule_type is RuleType.CONSTANT
    assert data_signal.data_value_type is SampleType.BITFIELD64
    data = b"".join(
        struct.pack("<Qq", index, value)
        for index, value in [(0, 0x0100000000), (1, 0x0200000000), (2, 0x0300000000)]
    )
    counts = []
    raw = []
    result = data_signal.process_measured_data(
        data,
        time_signal,
        lambda signal, stamp, payload: raw.append(payload),
        lambda signal, stamp, payload, count: counts.append((stamp, count)),
    )
    assert result == len(data)
    assert raw == [data]
    assert counts == [(START_TIME, 3)]


def test_bitfield_unsupported():
    data_signal, _ = prepare_signals()
    with pytest.raises(ProtocolError):
        describe(
            data_signal,
            {
                META_RULE: META_RULETYPE_EXPLICIT,
                META_DATATYPE: DATA_TYPE_BITFIELD,
                DATA_TYPE_BITFIELD: {META_DATATYPE: DATA_TYPE_UINT16},
            },
        )
    assert data_signal.signal_id == "da data!"
    assert data_signal.rule_type is RuleType.EXPLICIT


@pytest.mark.parametrize(
    "data_type, fmt, sample_type",
    [
        (DATA_TYPE_COMPLEX32, "2f", SampleType.COMPLEX32),
        (DATA_TYPE_COMPLEX64, "2d", SampleType.COMPLEX64),
    ],
)
def test_complex(data_type, fmt, sample_type):
    data_signal, time_signal = prepare_signals()
    describe(data_signal, {META_RULE: META_RULETYPE_EXPLICIT, META_DATATYPE: data_type})
    assert data_signal.data_value_type is sample_type
    data = b"".join(struct.pack(f"<{fmt}", -v, -v) for v in (1, 2, 3))
    recorder = Recorder()
    result = data_signal.process_measured_data(
        data, time_signal, recorder.raw_cb, recorder.value_cb
    )
    assert result == len(data)
    assert recorder.raw[0][1] == data
    # complex values can not be read as double
    assert recorder.values == [(START_TIME, 3, [])]


def test_array_of_int16():
    data_signal, time_signal = prepare_signals()
    describe(
        data_signal,
        {
            META_RULE: META_RULETYPE_EXPLICIT,
            META_DATATYPE: DATA_TYPE_ARRAY,
            DATA_TYPE_ARRAY: {META_DATATYPE: DATA_TYPE_INT16, META_COUNT: 3},
        },
    )
    assert data_signal.data_value_type is SampleType.ARRAY
    assert data_signal.data_value_size == 6
    data = struct.pack("<9h", -1, -2, -3, 1, 2, 3, 10, 20, 30)
    counts = []
    result = data_signal.process_measured_data(
        data,
        time_signal,
        lambda signal, stamp, payload: None,
        lambda signal, stamp, payload, count: counts.append(count),
    )
    assert result == len(data)
    assert counts == [3]


def test_struct():
    data_signal, time_signal = prepare_signals()
    describe(
        data_signal,
        {
            META_RULE: META_RULETYPE_EXPLICIT,
            META_DATATYPE: DATA_TYPE_STRUCT,
            META_NAME: "theStruct",
            DATA_TYPE_STRUCT: [
                {
                    META_NAME: "Int16Array",
                    META_DATATYPE: DATA_TYPE_ARRAY,
                    DATA_TYPE_ARRAY: {META_DATATYPE: DATA_TYPE_INT16, META_COUNT: 4},
                },
                {META_NAME: "Int32", META_DATATYPE: DATA_TYPE_INT32},
            ],
        },
    )
    assert data_signal.data_value_type is SampleType.STRUCT
    assert data_signal.data_value_size == 12
    assert data_signal.member_name == "theStruct"
    data = b"".join(
        struct.pack("<4hi", *items)
        for items in [(1, 2, 3, 4, -2), (5, 6, 7, 8, -4), (10, 11, 12, 13, -8)]
    )
    counts = []
    raw = []
    result = data_signal.process_measured_data(
        data,
        time_signal,
        lambda signal, stamp, payload: raw.append(payload),
        lambda signal, stamp, payload, count: counts.append(count),
    )
    assert result == len(data)
    assert raw == [data]
    assert counts == [3]


def test_double_with_range_and_post_scaling():
    data_signal, time_signal = prepare_signals()
    value_range = Range(low=-20, high=30)
    post_scaling = PostScaling(offset=10.1, scale=10.0)
    definition = {META_RULE: META_RULETYPE_EXPLICIT, META_DATATYPE: DATA_TYPE_REAL64}
    value_range.compose(definition)
    post_scaling.compose(definition)
    describe(data_signal, definition, **{META_VALUEINDEX: 10})
    assert data_signal.rule_type is RuleType.EXPLICIT
    assert data_signal.data_value_type is SampleType.REAL64

    data = struct.pack("<3d", 1.1, 2.2, 3.3)
    recorder = Recorder()
    result = data_signal.process_measured_data(
        data, time_signal, recorder.raw_cb, recorder.value_cb
    )
    assert result == len(data)
    stamp, count, values = recorder.values[0]
    assert stamp == START_TIME + 10 * time_signal.linear_delta
    assert count == 3
    assert values == pytest.approx([1.1, 2.2, 3.3], abs=0.000001)
    assert recorder.raw[0][1] == data

    unit_definition = {}
    Unit(id=6, display_name="V").compose(unit_definition)
    describe(data_signal, unit_definition)
    assert data_signal.unit_display_name == "V"
    assert data_signal.unit_id == 6
    assert data_signal.range == value_range
    assert data_signal.post_scaling == post_scaling


def test_explicit_data_of_wrong_size_is_skipped():
    data_signal = SubscribedSignal(SIGNAL_NUMBER)
    describe(data_signal, {META_DATATYPE: DATA_TYPE_UINT32})
    recorder = Recorder()
    result = data_signal.process_measured_data(b"\x01\x02\x03", None, recorder.raw_cb, recorder.value_cb)
    assert result == 3
    assert recorder.raw == []
    assert recorder.values == []


def test_explicit_without_time_signal_has_time_zero():
    data_signal = SubscribedSignal(SIGNAL_NUMBER)
    describe(data_signal, {META_DATATYPE: DATA_TYPE_UINT16})
    recorder = Recorder()
    data = struct.pack("<2H", 7, 8)
    assert data_signal.process_measured_data(data, None, recorder.raw_cb, recorder.value_cb) == 4
    assert recorder.values == [(0, 2, [7.0, 8.0])]


def test_constant_time_rule_is_rejected():
    data_signal = SubscribedSignal(SIGNAL_NUMBER)
    time_signal = SubscribedSignal(SIGNAL_NUMBER + 1)
    describe(time_signal, {META_RULE: META_RULETYPE_CONSTANT})
    recorder = Recorder()
    with pytest.raises(ProtocolError):
        data_signal.process_measured_data(b"\0" * 4, time_signal, recorder.raw_cb, recorder.value_cb)
    assert recorder.raw == []


def test_linear_data_signal_is_not_delivered():
    data_signal, time_signal = prepare_signals()
    describe(data_signal, {META_RULE: META_RULETYPE_LINEAR, META_RULETYPE_LINEAR: {META_DELTA: 2}})
    recorder = Recorder()
    result = data_signal.process_measured_data(b"\0" * 8, time_signal, recorder.raw_cb, recorder.value_cb)
    assert result == 8
    assert recorder.raw == []


def test_related_signals():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    describe(
        signal,
        {META_DATATYPE: DATA_TYPE_REAL64},
        **{
            META_RELATEDSIGNALS: [
                {META_TYPE: META_TIME, META_SIGNALID: "time id"},
                {META_TYPE: META_STATUS, META_SIGNALID: "status id"},
            ]
        },
    )
    assert signal.related_signals == {META_TIME: "time id", META_STATUS: "status id"}


def test_table_id_as_number():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    signal.process_signal_meta_information(META_METHOD_SIGNAL, {META_TABLEID: 42})
    assert signal.table_id == "42"


def test_interpret_requires_enough_data():
    signal = SubscribedSignal(SIGNAL_NUMBER)
    describe(signal, {META_DATATYPE: DATA_TYPE_REAL64})
    with pytest.raises(ProtocolError):
        signal.interpret_values_as_double(b"\0" * 8, 2)