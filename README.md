# daqstream

`daqstream` handles a binary streaming protocol for data acquisition signals.
Every package in a stream starts with a transport header that carries a
signal number, a package type and a payload length. The payload is either
signal data or meta information encoded with MessagePack.

The package builds and reads those packages and keeps track of what a
consumer has been told about its signals. Invalid protocol input raises
`daqstream.types.ProtocolError`. Diagnostics go through the standard
`logging` module.

## Installation

```
pip install daqstream
```

To run the test suite as well:

```
pip install "daqstream[test]"
pytest
```

## Modules

- `daqstream.types` holds the protocol constants and the small value types.
  - `Range`, `PostScaling`, `Resolution` and `Unit` read themselves from a
    signal definition with `parse()` and write themselves into one with
    `compose()`.
  - `RuleType`, `SampleType` and `TransportType` are enumerations.
  - `ProtocolError` is the exception for invalid input.
- `daqstream.meta` handles meta information.
  - `MetaInformation.interpret()` decodes a meta information package: a
    little-endian type word (2 for MessagePack) followed by a
    `{"method": ..., "params": ...}` document.
  - `StreamMeta.process_meta_information()` takes over stream related meta
    information. For `apiVersion` it checks that the version is at least
    0.6.0. For `init` it records the stream id and the HTTP control path,
    port and version. Unknown methods are ignored.
- `daqstream.writer` frames outgoing packages.
  - `create_transport_header()` builds a header. Payloads up to 255 bytes
    carry their size inside the header word. Larger payloads get an
    additional 32-bit length field.
  - `parse_transport_header()` decodes a header.
  - `StreamWriter` writes meta information and signal data to any binary
    stream with a `write()` method. `Writer` is its abstract base.
- `daqstream.datatypes` reads data type definitions.
  - `data_type_size()` gives the byte size of one value. It covers scalars,
    complex values, bit fields, arrays, structs and one-dimensional
    dimensions.
  - `sample_type_from_definition()` gives the `SampleType` named by a
    definition.
- `daqstream.producer` has two signal classes that write through a `Writer`.
  - `SynchronousSignal.add_data()` writes plain values and advances the
    value index.
  - `ConstantSignal.add_data()` writes each value after its 64-bit value
    index.
- `daqstream.subscribed` provides `SubscribedSignal`, the consumer's view of
  one signal.
  - It takes over `subscribe` and `signal` meta information: rule, data type,
    unit, resolution, range, post scaling and related signals.
  - It passes measured data to a raw callback and a value callback, with the
    time stamp worked out from the time signal.
  - `interpret_values_as_double()` reads numeric values as floats.
- `daqstream.container` provides `SignalContainer`. It keeps every subscribed
  signal of a session, groups signals into tables by table id, links data
  signals to their table's time signal, and calls the meta, raw-data and
  value callbacks.
- `daqstream.siggen` has helpers for signal generation.
  - Prime factorisation: `get_factor_for_factorization`,
    `get_prime_factor_exponents`, `compose_prime_factor_exponents`,
    `get_product` and `change_signs`.
  - `duration_from_string()` turns text such as `"10ms"` into nanoseconds.
    The accepted units are s, ms, µs and ns.

## Writing packages

```python
import io

from daqstream.types import TransportType
from daqstream.writer import StreamWriter, parse_transport_header

buffer = io.BytesIO()
writer = StreamWriter(buffer, endpoint="memory")
writer.write_signal_data(7, b"\x00" * 16)

header = parse_transport_header(buffer.getvalue())
assert header.type is TransportType.SIGNALDATA
assert (header.signal_number, header.length) == (7, 16)
```

## Consuming signals

```python
import struct

import msgpack

from daqstream.container import SignalContainer
from daqstream.meta import MetaInformation


def meta(method, params):
    info = MetaInformation()
    info.interpret(struct.pack("<I", 2) + msgpack.packb({"method": method, "params": params}))
    return info


received = []
container = SignalContainer(
    data_as_raw_cb=lambda signal, time_stamp, data: received.append((signal.signal_id, time_stamp)),
)

container.process_meta_information(1, meta("subscribe", {"signalId": "time"}))
container.process_meta_information(1, meta("signal", {
    "tableId": "t",
    "definition": {
        "rule": "linear",
        "linear": {"delta": 1000},
        "dataType": "uint64",
        "unit": {"unitId": 5457219, "displayName": "s", "quantity": "time"},
        "resolution": {"num": 1, "denom": 1000000000},
    },
}))
container.process_meta_information(2, meta("subscribe", {"signalId": "voltage"}))
container.process_meta_information(2, meta("signal", {
    "tableId": "t",
    "definition": {"rule": "explicit", "dataType": "real64"},
}))

# Time package of a linear time signal: value index, then start time.
container.process_measured_data(1, struct.pack("<QQ", 0, 5000))
container.process_measured_data(2, struct.pack("<3d", 1.0, 2.0, 3.0))
assert received == [("voltage", 5000)]
```

## What the package does not do

`daqstream` works on packages that are already in memory. It does not open
network connections, run a streaming or control server, or read a stream and
split it into packages for you. It has no producer session that announces,
subscribes or unsubscribes signals, and no command-line signal generator.
Those parts are left to the application that uses the package.