# greybus

Module-side pieces of the Greybus protocol in plain Python: the operation
header and result codes, request dispatch through drivers, levelled debug
output, bridge attribute numbers, wire formats for the HID, I2C, SDIO and
vibrator protocols, and working handlers for the Control and Camera
protocols. It has no dependencies beyond the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `greybus.operation`
  - `OperationHeader`: the 8-byte little-endian header (size, id, type,
    result) with `pack()` and `unpack()`; `is_response` tells whether the
    response flag (0x80) is set in the type.
  - `Operation.from_message(cport, data)` parses a received request;
    `alloc_response(size)` creates a zeroed response payload (sizes above
    `GB_MAX_PAYLOAD_SIZE` raise `GreybusError` with `NO_MEMORY`);
    `response_message(result)` builds the reply with the request's id and the
    request type with the response flag set.
  - `OperationResult` holds the result codes; `GreybusError` carries one in
    its `result` attribute.
  - `OperationHandler` binds an operation type to a function returning a
    result code. `Driver.dispatch(operation)` runs the matching handler and
    returns the complete response message as bytes. An unknown type answers
    `INVALID`; a `GreybusError` raised by a handler answers with its result.
  - `build_request(op_id, op_type, payload)` assembles a request message.
- `greybus.debug`: `DebugConfig` filters output by `DebugComponent` bit mask
  and minimum `DebugLevel`. `log()` writes `[ARADBG_<COMPONENT>]: message` to
  its sink (standard error by default) and returns whether it did;
  `dump_buffer()` writes a hex dump. `format_buffer(data)` returns the dump
  lines: sixteen bytes per line, an offset prefix, and `|` after the eighth
  byte.
- `greybus.unipro_attrs`: bridge attribute numbers as module constants, and
  the boot init-status word: `InitStatus`, `decode_init_status(value)`
  returning `(status, error_code, failed)`, and
  `encode_init_status(status, error_code, failed)`.
- `greybus.hid`, `greybus.i2c`, `greybus.sdio`, `greybus.vibrator`: operation
  type enums and the request and response structures of those protocols,
  each a frozen dataclass with `pack()` and `unpack()`. Short input raises
  `GreybusError` with `INVALID`; out-of-range fields raise `ValueError`.
  `i2c.TransferRequest` also reports `read_size` and `write_size`.
- `greybus.control`: `ControlProtocol(backend)` answers protocol version,
  manifest size and manifest, connected, disconnected, disconnecting, bundle
  and interface power management, interface version, power state set and the
  timesync operations. `ControlBackend` is an in-memory backend recording
  listening cports, connection events, TX flow, cport resets and timesync
  calls; subclass it to drive real services, raising `GreybusError` on
  failure. `driver()` returns a `Driver` for the control request types.
- `greybus.camera`: `CameraProtocol(device_factory)` keeps the camera state
  (`CameraState`: removed, inserted, unconfigured, configured, streaming)
  and checks every request against it. `init(cport)` opens the device and
  moves to unconfigured; `exit(cport)` closes it. Handlers cover protocol
  version, capabilities, configure streams (up to four, with test-only and
  adjusted flags), capture and flush. `CameraDevice` is an in-memory device
  to subclass. `driver()` returns a `Driver` for the camera request types.

## Example

```python
from greybus.control import ControlBackend, ControlOperationType, ControlProtocol
from greybus.operation import Operation, OperationHeader, build_request

driver = ControlProtocol(ControlBackend(manifest=b"\x00" * 16)).driver()

message = build_request(0x1234, ControlOperationType.PROTOCOL_VERSION)
reply = driver.dispatch(Operation.from_message(0, message))

header = OperationHeader.unpack(reply)
assert header.id == 0x1234 and header.type == 0x81 and header.result == 0
assert reply[8:] == b"\x00\x01"   # major 0, minor 1
```

## What it does not do

The package only turns request bytes into response bytes. It has no
transport: it opens no sockets, UniPro links or serial ports, so the caller
receives messages and sends replies. It parses no manifests, and it has no
handlers for GPIO, audio, SPI, UART or networking; the HID, I2C, SDIO and
vibrator modules define message formats only.