# ecstoolkit

A library of building blocks for a session data channel. It covers the binary message
frame, the handshake payloads, retry helpers and a context-aware logger.

## Modules

- `ecstoolkit.clientmessage`: `ClientMessage` and the payloads it carries.
  - `ClientMessage.serialize()` builds the fixed-layout frame. The frame holds the header
    length, message type, schema version, creation date, sequence number, flags and
    message id. Then come a SHA-256 payload digest, the payload type, the payload length
    and the payload. The payload length and digest are computed from `payload`.
  - `ClientMessage.deserialize(data)` parses a frame.
  - `validate()` raises `MessageError` for a message that is incomplete or whose digest
    does not match. `start_publication` and `pause_publication` messages are accepted
    as they are.
  - `deserialize_acknowledge_content()`, `deserialize_channel_closed()`,
    `deserialize_handshake_request()` and `deserialize_handshake_complete()` decode the
    JSON payload. They first check the message type or the payload type.
  - The module also holds `AcknowledgeContent`, `ChannelClosed`, `SizeData`, `PayloadType`
    and `PayloadTypeFlag`.
  - `serialize_client_message_payload(obj)` encodes a payload as compact JSON.
  - `serialize_client_message_with_acknowledge_content(content)` builds a complete
    acknowledge frame. It gets a fresh random message id and the current time.
- `ecstoolkit.codec`: big-endian readers and writers that work at fixed offsets.
  - Readers: `get_integer`, `get_long`, `get_string`, `get_bytes`, `get_uuid` and others.
  - Writers: `put_integer`, `put_long`, `put_string`, `put_bytes`, `put_uuid` and others.
  - A UUID is stored as its low eight bytes followed by its high eight bytes.
  - `put_string` pads the rest of its range with spaces.
  - An out-of-range offset or length raises `CodecError`, a subclass of `ValueError`.
- `ecstoolkit.handshake`: the handshake structures.
  - `HandshakeRequestPayload` and `RequestedClientAction` are built with `from_dict`.
  - `HandshakeResponsePayload` and `ProcessedClientAction` turn into JSON objects with
    `to_dict`.
  - `HandshakeCompletePayload` reads its duration from integer nanoseconds into a
    `timedelta`.
  - Also here: `ActionType`, `ActionStatus`, the KMS encryption request and response,
    `SessionTypeRequest`, and the encryption challenge request and response.
- `ecstoolkit.service`: `OpenDataChannelInput`.
  - `validate()` raises `ValueError` that names every missing or too-short field.
  - `to_dict()` returns the fields under their wire names.
- `ecstoolkit.retry`:
  - `retry(log, attempts, sleep, fn)` calls `fn` up to `attempts` times. The sleep, in
    seconds, doubles after each failure. Once the attempts run out, the last error is
    raised again.
  - `RepeatableExponentialRetryer` grows its delay geometrically. When the delay would
    exceed `max_delay_in_milli`, it starts again from the initial delay. After
    `max_attempts` failed retries it raises the error.
- `ecstoolkit.sdk_retryer`: `SsmCliRetryer.retry_rules(operation_name, error, retry_count)`
  returns the delay before a service request is retried, as a `timedelta`.
  - A `GetMessages` error that mentions `Client.Timeout` gets a 100 ms delay.
  - Any other request gets `2**retry_count` times a random 1000–1499 ms.
- `ecstoolkit.logger`: `Wrapper` puts a context in front of each message and passes it to
  a base logger. That base logger is shared and can be replaced.
  - `with_context(...)` returns a new wrapper over the same base logger.
  - `replace_delegate(new_logger)` switches every wrapper that shares that base logger.
- `ecstoolkit.logconfig`: loggers built from an XML configuration of the seelog form.
  - The configuration can list console, file and size-rolling file outputs, level
    filters, per-file exceptions and message formats. `BaseLogger` is the logger built
    from it.
  - `logger(use_watcher, client_name)` returns one logger that is cached for the whole
    process.
  - The configuration is read from `seelog.xml` in the client's install folder. That is
    `/usr/local/<application>/` on Unix and `%ProgramFiles%\Amazon\<application>\` on
    Windows.
  - Without that file the default configuration from `default_config()` is used. It
    turns logging off, except at error level and above for code in files named `test*`.
- `ecstoolkit.config_watcher`: `FileWatcher` watches the directory that holds a
  configuration file. When the file is written, created or moved, it calls back. When
  `logger(True, ...)` is used, this is what swaps in a new base logger after the
  configuration changes.

## Installation

```
pip install ecstoolkit
```

## Example

```python
import uuid
from ecstoolkit.clientmessage import ClientMessage

message = ClientMessage(
    message_type="input_stream_data",
    schema_version=1,
    created_date=1503434274948,
    sequence_number=1,
    flags=2,
    message_id=uuid.UUID("dd01e56b-ff48-483e-a508-b5f073f31b16"),
    payload=b"payload",
)
frame = message.serialize()

parsed = ClientMessage.deserialize(frame)
parsed.validate()
assert parsed.payload == b"payload"
```

A retrying call:

```python
from ecstoolkit.retry import RepeatableExponentialRetryer

def connect():
    ...  # raise an exception to have the call retried

retryer = RepeatableExponentialRetryer(
    callable_func=connect,
    geometric_ratio=2.0,
    initial_delay_in_milli=100,
    max_delay_in_milli=5000,
    max_attempts=5,
)
retryer.call()
```

## What it does not do

This is a library only. It has none of the following:

- a command-line tool;
- a network or websocket client;
- a session runner.

It encodes and decodes the messages and payloads. Opening a connection, sending frames
and carrying out a handshake are left to the code that uses it.

## Running the tests

```
pip install -e .[test]
pytest
```