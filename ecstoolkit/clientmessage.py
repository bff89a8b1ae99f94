"""Binary client messages exchanged over a data channel, and their JSON payloads."""

from __future__ import annotations

import base64
import hashlib
import json
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, IntEnum
from typing import Any, Callable

from ecstoolkit.codec import (
    CodecError,
    get_bytes,
    get_long,
    get_string,
    get_uinteger,
    get_ulong,
    get_uuid,
    put_bytes,
    put_long,
    put_string,
    put_uinteger,
    put_ulong,
    put_uuid,
)
from ecstoolkit.handshake import HandshakeCompletePayload, HandshakeRequestPayload

INPUT_STREAM_MESSAGE = "input_stream_data"
OUTPUT_STREAM_MESSAGE = "output_stream_data"
ACKNOWLEDGE_MESSAGE = "acknowledge"
CHANNEL_CLOSED_MESSAGE = "channel_closed"
START_PUBLICATION_MESSAGE = "start_publication"
PAUSE_PUBLICATION_MESSAGE = "pause_publication"

HL_LENGTH = 4
MESSAGE_TYPE_LENGTH = 32
SCHEMA_VERSION_LENGTH = 4
CREATED_DATE_LENGTH = 8
SEQUENCE_NUMBER_LENGTH = 8
FLAGS_LENGTH = 8
MESSAGE_ID_LENGTH = 16
PAYLOAD_DIGEST_LENGTH = 32
PAYLOAD_TYPE_LENGTH = 4
PAYLOAD_LENGTH_LENGTH = 4

HL_OFFSET = 0
MESSAGE_TYPE_OFFSET = HL_OFFSET + HL_LENGTH
SCHEMA_VERSION_OFFSET = MESSAGE_TYPE_OFFSET + MESSAGE_TYPE_LENGTH
CREATED_DATE_OFFSET = SCHEMA_VERSION_OFFSET + SCHEMA_VERSION_LENGTH
SEQUENCE_NUMBER_OFFSET = CREATED_DATE_OFFSET + CREATED_DATE_LENGTH
FLAGS_OFFSET = SEQUENCE_NUMBER_OFFSET + SEQUENCE_NUMBER_LENGTH
MESSAGE_ID_OFFSET = FLAGS_OFFSET + FLAGS_LENGTH
PAYLOAD_DIGEST_OFFSET = MESSAGE_ID_OFFSET + MESSAGE_ID_LENGTH
PAYLOAD_TYPE_OFFSET = PAYLOAD_DIGEST_OFFSET + PAYLOAD_DIGEST_LENGTH
PAYLOAD_LENGTH_OFFSET = PAYLOAD_TYPE_OFFSET + PAYLOAD_TYPE_LENGTH
PAYLOAD_OFFSET = PAYLOAD_LENGTH_OFFSET + PAYLOAD_LENGTH_LENGTH

NIL_UUID = uuid.UUID(int=0)


class MessageError(ValueError):
    """Raised when a client message or its payload cannot be encoded or decoded."""


class PayloadType(IntEnum):
    """Kinds of payload a client message may carry."""

    OUTPUT = 1
    ERROR = 2
    SIZE = 3
    PARAMETER = 4
    HANDSHAKE_REQUEST = 5
    HANDSHAKE_RESPONSE = 6
    HANDSHAKE_COMPLETE = 7
    ENC_CHALLENGE_REQUEST = 8
    ENC_CHALLENGE_RESPONSE = 9
    FLAG = 10
    STD_ERR = 11
    EXIT_CODE = 12


class PayloadTypeFlag(IntEnum):
    """Values carried by a FLAG payload."""

    DISCONNECT_TO_PORT = 1
    TERMINATE_SESSION = 2
    CONNECT_TO_PORT_ERROR = 3


def _object(data: Any, name: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MessageError(f"{name} must be a JSON object, got {type(data).__name__}")
    return data


def _str_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MessageError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _int_field(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise MessageError(f"{key} must be an integer, got {type(value).__name__}")
    return value


def _bool_field(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MessageError(f"{key} must be a boolean, got {type(value).__name__}")
    return value


@dataclass
class AcknowledgeContent:
    """Tells the sender of a message that it has been received."""

    message_type: str = ""
    message_id: str = ""
    sequence_number: int = 0
    is_sequential_message: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this acknowledgement."""
        return {
            "AcknowledgedMessageType": self.message_type,
            "AcknowledgedMessageId": self.message_id,
            "AcknowledgedMessageSequenceNumber": self.sequence_number,
            "IsSequentialMessage": self.is_sequential_message,
        }

    @classmethod
    def from_dict(cls, data: Any) -> AcknowledgeContent:
        """Build an acknowledgement from its decoded JSON object."""
        data = _object(data, "AcknowledgeContent")
        return cls(
            message_type=_str_field(data, "AcknowledgedMessageType"),
            message_id=_str_field(data, "AcknowledgedMessageId"),
            sequence_number=_int_field(data, "AcknowledgedMessageSequenceNumber"),
            is_sequential_message=_bool_field(data, "IsSequentialMessage"),
        )


@dataclass
class ChannelClosed:
    """Tells the client to close the channel."""

    message_id: str = ""
    created_date: str = ""
    destination_id: str = ""
    session_id: str = ""
    message_type: str = ""
    schema_version: int = 0
    output: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this notice."""
        return {
            "MessageId": self.message_id,
            "CreatedDate": self.created_date,
            "DestinationId": self.destination_id,
            "SessionId": self.session_id,
            "MessageType": self.message_type,
            "SchemaVersion": self.schema_version,
            "Output": self.output,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ChannelClosed:
        """Build the notice from its decoded JSON object."""
        data = _object(data, "ChannelClosed")
        return cls(
            message_id=_str_field(data, "MessageId"),
            created_date=_str_field(data, "CreatedDate"),
            destination_id=_str_field(data, "DestinationId"),
            session_id=_str_field(data, "SessionId"),
            message_type=_str_field(data, "MessageType"),
            schema_version=_int_field(data, "SchemaVersion"),
            output=_str_field(data, "Output"),
        )


@dataclass
class SizeData:
    """Terminal dimensions."""

    cols: int = 0
    rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for these dimensions."""
        return {"cols": self.cols, "rows": self.rows}


def _json_default(obj: Any) -> Any:
    for name in ("to_dict", "_to_json"):
        method = getattr(obj, name, None)
        if callable(method):
            return method()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, timedelta):
        return (obj.days * 86_400 + obj.seconds) * 1_000_000_000 + obj.microseconds * 1000
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize_client_message_payload(obj: Any) -> bytes:
    """Encode a session payload as compact JSON bytes."""
    try:
        return json.dumps(obj, default=_json_default, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise MessageError(f"Could not serialize message with err: {exc}") from exc


def _decode_json(payload: bytes) -> Any:
    try:
        return json.loads(bytes(payload))
    except (ValueError, UnicodeDecodeError) as exc:
        raise MessageError(f"Could not deserialize rawMessage: {exc}") from exc


def _field(name: str, action: Callable[[], Any], verb: str) -> Any:
    try:
        return action()
    except CodecError as exc:
        raise MessageError(f"Could not {verb} {name} with error: {exc}") from exc


@dataclass
class ClientMessage:
    """A message sent to or received from the service, with a fixed binary header."""

    header_length: int = 0
    message_type: str = ""
    schema_version: int = 0
    created_date: int = 0
    sequence_number: int = 0
    flags: int = 0
    message_id: uuid.UUID = NIL_UUID
    payload_digest: bytes = b""
    payload_type: int = 0
    payload_length: int = 0
    payload: bytes = b""

    @classmethod
    def deserialize(cls, data: bytes) -> ClientMessage:
        """Decode a message from its binary form."""
        data = bytes(data)

        def read(name: str, action: Callable[[], Any]) -> Any:
            return _field(name, action, "deserialize field")

        message = cls(
            message_type=read("MessageType", lambda: get_string(data, MESSAGE_TYPE_OFFSET, MESSAGE_TYPE_LENGTH)),
            schema_version=read("SchemaVersion", lambda: get_uinteger(data, SCHEMA_VERSION_OFFSET)),
            created_date=read("CreatedDate", lambda: get_ulong(data, CREATED_DATE_OFFSET)),
            sequence_number=read("SequenceNumber", lambda: get_long(data, SEQUENCE_NUMBER_OFFSET)),
            flags=read("Flags", lambda: get_ulong(data, FLAGS_OFFSET)),
            message_id=read("MessageId", lambda: get_uuid(data, MESSAGE_ID_OFFSET)),
            payload_digest=read(
                "PayloadDigest", lambda: get_bytes(data, PAYLOAD_DIGEST_OFFSET, PAYLOAD_DIGEST_LENGTH)
            ),
            payload_type=read("PayloadType", lambda: get_uinteger(data, PAYLOAD_TYPE_OFFSET)),
            payload_length=read("PayloadLength", lambda: get_uinteger(data, PAYLOAD_LENGTH_OFFSET)),
        )
        header_length = read("HeaderLength", lambda: get_uinteger(data, HL_OFFSET))
        payload_start = header_length + PAYLOAD_LENGTH_LENGTH
        if payload_start > len(data):
            raise MessageError("HeaderLength points outside the message.")
        message.header_length = header_length
        message.payload = data[payload_start:]
        return message

    def serialize(self) -> bytes:
        """Encode the message; the payload length and digest are computed from the payload."""
        payload = bytes(self.payload)
        header_length = PAYLOAD_LENGTH_OFFSET
        self.payload_length = len(payload)
        buffer = bytearray(header_length + PAYLOAD_LENGTH_LENGTH + len(payload))
        digest = hashlib.sha256(payload).digest()

        def write(name: str, action: Callable[[], Any]) -> None:
            _field(name, action, "serialize")

        write("HeaderLength", lambda: put_uinteger(buffer, HL_OFFSET, header_length))
        write(
            "MessageType",
            lambda: put_string(
                buffer, MESSAGE_TYPE_OFFSET, MESSAGE_TYPE_OFFSET + MESSAGE_TYPE_LENGTH - 1, self.message_type
            ),
        )
        write("SchemaVersion", lambda: put_uinteger(buffer, SCHEMA_VERSION_OFFSET, self.schema_version))
        write("CreatedDate", lambda: put_ulong(buffer, CREATED_DATE_OFFSET, self.created_date))
        write("SequenceNumber", lambda: put_long(buffer, SEQUENCE_NUMBER_OFFSET, self.sequence_number))
        write("Flags", lambda: put_ulong(buffer, FLAGS_OFFSET, self.flags))
        write("MessageId", lambda: put_uuid(buffer, MESSAGE_ID_OFFSET, self.message_id))
        write(
            "PayloadDigest",
            lambda: put_bytes(
                buffer, PAYLOAD_DIGEST_OFFSET, PAYLOAD_DIGEST_OFFSET + PAYLOAD_DIGEST_LENGTH - 1, digest
            ),
        )
        write("PayloadType", lambda: put_uinteger(buffer, PAYLOAD_TYPE_OFFSET, self.payload_type))
        write("PayloadLength", lambda: put_uinteger(buffer, PAYLOAD_LENGTH_OFFSET, self.payload_length))
        write("Payload", lambda: put_bytes(buffer, PAYLOAD_OFFSET, PAYLOAD_OFFSET + len(payload) - 1, payload))
        return bytes(buffer)

    def validate(self) -> None:
        """Raise MessageError if the message is incomplete or its payload digest is wrong."""
        if self.message_type in (START_PUBLICATION_MESSAGE, PAUSE_PUBLICATION_MESSAGE):
            return
        if self.header_length == 0:
            raise MessageError("HeaderLength cannot be zero")
        if not self.message_type:
            raise MessageError("MessageType is missing")
        if self.created_date == 0:
            raise MessageError("CreatedDate is missing")
        if self.payload_length != 0 and hashlib.sha256(bytes(self.payload)).digest() != bytes(
            self.payload_digest
        ):
            raise MessageError("payload Hash is not valid")

    def deserialize_acknowledge_content(self) -> AcknowledgeContent:
        """Decode the payload of an acknowledge message."""
        if self.message_type != ACKNOWLEDGE_MESSAGE:
            raise MessageError(
                f"ClientMessage is not of type AcknowledgeMessage. Found message type: {self.message_type}"
            )
        return AcknowledgeContent.from_dict(_decode_json(self.payload))

    def deserialize_channel_closed(self) -> ChannelClosed:
        """Decode the payload of a channel-closed message."""
        if self.message_type != CHANNEL_CLOSED_MESSAGE:
            raise MessageError(
                f"ClientMessage is not of type ChannelClosed. Found message type: {self.message_type}"
            )
        return ChannelClosed.from_dict(_decode_json(self.payload))

    def deserialize_handshake_request(self) -> HandshakeRequestPayload:
        """Decode a handshake request payload."""
        if self.payload_type != PayloadType.HANDSHAKE_REQUEST:
            raise MessageError(
                "ClientMessage PayloadType is not of type HandshakeRequestPayloadType. "
                f"Found payload type: {self.payload_type}"
            )
        try:
            return HandshakeRequestPayload.from_dict(_decode_json(self.payload))
        except MessageError:
            raise
        except ValueError as exc:
            raise MessageError(f"Could not deserialize rawMessage: {exc}") from exc

    def deserialize_handshake_complete(self) -> HandshakeCompletePayload:
        """Decode a handshake complete payload."""
        if self.payload_type != PayloadType.HANDSHAKE_COMPLETE:
            raise MessageError(
                "ClientMessage PayloadType is not of type HandshakeCompletePayloadType. "
                f"Found payload type: {self.payload_type}"
            )
        try:
            return HandshakeCompletePayload.from_dict(_decode_json(self.payload))
        except MessageError:
            raise
        except ValueError as exc:
            raise MessageError(f"Could not deserialize rawMessage, {self.payload!r} : {exc}") from exc


def serialize_client_message_with_acknowledge_content(acknowledge_content: AcknowledgeContent) -> bytes:
    """Encode an acknowledge message carrying the given content."""
    payload = serialize_client_message_payload(acknowledge_content)
    message = ClientMessage(
        message_type=ACKNOWLEDGE_MESSAGE,
        schema_version=1,
        created_date=time.time_ns() // 1_000_000,
        sequence_number=0,
        flags=3,
        message_id=uuid.uuid4(),
        payload=payload,
    )
    return message.serialize()