import hashlib
import json
import uuid
from datetime import timedelta

import pytest

from ecstoolkit.clientmessage import (
    ACKNOWLEDGE_MESSAGE,
    CHANNEL_CLOSED_MESSAGE,
    CREATED_DATE_OFFSET,
    FLAGS_OFFSET,
    INPUT_STREAM_MESSAGE,
    MESSAGE_ID_OFFSET,
    MESSAGE_TYPE_LENGTH,
    MESSAGE_TYPE_OFFSET,
    PAYLOAD_DIGEST_LENGTH,
    PAYLOAD_DIGEST_OFFSET,
    SCHEMA_VERSION_OFFSET,
    SEQUENCE_NUMBER_OFFSET,
    START_PUBLICATION_MESSAGE,
    AcknowledgeContent,
    ChannelClosed,
    ClientMessage,
    MessageError,
    PayloadType,
    SizeData,
    serialize_client_message_payload,
    serialize_client_message_with_acknowledge_content,
)
from ecstoolkit.codec import get_bytes, get_long, get_uinteger, get_ulong, get_uuid

MESSAGE_ID = "dd01e56b-ff48-483e-a508-b5f073f31b16"
SCHEMA_VERSION = 1
CREATED_DATE = 1503434274948
DESTINATION_ID = "destination-id"
ACTION_TYPE = "start"
PAYLOAD = b"payload"
SEQUENCE_NUMBER = 2
AGENT_VERSION = "3.0"
SESSION_ID = "sessionId_01234567890abcedf"
TIME_TO_COMPLETE = 1000000
CUSTOMER_MESSAGE = "Handshake Complete"
SAMPLE_PARAMETERS = '{"name": "richard"}'

ACK_MESSAGE_PAYLOAD = (
    '{"AcknowledgedMessageType": "%s", "AcknowledgedMessageId":"%s"}' % (ACKNOWLEDGE_MESSAGE, MESSAGE_ID)
).encode()
CHANNEL_CLOSED_PAYLOAD = (
    '{"MessageType": "%s", "MessageId": "%s", "CreatedDate": "%s", "SessionId": "%s", '
    '"SchemaVersion": %d, "Output": "%s"}'
    % (CHANNEL_CLOSED_MESSAGE, MESSAGE_ID, CREATED_DATE, SESSION_ID, SCHEMA_VERSION, "payload")
).encode()
HANDSHAKE_REQ_PAYLOAD = (
    '{"AgentVersion": "%s", "RequestedClientActions": [{"ActionType": "%s", "ActionParameters": %s}]}'
    % (AGENT_VERSION, ACTION_TYPE, SAMPLE_PARAMETERS)
).encode()
HANDSHAKE_COMPLETE_PAYLOAD = (
    '{"HandshakeTimeToComplete": %d, "CustomerMessage": "%s"}' % (TIME_TO_COMPLETE, CUSTOMER_MESSAGE)
).encode()


def _sample_message(**overrides):
    fields = dict(
        message_type=INPUT_STREAM_MESSAGE,
        schema_version=SCHEMA_VERSION,
        created_date=CREATED_DATE,
        sequence_number=1,
        flags=2,
        message_id=uuid.UUID(MESSAGE_ID),
        payload=PAYLOAD,
    )
    fields.update(overrides)
    return ClientMessage(**fields)


def test_validate_reports_each_missing_field_in_turn():
    message = ClientMessage(
        schema_version=SCHEMA_VERSION,
        sequence_number=1,
        flags=2,
        message_id=uuid.UUID(MESSAGE_ID),
        payload=PAYLOAD,
        payload_length=3,
    )
    with pytest.raises(MessageError, match="HeaderLength cannot be zero"):
        message.validate()

    message.header_length = 1
    with pytest.raises(MessageError, match="MessageType is missing"):
        message.validate()

    message.message_type = INPUT_STREAM_MESSAGE
    with pytest.raises(MessageError, match="CreatedDate is missing"):
        message.validate()

    message.created_date = CREATED_DATE
    with pytest.raises(MessageError, match="payload Hash is not valid"):
        message.validate()

    message.payload_digest = hashlib.sha256(PAYLOAD).digest()
    message.validate()
    assert message.payload_digest == hashlib.sha256(b"payload").digest()


def test_validate_accepts_start_publication_without_header():
    message = ClientMessage(
        message_type=START_PUBLICATION_MESSAGE,
        schema_version=SCHEMA_VERSION,
        created_date=CREATED_DATE,
        message_id=uuid.UUID(MESSAGE_ID),
        payload=PAYLOAD,
        payload_length=3,
    )
    message.validate()
    assert message.header_length == 0


def test_deserialize_acknowledge_content():
    message = ClientMessage(payload=PAYLOAD)
    with pytest.raises(MessageError, match="not of type AcknowledgeMessage"):
        message.deserialize_acknowledge_content()

    message.message_type = ACKNOWLEDGE_MESSAGE
    with pytest.raises(MessageError):
        message.deserialize_acknowledge_content()

    message.payload = ACK_MESSAGE_PAYLOAD
    content = message.deserialize_acknowledge_content()
    assert content.message_type == ACKNOWLEDGE_MESSAGE
    assert content.message_id == MESSAGE_ID
    assert content.sequence_number == 0
    assert content.is_sequential_message is False


def test_deserialize_channel_closed():
    message = ClientMessage(payload=PAYLOAD)
    with pytest.raises(MessageError, match="not of type ChannelClosed"):
        message.deserialize_channel_closed()

    message.message_type = CHANNEL_CLOSED_MESSAGE
    with pytest.raises(MessageError):
        message.deserialize_channel_closed()

    message.payload = CHANNEL_CLOSED_PAYLOAD
    closed = message.deserialize_channel_closed()
    assert closed.message_type == CHANNEL_CLOSED_MESSAGE
    assert closed.message_id == MESSAGE_ID
    assert closed.created_date == str(CREATED_DATE)
    assert closed.schema_version == SCHEMA_VERSION
    assert closed.session_id == SESSION_ID
    assert closed.output == "payload"


def test_deserialize_handshake_request():
    message = ClientMessage(payload=PAYLOAD)
    with pytest.raises(MessageError, match="HandshakeRequestPayloadType"):
        message.deserialize_handshake_request()

    message.payload_type = PayloadType.HANDSHAKE_REQUEST
    with pytest.raises(MessageError):
        message.deserialize_handshake_request()

    message.payload = HANDSHAKE_REQ_PAYLOAD
    request = message.deserialize_handshake_request()
    assert request.agent_version == AGENT_VERSION
    assert request.requested_client_actions[0].action_type == ACTION_TYPE
    assert request.requested_client_actions[0].action_parameters == json.loads(SAMPLE_PARAMETERS)


def test_deserialize_handshake_complete():
    message = ClientMessage(payload=PAYLOAD)
    with pytest.raises(MessageError, match="HandshakeCompletePayloadType"):
        message.deserialize_handshake_complete()

    message.payload_type = PayloadType.HANDSHAKE_COMPLETE
    with pytest.raises(MessageError):
        message.deserialize_handshake_complete()

    message.payload = HANDSHAKE_COMPLETE_PAYLOAD
    complete = message.deserialize_handshake_complete()
    assert complete.handshake_time_to_complete == timedelta(milliseconds=1)
    assert complete.customer_message == CUSTOMER_MESSAGE


def test_serialize_writes_every_header_field():
    message = _sample_message()
    data = message.serialize()

    raw_type = data[MESSAGE_TYPE_OFFSET : MESSAGE_TYPE_OFFSET + MESSAGE_TYPE_LENGTH - 1]
    assert raw_type.decode().rstrip(" ") == INPUT_STREAM_MESSAGE
    assert get_uinteger(data, SCHEMA_VERSION_OFFSET) == SCHEMA_VERSION
    assert get_ulong(data, CREATED_DATE_OFFSET) == CREATED_DATE
    assert get_long(data, SEQUENCE_NUMBER_OFFSET) == 1
    assert get_ulong(data, FLAGS_OFFSET) == 2
    assert str(get_uuid(data, MESSAGE_ID_OFFSET)) == MESSAGE_ID
    assert get_bytes(data, PAYLOAD_DIGEST_OFFSET, PAYLOAD_DIGEST_LENGTH) == hashlib.sha256(PAYLOAD).digest()
    assert get_uinteger(data, 0) == 116
    assert len(data) == 120 + len(PAYLOAD)
    assert message.payload_length == len(PAYLOAD)


def test_serialize_then_deserialize_round_trip():
    data = _sample_message().serialize()
    decoded = ClientMessage.deserialize(data)
    assert decoded.message_type == INPUT_STREAM_MESSAGE
    assert decoded.schema_version == SCHEMA_VERSION
    assert str(decoded.message_id) == MESSAGE_ID
    assert decoded.created_date == CREATED_DATE
    assert decoded.flags == 2
    assert decoded.sequence_number == 1
    assert decoded.payload == PAYLOAD
    assert decoded.header_length == 116
    assert decoded.payload_length == len(PAYLOAD)
    decoded.validate()
    assert decoded.payload_digest == hashlib.sha256(PAYLOAD).digest()


def test_deserialize_short_input_raises():
    with pytest.raises(MessageError, match="Offset"):
        ClientMessage.deserialize(b"\x00" * 20)


def test_serialize_rejects_nil_message_id():
    with pytest.raises(MessageError, match="MessageId"):
        _sample_message(message_id=uuid.UUID(int=0)).serialize()


def test_serialize_rejects_too_long_message_type():
    with pytest.raises(MessageError, match="MessageType"):
        _sample_message(message_type="x" * 33).serialize()


def test_serialize_rejects_empty_payload():
    with pytest.raises(MessageError, match="Payload"):
        _sample_message(payload=b"").serialize()


def test_serialize_payload_rejects_function():
    with pytest.raises(MessageError):
        serialize_client_message_payload(lambda: None)


def test_serialize_payload_of_size_data():
    assert serialize_client_message_payload(SizeData(cols=80, rows=24)) == b'{"cols":80,"rows":24}'


def test_acknowledge_content_round_trip_through_message():
    content = AcknowledgeContent(
        message_type=INPUT_STREAM_MESSAGE,
        message_id=MESSAGE_ID,
        sequence_number=SEQUENCE_NUMBER,
        is_sequential_message=True,
    )
    data = serialize_client_message_with_acknowledge_content(content)
    message = ClientMessage.deserialize(data)
    assert message.message_type == ACKNOWLEDGE_MESSAGE
    assert message.flags == 3
    decoded = message.deserialize_acknowledge_content()
    assert decoded.message_type == INPUT_STREAM_MESSAGE
    assert decoded.message_id == MESSAGE_ID
    assert decoded.sequence_number == SEQUENCE_NUMBER
    assert decoded.is_sequential_message is True


def test_channel_closed_from_serialized_dict():
    closed = ChannelClosed(
        message_type=CHANNEL_CLOSED_MESSAGE,
        message_id=MESSAGE_ID,
        destination_id=DESTINATION_ID,
        session_id=SESSION_ID,
        schema_version=1,
        created_date="2018-01-01",
    )
    message = _sample_message(
        message_type=CHANNEL_CLOSED_MESSAGE, payload=serialize_client_message_payload(closed)
    )
    decoded = message.deserialize_channel_closed()
    assert decoded.message_type == CHANNEL_CLOSED_MESSAGE
    assert decoded.message_id == MESSAGE_ID
    assert decoded.session_id == SESSION_ID
    assert decoded.destination_id == "destination-id"
    assert decoded == closed


def test_acknowledge_content_rejects_wrong_types():
    with pytest.raises(MessageError, match="AcknowledgedMessageSequenceNumber"):
        AcknowledgeContent.from_dict({"AcknowledgedMessageSequenceNumber": "two"})


def test_acknowledge_content_dict_round_trip():
    content = AcknowledgeContent("acknowledge", MESSAGE_ID, 7, True)
    assert AcknowledgeContent.from_dict(content.to_dict()) == content