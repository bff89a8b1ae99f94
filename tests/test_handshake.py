import base64
import json
from datetime import timedelta

import pytest

from ecstoolkit.handshake import (
    ActionStatus,
    ActionType,
    HandshakeCompletePayload,
    HandshakeRequestPayload,
    HandshakeResponsePayload,
    KMSEncryptionResponse,
    ProcessedClientAction,
    RequestedClientAction,
)

REQUEST_JSON = """{
    "AgentVersion": "3.0",
    "RequestedClientActions": [
        {"ActionType": "start", "ActionParameters": {"name": "richard"}},
        {"ActionType": "KMSEncryption", "ActionParameters": {"KMSKeyId": "key-id"}}
    ]
}"""


def test_handshake_request_from_dict():
    payload = HandshakeRequestPayload.from_dict(json.loads(REQUEST_JSON))
    assert payload.agent_version == "3.0"
    assert payload.requested_client_actions[0].action_type == "start"
    assert payload.requested_client_actions[0].action_parameters == {"name": "richard"}


def test_known_action_type_becomes_enum():
    payload = HandshakeRequestPayload.from_dict(json.loads(REQUEST_JSON))
    assert payload.requested_client_actions[1].action_type is ActionType.KMS_ENCRYPTION


def test_empty_request_has_zero_values():
    payload = HandshakeRequestPayload.from_dict({})
    assert payload == HandshakeRequestPayload()
    assert payload.requested_client_actions == []


@pytest.mark.parametrize("data", ["text", [1, 2], 5])
def test_request_rejects_non_object(data):
    with pytest.raises(ValueError):
        HandshakeRequestPayload.from_dict(data)


def test_request_rejects_wrong_field_type():
    with pytest.raises(ValueError):
        HandshakeRequestPayload.from_dict({"AgentVersion": 3})
    with pytest.raises(ValueError):
        RequestedClientAction.from_dict({"ActionType": ["x"]})


def test_handshake_complete_from_dict():
    payload = HandshakeCompletePayload.from_dict(
        {"HandshakeTimeToComplete": 1000000, "CustomerMessage": "Handshake Complete"}
    )
    assert payload.handshake_time_to_complete == timedelta(milliseconds=1)
    assert payload.customer_message == "Handshake Complete"


def test_handshake_complete_rejects_bad_duration():
    with pytest.raises(ValueError):
        HandshakeCompletePayload.from_dict({"HandshakeTimeToComplete": "soon"})


@pytest.mark.parametrize(
    "status, expected",
    [
        (ActionStatus.SUCCESS, 1),
        (ActionStatus.FAILED, 2),
        (ActionStatus.UNSUPPORTED, 3),
    ],
)
def test_action_status_values_in_to_dict(status, expected):
    encoded = ProcessedClientAction(
        action_type=ActionType.SESSION_TYPE,
        action_status=status,
    ).to_dict()
    assert encoded["ActionStatus"] == expected
    assert encoded["ActionType"] == "SessionType"


def test_processed_action_to_dict_encodes_bytes():
    result = KMSEncryptionResponse(kms_cipher_text_key=b"\x01\x02", kms_cipher_text_hash=b"\xff")
    action = ProcessedClientAction(
        action_type=ActionType.KMS_ENCRYPTION,
        action_status=ActionStatus.SUCCESS,
        action_result=result,
    )
    encoded = action.to_dict()
    assert encoded["ActionType"] == "KMSEncryption"
    assert encoded["ActionStatus"] == 1
    assert encoded["Error"] == ""
    assert base64.b64decode(encoded["ActionResult"]["KMSCipherTextKey"]) == b"\x01\x02"
    assert base64.b64decode(encoded["ActionResult"]["KMSCipherTextHash"]) == b"\xff"


def test_handshake_response_to_dict_is_json_serialisable():
    response = HandshakeResponsePayload(
        client_version="1.2.3",
        processed_client_actions=[
            ProcessedClientAction(
                action_type=ActionType.SESSION_TYPE,
                action_status=ActionStatus.FAILED,
                error="boom",
            )
        ],
        errors=["boom"],
    )
    decoded = json.loads(json.dumps(response.to_dict()))
    assert decoded["ClientVersion"] == "1.2.3"
    assert decoded["ProcessedClientActions"][0]["ActionStatus"] == ActionStatus.FAILED
    assert decoded["ProcessedClientActions"][0]["ActionType"] == "SessionType"
    assert decoded["Errors"] == ["boom"]