"""Payloads exchanged while negotiating a session handshake."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum, IntEnum
from typing import Any


class ActionType(str, Enum):
    """Actions the agent may ask the client to perform."""

    KMS_ENCRYPTION = "KMSEncryption"
    SESSION_TYPE = "SessionType"


class ActionStatus(IntEnum):
    """Outcome of processing a requested action."""

    SUCCESS = 1
    FAILED = 2
    UNSUPPORTED = 3


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    to_json = getattr(value, "_to_json", None)
    if callable(to_json):
        return to_json()
    return value


def _require_dict(data: Any, name: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{name} must be a JSON object, got {type(data).__name__}")
    return data


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _action_type(value: str) -> ActionType | str:
    try:
        return ActionType(value)
    except ValueError:
        return value


@dataclass
class KMSEncryptionRequest:
    """Sent by the agent to start KMS encryption."""

    kms_key_id: str = ""

    def _to_json(self) -> dict[str, Any]:
        return {"KMSKeyId": self.kms_key_id}


@dataclass
class KMSEncryptionResponse:
    """Returned to the agent to set up KMS encryption."""

    kms_cipher_text_key: bytes = b""
    kms_cipher_text_hash: bytes = b""

    def _to_json(self) -> dict[str, Any]:
        return {
            "KMSCipherTextKey": _jsonable(self.kms_cipher_text_key),
            "KMSCipherTextHash": _jsonable(self.kms_cipher_text_hash),
        }


@dataclass
class SessionTypeRequest:
    """The type of session to launch and the properties for its plugin."""

    session_type: str = ""
    properties: Any = None

    def _to_json(self) -> dict[str, Any]:
        return {"SessionType": self.session_type, "Properties": _jsonable(self.properties)}


@dataclass
class RequestedClientAction:
    """An action requested by the agent; its parameters are kept as decoded JSON."""

    action_type: ActionType | str = ""
    action_parameters: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> RequestedClientAction:
        """Build an action from its decoded JSON object."""
        data = _require_dict(data, "RequestedClientAction")
        return cls(
            action_type=_action_type(_string(data, "ActionType")),
            action_parameters=data.get("ActionParameters"),
        )


@dataclass
class HandshakeRequestPayload:
    """The handshake request sent by the agent."""

    agent_version: str = ""
    requested_client_actions: list[RequestedClientAction] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> HandshakeRequestPayload:
        """Build a request from its decoded JSON object."""
        data = _require_dict(data, "HandshakeRequestPayload")
        actions = data.get("RequestedClientActions") or []
        if not isinstance(actions, list):
            raise ValueError("RequestedClientActions must be a JSON array")
        return cls(
            agent_version=_string(data, "AgentVersion"),
            requested_client_actions=[RequestedClientAction.from_dict(item) for item in actions],
        )


@dataclass
class ProcessedClientAction:
    """The result of processing one requested action."""

    action_type: ActionType | str = ""
    action_status: ActionStatus | int = 0
    action_result: Any = None
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this result."""
        return {
            "ActionType": _jsonable(self.action_type),
            "ActionStatus": int(self.action_status),
            "ActionResult": _jsonable(self.action_result),
            "Error": self.error,
        }


@dataclass
class HandshakeResponsePayload:
    """The client's reply to a handshake request."""

    client_version: str = ""
    processed_client_actions: list[ProcessedClientAction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this reply."""
        return {
            "ClientVersion": self.client_version,
            "ProcessedClientActions": [action.to_dict() for action in self.processed_client_actions],
            "Errors": list(self.errors),
        }


@dataclass
class EncryptionChallengeRequest:
    """Data encrypted by the agent that the client must decrypt and re-encrypt."""

    challenge: bytes = b""

    def _to_json(self) -> dict[str, Any]:
        return {"Challenge": _jsonable(self.challenge)}


@dataclass
class EncryptionChallengeResponse:
    """The challenge re-encrypted by the client for the agent to verify."""

    challenge: bytes = b""

    def _to_json(self) -> dict[str, Any]:
        return {"Challenge": _jsonable(self.challenge)}


@dataclass
class HandshakeCompletePayload:
    """Tells the client the handshake is done and what to show the user."""

    handshake_time_to_complete: timedelta = timedelta(0)
    customer_message: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> HandshakeCompletePayload:
        """Build the payload; the duration arrives as integer nanoseconds."""
        data = _require_dict(data, "HandshakeCompletePayload")
        nanoseconds = data.get("HandshakeTimeToComplete") or 0
        if isinstance(nanoseconds, bool) or not isinstance(nanoseconds, int):
            raise ValueError("HandshakeTimeToComplete must be an integer")
        return cls(
            handshake_time_to_complete=timedelta(microseconds=nanoseconds / 1000),
            customer_message=_string(data, "CustomerMessage"),
        )