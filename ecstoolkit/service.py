"""Request input for opening a data channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

_FIELDS = (
    ("message_schema_version", "MessageSchemaVersion", 1),
    ("request_id", "RequestId", 16),
    ("token_value", "TokenValue", 1),
    ("client_id", "ClientId", 1),
    ("client_version", "ClientVersion", 1),
)


@dataclass
class OpenDataChannelInput:
    """The fields sent to open a data channel; all are required."""

    message_schema_version: str | None = None
    request_id: str | None = None
    token_value: str | None = None
    client_id: str | None = None
    client_version: str | None = None

    def validate(self) -> None:
        """Raise ValueError naming every missing or too short field."""
        problems = []
        for attribute, name, minimum in _FIELDS:
            value = getattr(self, attribute)
            if value is None:
                problems.append(f"missing required field, OpenDataChannelInput.{name}")
            elif len(value) < minimum:
                problems.append(f"minimum field size of {minimum}, OpenDataChannelInput.{name}")
        if problems:
            raise ValueError("invalid OpenDataChannelInput: " + "; ".join(problems))

    def to_dict(self) -> dict[str, Any]:
        """Return the fields under their wire names."""
        return {name: getattr(self, attribute) for attribute, name, _ in _FIELDS}