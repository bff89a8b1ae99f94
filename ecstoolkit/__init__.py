"""Data-channel message codec, handshake payloads, retry helpers and logging."""

__version__ = "0.1.0"