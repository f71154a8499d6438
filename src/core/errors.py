"""Chatledger exception hierarchy.

Each boundary raises a specific error type so callers can tell a failed
sink write from a failed watermark save.
"""

from __future__ import annotations


class ChatLedgerError(Exception):
    """Base exception for all chatledger failures."""


class ConfigError(ChatLedgerError):
    """Raised for invalid runtime configuration."""


class ChannelNotFoundError(ChatLedgerError):
    """Raised when a message source cannot resolve the configured channel."""


class SinkWriteError(ChatLedgerError):
    """Raised when a tabular sink cannot write to its destination."""


class WatermarkPersistError(ChatLedgerError):
    """Raised when the watermark cannot be durably saved."""
