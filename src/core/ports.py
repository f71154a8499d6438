"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the message source, the tabular sink
and the watermark store so that the core can be reused with different
backends.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, Sequence

from core.models import Channel, ParsedRecord, RawMessage, Watermark


class MessageSourcePort(Protocol):
    """Read access to a chat, owned by an external integration."""

    async def list_channels(self) -> list[Channel]:
        ...

    async def resolve_channel(self, channel_ref: str) -> Channel:
        ...

    async def fetch_recent(self, channel_ref: str, limit: int) -> list[RawMessage]:
        ...

    def fetch_all(self, channel_ref: str, page_size: int) -> AsyncIterator[list[RawMessage]]:
        """Yield pages of at most ``page_size`` messages, newest page first."""
        ...


class TabularSinkPort(Protocol):
    """Durable tabular destination for parsed records."""

    def write(self, records: Sequence[ParsedRecord], destination: str, append: bool = False) -> None:
        ...


class WatermarkStorePort(Protocol):
    """Persistence for the per-source progress marker."""

    def load(self) -> Watermark:
        ...

    def save(self, watermark: Watermark) -> None:
        ...

    def update(self, **changes: object) -> Watermark:
        ...
