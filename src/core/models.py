"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class RawMessage:
    """One message as delivered by a message source, before parsing."""

    body: Optional[str]
    timestamp: int
    has_media: bool = False
    sender_id: Optional[str] = None
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ParsedRecord:
    """Structured row extracted from a single raw message."""

    reporter: str
    content: str
    date: str
    time: str
    links: Tuple[str, ...] = ()
    has_media: bool = False
    sender: str = ""


@dataclass(frozen=True)
class Watermark:
    """Persisted progress marker for one message source.

    A ``last_processed_timestamp`` of None (or 0) means no cycle has
    completed yet and the next run must backfill.
    """

    source_id: Optional[str] = None
    source_name: Optional[str] = None
    last_processed_timestamp: Optional[int] = None
    last_run_at: Optional[str] = None
    total_records_processed: int = 0

    @property
    def is_first_run(self) -> bool:
        return not self.last_processed_timestamp


@dataclass(frozen=True)
class Channel:
    """A chat the message source can read from."""

    id: str
    name: str
    kind: str = "chat"


@dataclass(frozen=True)
class CycleResult:
    """Summary of one ingestion cycle, returned instead of raising."""

    success: bool
    processed: int
    backfill: bool
    destination: str
    message: str
    error: Optional[str] = None
    fetched: int = 0
    skipped: int = 0
    errors: int = 0
    watermark: Optional[Watermark] = field(default=None, compare=False)
