"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

DEFAULT_SOURCE_TAGS: Tuple[str, ...] = ("צ'אט", "chat", "קבוצת")


@dataclass(frozen=True)
class ParserConfig:
    """Record parser settings."""

    source_tags: Tuple[str, ...] = DEFAULT_SOURCE_TAGS


@dataclass(frozen=True)
class IngestConfig:
    """Ingestion cycle settings consumed by the coordinator.

    ``page_size`` bounds every paged request, ``recent_limit`` bounds the
    single-shot delta fetch used when ``paginate_delta`` is off.
    """

    channel: str
    destination: str
    page_size: int = 100
    recent_limit: int = 100
    paginate_delta: bool = True
