"""Ingestion cycle coordinator.

One cycle runs in a strict order:
1) Load the watermark and pick backfill or delta mode
2) Pull raw messages from the message source
3) Parse every message with a usable body
4) Write the batch to the tabular sink
5) Advance the watermark

This module is integration-agnostic. It only relies on ports, so the same
state machine drives a CSV file or a spreadsheet from any chat backend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Mapping, Optional

from core.config import IngestConfig, ParserConfig
from core.models import Channel, CycleResult, ParsedRecord, RawMessage, Watermark
from core.parser import build_source_tag_pattern, parse_message
from core.ports import MessageSourcePort, TabularSinkPort, WatermarkStorePort

LOGGER = logging.getLogger(__name__)


def _first_present(item: object, *names: str) -> object:
    for name in names:
        if isinstance(item, Mapping):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


def coerce_raw_message(item: object) -> Optional[RawMessage]:
    """Validate a source item into a RawMessage, or None if it has no usable timestamp.

    Accepts RawMessage instances, mappings and duck-typed objects so that a
    loosely typed source cannot leak missing fields into the parser.
    """

    if isinstance(item, RawMessage):
        timestamp: object = item.timestamp
    else:
        timestamp = _first_present(item, "timestamp")
    if isinstance(timestamp, bool):
        return None
    if isinstance(timestamp, float) and timestamp.is_integer():
        timestamp = int(timestamp)
    if not isinstance(timestamp, int):
        return None

    body = _first_present(item, "body")
    sender_id = _first_present(item, "sender_id", "senderId")
    message_id = _first_present(item, "message_id", "id")
    return RawMessage(
        body=body if isinstance(body, str) else None,
        timestamp=timestamp,
        has_media=bool(_first_present(item, "has_media", "hasMedia")),
        sender_id=str(sender_id) if sender_id not in (None, "") else None,
        message_id=str(message_id) if message_id is not None else None,
    )


@dataclass(frozen=True)
class _Fetched:
    messages: List[RawMessage]
    rejected: int


class IngestionCoordinator:
    """Orchestrates fetch, parse, sink write and watermark advance."""

    def __init__(
        self,
        source: MessageSourcePort,
        sink: TabularSinkPort,
        watermarks: WatermarkStorePort,
        config: IngestConfig,
        parser_config: Optional[ParserConfig] = None,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._watermarks = watermarks
        self._config = config
        parser_config = parser_config or ParserConfig()
        self._tag_pattern = build_source_tag_pattern(parser_config.source_tags)
        self._logger = logger or LOGGER
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_cycle(self) -> CycleResult:
        """Run one ingestion cycle.

        Source and sink failures are reported as a failed CycleResult. A
        watermark that cannot be saved raises WatermarkPersistError, because
        the rows are already written and the caller must know progress was
        not recorded.
        """

        watermark = self._watermarks.load()
        backfill = watermark.is_first_run
        destination = self._config.destination

        try:
            channel = await self._source.resolve_channel(self._config.channel)
            self._warn_on_source_change(watermark, channel)
            fetched = await self._fetch(watermark, backfill)
        except Exception as exc:
            self._logger.exception("Failed to retrieve messages from %s", self._config.channel)
            return self._failed(exc, backfill, destination)

        if backfill:
            candidates = fetched.messages
            self._logger.info("Fetched %s messages from full history", len(candidates))
        else:
            last_ts = watermark.last_processed_timestamp or 0
            candidates = [message for message in fetched.messages if message.timestamp > last_ts]
            self._logger.info(
                "Fetched %s recent messages, %s are new", len(fetched.messages), len(candidates)
            )

        records, skipped, errors = self._parse_all(candidates)
        errors += fetched.rejected
        self._logger.info(
            "Parsed %s messages (skipped: %s, errors: %s)", len(records), skipped, errors
        )

        if not records:
            self._logger.info("No new messages to process")
            return CycleResult(
                success=True,
                processed=0,
                backfill=backfill,
                destination=destination,
                message="No new messages found",
                fetched=len(fetched.messages),
                skipped=skipped,
                errors=errors,
                watermark=watermark,
            )

        # Every fetched timestamp counts, including skipped and unparseable
        # messages: re-reading them later could never produce a row.
        latest_ts = max(message.timestamp for message in fetched.messages)
        latest_ts = max(latest_ts, watermark.last_processed_timestamp or 0)

        try:
            self._sink.write(records, destination, append=not backfill)
        except Exception as exc:
            self._logger.exception("Failed to write %s records to %s", len(records), destination)
            return self._failed(exc, backfill, destination, fetched=len(fetched.messages))
        self._logger.info("Exported %s records to %s", len(records), destination)

        total = watermark.total_records_processed + len(records)
        updated = self._watermarks.update(
            source_id=channel.id,
            source_name=channel.name,
            last_processed_timestamp=latest_ts,
            last_run_at=self._clock().isoformat(),
            total_records_processed=total,
        )
        self._logger.info("Updated watermark: latest timestamp=%s, total processed=%s", latest_ts, total)

        return CycleResult(
            success=True,
            processed=len(records),
            backfill=backfill,
            destination=destination,
            message=f"Successfully processed {len(records)} messages",
            fetched=len(fetched.messages),
            skipped=skipped,
            errors=errors,
            watermark=updated,
        )

    async def _fetch(self, watermark: Watermark, backfill: bool) -> _Fetched:
        channel_ref = self._config.channel
        if backfill:
            self._logger.info("First run detected - fetching all message history")
            return await self._fetch_pages(stop_at=None)

        if not self._config.paginate_delta:
            self._logger.info("Incremental run - fetching up to %s recent messages", self._config.recent_limit)
            raw = await self._source.fetch_recent(channel_ref, self._config.recent_limit)
            return self._accept(raw)

        self._logger.info("Incremental run - paging back to watermark %s", watermark.last_processed_timestamp)
        return await self._fetch_pages(stop_at=watermark.last_processed_timestamp)

    async def _fetch_pages(self, stop_at: Optional[int]) -> _Fetched:
        """Consume source pages until exhaustion or until the watermark is crossed."""

        page_size = self._config.page_size
        messages: List[RawMessage] = []
        rejected = 0
        pages = self._source.fetch_all(self._config.channel, page_size)
        try:
            async for page in pages:
                accepted = self._accept(page)
                messages.extend(accepted.messages)
                rejected += accepted.rejected
                # A short or empty page means the source has nothing older.
                if len(page) < page_size:
                    break
                if stop_at is not None and any(m.timestamp <= stop_at for m in accepted.messages):
                    break
        finally:
            aclose = getattr(pages, "aclose", None)
            if aclose is not None:
                await aclose()
        return _Fetched(messages=messages, rejected=rejected)

    def _accept(self, items: Iterable[object]) -> _Fetched:
        messages: List[RawMessage] = []
        rejected = 0
        for item in items:
            message = coerce_raw_message(item)
            if message is None:
                rejected += 1
                self._logger.warning("Dropping message without a valid timestamp: %r", item)
                continue
            messages.append(message)
        return _Fetched(messages=messages, rejected=rejected)

    def _parse_all(self, messages: Iterable[RawMessage]) -> tuple[list[ParsedRecord], int, int]:
        parsed: list[tuple[int, ParsedRecord]] = []
        skipped = 0
        errors = 0
        for message in messages:
            # Media-only messages without captions have nothing to extract.
            if not isinstance(message.body, str) or not message.body.strip():
                skipped += 1
                continue
            try:
                record = parse_message(
                    message.body,
                    message.timestamp,
                    message.has_media,
                    sender=message.sender_id or "",
                    tag_pattern=self._tag_pattern,
                )
            except Exception:
                errors += 1
                self._logger.warning("Failed to parse message (ID: %s)", message.message_id, exc_info=True)
                continue
            parsed.append((message.timestamp, record))

        # Sources may return newest first; rows are appended oldest first.
        parsed.sort(key=lambda pair: pair[0])
        return [record for _, record in parsed], skipped, errors

    def _warn_on_source_change(self, watermark: Watermark, channel: Channel) -> None:
        if watermark.source_id and watermark.source_id != channel.id:
            self._logger.warning(
                "Watermark belongs to %s (%s) but the configured channel resolved to %s (%s)",
                watermark.source_name,
                watermark.source_id,
                channel.name,
                channel.id,
            )

    def _failed(
        self,
        exc: Exception,
        backfill: bool,
        destination: str,
        fetched: int = 0,
    ) -> CycleResult:
        return CycleResult(
            success=False,
            processed=0,
            backfill=backfill,
            destination=destination,
            message="Ingestion cycle failed",
            error=str(exc) or exc.__class__.__name__,
            fetched=fetched,
        )
