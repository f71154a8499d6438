"""Telegram message source adapter.

Implements the core MessageSourcePort on a connected Telethon client and
keeps Telethon-specific details (entities, dialogs, offset ids) out of the
core pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from telethon import TelegramClient
from telethon.utils import get_peer_id

from core.channel_refs import (
    expand_chat_id_variants,
    format_channel_ref,
    name_matches,
    parse_channel_ref,
)
from core.errors import ChannelNotFoundError
from core.models import Channel, RawMessage

LOGGER = logging.getLogger(__name__)


def dialog_type(dialog: Any) -> str:
    if getattr(dialog, "is_channel", False):
        entity = getattr(dialog, "entity", None)
        if getattr(entity, "megagroup", False):
            return "group"
        return "channel"
    if getattr(dialog, "is_group", False):
        return "group"
    if getattr(dialog, "is_user", False):
        return "user"
    return "chat"


def entity_title(entity: Any, fallback: Optional[str] = None) -> str:
    title = getattr(entity, "title", None)
    if title:
        return str(title)
    if fallback:
        return str(fallback)
    first = getattr(entity, "first_name", None)
    last = getattr(entity, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    entity_id = getattr(entity, "id", None)
    return str(entity_id or "unknown")


def channel_from_entity(entity: Any, kind: str = "chat") -> Channel:
    """Build a core Channel, preferring the public username as its id."""

    username = getattr(entity, "username", None)
    channel_id = format_channel_ref(username, None if username else get_peer_id(entity))
    return Channel(id=channel_id, name=entity_title(entity), kind=kind)


def raw_message_from(message: Any) -> RawMessage:
    """Map a Telethon message onto the core RawMessage."""

    text = getattr(message, "raw_text", None)
    date = getattr(message, "date", None)
    # Channel posts carry an optional author signature instead of a sender.
    sender = getattr(message, "post_author", None) or getattr(message, "sender_id", None)
    message_id = getattr(message, "id", None)
    return RawMessage(
        body=text if isinstance(text, str) else None,
        timestamp=int(date.timestamp()) if date is not None else 0,
        has_media=getattr(message, "media", None) is not None,
        sender_id=str(sender) if sender is not None else None,
        message_id=str(message_id) if message_id is not None else None,
    )


class TelegramMessageSource:
    """Read-only message source over a connected, authorized client."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client
        self._entities: dict[str, Any] = {}

    async def list_channels(self) -> list[Channel]:
        """Return every non-private dialog the account can read."""

        channels: list[Channel] = []
        async for dialog in self._client.iter_dialogs():
            # Private 1:1 chats are never ingestion targets.
            if getattr(dialog, "is_user", False):
                continue
            entity = dialog.entity
            channels.append(
                Channel(
                    id=format_channel_ref(getattr(entity, "username", None), dialog.id),
                    name=entity_title(entity, getattr(dialog, "name", None)),
                    kind=dialog_type(dialog),
                )
            )
        return channels

    async def resolve_channel(self, channel_ref: str) -> Channel:
        entity = await self._resolve_entity(channel_ref)
        return channel_from_entity(entity)

    async def fetch_recent(self, channel_ref: str, limit: int) -> list[RawMessage]:
        entity = await self._resolve_entity(channel_ref)
        messages = await self._client.get_messages(entity, limit=limit)
        return [raw_message_from(message) for message in messages]

    async def fetch_all(self, channel_ref: str, page_size: int) -> AsyncIterator[list[RawMessage]]:
        """Yield pages newest first, walking back by message id."""

        entity = await self._resolve_entity(channel_ref)
        offset_id = 0
        while True:
            messages = await self._client.get_messages(entity, limit=page_size, offset_id=offset_id)
            LOGGER.debug("Fetched page of %s messages before id %s", len(messages), offset_id)
            yield [raw_message_from(message) for message in messages]
            if len(messages) < page_size:
                return
            offset_id = messages[-1].id

    async def _resolve_entity(self, channel_ref: str) -> Any:
        if channel_ref in self._entities:
            return self._entities[channel_ref]

        ref = parse_channel_ref(channel_ref)
        entity = None
        if ref.kind == "username":
            try:
                entity = await self._client.get_entity(ref.value)
            except ValueError:
                entity = None
        elif ref.kind == "chat_id":
            # Config may hold any of the peer, chat or channel id forms.
            for variant in sorted(expand_chat_id_variants(ref.chat_id)):
                try:
                    entity = await self._client.get_entity(variant)
                    break
                except ValueError:
                    continue
        else:
            LOGGER.info("Searching dialogs for chat: %s", ref.value)
            async for dialog in self._client.iter_dialogs():
                if name_matches(ref, entity_title(dialog.entity, getattr(dialog, "name", None))):
                    entity = dialog.entity
                    break

        if entity is None:
            raise ChannelNotFoundError(
                f"Chat {channel_ref!r} not found. Check source.channel in config.json."
            )
        self._entities[channel_ref] = entity
        return entity
