"""Helpers for working with channel references.

A channel reference in config is one of:
- ``@username`` for public chats
- ``chat_id:<int>`` for any chat, in peer, chat or channel id form
- anything else, matched case-insensitively against chat titles
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

USERNAME_PREFIX = "@"
CHAT_ID_PREFIX = "chat_id:"


@dataclass(frozen=True)
class ChannelRef:
    """Parsed form of a configured channel reference."""

    kind: str
    value: str
    chat_id: Optional[int] = None


def parse_channel_ref(raw_ref: str) -> ChannelRef:
    """Classify a channel reference as username, chat_id or name."""

    ref = raw_ref.strip()
    if not ref:
        raise ValueError("Channel reference must not be empty")

    if ref.startswith(USERNAME_PREFIX) and len(ref) > 1:
        return ChannelRef(kind="username", value=ref.lower())

    if ref.startswith(CHAT_ID_PREFIX):
        raw_id = ref[len(CHAT_ID_PREFIX):].strip()
        try:
            chat_id = int(raw_id)
        except ValueError as error:
            raise ValueError(f"chat_id must be numeric: {raw_ref!r}") from error
        return ChannelRef(kind="chat_id", value=f"{CHAT_ID_PREFIX}{chat_id}", chat_id=chat_id)

    return ChannelRef(kind="name", value=ref)


def format_channel_ref(username: Optional[str], chat_id: Optional[int]) -> str:
    """Return the canonical reference for a chat, preferring its username."""

    if isinstance(username, str) and username:
        return f"{USERNAME_PREFIX}{username.lower()}"
    return f"{CHAT_ID_PREFIX}{chat_id}"


def expand_chat_id_variants(raw_chat_id: int) -> set[int]:
    """Return equivalent chat id variants (peer id, chat id, channel id)."""

    variants: set[int] = {raw_chat_id}
    if raw_chat_id < 0:
        raw_text = str(raw_chat_id)
        if raw_text.startswith("-100"):
            # Channel/supergroup peer id: -100<channel_id>
            channel_part = raw_text[4:]
            if channel_part.isdigit():
                variants.add(int(channel_part))
        else:
            variants.add(abs(raw_chat_id))
        return variants

    # raw_chat_id is positive: add PeerChat and PeerChannel-style ids.
    variants.add(-raw_chat_id)
    variants.add(-1000000000000 - raw_chat_id)
    return variants


def name_matches(ref: ChannelRef, title: Optional[str]) -> bool:
    """Partial, case-insensitive title match used for ``name`` references."""

    if ref.kind != "name" or not title:
        return False
    return ref.value.lower() in title.lower()
