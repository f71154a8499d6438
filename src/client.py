"""Telegram client factory for chatledger.

The client is only the transport for the message source adapter; the
ingestion core never sees it. Credentials come from the environment so
secrets stay out of config.json.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from telethon import TelegramClient


def build_client(project_root: Path, env: Optional[Mapping[str, str]] = None) -> TelegramClient:
    """Create a Telethon client from API_ID/API_HASH/SESSION_NAME.

    The session file lives under ``data/`` so repeated scheduled runs reuse
    one authorization.
    """

    env = os.environ if env is None else env
    api_id = env.get("API_ID")
    api_hash = env.get("API_HASH")
    session_name = env.get("SESSION_NAME", "chatledger")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    try:
        numeric_api_id = int(api_id)
    except ValueError as error:
        raise RuntimeError(f"API_ID must be numeric, got {api_id!r}") from error

    session_dir = project_root / "data"
    session_dir.mkdir(parents=True, exist_ok=True)
    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(str(session_dir / session_name), numeric_api_id, api_hash)
