"""
Chat session memory. Keyed by session_id; history is not sent from the client.

Turns are stored in the `memory` collection with a per-session ordinal and are
replayed in that order. Concurrent turns on one session are not coordinated.
"""

import logging
from datetime import datetime, timezone

from storeagent.core.config import MEMORY
from storeagent.core.store import EntityStore

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")


class SessionMemory:
    """Append-only transcript for one session."""

    def __init__(self, store: EntityStore, session_id: str) -> None:
        if not session_id or not isinstance(session_id, str):
            raise ValueError("session_id is required")
        self._store = store
        self.session_id = session_id

    def append(self, role: str, content: str) -> None:
        """Append one message to the session's history."""
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {role!r}")
        ordinal = self._store.count(MEMORY, {"session_id": self.session_id})
        self._store.insert_one(
            MEMORY,
            {
                "session_id": self.session_id,
                "role": role,
                "content": content or "",
                "ordinal": ordinal,
                "created_at": datetime.now(timezone.utc),
            },
        )
        logger.info(
            "[session_store:append] session_id=%s role=%s ordinal=%d content_len=%d",
            self.session_id[:16], role, ordinal, len(content or ""),
        )

    def list(self) -> list[dict[str, str]]:
        """Return the transcript in recorded order as [{"role", "content"}]."""
        page = self._store.find_paginated(
            MEMORY,
            {"session_id": self.session_id},
            {"_id": 0, "role": 1, "content": 1},
            sort={"ordinal": 1},
            offset=0,
            limit=0,
        )
        out = [{"role": m["role"], "content": m.get("content", "")} for m in page["items"]]
        logger.info("[session_store:list] session_id=%s OUT messages=%d", self.session_id[:16], len(out))
        return out

    def clear(self) -> None:
        result = self._store.delete_many(MEMORY, {"session_id": self.session_id})
        logger.info("[session_store:clear] session_id=%s removed=%d", self.session_id[:16], result["deleted_count"])
