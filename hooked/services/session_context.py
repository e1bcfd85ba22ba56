"""
Session context: the event id and session id that scope every query.

A context is built once per process (or per request on the API side) and
passed to each service. It is never module-level state, and every read goes
back to the underlying key-value store.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Dict, Optional, Tuple

from hooked.core.config import settings
from hooked.core.exceptions import SessionRequiredError

logger = logging.getLogger(__name__)

CURRENT_EVENT_ID = "currentEventId"
CURRENT_SESSION_ID = "currentSessionId"
CURRENT_EVENT_CODE = "currentEventCode"
CURRENT_PROFILE_COLOR = "currentProfileColor"
CURRENT_PHOTO_URL = "currentProfilePhotoUrl"
LAST_EVENT_ID = "last_event_id"
LAST_SESSION_ID = "last_session_id"

SESSION_KEYS = (
    CURRENT_EVENT_ID,
    CURRENT_SESSION_ID,
    CURRENT_EVENT_CODE,
    CURRENT_PROFILE_COLOR,
    CURRENT_PHOTO_URL,
)


class KeyValueStore:
    """String key-value persistence"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data = {key: value for key, value in (initial or {}).items() if value}

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = value

    def remove(self, key):
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """Keeps the values in a small JSON file so they survive restarts"""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get(self, key):
        return self._read().get(key)

    def set(self, key, value):
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key):
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


class SessionContext:
    """Resolves the active event and session for one attendee"""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @classmethod
    def from_ids(cls, event_id: Optional[str], session_id: Optional[str]) -> "SessionContext":
        return cls(MemoryKeyValueStore({CURRENT_EVENT_ID: event_id, CURRENT_SESSION_ID: session_id}))

    @classmethod
    def local(cls, path: Optional[str] = None) -> "SessionContext":
        """Context persisted in a JSON file, for clients running in-process"""
        return cls(JsonFileKeyValueStore(path or settings.SESSION_STORE_PATH))

    def current_event_id(self) -> Optional[str]:
        return self.kv.get(CURRENT_EVENT_ID) or None

    def current_session_id(self) -> Optional[str]:
        return self.kv.get(CURRENT_SESSION_ID) or None

    def current_event_code(self) -> Optional[str]:
        return self.kv.get(CURRENT_EVENT_CODE) or None

    def is_active(self) -> bool:
        return bool(self.current_event_id() and self.current_session_id())

    def require_event(self) -> str:
        event_id = self.current_event_id()
        if not event_id:
            raise SessionRequiredError()
        return event_id

    def require(self) -> Tuple[str, str]:
        """Return (event_id, session_id) or raise SessionRequiredError"""
        event_id = self.current_event_id()
        session_id = self.current_session_id()
        if not event_id or not session_id:
            raise SessionRequiredError()
        return event_id, session_id

    def start(self, event_id: str, event_code: str) -> None:
        self.kv.set(CURRENT_EVENT_ID, event_id)
        self.kv.set(CURRENT_EVENT_CODE, event_code)

    def set_session(self, session_id: str, profile_color: Optional[str] = None, photo_url: Optional[str] = None) -> None:
        self.kv.set(CURRENT_SESSION_ID, session_id)
        if profile_color:
            self.kv.set(CURRENT_PROFILE_COLOR, profile_color)
        if photo_url:
            self.kv.set(CURRENT_PHOTO_URL, photo_url)

    def clear(self) -> None:
        """Forget the current event, remembering it as the last one for feedback"""
        event_id = self.current_event_id()
        session_id = self.current_session_id()
        if event_id and session_id:
            self.kv.set(LAST_EVENT_ID, event_id)
            self.kv.set(LAST_SESSION_ID, session_id)
        for key in SESSION_KEYS:
            self.kv.remove(key)
        logger.info(f"Cleared session {session_id} for event {event_id}")

    def last_event(self) -> Tuple[Optional[str], Optional[str]]:
        event_id = self.current_event_id() or self.kv.get(LAST_EVENT_ID)
        session_id = self.current_session_id() or self.kv.get(LAST_SESSION_ID)
        return event_id, session_id

    def has_seen_guide(self, event_id: str) -> bool:
        return bool(self.kv.get(f"hasSeenGuide_{event_id}"))

    def mark_guide_seen(self, event_id: str) -> None:
        self.kv.set(f"hasSeenGuide_{event_id}", "true")

    def feedback_given(self, event_id: str) -> bool:
        return bool(self.kv.get(f"feedback_given_for_{event_id}"))

    def mark_feedback_given(self, event_id: str) -> None:
        self.kv.set(f"feedback_given_for_{event_id}", "true")
