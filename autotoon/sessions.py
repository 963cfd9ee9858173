# sessions.py
import logging
import random
import string
import time
from typing import Dict, Optional

from autotoon.models import Session

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class SessionStore:
    """
    In-process generation state keyed by session id.

    Sessions live until the process exits unless `ttl_seconds` is set, in
    which case expired sessions are dropped when the store is next touched.
    Updates are not locked: concurrent writers to one session win per field.
    """

    def __init__(self, ttl_seconds: int = 0):
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[str, Session] = {}
        self._touched: Dict[str, float] = {}

    def __len__(self) -> int:
        self._evict()
        return len(self._sessions)

    def create(self, **fields) -> str:
        self._evict()
        sid = new_session_id()
        while sid in self._sessions:
            sid = new_session_id()
        self._sessions[sid] = Session(id=sid, **fields)
        self._touched[sid] = time.monotonic()
        return sid

    def get(self, sid: str) -> Optional[Session]:
        self._evict()
        return self._sessions.get(sid)

    def update(self, sid: str, **fields) -> Optional[Session]:
        self._evict()
        session = self._sessions.get(sid)
        if session is None:
            return None
        for k, v in fields.items():
            if k == "id" or k not in Session.model_fields:
                continue
            setattr(session, k, v)
        self._touched[sid] = time.monotonic()
        return session

    def _evict(self):
        if not self.ttl_seconds:
            return
        cutoff = time.monotonic() - self.ttl_seconds
        for sid in [s for s, t in self._touched.items() if t < cutoff]:
            self._sessions.pop(sid, None)
            self._touched.pop(sid, None)
            logger.info("Session %s expired", sid)
