import re

from autotoon import sessions
from autotoon.sessions import SessionStore, new_session_id


def test_session_id_shape():
    assert re.fullmatch(r"session_\d+_[a-z0-9]{9}", new_session_id())


def test_create_get_update():
    store = SessionStore()
    sid = store.create(story="A story.", style="manga", scenes=["A story."])
    session = store.get(sid)
    assert session.id == sid
    assert session.prompts == []

    store.update(sid, prompts=["p1"], id="hijack", unknown="x")
    session = store.get(sid)
    assert session.id == sid
    assert session.prompts == ["p1"]
    assert session.scenes == ["A story."]


def test_missing_session():
    store = SessionStore()
    assert store.get("session_0_missing") is None
    assert store.update("session_0_missing", prompts=[]) is None


def test_sessions_expire_after_ttl(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(sessions.time, "monotonic", lambda: now[0])
    store = SessionStore(ttl_seconds=60)
    old = store.create(story="old")
    now[0] += 45
    fresh = store.create(story="fresh")
    now[0] += 30
    assert store.get(old) is None
    assert store.get(fresh) is not None
    assert len(store) == 1


def test_no_ttl_keeps_sessions(monkeypatch):
    now = [0.0]
    monkeypatch.setattr(sessions.time, "monotonic", lambda: now[0])
    store = SessionStore()
    sid = store.create()
    now[0] += 10 ** 6
    assert store.get(sid) is not None
