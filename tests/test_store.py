"""Tests for the key-value stores."""

from models import FallbackStore, MemoryStore, SecurityRecord, SqlStore, db


class BrokenStore:
    def __init__(self):
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise OSError("storage unavailable")

    get = set = delete = keys = _fail


def test_memory_store_returns_copies() -> None:
    store = MemoryStore()
    value = {"attempt_count": 1, "recent_attempts": []}
    store.set("k", value)
    value["attempt_count"] = 99

    loaded = store.get("k")
    assert loaded["attempt_count"] == 1
    loaded["recent_attempts"].append("x")
    assert store.get("k")["recent_attempts"] == []


def test_memory_store_keys_by_prefix_and_delete() -> None:
    store = MemoryStore()
    store.set("login_security_a", {})
    store.set("login_security_b", {})
    store.set("security_logs", [])

    assert sorted(store.keys("login_security_")) == ["login_security_a", "login_security_b"]
    store.delete("login_security_a")
    store.delete("missing")
    assert store.keys("login_security_") == ["login_security_b"]
    assert store.get("login_security_a") is None


def test_sql_store_round_trip(app) -> None:
    store = SqlStore()
    store.set("login_security_a@x.io", {"attempt_count": 2})
    store.set("login_security_a@x.io", {"attempt_count": 3})
    store.set("loginXsecurity_other", {})

    assert store.get("login_security_a@x.io") == {"attempt_count": 3}
    assert SecurityRecord.query.count() == 2
    # underscore in the prefix is literal, not a LIKE wildcard
    assert store.keys("login_security_") == ["login_security_a@x.io"]

    store.delete("login_security_a@x.io")
    assert store.get("login_security_a@x.io") is None


def test_sql_store_corrupted_row_reads_as_absent(app) -> None:
    db.session.add(SecurityRecord(key="login_security_bad", value_json="{not json"))
    db.session.commit()

    assert SqlStore().get("login_security_bad") is None


def test_fallback_store_degrades_to_memory() -> None:
    primary = BrokenStore()
    store = FallbackStore(primary)

    assert store.get("k") is None
    assert store.degraded is True

    store.set("k", {"v": 1})
    assert store.get("k") == {"v": 1}
    assert store.keys() == ["k"]
    # primary is not retried once degraded
    assert primary.calls == 1


def test_fallback_store_survives_missing_table(app) -> None:
    db.drop_all()
    store = FallbackStore(SqlStore())

    store.set("global_login_security", {"attempts": 1})
    assert store.degraded is True
    assert store.get("global_login_security") == {"attempts": 1}


def test_fallback_store_passes_through_when_healthy() -> None:
    primary = MemoryStore()
    store = FallbackStore(primary)
    store.set("k", [1, 2])
    assert primary.get("k") == [1, 2]
    assert store.degraded is False
