"""
Key-value stores backing guard state and the security event logs.

Every component reads fresh from a store at the start of each operation and
writes back at the end; nothing keeps a long-lived copy of persisted state.
"""
import copy
import json
import logging
import threading

from models.db import db
from models.security_record import SecurityRecord

logger = logging.getLogger(__name__)


class Store:
    """Accessor contract shared by the governor, the monitor and the logs."""

    def get(self, key: str):
        raise NotImplementedError

    def set(self, key: str, value) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self, prefix: str = "") -> list[str]:
        raise NotImplementedError


class MemoryStore(Store):
    """Per-process store. Values are copied in and out so callers never alias them."""

    def __init__(self):
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key: str):
        with self._lock:
            if key not in self._data:
                return None
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]


class SqlStore(Store):
    """
    Durable store on the app database (one row per key, JSON value).
    Needs an active Flask app context.
    """

    def get(self, key: str):
        row = SecurityRecord.query.filter_by(key=key).first()
        if not row:
            return None
        try:
            return json.loads(row.value_json)
        except ValueError:
            # Corrupted row reads as absent
            return None

    def set(self, key: str, value) -> None:
        row = SecurityRecord.query.filter_by(key=key).first()
        if not row:
            row = SecurityRecord(key=key)
            db.session.add(row)
        row.value_json = json.dumps(value)
        db.session.commit()

    def delete(self, key: str) -> None:
        SecurityRecord.query.filter_by(key=key).delete()
        db.session.commit()

    def keys(self, prefix: str = "") -> list[str]:
        q = SecurityRecord.query.with_entities(SecurityRecord.key)
        if prefix:
            q = q.filter(SecurityRecord.key.startswith(prefix, autoescape=True))
        return [k for (k,) in q.all()]


class FallbackStore(Store):
    """
    Wraps a store and degrades to memory for the rest of the process the
    first time the primary fails. Never raises.
    """

    def __init__(self, primary: Store):
        self.primary = primary
        self.memory = MemoryStore()
        self.degraded = False

    def _degrade(self, op: str, exc: Exception) -> None:
        if not self.degraded:
            logger.warning("Store %s failed (%s); continuing with in-memory state", op, exc)
        self.degraded = True
        if isinstance(self.primary, SqlStore):
            try:
                db.session.rollback()
            except Exception:
                logger.debug("Rollback after store failure also failed", exc_info=True)

    def get(self, key: str):
        if not self.degraded:
            try:
                return self.primary.get(key)
            except Exception as exc:
                self._degrade("get", exc)
        return self.memory.get(key)

    def set(self, key: str, value) -> None:
        if not self.degraded:
            try:
                self.primary.set(key, value)
                return
            except Exception as exc:
                self._degrade("set", exc)
        self.memory.set(key, value)

    def delete(self, key: str) -> None:
        if not self.degraded:
            try:
                self.primary.delete(key)
                return
            except Exception as exc:
                self._degrade("delete", exc)
        self.memory.delete(key)

    def keys(self, prefix: str = "") -> list[str]:
        if not self.degraded:
            try:
                return self.primary.keys(prefix)
            except Exception as exc:
                self._degrade("keys", exc)
        return self.memory.keys(prefix)
