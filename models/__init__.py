from .db import db
from .security_record import SecurityRecord
from .store import Store, MemoryStore, SqlStore, FallbackStore
