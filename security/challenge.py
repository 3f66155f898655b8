"""
Human-verification challenge shown once an identity requires one.

Arithmetic puzzles; only hashes of the token and the answer are stored.
"""
import hashlib
import hmac
import random
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

CHALLENGE_KEY_PREFIX = "login_challenge_"
DIFFICULTIES = ("easy", "medium", "hard")


def _hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


@dataclass
class Challenge:
    token: str
    question: str
    expires_at: datetime


def make_puzzle(difficulty: str, rng) -> tuple[str, int]:
    """Returns (question, answer)."""
    if difficulty == "easy":
        a, b = rng.randint(1, 10), rng.randint(1, 10)
        op = rng.choice("+-")
        if op == "-" and a < b:
            a, b = b, a
        return f"{a} {op} {b} = ?", a + b if op == "+" else a - b

    if difficulty == "medium":
        op = rng.choice("+-*")
        if op == "*":
            a, b = rng.randint(1, 12), rng.randint(1, 12)
            return f"{a} * {b} = ?", a * b
        a, b = rng.randint(1, 20), rng.randint(1, 20)
        if op == "-" and a < b:
            a, b = b, a
        return f"{a} {op} {b} = ?", a + b if op == "+" else a - b

    if difficulty == "hard":
        kind = rng.choice(("square", "sequence", "mixed"))
        if kind == "square":
            a = rng.randint(1, 15)
            return f"{a}² = ?", a * a
        if kind == "sequence":
            start, step = rng.randint(2, 11), rng.randint(1, 5)
            seq = ", ".join(str(start + step * i) for i in range(3))
            return f"{seq}, ?", start + step * 3
        a, b, c = rng.randint(1, 15), rng.randint(2, 9), rng.randint(1, 10)
        return f"{a} + {b} × {c} = ?", a + b * c

    raise ValueError(f"unknown difficulty: {difficulty}")


class ChallengeService:
    def __init__(self, store, clock=None, ttl=timedelta(minutes=5), max_tries=3, rng=None):
        self.store = store
        self.ttl = ttl
        self.max_tries = max_tries
        self._clock = clock or datetime.utcnow
        self._rng = rng or random.SystemRandom()

    def purge_expired(self) -> int:
        """Drop challenges past their expiry (or unreadable). Returns how many went."""
        now = self._clock()
        purged = 0
        for key in self.store.keys(CHALLENGE_KEY_PREFIX):
            row = self.store.get(key)
            try:
                expired = datetime.fromisoformat(row["expires_at"]) <= now
            except (KeyError, TypeError, ValueError):
                expired = True
            if expired:
                self.store.delete(key)
                purged += 1
        return purged

    def issue(self, difficulty: str = "medium") -> Challenge:
        question, answer = make_puzzle(difficulty, self._rng)
        self.purge_expired()
        token = secrets.token_urlsafe(24)
        expires_at = self._clock() + self.ttl

        self.store.set(CHALLENGE_KEY_PREFIX + _hash(token), {
            "answer_hash": _hash(str(answer)),
            "expires_at": expires_at.isoformat(),
            "attempts": 0,
        })
        return Challenge(token=token, question=question, expires_at=expires_at)

    def verify(self, token: str, answer) -> bool:
        if not token:
            return False
        key = CHALLENGE_KEY_PREFIX + _hash(token)
        row = self.store.get(key)
        if not isinstance(row, dict):
            return False

        try:
            expires_at = datetime.fromisoformat(row["expires_at"])
            attempts = int(row.get("attempts", 0))
            answer_hash = str(row["answer_hash"])
        except (KeyError, TypeError, ValueError):
            self.store.delete(key)
            return False

        if expires_at <= self._clock():
            self.store.delete(key)
            return False

        if hmac.compare_digest(answer_hash, _hash(str(answer).strip())):
            self.store.delete(key)
            return True

        attempts += 1
        if attempts >= self.max_tries:
            self.store.delete(key)
        else:
            row["attempts"] = attempts
            self.store.set(key, row)
        return False
