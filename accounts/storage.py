"""
MathGPT Photosolver — Local JSON storage for accounts.

Data is persisted in ``config.DATA_FILE`` as a single JSON object whose
``accounts`` mapping is keyed by normalized (lower-case) email.
"""

import hashlib
import json
import logging
import os
import threading
from typing import Callable, Optional

import config
from accounts.models import AccountRecord, normalize_email

logger = logging.getLogger(__name__)


class AccountError(Exception):
    """Registration / login failure with a user-facing message."""


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class AccountStore:
    """Durable mapping from normalized email to :class:`AccountRecord`."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or config.DATA_FILE
        self._lock = threading.RLock()

    # ── Raw database ────────────────────────────────────────────────────

    def _load_db(self) -> dict:
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    db = json.load(f)
                if isinstance(db, dict) and isinstance(db.get("accounts"), dict):
                    return db
                logger.warning("Ignoring malformed account database at %s", self.path)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Could not read account database %s: %s", self.path, exc)
        return {"accounts": {}}

    def _save_db(self, db: dict) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(db, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    # ── Collaborator contract ───────────────────────────────────────────

    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        with self._lock:
            data = self._load_db()["accounts"].get(normalize_email(email))
        return AccountRecord.from_dict(data) if data else None

    def upsert(self, record: AccountRecord) -> None:
        with self._lock:
            db = self._load_db()
            db["accounts"][record.key] = record.to_dict()
            self._save_db(db)

    def update(self, email: str,
               mutate: Callable[[AccountRecord], AccountRecord]) -> AccountRecord:
        """Apply *mutate* to the latest committed record and persist the result.

        The read and the write happen under one lock, so concurrent updates
        never build on a stale snapshot.
        """
        key = normalize_email(email)
        with self._lock:
            db = self._load_db()
            data = db["accounts"].get(key)
            if data is None:
                raise KeyError(email)
            updated = mutate(AccountRecord.from_dict(data))
            if updated.key != key:
                raise ValueError("An update cannot change the account email.")
            db["accounts"][key] = updated.to_dict()
            self._save_db(db)
        return updated

    # ── Registration / login ───────────────────────────────────────────

    def register_account(self, name: str, email: str, password: str) -> AccountRecord:
        name, email = name.strip(), email.strip()
        if not name or not email or not password:
            raise AccountError("All fields are required.")
        with self._lock:
            if self.find_by_email(email) is not None:
                raise AccountError("An account with that email already exists.")
            record = AccountRecord(email=email, name=name,
                                   credential_digest=hash_password(password))
            self.upsert(record)
        logger.info("Registered account %s", record.key)
        return record

    def authenticate(self, email: str, password: str) -> AccountRecord:
        record = self.find_by_email(email)
        if record is None:
            raise AccountError("User not found.")
        if record.credential_digest != hash_password(password):
            raise AccountError("Incorrect password.")
        return record
