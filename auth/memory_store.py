"""
auth/memory_store.py -- In-process CredentialStore.

Keeps users in a dict and guards each user's refresh slot with its own
threading.Lock, so compare_and_set_refresh_token() is atomic per user without
serializing unrelated users. Nothing is persisted; intended for tests and
single-process development.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

from auth.models import User
from auth.store import DuplicateEmailError


class InMemoryUserStore:
    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._ids_by_email: dict[str, int] = {}
        self._user_locks: dict[int, threading.Lock] = {}
        self._lock = threading.Lock()  # guards the indexes and the lock table
        self._next_id = 1

    def _user_lock(self, user_id: int) -> threading.Lock | None:
        with self._lock:
            return self._user_locks.get(user_id)

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._ids_by_email.get(email)
            user = self._users.get(user_id) if user_id is not None else None
        # Callers get a copy; mutating it must not touch the stored record.
        return replace(user) if user is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
        return replace(user) if user is not None else None

    def insert(self, user: User) -> User:
        with self._lock:
            if user.email in self._ids_by_email:
                raise DuplicateEmailError(user.email)
            stored = replace(
                user,
                id=self._next_id,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            self._next_id += 1
            self._users[stored.id] = stored
            self._ids_by_email[stored.email] = stored.id
            self._user_locks[stored.id] = threading.Lock()
        return replace(stored)

    def set_refresh_token(self, user_id: int, token: str | None) -> None:
        lock = self._user_lock(user_id)
        if lock is None:
            return
        with lock:
            self._users[user_id].refresh_token = token

    def compare_and_set_refresh_token(self, user_id: int, expected: str, new: str | None) -> bool:
        lock = self._user_lock(user_id)
        if lock is None:
            return False
        with lock:
            user = self._users[user_id]
            if user.refresh_token != expected:
                return False
            user.refresh_token = new
            return True

    def has_users(self) -> bool:
        with self._lock:
            return bool(self._users)

    def close(self) -> None:
        pass
