"""Credential stores for the annotation session and the caller's API key.

In the browser these live in cookies. Here the store is an explicit object
handed to the AnnotationService, so the service holds no global state and
tests can swap in an in-memory store:

  - InMemoryCredentialStore — a dict, gone when the process exits
  - FileCredentialStore     — a JSON file, so a CLI login survives between runs

Both implement the CredentialStore protocol (get/set/remove). Expiry is
enforced on read: an expired credential is reported as absent.

Usage:
    store = InMemoryCredentialStore()
    store.set(SESSION_COOKIE, "abc", secure=True, expires=tomorrow)
    store.get(SESSION_COOKIE)  # "abc"
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

SESSION_COOKIE = "annotation-key"
API_KEY_COOKIE = "user-token"


class StoredCredential(BaseModel):
    """A credential value with its cookie attributes."""

    value: str
    secure: bool = False
    expires: datetime | None = None

    @field_validator("expires")
    @classmethod
    def _assume_utc(cls, expires: datetime | None) -> datetime | None:
        """Naive expiry times are taken as UTC."""
        if expires is not None and expires.tzinfo is None:
            return expires.replace(tzinfo=UTC)
        return expires

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires is None:
            return False
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return self.expires <= now


class CredentialStore(Protocol):
    """What the AnnotationService needs from a credential store."""

    def get(self, name: str) -> str | None: ...

    def set(
        self,
        name: str,
        value: str,
        *,
        secure: bool = False,
        expires: datetime | None = None,
    ) -> None: ...

    def remove(self, name: str) -> None: ...


class InMemoryCredentialStore:
    """Dict-backed credential store."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._credentials: dict[str, StoredCredential] = {
            name: StoredCredential(value=value) for name, value in (initial or {}).items()
        }

    def credential(self, name: str) -> StoredCredential | None:
        """The stored credential with its attributes, or None if absent or expired."""
        stored = self._credentials.get(name)
        if stored is None:
            return None
        if stored.is_expired():
            del self._credentials[name]
            return None
        return stored

    def get(self, name: str) -> str | None:
        stored = self.credential(name)
        return stored.value if stored else None

    def set(
        self,
        name: str,
        value: str,
        *,
        secure: bool = False,
        expires: datetime | None = None,
    ) -> None:
        self._credentials[name] = StoredCredential(value=value, secure=secure, expires=expires)

    def remove(self, name: str) -> None:
        self._credentials.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return self.credential(name) is not None


class FileCredentialStore(InMemoryCredentialStore):
    """Credential store persisted as JSON, rewritten on every change.

    A missing file is an empty store. The file is created (with its parent
    directory) on the first write, readable by the owner only.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path).expanduser()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text() or "{}")
            if not isinstance(raw, dict):
                raise ValueError("expected a JSON object of credentials")
            credentials = {
                name: StoredCredential.model_validate(entry) for name, entry in raw.items()
            }
        except ValueError as e:
            logger.error(f"Ignoring unreadable credentials file {self.path}: {e}")
            return
        self._credentials = credentials
        logger.debug(f"Loaded {len(self._credentials)} credentials from {self.path}")

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        raw = {name: entry.model_dump(mode="json") for name, entry in self._credentials.items()}
        self.path.write_text(json.dumps(raw, indent=2))
        self.path.chmod(0o600)

    def set(
        self,
        name: str,
        value: str,
        *,
        secure: bool = False,
        expires: datetime | None = None,
    ) -> None:
        super().set(name, value, secure=secure, expires=expires)
        self._save()

    def remove(self, name: str) -> None:
        if name in self._credentials:
            super().remove(name)
            self._save()
