"""Key-value secret storage used to persist token pairs across restarts."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from bopmaps_client.crypto import SecretCipher
from bopmaps_client.exceptions import SecretStoreError
from bopmaps_client.settings import ClientSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class SecretStore(Protocol):
    """Durable string-keyed secret storage; each operation is atomic per key."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemorySecretStore:
    """Process-local store; nothing survives a restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._entries.get(key)

    async def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._entries)


class EncryptedFileSecretStore:
    """All secrets in one Fernet-encrypted JSON file.

    Every write re-seals the whole document into a sibling temp file and
    renames it over the original, so readers see either the old or the new
    document, never a torn one. File I/O runs in a worker thread.
    """

    def __init__(self, path: str | Path, encryption_key: str) -> None:
        self._path = Path(path)
        self._cipher = SecretCipher(encryption_key)
        self._lock = asyncio.Lock()
        self._entries: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entries = await self._load()
            return entries.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            entries = dict(await self._load())
            entries[key] = value
            await self._save(entries)

    async def delete(self, key: str) -> None:
        async with self._lock:
            entries = dict(await self._load())
            if entries.pop(key, None) is None:
                return
            await self._save(entries)

    async def _load(self) -> dict[str, str]:
        if self._entries is None:
            self._entries = await asyncio.to_thread(self._read_file)
        return self._entries

    async def _save(self, entries: dict[str, str]) -> None:
        await asyncio.to_thread(self._write_file, entries)
        self._entries = entries

    def _read_file(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            blob = self._path.read_bytes()
        except OSError as exc:
            raise SecretStoreError(f"cannot read {self._path}: {exc}") from exc
        try:
            return self._cipher.open(blob)
        except SecretStoreError:
            logger.error("Secret store %s is unreadable", self._path)
            raise

    def _write_file(self, entries: dict[str, str]) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        sealed = self._cipher.seal(entries)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Owner-only from creation; fchmod also tightens a stale temp file.
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "wb") as fh:
                fh.write(sealed)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise SecretStoreError(f"cannot write {self._path}: {exc}") from exc


def build_secret_store(settings: ClientSettings) -> SecretStore:
    """Pick the store configured by ``SECRET_STORE_PATH`` / ``TOKEN_ENCRYPTION_KEY``."""
    if not settings.SECRET_STORE_PATH:
        logger.info("SECRET_STORE_PATH not set; credentials will not survive a restart")
        return MemorySecretStore()
    if not settings.TOKEN_ENCRYPTION_KEY:
        raise SecretStoreError("TOKEN_ENCRYPTION_KEY must be set when SECRET_STORE_PATH is configured")
    return EncryptedFileSecretStore(settings.SECRET_STORE_PATH, settings.TOKEN_ENCRYPTION_KEY)
