"""Fernet sealing of the secret-store document."""

import json

from cryptography.fernet import Fernet, InvalidToken

from bopmaps_client.exceptions import SecretStoreError


def generate_key() -> str:
    """Return a fresh url-safe base64 Fernet key suitable for TOKEN_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


class SecretCipher:
    """Seals a ``{key: secret}`` mapping into one encrypted blob and back.

    Fernet authenticates the ciphertext, so a blob written with another key
    or modified on disk fails to open instead of yielding garbage. Sealing
    the same mapping twice produces different bytes (random IV).
    """

    def __init__(self, key: str) -> None:
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise SecretStoreError("TOKEN_ENCRYPTION_KEY is not a valid Fernet key") from exc

    def seal(self, entries: dict[str, str]) -> bytes:
        return self._fernet.encrypt(json.dumps(entries, sort_keys=True).encode())

    def open(self, blob: bytes) -> dict[str, str]:
        try:
            plaintext = self._fernet.decrypt(blob)
        except InvalidToken as exc:
            raise SecretStoreError("stored secrets could not be decrypted (wrong key or tampered file)") from exc
        try:
            entries = json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise SecretStoreError("decrypted secrets are not valid JSON") from exc
        if not isinstance(entries, dict):
            raise SecretStoreError("decrypted secrets are not a JSON object")
        return {str(k): str(v) for k, v in entries.items()}
