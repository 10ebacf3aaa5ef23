"""Secure credential storage addressed by a (service, account) pair."""

import stat
from pathlib import Path
from typing import Protocol

from sproutling.storage.json_file import read_json, update_json

# Owner read/write only
_SECRET_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR


class CredentialStore(Protocol):
    """Opaque get/set/delete of secrets.

    Used for both the parent PIN hash and the speech provider API key.
    """

    def get(self, service: str, account: str) -> str | None: ...

    def set(self, service: str, account: str, secret: str) -> None: ...

    def delete(self, service: str, account: str) -> bool: ...


class InMemoryCredentialStore:
    def __init__(self) -> None:
        self._secrets: dict[tuple[str, str], str] = {}

    def get(self, service: str, account: str) -> str | None:
        return self._secrets.get((service, account))

    def set(self, service: str, account: str, secret: str) -> None:
        self._secrets[(service, account)] = secret

    def delete(self, service: str, account: str) -> bool:
        self._secrets.pop((service, account), None)
        return True


class FileCredentialStore:
    """Credential store backed by an owner-only JSON file.

    Args:
        path: Location of the credentials file (written with mode 0600).
    """

    def __init__(self, path: Path):
        self.path = path

    def get(self, service: str, account: str) -> str | None:
        data = read_json(self.path, {})
        return data.get(service, {}).get(account)

    def set(self, service: str, account: str, secret: str) -> None:
        def _put(data: dict) -> dict:
            data.setdefault(service, {})[account] = secret
            return data

        update_json(self.path, {}, _put, mode=_SECRET_FILE_MODE)

    def delete(self, service: str, account: str) -> bool:
        def _remove(data: dict) -> dict:
            data.get(service, {}).pop(account, None)
            return data

        update_json(self.path, {}, _remove, mode=_SECRET_FILE_MODE)
        return True
