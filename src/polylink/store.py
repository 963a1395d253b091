"""Credential storage.

Maps a caller's user ID to exchange API credentials and, for Safe wallets,
the derived smart account address. The router creates one in-memory store
per instance; pass your own CredentialStore to persist links elsewhere.
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .types import ExchangeCredentials


def _require_valid(credentials: ExchangeCredentials) -> None:
    if not credentials.is_valid():
        raise ValueError(
            "Refusing to store incomplete credentials: api_key, api_secret and "
            "api_passphrase are all required"
        )


class CredentialStore(ABC):
    """Keyed storage for linked accounts."""

    @abstractmethod
    def get_credentials(self, user_id: str) -> Optional[ExchangeCredentials]:
        ...

    @abstractmethod
    def set_credentials(self, user_id: str, credentials: ExchangeCredentials) -> None:
        ...

    @abstractmethod
    def delete_credentials(self, user_id: str) -> None:
        ...

    @abstractmethod
    def get_smart_account(self, user_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_smart_account(self, user_id: str, address: str) -> None:
        ...

    @abstractmethod
    def delete_smart_account(self, user_id: str) -> None:
        ...

    def has_credentials(self, user_id: str) -> bool:
        return self.get_credentials(user_id) is not None

    def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryCredentialStore(CredentialStore):
    """Process-lifetime store backed by dicts."""

    def __init__(self) -> None:
        self._credentials: Dict[str, ExchangeCredentials] = {}
        self._smart_accounts: Dict[str, str] = {}

    def get_credentials(self, user_id: str) -> Optional[ExchangeCredentials]:
        return self._credentials.get(user_id)

    def set_credentials(self, user_id: str, credentials: ExchangeCredentials) -> None:
        _require_valid(credentials)
        self._credentials[user_id] = credentials

    def delete_credentials(self, user_id: str) -> None:
        self._credentials.pop(user_id, None)

    def get_smart_account(self, user_id: str) -> Optional[str]:
        return self._smart_accounts.get(user_id)

    def set_smart_account(self, user_id: str, address: str) -> None:
        self._smart_accounts[user_id] = address

    def delete_smart_account(self, user_id: str) -> None:
        self._smart_accounts.pop(user_id, None)

    def close(self) -> None:
        self._credentials.clear()
        self._smart_accounts.clear()


class JsonFileCredentialStore(CredentialStore):
    """Store persisted to a JSON file with atomic replace on every write.

    The file contains API secrets; keep it out of version control and
    restrict its permissions.
    """

    def __init__(self, path: Union[Path, str]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {"credentials": {}, "smart_accounts": {}}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        data.setdefault("credentials", {})
        data.setdefault("smart_accounts", {})
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self._path)

    def get_credentials(self, user_id: str) -> Optional[ExchangeCredentials]:
        with self._lock:
            raw = self._load()["credentials"].get(user_id)
        return ExchangeCredentials.from_dict(raw) if raw else None

    def set_credentials(self, user_id: str, credentials: ExchangeCredentials) -> None:
        _require_valid(credentials)
        with self._lock:
            data = self._load()
            data["credentials"][user_id] = {
                "api_key": credentials.api_key,
                "api_secret": credentials.api_secret,
                "api_passphrase": credentials.api_passphrase,
            }
            self._save(data)

    def delete_credentials(self, user_id: str) -> None:
        with self._lock:
            data = self._load()
            if data["credentials"].pop(user_id, None) is not None:
                self._save(data)

    def get_smart_account(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._load()["smart_accounts"].get(user_id)

    def set_smart_account(self, user_id: str, address: str) -> None:
        with self._lock:
            data = self._load()
            data["smart_accounts"][user_id] = address
            self._save(data)

    def delete_smart_account(self, user_id: str) -> None:
        with self._lock:
            data = self._load()
            if data["smart_accounts"].pop(user_id, None) is not None:
                self._save(data)


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
]
