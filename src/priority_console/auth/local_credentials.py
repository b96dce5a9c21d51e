"""
priority_console.auth.local_credentials

Static/administrative credential set.

Responsibilities:
- Resolve `username -> password` from the configured admin account plus an optional
  YAML user list (re-read on every lookup so edits apply without restart).
- Validate a username/password pair with a constant-time comparison.

Entries in the YAML file may be plaintext or bcrypt hashes (`$2a$`, `$2b$`, `$2y$`).
"""

from __future__ import annotations

import hmac
from pathlib import Path

import bcrypt
import yaml

from priority_console.errors import InvalidCredentials
from priority_console.observability.logging import get_logger
from priority_console.settings import Settings

log = get_logger(__name__)

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

# Compared against when the username is unknown so both failure paths do the same work.
_DUMMY_SECRET = "priority-console-timing-dummy"


class LocalCredentialStore:
    def __init__(
        self,
        *,
        manage_user: str | None,
        manage_password: str | None,
        users_path: Path | None,
    ) -> None:
        self._manage_user = manage_user
        self._manage_password = manage_password
        self._users_path = users_path

    @classmethod
    def from_settings(cls, settings: Settings) -> LocalCredentialStore:
        return cls(
            manage_user=settings.manage_user,
            manage_password=settings.manage_password,
            users_path=settings.local_users_path,
        )

    def resolve_credentials(self) -> dict[str, str]:
        users: dict[str, str] = {}
        if self._manage_user and self._manage_password:
            users[self._manage_user] = self._manage_password
        users.update(self._load_users_file())
        return users

    def _load_users_file(self) -> dict[str, str]:
        path = self._users_path
        if path is None or not path.exists():
            return {}
        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            # Degrade to the static account rather than locking everyone out.
            log.error("local_users_load_failed", path=str(path), error=str(e))
            return {}
        if not isinstance(data, dict):
            log.error("local_users_load_failed", path=str(path), error="expected a mapping")
            return {}

        users = {str(k): str(v) for k, v in data.items() if v is not None}
        log.debug("local_users_loaded", path=str(path), user_count=len(users))
        return users

    def authenticate(self, username: str, password: str) -> None:
        stored = self.resolve_credentials().get(username)
        if stored is None:
            _matches(password, _DUMMY_SECRET)
            log.warning("local_auth_failed", username=username, reason="unknown_user")
            raise InvalidCredentials("Invalid username or password")
        if not _matches(password, stored):
            log.warning("local_auth_failed", username=username, reason="mismatch")
            raise InvalidCredentials("Invalid username or password")
        log.info("local_auth_ok", username=username)


def _matches(candidate: str, stored: str) -> bool:
    if stored.startswith(_BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            return False
    return hmac.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8"))
