"""
On-disk cache for Leiga access tokens.

One JSON file per client identity, stored under the config directory
(``~/.leiga/<client_id>-leiga-token.json`` by default):

    {"accessToken": "...", "expireIn": 7200, "createdAt": 1700000000000}

``expireIn`` is in seconds, ``-1`` means the token never expires.
``createdAt`` is epoch milliseconds, stamped when the file is written.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .errors import PersistenceError

logger = logging.getLogger(__name__)

NEVER_EXPIRES = -1


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Credential:
    """Bearer token plus its expiry bookkeeping."""

    access_token: str
    expire_in: int
    created_at: int

    def is_expired(self, now: int) -> bool:
        if self.expire_in == NEVER_EXPIRES:
            return False
        return now >= self.created_at + self.expire_in * 1000

    def to_json(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "expireIn": self.expire_in,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Credential":
        return cls(
            access_token=str(data["accessToken"]),
            expire_in=int(data["expireIn"]),
            created_at=int(data["createdAt"]),
        )


class TokenStore:
    """Reads and writes cached credentials, one file per client identity."""

    def __init__(
        self,
        config_dir: Path,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.config_dir = Path(config_dir)
        self._clock = clock

    def path_for(self, client_id: str) -> Path:
        return self.config_dir / f"{client_id}-leiga-token.json"

    def load(self, client_id: str) -> Credential | None:
        """Return the cached credential, or None on miss, bad file or expiry.

        Read and parse failures are logged and treated as a cache miss.
        """
        path = self.path_for(client_id)
        if not path.exists():
            return None
        try:
            credential = Credential.from_json(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("load token error: %s: %s", path, e)
            return None

        if credential.is_expired(self._clock()):
            logger.debug("Cached token for %s expired", client_id)
            return None
        return credential

    def save(self, client_id: str, credential: Credential) -> Credential:
        """Write the credential stamped with the current time and return it.

        Raises:
            PersistenceError: The directory or file could not be written.
        """
        stamped = replace(credential, created_at=self._clock())
        path = self.path_for(client_id)
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(stamped.to_json(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("save token error: %s: %s", path, e)
            raise PersistenceError(f"Failed to save token to {path}: {e}") from e
        return stamped
