import json
import logging
import uuid
from pathlib import Path

logger = logging.getLogger("widget_identity")


class GuestIdentityStore:
    """
    Browser-local persistence of the guest session token,
    optionally backed by a JSON file so it survives restarts.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._token: str | None = None
        self._loaded = False

    def load(self) -> str | None:
        if not self._loaded:
            self._loaded = True
            if self.path and self.path.exists():
                try:
                    data = json.loads(self.path.read_text())
                    self._token = data.get("session_token") or None
                except (OSError, ValueError) as e:
                    logger.warning(f"[Identity] Ignoring unreadable identity file {self.path}: {e}")
                    self._token = None
        return self._token

    def save(self, token: str) -> None:
        self._token = token
        self._loaded = True
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"session_token": token}))

    def issue(self) -> str:
        token = uuid.uuid4().hex
        self.save(token)
        return token

    def clear(self) -> None:
        self._token = None
        self._loaded = True
        if self.path and self.path.exists():
            self.path.unlink()
        logger.info("[Identity] Guest identity cleared")
