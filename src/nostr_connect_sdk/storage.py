"""Persistence for remote signing state.

Stores the established session in ``<config_dir>/auth.json`` and the
in-flight pairing in ``<config_dir>/pending.json``. Both are flat JSON
documents; a missing or damaged file simply means "no state".
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .config import PENDING_FILE, SESSION_FILE, Settings
from .types import PendingHandshake, Session

logger = logging.getLogger(__name__)


class JsonRecordStore:
    """One JSON document at a fixed path, overwritten as a whole (last writer wins)."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_raw(self) -> dict[str, Any] | None:
        """Read the record, returning None when absent or not a JSON object."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupted record {self.path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed record {self.path}: not a JSON object")
            return None
        return data

    def save_raw(self, data: dict[str, Any]) -> None:
        """Write the record atomically, readable by the owner only."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def clear(self) -> bool:
        """Delete the record. Returns True if something was removed."""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove {self.path}: {e}")
            return False

    def exists(self) -> bool:
        return self.path.exists()


class SessionStore(JsonRecordStore):
    """Session record; partial or undecodable records load as None."""

    def load(self) -> Session | None:
        data = self.load_raw()
        if data is None:
            return None
        try:
            return Session.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring incomplete session record {self.path}: {e}")
            return None

    def save(self, session: Session) -> None:
        self.save_raw(session.to_dict())


class PendingHandshakeStore(JsonRecordStore):
    """Pending handshake record; undecodable records load as None."""

    def load(self) -> PendingHandshake | None:
        data = self.load_raw()
        if data is None:
            return None
        try:
            return PendingHandshake.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid pending connection record {self.path}: {e}")
            return None

    def save(self, pending: PendingHandshake) -> None:
        self.save_raw(pending.to_dict())


class StateStore:
    """The two independent records owned by a remote signer."""

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)
        self.sessions = SessionStore(self.config_dir / SESSION_FILE)
        self.pending = PendingHandshakeStore(self.config_dir / PENDING_FILE)

    @classmethod
    def from_settings(cls, settings: Settings) -> StateStore:
        return cls(settings.config_dir)
