"""Durable storage for the registered controller list."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from ctltree.models import ControllerRecord

logger = logging.getLogger(__name__)

CONFIG_KEY = "controllers"
CONFIG_ENVVAR = "CTLTREE_CONFIG"


class PersistenceError(Exception):
    """Raised when the controller list cannot be read or written."""


class ControllerStore(Protocol):
    def load(self) -> list[ControllerRecord]: ...

    def save(self, records: list[ControllerRecord]) -> None: ...


def default_config_path() -> Path:
    """``$CTLTREE_CONFIG`` if set, else ``~/.config/ctltree/controllers.json``."""
    override = os.environ.get(CONFIG_ENVVAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "ctltree" / "controllers.json"


class JsonControllerStore:
    """Keeps the controller list under a single key of a JSON document.

    Every save replaces the whole list.  Passwords are written only for
    records that carry one (i.e. remembered passwords), in plain text.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else default_config_path()

    def load(self) -> list[ControllerRecord]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed to read {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path}: expected a JSON object")
        entries = data.get(CONFIG_KEY, [])
        if not isinstance(entries, list):
            raise PersistenceError(f"{self.path}: {CONFIG_KEY!r} must be a list")

        records: list[ControllerRecord] = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("url") or not entry.get("username"):
                logger.warning("Skipping malformed controller entry in %s", self.path)
                continue
            records.append(
                ControllerRecord(
                    url=entry["url"],
                    username=entry["username"],
                    password=entry.get("password"),
                )
            )
        logger.debug("Loaded %d controller(s) from %s", len(records), self.path)
        return records

    def save(self, records: list[ControllerRecord]) -> None:
        document: dict = {}
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as fh:
                    existing = json.load(fh)
                if isinstance(existing, dict):
                    document = existing
            except (OSError, ValueError):
                logger.warning("Overwriting unreadable configuration at %s", self.path)

        document[CONFIG_KEY] = [r.to_dict() for r in records]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
                fh.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("Saved %d controller(s) to %s", len(records), self.path)
