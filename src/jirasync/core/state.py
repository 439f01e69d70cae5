"""JSON state file: last applied id and attributes per manifest entry."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

STATE_VERSION = 1


class StateError(ValueError):
    """Raised when the state file cannot be parsed."""


@dataclass
class StateEntry:
    kind: str
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "attributes": self.attributes}


class StateStore:
    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._entries: Dict[str, StateEntry] = {}
        self.load()

    def load(self) -> None:
        self._entries = {}
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise StateError(f"State file {self.path} is not valid JSON: {exc}") from exc
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise StateError(f"State file {self.path} has unsupported version {version}")
        for name, raw in (data.get("instances") or {}).items():
            self._entries[name] = StateEntry(
                kind=raw["kind"], id=str(raw.get("id", "")), attributes=dict(raw.get("attributes") or {})
            )

    def save(self) -> None:
        """Write atomically (temp file in the same directory + rename)."""
        payload = {
            "version": STATE_VERSION,
            "instances": {name: e.to_dict() for name, e in sorted(self._entries.items())},
        }
        directory = self.path.parent if str(self.path.parent) else Path(".")
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".jirasync-state-", dir=str(directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=False, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, name: str) -> Optional[StateEntry]:
        return self._entries.get(name)

    def put(self, name: str, kind: str, instance_id: str, attributes: Dict[str, Any]) -> None:
        self._entries[name] = StateEntry(kind=kind, id=instance_id, attributes=dict(attributes))

    def remove(self, name: str) -> None:
        self._entries.pop(name, None)

    def names(self) -> List[str]:
        return list(self._entries)
