"""Workflows (lookup only)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base import text


def workflow_name(payload: Dict[str, Any]) -> str:
    ident = payload.get("id")
    if isinstance(ident, dict):
        return str(ident.get("name", ""))
    return str(payload.get("name", ""))


@dataclass(frozen=True)
class Workflow:
    name: str
    entity_id: Optional[str] = None
    description: Optional[str] = None
    status_count: int = 0
    is_default: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Workflow":
        ident = payload.get("id") if isinstance(payload.get("id"), dict) else {}
        return cls(
            name=workflow_name(payload),
            entity_id=text(ident.get("entityId")),
            description=text(payload.get("description")),
            status_count=len(payload.get("statuses") or []),
            is_default=bool(payload.get("isDefault", False)),
        )
