"""Users (lookup only; accounts are managed outside Jira)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base import text


@dataclass(frozen=True)
class User:
    account_id: str
    display_name: str = ""
    email_address: Optional[str] = None
    account_type: Optional[str] = None
    active: bool = True

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "User":
        return cls(
            account_id=str(payload.get("accountId", "")),
            display_name=str(payload.get("displayName", "")),
            email_address=text(payload.get("emailAddress")),
            account_type=text(payload.get("accountType")),
            active=bool(payload.get("active", True)),
        )
