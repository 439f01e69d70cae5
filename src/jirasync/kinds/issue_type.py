"""Issue types (global / company-managed only)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.errors import ValidationError
from ..core.jira_client import JiraClient
from ..core.scope import is_scoped
from .base import ApiCall, Attributes, KindHandler, compact, put_if_set, require, text

ISSUE_TYPE_PATH = "/rest/api/3/issuetype"
_TYPES = ("standard", "subtask")


@dataclass(frozen=True)
class IssueType:
    id: str
    name: str
    description: Optional[str] = None
    subtask: bool = False
    hierarchy_level: Optional[int] = None
    scoped: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IssueType":
        level = payload.get("hierarchyLevel")
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=text(payload.get("description")),
            subtask=bool(payload.get("subtask", False)),
            hierarchy_level=level if isinstance(level, int) else None,
            scoped=is_scoped(payload),
        )

    @property
    def type(self) -> str:
        return "subtask" if self.subtask else "standard"

    def to_attributes(self) -> Attributes:
        return compact({"name": self.name, "description": self.description, "type": self.type})


class IssueTypeHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="issue_type",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
        immutable_fields=frozenset({"type"}),
    )
    record_type = IssueType
    collection_path = ISSUE_TYPE_PATH

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name")
        kind = desired.get("type", "standard")
        if kind not in _TYPES:
            raise ValidationError(f"issue_type: type must be one of {', '.join(_TYPES)}, got '{kind}'")

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": desired["name"],
            "type": desired.get("type", "standard"),
            "scope": {"type": "GLOBAL"},
        }
        put_if_set(body, "description", desired.get("description"))
        return body

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        return client.get_json(self.item_path(instance_id))

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        body: Dict[str, Any] = {"name": desired["name"]}
        put_if_set(body, "description", desired.get("description"))
        return [ApiCall("update", "PUT", self.item_path(instance_id), body)]
