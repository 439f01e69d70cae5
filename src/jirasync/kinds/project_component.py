"""Project components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.jira_client import JiraClient
from .base import ApiCall, Attributes, KindHandler, compact, put_if_set, require, text


@dataclass(frozen=True)
class ProjectComponent:
    id: str
    project_key: str
    name: str
    description: Optional[str] = None
    lead_account_id: Optional[str] = None
    assignee_type: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ProjectComponent":
        lead = payload.get("lead") or {}
        return cls(
            id=str(payload.get("id", "")),
            project_key=str(payload.get("project", "")),
            name=str(payload.get("name", "")),
            description=text(payload.get("description")),
            lead_account_id=text(lead.get("accountId")) if isinstance(lead, dict) else None,
            assignee_type=text(payload.get("assigneeType")),
        )

    def to_attributes(self) -> Attributes:
        return compact({
            "project_key": self.project_key,
            "name": self.name,
            "description": self.description,
            "lead_account_id": self.lead_account_id,
            "assignee_type": self.assignee_type,
        })


class ProjectComponentHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="project_component",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
        immutable_fields=frozenset({"project_key"}),
    )
    record_type = ProjectComponent
    collection_path = "/rest/api/3/component"

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "project_key", "name")

    def _body(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": desired["name"]}
        put_if_set(body, "description", desired.get("description"))
        put_if_set(body, "leadAccountId", desired.get("lead_account_id"))
        put_if_set(body, "assigneeType", desired.get("assignee_type"))
        return body

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        return {"project": desired["project_key"], **self._body(desired)}

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        return client.get_json(self.item_path(instance_id))

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        return [ApiCall("update", "PUT", self.item_path(instance_id), self._body(desired))]
