"""Workflow schemes (issue type to workflow mapping)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.jira_client import JiraClient
from .base import ApiCall, Attributes, KindHandler, compact, put_if_set, require, text


@dataclass(frozen=True)
class WorkflowScheme:
    id: str
    name: str
    description: Optional[str] = None
    default_workflow: Optional[str] = None
    issue_type_mappings: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WorkflowScheme":
        mappings = payload.get("issueTypeMappings") or {}
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=text(payload.get("description")),
            default_workflow=text(payload.get("defaultWorkflow")),
            issue_type_mappings={str(k): str(v) for k, v in mappings.items()} if isinstance(mappings, dict) else {},
        )

    def to_attributes(self) -> Attributes:
        return compact({
            "name": self.name,
            "description": self.description,
            "default_workflow": self.default_workflow,
            "issue_type_mappings": dict(self.issue_type_mappings) or None,
        })


class WorkflowSchemeHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="workflow_scheme",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
    )
    record_type = WorkflowScheme
    collection_path = "/rest/api/3/workflowscheme"

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name")

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": desired["name"]}
        put_if_set(body, "description", desired.get("description"))
        put_if_set(body, "defaultWorkflow", desired.get("default_workflow"))
        mappings = desired.get("issue_type_mappings") or {}
        if mappings:
            body["issueTypeMappings"] = {str(k): str(v) for k, v in mappings.items()}
        return body

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        return client.get_json(self.item_path(instance_id))

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        return [ApiCall("update", "PUT", self.item_path(instance_id), self.build_create_payload(desired))]
