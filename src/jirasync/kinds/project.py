"""
Projects.

Jira Cloud's project PUT ignores scheme references, so an update is the base
PUT followed by one dedicated assignment call per scheme that changed. Each
assignment is its own step; a failure leaves the earlier ones applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.errors import ValidationError
from ..core.jira_client import JiraClient
from .base import ApiCall, Attributes, KindHandler, changed, compact, put_if_set, require, text

_SCHEME_ATTRS = {
    "issue_type_scheme_id": "issueTypeScheme",
    "permission_scheme_id": "permissionScheme",
    "workflow_scheme_id": "workflowScheme",
}


def _scheme_id(payload: Dict[str, Any], key: str) -> Optional[str]:
    """Scheme references come back either as ``{"id": ...}`` or as a bare value."""
    value = payload.get(key)
    if isinstance(value, dict):
        return text(value.get("id"))
    return text(value)


def _numeric(desired: Attributes, name: str) -> Optional[int]:
    value = desired.get(name)
    if value is None or value == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(
            f"project: {name} must be a numeric string (e.g. a scheme id), got '{value}'"
        ) from None


@dataclass(frozen=True)
class Project:
    id: str
    key: str
    name: str
    project_type_key: str = ""
    lead_account_id: Optional[str] = None
    description: Optional[str] = None
    assignee_type: Optional[str] = None
    issue_type_scheme_id: Optional[str] = None
    permission_scheme_id: Optional[str] = None
    workflow_scheme_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Project":
        lead = payload.get("lead") or {}
        return cls(
            id=str(payload.get("id", "")),
            key=str(payload.get("key", "")),
            name=str(payload.get("name", "")),
            project_type_key=str(payload.get("projectTypeKey", "")),
            lead_account_id=text(lead.get("accountId")) if isinstance(lead, dict) else None,
            description=text(payload.get("description")),
            assignee_type=text(payload.get("assigneeType")),
            issue_type_scheme_id=_scheme_id(payload, "issueTypeScheme"),
            permission_scheme_id=_scheme_id(payload, "permissionScheme"),
            workflow_scheme_id=_scheme_id(payload, "workflowScheme"),
        )

    def to_attributes(self) -> Attributes:
        return compact({
            "key": self.key,
            "name": self.name,
            "project_type_key": self.project_type_key,
            "lead_account_id": self.lead_account_id,
            "description": self.description,
            "assignee_type": self.assignee_type,
            "issue_type_scheme_id": self.issue_type_scheme_id,
            "permission_scheme_id": self.permission_scheme_id,
            "workflow_scheme_id": self.workflow_scheme_id,
        })


class ProjectHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="project",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
        immutable_fields=frozenset({"project_type_key"}),
        natural_key=("key",),
    )
    record_type = Project
    collection_path = "/rest/api/3/project"

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "key", "name", "project_type_key", "lead_account_id")
        for name in _SCHEME_ATTRS:
            _numeric(desired, name)

    def _base_body(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "key": desired["key"],
            "name": desired["name"],
            "projectTypeKey": desired["project_type_key"],
            "leadAccountId": desired["lead_account_id"],
        }
        put_if_set(body, "description", desired.get("description"))
        put_if_set(body, "assigneeType", desired.get("assignee_type"))
        return body

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        body = self._base_body(desired)
        for name, api_key in _SCHEME_ATTRS.items():
            put_if_set(body, api_key, _numeric(desired, name))
        return body

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        return client.get_json(self.item_path(instance_id))

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        calls = [ApiCall("update", "PUT", self.item_path(instance_id), self._base_body(desired))]
        if changed(desired, observed, "issue_type_scheme_id"):
            calls.append(ApiCall(
                "assign_issue_type_scheme",
                "PUT",
                "/rest/api/3/issuetypescheme/project",
                {"issueTypeSchemeId": str(desired["issue_type_scheme_id"]), "projectId": instance_id},
            ))
        if changed(desired, observed, "permission_scheme_id"):
            calls.append(ApiCall(
                "assign_permission_scheme",
                "PUT",
                f"{self.item_path(instance_id)}/permissionscheme",
                {"id": _numeric(desired, "permission_scheme_id")},
            ))
        if changed(desired, observed, "workflow_scheme_id"):
            calls.append(ApiCall(
                "assign_workflow_scheme",
                "PUT",
                "/rest/api/3/workflowscheme/project",
                {"projectId": instance_id, "workflowSchemeId": str(desired["workflow_scheme_id"])},
            ))
        return calls
