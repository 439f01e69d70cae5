"""
Issue type schemes.

Only global issue types may be placed in a scheme; team-managed (scoped) ones
are rejected locally before anything is written. The member list is not part
of the scheme payload and is read from the paginated mapping endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.errors import ValidationError
from ..core.jira_client import JiraClient
from ..core.pagination import fetch_items, iter_pages
from ..core.scope import is_scoped
from .base import ApiCall, Attributes, KindHandler, compact, put_if_set, require, text
from .issue_type import ISSUE_TYPE_PATH

SCHEME_PATH = "/rest/api/3/issuetypescheme"


@dataclass(frozen=True)
class IssueTypeScheme:
    id: str
    name: str
    description: Optional[str] = None
    default_issue_type_id: Optional[str] = None
    is_default: bool = False
    issue_type_ids: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IssueTypeScheme":
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=text(payload.get("description")),
            default_issue_type_id=text(payload.get("defaultIssueTypeId")),
            is_default=bool(payload.get("isDefault", False)),
            issue_type_ids=tuple(str(i) for i in payload.get("issueTypeIds") or []),
        )

    def to_attributes(self) -> Attributes:
        return compact({
            "name": self.name,
            "description": self.description,
            "default_issue_type_id": self.default_issue_type_id,
            "issue_type_ids": list(self.issue_type_ids),
        })


def _ids(desired: Attributes) -> List[str]:
    return [str(i) for i in desired.get("issue_type_ids") or []]


class IssueTypeSchemeHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="issue_type_scheme",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
    )
    record_type = IssueTypeScheme
    collection_path = SCHEME_PATH
    id_keys = ("issueTypeSchemeId", "id")

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name", "issue_type_ids")
        ids = _ids(desired)
        default = text(desired.get("default_issue_type_id"))
        if default is not None and default not in ids:
            raise ValidationError(
                f"issue_type_scheme: default_issue_type_id '{default}' is not in issue_type_ids"
            )

        scoped = [i for i in dict.fromkeys(ids) if is_scoped(client.get_json(f"{ISSUE_TYPE_PATH}/{i}"))]
        if scoped:
            raise ValidationError(
                f"Issue type IDs {', '.join(scoped)} are project-scoped (team-managed) and cannot "
                "be used in an issue type scheme; use global (company-managed) issue types instead."
            )

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": desired["name"], "issueTypeIds": _ids(desired)}
        put_if_set(body, "description", desired.get("description"))
        put_if_set(body, "defaultIssueTypeId", text(desired.get("default_issue_type_id")))
        return body

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        found = fetch_items(client, SCHEME_PATH, params={"id": instance_id})
        if not found:
            return None
        members = [
            str(m.get("issueTypeId"))
            for m in iter_pages(client, f"{SCHEME_PATH}/mapping", params={"issueTypeSchemeId": instance_id})
            if str(m.get("issueTypeSchemeId", instance_id)) == instance_id
        ]
        return {**found[0], "issueTypeIds": members}

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        wanted = _ids(desired)
        current = [str(i) for i in observed.get("issue_type_ids") or []]
        added = [i for i in wanted if i not in current]
        removed = [i for i in current if i not in wanted]

        calls: List[ApiCall] = []
        # members first, so the new default is already part of the scheme
        if added:
            calls.append(ApiCall(
                "add_issue_types", "PUT", f"{self.item_path(instance_id)}/issuetype", {"issueTypeIds": added}
            ))
        body: Dict[str, Any] = {"name": desired["name"]}
        put_if_set(body, "description", desired.get("description"))
        put_if_set(body, "defaultIssueTypeId", text(desired.get("default_issue_type_id")))
        calls.append(ApiCall("update", "PUT", self.item_path(instance_id), body))
        for issue_type_id in removed:
            calls.append(ApiCall(
                f"remove_issue_type:{issue_type_id}",
                "DELETE",
                f"{self.item_path(instance_id)}/issuetype/{issue_type_id}",
            ))
        return calls
