"""
Groups.

Groups are addressed by name on the legacy endpoints and cannot be renamed in
place: a rename deletes the old group and creates the new one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.descriptors import DeleteMode, IdentityMode, ResourceDescriptor
from ..core.jira_client import JiraClient
from ..core.pagination import fetch_items
from .base import ApiCall, Attributes, KindHandler, require, text

GROUP_PATH = "/rest/api/3/group"


@dataclass(frozen=True)
class Group:
    id: str
    name: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Group":
        name = str(payload.get("name", ""))
        return cls(id=text(payload.get("groupId")) or name, name=name)

    def to_attributes(self) -> Attributes:
        return {"name": self.name}


def _selector(instance_id: str, attributes: Attributes, name_param: str, id_param: str) -> Dict[str, str]:
    name = attributes.get("name")
    return {name_param: name} if name else {id_param: instance_id}


class GroupHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="group",
        identity_mode=IdentityMode.NATURAL_KEY,
        delete_mode=DeleteMode.DELETE_AND_RECREATE_ON_RENAME,
        natural_key=("name",),
    )
    record_type = Group
    collection_path = GROUP_PATH
    id_keys = ("groupId",)

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name")

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        return {"name": desired["name"]}

    def extract_id(self, response: Any, desired: Attributes) -> str:
        if isinstance(response, dict) and text(response.get("groupId")):
            return str(response["groupId"])
        return str(desired["name"])

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        params = _selector(instance_id, attributes, "groupName", "groupId")
        found = fetch_items(client, f"{GROUP_PATH}/bulk", params=params)
        return found[0] if found else None

    def observed_id(self, payload: Dict[str, Any], instance_id: str) -> str:
        return Group.from_payload(payload).id

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        # name is the only attribute and renames go through delete + recreate
        return []

    def delete_call(self, instance_id: str, attributes: Attributes) -> ApiCall:
        return ApiCall("delete", "DELETE", GROUP_PATH, params=_selector(instance_id, attributes, "groupname", "groupId"))
