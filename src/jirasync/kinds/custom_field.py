"""
Custom fields.

There is no usable GET-by-id for fields, so a read lists ``/field`` (a bare
array) and scans it for the id. A miss means the field is gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.jira_client import JiraClient
from ..core.pagination import fetch_items
from .base import ApiCall, Attributes, KindHandler, compact, put_if_set, require, text


@dataclass(frozen=True)
class CustomField:
    id: str
    name: str
    description: Optional[str] = None
    type: Optional[str] = None
    custom: bool = True

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CustomField":
        schema = payload.get("schema") or {}
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=text(payload.get("description")),
            type=text(schema.get("custom")) if isinstance(schema, dict) else None,
            custom=bool(payload.get("custom", True)),
        )

    def to_attributes(self) -> Attributes:
        return compact({"name": self.name, "description": self.description, "type": self.type})


class CustomFieldHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="custom_field",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
        immutable_fields=frozenset({"type", "search_key"}),
    )
    record_type = CustomField
    collection_path = "/rest/api/3/field"
    write_only = ("search_key",)

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name", "type", "search_key")

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": desired["name"],
            "type": desired["type"],
            "searcherKey": desired["search_key"],
        }
        put_if_set(body, "description", desired.get("description"))
        return body

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        for item in fetch_items(client, self.collection_path, wrapper_key=None):
            if str(item.get("id")) == instance_id:
                return item
        return None

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        body: Dict[str, Any] = {"name": desired["name"]}
        put_if_set(body, "description", desired.get("description"))
        return [ApiCall("update", "PUT", self.item_path(instance_id), body)]
