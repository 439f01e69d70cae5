"""Permission schemes and their grants."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.errors import ValidationError
from ..core.jira_client import JiraClient
from .base import ApiCall, Attributes, KindHandler, compact, put_if_set, require, text

SCHEME_PATH = "/rest/api/3/permissionscheme"
LIST_WRAPPER = "permissionSchemes"


@dataclass(frozen=True)
class Grant:
    permission: str
    holder_type: str
    holder_parameter: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Grant":
        holder = payload.get("holder") or {}
        return cls(
            permission=str(payload.get("permission", "")),
            holder_type=str(holder.get("type", "")),
            holder_parameter=text(holder.get("parameter")),
        )

    @classmethod
    def from_attributes(cls, raw: Dict[str, Any]) -> "Grant":
        if not raw.get("permission") or not raw.get("holder_type"):
            raise ValidationError("permission_scheme: every grant needs 'permission' and 'holder_type'")
        return cls(str(raw["permission"]), str(raw["holder_type"]), text(raw.get("holder_parameter")))

    def to_payload(self) -> Dict[str, Any]:
        holder: Dict[str, Any] = {"type": self.holder_type}
        put_if_set(holder, "parameter", self.holder_parameter)
        return {"permission": self.permission, "holder": holder}

    def to_attributes(self) -> Attributes:
        return compact({
            "permission": self.permission,
            "holder_type": self.holder_type,
            "holder_parameter": self.holder_parameter,
        })


@dataclass(frozen=True)
class PermissionScheme:
    id: str
    name: str
    description: Optional[str] = None
    grants: Tuple[Grant, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PermissionScheme":
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=text(payload.get("description")),
            grants=tuple(Grant.from_payload(p) for p in payload.get("permissions") or [] if isinstance(p, dict)),
        )

    def to_attributes(self) -> Attributes:
        return compact({
            "name": self.name,
            "description": self.description,
            "permissions": [g.to_attributes() for g in self.grants],
        })


class PermissionSchemeHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="permission_scheme",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
    )
    record_type = PermissionScheme
    collection_path = SCHEME_PATH

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name")
        for raw in desired.get("permissions") or []:
            Grant.from_attributes(raw)

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": desired["name"]}
        put_if_set(body, "description", desired.get("description"))
        grants = [Grant.from_attributes(g).to_payload() for g in desired.get("permissions") or []]
        if grants:
            body["permissions"] = grants
        return body

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        return client.get_json(self.item_path(instance_id), params={"expand": "permissions"})

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        return [ApiCall("update", "PUT", self.item_path(instance_id), self.build_create_payload(desired))]
