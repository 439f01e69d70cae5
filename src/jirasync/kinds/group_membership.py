"""
Group memberships.

Identity is the composite ``<group_name>/<account_id>``; both parts are
immutable, so any change is a replacement. Reads walk every member page
before concluding the membership is gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..core.descriptors import IdentityMode, ResourceDescriptor
from ..core.errors import ContractViolationError
from ..core.jira_client import JiraClient
from ..core.pagination import iter_pages
from .base import ApiCall, Attributes, KindHandler, compact, require, text
from .group import GROUP_PATH


def composite_id(group_name: str, account_id: str) -> str:
    return f"{group_name}/{account_id}"


def split_id(instance_id: str) -> Tuple[str, str]:
    # account ids never contain "/", group names may
    group_name, _, account_id = instance_id.rpartition("/")
    return group_name, account_id


@dataclass(frozen=True)
class GroupMembership:
    group_name: str
    account_id: str
    display_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GroupMembership":
        return cls(
            group_name=str(payload.get("group_name", "")),
            account_id=str(payload.get("accountId", "")),
            display_name=text(payload.get("displayName")),
        )

    @property
    def id(self) -> str:
        return composite_id(self.group_name, self.account_id)

    def to_attributes(self) -> Attributes:
        return compact({"group_name": self.group_name, "account_id": self.account_id})


class GroupMembershipHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="group_membership",
        identity_mode=IdentityMode.COMPOSITE_KEY,
        immutable_fields=frozenset({"group_name", "account_id"}),
        natural_key=("group_name", "account_id"),
    )
    record_type = GroupMembership
    collection_path = f"{GROUP_PATH}/user"

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "group_name", "account_id")

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        return {"accountId": desired["account_id"]}

    def create_call(self, desired: Attributes) -> ApiCall:
        return ApiCall(
            "create",
            "POST",
            self.collection_path,
            self.build_create_payload(desired),
            params={"groupname": desired["group_name"]},
        )

    def extract_id(self, response: Any, desired: Attributes) -> str:
        return composite_id(desired["group_name"], desired["account_id"])

    def _parts(self, instance_id: str, attributes: Attributes) -> Tuple[str, str]:
        group_name, account_id = split_id(instance_id)
        return attributes.get("group_name") or group_name, attributes.get("account_id") or account_id

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        group_name, account_id = self._parts(instance_id, attributes)
        for member in iter_pages(client, f"{GROUP_PATH}/member", params={"groupname": group_name}):
            if str(member.get("accountId")) == account_id:
                return {**member, "group_name": group_name}
        return None

    def observed_id(self, payload: Dict[str, Any], instance_id: str) -> str:
        return GroupMembership.from_payload(payload).id

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        raise ContractViolationError(
            "group_membership does not support in-place updates; "
            "group_name and account_id changes require replacement"
        )

    def delete_call(self, instance_id: str, attributes: Attributes) -> ApiCall:
        group_name, account_id = self._parts(instance_id, attributes)
        return ApiCall(
            "delete", "DELETE", self.collection_path, params={"groupname": group_name, "accountId": account_id}
        )
