"""
Automation rules.

The rule body is user-supplied JSON (``rule_json``) with ``name`` injected.
The API offers no delete: "deleting" a rule flips its state to DISABLED.
Enabling after create is a separate call on ``/state``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.descriptors import DeleteMode, IdentityMode, ResourceDescriptor
from ..core.errors import ValidationError
from ..core.jira_client import JiraClient
from .base import ApiCall, Attributes, KindHandler, compact, require

RULE_PATH = "/rest/v1/rule"
ENABLED = "ENABLED"
DISABLED = "DISABLED"


@dataclass(frozen=True)
class AutomationRule:
    id: str
    name: str
    state: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AutomationRule":
        return cls(
            id=str(payload.get("id") or payload.get("ruleUuid") or ""),
            name=str(payload.get("name", "")),
            state=payload.get("state"),
        )

    def to_attributes(self) -> Attributes:
        return compact({"name": self.name, "state": self.state})


def _rule_body(desired: Attributes) -> Dict[str, Any]:
    raw = desired.get("rule_json")
    try:
        body = json.loads(raw) if isinstance(raw, str) else raw
    except ValueError as exc:
        raise ValidationError(f"automation_rule: rule_json is not valid JSON: {exc}") from None
    if not isinstance(body, dict):
        raise ValidationError("automation_rule: rule_json must be a JSON object")
    body = dict(body)
    body["name"] = desired["name"]
    return body


class AutomationRuleHandler(KindHandler):
    descriptor = ResourceDescriptor(
        kind="automation_rule",
        identity_mode=IdentityMode.SERVER_ASSIGNED_ID,
        delete_mode=DeleteMode.DISABLE,
    )
    record_type = AutomationRule
    collection_path = RULE_PATH
    id_keys = ("id", "ruleUuid")
    write_only = ("rule_json",)

    def validate(self, client: JiraClient, desired: Attributes) -> None:
        require(desired, self.kind, "name", "rule_json")
        _rule_body(desired)
        state = desired.get("state", ENABLED)
        if state not in (ENABLED, DISABLED):
            raise ValidationError(f"automation_rule: state must be ENABLED or DISABLED, got '{state}'")

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        return _rule_body(desired)

    def _state_call(self, label: str, instance_id: str, state: str) -> ApiCall:
        return ApiCall(label, "PUT", f"{self.item_path(instance_id)}/state", {"state": state})

    def activation_call(self, instance_id: str, desired: Attributes) -> Optional[ApiCall]:
        if desired.get("state", ENABLED) != ENABLED:
            return None
        return self._state_call("enable", instance_id, ENABLED)

    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        return client.get_json(self.item_path(instance_id))

    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        return [
            ApiCall("update", "PUT", self.item_path(instance_id), _rule_body(desired)),
            self._state_call("set_state", instance_id, desired.get("state", ENABLED)),
        ]

    def disable_call(self, instance_id: str, attributes: Attributes) -> ApiCall:
        return self._state_call("disable", instance_id, DISABLED)
