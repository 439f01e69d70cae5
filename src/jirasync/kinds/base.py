"""
KindHandler: per-kind hooks consumed by the reconciler.

The reconciler owns the lifecycle (validate, create, activate, read,
immutable checks, rename-by-recreate, delete dispatch). Concrete handlers only
describe *what* to send for their kind: payload shapes, paths, id extraction,
and how to read the entity back. Everything else is handled in
:mod:`jirasync.core.reconciler`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

from ..core.descriptors import ResourceDescriptor
from ..core.errors import JiraSyncError, ValidationError
from ..core.jira_client import JSON, JiraClient

Attributes = Dict[str, Any]


@dataclass(frozen=True)
class ApiCall:
    """One remote write, built by a handler and executed by the reconciler."""
    label: str
    method: str
    path: str
    body: Optional[JSON] = None
    params: Optional[Dict[str, Any]] = None


def text(value: Any) -> Optional[str]:
    """Stringify an id-like value, mapping None and "" to None."""
    if value is None or value == "":
        return None
    return str(value)


def compact(mapping: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in mapping.items() if v is not None}


def put_if_set(body: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None and value != "":
        body[key] = value


def require(desired: Attributes, kind: str, *names: str) -> None:
    missing = [n for n in names if desired.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"{kind}: missing required attribute(s): {', '.join(missing)}")


def changed(desired: Attributes, observed: Attributes, name: str) -> bool:
    """True when *name* is set in desired and differs from the observed value."""
    value = desired.get(name)
    return value is not None and value != observed.get(name)


class KindHandler:
    """Abstract base class for all resource kinds.

    Subclasses must set the class attributes below and implement the hooks
    that raise ``NotImplementedError``.

    Class Attributes:
        descriptor: Static identity / mutability / delete policy.
        record_type: Typed record with ``from_payload`` and ``to_attributes``.
        collection_path: REST collection the create call posts to.
        id_keys: Create-response keys holding the new id, first present wins.
        write_only: Attributes the API accepts but never returns on read.
    """

    descriptor: ResourceDescriptor
    record_type: Type[Any]
    collection_path: str = ""
    id_keys: Tuple[str, ...] = ("id",)
    write_only: Tuple[str, ...] = ()

    @property
    def kind(self) -> str:
        return self.descriptor.kind

    def item_path(self, instance_id: str) -> str:
        return f"{self.collection_path}/{instance_id}"

    # ----- create ---------------------------------------------------------
    def validate(self, client: JiraClient, desired: Attributes) -> None:
        """Reject desired attributes before any write. Default: accept."""
        return None

    def build_create_payload(self, desired: Attributes) -> Dict[str, Any]:
        """Build the API create payload from desired attributes."""
        raise NotImplementedError

    def create_call(self, desired: Attributes) -> ApiCall:
        return ApiCall("create", "POST", self.collection_path, self.build_create_payload(desired))

    def extract_id(self, response: Any, desired: Attributes) -> str:
        if isinstance(response, dict):
            for key in self.id_keys:
                value = text(response.get(key))
                if value is not None:
                    return value
        raise JiraSyncError(
            f"{self.kind}: create response carries none of {', '.join(self.id_keys)}"
        )

    def activation_call(self, instance_id: str, desired: Attributes) -> Optional[ApiCall]:
        """Follow-up call that must run after a successful create, if any."""
        return None

    # ----- read -----------------------------------------------------------
    def fetch(self, client: JiraClient, instance_id: str, attributes: Attributes) -> Optional[Dict[str, Any]]:
        """Return the raw payload for the instance, or None when a scan misses it."""
        raise NotImplementedError

    def observed_id(self, payload: Dict[str, Any], instance_id: str) -> str:
        return instance_id

    def to_attributes(self, payload: Dict[str, Any]) -> Attributes:
        return self.record_type.from_payload(payload).to_attributes()

    # ----- update / delete ------------------------------------------------
    def update_calls(self, instance_id: str, desired: Attributes, observed: Attributes) -> List[ApiCall]:
        """Ordered calls that bring the instance to *desired*."""
        raise NotImplementedError

    def delete_call(self, instance_id: str, attributes: Attributes) -> ApiCall:
        return ApiCall("delete", "DELETE", self.item_path(instance_id))

    def disable_call(self, instance_id: str, attributes: Attributes) -> ApiCall:
        raise NotImplementedError(f"{self.kind} cannot be disabled")
