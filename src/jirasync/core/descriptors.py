"""Static per-kind policy and the instance record passed through the reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Tuple


class IdentityMode(str, Enum):
    SERVER_ASSIGNED_ID = "server_assigned_id"
    NATURAL_KEY = "natural_key"
    COMPOSITE_KEY = "composite_key"


class DeleteMode(str, Enum):
    HARD_DELETE = "hard_delete"
    DISABLE = "disable"
    DELETE_AND_RECREATE_ON_RENAME = "delete_and_recreate_on_rename"


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Identity, mutability and deletion policy of one resource kind.

    Attributes:
        kind: Registry key, e.g. ``"issue_type"``.
        identity_mode: How the instance id is obtained.
        immutable_fields: Attributes that can only change by replacement.
        delete_mode: What Delete (and rename) means for this kind.
        natural_key: Attributes forming the human key (composite id parts,
            rename detection).
    """
    kind: str
    identity_mode: IdentityMode
    immutable_fields: FrozenSet[str] = frozenset()
    delete_mode: DeleteMode = DeleteMode.HARD_DELETE
    natural_key: Tuple[str, ...] = ("name",)


@dataclass
class InstanceRecord:
    """Observed state of one remote entity; only ever produced by a read."""
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
