"""
Reconciler: one create/read/update/delete lifecycle for every resource kind.

Per-kind behaviour lives in :class:`jirasync.kinds.base.KindHandler` hooks;
the reconciler only branches on the descriptor's enums, through dispatch
tables, never on the kind name.

Guarantees:
  - create() never hides a successful POST: a failed activation is reported
    on the result, and any later failure is a PartialFailureError carrying
    the new id.
  - read() turns "not found" into None; every other error propagates.
  - update() rejects immutable-field changes and composite kinds before I/O,
    stops at the first failing step and reports what already happened.
  - delete() on DISABLE kinds never issues an HTTP DELETE.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .descriptors import DeleteMode, IdentityMode, InstanceRecord
from .errors import ApiError, ContractViolationError, JiraSyncError, PartialFailureError, RecreateFailedError
from .jira_client import JiraClient, is_not_found

Attributes = Dict[str, Any]


@dataclass(frozen=True)
class CreateResult:
    id: str
    observed: Optional[InstanceRecord]
    partial_failure: Optional[PartialFailureError] = None


class Reconciler:
    """Drive one resource kind through its lifecycle against Jira.

    Args:
        handler: Kind handler carrying the descriptor and request builders.
        client: API client used for every remote call.
        logger: Optional logger or LoggerAdapter.
    """

    def __init__(self, handler: Any, client: JiraClient, *, logger: Optional[logging.LoggerAdapter] = None) -> None:
        self.handler = handler
        self.client = client
        self.log = logger or logging.getLogger(__name__)
        self._delete_strategies: Dict[DeleteMode, Callable[[InstanceRecord], None]] = {
            DeleteMode.HARD_DELETE: self._hard_delete,
            DeleteMode.DISABLE: self._disable,
            DeleteMode.DELETE_AND_RECREATE_ON_RENAME: self._hard_delete,
        }

    @classmethod
    def for_kind(cls, kind: str, client: JiraClient, **kwargs: Any) -> "Reconciler":
        from ..kinds.registry import get_handler

        return cls(get_handler(kind), client, **kwargs)

    @property
    def descriptor(self):
        return self.handler.descriptor

    @property
    def kind(self) -> str:
        return self.descriptor.kind

    # ----- helpers --------------------------------------------------------
    def _call(self, call) -> Any:
        return self.client.execute(call.method, call.path, call.body, params=call.params)

    def _natural_key(self, attributes: Attributes) -> str:
        return "/".join(str(attributes.get(k, "")) for k in self.descriptor.natural_key)

    # ----- create ---------------------------------------------------------
    def create(self, desired: Attributes) -> CreateResult:
        """Create the instance, run its activation step, return a fresh read."""
        corr = uuid.uuid4().hex[:8]
        self.handler.validate(self.client, desired)

        call = self.handler.create_call(desired)
        self.log.info("CREATE[%s] %s %s", corr, self.kind, self._natural_key(desired))
        response = self._call(call)
        done: List[str] = ["create"]
        try:
            instance_id = self.handler.extract_id(response, desired)
        except JiraSyncError as exc:
            self.log.error("CREATE[%s] %s created but no id could be read from the response: %s",
                           corr, self.kind, exc)
            raise PartialFailureError(self.kind, done, "extract_id", exc) from exc
        self.log.debug("CREATE[%s] %s assigned id=%s", corr, self.kind, instance_id)

        partial: Optional[PartialFailureError] = None
        activation = self.handler.activation_call(instance_id, desired)
        if activation is not None:
            try:
                self._call(activation)
            except JiraSyncError as exc:
                partial = PartialFailureError(self.kind, done, activation.label, exc, instance_id=instance_id)
                self.log.warning("CREATE[%s] %s id=%s created but %s failed: %s",
                                 corr, self.kind, instance_id, activation.label, exc)
            else:
                done.append(activation.label)

        try:
            observed = self.read(InstanceRecord(instance_id, dict(desired)))
        except JiraSyncError as exc:
            self.log.error("CREATE[%s] %s id=%s created but read-back failed: %s", corr, self.kind, instance_id, exc)
            raise PartialFailureError(self.kind, done, "read", exc, instance_id=instance_id) from exc
        return CreateResult(id=instance_id, observed=observed, partial_failure=partial)

    # ----- read -----------------------------------------------------------
    def read(self, record: InstanceRecord) -> Optional[InstanceRecord]:
        """Fetch the current remote state; None when the entity no longer exists."""
        if not record.id:
            return None
        try:
            payload = self.handler.fetch(self.client, record.id, record.attributes)
        except ApiError as exc:
            if is_not_found(exc):
                self.log.info("READ %s id=%s not found; treating as absent", self.kind, record.id)
                return None
            raise
        if payload is None:
            self.log.info("READ %s id=%s missing from listing; treating as absent", self.kind, record.id)
            return None
        return InstanceRecord(
            id=self.handler.observed_id(payload, record.id),
            attributes=self.handler.to_attributes(payload),
        )

    # ----- update ---------------------------------------------------------
    def _check_contract(self, desired: Attributes, observed: InstanceRecord) -> None:
        if self.descriptor.identity_mode is IdentityMode.COMPOSITE_KEY:
            raise ContractViolationError(
                f"{self.kind} id '{observed.id}' is a composite key; replace the instance instead of updating it"
            )
        changed = sorted(
            name for name in self.descriptor.immutable_fields
            if name in desired and name in observed.attributes and desired[name] != observed.attributes[name]
        )
        if changed:
            raise ContractViolationError(
                f"{self.kind} id '{observed.id}': immutable field(s) {', '.join(changed)} changed; "
                "replace the instance instead"
            )

    def _is_rename(self, desired: Attributes, observed: InstanceRecord) -> bool:
        if self.descriptor.delete_mode is not DeleteMode.DELETE_AND_RECREATE_ON_RENAME:
            return False
        return any(
            name in desired and desired[name] != observed.attributes.get(name)
            for name in self.descriptor.natural_key
        )

    def update(self, desired: Attributes, observed: InstanceRecord) -> Optional[InstanceRecord]:
        """Bring *observed* to *desired*; returns a fresh read."""
        self._check_contract(desired, observed)
        if self._is_rename(desired, observed):
            return self._recreate(desired, observed)

        self.handler.validate(self.client, desired)
        corr = uuid.uuid4().hex[:8]
        calls = self.handler.update_calls(observed.id, desired, observed.attributes)
        done: List[str] = []
        for call in calls:
            self.log.info("UPDATE[%s] %s id=%s step=%s", corr, self.kind, observed.id, call.label)
            try:
                self._call(call)
            except JiraSyncError as exc:
                if not done:
                    raise
                self.log.error("UPDATE[%s] %s id=%s halted at %s after %s: %s",
                               corr, self.kind, observed.id, call.label, done, exc)
                raise PartialFailureError(self.kind, done, call.label, exc) from exc
            done.append(call.label)

        return self.read(InstanceRecord(observed.id, dict(desired)))

    def _recreate(self, desired: Attributes, observed: InstanceRecord) -> Optional[InstanceRecord]:
        self.handler.validate(self.client, desired)
        old_key = self._natural_key(observed.attributes)
        new_key = self._natural_key(desired)
        self.log.info("RENAME %s '%s' -> '%s' (delete + recreate)", self.kind, old_key, new_key)

        self._hard_delete(observed)
        try:
            result = self.create(desired)
        except PartialFailureError as exc:
            # the replacement exists; a step after its creation failed
            self.log.error("RENAME %s '%s' -> '%s' created but incomplete: %s", self.kind, old_key, new_key, exc)
            raise self._after_delete(exc, exc.instance_id) from exc
        except JiraSyncError as exc:
            self.log.error("RENAME %s '%s' -> '%s' failed after delete: %s", self.kind, old_key, new_key, exc)
            raise RecreateFailedError(self.kind, old_key, new_key, exc) from exc
        if result.partial_failure is not None:
            self.log.error("RENAME %s '%s' -> '%s' created but incomplete: %s",
                           self.kind, old_key, new_key, result.partial_failure)
            raise self._after_delete(result.partial_failure, result.id) from result.partial_failure
        return result.observed

    def _after_delete(self, exc: PartialFailureError, instance_id: Optional[str]) -> PartialFailureError:
        return PartialFailureError(
            self.kind, ["delete"] + exc.completed_steps, exc.failed_step, exc.cause, instance_id=instance_id
        )

    # ----- delete ---------------------------------------------------------
    def delete(self, observed: InstanceRecord) -> None:
        """Remove the instance the way its kind allows."""
        self._delete_strategies[self.descriptor.delete_mode](observed)

    def _hard_delete(self, observed: InstanceRecord) -> None:
        call = self.handler.delete_call(observed.id, observed.attributes)
        self.log.info("DELETE %s id=%s", self.kind, observed.id)
        self._call(call)

    def _disable(self, observed: InstanceRecord) -> None:
        call = self.handler.disable_call(observed.id, observed.attributes)
        self.log.info("DISABLE %s id=%s", self.kind, observed.id)
        self._call(call)
