from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..kinds.registry import get_handler
from .descriptors import IdentityMode, InstanceRecord
from .errors import ApiError, JiraSyncError, PartialFailureError
from .jira_client import JiraClient, is_not_found
from .manifest import ManifestEntry
from .reconciler import Reconciler
from .state import StateEntry, StateStore


@dataclass(frozen=True)
class ApplyResult:
    name: str
    kind: str
    status: str
    reason: str = ""
    error: str = ""


def _norm(value: Any) -> Any:
    """Canonical form for comparison: ids as strings, lists as sets, unset keys dropped."""
    if isinstance(value, dict):
        return {str(k): _norm(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return sorted((_norm(v) for v in value), key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, bool) or value is None:
        return value
    return str(value)


def changed_keys(desired: Dict[str, Any], last_applied: Dict[str, Any], observed: Dict[str, Any]) -> List[str]:
    """
    Desired keys whose value differs from what Jira reports.

    Keys Jira never returns (write-only) fall back to the last applied value.
    """
    out = []
    for key, value in desired.items():
        reference = observed[key] if key in observed else last_applied.get(key)
        if _norm(value) != _norm(reference):
            out.append(key)
    return sorted(out)


class ManifestApplier:
    """Apply manifest entries one at a time and keep the state file in sync.

    Args:
        client: API client; may be None in dry-run mode (no HTTP at all).
        state: State store holding the last applied id/attributes per entry.
        dry_run: Plan against the state file only, write nothing.
        logger: Optional logger or LoggerAdapter.
    """

    def __init__(
        self,
        client: Optional[JiraClient],
        state: StateStore,
        *,
        dry_run: bool = False,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        if client is None and not dry_run:
            raise ValueError("a JiraClient is required unless dry_run is set")
        self.client = client
        self.state = state
        self.dry_run = dry_run
        self.log = logger or logging.getLogger(__name__)

    def apply(self, entries: Iterable[ManifestEntry]) -> Tuple[List[ApplyResult], Dict[str, int]]:
        results: List[ApplyResult] = []
        counts: Dict[str, int] = {}
        wanted = set()

        for entry in entries:
            wanted.add(entry.name)
            res = self._guarded(entry.name, entry.kind, lambda e=entry: self._apply_entry(e))
            self._append(results, counts, res)

        for name in [n for n in self.state.names() if n not in wanted]:
            prior = self.state.get(name)
            res = self._guarded(name, prior.kind, lambda n=name, p=prior: self._delete_entry(n, p))
            self._append(results, counts, res)

        return results, counts

    # ----- per entry ------------------------------------------------------
    def _guarded(self, name: str, kind: str, fn: Callable[[], ApplyResult]) -> ApplyResult:
        try:
            res = fn()
        except PartialFailureError as e:
            self.log.error("%s (%s): partial failure: %s", name, kind, e)
            res = ApplyResult(name, kind, "PARTIAL", error=str(e))
        except JiraSyncError as e:
            self.log.error("%s (%s): %s", name, kind, e)
            res = ApplyResult(name, kind, "ERROR", error=str(e))
        except Exception as e:
            self.log.exception("%s (%s): unexpected failure", name, kind)
            res = ApplyResult(name, kind, "EXCEPTION", error=str(e))
        if not self.dry_run:
            self.state.save()
        return res

    def _apply_entry(self, entry: ManifestEntry) -> ApplyResult:
        handler = get_handler(entry.kind)
        desired = entry.attributes
        prior = self.state.get(entry.name)
        if prior is not None and prior.kind != entry.kind:
            raise JiraSyncError(
                f"kind changed from {prior.kind} to {entry.kind}; remove the entry first, then re-add it"
            )

        if self.dry_run:
            return self._plan(entry, handler, prior)

        rec = Reconciler(handler, self.client, logger=self.log)
        if prior is None:
            return self._create(rec, entry, "not in state")

        observed = rec.read(InstanceRecord(prior.id, dict(prior.attributes)))
        if observed is None:
            self.state.remove(entry.name)
            return self._create(rec, entry, "missing remotely; recreated")

        diff = changed_keys(desired, prior.attributes, observed.attributes)
        if not diff:
            return ApplyResult(entry.name, entry.kind, "UNCHANGED")

        if self._needs_replace(handler, diff):
            rec.delete(observed)
            self.state.remove(entry.name)
            res = self._create(rec, entry, f"replaced: {', '.join(diff)}")
            return ApplyResult(res.name, res.kind, "REPLACED" if res.status == "CREATED" else res.status,
                               res.reason, res.error)

        try:
            updated = rec.update(desired, observed)
        except PartialFailureError as e:
            # a rename recreated the instance under a new id before failing
            if e.instance_id is not None:
                self.state.put(entry.name, entry.kind, e.instance_id, desired)
            raise
        new_id = updated.id if updated is not None else observed.id
        self.state.put(entry.name, entry.kind, new_id, desired)
        return ApplyResult(entry.name, entry.kind, "UPDATED", reason=f"changed: {', '.join(diff)}")

    @staticmethod
    def _needs_replace(handler: Any, diff: List[str]) -> bool:
        descriptor = handler.descriptor
        if descriptor.identity_mode is IdentityMode.COMPOSITE_KEY:
            return True
        return any(k in descriptor.immutable_fields for k in diff)

    def _create(self, rec: Reconciler, entry: ManifestEntry, reason: str) -> ApplyResult:
        try:
            result = rec.create(entry.attributes)
        except PartialFailureError as e:
            if e.instance_id is not None:
                self.state.put(entry.name, entry.kind, e.instance_id, entry.attributes)
            raise
        self.state.put(entry.name, entry.kind, result.id, entry.attributes)
        if result.partial_failure is not None:
            return ApplyResult(entry.name, entry.kind, "PARTIAL", reason, error=str(result.partial_failure))
        return ApplyResult(entry.name, entry.kind, "CREATED", reason)

    def _delete_entry(self, name: str, prior: StateEntry) -> ApplyResult:
        if self.dry_run:
            return ApplyResult(name, prior.kind, "DELETED", reason="dry-run: not in manifest")
        rec = Reconciler(get_handler(prior.kind), self.client, logger=self.log)
        reason = "not in manifest"
        try:
            rec.delete(InstanceRecord(prior.id, dict(prior.attributes)))
        except ApiError as e:
            if not is_not_found(e):
                raise
            reason = "not in manifest; already gone"
        self.state.remove(name)
        return ApplyResult(name, prior.kind, "DELETED", reason=reason)

    def _plan(self, entry: ManifestEntry, handler: Any, prior: Optional[StateEntry]) -> ApplyResult:
        if prior is None:
            return ApplyResult(entry.name, entry.kind, "CREATED", reason="dry-run: not in state")
        diff = changed_keys(entry.attributes, prior.attributes, {})
        if not diff:
            return ApplyResult(entry.name, entry.kind, "UNCHANGED", reason="dry-run")
        status = "REPLACED" if self._needs_replace(handler, diff) else "UPDATED"
        return ApplyResult(entry.name, entry.kind, status, reason=f"dry-run: {', '.join(diff)}")

    @staticmethod
    def _append(results: List[ApplyResult], counts: Dict[str, int], res: ApplyResult) -> None:
        results.append(res)
        counts[res.status] = counts.get(res.status, 0) + 1
