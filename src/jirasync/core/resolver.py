"""
IdentifierResolver: turn an id-or-name hint into one concrete remote entity.

Each lookup kind is described by a :class:`LookupSpec` (how to fetch by id,
how to list name candidates, which field is the name, whether scope matters).
The matching rules are shared:

  - exactly one of ``by_id`` / ``by_name`` must be given (checked before I/O)
  - names match case-insensitively and exactly
  - for scope-aware kinds, the first candidate whose *detail* payload is not
    scoped wins; candidates whose detail cannot be fetched are skipped
  - otherwise the first match wins

Resolution never writes to Jira.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..kinds.group import GROUP_PATH, Group
from ..kinds.issue_type import ISSUE_TYPE_PATH, IssueType
from ..kinds.issue_type_scheme import SCHEME_PATH as ISSUE_TYPE_SCHEME_PATH, IssueTypeScheme
from ..kinds.permission_scheme import LIST_WRAPPER, SCHEME_PATH as PERMISSION_SCHEME_PATH, PermissionScheme
from ..kinds.project import Project
from ..kinds.user import User
from ..kinds.workflow import Workflow, workflow_name
from .errors import AmbiguousInputError, ApiError, EntityNotFoundError, JiraSyncError, NoEligibleMatchError, ValidationError
from .jira_client import JiraClient, is_not_found
from .pagination import fetch_items, iter_pages
from .scope import is_scoped

log = logging.getLogger(__name__)

Payload = Dict[str, Any]


@dataclass(frozen=True)
class LookupHint:
    by_id: Optional[str] = None
    by_name: Optional[str] = None

    def check(self, kind: str) -> None:
        has_id = bool(self.by_id and str(self.by_id).strip())
        has_name = bool(self.by_name and str(self.by_name).strip())
        if has_id and has_name:
            raise AmbiguousInputError(f"Ambiguous input: specify either id or name for {kind}, not both")
        if not has_id and not has_name:
            raise AmbiguousInputError(f"Missing input: one of id or name is required for {kind}")


@dataclass(frozen=True)
class ResolvedEntity:
    kind: str
    id: str
    name: str
    record: Any
    payload: Payload


@dataclass(frozen=True)
class LookupSpec:
    """How one entity kind is looked up.

    Attributes:
        kind: Lookup key, e.g. ``"issue_type"``.
        record_type: Typed record built from the winning payload.
        list_candidates: ``(client, name) -> payloads`` to match against.
        fetch_by_id: ``(client, id) -> payload | None``; None means not found.
            Left unset for kinds that can only be looked up by name.
        name_of / id_of: Extract name and id from a payload.
        exact_name: False when the name search endpoint already does the
            matching (e.g. user search by email).
        scope_aware: Prefer unscoped (global) candidates.
    """
    kind: str
    record_type: Any
    list_candidates: Callable[[JiraClient, str], Iterable[Payload]]
    fetch_by_id: Optional[Callable[[JiraClient, str], Optional[Payload]]] = None
    name_of: Callable[[Payload], str] = lambda p: str(p.get("name", ""))
    id_of: Callable[[Payload], str] = lambda p: str(p.get("id", ""))
    exact_name: bool = True
    scope_aware: bool = False


def _first(items: List[Payload]) -> Optional[Payload]:
    return items[0] if items else None


def _default_lookups() -> Dict[str, LookupSpec]:
    specs = [
        LookupSpec(
            kind="group",
            record_type=Group,
            fetch_by_id=lambda c, v: _first(fetch_items(c, f"{GROUP_PATH}/bulk", params={"groupId": v})),
            list_candidates=lambda c, n: fetch_items(c, f"{GROUP_PATH}/bulk", params={"groupName": n}),
            id_of=lambda p: str(p.get("groupId") or p.get("name", "")),
        ),
        LookupSpec(
            kind="issue_type",
            record_type=IssueType,
            fetch_by_id=lambda c, v: c.get_json(f"{ISSUE_TYPE_PATH}/{v}"),
            list_candidates=lambda c, n: fetch_items(c, ISSUE_TYPE_PATH, wrapper_key=None),
            scope_aware=True,
        ),
        LookupSpec(
            kind="issue_type_scheme",
            record_type=IssueTypeScheme,
            fetch_by_id=lambda c, v: _first(fetch_items(c, ISSUE_TYPE_SCHEME_PATH, params={"id": v})),
            list_candidates=lambda c, n: iter_pages(c, ISSUE_TYPE_SCHEME_PATH),
        ),
        LookupSpec(
            kind="permission_scheme",
            record_type=PermissionScheme,
            fetch_by_id=lambda c, v: c.get_json(f"{PERMISSION_SCHEME_PATH}/{v}"),
            list_candidates=lambda c, n: fetch_items(c, PERMISSION_SCHEME_PATH, wrapper_key=LIST_WRAPPER),
        ),
        LookupSpec(
            kind="project",
            record_type=Project,
            fetch_by_id=lambda c, v: c.get_json(f"/rest/api/3/project/{v}"),
            list_candidates=lambda c, n: iter_pages(c, "/rest/api/3/project/search", params={"query": n}),
        ),
        LookupSpec(
            kind="user",
            record_type=User,
            fetch_by_id=lambda c, v: c.get_json("/rest/api/3/user", params={"accountId": v}),
            list_candidates=lambda c, n: fetch_items(c, "/rest/api/3/user/search", params={"query": n}, wrapper_key=None),
            name_of=lambda p: str(p.get("emailAddress") or p.get("displayName", "")),
            id_of=lambda p: str(p.get("accountId", "")),
            exact_name=False,
        ),
        LookupSpec(
            kind="workflow",
            record_type=Workflow,
            list_candidates=lambda c, n: fetch_items(c, "/rest/api/3/workflow/search", params={"workflowName": n}),
            name_of=workflow_name,
            id_of=lambda p: str((p.get("id") or {}).get("entityId") or workflow_name(p)),
        ),
    ]
    return {s.kind: s for s in specs}


class IdentifierResolver:
    """Resolve lookup hints against Jira.

    Args:
        client: API client used for every remote call.
        lookups: Optional replacement for the built-in lookup table.
    """

    def __init__(self, client: JiraClient, lookups: Optional[Dict[str, LookupSpec]] = None) -> None:
        self.client = client
        self.lookups = lookups if lookups is not None else _default_lookups()

    def kinds(self) -> List[str]:
        return sorted(self.lookups)

    def resolve(self, kind: str, hint: LookupHint) -> ResolvedEntity:
        try:
            spec = self.lookups[kind]
        except KeyError:
            raise ValueError(f"Unknown lookup kind '{kind}' (known: {', '.join(self.kinds())})") from None
        hint.check(kind)

        if hint.by_id:
            return self._by_id(spec, str(hint.by_id).strip())
        return self._by_name(spec, str(hint.by_name).strip())

    # ----- internals ------------------------------------------------------
    def _entity(self, spec: LookupSpec, payload: Payload) -> ResolvedEntity:
        return ResolvedEntity(
            kind=spec.kind,
            id=spec.id_of(payload),
            name=spec.name_of(payload),
            record=spec.record_type.from_payload(payload),
            payload=payload,
        )

    def _fetch(self, spec: LookupSpec, value: str) -> Optional[Payload]:
        try:
            payload = spec.fetch_by_id(self.client, value)
        except ApiError as exc:
            if is_not_found(exc):
                return None
            raise
        return payload if isinstance(payload, dict) and payload else None

    def _by_id(self, spec: LookupSpec, value: str) -> ResolvedEntity:
        if spec.fetch_by_id is None:
            raise ValidationError(f"{spec.kind} can only be looked up by name")
        payload = self._fetch(spec, value)
        if payload is None:
            raise EntityNotFoundError(spec.kind, "id", value)
        return self._entity(spec, payload)

    def _by_name(self, spec: LookupSpec, name: str) -> ResolvedEntity:
        wanted = name.casefold()
        matches = [
            p for p in spec.list_candidates(self.client, name)
            if not spec.exact_name or spec.name_of(p).casefold() == wanted
        ]
        if not matches:
            raise EntityNotFoundError(spec.kind, "name", name)
        if not spec.scope_aware:
            return self._entity(spec, matches[0])
        return self._first_unscoped(spec, name, matches)

    def _first_unscoped(self, spec: LookupSpec, name: str, matches: List[Payload]) -> ResolvedEntity:
        for candidate in matches:
            cand_id = spec.id_of(candidate)
            if is_scoped(candidate):
                log.debug("%s '%s' id=%s is scoped in listing; skipped", spec.kind, name, cand_id)
                continue
            try:
                detail = self._fetch(spec, cand_id)
            except JiraSyncError as exc:
                log.debug("%s '%s' id=%s detail fetch failed; skipped: %s", spec.kind, name, cand_id, exc)
                continue
            if detail is None or is_scoped(detail):
                log.debug("%s '%s' id=%s has no usable global detail; skipped", spec.kind, name, cand_id)
                continue
            return self._entity(spec, detail)
        raise NoEligibleMatchError(spec.kind, name, candidates=len(matches))
