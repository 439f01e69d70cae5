"""
Error taxonomy for jirasync.

Every error raised by the client, the resolver or the reconciler derives from
:class:`JiraSyncError`, so hosts can catch one base class and still branch on
the concrete kind:

- ApiError / RateLimitedError: the remote answered with a non-2xx status
- TransportError / ResponseDecodeError: no usable answer at all
- EntityNotFoundError / NoEligibleMatchError: lookup found nothing usable
- AmbiguousInputError / ValidationError: rejected before (or instead of) I/O
- ContractViolationError: the caller asked for an illegal transition
- PartialFailureError / RecreateFailedError: a multi-call operation stopped midway
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence


class JiraSyncError(Exception):
    """Base class for all jirasync errors."""


@dataclass
class ApiError(JiraSyncError):
    """Non-2xx answer from the Jira REST API."""
    status_code: int
    messages: List[str] = field(default_factory=list)
    field_errors: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    url: str = ""

    def __post_init__(self) -> None:
        if 200 <= int(self.status_code) < 300:
            raise ValueError(f"ApiError cannot carry a success status ({self.status_code})")
        super().__init__(self.detail)

    @property
    def detail(self) -> str:
        if self.messages:
            return self.messages[0]
        for name, msg in self.field_errors.items():
            return f"{name}: {msg}"
        return self.body.strip()

    def __str__(self) -> str:
        base = f"Jira API error (HTTP {self.status_code})"
        detail = self.detail
        return f"{base}: {detail}" if detail else base


@dataclass
class RateLimitedError(ApiError):
    """HTTP 429 that could not be absorbed by waiting."""
    retry_after: str = ""
    attempts: int = 0

    def __str__(self) -> str:
        if self.retry_after and not self.retry_after.strip().isdigit():
            return f"rate limited by Jira API, retry after: {self.retry_after}"
        return (
            f"rate limited by Jira API after {self.attempts} wait(s) "
            f"(last Retry-After: {self.retry_after or 'n/a'})"
        )


@dataclass
class TransportError(JiraSyncError):
    """Connection, DNS or timeout failure; no HTTP status was received."""
    method: str
    url: str
    message: str = ""
    status_code: int = 0

    def __str__(self) -> str:
        return f"{self.method} {self.url} failed: {self.message}"


@dataclass
class ResponseDecodeError(JiraSyncError):
    """2xx answer whose body is not valid JSON."""
    status_code: int
    url: str
    body: str = ""
    message: str = ""

    def __str__(self) -> str:
        return f"error decoding response from {self.url} (HTTP {self.status_code}): {self.message}"


class EntityNotFoundError(JiraSyncError):
    """A lookup by id or by name matched nothing."""

    def __init__(self, kind: str, by: str, value: str, message: Optional[str] = None) -> None:
        self.kind = kind
        self.by = by
        self.value = value
        super().__init__(message or f"No {kind} found with {by} '{value}'")


class NoEligibleMatchError(EntityNotFoundError):
    """Name matches exist but every one of them is container-scoped."""

    def __init__(self, kind: str, value: str, candidates: int = 0) -> None:
        self.candidates = candidates
        label = kind.replace("_", " ")
        super().__init__(
            kind,
            "name",
            value,
            f"No global (company-managed) {label} with name '{value}' found; "
            f"{candidates} match(es) exist but all are project-scoped (team-managed).",
        )


class AmbiguousInputError(JiraSyncError):
    """A lookup hint carried both selectors, or neither."""


class ValidationError(JiraSyncError):
    """Desired attributes rejected locally, before any write."""


class ContractViolationError(JiraSyncError):
    """Update requested on an immutable field or a replace-only kind."""


class PartialFailureError(JiraSyncError):
    """
    A multi-call operation failed after some calls already succeeded.

    Remote state is left wherever the completed steps put it; the next read
    shows the divergence. When a create already succeeded, ``instance_id``
    holds the id Jira assigned so the caller can keep tracking it.
    """

    def __init__(
        self,
        kind: str,
        completed_steps: Sequence[str],
        failed_step: str,
        cause: BaseException,
        message: Optional[str] = None,
        instance_id: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.cause = cause
        self.instance_id = instance_id
        super().__init__(
            message
            or (
                f"{kind}: step '{failed_step}' failed after "
                f"{', '.join(self.completed_steps) or 'no steps'} succeeded: {cause}"
            )
        )


class RecreateFailedError(PartialFailureError):
    """Delete of the old instance succeeded, creation of its replacement did not."""

    def __init__(self, kind: str, old_key: str, new_key: str, cause: BaseException) -> None:
        self.old_key = old_key
        self.new_key = new_key
        super().__init__(
            kind,
            ["delete"],
            "create",
            cause,
            f"{kind}: old instance '{old_key}' removed, new instance '{new_key}' failed: {cause}",
        )
