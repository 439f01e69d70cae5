"""Resource kind registry for jirasync."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import Dict, Iterable, List


@dataclass(frozen=True)
class KindSpec:
    key: str                # manifest `kind` value
    help: str               # one-line description for the CLI
    module: str             # module path
    class_name: str         # handler class symbol in module

    def load_class(self):
        mod = import_module(self.module)
        return getattr(mod, self.class_name)


_KINDS: Dict[str, KindSpec] = {
    "project": KindSpec(
        key="project",
        help="Projects (scheme assignment included)",
        module="jirasync.kinds.project",
        class_name="ProjectHandler",
    ),
    "project_component": KindSpec(
        key="project_component",
        help="Project components",
        module="jirasync.kinds.project_component",
        class_name="ProjectComponentHandler",
    ),
    "issue_type": KindSpec(
        key="issue_type",
        help="Global issue types",
        module="jirasync.kinds.issue_type",
        class_name="IssueTypeHandler",
    ),
    "issue_type_scheme": KindSpec(
        key="issue_type_scheme",
        help="Issue type schemes",
        module="jirasync.kinds.issue_type_scheme",
        class_name="IssueTypeSchemeHandler",
    ),
    "permission_scheme": KindSpec(
        key="permission_scheme",
        help="Permission schemes and their grants",
        module="jirasync.kinds.permission_scheme",
        class_name="PermissionSchemeHandler",
    ),
    "workflow_scheme": KindSpec(
        key="workflow_scheme",
        help="Workflow schemes",
        module="jirasync.kinds.workflow_scheme",
        class_name="WorkflowSchemeHandler",
    ),
    "custom_field": KindSpec(
        key="custom_field",
        help="Custom fields",
        module="jirasync.kinds.custom_field",
        class_name="CustomFieldHandler",
    ),
    "automation_rule": KindSpec(
        key="automation_rule",
        help="Automation rules (deleted by disabling)",
        module="jirasync.kinds.automation_rule",
        class_name="AutomationRuleHandler",
    ),
    "group": KindSpec(
        key="group",
        help="Groups (renamed by delete + recreate)",
        module="jirasync.kinds.group",
        class_name="GroupHandler",
    ),
    "group_membership": KindSpec(
        key="group_membership",
        help="Group memberships",
        module="jirasync.kinds.group_membership",
        class_name="GroupMembershipHandler",
    ),
}


def get_spec(key: str) -> KindSpec:
    try:
        return _KINDS[key]
    except KeyError:
        raise ValueError(f"Unknown resource kind '{key}' (known: {', '.join(known_kinds())})") from None


def get_handler(key: str):
    """Instantiate the handler registered under *key*."""
    return get_spec(key).load_class()()


def iter_specs() -> Iterable[KindSpec]:
    return _KINDS.values()


def known_kinds() -> List[str]:
    return sorted(_KINDS)
