"""
Command-line interface for jirasync.

Usage (examples):
  - Plan only (no HTTP):
      python -m jirasync.cli apply --manifest ./jira.yml --dry-run

  - Real apply:
      JIRA_URL=https://acme.atlassian.net JIRA_EMAIL=me@acme.io JIRA_API_TOKEN=... \
        python -m jirasync.cli apply --manifest ./jira.yml --state ./jira.state.json

  - Look up an id:
      python -m jirasync.cli lookup --kind issue_type --name Bug
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, Iterable, List

from .core.applier import ManifestApplier
from .core.config import AppConfig, ConfigError, load_config
from .core.descriptors import InstanceRecord
from .core.errors import JiraSyncError
from .core.jira_client import ClientOptions, JiraClient
from .core.logging_setup import build_logger
from .core.manifest import load_manifest
from .core.reconciler import Reconciler
from .core.resolver import IdentifierResolver, LookupHint
from .core.state import StateStore
from .kinds.registry import known_kinds

_STATUS_ORDER = ["CREATED", "UPDATED", "REPLACED", "UNCHANGED", "DELETED", "PARTIAL", "ERROR", "EXCEPTION"]


def _summarize_counts(counts: Dict[str, int]) -> str:
    return " | ".join(f"{k}={counts.get(k, 0)}" for k in _STATUS_ORDER)


def _exit_code_from_counts(counts: Dict[str, int]) -> int:
    if counts.get("ERROR", 0) or counts.get("EXCEPTION", 0) or counts.get("PARTIAL", 0):
        return 2
    return 0


def _parse_attrs(pairs: List[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigError(f"--attr expects key=value, got '{pair}'")
        out[key] = value
    return out


def _add_common(p: argparse.ArgumentParser) -> None:
    # Jira / HTTP
    p.add_argument("--base-url", default="", help="Jira site URL (or JIRA_URL)")
    p.add_argument("--email", default="", help="Account email (or JIRA_EMAIL)")
    p.add_argument("--api-token", default="", help="API token (or JIRA_API_TOKEN)")
    p.add_argument("--verify-tls", default=None, choices=["true", "false"], help="Verify TLS certificates")
    p.add_argument("--timeout-sec", type=int, default=None, help="HTTP timeout seconds")
    p.add_argument("--config", action="append", default=None, help="Config YAML file (first existing wins)")

    # Logging
    p.add_argument("--logs-dir", default="", help="Logs base directory")
    p.add_argument("--console-level", default="", help="Console log level (INFO..CRITICAL)")
    p.add_argument("--file-level", default="", help="File log level (DEBUG..CRITICAL)")


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="jirasync", description="Reconcile Jira Cloud configuration")
    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("apply", help="Apply a desired-state manifest")
    a.add_argument("--manifest", required=True, help="Manifest YAML file")
    a.add_argument("--state", default="", help="State JSON file")
    a.add_argument("--dry-run", action="store_true", help="Plan only, no network calls")
    _add_common(a)

    lk = sub.add_parser("lookup", help="Resolve an entity id from an id or a name")
    lk.add_argument("--kind", required=True, help="Lookup kind (group, issue_type, project, user, ...)")
    sel = lk.add_mutually_exclusive_group()
    sel.add_argument("--id", dest="by_id", default=None, help="Entity id")
    sel.add_argument("--name", dest="by_name", default=None, help="Entity name (email for users)")
    _add_common(lk)

    r = sub.add_parser("read", help="Read one managed instance")
    r.add_argument("--kind", required=True, choices=known_kinds(), help="Resource kind")
    r.add_argument("--id", required=True, help="Instance id")
    r.add_argument("--attr", action="append", default=[], help="Known attribute key=value (e.g. name=devs)")
    _add_common(r)

    return p


def _config_from_args(args: argparse.Namespace, *, dry_run: bool = False) -> AppConfig:
    cli_overrides: Dict[str, Any] = {
        "app": {"dry_run": dry_run},
        "jira": {
            "base_url": args.base_url,
            "email": args.email,
            "api_token": args.api_token,
            "verify_tls": args.verify_tls,
            "timeout_sec": args.timeout_sec,
        },
        "logging": {
            "base_dir": args.logs_dir,
            "console_level": args.console_level,
            "file_level": args.file_level,
        },
        "state": {"path": getattr(args, "state", "")},
    }
    if args.config:
        return load_config(cli_overrides, files=tuple(args.config))
    return load_config(cli_overrides)


def _client(cfg: AppConfig) -> JiraClient:
    return JiraClient(
        cfg.jira.base_url,
        cfg.jira.email,
        cfg.jira.api_token,
        options=ClientOptions(
            verify=bool(cfg.jira.verify_tls),
            timeout_sec=int(cfg.jira.timeout_sec),
            max_rate_limit_waits=int(cfg.jira.max_rate_limit_waits),
        ),
    )


def _logger(cfg: AppConfig, action: str, kind: str = "-"):
    return build_logger(
        run_id=cfg.run_id,
        action=action,
        base_dir=cfg.logging.base_dir,
        console_level=cfg.logging.console_level,
        file_level=cfg.logging.file_level,
        extra={"kind": kind},
    )


def _apply_cmd(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args, dry_run=bool(args.dry_run))
    logger = _logger(cfg, "apply")
    logger.info("Starting jirasync apply (dry_run=%s)", cfg.app.dry_run)

    entries = load_manifest(args.manifest)
    logger.info("Loaded %s manifest entries from %s", len(entries), args.manifest)
    state = StateStore(cfg.state.path)

    client = None if cfg.app.dry_run else _client(cfg)
    applier = ManifestApplier(client, state, dry_run=cfg.app.dry_run, logger=logger)
    results, counts = applier.apply(entries)

    for res in results:
        line = f"{res.status:<9} {res.kind:<18} {res.name}"
        if res.reason:
            line += f"  ({res.reason})"
        if res.error:
            line += f"  error: {res.error}"
        print(line)

    summary = _summarize_counts(counts)
    logger.info("Apply summary: %s", summary)
    print(summary)
    return _exit_code_from_counts(counts)


def _lookup_cmd(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    logger = _logger(cfg, "lookup", args.kind)
    resolver = IdentifierResolver(_client(cfg))
    entity = resolver.resolve(args.kind, LookupHint(by_id=args.by_id, by_name=args.by_name))
    logger.info("Resolved %s -> id=%s name=%s", args.kind, entity.id, entity.name)
    print(json.dumps({"kind": entity.kind, "id": entity.id, "name": entity.name, "payload": entity.payload},
                     indent=2, ensure_ascii=False))
    return 0


def _read_cmd(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    logger = _logger(cfg, "read", args.kind)
    rec = Reconciler.for_kind(args.kind, _client(cfg), logger=logger)
    observed = rec.read(InstanceRecord(args.id, _parse_attrs(args.attr)))
    if observed is None:
        print("absent")
        return 1
    print(json.dumps({"id": observed.id, "attributes": observed.attributes}, indent=2, ensure_ascii=False))
    return 0


_COMMANDS = {
    "apply": _apply_cmd,
    "lookup": _lookup_cmd,
    "read": _read_cmd,
}


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        return _COMMANDS[args.cmd](args)
    except (JiraSyncError, ValueError) as e:  # ConfigError, ManifestError, StateError included
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
