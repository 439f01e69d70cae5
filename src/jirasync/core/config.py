from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv


class ConfigError(ValueError):
    """Raised when runtime configuration cannot be resolved."""


# ---------- Typed sections ----------

@dataclass
class AppSection:
    run_id: Optional[str] = None
    dry_run: bool = False


@dataclass
class JiraSection:
    base_url: str = ""
    email: str = ""
    api_token: str = ""      # secret – never log in clear text
    verify_tls: bool = True
    timeout_sec: int = 30
    max_rate_limit_waits: int = 5


@dataclass
class LoggingSection:
    base_dir: str = "logs"
    console_level: str = "INFO"   # INFO..CRITICAL
    file_level: str = "DEBUG"     # DEBUG..CRITICAL


@dataclass
class StateSection:
    path: str = "./jirasync.state.json"


@dataclass
class AppConfig:
    """Typed configuration object built by `load_config`."""
    app: AppSection
    jira: JiraSection
    logging: LoggingSection
    state: StateSection

    @property
    def run_id(self) -> str:
        """
        Return a stable run identifier for this process.
        Generated lazily when first accessed if not provided.
        """
        if not self.app.run_id:
            self.app.run_id = uuid.uuid4().hex[:12]
        return self.app.run_id


# ---------- Defaults ----------

_DEFAULT_FILES: Tuple[str, ...] = (
    "./jirasync.yml",
    os.path.expanduser("~/.config/jirasync/config.yml"),
    "/etc/jirasync/config.yml",
)

_DEFAULTS: Dict[str, Any] = {
    "app": {"run_id": None, "dry_run": False},
    "jira": {
        "base_url": "",
        "email": "",
        "api_token": "",
        "verify_tls": True,
        "timeout_sec": 30,
        "max_rate_limit_waits": 5,
    },
    "logging": {"base_dir": "logs", "console_level": "INFO", "file_level": "DEBUG"},
    "state": {"path": "./jirasync.state.json"},
}

# Conventional variable names understood by most Jira tooling.
_WELL_KNOWN_ENV = {
    "JIRA_URL": "base_url",
    "JIRA_EMAIL": "email",
    "JIRA_API_TOKEN": "api_token",
}


# ---------- Utilities ----------

def _deep_merge(base: Dict[str, Any], ext: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge for dicts: maps merge recursively, lists/scalars override.
    `ext` wins over `base`. Returns a new dict.
    """
    if not ext:
        return dict(base)
    out: Dict[str, Any] = dict(base)
    for k, v in ext.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _read_yaml_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML must be a mapping: {path}")
    return data


def _load_first_existing(files: Tuple[str, ...]) -> Dict[str, Any]:
    for p in files:
        if os.path.exists(p):
            return _read_yaml_file(p)
    return {}


def _load_dotenv() -> None:
    env_path = find_dotenv(usecwd=True) or ""
    if env_path:
        load_dotenv(env_path, override=False)


def _well_known_env() -> Dict[str, Any]:
    jira = {key: os.environ[var] for var, key in _WELL_KNOWN_ENV.items() if os.environ.get(var)}
    return {"jira": jira} if jira else {}


def _env_to_dict(prefix: str = "JIRASYNC_") -> Dict[str, Any]:
    """
    Convert JIRASYNC_FOO__BAR=val to {"foo": {"bar": "val"}} (lowercased keys).
    """
    out: Dict[str, Any] = {}
    plen = len(prefix)
    for key, val in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[plen:].lower().split("__")
        cursor = out
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path[-1]] = val
    return out


def _interpolate_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values like "${VAR}" with os.environ["VAR"] when present.
    """
    def repl(v: Any) -> Any:
        if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
            return os.environ.get(v[2:-1], "")
        return v

    def walk(obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: walk(repl(v)) for k, v in obj.items()}
        if isinstance(obj, list):
            return [walk(x) for x in obj]
        return repl(obj)

    return walk(cfg)


def _coerce_types(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Minimal type coercion for booleans and integers in known keys.
    """
    def to_bool(x: Any) -> bool:
        return str(x).strip().lower() in {"1", "true", "yes", "y", "on"}

    def to_int(x: Any, key: str) -> int:
        try:
            return int(x)
        except (TypeError, ValueError):
            raise ConfigError(f"Configuration value for '{key}' must be an integer, got {x!r}") from None

    def walk(obj: Any, key_path: Tuple[str, ...] = ()) -> Any:
        if isinstance(obj, dict):
            return {k: walk(v, key_path + (k,)) for k, v in obj.items()}
        if isinstance(obj, list):
            return [walk(v, key_path) for v in obj]
        # heuristics by key
        if key_path[-1:] in [("verify_tls",), ("dry_run",)]:
            return to_bool(obj)
        if key_path[-1:] in [("timeout_sec",), ("max_rate_limit_waits",)]:
            return to_int(obj, ".".join(key_path))
        return obj

    return walk(cfg)


def _validate(cfg: Dict[str, Any]) -> None:
    """
    Validate required fields when not in dry_run.
    """
    dry = bool(cfg.get("app", {}).get("dry_run", False))
    if dry:
        return
    jira = cfg.get("jira", {})
    missing = [f"jira.{k}" for k in ("base_url", "email", "api_token") if not jira.get(k)]
    if missing:
        raise ConfigError(
            "Missing required configuration for non-dry run: " + ", ".join(missing)
            + ". Set them in jirasync.yml, as JIRASYNC_JIRA__<KEY>, or via JIRA_URL / "
            "JIRA_EMAIL / JIRA_API_TOKEN (a .env file is honoured)."
        )


# ---------- Public API ----------

def load_config(
    cli_overrides: Optional[Dict[str, Any]] = None,
    files: Tuple[str, ...] = _DEFAULT_FILES,
    env_prefix: str = "JIRASYNC_",
) -> AppConfig:
    """
    Build an AppConfig from (in precedence order):
      1) CLI overrides
      2) Environment variables (prefix JIRASYNC_, nested via __)
      3) JIRA_URL / JIRA_EMAIL / JIRA_API_TOKEN
      4) YAML file (first existing)
      5) Built-in defaults

    A `.env` file found from the working directory is loaded first; variables
    already exported in the shell win over it.

    Also performs:
      - ${ENV_VAR} interpolation
      - basic type coercion (bool/int)
      - validation of required fields when not in dry_run
    """
    _load_dotenv()

    file_cfg = _load_first_existing(files)
    env_cfg = _env_to_dict(env_prefix)

    # Combine: defaults <- file <- well-known env <- prefixed env <- cli
    merged = _deep_merge(_DEFAULTS, file_cfg)
    merged = _deep_merge(merged, _well_known_env())
    merged = _deep_merge(merged, env_cfg)
    merged = _deep_merge(merged, _drop_empty(cli_overrides or {}))

    merged = _interpolate_env(merged)
    merged = _coerce_types(merged)

    _validate(merged)

    try:
        return AppConfig(
            app=AppSection(**merged.get("app", {})),
            jira=JiraSection(**merged.get("jira", {})),
            logging=LoggingSection(**merged.get("logging", {})),
            state=StateSection(**merged.get("state", {})),
        )
    except TypeError as exc:
        raise ConfigError(f"Unknown configuration key: {exc}") from exc


def _drop_empty(overrides: Dict[str, Any]) -> Dict[str, Any]:
    """CLI flags left at their empty default must not mask lower layers."""
    out: Dict[str, Any] = {}
    for k, v in overrides.items():
        if isinstance(v, dict):
            nested = _drop_empty(v)
            if nested:
                out[k] = nested
        elif v is not None and v != "":
            out[k] = v
    return out
