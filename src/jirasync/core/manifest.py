"""
Desired-state manifest loader.

Format (YAML):

    resources:
      - name: eng-group          # label, unique within the manifest
        kind: group
        attributes:
          name: engineering
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..kinds.registry import known_kinds


class ManifestError(ValueError):
    """Raised when the manifest file is missing or malformed."""


@dataclass(frozen=True)
class ManifestEntry:
    name: str
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)


def parse_manifest(data: Any, source: str = "<manifest>") -> List[ManifestEntry]:
    if not isinstance(data, dict) or not isinstance(data.get("resources"), list):
        raise ManifestError(f"{source}: top-level 'resources' list is required")

    kinds = set(known_kinds())
    entries: List[ManifestEntry] = []
    seen: Dict[str, int] = {}
    for idx, raw in enumerate(data["resources"]):
        where = f"{source}: resources[{idx}]"
        if not isinstance(raw, dict):
            raise ManifestError(f"{where} must be a mapping")
        name, kind = raw.get("name"), raw.get("kind")
        attributes = raw.get("attributes") or {}
        if not name or not isinstance(name, str):
            raise ManifestError(f"{where}: 'name' is required")
        if kind not in kinds:
            raise ManifestError(f"{where}: unknown kind {kind!r} (known: {', '.join(sorted(kinds))})")
        if not isinstance(attributes, dict):
            raise ManifestError(f"{where}: 'attributes' must be a mapping")
        if name in seen:
            raise ManifestError(f"{where}: duplicate name '{name}' (first at resources[{seen[name]}])")
        seen[name] = idx
        entries.append(ManifestEntry(name=name, kind=kind, attributes=dict(attributes)))
    return entries


def load_manifest(path: str) -> List[ManifestEntry]:
    p = Path(path)
    if not p.exists():
        raise ManifestError(f"Manifest file not found: {path}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return parse_manifest(data, source=str(p))
