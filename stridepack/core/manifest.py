from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from stridepack.models import NamespaceReference


class StructureType(str, Enum):
    UNKNOWN = "Unknown"
    FRESH = "Fresh"
    TEMPLATE = "Template"


_STRUCTURE_BY_INDEX = [StructureType.UNKNOWN, StructureType.FRESH, StructureType.TEMPLATE]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_iso(value: Any) -> datetime:
    if not value:
        return _utc_now()
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat only accepts up to 6 fractional digits
    if "." in text:
        head, _, tail = text.partition(".")
        digits = "".join(c for c in tail if c.isdigit())
        rest = tail[len(digits):]
        text = f"{head}.{digits[:6]}{rest}" if digits else head + rest
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return _utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class PackageManifest:
    name: str = ""
    version: str = ""
    description: str = ""
    author: str = ""
    stride_version: str = ""
    created_date: datetime = field(default_factory=_utc_now)
    namespaces: List[NamespaceReference] = field(default_factory=list)
    package_hash: str = ""
    tags: List[str] = field(default_factory=list)
    structure_type: StructureType = StructureType.UNKNOWN
    resource_path_mappings: Dict[str, str] = field(default_factory=dict)
    project_name: str = ""
    resource_target_path: str = ""
    download_url: Optional[str] = None
    homepage: Optional[str] = None
    repository: Optional[str] = None
    license: Optional[str] = None


def _pick(d: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _structure_from_json(value: Any) -> StructureType:
    if isinstance(value, int) and 0 <= value < len(_STRUCTURE_BY_INDEX):
        return _STRUCTURE_BY_INDEX[value]
    for st in StructureType:
        if str(value).lower() == st.value.lower():
            return st
    return StructureType.UNKNOWN


def manifest_to_json_dict(m: PackageManifest) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "name": m.name,
        "version": m.version,
        "description": m.description,
        "author": m.author,
        "strideVersion": m.stride_version,
        "createdDate": _iso_z(m.created_date),
        "namespaces": [ns.to_json_dict() for ns in m.namespaces],
        "packageHash": m.package_hash,
        "tags": list(m.tags),
        "structureType": m.structure_type.value,
        "resourcePathMappings": dict(m.resource_path_mappings),
        "projectName": m.project_name,
        "resourceTargetPath": m.resource_target_path,
    }
    for key, value in (
        ("downloadUrl", m.download_url),
        ("homepage", m.homepage),
        ("repository", m.repository),
        ("license", m.license),
    ):
        if value:
            d[key] = value
    return d


def manifest_from_json_dict(d: Dict[str, Any]) -> PackageManifest:
    """Accepts camelCase keys and the PascalCase ones older packers wrote."""
    namespaces: List[NamespaceReference] = []
    for entry in _pick(d, "namespaces", "Namespaces", default=[]) or []:
        if not isinstance(entry, dict):
            continue
        ns = str(_pick(entry, "namespace", "Namespace", default="") or "")
        files = [str(x) for x in (_pick(entry, "foundInFiles", "FoundInFiles", default=[]) or [])]
        if ns:
            namespaces.append(NamespaceReference(ns, files))

    mappings = _pick(d, "resourcePathMappings", "ResourcePathMappings", default={}) or {}

    return PackageManifest(
        name=str(_pick(d, "name", "Name", default="")),
        version=str(_pick(d, "version", "Version", default="")),
        description=str(_pick(d, "description", "Description", default="")),
        author=str(_pick(d, "author", "Author", default="")),
        stride_version=str(_pick(d, "strideVersion", "StrideVersion", default="")),
        created_date=_parse_iso(_pick(d, "createdDate", "CreatedDate")),
        namespaces=namespaces,
        package_hash=str(_pick(d, "packageHash", "PackageHash", default="")),
        tags=[str(t) for t in (_pick(d, "tags", "Tags", default=[]) or [])],
        structure_type=_structure_from_json(_pick(d, "structureType", "StructureType", default="Unknown")),
        resource_path_mappings={str(k): str(v) for k, v in dict(mappings).items()},
        project_name=str(_pick(d, "projectName", "ProjectName", default="")),
        resource_target_path=str(_pick(d, "resourceTargetPath", "ResourceTargetPath", default="")),
        download_url=_pick(d, "downloadUrl", "DownloadUrl"),
        homepage=_pick(d, "homepage", "Homepage"),
        repository=_pick(d, "repository", "Repository"),
        license=_pick(d, "license", "License"),
    )


def write_manifest_json(manifest: PackageManifest, manifest_path: str) -> str:
    path = Path(manifest_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(manifest_to_json_dict(manifest), f, indent=2, ensure_ascii=False)

    return str(path)


def read_manifest_json(manifest_path: str) -> PackageManifest:
    """Raises OSError / ValueError (json.JSONDecodeError) on unreadable input."""
    with open(manifest_path, "r", encoding="utf-8-sig") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("manifest.json must contain a JSON object")
    return manifest_from_json_dict(data)


# -------------------------
# Registry metadata (stridepackage.json)
# -------------------------
def build_registry_metadata(manifest: PackageManifest) -> Dict[str, Any]:
    return {
        "name": manifest.name,
        "version": manifest.version,
        "description": manifest.description,
        "author": manifest.author,
        "tags": list(manifest.tags),
        "stride_version": f"{manifest.stride_version}+",
        "created": _iso_z(manifest.created_date),
        "download_url": manifest.download_url or "",
        "homepage": manifest.homepage or "",
        "repository": manifest.repository or "",
        "license": manifest.license or "",
    }


def write_registry_metadata(manifest: PackageManifest, path: str) -> str:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(build_registry_metadata(manifest), f, indent=2, ensure_ascii=False)
    return str(out)
