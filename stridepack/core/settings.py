from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from stridepack.core.manifest import PackageManifest, manifest_from_json_dict, manifest_to_json_dict


@dataclass
class ExportSettings:
    library_path: str = ""
    output_path: str = ""  # empty -> <library parent>/<name>-<version>.stridepackage
    manifest: PackageManifest = field(default_factory=PackageManifest)
    selected_asset_folders: List[str] = field(default_factory=list)
    selected_code_folders: List[str] = field(default_factory=list)
    selected_platform_folders: List[str] = field(default_factory=list)
    exclude_namespaces: List[str] = field(default_factory=list)
    include_files: List[str] = field(default_factory=list)  # package-relative
    exclude_files: List[str] = field(default_factory=list)  # package-relative
    export_registry_json: bool = True


@dataclass
class ImportSettings:
    package_path: str = ""
    target_project_path: str = ""
    overwrite_files: bool = True


def _str_list(values: Any) -> List[str]:
    return [str(x).strip() for x in (values or []) if str(x).strip()]


def export_to_json_dict(settings: ExportSettings) -> Dict[str, Any]:
    m = manifest_to_json_dict(settings.manifest)
    # a preset describes what to export, not a finished package
    for volatile in ("createdDate", "packageHash", "namespaces", "structureType", "resourcePathMappings"):
        m.pop(volatile, None)
    return {
        "library_path": settings.library_path,
        "output_path": settings.output_path,
        "manifest": m,
        "selected_asset_folders": list(settings.selected_asset_folders),
        "selected_code_folders": list(settings.selected_code_folders),
        "selected_platform_folders": list(settings.selected_platform_folders),
        "exclude_namespaces": list(settings.exclude_namespaces),
        "include_files": list(settings.include_files),
        "exclude_files": list(settings.exclude_files),
        "export_registry_json": settings.export_registry_json,
    }


def export_from_json_dict(d: Dict[str, Any]) -> ExportSettings:
    return ExportSettings(
        library_path=str(d.get("library_path") or ""),
        output_path=str(d.get("output_path") or ""),
        manifest=manifest_from_json_dict(d.get("manifest") or {}),
        selected_asset_folders=_str_list(d.get("selected_asset_folders")),
        selected_code_folders=_str_list(d.get("selected_code_folders")),
        selected_platform_folders=_str_list(d.get("selected_platform_folders")),
        exclude_namespaces=_str_list(d.get("exclude_namespaces")),
        include_files=_str_list(d.get("include_files")),
        exclude_files=_str_list(d.get("exclude_files")),
        export_registry_json=bool(d.get("export_registry_json", True)),
    )


def save_export_preset(path: str, settings: ExportSettings) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(export_to_json_dict(settings), indent=2), encoding="utf-8")
    return out


def load_export_preset(path: str) -> ExportSettings:
    d = json.loads(Path(path).read_text(encoding="utf-8"))
    return export_from_json_dict(d)
