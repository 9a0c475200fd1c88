from __future__ import annotations

import os
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from stridepack.config import ASSETS_FOLDER, RESOURCES_FOLDER
from stridepack.core.paths import make_package_file_name, split_segments, to_forward
from stridepack.core.scanner import iter_project_files
from stridepack.core.settings import ExportSettings
from stridepack.models import ResourceDependency, StagePlanItem, ValidationIssue


def validate_export_settings(settings: ExportSettings) -> List[str]:
    errors: List[str] = []

    if not settings.manifest.name.strip():
        errors.append("Package name is required")
    if not settings.manifest.version.strip():
        errors.append("Package version is required")
    if not settings.library_path or not os.path.isdir(settings.library_path):
        errors.append(f"Library path does not exist: {settings.library_path}")
    if not resolve_output_path(settings):
        errors.append("Cannot generate valid output path for package")

    return errors


def resolve_output_path(settings: ExportSettings) -> str:
    """Explicit output path, else <library parent>/<name>-<version>.stridepackage ("" if neither works)."""
    if settings.output_path:
        out = settings.output_path
        return out if os.path.dirname(out) else ""

    if not settings.library_path:
        return ""
    library = os.path.abspath(settings.library_path.rstrip("/\\") or settings.library_path)
    parent = os.path.dirname(library)
    if not parent:
        return ""
    return os.path.join(parent, make_package_file_name(settings.manifest.name.strip(), settings.manifest.version.strip()))


def strip_resource_path(relative_path: str, package_name: str) -> str:
    """
    Package-internal path for a resource below Resources/<package name>/.

    "<project>/Resources/x" loses its first two segments (a template layout
    "Resources/a/x" loses just the first), then a leading segment equal to
    the package name is dropped too, so re-exporting an imported package
    does not nest the name a second time.
    """
    parts = split_segments(relative_path)
    resources = RESOURCES_FOLDER.lower()

    if len(parts) >= 3 and parts[1].lower() == resources:
        parts = parts[2:]
    elif len(parts) >= 3 and parts[0].lower() == resources:
        parts = parts[1:]
    else:
        return "/".join(parts)

    if package_name and len(parts) > 1 and parts[0].lower() == package_name.lower():
        parts = parts[1:]
    return "/".join(parts)


def map_asset_to_staged_path(
    library_path: str,
    asset_path: str,
    selected_asset_folders: Sequence[str],
    staging_root: str,
) -> str:
    """Where an asset file of the library lands inside the staging tree."""
    rel = to_forward(os.path.relpath(asset_path, library_path))
    rel_lower = rel.lower()

    for folder in selected_asset_folders:
        f = to_forward(folder).strip("/")
        if not f:
            continue
        if rel_lower.startswith(f.lower() + "/"):
            remaining = rel[len(f) + 1:]
            leaf = f.split("/")[-1]
            return os.path.normpath(os.path.join(staging_root, ASSETS_FOLDER, leaf, remaining))

    return os.path.normpath(os.path.join(staging_root, rel))


def _folder_items(library: str, folder: str, prefix: str, staging_root: str, category: str) -> List[StagePlanItem]:
    src_root = os.path.join(library, folder)
    items: List[StagePlanItem] = []
    for full in iter_project_files(src_root):
        rel_in = to_forward(os.path.relpath(full, src_root))
        relpath = f"{prefix}/{rel_in}"
        items.append(
            StagePlanItem(
                src=full,
                relpath=relpath,
                dst=os.path.normpath(os.path.join(staging_root, relpath)),
                category=category,
            )
        )
    return items


def _matches(relpath: str, entries: Sequence[str]) -> bool:
    """relpath equals an entry, or sits below an entry naming a folder."""
    rel = relpath.lower()
    for e in entries:
        e = to_forward(e).strip("/").lower()
        if e and (rel == e or rel.startswith(e + "/")):
            return True
    return False


def build_staging_plan(
    settings: ExportSettings,
    dependencies: Sequence[ResourceDependency],
    staging_root: str,
) -> Tuple[List[StagePlanItem], List[ValidationIssue]]:
    """
    Dry-run staging plan:
      - decides the package path for every selected file and resource
      - applies exclude/include filters (package-relative)
      - assigns new_resource_path on the dependencies that get relocated
      - detects destination collisions
    """
    issues: List[ValidationIssue] = []
    library = os.path.abspath(settings.library_path)
    name = settings.manifest.name.strip()
    plan: List[StagePlanItem] = []

    groups = (
        (settings.selected_asset_folders, lambda leaf: f"{ASSETS_FOLDER}/{leaf}", "asset"),
        (settings.selected_code_folders, lambda leaf: f"{name}/{leaf}", "code"),
        (settings.selected_platform_folders, lambda leaf: f"{name}/{leaf}", "platform"),
    )
    for folders, prefix_for, category in groups:
        for folder in folders:
            clean = to_forward(folder).strip("/")
            if not os.path.isdir(os.path.join(library, clean)):
                issues.append(
                    ValidationIssue("WARNING", "SRC_FOLDER_MISSING", f"Selected folder not found: {folder}", clean)
                )
                continue
            leaf = clean.split("/")[-1]
            plan.extend(_folder_items(library, clean, prefix_for(leaf), staging_root, category))

    for dep in dependencies:
        dep.new_resource_path = None
        rel = to_forward(os.path.relpath(dep.actual_path, library))
        stripped = strip_resource_path(rel, name)
        relpath = f"{RESOURCES_FOLDER}/{name}/{stripped}"
        item = StagePlanItem(
            src=dep.actual_path,
            relpath=relpath,
            dst=os.path.normpath(os.path.join(staging_root, relpath)),
            category="resource",
        )
        plan.append(item)

    # -------------------------
    # Package-relative filters
    # -------------------------
    if settings.exclude_files:
        plan = [p for p in plan if not _matches(p.relpath, settings.exclude_files)]
    if settings.include_files:
        plan = [p for p in plan if _matches(p.relpath, settings.include_files)]

    # -------------------------
    # Collision detection: first source wins, later ones are dropped
    # -------------------------
    by_dst: Dict[str, List[StagePlanItem]] = defaultdict(list)
    for item in plan:
        by_dst[item.relpath.lower()].append(item)

    kept: List[StagePlanItem] = []
    for item in plan:
        same = by_dst[item.relpath.lower()]
        if same[0] is not item:
            continue
        kept.append(item)
        if len(same) > 1:
            issues.append(
                ValidationIssue(
                    "WARNING",
                    "DEST_COLLISION",
                    f"{len(same)} files map to the same package path; keeping {same[0].src}",
                    item.relpath,
                )
            )

    kept_resources = {p.src.lower(): p.relpath for p in kept if p.category == "resource"}
    for dep in dependencies:
        dep.new_resource_path = kept_resources.get(dep.actual_path.lower())

    return kept, issues
