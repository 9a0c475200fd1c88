from __future__ import annotations

import dataclasses
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from stridepack.config import MANIFEST_NAME, REGISTRY_METADATA_NAME, RESOURCES_FOLDER
from stridepack.core.hashing import hash_file, hash_package_tree
from stridepack.core.layout import detect_project_structure
from stridepack.core.manifest import PackageManifest, write_manifest_json, write_registry_metadata
from stridepack.core.namespaces import scan_directory
from stridepack.core.paths import to_forward
from stridepack.core.planner import build_staging_plan, resolve_output_path, validate_export_settings
from stridepack.core.rewriter import rewrite_staged_references, strip_namespaces_in_tree
from stridepack.core.scanner import AssetIndex
from stridepack.core.settings import ExportSettings
from stridepack.core.validator import collect_dependencies
from stridepack.errors import ErrorKind, Outcome
from stridepack.log import get_logger, section, step
from stridepack.models import ResourceDependency, StagePlanItem, ValidationIssue

log = get_logger(__name__)


@dataclass(frozen=True)
class StageSummary:
    total: int
    copied: int
    failed: int


@dataclass
class ExportResult:
    package_path: str
    manifest: PackageManifest
    registry_metadata_path: Optional[str] = None
    dependencies: List[ResourceDependency] = field(default_factory=list)
    plan: List[StagePlanItem] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)
    references_rewritten: int = 0
    namespace_stripped_files: List[str] = field(default_factory=list)


def execute_stage_plan(
    plan: List[StagePlanItem],
    progress_cb: Optional[Callable[[int, int, StagePlanItem], None]] = None,
    verify_hash: bool = True,
) -> Tuple[StageSummary, List[ValidationIssue]]:
    """
    Copies every plan item into the staging tree and (optionally) verifies
    each copy against its source hash. Failures become ERROR issues; the
    caller decides whether the package can still be built.
    """
    issues: List[ValidationIssue] = []
    total = len(plan)
    copied = 0
    failed = 0

    for idx, item in enumerate(plan, start=1):
        if progress_cb:
            progress_cb(idx, total, item)

        src = Path(item.src)
        dst = Path(item.dst)

        if not src.is_file():
            failed += 1
            issues.append(ValidationIssue("ERROR", "SRC_MISSING", f"Source missing: {src}", item.relpath))
            continue

        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dst)
        except OSError as e:
            failed += 1
            issues.append(ValidationIssue("ERROR", "COPY_FAILED", f"Copy failed: {src} -> {dst} ({e})", item.relpath))
            continue

        if verify_hash:
            try:
                same = hash_file(str(src)) == hash_file(str(dst))
            except OSError as e:
                failed += 1
                issues.append(ValidationIssue("ERROR", "HASH_FAILED", f"Failed hashing staged copy: {dst} ({e})", item.relpath))
                continue
            if not same:
                failed += 1
                issues.append(
                    ValidationIssue("ERROR", "HASH_MISMATCH", f"Integrity check failed (src != dst) for: {dst.name}", item.relpath)
                )
                continue

        copied += 1
        log.debug("staged %s -> %s", item.src, item.relpath)

    return StageSummary(total=total, copied=copied, failed=failed), issues


def write_package_archive(staging_root: str, output_path: str) -> str:
    """
    Zip the staging tree with a stable member order. The archive is written
    beside the target and moved into place, so a failed write never leaves
    a truncated package behind.
    """
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    partial = out.with_name(out.name + ".partial")

    try:
        with zipfile.ZipFile(partial, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for dirpath, dirnames, filenames in os.walk(staging_root):
                dirnames.sort()
                rel_dir = to_forward(os.path.relpath(dirpath, staging_root))
                if rel_dir != "." and not dirnames and not filenames:
                    zf.writestr(rel_dir + "/", b"")
                for fn in sorted(filenames):
                    full = os.path.join(dirpath, fn)
                    zf.write(full, to_forward(os.path.relpath(full, staging_root)))
        os.replace(partial, out)
    except BaseException:
        if partial.exists():
            partial.unlink()
        raise

    return str(out)


def _resource_mappings(library: str, dependencies: List[ResourceDependency]) -> Dict[str, str]:
    return {
        to_forward(os.path.relpath(dep.actual_path, library)): dep.new_resource_path
        for dep in dependencies
        if dep.new_resource_path
    }


def build_package(
    settings: ExportSettings,
    progress_cb: Optional[Callable[[int, int, StagePlanItem], None]] = None,
) -> Outcome:
    """
    Export pipeline: validate settings -> validate/collect resources ->
    scan namespaces -> stage -> rewrite references -> strip namespaces ->
    hash -> manifest -> zip -> registry metadata. The staging tree is a
    temporary directory and is removed on every exit path.

    Returns Outcome[ExportResult].
    """
    section("Export")
    errors = validate_export_settings(settings)
    if errors:
        return Outcome.failure(ErrorKind.SETTINGS_INVALID, "Invalid export settings", errors)

    library = os.path.abspath(settings.library_path)
    output_path = os.path.abspath(resolve_output_path(settings))
    name = settings.manifest.name.strip()

    step("Validating resources in %d selected folder(s)", len(settings.selected_asset_folders))
    index = AssetIndex(library)
    collection = collect_dependencies(library, settings.selected_asset_folders, index)
    if collection.has_critical_issues:
        log.warning("Resource validation failed:\n%s", collection.get_report())
        return Outcome.failure(
            ErrorKind.RESOURCE_VALIDATION_FAILED,
            "Cannot create package due to resource validation errors",
            collection.report_lines(),
        )
    dependencies = collection.resource_dependencies

    step("Scanning namespaces")
    namespaces = scan_directory(library, settings.exclude_namespaces)

    manifest = dataclasses.replace(
        settings.manifest,
        name=name,
        version=settings.manifest.version.strip(),
        created_date=datetime.now(timezone.utc).replace(microsecond=0),
        namespaces=namespaces,
        structure_type=detect_project_structure(library).structure_type,
        project_name=os.path.basename(library),
        resource_target_path=f"{RESOURCES_FOLDER}/{name}",
        tags=list(settings.manifest.tags),
    )

    issues: List[ValidationIssue] = list(index.issues)
    try:
        with tempfile.TemporaryDirectory(prefix="stridepack-export-") as staging:
            step("Staging package tree")
            plan, plan_issues = build_staging_plan(settings, dependencies, staging)
            issues.extend(plan_issues)

            summary, copy_issues = execute_stage_plan(plan, progress_cb=progress_cb)
            issues.extend(copy_issues)
            if summary.failed:
                return Outcome.failure(
                    ErrorKind.IO_FAILURE,
                    f"Staging failed for {summary.failed} of {summary.total} file(s)",
                    [i.message for i in copy_issues if i.level == "ERROR"],
                )

            step("Rewriting resource references")
            rewrite = rewrite_staged_references(library, staging, dependencies, settings.selected_asset_folders)
            issues.extend(rewrite.issues)
            rewrite_errors = [i.message for i in rewrite.issues if i.level == "ERROR"]
            if rewrite_errors:
                return Outcome.failure(ErrorKind.IO_FAILURE, "Reference rewriting failed", rewrite_errors)

            stripped = strip_namespaces_in_tree(staging, settings.exclude_namespaces)

            step("Hashing package contents")
            manifest.package_hash = hash_package_tree(staging)
            manifest.resource_path_mappings = _resource_mappings(library, dependencies)
            write_manifest_json(manifest, os.path.join(staging, MANIFEST_NAME))

            step("Writing %s", output_path)
            write_package_archive(staging, output_path)
    except OSError as e:
        log.error("Package export failed: %s", e)
        return Outcome.failure(ErrorKind.IO_FAILURE, "Package export failed", [str(e)])

    registry_path = None
    if settings.export_registry_json:
        try:
            registry_path = write_registry_metadata(
                manifest, os.path.join(os.path.dirname(output_path), REGISTRY_METADATA_NAME)
            )
        except OSError as e:
            issues.append(ValidationIssue("WARNING", "REGISTRY_WRITE_FAILED", f"Could not write registry metadata ({e})"))

    log.info("Package created: %s (%d files, hash %s)", output_path, len(plan), manifest.package_hash)
    return Outcome.success(
        ExportResult(
            package_path=output_path,
            manifest=manifest,
            registry_metadata_path=registry_path,
            dependencies=list(dependencies),
            plan=plan,
            issues=issues,
            references_rewritten=rewrite.replacements,
            namespace_stripped_files=stripped,
        )
    )
