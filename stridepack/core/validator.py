from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Optional

from stridepack.config import PACKAGE_EXTENSION
from stridepack.core.paths import is_stride_asset
from stridepack.core.references import scan_asset_file
from stridepack.core.resolver import ResourcePathResolver
from stridepack.core.scanner import AssetIndex, iter_project_files
from stridepack.log import get_logger
from stridepack.models import ValidationResult

log = get_logger(__name__)


def _asset_files_under(folder: str) -> List[str]:
    return [p for p in iter_project_files(folder) if is_stride_asset(p)]


def _scan_assets(
    asset_files: Iterable[str],
    resolver: ResourcePathResolver,
    result: ValidationResult,
    collect: bool,
) -> None:
    for asset_file in asset_files:
        try:
            refs = scan_asset_file(asset_file)
        except OSError as e:
            result.warnings.append(f"Could not read asset {os.path.basename(asset_file)}: {e}")
            continue

        for ref in refs:
            actual = resolver.check(ref, result)
            if actual and collect:
                result.add_dependency_reference(actual, ref)


def collect_dependencies(
    project_root: str,
    selected_folders: Iterable[str],
    index: Optional[AssetIndex] = None,
) -> ValidationResult:
    """
    Scan only the selected folders for structured assets, resolve every
    reference they make, and return one dependency per resolved resource
    (plus missing/external issues for the ones that can't be used).
    """
    root = os.path.normpath(os.path.abspath(project_root))
    result = ValidationResult()
    resolver = ResourcePathResolver(root, index)
    resolver.index.ensure_scanned()

    for folder in selected_folders:
        folder_path = os.path.join(root, folder)
        if not os.path.isdir(folder_path):
            result.warnings.append(f"Selected folder does not exist: {folder}")
            continue
        _scan_assets(_asset_files_under(folder_path), resolver, result, collect=True)

    log.debug(
        "Collected %d dependencies (%d missing, %d external)",
        len(result.resource_dependencies), len(result.missing_resources), len(result.external_resources),
    )
    return result


def validate_project(project_root: str, index: Optional[AssetIndex] = None) -> ValidationResult:
    """Whole-tree reference validation, without dependency collection."""
    root = os.path.normpath(os.path.abspath(project_root))
    result = ValidationResult()
    if not os.path.isdir(root):
        result.errors.append(f"Project path does not exist: {project_root}")
        return result

    resolver = ResourcePathResolver(root, index)
    resolver.index.ensure_scanned()
    _scan_assets(_asset_files_under(root), resolver, result, collect=False)
    return result


def validate_for_export(library_path: str, selected_asset_folders: List[str]) -> ValidationResult:
    if not os.path.isdir(library_path):
        result = ValidationResult()
        result.errors.append(f"Library path does not exist: {library_path}")
        return result

    if not selected_asset_folders:
        result = ValidationResult()
        result.warnings.append("No asset folders selected")
        return result

    result = collect_dependencies(library_path, selected_asset_folders)

    has_assets = any(
        os.path.isdir(os.path.join(library_path, f)) and _asset_files_under(os.path.join(library_path, f))
        for f in selected_asset_folders
    )
    if not has_assets:
        result.warnings.append("No Stride asset files found in the selected folders")
    return result


def validate_for_import(package_path: str, target_project_path: str) -> ValidationResult:
    result = ValidationResult()

    if not os.path.isfile(package_path):
        result.errors.append(f"Package file does not exist: {package_path}")
    elif Path(package_path).suffix.lower() != PACKAGE_EXTENSION:
        result.warnings.append(f"Package file does not have {PACKAGE_EXTENSION} extension")

    if not os.path.isdir(target_project_path):
        result.errors.append(f"Target project path does not exist: {target_project_path}")
    else:
        has_sdpkg = any(p.lower().endswith(".sdpkg") for p in iter_project_files(target_project_path))
        if not has_sdpkg:
            result.warnings.append("No Stride package (.sdpkg) files found - this may not be a Stride project")

    return result
