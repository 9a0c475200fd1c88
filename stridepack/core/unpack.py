from __future__ import annotations

import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from stridepack.config import ASSETS_FOLDER, MANIFEST_NAME, RESOURCES_FOLDER
from stridepack.core.hashing import hash_package_tree, hashes_match
from stridepack.core.layout import ProjectLayout, detect_project_structure, find_game_folder
from stridepack.core.manifest import PackageManifest, StructureType, read_manifest_json
from stridepack.core.paths import to_forward
from stridepack.core.settings import ImportSettings
from stridepack.core.validator import validate_for_import
from stridepack.errors import ErrorKind, Outcome
from stridepack.log import get_logger, section, step

log = get_logger(__name__)

MISSING_MANIFEST_MESSAGE = (
    "Package is missing manifest.json file. "
    "This package may be corrupted or is not a valid .stridepackage file."
)
MISSING_HASH_MESSAGE = (
    "Package manifest is missing integrity hash. "
    "This package may be corrupted or was created with an outdated version of the packer."
)
INTEGRITY_FAILED_MESSAGE = (
    "Package integrity verification failed. "
    "The package may be corrupted or tampered with."
)


@dataclass
class ImportResult:
    import_path: str = ""
    imported_files: List[str] = field(default_factory=list)
    created_directories: List[str] = field(default_factory=list)
    overwritten_items: List[str] = field(default_factory=list)
    skipped_items: List[str] = field(default_factory=list)
    manifest: Optional[PackageManifest] = None
    structure_type: StructureType = StructureType.UNKNOWN

    @property
    def has_conflicts(self) -> bool:
        return bool(self.overwritten_items or self.skipped_items)

    @property
    def total_files_imported(self) -> int:
        return len(self.imported_files)


def extract_package(package_path: str, destination: str) -> None:
    """Raises zipfile.BadZipFile / OSError on unreadable archives."""
    with zipfile.ZipFile(package_path) as zf:
        zf.extractall(destination)


def open_verified_package(extracted_dir: str) -> Tuple[Optional[PackageManifest], Optional[Outcome]]:
    """
    Manifest present -> hash present -> hash matches. Returns the manifest,
    or the failure Outcome for the first gate that does not hold.
    """
    manifest_path = os.path.join(extracted_dir, MANIFEST_NAME)
    if not os.path.isfile(manifest_path):
        return None, Outcome.failure(ErrorKind.MISSING_MANIFEST, MISSING_MANIFEST_MESSAGE)

    try:
        manifest = read_manifest_json(manifest_path)
    except (OSError, ValueError) as e:
        return None, Outcome.failure(ErrorKind.MISSING_MANIFEST, MISSING_MANIFEST_MESSAGE, [f"manifest.json is unreadable: {e}"])

    if not manifest.package_hash.strip():
        return manifest, Outcome.failure(ErrorKind.MISSING_HASH, MISSING_HASH_MESSAGE)

    try:
        actual = hash_package_tree(extracted_dir)
    except OSError as e:
        return manifest, Outcome.failure(ErrorKind.INTEGRITY_FAILED, INTEGRITY_FAILED_MESSAGE, [f"Hashing failed: {e}"])

    if not hashes_match(manifest.package_hash, actual):
        return manifest, Outcome.failure(
            ErrorKind.INTEGRITY_FAILED,
            INTEGRITY_FAILED_MESSAGE,
            [f"expected {manifest.package_hash.upper()}, computed {actual}"],
        )

    return manifest, None


def verify_package_integrity(package_path: str) -> bool:
    """True only for a readable archive whose manifest hash matches its contents."""
    if not os.path.isfile(package_path):
        raise FileNotFoundError(f"Package file not found: {package_path}")

    with tempfile.TemporaryDirectory(prefix="stridepack-verify-") as tmp:
        try:
            extract_package(package_path, tmp)
        except (zipfile.BadZipFile, OSError) as e:
            log.warning("Cannot open package %s: %s", package_path, e)
            return False
        _, failure = open_verified_package(tmp)
        return failure is None


def _code_target(target_root: Path, layout: ProjectLayout) -> Path:
    if layout.structure_type == StructureType.FRESH:
        return target_root / layout.project_name
    game = find_game_folder(str(target_root))
    return Path(game) if game else target_root


class _Copier:
    """Copies package content into the target, recording every decision."""

    def __init__(self, target_root: Path, overwrite: bool, result: ImportResult):
        self.target_root = target_root
        self.overwrite = overwrite
        self.result = result

    def _rel(self, path: Path) -> str:
        return to_forward(os.path.relpath(path, self.target_root))

    def ensure_dir(self, path: Path) -> None:
        if path.is_dir():
            return
        path.mkdir(parents=True, exist_ok=True)
        self.result.created_directories.append(self._rel(path))

    def copy_file(self, src: Path, dst: Path) -> None:
        rel = self._rel(dst)
        existed = dst.exists()
        if existed and not self.overwrite:
            self.result.skipped_items.append(rel)
            log.debug("skip existing %s", rel)
            return

        self.ensure_dir(dst.parent)
        try:
            shutil.copy2(src, dst)
        except OSError as e:
            self.result.skipped_items.append(rel)
            log.warning("Could not import %s: %s", rel, e)
            return

        if existed:
            self.result.overwritten_items.append(rel)
        self.result.imported_files.append(rel)

    def copy_contents(self, src_dir: Path, dst_dir: Path) -> None:
        """Merge the contents of src_dir into dst_dir (not src_dir itself)."""
        self.ensure_dir(dst_dir)
        for entry in sorted(src_dir.iterdir(), key=lambda p: p.name):
            if entry.is_dir():
                self.copy_contents(entry, dst_dir / entry.name)
            else:
                self.copy_file(entry, dst_dir / entry.name)


def install_package_tree(extracted_dir: str, target_project_path: str, overwrite: bool) -> ImportResult:
    """Route each top-level package folder onto the target project's layout."""
    target_root = Path(target_project_path).resolve()
    layout = detect_project_structure(str(target_root))
    result = ImportResult(import_path=str(target_root), structure_type=layout.structure_type)
    copier = _Copier(target_root, overwrite, result)

    step("Target layout: %s", layout.structure_type.value)
    for top in sorted(Path(extracted_dir).iterdir(), key=lambda p: p.name):
        if not top.is_dir():
            if top.name.lower() != MANIFEST_NAME:
                log.debug("ignoring loose file at package root: %s", top.name)
            continue

        name = top.name.lower()
        if name == ASSETS_FOLDER.lower():
            copier.copy_contents(top, target_root / layout.assets_path)
        elif name == RESOURCES_FOLDER.lower():
            copier.copy_contents(top, target_root / layout.resources_path)
        else:
            # code: the package's own top folder name is dropped
            copier.copy_contents(top, _code_target(target_root, layout))

    return result


def import_package(settings: ImportSettings) -> Outcome:
    """
    Import pipeline: extract -> require manifest -> require hash -> verify
    hash -> detect target layout -> copy. Nothing touches the target until
    every integrity gate has passed. Returns Outcome[ImportResult].
    """
    section("Import")
    validation = validate_for_import(settings.package_path, settings.target_project_path)
    if validation.errors:
        return Outcome.failure(ErrorKind.SETTINGS_INVALID, "Invalid import settings", validation.errors)
    for w in validation.warnings:
        log.warning(w)

    try:
        with tempfile.TemporaryDirectory(prefix="stridepack-import-") as tmp:
            step("Extracting %s", settings.package_path)
            try:
                extract_package(settings.package_path, tmp)
            except zipfile.BadZipFile as e:
                return Outcome.failure(ErrorKind.IO_FAILURE, "Package archive cannot be read", [str(e)])

            step("Verifying package integrity")
            manifest, failure = open_verified_package(tmp)
            if failure is not None:
                log.error(failure.message)
                return failure

            result = install_package_tree(tmp, settings.target_project_path, settings.overwrite_files)
            result.manifest = manifest
    except OSError as e:
        log.error("Package import failed: %s", e)
        return Outcome.failure(ErrorKind.IO_FAILURE, "Package import failed", [str(e)])

    log.info(
        "Imported %d file(s) into %s (%d overwritten, %d skipped)",
        result.total_files_imported, result.import_path,
        len(result.overwritten_items), len(result.skipped_items),
    )
    return Outcome.success(result)
