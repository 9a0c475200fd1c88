from __future__ import annotations

import os
import re
import shutil
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from stridepack.config import (
    ASSETS_FOLDER,
    CLEANUP_RESOURCE_EXTENSIONS,
    IGNORED_DIRS,
    MAX_CLEANUP_PASSES,
    RESOURCES_FOLDER,
)
from stridepack.core.paths import is_path_within_directory, is_stride_asset, relative_path_from_to, split_segments, to_forward
from stridepack.core.references import raw_reference_paths, read_asset_text, write_asset_text
from stridepack.core.scanner import AssetIndex, iter_project_files
from stridepack.log import get_logger

log = get_logger(__name__)


def format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


@dataclass
class OrphanedResource:
    full_path: str
    relative_path: str
    file_name: str
    size_bytes: int
    extension: str
    is_selected: bool = True

    @property
    def size_display(self) -> str:
        return format_size(self.size_bytes)


@dataclass
class MisplacedResource:
    full_path: str
    current_path: str      # relative to the project root
    suggested_path: str    # relative to the project root
    referenced_by: str     # asset relative path
    asset_folder: str
    file_name: str
    is_selected: bool = True


@dataclass
class EmptyFolder:
    full_path: str
    relative_path: str
    is_selected: bool = True


@dataclass
class OrphanedFolder:
    full_path: str
    relative_path: str
    orphaned_files: List[OrphanedResource] = field(default_factory=list)
    all_files_orphaned: bool = False
    is_selected: bool = True

    @property
    def orphan_count(self) -> int:
        return len(self.orphaned_files)

    @property
    def total_size(self) -> int:
        return sum(o.size_bytes for o in self.orphaned_files)


@dataclass
class CleanupAnalysis:
    project_path: str = ""
    total_assets: int = 0
    total_resources: int = 0
    orphaned_resources: List[OrphanedResource] = field(default_factory=list)
    misplaced_resources: List[MisplacedResource] = field(default_factory=list)
    empty_folders: List[EmptyFolder] = field(default_factory=list)
    orphaned_folders: List[OrphanedFolder] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def total_orphaned_size(self) -> int:
        return sum(o.size_bytes for o in self.orphaned_resources)

    @property
    def has_issues(self) -> bool:
        return bool(self.orphaned_resources or self.misplaced_resources or self.empty_folders)


@dataclass
class CleanupResult:
    deleted_files: List[str] = field(default_factory=list)
    deleted_folders: List[str] = field(default_factory=list)
    moved_files: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def total_actions(self) -> int:
        return len(self.deleted_files) + len(self.deleted_folders) + len(self.moved_files)


def _is_under_resources(relative_path: str) -> bool:
    rel = "/" + to_forward(relative_path)
    return f"/{RESOURCES_FOLDER}/".lower() in rel.lower()


def _asset_folder_of(asset_relative_path: str) -> Optional[str]:
    """Segment right after "Assets" in the asset's path (never the file name itself)."""
    parts = split_segments(asset_relative_path)
    for i, part in enumerate(parts):
        if part.lower() == ASSETS_FOLDER.lower() and i + 2 < len(parts):
            return parts[i + 1]
    return None


def _resources_root_of(resource_relative_path: str) -> str:
    """Path up to and including the resource's Resources folder, or plain "Resources"."""
    parts = split_segments(resource_relative_path)
    for i, part in enumerate(parts[:-1]):
        if part.lower() == RESOURCES_FOLDER.lower():
            return "/".join(parts[: i + 1])
    return RESOURCES_FOLDER


class ProjectCleanupEngine:
    """
    Finds orphaned, misplaced and empty-folder clutter in a project and
    performs the matching repairs. Repairs are best-effort per item.
    """

    def __init__(self, project_root: str):
        self.project_root = os.path.normpath(os.path.abspath(project_root))

    def _rel(self, path: str) -> str:
        return to_forward(os.path.relpath(path, self.project_root))

    # -------------------------
    # Analysis
    # -------------------------
    def analyze(self) -> CleanupAnalysis:
        analysis = CleanupAnalysis(project_path=self.project_root)
        if not os.path.isdir(self.project_root):
            analysis.errors.append(f"Project path does not exist: {self.project_root}")
            return analysis

        index = AssetIndex(self.project_root).scan()
        analysis.total_assets = len(index.assets)
        analysis.total_resources = len(index.source_files)
        analysis.errors.extend(i.message for i in index.issues)

        resolved: Set[str] = set()
        seen_moves: Set[str] = set()

        for asset in index.assets:
            try:
                text = read_asset_text(asset.full_path)
            except OSError as e:
                analysis.errors.append(f"Error scanning {asset.relative_path_with_extension}: {e}")
                continue

            asset_dir = os.path.dirname(asset.full_path)
            for raw in raw_reference_paths(text):
                actual = index.find_source_file_robust(raw, asset_dir)
                if not actual:
                    continue
                actual = os.path.normpath(os.path.abspath(actual))
                resolved.add(actual.lower())
                if is_path_within_directory(actual, self.project_root):
                    misplaced = self._misplaced(actual, asset.relative_path_with_extension)
                    if misplaced and misplaced.suggested_path.lower() not in seen_moves:
                        seen_moves.add(misplaced.suggested_path.lower())
                        analysis.misplaced_resources.append(misplaced)

        analysis.orphaned_resources = self._find_orphans(index, resolved)
        analysis.empty_folders = self.find_empty_folders()
        analysis.orphaned_folders = self._group_orphans(analysis.orphaned_resources)

        log.info(
            "Cleanup analysis of %s: %d orphaned, %d misplaced, %d empty folders",
            self.project_root, len(analysis.orphaned_resources),
            len(analysis.misplaced_resources), len(analysis.empty_folders),
        )
        return analysis

    def _misplaced(self, resource_path: str, asset_rel: str) -> Optional[MisplacedResource]:
        """
        Suggests <resources root>/<asset folder>/<file name>. The resources root
        is the resource's own nearest Resources folder (e.g. "Proj/Resources" in
        a Fresh layout), not always the top-level "Resources".
        """
        folder = _asset_folder_of(asset_rel)
        if not folder:
            return None

        current = self._rel(resource_path)
        if f"/{folder}/".lower() in ("/" + current).lower():
            return None

        file_name = os.path.basename(resource_path)
        suggested = f"{_resources_root_of(current)}/{folder}/{file_name}"
        if suggested.lower() == current.lower():
            return None

        return MisplacedResource(
            full_path=resource_path,
            current_path=current,
            suggested_path=suggested,
            referenced_by=asset_rel,
            asset_folder=folder,
            file_name=file_name,
        )

    def _find_orphans(self, index: AssetIndex, resolved: Set[str]) -> List[OrphanedResource]:
        orphans: List[OrphanedResource] = []
        for full in index.source_files:
            ext = os.path.splitext(full)[1].lower()
            if ext not in CLEANUP_RESOURCE_EXTENSIONS:
                continue
            rel = self._rel(full)
            if not _is_under_resources(rel):
                continue
            if os.path.normpath(full).lower() in resolved:
                continue
            try:
                size = os.path.getsize(full)
            except OSError:
                size = 0
            orphans.append(
                OrphanedResource(
                    full_path=full,
                    relative_path=rel,
                    file_name=os.path.basename(full),
                    size_bytes=size,
                    extension=ext,
                )
            )
        return orphans

    def find_empty_folders(self) -> List[EmptyFolder]:
        """Directories with no entries at all, deepest first."""
        ignore = {d.lower() for d in IGNORED_DIRS}
        found: List[EmptyFolder] = []
        for dirpath, dirnames, filenames in os.walk(self.project_root, topdown=False):
            if dirpath == self.project_root:
                continue
            rel = self._rel(dirpath)
            if any(seg.lower() in ignore for seg in split_segments(rel)):
                continue
            try:
                empty = not os.listdir(dirpath)
            except OSError:
                continue
            if empty:
                found.append(EmptyFolder(full_path=dirpath, relative_path=rel))
        found.sort(key=lambda f: len(split_segments(f.relative_path)), reverse=True)
        return found

    def _group_orphans(self, orphans: List[OrphanedResource]) -> List[OrphanedFolder]:
        groups: "OrderedDict[str, List[OrphanedResource]]" = OrderedDict()
        for o in orphans:
            parent = os.path.dirname(o.relative_path)
            if parent:
                groups.setdefault(parent, []).append(o)

        orphan_paths = {o.full_path.lower() for o in orphans}
        folders: List[OrphanedFolder] = []
        for rel, items in groups.items():
            full = os.path.join(self.project_root, rel)
            try:
                files = [os.path.join(full, n) for n in os.listdir(full) if os.path.isfile(os.path.join(full, n))]
            except OSError:
                files = []
            all_orphaned = bool(files) and all(os.path.normpath(f).lower() in orphan_paths for f in files)
            folders.append(
                OrphanedFolder(full_path=full, relative_path=rel, orphaned_files=items, all_files_orphaned=all_orphaned)
            )

        folders.sort(key=lambda f: f.orphan_count, reverse=True)
        return folders

    # -------------------------
    # Repairs
    # -------------------------
    def delete_orphans(self, orphans: Iterable[OrphanedResource]) -> CleanupResult:
        result = CleanupResult()
        for o in orphans:
            try:
                if os.path.isfile(o.full_path):
                    os.remove(o.full_path)
                    result.deleted_files.append(o.relative_path)
                else:
                    result.skipped.append(o.relative_path)
            except OSError as e:
                result.errors.append(f"Failed to delete {o.relative_path}: {e}")
                log.warning("Failed to delete %s: %s", o.relative_path, e)
        return result

    def delete_folders(self, folders: Iterable[OrphanedFolder]) -> CleanupResult:
        result = CleanupResult()
        for f in folders:
            try:
                if os.path.isdir(f.full_path):
                    shutil.rmtree(f.full_path)
                    result.deleted_folders.append(f.relative_path)
                else:
                    result.skipped.append(f.relative_path)
            except OSError as e:
                result.errors.append(f"Failed to delete folder {f.relative_path}: {e}")
                log.warning("Failed to delete folder %s: %s", f.relative_path, e)
        return result

    def clean_empty_folders(self, max_passes: int = MAX_CLEANUP_PASSES) -> CleanupResult:
        """Repeat until a pass removes nothing; removing a folder can empty its parent."""
        result = CleanupResult()
        failed: Set[str] = set()
        for _ in range(max_passes):
            removed = 0
            for folder in self.find_empty_folders():
                if folder.full_path in failed:
                    continue
                try:
                    os.rmdir(folder.full_path)
                    result.deleted_folders.append(folder.relative_path)
                    removed += 1
                except OSError as e:
                    failed.add(folder.full_path)
                    result.errors.append(f"Failed to delete folder {folder.relative_path}: {e}")
            if removed == 0:
                break
        return result

    def _build_asset_content_index(self) -> Dict[str, str]:
        contents: Dict[str, str] = {}
        for path in iter_project_files(self.project_root):
            if not is_stride_asset(path):
                continue
            try:
                contents[path] = read_asset_text(path)
            except OSError as e:
                log.warning("Skipping unreadable asset %s: %s", path, e)
        return contents

    def reorganize_resources(self, items: Iterable[MisplacedResource]) -> CleanupResult:
        """
        Move each resource to its suggested path and repoint the assets that
        mention it. Asset contents are loaded once and written back at the end.
        """
        result = CleanupResult()
        contents = self._build_asset_content_index()
        modified: Set[str] = set()

        for item in items:
            target = os.path.join(self.project_root, item.suggested_path)
            if not os.path.isfile(item.full_path) or os.path.exists(target):
                result.skipped.append(item.current_path)
                continue

            try:
                os.makedirs(os.path.dirname(target), exist_ok=True)
                shutil.move(item.full_path, target)
            except OSError as e:
                result.errors.append(f"Failed to move {item.current_path}: {e}")
                continue
            result.moved_files.append(f"{item.current_path} -> {item.suggested_path}")

            needle = item.file_name.lower()
            for asset_path, text in contents.items():
                if needle not in text.lower():
                    continue
                new_rel = relative_path_from_to(os.path.dirname(asset_path), target)
                updated = update_asset_references(text, item.file_name, new_rel)
                if updated != text:
                    contents[asset_path] = updated
                    modified.add(asset_path)

        for asset_path in sorted(modified):
            try:
                write_asset_text(asset_path, contents[asset_path])
            except OSError as e:
                result.errors.append(f"Failed to update {self._rel(asset_path)}: {e}")

        return result


def update_asset_references(text: str, old_file_name: str, new_relative_path: str) -> str:
    """Rewrite every line that mentions old_file_name to point at new_relative_path."""
    name_re = re.escape(old_file_name)
    file_re = re.compile(r'(!file\s+")[^"]*' + name_re + r'(")', re.IGNORECASE)
    bare_file_re = re.compile(r'(!file[ \t]+)(?:[^"\r\n]*[/\\])?' + name_re + r'(?=[ \t]*$)', re.IGNORECASE)
    quoted_re = re.compile(r'"(?:[^"\r\n]*[/\\])?' + name_re + r'"', re.IGNORECASE)

    lines = text.split("\n")
    for i, line in enumerate(lines):
        if old_file_name.lower() not in line.lower():
            continue
        body = line[:-1] if line.endswith("\r") else line
        eol = "\r" if line.endswith("\r") else ""

        stripped = body.lstrip()
        if stripped.startswith("Source:"):
            indent = body[: len(body) - len(stripped)]
            prefix = "Source: !file " if "!file" in stripped else "Source: "
            body = f"{indent}{prefix}{new_relative_path}"
        else:
            updated = file_re.sub(lambda m: m.group(1) + new_relative_path + m.group(2), body)
            # unquoted form runs to end of line
            updated = bare_file_re.sub(lambda m: m.group(1) + new_relative_path, updated)
            if updated == body:
                updated = quoted_re.sub(lambda m: f'"{new_relative_path}"', body)
            body = updated
        lines[i] = body + eol

    return "\n".join(lines)
