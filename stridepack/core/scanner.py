from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

from stridepack.config import ASSET_TYPES, ID_SCAN_LINE_LIMIT, IGNORED_DIRS, RESOURCE_EXTENSIONS
from stridepack.core.paths import is_stride_asset, split_segments, to_forward
from stridepack.log import get_logger
from stridepack.models import ScannedAsset, ValidationIssue

log = get_logger(__name__)


def iter_project_files(root: str, ignore_dirs: Optional[Set[str]] = None) -> Iterator[str]:
    """
    Walk a project tree yielding absolute file paths. Directories whose name
    is in ignore_dirs (case-insensitive) are not descended into.
    """
    ignore = {d.lower() for d in (IGNORED_DIRS if ignore_dirs is None else ignore_dirs)}
    for dirpath, dirnames, filenames in os.walk(root):
        # Filter dirnames in-place so os.walk doesn't descend
        dirnames[:] = sorted(d for d in dirnames if d.lower() not in ignore)
        for fn in sorted(filenames):
            yield os.path.join(dirpath, fn)


def asset_type_for(extension: str) -> str:
    return ASSET_TYPES.get(extension.lower(), "Unknown")


def read_asset_id(path: str, line_limit: int = ID_SCAN_LINE_LIMIT) -> str:
    """
    Identifier from the "Id: " header line. Only the first few lines are
    read; raises OSError when the file cannot be opened.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for idx, line in enumerate(f):
            if idx >= line_limit:
                break
            stripped = line.strip()
            if stripped.startswith("Id: "):
                return stripped[4:].strip()
    return ""


class AssetIndex:
    """
    One-shot index over a project tree: structured assets by id and path,
    loose resource files by file name and relative path.
    """

    def __init__(self, project_root: str):
        self.project_root = os.path.normpath(os.path.abspath(project_root))
        self.assets: List[ScannedAsset] = []
        self.source_files: List[str] = []
        self.issues: List[ValidationIssue] = []

        self._by_id: Dict[str, ScannedAsset] = {}
        self._by_path: Dict[str, ScannedAsset] = {}
        self._sources_by_name: Dict[str, List[str]] = {}
        self._sources_by_path: Dict[str, str] = {}
        self._scanned = False

    # -------------------------
    # Scanning
    # -------------------------
    def scan(self) -> "AssetIndex":
        if not os.path.isdir(self.project_root):
            raise ValueError(f"Project root is not a directory: {self.project_root}")

        self.assets = []
        self.source_files = []
        self.issues = []
        self._by_id = {}
        self._by_path = {}
        self._sources_by_name = {}
        self._sources_by_path = {}

        for full in iter_project_files(self.project_root):
            ext = os.path.splitext(full)[1].lower()
            if is_stride_asset(full):
                self._add_asset(full, ext)
            elif ext in RESOURCE_EXTENSIONS:
                self._add_source_file(full)

        self._scanned = True
        log.debug(
            "Indexed %s: %d assets, %d resource files",
            self.project_root, len(self.assets), len(self.source_files),
        )
        return self

    def ensure_scanned(self) -> "AssetIndex":
        if not self._scanned:
            self.scan()
        return self

    def _relpath(self, full: str) -> str:
        return to_forward(os.path.relpath(full, self.project_root))

    def _add_asset(self, full: str, ext: str) -> None:
        rel_with_ext = self._relpath(full)
        rel = rel_with_ext[: -len(ext)] if ext else rel_with_ext

        try:
            guid = read_asset_id(full)
        except OSError as e:
            guid = ""
            self.issues.append(
                ValidationIssue("WARNING", "ASSET_UNREADABLE", f"Cannot read asset header: {e}", rel_with_ext)
            )

        asset = ScannedAsset(
            guid=guid,
            name=Path(full).stem,
            relative_path=rel,
            relative_path_with_extension=rel_with_ext,
            full_path=full,
            asset_type=asset_type_for(ext),
            extension=ext,
        )
        self.assets.append(asset)
        if guid:
            self._by_id[guid] = asset
        self._by_path[rel.lower()] = asset

    def _add_source_file(self, full: str) -> None:
        self.source_files.append(full)
        self._sources_by_name.setdefault(os.path.basename(full).lower(), []).append(full)
        self._sources_by_path[self._relpath(full).lower()] = full

    # -------------------------
    # Asset lookups
    # -------------------------
    @property
    def asset_count(self) -> int:
        return len(self.ensure_scanned().assets)

    @property
    def source_file_count(self) -> int:
        return len(self.ensure_scanned().source_files)

    def find_by_id(self, guid: str) -> Optional[ScannedAsset]:
        return self.ensure_scanned()._by_id.get(guid)

    def find_by_path(self, relative_path: str) -> Optional[ScannedAsset]:
        self.ensure_scanned()
        key = to_forward(relative_path).strip("/").lower()
        hit = self._by_path.get(key)
        if hit:
            return hit

        stem_key = os.path.splitext(key)[0]
        hit = self._by_path.get(stem_key)
        if hit:
            return hit

        for asset in self.assets:
            if asset.relative_path_with_extension.lower() == key:
                return asset
        return None

    def find_by_name(self, name: str) -> List[ScannedAsset]:
        wanted = name.lower()
        return [a for a in self.ensure_scanned().assets if a.name.lower() == wanted]

    def find_assets(self, pattern: str) -> List[ScannedAsset]:
        """Glob match ("*", "?") against asset names, case-insensitive."""
        pat = pattern.lower()
        return [a for a in self.ensure_scanned().assets if fnmatch.fnmatchcase(a.name.lower(), pat)]

    # -------------------------
    # Resource lookups
    # -------------------------
    def find_source_file(self, file_name: str) -> Optional[str]:
        hits = self.find_source_files_by_name(file_name)
        return hits[0] if hits else None

    def find_source_files_by_name(self, file_name: str) -> List[str]:
        return list(self.ensure_scanned()._sources_by_name.get(file_name.lower(), []))

    def find_source_file_by_path(self, relative_path: str) -> Optional[str]:
        key = to_forward(os.path.normpath(to_forward(relative_path))).strip("/").lower()
        return self.ensure_scanned()._sources_by_path.get(key)

    def find_source_file_robust(self, path: str, relative_to_dir: Optional[str] = None) -> Optional[str]:
        """
        Resolve a referenced path to a file on disk, in order:
          1. relative to relative_to_dir (when given)
          2. relative to the project root
          3. indexed relative path
          4. file name only; several candidates are ranked by how many path
             segments they share with the reference, first one wins on a tie
        """
        self.ensure_scanned()
        if not path or not path.strip():
            return None
        ref = to_forward(path.strip())

        if relative_to_dir:
            candidate = os.path.normpath(os.path.join(relative_to_dir, ref))
            if os.path.isfile(candidate):
                return candidate

        candidate = os.path.normpath(os.path.join(self.project_root, ref))
        if os.path.isfile(candidate):
            return candidate

        indexed = self.find_source_file_by_path(ref)
        if indexed:
            return indexed

        candidates = self._sources_by_name.get(os.path.basename(ref).lower(), [])
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        expected = split_segments(ref)
        return max(candidates, key=lambda c: self.path_similarity(expected, c))

    def path_similarity(self, expected_parts: List[str], candidate: str) -> int:
        actual = {p.lower() for p in split_segments(self._relpath(candidate))}
        return sum(1 for part in expected_parts if part.lower() in actual)
