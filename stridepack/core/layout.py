"""Project layout discovery: structure type, asset folders and code folders."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from stridepack.config import ASSETS_FOLDER, PLATFORM_SUFFIXES, RESOURCES_FOLDER
from stridepack.core.manifest import StructureType
from stridepack.core.paths import to_forward


@dataclass(frozen=True)
class ProjectLayout:
    structure_type: StructureType
    project_name: str
    assets_path: str     # relative to the project root, forward slashes
    resources_path: str
    code_path: str       # "" means the project root


@dataclass(frozen=True)
class AssetFolderInfo:
    name: str
    relative_path: str
    full_path: str
    location: str  # Root | Nested


@dataclass(frozen=True)
class CodeFolderInfo:
    name: str
    relative_path: str
    full_path: str
    project: str
    is_platform: bool = False


def detect_project_structure(project_path: str) -> ProjectLayout:
    """
    Fresh: assets live under <project>/<project name>/Assets.
    Template (and the fallback): assets at the project root.
    """
    root = Path(project_path)
    name = root.resolve().name

    if (root / name / ASSETS_FOLDER).is_dir():
        return ProjectLayout(
            structure_type=StructureType.FRESH,
            project_name=name,
            assets_path=f"{name}/{ASSETS_FOLDER}",
            resources_path=f"{name}/{RESOURCES_FOLDER}",
            code_path=name,
        )

    return ProjectLayout(
        structure_type=StructureType.TEMPLATE,
        project_name=name,
        assets_path=ASSETS_FOLDER,
        resources_path=RESOURCES_FOLDER,
        code_path="",
    )


def _subdirs(path: Path) -> List[Path]:
    try:
        return sorted((p for p in path.iterdir() if p.is_dir()), key=lambda p: p.name)
    except OSError:
        return []


def _has_entries(path: Path) -> bool:
    try:
        return any(path.iterdir())
    except OSError:
        return False


def find_game_folder(project_path: str) -> Optional[str]:
    for d in _subdirs(Path(project_path)):
        if d.name.endswith(".Game"):
            return str(d)
    return None


def scan_for_asset_folders(project_path: str) -> List[AssetFolderInfo]:
    root = Path(project_path).resolve()
    out: List[AssetFolderInfo] = []

    candidates = [(root / ASSETS_FOLDER, "Root"), (root / root.name / ASSETS_FOLDER, "Nested")]
    for assets_dir, location in candidates:
        if not assets_dir.is_dir():
            continue
        for d in _subdirs(assets_dir):
            if not _has_entries(d):
                continue
            out.append(
                AssetFolderInfo(
                    name=d.name,
                    relative_path=to_forward(os.path.relpath(d, root)),
                    full_path=str(d),
                    location=location,
                )
            )
    return out


def _has_cs_files(path: Path) -> bool:
    for _, _, filenames in os.walk(path):
        if any(fn.lower().endswith(".cs") for fn in filenames):
            return True
    return False


def _code_subfolders(root: Path, project_dir: Path, is_platform: bool) -> List[CodeFolderInfo]:
    out: List[CodeFolderInfo] = []
    for d in _subdirs(project_dir):
        if d.name.lower() in ("bin", "obj") or d.name in (ASSETS_FOLDER, RESOURCES_FOLDER):
            continue
        if not _has_cs_files(d):
            continue
        out.append(
            CodeFolderInfo(
                name=d.name,
                relative_path=to_forward(os.path.relpath(d, root)) + "/",
                full_path=str(d),
                project=project_dir.name,
                is_platform=is_platform,
            )
        )
    return out


def scan_for_code_folders(project_path: str) -> List[CodeFolderInfo]:
    """
    Code subfolders (holding .cs files) of the *.Game project, or of the
    <project name>/ folder when there is no .Game project, plus platform
    projects (*.Windows, *.Linux, ...).
    """
    root = Path(project_path).resolve()
    out: List[CodeFolderInfo] = []

    game = find_game_folder(str(root))
    if game:
        out.extend(_code_subfolders(root, Path(game), is_platform=False))
    elif (root / root.name).is_dir():
        out.extend(_code_subfolders(root, root / root.name, is_platform=False))

    for d in _subdirs(root):
        if d.name.endswith(PLATFORM_SUFFIXES):
            out.extend(_code_subfolders(root, d, is_platform=True))

    return out
