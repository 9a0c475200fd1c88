from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from stridepack.config import ASSET_EXTENSION_PREFIX, PACKAGE_EXTENSION

# Union of Windows and POSIX reserved filename characters
_INVALID_FILENAME_CHARS = set('<>:"/\\|?*') | {chr(c) for c in range(32)}


def to_forward(path: str) -> str:
    return path.replace("\\", "/")


def normalize_path(path: str) -> str:
    """Absolute, normalized path with forward slashes."""
    return to_forward(os.path.normpath(os.path.abspath(path)))


def split_segments(path: str) -> List[str]:
    return [p for p in to_forward(path).split("/") if p]


def is_path_within_directory(path: str, directory: str) -> bool:
    """Case-insensitive containment check on whole path segments."""
    p = os.path.normpath(os.path.abspath(path)).lower()
    d = os.path.normpath(os.path.abspath(directory)).lower()
    if p == d:
        return True
    return p.startswith(d.rstrip(os.sep) + os.sep)


def relative_path_from_to(from_dir: str, to_path: str) -> str:
    try:
        return to_forward(os.path.relpath(to_path, from_dir))
    except ValueError:
        # different drives on Windows
        return to_forward(to_path)


def is_stride_asset(path: str) -> bool:
    return os.path.splitext(path)[1].lower().startswith(ASSET_EXTENSION_PREFIX)


def _safe_filename_part(value: str) -> str:
    return "".join("_" if c in _INVALID_FILENAME_CHARS else c for c in value)


def make_package_file_name(package_name: str, version: str) -> str:
    return f"{_safe_filename_part(package_name)}-{_safe_filename_part(version)}{PACKAGE_EXTENSION}"


def get_project_root_from_asset(asset_path: str) -> str:
    """Nearest ancestor folder holding a .sdpkg file, or "" when none does."""
    current = Path(asset_path).resolve().parent
    while True:
        try:
            if any(p.suffix.lower() == ".sdpkg" for p in current.iterdir() if p.is_file()):
                return str(current)
        except OSError:
            return ""
        if current.parent == current:
            return ""
        current = current.parent


@dataclass
class ProjectValidation:
    is_valid: bool = False
    has_solution_file: bool = False
    has_stride_packages: bool = False
    message: str = ""
    suggestions: List[str] = field(default_factory=list)


def validate_stride_project(directory: str) -> ProjectValidation:
    result = ProjectValidation()
    root = Path(directory) if directory else None
    if root is None or not root.is_dir():
        result.message = "Directory does not exist"
        return result

    try:
        result.has_solution_file = any(
            p.is_file() and p.suffix.lower() == ".sln" for p in root.iterdir()
        )
        result.has_stride_packages = any(
            fn.lower().endswith(".sdpkg")
            for _, _, filenames in os.walk(root)
            for fn in filenames
        )
    except OSError as e:
        result.message = f"Error validating project: {e}"
        return result

    if result.has_solution_file and result.has_stride_packages:
        result.is_valid = True
        result.message = "Valid Stride project (solution with Stride packages)"
    elif not result.has_solution_file and not result.has_stride_packages:
        result.message = "Not a Stride project root. Select the solution folder containing the .sln file"
        result.suggestions.append("Look for a folder containing a .sln file (Visual Studio solution)")
        result.suggestions.append("Stride packages inside the project are found automatically")
    elif not result.has_solution_file:
        result.message = "Found Stride packages but no solution. Select the folder containing the .sln file"
        result.suggestions.append("Look for the directory containing the .sln file")
    else:
        result.message = "Found a solution but no Stride packages. This may not be a Stride project"
        result.suggestions.append("Ensure this is a Stride game project, not just any solution")

    return result
