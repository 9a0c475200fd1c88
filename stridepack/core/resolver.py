from __future__ import annotations

import os
from typing import Optional

from stridepack.config import RESOURCE_SEARCH_FOLDERS
from stridepack.core.paths import is_path_within_directory, to_forward
from stridepack.core.scanner import AssetIndex
from stridepack.models import ResourceReference, ValidationResult


class ResourcePathResolver:
    """Turns a raw reference written in an asset into a file on disk."""

    def __init__(self, project_root: str, index: Optional[AssetIndex] = None):
        self.project_root = os.path.normpath(os.path.abspath(project_root))
        self.index = index or AssetIndex(self.project_root)

    def resolve(self, raw_path: str, asset_file: str) -> Optional[str]:
        if not raw_path or not raw_path.strip():
            return None
        ref = to_forward(raw_path.strip())
        asset_dir = os.path.dirname(os.path.abspath(asset_file))

        found = self.index.find_source_file_robust(ref, asset_dir)
        if found:
            return os.path.normpath(os.path.abspath(found))

        if os.path.isabs(ref) and os.path.isfile(ref):
            return os.path.normpath(ref)

        return self.search_conventional_folders(ref)

    def search_conventional_folders(self, raw_path: str) -> Optional[str]:
        name = os.path.basename(to_forward(raw_path))
        if not name:
            return None
        for folder in RESOURCE_SEARCH_FOLDERS:
            candidate = os.path.join(self.project_root, folder, name) if folder else os.path.join(self.project_root, name)
            if os.path.isfile(candidate):
                return os.path.normpath(candidate)
        return None

    def is_within_project(self, path: str) -> bool:
        return is_path_within_directory(path, self.project_root)

    def check(self, reference: ResourceReference, validation: ValidationResult) -> Optional[str]:
        """
        Resolve one reference and record the outcome: a missing issue when it
        resolves nowhere, an external issue when it lands outside the project.
        Returns the resolved path only when it is usable inside the project.
        """
        actual = self.resolve(reference.resource_path, reference.asset_file)
        if not actual:
            validation.add_missing(reference.asset_file, reference.resource_path)
            return None
        if not self.is_within_project(actual):
            validation.add_external(reference.asset_file, reference.resource_path, actual)
            return None
        return actual
