"""High-level entry points for exporting, importing and cleaning Stride projects."""

from __future__ import annotations

from typing import Callable, List, Optional

from stridepack.core.cleanup import CleanupAnalysis, ProjectCleanupEngine
from stridepack.core.layout import AssetFolderInfo, CodeFolderInfo, scan_for_asset_folders, scan_for_code_folders
from stridepack.core.pack import ExportResult, build_package
from stridepack.core.settings import ExportSettings, ImportSettings
from stridepack.core.unpack import ImportResult, import_package, verify_package_integrity
from stridepack.core.validator import validate_for_export, validate_for_import
from stridepack.errors import Outcome
from stridepack.log import get_logger
from stridepack.models import StagePlanItem, ValidationResult

__all__ = [
    "StridePackageManager",
    "ExportSettings",
    "ImportSettings",
    "ExportResult",
    "ImportResult",
    "Outcome",
]


class StridePackageManager:
    """Stateless facade over the export, import and cleanup pipelines."""

    def __init__(self) -> None:
        self.log = get_logger("api")

    def validate_for_export(self, library_path: str, selected_asset_folders: List[str]) -> ValidationResult:
        return validate_for_export(library_path, selected_asset_folders)

    def validate_for_import(self, package_path: str, target_project_path: str) -> ValidationResult:
        return validate_for_import(package_path, target_project_path)

    def create_package(
        self,
        settings: ExportSettings,
        progress_cb: Optional[Callable[[int, int, StagePlanItem], None]] = None,
    ) -> Outcome:
        outcome = build_package(settings, progress_cb=progress_cb)
        if not outcome.ok:
            self.log.error("Export failed: %s", outcome.message)
        return outcome

    def import_package(self, settings: ImportSettings) -> Outcome:
        outcome = import_package(settings)
        if not outcome.ok:
            self.log.error("Import failed: %s", outcome.message)
        return outcome

    def verify_package_integrity(self, package_path: str) -> bool:
        return verify_package_integrity(package_path)

    def scan_for_asset_folders(self, project_path: str) -> List[AssetFolderInfo]:
        return scan_for_asset_folders(project_path)

    def scan_for_code_folders(self, project_path: str) -> List[CodeFolderInfo]:
        return scan_for_code_folders(project_path)

    def cleanup_engine(self, project_path: str) -> ProjectCleanupEngine:
        return ProjectCleanupEngine(project_path)

    def analyze_project(self, project_path: str) -> CleanupAnalysis:
        return ProjectCleanupEngine(project_path).analyze()
