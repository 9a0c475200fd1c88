from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ValidationIssue:
    level: str  # INFO | WARNING | ERROR
    code: str   # stable short identifier (e.g. SRC_MISSING)
    message: str
    relpath: Optional[str] = None  # relative to the project/package root when applicable


@dataclass(frozen=True)
class ScannedAsset:
    guid: str
    name: str
    relative_path: str                 # extension stripped, forward slashes
    relative_path_with_extension: str
    full_path: str
    asset_type: str
    extension: str                     # lower, with dot

    @property
    def reference(self) -> str:
        return f"{self.guid}:{self.relative_path}"


class ReferenceType(str, Enum):
    FILE = "FileReference"
    SOURCE = "SourceReference"
    EMBEDDED = "EmbeddedReference"


@dataclass(frozen=True)
class ResourceReference:
    asset_file: str
    resource_path: str  # raw, exactly as written in the asset
    line_number: int
    type: ReferenceType


@dataclass
class ResourceDependency:
    file_name: str
    actual_path: str
    references: List[ResourceReference] = field(default_factory=list)
    new_resource_path: Optional[str] = None  # package-internal, set by the staging planner

    @property
    def key(self) -> str:
        return self.actual_path.lower()


@dataclass(frozen=True)
class ExternalResourceIssue:
    asset_file: str
    resource_path: str
    resolved_path: str = ""


@dataclass(frozen=True)
class MissingResourceIssue:
    asset_file: str
    resource_path: str


@dataclass
class ValidationResult:
    external_resources: List[ExternalResourceIssue] = field(default_factory=list)
    missing_resources: List[MissingResourceIssue] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    resource_dependencies: List[ResourceDependency] = field(default_factory=list)
    _dep_by_key: Dict[str, ResourceDependency] = field(default_factory=dict, init=False, repr=False, compare=False)

    @property
    def is_valid(self) -> bool:
        return not self.external_resources and not self.missing_resources and not self.errors

    @property
    def has_critical_issues(self) -> bool:
        return not self.is_valid

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def total_issues(self) -> int:
        return len(self.external_resources) + len(self.missing_resources) + len(self.errors) + len(self.warnings)

    def add_missing(self, asset_file: str, resource_path: str) -> None:
        issue = MissingResourceIssue(asset_file, resource_path)
        if issue not in self.missing_resources:
            self.missing_resources.append(issue)

    def add_external(self, asset_file: str, resource_path: str, resolved_path: str = "") -> None:
        issue = ExternalResourceIssue(asset_file, resource_path, resolved_path)
        if issue not in self.external_resources:
            self.external_resources.append(issue)

    def add_dependency_reference(self, actual_path: str, reference: ResourceReference) -> ResourceDependency:
        """
        Attach a reference to the dependency for actual_path, creating it on
        first sight. One dependency per path, compared case-insensitively.
        """
        key = actual_path.lower()
        dep = self._dep_by_key.get(key)
        if dep is None:
            dep = ResourceDependency(file_name=os.path.basename(actual_path), actual_path=actual_path)
            self._dep_by_key[key] = dep
            self.resource_dependencies.append(dep)
        dep.references.append(reference)
        return dep

    def find_dependency(self, actual_path: str) -> Optional[ResourceDependency]:
        return self._dep_by_key.get(actual_path.lower())

    def report_lines(self) -> List[str]:
        lines: List[str] = []
        for issue in self.external_resources:
            lines.append(f"External resource in {os.path.basename(issue.asset_file)}: {issue.resource_path}")
        for issue in self.missing_resources:
            lines.append(f"Missing resource in {os.path.basename(issue.asset_file)}: {issue.resource_path}")
        lines.extend(self.errors)
        return lines

    def get_report(self) -> str:
        out: List[str] = []

        if self.external_resources:
            out.append("EXTERNAL RESOURCES DETECTED:")
            out.append("These files are outside your project directory and may not work on other systems:")
            for issue in self.external_resources:
                out.append(f"  • {os.path.basename(issue.asset_file)}: {issue.resource_path}")
            out.append("")
            out.append("SOLUTION: Copy these files into your project's Resources folder and update the paths.")
            out.append("")

        if self.missing_resources:
            out.append("MISSING RESOURCES:")
            for issue in self.missing_resources:
                out.append(f"  • {os.path.basename(issue.asset_file)}: {issue.resource_path}")
            out.append("")

        if self.errors:
            out.append("CRITICAL ERRORS:")
            for e in self.errors:
                out.append(f"  • {e}")
            out.append("")

        if self.warnings:
            out.append("WARNINGS:")
            for w in self.warnings:
                out.append(f"  • {w}")
            out.append("")

        return "\n".join(out)


@dataclass(frozen=True)
class StagePlanItem:
    src: str
    relpath: str   # package-relative destination, forward slashes
    dst: str
    category: str  # asset | code | platform | resource


@dataclass(frozen=True)
class NamespaceReference:
    namespace: str
    found_in_files: List[str]

    def to_json_dict(self) -> Dict[str, object]:
        return {"namespace": self.namespace, "foundInFiles": list(self.found_in_files)}
