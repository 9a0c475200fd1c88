from __future__ import annotations

import os
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from stridepack.core.namespaces import strip_namespaces
from stridepack.core.paths import is_stride_asset, relative_path_from_to, to_forward
from stridepack.core.planner import map_asset_to_staged_path
from stridepack.core.references import read_asset_text, write_asset_text
from stridepack.log import get_logger
from stridepack.models import ReferenceType, ResourceDependency, ValidationIssue

log = get_logger(__name__)


@dataclass
class RewriteSummary:
    files_rewritten: int = 0
    replacements: int = 0
    issues: List[ValidationIssue] = field(default_factory=list)


def replace_reference(text: str, ref_type: ReferenceType, old: str, new: str) -> Tuple[str, int]:
    """
    Swap one raw reference for its new path. Each pattern includes the
    reference's own delimiters, so an already rewritten path never matches.
    """
    old_re = re.escape(old)

    if ref_type == ReferenceType.SOURCE:
        pattern = re.compile(r'(\bSource:[ \t]*(?:!file[ \t]+)?"?)' + old_re + r'(?=("?)[ \t]*\r?$)', re.MULTILINE)
        return pattern.subn(lambda m: m.group(1) + new, text)

    if ref_type == ReferenceType.FILE:
        quoted = re.compile(r'(!file[ \t]+")' + old_re + r'(?=")')
        text, n1 = quoted.subn(lambda m: m.group(1) + new, text)
        bare = re.compile(r"(!file[ \t]+)" + old_re + r"(?=[ \t]*\r?$)", re.MULTILINE)
        text, n2 = bare.subn(lambda m: m.group(1) + new, text)
        return text, n1 + n2

    # embedded references are quoted strings; swap the whole token
    count = text.count(f'"{old}"')
    return text.replace(f'"{old}"', f'"{new}"'), count


def rewrite_staged_references(
    library_path: str,
    staging_root: str,
    dependencies: Sequence[ResourceDependency],
    selected_asset_folders: Sequence[str],
) -> RewriteSummary:
    """
    Point every staged asset at the staged copy of each relocated resource,
    as a path relative to the asset's own staged folder.
    """
    summary = RewriteSummary()

    # staged asset path -> ordered {(type, old path): new staged resource path}
    per_asset: Dict[str, "OrderedDict[Tuple[ReferenceType, str], str]"] = OrderedDict()
    for dep in dependencies:
        if not dep.new_resource_path:
            continue
        target = os.path.normpath(os.path.join(staging_root, dep.new_resource_path))
        for ref in dep.references:
            staged = map_asset_to_staged_path(library_path, ref.asset_file, selected_asset_folders, staging_root)
            per_asset.setdefault(staged, OrderedDict()).setdefault((ref.type, ref.resource_path), target)

    for staged_asset, replacements in per_asset.items():
        rel_asset = to_forward(os.path.relpath(staged_asset, staging_root))
        if not os.path.isfile(staged_asset):
            summary.issues.append(
                ValidationIssue("WARNING", "STAGED_ASSET_MISSING", "Referencing asset is not part of the package", rel_asset)
            )
            continue

        try:
            text = read_asset_text(staged_asset)
        except OSError as e:
            summary.issues.append(ValidationIssue("ERROR", "ASSET_READ_FAILED", f"Cannot read staged asset ({e})", rel_asset))
            continue

        original = text
        asset_dir = os.path.dirname(staged_asset)
        for (ref_type, old), target in replacements.items():
            new = relative_path_from_to(asset_dir, target)
            if new == old:
                continue
            text, n = replace_reference(text, ref_type, old, new)
            summary.replacements += n
            if n:
                log.debug("%s: %s -> %s (%s)", rel_asset, old, new, ref_type.value)

        if text != original:
            write_asset_text(staged_asset, text)
            summary.files_rewritten += 1

    return summary


def strip_namespaces_in_tree(staging_root: str, namespaces: Iterable[str]) -> List[str]:
    """Remove excluded namespaces from every staged asset; returns the files changed."""
    namespaces = [ns for ns in namespaces if ns]
    changed: List[str] = []
    if not namespaces:
        return changed

    for dirpath, _, filenames in os.walk(staging_root):
        for fn in sorted(filenames):
            path = os.path.join(dirpath, fn)
            if not is_stride_asset(path):
                continue
            text = read_asset_text(path)
            stripped = strip_namespaces(text, namespaces)
            if stripped != text:
                write_asset_text(path, stripped)
                changed.append(to_forward(os.path.relpath(path, staging_root)))

    return changed
