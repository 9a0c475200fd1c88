from __future__ import annotations

import os
import re
from typing import Dict, Iterable, List, Set

from stridepack.core.references import read_asset_text
from stridepack.core.scanner import iter_project_files
from stridepack.log import get_logger
from stridepack.models import NamespaceReference

log = get_logger(__name__)

# !Namespace.Type,Assembly tags in prefab and scene files
TYPE_TAG_RE = re.compile(r"!([a-zA-Z][a-zA-Z0-9_.]+),([a-zA-Z][a-zA-Z0-9_.]+)")
EFFECT_NAMESPACE_RE = re.compile(r"namespace\s+([a-zA-Z][a-zA-Z0-9_.]+)")
PACKAGE_NAME_RE = re.compile(r"Name:\s*([a-zA-Z][a-zA-Z0-9_.]+)")

ENGINE_NAMESPACE_PREFIX = "Stride."
SCANNED_EXTENSIONS = (".sdprefab", ".sdscene", ".sdfx", ".sdpkg")


def _namespace_of_type(type_name: str) -> str:
    parts = type_name.split(".")
    if len(parts) > 1:
        return ".".join(parts[:-1])
    return type_name


def is_excluded(namespace: str, exclude: Iterable[str]) -> bool:
    for ex in exclude:
        if namespace == ex or namespace.startswith(ex + "."):
            return True
    return False


def namespaces_in_text(text: str, extension: str) -> Set[str]:
    ext = extension.lower()
    found: Set[str] = set()
    if ext in (".sdprefab", ".sdscene"):
        for m in TYPE_TAG_RE.finditer(text):
            found.add(_namespace_of_type(m.group(1)))
    elif ext == ".sdfx":
        found.update(m.group(1) for m in EFFECT_NAMESPACE_RE.finditer(text))
    elif ext == ".sdpkg":
        found.update(m.group(1) for m in PACKAGE_NAME_RE.finditer(text))
    return {ns for ns in found if not ns.startswith(ENGINE_NAMESPACE_PREFIX)}


def scan_file(path: str) -> Set[str]:
    """Namespaces declared in one file; empty for unknown types or unreadable files."""
    ext = os.path.splitext(path or "")[1].lower()
    if ext not in SCANNED_EXTENSIONS or not os.path.isfile(path):
        return set()
    try:
        text = read_asset_text(path)
    except OSError as e:
        log.warning("Skipping unreadable file during namespace scan: %s (%s)", path, e)
        return set()
    return namespaces_in_text(text, ext)


def scan_directory(root: str, exclude: Iterable[str] = ()) -> List[NamespaceReference]:
    exclude = [e for e in exclude if e]
    files_by_ns: Dict[str, List[str]] = {}
    if not root or not os.path.isdir(root):
        return []

    for path in iter_project_files(root):
        name = os.path.basename(path)
        for ns in scan_file(path):
            if is_excluded(ns, exclude):
                continue
            bucket = files_by_ns.setdefault(ns, [])
            if name not in bucket:
                bucket.append(name)

    return [NamespaceReference(ns, files) for ns, files in sorted(files_by_ns.items())]


def strip_namespaces(text: str, namespaces: Iterable[str]) -> str:
    """
    Textual removal of namespace mentions. Dotted forms go first so
    "namespace Ns.Sub" becomes "namespace Sub" rather than ".Sub".
    """
    for ns in namespaces:
        if not ns:
            continue
        text = text.replace(f",{ns}", "")
        text = text.replace(f"!{ns}.", "!")
        text = text.replace(f"!{ns},", "!")
        text = text.replace(f"namespace {ns}.", "namespace ")
        text = text.replace(f"namespace {ns}", "")
    return text
