"""
Line-oriented extraction of resource references from structured asset text.

Three independent patterns, any of which may fire on the same line:
  !file <path>          -> FileReference   (quoted, or bare up to end of line)
  Source: <path>        -> SourceReference
  "<...>.png" (etc.)    -> EmbeddedReference
"""

from __future__ import annotations

import re
from typing import List

from stridepack.config import EMBEDDED_REFERENCE_EXTENSIONS
from stridepack.models import ReferenceType, ResourceReference

FILE_REF_RE = re.compile(r'!file[ \t]+(?:"([^"\r\n]+)"|([^\s"!][^\r\n!]*))')
SOURCE_REF_RE = re.compile(r"\bSource:[ \t]*([^\r\n]+)")
EMBEDDED_REF_RE = re.compile(
    r'"([^"\r\n]*(?:%s))"' % "|".join(re.escape(e) for e in EMBEDDED_REFERENCE_EXTENSIONS),
    re.IGNORECASE,
)


def line_number_at(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def clean_source_value(raw: str) -> str:
    """Strip a Source: value down to the bare path ("" when it carries none)."""
    value = raw.strip()
    if value.startswith("!file"):
        value = value[len("!file"):].strip()
    value = value.strip('"').strip()
    if value.lower() == "null":
        return ""
    return value


def scan_asset_text(text: str, asset_file: str) -> List[ResourceReference]:
    refs: List[ResourceReference] = []

    for m in FILE_REF_RE.finditer(text):
        path = (m.group(1) or m.group(2) or "").strip()
        if path:
            refs.append(ResourceReference(asset_file, path, line_number_at(text, m.start()), ReferenceType.FILE))

    for m in SOURCE_REF_RE.finditer(text):
        path = clean_source_value(m.group(1))
        if path:
            refs.append(ResourceReference(asset_file, path, line_number_at(text, m.start()), ReferenceType.SOURCE))

    for m in EMBEDDED_REF_RE.finditer(text):
        path = m.group(1).strip()
        if path:
            refs.append(ResourceReference(asset_file, path, line_number_at(text, m.start()), ReferenceType.EMBEDDED))

    return refs


def read_asset_text(path: str) -> str:
    # newline="" keeps CRLF intact; surrogateescape round-trips stray bytes
    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        return f.read()


def write_asset_text(path: str, text: str) -> None:
    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(text)


def scan_asset_file(path: str) -> List[ResourceReference]:
    return scan_asset_text(read_asset_text(path), path)


def raw_reference_paths(text: str) -> List[str]:
    """Distinct raw reference strings in encounter order."""
    seen = set()
    out: List[str] = []
    for ref in scan_asset_text(text, ""):
        if ref.resource_path not in seen:
            seen.add(ref.resource_path)
            out.append(ref.resource_path)
    return out
