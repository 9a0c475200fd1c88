from __future__ import annotations

import hashlib
import os
from typing import List, Literal

from stridepack.config import HASH_CHUNK_SIZE, MANIFEST_NAME

Algo = Literal["sha256", "sha1", "md5"]


def hash_file(path: str, algo: Algo = "sha256", chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """
    Streaming file hash (safe for large files).
    Returns hex digest.
    """
    if algo not in ("sha256", "sha1", "md5"):
        raise ValueError(f"Unsupported hash algo: {algo}")

    h = hashlib.new(algo)
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def package_files_for_hash(root: str) -> List[str]:
    """
    Every file under root except manifests, sorted by full path string.
    Case-insensitive first, lowercase before uppercase on ties. This follows
    .NET's default string ordering so packages built by the C# exporter verify.
    """
    files: List[str] = []
    for dirpath, _, filenames in os.walk(root):
        for fn in filenames:
            if fn.lower() == MANIFEST_NAME:
                continue
            files.append(os.path.join(dirpath, fn))
    files.sort(key=lambda p: (p.casefold(), p.swapcase()))
    return files


def hash_package_tree(root: str, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """
    Package content hash: SHA-256 over the raw bytes of every non-manifest
    file, in path order, as one running digest. Uppercase hex.
    """
    h = hashlib.sha256()
    for path in package_files_for_hash(root):
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                h.update(chunk)
    return h.hexdigest().upper()


def hashes_match(expected: str, actual: str) -> bool:
    return bool(expected) and expected.strip().lower() == actual.strip().lower()
