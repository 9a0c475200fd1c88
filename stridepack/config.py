from __future__ import annotations

from typing import Dict, Set, Tuple

APP_NAME = "Stride Package Packer"
APP_VERSION = "1.0.0"

PACKAGE_EXTENSION = ".stridepackage"
MANIFEST_NAME = "manifest.json"
REGISTRY_METADATA_NAME = "stridepackage.json"

HASH_ALGO_DEFAULT = "sha256"
HASH_CHUNK_SIZE = 1024 * 1024

# Structured asset files all share the ".sd" extension prefix
ASSET_EXTENSION_PREFIX = ".sd"

ASSET_TYPES: Dict[str, str] = {
    ".sdprefab": "Prefab",
    ".sdm3d": "Model",
    ".sdmat": "Material",
    ".sdtex": "Texture",
    ".sdscene": "Scene",
    ".sdsnd": "Sound",
    ".sdanim": "Animation",
    ".sdskel": "Skeleton",
    ".sdsheet": "SpriteSheet",
    ".sdsprite": "Sprite",
    ".sdfx": "Effect",
    ".sdpage": "UIPage",
    ".sduilib": "UILibrary",
    ".sdspritefnt": "SpriteFont",
    ".sdfnt": "SpriteFont",
    ".sdskybox": "Skybox",
    ".sdvideo": "Video",
    ".sdrendertex": "RenderTexture",
    ".sdgamesettings": "GameSettings",
    ".sdgfxcomp": "GraphicsCompositor",
    ".sdarch": "Archetype",
    ".sdphys": "ColliderShape",
    ".sdconvex": "ConvexHull",
    ".sdraw": "RawAsset",
    ".sdpkg": "Package",
}

RESOURCE_EXTENSIONS: Set[str] = {
    # images
    ".png", ".jpg", ".jpeg", ".tga", ".dds", ".bmp", ".gif", ".tiff", ".webp", ".hdr",
    # models
    ".fbx", ".obj", ".dae", ".gltf", ".glb", ".3ds", ".blend",
    # audio
    ".wav", ".ogg", ".mp3", ".flac", ".aiff",
    # video
    ".mp4", ".avi", ".mov", ".wmv", ".webm",
    # fonts
    ".ttf", ".otf",
    # data
    ".json", ".xml", ".csv", ".txt", ".yaml", ".yml",
}

# A quoted string ending in one of these counts as an embedded reference
EMBEDDED_REFERENCE_EXTENSIONS: Tuple[str, ...] = (
    ".png", ".jpg", ".jpeg", ".tga", ".dds",
    ".fbx", ".obj", ".dae",
    ".wav", ".ogg", ".mp3",
)

# Orphan detection only considers binary resources, never data/text files
CLEANUP_RESOURCE_EXTENSIONS: Set[str] = {
    ".png", ".jpg", ".jpeg", ".tga", ".dds", ".bmp", ".gif", ".hdr",
    ".fbx", ".obj", ".dae", ".gltf", ".glb", ".3ds",
    ".wav", ".ogg", ".mp3", ".flac",
    ".ttf", ".otf",
}

BUILD_OUTPUT_DIRS: Set[str] = {"bin", "obj"}
IGNORED_DIRS: Set[str] = BUILD_OUTPUT_DIRS | {".git", ".vs"}

# Conventional folders searched by filename when a reference resolves nowhere else
RESOURCE_SEARCH_FOLDERS: Tuple[str, ...] = ("Resources", "Assets/Resources", "Assets", "")

PLATFORM_SUFFIXES: Tuple[str, ...] = (".Windows", ".Mac", ".Linux", ".iOS", ".Android", ".UWP")

ID_SCAN_LINE_LIMIT = 20
MAX_CLEANUP_PASSES = 50

ASSETS_FOLDER = "Assets"
RESOURCES_FOLDER = "Resources"
