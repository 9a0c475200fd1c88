import json
import os
import tempfile
import unittest
import zipfile
from pathlib import Path

from stridepack.core.hashing import hash_package_tree
from stridepack.core.manifest import PackageManifest, StructureType
from stridepack.core.pack import build_package
from stridepack.core.settings import ExportSettings, ImportSettings
from stridepack.core.unpack import (
    INTEGRITY_FAILED_MESSAGE,
    MISSING_HASH_MESSAGE,
    MISSING_MANIFEST_MESSAGE,
    import_package,
    verify_package_integrity,
)
from stridepack.errors import ErrorKind
from project_helper import make_fresh_target, make_library, make_template_target, write


def _export(root):
    lib = make_library(root)
    outcome = build_package(
        ExportSettings(
            library_path=str(lib),
            manifest=PackageManifest(name="Lib", version="1.0.0"),
            selected_asset_folders=["Assets/UI"],
            selected_code_folders=["Lib.Game/Scripts"],
            export_registry_json=False,
        )
    )
    assert outcome.ok, outcome.message
    return outcome.value.package_path


def _rewrite_zip(src, dst, replace=None, drop=()):
    """Copy a package archive, swapping or dropping members."""
    replace = replace or {}
    with zipfile.ZipFile(src) as zin, zipfile.ZipFile(dst, "w") as zout:
        for name in zin.namelist():
            if name in drop:
                continue
            zout.writestr(name, replace.get(name, zin.read(name)))
    return dst


class TestImport(unittest.TestCase):
    def test_import_into_template_layout(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = _export(td)
            target = make_template_target(td)

            outcome = import_package(ImportSettings(package_path=pkg, target_project_path=str(target)))
            self.assertTrue(outcome.ok, outcome.message)
            result = outcome.value

            self.assertEqual(result.structure_type, StructureType.TEMPLATE)
            self.assertTrue((target / "Assets" / "UI" / "Button.sdtex").is_file())
            self.assertTrue((target / "Resources" / "Lib" / "UI" / "button.png").is_file())
            self.assertTrue((target / "Game.Game" / "Scripts" / "Spinner.cs").is_file())
            self.assertFalse((target / "manifest.json").exists())

            self.assertEqual(result.total_files_imported, 4)
            self.assertIn("Assets/UI/Button.sdtex", result.imported_files)
            self.assertIn("Resources/Lib", result.created_directories)
            self.assertFalse(result.has_conflicts)
            self.assertEqual(result.manifest.name, "Lib")

    def test_imported_files_match_library_bytes(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = _export(td)
            lib = Path(td) / "Lib"
            target = make_template_target(td)
            import_package(ImportSettings(package_path=pkg, target_project_path=str(target))).unwrap()

            same = {
                "Assets/UI/Panel.sdprefab": "Assets/UI/Panel.sdprefab",
                "Resources/UI/button.png": "Resources/Lib/UI/button.png",
                "Lib.Game/Scripts/Spinner.cs": "Game.Game/Scripts/Spinner.cs",
            }
            for src, dst in same.items():
                self.assertEqual((target / dst).read_bytes(), (lib / src).read_bytes(), dst)

            original = (lib / "Assets" / "UI" / "Button.sdtex").read_bytes()
            expected = original.replace(b"../../Resources/UI/button.png", b"../../Resources/Lib/UI/button.png")
            self.assertNotEqual(expected, original)
            self.assertEqual((target / "Assets" / "UI" / "Button.sdtex").read_bytes(), expected)

    def test_top_level_folders_match_any_case(self):
        with tempfile.TemporaryDirectory() as td:
            src = _export(td)
            with zipfile.ZipFile(src) as zf:
                members = {n: zf.read(n) for n in zf.namelist()}
            pkg = os.path.join(td, "lower.stridepackage")
            with zipfile.ZipFile(pkg, "w") as zout:
                for name, data in members.items():
                    if name.startswith("Assets/"):
                        name = "assets/" + name[len("Assets/"):]
                    elif name.startswith("Resources/"):
                        name = "RESOURCES/" + name[len("Resources/"):]
                    zout.writestr(name, data)
            target = make_template_target(td)

            # renaming folders changes the hash input, so re-stamp the manifest
            with tempfile.TemporaryDirectory() as ex:
                with zipfile.ZipFile(pkg) as zf:
                    zf.extractall(ex)
                manifest = json.loads(Path(ex, "manifest.json").read_text(encoding="utf-8"))
                manifest["packageHash"] = hash_package_tree(ex)
            pkg = _rewrite_zip(pkg, os.path.join(td, "lower2.stridepackage"), replace={"manifest.json": json.dumps(manifest)})

            import_package(ImportSettings(package_path=pkg, target_project_path=str(target))).unwrap()
            self.assertTrue((target / "Assets" / "UI" / "Button.sdtex").is_file())
            self.assertTrue((target / "Resources" / "Lib" / "UI" / "button.png").is_file())
            self.assertFalse((target / "Game.Game" / "assets").exists())
            self.assertFalse((target / "Game.Game" / "RESOURCES").exists())

    def test_import_into_fresh_layout(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = _export(td)
            target = make_fresh_target(td)

            outcome = import_package(ImportSettings(package_path=pkg, target_project_path=str(target)))
            self.assertTrue(outcome.ok, outcome.message)
            self.assertEqual(outcome.value.structure_type, StructureType.FRESH)
            self.assertTrue((target / "Fresh" / "Assets" / "UI" / "Panel.sdprefab").is_file())
            self.assertTrue((target / "Fresh" / "Resources" / "Lib" / "UI" / "button.png").is_file())
            self.assertTrue((target / "Fresh" / "Scripts" / "Spinner.cs").is_file())

    def test_existing_files_skip_or_overwrite(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = _export(td)
            target = make_template_target(td)
            import_package(ImportSettings(package_path=pkg, target_project_path=str(target))).unwrap()
            (target / "Assets" / "UI" / "Button.sdtex").write_text("local edit", encoding="utf-8")

            kept = import_package(
                ImportSettings(package_path=pkg, target_project_path=str(target), overwrite_files=False)
            ).unwrap()
            self.assertTrue(kept.has_conflicts)
            self.assertEqual(kept.total_files_imported, 0)
            self.assertEqual(len(kept.skipped_items), 4)
            self.assertEqual((target / "Assets" / "UI" / "Button.sdtex").read_text(encoding="utf-8"), "local edit")

            replaced = import_package(ImportSettings(package_path=pkg, target_project_path=str(target))).unwrap()
            self.assertEqual(len(replaced.overwritten_items), 4)
            self.assertEqual(replaced.total_files_imported, 4)
            self.assertNotEqual((target / "Assets" / "UI" / "Button.sdtex").read_text(encoding="utf-8"), "local edit")


class TestIntegrityGates(unittest.TestCase):
    def _assert_nothing_copied(self, target):
        self.assertFalse((target / "Assets" / "UI").exists())
        self.assertFalse((target / "Resources").exists())

    def test_missing_manifest(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = _rewrite_zip(_export(td), os.path.join(td, "nomanifest.stridepackage"), drop=("manifest.json",))
            target = make_template_target(td)
            outcome = import_package(ImportSettings(package_path=pkg, target_project_path=str(target)))
            self.assertEqual(outcome.error, ErrorKind.MISSING_MANIFEST)
            self.assertEqual(outcome.message, MISSING_MANIFEST_MESSAGE)
            self.assertTrue(outcome.error.is_package_corrupt)
            self._assert_nothing_copied(target)

    def test_missing_hash(self):
        with tempfile.TemporaryDirectory() as td:
            src = _export(td)
            with zipfile.ZipFile(src) as zf:
                manifest = json.loads(zf.read("manifest.json").decode("utf-8"))
            manifest["packageHash"] = ""
            pkg = _rewrite_zip(src, os.path.join(td, "nohash.stridepackage"), replace={"manifest.json": json.dumps(manifest)})
            target = make_template_target(td)
            outcome = import_package(ImportSettings(package_path=pkg, target_project_path=str(target)))
            self.assertEqual(outcome.error, ErrorKind.MISSING_HASH)
            self.assertEqual(outcome.message, MISSING_HASH_MESSAGE)
            self._assert_nothing_copied(target)

    def test_tampered_content(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = _rewrite_zip(
                _export(td),
                os.path.join(td, "tampered.stridepackage"),
                replace={"Resources/Lib/UI/button.png": b"evil"},
            )
            target = make_template_target(td)
            outcome = import_package(ImportSettings(package_path=pkg, target_project_path=str(target)))
            self.assertEqual(outcome.error, ErrorKind.INTEGRITY_FAILED)
            self.assertTrue(outcome.message.startswith(INTEGRITY_FAILED_MESSAGE))
            self._assert_nothing_copied(target)
            self.assertFalse(verify_package_integrity(pkg))

    def test_not_a_zip(self):
        with tempfile.TemporaryDirectory() as td:
            pkg = write(td, "junk.stridepackage", b"not a zip", binary=True)
            target = make_template_target(td)
            outcome = import_package(ImportSettings(package_path=str(pkg), target_project_path=str(target)))
            self.assertEqual(outcome.error, ErrorKind.IO_FAILURE)
            self.assertFalse(verify_package_integrity(str(pkg)))

    def test_invalid_settings(self):
        with tempfile.TemporaryDirectory() as td:
            outcome = import_package(ImportSettings(package_path=os.path.join(td, "x.stridepackage"), target_project_path=td))
            self.assertEqual(outcome.error, ErrorKind.SETTINGS_INVALID)

    def test_verify_valid_and_missing(self):
        with tempfile.TemporaryDirectory() as td:
            self.assertTrue(verify_package_integrity(_export(td)))
            with self.assertRaises(FileNotFoundError):
                verify_package_integrity(str(Path(td) / "absent.stridepackage"))


if __name__ == "__main__":
    unittest.main()
