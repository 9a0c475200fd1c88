import json
import os
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest import mock

from stridepack.core.hashing import hash_package_tree
from stridepack.core.manifest import PackageManifest, StructureType
from stridepack.core.pack import build_package, execute_stage_plan, write_package_archive
from stridepack.core.settings import ExportSettings
from stridepack.errors import ErrorKind
from stridepack.models import StagePlanItem
from project_helper import make_library, texture_asset, write


def _export_settings(lib, **kw):
    return ExportSettings(
        library_path=str(lib),
        manifest=PackageManifest(name="Lib", version="1.0.0", author="Studio", stride_version="4.2"),
        selected_asset_folders=["Assets/UI"],
        selected_code_folders=["Lib.Game/Scripts"],
        **kw,
    )


class TestStageExecution(unittest.TestCase):
    def test_execute_stage_plan_copies_files(self):
        with tempfile.TemporaryDirectory() as tin, tempfile.TemporaryDirectory() as tout:
            src = write(tin, "Resources/UI/button.png", b"dummydata", binary=True)
            dst = Path(tout) / "Resources" / "Lib" / "UI" / "button.png"
            plan = [StagePlanItem(src=str(src), relpath="Resources/Lib/UI/button.png", dst=str(dst), category="resource")]

            summary, issues = execute_stage_plan(plan)
            self.assertEqual(summary.copied, 1)
            self.assertEqual(dst.read_bytes(), b"dummydata")
            self.assertEqual(issues, [])

    def test_missing_source_is_reported(self):
        with tempfile.TemporaryDirectory() as tout:
            plan = [StagePlanItem(src=os.path.join(tout, "gone.png"), relpath="gone.png", dst=os.path.join(tout, "x", "gone.png"), category="resource")]
            summary, issues = execute_stage_plan(plan)
            self.assertEqual(summary.failed, 1)
            self.assertEqual([i.code for i in issues], ["SRC_MISSING"])

    def test_hash_mismatch_detected(self):
        with tempfile.TemporaryDirectory() as tin, tempfile.TemporaryDirectory() as tout:
            src = write(tin, "A.bin", b"AAAAAA", binary=True)
            dst = Path(tout) / "Assets" / "UI" / "A.bin"
            plan = [StagePlanItem(src=str(src), relpath="Assets/UI/A.bin", dst=str(dst), category="asset")]

            # Copy correctly, then corrupt destination to force mismatch
            real_copy2 = __import__("shutil").copy2

            def corrupting_copy2(s, d, *args, **kwargs):
                r = real_copy2(s, d, *args, **kwargs)
                Path(d).write_bytes(b"BBBBBB")
                return r

            with mock.patch("shutil.copy2", side_effect=corrupting_copy2):
                summary, issues = execute_stage_plan(plan, verify_hash=True)

            self.assertTrue(any(i.code == "HASH_MISMATCH" for i in issues))
            self.assertEqual(summary.failed, 1)

    def test_archive_member_order_and_empty_dirs(self):
        with tempfile.TemporaryDirectory() as stage, tempfile.TemporaryDirectory() as out:
            write(stage, "b.txt", "b")
            write(stage, "a/z.txt", "z")
            (Path(stage) / "empty").mkdir()
            path = write_package_archive(stage, os.path.join(out, "p.stridepackage"))
            with zipfile.ZipFile(path) as zf:
                self.assertEqual(zf.namelist(), ["b.txt", "a/z.txt", "empty/"])
            self.assertFalse(os.path.exists(path + ".partial"))


class TestBuildPackage(unittest.TestCase):
    def test_export_produces_verified_package(self):
        with tempfile.TemporaryDirectory() as td:
            lib = make_library(td)
            outcome = build_package(_export_settings(lib))
            self.assertTrue(outcome.ok, outcome.message)
            result = outcome.value

            self.assertEqual(result.package_path, os.path.join(td, "Lib-1.0.0.stridepackage"))
            self.assertEqual(result.registry_metadata_path, os.path.join(td, "stridepackage.json"))
            self.assertEqual(result.manifest.structure_type, StructureType.TEMPLATE)
            self.assertEqual(result.manifest.resource_target_path, "Resources/Lib")
            self.assertEqual([ns.namespace for ns in result.manifest.namespaces], ["Lib.Game"])
            self.assertEqual(
                result.manifest.resource_path_mappings,
                {"Resources/UI/button.png": "Resources/Lib/UI/button.png"},
            )
            self.assertEqual(result.references_rewritten, 1)

            with tempfile.TemporaryDirectory() as ex:
                with zipfile.ZipFile(result.package_path) as zf:
                    names = set(zf.namelist())
                    zf.extractall(ex)

                self.assertTrue(
                    {
                        "manifest.json",
                        "Assets/UI/Button.sdtex",
                        "Assets/UI/Panel.sdprefab",
                        "Lib/Scripts/Spinner.cs",
                        "Resources/Lib/UI/button.png",
                    }
                    <= names
                )
                manifest = json.loads(Path(ex, "manifest.json").read_text(encoding="utf-8"))
                self.assertEqual(manifest["packageHash"], hash_package_tree(ex))

                button = Path(ex, "Assets", "UI", "Button.sdtex").read_text(encoding="utf-8")
                self.assertIn("Source: ../../Resources/Lib/UI/button.png\n", button)

            # the library itself is untouched
            self.assertIn("Source: ../../Resources/UI/button.png", (lib / "Assets" / "UI" / "Button.sdtex").read_text())

    def test_excluded_namespace_is_stripped(self):
        with tempfile.TemporaryDirectory() as td:
            lib = make_library(td)
            outcome = build_package(_export_settings(lib, exclude_namespaces=["Lib.Game"]))
            self.assertTrue(outcome.ok, outcome.message)
            self.assertEqual(outcome.value.manifest.namespaces, [])
            self.assertEqual(outcome.value.namespace_stripped_files, ["Assets/UI/Panel.sdprefab"])

            with zipfile.ZipFile(outcome.value.package_path) as zf:
                panel = zf.read("Assets/UI/Panel.sdprefab").decode("utf-8")
            self.assertIn("a1: !Spinner\n", panel)

    def test_invalid_settings(self):
        outcome = build_package(ExportSettings())
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error, ErrorKind.SETTINGS_INVALID)
        self.assertIn("Package name is required", outcome.details)

    def test_missing_resource_blocks_export(self):
        with tempfile.TemporaryDirectory() as td:
            lib = make_library(td)
            write(lib, "Assets/UI/Broken.sdtex", texture_asset("5", "../../Resources/UI/lost.png"))
            outcome = build_package(_export_settings(lib))
            self.assertEqual(outcome.error, ErrorKind.RESOURCE_VALIDATION_FAILED)
            self.assertIn("Missing resource in Broken.sdtex: ../../Resources/UI/lost.png", outcome.details)
            self.assertFalse(os.path.exists(os.path.join(td, "Lib-1.0.0.stridepackage")))

    def test_external_resource_blocks_export(self):
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as outside:
            lib = make_library(td)
            far = write(outside, "far.png", b"x", binary=True)
            write(lib, "Assets/UI/Far.sdtex", texture_asset("6", str(far)))
            outcome = build_package(_export_settings(lib))
            self.assertEqual(outcome.error, ErrorKind.RESOURCE_VALIDATION_FAILED)
            self.assertTrue(any(d.startswith("External resource in Far.sdtex") for d in outcome.details))


if __name__ == "__main__":
    unittest.main()
