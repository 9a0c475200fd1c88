import os
import tempfile
import unittest
from pathlib import Path

from stridepack.core.manifest import PackageManifest
from stridepack.core.planner import (
    build_staging_plan,
    map_asset_to_staged_path,
    resolve_output_path,
    strip_resource_path,
    validate_export_settings,
)
from stridepack.core.settings import ExportSettings
from stridepack.models import ResourceDependency
from project_helper import make_library, write


def _settings(lib, **kw):
    return ExportSettings(
        library_path=str(lib),
        manifest=PackageManifest(name=kw.pop("name", "Lib"), version="1.0.0"),
        **kw,
    )


class TestResourcePathStripping(unittest.TestCase):
    def test_project_resources_prefix_is_removed(self):
        self.assertEqual(strip_resource_path("MyProject/Resources/Textures/wood.png", "Pkg"), "Textures/wood.png")

    def test_package_name_is_not_stacked(self):
        self.assertEqual(strip_resource_path("MyProject/Resources/Pkg/Textures/wood.png", "Pkg"), "Textures/wood.png")
        self.assertEqual(strip_resource_path("MyProject/Resources/pkg/Textures/wood.png", "Pkg"), "Textures/wood.png")

    def test_root_resources_folder(self):
        self.assertEqual(strip_resource_path("Resources/Textures/wood.png", "Pkg"), "Textures/wood.png")
        self.assertEqual(strip_resource_path("Resources/file.png", "Pkg"), "Resources/file.png")

    def test_paths_outside_resources_are_kept(self):
        self.assertEqual(strip_resource_path("Art\\Props\\crate.fbx", "Pkg"), "Art/Props/crate.fbx")


class TestAssetMapping(unittest.TestCase):
    def test_selected_folder_lands_under_assets_leaf(self):
        lib = os.path.join(os.sep, "lib")
        stage = os.path.join(os.sep, "stage")
        asset = os.path.join(lib, "MyGame", "Assets", "Characters", "Hero", "hero.sdm3d")
        self.assertEqual(
            map_asset_to_staged_path(lib, asset, ["MyGame/Assets/Characters"], stage),
            os.path.join(stage, "Assets", "Characters", "Hero", "hero.sdm3d"),
        )

    def test_unselected_asset_keeps_relative_path(self):
        lib = os.path.join(os.sep, "lib")
        stage = os.path.join(os.sep, "stage")
        asset = os.path.join(lib, "Assets", "Other", "x.sdtex")
        self.assertEqual(
            map_asset_to_staged_path(lib, asset, ["Assets/UI"], stage),
            os.path.join(stage, "Assets", "Other", "x.sdtex"),
        )


class TestSettingsValidation(unittest.TestCase):
    def test_empty_settings(self):
        errs = validate_export_settings(ExportSettings())
        self.assertEqual(
            errs,
            [
                "Package name is required",
                "Package version is required",
                "Library path does not exist: ",
                "Cannot generate valid output path for package",
            ],
        )

    def test_default_output_path_next_to_library(self):
        with tempfile.TemporaryDirectory() as td:
            lib = make_library(td)
            s = _settings(lib)
            self.assertEqual(validate_export_settings(s), [])
            self.assertEqual(resolve_output_path(s), os.path.join(td, "Lib-1.0.0.stridepackage"))

            s.output_path = "bare.stridepackage"
            self.assertIn("Cannot generate valid output path for package", validate_export_settings(s))


class TestStagingPlan(unittest.TestCase):
    def test_plan_categories_and_resource_paths(self):
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as stage:
            lib = make_library(td)
            dep = ResourceDependency("button.png", str(lib / "Resources" / "UI" / "button.png"))
            s = _settings(lib, selected_asset_folders=["Assets/UI"], selected_code_folders=["Lib.Game/Scripts"])

            plan, issues = build_staging_plan(s, [dep], stage)
            self.assertEqual(issues, [])
            by_rel = {p.relpath: p.category for p in plan}
            self.assertEqual(
                by_rel,
                {
                    "Assets/UI/Button.sdtex": "asset",
                    "Assets/UI/Panel.sdprefab": "asset",
                    "Lib/Scripts/Spinner.cs": "code",
                    "Resources/Lib/UI/button.png": "resource",
                },
            )
            self.assertEqual(dep.new_resource_path, "Resources/Lib/UI/button.png")

    def test_missing_folder_warns(self):
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as stage:
            lib = make_library(td)
            plan, issues = build_staging_plan(_settings(lib, selected_asset_folders=["Assets/Gone"]), [], stage)
            self.assertEqual(plan, [])
            self.assertEqual([i.code for i in issues], ["SRC_FOLDER_MISSING"])

    def test_exclude_and_include_filters(self):
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as stage:
            lib = make_library(td)
            s = _settings(lib, selected_asset_folders=["Assets/UI"], exclude_files=["assets/ui/panel.sdprefab"])
            plan, _ = build_staging_plan(s, [], stage)
            self.assertEqual([p.relpath for p in plan], ["Assets/UI/Button.sdtex"])

            s = _settings(
                lib,
                selected_asset_folders=["Assets/UI"],
                selected_code_folders=["Lib.Game/Scripts"],
                include_files=["Lib/Scripts"],
            )
            plan, _ = build_staging_plan(s, [], stage)
            self.assertEqual([p.relpath for p in plan], ["Lib/Scripts/Spinner.cs"])

    def test_destination_collision_keeps_first(self):
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as stage:
            lib = make_library(td)
            second = write(lib, "Resources/Lib/UI/button.png", b"other", binary=True)
            first = ResourceDependency("button.png", str(lib / "Resources" / "UI" / "button.png"))
            dup = ResourceDependency("button.png", str(second))

            plan, issues = build_staging_plan(_settings(lib), [first, dup], stage)
            self.assertEqual(len(plan), 1)
            self.assertEqual(plan[0].src, first.actual_path)
            self.assertTrue(any(i.code == "DEST_COLLISION" for i in issues))
            self.assertEqual(first.new_resource_path, "Resources/Lib/UI/button.png")
            self.assertIsNone(dup.new_resource_path)


if __name__ == "__main__":
    unittest.main()
