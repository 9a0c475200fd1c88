import io
import logging
import tempfile
import unittest

from stridepack.api import ExportSettings, ImportSettings, StridePackageManager
from stridepack.core.manifest import PackageManifest
from stridepack.errors import ErrorKind, Outcome, StridePackError
from stridepack.log import configure_logging, get_logger
from project_helper import make_library, make_template_target


class TestStridePackageManager(unittest.TestCase):
    def test_export_verify_import(self):
        manager = StridePackageManager()
        progress = []
        with tempfile.TemporaryDirectory() as td:
            lib = make_library(td)
            self.assertEqual([f.name for f in manager.scan_for_asset_folders(str(lib))], ["UI"])
            self.assertEqual([c.name for c in manager.scan_for_code_folders(str(lib))], ["Scripts"])
            self.assertTrue(manager.validate_for_export(str(lib), ["Assets/UI"]).is_valid)

            exported = manager.create_package(
                ExportSettings(
                    library_path=str(lib),
                    manifest=PackageManifest(name="Lib", version="2.0"),
                    selected_asset_folders=["Assets/UI"],
                ),
                progress_cb=lambda i, n, item: progress.append((i, n)),
            ).unwrap()
            self.assertEqual(progress[-1][0], progress[-1][1])
            self.assertTrue(manager.verify_package_integrity(exported.package_path))

            target = make_template_target(td)
            self.assertFalse(manager.validate_for_import(exported.package_path, str(target)).errors)
            imported = manager.import_package(
                ImportSettings(package_path=exported.package_path, target_project_path=str(target))
            ).unwrap()
            self.assertEqual(imported.total_files_imported, 3)

            analysis = manager.analyze_project(str(target))
            self.assertEqual(analysis.orphaned_resources, [])
            self.assertEqual(manager.cleanup_engine(str(target)).project_root, analysis.project_path)

    def test_failed_outcome_unwrap_raises(self):
        outcome = StridePackageManager().create_package(ExportSettings())
        with self.assertRaises(StridePackError) as ctx:
            outcome.unwrap()
        self.assertEqual(ctx.exception.kind, ErrorKind.SETTINGS_INVALID)
        self.assertEqual(ctx.exception.to_dict()["kind"], "settings_invalid")


class TestAmbient(unittest.TestCase):
    def test_outcome_message_lists_details(self):
        outcome = Outcome.failure(ErrorKind.IO_FAILURE, "Package export failed", ["disk full", "retry"])
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.message, "Package export failed\n  - disk full\n  - retry")
        self.assertFalse(ErrorKind.IO_FAILURE.is_package_corrupt)
        self.assertEqual(Outcome.success(5).unwrap(), 5)

    def test_configure_logging_is_idempotent(self):
        stream = io.StringIO()
        logger = configure_logging(1, stream=stream)
        configure_logging(2, stream=stream)
        flagged = [h for h in logger.handlers if getattr(h, "_stridepack_handler", False)]
        self.assertEqual(len(flagged), 1)
        self.assertEqual(logger.level, logging.DEBUG)

        get_logger("core.pack").debug("hello from child")
        self.assertIn("stridepack.core.pack: hello from child", stream.getvalue())

        configure_logging(0)
        self.assertEqual(logger.level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
