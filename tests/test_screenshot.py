import asyncio
import io
import os
import tempfile
import threading
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from PIL import Image

from screencompare.compare import ComparisonResult, CropConfig
from screencompare.config import Config
from screencompare.screenshot import ScreenshotHandler, ScreenshotPaths


class _FakeBrowser:
    """Browser session stub that writes a prepared image on every capture."""

    def __init__(self, capabilities, image: Image.Image, viewport=(1366, 768)):
        self.capabilities = capabilities
        self.session_id = "session-123"
        self.image = image
        self.viewport = viewport
        self.calls = []
        self.threads = []

    def viewport_size(self):
        return self.viewport

    def save_screenshot(self, path: str) -> None:
        self.calls.append(("save_screenshot", path))
        self.threads.append(threading.get_ident())
        self.image.save(path)

    def save_document_screenshot(self, path: str) -> None:
        self.calls.append(("save_document_screenshot", path))
        self.threads.append(threading.get_ident())
        self.image.save(path)


DESKTOP = {
    "os": "Windows",
    "os_version": "10",
    "browserName": "Chrome",
    "browser_version": "69.0",
}

MOBILE = {
    "device": "iPhone 7",
    "os_version": "10.3",
    "browserName": "iPhone",
    "deviceOrientation": "portrait",
}


def _config(td: str) -> Config:
    cfg = Config()
    cfg.threshold = 0.1
    cfg.include_aa = False
    cfg.errors_log = os.path.join(td, "errors.log")
    return cfg


class TestScreenshotPaths(unittest.TestCase):
    def test_desktop_paths_use_viewport_size(self) -> None:
        browser = _FakeBrowser(DESKTOP, Image.new("RGB", (1, 1)))
        paths = ScreenshotPaths.for_browser(browser, "/suite", "home page")

        folder = os.path.join("/suite", "__browserstack", "Windows_10", "Chrome_69_0", "1366x768")
        self.assertEqual(paths.baseline, os.path.join(folder, "home_page.png"))
        self.assertEqual(paths.new, os.path.join(folder, "home_page.new.png"))
        self.assertEqual(paths.diff, os.path.join(folder, "home_page.diff.png"))

    def test_mobile_paths_use_device_and_orientation(self) -> None:
        browser = _FakeBrowser(MOBILE, Image.new("RGB", (1, 1)))
        paths = ScreenshotPaths.for_browser(browser, "/suite", "menu")

        folder = os.path.join("/suite", "__browserstack", "iPhone_7_10_3", "iPhone_noVers", "portrait")
        self.assertEqual(paths.baseline, os.path.join(folder, "menu.png"))

    def test_only_first_dot_of_version_is_replaced(self) -> None:
        caps = dict(DESKTOP, browser_version="69.0.3497")
        browser = _FakeBrowser(caps, Image.new("RGB", (1, 1)))
        paths = ScreenshotPaths.for_browser(browser, "/suite", "x")
        self.assertIn("Chrome_69_0.3497", paths.baseline)


class TestScreenshotHandler(unittest.TestCase):
    def test_log_verbose_prefix(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            h = ScreenshotHandler(_config(td), verbose=True)
            out = io.StringIO()
            with redirect_stdout(out):
                h.log("hello")
            self.assertEqual(out.getvalue(), "[SCREENCOMPARE] hello\n")

    def test_check_equal_logs_mismatch(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = _config(td)
            h = ScreenshotHandler(cfg)
            browser = _FakeBrowser(DESKTOP, Image.new("RGB", (1, 1)))

            self.assertTrue(h.check_equal(False, False, "fine", browser))
            self.assertFalse(os.path.exists(cfg.errors_log))

            self.assertFalse(h.check_equal(True, False, "broken", browser))
            self.assertFalse(h.check_equal(True, False, "broken again", browser))
            with open(cfg.errors_log, encoding="utf-8") as f:
                self.assertEqual(
                    f.read(),
                    "Session ID: session-123 Message: broken\n"
                    "Session ID: session-123 Message: broken again\n",
                )

    def test_first_run_stores_baseline_and_passes(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = _config(td)
            h = ScreenshotHandler(cfg)
            browser = _FakeBrowser(DESKTOP, Image.new("RGB", (32, 24), (20, 40, 60)))

            with redirect_stdout(io.StringIO()):
                ok = asyncio.run(h.assert_browser_screenshot(browser, td, "home"))

            paths = ScreenshotPaths.for_browser(browser, td, "home")
            self.assertTrue(ok)
            self.assertEqual(browser.calls, [("save_document_screenshot", paths.baseline)])
            for path in (paths.baseline, paths.new, paths.diff):
                self.assertTrue(os.path.exists(path), path)
            self.assertFalse(os.path.exists(cfg.errors_log))

    def test_changed_screenshot_fails_and_is_logged(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = _config(td)
            h = ScreenshotHandler(cfg)
            browser = _FakeBrowser(DESKTOP, Image.new("RGB", (32, 24), (255, 255, 255)))

            with redirect_stdout(io.StringIO()):
                asyncio.run(h.assert_browser_screenshot(browser, td, "home"))
                changed = Image.new("RGB", (32, 24), (255, 255, 255))
                changed.paste((0, 0, 0), (0, 0, 8, 8))
                browser.image = changed
                ok = asyncio.run(h.assert_browser_screenshot(browser, td, "home"))

            paths = ScreenshotPaths.for_browser(browser, td, "home")
            self.assertFalse(ok)
            self.assertEqual(browser.calls[-1], ("save_document_screenshot", paths.new))
            with open(cfg.errors_log, encoding="utf-8") as f:
                logged = f.read()
            self.assertIn("Session ID: session-123", logged)
            self.assertIn("Error detected in image:", logged)
            self.assertIn("home.new.png", logged)

    def test_mobile_header_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            h = ScreenshotHandler(_config(td))
            browser = _FakeBrowser(MOBILE, Image.new("RGB", (40, 200), (255, 255, 255)))

            with redirect_stdout(io.StringIO()):
                asyncio.run(h.assert_browser_screenshot(browser, td, "menu"))
                status_bar_changed = Image.new("RGB", (40, 200), (255, 255, 255))
                status_bar_changed.paste((0, 0, 0), (0, 0, 40, 130))
                browser.image = status_bar_changed
                ok = asyncio.run(h.assert_browser_screenshot(browser, td, "menu"))

            self.assertTrue(ok)
            self.assertTrue(all(name == "save_screenshot" for name, _ in browser.calls))

    def test_capture_and_diff_save_run_off_the_event_loop(self) -> None:
        saved_from = []
        original_save = ComparisonResult.save

        def recording_save(result, path):
            saved_from.append(threading.get_ident())
            original_save(result, path)

        with tempfile.TemporaryDirectory() as td:
            h = ScreenshotHandler(_config(td))
            browser = _FakeBrowser(DESKTOP, Image.new("RGB", (32, 24), (20, 40, 60)))

            with patch.object(ComparisonResult, "save", recording_save):
                with redirect_stdout(io.StringIO()):
                    asyncio.run(h.assert_browser_screenshot(browser, td, "home"))
                    asyncio.run(h.assert_browser_screenshot(browser, td, "home"))

        loop_thread = threading.get_ident()
        self.assertEqual(len(browser.threads), 2)
        self.assertEqual(len(saved_from), 2)
        self.assertNotIn(loop_thread, browser.threads)
        self.assertNotIn(loop_thread, saved_from)

    def test_compare_files_exit_codes(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            a = os.path.join(td, "a.png")
            b = os.path.join(td, "b.png")
            out = os.path.join(td, "diff.png")
            Image.new("RGB", (16, 16), (255, 255, 255)).save(a)
            Image.new("RGB", (16, 16), (0, 0, 0)).save(b)
            h = ScreenshotHandler(_config(td))

            with redirect_stdout(io.StringIO()) as captured:
                self.assertEqual(asyncio.run(h.compare_files(a, a)), 0)
                self.assertEqual(asyncio.run(h.compare_files(a, b, diff_output=out)), 1)
                self.assertEqual(asyncio.run(h.compare_files(a, os.path.join(td, "nope.png"))), 2)

            self.assertTrue(os.path.exists(out))
            self.assertIn("X Images are different", captured.getvalue())
            self.assertIn("ERROR: Could not load image", captured.getvalue())

    def test_compare_files_uses_config_threshold_by_default(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            a = os.path.join(td, "a.png")
            cfg = _config(td)
            cfg.threshold = 0.4
            Image.new("RGB", (4, 4)).save(a)
            h = ScreenshotHandler(cfg)

            async def _fail():
                raise ValueError("stop")

            with patch("screencompare.screenshot.compare_screenshots", side_effect=lambda *_a, **_k: _fail()) as fake:
                with redirect_stdout(io.StringIO()):
                    rc = asyncio.run(h.compare_files(a, a, platform=CropConfig(header_height=1)))

            self.assertEqual(rc, 2)
            self.assertEqual(fake.call_args.kwargs["threshold"], 0.4)
            self.assertEqual(fake.call_args.kwargs["platform"], CropConfig(header_height=1))
