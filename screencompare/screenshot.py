"""
Screenshot assertion helpers for browser test suites.
"""

import asyncio
import os
import shutil
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Tuple

from .compare import CropConfig, compare_screenshots
from .config import Config
from .errors import ComparisonError
from .platforms import get_platform_config


class BrowserSession(Protocol):
    """The parts of a webdriver session used to capture screenshots."""

    capabilities: Mapping[str, Any]
    session_id: str

    def viewport_size(self) -> Tuple[int, int]:
        ...

    def save_screenshot(self, path: str) -> None:
        ...

    def save_document_screenshot(self, path: str) -> None:
        ...


def _underscore_version(version: Optional[str]) -> Optional[str]:
    if not version:
        return None
    return version.replace(".", "_", 1)


@dataclass(frozen=True)
class ScreenshotPaths:
    """Baseline, new and diff image paths for one named screenshot."""

    baseline: str
    new: str
    diff: str

    @classmethod
    def for_browser(cls, browser: BrowserSession, root_dir: str, file_name: str) -> "ScreenshotPaths":
        """Build paths under ``root_dir/__browserstack/<os>/<browser>/<viewport>/``.

        Mobile devices are keyed by device name and orientation, desktops by
        operating system and viewport size.
        """
        caps = browser.capabilities
        device = caps.get("device")

        os_name = device if device else caps.get("os", "unknown")
        os_version = _underscore_version(caps.get("os_version")) or "noVers"
        browser_name = caps.get("browserName", "unknown")
        browser_version = _underscore_version(caps.get("browser_version")) or "noVers"

        if device:
            viewport = caps.get("deviceOrientation", "portrait")
        else:
            width, height = browser.viewport_size()
            viewport = f"{width}x{height}"

        segments = [
            "__browserstack",
            f"{os_name}_{os_version}",
            f"{browser_name}_{browser_version}",
            viewport,
        ]
        folder = os.path.join(root_dir, *(s.replace(" ", "_") for s in segments))
        name = file_name.replace(" ", "_")

        return cls(
            baseline=os.path.join(folder, f"{name}.png"),
            new=os.path.join(folder, f"{name}.new.png"),
            diff=os.path.join(folder, f"{name}.diff.png"),
        )


class ScreenshotHandler:
    """Captures screenshots from a browser session and checks them against baselines."""

    def __init__(self, config: Config, verbose: bool = False):
        self.config = config
        self.verbose = verbose

    def log(self, message: str):
        """Print log message."""
        if self.verbose:
            print(f"[SCREENCOMPARE] {message}")
        else:
            print(message)

    def log_error_message(self, message: str) -> None:
        """Append a message to the errors log."""
        with open(self.config.errors_log, "a", encoding="utf-8") as f:
            f.write(message)

    def check_equal(self, expected: Any, actual: Any, error_message: str, browser: BrowserSession) -> bool:
        """Record a failure in the errors log when expected and actual differ.

        Returns:
            True if the values are equal
        """
        if actual == expected:
            return True

        self.log_error_message(f"Session ID: {browser.session_id} Message: {error_message}\n")
        return False

    def _platform_for(self, browser: BrowserSession) -> Optional[CropConfig]:
        caps = browser.capabilities
        if not caps.get("device"):
            return None
        return get_platform_config(caps["device"], caps.get("deviceOrientation", "portrait"))

    def _capture(self, browser: BrowserSession, paths: ScreenshotPaths, is_mobile: bool) -> None:
        """Write the new screenshot, storing it as the baseline too on the first run."""
        capture = browser.save_screenshot if is_mobile else browser.save_document_screenshot
        if not os.path.exists(paths.baseline):
            capture(paths.baseline)
            shutil.copyfile(paths.baseline, paths.new)
        else:
            capture(paths.new)

    async def assert_browser_screenshot(self, browser: BrowserSession, root_dir: str, file_name: str) -> bool:
        """Save a screenshot from the browser and check it against the stored baseline.

        The first run for a given name stores the baseline. Every run writes the
        diff image next to the baseline.

        Args:
            browser: Webdriver session to capture from
            root_dir: Directory of the test suite being executed
            file_name: Screenshot name without extension

        Returns:
            True if the new screenshot matches the baseline
        """
        is_mobile = bool(browser.capabilities.get("device"))
        paths = ScreenshotPaths.for_browser(browser, root_dir, file_name)
        platform = self._platform_for(browser)

        self.log(f"\t\t\t* {file_name}.png")
        os.makedirs(os.path.dirname(paths.baseline), exist_ok=True)

        await asyncio.to_thread(self._capture, browser, paths, is_mobile)

        result = await compare_screenshots(
            paths.baseline,
            paths.new,
            threshold=self.config.threshold,
            platform=platform,
            include_aa=self.config.include_aa,
        )
        await asyncio.to_thread(result.save, paths.diff)

        return self.check_equal(
            expected=result.are_different,
            actual=False,
            error_message=f"{self.config.error_prefix} {os.path.relpath(paths.new)}",
            browser=browser,
        )

    async def compare_files(
        self,
        img1_path: str,
        img2_path: str,
        threshold: Optional[float] = None,
        platform: Optional[CropConfig] = None,
        diff_output: Optional[str] = None,
    ) -> int:
        """Compare two screenshot files and report the outcome.

        Returns:
            0 if the images match, 1 if they differ, 2 if they could not be compared
        """
        if threshold is None:
            threshold = self.config.threshold

        self.log("Comparing images:")
        self.log(f"  Image 1: {img1_path}")
        self.log(f"  Image 2: {img2_path}")
        if platform is not None:
            self.log(f"  Header crop: {platform.header_height}px")
        self.log("")

        try:
            result = await compare_screenshots(
                img1_path,
                img2_path,
                threshold=threshold,
                platform=platform,
                include_aa=self.config.include_aa,
            )
        except (ComparisonError, ValueError) as e:
            self.log(f"ERROR: {e}")
            return 2

        self.log("Image content comparison:")
        self.log(f"  Threshold: {threshold}")
        self.log(f"  Different pixels: {result.diff_pixels} ({result.diff_ratio * 100:.2f}%)")
        self.log("")

        if diff_output:
            await asyncio.to_thread(result.save, diff_output)
            self.log(f"Diff image saved to: {diff_output}")

        if result.are_different:
            self.log("X Images are different (changes detected)")
            return 1

        self.log("✓ Images match")
        return 0
