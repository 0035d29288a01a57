"""
Main CLI interface for screencompare.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .compare import CropConfig
from .config import Config
from .platforms import MOBILE_HEADERS, get_platform_config
from .screenshot import ScreenshotHandler


def _threshold(value: str) -> float:
    threshold = float(value)
    if not 0 <= threshold <= 1:
        raise argparse.ArgumentTypeError(f"threshold must be between 0 and 1, got: {value}")
    return threshold


class ScreenCompareCLI:
    """Main CLI class for screenshot comparison."""

    def __init__(self):
        self.config = Config()
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser with subcommands."""
        parser = argparse.ArgumentParser(
            description="screencompare - visual regression checks for browser screenshots"
        )
        parser.add_argument(
            "-v", "--verbose",
            action="store_true",
            help="Enable verbose output"
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        # compare subcommand
        compare_parser = subparsers.add_parser("compare", help="Compare a baseline and a new screenshot")
        compare_parser.add_argument("image1", help="Baseline image path")
        compare_parser.add_argument("image2", help="New image path")
        compare_parser.add_argument(
            "--threshold",
            type=_threshold,
            help=f"Matching threshold from 0 to 1, smaller is more sensitive (default: {self.config.threshold})"
        )
        crop_group = compare_parser.add_mutually_exclusive_group()
        crop_group.add_argument("--header-height", type=int, help="Rows to crop from the top of both images")
        crop_group.add_argument("--device", choices=sorted(MOBILE_HEADERS), help="Crop the header of a known device")
        compare_parser.add_argument(
            "--orientation",
            choices=["portrait", "landscape"],
            default="portrait",
            help="Device orientation used with --device (default: portrait)"
        )
        compare_parser.add_argument(
            "--include-aa",
            action="store_true",
            help="Count anti-aliased pixels as differences"
        )
        compare_parser.add_argument("--diff-output", "-o", help="Write the difference image to this path")

        # config subcommand
        subparsers.add_parser("config", help="Print current configuration")

        return parser

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI with given arguments."""
        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        verbose = parsed_args.verbose

        if getattr(parsed_args, "include_aa", False):
            self.config.include_aa = True

        if parsed_args.command == "compare":
            handler = ScreenshotHandler(self.config, verbose)
            return asyncio.run(
                handler.compare_files(
                    parsed_args.image1,
                    parsed_args.image2,
                    threshold=parsed_args.threshold,
                    platform=self._platform(parsed_args),
                    diff_output=parsed_args.diff_output,
                )
            )

        elif parsed_args.command == "config":
            self.config.print_config()
            return 0

        return 1

    def _platform(self, parsed_args) -> Optional[CropConfig]:
        if parsed_args.header_height is not None:
            return CropConfig(header_height=parsed_args.header_height)
        if parsed_args.device:
            return get_platform_config(parsed_args.device, parsed_args.orientation)
        return None


def main():
    """Main entry point."""
    cli = ScreenCompareCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
