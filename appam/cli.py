"""Command-line entry point for applying APRIL patches to dpkg packages."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Optional, Sequence

from .april import AprilError, parse_april_packages, plan_actions_from_april_data
from .reconstruct import ReconstructError, apply_actions_for_reconstruct


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command."""
    parser = argparse.ArgumentParser(
        prog="appam",
        description="Command-line tool for applying APRIL patches to dpkg packages.",
    )
    parser.add_argument("package_path", help="path to the dpkg package")
    parser.add_argument(
        "-c",
        "--config",
        dest="april_config_path",
        required=True,
        help="path to the APRIL configuration file",
    )
    parser.add_argument(
        "-r",
        "--reconstruct",
        dest="reconstruction",
        action="store_true",
        help="reconstruction mode (repack the package instead of installing it, default: false)",
    )
    return parser


def _fail(message: str) -> int:
    print(f"appam: {message}", file=sys.stderr)
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; return the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        text = Path(args.april_config_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return _fail(f"Failed to open APRIL configuration file: {exc}")

    try:
        packages = parse_april_packages(text)
    except AprilError as exc:
        return _fail(f"Failed to parse APRIL configuration file: {exc}")
    if not packages:
        return _fail("APRIL configuration file contains no packages")

    # The first entry is used; selecting by version is left to the caller.
    try:
        actions = plan_actions_from_april_data(packages[0])
    except AprilError as exc:
        return _fail(f"Failed to plan actions from APRIL data: {exc}")

    if not args.reconstruction:
        return _fail("direct installation mode is unsupported; use --reconstruct")

    try:
        apply_actions_for_reconstruct(args.package_path, actions)
    except (ReconstructError, OSError, ValueError, subprocess.SubprocessError) as exc:
        return _fail(f"Failed to apply actions for reconstruct: {exc}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())