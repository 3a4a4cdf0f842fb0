"""Command-line entry point."""

from __future__ import annotations

import argparse
import json
import platform
import sys
from dataclasses import asdict, dataclass
from typing import Optional, Sequence

VERSION = "dev"
BUILD_TIME = "unknown"
GIT_COMMIT = "unknown"

OUTPUT_FORMATS = ("default", "json", "short")


@dataclass
class VersionInfo:
    """Version and build details together with runtime information."""

    version: str
    build_time: str
    git_commit: str
    python_version: str
    os: str
    arch: str
    compiler: str


def version_info() -> VersionInfo:
    """Version details of this build and the running interpreter."""
    return VersionInfo(
        version=VERSION,
        build_time=BUILD_TIME,
        git_commit=GIT_COMMIT,
        python_version=platform.python_version(),
        os=sys.platform,
        arch=platform.machine(),
        compiler=platform.python_implementation(),
    )


def format_version(info: VersionInfo, output: str = "default") -> str:
    """Render version details; unknown formats use the default layout."""
    if output == "json":
        return json.dumps(asdict(info), indent=2) + "\n"
    if output == "short":
        return info.version + "\n"
    lines = [
        "claudecat - Claude Code Usage Monitor",
        f"Version:     {info.version}",
    ]
    if info.git_commit != "unknown":
        lines.append(f"Git Commit:  {info.git_commit}")
    if info.build_time != "unknown":
        lines.append(f"Build Time:  {info.build_time}")
    lines.extend(
        [
            f"Python:      {info.python_version}",
            f"OS/Arch:     {info.os}/{info.arch}",
            f"Compiler:    {info.compiler}",
        ]
    )
    return "\n".join(lines) + "\n"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claudecat",
        description="Claude Code Cat For Usage Monitor",
    )
    commands = parser.add_subparsers(dest="command")
    version = commands.add_parser(
        "version",
        help="Show version information",
        description="Display version information including build details and system information.",
    )
    version.add_argument(
        "-o",
        "--output",
        default="default",
        help="output format (default, json, short)",
    )
    version.add_argument("-s", "--short", action="store_true", help="show only version number")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line and return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "version":
        output = "short" if args.short else args.output
        sys.stdout.write(format_version(version_info(), output))
        return 0
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())