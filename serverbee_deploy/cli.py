"""Command-line arguments and the ``Port`` value type."""
from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Sequence

DEFAULT_PORT = 9527


@dataclass(frozen=True)
class Port:
    """TCP port the control plane listens on."""

    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"Port out of range: {self.port}")

    def get_value(self) -> int:
        return self.port


@dataclass
class Args:
    port: int | None = None
    auto_launch: bool | None = None
    github_download: bool | None = None


def _port_arg(value: str) -> int:
    try:
        return Port(int(value)).get_value()
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serverbee-deploy",
        description="ServerBee supervisor: installs and runs serverbee-web.",
    )
    parser.add_argument(
        "-p", "--port", type=_port_arg, default=None,
        help=f"port to listen on (default: stored value or {DEFAULT_PORT})",
    )
    parser.add_argument(
        "-a", "--auto-launch", action=argparse.BooleanOptionalAction,
        default=None, help="register (or unregister) launch at login",
    )
    parser.add_argument(
        "-g", "--github-download", action=argparse.BooleanOptionalAction,
        default=None,
        help="download releases from GitHub instead of the mirror",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Args:
    ns = build_parser().parse_args(argv)
    return Args(
        port=ns.port,
        auto_launch=ns.auto_launch,
        github_download=ns.github_download,
    )
