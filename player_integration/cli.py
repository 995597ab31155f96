"""Command-line entry point for ``python -m player_integration``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from player_integration.config import IntegrationConfig
from player_integration.errors import IntegrationError
from player_integration.orchestrator import IntegrationOrchestrator
from player_integration.utils import console, print_error, print_success


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="player-integration",
        description="Add a video player to an iOS, Android or web project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m player_integration --platform android "
            "--service-type generic-stream --endpoint https://cdn.example/stream.m3u8\n"
            "  python -m player_integration --platform ios --project-name HelloWorld "
            "--service-type ivs --endpoint https://example.live-video.net/playback.m3u8\n"
            "  python -m player_integration --config player.json --framework react\n"
        ),
    )
    parser.add_argument(
        "--platform",
        default=None,
        help="Project frontend: ios, android or javascript",
    )
    parser.add_argument(
        "--framework",
        default=None,
        help="Web framework (angular, vue, ember, react, none...)",
    )
    parser.add_argument(
        "--project-root",
        default=None,
        help="Root directory of the host project (default: current directory)",
    )
    parser.add_argument(
        "--project-name",
        default=None,
        help="Application name; required for iOS projects",
    )
    parser.add_argument(
        "--source-dir",
        default=None,
        help="Web source directory relative to the project root (default: src)",
    )
    parser.add_argument(
        "--service-type",
        default=None,
        help="low-latency-stream, generic-stream or a service alias (ivs, livestream...)",
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help="Playback URL of the video stream",
    )
    parser.add_argument(
        "--channel-latency",
        default=None,
        help="Channel latency mode of a low-latency stream (NORMAL or LOW)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON configuration file; command-line options override its values",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> IntegrationConfig:
    """Merge the optional JSON configuration file with command-line options."""
    data: dict[str, Any] = {}
    if args.config:
        data = IntegrationConfig.load(Path(args.config)).model_dump()

    overrides = {
        "frontend": args.platform,
        "framework": args.framework,
        "project_root": args.project_root,
        "project_name": args.project_name,
        "source_dir": args.source_dir,
    }
    data.update({key: value for key, value in overrides.items() if value is not None})

    service: dict[str, Any] = dict(data.get("service") or {})
    service_overrides = {
        "service_type": args.service_type,
        "output_endpoint": args.endpoint,
        "channel_latency": args.channel_latency,
    }
    service.update({key: value for key, value in service_overrides.items() if value is not None})
    data["service"] = service
    return IntegrationConfig.model_validate(data)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
    except (ValidationError, FileNotFoundError) as exc:
        console.print("[bold red]Error:[/bold red] Invalid configuration")
        console.print(str(exc), highlight=False)
        sys.exit(1)

    try:
        result = asyncio.run(IntegrationOrchestrator(config).run())
    except (IntegrationError, ValueError) as exc:
        print_error(f"Integration failed: {exc}")
        sys.exit(1)

    print_success(f"Video player integrated into the {result.target.label} project")


if __name__ == "__main__":
    main()
