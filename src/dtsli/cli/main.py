"""
dtsli command line.

Usage:
    dtsli get-sli --project sockshop --stage staging --service carts \\
        --start 2024-01-01T10:00:00Z --end 2024-01-01T10:10:00Z \\
        --indicator throughput --indicator error_rate
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from dtsli.config.settings import get_settings
from dtsli.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dtsli", description="Dynatrace SLI retrieval")
    subparsers = parser.add_subparsers(dest="command")

    get_sli_parser = subparsers.add_parser("get-sli", help="Retrieve SLI values for a time window")
    get_sli_parser.add_argument("--project", required=True)
    get_sli_parser.add_argument("--stage", required=True)
    get_sli_parser.add_argument("--service", required=True)
    get_sli_parser.add_argument("--start", required=True, help="RFC3339 or Unix seconds")
    get_sli_parser.add_argument("--end", required=True, help="RFC3339 or Unix seconds")
    get_sli_parser.add_argument(
        "--indicator",
        dest="indicators",
        action="append",
        help="Indicator name; repeat or comma-separate",
    )
    get_sli_parser.add_argument("--label", dest="labels", action="append", help="key=value")
    get_sli_parser.add_argument(
        "--filter", dest="filters", action="append", help="Custom filter key=value"
    )
    get_sli_parser.add_argument("--deployment", default="")
    get_sli_parser.add_argument("--test-strategy", default="")
    get_sli_parser.add_argument("--context", dest="keptn_context", default="")
    get_sli_parser.add_argument("--resource-dir", help="Root of the resource tree")
    get_sli_parser.add_argument("--output", help="Write the finished event as JSON to this file")
    get_sli_parser.add_argument("--event-endpoint", help="POST the finished event to this URL")
    get_sli_parser.add_argument(
        "--no-dashboard",
        dest="skip_dashboard",
        action="store_true",
        help="Skip dashboard lookup and use sli.yaml / built-in queries",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level.upper(), settings.log_format)

    if args.command == "get-sli":
        from dtsli.cli.get_sli import get_sli_command

        sys.exit(
            get_sli_command(
                project=args.project,
                stage=args.stage,
                service=args.service,
                start=args.start,
                end=args.end,
                indicators=args.indicators,
                labels=args.labels,
                filters=args.filters,
                deployment=args.deployment,
                test_strategy=args.test_strategy,
                keptn_context=args.keptn_context,
                resource_dir=args.resource_dir,
                output=args.output,
                event_endpoint=args.event_endpoint,
                skip_dashboard=args.skip_dashboard,
            )
        )

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
