"""Console entry point for the ECS Fleet Updater CLI."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List

from clients import EcsInventoryProvider, SsmCommandChannel, build_aws_clients
from config import UpdaterConfig
from detector import BATCH_INSTANCE_COUNT, CHECK_COMMAND_TIMEOUT_SECS, UpdateDetector
from errors import UpdaterError
from log_utils import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "Bottlerocket ECS Updater\n\n"
            "Watches Bottlerocket instances in your ECS cluster and reports the ones\n"
            "that have updates available.\n\n"
            "Cluster, region and log level can be given by environment variable;\n"
            "command-line arguments override them."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    cluster = os.environ.get("BOTTLEROCKET_ECS_CLUSTER")
    region = os.environ.get("AWS_REGION")

    parser.add_argument(
        "--cluster",
        default=cluster,
        required=not cluster,
        help=(
            "Short name or full ARN of the cluster whose Bottlerocket instances "
            "are managed (env: BOTTLEROCKET_ECS_CLUSTER)"
        ),
    )
    parser.add_argument(
        "--region",
        default=region,
        required=not region,
        help="AWS Region in which the cluster is running (env: AWS_REGION)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=BATCH_INSTANCE_COUNT,
        metavar="N",
        help=f"Instances checked per SSM command (default: {BATCH_INSTANCE_COUNT})",
    )
    parser.add_argument(
        "--check-timeout",
        type=int,
        default=CHECK_COMMAND_TIMEOUT_SECS,
        metavar="SECONDS",
        help=(
            "Timeout passed to SSM for the update check command "
            f"(default: {CHECK_COMMAND_TIMEOUT_SECS})"
        ),
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=1.0,
        metavar="SECONDS",
        help="Time between command status checks (default: 1.0)",
    )
    parser.add_argument(
        "--wait-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Give up waiting for a check command after this long (default: wait forever)",
    )
    parser.add_argument(
        "--skip-empty-batches",
        action="store_true",
        help="Do not send a check command for pages without ACTIVE/DRAINING instances",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["ERROR", "WARNING", "INFO", "DEBUG"],
        type=str.upper,
        help="How much detail to log (env: LOG_LEVEL, default: INFO)",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Shortcut for DEBUG logging")
    return parser


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(level=args.log_level, verbose=args.verbose, log_file=args.log_file)

    config = UpdaterConfig.from_args(args)
    try:
        config.validate()
        ecs_client, ssm_client = build_aws_clients(config.region)
        detector = UpdateDetector(
            cluster=config.cluster,
            inventory=EcsInventoryProvider(ecs_client),
            commands=SsmCommandChannel(ssm_client, poll_interval=config.poll_interval),
            batch_size=config.batch_size,
            check_timeout=config.check_timeout,
            wait_timeout=config.wait_timeout,
            skip_empty_batches=config.skip_empty_batches,
        )
        detector.run()
    except (UpdaterError, ValueError) as e:
        print(e, file=sys.stderr)
        return 1

    return 0
