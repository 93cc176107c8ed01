"""
Configuration management for the ECS Fleet Updater.
"""

from dataclasses import dataclass
from typing import Optional

from clients import MAX_PAGE_SIZE
from detector import BATCH_INSTANCE_COUNT, CHECK_COMMAND_TIMEOUT_SECS


@dataclass
class UpdaterConfig:
    """Configuration for update detection runs."""

    cluster: str
    region: str
    batch_size: int = BATCH_INSTANCE_COUNT
    check_timeout: int = CHECK_COMMAND_TIMEOUT_SECS
    poll_interval: float = 1.0
    wait_timeout: Optional[float] = None
    skip_empty_batches: bool = False
    log_level: str = "INFO"
    verbose: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> "UpdaterConfig":
        """
        Create configuration from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            UpdaterConfig instance
        """
        return cls(
            cluster=args.cluster,
            region=args.region,
            batch_size=args.batch_size,
            check_timeout=args.check_timeout,
            poll_interval=args.poll_interval,
            wait_timeout=args.wait_timeout,
            skip_empty_batches=args.skip_empty_batches,
            log_level=args.log_level,
            verbose=args.verbose,
            log_file=args.log_file,
        )

    def validate(self) -> None:
        """
        Check values that argparse cannot.

        Raises:
            ValueError: If a value is missing or out of range
        """
        if not self.cluster:
            raise ValueError("--cluster should not be empty")
        if not self.region:
            raise ValueError("--region should not be empty")
        if not 1 <= self.batch_size <= MAX_PAGE_SIZE:
            raise ValueError(f"--batch-size must be between 1 and {MAX_PAGE_SIZE}")
        if self.check_timeout <= 0:
            raise ValueError("--check-timeout must be positive")
        if self.poll_interval <= 0:
            raise ValueError("--poll-interval must be positive")
        if self.wait_timeout is not None and self.wait_timeout <= 0:
            raise ValueError("--wait-timeout must be positive")
