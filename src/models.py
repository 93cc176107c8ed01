"""
Data models for the ECS Fleet Updater.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Host:
    """A container instance managed by the cluster."""

    instance_id: str  # ec2 instance id, e.g. i-0123456789abcdef0
    status: str  # ECS lifecycle status: ACTIVE, DRAINING, INACTIVE, ...
    container_instance_arn: Optional[str] = None


@dataclass(frozen=True)
class HostPage:
    """One page of hosts and the cursor for the next page (None on the last)."""

    hosts: List[Host]
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class CommandHandle:
    """A dispatched remote command."""

    command_id: str
    status: str = ""


@dataclass(frozen=True)
class InvocationOutput:
    """Per-host result of a remote command."""

    instance_id: str
    standard_output: str
    status: str  # "Success", "Failed", "TimedOut", ...
    response_code: int


@dataclass(frozen=True)
class ChosenUpdate:
    """Update selected by the host's update-check command."""

    arch: str
    version: str
    variant: str


@dataclass(frozen=True)
class UpdateInfo:
    """Parsed output of `apiclient update check`."""

    update_state: str
    available_updates: List[str] = field(default_factory=list)
    chosen_update: Optional[ChosenUpdate] = None


class InstanceState(Enum):
    """Where a host sits in the rolling-update lifecycle."""

    UPDATE_AVAILABLE = "update-available"
    DRAIN = "drain"
    UPDATE = "update"


class UpdateStepStatus(Enum):
    """Progress of the current lifecycle step for a host."""

    NOT_STARTED = "not-started"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class HostUpdateRecord:
    """Everything needed to update a host and track its progress."""

    instance_id: str
    instance_status: str
    update_version: str
    current_state: InstanceState = InstanceState.UPDATE_AVAILABLE
    next_state: InstanceState = InstanceState.DRAIN
    start_time: Optional[datetime] = None
    step_status: UpdateStepStatus = UpdateStepStatus.NOT_STARTED

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging/reporting."""
        return {
            "instance_id": self.instance_id,
            "instance_status": self.instance_status,
            "update_version": self.update_version,
            "current_state": self.current_state.value,
            "next_state": self.next_state.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "step_status": self.step_status.value,
        }
