"""
Update detection for Bottlerocket hosts in an ECS cluster.

A detection pass walks the cluster inventory page by page, runs
`apiclient update check` on the eligible hosts of each page through the
command channel, and collects a HostUpdateRecord for every host that
reports an available update.
"""

import json
import logging
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

from errors import (
    CompletionError,
    DispatchError,
    InventoryError,
    MissingChosenUpdateError,
    ResultError,
    UpdateCheckParseError,
)
from interfaces import CommandChannel, InventoryProvider, WaitControl
from models import (
    ChosenUpdate,
    Host,
    HostUpdateRecord,
    InstanceState,
    InvocationOutput,
    UpdateInfo,
    UpdateStepStatus,
)

logger = logging.getLogger(__name__)

# Number of hosts checked by a single remote command
BATCH_INSTANCE_COUNT = 20
# Seconds after which the remote system gives up on the check command
CHECK_COMMAND_TIMEOUT_SECS = 120

CHECK_UPDATE_COMMAND = "apiclient update check"
ELIGIBLE_STATUSES = ("ACTIVE", "DRAINING")
UPDATE_AVAILABLE_STATE = "Available"


def eligible_instance_ids(hosts: List[Host]) -> List[str]:
    """Return ids of hosts that can run remote commands, in page order."""
    return [h.instance_id for h in hosts if h.status in ELIGIBLE_STATUSES]


def check_update_params() -> Dict[str, List[str]]:
    """Command parameters that run the update check on a host."""
    return {"commands": [CHECK_UPDATE_COMMAND]}


def _require_str(data: Dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise UpdateCheckParseError(
            f"Failed to parse check update command output json: "
            f"field '{key}' must be a string"
        )
    return value


def parse_update_info(raw: str) -> UpdateInfo:
    """
    Parse the JSON printed by `apiclient update check`.

    Args:
        raw: Standard output of the command

    Returns:
        UpdateInfo

    Raises:
        UpdateCheckParseError: If the output is not a valid update check document
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise UpdateCheckParseError(
            f"Failed to parse check update command output json: {e}"
        ) from e

    if not isinstance(data, dict):
        raise UpdateCheckParseError(
            "Failed to parse check update command output json: expected an object"
        )

    update_state = _require_str(data, "update_state")

    available = data.get("available_updates")
    if not isinstance(available, list) or not all(isinstance(v, str) for v in available):
        raise UpdateCheckParseError(
            "Failed to parse check update command output json: "
            "field 'available_updates' must be a list of strings"
        )

    chosen = data.get("chosen_update")
    chosen_update: Optional[ChosenUpdate] = None
    if chosen is not None:
        if not isinstance(chosen, dict):
            raise UpdateCheckParseError(
                "Failed to parse check update command output json: "
                "field 'chosen_update' must be an object"
            )
        chosen_update = ChosenUpdate(
            arch=_require_str(chosen, "arch"),
            version=_require_str(chosen, "version"),
            variant=_require_str(chosen, "variant"),
        )

    return UpdateInfo(
        update_state=update_state,
        available_updates=list(available),
        chosen_update=chosen_update,
    )


def build_host_update_record(
    instance_id: str, instance_status: str, update_info: UpdateInfo
) -> HostUpdateRecord:
    """
    Create the record for a host that has an update available.

    Raises:
        MissingChosenUpdateError: If the update info has no chosen update
    """
    if update_info.chosen_update is None:
        raise MissingChosenUpdateError(instance_id)

    return HostUpdateRecord(
        instance_id=instance_id,
        instance_status=instance_status,
        update_version=update_info.chosen_update.version,
        current_state=InstanceState.UPDATE_AVAILABLE,
        next_state=InstanceState.DRAIN,
        start_time=None,
        step_status=UpdateStepStatus.NOT_STARTED,
    )


def add_if_update_available(
    records: List[HostUpdateRecord], instance_id: str, output: InvocationOutput
) -> bool:
    """
    Append a record for the host if its check output reports an update.

    Returns:
        True if a record was added
    """
    # the check command itself has to succeed
    if output.response_code != 0:
        return False

    update_info = parse_update_info(output.standard_output)
    logger.debug(f"{instance_id}: {update_info}")
    if update_info.update_state != UPDATE_AVAILABLE_STATE:
        return False

    records.append(build_host_update_record(instance_id, output.status, update_info))
    return True


class UpdateDetector:
    """Finds the hosts of a cluster that have an OS update available."""

    def __init__(
        self,
        cluster: str,
        inventory: InventoryProvider,
        commands: CommandChannel,
        batch_size: int = BATCH_INSTANCE_COUNT,
        check_timeout: int = CHECK_COMMAND_TIMEOUT_SECS,
        wait_timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        skip_empty_batches: bool = False,
    ):
        """
        Initialize the detector.

        Args:
            cluster: Cluster short name or ARN
            inventory: Source of cluster hosts
            commands: Channel used to run the update check on hosts
            batch_size: Hosts per page, and so per dispatched command
            check_timeout: Timeout handed to the remote command (seconds)
            wait_timeout: Per-command limit on waiting for completion, None waits forever
            cancel_event: Set to abort an in-progress completion wait
            skip_empty_batches: Do not dispatch for pages without eligible hosts
        """
        self.cluster = cluster
        self.inventory = inventory
        self.commands = commands
        self.batch_size = batch_size
        self.check_timeout = check_timeout
        self.wait_timeout = wait_timeout
        self.cancel_event = cancel_event
        self.skip_empty_batches = skip_empty_batches

        self.stats = self._new_stats()
        self.run_start_time: Optional[float] = None
        self.run_end_time: Optional[float] = None

    @staticmethod
    def _new_stats() -> Dict[str, int]:
        return {
            "pages": 0,
            "total": 0,
            "eligible": 0,
            "ineligible": 0,
            "dispatches": 0,
            "checked": 0,
            "command_failed": 0,
            "fetch_failed": 0,
            "up_to_date": 0,
            "update_available": 0,
        }

    def run(self) -> List[HostUpdateRecord]:
        """
        Execute one detection pass over the cluster.

        Returns:
            Records of hosts with an update available
        """
        self.run_start_time = time.time()

        logger.info("=" * 70)
        logger.info("Bottlerocket ECS Update Detection")
        logger.info("=" * 70)
        logger.info(f"Cluster: {self.cluster}")
        logger.info(f"Batch size: {self.batch_size}")
        logger.info(f"Check command timeout: {self.check_timeout}s")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

        records = self.update_available()
        self.run_end_time = time.time()

        if not records:
            logger.info("Zero instances to update!")
        # TODO: hand records to the drain/update stage once it exists
        self._print_report(records)
        return records

    def update_available(self) -> List[HostUpdateRecord]:
        """
        Walk the cluster in batches and return hosts with updates available.

        Records collected from earlier pages are discarded if a later page
        fails fatally.

        Raises:
            InventoryError: If a page of hosts cannot be fetched
            DispatchError: If the check command cannot be sent
            CompletionError: If waiting for the check command fails
            UpdateCheckParseError: If a host prints malformed check output
            MissingChosenUpdateError: If an available update has no chosen update
        """
        self.stats = self._new_stats()
        records: List[HostUpdateRecord] = []
        cursor: Optional[str] = None

        while True:
            try:
                page = self.inventory.fetch_page(self.cluster, self.batch_size, cursor)
            except InventoryError as e:
                raise InventoryError(
                    f"Failed to describe cluster instances to check for updates: {e}"
                ) from e

            self.stats["pages"] += 1
            self.stats["total"] += len(page.hosts)
            logger.debug(f"Page {self.stats['pages']}: {page.hosts}")

            instance_ids = eligible_instance_ids(page.hosts)
            self.stats["eligible"] += len(instance_ids)
            self.stats["ineligible"] += len(page.hosts) - len(instance_ids)

            if instance_ids or not self.skip_empty_batches:
                self._check_batch(instance_ids, records)
            else:
                logger.debug("No eligible instances on this page, skipping check")

            # exit the loop once there are no more instances to check
            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        return records

    def _check_batch(self, instance_ids: List[str], records: List[HostUpdateRecord]) -> None:
        """Run the update check on one batch and add hosts that have updates."""
        logger.info(f"Checking updates on {len(instance_ids)} instance(s): {instance_ids}")
        try:
            handle = self.commands.dispatch(
                instance_ids, check_update_params(), self.check_timeout
            )
        except DispatchError as e:
            raise DispatchError(f"Failed to send check update command: {e}") from e
        self.stats["dispatches"] += 1
        command_id = handle.command_id
        logger.debug(f"Check update command id: {command_id}")

        try:
            self.commands.await_completion(
                command_id, WaitControl.with_timeout(self.wait_timeout, self.cancel_event)
            )
        except CompletionError as e:
            raise CompletionError(
                f"Failed to wait for check update command with command_id "
                f"{command_id} to complete: {e}"
            ) from e

        for instance_id in instance_ids:
            try:
                output = self.commands.fetch_result(command_id, instance_id)
            except ResultError as e:
                self.stats["fetch_failed"] += 1
                logger.error(
                    f"Failed to get check update command output for command id "
                    f"{command_id} and instance {instance_id}: {e}. Not fatal, "
                    f"instance will be checked in the next run"
                )
                continue

            self.stats["checked"] += 1
            if output.response_code != 0:
                self.stats["command_failed"] += 1
                logger.warning(
                    f"Update check failed on {instance_id} "
                    f"(status={output.status}, response_code={output.response_code})"
                )
                continue

            if add_if_update_available(records, instance_id, output):
                self.stats["update_available"] += 1
                logger.info(
                    f"[>] Update available: {instance_id} -> {records[-1].update_version}"
                )
            else:
                self.stats["up_to_date"] += 1
                logger.info(f"[-] {instance_id} is up to date")

    def _print_report(self, records: List[HostUpdateRecord]) -> None:
        """Log a summary of the detection pass."""
        duration = (self.run_end_time or time.time()) - (self.run_start_time or time.time())

        logger.info("")
        logger.info("=" * 70)
        logger.info("UPDATE DETECTION REPORT")
        logger.info("=" * 70)
        logger.info(f"Duration: {duration:.1f}s")
        for key, value in self.stats.items():
            logger.info(f"{key:<20} {value}")

        if records:
            logger.info("")
            logger.info("INSTANCES WITH UPDATES AVAILABLE")
            logger.info("-" * 70)
            logger.info(f"{'Instance':<25} {'Status':<15} {'Version'}")
            logger.info("-" * 70)
            for r in records:
                logger.info(f"{r.instance_id:<25} {r.instance_status:<15} {r.update_version}")

        logger.info("=" * 70)
