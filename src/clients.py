"""
AWS bindings for the inventory provider (ECS) and command channel (SSM).
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from errors import CompletionError, DispatchError, InventoryError, ResultError
from interfaces import CommandChannel, InventoryProvider, WaitControl
from models import CommandHandle, Host, HostPage, InvocationOutput

logger = logging.getLogger(__name__)

# Container instances advertise their OS variant through this ECS attribute
BOTTLEROCKET_FILTER = "attribute:bottlerocket.variant exists"

# Invocation states that mean the command has not finished on a host
PENDING_STATUSES = {"Pending", "InProgress", "Delayed"}

# ECS caps maxResults for ListContainerInstances at 100
MAX_PAGE_SIZE = 100


def build_aws_clients(region: str, max_attempts: int = 5) -> Tuple[object, object]:
    """
    Create ECS and SSM clients for a region using the default credential chain.

    Args:
        region: AWS region name (e.g., 'us-west-2')
        max_attempts: Attempts per API call for botocore's standard retry mode

    Returns:
        Tuple of (ecs_client, ssm_client)
    """
    session = boto3.session.Session(region_name=region)
    config = Config(retries={"max_attempts": max_attempts, "mode": "standard"})
    return session.client("ecs", config=config), session.client("ssm", config=config)


def _require(data: Dict, field: str, api: str, error_cls):
    """Return `data[field]` or raise `error_cls` naming the missing field."""
    value = data.get(field)
    if value is None:
        raise error_cls(f"Missing field in `{api}` response: {field}")
    return value


class EcsInventoryProvider(InventoryProvider):
    """Lists Bottlerocket container instances of an ECS cluster."""

    def __init__(self, ecs_client, instance_filter: Optional[str] = BOTTLEROCKET_FILTER):
        """
        Initialize the provider.

        Args:
            ecs_client: boto3 ECS client
            instance_filter: ECS cluster query language filter, None to list everything
        """
        self.ecs = ecs_client
        self.instance_filter = instance_filter

    def fetch_page(
        self, cluster: str, batch_size: int, cursor: Optional[str] = None
    ) -> HostPage:
        params = {"cluster": cluster, "maxResults": min(batch_size, MAX_PAGE_SIZE)}
        if self.instance_filter:
            params["filter"] = self.instance_filter
        if cursor:
            params["nextToken"] = cursor

        try:
            resp = self.ecs.list_container_instances(**params)
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(
                f"Failed to list container instances in cluster {cluster}: {e}"
            ) from e

        arns = _require(
            resp, "containerInstanceArns", "list_container_instances", InventoryError
        )
        next_cursor = resp.get("nextToken") or None
        logger.debug(f"Listed {len(arns)} container instance(s) in {cluster}")

        if not arns:
            return HostPage(hosts=[], next_cursor=next_cursor)

        return HostPage(hosts=self._describe(cluster, arns), next_cursor=next_cursor)

    def _describe(self, cluster: str, arns: List[str]) -> List[Host]:
        """Resolve container instance ARNs to hosts."""
        try:
            resp = self.ecs.describe_container_instances(
                cluster=cluster, containerInstances=arns
            )
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(
                f"Failed to describe container instances in cluster {cluster}: {e}"
            ) from e

        failures = resp.get("failures") or []
        if failures:
            reasons = ", ".join(
                f"{f.get('arn', '?')}: {f.get('reason', 'unknown')}" for f in failures
            )
            raise InventoryError(f"Failed to describe container instances: {reasons}")

        api = "describe_container_instances"
        hosts: List[Host] = []
        for item in _require(resp, "containerInstances", api, InventoryError):
            hosts.append(
                Host(
                    instance_id=_require(item, "ec2InstanceId", api, InventoryError),
                    status=_require(item, "status", api, InventoryError),
                    container_instance_arn=item.get("containerInstanceArn"),
                )
            )
        return hosts


class SsmCommandChannel(CommandChannel):
    """Runs shell commands on hosts through SSM Run Command."""

    DOCUMENT_NAME = "AWS-RunShellScript"
    DOCUMENT_VERSION = "1"
    COMMENT = "Makes Bottlerocket API call via SSM"
    DEFAULT_TIMEOUT_SECS = 60

    def __init__(self, ssm_client, poll_interval: float = 1.0):
        """
        Initialize the channel.

        Args:
            ssm_client: boto3 SSM client
            poll_interval: Interval between completion polls (seconds)
        """
        self.ssm = ssm_client
        self.poll_interval = poll_interval

    def dispatch(
        self,
        host_ids: List[str],
        command_spec: Dict[str, List[str]],
        timeout: Optional[int] = None,
    ) -> CommandHandle:
        if timeout is None:
            timeout = self.DEFAULT_TIMEOUT_SECS
        try:
            resp = self.ssm.send_command(
                InstanceIds=list(host_ids),
                DocumentName=self.DOCUMENT_NAME,
                DocumentVersion=self.DOCUMENT_VERSION,
                Comment=self.COMMENT,
                Parameters=command_spec,
                TimeoutSeconds=timeout,
            )
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(f"Failed to send ssm command: {e}") from e

        command = _require(resp, "Command", "send_command", DispatchError)
        command_id = _require(command, "CommandId", "send_command", DispatchError)
        logger.debug(f"SSM command {command_id} sent to {len(host_ids)} instance(s)")
        return CommandHandle(command_id=command_id, status=command.get("Status", ""))

    def _list_invocations(self, command_id: str, details: bool = False) -> List[Dict]:
        """Return every invocation of a command, following pagination."""
        invocations: List[Dict] = []
        next_token: Optional[str] = None

        while True:
            params = {"CommandId": command_id, "Details": details}
            if next_token:
                params["NextToken"] = next_token
            resp = self.ssm.list_command_invocations(**params)
            invocations.extend(resp.get("CommandInvocations", []))

            next_token = resp.get("NextToken")
            if not next_token:
                break

        return invocations

    def _command_pending(self, command_id: str) -> bool:
        """Check whether any host invocation of the command is still running."""
        invocations = self._list_invocations(command_id)
        if invocations:
            return any(inv.get("Status") in PENDING_STATUSES for inv in invocations)

        # Invocations are registered asynchronously; fall back to the command status
        commands = self.ssm.list_commands(CommandId=command_id).get("Commands", [])
        return any(cmd.get("Status") in PENDING_STATUSES for cmd in commands)

    def await_completion(
        self, command_id: str, control: Optional[WaitControl] = None
    ) -> None:
        control = control or WaitControl()
        what = f"ssm command {command_id}"
        polls = 0

        while True:
            try:
                pending = self._command_pending(command_id)
            except (ClientError, BotoCoreError) as e:
                raise CompletionError(
                    f"Failed to get status of ssm command {command_id}: {e}"
                ) from e

            if not pending:
                logger.debug(f"SSM command {command_id} complete after {polls} poll(s)")
                return

            polls += 1
            control.check(what)
            time.sleep(self.poll_interval)

    def fetch_result(self, command_id: str, host_id: str) -> InvocationOutput:
        api = "get_command_invocation"
        try:
            resp = self.ssm.get_command_invocation(
                CommandId=command_id, InstanceId=host_id
            )
        except (ClientError, BotoCoreError) as e:
            raise ResultError(
                f"Failed to get output of ssm command {command_id} for {host_id}: {e}"
            ) from e

        return InvocationOutput(
            instance_id=host_id,
            standard_output=_require(resp, "StandardOutputContent", api, ResultError),
            status=_require(resp, "Status", api, ResultError),
            response_code=int(_require(resp, "ResponseCode", api, ResultError)),
        )

    def fetch_results(self, command_id: str) -> List[InvocationOutput]:
        api = "list_command_invocations"
        try:
            invocations = self._list_invocations(command_id, details=True)
        except (ClientError, BotoCoreError) as e:
            raise ResultError(
                f"Failed to list invocations of ssm command {command_id}: {e}"
            ) from e

        outputs: List[InvocationOutput] = []
        for inv in invocations:
            instance_id = _require(inv, "InstanceId", api, ResultError)
            plugins = inv.get("CommandPlugins") or []
            if len(plugins) != 1:
                raise ResultError(
                    f"Expected exactly one command plugin for {instance_id} "
                    f"in ssm command {command_id}, got {len(plugins)}"
                )
            plugin = plugins[0]
            outputs.append(
                InvocationOutput(
                    instance_id=instance_id,
                    standard_output=_require(plugin, "Output", api, ResultError),
                    status=_require(inv, "Status", api, ResultError),
                    response_code=int(_require(plugin, "ResponseCode", api, ResultError)),
                )
            )
        return outputs
