"""
CloudFormation stack management operations.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import boto3
from botocore.exceptions import ClientError

from config import ToolConfig, get_config

from .errors import StackNotFoundError, UsageError
from .events import StackEvent, events_after, fetch_stack_events
from .tailer import StackEventTailer
from .template_diff import diff_templates

logger = logging.getLogger(__name__)

# Every status except DELETE_COMPLETE
ACTIVE_STACK_STATUSES = [
    "CREATE_IN_PROGRESS",
    "CREATE_FAILED",
    "CREATE_COMPLETE",
    "ROLLBACK_IN_PROGRESS",
    "ROLLBACK_FAILED",
    "ROLLBACK_COMPLETE",
    "DELETE_IN_PROGRESS",
    "DELETE_FAILED",
    "UPDATE_IN_PROGRESS",
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS",
    "UPDATE_COMPLETE",
    "UPDATE_FAILED",
    "UPDATE_ROLLBACK_IN_PROGRESS",
    "UPDATE_ROLLBACK_FAILED",
    "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS",
    "UPDATE_ROLLBACK_COMPLETE",
    "REVIEW_IN_PROGRESS",
    "IMPORT_IN_PROGRESS",
    "IMPORT_COMPLETE",
    "IMPORT_ROLLBACK_IN_PROGRESS",
    "IMPORT_ROLLBACK_FAILED",
    "IMPORT_ROLLBACK_COMPLETE",
]

NO_UPDATES_MESSAGE = "No updates are to be performed"


def parse_parameters(
    values: Iterable[str] = (), parameters_file: Optional[Union[str, Path]] = None
) -> List[Dict[str, str]]:
    """Build CloudFormation parameters from ``Key=Value`` strings and/or a file.

    The file uses the AWS CLI format, a JSON list of
    ``{"ParameterKey": ..., "ParameterValue": ...}``. Values given on the
    command line win over the file.
    """
    params: Dict[str, str] = {}

    if parameters_file:
        path = Path(parameters_file)
        if not path.exists():
            raise UsageError(f"Parameters file not found: {path}")
        try:
            entries = json.loads(path.read_text())
            for entry in entries:
                params[entry["ParameterKey"]] = str(entry["ParameterValue"])
        except (ValueError, KeyError, TypeError) as e:
            raise UsageError(f"Invalid parameters file {path}: {e}")

    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise UsageError(f"Parameters must look like Key=Value, got {value!r}")
        params[key] = val

    return [{"ParameterKey": k, "ParameterValue": v} for k, v in params.items()]


class StackManager:
    """Manage CloudFormation stack operations."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        config: Optional[ToolConfig] = None,
    ):
        """
        Initialize stack manager.

        Args:
            region: AWS region
            profile: AWS profile to use
            config: Tool configuration (loaded from disk if omitted)
        """
        self.config = config or get_config()
        self.region = region or self.config.aws_region
        self.profile = profile or self.config.aws_profile

        # Initialize AWS client
        session_args = {"region_name": self.region}
        if self.profile:
            session_args["profile_name"] = self.profile

        session = boto3.Session(**session_args)
        self.cloudformation = session.client("cloudformation")

    def get_stack_status(self, stack_name: str) -> Optional[str]:
        """Get current stack status."""
        stack = self._describe_stack(stack_name)
        if stack:
            return str(stack["StackStatus"])
        return None

    def get_stack_id(self, stack_name: str) -> Optional[str]:
        """Get the unique stack id, which keeps working after deletion."""
        stack = self._describe_stack(stack_name)
        if stack:
            return str(stack["StackId"])
        return None

    def _describe_stack(self, stack_name: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
            if response["Stacks"]:
                return dict(response["Stacks"][0])
        except ClientError as e:
            if "does not exist" in str(e):
                return None
            raise
        return None

    def _stack_arguments(
        self,
        stack_name: str,
        template_path: Union[str, Path],
        parameters: Optional[List[Dict[str, str]]] = None,
        capabilities: Optional[List[str]] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Arguments shared by create_stack and update_stack."""
        path = Path(template_path)
        if not path.is_file():
            raise UsageError(f"Template file not found: {path}")

        args: Dict[str, Any] = {
            "StackName": stack_name,
            "TemplateBody": path.read_text(),
            "Capabilities": list(
                self.config.capabilities if capabilities is None else capabilities
            ),
        }
        if parameters:
            args["Parameters"] = parameters

        all_tags = {**self.config.default_tags, **(tags or {})}
        if all_tags:
            args["Tags"] = [{"Key": k, "Value": v} for k, v in all_tags.items()]

        return args

    def create_stack(
        self,
        stack_name: str,
        template_path: Union[str, Path],
        parameters: Optional[List[Dict[str, str]]] = None,
        capabilities: Optional[List[str]] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a stack from a local template file.

        Returns:
            The new stack id
        """
        args = self._stack_arguments(
            stack_name, template_path, parameters, capabilities, tags
        )
        logger.info(f"Creating stack {stack_name} from {template_path}")
        response = self.cloudformation.create_stack(**args)
        return str(response["StackId"])

    def update_stack(
        self,
        stack_name: str,
        template_path: Union[str, Path],
        parameters: Optional[List[Dict[str, str]]] = None,
        capabilities: Optional[List[str]] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        """Update a stack from a local template file.

        Returns:
            The stack id, or None when there was nothing to update
        """
        args = self._stack_arguments(
            stack_name, template_path, parameters, capabilities, tags
        )
        logger.info(f"Updating stack {stack_name} from {template_path}")
        try:
            response = self.cloudformation.update_stack(**args)
        except ClientError as e:
            if NO_UPDATES_MESSAGE in str(e):
                logger.info(f"Stack {stack_name} is already up to date")
                return None
            if "does not exist" in str(e):
                raise StackNotFoundError(stack_name) from e
            raise
        return str(response["StackId"])

    def delete_stack(self, stack_name: str) -> Optional[str]:
        """Delete a CloudFormation stack.

        Returns:
            The id of the stack being deleted, or None if it did not exist
        """
        stack_id = self.get_stack_id(stack_name)
        if not stack_id:
            logger.info(f"Stack {stack_name} does not exist")
            return None

        logger.info(f"Deleting stack {stack_name}")
        self.cloudformation.delete_stack(StackName=stack_name)
        return stack_id

    def get_stack_outputs(self, stack_name: str) -> Dict[str, str]:
        """Get outputs from a CloudFormation stack."""
        stack = self._describe_stack(stack_name)
        if stack is None:
            raise StackNotFoundError(stack_name)

        outputs = {}
        for output in stack.get("Outputs", []):
            outputs[output["OutputKey"]] = output["OutputValue"]
        return outputs

    def list_stacks(self, prefix: Optional[str] = None) -> List[Dict[str, Any]]:
        """List CloudFormation stacks, optionally filtered by name prefix."""
        stacks = []

        paginator = self.cloudformation.get_paginator("list_stacks")

        # Don't include deleted stacks
        for page in paginator.paginate(StackStatusFilter=ACTIVE_STACK_STATUSES):
            for stack in page["StackSummaries"]:
                if prefix and not stack["StackName"].startswith(prefix):
                    continue

                stacks.append(
                    {
                        "name": stack["StackName"],
                        "status": stack["StackStatus"],
                        "created": str(stack["CreationTime"]),
                        "updated": str(
                            stack.get("LastUpdatedTime", stack["CreationTime"])
                        ),
                    }
                )

        return sorted(stacks, key=lambda s: s["name"])

    def get_template(self, stack_name: str) -> str:
        """Get the deployed template body as text."""
        try:
            response = self.cloudformation.get_template(StackName=stack_name)
        except ClientError as e:
            if "does not exist" in str(e):
                raise StackNotFoundError(stack_name) from e
            raise

        # boto3 parses JSON templates into a dict
        body = response["TemplateBody"]
        if isinstance(body, str):
            return body
        return json.dumps(body, indent=2)

    def diff_template(
        self, stack_name: str, template_path: Union[str, Path]
    ) -> List[str]:
        """Diff the deployed template of a stack against a local file."""
        path = Path(template_path)
        if not path.is_file():
            raise UsageError(f"Template file not found: {path}")

        deployed = self.get_template(stack_name)
        return diff_templates(
            deployed,
            path.read_text(),
            deployed_label=f"deployed/{stack_name}",
            local_label=f"local/{path.name}",
        )

    def get_events(self, stack_name: str) -> List[StackEvent]:
        """Get all events of a stack, oldest first."""
        return fetch_stack_events(self.cloudformation, stack_name)

    def last_event_id(self, stack_name: str) -> Optional[str]:
        """Id of the newest event of a stack, or None if it has no events."""
        try:
            response = self.cloudformation.describe_stack_events(StackName=stack_name)
        except ClientError as e:
            if "does not exist" in str(e):
                return None
            raise

        # Newest first
        stack_events = response.get("StackEvents", [])
        if not stack_events:
            return None
        return stack_events[0].get("EventId")

    def tail(
        self,
        stack_name: str,
        stack_id: Optional[str] = None,
        after_event_id: Optional[str] = None,
        **overrides: Any,
    ) -> StackEvent:
        """Print stack events until the current operation finishes.

        Args:
            stack_name: Name of the stack
            stack_id: Fetch events by id instead of name, needed once a
                deleted stack can no longer be looked up by name
            after_event_id: Ignore this event and everything before it, so
                the end of an earlier operation is not taken for this one
            **overrides: StackEventTailer arguments replacing config values

        Returns:
            The terminal stack event
        """
        options: Dict[str, Any] = {
            "poll_interval": self.config.poll_interval,
            "max_polls": self.config.max_polls,
            "timeout": self.config.tail_timeout,
            "max_fetch_errors": self.config.max_fetch_errors,
            "show_timestamps": self.config.show_timestamps,
        }
        options.update({k: v for k, v in overrides.items() if v is not None})

        target = stack_id or stack_name

        def fetch(_name: str) -> List[StackEvent]:
            return events_after(
                fetch_stack_events(self.cloudformation, target), after_event_id
            )

        tailer = StackEventTailer(fetch, **options)
        return tailer.tail(stack_name)
