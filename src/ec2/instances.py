"""
Find the EC2 instances of a stack and open SSH sessions to them.
"""

import logging
import subprocess
from typing import Any, Dict, List, Optional, Sequence

import boto3

from cloudformation.errors import UsageError
from config import ToolConfig, get_config

logger = logging.getLogger(__name__)

STACK_NAME_TAG = "aws:cloudformation:stack-name"


def _tags_to_dict(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    return {tag["Key"]: tag["Value"] for tag in tags or []}


class InstanceFinder:
    """Look up running instances launched by a stack."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        config: Optional[ToolConfig] = None,
    ):
        self.config = config or get_config()
        self.region = region or self.config.aws_region
        self.profile = profile or self.config.aws_profile

        session_args = {"region_name": self.region}
        if self.profile:
            session_args["profile_name"] = self.profile

        session = boto3.Session(**session_args)
        self.ec2 = session.client("ec2")

    def list_instances(self, stack_name: str) -> List[Dict[str, Any]]:
        """Running instances tagged with the stack name, sorted by Name tag."""
        instances = []

        paginator = self.ec2.get_paginator("describe_instances")
        for page in paginator.paginate(
            Filters=[
                {"Name": f"tag:{STACK_NAME_TAG}", "Values": [stack_name]},
                {"Name": "instance-state-name", "Values": ["running"]},
            ]
        ):
            for reservation in page["Reservations"]:
                for instance in reservation["Instances"]:
                    tags = _tags_to_dict(instance.get("Tags"))
                    instances.append(
                        {
                            "id": instance["InstanceId"],
                            "name": tags.get("Name", ""),
                            "state": instance["State"]["Name"],
                            "public_ip": instance.get("PublicIpAddress"),
                            "private_ip": instance.get("PrivateIpAddress"),
                        }
                    )

        return sorted(instances, key=lambda i: (i["name"], i["id"]))

    @staticmethod
    def pick_instance(
        instances: List[Dict[str, Any]], index: Optional[int] = None
    ) -> Dict[str, Any]:
        """Select an instance by 1-based index.

        The index may be omitted only when there is exactly one instance.
        """
        if not instances:
            raise UsageError("No running instances found")

        if index is None:
            if len(instances) > 1:
                choices = ", ".join(
                    f"{n}: {i['name'] or i['id']}" for n, i in enumerate(instances, 1)
                )
                raise UsageError(
                    f"{len(instances)} instances running, pick one with --node ({choices})"
                )
            return instances[0]

        if not 1 <= index <= len(instances):
            raise UsageError(
                f"Node must be between 1 and {len(instances)}, got {index}"
            )
        return instances[index - 1]

    @staticmethod
    def build_ssh_command(
        instance: Dict[str, Any],
        user: str,
        key_file: Optional[str] = None,
        use_private_ip: bool = False,
        extra_args: Sequence[str] = (),
    ) -> List[str]:
        """Build the ssh argv for an instance."""
        address = instance["private_ip"] if use_private_ip else instance["public_ip"]
        if not address:
            kind = "private" if use_private_ip else "public"
            raise UsageError(f"Instance {instance['id']} has no {kind} IP address")

        command = ["ssh", "-o", "ConnectionAttempts 3"]
        if key_file:
            command.extend(["-i", key_file])
        command.append(f"{user}@{address}")
        command.extend(extra_args)
        return command

    def ssh(
        self,
        stack_name: str,
        index: Optional[int] = None,
        user: Optional[str] = None,
        key_file: Optional[str] = None,
        use_private_ip: Optional[bool] = None,
        extra_args: Sequence[str] = (),
    ) -> int:
        """Open an SSH session to one of the stack's instances.

        Returns:
            Exit code of the ssh process
        """
        instance = self.pick_instance(self.list_instances(stack_name), index)
        command = self.build_ssh_command(
            instance,
            user or self.config.ssh_user,
            key_file or self.config.ssh_key_file,
            self.config.ssh_use_private_ip if use_private_ip is None else use_private_ip,
            extra_args,
        )
        logger.debug(f"Running: {' '.join(command)}")
        return subprocess.call(command)
