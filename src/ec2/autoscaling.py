"""
Auto Scaling group operations.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from cloudformation.errors import StackNotFoundError, UsageError
from config import ToolConfig, get_config

logger = logging.getLogger(__name__)

ASG_RESOURCE_TYPE = "AWS::AutoScaling::AutoScalingGroup"


class AutoScalingManager:
    """Inspect and scale Auto Scaling groups."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        config: Optional[ToolConfig] = None,
    ):
        config = config or get_config()
        self.region = region or config.aws_region
        self.profile = profile or config.aws_profile

        session_args = {"region_name": self.region}
        if self.profile:
            session_args["profile_name"] = self.profile

        session = boto3.Session(**session_args)
        self.autoscaling = session.client("autoscaling")
        self.cloudformation = session.client("cloudformation")

    def get_stack_groups(self, stack_name: str) -> List[str]:
        """Physical names of the Auto Scaling groups a stack owns."""
        try:
            response = self.cloudformation.describe_stack_resources(
                StackName=stack_name
            )
        except ClientError as e:
            if "does not exist" in str(e):
                raise StackNotFoundError(stack_name) from e
            raise

        return [
            resource["PhysicalResourceId"]
            for resource in response["StackResources"]
            if resource["ResourceType"] == ASG_RESOURCE_TYPE
            and resource.get("PhysicalResourceId")
        ]

    def list_groups(self, stack_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """List Auto Scaling groups, optionally only those of one stack."""
        names: Optional[List[str]] = None
        if stack_name:
            names = self.get_stack_groups(stack_name)
            if not names:
                return []

        params: Dict[str, Any] = {}
        if names:
            params["AutoScalingGroupNames"] = names

        groups = []
        paginator = self.autoscaling.get_paginator("describe_auto_scaling_groups")
        for page in paginator.paginate(**params):
            for group in page["AutoScalingGroups"]:
                groups.append(
                    {
                        "name": group["AutoScalingGroupName"],
                        "desired": group["DesiredCapacity"],
                        "min": group["MinSize"],
                        "max": group["MaxSize"],
                        "instances": len(group.get("Instances", [])),
                    }
                )

        return sorted(groups, key=lambda g: g["name"])

    def get_group(self, group_name: str) -> Dict[str, Any]:
        """Describe a single Auto Scaling group."""
        response = self.autoscaling.describe_auto_scaling_groups(
            AutoScalingGroupNames=[group_name]
        )
        groups = response["AutoScalingGroups"]
        if not groups:
            raise UsageError(f"Auto Scaling group {group_name} does not exist")
        return dict(groups[0])

    def scale(self, group_name: str, desired: int) -> bool:
        """Set the desired capacity of a group.

        MinSize and MaxSize are widened when ``desired`` falls outside them.

        Returns:
            False if the group already had the desired capacity
        """
        if desired < 0:
            raise UsageError(f"Desired capacity must not be negative, got {desired}")

        group = self.get_group(group_name)
        current = group["DesiredCapacity"]
        if current == desired:
            logger.info(f"{group_name} already has {desired} instances")
            return False

        kwargs: Dict[str, Any] = {}
        if desired < group["MinSize"]:
            kwargs["MinSize"] = desired
        if desired > group["MaxSize"]:
            kwargs["MaxSize"] = desired

        logger.info(f"Scaling {group_name} from {current} to {desired} instances")
        self.autoscaling.update_auto_scaling_group(
            AutoScalingGroupName=group_name, DesiredCapacity=desired, **kwargs
        )
        return True

    def scale_stack(self, stack_name: str, desired: int) -> List[str]:
        """Scale every Auto Scaling group of a stack.

        Returns:
            Names of the groups that were changed
        """
        groups = self.get_stack_groups(stack_name)
        if not groups:
            raise UsageError(f"Stack {stack_name} has no Auto Scaling groups")

        return [name for name in groups if self.scale(name, desired)]
