"""
Auto Scaling and EC2 helpers for instances owned by CloudFormation stacks.
"""

from .autoscaling import AutoScalingManager
from .instances import InstanceFinder

__all__ = ["AutoScalingManager", "InstanceFinder"]
