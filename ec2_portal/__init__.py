"""
EC2 Portal - Self-service power control for EC2 instances.

A client for a remote command API that lists compute instances across
accounts and regions and lets signed-in users start or stop them, with a
per-instance cooldown that absorbs the provider's state-transition latency.
"""

__version__ = "1.0.0"

from ec2_portal.core.exceptions import PortalError

__all__ = ["PortalError"]
