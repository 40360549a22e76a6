"""
gridnode - hub registration for browser-automation grid nodes

This package advertises a node's browsers to a grid hub and keeps the
registration alive with a periodic status check.
"""

__version__ = "0.1.0"

from gridnode.protocol.messages import RegistrationEnvelope

__all__ = [
    "__version__",
    "RegistrationEnvelope",
    "HeartbeatDriver",
]


def __getattr__(name: str):
    if name == "HeartbeatDriver":
        from gridnode.node.heartbeat import HeartbeatDriver
        return HeartbeatDriver
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
