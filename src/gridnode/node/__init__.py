"""Node-side registration and heartbeat."""

from gridnode.node.address import resolve_outbound_address
from gridnode.node.catalog import CapacityCatalog
from gridnode.node.registration import build_envelope
from gridnode.node.heartbeat import HeartbeatDriver

__all__ = [
    "resolve_outbound_address",
    "CapacityCatalog",
    "build_envelope",
    "HeartbeatDriver",
]
