"""Protocol layer for hub registration messages."""

from gridnode.protocol.messages import CapabilityEntry, NodeDescriptor, RegistrationEnvelope
from gridnode.protocol.models import HubStatusReply

__all__ = [
    "CapabilityEntry",
    "NodeDescriptor",
    "RegistrationEnvelope",
    "HubStatusReply",
]
