"""Outbound address resolution."""

import ipaddress
import logging
import socket
from typing import Tuple, Union

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# Any routable endpoint works, nothing is sent to it
DEFAULT_PROBE: Tuple[str, int] = ("8.8.8.8", 80)


class AddressResolutionError(OSError):
    """Raised when the network stack cannot pick a route to the probe."""


def resolve_outbound_address(probe: Tuple[str, int] = DEFAULT_PROBE) -> IPAddress:
    """
    Determine the local address the OS would use to reach ``probe``.

    Connecting a UDP socket only selects a route; no datagram is sent.

    Args:
        probe: Remote (host, port) to route towards

    Returns:
        The local address bound for that route

    Raises:
        AddressResolutionError: If no route can be determined
    """
    family = socket.AF_INET6 if ":" in probe[0] else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_DGRAM)
    try:
        sock.connect(probe)
        local_host = sock.getsockname()[0]
    except OSError as e:
        raise AddressResolutionError(
            f"Cannot determine outbound address via {probe[0]}:{probe[1]}: {e}"
        ) from e
    finally:
        sock.close()

    address = ipaddress.ip_address(local_host)
    logger.debug(f"Resolved outbound address {address}")
    return address
