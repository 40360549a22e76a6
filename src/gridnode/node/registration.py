"""Registration envelope construction."""

import logging
import platform
from typing import List, Optional, Tuple, Union

from gridnode.node.address import IPAddress, resolve_outbound_address
from gridnode.node.catalog import CapacityCatalog
from gridnode.protocol.messages import (
    CapabilityEntry,
    NodeDescriptor,
    RegistrationEnvelope,
    SELENIUM_PROTOCOL,
)

logger = logging.getLogger(__name__)


class ListenAddressError(ValueError):
    """Raised when the listen address has no usable port."""


def split_listen_address(listen_address: str) -> Tuple[str, int]:
    """
    Split ``host:port`` into its parts.

    Accepts ``:4444``, ``0.0.0.0:4444`` and bracketed IPv6 such as
    ``[::]:4444``. The host may be empty.

    Raises:
        ListenAddressError: If the port is missing or not a valid port number
    """
    host, sep, port = listen_address.rpartition(":")
    if not sep:
        raise ListenAddressError(f"Missing port in listen address {listen_address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ListenAddressError(f"Too many colons in listen address {listen_address!r}")

    if not (port.isascii() and port.isdigit()) or int(port) > 65535:
        raise ListenAddressError(f"Invalid port {port!r} in listen address {listen_address!r}")

    return host, int(port)


def join_host_port(host: str, port: int) -> str:
    """Join host and port, bracketing IPv6 hosts."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def node_platform() -> str:
    """Operating-system family of this host (linux, darwin, windows)."""
    return platform.system().lower()


def build_capabilities(catalog: CapacityCatalog, platform_name: Optional[str] = None) -> List[CapabilityEntry]:
    """
    Build one capability entry per (browser, version) pair.

    Every entry advertises the node's total capacity as its max instances;
    the hub only admits against the node-wide session limit.
    """
    os_name = platform_name or node_platform()
    return [
        CapabilityEntry(
            browser_name=browser,
            version=version,
            max_instances=catalog.total,
            platform=os_name,
            platform_name=os_name,
            selenium_protocol=SELENIUM_PROTOCOL,
        )
        for browser, version in catalog.pairs()
    ]


def build_envelope(
    catalog: CapacityCatalog,
    listen_address: str,
    session_timeout: int,
    *,
    advertise_address: Optional[Union[str, IPAddress]] = None,
) -> RegistrationEnvelope:
    """
    Build the registration envelope for this node.

    Args:
        catalog: Capacity snapshot to advertise
        listen_address: Address the node serves WebDriver on, e.g. ``:4444``
        session_timeout: Browser session timeout in seconds
        advertise_address: Address the hub should reach this node at;
            resolved from the outbound route when omitted

    Returns:
        Frozen registration envelope

    Raises:
        ListenAddressError: If the listen address has no valid port
        AddressResolutionError: If the outbound address cannot be resolved
    """
    _, port = split_listen_address(listen_address)

    if advertise_address is None:
        advertise_address = resolve_outbound_address()
    address = str(advertise_address)

    node_id = join_host_port(address, port)

    descriptor = NodeDescriptor(
        browser_timeout=int(session_timeout),
        capabilities=tuple(build_capabilities(catalog)),
        host=address,
        port=port,
        max_session=catalog.total,
        id=node_id,
        remote_host=f"http://{node_id}",
    )

    logger.info(
        f"Built registration for {node_id}: "
        f"{len(descriptor.capabilities)} capabilities, max {catalog.total} sessions"
    )
    return RegistrationEnvelope(configuration=descriptor)
