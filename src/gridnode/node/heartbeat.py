"""Heartbeat driver keeping this node registered with the hub."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

import aiohttp
from pydantic import ValidationError

from gridnode.node.catalog import CapacityCatalog
from gridnode.node.registration import build_envelope
from gridnode.protocol.messages import RegistrationEnvelope
from gridnode.protocol.models import HubStatusReply

if TYPE_CHECKING:
    from gridnode.config import NodeConfig

logger = logging.getLogger(__name__)

STATUS_PATH = "/grid/api/proxy"
REGISTER_PATH = "/grid/register"


@dataclass
class HeartbeatConfig:
    """Configuration for the heartbeat driver."""

    interval_seconds: float = 5.0
    timeout_seconds: float = 5.0
    user_agent: str = "selenoid"

    def __post_init__(self):
        if self.interval_seconds <= 0:
            raise ValueError(f"Heartbeat interval must be positive, got {self.interval_seconds}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"Heartbeat timeout must be positive, got {self.timeout_seconds}")


class DriverState(str, Enum):
    """Heartbeat driver lifecycle states."""
    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"


class CycleOutcome(str, Enum):
    """Result of one registration-check cycle."""
    UNREACHABLE = "unreachable"
    HUB_ERROR = "hub_error"
    MALFORMED_REPLY = "malformed_reply"
    KNOWN = "known"
    REGISTERED = "registered"


def normalize_hub_url(hub_address: str) -> str:
    """Turn ``host:port`` or a full URL into a base URL without trailing slash."""
    if "://" not in hub_address:
        hub_address = f"http://{hub_address}"
    return hub_address.rstrip('/')


class HeartbeatDriver:
    """
    Keeps this node listed on the hub.

    Responsibilities:
    - Ask the hub on every tick whether it knows this node
    - Re-send the frozen registration when the hub has forgotten it
    - Stop cleanly when shutdown is requested

    Cycles run strictly one after another on a single task. A shutdown
    request is only observed between cycles, so an in-flight cycle always
    completes (bounded by the client timeout).
    """

    def __init__(
        self,
        hub_url: str,
        envelope: RegistrationEnvelope,
        config: Optional[HeartbeatConfig] = None,
    ):
        """
        Initialize HeartbeatDriver.

        Args:
            hub_url: Hub base address, ``host:port`` or URL
            envelope: Registration to advertise, serialized once here
            config: Heartbeat configuration
        """
        self.hub_url = normalize_hub_url(hub_url)
        self.envelope = envelope
        self.config = config or HeartbeatConfig()

        self.node_id = envelope.node_id
        self.payload = envelope.to_json()

        self._status_url = f"{self.hub_url}{STATUS_PATH}"
        self._register_url = f"{self.hub_url}{REGISTER_PATH}"
        self._headers = {
            "User-Agent": self.config.user_agent,
            "Content-Type": "application/json",
        }

        # State
        self.state = DriverState.PENDING
        self._shutdown = asyncio.Event()
        self._cycles = 0
        self._registrations = 0
        self._last_outcome: Optional[CycleOutcome] = None
        self._last_known: Optional[float] = None

    @classmethod
    def from_config(cls, config: "NodeConfig", catalog: CapacityCatalog) -> "HeartbeatDriver":
        """
        Build a driver from process configuration.

        Resolves the outbound address (unless one is configured) and builds
        the registration envelope exactly once.
        """
        envelope = build_envelope(
            catalog,
            config.listen,
            config.session_timeout,
            advertise_address=config.advertise_address,
        )
        return cls(config.hub_address, envelope, config.heartbeat)

    def stop(self):
        """Request shutdown; takes effect at the next wait point."""
        if not self._shutdown.is_set():
            logger.info(f"Node {self.node_id} heartbeat stopping")
        self._shutdown.set()

    async def run(self):
        """Run the heartbeat loop until stop() is called."""
        if self.state is not DriverState.PENDING:
            raise RuntimeError(f"Heartbeat driver cannot run from state {self.state.value}")

        self.state = DriverState.RUNNING
        logger.info(
            f"Node {self.node_id} heartbeat started, hub {self.hub_url}, "
            f"every {self.config.interval_seconds}s"
        )

        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                await self._heartbeat_loop(session)
        finally:
            self.state = DriverState.STOPPED
            logger.info(f"Node {self.node_id} heartbeat stopped")

    async def _heartbeat_loop(self, session: aiohttp.ClientSession):
        """Wait for the next tick or shutdown, whichever comes first."""
        loop = asyncio.get_running_loop()
        interval = self.config.interval_seconds
        next_tick = loop.time() + interval

        while not self._shutdown.is_set():
            delay = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            await self.check_registration(session)

            # Ticks missed while a cycle was blocked are dropped
            next_tick += interval
            now = loop.time()
            while next_tick <= now:
                next_tick += interval

    async def check_registration(self, session: aiohttp.ClientSession) -> CycleOutcome:
        """
        Run one registration-check cycle.

        Failures never propagate; the next tick starts over.
        """
        outcome = await self._check_cycle(session)
        self._cycles += 1
        self._last_outcome = outcome
        return outcome

    async def _check_cycle(self, session: aiohttp.ClientSession) -> CycleOutcome:
        try:
            async with session.get(self._status_url, params={"id": self.node_id}) as response:
                if response.status != 200:
                    logger.warning(f"Hub status check failed with status {response.status}")
                    return CycleOutcome.HUB_ERROR
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Hub status check network error: {e!r}")
            return CycleOutcome.UNREACHABLE

        try:
            reply = HubStatusReply.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Hub status reply could not be decoded: {e.error_count()} errors")
            return CycleOutcome.MALFORMED_REPLY

        if reply.success:
            self._last_known = time.time()
            return CycleOutcome.KNOWN

        logger.info(f"Hub does not know node {self.node_id} ({reply.message!r}), registering")
        await self._register(session)
        return CycleOutcome.REGISTERED

    async def _register(self, session: aiohttp.ClientSession):
        """Send the registration; the outcome is left to the next status check."""
        self._registrations += 1
        try:
            async with session.post(
                self._register_url,
                data=self.payload,
                headers=self._headers,
            ) as response:
                logger.debug(f"Hub registration answered with status {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Hub registration network error: {e!r}")

    def get_stats(self) -> Dict[str, Any]:
        """Get heartbeat statistics."""
        return {
            "state": self.state.value,
            "node_id": self.node_id,
            "cycles": self._cycles,
            "registrations": self._registrations,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "last_known": self._last_known,
        }
