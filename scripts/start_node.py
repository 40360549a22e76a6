#!/usr/bin/env python3
"""Start a grid node heartbeat against a hub."""

import argparse
import asyncio
import logging
import signal
import sys

from gridnode.config import NodeConfig, load_config
from gridnode.node.address import AddressResolutionError
from gridnode.node.catalog import CapacityCatalog, CatalogError
from gridnode.node.heartbeat import HeartbeatDriver
from gridnode.node.registration import ListenAddressError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def run_node(config: NodeConfig):
    """Register with the hub and keep the registration alive."""
    catalog = CapacityCatalog.from_browsers_file(config.browsers_file, config.limit)
    driver = HeartbeatDriver.from_config(config, catalog)

    def handle_shutdown():
        logger.info("Shutdown signal received")
        driver.stop()

    loop = asyncio.get_event_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_shutdown)

    try:
        await driver.run()
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


def main():
    parser = argparse.ArgumentParser(
        description="Register a grid node with a hub"
    )
    parser.add_argument(
        "--hub",
        type=str,
        help="Hub address (e.g., localhost:4444 or http://hub:4444)",
    )
    parser.add_argument(
        "--listen",
        type=str,
        help="Address this node serves WebDriver on (default: :4444)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        help="Browser session timeout in seconds (default: 60)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Total number of concurrent sessions (default: 5)",
    )
    parser.add_argument(
        "--browsers",
        type=str,
        help="Path to browsers.json (default: config/browsers.json)",
    )
    parser.add_argument(
        "--advertise-address",
        type=str,
        help="Address the hub should use instead of the resolved outbound one",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/default.yaml",
        help="Path to config file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    args = parser.parse_args()

    logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        config = load_config(args.config).with_overrides(
            hub_address=args.hub,
            listen=args.listen,
            session_timeout=args.timeout,
            limit=args.limit,
            browsers_file=args.browsers,
            advertise_address=args.advertise_address,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration in {args.config}: {e}")
        sys.exit(1)
    if not config.hub_address:
        parser.error("hub address is required (--hub or hub.address in config)")

    logger.info(f"Hub: {config.hub_address}")
    logger.info(f"Listen: {config.listen}")

    try:
        asyncio.run(run_node(config))
    except (AddressResolutionError, ListenAddressError, CatalogError) as e:
        logger.error(f"Node cannot start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
