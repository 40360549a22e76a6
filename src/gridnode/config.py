"""Node process configuration."""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from gridnode.node.heartbeat import HeartbeatConfig

logger = logging.getLogger(__name__)


@dataclass
class NodeConfig:
    """Configuration for a grid node."""

    hub_address: str = ""
    listen: str = ":4444"
    session_timeout: int = 60  # seconds
    limit: int = 5  # total concurrent sessions
    browsers_file: str = "config/browsers.json"
    advertise_address: Optional[str] = None
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeConfig":
        """Create config from the YAML layout (hub / node / heartbeat sections)."""
        hub = data.get("hub") or {}
        node = data.get("node") or {}
        heartbeat = data.get("heartbeat") or {}
        defaults = HeartbeatConfig()

        return cls(
            hub_address=hub.get("address", ""),
            listen=str(node.get("listen", ":4444")),
            session_timeout=int(node.get("timeout", 60)),
            limit=int(node.get("limit", 5)),
            browsers_file=node.get("browsers", "config/browsers.json"),
            advertise_address=_optional_str(node.get("advertise_address")),
            heartbeat=HeartbeatConfig(
                interval_seconds=float(heartbeat.get("interval_seconds", defaults.interval_seconds)),
                timeout_seconds=float(heartbeat.get("timeout_seconds", defaults.timeout_seconds)),
                user_agent=heartbeat.get("user_agent", defaults.user_agent),
            ),
        )

    def with_overrides(self, **overrides: Any) -> "NodeConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def load_config(config_path: Optional[str]) -> NodeConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        logger.debug(f"Loaded config from {config_path}")
        return NodeConfig.from_dict(data)
    return NodeConfig()
