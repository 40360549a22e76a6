"""Registration message definitions for the hub protocol."""

import json
from dataclasses import dataclass, field
from typing import Dict, Any, Tuple


REGISTRATION_NAME = "selenoid-registration"
REGISTRATION_DESCRIPTION = "selenoid node"
REGISTRATION_CLASS = "org.openqa.grid.common.RegistrationRequest"
PROXY_CLASS = "org.openqa.grid.selenium.proxy.DefaultRemoteProxy"
SELENIUM_PROTOCOL = "WebDriver"

# Hub-side timeouts, milliseconds
NODE_STATUS_CHECK_TIMEOUT_MS = 5000
UNREGISTER_IF_STILL_DOWN_AFTER_MS = 60000


@dataclass(frozen=True)
class CapabilityEntry:
    """One advertised (browser, version) combination."""

    browser_name: str
    version: str
    max_instances: int
    platform: str
    platform_name: str
    selenium_protocol: str = SELENIUM_PROTOCOL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "browserName": self.browser_name,
            "version": self.version,
            "maxInstances": self.max_instances,
            "platform": self.platform,
            "platformName": self.platform_name,
            "seleniumProtocol": self.selenium_protocol,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapabilityEntry":
        """Create from wire dictionary."""
        return cls(
            browser_name=data["browserName"],
            version=data["version"],
            max_instances=data["maxInstances"],
            platform=data.get("platform", ""),
            platform_name=data.get("platformName", data.get("platform", "")),
            selenium_protocol=data.get("seleniumProtocol", SELENIUM_PROTOCOL),
        )


@dataclass(frozen=True)
class NodeDescriptor:
    """Node configuration block of a registration request."""

    browser_timeout: int
    capabilities: Tuple[CapabilityEntry, ...]
    host: str
    port: int
    max_session: int
    id: str
    remote_host: str
    debug: bool = False
    proxy: str = PROXY_CLASS
    node_status_check_timeout: int = NODE_STATUS_CHECK_TIMEOUT_MS
    unregister_if_still_down_after: int = UNREGISTER_IF_STILL_DOWN_AFTER_MS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "browsertimeout": self.browser_timeout,
            "capabilities": [c.to_dict() for c in self.capabilities],
            "debug": self.debug,
            "host": self.host,
            "maxSession": self.max_session,
            "id": self.id,
            "port": self.port,
            "remoteHost": self.remote_host,
            "proxy": self.proxy,
            "nodeStatusCheckTimeout": self.node_status_check_timeout,
            "unregisterIfStillDownAfter": self.unregister_if_still_down_after,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeDescriptor":
        """Create from wire dictionary."""
        return cls(
            browser_timeout=data["browsertimeout"],
            capabilities=tuple(
                CapabilityEntry.from_dict(c) for c in data.get("capabilities", [])
            ),
            host=data["host"],
            port=data["port"],
            max_session=data["maxSession"],
            id=data["id"],
            remote_host=data["remoteHost"],
            debug=data.get("debug", False),
            proxy=data.get("proxy", PROXY_CLASS),
            node_status_check_timeout=data.get(
                "nodeStatusCheckTimeout", NODE_STATUS_CHECK_TIMEOUT_MS
            ),
            unregister_if_still_down_after=data.get(
                "unregisterIfStillDownAfter", UNREGISTER_IF_STILL_DOWN_AFTER_MS
            ),
        )


@dataclass(frozen=True)
class RegistrationEnvelope:
    """
    Complete registration request sent to the hub.

    The envelope is frozen once built; the heartbeat driver serializes it a
    single time and resends the same bytes on every re-registration.
    """

    configuration: NodeDescriptor
    name: str = REGISTRATION_NAME
    description: str = REGISTRATION_DESCRIPTION
    class_name: str = field(default=REGISTRATION_CLASS)

    @property
    def node_id(self) -> str:
        """Identifier the hub knows this node by."""
        return self.configuration.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "class": self.class_name,
            "configuration": self.configuration.to_dict(),
        }

    def to_json(self) -> bytes:
        """Encode as a JSON request body."""
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistrationEnvelope":
        """Create from wire dictionary."""
        return cls(
            configuration=NodeDescriptor.from_dict(data["configuration"]),
            name=data.get("name", REGISTRATION_NAME),
            description=data.get("description", REGISTRATION_DESCRIPTION),
            class_name=data.get("class", REGISTRATION_CLASS),
        )
