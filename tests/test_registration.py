"""Tests for address resolution and registration envelope construction."""

import ipaddress
import json
import socket

import pytest

from gridnode.node import address as address_module
from gridnode.node import registration as registration_module
from gridnode.node.address import AddressResolutionError, resolve_outbound_address
from gridnode.node.catalog import CapacityCatalog
from gridnode.node.registration import (
    ListenAddressError,
    build_capabilities,
    build_envelope,
    join_host_port,
    node_platform,
    split_listen_address,
)
from gridnode.protocol.messages import RegistrationEnvelope


class FakeSocket:
    """Stand-in for a UDP socket that records what was done with it."""

    instances = []

    def __init__(self, family, kind, local="10.0.0.5", fail=False):
        self.family = family
        self.kind = kind
        self.local = local
        self.fail = fail
        self.connected_to = None
        self.sent = []
        self.closed = False
        FakeSocket.instances.append(self)

    def connect(self, addr):
        if self.fail:
            raise OSError(101, "Network is unreachable")
        self.connected_to = addr

    def getsockname(self):
        return (self.local, 53211)

    def send(self, data):
        self.sent.append(data)

    def close(self):
        self.closed = True


class TestResolveOutboundAddress:
    """Tests for resolve_outbound_address."""

    def setup_method(self):
        FakeSocket.instances = []

    def test_reads_local_endpoint(self, monkeypatch):
        """Test that the OS-selected local address is returned."""
        monkeypatch.setattr(address_module.socket, "socket", FakeSocket)

        result = resolve_outbound_address()

        assert result == ipaddress.ip_address("10.0.0.5")
        sock = FakeSocket.instances[0]
        assert sock.kind == socket.SOCK_DGRAM
        assert sock.connected_to == ("8.8.8.8", 80)
        assert sock.sent == []
        assert sock.closed

    def test_no_route_is_fatal(self, monkeypatch):
        """Test that a routing failure raises and still closes the socket."""
        monkeypatch.setattr(
            address_module.socket,
            "socket",
            lambda family, kind: FakeSocket(family, kind, fail=True),
        )

        with pytest.raises(AddressResolutionError):
            resolve_outbound_address()

        assert FakeSocket.instances[0].closed

    def test_ipv6_probe(self, monkeypatch):
        """Test that an IPv6 probe opens an IPv6 socket."""
        monkeypatch.setattr(
            address_module.socket,
            "socket",
            lambda family, kind: FakeSocket(family, kind, local="fd00::5"),
        )

        result = resolve_outbound_address(("2001:4860:4860::8888", 80))

        assert result == ipaddress.ip_address("fd00::5")
        assert FakeSocket.instances[0].family == socket.AF_INET6


class TestListenAddress:
    """Tests for listen address parsing."""

    @pytest.mark.parametrize(
        "listen,expected",
        [
            (":4444", ("", 4444)),
            ("0.0.0.0:4444", ("0.0.0.0", 4444)),
            ("localhost:5555", ("localhost", 5555)),
            ("[::]:4444", ("::", 4444)),
        ],
    )
    def test_split(self, listen, expected):
        """Test supported listen address forms."""
        assert split_listen_address(listen) == expected

    @pytest.mark.parametrize("listen", ["4444", "0.0.0.0:", ":http", "::1:4444", ":70000", ":²", ":٤٤٤٤"])
    def test_malformed_port_raises(self, listen):
        """Test that a bad port fails loudly instead of advertising port 0."""
        with pytest.raises(ListenAddressError):
            split_listen_address(listen)

    def test_join_brackets_ipv6(self):
        """Test host/port joining."""
        assert join_host_port("10.0.0.5", 4444) == "10.0.0.5:4444"
        assert join_host_port("fd00::5", 4444) == "[fd00::5]:4444"


class TestBuildCapabilities:
    """Tests for capability enumeration."""

    def test_one_entry_per_version(self):
        """Test that every (browser, version) pair appears exactly once."""
        catalog = CapacityCatalog.from_mapping(
            total=7,
            browsers={"chrome": ["89", "90", "91"], "firefox": ["88"], "opera": []},
        )

        entries = build_capabilities(catalog)

        pairs = sorted((e.browser_name, e.version) for e in entries)
        assert pairs == [
            ("chrome", "89"),
            ("chrome", "90"),
            ("chrome", "91"),
            ("firefox", "88"),
        ]

    def test_max_instances_is_total_capacity(self):
        """Test that per-entry limit is the node-wide capacity."""
        catalog = CapacityCatalog.from_mapping(
            total=3,
            browsers={"chrome": ["90", "91", "92", "93"], "firefox": ["88"]},
        )

        entries = build_capabilities(catalog)

        assert len(entries) == 5
        assert all(e.max_instances == 3 for e in entries)

    def test_platform_and_protocol(self):
        """Test platform fields and protocol constant."""
        catalog = CapacityCatalog.from_mapping(total=1, browsers={"chrome": ["91"]})

        entry = build_capabilities(catalog)[0]

        assert entry.platform == node_platform()
        assert entry.platform_name == node_platform()
        assert entry.selenium_protocol == "WebDriver"

    def test_empty_catalog(self):
        """Test that an empty catalog advertises nothing."""
        assert build_capabilities(CapacityCatalog(total=5)) == []


class TestBuildEnvelope:
    """Tests for build_envelope."""

    def setup_method(self):
        self.catalog = CapacityCatalog.from_mapping(
            total=5,
            browsers={"chrome": {"90", "91"}, "firefox": {"88"}},
        )

    def test_end_to_end_scenario(self):
        """Test the documented chrome/firefox example."""
        envelope = build_envelope(
            self.catalog, "0.0.0.0:4444", 60, advertise_address="10.0.0.5"
        )

        node = envelope.configuration
        assert len(node.capabilities) == 3
        assert all(c.max_instances == 5 for c in node.capabilities)
        assert node.id == "10.0.0.5:4444"
        assert node.remote_host == "http://10.0.0.5:4444"
        assert node.host == "10.0.0.5"
        assert node.port == 4444
        assert node.max_session == 5
        assert node.browser_timeout == 60

    def test_policy_constants(self):
        """Test fixed registration constants."""
        envelope = build_envelope(self.catalog, ":4444", 60, advertise_address="10.0.0.5")

        data = envelope.to_dict()
        assert data["name"] == "selenoid-registration"
        assert data["description"] == "selenoid node"
        assert data["class"] == "org.openqa.grid.common.RegistrationRequest"

        config = data["configuration"]
        assert config["debug"] is False
        assert config["proxy"] == "org.openqa.grid.selenium.proxy.DefaultRemoteProxy"
        assert config["nodeStatusCheckTimeout"] == 5000
        assert config["unregisterIfStillDownAfter"] == 60000

    def test_wire_field_names(self):
        """Test that the JSON body uses the hub's field names."""
        envelope = build_envelope(self.catalog, ":4444", 60, advertise_address="10.0.0.5")

        data = json.loads(envelope.to_json())

        assert set(data) == {"name", "description", "class", "configuration"}
        assert set(data["configuration"]) == {
            "browsertimeout", "capabilities", "debug", "host", "maxSession", "id",
            "port", "remoteHost", "proxy", "nodeStatusCheckTimeout",
            "unregisterIfStillDownAfter",
        }
        assert set(data["configuration"]["capabilities"][0]) == {
            "browserName", "version", "maxInstances", "platform",
            "platformName", "seleniumProtocol",
        }

    def test_repeated_builds_are_identical(self):
        """Test that identity fields are stable across builds."""
        first = build_envelope(self.catalog, ":4444", 60, advertise_address="10.0.0.5")
        second = build_envelope(self.catalog, ":4444", 60, advertise_address="10.0.0.5")

        assert first.node_id == second.node_id == "10.0.0.5:4444"
        assert first.configuration.remote_host == second.configuration.remote_host
        assert first.to_json() == second.to_json()

    def test_resolves_address_when_not_given(self, monkeypatch):
        """Test that the outbound address is resolved when not configured."""
        calls = []

        def fake_resolve():
            calls.append(1)
            return ipaddress.ip_address("192.168.1.20")

        monkeypatch.setattr(registration_module, "resolve_outbound_address", fake_resolve)

        envelope = build_envelope(self.catalog, ":5555", 30)

        assert calls == [1]
        assert envelope.node_id == "192.168.1.20:5555"
        assert envelope.configuration.remote_host == "http://192.168.1.20:5555"

    def test_ipv6_address_is_bracketed(self):
        """Test identifiers for IPv6 nodes."""
        envelope = build_envelope(self.catalog, "[::]:4444", 60, advertise_address="fd00::5")

        assert envelope.node_id == "[fd00::5]:4444"
        assert envelope.configuration.remote_host == "http://[fd00::5]:4444"

    def test_malformed_listen_address(self):
        """Test that an unparsable port is rejected."""
        with pytest.raises(ListenAddressError):
            build_envelope(self.catalog, "0.0.0.0:webdriver", 60, advertise_address="10.0.0.5")

    def test_from_dict_restores_envelope(self):
        """Test that from_dict reverses to_dict."""
        envelope = build_envelope(self.catalog, ":4444", 60, advertise_address="10.0.0.5")

        restored = RegistrationEnvelope.from_dict(json.loads(envelope.to_json()))

        assert restored.node_id == envelope.node_id
        assert sorted(restored.configuration.capabilities, key=lambda c: c.version) == sorted(
            envelope.configuration.capabilities, key=lambda c: c.version
        )
