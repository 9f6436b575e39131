"""Tests for probing and enrichment methods."""

import asyncio
import socket
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lan_scanner.discovery import (
    ARPCache,
    BannerReader,
    PingProbe,
    PortScanner,
    ReachabilityProbe,
    ReachabilityProber,
    TCPEchoProbe,
    lookup_vendor,
    parse_service_version,
    resolve_hostname,
)
from lan_scanner.discovery.arp_cache import normalize_mac, parse_arp_line
from lan_scanner.discovery.banner import HTTP_PROBE, normalize_banner


async def start_service(greeting: bytes = b""):
    """Start a loopback listener that sends greeting on connect."""
    async def handle(reader, writer):
        try:
            if greeting:
                writer.write(greeting)
                await writer.drain()
            await reader.read(100)
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


def unused_port():
    """A loopback port with nothing listening."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def fake_connection(response: bytes):
    """Reader/writer pair for patching asyncio.open_connection."""
    reader = MagicMock()
    reader.read = AsyncMock(return_value=response)
    writer = MagicMock()
    writer.drain = AsyncMock()
    writer.wait_closed = AsyncMock()
    return reader, writer


class FakeProbe(ReachabilityProbe):
    def __init__(self, name, available=True, result=True):
        self._name = name
        self.available = available
        self.result = result
        self.calls = []

    @property
    def name(self):
        return self._name

    async def is_available(self):
        return self.available

    async def probe(self, address, timeout):
        self.calls.append(address)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TestPingProbe:
    """Tests for the ICMP ping probe."""

    @pytest.mark.asyncio
    async def test_reply(self):
        """Exit status 0 means reachable."""
        process = MagicMock()
        process.wait = AsyncMock(return_value=0)
        process.returncode = 0

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as exec_mock:
            assert await PingProbe().probe("192.168.1.10", 0.5) is True

        args = exec_mock.call_args[0]
        assert args[0] == "ping"
        assert args[-1] == "192.168.1.10"
        assert "-W" in args
        assert args[args.index("-W") + 1] == "1"

    @pytest.mark.asyncio
    async def test_no_reply(self):
        """Non-zero exit means unreachable."""
        process = MagicMock()
        process.wait = AsyncMock(return_value=1)
        process.returncode = 1

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            assert await PingProbe().probe("192.168.1.10", 0.5) is False

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        """OSError from exec is reported as unreachable."""
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())):
            assert await PingProbe().probe("192.168.1.10", 0.5) is False


class TestTCPEchoProbe:
    """Tests for the TCP connect liveness probe."""

    @pytest.mark.asyncio
    async def test_accepting_port(self):
        """An accepted connection means reachable."""
        server, port = await start_service()
        try:
            assert await TCPEchoProbe(port=port).probe("127.0.0.1", 1.0) is True
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_refused_port(self):
        """A refused connection still proves the host is up."""
        assert await TCPEchoProbe(port=unused_port()).probe("127.0.0.1", 1.0) is True

    @pytest.mark.asyncio
    async def test_timeout(self):
        """No answer within the timeout means unreachable."""
        with patch("asyncio.open_connection", AsyncMock(side_effect=asyncio.TimeoutError())):
            assert await TCPEchoProbe().probe("192.168.1.10", 0.1) is False

    @pytest.mark.asyncio
    async def test_unreachable_network(self):
        """Routing errors mean unreachable."""
        with patch("asyncio.open_connection", AsyncMock(side_effect=OSError("No route to host"))):
            assert await TCPEchoProbe().probe("192.168.1.10", 0.1) is False


class TestReachabilityProber:
    """Tests for probe selection."""

    @pytest.mark.asyncio
    async def test_uses_first_available(self):
        """Unavailable probes are skipped."""
        ping = FakeProbe("ping", available=False)
        echo = FakeProbe("tcp-echo", result=True)
        prober = ReachabilityProber([ping, echo])

        assert await prober.is_reachable("10.0.0.1") is True
        assert ping.calls == []
        assert echo.calls == ["10.0.0.1"]

    @pytest.mark.asyncio
    async def test_selection_is_cached(self):
        """Availability is only checked once."""
        probe = FakeProbe("ping")
        probe.is_available = AsyncMock(return_value=True)
        prober = ReachabilityProber([probe])

        await prober.is_reachable("10.0.0.1")
        await prober.is_reachable("10.0.0.2")

        assert probe.is_available.await_count == 1

    @pytest.mark.asyncio
    async def test_no_probe_available(self):
        """With nothing available every host is unreachable."""
        prober = ReachabilityProber([FakeProbe("ping", available=False)])

        assert await prober.is_reachable("10.0.0.1") is False

    @pytest.mark.asyncio
    async def test_probe_error_is_unreachable(self):
        """Exceptions from a probe never escape."""
        prober = ReachabilityProber([FakeProbe("ping", result=RuntimeError("boom"))])

        assert await prober.is_reachable("10.0.0.1") is False


class TestBannerReader:
    """Tests for banner grabbing."""

    @pytest.mark.asyncio
    async def test_reads_greeting(self):
        """The service greeting is returned with CRLF normalized."""
        server, port = await start_service(b"SSH-2.0-OpenSSH_6.6\r\n")
        try:
            banner = await BannerReader().read_banner("127.0.0.1", port)
        finally:
            server.close()
            await server.wait_closed()

        assert banner == "SSH-2.0-OpenSSH_6.6"

    @pytest.mark.asyncio
    async def test_silent_service(self):
        """A service that says nothing gives an empty banner."""
        server, port = await start_service()
        try:
            banner = await BannerReader(read_timeout=0.2).read_banner("127.0.0.1", port)
        finally:
            server.close()
            await server.wait_closed()

        assert banner == ""

    @pytest.mark.asyncio
    async def test_closed_port(self):
        """Connect failure gives an empty banner."""
        assert await BannerReader().read_banner("127.0.0.1", unused_port()) == ""

    @pytest.mark.asyncio
    async def test_http_port_sends_request(self):
        """Web ports get a GET request before reading."""
        reader, writer = fake_connection(b"HTTP/1.0 200 OK\r\nServer: nginx/1.24.0\r\n\r\n")

        with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))):
            banner = await BannerReader().read_banner("10.0.0.1", 80)

        writer.write.assert_called_once_with(HTTP_PROBE)
        writer.close.assert_called_once()
        assert banner == "HTTP/1.0 200 OK\nServer: nginx/1.24.0"

    @pytest.mark.asyncio
    async def test_other_port_is_passive(self):
        """Non-web ports are never written to."""
        reader, writer = fake_connection(b"220 ftp ready\r\n")

        with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))):
            banner = await BannerReader().read_banner("10.0.0.1", 21)

        writer.write.assert_not_called()
        assert banner == "220 ftp ready"

    @pytest.mark.asyncio
    async def test_read_error_closes_connection(self):
        """A failed read still closes the socket."""
        reader, writer = fake_connection(b"")
        reader.read = AsyncMock(side_effect=ConnectionResetError())

        with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))):
            banner = await BannerReader().read_banner("10.0.0.1", 22)

        assert banner == ""
        writer.close.assert_called_once()


class TestBannerParsing:
    """Tests for banner text helpers."""

    def test_normalize(self):
        """Decode, trim and convert line endings."""
        assert normalize_banner(b"  a\r\nb\r\n") == "a\nb"
        assert normalize_banner(b"") == ""
        assert normalize_banner(b"\xff\xfeok") == "\ufffd\ufffdok"

    def test_ssh_version(self):
        """SSH banners yield the software token."""
        assert parse_service_version("SSH-2.0-OpenSSH_8.9p1 Ubuntu-3") == "OpenSSH_8.9p1"

    def test_http_server_header(self):
        """HTTP responses yield the Server header."""
        banner = "HTTP/1.1 200 OK\nDate: today\nServer: Apache/2.4.57"

        assert parse_service_version(banner) == "Apache/2.4.57"

    def test_unrecognised(self):
        """Anything else has no version."""
        assert parse_service_version("220 ProFTPD ready") is None
        assert parse_service_version("") is None


class TestPortScanner:
    """Tests for TCP port scanning."""

    @pytest.mark.asyncio
    async def test_finds_open_ports(self):
        """Open ports are reported with service records, closed ones omitted."""
        server, open_port = await start_service(b"SSH-2.0-OpenSSH_6.6\r\n")
        closed_port = unused_port()
        scanner = PortScanner(ports=[closed_port, open_port], timeout=1.0)

        try:
            result = await scanner.scan("127.0.0.1")
        finally:
            server.close()
            await server.wait_closed()

        assert result.open_ports == [open_port]
        service = result.services[open_port]
        assert service.port == open_port
        assert service.protocol == "tcp"
        assert service.banner == "SSH-2.0-OpenSSH_6.6"
        assert service.version == "OpenSSH_6.6"

    @pytest.mark.asyncio
    async def test_known_port_names(self):
        """Services are named from the port table."""
        scanner = PortScanner(ports=[22, 3389])
        scanner.is_port_open = AsyncMock(return_value=True)
        scanner.banner_reader.read_banner = AsyncMock(return_value="")

        result = await scanner.scan("10.0.0.1")

        assert result.services[22].service == "SSH"
        assert result.services[3389].service == "RDP"
        assert result.services[22].version is None

    @pytest.mark.asyncio
    async def test_batches(self):
        """Ports are probed batch by batch."""
        probed = []

        async def is_port_open(address, port):
            probed.append(port)
            return False

        scanner = PortScanner(ports=list(range(1, 21)), batch_size=8)
        scanner.is_port_open = is_port_open

        result = await scanner.scan("10.0.0.1")

        assert result.open_ports == []
        assert sorted(probed) == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_cancel_stops_between_batches(self):
        """A set cancel event prevents further batches."""
        cancel = asyncio.Event()
        probed = []

        async def is_port_open(address, port):
            probed.append(port)
            cancel.set()
            return True

        scanner = PortScanner(ports=list(range(1, 21)), batch_size=8)
        scanner.is_port_open = is_port_open
        scanner.banner_reader.read_banner = AsyncMock(return_value="")

        result = await scanner.scan("10.0.0.1", cancel_event=cancel)

        assert sorted(probed) == list(range(1, 9))
        assert result.open_ports == list(range(1, 9))

    @pytest.mark.asyncio
    async def test_probe_errors_mean_closed(self):
        """Unexpected probe errors are treated as closed."""
        scanner = PortScanner(ports=[22])
        scanner.is_port_open = AsyncMock(side_effect=RuntimeError("boom"))

        result = await scanner.scan("10.0.0.1")

        assert result.open_ports == []


class TestARPCache:
    """Tests for ARP table parsing."""

    def test_parse_linux_line(self):
        """Linux arp -an output."""
        line = "? (192.168.1.1) at aa:bb:cc:dd:ee:ff [ether] on eth0"

        assert parse_arp_line(line) == ("192.168.1.1", "aa:bb:cc:dd:ee:ff")

    def test_parse_macos_line(self):
        """macOS drops leading zeros; they are restored."""
        line = "gateway (192.168.1.1) at 0:50:56:c0:0:8 on en0 ifscope [ethernet]"

        assert parse_arp_line(line) == ("192.168.1.1", "00:50:56:c0:00:08")

    def test_skip_incomplete(self):
        """Incomplete and broadcast entries are skipped."""
        assert parse_arp_line("? (192.168.1.9) at <incomplete> on eth0") is None
        assert parse_arp_line("? (192.168.1.255) at ff:ff:ff:ff:ff:ff [ether] on eth0") is None
        assert parse_arp_line("garbage") is None

    def test_normalize_mac(self):
        """MACs are lowercased and zero-padded."""
        assert normalize_mac("B8:27:EB:1:2:3") == "b8:27:eb:01:02:03"

    def test_lookup_vendor(self):
        """Known OUIs map to vendors."""
        assert lookup_vendor("b8:27:eb:12:34:56") == "Raspberry Pi"
        assert lookup_vendor("00:50:56:aa:bb:cc") == "VMware"
        assert lookup_vendor("12:34:56:78:9a:bc") is None

    def test_load_and_lookup(self):
        """Loaded entries resolve to (mac, vendor)."""
        cache = ARPCache()
        cache.load(
            "? (192.168.1.20) at b8:27:eb:12:34:56 [ether] on eth0\n"
            "? (192.168.1.21) at 12:34:56:78:9a:bc [ether] on eth0\n"
        )

        assert cache.lookup("192.168.1.20") == ("b8:27:eb:12:34:56", "Raspberry Pi")
        assert cache.lookup("192.168.1.21") == ("12:34:56:78:9a:bc", "")
        assert cache.lookup("192.168.1.99") == ("", "")

    @pytest.mark.asyncio
    async def test_refresh_without_arp(self):
        """A missing arp binary leaves the cache empty."""
        cache = ARPCache()
        cache.load("? (192.168.1.20) at b8:27:eb:12:34:56 [ether] on eth0")

        with patch(
            "lan_scanner.discovery.arp_cache.command_available",
            AsyncMock(return_value=False),
        ):
            assert await cache.refresh() == 0

        assert cache.lookup("192.168.1.20") == ("", "")

    @pytest.mark.asyncio
    async def test_refresh_reads_table(self):
        """refresh() parses arp -an output."""
        process = MagicMock()
        process.returncode = 0
        process.communicate = AsyncMock(return_value=(
            b"? (192.168.1.20) at b8:27:eb:12:34:56 [ether] on eth0\n", b"",
        ))
        cache = ARPCache()

        with patch(
            "lan_scanner.discovery.arp_cache.command_available",
            AsyncMock(return_value=True),
        ), patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            count = await cache.refresh()

        assert count == 1
        assert cache.lookup("192.168.1.20")[1] == "Raspberry Pi"


class TestResolveHostname:
    """Tests for reverse DNS lookup."""

    @pytest.mark.asyncio
    async def test_resolved(self):
        """A PTR record gives the hostname."""
        with patch("socket.gethostbyaddr", return_value=("nas.lan", [], ["10.0.0.5"])):
            assert await resolve_hostname("10.0.0.5") == "nas.lan"

    @pytest.mark.asyncio
    async def test_lookup_failure(self):
        """Resolver errors give an empty hostname."""
        with patch("socket.gethostbyaddr", side_effect=socket.herror("not found")):
            assert await resolve_hostname("10.0.0.5") == ""

    @pytest.mark.asyncio
    async def test_address_echo(self):
        """A lookup that returns the address itself is treated as unnamed."""
        with patch("socket.gethostbyaddr", return_value=("10.0.0.5", [], ["10.0.0.5"])):
            assert await resolve_hostname("10.0.0.5") == ""
