"""Connectivity testing: gateway discovery, ping, TCP ports and stack repair."""

import platform
import re
import socket
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import psutil

from ..errors import AdapterUnavailable, ProbeTimeout
from ..utils import get_logger

logger = get_logger(__name__)

_PING_TIME = re.compile(r'time[=<]\s*(\d+(?:\.\d+)?)\s*ms', re.IGNORECASE)
_LINUX_GATEWAY = re.compile(r'^default\s+via\s+(\S+)', re.MULTILINE)
_WINDOWS_GATEWAY_V4 = re.compile(r'^\s*0\.0\.0\.0\s+0\.0\.0\.0\s+(\d+\.\d+\.\d+\.\d+)', re.MULTILINE)
_WINDOWS_GATEWAY_V6 = re.compile(r'::/0\s+(\S+)')


def is_windows() -> bool:
    return platform.system().lower() == 'windows'


@dataclass
class PingResult:
    """Result of a ping."""
    host: str
    is_reachable: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass
class PortScanResult:
    """Result of a single TCP port test."""
    host: str
    port: int
    is_open: bool
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass
class GatewayInfo:
    """Default gateway of this host."""
    address: str
    family: str  # 'IPv4' or 'IPv6'


def parse_gateway(output: str, family: str, windows: bool) -> Optional[str]:
    """Extract the default gateway address from route table output."""
    if windows:
        pattern = _WINDOWS_GATEWAY_V4 if family == 'IPv4' else _WINDOWS_GATEWAY_V6
    else:
        pattern = _LINUX_GATEWAY

    for match in pattern.finditer(output):
        address = match.group(1)
        # Windows lists on-link routes with the literal gateway "On-link"
        if address.lower() != 'on-link':
            return address
    return None


def parse_ping_latency(output: str) -> Optional[float]:
    """Extract the round-trip time in ms from ping output."""
    match = _PING_TIME.search(output)
    return float(match.group(1)) if match else None


class ConnectivityTester:
    """
    Tests network connectivity from this host to cluster nodes.
    """

    def __init__(self, timeout: float = 2.0, command_timeout: float = 60.0):
        self.timeout = timeout
        self.command_timeout = command_timeout

    def _run(self, args: List[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        timeout = timeout or self.command_timeout
        try:
            return subprocess.run(args, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError:
            raise AdapterUnavailable(args[0], "command not found")
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(" ".join(args), timeout)

    def resolve_default_gateway(self) -> Optional[GatewayInfo]:
        """
        Find the default gateway, preferring IPv4 and falling back to IPv6.

        Returns:
            GatewayInfo, or None if no default route exists
        """
        windows = is_windows()
        for family in ('IPv4', 'IPv6'):
            if windows:
                args = ['route', 'print', '-4', '0.0.0.0'] if family == 'IPv4' \
                    else ['route', 'print', '-6', '::/0']
            else:
                args = ['ip', '-4' if family == 'IPv4' else '-6', 'route', 'show', 'default']

            result = self._run(args, timeout=self.timeout * 5)
            address = parse_gateway(result.stdout, family, windows)
            if address:
                logger.info(f"Default gateway ({family}): {address}")
                return GatewayInfo(address=address, family=family)

        logger.warning("No default gateway found")
        return None

    def ping(self, host: str, timeout: Optional[float] = None) -> PingResult:
        """
        Send a single ICMP echo request.

        Args:
            host: Hostname or IP address
            timeout: Per-ping timeout in seconds

        Returns:
            PingResult
        """
        timeout = timeout or self.timeout
        if is_windows():
            args = ['ping', '-n', '1', '-w', str(int(timeout * 1000)), host]
        else:
            args = ['ping', '-c', '1', '-W', str(max(1, int(timeout))), host]

        start = time.perf_counter()
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=timeout + 2)
        except FileNotFoundError:
            raise AdapterUnavailable('ping', "command not found")
        except subprocess.TimeoutExpired:
            return PingResult(host=host, is_reachable=False, error="Timeout")
        elapsed = (time.perf_counter() - start) * 1000

        # Windows ping exits 0 on "Destination host unreachable" replies
        reachable = result.returncode == 0 and 'unreachable' not in result.stdout.lower()
        if not reachable:
            logger.debug(f"Ping {host} failed: {result.stdout.strip()[-200:]}")
            return PingResult(host=host, is_reachable=False, error="No reply")

        latency = parse_ping_latency(result.stdout)
        return PingResult(host=host, is_reachable=True,
                          latency_ms=latency if latency is not None else elapsed)

    def test_tcp_port(self, host: str, port: int, timeout: Optional[float] = None) -> PortScanResult:
        """
        Test a TCP connection to host:port.

        Returns:
            PortScanResult
        """
        timeout = timeout or self.timeout
        start = time.perf_counter()
        try:
            with socket.create_connection((host, port), timeout=timeout):
                elapsed = (time.perf_counter() - start) * 1000
            return PortScanResult(host=host, port=port, is_open=True, response_time_ms=elapsed)
        except socket.timeout:
            return PortScanResult(host=host, port=port, is_open=False, error="Connection timeout")
        except ConnectionRefusedError:
            return PortScanResult(host=host, port=port, is_open=False, error="Connection refused")
        except OSError as e:
            return PortScanResult(host=host, port=port, is_open=False, error=str(e))

    def local_addresses(self) -> Dict[str, List[str]]:
        """IPv4 and IPv6 addresses of every local interface."""
        families = {socket.AF_INET, socket.AF_INET6}
        return {
            name: [a.address.split("%")[0] for a in addrs if a.family in families]
            for name, addrs in sorted(psutil.net_if_addrs().items())
        }

    def reset_stack(self) -> List[str]:
        """Reset Winsock and the TCP/IP stack. Returns the commands run."""
        self._require_windows("network stack reset")
        commands = [
            ['netsh', 'winsock', 'reset'],
            ['netsh', 'int', 'ip', 'reset'],
        ]
        for args in commands:
            self._check(args)
        return [" ".join(args) for args in commands]

    def flush_dns(self) -> str:
        """Flush the DNS resolver cache."""
        self._require_windows("DNS cache flush")
        args = ['ipconfig', '/flushdns']
        self._check(args)
        return " ".join(args)

    def open_inbound_port(self, port: int, rule_name: Optional[str] = None) -> str:
        """Add a firewall rule allowing inbound TCP on port."""
        self._require_windows("firewall rule")
        rule_name = rule_name or f"HPC Pack TCP {port}"
        args = [
            'netsh', 'advfirewall', 'firewall', 'add', 'rule',
            f'name={rule_name}', 'dir=in', 'action=allow', 'protocol=TCP', f'localport={port}',
        ]
        self._check(args)
        return rule_name

    def _check(self, args: List[str]) -> None:
        result = self._run(args)
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            raise subprocess.CalledProcessError(result.returncode, args, output=output)
        logger.info(f"Ran: {' '.join(args)}")

    @staticmethod
    def _require_windows(operation: str) -> None:
        if not is_windows():
            raise AdapterUnavailable(operation, "requires Windows")
