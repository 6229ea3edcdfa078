"""Network probes."""

from .connectivity import ConnectivityTester, GatewayInfo, PingResult, PortScanResult
from .dns import DNSTester, DNSLookupResult
from .https import NamingEndpointClient, TrustPolicy, HTTPSProbeResult

__all__ = [
    "ConnectivityTester",
    "GatewayInfo",
    "PingResult",
    "PortScanResult",
    "DNSTester",
    "DNSLookupResult",
    "NamingEndpointClient",
    "TrustPolicy",
    "HTTPSProbeResult",
]
