"""Name resolution for scheduler and node host names."""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Union

import dns.exception
import dns.name
import dns.resolver
import dns.reversename

from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class DNSLookupResult:
    """Result of a DNS lookup."""
    query: str
    query_type: str
    success: bool
    answers: List[str] = field(default_factory=list)
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


class DNSTester:
    """
    Resolves names through the system's configured DNS servers.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    def _resolver(self) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver()
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout
        return resolver

    def _query(self, result: DNSLookupResult, qname: Union[str, dns.name.Name]) -> DNSLookupResult:
        start = time.perf_counter()
        try:
            answer = self._resolver().resolve(qname, result.query_type)
        except dns.resolver.NXDOMAIN:
            result.error = "Domain does not exist (NXDOMAIN)"
        except dns.resolver.NoAnswer:
            result.error = f"No {result.query_type} record found"
        except dns.resolver.NoNameservers:
            result.error = "No nameservers available"
        except dns.exception.Timeout:
            result.error = f"DNS query timeout after {self.timeout:g}s"
        else:
            result.success = True
            result.answers = [str(rdata).rstrip('.') for rdata in answer]
        result.response_time_ms = (time.perf_counter() - start) * 1000

        if result.success:
            logger.info(f"{result.query} ({result.query_type}) -> {result.answers}")
        else:
            logger.warning(f"{result.query} ({result.query_type}): {result.error}")
        return result

    def resolve_dns(self, hostname: str, record_type: str = 'A') -> DNSLookupResult:
        """
        Forward lookup of a host name.

        Args:
            hostname: Host name to resolve
            record_type: DNS record type (A, AAAA, CNAME, ...)
        """
        result = DNSLookupResult(query=hostname, query_type=record_type, success=False)
        return self._query(result, hostname)

    def reverse_lookup(self, ip_address: str) -> DNSLookupResult:
        """PTR lookup of an address."""
        result = DNSLookupResult(query=ip_address, query_type='PTR', success=False)
        try:
            qname = dns.reversename.from_address(ip_address)
        except (ValueError, dns.exception.SyntaxError) as e:
            result.error = f"Not an IP address: {e}"
            return result
        return self._query(result, qname)

    def get_system_dns_servers(self) -> List[str]:
        """Nameservers this host is configured to use."""
        try:
            return [str(ns) for ns in self._resolver().nameservers]
        except dns.resolver.NoResolverConfiguration as e:
            logger.error(f"No resolver configuration: {e}")
            return []
