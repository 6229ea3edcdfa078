"""HTTPS calls to the cluster naming service."""

import time
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import requests
from requests.exceptions import ConnectTimeout, ConnectionError, RequestException, SSLError
from urllib3.exceptions import InsecureRequestWarning

from ..errors import TrustOverrideError
from ..utils import get_logger

logger = get_logger(__name__)

# Relaxed trust is chosen per request
warnings.filterwarnings('ignore', category=InsecureRequestWarning)


@dataclass(frozen=True)
class TrustPolicy:
    """
    Server-certificate trust for one request.

    The policy is handed to the single call that needs it; nothing about it
    outlives that call.
    """
    verify_server: bool = True
    ca_bundle: Optional[str] = None

    @classmethod
    def relaxed(cls) -> "TrustPolicy":
        return cls(verify_server=False)

    def requests_verify(self) -> Union[bool, str]:
        """Translate the policy into the ``verify`` argument of requests."""
        if not self.verify_server:
            return False
        if self.ca_bundle:
            if not Path(self.ca_bundle).exists():
                raise TrustOverrideError(f"CA bundle not found: {self.ca_bundle}")
            return self.ca_bundle
        return True


@dataclass
class HTTPSProbeResult:
    """Result of an HTTPS request."""
    url: str
    is_accessible: bool
    status_code: Optional[int] = None
    response_time_ms: Optional[float] = None
    client_cert_used: bool = False
    body: Optional[str] = None
    error: Optional[str] = None


class NamingEndpointClient:
    """
    Issues HTTPS requests to the cluster naming endpoint.
    """

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout

    def get(
        self,
        url: str,
        trust: TrustPolicy,
        client_cert: Optional[Tuple[str, str]] = None
    ) -> HTTPSProbeResult:
        """
        GET a URL with an explicit trust policy.

        Args:
            url: Full https:// URL
            trust: Server-certificate policy for this request only
            client_cert: Optional (cert_pem_path, key_pem_path)

        Returns:
            HTTPSProbeResult
        """
        logger.info(f"HTTPS GET {url} (verify={trust.verify_server}, client_cert={client_cert is not None})")
        result = HTTPSProbeResult(url=url, is_accessible=False, client_cert_used=client_cert is not None)
        verify = trust.requests_verify()

        try:
            start = time.perf_counter()
            response = requests.get(url, timeout=self.timeout, verify=verify, cert=client_cert)
            elapsed = (time.perf_counter() - start) * 1000

            result.is_accessible = True
            result.status_code = response.status_code
            result.response_time_ms = elapsed
            result.body = response.text[:500]
            logger.info(f"HTTPS {response.status_code}: {url} ({elapsed:.1f}ms)")

        except SSLError as e:
            result.error = f"TLS error: {e}"
            logger.warning(f"HTTPS TLS error: {url} - {e}")
        except ConnectTimeout:
            result.error = "Connection timeout"
            logger.warning(f"HTTPS timeout: {url}")
        except ConnectionError as e:
            result.error = f"Connection error: {e}"
            logger.warning(f"HTTPS connection error: {url}")
        except RequestException as e:
            result.error = f"Request error: {e}"
            logger.error(f"HTTPS request error: {url} - {e}")

        return result
