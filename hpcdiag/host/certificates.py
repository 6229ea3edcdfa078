"""Certificate store lookups and PFX loading."""

import base64
import secrets
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)

from ..cluster.powershell import PowerShellRunner, parse_ps_datetime, ps_quote
from ..errors import ProbeError
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class CertificateInfo:
    """A certificate found in a store or loaded from a PFX file."""
    thumbprint: str
    subject: str
    has_private_key: bool
    not_after: Optional[datetime] = None
    source: str = ""  # store path or PFX file path
    cert_pem: Optional[bytes] = field(default=None, repr=False)
    key_pem: Optional[bytes] = field(default=None, repr=False)

    @property
    def is_expired(self) -> bool:
        return self.not_after is not None and self.not_after < datetime.now()


def _cert_path(store: str, thumbprint: Optional[str] = None) -> str:
    path = "Cert:\\" + store
    return path + "\\" + thumbprint if thumbprint else path


def _pfx_to_info(data: bytes, password: Optional[str], source: str) -> CertificateInfo:
    key, cert, _ = pkcs12.load_key_and_certificates(
        data, password.encode() if password else None
    )
    if cert is None:
        raise ProbeError(f"No certificate in {source}")

    key_pem = None
    if key is not None:
        key_pem = key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())

    return CertificateInfo(
        thumbprint=cert.fingerprint(hashes.SHA1()).hex().upper(),
        subject=cert.subject.rfc4514_string(),
        has_private_key=key is not None,
        not_after=cert.not_valid_after_utc.replace(tzinfo=None),
        source=source,
        cert_pem=cert.public_bytes(Encoding.PEM),
        key_pem=key_pem,
    )


class CertificateStore:
    """
    Reads the Windows certificate stores through PowerShell's Cert: drive.
    """

    _SELECT = (
        " | Select-Object Thumbprint, Subject, HasPrivateKey, "
        "@{n='NotAfter';e={$_.NotAfter.ToString('s')}}"
    )

    def __init__(self, runner: PowerShellRunner):
        self.runner = runner

    def _records_to_info(self, records, store: str) -> List[CertificateInfo]:
        return [
            CertificateInfo(
                thumbprint=str(r.get("Thumbprint") or "").upper(),
                subject=str(r.get("Subject") or ""),
                has_private_key=bool(r.get("HasPrivateKey")),
                not_after=parse_ps_datetime(r.get("NotAfter")),
                source=store,
            )
            for r in records
        ]

    def find_by_subject_substring(self, store: str, pattern: str) -> List[CertificateInfo]:
        """
        Find certificates whose subject contains pattern.

        Args:
            store: Store path such as 'LocalMachine\\My'
            pattern: Case-insensitive subject substring
        """
        records = self.runner.run_json(
            f"Get-ChildItem -Path {ps_quote(_cert_path(store))} | "
            f"Where-Object {{ $_.Subject -like {ps_quote('*' + pattern + '*')} }}" + self._SELECT
        )
        found = self._records_to_info(records, store)
        logger.info(f"{len(found)} certificates matching '{pattern}' in {store}")
        return found

    def find_by_thumbprint(self, store: str, thumbprint: str) -> Optional[CertificateInfo]:
        thumbprint = thumbprint.replace(" ", "").upper()
        records = self.runner.run_json(
            f"Get-ChildItem -Path {ps_quote(_cert_path(store))} | "
            f"Where-Object {{ $_.Thumbprint -eq {ps_quote(thumbprint)} }}" + self._SELECT
        )
        found = self._records_to_info(records, store)
        return found[0] if found else None

    def load_pfx(self, path: str, password: Optional[str] = None) -> CertificateInfo:
        """Load a certificate and its private key from a PFX file."""
        pfx_path = Path(path)
        if not pfx_path.exists():
            raise ProbeError(f"PFX file not found: {path}")
        return _pfx_to_info(pfx_path.read_bytes(), password, str(pfx_path))

    def export_key_material(self, cert: CertificateInfo) -> CertificateInfo:
        """
        Export a store certificate with its private key.

        Fails with ProbeError when the key is marked non-exportable.
        """
        if cert.key_pem is not None:
            return cert

        password = secrets.token_urlsafe(16)
        output = self.runner.run(
            "$ErrorActionPreference = 'Stop'; "
            f"$c = Get-Item -Path {ps_quote(_cert_path(cert.source, cert.thumbprint))}; "
            f"[Convert]::ToBase64String($c.Export('Pfx', {ps_quote(password)}))"
        )
        exported = _pfx_to_info(base64.b64decode(output.strip()), password, cert.source)
        if exported.key_pem is None:
            raise ProbeError(f"Private key for {cert.thumbprint} could not be exported")
        return exported


@contextmanager
def client_pem_files(cert: CertificateInfo) -> Iterator[Tuple[str, str]]:
    """
    Write a certificate's PEM material to a private temporary directory for
    the duration of one request.
    """
    if cert.cert_pem is None or cert.key_pem is None:
        raise ProbeError(f"No exportable key material for {cert.thumbprint}")

    with tempfile.TemporaryDirectory(prefix="hpcdiag-") as tmp:
        cert_path = Path(tmp) / "client.crt"
        key_path = Path(tmp) / "client.key"
        cert_path.write_bytes(cert.cert_pem)
        key_path.write_bytes(cert.key_pem)
        key_path.chmod(0o600)
        yield str(cert_path), str(key_path)
