"""SQL Server readiness probe."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote_plus

import sqlalchemy
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import NullPool

from ..errors import AdapterUnavailable, ProbeError
from ..utils import get_logger

logger = get_logger(__name__)

_INSTANCE = re.compile(r'(?:^|;)\s*(?:Data Source|Server|Address|Addr)\s*=\s*([^;]+)', re.IGNORECASE)

VERSION_QUERY = "SELECT CAST(SERVERPROPERTY('Edition') AS nvarchar(128)), " \
                "CAST(SERVERPROPERTY('ProductVersion') AS nvarchar(128))"

# ADO.NET keyword -> ODBC keyword
_ODBC_KEYWORDS = {
    'data source': 'Server',
    'server': 'Server',
    'address': 'Server',
    'addr': 'Server',
    'initial catalog': 'Database',
    'database': 'Database',
    'user id': 'UID',
    'uid': 'UID',
    'password': 'PWD',
    'pwd': 'PWD',
}


@dataclass
class SqlServerInfo:
    """Edition and version reported by a SQL Server instance."""
    instance: str
    edition: str
    version: str


def extract_instance_name(connection_string: str) -> Optional[str]:
    """Return the server/instance part of a connection string."""
    match = _INSTANCE.search(connection_string or "")
    return match.group(1).strip() if match else None


def parse_connection_string(connection_string: str) -> Dict[str, str]:
    parts = {}
    for item in connection_string.split(';'):
        if '=' in item:
            key, value = item.split('=', 1)
            parts[key.strip().lower()] = value.strip()
    return parts


def to_odbc_connection_string(connection_string: str, driver: str,
                              trust_server_certificate: bool = True) -> str:
    """Translate an ADO.NET SQL connection string into ODBC form."""
    parts = parse_connection_string(connection_string)
    odbc = {'Driver': '{' + driver + '}'}

    for key, value in parts.items():
        mapped = _ODBC_KEYWORDS.get(key)
        if mapped:
            odbc[mapped] = value

    if parts.get('integrated security', '').lower() in ('true', 'sspi', 'yes'):
        odbc['Trusted_Connection'] = 'yes'
    odbc['Encrypt'] = 'yes'
    if trust_server_certificate:
        odbc['TrustServerCertificate'] = 'yes'

    return ';'.join(f"{k}={v}" for k, v in odbc.items())


class SqlProbe:
    """
    Connects to the scheduler database server through SQLAlchemy.
    """

    def __init__(self, timeout: float = 15.0, driver: str = "ODBC Driver 18 for SQL Server"):
        self.timeout = timeout
        self.driver = driver

    def connect(self, connection_string: str) -> sqlalchemy.engine.Connection:
        """
        Open a connection that trusts the server certificate.

        Raises:
            AdapterUnavailable: the ODBC driver stack is missing
            ProbeError: the server refused or could not be reached
        """
        odbc = to_odbc_connection_string(connection_string, self.driver)
        url = "mssql+pyodbc:///?odbc_connect=" + quote_plus(odbc)

        try:
            engine = sqlalchemy.create_engine(
                url, poolclass=NullPool, connect_args={'timeout': int(self.timeout)}
            )
        except ImportError as e:
            raise AdapterUnavailable("SQL client", str(e))

        try:
            return engine.connect()
        except DBAPIError as e:
            raise ProbeError(f"SQL connection failed: {e.orig}")

    def query_scalar_pair(self, conn: sqlalchemy.engine.Connection, query: str) -> Tuple[Any, Any]:
        """Run a query and return the first two columns of the first row."""
        try:
            row = conn.execute(sqlalchemy.text(query)).first()
        except DBAPIError as e:
            raise ProbeError(f"SQL query failed: {e.orig}")
        if row is None:
            raise ProbeError("SQL query returned no rows")
        return row[0], row[1]

    def server_info(self, connection_string: str) -> SqlServerInfo:
        """Connect, read edition and version, and disconnect."""
        instance = extract_instance_name(connection_string) or "(default)"
        conn = self.connect(connection_string)
        try:
            edition, version = self.query_scalar_pair(conn, VERSION_QUERY)
        finally:
            conn.close()
        logger.info(f"SQL {instance}: {edition} {version}")
        return SqlServerInfo(instance=instance, edition=str(edition), version=str(version))
