"""Local HPC Pack configuration (registry and environment)."""

import os
import sys
from dataclasses import dataclass
from typing import List, Optional

from ..errors import AdapterUnavailable
from ..utils import get_logger

logger = get_logger(__name__)

HPC_KEY = r"SOFTWARE\Microsoft\HPC"
SECURITY_KEY = r"SOFTWARE\Microsoft\HPC\Security"


@dataclass
class ClusterConfig:
    """Cluster settings stored on this host."""
    installed_role: Optional[str] = None
    cert_thumbprint: Optional[str] = None
    connection_string: Optional[str] = None
    install_dir: Optional[str] = None
    scheduler: Optional[str] = None


def mask_secrets(connection_string: str) -> str:
    """Hide password values in a connection string."""
    parts = []
    for item in connection_string.split(';'):
        key = item.split('=', 1)[0].strip().lower()
        if key in ('password', 'pwd') and '=' in item:
            parts.append(item.split('=', 1)[0] + '=****')
        else:
            parts.append(item)
    return ';'.join(parts)


class ConfigStore:
    """
    Reads HPC Pack settings from HKLM\\SOFTWARE\\Microsoft\\HPC.

    The CCP_* environment variables set by the HPC Pack installer take
    precedence over the registry.
    """

    def _read_value(self, winreg, key_path: str, name: str) -> Optional[str]:
        try:
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path) as key:
                value, _ = winreg.QueryValueEx(key, name)
        except OSError:
            return None

        if isinstance(value, list):
            return ", ".join(str(v) for v in value)
        return str(value) if value is not None else None

    def read_cluster_config(self) -> ClusterConfig:
        """
        Raises:
            AdapterUnavailable: not a Windows host
        """
        if sys.platform != "win32":
            raise AdapterUnavailable("Registry", "requires Windows")
        import winreg

        config = ClusterConfig(
            installed_role=self._read_value(winreg, HPC_KEY, "InstalledRole"),
            cert_thumbprint=self._read_value(winreg, HPC_KEY, "SSLThumbprint"),
            connection_string=self._read_value(winreg, SECURITY_KEY, "SchedulerDbConnectionString"),
            install_dir=self._read_value(winreg, HPC_KEY, "InstallDir"),
            scheduler=self._read_value(winreg, HPC_KEY, "ClusterName"),
        )
        config.install_dir = os.environ.get("CCP_HOME") or config.install_dir
        config.scheduler = os.environ.get("CCP_SCHEDULER") or config.scheduler
        logger.info(f"Cluster config: role={config.installed_role}, scheduler={config.scheduler}")
        return config

    @staticmethod
    def installed_roles(config: ClusterConfig) -> List[str]:
        if not config.installed_role:
            return []
        return [r.strip() for r in config.installed_role.split(',') if r.strip()]
