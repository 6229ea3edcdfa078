"""Windows service enumeration."""

from dataclasses import dataclass
from typing import Iterable, List

import psutil

from ..errors import AdapterUnavailable
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceInfo:
    """A Windows service."""
    name: str
    display_name: str
    status: str       # running, stopped, start_pending, ...
    start_type: str   # automatic, manual, disabled

    @property
    def is_running(self) -> bool:
        return self.status == "running"


class ServiceManager:
    """
    Lists services through psutil's Windows service API.
    """

    def list_services(self) -> List[ServiceInfo]:
        if not hasattr(psutil, "win_service_iter"):
            raise AdapterUnavailable("Service control manager", "requires Windows")

        services = []
        for service in psutil.win_service_iter():
            try:
                info = service.as_dict()
            except psutil.Error as e:
                logger.debug(f"Skipping service {service.name()}: {e}")
                continue
            services.append(ServiceInfo(
                name=info.get("name") or "",
                display_name=info.get("display_name") or "",
                status=info.get("status") or "unknown",
                start_type=info.get("start_type") or "unknown",
            ))
        return services

    def find(self, substrings: Iterable[str]) -> List[ServiceInfo]:
        """Services whose name or display name contains any of substrings."""
        needles = [s.lower() for s in substrings]
        matches = [
            s for s in self.list_services()
            if any(n in s.name.lower() or n in s.display_name.lower() for n in needles)
        ]
        matches.sort(key=lambda s: s.name.lower())
        return matches
