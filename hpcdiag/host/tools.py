"""Locating and running the HPC Pack diagnostic binary."""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..errors import ProbeTimeout
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class ToolRunResult:
    """Outcome of one diagnostic binary run."""
    command: str
    return_code: int
    output: str

    @property
    def passed(self) -> bool:
        return self.return_code == 0


class DiagnosticBinary:
    """
    The certificate self-test shipped in the HPC Pack Bin directory.
    """

    def __init__(self, name: str, timeout: float = 60.0):
        self.name = name
        self.timeout = timeout

    def locate(self, install_dir: Optional[str] = None) -> Optional[Path]:
        """Find the binary under <install_dir>\\Bin, then on PATH."""
        if install_dir:
            candidate = Path(install_dir) / "Bin" / self.name
            if candidate.exists():
                return candidate
        found = shutil.which(self.name)
        return Path(found) if found else None

    def run(self, path: Path, args: List[str]) -> ToolRunResult:
        command = [str(path)] + list(args)
        logger.info(f"Running {' '.join(command)}")
        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(self.name, self.timeout)
        output = (result.stdout + result.stderr).strip()
        return ToolRunResult(command=" ".join(command), return_code=result.returncode, output=output)
