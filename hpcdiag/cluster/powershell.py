"""Runs PowerShell scripts and decodes their JSON output."""

import json
import re
import subprocess
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import AdapterUnavailable, ProbeError, ProbeTimeout
from ..utils import get_logger

logger = get_logger(__name__)

# Windows PowerShell 5.1 serializes DateTime as "\/Date(1700000000000)\/"
_MS_DATE = re.compile(r'^/Date\((-?\d+)(?:[+-]\d{4})?\)/$')


def parse_ps_datetime(value: Any) -> Optional[datetime]:
    """Parse a DateTime as emitted by ConvertTo-Json on either PowerShell edition."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value

    text = str(value)
    match = _MS_DATE.match(text)
    if match:
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc).replace(tzinfo=None)

    # PowerShell 7 emits ISO-8601 with up to 7 fractional digits
    text = re.sub(r'(\.\d{6})\d+', r'\1', text)
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        logger.debug(f"Unparseable date: {value!r}")
        return None
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def ps_quote(value: str) -> str:
    """Quote a string as a PowerShell single-quoted literal."""
    return "'" + str(value).replace("'", "''") + "'"


class PowerShellRunner:
    """
    Executes a PowerShell script and returns its ConvertTo-Json output as
    a list of records.
    """

    def __init__(self, executable: str = "powershell.exe", timeout: float = 60.0):
        self.executable = executable
        self.timeout = timeout

    def run(self, script: str, timeout: Optional[float] = None) -> str:
        """
        Run a script and return its stdout.

        Raises:
            AdapterUnavailable: PowerShell is not installed
            ProbeTimeout: the script did not finish in time
            ProbeError: the script exited non-zero
        """
        timeout = timeout or self.timeout
        args = [self.executable, '-NoProfile', '-NonInteractive', '-Command', script]
        logger.debug(f"PowerShell: {script}")

        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError:
            raise AdapterUnavailable("PowerShell", f"{self.executable} not found")
        except subprocess.TimeoutExpired:
            raise ProbeTimeout("PowerShell command", timeout)

        if result.returncode != 0:
            message = (result.stderr or result.stdout).strip().splitlines()
            raise ProbeError(message[0] if message else f"PowerShell exited with code {result.returncode}")

        return result.stdout

    def run_json(self, script: str, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        """Run a script whose output is piped to ConvertTo-Json."""
        output = self.run(f"{script} | ConvertTo-Json -Depth 4 -Compress", timeout).strip()
        if not output:
            return []

        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Invalid JSON from PowerShell: {e}")

        # A single object is not wrapped in an array
        if isinstance(data, dict):
            return [data]
        return [item for item in data if isinstance(item, dict)]
