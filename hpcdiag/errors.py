"""Exception hierarchy shared by the probe adapters and the dispatcher."""

from typing import Optional


class DiagnosticError(Exception):
    """Base class for all errors raised by the diagnostic tool."""


class UnknownRunMode(DiagnosticError):
    """The requested run mode is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown run mode: {name}")
        self.name = name


class ValidationError(DiagnosticError):
    """A command-line parameter or parameter combination is invalid."""


class ConfirmationDeclined(DiagnosticError):
    """The operator declined a confirmation prompt."""


class RegistryError(DiagnosticError):
    """The run-mode registry and the handler table disagree."""


class ProbeError(DiagnosticError):
    """A single external call failed."""


class AdapterUnavailable(ProbeError):
    """The facility behind an adapter does not exist on this host."""

    def __init__(self, adapter: str, reason: Optional[str] = None):
        message = f"{adapter} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.adapter = adapter
        self.reason = reason


class ProbeTimeout(ProbeError):
    """An external call did not finish within its timeout."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} timed out after {timeout:g}s")
        self.operation = operation
        self.timeout = timeout


class ProbeUnreachable(ProbeError):
    """The remote end of a probe could not be reached."""


class TrustOverrideError(ProbeError):
    """A per-request TLS trust policy could not be applied."""
