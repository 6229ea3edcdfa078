"""Registry of run modes and their check modules."""

from typing import Dict, Iterable, List, Optional, Type

from ..errors import RegistryError, UnknownRunMode
from .checks import ALL_CHECKS, CheckModule
from .models import COMPOSITE_MODES, RunMode, RunModeDescriptor

COMPOSITE_DESCRIPTORS = {
    RunMode.ALL: RunModeDescriptor(
        name=RunMode.ALL.value,
        description="Runs every diagnostic check in a fixed order",
        source_tag="composite",
    ),
    RunMode.LIST_MODULES: RunModeDescriptor(
        name=RunMode.LIST_MODULES.value,
        description="Lists the available run modes",
        source_tag="meta",
    ),
}

# Extra names accepted on the command line
ALIASES = {
    "listrunmodes": RunMode.LIST_MODULES,
}


class RunModeRegistry:
    """
    Maps run modes to check modules.

    Built once; every non-composite RunMode must have exactly one handler.
    """

    def __init__(self, checks: Optional[Iterable[Type[CheckModule]]] = None):
        checks = list(ALL_CHECKS if checks is None else checks)
        self._handlers: Dict[RunMode, CheckModule] = {}

        for check_cls in checks:
            mode = getattr(check_cls, "mode", None)
            if not isinstance(mode, RunMode):
                raise RegistryError(f"{check_cls.__name__} has no run mode")
            if mode in COMPOSITE_MODES:
                raise RegistryError(f"{check_cls.__name__} claims composite mode {mode.value}")
            if mode in self._handlers:
                raise RegistryError(
                    f"Run mode {mode.value} registered twice "
                    f"({type(self._handlers[mode]).__name__}, {check_cls.__name__})"
                )
            self._handlers[mode] = check_cls()

        missing = [m.value for m in RunMode if m not in COMPOSITE_MODES and m not in self._handlers]
        if missing:
            raise RegistryError(f"No handler for run modes: {', '.join(missing)}")

        self._descriptors: List[RunModeDescriptor] = [
            type(self._handlers[mode]).descriptor()
            for mode in RunMode if mode not in COMPOSITE_MODES
        ] + [COMPOSITE_DESCRIPTORS[mode] for mode in COMPOSITE_MODES]

        names = [d.name.lower() for d in self._descriptors]
        if len(names) != len(set(names)):
            raise RegistryError("Duplicate run mode descriptor")

    def list_modes(self) -> List[RunModeDescriptor]:
        return list(self._descriptors)

    def handler(self, mode: RunMode) -> CheckModule:
        try:
            return self._handlers[mode]
        except KeyError:
            raise RegistryError(f"{mode.value} has no check module")

    @staticmethod
    def resolve(name: str) -> RunMode:
        """Case-insensitive lookup of a run mode name."""
        key = name.strip().lower()
        if key in ALIASES:
            return ALIASES[key]
        for mode in RunMode:
            if mode.value.lower() == key:
                return mode
        raise UnknownRunMode(name)
