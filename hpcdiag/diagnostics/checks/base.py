"""Contract shared by every check module."""

from typing import List, Sequence, Tuple

from ..context import CheckContext
from ..models import CheckStatus, RunMode, RunModeDescriptor, VerbosityMode
from ..render import Reporter
from ..sweep import SweepResult, sweep_nodes


class CheckModule:
    """
    One run mode.

    Subclasses set ``mode``, ``description``, ``source_tag`` and ``tips`` and
    implement ``execute``. ``tips`` is static data: TipsOnly rendering never
    touches the adapters.
    """

    mode: RunMode
    description: str = ""
    source_tag: str = ""
    tips: List[Tuple[str, str]] = []
    # ProbeTarget fields that must be set when this mode runs on its own
    requires: Tuple[str, ...] = ()

    @property
    def title(self) -> str:
        return self.mode.value

    @classmethod
    def descriptor(cls) -> RunModeDescriptor:
        return RunModeDescriptor(name=cls.mode.value, description=cls.description,
                                 source_tag=cls.source_tag)

    def run(self, ctx: CheckContext) -> None:
        ctx.out.header(self.title)
        if ctx.verbosity is VerbosityMode.TIPS_ONLY:
            self.render_tips(ctx.out)
            return
        self.execute(ctx)

    def render_tips(self, out: Reporter) -> None:
        for command, description in self.tips:
            out.tip(command, description)

    def execute(self, ctx: CheckContext) -> None:
        raise NotImplementedError


def render_sweep(ctx: CheckContext, hosts: Sequence[str], label: str = "Reachability") -> SweepResult:
    """Verbose-only reachability sweep with its result lines."""
    if not hosts:
        return SweepResult(requested=0)

    sweep = sweep_nodes(ctx, hosts)
    if sweep.skipped:
        ctx.out.result(label, CheckStatus.SKIPPED,
                       f"{len(hosts)} nodes exceeds the sweep limit of {ctx.config.max_sweep_nodes}")
        return sweep

    status = CheckStatus.OK if not sweep.unreachable else CheckStatus.WARN
    detail = f"{len(sweep.reachable)}/{sweep.requested} nodes reachable"
    if sweep.cancelled:
        detail += " (cancelled)"
    ctx.out.result(label, status, detail)

    if sweep.avg_latency_ms is not None:
        ctx.out.detail(f"Latency avg {sweep.avg_latency_ms:.1f} ms, max {sweep.max_latency_ms:.1f} ms")
    for ping in sweep.unreachable:
        ctx.out.detail(f"Unreachable: {ping.host} ({ping.error or 'no reply'})")
    return sweep


def fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def fmt_counts(counts) -> str:
    """'a=1, b=2' for a mapping or Counter, largest first."""
    items = sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
    return ", ".join(f"{k}={v}" for k, v in items) if items else "none"
