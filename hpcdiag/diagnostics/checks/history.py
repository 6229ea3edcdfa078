"""Job and node history checks."""

from collections import Counter

from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule, fmt_counts, fmt_time

FAILED_STATES = ("failed", "canceled", "cancelled")


class JobHistoryCheck(CheckModule):
    mode = RunMode.JOB_HISTORY
    description = "State histogram of the most recent jobs"
    source_tag = "HPC PowerShell"
    tips = [
        ("Get-HpcJob -State All | Sort-Object SubmitTime -Descending | Select-Object -First 20",
         "Most recent jobs"),
        ("Get-HpcJob -State Failed", "Failed jobs"),
        ("Get-HpcJobHistory -StartDate (Get-Date).AddDays(-7)", "Job history of the last week"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        count = ctx.target.job_count
        outcome = ctx.probe("Get-HpcJob", ctx.adapters.cluster.list_jobs, count)
        if not outcome.ok:
            return

        jobs = outcome.value
        if not jobs:
            out.result("Jobs", CheckStatus.OK, "no jobs found")
            return

        states = Counter(j.state for j in jobs)
        out.line(f"Last {len(jobs)} jobs: {fmt_counts(states)}")

        failed = [j for j in jobs if j.state.lower() in FAILED_STATES]
        if failed:
            out.result("Failed jobs", CheckStatus.WARN,
                       f"{len(failed)} of {len(jobs)} ({', '.join(str(j.id) for j in failed[:ctx.config.sample_rows])})")
        else:
            out.result("Failed jobs", CheckStatus.OK, f"none among the last {len(jobs)}")

        rows = [(j.id, j.name, j.owner, j.state, fmt_time(j.submit_time)) for j in jobs]
        out.table(["Id", "Name", "Owner", "State", "Submitted"], rows, [8, 28, 20, 12, 16])

        if ctx.verbose:
            out.detail(f"Owners: {fmt_counts(Counter(j.owner or '-' for j in jobs))}")
            durations = [(j.end_time - j.start_time).total_seconds()
                         for j in jobs if j.start_time and j.end_time]
            if durations:
                out.detail(f"Average run time: {sum(durations) / len(durations) / 60:.1f} min "
                           f"over {len(durations)} completed jobs")


class JobDetailsCheck(CheckModule):
    mode = RunMode.JOB_DETAILS
    description = "One job with its tasks, exit codes and errors"
    source_tag = "HPC PowerShell"
    requires = ("job_id",)
    tips = [
        ("Get-HpcJob -Id <job> | Format-List *", "Every property of a job"),
        ("Get-HpcTask -JobId <job> | Format-Table TaskId, State, ExitCode, CommandLine",
         "Tasks of a job"),
        ("Get-HpcTask -JobId <job> -State Failed | Format-List ErrorMessage, Output",
         "Errors of failed tasks"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        job_id = ctx.target.job_id

        job = ctx.probe(f"Get-HpcJob {job_id}", ctx.adapters.cluster.get_job, job_id)
        if not job.ok:
            return
        if job.value is None:
            out.result(f"Job {job_id}", CheckStatus.ERROR, "not found")
            return

        j = job.value
        status = CheckStatus.WARN if j.state.lower() in FAILED_STATES else CheckStatus.OK
        out.result(f"Job {j.id}", status, f"{j.name or '-'} ({j.state})")
        out.line(f"Owner: {j.owner or '-'}, Priority: {j.priority or '-'}")
        out.line(f"Submitted {fmt_time(j.submit_time)}, started {fmt_time(j.start_time)}, "
                 f"ended {fmt_time(j.end_time)}")

        tasks = ctx.probe("Get-HpcTask", ctx.adapters.cluster.list_tasks, job_id)
        if not tasks.ok:
            return
        out.line(f"{len(tasks.value)} tasks: {fmt_counts(Counter(t.state for t in tasks.value))}")

        failed = [t for t in tasks.value if t.state.lower() in FAILED_STATES
                  or (t.exit_code not in (None, 0))]
        if failed:
            out.result("Failed tasks", CheckStatus.WARN, f"{len(failed)} of {len(tasks.value)}")

        rows = [(t.task_id, t.state, "" if t.exit_code is None else t.exit_code,
                 t.command_line, t.error_message)
                for t in tasks.value]
        out.table(["Task", "State", "Exit", "Command", "Error"], rows, [8, 10, 6, 36, 36])

        for task in failed:
            out.detail(f"Task {task.task_id} on {task.nodes or '-'}: {task.error_message or 'no message'}")


class NodeHistoryCheck(CheckModule):
    mode = RunMode.NODE_HISTORY
    description = "Node state and health transitions over the last days"
    source_tag = "HPC PowerShell"
    tips = [
        ("Get-HpcNodeStateHistory -StartDate (Get-Date).AddDays(-7)", "State changes of all nodes"),
        ("Get-HpcNodeStateHistory -Name <node>", "State changes of one node"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        start, end = ctx.target.history_window()
        outcome = ctx.probe("Get-HpcNodeStateHistory", ctx.adapters.cluster.get_node_state_history,
                            start, end, ctx.target.node_name)
        if not outcome.ok:
            return

        events = outcome.value
        out.line(f"{len(events)} state changes in the last {ctx.target.days_back} days")
        if not events:
            return

        per_node = Counter(e.node_name for e in events)
        busiest, changes = per_node.most_common(1)[0]
        out.line(f"{len(per_node)} nodes changed state, most often {busiest} ({changes})")

        rows = [(fmt_time(e.time), e.node_name, e.event) for e in events]
        out.table(["Time", "Node", "Event"], rows, [18, 24, 36])

        out.detail_table(["Node", "Changes"], per_node.most_common(), [24, 8])
