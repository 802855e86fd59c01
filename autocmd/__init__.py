"""
AutoCMD

Issue a command repeatedly with a fixed interval between runs.

Features:
- Accurate waits, with progress reported during long intervals
- Bounded or infinite repetition
- Optional mirroring of the command's stdout/stderr
- Stops cleanly, with a diagnostic, if the command cannot be launched
"""

__version__ = "0.3.0"

from autocmd.config import CommandSpec, ConfigError, RepeatPolicy, RunConfig
from autocmd.jobs import CommandExecutor, CommandSucceeded, CycleResult, LaunchFailure
from autocmd.output import OutputSink
from autocmd.service import Runner, RunOutcome, run, wait_then_run_once

__all__ = [
    "CommandSpec",
    "ConfigError",
    "RepeatPolicy",
    "RunConfig",
    "CommandExecutor",
    "CommandSucceeded",
    "CycleResult",
    "LaunchFailure",
    "OutputSink",
    "Runner",
    "RunOutcome",
    "run",
    "wait_then_run_once",
]
