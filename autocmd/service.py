"""
Wait-then-run scheduling loop.

Each cycle blocks for the configured interval, then issues the command
once and reports the result. Long waits are slept in coarse chunks so
progress can be reported between them; the final chunk sleeps exactly
what is left, so the total wait stays accurate.

Cycles run strictly one after another on the calling thread.
"""

import enum
import logging
import math
import time
from typing import Callable, Optional

from autocmd.config import CommandSpec, RepeatPolicy, RunConfig
from autocmd.jobs import CommandExecutor, CycleResult, LaunchFailure
from autocmd.output import BLUE, BOLD, GREEN, RED, YELLOW, OutputSink

logger = logging.getLogger(__name__)

# Longest single sleep while waiting, in seconds
POLL_THRESHOLD = 60.0


class RunOutcome(enum.Enum):
    """How a run loop terminated."""
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class Runner:
    """
    Drives the wait-then-run cycle and the repeat loop.

    Args:
        interval: Seconds to wait before each command
        command: Command to issue on every cycle
        sink: Output sink, pre-configured for verbosity and colour
        print_output: Mirror the command's captured stdout/stderr
        executor: Command executor (default: CommandExecutor())
        sleep: Blocking sleep function (default: time.sleep)
        clock: Monotonic clock in seconds (default: time.monotonic)
    """

    def __init__(
        self,
        interval: float,
        command: CommandSpec,
        sink: Optional[OutputSink] = None,
        print_output: bool = False,
        executor: Optional[CommandExecutor] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        if not math.isfinite(interval) or interval < 0:
            raise ValueError(f"interval must be a non-negative finite number, got {interval}")

        self.interval = interval
        self.command = command
        self.sink = sink or OutputSink()
        self.print_output = print_output
        self.executor = executor or CommandExecutor()
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_config(cls, config: RunConfig, **kwargs) -> 'Runner':
        """Build a runner and its output sink from a run configuration."""
        sink = OutputSink(verbose=config.verbose, color=config.color)
        return cls(
            interval=config.interval,
            command=config.command,
            sink=sink,
            print_output=config.print_output,
            **kwargs
        )

    def _wait(self):
        """Block for the full interval, reporting progress on long waits."""
        sink = self.sink
        sink.status(f"Next command in {sink.highlight(_format_seconds(self.interval), GREEN, BOLD)} seconds.")

        start = self._clock()
        while self.interval - (self._clock() - start) > POLL_THRESHOLD:
            self._sleep(POLL_THRESHOLD)
            elapsed = self._clock() - start
            remaining = math.ceil(max(self.interval - elapsed, 0))
            sink.status(
                f"{sink.highlight(int(elapsed), GREEN)} seconds elapsed! "
                f"{sink.highlight(remaining, GREEN)} seconds remaining."
            )

        remaining = self.interval - (self._clock() - start)
        if remaining > 0:
            self._sleep(remaining)

    def wait_then_run_once(self) -> CycleResult:
        """
        Wait for the interval, then issue the command once.

        Returns:
            CommandSucceeded whatever the command's exit code, or
            LaunchFailure if the command could not be started
        """
        sink = self.sink
        command_str = sink.highlight(self.command.display, BLUE, BOLD)

        self._wait()

        result = self.executor.execute(self.command)
        if isinstance(result, LaunchFailure):
            sink.error(
                f"{sink.highlight('Failed to execute', RED, BOLD)}: {command_str}\n"
                f"Reason: {result.error}"
            )
            return result

        sink.status(f"Issued command {command_str}.")

        if self.print_output:
            if result.succeeded:
                sink.status(f"Command {sink.highlight('succeeded', GREEN, BOLD)}:")
            else:
                sink.status(f"Command {sink.highlight('failed', RED, BOLD)}:")
            sink.mirror(result.raw_stdout or result.stdout, result.raw_stderr or result.stderr)
        else:
            sink.blank()

        return result

    def run(self, policy: Optional[RepeatPolicy] = None) -> RunOutcome:
        """
        Run cycles until the repeat policy is exhausted or a launch fails.

        Args:
            policy: Repeat policy, consumed by the loop (default: infinite)

        Returns:
            RunOutcome.EXHAUSTED or RunOutcome.FAILED
        """
        if policy is None:
            policy = RepeatPolicy.infinite()

        logger.info(f"Starting run of '{self.command.display}' every {self.interval}s ({policy!r})")

        cycle = 0
        while not policy.is_exhausted:
            cycle += 1
            logger.debug(f"Cycle {cycle} started")

            result = self.wait_then_run_once()
            if isinstance(result, LaunchFailure):
                logger.info(f"Run stopped after {cycle} cycle(s): launch failure")
                return RunOutcome.FAILED

            policy.decrement()
            if not policy.is_infinite and not policy.is_exhausted:
                self.sink.status(f"{self.sink.highlight(policy.remaining, YELLOW, BOLD)} repeats remaining.")

        logger.info(f"Run finished after {cycle} cycle(s)")
        return RunOutcome.EXHAUSTED


def _format_seconds(seconds: float) -> str:
    if float(seconds).is_integer():
        return str(int(seconds))
    return f"{seconds:g}"


# Module-level helpers taking the run inputs explicitly
def wait_then_run_once(
    interval: float,
    command: CommandSpec,
    print_output: bool = False,
    verbose: bool = True
) -> CycleResult:
    """Wait for the interval, then issue the command once."""
    runner = Runner(interval, command, sink=OutputSink(verbose=verbose), print_output=print_output)
    return runner.wait_then_run_once()


def run(
    interval: float,
    policy: RepeatPolicy,
    command: CommandSpec,
    print_output: bool = False,
    verbose: bool = True
) -> RunOutcome:
    """Issue the command every interval until the policy is exhausted or a launch fails."""
    runner = Runner(interval, command, sink=OutputSink(verbose=verbose), print_output=print_output)
    return runner.run(policy)
