"""
Run configuration for AutoCMD.

Holds the immutable inputs of a run (interval, command, output flags)
and the repeat policy, the only piece of state the run loop mutates.
"""

import logging
import math
import os
import re
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

# Environment variables
ENV_LOG_FILE = "AUTOCMD_LOG_FILE"
ENV_DEBUG = "AUTOCMD_DEBUG"
ENV_NO_COLOR = "NO_COLOR"

_NON_NEGATIVE_INT = re.compile(r"\+?[0-9]+")


class ConfigError(ValueError):
    """Raised when a run configuration is invalid."""
    pass


def parse_non_negative_int(value: str) -> int:
    """
    Parse a command-line value as a non-negative integer.

    Raises:
        ConfigError: If the value is not a non-negative integer
    """
    # ASCII digits only: int() would also take "1_0", " 5 " and non-ASCII digits
    if not isinstance(value, str) or not _NON_NEGATIVE_INT.fullmatch(value):
        raise ConfigError(f"'{value}' is not valid, the value must be a positive integer.")
    return int(value)


def load_environment() -> bool:
    """
    Load a .env file found from the current working directory upwards.

    Returns:
        True if a .env file was found and loaded
    """
    return load_dotenv(find_dotenv(usecwd=True))


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def get_default_log_file() -> Optional[str]:
    """Get the default log file from the environment, if any."""
    return os.environ.get(ENV_LOG_FILE) or None


def get_default_debug() -> bool:
    return _env_flag(ENV_DEBUG)


def color_supported(stream) -> bool:
    """Whether ANSI colours should be written to the given stream."""
    if ENV_NO_COLOR in os.environ:
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


@dataclass(frozen=True)
class CommandSpec:
    """
    The command to issue on every cycle.

    The executable and its arguments are passed to the OS verbatim,
    without shell interpretation.
    """
    executable: str
    args: Tuple[str, ...] = ()

    @classmethod
    def from_argv(cls, argv: List[str]) -> 'CommandSpec':
        if not argv:
            raise ConfigError("a command to execute is required")
        return cls(executable=argv[0], args=tuple(argv[1:]))

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.args]

    @property
    def display(self) -> str:
        """Space-joined command string used in messages."""
        return " ".join(self.argv)


class RepeatPolicy:
    """
    Either infinite, or bounded with a remaining count.

    A bounded policy with zero remaining is exhausted: no more cycles run.
    """

    def __init__(self, remaining: Optional[int] = None):
        if remaining is not None and remaining < 0:
            raise ConfigError(f"repeat count must be non-negative, got {remaining}")
        self._remaining = remaining

    @classmethod
    def infinite(cls) -> 'RepeatPolicy':
        return cls(None)

    @classmethod
    def bounded(cls, remaining: int) -> 'RepeatPolicy':
        return cls(remaining)

    @property
    def is_infinite(self) -> bool:
        return self._remaining is None

    @property
    def remaining(self) -> Optional[int]:
        """Cycles left to run, None for an infinite policy."""
        return self._remaining

    @property
    def is_exhausted(self) -> bool:
        return self._remaining == 0

    def decrement(self):
        """Record one completed cycle."""
        if self._remaining is None:
            return
        if self._remaining == 0:
            raise ValueError("cannot decrement an exhausted repeat policy")
        self._remaining -= 1

    def __eq__(self, other):
        if not isinstance(other, RepeatPolicy):
            return NotImplemented
        return self._remaining == other._remaining

    def __repr__(self):
        if self.is_infinite:
            return "RepeatPolicy.infinite()"
        return f"RepeatPolicy.bounded({self._remaining})"


@dataclass
class RunConfig:
    """
    Everything a run needs, built once at startup.

    Attributes:
        interval: Seconds to wait before each command
        command: Command issued on every cycle
        repeat: Number of cycles, None to repeat indefinitely
        verbose: Print progress and status text
        print_output: Mirror the command's stdout/stderr
        color: Colourise status text
        log_file: Optional file receiving log records
        debug: Log at DEBUG level on the console
    """
    interval: float
    command: CommandSpec
    repeat: Optional[int] = None
    verbose: bool = True
    print_output: bool = False
    color: bool = False
    log_file: Optional[str] = field(default_factory=get_default_log_file)
    debug: bool = field(default_factory=get_default_debug)

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.interval is None or not math.isfinite(self.interval) or self.interval < 0:
            errors.append(f"'interval' must be a non-negative number of seconds, got {self.interval}")

        if self.repeat is not None and self.repeat < 0:
            errors.append(f"'repeat' must be a non-negative integer, got {self.repeat}")

        if self.command is None or not self.command.executable:
            errors.append("'command' cannot be empty")

        return errors

    def repeat_policy(self) -> RepeatPolicy:
        """Build a fresh repeat policy for this configuration."""
        if self.repeat is None:
            return RepeatPolicy.infinite()
        return RepeatPolicy.bounded(self.repeat)

    @classmethod
    def from_args(cls, args) -> 'RunConfig':
        """
        Build a configuration from parsed command-line arguments.

        Raises:
            ConfigError: If the resulting configuration is invalid
        """
        command = CommandSpec.from_argv(list(args.command))
        config = cls(
            interval=args.interval,
            command=command,
            repeat=args.repeat,
            verbose=not args.quiet,
            print_output=args.print_output,
            color=not args.no_color and color_supported(sys.stdout),
            log_file=args.log_file or get_default_log_file(),
            debug=args.debug or get_default_debug(),
        )

        errors = config.validate()
        if errors:
            raise ConfigError("; ".join(errors))

        logger.debug(f"Loaded run configuration: {config}")
        return config
