"""
Command-line interface for AutoCMD.

Parses the interval, repeat count, output flags and the command to issue,
then hands them to the runner and maps its outcome to an exit code.

Example:
    autocmd -i 30 -r 10 -o -- curl -sI https://example.com
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from autocmd import __version__
from autocmd.config import ConfigError, RunConfig, load_environment, parse_non_negative_int
from autocmd.output import BOLD, GREEN, ITALIC, YELLOW
from autocmd.service import Runner, RunOutcome

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_LAUNCH_FAILURE = 1
EXIT_INTERRUPTED = 130


def setup_logging(log_file: str = None, debug: bool = False):
    """Setup logging configuration."""
    package_logger = logging.getLogger("autocmd")
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    # Console handler, quiet unless debugging: status text goes through the output sink
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    package_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
        file_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        package_logger.addHandler(file_handler)


def _non_negative_int(value: str) -> int:
    try:
        return parse_non_negative_int(value)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autocmd",
        description="A simple program that issues a command a certain amount of times with a given interval.",
        epilog="If repeat option is not provided the program shall run indefinitely.",
    )

    parser.add_argument(
        '-i', '--interval',
        type=_non_negative_int,
        required=True,
        help='Interval between commands in seconds'
    )
    parser.add_argument(
        '-r', '--repeat',
        dest='repeat',
        metavar='REPEATS',
        type=_non_negative_int,
        help='Repeat REPEATS times and stop'
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help="Disable AutoCMD standard outputs (doesn't cancel --print_output)"
    )
    parser.add_argument(
        '-o', '--print_output',
        action='store_true',
        help="Show the chosen command outputs in the standard output (doesn't cancel --quiet)"
    )
    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable coloured output'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write log records to this file (default: $AUTOCMD_LOG_FILE)'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging on the console'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        'command',
        nargs=argparse.REMAINDER,
        help='The command to issue, with its arguments'
    )

    return parser


def parse_config(argv: Optional[List[str]] = None) -> RunConfig:
    """
    Parse command-line arguments into a run configuration.

    Exits with status 2 and a usage message on invalid arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # REMAINDER keeps the separator
    if args.command and args.command[0] == '--':
        args.command = args.command[1:]
    if not args.command:
        parser.error("the following arguments are required: command")

    try:
        return RunConfig.from_args(args)
    except ConfigError as e:
        parser.error(str(e))


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    load_environment()
    config = parse_config(argv)
    setup_logging(log_file=config.log_file, debug=config.debug)

    runner = Runner.from_config(config)
    sink = runner.sink
    sink.status(f"{sink.highlight('AutoCMD', YELLOW, BOLD, ITALIC)} {sink.highlight('started', GREEN, BOLD)}!\n")

    try:
        outcome = runner.run(config.repeat_policy())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
        return EXIT_INTERRUPTED

    if outcome is RunOutcome.FAILED:
        return EXIT_LAUNCH_FAILURE
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
