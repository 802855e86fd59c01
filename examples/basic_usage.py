#!/usr/bin/env python3
"""
Basic Usage Examples for AutoCMD

This script demonstrates driving the runner from Python instead of
the autocmd command line.
"""

import sys

from autocmd import CommandSpec, OutputSink, RepeatPolicy, Runner, RunOutcome


def example_1_bounded_run():
    """Example 1: Print the date three times, one second apart"""
    print("\n" + "=" * 60)
    print("Example 1: Bounded run with mirrored output")
    print("=" * 60)

    command = CommandSpec(sys.executable, ("-c", "import datetime; print(datetime.datetime.now())"))
    runner = Runner(1, command, print_output=True)

    outcome = runner.run(RepeatPolicy.bounded(3))
    print(f"\nRun ended: {outcome.value}")


def example_2_quiet_run():
    """Example 2: Quiet run, only the command's own output is shown"""
    print("\n" + "=" * 60)
    print("Example 2: Quiet run")
    print("=" * 60)

    command = CommandSpec(sys.executable, ("-c", "print('tick')"))
    runner = Runner(0, command, sink=OutputSink(verbose=False), print_output=True)
    runner.run(RepeatPolicy.bounded(2))


def example_3_launch_failure():
    """Example 3: A command that cannot be launched stops the run"""
    print("\n" + "=" * 60)
    print("Example 3: Launch failure")
    print("=" * 60)

    runner = Runner(0, CommandSpec("no-such-command-on-this-machine"))
    outcome = runner.run(RepeatPolicy.infinite())

    assert outcome is RunOutcome.FAILED
    print(f"\nRun ended: {outcome.value}")


def main():
    """Run all examples"""
    example_1_bounded_run()
    example_2_quiet_run()
    example_3_launch_failure()


if __name__ == "__main__":
    main()
