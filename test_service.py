"""
Tests for the wait-then-run cycle and the repeat loop.

Timing is exercised with a fake clock whose sleep advances time, so long
intervals run instantly; a couple of tests use real sleeps and processes.
"""

import io
import sys
import time

import pytest

from autocmd.config import CommandSpec, RepeatPolicy, RunConfig
from autocmd.jobs import CommandExecutor, CommandSucceeded, LaunchFailure
from autocmd.output import OutputSink
from autocmd.service import POLL_THRESHOLD, Runner, RunOutcome, run, wait_then_run_once

MISSING_EXECUTABLE = 'autocmd-test-no-such-executable'


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeExecutor:
    """Records launches and returns canned results."""

    def __init__(self, clock=None, results=None):
        self.clock = clock
        self.results = list(results or [])
        self.launches = []

    def execute(self, spec):
        self.launches.append(self.clock() if self.clock else None)
        if self.results:
            return self.results.pop(0)
        return CommandSucceeded(stdout='', stderr='', exit_code=0)


def _runner(interval=0, executor=None, clock=None, verbose=True, print_output=False):
    clock = clock or FakeClock()
    return Runner(
        interval,
        CommandSpec('echo', ('hi',)),
        sink=OutputSink(verbose=verbose),
        print_output=print_output,
        executor=executor or FakeExecutor(clock),
        sleep=clock.sleep,
        clock=clock,
    )


def _python(code):
    return CommandSpec(sys.executable, ('-c', code))


class TestWaiting:

    @pytest.mark.parametrize('interval', [0, 1, 30, 59.5, 60, 61, 150, 3600, 3601.25])
    def test_total_wait_equals_interval(self, interval):
        clock = FakeClock()
        _runner(interval, clock=clock).wait_then_run_once()

        assert sum(clock.sleeps) == pytest.approx(interval)

    def test_short_interval_sleeps_once(self):
        clock = FakeClock()
        _runner(45, clock=clock).wait_then_run_once()

        assert clock.sleeps == [45]

    def test_interval_at_threshold_sleeps_once(self):
        clock = FakeClock()
        _runner(POLL_THRESHOLD, clock=clock).wait_then_run_once()

        assert clock.sleeps == [POLL_THRESHOLD]

    def test_zero_interval_does_not_sleep(self):
        clock = FakeClock()
        _runner(0, clock=clock).wait_then_run_once()

        assert clock.sleeps == []

    def test_long_interval_sleeps_in_threshold_chunks(self):
        clock = FakeClock()
        _runner(150, clock=clock).wait_then_run_once()

        assert clock.sleeps == [60, 60, 30]

    def test_long_wait_reports_progress(self, capsys):
        _runner(150).wait_then_run_once()

        out = capsys.readouterr().out
        assert 'Next command in 150 seconds.' in out
        assert '60 seconds elapsed! 90 seconds remaining.' in out
        assert '120 seconds elapsed! 30 seconds remaining.' in out

    def test_command_launches_after_the_full_wait(self):
        clock = FakeClock()
        executor = FakeExecutor(clock)
        _runner(125, executor=executor, clock=clock).wait_then_run_once()

        assert executor.launches == [125]

    def test_wait_is_measured_from_entry(self):
        # Time spent before the call does not shorten the wait
        clock = FakeClock()
        clock.now = 1000.0
        executor = FakeExecutor(clock)
        _runner(10, executor=executor, clock=clock).wait_then_run_once()

        assert executor.launches == [1010]

    def test_slow_clock_never_sleeps_a_negative_duration(self):
        clock = FakeClock()

        def overshooting_sleep(seconds):
            clock.sleeps.append(seconds)
            clock.now += seconds + 0.5

        runner = Runner(
            61, CommandSpec('echo'), sink=OutputSink(verbose=False),
            executor=FakeExecutor(), sleep=overshooting_sleep, clock=clock,
        )
        runner.wait_then_run_once()

        assert all(s > 0 for s in clock.sleeps)

    def test_real_sleep_blocks_for_the_interval(self):
        runner = Runner(0.2, _python('pass'), sink=OutputSink(verbose=False))

        start = time.monotonic()
        result = runner.wait_then_run_once()
        elapsed = time.monotonic() - start

        assert isinstance(result, CommandSucceeded)
        assert elapsed >= 0.2

    @pytest.mark.parametrize('interval', [-1, float('nan'), float('inf')])
    def test_invalid_interval_is_rejected(self, interval):
        with pytest.raises(ValueError):
            Runner(interval, CommandSpec('echo'))


class TestOutput:

    def test_mirrors_output_when_enabled(self, capsys):
        runner = Runner(
            0, _python("import sys; print('X'); print('E', file=sys.stderr)"),
            sink=OutputSink(verbose=False), print_output=True,
        )
        runner.wait_then_run_once()

        captured = capsys.readouterr()
        assert captured.out == 'X\n'
        assert captured.err == 'E\n'

    @pytest.mark.parametrize('verbose', [True, False])
    def test_discards_output_when_not_mirroring(self, capsys, verbose):
        runner = Runner(0, _python("print('X')"), sink=OutputSink(verbose=verbose))
        runner.wait_then_run_once()

        assert 'X' not in capsys.readouterr().out

    def test_mirrors_raw_bytes_to_non_utf8_streams(self):
        stdout = io.TextIOWrapper(io.BytesIO(), encoding='ascii')
        stderr = io.TextIOWrapper(io.BytesIO(), encoding='ascii')
        runner = Runner(
            0,
            _python(
                "import sys; "
                "sys.stdout.buffer.write(b'caf\\xc3\\xa9 \\xff\\n'); "
                "sys.stderr.buffer.write(b'\\xe2\\x9c\\x93')"
            ),
            sink=OutputSink(stdout=stdout, stderr=stderr, verbose=True),
            print_output=True,
        )
        runner.wait_then_run_once()

        out = stdout.buffer.getvalue()
        assert out.startswith(b'Next command in 0 seconds.\n')
        assert out.endswith(b'Command succeeded:\ncaf\xc3\xa9 \xff\n')
        assert stderr.buffer.getvalue() == b'\xe2\x9c\x93'

    def test_mirrors_text_to_streams_without_a_buffer(self):
        stdout = io.StringIO()
        sink = OutputSink(stdout=stdout, stderr=io.StringIO(), verbose=False)
        sink.mirror(b'caf\xc3\xa9\n', '')

        assert stdout.getvalue() == 'caf\u00e9\n'

    def test_verbose_mirroring_labels_success(self, capsys):
        runner = Runner(0, _python("print('X')"), sink=OutputSink(verbose=True), print_output=True)
        runner.wait_then_run_once()

        out = capsys.readouterr().out
        assert out.index('Command succeeded:') < out.index('X\n')

    def test_failed_command_is_labelled_and_still_mirrored(self, capsys):
        runner = Runner(
            0, _python("import sys; print('partial'); sys.exit(1)"),
            sink=OutputSink(verbose=True), print_output=True,
        )
        result = runner.wait_then_run_once()

        out = capsys.readouterr().out
        assert isinstance(result, CommandSucceeded)
        assert 'Command failed:' in out
        assert 'partial\n' in out

    def test_non_mirrored_verbose_cycle_prints_heartbeat(self, capsys):
        _runner(0).wait_then_run_once()

        out = capsys.readouterr().out
        assert out == 'Next command in 0 seconds.\nIssued command echo hi.\n\n'

    def test_quiet_cycle_prints_nothing(self, capsys):
        _runner(150, verbose=False).wait_then_run_once()

        captured = capsys.readouterr()
        assert captured.out == ''
        assert captured.err == ''

    def test_colour_wraps_status_text(self, capsys):
        runner = _runner(0)
        runner.sink.color = True
        runner.wait_then_run_once()

        assert '\033[' in capsys.readouterr().out


class TestLaunchFailure:

    def test_reports_diagnostic_and_returns_failure(self, capsys):
        runner = Runner(0, CommandSpec(MISSING_EXECUTABLE, ('--flag',)), sink=OutputSink(verbose=False))
        result = runner.wait_then_run_once()

        err = capsys.readouterr().err
        assert isinstance(result, LaunchFailure)
        assert f'Failed to execute: {MISSING_EXECUTABLE} --flag' in err
        assert 'Reason: ' in err

    def test_infinite_run_stops_after_one_failed_launch(self, capsys):
        calls = []

        class CountingExecutor(CommandExecutor):
            def execute(self, spec):
                calls.append(spec)
                return super().execute(spec)

        runner = Runner(
            0, CommandSpec(MISSING_EXECUTABLE),
            sink=OutputSink(verbose=False), executor=CountingExecutor(),
        )

        assert runner.run(RepeatPolicy.infinite()) is RunOutcome.FAILED
        assert len(calls) == 1

    def test_bounded_run_stops_early_on_failure(self):
        executor = FakeExecutor(results=[
            CommandSucceeded('', '', 0),
            LaunchFailure('boom'),
            CommandSucceeded('', '', 0),
        ])
        runner = _runner(0, executor=executor, verbose=False)

        assert runner.run(RepeatPolicy.bounded(5)) is RunOutcome.FAILED
        assert len(executor.launches) == 2


class TestRepeatLoop:

    def test_bounded_zero_never_launches(self):
        executor = FakeExecutor()
        runner = _runner(10, executor=executor)

        assert runner.run(RepeatPolicy.bounded(0)) is RunOutcome.EXHAUSTED
        assert executor.launches == []

    @pytest.mark.parametrize('count', [1, 2, 7])
    def test_bounded_launches_exactly_n_times_in_sequence(self, count):
        clock = FakeClock()
        executor = FakeExecutor(clock)
        policy = RepeatPolicy.bounded(count)

        outcome = _runner(5, executor=executor, clock=clock, verbose=False).run(policy)

        assert outcome is RunOutcome.EXHAUSTED
        assert executor.launches == [5 * (i + 1) for i in range(count)]
        assert policy.is_exhausted

    def test_non_zero_exit_does_not_stop_the_loop(self):
        executor = FakeExecutor(results=[CommandSucceeded('', '', 2)] * 3)
        runner = _runner(0, executor=executor, verbose=False)

        assert runner.run(RepeatPolicy.bounded(3)) is RunOutcome.EXHAUSTED
        assert len(executor.launches) == 3

    def test_reports_remaining_except_after_last_cycle(self, capsys):
        _runner(0).run(RepeatPolicy.bounded(3))

        lines = capsys.readouterr().out.splitlines()
        assert lines.count('2 repeats remaining.') == 1
        assert lines.count('1 repeats remaining.') == 1
        assert '0 repeats remaining.' not in lines
        assert lines[-1] == ''

    def test_infinite_run_keeps_going_until_a_launch_fails(self):
        results = [CommandSucceeded('', '', 0)] * 25 + [LaunchFailure('gone')]
        executor = FakeExecutor(results=results)
        runner = _runner(1, executor=executor, verbose=False)

        assert runner.run() is RunOutcome.FAILED
        assert len(executor.launches) == 26

    def test_infinite_run_never_reports_remaining(self, capsys):
        executor = FakeExecutor(results=[CommandSucceeded('', '', 0)] * 3 + [LaunchFailure('gone')])
        _runner(0, executor=executor).run(RepeatPolicy.infinite())

        assert 'repeats remaining' not in capsys.readouterr().out

    def test_echo_hi_three_times(self, capsys):
        clock = FakeClock()
        runner = Runner(
            1, _python("print('hi')"),
            sink=OutputSink(verbose=True), print_output=True,
            sleep=clock.sleep, clock=clock,
        )

        assert runner.run(RepeatPolicy.bounded(3)) is RunOutcome.EXHAUSTED

        out = capsys.readouterr().out
        assert clock.sleeps == [1, 1, 1]
        assert out.count('hi\n') == 3
        assert out.count('repeats remaining') == 2
        assert out.rstrip().endswith('hi')

    def test_quiet_run_prints_no_status_lines(self, capsys):
        runner = Runner(
            0, _python("print('X')"),
            sink=OutputSink(verbose=False), print_output=True,
        )
        runner.run(RepeatPolicy.bounded(2))

        assert capsys.readouterr().out == 'X\nX\n'


def test_from_config_carries_flags():
    config = RunConfig(
        interval=3, command=CommandSpec('echo'), verbose=False, print_output=True, color=True,
    )
    runner = Runner.from_config(config)

    assert runner.interval == 3
    assert runner.print_output is True
    assert runner.sink.verbose is False
    assert runner.sink.color is True


def test_module_level_helpers(capsys):
    result = wait_then_run_once(0, _python("print('X')"), print_output=True, verbose=False)
    assert isinstance(result, CommandSucceeded)

    outcome = run(0, RepeatPolicy.bounded(2), _python("print('Y')"), print_output=True, verbose=False)
    assert outcome is RunOutcome.EXHAUSTED

    assert capsys.readouterr().out == 'X\nY\nY\n'
