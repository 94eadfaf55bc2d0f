"""
Tests for the replication pipeline: channel, line source, sink and manager.
"""
import io
import threading
import time
from unittest import mock

import pytest

from config import ReplicatorConfig
from executors.base import CommandExecutor, ExecutionResult
from replication.channel import CommandChannel
from replication.exceptions import ChannelClosedError
from replication.manager import ReplicationManager, PipelineState
from replication.protocol import Command
from replication.sink import ReplicationSink
from replication.source import LineSource


class RecordingExecutor(CommandExecutor):
    """Executor that records every call instead of talking to Redis."""

    def __init__(self, fail_on=(), raise_on=(), delay=0.0):
        self.calls = []
        self.fail_on = set(fail_on)
        self.raise_on = set(raise_on)
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.lock = threading.Lock()

    def ping(self):
        pass

    def execute(self, name, args):
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            self.calls.append((name, list(args)))
            if name in self.raise_on:
                raise RuntimeError(f"boom on {name}")
            if name in self.fail_on:
                return ExecutionResult.failed(Exception(f"ERR rejected {name}"))
            return ExecutionResult.ok("OK")
        finally:
            with self.lock:
                self.in_flight -= 1


def monitor_line(*tokens, db=0, client="192.168.23.10:33072"):
    quoted = " ".join(f'"{t}"' for t in tokens)
    return f'1592134898.858273 [{db} {client}] {quoted}\n'


@pytest.fixture
def config():
    return ReplicatorConfig()


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def manager(config, executor):
    return ReplicationManager(config, executor)


# ============================================================================
# Channel Tests
# ============================================================================

class TestCommandChannel:
    """Test the bounded command channel."""

    def test_fifo_order(self):
        channel = CommandChannel(capacity=10)
        commands = [Command(name=f"CMD{i}") for i in range(5)]
        for command in commands:
            channel.put(command)
        channel.close()

        assert list(channel) == commands

    def test_get_after_close_returns_none(self):
        channel = CommandChannel()
        channel.close()
        assert channel.get() is None
        assert channel.get() is None

    def test_put_after_close_raises(self):
        channel = CommandChannel()
        channel.close()
        with pytest.raises(ChannelClosedError):
            channel.put(Command(name="PING"))

    def test_close_is_idempotent(self):
        channel = CommandChannel(capacity=1)
        channel.close()
        channel.close()
        assert list(channel) == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            CommandChannel(capacity=0)

    def test_put_blocks_when_full(self):
        channel = CommandChannel(capacity=2)
        channel.put(Command(name="A"))
        channel.put(Command(name="B"))

        done = threading.Event()

        def producer():
            channel.put(Command(name="C"))
            done.set()

        thread = threading.Thread(target=producer, daemon=True)
        thread.start()

        assert not done.wait(0.2)
        assert channel.get().name == "A"
        assert done.wait(2.0)
        thread.join(2.0)

        channel.close()
        assert [c.name for c in channel] == ["B", "C"]

    def test_close_does_not_block_when_full(self):
        channel = CommandChannel(capacity=1)
        channel.put(Command(name="A"))

        thread = threading.Thread(target=channel.close, daemon=True)
        thread.start()
        thread.join(1.0)
        assert not thread.is_alive()

        assert [c.name for c in channel] == ["A"]

    def test_slot_freed_by_get(self):
        channel = CommandChannel(capacity=1)
        channel.put(Command(name="A"))
        assert channel.get().name == "A"

        channel.put(Command(name="B"))
        channel.close()
        assert [c.name for c in channel] == ["B"]

    def test_get_blocks_when_empty(self):
        channel = CommandChannel()
        received = []

        def consumer():
            received.append(channel.get())

        thread = threading.Thread(target=consumer, daemon=True)
        thread.start()
        thread.join(0.2)
        assert thread.is_alive()

        channel.put(Command(name="PING"))
        thread.join(2.0)
        assert [c.name for c in received] == ["PING"]


# ============================================================================
# Line Source Tests
# ============================================================================

class TestLineSource:
    """Test reading monitor output."""

    def test_yields_commands_in_order(self):
        lines = [monitor_line("SET", f"k{i}", str(i)) for i in range(3)]
        commands = list(LineSource(lines))

        assert [c.name for c in commands] == ["SET", "SET", "SET"]
        assert [c.args for c in commands] == [(b"k0", b"0"), (b"k1", b"1"), (b"k2", b"2")]

    def test_skips_noise_and_empty_commands(self):
        lines = [
            "OK\n",
            monitor_line("GET", "a"),
            "\n",
            "1592134898.858273 [0 127.0.0.1:1] no quotes\n",
            monitor_line("GET", "b"),
        ]
        source = LineSource(lines)
        commands = list(source)

        assert [c.args for c in commands] == [(b"a",), (b"b",)]
        assert source.get_stats() == {
            'lines_read': 5,
            'lines_skipped': 2,
            'commands_parsed': 2,
            'commands_discarded': 1
        }

    def test_reads_binary_stream(self):
        stream = io.BytesIO(monitor_line("SET", "k", r"\xff").encode() + b"OK\n")
        commands = list(LineSource(stream))

        assert len(commands) == 1
        assert commands[0].args == (b"k", b"\xff")

    def test_pump_closes_channel_at_end(self):
        channel = CommandChannel()
        LineSource([monitor_line("PING")]).pump(channel)

        assert [c.name for c in channel] == ["PING"]

    def test_pump_closes_channel_on_read_error(self):
        def broken_stream():
            yield monitor_line("SET", "a", "1")
            raise OSError("stdin went away")

        channel = CommandChannel()
        with pytest.raises(OSError):
            LineSource(broken_stream()).pump(channel)

        assert [c.name for c in channel] == ["SET"]

    def test_pump_closes_full_channel_on_read_error(self):
        def broken_stream():
            yield monitor_line("SET", "a", "1")
            raise OSError("stdin went away")

        channel = CommandChannel(capacity=1)
        errors = []

        def producer():
            try:
                LineSource(broken_stream()).pump(channel)
            except OSError as e:
                errors.append(e)

        thread = threading.Thread(target=producer, daemon=True)
        thread.start()
        thread.join(1.0)
        assert not thread.is_alive()

        assert len(errors) == 1
        assert [c.name for c in channel] == ["SET"]


# ============================================================================
# Sink Tests
# ============================================================================

class TestReplicationSink:
    """Test forwarding commands to the executor."""

    def test_forwards_name_and_args(self, config, executor):
        sink = ReplicationSink(executor, config)
        result = sink.replicate(Command(name="HSET", args=(b"h", b"f", b"v")))

        assert result.success
        assert executor.calls == [("HSET", [b"h", b"f", b"v"])]

    def test_failure_does_not_stop_drain(self, config):
        executor = RecordingExecutor(fail_on={"BAD"})
        sink = ReplicationSink(executor, config)
        channel = CommandChannel()
        for name in ("SET", "BAD", "GET"):
            channel.put(Command(name=name, raw=f'"{name}"'))
        channel.close()

        with mock.patch.object(sink.logger, 'warning') as warning:
            sink.drain(channel)

        assert [name for name, _ in executor.calls] == ["SET", "BAD", "GET"]
        assert sink.get_stats() == {'commands_replicated': 2, 'commands_failed': 1}
        warning.assert_called_once()
        assert '"BAD"' in warning.call_args[0][0]

    def test_executor_exception_is_isolated(self, config):
        executor = RecordingExecutor(raise_on={"BOOM"})
        sink = ReplicationSink(executor, config)

        with mock.patch.object(sink.logger, 'warning'):
            result = sink.replicate(Command(name="BOOM", raw='"BOOM"'))
        assert not result.success
        assert isinstance(result.error, RuntimeError)

        assert sink.replicate(Command(name="PING")).success

    def test_verbose_logs_raw_text(self, executor):
        sink = ReplicationSink(executor, ReplicatorConfig(verbose=True))
        with mock.patch.object(sink.logger, 'info') as info:
            sink.replicate(Command(name="PING", raw='"PING"'))

        info.assert_called_once()
        assert info.call_args[0][0] == '"PING"'

    def test_quiet_by_default(self, config, executor):
        sink = ReplicationSink(executor, config)
        with mock.patch.object(sink.logger, 'info') as info:
            sink.replicate(Command(name="PING", raw='"PING"'))

        info.assert_not_called()


# ============================================================================
# Manager Tests
# ============================================================================

class TestReplicationManager:
    """Test the full producer/consumer pipeline."""

    def test_end_to_end_hset(self, manager, executor):
        line = ('1592134898.858273 [0 192.168.23.10:33072] '
                '"HSET" "wh:7134878504547625" "207108" "abc"\n')
        stats = manager.run([line])

        assert executor.calls == [("HSET", [b"wh:7134878504547625", b"207108", b"abc"])]
        assert stats.commands_replicated == 1

    def test_preserves_order(self, manager, executor):
        lines = [monitor_line("INCR", f"counter:{i}") for i in range(500)]
        manager.run(lines)

        assert [args for _, args in executor.calls] == [[f"counter:{i}".encode()] for i in range(500)]

    def test_failed_command_followed_by_next(self, config):
        executor = RecordingExecutor(fail_on={"HSET"})
        manager = ReplicationManager(config, executor)

        with mock.patch.object(manager.sink.logger, 'warning'):
            stats = manager.run([monitor_line("HSET", "h", "f"), monitor_line("SET", "k", "v")])

        assert [name for name, _ in executor.calls] == ["HSET", "SET"]
        assert stats.commands_failed == 1
        assert stats.commands_replicated == 1
        assert manager.state == PipelineState.CLOSED

    def test_backpressure_drops_nothing(self):
        executor = RecordingExecutor(delay=0.001)
        manager = ReplicationManager(ReplicatorConfig(channel_capacity=1), executor)

        stats = manager.run([monitor_line("SET", f"k{i}", "v") for i in range(50)])

        assert len(executor.calls) == 50
        assert stats.commands_parsed == 50
        assert executor.max_in_flight == 1

    def test_state_transitions(self, manager):
        assert manager.state == PipelineState.NOT_STARTED
        manager.run([])
        assert manager.state == PipelineState.CLOSED

    def test_cannot_run_twice(self, manager):
        manager.run([])
        with pytest.raises(RuntimeError):
            manager.run([])

    def test_stats(self, manager):
        stats = manager.run(["OK\n", monitor_line("PING"), monitor_line("GET", "k")])

        assert stats.to_dict() == {
            'lines_read': 3,
            'lines_skipped': 1,
            'commands_parsed': 2,
            'commands_discarded': 0,
            'commands_replicated': 2,
            'commands_failed': 0
        }

    def test_read_error_raised_after_drain(self, manager, executor):
        def broken_stream():
            yield monitor_line("SET", "a", "1")
            yield monitor_line("SET", "b", "2")
            raise OSError("stdin went away")

        with pytest.raises(OSError):
            manager.run(broken_stream())

        assert len(executor.calls) == 2
        assert manager.state == PipelineState.CLOSED
