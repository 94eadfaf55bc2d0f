"""
Replication Manager for the monitor replicator.

Wires the line source and the replication sink together through a
bounded command channel and runs them as two threads.
"""

import threading
import logging
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from config import ReplicatorConfig
from executors.base import CommandExecutor
from replication.channel import CommandChannel
from replication.sink import ReplicationSink
from replication.source import LineSource


class PipelineState(Enum):
    """Process-level states of a replication run."""
    NOT_STARTED = "NOT_STARTED"
    STREAMING = "STREAMING"
    CLOSED = "CLOSED"


@dataclass
class ReplicationStats:
    """Counters collected during one replication run."""
    lines_read: int = 0
    lines_skipped: int = 0
    commands_parsed: int = 0
    commands_discarded: int = 0
    commands_replicated: int = 0
    commands_failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return asdict(self)


class ReplicationManager:
    """
    Runs one replication pipeline.

    The producer thread reads the monitor stream into the channel; the
    calling thread drains it into the executor. Per-command failures
    never change the pipeline state.
    """

    def __init__(self, config: ReplicatorConfig, executor: CommandExecutor):
        """
        Initialize replication manager.

        Args:
            config: Replicator configuration
            executor: Destination executor
        """
        self.config = config
        self.executor = executor
        self.logger = logging.getLogger('redis_replicator.manager')

        self.state = PipelineState.NOT_STARTED
        self.state_lock = threading.Lock()

        self.source: Optional[LineSource] = None
        self.sink = ReplicationSink(executor, config)
        self.channel: Optional[CommandChannel] = None
        self.producer_thread: Optional[threading.Thread] = None
        self.producer_error: Optional[BaseException] = None

    def _run_producer(self):
        """Producer thread body."""
        try:
            self.source.pump(self.channel)
        except Exception as e:
            # already logged by the source; reported again from run()
            self.producer_error = e

    def run(self, stream: Iterable[Union[str, bytes]]) -> ReplicationStats:
        """
        Replicate every command in ``stream`` and wait until done.

        Args:
            stream: Monitor output (file object or iterable of lines)

        Returns:
            Statistics for the run

        Raises:
            RuntimeError: If the manager was already run
            Exception: Whatever the producer hit while reading ``stream``,
                raised after every queued command was replicated
        """
        with self.state_lock:
            if self.state != PipelineState.NOT_STARTED:
                raise RuntimeError(f"Replication pipeline already {self.state.value.lower()}")
            self.state = PipelineState.STREAMING

        started = time.time()
        self.channel = CommandChannel(self.config.channel_capacity)
        self.source = LineSource(stream)

        self.producer_thread = threading.Thread(
            target=self._run_producer,
            daemon=True,
            name="MonitorLineSource"
        )
        self.producer_thread.start()
        self.logger.info(f"Replicating monitor stream to {self.config.address} db={self.config.redis_db}")

        self.sink.drain(self.channel)
        self.producer_thread.join()

        with self.state_lock:
            self.state = PipelineState.CLOSED

        stats = self.get_stats()
        duration = time.time() - started
        self.logger.info(
            f"Replication finished in {duration:.2f}s: "
            f"{stats.commands_replicated} replicated, {stats.commands_failed} failed, "
            f"{stats.lines_skipped} lines skipped"
        )

        if self.producer_error is not None:
            raise self.producer_error
        return stats

    def get_stats(self) -> ReplicationStats:
        """
        Get pipeline statistics.

        Returns:
            ReplicationStats combining source and sink counters
        """
        stats = ReplicationStats(**self.sink.get_stats())
        if self.source is not None:
            for key, value in self.source.get_stats().items():
                setattr(stats, key, value)
        return stats
