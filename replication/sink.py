"""
Replication Sink for the monitor replicator.

Consumes Commands from the channel and forwards them, one at a time,
to the destination executor.
"""

import logging

from config import ReplicatorConfig
from executors.base import CommandExecutor, ExecutionResult
from replication.channel import CommandChannel
from replication.protocol import Command


class ReplicationSink:
    """
    Sequential consumer of the command channel.

    A failing command is logged and skipped; it never stops the stream.
    """

    def __init__(self, executor: CommandExecutor, config: ReplicatorConfig):
        """
        Initialize the replication sink.

        Args:
            executor: Destination executor
            config: Replicator configuration (only ``verbose`` is used here)
        """
        self.executor = executor
        self.verbose = config.verbose
        self.logger = logging.getLogger('redis_replicator.sink')

        # Statistics
        self.commands_replicated = 0
        self.commands_failed = 0

    def replicate(self, command: Command) -> ExecutionResult:
        """
        Forward a single command to the executor.

        Args:
            command: Command to replicate

        Returns:
            Result of the executor call
        """
        if self.verbose:
            self.logger.info(command.raw, extra={'command': command.name})

        try:
            result = self.executor.execute(command.name, list(command.args))
        except Exception as e:
            result = ExecutionResult.failed(e)

        if result.success:
            self.commands_replicated += 1
        else:
            self.commands_failed += 1
            self.logger.warning(
                f"Error while executing command {command.raw}: {result.error}",
                extra={'command': command.name}
            )

        return result

    def drain(self, channel: CommandChannel):
        """
        Replicate commands until the channel is closed and empty.

        Args:
            channel: Channel fed by the line source
        """
        self.logger.debug("Replication sink started")
        for command in channel:
            self.replicate(command)
        self.logger.debug("Replication sink finished")

    def get_stats(self) -> dict:
        """
        Get sink statistics.

        Returns:
            Statistics dictionary
        """
        return {
            'commands_replicated': self.commands_replicated,
            'commands_failed': self.commands_failed
        }
