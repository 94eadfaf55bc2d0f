"""
Line Source for the replicator.

Reads monitor output line by line and produces Commands.
"""

import logging
from typing import Iterable, Iterator, Union

from replication.protocol import MonitorProtocol, Command
from replication.channel import CommandChannel


class LineSource:
    """
    Lazy stream of Commands read from monitor output.

    Lines without the metadata delimiter are noise and are skipped
    silently, as are lines whose command has no name.
    """

    def __init__(self, stream: Iterable[Union[str, bytes]]):
        """
        Initialize the line source.

        Args:
            stream: Text or binary file object, or any iterable of lines
        """
        self.stream = stream
        self.logger = logging.getLogger('redis_replicator.source')

        # Statistics
        self.lines_read = 0
        self.lines_skipped = 0
        self.commands_parsed = 0
        self.commands_discarded = 0

    def __iter__(self) -> Iterator[Command]:
        for line in self.stream:
            self.lines_read += 1

            rest = MonitorProtocol.strip_metadata(line)
            if rest is None:
                self.lines_skipped += 1
                continue

            command = MonitorProtocol.parse_command(rest)
            if not command.is_valid:
                self.commands_discarded += 1
                continue

            self.commands_parsed += 1
            yield command

    def pump(self, channel: CommandChannel):
        """
        Put every command from the stream on the channel, in read order.

        The channel is closed when the stream ends, and also when reading
        fails; in that case the error is logged and re-raised.

        Args:
            channel: Channel feeding the replication sink
        """
        self.logger.debug("Line source started")
        try:
            for command in self:
                channel.put(command)
        except Exception as e:
            self.logger.error(f"Error reading monitor output after {self.lines_read} lines: {e}")
            raise
        finally:
            channel.close()

        self.logger.info(f"End of input after {self.lines_read} lines")

    def get_stats(self) -> dict:
        """
        Get line source statistics.

        Returns:
            Statistics dictionary
        """
        return {
            'lines_read': self.lines_read,
            'lines_skipped': self.lines_skipped,
            'commands_parsed': self.commands_parsed,
            'commands_discarded': self.commands_discarded
        }
