"""
Command Channel for the replicator.

Bounded FIFO queue between the line source (producer) and the
replication sink (consumer). It is the only state the two threads share.
"""

import threading
import logging
from queue import Queue
from typing import Iterator, Optional

from replication.protocol import Command
from replication.exceptions import ChannelClosedError


DEFAULT_CAPACITY = 100

# Marks the end of the stream; queued after every pending command
_CLOSED = object()


class CommandChannel:
    """
    Bounded, blocking FIFO of Commands.

    ``put`` blocks while the channel is full, ``get`` blocks while it is
    empty. Nothing is dropped or reordered.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize the channel.

        Args:
            capacity: Maximum number of queued commands
        """
        if capacity < 1:
            raise ValueError(f"Channel capacity must be positive, got {capacity}")

        self.capacity = capacity
        # unbounded; capacity is enforced by the slots
        self.queue = Queue()
        self.slots = threading.BoundedSemaphore(capacity)
        self.closed = False
        self.drained = False
        self.lock = threading.Lock()
        self.logger = logging.getLogger('redis_replicator.channel')

    def put(self, command: Command):
        """
        Enqueue a command, blocking while the channel is full.

        Raises:
            ChannelClosedError: If the channel was closed
        """
        if self.closed:
            raise ChannelClosedError()
        self.slots.acquire()
        self.queue.put(command)

    def get(self) -> Optional[Command]:
        """
        Dequeue the next command, blocking while the channel is empty.

        Returns:
            The next Command, or None once the channel is closed and drained
        """
        if self.drained:
            return None

        item = self.queue.get()
        if item is _CLOSED:
            self.drained = True
            return None
        self.slots.release()
        return item

    def close(self):
        """
        Signal end of stream without blocking, even on a full channel.
        Commands already queued are still delivered.
        """
        with self.lock:
            if self.closed:
                return
            self.closed = True

        self.queue.put_nowait(_CLOSED)
        self.logger.debug("Command channel closed")

    def __iter__(self) -> Iterator[Command]:
        while True:
            command = self.get()
            if command is None:
                return
            yield command
