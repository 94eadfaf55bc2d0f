"""
Monitor Replication Module

This module replicates the command stream printed by Redis MONITOR
to a destination store.

Key Components:
- MonitorProtocol: Framing and un-escaping of monitor lines
- LineSource: Producer reading monitor output into Commands
- CommandChannel: Bounded FIFO between producer and consumer
- ReplicationSink: Consumer forwarding Commands to an executor
- ReplicationManager: Runs the producer and consumer together
"""

from replication.exceptions import (
    ReplicationError,
    ConnectionError,
    ProtocolError,
    TruncatedEscapeError,
    ChannelClosedError
)

from replication.protocol import (
    MonitorProtocol,
    Command
)

from replication.channel import CommandChannel
from replication.source import LineSource
from replication.sink import ReplicationSink
from replication.manager import ReplicationManager, ReplicationStats, PipelineState

__all__ = [
    'ReplicationManager',
    'ReplicationStats',
    'PipelineState',
    'ReplicationSink',
    'LineSource',
    'CommandChannel',
    'MonitorProtocol',
    'Command',
    'ReplicationError',
    'ConnectionError',
    'ProtocolError',
    'TruncatedEscapeError',
    'ChannelClosedError'
]

__version__ = '1.0.0'
